"""Strategy selection for SharePoint connections.

Public API:
- ConnectRequest (settings), AuthenticationMode, AzureEnvironment
- StrategyKind and the AuthStrategy variants
- select() (request → strategy)
- spo_scope_from_url(), authority_from_url() (scope helpers)
"""

from .config import AuthenticationMode, AzureEnvironment, ConnectRequest
from .scopes import authority_from_url, spo_scope_from_url
from .selector import select
from .strategies import (
    Adfs,
    AppOnlyAAD,
    AppToken,
    AuthStrategy,
    CurrentUser,
    HighTrustCertificate,
    InteractiveCredential,
    ManagementShell,
    NativeAppAAD,
    StrategyKind,
    WebLogin,
)

__all__ = [
    "Adfs",
    "AppOnlyAAD",
    "AppToken",
    "AuthStrategy",
    "AuthenticationMode",
    "AzureEnvironment",
    "ConnectRequest",
    "CurrentUser",
    "HighTrustCertificate",
    "InteractiveCredential",
    "ManagementShell",
    "NativeAppAAD",
    "StrategyKind",
    "WebLogin",
    "authority_from_url",
    "select",
    "spo_scope_from_url",
]
