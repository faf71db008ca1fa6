"""Authentication strategies.

Each strategy is a frozen model whose fields are exactly the inputs its
exchange needs. ``AuthStrategy`` is the tagged union over all of them,
discriminated on ``kind``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Final, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from .config import AuthenticationMode, AzureEnvironment

# SharePoint Online Management Shell application registration.
MANAGEMENT_SHELL_CLIENT_ID: Final[str] = "9bc3ab49-b65d-410a-85ad-de819febfddc"
MANAGEMENT_SHELL_REDIRECT_URI: Final[str] = "https://oauth.spops.microsoft.com/"


class StrategyKind(str, Enum):
    """Supported authentication strategies."""

    INTERACTIVE_CREDENTIAL = "interactive_credential"
    CURRENT_USER = "current_user"
    ADFS = "adfs"
    APP_TOKEN = "app_token"
    WEB_LOGIN = "web_login"
    NATIVE_AAD = "native_aad"
    APP_ONLY_AAD = "app_only_aad"
    MANAGEMENT_SHELL = "management_shell"
    HIGH_TRUST = "high_trust"


class _Strategy(BaseModel):
    model_config = ConfigDict(frozen=True)


class InteractiveCredential(_Strategy):
    kind: Literal[StrategyKind.INTERACTIVE_CREDENTIAL] = StrategyKind.INTERACTIVE_CREDENTIAL
    username: str
    password: SecretStr
    authentication_mode: AuthenticationMode = AuthenticationMode.DEFAULT


class CurrentUser(_Strategy):
    kind: Literal[StrategyKind.CURRENT_USER] = StrategyKind.CURRENT_USER


class Adfs(_Strategy):
    kind: Literal[StrategyKind.ADFS] = StrategyKind.ADFS
    username: str
    password: SecretStr


class AppToken(_Strategy):
    kind: Literal[StrategyKind.APP_TOKEN] = StrategyKind.APP_TOKEN
    app_id: str
    app_secret: SecretStr
    realm: str | None = None


class WebLogin(_Strategy):
    kind: Literal[StrategyKind.WEB_LOGIN] = StrategyKind.WEB_LOGIN


class NativeAppAAD(_Strategy):
    kind: Literal[StrategyKind.NATIVE_AAD] = StrategyKind.NATIVE_AAD
    client_id: str
    redirect_uri: str
    azure_environment: AzureEnvironment = AzureEnvironment.PRODUCTION
    clear_cache: bool = False


class AppOnlyAAD(_Strategy):
    kind: Literal[StrategyKind.APP_ONLY_AAD] = StrategyKind.APP_ONLY_AAD
    client_id: str
    tenant: str
    certificate_path: Path
    certificate_password: SecretStr
    azure_environment: AzureEnvironment = AzureEnvironment.PRODUCTION


class ManagementShell(_Strategy):
    """Native AAD login through the pre-registered Management Shell app."""

    kind: Literal[StrategyKind.MANAGEMENT_SHELL] = StrategyKind.MANAGEMENT_SHELL
    client_id: Literal["9bc3ab49-b65d-410a-85ad-de819febfddc"] = MANAGEMENT_SHELL_CLIENT_ID
    redirect_uri: Literal["https://oauth.spops.microsoft.com/"] = MANAGEMENT_SHELL_REDIRECT_URI
    azure_environment: AzureEnvironment = AzureEnvironment.PRODUCTION
    clear_cache: bool = False


class HighTrustCertificate(_Strategy):
    kind: Literal[StrategyKind.HIGH_TRUST] = StrategyKind.HIGH_TRUST
    client_id: str
    certificate_path: Path
    certificate_password: SecretStr
    issuer_id: str


AuthStrategy = Annotated[
    Union[
        InteractiveCredential,
        CurrentUser,
        Adfs,
        AppToken,
        WebLogin,
        NativeAppAAD,
        AppOnlyAAD,
        ManagementShell,
        HighTrustCertificate,
    ],
    Field(discriminator="kind"),
]
