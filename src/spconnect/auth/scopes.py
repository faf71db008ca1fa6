from __future__ import annotations

from typing import TYPE_CHECKING, Final
from urllib.parse import urlparse

if TYPE_CHECKING:
    from .config import AzureEnvironment

SHAREPOINT_ONLINE_SUFFIX: Final[str] = ".sharepoint.com"

# Login hosts per Azure cloud, keyed by AzureEnvironment value.
AUTHORITY_HOSTS: Final[dict[str, str]] = {
    "production": "login.microsoftonline.com",
    "ppe": "login.windows-ppe.net",
    "china": "login.chinacloudapi.cn",
    "germany": "login.microsoftonline.de",
    "usgovernment": "login.microsoftonline.us",
}


def authority_from_url(site_url: str) -> str:
    """Return the URL authority (scheme + host).

    Args:
        site_url: Absolute SharePoint site URL (e.g., "https://tenant.sharepoint.com/sites/foo").

    Returns:
        The "<scheme>://<host>" portion of the URL.

    Raises:
        ValueError: If ``site_url`` is not absolute or lacks a host.
    """
    parsed = urlparse(site_url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("site_url must be an absolute URL")
    return f"{parsed.scheme}://{parsed.netloc}"


def spo_scope_from_url(site_url: str) -> str:
    return f"{authority_from_url(site_url)}/.default"


def authority_host(environment: "AzureEnvironment | str") -> str:
    """Return the login host for an Azure environment."""
    return AUTHORITY_HOSTS[getattr(environment, "value", environment)]


def is_tenant_admin_url(site_url: str) -> bool:
    """Return True if ``site_url`` points at a SharePoint tenant admin site."""
    host = urlparse(site_url).hostname or ""
    return "-admin." in host


def tenant_admin_url_from_url(site_url: str) -> str | None:
    """Derive ``https://<tenant>-admin.sharepoint.com`` from a site URL.

    Args:
        site_url: Absolute site URL.

    Returns:
        The admin URL, or ``None`` when the host is not SharePoint Online.
    """
    parsed = urlparse(site_url)
    host = (parsed.hostname or "").lower()
    if not host.endswith(SHAREPOINT_ONLINE_SUFFIX):
        return None
    tenant = host[: -len(SHAREPOINT_ONLINE_SUFFIX)].split(".")[0]
    if tenant.endswith("-admin"):
        return f"{parsed.scheme}://{host}"
    if tenant.endswith("-my"):
        tenant = tenant[: -len("-my")]
    return f"{parsed.scheme}://{tenant}-admin{SHAREPOINT_ONLINE_SUFFIX}"
