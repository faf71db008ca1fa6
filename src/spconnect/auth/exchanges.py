"""Default authentication exchanges, one per strategy.

An exchange turns a validated strategy into an authenticated office365
``ClientContext``. The token protocols themselves are handled by
``azure-identity`` and ``Office365-REST-Python-Client``; the functions here
only pick the right call and parameters. Every exchange loads the web once
so that bad credentials fail during connect rather than on first use.

User name and password logins go through NTLM on premises and through the
Entra ID password grant online, since SharePoint Online no longer accepts
the legacy SAML sign-in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from time import time
from typing import TYPE_CHECKING, Any, Callable, Mapping
from urllib.parse import urlparse

import requests
from azure.identity import (
    AuthenticationRecord,
    CertificateCredential,
    DefaultAzureCredential,
    InteractiveBrowserCredential,
    TokenCachePersistenceOptions,
    UsernamePasswordCredential,
)
from office365.runtime.auth.client_credential import ClientCredential
from office365.runtime.auth.providers.acs_token_provider import ACSTokenProvider
from office365.runtime.auth.token_response import TokenResponse
from office365.runtime.auth.user_credential import UserCredential
from office365.sharepoint.client_context import ClientContext

from spconnect.connection import RetryPolicy
from spconnect.exceptions import TokenCacheCorrupt

from . import scopes
from .config import AuthenticationMode
from .strategies import (
    MANAGEMENT_SHELL_CLIENT_ID,
    Adfs,
    AppOnlyAAD,
    AppToken,
    AuthStrategy,
    InteractiveCredential,
    ManagementShell,
    NativeAppAAD,
    StrategyKind,
)

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

logger = logging.getLogger(__name__)

# Public client used for the online password grant.
PASSWORD_GRANT_CLIENT_ID = MANAGEMENT_SHELL_CLIENT_ID
PASSWORD_GRANT_TENANT = "organizations"

# Name of the MSAL token cache azure-identity keeps for native AAD logins.
TOKEN_CACHE_NAME = "spconnect"

_LOOPBACK_HOSTS = ("localhost", "127.0.0.1")


@dataclass(frozen=True)
class ExchangeOptions:
    """Connection settings passed through to every exchange."""

    retry_policy: RetryPolicy
    tenant_admin_url: str | None = None
    skip_tenant_admin_check: bool = False
    authority_host: str = scopes.AUTHORITY_HOSTS["production"]
    verify_ssl: bool = True
    on_premises: bool = False
    token_cache_path: Path | None = None

    @property
    def timeout_ms(self) -> int:
        return self.retry_policy.request_timeout

    @property
    def timeout_seconds(self) -> float:
        return self.retry_policy.timeout_seconds


Exchange = Callable[[AuthStrategy, str, ExchangeOptions], Any]


class TransportSession(requests.Session):
    """``requests`` session that applies the connect timeout and TLS setting.

    office365 passes its own ``verify`` value on every call and drops the
    transport timeout, so both are enforced here.
    """

    def __init__(self, *, verify: bool = True, timeout: float | None = None) -> None:
        super().__init__()
        self.verify = verify
        self.default_timeout = timeout

    def request(self, method: str, url: str, *args: Any, **kwargs: Any) -> requests.Response:
        if not self.verify:
            kwargs["verify"] = False
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.default_timeout
        return super().request(method, url, *args, **kwargs)


def _new_context(
    site_url: str, options: ExchangeOptions, *, browser_mode: bool = False
) -> ClientContext:
    """Create a ClientContext bound to the request timeout and TLS setting."""
    context = ClientContext(
        site_url, allow_ntlm=options.on_premises, browser_mode=browser_mode
    )
    session = TransportSession(verify=options.verify_ssl, timeout=options.timeout_seconds)
    return context.with_transport(
        verify=options.verify_ssl, timeout=options.timeout_seconds, session=session
    )


def _verified(context: ClientContext) -> ClientContext:
    """Load the web once to prove the login works."""
    context.load(context.web)
    context.execute_query()
    return context


def _azure_kwargs(options: ExchangeOptions) -> dict[str, Any]:
    return {
        "authority": options.authority_host,
        "connection_timeout": options.timeout_seconds,
        "connection_verify": options.verify_ssl,
    }


def build_token_context(
    site_url: str, credential: "TokenCredential", options: ExchangeOptions
) -> ClientContext:
    """Build a SharePoint ClientContext from an Azure token credential.

    Args:
        site_url: The absolute SharePoint site URL (including url scheme).
        credential: Any azure-identity credential.
        options: Transport settings for the SharePoint calls.
    """
    scope = scopes.spo_scope_from_url(site_url)

    def _factory() -> TokenResponse:
        tok = credential.get_token(scope)
        return TokenResponse.from_json(
            {
                "token_type": "Bearer",
                "access_token": tok.token,
                "expires_in": max(1, int(tok.expires_on - time())),
            }
        )

    return _new_context(site_url, options).with_access_token(_factory)


def _password_login(
    username: str,
    password: str,
    site_url: str,
    options: ExchangeOptions,
    *,
    browser_mode: bool = False,
) -> ClientContext:
    if options.on_premises:
        context = _new_context(site_url, options, browser_mode=browser_mode)
        return context.with_credentials(UserCredential(username, password))
    credential = UsernamePasswordCredential(
        client_id=PASSWORD_GRANT_CLIENT_ID,
        username=username,
        password=password,
        tenant_id=PASSWORD_GRANT_TENANT,
        **_azure_kwargs(options),
    )
    return build_token_context(site_url, credential, options)


def interactive_credential_exchange(
    strategy: InteractiveCredential, site_url: str, options: ExchangeOptions
) -> ClientContext:
    context = _password_login(
        strategy.username,
        strategy.password.get_secret_value(),
        site_url,
        options,
        browser_mode=strategy.authentication_mode is AuthenticationMode.FORMS,
    )
    return _verified(context)


def adfs_exchange(strategy: Adfs, site_url: str, options: ExchangeOptions) -> ClientContext:
    # Online, Entra ID forwards federated users to their ADFS endpoint.
    context = _password_login(
        strategy.username, strategy.password.get_secret_value(), site_url, options
    )
    return _verified(context)


class AcsTokenProvider(ACSTokenProvider):
    """SharePoint app-only (ACS) token provider.

    Uses the caller's realm when one is given instead of asking the server,
    and sends both ACS calls with the connect timeout and TLS setting.
    """

    def __init__(
        self,
        url: str,
        credential: ClientCredential,
        *,
        realm: str | None = None,
        authority_host: str = scopes.AUTHORITY_HOSTS["production"],
        verify: bool = True,
        timeout: float | None = None,
    ) -> None:
        super().__init__(url, credential)
        self.realm = realm
        self.authority_host = authority_host
        self.verify = verify
        self.timeout = timeout

    def _get_realm_from_target_url(self) -> str | None:
        if self.realm:
            return self.realm
        response = requests.head(
            url=self.url,
            headers={"Authorization": "Bearer"},
            verify=self.verify,
            timeout=self.timeout,
        )
        challenge = response.headers.get("WWW-Authenticate")
        if not challenge:
            return None
        bearer = challenge.split(",")[0].split("=")
        return bearer[1].replace('"', "")

    def get_security_token_service_url(self, realm: str | None) -> str:
        return f"https://{self.authority_host}/{realm}/tokens/OAuth/2"

    def _get_app_only_access_token(
        self, target_host: str | None, target_realm: str | None
    ) -> TokenResponse:
        if not target_realm:
            raise ValueError(f"Cannot discover the ACS realm of {self.url}")
        resource = self.get_formatted_principal(
            self.SHAREPOINT_PRINCIPAL, target_host, target_realm
        )
        principal_id = self.get_formatted_principal(
            self._credential.client_id, None, target_realm
        )
        response = requests.post(
            url=self.get_security_token_service_url(target_realm),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={
                "grant_type": "client_credentials",
                "client_id": principal_id,
                "client_secret": self._credential.client_secret,
                "scope": resource,
                "resource": resource,
            },
            verify=self.verify,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return TokenResponse.from_json(response.json())


def app_token_exchange(
    strategy: AppToken, site_url: str, options: ExchangeOptions
) -> ClientContext:
    if strategy.realm:
        logger.debug("Using explicit realm %s", strategy.realm)
    provider = AcsTokenProvider(
        site_url,
        ClientCredential(strategy.app_id, strategy.app_secret.get_secret_value()),
        realm=strategy.realm,
        authority_host=options.authority_host,
        verify=options.verify_ssl,
        timeout=options.timeout_seconds,
    )
    context = _new_context(site_url, options).with_access_token(
        provider.get_app_only_access_token
    )
    return _verified(context)


def current_user_exchange(
    strategy: AuthStrategy, site_url: str, options: ExchangeOptions
) -> ClientContext:
    credential = DefaultAzureCredential(**_azure_kwargs(options))
    return _verified(build_token_context(site_url, credential, options))


def web_login_exchange(
    strategy: AuthStrategy, site_url: str, options: ExchangeOptions
) -> ClientContext:
    credential = InteractiveBrowserCredential(**_azure_kwargs(options))
    return _verified(build_token_context(site_url, credential, options))


def load_authentication_record(path: Path | None) -> AuthenticationRecord | None:
    """Read the account record saved by an earlier native AAD login.

    Raises:
        TokenCacheCorrupt: If the file exists but does not hold a record.
    """
    if path is None or not path.is_file():
        return None
    try:
        return AuthenticationRecord.deserialize(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, KeyError, AttributeError) as exc:
        raise TokenCacheCorrupt(f"Token cache {path} cannot be read: {exc}") from exc


def save_authentication_record(path: Path, record: AuthenticationRecord) -> None:
    path.write_text(record.serialize(), encoding="utf-8")
    logger.debug("Saved authentication record to %s", path)


def _browser_redirect(redirect_uri: str) -> str | None:
    # azure-identity listens on the redirect URI, so it must be loopback with a port.
    parsed = urlparse(redirect_uri)
    if parsed.hostname in _LOOPBACK_HOSTS and parsed.port:
        return redirect_uri
    logger.debug("Redirect URI %s is not a local listener, using a free port", redirect_uri)
    return None


def native_aad_exchange(
    strategy: NativeAppAAD | ManagementShell, site_url: str, options: ExchangeOptions
) -> ClientContext:
    """Browser login for a registered public client.

    The account record is kept at ``options.token_cache_path`` and the tokens
    in azure-identity's persistent cache, so later connects are silent until
    the record is deleted.
    """
    path = options.token_cache_path
    record = load_authentication_record(path)
    kwargs: dict[str, Any] = {
        "client_id": strategy.client_id,
        "cache_persistence_options": TokenCachePersistenceOptions(
            name=TOKEN_CACHE_NAME, allow_unencrypted_storage=True
        ),
        **_azure_kwargs(options),
    }
    redirect_uri = _browser_redirect(strategy.redirect_uri)
    if redirect_uri:
        kwargs["redirect_uri"] = redirect_uri
    if record is not None:
        kwargs["authentication_record"] = record

    credential = InteractiveBrowserCredential(**kwargs)
    if record is None and path is not None:
        record = credential.authenticate(scopes=[scopes.spo_scope_from_url(site_url)])
        save_authentication_record(path, record)
    return _verified(build_token_context(site_url, credential, options))


def app_only_aad_exchange(
    strategy: AppOnlyAAD, site_url: str, options: ExchangeOptions
) -> ClientContext:
    credential = CertificateCredential(
        tenant_id=strategy.tenant,
        client_id=strategy.client_id,
        certificate_path=str(strategy.certificate_path),
        password=strategy.certificate_password.get_secret_value(),
        **_azure_kwargs(options),
    )
    return _verified(build_token_context(site_url, credential, options))


# High trust has no default: it needs an on-premises token issuer exchange.
DEFAULT_EXCHANGES: Mapping[StrategyKind, Exchange] = {
    StrategyKind.INTERACTIVE_CREDENTIAL: interactive_credential_exchange,
    StrategyKind.CURRENT_USER: current_user_exchange,
    StrategyKind.ADFS: adfs_exchange,
    StrategyKind.APP_TOKEN: app_token_exchange,
    StrategyKind.WEB_LOGIN: web_login_exchange,
    StrategyKind.NATIVE_AAD: native_aad_exchange,
    StrategyKind.MANAGEMENT_SHELL: native_aad_exchange,
    StrategyKind.APP_ONLY_AAD: app_only_aad_exchange,
}
