from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from spconnect.connection import RetryPolicy
from spconnect.credentials.store import Credential
from spconnect.token_cache import default_token_cache_path

from .scopes import authority_from_url


class AuthenticationMode(str, Enum):
    """How user credentials are presented to the server."""

    DEFAULT = "default"
    FORMS = "forms"


class AzureEnvironment(str, Enum):
    """Azure clouds with their own login endpoints."""

    PRODUCTION = "production"
    PPE = "ppe"
    CHINA = "china"
    GERMANY = "germany"
    US_GOVERNMENT = "usgovernment"


class ConnectRequest(BaseSettings):
    """Every input a caller can supply to ``connect``.

    Values are read from keyword arguments first and from ``SPCONNECT_*``
    environment variables otherwise (e.g. ``SPCONNECT_URL``,
    ``SPCONNECT_APP_SECRET``). Which strategy the inputs describe is decided
    by :func:`spconnect.auth.selector.select`, not here; this model only
    checks types and ranges.

    Environment variables:
        - SPCONNECT_URL
        - SPCONNECT_CREDENTIALS (stored credential label)
        - SPCONNECT_APP_ID / SPCONNECT_APP_SECRET / SPCONNECT_REALM
        - SPCONNECT_CLIENT_ID / SPCONNECT_REDIRECT_URI / SPCONNECT_TENANT
        - SPCONNECT_CERTIFICATE_PATH / SPCONNECT_CERTIFICATE_PASSWORD
        - SPCONNECT_AZURE_ENVIRONMENT
        - SPCONNECT_HIGH_TRUST_CERTIFICATE_PATH / _PASSWORD / _ISSUER_ID
        - SPCONNECT_MINIMAL_HEALTH_SCORE / SPCONNECT_RETRY_COUNT /
          SPCONNECT_RETRY_WAIT / SPCONNECT_REQUEST_TIMEOUT
        - any other field name, upper-cased, with the same prefix
    """

    model_config = SettingsConfigDict(
        env_prefix="SPCONNECT_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    url: str

    # Credential group
    credentials: Credential | str | None = None
    current_user: bool = False
    use_adfs: bool = False
    authentication_mode: AuthenticationMode = AuthenticationMode.DEFAULT

    # ACS app token group
    app_id: str | None = None
    app_secret: SecretStr | None = None
    realm: str | None = None

    use_web_login: bool = False
    management_shell: bool = False

    # Azure AD groups
    client_id: str | None = None
    redirect_uri: str | None = None
    tenant: str | None = None
    certificate_path: Path | None = None
    certificate_password: SecretStr | None = None
    azure_environment: AzureEnvironment = AzureEnvironment.PRODUCTION
    clear_token_cache: bool = False
    token_cache_path: Path = Field(default_factory=default_token_cache_path)

    # High trust group
    high_trust_certificate_path: Path | None = None
    high_trust_certificate_password: SecretStr | None = None
    high_trust_certificate_issuer_id: str | None = None
    on_premises: bool = False

    tenant_admin_url: str | None = None
    skip_tenant_admin_check: bool = False

    minimal_health_score: int = Field(default=-1, ge=-1)
    retry_count: int = Field(default=10, ge=0)
    retry_wait: int = Field(default=1, ge=0)
    request_timeout: int = Field(default=1_800_000, gt=0)
    ignore_ssl_errors: bool = False

    @field_validator("url", "tenant_admin_url")
    @classmethod
    def _ensure_absolute_url(cls, v: str | None) -> str | None:
        """Reject relative URLs."""
        if v is not None:
            authority_from_url(v)
        return v

    def retry_policy(self) -> RetryPolicy:
        """Build the policy attached to the resulting connection."""
        return RetryPolicy(
            minimal_health_score=self.minimal_health_score,
            retry_count=self.retry_count,
            retry_wait=self.retry_wait,
            request_timeout=self.request_timeout,
        )
