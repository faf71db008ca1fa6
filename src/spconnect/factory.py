"""Run the exchange for a selected strategy and build the connection."""

from __future__ import annotations

import logging
from collections.abc import Mapping

import requests
from azure.core.exceptions import ClientAuthenticationError, ServiceRequestError

from . import tls
from .auth import scopes
from .auth.certificate import load_pfx_certificate
from .auth.config import ConnectRequest
from .auth.exchanges import DEFAULT_EXCHANGES, Exchange, ExchangeOptions
from .auth.strategies import (
    AppOnlyAAD,
    AuthStrategy,
    HighTrustCertificate,
    ManagementShell,
    NativeAppAAD,
    StrategyKind,
)
from .connection import Connection, ConnectionType
from .exceptions import AuthFailed, NetworkUnreachable, SpConnectError
from .token_cache import prepare_token_cache

logger = logging.getLogger(__name__)


class ConnectionFactory:
    """Turns a validated strategy into a :class:`Connection`.

    The factory never touches the session slot: it either returns a complete
    connection or raises.
    """

    def __init__(self, exchanges: Mapping[StrategyKind, Exchange] | None = None) -> None:
        """
        Args:
            exchanges: Exchange per strategy kind. Defaults to
                :data:`~spconnect.auth.exchanges.DEFAULT_EXCHANGES`.
        """
        self._exchanges: dict[StrategyKind, Exchange] = dict(
            DEFAULT_EXCHANGES if exchanges is None else exchanges
        )

    def register(self, kind: StrategyKind, exchange: Exchange) -> None:
        """Install or replace the exchange used for ``kind``."""
        self._exchanges[kind] = exchange

    def _prepare(self, strategy: AuthStrategy, request: ConnectRequest) -> None:
        match strategy:
            case NativeAppAAD() | ManagementShell():
                prepare_token_cache(request.token_cache_path, clear=strategy.clear_cache)
            case AppOnlyAAD() | HighTrustCertificate():
                load_pfx_certificate(
                    strategy.certificate_path,
                    strategy.certificate_password.get_secret_value(),
                )

    def _options(self, strategy: AuthStrategy, request: ConnectRequest) -> ExchangeOptions:
        environment = getattr(strategy, "azure_environment", request.azure_environment)
        return ExchangeOptions(
            retry_policy=request.retry_policy(),
            tenant_admin_url=request.tenant_admin_url,
            skip_tenant_admin_check=request.skip_tenant_admin_check,
            authority_host=scopes.authority_host(environment),
            verify_ssl=tls.verify_ssl(),
            on_premises=request.on_premises,
            token_cache_path=request.token_cache_path,
        )

    def connect(self, strategy: AuthStrategy, request: ConnectRequest) -> Connection:
        """Authenticate with ``strategy`` and return the new connection.

        Args:
            strategy: Output of :func:`~spconnect.auth.selector.select`.
            request: The request the strategy was selected from.

        Returns:
            A fully populated connection.

        Raises:
            AuthFailed: The exchange rejected the credentials or no exchange
                is registered for the strategy.
            NetworkUnreachable: The server or identity provider is unreachable.
            InvalidCertificate: The certificate file cannot be used.
            TokenCacheCorrupt: The token cache path is unusable.
            CacheDeletionFailed: The token cache could not be cleared.
        """
        if request.ignore_ssl_errors:
            tls.enable_ssl_bypass()

        self._prepare(strategy, request)

        exchange = self._exchanges.get(strategy.kind)
        if exchange is None:
            raise AuthFailed(f"no exchange registered for {strategy.kind.value}")

        options = self._options(strategy, request)
        logger.debug("Running %s exchange against %s", strategy.kind.value, request.url)
        try:
            context = exchange(strategy, request.url, options)
        except SpConnectError:
            raise
        except ClientAuthenticationError as exc:
            raise AuthFailed(exc.message or str(exc)) from exc
        except (ServiceRequestError, requests.ConnectionError, requests.Timeout) as exc:
            raise NetworkUnreachable(f"Cannot reach {request.url}: {exc}") from exc
        except (ValueError, RuntimeError) as exc:
            # office365 reports rejected credentials as ValueError and
            # unsupported sign-in flows as RuntimeError
            raise AuthFailed(str(exc)) from exc

        if context is None:
            raise AuthFailed(f"{strategy.kind.value} exchange returned no context")

        tenant_admin_url = request.tenant_admin_url or scopes.tenant_admin_url_from_url(
            request.url
        )
        connection = Connection(
            url=request.url,
            context=context,
            strategy=strategy.kind,
            retry_policy=options.retry_policy,
            tenant_admin_url=tenant_admin_url,
            skip_tenant_admin_check=request.skip_tenant_admin_check,
            connection_type=self._connection_type(request),
        )
        logger.info("Connected to %s using %s", request.url, strategy.kind.value)
        return connection

    @staticmethod
    def _connection_type(request: ConnectRequest) -> ConnectionType:
        if not request.skip_tenant_admin_check and scopes.is_tenant_admin_url(request.url):
            return ConnectionType.TENANT_ADMIN
        if request.on_premises:
            return ConnectionType.ON_PREMISES
        return ConnectionType.ONLINE
