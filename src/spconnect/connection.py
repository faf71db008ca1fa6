"""The connection handle and the single slot that holds the active one."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import NoActiveConnection

if TYPE_CHECKING:
    from .auth.strategies import StrategyKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Request gating settings attached to a connection.

    Attributes:
        minimal_health_score: Highest acceptable server health score before a
            request is issued. ``-1`` disables health gating.
        retry_count: How often to retry while the server is too busy.
        retry_wait: Seconds to wait between retries.
        request_timeout: Per-request timeout in milliseconds.
    """

    minimal_health_score: int = -1
    retry_count: int = 10
    retry_wait: int = 1
    request_timeout: int = 1_800_000

    def __post_init__(self) -> None:
        if self.minimal_health_score < -1:
            raise ValueError("minimal_health_score must be -1 or greater.")
        if self.retry_count < 0:
            raise ValueError("retry_count must not be negative.")
        if self.retry_wait < 0:
            raise ValueError("retry_wait must not be negative.")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive.")

    @property
    def health_gating_enabled(self) -> bool:
        return self.minimal_health_score != -1

    @property
    def timeout_seconds(self) -> float:
        return self.request_timeout / 1000


class ConnectionType(str, Enum):
    ONLINE = "online"
    ON_PREMISES = "on_premises"
    TENANT_ADMIN = "tenant_admin"


@dataclass(frozen=True)
class Connection:
    """An authenticated session to one site.

    ``context`` is whatever the exchange produced (an office365
    ``ClientContext`` for the default exchanges) and is opaque here.
    """

    url: str
    context: Any
    strategy: "StrategyKind"
    retry_policy: RetryPolicy
    tenant_admin_url: str | None = None
    skip_tenant_admin_check: bool = False
    connection_type: ConnectionType = ConnectionType.ONLINE
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ConnectionSlot:
    """Holds at most one active :class:`Connection`.

    Writes are serialised by a lock. Readers get the connection object that
    was current at the time of the call; connections are immutable, so no
    lock is needed once a reader holds one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connection: Connection | None = None

    @property
    def current(self) -> Connection | None:
        with self._lock:
            return self._connection

    def require(self) -> Connection:
        """Return the active connection.

        Raises:
            NoActiveConnection: If nothing has connected yet.
        """
        connection = self.current
        if connection is None:
            raise NoActiveConnection()
        return connection

    def replace(self, connection: Connection) -> Connection | None:
        """Make ``connection`` the active one and return the previous one."""
        with self._lock:
            previous, self._connection = self._connection, connection
        if previous is not None:
            logger.debug("Replaced connection to %s", previous.url)
        return previous
