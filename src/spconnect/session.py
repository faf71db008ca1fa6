"""Connect and keep the active connection.

A :class:`Session` wires the strategy selector, the connection factory and a
:class:`ConnectionSlot` together. Downstream code receives the session (or
its slot) and reads the active connection from it. The module-level
:func:`connect` and :func:`get_connection` use a process-wide default session
backed by the OS keyring and a console prompt.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from .auth.config import ConnectRequest
from .auth.prompt import ConsolePrompt, CredentialPrompt
from .auth.selector import select
from .auth.strategies import AuthStrategy
from .connection import Connection, ConnectionSlot
from .credentials.resolver import CredentialResolver
from .credentials.store import KeyringSecretStore, SecretStore
from .factory import ConnectionFactory
from .health import HealthGate

logger = logging.getLogger(__name__)


class Session:
    """Owns the single active connection of a process or caller."""

    def __init__(
        self,
        store: SecretStore | None = None,
        prompt: CredentialPrompt | None = None,
        factory: ConnectionFactory | None = None,
        slot: ConnectionSlot | None = None,
    ) -> None:
        """
        Args:
            store: Secret store searched for credentials. ``None`` disables
                stored credential lookup.
            prompt: Asked for a credential when none is supplied or stored.
            factory: Runs the exchanges. Defaults to the built-in exchanges.
            slot: Where the active connection lives.
        """
        self.resolver = CredentialResolver(store) if store is not None else None
        self.prompt = prompt
        self.factory = factory or ConnectionFactory()
        self.slot = slot or ConnectionSlot()

    @property
    def current(self) -> Connection | None:
        return self.slot.current

    def require(self) -> Connection:
        return self.slot.require()

    def select(self, request: ConnectRequest) -> AuthStrategy:
        return select(request, resolver=self.resolver, prompt=self.prompt)

    def connect(self, request: ConnectRequest | None = None, **inputs: Any) -> Connection:
        """Authenticate and make the result the active connection.

        Either pass a ready :class:`ConnectRequest` or its fields as keyword
        arguments. On any error the previously active connection, if any,
        stays active.
        """
        if request is None:
            request = ConnectRequest(**inputs)
        elif inputs:
            raise TypeError("Pass either a ConnectRequest or keyword inputs, not both.")

        strategy = self.select(request)
        connection = self.factory.connect(strategy, request)
        self.slot.replace(connection)
        return connection

    def gate(self) -> HealthGate:
        """Health gate for the active connection."""
        return HealthGate(self.require())


_default_lock = threading.Lock()
_default_session: Session | None = None


def default_session() -> Session:
    """Return the process-wide session, creating it on first use."""
    global _default_session
    with _default_lock:
        if _default_session is None:
            _default_session = Session(store=KeyringSecretStore(), prompt=ConsolePrompt())
        return _default_session


def connect(request: ConnectRequest | None = None, **inputs: Any) -> Connection:
    """Connect using the process-wide session. See :meth:`Session.connect`."""
    return default_session().connect(request, **inputs)


def get_connection() -> Connection:
    """Return the active connection of the process-wide session.

    Raises:
        NoActiveConnection: If :func:`connect` has not succeeded yet.
    """
    return default_session().require()
