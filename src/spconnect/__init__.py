"""Authenticated connections to SharePoint sites."""

from .auth.config import ConnectRequest
from .connection import Connection, ConnectionSlot, ConnectionType, RetryPolicy
from .factory import ConnectionFactory
from .health import HealthGate
from .session import Session, connect, get_connection

__all__ = [
    "Connection",
    "ConnectionFactory",
    "ConnectionSlot",
    "ConnectionType",
    "ConnectRequest",
    "HealthGate",
    "RetryPolicy",
    "Session",
    "connect",
    "get_connection",
]
