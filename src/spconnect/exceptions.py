"""Exception hierarchy for spconnect.

All exceptions inherit from :class:`SpConnectError`. Nothing raised here is
retried by the connect path; callers receive every error synchronously.

Subclass hierarchy::

    SpConnectError
    +-- ValidationError           (bad, missing or conflicting inputs)
    |   +-- ConflictingInputsError
    +-- CredentialUnresolved
    +-- ConnectError              (the exchange could not produce a context)
    |   +-- AuthFailed
    |   +-- NetworkUnreachable
    |   +-- InvalidCertificate
    |   +-- TokenCacheCorrupt
    |   +-- CacheDeletionFailed
    +-- NoActiveConnection
    +-- ServerBusy
"""

from __future__ import annotations

from collections.abc import Iterable


class SpConnectError(Exception):
    """Base exception for all spconnect errors."""


class ValidationError(SpConnectError, ValueError):
    """Raised before any network activity when a request cannot be satisfied.

    Args:
        strategy: Name of the strategy whose inputs were being validated.
        missing_field: The first required field found empty, if any.
        message: Optional override for the default message.
    """

    def __init__(
        self,
        strategy: str,
        missing_field: str | None = None,
        message: str | None = None,
    ) -> None:
        self.strategy = strategy
        self.missing_field = missing_field
        if message is None:
            message = f"{strategy} requires {missing_field}."
        super().__init__(message)


class ConflictingInputsError(ValidationError):
    """Raised when inputs of more than one strategy group are supplied."""

    def __init__(self, groups: Iterable[str]) -> None:
        self.groups = tuple(groups)
        super().__init__(
            strategy="|".join(self.groups),
            message=(
                "Inputs for mutually exclusive authentication strategies were "
                f"supplied together: {', '.join(self.groups)}."
            ),
        )


class CredentialUnresolved(SpConnectError):
    """No stored credential matched the address or label."""

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"No stored credential found for {address!r}.")


class ConnectError(SpConnectError):
    """Base class for failures of the authentication exchange."""


class AuthFailed(ConnectError):
    """The exchange rejected the supplied credential, token or certificate."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Authentication failed: {reason}")


class NetworkUnreachable(ConnectError):
    """The server or the identity provider could not be reached."""


class InvalidCertificate(ConnectError):
    """A certificate file is missing, unreadable or has the wrong password."""


class TokenCacheCorrupt(ConnectError):
    """The exchange could not use the local token cache."""


class CacheDeletionFailed(ConnectError):
    """The token cache exists but could not be removed."""


class NoActiveConnection(SpConnectError):
    """Raised when a connection is required but none has been established."""

    def __init__(self) -> None:
        super().__init__("There is no connection; call connect() first.")


class ServerBusy(SpConnectError):
    """The server health score stayed above the minimum for every retry."""

    def __init__(self, health_score: int, attempts: int) -> None:
        self.health_score = health_score
        self.attempts = attempts
        super().__init__(
            f"Server health score {health_score} still too high after "
            f"{attempts} attempts."
        )
