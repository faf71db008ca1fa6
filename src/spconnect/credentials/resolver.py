"""Find a stored credential for a site address.

The search goes from the most specific key to the least specific one:

1. the full address as given,
2. the address with its last path segment removed, repeatedly,
3. ``scheme://host`` (no port),
4. ``host``.

The first key with a stored credential wins.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, SecretStr

from .store import SecretStore

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


class ResolvedCredential(BaseModel):
    """A credential found in a secret store, tagged with the key it matched."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: SecretStr
    source: str


def _origin(scheme: str, host: str, port: int | None) -> str:
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def candidates(address: str) -> list[str]:
    """Return the ordered, de-duplicated store keys tried for ``address``.

    Args:
        address: Absolute site URL.

    Raises:
        ValueError: If ``address`` is not an absolute URL.
    """
    parsed = urlparse(address)
    if not parsed.scheme or not parsed.hostname:
        raise ValueError("address must be an absolute URL")

    scheme = parsed.scheme.lower()
    host = parsed.hostname
    origin = _origin(scheme, host, parsed.port)

    keys = [address]
    keys.extend(f"{origin}{prefix}" for prefix in _parent_paths(parsed.path))
    keys.append(f"{scheme}://{host}")
    keys.append(host)

    # dict preserves first-seen order
    return list(dict.fromkeys(keys))


def _parent_paths(path: str) -> Iterator[str]:
    """Yield the parent paths of ``path``, longest first.

    ``/a/b/c`` yields ``/a/b`` then ``/a``. A trailing slash is dropped first,
    so ``/a/b/`` yields ``/a/b`` then ``/a``.
    """
    trimmed = path.rstrip("/")
    if trimmed and trimmed != path:
        yield trimmed
    while "/" in trimmed:
        trimmed = trimmed[: trimmed.rfind("/")]
        if trimmed:
            yield trimmed


class CredentialResolver:
    """Looks up credentials for an address with progressively broader keys."""

    def __init__(self, store: SecretStore) -> None:
        self._store = store

    def resolve(self, address: str) -> ResolvedCredential | None:
        """Return the first stored credential matching ``address``.

        Args:
            address: Absolute site URL.

        Returns:
            The credential and the key it was stored under, or ``None`` if no
            key matched.
        """
        for key in candidates(address):
            logger.debug("Looking up stored credential for %s", key)
            found = self._store.lookup(key)
            if found is not None:
                logger.info(
                    "Using stored credential for %s (matched %s)", found.username, key
                )
                return ResolvedCredential(
                    username=found.username, password=found.password, source=key
                )
        logger.debug("No stored credential for %s", address)
        return None

    def lookup_label(self, label: str) -> ResolvedCredential | None:
        """Return the credential stored under an explicit label."""
        found = self._store.lookup(label)
        if found is None:
            return None
        return ResolvedCredential(
            username=found.username, password=found.password, source=label
        )
