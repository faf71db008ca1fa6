from __future__ import annotations

import os
import ssl
from pathlib import Path
from typing import Any, Iterator

import pytest
from pydantic import SecretStr

from spconnect import tls
from spconnect.auth.certificate import generate_self_signed_certificate
from spconnect.credentials.store import Credential


@pytest.fixture(autouse=True)
def clear_spconnect_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Iterator[None]:
    """Remove SPCONNECT_* vars and point the config dir at tmp_path.

    Yields:
        Iterator[None]: Context manager semantics for pytest.
    """
    for k in list(os.environ.keys()):
        if k.upper().startswith("SPCONNECT_"):
            monkeypatch.delenv(k, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    yield


@pytest.fixture(autouse=True)
def restore_tls(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Undo any process-wide SSL bypass a test enabled."""
    monkeypatch.setattr(tls, "_enabled", False)
    monkeypatch.setattr(ssl, "_create_default_https_context", ssl._create_default_https_context)
    yield


class DictSecretStore:
    """In-memory secret store that records every key it was asked for."""

    def __init__(self, entries: dict[str, tuple[str, str]] | None = None) -> None:
        self.entries = {
            k: Credential(username=u, password=SecretStr(p))
            for k, (u, p) in (entries or {}).items()
        }
        self.lookups: list[str] = []

    def lookup(self, key: str) -> Credential | None:
        self.lookups.append(key)
        return self.entries.get(key)


class RecordingExchange:
    """Exchange double: returns a context object or raises ``error``."""

    def __init__(self, context: Any = None, error: Exception | None = None) -> None:
        self.context = context if context is not None else object()
        self.error = error
        self.calls: list[tuple[Any, str, Any]] = []

    def __call__(self, strategy: Any, site_url: str, options: Any) -> Any:
        self.calls.append((strategy, site_url, options))
        if self.error is not None:
            raise self.error
        return self.context


class RecordingPrompt:
    def __init__(self, answer: Credential | None) -> None:
        self.answer = answer
        self.titles: list[str] = []

    def __call__(self, title: str) -> Credential | None:
        self.titles.append(title)
        return self.answer


@pytest.fixture()
def store_factory():
    return DictSecretStore


@pytest.fixture()
def exchange_factory():
    return RecordingExchange


@pytest.fixture()
def prompt_factory():
    return RecordingPrompt


@pytest.fixture(scope="session")
def pfx_bytes() -> bytes:
    pfx, _ = generate_self_signed_certificate(common_name="spconnect-test", password="pw")
    return pfx


@pytest.fixture()
def pfx_file(tmp_path: Path, pfx_bytes: bytes) -> Path:
    p = tmp_path / "cert.pfx"
    p.write_bytes(pfx_bytes)
    return p
