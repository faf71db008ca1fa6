from __future__ import annotations

import threading
from pathlib import Path

import pytest
from pydantic import SecretStr

from spconnect import session as session_module
from spconnect.auth.config import ConnectRequest
from spconnect.auth.strategies import StrategyKind
from spconnect.connection import ConnectionSlot
from spconnect.credentials.store import Credential
from spconnect.exceptions import (
    AuthFailed,
    ConflictingInputsError,
    NoActiveConnection,
    ValidationError,
)
from spconnect.factory import ConnectionFactory
from spconnect.health import HealthGate
from spconnect.session import Session


def _session(exchanges, **kwargs) -> Session:
    return Session(factory=ConnectionFactory(exchanges), **kwargs)


def test_connect__stores_connection(exchange_factory) -> None:
    s = _session({StrategyKind.CURRENT_USER: exchange_factory()})
    assert s.current is None

    conn = s.connect(url="https://a.example", current_user=True)

    assert s.current is conn
    assert s.require() is conn


def test_require__without_connection() -> None:
    with pytest.raises(NoActiveConnection):
        Session().require()


def test_failed_connect__keeps_previous_connection(exchange_factory) -> None:
    good = exchange_factory()
    bad = exchange_factory(error=AuthFailed("invalid client secret"))
    s = _session({StrategyKind.CURRENT_USER: good, StrategyKind.APP_TOKEN: bad})

    first = s.connect(url="https://a.example", current_user=True)
    with pytest.raises(AuthFailed):
        s.connect(url="https://b.example", app_id="app", app_secret="wrong")

    assert s.current is first
    assert s.current.url == "https://a.example"


def test_invalid_request__never_reaches_factory(exchange_factory) -> None:
    exchange = exchange_factory()
    s = _session({StrategyKind.APP_TOKEN: exchange, StrategyKind.WEB_LOGIN: exchange})

    with pytest.raises(ValidationError):
        s.connect(url="https://a.example", app_id="app")
    with pytest.raises(ConflictingInputsError):
        s.connect(url="https://a.example", app_id="a", app_secret="s", use_web_login=True)

    assert exchange.calls == []
    assert s.current is None


def test_successful_connect__replaces_previous(exchange_factory) -> None:
    s = _session({StrategyKind.CURRENT_USER: exchange_factory()})
    first = s.connect(url="https://a.example", current_user=True)
    second = s.connect(url="https://b.example", current_user=True)
    assert first is not second
    assert s.current is second


def test_connect__uses_store_for_credentials(exchange_factory, store_factory) -> None:
    exchange = exchange_factory()
    store = store_factory({"a.example": ("stored", "pw")})
    s = _session({StrategyKind.INTERACTIVE_CREDENTIAL: exchange}, store=store)

    conn = s.connect(url="https://a.example/sites/x")

    assert conn.strategy is StrategyKind.INTERACTIVE_CREDENTIAL
    assert exchange.calls[0][0].username == "stored"


def test_connect__prompt_when_store_empty(exchange_factory, store_factory, prompt_factory) -> None:
    exchange = exchange_factory()
    prompt = prompt_factory(Credential(username="typed", password=SecretStr("pw")))
    s = _session(
        {StrategyKind.INTERACTIVE_CREDENTIAL: exchange},
        store=store_factory(),
        prompt=prompt,
    )
    s.connect(url="https://a.example")
    assert exchange.calls[0][0].username == "typed"


def test_native_aad_clear_cache__fresh_environment(exchange_factory, tmp_path: Path) -> None:
    exchange = exchange_factory()
    s = _session({StrategyKind.NATIVE_AAD: exchange})

    conn = s.connect(
        url="https://contoso.sharepoint.com",
        client_id="cid",
        redirect_uri="http://localhost",
        clear_token_cache=True,
    )

    assert conn.strategy is StrategyKind.NATIVE_AAD
    assert (tmp_path / "config" / "spconnect").is_dir()


def test_connect__request_and_inputs_are_exclusive() -> None:
    with pytest.raises(TypeError):
        Session().connect(ConnectRequest(url="https://a.example"), current_user=True)


def test_gate__bound_to_active_connection(exchange_factory) -> None:
    s = _session({StrategyKind.CURRENT_USER: exchange_factory()})
    s.connect(url="https://a.example", current_user=True, minimal_health_score=2)
    gate = s.gate()
    assert isinstance(gate, HealthGate)
    assert gate.policy.minimal_health_score == 2


def test_module_connect__uses_default_session(
    monkeypatch: pytest.MonkeyPatch, exchange_factory
) -> None:
    s = _session({StrategyKind.CURRENT_USER: exchange_factory()})
    monkeypatch.setattr(session_module, "_default_session", s)

    conn = session_module.connect(url="https://a.example", current_user=True)

    assert session_module.get_connection() is conn


def test_slot__concurrent_replace_keeps_one_connection(exchange_factory) -> None:
    slot = ConnectionSlot()
    s = _session({StrategyKind.CURRENT_USER: exchange_factory()}, slot=slot)
    results = []

    def _run(i: int) -> None:
        results.append(s.connect(url=f"https://site{i}.example", current_user=True))

    threads = [threading.Thread(target=_run, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 8
    assert slot.current in results
