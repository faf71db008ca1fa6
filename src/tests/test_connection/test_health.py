from __future__ import annotations

from typing import Any

import pytest
import requests

from spconnect.auth.strategies import StrategyKind
from spconnect.connection import Connection, RetryPolicy
from spconnect.exceptions import ServerBusy
from spconnect.health import HEALTH_SCORE_HEADER, HealthGate


class FakeResponse:
    def __init__(self, headers: dict[str, str] | None = None, status_code: int = 200) -> None:
        self.headers = headers or {}
        self.status_code = status_code


class FakeSession:
    """Returns queued health scores; ``None`` means no header."""

    def __init__(self, scores: list[int | None]) -> None:
        self.scores = list(scores)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((url, kwargs))
        score = self.scores.pop(0)
        return FakeResponse({} if score is None else {HEALTH_SCORE_HEADER: str(score)})


def _gate(policy: RetryPolicy, session: FakeSession | None = None):
    sleeps: list[float] = []
    conn = Connection(
        url="https://a.example", context=object(), strategy=StrategyKind.WEB_LOGIN, retry_policy=policy
    )
    return HealthGate(conn, session=session or FakeSession([]), sleep=sleeps.append), sleeps


def test_policy__is_the_connection_policy() -> None:
    policy = RetryPolicy(minimal_health_score=4, retry_count=2)
    gate, _ = _gate(policy)
    assert gate.policy is policy


def test_disabled_gating__never_probes() -> None:
    session = FakeSession([])
    gate, sleeps = _gate(RetryPolicy(minimal_health_score=-1), session)
    gate.wait_until_healthy()
    assert session.calls == []
    assert sleeps == []


def test_healthy_server__passes_immediately() -> None:
    session = FakeSession([2])
    gate, sleeps = _gate(RetryPolicy(minimal_health_score=3, request_timeout=2000), session)
    gate.wait_until_healthy()

    [(url, kwargs)] = session.calls
    assert url == "https://a.example"
    assert kwargs == {"timeout": 2.0, "verify": True, "allow_redirects": False}
    assert sleeps == []


def test_missing_header__counts_as_healthy() -> None:
    gate, sleeps = _gate(RetryPolicy(minimal_health_score=0), FakeSession([None]))
    gate.wait_until_healthy()
    assert sleeps == []


def test_busy_server__waits_then_proceeds() -> None:
    gate, sleeps = _gate(
        RetryPolicy(minimal_health_score=3, retry_count=5, retry_wait=2), FakeSession([8, 7, 3])
    )
    gate.wait_until_healthy()
    assert sleeps == [2, 2]


def test_busy_server__exhausts_retries() -> None:
    gate, sleeps = _gate(
        RetryPolicy(minimal_health_score=1, retry_count=2, retry_wait=1), FakeSession([9, 9, 9])
    )
    with pytest.raises(ServerBusy) as exc_info:
        gate.wait_until_healthy()
    assert exc_info.value.health_score == 9
    assert exc_info.value.attempts == 3
    assert sleeps == [1, 1]


def _throttled(status: int, retry_after: str | None = None) -> requests.HTTPError:
    response = requests.Response()
    response.status_code = status
    if retry_after is not None:
        response.headers["Retry-After"] = retry_after
    return requests.HTTPError(response=response)


def test_execute__retries_throttled_calls() -> None:
    gate, sleeps = _gate(RetryPolicy(retry_count=3, retry_wait=1))
    outcomes: list[Any] = [_throttled(429, "5"), _throttled(503), "ok"]

    def _call(x: int) -> str:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return f"{outcome}-{x}"

    assert gate.execute(_call, 7) == "ok-7"
    assert sleeps == [5.0, 1]


def test_execute__gives_up_after_retry_count() -> None:
    gate, sleeps = _gate(RetryPolicy(retry_count=1, retry_wait=0))

    def _call() -> None:
        raise _throttled(429)

    with pytest.raises(requests.HTTPError):
        gate.execute(_call)
    assert sleeps == [0]


def test_execute__other_errors_propagate_immediately() -> None:
    gate, sleeps = _gate(RetryPolicy(retry_count=3))

    def _call() -> None:
        raise _throttled(404)

    with pytest.raises(requests.HTTPError):
        gate.execute(_call)
    assert sleeps == []


def test_execute__gates_every_attempt() -> None:
    session = FakeSession([0, 0])
    gate, _ = _gate(RetryPolicy(minimal_health_score=1, retry_count=2, retry_wait=0), session)
    outcomes: list[Any] = [_throttled(503), "done"]

    def _call() -> str:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert gate.execute(_call) == "done"
    assert len(session.calls) == 2
