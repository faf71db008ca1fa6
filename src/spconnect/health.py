"""Gate downstream requests on server health and throttling.

SharePoint reports its load in the ``X-SharePointHealthScore`` response
header, from 0 (idle) to 10 (overloaded). A connection whose
``minimal_health_score`` is not -1 should only send a request while the score
is at or below that value. :class:`HealthGate` applies this check, and
retries throttled calls, using the connection's :class:`RetryPolicy`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import ParamSpec, TypeVar

import requests

from . import tls
from .connection import Connection, RetryPolicy
from .exceptions import ServerBusy

logger = logging.getLogger(__name__)

HEALTH_SCORE_HEADER = "X-SharePointHealthScore"
RETRY_STATUS_CODES = {429, 503}

P = ParamSpec("P")
T = TypeVar("T")


def _retry_after(response: requests.Response | None) -> float | None:
    if response is None:
        return None
    value = response.headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class HealthGate:
    """Applies a connection's retry policy to outgoing calls."""

    def __init__(
        self,
        connection: Connection,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._connection = connection
        self._session = session or requests.Session()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._connection.retry_policy

    def health_score(self) -> int | None:
        """Probe the site and return its health score, or ``None`` if unreported."""
        response = self._session.get(
            self._connection.url,
            timeout=self.policy.timeout_seconds,
            verify=tls.verify_ssl(),
            allow_redirects=False,
        )
        value = response.headers.get(HEALTH_SCORE_HEADER)
        try:
            return int(value) if value is not None else None
        except ValueError:
            logger.debug("Ignoring unparsable health score %r", value)
            return None

    def wait_until_healthy(self) -> None:
        """Block until the server is healthy enough for a request.

        Raises:
            ServerBusy: If the score is still too high after ``retry_count``
                retries.
        """
        policy = self.policy
        if not policy.health_gating_enabled:
            return

        for attempt in range(policy.retry_count + 1):
            score = self.health_score()
            if score is None or score <= policy.minimal_health_score:
                return
            if attempt == policy.retry_count:
                raise ServerBusy(score, attempt + 1)
            logger.warning(
                "Server health score %d above %d. Retrying in %d seconds (attempt %d/%d)",
                score,
                policy.minimal_health_score,
                policy.retry_wait,
                attempt + 1,
                policy.retry_count,
            )
            self._sleep(policy.retry_wait)

    def execute(self, call: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Run ``call`` once the server is healthy, retrying when throttled.

        HTTP 429 and 503 responses are retried up to ``retry_count`` times,
        waiting for ``Retry-After`` when the server sends it and
        ``retry_wait`` seconds otherwise. Other errors propagate.
        """
        policy = self.policy
        for attempt in range(policy.retry_count + 1):
            self.wait_until_healthy()
            try:
                return call(*args, **kwargs)
            except requests.RequestException as exc:
                response = getattr(exc, "response", None)
                status = getattr(response, "status_code", None)
                if status not in RETRY_STATUS_CODES or attempt == policy.retry_count:
                    raise
                delay = _retry_after(response)
                if delay is None:
                    delay = policy.retry_wait
                logger.warning(
                    "Request throttled with %s. Retrying in %.1f seconds (attempt %d/%d)",
                    status,
                    delay,
                    attempt + 1,
                    policy.retry_count,
                )
                self._sleep(delay)
        raise RuntimeError("Unreachable")
