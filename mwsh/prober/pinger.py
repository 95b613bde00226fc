"""HTTP liveness prober.

:class:`Pinger` decides whether a URL is alive by trying a sequence of
strategies: a body-less ``HEAD`` first, then a ``GET`` when the server turns
``HEAD`` away with 405 or a retryable failure persists.  Each strategy retries
its own request with exponential backoff while the failure is retryable.
"""

from __future__ import annotations

import logging
import random
import threading
import time

import httpx

from mwsh.bookmarks.models import LivenessStatus
from mwsh.config import settings
from mwsh.prober.errors import (
    ProbeError,
    StatusNotAlive,
    TransportFailure,
    alive,
    classify,
    is_retryable,
    terminal,
)
from mwsh.prober.user_agents import random_user_agent

log = logging.getLogger(__name__)

STRATEGIES = ("HEAD", "GET")

ProbeResult = tuple[LivenessStatus, "ProbeError | None"]


class Pinger:
    """Check whether a URL is reachable.

    Safe for concurrent use: the only shared state is the ``httpx.Client``,
    which is itself thread-safe.

    Args:
        client: The HTTP client every request goes through.
        attempts: Attempt ceiling per strategy.  Defaults to
            ``settings.probe_attempts``.
        base_delay: Delay in seconds before the first retry; it doubles on
            each further retry.  Defaults to ``settings.probe_base_delay``.
        rng: Source of randomness for User-Agent selection.
    """

    def __init__(
        self,
        client: httpx.Client,
        attempts: int | None = None,
        base_delay: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.client = client
        self.attempts = max(1, settings.probe_attempts if attempts is None else attempts)
        self.base_delay = settings.probe_base_delay if base_delay is None else base_delay
        self._rng = rng

    def probe(self, url: str, cancelled: threading.Event | None = None) -> ProbeResult:
        """Probe *url* and return its liveness and the error that explains it.

        ``ALIVE`` comes with no error.  ``DEAD`` and ``UNKNOWN`` carry the last
        condition observed so callers can report why.  Once *cancelled* is set
        no further retry or strategy is started.
        """
        status: LivenessStatus = LivenessStatus.UNKNOWN
        err: ProbeError | None = None
        for method in STRATEGIES:
            status, err = self._probe_with(url, method, cancelled)
            if terminal(status, err):
                return status, err
            if cancelled is not None and cancelled.is_set():
                break
            log.debug("%s %s inconclusive (%s); trying next strategy", method, url, err)
        return status, err

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _probe_with(
        self,
        url: str,
        method: str,
        cancelled: threading.Event | None,
    ) -> ProbeResult:
        err: ProbeError | None = None
        for attempt in range(self.attempts):
            err = self._attempt(url, method)
            if err is None:
                return LivenessStatus.ALIVE, None
            if not is_retryable(err) or attempt == self.attempts - 1:
                break
            delay = self.base_delay * (2 ** attempt)
            log.debug(
                "%s %s failed (attempt %d/%d): %s; retrying in %.2fs",
                method, url, attempt + 1, self.attempts, err, delay,
            )
            if cancelled is None:
                time.sleep(delay)
            elif cancelled.wait(delay):
                break

        if isinstance(err, StatusNotAlive):
            return classify(err.code), err
        return LivenessStatus.UNKNOWN, err

    def _attempt(self, url: str, method: str) -> ProbeError | None:
        """Issue one request; ``None`` means the URL answered 2xx."""
        headers = {"User-Agent": random_user_agent(self._rng)}
        try:
            with self.client.stream(method, url, headers=headers) as response:
                if alive(response.status_code):
                    # bookmarks rarely share a host, so skip reading the body
                    return None
                _drain(response)
                return StatusNotAlive(response.status_code)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return TransportFailure.from_exception(exc)


def _drain(response: httpx.Response) -> None:
    """Discard the body chunk by chunk so the connection can be reused."""
    if response.is_stream_consumed:
        return
    try:
        for _ in response.iter_raw():
            pass
    except httpx.HTTPError as exc:
        log.warning("failed to drain response body of %s: %r", response.url, exc)
