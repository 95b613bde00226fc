"""Fan bookmarks out to concurrent probes and fan the results back in.

A :class:`Washer` runs one puller thread that drains the walker and submits
one probe per bookmark to a ``ThreadPoolExecutor``.  A semaphore sized to the
concurrency quota gates admission, so at most ``cquota`` probes are in flight
and the puller stops reading ahead while they are.  Every finished probe
pushes its :class:`WashedRecord` into a single queue that ``next()`` consumes.

Results come back in completion order, not walk order.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, Protocol

from mwsh.bookmarks.models import BookmarkRecord, LivenessStatus, WashedRecord
from mwsh.prober.errors import ProbeError

log = logging.getLogger(__name__)

# Upper bound on how long a blocked wait goes before re-checking stop().
_POLL_INTERVAL = 0.05

_DONE = object()


class Walker(Protocol):
    def __next__(self) -> BookmarkRecord: ...

    def stop(self) -> None: ...


class Prober(Protocol):
    def probe(
        self, url: str, cancelled: threading.Event | None = None
    ) -> tuple[LivenessStatus, ProbeError | None]: ...


class Washer:
    """Iterate over washed bookmarks.

    ``next(washer)`` blocks until some probe finishes.  When the walker runs
    dry the washer first waits for every admitted probe to deliver, then
    raises ``StopIteration`` on this and every later call.  A walker error is
    raised once, after the in-flight results, and the washer is exhausted
    afterwards.

    :meth:`stop` makes every internal loop give up at its next wait and stops
    the walker, so a puller blocked inside ``next(walker)`` is released too.  A
    ``next()`` blocked at that moment, and any later one, raises
    ``StopIteration`` within a fraction of a second.

    Raises:
        ValueError: If *cquota* is not positive.
    """

    def __init__(self, walker: Walker, pinger: Prober, cquota: int) -> None:
        if cquota <= 0:
            raise ValueError(f"concurrency quota must be positive, got {cquota}")
        self._walker = walker
        self._pinger = pinger
        self._cquota = cquota
        self._washed: queue.Queue = queue.Queue(maxsize=cquota)
        self._admission = threading.BoundedSemaphore(cquota)
        self._done = threading.Event()
        self._thread: threading.Thread | None = None
        self._exhausted = False

    # ------------------------------------------------------------------
    # Iterator protocol
    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[WashedRecord]:
        return self

    def __next__(self) -> WashedRecord:
        if self._exhausted:
            raise StopIteration
        if self._thread is None:
            log.debug("start washing (quota=%d)", self._cquota)
            self._thread = threading.Thread(
                target=self._wash, name="mwsh-washer", daemon=True
            )
            self._thread.start()
        while True:
            if self._done.is_set():
                self._exhausted = True
                raise StopIteration
            try:
                item = self._washed.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            if item is _DONE:
                self._exhausted = True
                raise StopIteration
            if isinstance(item, Exception):
                self._exhausted = True
                self.stop()
                raise item
            return item

    def next(self) -> WashedRecord:
        return next(self)

    def stop(self) -> None:
        """Signal the puller, every probe and the walker to abandon."""
        if not self._done.is_set():
            log.debug("washer stopping")
        self._done.set()
        # the puller may be blocked inside next(walker)
        self._walker.stop()

    @property
    def stopped(self) -> bool:
        return self._done.is_set()

    def __enter__(self) -> "Washer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Background workers
    # ------------------------------------------------------------------
    def _wash(self) -> None:
        fatal: Exception | None = None
        with ThreadPoolExecutor(
            max_workers=self._cquota, thread_name_prefix="mwsh-probe"
        ) as pool:
            while not self._done.is_set():
                try:
                    bookmark = next(self._walker)
                except StopIteration:
                    log.debug("walker exhausted; draining in-flight probes")
                    break
                except Exception as exc:
                    log.debug("walker failed: %s; draining in-flight probes", exc)
                    fatal = exc
                    break
                if not self._admit():
                    break
                pool.submit(self._probe, bookmark)
        # leaving the executor block waits for every admitted probe
        if fatal is not None and not self._deliver(fatal):
            return
        self._deliver(_DONE)
        log.debug("washing finished (stopped=%s)", self._done.is_set())

    def _probe(self, bookmark: BookmarkRecord) -> None:
        try:
            status, err = self._pinger.probe(bookmark.url, self._done)
            self._deliver(WashedRecord.from_bookmark(bookmark, status, err))
        except Exception as exc:
            # a probe must never raise; surface the defect to the consumer
            log.exception("probe of %s crashed", bookmark.url)
            self._deliver(exc)
        finally:
            self._admission.release()

    def _admit(self) -> bool:
        """Take a concurrency slot; ``False`` if stopped while waiting."""
        while not self._done.is_set():
            if self._admission.acquire(timeout=_POLL_INTERVAL):
                return True
        return False

    def _deliver(self, item: object) -> bool:
        """Push *item* to the consumer; ``False`` if stopped while waiting."""
        while not self._done.is_set():
            try:
                self._washed.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False
