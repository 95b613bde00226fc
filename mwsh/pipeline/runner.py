"""High-level runner for a wash.

``wash_till_done`` is the single public entry point in this module.  It wires
together the walker, the pinger and the washer, writes one line per result as
soon as it arrives, and turns SIGINT/SIGTERM into a clean stop of both the
washer and the walker.
"""

from __future__ import annotations

import logging
import signal
import threading
from dataclasses import dataclass
from typing import BinaryIO, TextIO

import httpx

from mwsh.bookmarks.models import LivenessStatus, WashedRecord
from mwsh.bookmarks.walker import NetscapeWalker, WalkError
from mwsh.pipeline.washer import Washer
from mwsh.prober.pinger import Pinger

log = logging.getLogger(__name__)

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass
class RunStats:
    """Tally of what a run wrote out."""

    alive: int = 0
    dead: int = 0
    unknown: int = 0
    errors: int = 0
    interrupted: bool = False

    @property
    def total(self) -> int:
        return self.alive + self.dead + self.unknown

    def count(self, status: LivenessStatus) -> None:
        setattr(self, status.value, getattr(self, status.value) + 1)

    def summary(self) -> str:
        return (
            f"alive={self.alive} dead={self.dead} "
            f"unknown={self.unknown} errors={self.errors}"
        )


def format_result(washed: WashedRecord | None, error: Exception | None = None) -> str:
    """Render one report line: ``<status>\\t<url>[\\t<error>]``.

    A walk error has no record behind it and renders with status ``unknown``
    and an empty URL column.
    """
    if washed is None:
        parts = [str(LivenessStatus.UNKNOWN), ""]
    else:
        parts = [str(washed.status), washed.url]
        error = washed.error if error is None else error
    if error is not None:
        parts.append(str(error).replace("\n", " "))
    return "\t".join(parts)


def wash_till_done(
    stream: BinaryIO,
    out: TextIO,
    client: httpx.Client,
    cquota: int,
    *,
    install_signal_handlers: bool = True,
) -> RunStats:
    """Wash every bookmark in *stream*, writing results to *out* as they land.

    Returns when the washer is exhausted, after a walk error has been written,
    or as soon as an interrupt arrives.  Lines already written stay written.

    Raises:
        ValueError: If *cquota* is not positive.
    """
    walker = NetscapeWalker(stream)
    pinger = Pinger(client)
    washer = Washer(walker, pinger, cquota)
    stats = RunStats()

    def abort(signum: int | None = None, _frame=None) -> None:
        if signum is not None:
            log.debug("received signal %s; stopping", signal.Signals(signum).name)
        stats.interrupted = True
        washer.stop()
        walker.stop()

    previous = _install(abort) if install_signal_handlers else {}
    try:
        for washed in washer:
            stats.count(washed.status)
            _emit(out, format_result(washed))
        if stats.interrupted:
            log.debug("wash aborted")
        else:
            log.debug("wash done")
    except WalkError as exc:
        stats.errors += 1
        _emit(out, format_result(None, exc))
    except KeyboardInterrupt:
        abort()
    finally:
        washer.stop()
        walker.stop()
        for signum, handler in previous.items():
            signal.signal(signum, handler)
    return stats


def _emit(out: TextIO, line: str) -> None:
    out.write(line + "\n")
    out.flush()


def _install(handler) -> dict:
    """Route stop signals to *handler*; signals only reach the main thread."""
    if threading.current_thread() is not threading.main_thread():
        return {}
    previous = {}
    for signum in _STOP_SIGNALS:
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, handler)
    return previous
