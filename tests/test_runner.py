"""Tests for the run controller (``wash_till_done``) and report formatting."""

from __future__ import annotations

import io
import os
import signal
import threading

import httpx
import pytest
import respx

from mwsh.bookmarks.models import LivenessStatus, WashedRecord
from mwsh.bookmarks.walker import WalkError
from mwsh.pipeline import runner as runner_mod
from mwsh.pipeline.runner import RunStats, format_result, wash_till_done
from mwsh.prober.errors import StatusNotAlive

_DOC = """\
<!DOCTYPE NETSCAPE-Bookmark-file-1>
<TITLE>Bookmarks</TITLE>
<DL><p>
    <DT><A HREF="https://alive.io/" ADD_DATE="1515361177">Alive</A>
    <DT><A HREF="https://dead.io/" ADD_DATE="1515361177">Dead</A>
    <DT><A HREF="https://locked.io/" ADD_DATE="1515361177">Locked</A>
</DL><p>
"""


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    monkeypatch.setattr("mwsh.config.settings.probe_base_delay", 0.0)


@pytest.fixture
def client():
    with httpx.Client() as c:
        yield c


def _stream(text: str) -> io.BytesIO:
    return io.BytesIO(text.encode("utf-8"))


# ---------------------------------------------------------------------------
# format_result
# ---------------------------------------------------------------------------

class TestFormatResult:
    def test_alive_has_two_columns(self) -> None:
        washed = WashedRecord(
            url="https://a.io/", title="A", added_at=None, status=LivenessStatus.ALIVE
        )
        assert format_result(washed) == "alive\thttps://a.io/"

    def test_error_adds_third_column(self) -> None:
        washed = WashedRecord(
            url="https://d.io/",
            title="D",
            added_at=None,
            status=LivenessStatus.DEAD,
            error=StatusNotAlive(410),
        )
        assert format_result(washed) == "dead\thttps://d.io/\t410 Gone"

    def test_walk_error_line(self) -> None:
        assert format_result(None, WalkError("invalid add_date 'x'")) == (
            "unknown\t\tinvalid add_date 'x'"
        )

    def test_newlines_in_error_are_flattened(self) -> None:
        assert format_result(None, WalkError("a\nb")) == "unknown\t\ta b"


class TestRunStats:
    def test_count_and_summary(self) -> None:
        stats = RunStats()
        stats.count(LivenessStatus.ALIVE)
        stats.count(LivenessStatus.ALIVE)
        stats.count(LivenessStatus.DEAD)
        stats.errors += 1

        assert stats.total == 3
        assert stats.summary() == "alive=2 dead=1 unknown=0 errors=1"


# ---------------------------------------------------------------------------
# wash_till_done
# ---------------------------------------------------------------------------

class TestWashTillDone:
    def test_writes_one_line_per_bookmark(self, client) -> None:
        out = io.StringIO()
        with respx.mock:
            respx.head("https://alive.io/").mock(return_value=httpx.Response(200))
            respx.head("https://dead.io/").mock(return_value=httpx.Response(410))
            respx.head("https://locked.io/").mock(return_value=httpx.Response(401))
            stats = wash_till_done(_stream(_DOC), out, client, 2)

        lines = sorted(out.getvalue().splitlines())
        assert lines == [
            "alive\thttps://alive.io/",
            "dead\thttps://dead.io/\t410 Gone",
            "unknown\thttps://locked.io/\t401 Unauthorized",
        ]
        assert (stats.alive, stats.dead, stats.unknown, stats.errors) == (1, 1, 1, 0)
        assert not stats.interrupted

    def test_walk_error_adds_one_trailing_line(self, client) -> None:
        doc = _DOC.replace(
            '"https://dead.io/" ADD_DATE="1515361177"', '"https://dead.io/" ADD_DATE="junkie"'
        )
        out = io.StringIO()
        with respx.mock:
            respx.head("https://alive.io/").mock(return_value=httpx.Response(200))
            stats = wash_till_done(_stream(doc), out, client, 2)

        lines = out.getvalue().splitlines()
        assert lines[0] == "alive\thttps://alive.io/"
        assert lines[1].startswith("unknown\t\tinvalid add_date 'junkie'")
        assert len(lines) == 2
        assert stats.errors == 1

    def test_empty_document_writes_nothing(self, client) -> None:
        out = io.StringIO()
        stats = wash_till_done(_stream("<TITLE>Bookmarks</TITLE>"), out, client, 4)

        assert out.getvalue() == ""
        assert stats.total == 0

    def test_rejects_non_positive_quota(self, client) -> None:
        with pytest.raises(ValueError):
            wash_till_done(_stream(_DOC), io.StringIO(), client, 0)

    def test_restores_signal_handlers(self, client) -> None:
        before = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}
        with respx.mock:
            respx.head(url__regex=r"https://.*").mock(return_value=httpx.Response(200))
            wash_till_done(_stream(_DOC), io.StringIO(), client, 2)

        after = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}
        assert after == before

    @pytest.mark.skipif(
        threading.current_thread() is not threading.main_thread(),
        reason="signals are only delivered to the main thread",
    )
    def test_interrupt_stops_the_run(self, client, monkeypatch) -> None:
        calls = 0

        class _InterruptingPinger:
            def __init__(self, client) -> None:
                pass

            def probe(self, url, cancelled=None):
                nonlocal calls
                calls += 1
                if calls == 1:
                    os.kill(os.getpid(), signal.SIGINT)
                return LivenessStatus.ALIVE, None

        monkeypatch.setattr(runner_mod, "Pinger", _InterruptingPinger)
        many = "".join(
            f'<DT><A HREF="https://example.com/{i}">{i}</A>\n' for i in range(5000)
        )

        stats = wash_till_done(_stream(many), io.StringIO(), client, 2)

        assert stats.interrupted
        assert stats.total < 5000
