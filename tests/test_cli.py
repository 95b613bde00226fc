"""Tests for the mwsh command-line entry point."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from cli.main import app
from mwsh.bookmarks.models import LivenessStatus
from mwsh.pipeline.runner import RunStats

runner = CliRunner()

_DOC = '<DT><A HREF="https://a.io/" ADD_DATE="1515361177">A</A>\n'


@pytest.fixture
def fake_wash(monkeypatch):
    """Replace the run controller; record what the CLI hands it."""
    seen: dict = {}

    def _fake(stream, out, client, cquota, **kwargs):
        seen["input"] = stream.read()
        seen["cquota"] = cquota
        seen["timeout"] = client.timeout.read
        out.write("alive\thttps://a.io/\n")
        stats = RunStats()
        stats.count(LivenessStatus.ALIVE)
        return stats

    monkeypatch.setattr("cli.main.wash_till_done", _fake)
    monkeypatch.setattr("cli.main.configure_logging", lambda **kwargs: None)
    return seen


def test_reads_file_argument(tmp_path, fake_wash):
    path = tmp_path / "bookmarks.html"
    path.write_text(_DOC, encoding="utf-8")

    result = runner.invoke(app, [str(path), "-c", "4"])

    assert result.exit_code == 0
    assert "alive\thttps://a.io/" in result.stdout
    assert fake_wash["input"] == _DOC.encode("utf-8")
    assert fake_wash["cquota"] == 4


def test_reads_stdin_when_no_file(fake_wash):
    result = runner.invoke(app, [], input=_DOC)

    assert result.exit_code == 0
    assert fake_wash["input"] == _DOC.encode("utf-8")


def test_timeout_option(fake_wash):
    result = runner.invoke(app, ["--timeout", "2.5"], input=_DOC)

    assert result.exit_code == 0
    assert fake_wash["timeout"] == 2.5


def test_summary_flag(fake_wash):
    result = runner.invoke(app, ["--summary"], input=_DOC)

    assert result.exit_code == 0
    assert "alive=1 dead=0 unknown=0 errors=0" in result.output


@pytest.mark.parametrize("value", ["0", "-3"])
def test_rejects_non_positive_concurrency(fake_wash, value):
    result = runner.invoke(app, ["-c", value], input=_DOC)

    assert result.exit_code == 1
    assert "networking concurrency limit must be positive" in result.output
    assert "input" not in fake_wash


def test_missing_file(tmp_path, fake_wash):
    missing = tmp_path / "nope.html"

    result = runner.invoke(app, [str(missing)])

    assert result.exit_code == 1
    assert f"error opening input bookmark file {missing}" in result.output


def test_walk_error_sets_exit_code(monkeypatch):
    def _fake(stream, out, client, cquota, **kwargs):
        out.write("unknown\t\tinvalid add_date 'x': not an integer\n")
        return RunStats(errors=1)

    monkeypatch.setattr("cli.main.wash_till_done", _fake)
    monkeypatch.setattr("cli.main.configure_logging", lambda **kwargs: None)

    result = runner.invoke(app, [], input=_DOC)

    assert result.exit_code == 1
    assert "invalid add_date" in result.stdout
