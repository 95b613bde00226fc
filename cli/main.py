"""mwsh CLI — check if your browser bookmarks are still alive.

Usage:
    python cli/main.py [OPTIONS] [FILE]

Reads a Netscape bookmark export from FILE (or standard input) and prints one
line per bookmark to stdout:

    <alive|dead|unknown>\t<url>[\t<reason>]

Logging goes to stderr so the report can be piped.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from mwsh.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import Optional

import typer

from mwsh.config import build_http_client, settings
from mwsh.log import configure_logging
from mwsh.pipeline.runner import wash_till_done

app = typer.Typer(
    name="mwsh",
    help="Check if your browser bookmarks are still alive.",
    add_completion=False,
)


@app.command()
def wash(
    file: Optional[Path] = typer.Argument(
        None, help="Bookmark export (HTML). Reads standard input when omitted."
    ),
    concurrency: int = typer.Option(
        settings.concurrency, "-c", "--concurrency", help="Networking concurrency limit."
    ),
    timeout: float = typer.Option(
        settings.request_timeout, "-t", "--timeout", help="Per-request timeout in seconds."
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable verbose logging."),
    summary: bool = typer.Option(
        False, "--summary", help="Print an alive/dead/unknown tally to stderr when done."
    ),
) -> None:
    """Probe every bookmark in FILE and report whether it is alive, dead or unknown."""
    if concurrency <= 0:
        typer.echo("networking concurrency limit must be positive")
        raise typer.Exit(1)

    configure_logging(verbose=verbose, level=settings.log_level)

    if file is None:
        stream = typer.get_binary_stream("stdin")
    else:
        try:
            stream = file.open("rb")
        except OSError as exc:
            typer.echo(f"error opening input bookmark file {file}: {exc}")
            raise typer.Exit(1)

    try:
        with build_http_client(timeout=timeout, concurrency=concurrency) as client:
            stats = wash_till_done(stream, sys.stdout, client, concurrency)
    finally:
        if file is not None:
            stream.close()

    if summary:
        typer.echo(stats.summary(), err=True)
    if stats.errors:
        raise typer.Exit(1)


def main() -> None:
    app()


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    main()
