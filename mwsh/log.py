"""Logging setup shared by the CLI and any embedding caller.

Washed results own standard output, so every log record goes to stderr.
"""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(verbose: bool = False, level: str | None = None) -> None:
    """Install a single stderr handler on the root logger.

    *verbose* wins over *level*; without either the root level is WARNING.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    if verbose:
        root.setLevel(logging.DEBUG)
    else:
        root.setLevel(getattr(logging, (level or "WARNING").upper(), logging.WARNING))

    # keep transport chatter out unless explicitly asked for
    noisy = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("httpx").setLevel(noisy)
    logging.getLogger("httpcore").setLevel(noisy)
