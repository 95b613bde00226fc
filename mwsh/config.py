"""Centralised settings for mwsh.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import httpx
from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Networking
    # ------------------------------------------------------------------
    concurrency: int = field(
        default_factory=lambda: int(os.environ.get("MWSH_CONCURRENCY", "16"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("MWSH_REQUEST_TIMEOUT", "10.0"))
    )
    follow_redirects: bool = field(
        default_factory=lambda: _env_bool("MWSH_FOLLOW_REDIRECTS", "true")
    )

    # ------------------------------------------------------------------
    # Probe retry policy
    # ------------------------------------------------------------------
    probe_attempts: int = field(
        default_factory=lambda: int(os.environ.get("MWSH_PROBE_ATTEMPTS", "3"))
    )
    probe_base_delay: float = field(
        default_factory=lambda: float(os.environ.get("MWSH_PROBE_BASE_DELAY", "0.1"))
    )

    # ------------------------------------------------------------------
    # Input / logging
    # ------------------------------------------------------------------
    read_chunk_size: int = field(
        default_factory=lambda: int(os.environ.get("MWSH_READ_CHUNK_SIZE", "65536"))
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("MWSH_LOG_LEVEL", "WARNING")
    )


def build_http_client(
    timeout: float | None = None,
    concurrency: int | None = None,
) -> httpx.Client:
    """Return the ``httpx.Client`` shared by every probe of a run.

    The connection pool is sized to the concurrency quota so that admitted
    probes never queue on the pool itself.
    """
    timeout = settings.request_timeout if timeout is None else timeout
    concurrency = settings.concurrency if concurrency is None else concurrency
    return httpx.Client(
        timeout=timeout,
        follow_redirects=settings.follow_redirects,
        limits=httpx.Limits(
            max_connections=concurrency,
            max_keepalive_connections=concurrency,
        ),
    )


# Module-level singleton, import this everywhere:
#   from mwsh.config import settings
settings = Settings()
