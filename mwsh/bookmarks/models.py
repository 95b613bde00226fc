"""Data models for the wash pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class LivenessStatus(Enum):
    """Outcome of probing one URL.

    ``UNKNOWN`` is a terminal classification in its own right (auth walls,
    odd status codes, permanent transport failures), not a pending state.
    """

    UNKNOWN = "unknown"
    ALIVE = "alive"
    DEAD = "dead"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BookmarkRecord:
    """One ``<A>`` entry of a bookmark export."""

    url: str
    title: str = ""
    added_at: datetime | None = None


@dataclass(frozen=True)
class WashedRecord:
    """A :class:`BookmarkRecord` with its liveness attached."""

    url: str
    title: str
    added_at: datetime | None
    status: LivenessStatus
    error: Exception | None = None

    @classmethod
    def from_bookmark(
        cls,
        bookmark: BookmarkRecord,
        status: LivenessStatus,
        error: Exception | None = None,
    ) -> "WashedRecord":
        return cls(
            url=bookmark.url,
            title=bookmark.title,
            added_at=bookmark.added_at,
            status=status,
            error=error,
        )

