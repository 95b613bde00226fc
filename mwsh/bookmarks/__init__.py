"""Bookmarks package — export walking and record models."""

from mwsh.bookmarks.models import BookmarkRecord, LivenessStatus, WashedRecord
from mwsh.bookmarks.walker import NetscapeWalker, WalkError

__all__ = ["BookmarkRecord", "LivenessStatus", "WashedRecord", "NetscapeWalker", "WalkError"]
