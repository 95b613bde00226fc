"""Streaming walker over a Netscape bookmark export.

The export is tag soup: ``<A>`` elements nested in ``<DL>``/``<DT>``/``<H3>``
folders.  Only the anchors matter, so the walker feeds the byte stream through
:class:`html.parser.HTMLParser` chunk by chunk and hands each completed anchor
to the caller one at a time.  The whole document is never held in memory.

Scanning runs on a background thread and each record crosses over through a
single-slot queue, so a slow consumer holds the scan back rather than letting
records pile up.
"""

from __future__ import annotations

import codecs
import html.parser
import logging
import queue
import re
import threading
from datetime import datetime, timezone
from typing import BinaryIO, Iterator

from mwsh.bookmarks.models import BookmarkRecord
from mwsh.config import settings

log = logging.getLogger(__name__)

ANCHOR_TAG = "a"

# Upper bound on how long a blocked handoff waits before re-checking stop().
_POLL_INTERVAL = 0.05

_DONE = object()

_ADD_DATE_RE = re.compile(r"[+-]?[0-9]+")


class WalkError(Exception):
    """A fatal error while walking the bookmark document."""


def parse_add_date(value: str) -> datetime | None:
    """Convert an ``ADD_DATE`` attribute (epoch seconds) to an aware datetime.

    A number the platform cannot represent as a datetime, such as a
    millisecond timestamp, yields ``None`` so the bookmark is still kept.

    Raises:
        WalkError: If *value* is not a base-10 integer.
    """
    if not _ADD_DATE_RE.fullmatch(value):
        raise WalkError(f"invalid add_date {value!r}: not an integer")
    try:
        seconds = int(value, 10)
    except ValueError as exc:
        raise WalkError(f"invalid add_date {value!r}: {exc}") from exc
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        log.warning("add_date %s out of range, leaving it unset: %s", value, exc)
        return None


class _AnchorParser(html.parser.HTMLParser):
    """Token-level state machine that collects finished anchors.

    Outside an anchor, text is ignored.  A start ``<a>`` tag with attributes
    opens a pending record; text seen until the matching ``</a>`` becomes
    its title.  Completed records accumulate in :attr:`records` until the
    walker drains them after each fed chunk.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.records: list[BookmarkRecord] = []
        self._href: str | None = None
        self._added_at: datetime | None = None
        self._title: list[str] = []
        self._in_anchor = False

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag != ANCHOR_TAG or not attrs:
            return
        href = ""
        added_at = None
        for key, value in attrs:
            if key == "href":
                href = (value or "").strip()
            elif key == "add_date":
                added_at = parse_add_date(value or "")
        self._in_anchor = True
        self._href = href
        self._added_at = added_at
        self._title = []

    def handle_endtag(self, tag: str) -> None:
        if tag != ANCHOR_TAG or not self._in_anchor:
            return
        if self._href:
            self.records.append(
                BookmarkRecord(
                    url=self._href,
                    title="".join(self._title).strip(),
                    added_at=self._added_at,
                )
            )
        else:
            log.debug("skipping anchor without href (title=%r)", "".join(self._title))
        self._in_anchor = False
        self._href = None
        self._added_at = None
        self._title = []

    def handle_data(self, data: str) -> None:
        if self._in_anchor:
            self._title.append(data)


class NetscapeWalker:
    """Iterate over the bookmarks of a Netscape Bookmark File.

    ``next(walker)`` blocks until the next :class:`BookmarkRecord` is ready.
    The end of the document raises ``StopIteration``, as does every later
    call.  A fatal parse error is raised once as :class:`WalkError`, after
    which the walker is exhausted.

    :meth:`stop` abandons the walk.  A ``next()`` after ``stop()`` eventually
    raises ``StopIteration`` and never hangs.
    """

    def __init__(self, stream: BinaryIO, chunk_size: int | None = None) -> None:
        # keep the constructor cheap: scanning starts on the first next()
        self._stream = stream
        self._chunk_size = chunk_size or settings.read_chunk_size
        self._handoff: queue.Queue = queue.Queue(maxsize=1)
        self._done = threading.Event()
        self._thread: threading.Thread | None = None
        self._exhausted = False

    # ------------------------------------------------------------------
    # Iterator protocol
    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[BookmarkRecord]:
        return self

    def __next__(self) -> BookmarkRecord:
        # not thread-safe; exactly one consumer pulls from a walker
        if self._exhausted:
            raise StopIteration
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._walk, name="mwsh-walker", daemon=True
            )
            self._thread.start()
        while True:
            if self._done.is_set():
                self._exhausted = True
                raise StopIteration
            try:
                item = self._handoff.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            if item is _DONE:
                self._exhausted = True
                raise StopIteration
            if isinstance(item, WalkError):
                self._exhausted = True
                raise item
            return item

    def next(self) -> BookmarkRecord:
        return next(self)

    def stop(self) -> None:
        """Ask the background scan to abandon at its next handoff."""
        self._done.set()

    def __enter__(self) -> "NetscapeWalker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Background scan
    # ------------------------------------------------------------------
    def _offer(self, item: object) -> bool:
        """Hand *item* to the consumer; return ``False`` if stopped first."""
        while not self._done.is_set():
            try:
                self._handoff.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _walk(self) -> None:
        log.debug("walk started")
        parser = _AnchorParser()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
        try:
            while not self._done.is_set():
                chunk = self._stream.read(self._chunk_size)
                if not chunk:
                    parser.feed(decoder.decode(b"", final=True))
                    parser.close()
                    if self._drain(parser):
                        self._offer(_DONE)
                    break
                if isinstance(chunk, bytes):
                    chunk = self._decode(decoder, parser, chunk)
                parser.feed(chunk)
                if not self._drain(parser):
                    break
        except WalkError as exc:
            log.debug("walk failed: %s", exc)
            if self._drain(parser):
                self._offer(exc)
        except OSError as exc:
            log.debug("walk failed: %r", exc)
            self._fail(parser, f"cannot read bookmark document: {exc}", exc)
        except (UnicodeDecodeError, AssertionError) as exc:
            # AssertionError is how older HTMLParser versions report broken markup
            log.debug("walk failed: %r", exc)
            self._fail(parser, f"malformed bookmark document: {exc}", exc)
        log.debug("walk finished (stopped=%s)", self._done.is_set())

    def _drain(self, parser: _AnchorParser) -> bool:
        """Offer every finished record; ``False`` means the walk was stopped."""
        records, parser.records = parser.records, []
        for record in records:
            if not self._offer(record):
                return False
        return True

    def _fail(self, parser: _AnchorParser, message: str, cause: Exception) -> None:
        if self._drain(parser):
            err = WalkError(message)
            err.__cause__ = cause
            self._offer(err)

    @staticmethod
    def _decode(decoder: codecs.IncrementalDecoder, parser: _AnchorParser, chunk: bytes) -> str:
        try:
            return decoder.decode(chunk)
        except UnicodeDecodeError as exc:
            # anchors before the bad byte still count
            parser.feed(exc.object[: exc.start].decode("utf-8", errors="ignore"))
            raise
