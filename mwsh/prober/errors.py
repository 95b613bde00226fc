"""Probe outcomes and the retry classifier.

A single HTTP attempt ends in one of two failure shapes, both plain values
rather than raised exceptions:

* :class:`TransportFailure` — the request never produced a response.
* :class:`StatusNotAlive` — the server answered with a non-2xx code.

:func:`is_retryable` decides whether another attempt is worth making and
:func:`classify` maps a status code to its terminal :class:`LivenessStatus`.
"""

from __future__ import annotations

from enum import Enum

import httpx

from mwsh.bookmarks.models import LivenessStatus

# Codes for which we consider the URL hard dead.
DEAD_CODES = frozenset(
    {
        409,  # Conflict; belongs to PUT rather than HEAD/GET
        410,  # Gone; the server knows the resource is unavailable
        413,  # Content Too Large; HEAD/GET carry no body
        414,  # URI Too Long; a browser user would never have hit this
        422,  # Unprocessable Content; HEAD/GET carry no body
        424,  # Failed Dependency; HEAD/GET have none
        501,  # Not Implemented
    }
)

RETRY_CODES = frozenset(
    {
        421,  # Misdirected Request; may succeed on a fresh connection
        429,  # Too Many Requests
        500,
        502,
        503,
        504,
        507,
        599,  # network connect timeout reported by some proxies
    }
)

METHOD_NOT_ALLOWED = 405


class TransportKind(Enum):
    TIMEOUT = "timeout"
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class ProbeError(Exception):
    """Base class for the reasons a probe attempt did not find a live URL."""


class TransportFailure(ProbeError):
    """The request failed before any response was received."""

    def __init__(self, kind: TransportKind, cause: Exception) -> None:
        super().__init__(f"{kind.value} transport failure: {cause}")
        self.kind = kind
        self.cause = cause

    @classmethod
    def from_exception(cls, exc: Exception) -> "TransportFailure":
        """Map an httpx exception onto a :class:`TransportKind`."""
        if isinstance(exc, httpx.TimeoutException):
            kind = TransportKind.TIMEOUT
        elif isinstance(exc, (httpx.NetworkError, httpx.RemoteProtocolError)):
            kind = TransportKind.TEMPORARY
        else:
            kind = TransportKind.PERMANENT
        return cls(kind, exc)


class StatusNotAlive(ProbeError):
    """The server answered with a status code outside ``[200, 300)``."""

    def __init__(self, code: int) -> None:
        self.code = code
        phrase = httpx.codes.get_reason_phrase(code)
        super().__init__(f"{code} {phrase}" if phrase else f"HTTP {code}")

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StatusNotAlive) and other.code == self.code

    def __hash__(self) -> int:
        return hash((StatusNotAlive, self.code))


def alive(code: int) -> bool:
    return 200 <= code < 300


def classify(code: int) -> LivenessStatus:
    """Return the liveness a final status *code* implies."""
    if code in DEAD_CODES:
        return LivenessStatus.DEAD
    if alive(code):
        return LivenessStatus.ALIVE
    # unknown = all - alive - dead
    return LivenessStatus.UNKNOWN


def is_retryable(err: ProbeError) -> bool:
    """Return ``True`` if another attempt of the same request may succeed.

    Raises:
        TypeError: If *err* is neither a transport nor a status failure.
            That can only come from a bug in the prober itself.
    """
    if isinstance(err, TransportFailure):
        return err.kind in (TransportKind.TIMEOUT, TransportKind.TEMPORARY)
    if isinstance(err, StatusNotAlive):
        return err.code in RETRY_CODES
    raise TypeError(f"probe: got error of unknown type {type(err).__name__}")


def escalates(err: ProbeError | None) -> bool:
    """Return ``True`` if *err* calls for trying the next probe strategy."""
    return isinstance(err, StatusNotAlive) and err.code == METHOD_NOT_ALLOWED


def terminal(status: LivenessStatus, err: ProbeError | None) -> bool:
    """Return ``True`` if a strategy result needs no further strategies."""
    if status in (LivenessStatus.ALIVE, LivenessStatus.DEAD):
        return True
    if err is None:
        return True
    if escalates(err):
        return False
    return not is_retryable(err)
