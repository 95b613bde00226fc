"""Prober package — HTTP liveness checks with retry and strategy escalation."""

from mwsh.prober.errors import (
    ProbeError,
    StatusNotAlive,
    TransportFailure,
    TransportKind,
)
from mwsh.prober.pinger import Pinger

__all__ = ["Pinger", "ProbeError", "StatusNotAlive", "TransportFailure", "TransportKind"]
