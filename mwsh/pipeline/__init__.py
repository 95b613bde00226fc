"""Pipeline package — concurrent washing and the run controller."""

from mwsh.pipeline.runner import RunStats, format_result, wash_till_done
from mwsh.pipeline.washer import Washer

__all__ = ["Washer", "RunStats", "format_result", "wash_till_done"]
