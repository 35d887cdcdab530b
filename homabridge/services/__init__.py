"""Host services: proxy supervision, connectivity tests and request dispatch."""

from .dispatcher import HostDispatcher
from .probe import probe_latency
from .supervisor import ProcessSupervisor
from .tester import EphemeralInstance, EphemeralTestRunner

__all__ = [
    "EphemeralInstance",
    "EphemeralTestRunner",
    "HostDispatcher",
    "ProcessSupervisor",
    "probe_latency",
]
