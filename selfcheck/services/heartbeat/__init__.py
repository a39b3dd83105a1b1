"""
Heartbeat Service

Responsibilities:
- Register the process with the service registry
- Probe liveness and pass/fail the TTL check every interval
- Deregister exactly once on probe failure or shutdown signal
"""

from .loop import HeartbeatLoop
from .probe import (
    LivenessProbe,
    ProcessAliveProbe,
    DiskSpaceProbe,
    MemoryProbe,
    CallableProbe,
    CompositeProbe,
    build_probe,
)
from .service import SidecarService
from .shutdown import ShutdownController

__all__ = [
    "HeartbeatLoop",
    "LivenessProbe",
    "ProcessAliveProbe",
    "DiskSpaceProbe",
    "MemoryProbe",
    "CallableProbe",
    "CompositeProbe",
    "build_probe",
    "SidecarService",
    "ShutdownController",
]
