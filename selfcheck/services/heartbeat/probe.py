"""
Liveness Probes

A probe answers one question per tick: is this process fit to keep its
registration? The default ProcessAliveProbe is close to a tautology (a dead
process cannot run the check) and is the placeholder for richer checks such
as disk or memory headroom.
"""

import asyncio
import inspect
import os
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

import psutil

from selfcheck.common.config import ProbeKind, ProbeSettings
from selfcheck.common.logging_setup import get_service_logger

logger = get_service_logger("heartbeat.probe")


class LivenessProbe(ABC):
    """Pluggable health check polled by the heartbeat loop"""

    name: str = "probe"

    @abstractmethod
    async def is_healthy(self) -> bool:
        ...


class ProcessAliveProbe(LivenessProbe):
    """Healthy while the current process is running and not a zombie"""

    name = "process"

    def __init__(self, pid: int | None = None):
        self.pid = pid or os.getpid()

    async def is_healthy(self) -> bool:
        try:
            process = psutil.Process(self.pid)
            return process.is_running() and process.status() != psutil.STATUS_ZOMBIE
        except psutil.Error as e:
            logger.error(f"Process check failed: {e}", extra={"pid": self.pid})
            return False


class DiskSpaceProbe(LivenessProbe):
    """Unhealthy once disk usage at `path` exceeds max_usage_pct"""

    name = "disk"

    def __init__(self, path: str = "/", max_usage_pct: float = 95.0):
        self.path = path
        self.max_usage_pct = max_usage_pct

    async def is_healthy(self) -> bool:
        try:
            usage = await asyncio.to_thread(psutil.disk_usage, self.path)
        except OSError as e:
            logger.error(f"Disk check failed for {self.path}: {e}")
            return False

        if usage.percent > self.max_usage_pct:
            logger.warning(
                f"Disk usage {usage.percent:.1f}% exceeds {self.max_usage_pct:.1f}%",
                extra={"path": self.path, "usage_pct": usage.percent},
            )
            return False
        return True


class MemoryProbe(LivenessProbe):
    """Unhealthy once system memory usage exceeds max_usage_pct"""

    name = "memory"

    def __init__(self, max_usage_pct: float = 95.0):
        self.max_usage_pct = max_usage_pct

    async def is_healthy(self) -> bool:
        mem = psutil.virtual_memory()
        if mem.percent > self.max_usage_pct:
            logger.warning(
                f"Memory usage {mem.percent:.1f}% exceeds {self.max_usage_pct:.1f}%",
                extra={"usage_pct": mem.percent},
            )
            return False
        return True


class CallableProbe(LivenessProbe):
    """Wraps a plain sync or async callable returning bool"""

    def __init__(
        self,
        check: Callable[[], bool] | Callable[[], Awaitable[bool]],
        name: str = "callable",
    ):
        self._check = check
        self.name = name

    async def is_healthy(self) -> bool:
        result = self._check()
        if inspect.isawaitable(result):
            result = await result
        return bool(result)


class CompositeProbe(LivenessProbe):
    """Healthy only when every child probe is healthy"""

    name = "composite"

    def __init__(self, probes: list[LivenessProbe]):
        if not probes:
            raise ValueError("CompositeProbe needs at least one probe")
        self.probes = probes

    async def is_healthy(self) -> bool:
        for probe in self.probes:
            if not await probe.is_healthy():
                logger.info(f"Probe '{probe.name}' reported unhealthy")
                return False
        return True


def build_probe(settings: ProbeSettings) -> LivenessProbe:
    """Create the configured built-in probe."""
    if settings.kind is ProbeKind.DISK:
        return CompositeProbe([
            ProcessAliveProbe(),
            DiskSpaceProbe(settings.path, settings.max_usage_pct),
        ])
    if settings.kind is ProbeKind.MEMORY:
        return CompositeProbe([
            ProcessAliveProbe(),
            MemoryProbe(settings.max_usage_pct),
        ])
    return ProcessAliveProbe()
