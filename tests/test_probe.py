import asyncio
from collections import namedtuple

import pytest

from selfcheck.common.config import ProbeKind, ProbeSettings
from selfcheck.services.heartbeat import probe as probe_module
from selfcheck.services.heartbeat.probe import (
    CallableProbe,
    CompositeProbe,
    DiskSpaceProbe,
    MemoryProbe,
    ProcessAliveProbe,
    build_probe,
)

Usage = namedtuple("Usage", "percent")


@pytest.mark.asyncio
async def test_process_probe_healthy_for_current_process():
    assert await ProcessAliveProbe().is_healthy() is True


@pytest.mark.asyncio
async def test_process_probe_unhealthy_for_missing_process():
    assert await ProcessAliveProbe(pid=999_999_999).is_healthy() is False


@pytest.mark.asyncio
async def test_disk_probe_threshold(monkeypatch):
    monkeypatch.setattr(probe_module.psutil, "disk_usage", lambda path: Usage(97.0))

    assert await DiskSpaceProbe("/", max_usage_pct=95).is_healthy() is False
    assert await DiskSpaceProbe("/", max_usage_pct=99).is_healthy() is True


@pytest.mark.asyncio
async def test_disk_probe_missing_path():
    assert await DiskSpaceProbe("/does/not/exist").is_healthy() is False


@pytest.mark.asyncio
async def test_memory_probe_threshold(monkeypatch):
    monkeypatch.setattr(probe_module.psutil, "virtual_memory", lambda: Usage(80.0))

    assert await MemoryProbe(max_usage_pct=75).is_healthy() is False
    assert await MemoryProbe(max_usage_pct=90).is_healthy() is True


@pytest.mark.asyncio
async def test_callable_probe_accepts_sync_and_async():
    async def async_check():
        return False

    assert await CallableProbe(lambda: True).is_healthy() is True
    assert await CallableProbe(async_check).is_healthy() is False


@pytest.mark.asyncio
async def test_callable_probe_awaits_futures():
    def future_check():
        future = asyncio.get_running_loop().create_future()
        future.set_result(False)
        return future

    assert await CallableProbe(future_check).is_healthy() is False


@pytest.mark.asyncio
async def test_composite_probe_stops_at_first_failure():
    calls = []

    def check(name, result):
        def _check():
            calls.append(name)
            return result
        return CallableProbe(_check, name=name)

    composite = CompositeProbe([check("a", True), check("b", False), check("c", True)])

    assert await composite.is_healthy() is False
    assert calls == ["a", "b"]


def test_composite_probe_requires_children():
    with pytest.raises(ValueError):
        CompositeProbe([])


def test_build_probe_kinds():
    assert isinstance(build_probe(ProbeSettings()), ProcessAliveProbe)

    disk = build_probe(ProbeSettings(kind=ProbeKind.DISK, path="/data"))
    assert isinstance(disk, CompositeProbe)
    assert isinstance(disk.probes[1], DiskSpaceProbe)
    assert disk.probes[1].path == "/data"

    memory = build_probe(ProbeSettings(kind=ProbeKind.MEMORY))
    assert isinstance(memory.probes[1], MemoryProbe)
