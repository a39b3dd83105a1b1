import asyncio

import pytest

from selfcheck.common.config import CheckSpec, ServiceRegistration, load_config_dict
from selfcheck.common.exceptions import DeregistrationError, RegistrationError, RegistryError
from selfcheck.common.state import Lifecycle
from selfcheck.services.heartbeat.probe import LivenessProbe
from selfcheck.services.registry.client import RegistryClient

INTERVAL = 0.01
TTL = 1.0


class FakeRegistryClient(RegistryClient):
    """Records every call; failures and delays are configurable per operation."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.services: dict[str, ServiceRegistration] = {}
        self.closed = False

        self.fail_register = False
        self.fail_deregister = False
        self.fail_reports = 0
        self.report_delay = 0.0
        self.deregister_delay = 0.0

    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    def count(self, op: str) -> int:
        return self.ops().count(op)

    async def register(self, registration):
        self.calls.append(("register", registration.id))
        if self.fail_register:
            raise RegistrationError("payload rejected", status_code=400)
        self.services[registration.id] = registration

    async def deregister(self, service_id):
        self.calls.append(("deregister", service_id))
        if self.deregister_delay:
            await asyncio.sleep(self.deregister_delay)
        if self.fail_deregister:
            raise DeregistrationError("registry unreachable")
        self.services.pop(service_id, None)

    async def report_pass(self, check_id, note=""):
        await self._report("pass", check_id)

    async def report_fail(self, check_id, note=""):
        await self._report("fail", check_id)

    async def _report(self, op, check_id):
        self.calls.append((op, check_id))
        if self.report_delay:
            await asyncio.sleep(self.report_delay)
        if self.fail_reports:
            self.fail_reports -= 1
            raise RegistryError("registry unreachable", operation=op)

    async def aclose(self):
        self.closed = True


class ScriptedProbe(LivenessProbe):
    """Returns scripted results, then keeps returning the last one."""

    name = "scripted"

    def __init__(self, results, delay: float = 0.0):
        self.results = list(results)
        self.delay = delay
        self.calls = 0

    async def is_healthy(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        index = min(self.calls, len(self.results) - 1)
        self.calls += 1
        return self.results[index]


@pytest.fixture
def client():
    return FakeRegistryClient()


@pytest.fixture
def registration():
    return ServiceRegistration(
        id="process-orders",
        name="process-orders",
        address="127.0.0.1",
        port=0,
        check=CheckSpec(ttl_seconds=TTL),
    )


@pytest.fixture
def lifecycle():
    return Lifecycle()


@pytest.fixture
def sidecar_config():
    return load_config_dict({
        "service": {"id": "process-orders"},
        "check": {"ttl_seconds": TTL},
        "heartbeat": {
            "interval_seconds": INTERVAL,
            "deregister_timeout_seconds": 0.5,
            "shutdown_timeout_seconds": 1.0,
        },
    })
