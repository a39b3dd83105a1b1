"""
Heartbeat Loop

Drives the TTL check of a single registration:
1. register() once at startup, failure aborts startup
2. every tick: probe, then pass (stay Running) or fail (go Terminating)
3. teardown: deregister exactly once, then Terminated

The next tick is scheduled `interval_seconds` after the previous tick
completed. Registry calls of a tick and the teardown share one lock, so a
deregistration never overlaps an in-flight pass/fail call.
"""

import asyncio

from selfcheck.common.config import ServiceRegistration
from selfcheck.common.exceptions import ConfigError, RegistryError
from selfcheck.common.logging_setup import get_service_logger
from selfcheck.common.state import CheckOutcome, Lifecycle, LoopState

from selfcheck.services.registry.client import RegistryClient
from .probe import LivenessProbe, ProcessAliveProbe

logger = get_service_logger("heartbeat")

PROBE_REASON = "probe"
ERROR_REASON = "error"


class HeartbeatLoop:
    """
    Running -> Terminating -> Terminated state machine.

    Attributes:
        registration: The one registration owned by this process
        lifecycle: Shared state, also held by the ShutdownController
        interval_seconds: Delay between tick completion and the next tick
        deregister_timeout_seconds: Bound on the teardown deregister call
    """

    PASS_NOTE = "OK"
    FAIL_NOTE = "Process not running!"
    MAX_CONSECUTIVE_FAILURES = 5

    def __init__(
        self,
        client: RegistryClient,
        registration: ServiceRegistration,
        lifecycle: Lifecycle,
        probe: LivenessProbe | None = None,
        interval_seconds: float = 10.0,
        deregister_timeout_seconds: float = 5.0,
    ):
        ttl = registration.check.ttl_seconds
        if interval_seconds <= 0:
            raise ConfigError(f"heartbeat interval must be positive: {interval_seconds}")
        if ttl <= interval_seconds:
            raise ConfigError(
                f"TTL ({ttl}s) must be greater than the heartbeat interval "
                f"({interval_seconds}s), otherwise the check expires between beats"
            )

        self.client = client
        self.registration = registration
        self.lifecycle = lifecycle
        self.probe = probe or ProcessAliveProbe()
        self.interval_seconds = interval_seconds
        self.deregister_timeout_seconds = deregister_timeout_seconds

        self._call_lock = asyncio.Lock()
        self._registered = False
        self._owns_teardown = False
        self._teardown_started = False
        self._deregistered = False

        self._tick_count = 0
        self._pass_count = 0
        self._consecutive_failures = 0

    @property
    def registered(self) -> bool:
        return self._registered

    @property
    def deregistered(self) -> bool:
        """True once the registry confirmed the deregistration"""
        return self._deregistered

    async def register(self) -> None:
        """
        Register the service. Called once, before the first tick.

        Raises:
            RegistrationError: propagated unchanged, startup must abort
        """
        if self._registered:
            return

        await self.client.register(self.registration)
        self._registered = True
        logger.info(
            f"Service {self.registration.id} registered "
            f"(ttl: {self.registration.check.ttl_seconds}s, interval: {self.interval_seconds}s)",
            extra={"service_id": self.registration.id, "check_id": self.registration.check_id},
        )

    async def run(self) -> LoopState:
        """
        Tick until the lifecycle leaves Running.

        Returns after teardown when this loop won the transition (probe
        failure), or as soon as it notices another trigger won.
        """
        if not self._registered:
            await self.register()

        try:
            while self.lifecycle.is_running:
                outcome = await self.tick()
                if outcome is not CheckOutcome.PASSING:
                    break
                await self._wait_interval()
        except Exception:
            logger.exception("Heartbeat loop crashed")
            if self.lifecycle.begin_termination(ERROR_REASON):
                self._owns_teardown = True
            raise
        finally:
            if self._owns_teardown:
                await self.teardown()

        return self.lifecycle.state

    async def tick(self) -> CheckOutcome | None:
        """
        Run one probe and report it.

        Returns:
            The outcome, or None when the lifecycle already left Running
        """
        async with self._call_lock:
            if not self.lifecycle.is_running:
                return None

            self._tick_count += 1
            healthy = await self._probe_healthy()

            if not self.lifecycle.is_running:
                return None

            if healthy:
                await self._report(self.client.report_pass, self.PASS_NOTE)
                self._pass_count += 1
                return CheckOutcome.PASSING

            if not self.lifecycle.begin_termination(PROBE_REASON):
                return None
            self._owns_teardown = True

            logger.warning(
                f"Probe '{self.probe.name}' unhealthy, marking check critical",
                extra={"check_id": self.registration.check_id, "tick": self._tick_count},
            )
            await self._report(self.client.report_fail, self.FAIL_NOTE)
            return CheckOutcome.FAILING

    async def teardown(self, lock_timeout: float | None = None) -> None:
        """
        Deregister and enter Terminated.

        Only the winner of the Running -> Terminating transition calls this.
        Waits for an in-flight tick call (at most lock_timeout seconds when
        given), then issues exactly one deregister bounded by
        deregister_timeout_seconds. Failures are best effort: the registry's
        TTL expiry covers a deregistration that did not land.
        """
        if self.lifecycle.is_running:
            raise RuntimeError("teardown requires the lifecycle to be terminating")
        if self._teardown_started:
            return
        self._teardown_started = True

        try:
            acquired = await self._acquire_call_lock(lock_timeout)
            try:
                await self._deregister()
            finally:
                if acquired:
                    self._call_lock.release()
        finally:
            self.lifecycle.mark_terminated()
            logger.info("Heartbeat loop terminated", extra=self.get_stats())

    async def _acquire_call_lock(self, timeout: float | None) -> bool:
        """Wait for the in-flight tick call; False if it outlived the timeout."""
        if timeout is None:
            await self._call_lock.acquire()
            return True

        try:
            await asyncio.wait_for(self._call_lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Heartbeat call still in flight after {timeout}s, deregistering anyway",
                extra={"service_id": self.registration.id},
            )
            return False
        return True

    async def _deregister(self) -> None:
        service_id = self.registration.id
        try:
            await asyncio.wait_for(
                self.client.deregister(service_id),
                timeout=self.deregister_timeout_seconds,
            )
            self._deregistered = True
            logger.info(
                f"Service {service_id} deregistered (reason: {self.lifecycle.reason})",
                extra={"service_id": service_id, "reason": self.lifecycle.reason},
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Deregistration of {service_id} unresolved after "
                f"{self.deregister_timeout_seconds}s, leaving it to TTL expiry",
                extra={"service_id": service_id},
            )
        except RegistryError as e:
            logger.warning(
                f"Deregistration of {service_id} failed, leaving it to TTL expiry: {e}",
                extra={"service_id": service_id, "category": e.category.value},
            )

    async def _probe_healthy(self) -> bool:
        try:
            return await self.probe.is_healthy()
        except Exception as e:
            logger.error(f"Probe '{self.probe.name}' raised: {e}")
            return False

    async def _report(self, call, note: str) -> None:
        """Send pass/fail. Registry errors are logged and retried next tick."""
        try:
            await call(self.registration.check_id, note)
            self._consecutive_failures = 0
        except RegistryError as e:
            self._consecutive_failures += 1
            logger.error(
                f"Heartbeat report failed ({self._consecutive_failures}): {e}",
                extra={
                    "consecutive_failures": self._consecutive_failures,
                    "category": e.category.value,
                },
            )

            if self._consecutive_failures == self.MAX_CONSECUTIVE_FAILURES:
                logger.critical(
                    f"Heartbeat failed {self._consecutive_failures} consecutive times, "
                    f"check {self.registration.check_id} is likely critical"
                )

    async def _wait_interval(self) -> None:
        """Sleep one interval, waking early when termination begins."""
        try:
            await asyncio.wait_for(
                self.lifecycle.stopping.wait(),
                timeout=self.interval_seconds,
            )
        except asyncio.TimeoutError:
            pass

    def get_stats(self) -> dict:
        return {
            "service_id": self.registration.id,
            "state": self.lifecycle.state.value,
            "reason": self.lifecycle.reason,
            "tick_count": self._tick_count,
            "pass_count": self._pass_count,
            "consecutive_failures": self._consecutive_failures,
            "deregistered": self._deregistered,
        }
