"""
Self-Check Sidecar Service

Wires the components together:
1. register the service (failure aborts startup)
2. start the heartbeat loop
3. install the shutdown controller
4. wait until teardown finished, bounded by the shutdown timeout
"""

import asyncio
from contextlib import suppress

from selfcheck.common.config import AUTO_ADDRESS, SidecarConfig
from selfcheck.common.logging_setup import get_service_logger
from selfcheck.common.network import get_local_ipv4_address
from selfcheck.common.state import Lifecycle

from selfcheck.services.registry import ConsulRegistryClient, RegistryClient
from .loop import HeartbeatLoop
from .probe import LivenessProbe, build_probe
from .shutdown import SIGNAL_REASON, ShutdownController

logger = get_service_logger("service")

FALLBACK_ADDRESS = "127.0.0.1"


class SidecarService:
    """Registration lifecycle of one process instance"""

    def __init__(
        self,
        config: SidecarConfig,
        client: RegistryClient | None = None,
        probe: LivenessProbe | None = None,
    ):
        self.config = config
        self.lifecycle = Lifecycle()

        self.client = client or ConsulRegistryClient(
            address=config.registry.address,
            token=config.registry.token,
            timeout_seconds=config.registry.timeout_seconds,
        )
        self.registration = config.build_registration(self._resolve_address())

        self.heartbeat = HeartbeatLoop(
            client=self.client,
            registration=self.registration,
            lifecycle=self.lifecycle,
            probe=probe or build_probe(config.probe),
            interval_seconds=config.heartbeat.interval_seconds,
            deregister_timeout_seconds=config.heartbeat.deregister_timeout_seconds,
        )
        self.shutdown = ShutdownController(
            lifecycle=self.lifecycle,
            heartbeat=self.heartbeat,
            timeout_seconds=config.heartbeat.shutdown_timeout_seconds,
        )

    def _resolve_address(self) -> str | None:
        if self.config.service.address.lower() != AUTO_ADDRESS:
            return None

        address = get_local_ipv4_address()
        if address is None:
            logger.warning(f"No non-loopback IPv4 address found, using {FALLBACK_ADDRESS}")
            return FALLBACK_ADDRESS
        return address

    async def run(self) -> int:
        """
        Run until terminated.

        Returns:
            Exit code: 0 after a signal-driven shutdown, 1 otherwise

        Raises:
            RegistrationError: registration failed, nothing was started
        """
        logger.info(
            f"Starting self-check for {self.registration.id} "
            f"(registry: {self.config.registry.address})",
            extra={"service_id": self.registration.id, "address": self.registration.address},
        )

        try:
            await self.heartbeat.register()
            self.shutdown.install()
            try:
                await self._run_until_terminated()
            finally:
                self.shutdown.uninstall()
        finally:
            await self.client.aclose()

        logger.info(
            f"Self-check stopped (reason: {self.lifecycle.reason}, "
            f"state: {self.lifecycle.state.value})"
        )
        return 0 if self.lifecycle.reason == SIGNAL_REASON else 1

    async def _run_until_terminated(self) -> None:
        loop_task = asyncio.create_task(self.heartbeat.run(), name="heartbeat-loop")
        stopping = asyncio.create_task(self.lifecycle.stopping.wait())

        try:
            await asyncio.wait({loop_task, stopping}, return_when=asyncio.FIRST_COMPLETED)

            if self.shutdown.requested:
                await self.shutdown.wait()
                if not loop_task.done():
                    # Stuck on a registry call past the shutdown bound
                    loop_task.cancel()
                    with suppress(asyncio.CancelledError):
                        await loop_task
                    return

            await loop_task

            # A signal may have arrived while the loop was tearing down
            if self.shutdown.requested:
                await self.shutdown.wait()
        finally:
            stopping.cancel()
