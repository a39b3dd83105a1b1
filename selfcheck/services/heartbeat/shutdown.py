"""
Shutdown Controller

Turns SIGTERM / SIGINT into a graceful teardown. The controller races the
heartbeat loop for the Running -> Terminating transition:
- won: it runs the loop's teardown (deregister) itself
- lost: the loop is already tearing down, it only waits for that

The wait for an in-flight heartbeat call is bounded by timeout_seconds,
after which one deregister is issued under its own timeout, so a hung
registry call cannot block process exit or skip deregistration.
"""

import asyncio
import signal

from selfcheck.common.logging_setup import get_service_logger
from selfcheck.common.state import Lifecycle

from .loop import HeartbeatLoop

logger = get_service_logger("shutdown")

SIGNAL_REASON = "signal"


class ShutdownController:
    """Signal-driven, exactly-once teardown coordinator"""

    SIGNALS = (signal.SIGTERM, signal.SIGINT)

    def __init__(
        self,
        lifecycle: Lifecycle,
        heartbeat: HeartbeatLoop,
        timeout_seconds: float = 10.0,
    ):
        self.lifecycle = lifecycle
        self.heartbeat = heartbeat
        self.timeout_seconds = timeout_seconds

        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[signal.Signals] = []
        self._task: asyncio.Task | None = None

    @property
    def requested(self) -> bool:
        return self._task is not None

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Setup graceful shutdown signal handlers"""
        self._loop = loop or asyncio.get_running_loop()

        for sig in self.SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, self._threadsafe_handler)
            self._installed.append(sig)

        logger.debug("Signal handlers installed")

    def uninstall(self) -> None:
        """Restore default signal handling"""
        for sig in self._installed:
            try:
                self._loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
        self._installed.clear()

    def _threadsafe_handler(self, signum, frame) -> None:
        self._loop.call_soon_threadsafe(self.request_shutdown, signal.Signals(signum).name)

    def request_shutdown(self, source: str = SIGNAL_REASON) -> asyncio.Task:
        """
        Handle a termination request. Repeated requests are no-ops.

        Returns:
            The task performing (or waiting for) teardown
        """
        if self._task is not None:
            logger.info(f"Shutdown already in progress, ignoring {source}")
            return self._task

        logger.info(f"Received shutdown request ({source})")
        loop = self._loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._shutdown())
        return self._task

    async def _shutdown(self) -> bool:
        if self.lifecycle.begin_termination(SIGNAL_REASON):
            logger.info("Stopping heartbeat and deregistering")
            # Deregister is still issued once the in-flight wait expires,
            # under its own deregister_timeout_seconds bound
            await self.heartbeat.teardown(lock_timeout=self.timeout_seconds)
            return True

        logger.info(
            f"Termination already in progress (reason: {self.lifecycle.reason}), "
            f"waiting for teardown"
        )
        finished = await self.lifecycle.wait_terminated(self.timeout_seconds)
        if not finished:
            logger.error(f"Teardown did not finish within {self.timeout_seconds}s, exiting anyway")
        return finished

    async def wait(self) -> bool:
        """
        Wait for a requested shutdown to complete.

        Returns:
            True if teardown finished within the bound (or nothing was requested)
        """
        if self._task is None:
            return True
        return await self._task
