"""
Lifecycle State

The Running -> Terminating -> Terminated state shared by the heartbeat loop
and the shutdown controller. The Running -> Terminating transition is a
compare-and-set: whichever trigger (probe failure or shutdown signal) wins
it owns teardown, every later trigger is a no-op.
"""

import asyncio
import threading
from datetime import datetime, timezone
from enum import Enum


class LoopState(str, Enum):
    """Heartbeat lifecycle states"""
    RUNNING = "running"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


class CheckOutcome(str, Enum):
    """Result of one liveness probe"""
    PASSING = "passing"
    FAILING = "failing"


class Lifecycle:
    """
    Atomic holder of the loop state.

    Attributes:
        state: Current LoopState
        reason: Name of the trigger that won the transition ("probe", "signal")
        stopping: Event set once Terminating is entered, wakes the tick sleep
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = LoopState.RUNNING
        self._reason: str | None = None
        self._changed_at = datetime.now(timezone.utc)
        self.stopping = asyncio.Event()
        self._terminated = asyncio.Event()

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def reason(self) -> str | None:
        return self._reason

    @property
    def is_running(self) -> bool:
        return self._state is LoopState.RUNNING

    @property
    def is_terminated(self) -> bool:
        return self._state is LoopState.TERMINATED

    def begin_termination(self, reason: str) -> bool:
        """
        Move Running -> Terminating.

        Returns:
            True if this caller won the transition and must perform teardown
        """
        with self._lock:
            if self._state is not LoopState.RUNNING:
                return False
            self._state = LoopState.TERMINATING
            self._reason = reason
            self._changed_at = datetime.now(timezone.utc)
        self.stopping.set()
        return True

    def mark_terminated(self) -> None:
        """Enter the terminal state. Only valid after Terminating."""
        with self._lock:
            if self._state is LoopState.RUNNING:
                raise RuntimeError("cannot terminate before termination has begun")
            self._state = LoopState.TERMINATED
            self._changed_at = datetime.now(timezone.utc)
        self._terminated.set()

    async def wait_terminated(self, timeout: float | None = None) -> bool:
        """Wait for the terminal state; False if the timeout expired first."""
        try:
            await asyncio.wait_for(self._terminated.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "state": self._state.value,
            "reason": self._reason,
            "changed_at": self._changed_at.isoformat(),
        }
