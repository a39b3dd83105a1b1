"""
Custom Exception Classes for the Self-Check Sidecar

Hierarchical exception structure. Registry errors carry the category that
decides how the lifecycle reacts to them:
- STARTUP_FATAL - registration failed, the loop is never entered
- TICK_RECOVERABLE - a pass/fail report failed, retried on the next tick
- TEARDOWN_BEST_EFFORT - deregistration failed, logged and exit continues
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """How a registry error affects the lifecycle"""
    STARTUP_FATAL = "startup_fatal"
    TICK_RECOVERABLE = "tick_recoverable"
    TEARDOWN_BEST_EFFORT = "teardown_best_effort"


class SelfCheckError(Exception):
    """Base exception for all sidecar errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(SelfCheckError):
    """Configuration-related errors"""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(f"Config Error: {message}", recoverable=False)


class RegistryError(SelfCheckError):
    """Registry call failed during a heartbeat tick"""

    category = ErrorCategory.TICK_RECOVERABLE

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        recoverable: bool = True,
    ):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"Registry Error: {message}", recoverable)


class RegistrationError(RegistryError):
    """Registry unreachable or registration payload rejected"""

    category = ErrorCategory.STARTUP_FATAL

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(
            message,
            operation="register",
            status_code=status_code,
            recoverable=False,
        )


class DeregistrationError(RegistryError):
    """Deregistration failed during teardown"""

    category = ErrorCategory.TEARDOWN_BEST_EFFORT

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(
            message,
            operation="deregister",
            status_code=status_code,
            recoverable=True,
        )
