"""
Common Utilities

Shared modules used across the sidecar:
- config.py - Configuration dataclasses and loading
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- network.py - Local IPv4 address lookup
- state.py - Lifecycle state machine
"""

from .config import (
    CheckSpec,
    ServiceRegistration,
    SidecarConfig,
    ProbeKind,
    load_config,
)
from .exceptions import (
    ErrorCategory,
    SelfCheckError,
    ConfigError,
    RegistryError,
    RegistrationError,
    DeregistrationError,
)
from .logging_setup import setup_logging, get_service_logger
from .network import get_local_ipv4_address
from .state import Lifecycle, LoopState, CheckOutcome

__all__ = [
    # Config
    "CheckSpec",
    "ServiceRegistration",
    "SidecarConfig",
    "ProbeKind",
    "load_config",
    # Exceptions
    "ErrorCategory",
    "SelfCheckError",
    "ConfigError",
    "RegistryError",
    "RegistrationError",
    "DeregistrationError",
    # Logging
    "setup_logging",
    "get_service_logger",
    # Network
    "get_local_ipv4_address",
    # State
    "Lifecycle",
    "LoopState",
    "CheckOutcome",
]
