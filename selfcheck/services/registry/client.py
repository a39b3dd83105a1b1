"""
Registry Client Interface

Capability interface over the external service registry. The heartbeat
loop and shutdown controller only depend on this, never on a concrete
backend.
"""

from abc import ABC, abstractmethod

from selfcheck.common.config import ServiceRegistration


class RegistryClient(ABC):
    """Register, deregister, pass and fail a TTL check"""

    @abstractmethod
    async def register(self, registration: ServiceRegistration) -> None:
        """
        Register the service and its TTL check.

        Safe to retry with the same payload.

        Raises:
            RegistrationError: registry unreachable or payload rejected
        """

    @abstractmethod
    async def deregister(self, service_id: str) -> None:
        """
        Remove the registration.

        A registration that no longer exists counts as success.

        Raises:
            DeregistrationError: registry unreachable or call rejected
        """

    @abstractmethod
    async def report_pass(self, check_id: str, note: str = "") -> None:
        """Mark the check healthy for one TTL window. Raises RegistryError."""

    @abstractmethod
    async def report_fail(self, check_id: str, note: str = "") -> None:
        """Mark the check critical. Raises RegistryError."""

    async def aclose(self) -> None:
        """Release transport resources"""
