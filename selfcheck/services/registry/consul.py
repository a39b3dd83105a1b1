"""
Consul Agent Registry Client

Talks to the local Consul agent HTTP API:
- PUT /v1/agent/service/register
- PUT /v1/agent/service/deregister/<service_id>
- PUT /v1/agent/check/pass/<check_id>?note=...
- PUT /v1/agent/check/fail/<check_id>?note=...
"""

from typing import Any
from urllib.parse import quote

import httpx

from selfcheck.common.config import DEFAULT_REGISTRY_ADDRESS, ServiceRegistration
from selfcheck.common.exceptions import (
    DeregistrationError,
    RegistrationError,
    RegistryError,
)
from selfcheck.common.logging_setup import get_service_logger

from .client import RegistryClient

logger = get_service_logger("registry.consul")


def format_duration(seconds: float) -> str:
    """Consul duration string, e.g. 15 -> "15s", 0.5 -> "500ms"."""
    if float(seconds).is_integer():
        return f"{int(seconds)}s"
    return f"{int(round(seconds * 1000))}ms"


def build_registration_payload(registration: ServiceRegistration) -> dict[str, Any]:
    """Build the agent/service/register body for a registration."""
    check = registration.check
    check_payload: dict[str, Any] = {
        "CheckID": registration.check_id,
        "Name": check.name,
        "Notes": check.notes,
        "TTL": format_duration(check.ttl_seconds),
    }
    if check.deregister_critical_after:
        check_payload["DeregisterCriticalServiceAfter"] = check.deregister_critical_after

    payload: dict[str, Any] = {
        "ID": registration.id,
        "Name": registration.name,
        "Address": registration.address,
        "Port": registration.port,
        "Check": check_payload,
    }
    if registration.tags:
        payload["Tags"] = list(registration.tags)
    if registration.meta:
        payload["Meta"] = dict(registration.meta)

    return payload


class ConsulRegistryClient(RegistryClient):
    """RegistryClient backed by a Consul agent"""

    def __init__(
        self,
        address: str = DEFAULT_REGISTRY_ADDRESS,
        token: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.address = address.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if token:
            headers["X-Consul-Token"] = token

        self._client = httpx.AsyncClient(
            base_url=self.address,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def register(self, registration: ServiceRegistration) -> None:
        payload = build_registration_payload(registration)

        try:
            response = await self._client.put("/v1/agent/service/register", json=payload)
        except httpx.HTTPError as e:
            raise RegistrationError(f"registry unreachable at {self.address}: {e}") from e

        if response.is_error:
            raise RegistrationError(
                f"registration of {registration.id} rejected "
                f"({response.status_code}): {response.text.strip()}",
                status_code=response.status_code,
            )

        logger.info(
            f"Registered service {registration.id}",
            extra={"service_id": registration.id, "ttl": payload["Check"]["TTL"]},
        )

    async def deregister(self, service_id: str) -> None:
        path = f"/v1/agent/service/deregister/{quote(service_id, safe='')}"

        try:
            response = await self._client.put(path)
        except httpx.HTTPError as e:
            raise DeregistrationError(f"registry unreachable at {self.address}: {e}") from e

        if response.status_code == 404:
            # Already gone: TTL reaper or an earlier deregister got there first
            logger.info(
                f"Service {service_id} was not registered",
                extra={"service_id": service_id},
            )
            return

        if response.is_error:
            raise DeregistrationError(
                f"deregistration of {service_id} rejected "
                f"({response.status_code}): {response.text.strip()}",
                status_code=response.status_code,
            )

        logger.info(f"Deregistered service {service_id}", extra={"service_id": service_id})

    async def report_pass(self, check_id: str, note: str = "") -> None:
        await self._update_ttl("pass", check_id, note)

    async def report_fail(self, check_id: str, note: str = "") -> None:
        await self._update_ttl("fail", check_id, note)

    async def _update_ttl(self, status: str, check_id: str, note: str) -> None:
        path = f"/v1/agent/check/{status}/{quote(check_id, safe='')}"
        params = {"note": note} if note else None

        try:
            response = await self._client.put(path, params=params)
        except httpx.HTTPError as e:
            raise RegistryError(
                f"{status} for {check_id} failed: {e}",
                operation=status,
            ) from e

        if response.is_error:
            raise RegistryError(
                f"{status} for {check_id} rejected "
                f"({response.status_code}): {response.text.strip()}",
                operation=status,
                status_code=response.status_code,
            )

        logger.debug(f"TTL {status} sent", extra={"check_id": check_id})
