"""
Configuration Dataclasses

Type-safe configuration for the sidecar. Values come from a YAML file,
then SELFCHECK_* environment overrides.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

DEFAULT_REGISTRY_ADDRESS = "http://localhost:8500"
AUTO_ADDRESS = "auto"

# Searched in order when no --config / SELFCHECK_CONFIG is given
CONFIG_SEARCH_PATHS = [
    "/etc/selfcheck/config.yaml",
    "./config.yaml",
]


class ProbeKind(str, Enum):
    """Built-in liveness probes"""
    PROCESS = "process"
    DISK = "disk"
    MEMORY = "memory"


@dataclass(frozen=True)
class CheckSpec:
    """TTL check attached to the registration"""
    ttl_seconds: float = 15.0
    name: str = "Self-Check"
    notes: str = "Self-healthcheck process"
    deregister_critical_after: str | None = None  # e.g. "1m"


@dataclass(frozen=True)
class ServiceRegistration:
    """Identity and descriptor registered with the registry"""
    id: str
    name: str
    address: str
    port: int = 0  # non-listening processes register port 0
    check: CheckSpec = field(default_factory=CheckSpec)
    tags: tuple[str, ...] = ()
    meta: tuple[tuple[str, str], ...] = ()

    @property
    def check_id(self) -> str:
        return f"service:{self.id}"


@dataclass
class RegistrySettings:
    address: str = DEFAULT_REGISTRY_ADDRESS
    token: str | None = None
    timeout_seconds: float = 10.0


@dataclass
class ServiceSettings:
    id: str = "process-orders"
    name: str | None = None
    address: str = "127.0.0.1"
    port: int = 0
    tags: list[str] = field(default_factory=list)
    meta: dict[str, str] = field(default_factory=dict)


@dataclass
class HeartbeatSettings:
    interval_seconds: float = 10.0
    deregister_timeout_seconds: float = 5.0
    shutdown_timeout_seconds: float = 10.0


@dataclass
class ProbeSettings:
    kind: ProbeKind = ProbeKind.PROCESS
    path: str = "/"
    max_usage_pct: float = 95.0


@dataclass
class LoggingSettings:
    level: str = "INFO"
    format: str = "json"  # json, text


@dataclass
class SidecarConfig:
    """Complete sidecar configuration"""
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    service: ServiceSettings = field(default_factory=ServiceSettings)
    check: CheckSpec = field(default_factory=CheckSpec)
    heartbeat: HeartbeatSettings = field(default_factory=HeartbeatSettings)
    probe: ProbeSettings = field(default_factory=ProbeSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def validate(self) -> list[str]:
        """Return a list of configuration errors (empty when valid)."""
        errors = []

        if not self.service.id:
            errors.append("service.id is required")
        if not 0 <= self.service.port <= 65535:
            errors.append(f"service.port out of range: {self.service.port}")
        if not self.registry.address:
            errors.append("registry.address is required")

        interval = self.heartbeat.interval_seconds
        ttl = self.check.ttl_seconds
        if interval <= 0:
            errors.append("heartbeat.interval_seconds must be positive")
        if ttl <= 0:
            errors.append("check.ttl_seconds must be positive")
        if interval > 0 and ttl > 0 and ttl <= interval:
            errors.append(
                f"check.ttl_seconds ({ttl}) must be greater than "
                f"heartbeat.interval_seconds ({interval})"
            )

        for name in ("deregister_timeout_seconds", "shutdown_timeout_seconds"):
            if getattr(self.heartbeat, name) <= 0:
                errors.append(f"heartbeat.{name} must be positive")
        if self.registry.timeout_seconds <= 0:
            errors.append("registry.timeout_seconds must be positive")

        if self.probe.kind in (ProbeKind.DISK, ProbeKind.MEMORY):
            if not 0 < self.probe.max_usage_pct <= 100:
                errors.append("probe.max_usage_pct must be in (0, 100]")

        if self.logging.format not in ("json", "text"):
            errors.append(f"logging.format must be json or text: {self.logging.format}")

        return errors

    def build_registration(self, resolved_address: str | None = None) -> ServiceRegistration:
        """Freeze the service settings into the registration payload."""
        return ServiceRegistration(
            id=self.service.id,
            name=self.service.name or self.service.id,
            address=resolved_address or self.service.address,
            port=self.service.port,
            check=self.check,
            tags=tuple(self.service.tags),
            meta=tuple(sorted(self.service.meta.items())),
        )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a config section, raising ConfigError unless it is a mapping."""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"{name} must be a mapping, got {type(section).__name__}")
    return section


def load_config_dict(data: dict[str, Any]) -> SidecarConfig:
    """Build SidecarConfig from a dictionary (e.g., parsed YAML)."""
    registry_data = _section(data, "registry")
    service_data = _section(data, "service")
    check_data = _section(data, "check")
    heartbeat_data = _section(data, "heartbeat")
    probe_data = _section(data, "probe")
    logging_data = _section(data, "logging")

    try:
        registry = RegistrySettings(
            address=str(registry_data.get("address", DEFAULT_REGISTRY_ADDRESS)),
            token=registry_data.get("token"),
            timeout_seconds=float(registry_data.get("timeout_seconds", 10.0)),
        )
        service = ServiceSettings(
            id=str(service_data.get("id", "process-orders")),
            name=service_data.get("name"),
            address=str(service_data.get("address", "127.0.0.1")),
            port=int(service_data.get("port", 0)),
            tags=[str(t) for t in service_data.get("tags") or []],
            meta={str(k): str(v) for k, v in (service_data.get("meta") or {}).items()},
        )
        check = CheckSpec(
            ttl_seconds=float(check_data.get("ttl_seconds", 15.0)),
            name=str(check_data.get("name", "Self-Check")),
            notes=str(check_data.get("notes", "Self-healthcheck process")),
            deregister_critical_after=check_data.get("deregister_critical_after"),
        )
        heartbeat = HeartbeatSettings(
            interval_seconds=float(heartbeat_data.get("interval_seconds", 10.0)),
            deregister_timeout_seconds=float(
                heartbeat_data.get("deregister_timeout_seconds", 5.0)
            ),
            shutdown_timeout_seconds=float(
                heartbeat_data.get("shutdown_timeout_seconds", 10.0)
            ),
        )
        probe = ProbeSettings(
            kind=ProbeKind(probe_data.get("kind", "process")),
            path=str(probe_data.get("path", "/")),
            max_usage_pct=float(probe_data.get("max_usage_pct", 95.0)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigError(str(e)) from e

    logging_settings = LoggingSettings(
        level=str(logging_data.get("level", "INFO")),
        format=str(logging_data.get("format", "json")).lower(),
    )

    return SidecarConfig(
        registry=registry,
        service=service,
        check=check,
        heartbeat=heartbeat,
        probe=probe,
        logging=logging_settings,
    )


def apply_env_overrides(data: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Overlay SELFCHECK_* environment variables onto raw config data."""
    env = os.environ if environ is None else environ

    overrides = {
        "SELFCHECK_REGISTRY_ADDRESS": ("registry", "address"),
        "SELFCHECK_REGISTRY_TOKEN": ("registry", "token"),
        "SELFCHECK_SERVICE_ID": ("service", "id"),
        "SELFCHECK_SERVICE_NAME": ("service", "name"),
        "SELFCHECK_INTERVAL_SECONDS": ("heartbeat", "interval_seconds"),
        "SELFCHECK_TTL_SECONDS": ("check", "ttl_seconds"),
        "SELFCHECK_LOG_LEVEL": ("logging", "level"),
        "SELFCHECK_LOG_FORMAT": ("logging", "format"),
    }

    for var, (section, key) in overrides.items():
        value = env.get(var)
        if value:
            _section(data, section)
            if data.get(section) is None:
                data[section] = {}
            data[section][key] = value

    return data


def find_config_path(explicit: str | None = None) -> Path | None:
    """Resolve the config file: explicit path, SELFCHECK_CONFIG, then search paths."""
    candidate = explicit or os.environ.get("SELFCHECK_CONFIG")
    if candidate:
        return Path(candidate)

    for path in CONFIG_SEARCH_PATHS:
        path = Path(path)
        if path.exists():
            return path

    return None


def load_config(path: str | Path | None = None, environ: dict[str, str] | None = None) -> SidecarConfig:
    """
    Load configuration from YAML (if any) plus environment overrides.

    Raises:
        ConfigError: unreadable file, bad values, or failed validation
    """
    data: dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Top level of {path} must be a mapping")

    config = load_config_dict(apply_env_overrides(data, environ))

    errors = config.validate()
    if errors:
        raise ConfigError("; ".join(errors), errors=errors)

    return config
