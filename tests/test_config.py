import pytest

from selfcheck.common.config import (
    ProbeKind,
    SidecarConfig,
    apply_env_overrides,
    load_config,
    load_config_dict,
)
from selfcheck.common.exceptions import ConfigError


def test_defaults_are_valid():
    config = SidecarConfig()

    assert config.validate() == []
    assert config.registry.address == "http://localhost:8500"
    assert config.heartbeat.interval_seconds == 10.0
    assert config.check.ttl_seconds == 15.0


def test_ttl_not_greater_than_interval_is_flagged():
    config = load_config_dict({
        "check": {"ttl_seconds": 10},
        "heartbeat": {"interval_seconds": 10},
    })

    errors = config.validate()

    assert any("ttl_seconds" in e for e in errors)


def test_build_registration_defaults_name_to_id():
    config = load_config_dict({"service": {"id": "worker-1", "tags": ["batch"]}})

    registration = config.build_registration()

    assert registration.name == "worker-1"
    assert registration.check_id == "service:worker-1"
    assert registration.tags == ("batch",)
    assert registration.port == 0


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "registry:\n"
        "  address: http://consul:8500\n"
        "service:\n"
        "  id: billing\n"
        "  port: 8080\n"
        "check:\n"
        "  ttl_seconds: 30\n"
        "heartbeat:\n"
        "  interval_seconds: 5\n"
        "probe:\n"
        "  kind: disk\n"
    )

    config = load_config(path, environ={})

    assert config.registry.address == "http://consul:8500"
    assert config.service.id == "billing"
    assert config.service.port == 8080
    assert config.check.ttl_seconds == 30.0
    assert config.heartbeat.interval_seconds == 5.0
    assert config.probe.kind is ProbeKind.DISK


def test_env_overrides_file_values(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("service:\n  id: from-file\n")

    config = load_config(path, environ={
        "SELFCHECK_SERVICE_ID": "from-env",
        "SELFCHECK_TTL_SECONDS": "20",
        "SELFCHECK_REGISTRY_TOKEN": "secret",
    })

    assert config.service.id == "from-env"
    assert config.check.ttl_seconds == 20.0
    assert config.registry.token == "secret"


def test_env_overrides_handle_empty_sections():
    data = apply_env_overrides({"heartbeat": None}, {"SELFCHECK_INTERVAL_SECONDS": "3"})

    assert data["heartbeat"] == {"interval_seconds": "3"}


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml", environ={})


def test_non_mapping_yaml_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigError):
        load_config(path, environ={})


def test_invalid_values_raise_config_error():
    with pytest.raises(ConfigError):
        load_config_dict({"probe": {"kind": "http"}})

    with pytest.raises(ConfigError):
        load_config_dict({"heartbeat": {"interval_seconds": "soon"}})


@pytest.mark.parametrize("body", [
    "service: process-orders\n",
    "registry:\n  - x\n",
    "heartbeat: 10\n",
])
def test_non_mapping_section_raises_config_error(tmp_path, body):
    path = tmp_path / "config.yaml"
    path.write_text(body)

    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(path, environ={"SELFCHECK_INTERVAL_SECONDS": "5"})


def test_env_override_into_scalar_section_raises():
    with pytest.raises(ConfigError, match="heartbeat must be a mapping"):
        apply_env_overrides({"heartbeat": 10}, {"SELFCHECK_INTERVAL_SECONDS": "5"})


def test_validation_errors_are_collected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "service:\n"
        "  id: ''\n"
        "  port: 70000\n"
        "check:\n"
        "  ttl_seconds: 5\n"
        "heartbeat:\n"
        "  interval_seconds: 10\n"
    )

    with pytest.raises(ConfigError) as exc_info:
        load_config(path, environ={})

    assert len(exc_info.value.errors) == 3
    assert not exc_info.value.recoverable
