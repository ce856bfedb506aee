"""Tests for ethercat_soem.config."""

import json

import pytest

from ethercat_soem.config import BusConfig, load_bus_config
from ethercat_soem.exceptions import ConfigurationError


def write(tmp_path, data):
    path = tmp_path / "bus.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return path


def test_defaults():
    config = BusConfig()
    assert config.adapter is None
    assert config.cycle_time == pytest.approx(0.001)
    assert config.sdo_timeout == pytest.approx(3.0)
    assert config.recv_timeout == pytest.approx(0.002)
    assert not config.strict_discovery


def test_with_overrides_ignores_none():
    config = BusConfig(adapter="eth0").with_overrides(adapter=None, cycle_ms=5)
    assert config.adapter == "eth0"
    assert config.cycle_ms == 5


def test_load_network_section(tmp_path):
    path = write(tmp_path, {
        "network": {
            "adapter": "enp3s0",
            "cycle_ms": 2,
            "sdo_timeout_ms": 500,
            "strict_discovery": True,
        },
        "slaves": {},
    })
    config = load_bus_config(path)
    assert config.adapter == "enp3s0"
    assert config.cycle_ms == 2.0
    assert config.sdo_timeout == pytest.approx(0.5)
    assert config.strict_discovery
    assert not config.configure_pdo


def test_file_without_network_section(tmp_path):
    assert load_bus_config(write(tmp_path, {"default": {}})) == BusConfig()


@pytest.mark.parametrize("data", [
    "{broken",
    {"network": []},
    {"network": {"cycle_ms": "fast"}},
    {"network": {"cycle_ms": 0}},
    {"network": {"sdo_timeout_ms": -1}},
])
def test_invalid_files(tmp_path, data):
    with pytest.raises(ConfigurationError):
        load_bus_config(write(tmp_path, data))


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_bus_config(tmp_path / "nope.json")
