"""Pytest configuration and fixtures for test suite."""

import copy

import pytest
from core.config_loader import ConfigLoader
from core.services.mapping_store import MappingStore
from core.services.sensor_mapping_service import SensorMappingService
from core.services.sensor_provider import StaticSensorProvider


RAW_TREE = {
    "coretemp-isa-0000": {
        "Adapter": "ISA adapter",
        "Package id 0": {"temp1_input": 45.0, "temp1_max": 80.0},
        "Core 0": {"temp2_input": 43.0},
    },
    "nct6798-isa-0290": {
        "Adapter": "ISA adapter",
        "fan1": {"fan1_input": 1200.0},
        "fan2": {"fan2_input": 900.0},
        "fan3": {"fan3_input": 0},
        "pwm1": {"pwm1": 128},
        "+3.3V": {"in3_input": 3.31},
    },
    "power_meter-acpi-0": {
        "Adapter": "ACPI interface",
        "power1": {"power1_average": 120.0},
    },
}


@pytest.fixture
def raw_tree():
    """A fresh copy of the lm-sensors shaped tree used across tests."""
    return copy.deepcopy(RAW_TREE)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config" / "sensors.json"


@pytest.fixture
def store(config_path):
    """An empty store persisting to a temporary file."""
    mapping_store = MappingStore(ConfigLoader(config_path))
    mapping_store.load()
    return mapping_store


@pytest.fixture
def provider(raw_tree):
    return StaticSensorProvider(raw_tree)


@pytest.fixture
def service(store, provider):
    return SensorMappingService(store, provider)


@pytest.fixture
def definition():
    """Factory for a valid fan definition, overridable per field."""
    def make(**overrides):
        payload = {
            "name": "CPU Fan",
            "type": "fan",
            "source": "nct6798-isa-0290.fan1.fan1_input",
            "unit": "RPM",
            "subtype": "rpm",
            "manufacturer": "Noctua",
            "model": "NF-A12x25",
        }
        payload.update(overrides)
        return payload
    return make
