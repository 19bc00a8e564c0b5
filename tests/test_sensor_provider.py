"""Tests for raw sensor providers."""
import sys

import pytest
from core.exceptions import SensorProviderError
from core.processing.path_resolver import resolve
from core.services.sensor_provider import (
    EmulatedSensorProvider,
    LmSensorsProvider,
    StaticSensorProvider,
    parse_sensors_output,
)


class TestStaticSensorProvider:

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self, raw_tree):
        provider = StaticSensorProvider(raw_tree)
        snapshot = await provider.snapshot()
        snapshot["nct6798-isa-0290"]["fan1"]["fan1_input"] = 0
        assert provider.tree["nct6798-isa-0290"]["fan1"]["fan1_input"] == 1200.0

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await StaticSensorProvider().snapshot() == {}


class TestParseSensorsOutput:

    def test_valid_output(self):
        output = '{"acpitz-acpi-0": {"Adapter": "ACPI interface", "temp1": {"temp1_input": 27.8}}}'
        tree = parse_sensors_output(output)
        assert tree["acpitz-acpi-0"]["temp1"]["temp1_input"] == 27.8

    def test_invalid_json(self):
        with pytest.raises(SensorProviderError):
            parse_sensors_output("acpitz-acpi-0\nAdapter: ACPI interface")

    def test_not_an_object(self):
        with pytest.raises(SensorProviderError):
            parse_sensors_output("[]")


class TestLmSensorsProvider:
    """Run the provider against small stand-in commands."""

    @pytest.mark.asyncio
    async def test_reads_command_output(self):
        script = 'import json; print(json.dumps({"chip": {"fan1": {"fan1_input": 1000}}}))'
        provider = LmSensorsProvider(f'"{sys.executable}" -c \'{script}\'')
        tree = await provider.snapshot()
        assert tree == {"chip": {"fan1": {"fan1_input": 1000}}}

    @pytest.mark.asyncio
    async def test_missing_command(self):
        provider = LmSensorsProvider("definitely-not-a-sensors-binary -j")
        with pytest.raises(SensorProviderError):
            await provider.snapshot()

    @pytest.mark.asyncio
    async def test_failing_command_without_output(self):
        provider = LmSensorsProvider(f'"{sys.executable}" -c "import sys; sys.exit(1)"')
        with pytest.raises(SensorProviderError, match="exited with 1"):
            await provider.snapshot()

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = LmSensorsProvider(f'"{sys.executable}" -c "import time; time.sleep(5)"', timeout=0.2)
        with pytest.raises(SensorProviderError, match="timed out"):
            await provider.snapshot()


class TestEmulatedSensorProvider:
    """Test the shape of the generated tree."""

    @pytest.mark.asyncio
    async def test_known_sources_resolve(self):
        tree = await EmulatedSensorProvider().snapshot()
        for source in [
            "coretemp-isa-0000.Package id 0.temp1_input",
            "nct6798-isa-0290.fan1.fan1_input",
            r"nct6798-isa-0290.+3\.3V.in3_input",
            "nvme-pci-0100.Composite.temp1_input",
            "power_meter-acpi-0.power1.power1_average",
        ]:
            assert resolve(tree, source) is not None, source

    @pytest.mark.asyncio
    async def test_adapter_metadata_is_not_numeric(self):
        tree = await EmulatedSensorProvider().snapshot()
        assert tree["coretemp-isa-0000"]["Adapter"] == "ISA adapter"
        assert resolve(tree, "coretemp-isa-0000.Adapter") is None

    @pytest.mark.asyncio
    async def test_readings_in_plausible_ranges(self):
        tree = await EmulatedSensorProvider().snapshot()
        assert 30.0 < tree["coretemp-isa-0000"]["Package id 0"]["temp1_input"] < 80.0
        assert 0.0 <= tree["nct6798-isa-0290"]["pwm1"]["pwm1"] <= 255.0
        assert 3.0 < tree["nct6798-isa-0290"]["+3.3V"]["in3_input"] < 3.6
