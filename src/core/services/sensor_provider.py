import asyncio
import copy
import json
import logging
import math
import random
import shlex
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from core.exceptions import SensorProviderError

logger = logging.getLogger(__name__)

DEFAULT_SENSORS_COMMAND = "sensors -j"
COMMAND_TIMEOUT = 5.0


class RawSensorProvider(ABC):
    """Source of the current raw sensor tree: adapter -> sensor -> reading."""

    @abstractmethod
    async def snapshot(self) -> Dict[str, Any]:
        ...


class StaticSensorProvider(RawSensorProvider):
    """Serves a fixed tree. Each snapshot is an independent copy."""

    def __init__(self, tree: Optional[Dict[str, Any]] = None):
        self.tree: Dict[str, Any] = tree or {}

    async def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self.tree)


def parse_sensors_output(output: str) -> Dict[str, Any]:
    """Parse the JSON printed by ``sensors -j``."""
    try:
        tree = json.loads(output)
    except json.JSONDecodeError as e:
        raise SensorProviderError(f"Invalid sensors output: {e}") from e
    if not isinstance(tree, dict):
        raise SensorProviderError("Invalid sensors output: expected a JSON object")
    return tree


class LmSensorsProvider(RawSensorProvider):
    """Reads the hardware monitoring tree from lm-sensors."""

    def __init__(self, command: str = DEFAULT_SENSORS_COMMAND, timeout: float = COMMAND_TIMEOUT):
        self.command = command
        self.timeout = timeout

    async def snapshot(self) -> Dict[str, Any]:
        args = shlex.split(self.command)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning(f"Cannot run '{self.command}': {e}")
            raise SensorProviderError(f"Cannot run '{self.command}': {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"'{self.command}' timed out after {self.timeout}s")
            raise SensorProviderError(f"'{self.command}' timed out")

        # sensors exits non-zero when a single chip fails but may still print valid JSON
        if proc.returncode != 0 and not stdout.strip():
            detail = stderr.decode("utf-8", errors="replace").strip()
            logger.warning(f"'{self.command}' exited with {proc.returncode}: {detail}")
            raise SensorProviderError(f"'{self.command}' exited with {proc.returncode}: {detail}")

        return parse_sensors_output(stdout.decode("utf-8", errors="replace"))


class EmulatedSensorProvider(RawSensorProvider):
    """
    Generates an lm-sensors shaped tree with slowly varying readings.
    Used when no hardware is available (emulation mode).
    """

    def __init__(self):
        self._start_time = time.time()

    async def snapshot(self) -> Dict[str, Any]:
        elapsed = time.time() - self._start_time

        # Sine wave load with a little noise, shared by temperatures and fans
        load = 0.5 + 0.5 * math.sin(elapsed / 30.0)

        def noise(amplitude: float) -> float:
            return random.uniform(-amplitude, amplitude)

        cpu_temp = 40.0 + 35.0 * load + noise(0.5)
        return {
            "coretemp-isa-0000": {
                "Adapter": "ISA adapter",
                "Package id 0": {
                    "temp1_input": round(cpu_temp, 1),
                    "temp1_max": 80.0,
                    "temp1_crit": 100.0,
                    "temp1_crit_alarm": 0.0,
                },
                "Core 0": {
                    "temp2_input": round(cpu_temp - 2.0 + noise(0.5), 1),
                    "temp2_max": 80.0,
                    "temp2_crit": 100.0,
                },
                "Core 1": {
                    "temp3_input": round(cpu_temp - 1.0 + noise(0.5), 1),
                    "temp3_max": 80.0,
                    "temp3_crit": 100.0,
                },
            },
            "nct6798-isa-0290": {
                "Adapter": "ISA adapter",
                "in0": {"in0_input": round(1.02 + noise(0.01), 3), "in0_min": 0.0, "in0_max": 1.744},
                "+3.3V": {"in3_input": round(3.33 + noise(0.02), 3), "in3_min": 2.976, "in3_max": 3.632},
                "+5V": {"in4_input": round(5.04 + noise(0.03), 3), "in4_min": 4.48, "in4_max": 5.52},
                "fan1": {"fan1_input": float(int(600 + 900 * load + noise(15))), "fan1_min": 0.0},
                "fan2": {"fan2_input": float(int(800 + 1000 * load + noise(15))), "fan2_min": 0.0},
                "pwm1": {"pwm1": float(int(60 + 195 * load))},
                "SYSTIN": {"temp1_input": round(30.0 + 5.0 * load + noise(0.3), 1)},
            },
            "nvme-pci-0100": {
                "Adapter": "PCI adapter",
                "Composite": {
                    "temp1_input": round(36.0 + 10.0 * load + noise(0.3), 2),
                    "temp1_max": 81.85,
                    "temp1_crit": 84.85,
                },
            },
            "power_meter-acpi-0": {
                "Adapter": "ACPI interface",
                "power1": {"power1_average": round(45.0 + 120.0 * load + noise(2.0), 1)},
            },
        }
