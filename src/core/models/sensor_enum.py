"""Enumerations for type-safe sensor mapping fields."""
from enum import Enum


class SensorType(str, Enum):
    """Group a mapping belongs to. Each type owns its own index space."""
    FAN = "fan"
    TEMPERATURE = "temperature"
    POWER = "power"
    VOLTAGE = "voltage"
    PSU = "psu"
    OTHER = "other"


class SensorSubtype(str, Enum):
    """Descriptive tag only, never used by the transform pipeline."""
    VOLTAGE = "voltage"
    WATTAGE = "wattage"
    AMPERAGE = "amperage"
    SPEED = "speed"
    FLOW = "flow"
    TEMPERATURE = "temperature"
    RPM = "rpm"
    PERCENTAGE = "percentage"


class SensorTransform(str, Enum):
    PERCENTAGE = "percentage"
