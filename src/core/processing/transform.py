from core.models.sensor_enum import SensorTransform
from core.models.sensor_mapping import SensorMappingDefinition

PERCENT_MIN = 0.0
PERCENT_MAX = 100.0


def apply_transform(raw: float, mapping: SensorMappingDefinition) -> float:
    """
    Scale a resolved raw reading for display.

    Multiplier wins over divisor (they are never both set on a valid mapping),
    then an optional percentage normalization over ``value_range`` clamped to
    0..100.
    """
    if mapping.multiplier is not None:
        value = raw * mapping.multiplier
    elif mapping.divisor is not None:
        value = raw / mapping.divisor
    else:
        value = raw

    if mapping.transform == SensorTransform.PERCENTAGE and mapping.value_range is not None:
        span = mapping.value_range.max - mapping.value_range.min
        value = (value - mapping.value_range.min) / span * 100.0
        value = min(max(value, PERCENT_MIN), PERCENT_MAX)

    return value
