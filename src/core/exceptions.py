"""Typed failures raised by the sensor mapping core.

The HTTP layer maps each kind to a status code; the core never depends on it.
"""


class SensorMappingError(Exception):
    """Base class for every sensor mapping failure."""


class MappingValidationError(SensorMappingError, ValueError):
    """Malformed definition: missing field, bad enum, conflicting options."""


class UnresolvableSourceError(SensorMappingError):
    """The source path does not address a numeric leaf in the raw sensor tree."""

    def __init__(self, source: str, location: str = ""):
        message = f"Source '{source}' does not resolve to a numeric sensor value"
        super().__init__(f"{location}: {message}" if location else message)
        self.source = source


class DuplicateSourceError(SensorMappingError):
    """Another mapping already claims the same source path."""

    def __init__(self, source: str, owner_id: str, location: str = ""):
        message = f"Source '{source}' is already mapped by sensor {owner_id}"
        super().__init__(f"{location}: {message}" if location else message)
        self.source = source
        self.owner_id = owner_id


class MappingNotFoundError(SensorMappingError, LookupError):
    def __init__(self, mapping_id: str):
        super().__init__(f"Sensor mapping '{mapping_id}' not found")
        self.mapping_id = mapping_id


class StoreIOError(SensorMappingError):
    """The durable config store could not be read or written."""


class SensorProviderError(SensorMappingError):
    """The raw sensor tree could not be collected."""
