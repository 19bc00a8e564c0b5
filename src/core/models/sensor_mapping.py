"""
Sensor mapping data models.

A mapping describes how one named, typed sensor reading is derived from the
raw sensor tree: which leaf to read (``source``) and how to scale it.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.models.sensor_enum import SensorSubtype, SensorTransform, SensorType


class ValueRange(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    min: float
    max: float


class SensorMappingDefinition(BaseModel):
    """User-authored part of a mapping, validated before it enters the store."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    name: str
    type: SensorType
    source: str
    unit: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    subtype: Optional[SensorSubtype] = None
    multiplier: Optional[float] = None
    divisor: Optional[float] = None
    value_range: Optional[ValueRange] = None
    transform: Optional[SensorTransform] = None
    enabled: bool = True

    @field_validator("name", "source", "unit")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("divisor")
    @classmethod
    def _non_zero_divisor(cls, value: Optional[float]) -> Optional[float]:
        if value == 0:
            raise ValueError("must not be zero")
        return value

    @model_validator(mode="after")
    def _check_scaling(self) -> "SensorMappingDefinition":
        if self.multiplier is not None and self.divisor is not None:
            raise ValueError("multiplier and divisor are mutually exclusive")
        if self.value_range is not None and self.value_range.min >= self.value_range.max:
            raise ValueError("value_range.min must be lower than value_range.max")
        if self.transform == SensorTransform.PERCENTAGE and self.value_range is None:
            raise ValueError("percentage transform requires a value_range")
        return self


class SensorMapping(SensorMappingDefinition):
    """Persisted mapping: a definition plus its identity and group position."""

    id: str
    index: int = Field(ge=0)


class SensorValue(BaseModel):
    """Public view of an enabled mapping joined with a live raw reading."""

    id: str
    index: int
    name: str
    type: SensorType
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    subtype: Optional[SensorSubtype] = None
    value: Optional[float] = None
    unit: str


class BatchError(BaseModel):
    index: int
    name: Optional[str] = None
    error: str


class BatchResult(BaseModel):
    created: List[SensorMapping] = Field(default_factory=list)
    errors: List[BatchError] = Field(default_factory=list)

    @property
    def outcome(self) -> str:
        """``created`` when every item succeeded, ``failed`` when none did, else ``partial``."""
        if not self.errors:
            return "created"
        if not self.created:
            return "failed"
        return "partial"
