from typing import Any, Dict, List
from pydantic import BaseModel
from core.models.sensor_mapping import SensorValue


class AppHealthOK(BaseModel):
    status: str
    app: str


class SensorsOverview(BaseModel):
    mapped: Dict[str, List[SensorValue]]
    unmapped: Dict[str, Any]
