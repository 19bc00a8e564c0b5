from fastapi import APIRouter, Body, HTTPException, Response
from typing import Any, Dict, List

from core.exceptions import (
    DuplicateSourceError,
    MappingNotFoundError,
    MappingValidationError,
    SensorMappingError,
    SensorProviderError,
    StoreIOError,
    UnresolvableSourceError,
)
from core.models.sensor_mapping import BatchResult, SensorMapping, SensorValue
from core.services.sensor_mapping_service import sensor_mapping_service
from schemas import SensorsOverview

router = APIRouter(prefix="/sensors", tags=["sensors"])

BATCH_STATUS = {"created": 201, "partial": 207, "failed": 400}

PROVIDER_UNAVAILABLE = {
    503: {
        "description": "The raw sensor tree could not be read.",
        "content": {
            "application/json": {
                "example": {"detail": "Cannot run 'sensors -j': [Errno 2] No such file or directory: 'sensors'"}
            }
        }
    }
}

INVALID_DEFINITION = {
    400: {
        "description": "Invalid definition or unresolvable source.",
        "content": {
            "application/json": {
                "examples": {
                    "validation": {"value": {"detail": "Value error, multiplier and divisor are mutually exclusive"}},
                    "unresolvable": {"value": {"detail": "Source 'coretemp-isa-0000.Core 9.temp1_input' does not resolve to a numeric sensor value"}}
                }
            }
        }
    },
    409: {
        "description": "Another mapping already uses this source.",
        "content": {
            "application/json": {
                "example": {"detail": "Source 'nct6798-isa-0290.fan1.fan1_input' is already mapped by sensor 1760882400000"}
            }
        }
    },
}

NOT_FOUND = {
    404: {
        "description": "Sensor mapping not found.",
        "content": {
            "application/json": {
                "example": {"detail": "Sensor mapping '1760882400000' not found"}
            }
        }
    }
}


def _http_error(error: SensorMappingError) -> HTTPException:
    """Map a core failure to the HTTP status the API documents."""
    if isinstance(error, MappingNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, DuplicateSourceError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (MappingValidationError, UnresolvableSourceError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, SensorProviderError):
        return HTTPException(status_code=503, detail=str(error))
    if isinstance(error, StoreIOError):
        return HTTPException(status_code=500, detail=f"Failed to save sensor configuration: {error}")
    return HTTPException(status_code=500, detail=str(error))


@router.get("", response_model=Dict[str, List[SensorValue]], responses=PROVIDER_UNAVAILABLE)
async def get_mapped_sensors() -> Dict[str, List[SensorValue]]:
    """
    Get the current value of every enabled sensor mapping, grouped by type.
    A mapping whose source is missing from the current readings has `value: null`.
    """
    try:
        return await sensor_mapping_service.get_mapped_sensors()
    except SensorMappingError as e:
        raise _http_error(e) from e


@router.get("/available", response_model=Dict[str, Any], responses=PROVIDER_UNAVAILABLE)
async def get_unmapped_sensors() -> Dict[str, Any]:
    """
    Get the raw sensor tree without the readings already used by a mapping.
    Adapters with nothing left to map are omitted.
    """
    try:
        return await sensor_mapping_service.get_unmapped_sensors()
    except SensorMappingError as e:
        raise _http_error(e) from e


@router.get("/overview", response_model=SensorsOverview, responses=PROVIDER_UNAVAILABLE)
async def get_sensors_overview() -> SensorsOverview:
    """
    Get mapped values and unmapped raw readings computed from the same snapshot.
    """
    try:
        overview = await sensor_mapping_service.get_sensors_overview()
    except SensorMappingError as e:
        raise _http_error(e) from e
    return SensorsOverview(**overview)


@router.get("/config", response_model=Dict[str, List[SensorMapping]])
async def get_sensors_config() -> Dict[str, List[SensorMapping]]:
    """
    Get every sensor mapping definition, grouped by type in index order.
    Disabled mappings are included.
    """
    return sensor_mapping_service.get_sensors_config()


@router.put("/config", response_model=Dict[str, List[SensorMapping]], responses={**INVALID_DEFINITION, **PROVIDER_UNAVAILABLE})
async def replace_sensors_config(grouped: Dict[str, Any] = Body(...)) -> Dict[str, List[SensorMapping]]:
    """
    Replace the whole sensor configuration.

    The body is keyed by type (`fan`, `temperature`, `power`, `voltage`, `psu`, `other`).
    Supplied ids are kept, missing ones are generated, and mappings absent from the
    body are deleted. Any invalid entry rejects the whole request.
    """
    try:
        return await sensor_mapping_service.replace_sensors_config(grouped)
    except SensorMappingError as e:
        raise _http_error(e) from e


@router.post("/config", status_code=201, response_model=SensorMapping, responses={**INVALID_DEFINITION, **PROVIDER_UNAVAILABLE})
async def create_sensor_mapping(definition: Dict[str, Any] = Body(...)) -> SensorMapping:
    """
    Create a sensor mapping. It is appended to the end of its type group.
    The source must resolve to a numeric reading in the current sensor tree.
    """
    try:
        return await sensor_mapping_service.create_sensor_mapping(definition)
    except SensorMappingError as e:
        raise _http_error(e) from e


@router.post("/config/batch", status_code=201, response_model=BatchResult, responses={
    207: {"description": "Some definitions were created, the others are listed in `errors`."},
    400: {"description": "No definition could be created."},
    **PROVIDER_UNAVAILABLE,
})
async def create_sensor_mappings_batch(response: Response, definitions: List[Any] = Body(...)) -> BatchResult:
    """
    Create several sensor mappings. Each definition is handled independently;
    failures are reported per item with their position in the request.
    """
    try:
        result = await sensor_mapping_service.create_sensor_mappings_batch(definitions)
    except SensorMappingError as e:
        raise _http_error(e) from e
    response.status_code = BATCH_STATUS[result.outcome]
    return result


@router.patch("/config/{mapping_id}", response_model=SensorMapping, responses={**INVALID_DEFINITION, **NOT_FOUND, **PROVIDER_UNAVAILABLE})
async def update_sensor_mapping(mapping_id: str, patch: Dict[str, Any] = Body(...)) -> SensorMapping:
    """
    Update the provided fields of a sensor mapping.
    Changing `type` moves the mapping to the end of the new group, or to `index` when given.
    """
    try:
        return await sensor_mapping_service.update_sensor_mapping(mapping_id, patch)
    except SensorMappingError as e:
        raise _http_error(e) from e


@router.delete("/config/{mapping_id}", response_model=SensorMapping, responses=NOT_FOUND)
async def delete_sensor_mapping(mapping_id: str) -> SensorMapping:
    """
    Delete a sensor mapping. The remaining mappings of its group are reindexed.
    """
    try:
        return sensor_mapping_service.delete_sensor_mapping(mapping_id)
    except SensorMappingError as e:
        raise _http_error(e) from e
