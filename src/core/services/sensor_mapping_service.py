import logging
from typing import Any, Dict, List, Mapping

from core.models.sensor_mapping import BatchResult, SensorMapping, SensorValue
from core.processing.path_resolver import resolve
from core.processing.transform import apply_transform
from core.services.mapping_store import MappingStore, mapping_store
from core.services.sensor_provider import EmulatedSensorProvider, RawSensorProvider

logger = logging.getLogger(__name__)


class SensorMappingService:
    """
    Joins mapping definitions with live raw readings.
    Each public call takes exactly one raw snapshot from the provider.
    """

    def __init__(self, store: MappingStore, provider: RawSensorProvider):
        self.store = store
        self.provider = provider

    def compute_values(self, raw_tree: Mapping[str, Any]) -> Dict[str, List[SensorValue]]:
        """Resolve and transform every enabled mapping. Unresolved sources yield None."""
        result: Dict[str, List[SensorValue]] = {}
        for group_name, group in self.store.list_grouped().items():
            values = []
            for mapping in group:
                if not mapping.enabled:
                    continue
                raw = resolve(raw_tree, mapping.source)
                if raw is None:
                    logger.debug(f"Sensor {mapping.id} source '{mapping.source}' is unresolved")
                    value = None
                else:
                    value = apply_transform(raw, mapping)
                values.append(SensorValue(
                    id=mapping.id,
                    index=mapping.index,
                    name=mapping.name,
                    type=mapping.type,
                    manufacturer=mapping.manufacturer,
                    model=mapping.model,
                    subtype=mapping.subtype,
                    value=value,
                    unit=mapping.unit,
                ))
            result[group_name] = values
        return result

    async def get_mapped_sensors(self) -> Dict[str, List[SensorValue]]:
        raw_tree = await self.provider.snapshot()
        return self.compute_values(raw_tree)

    async def get_unmapped_sensors(self) -> Dict[str, Any]:
        raw_tree = await self.provider.snapshot()
        return self.store.list_unmapped_against(raw_tree)

    async def get_sensors_overview(self) -> Dict[str, Any]:
        """Mapped values and unmapped raw sensors computed from the same snapshot."""
        raw_tree = await self.provider.snapshot()
        return {
            "mapped": self.compute_values(raw_tree),
            "unmapped": self.store.list_unmapped_against(raw_tree),
        }

    def get_sensors_config(self) -> Dict[str, List[SensorMapping]]:
        return self.store.list_grouped()

    async def create_sensor_mapping(self, definition: Mapping[str, Any]) -> SensorMapping:
        raw_tree = await self.provider.snapshot()
        return self.store.create(definition, raw_tree)

    async def create_sensor_mappings_batch(self, definitions: List[Mapping[str, Any]]) -> BatchResult:
        raw_tree = await self.provider.snapshot()
        return self.store.create_batch(definitions, raw_tree)

    async def update_sensor_mapping(self, mapping_id: str, patch: Mapping[str, Any]) -> SensorMapping:
        raw_tree = await self.provider.snapshot()
        return self.store.update(mapping_id, patch, raw_tree)

    def delete_sensor_mapping(self, mapping_id: str) -> SensorMapping:
        return self.store.delete(mapping_id)

    async def replace_sensors_config(self, grouped: Mapping[str, Any]) -> Dict[str, List[SensorMapping]]:
        raw_tree = await self.provider.snapshot()
        return self.store.replace_all(grouped, raw_tree)


# Global instance, the provider is swapped in by the service manager on startup
sensor_mapping_service = SensorMappingService(mapping_store, EmulatedSensorProvider())
