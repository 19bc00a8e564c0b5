# External libs
import logging
from pathlib import Path
from typing import Optional, Union

# Internal libs
from core.services.mapping_store import mapping_store
from core.services.sensor_mapping_service import sensor_mapping_service
from core.services.sensor_provider import DEFAULT_SENSORS_COMMAND, EmulatedSensorProvider, LmSensorsProvider

logger = logging.getLogger(__name__)


class ServiceManager:

    def __init__(self):
        self.running = False

    async def start_services(
        self,
        emulation: bool = True,
        config_path: Optional[Union[str, Path]] = None,
        sensors_command: str = DEFAULT_SENSORS_COMMAND,
    ):
        """Load the sensor mappings and install the raw sensor provider.
        Args:
            emulation: When True, serve generated readings instead of running lm-sensors.
            config_path: Overrides the location of the sensor mapping document.
            sensors_command: Command printing the lm-sensors JSON tree.
        """
        logger.info("Starting services...")

        if config_path:
            mapping_store.loader.set_config_path(config_path)

        # Raises StoreIOError on a corrupt file
        mapping_store.load()

        if emulation:
            sensor_mapping_service.provider = EmulatedSensorProvider()
        else:
            sensor_mapping_service.provider = LmSensorsProvider(sensors_command)

        self.running = True
        logger.info(
            f"Services started ({'emulation' if emulation else 'lm-sensors'} provider, "
            f"config {mapping_store.loader.config_path})"
        )

    def stop_services(self):
        """Stop services. Mappings are persisted on every mutation, nothing to flush."""
        self.running = False
        logger.info("Services stopped.")


service_manager = ServiceManager()
