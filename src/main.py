from fastapi import FastAPI
from pydantic_settings import BaseSettings
from contextlib import asynccontextmanager
from typing import Optional
import logging

from routers.api import router as api_router
from schemas import AppHealthOK
from core.service_manager import service_manager
from core.services.sensor_provider import DEFAULT_SENSORS_COMMAND

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "Sensor Mapping API"
    debug: bool = False
    # Serve generated readings instead of running lm-sensors (EMULATION_MODE)
    emulation_mode: bool = False
    # Location of the sensor mapping document (SENSORS_CONFIG_PATH), defaults to config/sensors.json
    sensors_config_path: Optional[str] = None
    # Command printing the raw sensor tree as JSON (SENSORS_COMMAND)
    sensors_command: str = DEFAULT_SENSORS_COMMAND


settings = Settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup/shutdown without deprecated on_event."""
    try:
        logger.info(
            "Starting services in %s mode", "emulation" if settings.emulation_mode else "hardware"
        )
        await service_manager.start_services(
            emulation=settings.emulation_mode,
            config_path=settings.sensors_config_path,
            sensors_command=settings.sensors_command,
        )
    except Exception as e:
        logger.error("Failed to start services: %s", e)
        raise

    try:
        yield
    finally:
        logger.info("Stopping services")
        service_manager.stop_services()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


@app.get("/", tags=["meta"])
async def read_root() -> dict[str, str]:
    return {"message": settings.app_name}


@app.get("/health", tags=["meta"], response_model=AppHealthOK)
async def healthcheck() -> AppHealthOK:
    return AppHealthOK(status="ok", app=settings.app_name)


# mount API router under /api
app.include_router(api_router, prefix="/api")
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
