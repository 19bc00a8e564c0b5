from fastapi import APIRouter

from routers import sensors

router = APIRouter()

# include sub-routers
router.include_router(sensors.router)
