from fastapi import APIRouter

from .endpoints.health import router as health_router
from .endpoints.matches import router as matches_router
from .endpoints.safety import router as safety_router
from .endpoints.signals import router as signals_router

api_router = APIRouter()


@api_router.get("/")
async def root():
    return {"message": "stylecheck API is running"}


api_router.include_router(health_router)
api_router.include_router(matches_router)
api_router.include_router(signals_router)
api_router.include_router(safety_router)
