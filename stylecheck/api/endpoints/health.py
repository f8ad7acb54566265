from fastapi import APIRouter

from stylecheck.core.config import APP_VERSION

router = APIRouter(tags=["health"])


@router.get("/health", summary="Simple readiness check")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}
