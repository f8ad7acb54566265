from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from stylecheck.api.dependencies import close_clients
from stylecheck.api.main import api_router

from .config import settings
from .version import __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    """
    logger.info(f"Starting {settings.APP_NAME} v{__version__} ({settings.APP_ENV})")
    yield
    try:
        await close_clients()
        logger.info("Network clients closed")
    except Exception as exc:
        logger.warning(f"Failed to close network clients: {exc}")


app = FastAPI(
    title="stylecheck",
    description="Match refinement for wardrobe pairings: scoring, trust filter and safety check",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.APP_ENV != "development" else "/docs",
    redoc_url=None if settings.APP_ENV != "development" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
