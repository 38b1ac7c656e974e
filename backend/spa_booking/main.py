# backend/spa_booking/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import is_running_tests, settings
from .core.constants import API_TITLE, API_VERSION, BRAND_NAME
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes.v1 import bookings as bookings_v1, health as health_v1, prometheus as prometheus_v1
from .services.expiry_sweeper import ExpirySweeper

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


logger = logging.getLogger(__name__)


def _sweeper_enabled() -> bool:
    return settings.scheduler_enabled and not settings.is_testing and not is_running_tests()


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    # Startup
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(
        f"Environment: {settings.environment}; hold TTL {settings.reservation_timeout_minutes}m, "
        f"sweep every {settings.cleanup_job_interval_seconds}s, timezone {settings.timezone}"
    )

    sweeper = ExpirySweeper()
    app.state.expiry_sweeper = sweeper
    if _sweeper_enabled():
        sweeper.start()
    else:
        logger.info("Expiry sweeper disabled")

    yield

    # Shutdown
    logger.info(f"{BRAND_NAME} API shutting down...")
    if sweeper.is_running:
        sweeper.stop()


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

app.add_middleware(PrometheusMiddleware)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")

app.include_router(api_v1)
app.include_router(health_v1.router)
app.include_router(prometheus_v1.router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint - API information"""
    return {"message": f"Welcome to the {BRAND_NAME} API", "version": API_VERSION, "docs": "/docs"}
