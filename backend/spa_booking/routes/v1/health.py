# backend/spa_booking/routes/v1/health.py
"""
Health check endpoint for monitoring and load balancer probes.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...api.dependencies import get_db
from ...core.config import settings
from ...core.constants import API_VERSION, BRAND_NAME
from ...schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request, db: Session = Depends(get_db)) -> HealthResponse:
    """Liveness plus a trivial database round trip."""
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error(f"Health check database probe failed: {exc}")
        database = "error"

    sweeper = getattr(request.app.state, "expiry_sweeper", None)
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        service=f"{BRAND_NAME} API",
        version=API_VERSION,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc),
        database=database,
        sweeper_running=bool(sweeper and sweeper.is_running),
    )
