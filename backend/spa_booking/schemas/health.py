"""Health check response schema."""

from datetime import datetime

from .base import StandardizedModel


class HealthResponse(StandardizedModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: datetime
    database: str
    sweeper_running: bool
