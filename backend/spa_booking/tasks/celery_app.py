# backend/spa_booking/tasks/celery_app.py
"""
Celery application configuration for the Spa Booking platform.

This module sets up the Celery app with Redis as the broker,
configures task serialization, timezone, and the beat schedule.
"""

import logging
from typing import Any, Dict, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from ..core.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    celery_app = Celery("spa_booking", broker=settings.broker_url)

    celery_app.conf.update(
        {
            # Task settings
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": settings.timezone,
            "enable_utc": True,
            "task_ignore_result": True,
            # Worker settings
            "worker_prefetch_multiplier": 1,
            "worker_hijack_root_logger": False,
            # Task execution settings
            "task_soft_time_limit": 120,
            "task_time_limit": 300,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "beat_schedule_filename": "celerybeat-schedule",
        }
    )
    celery_app.conf.imports = ("spa_booking.tasks.booking_tasks",)

    from .beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule()
    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


class BaseTask(Task):  # type: ignore[misc]
    """Base task that logs failures with task context."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logging.getLogger(__name__).error(
            f"Task {self.name}[{task_id}] failed with exception: {exc}",
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)


celery_app = create_celery_app()
celery_app.Task = cast(Type[Task], BaseTask)


@celery_app.task(name="spa_booking.tasks.health_check")  # type: ignore[misc]
def health_check() -> Dict[str, str]:
    """Simple health check task to verify Celery is working."""
    from datetime import datetime, timezone

    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
