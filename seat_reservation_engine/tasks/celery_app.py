"""
Celery application configuration for background tasks.
"""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from ..config import get_settings
from ..utils.logging_config import setup_logging

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "seat_reservation_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "seat_reservation_engine.tasks.reaper_tasks",
        "seat_reservation_engine.tasks.notification_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Periodic tasks configuration
celery_app.conf.beat_schedule = {
    "sweep-expired-holds": {
        "task": "sweep_expired_holds_task",
        "schedule": float(settings.reaper_interval_seconds),
        # A missed sweep is superseded by the next one
        "options": {"expires": float(settings.reaper_interval_seconds)},
    },
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Use the application's logging configuration instead of Celery's."""
    setup_logging(
        log_level=settings.log_level,
        enable_json_logging=settings.enable_json_logging or settings.environment == "production",
    )
