"""Celery worker configuration.

Background work for the lifecycle engine:
- Legacy status backfill (on demand)
- Nightly strict-mode readiness validation (dry run)
- Customer stats repair sweeps
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

# Create Celery app
celery_app = Celery(
    "cleanops_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=900,  # backfill sweeps can scan 20k rows
    task_soft_time_limit=840,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    # Result backend settings
    result_expires=24 * 3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Report strict-mode readiness nightly without writing anything
        "validate-booking-lifecycle": {
            "task": "app.tasks.run_lifecycle_backfill",
            "schedule": crontab(hour=settings.backfill_validate_hour, minute=0),
            "kwargs": {"dry_run": True},
        },
        # Repair customer counters weekly
        "recompute-customer-stats": {
            "task": "app.tasks.recompute_customer_stats",
            "schedule": crontab(hour=settings.backfill_validate_hour, minute=30, day_of_week=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
