"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from budget_keeper.config import settings

celery_app = Celery(
    "budget-keeper",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,
    task_soft_time_limit=270,
    # Re-queue tasks if a worker crashes mid-execution
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_retry_delay=60,
)


class RetryableTask(celery_app.Task):
    """
    Base task class with automatic exponential-backoff retry on failure.

    Both budget sweeps are idempotent for a given day, so retrying a failed run is safe.
    """

    abstract = True
    autoretry_for = (Exception,)
    max_retries = 3
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True


celery_app.Task = RetryableTask


from budget_keeper.workers.tasks import budget_tasks  # noqa: F401,E402

# Beat schedule (periodic tasks)
celery_app.conf.beat_schedule = {
    "process-budget-rollovers-daily": {
        "task": "process_budget_rollovers",
        "schedule": crontab(hour=settings.BUDGET_ROLLOVER_HOUR, minute=0),
    },
    "update-budget-spending-daily": {
        "task": "update_budget_spending",
        "schedule": crontab(hour=settings.BUDGET_SPENDING_REFRESH_HOUR, minute=0),
    },
}
