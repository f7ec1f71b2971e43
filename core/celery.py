"""
Celery application configuration for ToolTip Companion
Runs proactive scrapes and periodic artifact cleanup in background workers
"""

import logging

from celery import Celery
from celery.signals import (
    task_prerun,
    task_postrun,
    task_failure,
    worker_ready,
    worker_shutdown,
)
from kombu import Queue

from config import settings

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 3600.0

celery_app = Celery(
    "tooltip_companion",
    broker=settings.celery_broker,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["tasks.scraping"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Re-queue scrapes interrupted by a lost worker
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    task_time_limit=settings.TASK_TIME_LIMIT,
    task_soft_time_limit=settings.TASK_SOFT_TIME_LIMIT,
    result_expires=settings.CELERY_RESULT_EXPIRES,
    result_extended=True,
    # Each task launches its own browser
    worker_prefetch_multiplier=settings.WORKER_PREFETCH_MULTIPLIER,
    worker_max_tasks_per_child=settings.WORKER_MAX_TASKS_PER_CHILD,
    task_default_queue="default",
    task_queues=(Queue("default", routing_key="task.default"),),
    broker_connection_retry_on_startup=True,
    # celery -A core.celery beat
    beat_schedule={
        "cleanup-old-artifacts": {
            "task": "tasks.cleanup_old_artifacts",
            "schedule": CLEANUP_INTERVAL_SECONDS,
        },
    },
)

celery_app.conf.task_routes = {
    "tasks.proactive_scrape": {"queue": "default"},
    "tasks.cleanup_old_artifacts": {"queue": "default"},
    "tasks.get_pool_health": {"queue": "default"},
}


def _describe(task, args) -> str:
    if task is not None and task.name == "tasks.proactive_scrape" and args:
        return f"{task.name} ({args[0]})"
    return task.name if task is not None else "unknown task"


@worker_ready.connect
def worker_ready_handler(sender=None, **kwargs):
    logger.info("🚀 Scrape worker ready")


@worker_shutdown.connect
def worker_shutdown_handler(sender=None, **kwargs):
    logger.info("🛑 Scrape worker shutting down")


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, **kwargs):
    logger.info(f"⏳ Running {_describe(task, args)} [ID: {task_id}]")


@task_postrun.connect
def task_postrun_handler(
    sender=None, task_id=None, task=None, args=None, state=None, **kwargs
):
    logger.info(f"✅ Finished {_describe(task, args)} [ID: {task_id}] [State: {state}]")


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, args=None, **kwargs):
    logger.error(f"❌ {_describe(sender, args)} failed [ID: {task_id}]: {str(exception)}")


if __name__ == "__main__":
    # celery -A core.celery worker --loglevel=info --concurrency=2
    celery_app.start()
