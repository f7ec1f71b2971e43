"""
Celery background tasks for ToolTip Companion
Proactive scraping, artifact cleanup and pool monitoring in background workers
"""

import asyncio
import logging
import os
import time
from pathlib import Path

from celery import Task

from config import settings
from core.browser import BrowserPool
from core.celery import celery_app
from scraper.proactive import ProactiveScraper

logger = logging.getLogger(__name__)


class CallbackTask(Task):
    """
    Custom Celery task class with logging callbacks.
    """

    def on_success(self, retval, task_id, args, kwargs):
        """Called when task succeeds"""
        logger.info(f"✅ Task {task_id} completed successfully")

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called when task fails"""
        logger.error(f"❌ Task {task_id} failed: {str(exc)}")


async def _scrape_async(url: str, task=None) -> dict:
    """
    Run one proactive scrape on a pool owned by this task.

    The pool's asyncio primitives belong to the task's event loop, so every
    task launches and closes its own browser.
    """
    pool = BrowserPool(pool_size=1, max_concurrent_pages=1)

    async def report(current: int, total: int, message: str):
        if task is None:
            return
        percent = int(current / total * 100) if total else 100
        task.update_state(
            state="PROGRESS",
            meta={
                "current": current,
                "total": total,
                "percent": percent,
                "status": message,
                "url": url,
            },
        )

    try:
        await report(0, 1, "Loading page")
        scraper = ProactiveScraper(pool=pool)
        result = await scraper.scrape_page(url, use_cache=True, progress_callback=report)
        return result.model_dump(mode="json")
    finally:
        await pool.cleanup()


@celery_app.task(
    bind=True,
    base=CallbackTask,
    name="tasks.proactive_scrape",
)
def proactive_scrape(self, url: str) -> dict:
    """
    Celery task to proactively scrape a page.

    Args:
        url: Normalised page URL

    Returns:
        ScrapeResult as a dictionary (also written to the shared scrape cache)
    """
    logger.info(f"🚀 Starting proactive scrape task {self.request.id} for {url}")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_scrape_async(url, task=self))
    finally:
        loop.close()


def _delete_older_than(directory: str, cutoff: float) -> int:
    if not os.path.isdir(directory):
        return 0

    deleted = 0
    for path in Path(directory).iterdir():
        if path.is_file() and path.stat().st_mtime < cutoff:
            path.unlink()
            deleted += 1
    return deleted


@celery_app.task(name="tasks.cleanup_old_artifacts")
def cleanup_old_artifacts(max_age_seconds: int = None) -> dict:
    """
    Periodic task deleting crawl artifacts and element previews older than
    the retention window. Scheduled hourly in core.celery beat_schedule.
    """
    max_age_seconds = max_age_seconds or settings.ARTIFACT_RETENTION_SECONDS
    cutoff = time.time() - max_age_seconds

    try:
        deleted = {
            "artifacts": _delete_older_than(settings.ARTIFACT_DIR, cutoff),
            "previews": _delete_older_than(settings.PREVIEW_DIR, cutoff),
        }
        logger.info(f"🧹 Cleaned up {deleted['artifacts']} artifacts and {deleted['previews']} previews")
        return deleted
    except OSError as e:
        logger.error(f"❌ Cleanup task failed: {str(e)}")
        raise


@celery_app.task(name="tasks.get_pool_health")
def get_pool_health() -> dict:
    """
    Task to check that a worker can launch a browser (for monitoring).
    """
    async def _check():
        pool = BrowserPool(pool_size=1, max_concurrent_pages=1)
        try:
            await pool.initialize()
            return await pool.health_check()
        finally:
            await pool.cleanup()

    try:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(_check())
        finally:
            loop.close()
    except Exception as e:
        logger.error(f"❌ Pool health check failed: {str(e)}")
        return {"status": "error", "error": str(e)}
