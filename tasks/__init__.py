# Tasks package - Celery background tasks
from .scraping import (
    proactive_scrape,
    cleanup_old_artifacts,
    get_pool_health,
    CallbackTask,
)

__all__ = [
    "proactive_scrape",
    "cleanup_old_artifacts",
    "get_pool_health",
    "CallbackTask",
]
