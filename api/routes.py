from datetime import datetime, timezone
import asyncio
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse
from playwright.async_api import TimeoutError as PlaywrightTimeout
from pydantic import ValidationError

from api.models import (
    ChatRequest,
    ChatResponse,
    CrawlRequest,
    CrawlStartResponse,
    CrawlState,
    CrawlStatus,
    ElementsResponse,
    PageRequest,
    normalize_url,
)
from config import is_chat_configured
from core.browser import BrowserUnavailableError

logger = logging.getLogger(__name__)

# Create router
router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _browser_error(e: Exception, action: str) -> HTTPException:
    """Map a failed browser operation to the HTTP error the client sees"""
    if isinstance(e, BrowserUnavailableError):
        return HTTPException(status_code=503, detail=f"Browser unavailable: {str(e)}")
    if isinstance(e, (PlaywrightTimeout, asyncio.TimeoutError)):
        return HTTPException(
            status_code=504,
            detail="Page load timeout exceeded. The target website may be slow or unresponsive.",
        )
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(e)}")


@router.get("/")
async def root():
    return {
        "service": "ToolTip Companion Backend",
        "status": "running",
        "endpoints": {
            "health": "/health (GET)",
            "chat": "/api/chat (POST)",
            "crawl": "/api/crawl (POST)",
            "crawl_status": "/api/status/{crawl_id} (GET)",
            "gif": "/api/gif/{crawl_id} (GET)",
            "loading_gif": "/api/loading-gif/{crawl_id} (GET)",
            "elements": "/api/elements (POST)",
            "proactive_scrape": "/api/proactive-scrape (POST)",
            "element_preview": "/api/element-preview/{preview_id} (GET)",
        },
    }


@router.get("/health")
async def health_check():
    return {
        "status": "OK",
        "timestamp": _timestamp(),
        "service": "ToolTip Companion Backend",
    }


@router.get("/status/detailed")
async def detailed_status_check():
    """
    Enhanced status check with Redis, Celery, and browser pool health.

    Returns comprehensive system health information for monitoring.
    """
    status_info = {
        "api": "healthy",
        "redis": "unknown",
        "celery": "unknown",
        "browser_pool": "unknown",
        "chat_model": "configured" if is_chat_configured() else "demo_mode",
    }

    # Check Redis connection
    try:
        from core.cache import get_redis_client

        redis_client = get_redis_client()
        if redis_client.ping():
            status_info["redis"] = "connected"
            status_info["redis_stats"] = redis_client.get_stats()
        else:
            status_info["redis"] = "disconnected"
    except Exception as e:
        status_info["redis"] = f"error: {str(e)}"

    # Check Celery workers
    try:
        from core.celery import celery_app

        inspect = celery_app.control.inspect(timeout=1.0)
        active_workers = await asyncio.to_thread(inspect.active)

        if active_workers:
            status_info["celery"] = "workers_active"
            status_info["celery_workers"] = list(active_workers.keys())
        else:
            status_info["celery"] = "no_workers"
    except Exception as e:
        status_info["celery"] = f"error: {str(e)}"

    # Check browser pool (if initialized)
    try:
        from core import browser

        if browser._browser_pool and browser._browser_pool._initialized:
            status_info["browser_pool"] = await browser._browser_pool.health_check()
        else:
            status_info["browser_pool"] = "not_initialized"
    except Exception as e:
        status_info["browser_pool"] = f"error: {str(e)}"

    if "error" in str(status_info["redis"]) or "disconnected" in str(status_info["redis"]):
        status_info["overall_status"] = "degraded"
    else:
        status_info["overall_status"] = "healthy"

    return status_info


# ======================
# Chat
# ======================

@router.post("/api/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """
    Answer a chat message with the configured model, or with a demo reply
    when no API key is set.
    """
    from utils.clients.anthropic import generate_chat_response

    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required and must be a string")

    return await asyncio.to_thread(generate_chat_response, request.message)


# ======================
# Crawl
# ======================

@router.post("/api/crawl", response_model=CrawlStartResponse)
async def start_crawl(request: CrawlRequest):
    """
    Start a background crawl: load the page, click the target and build a
    before/after preview. Poll /api/status/{crawl_id} for progress.
    """
    from scraper.crawl_service import get_crawl_service

    if not request.has_target():
        raise HTTPException(
            status_code=400,
            detail="At least one of element_selector, element_text, or coordinates is required",
        )

    crawl_id = await get_crawl_service().start_crawl(request)
    return {
        "crawl_id": crawl_id,
        "status": CrawlState.PENDING,
        "message": "Crawl started successfully",
    }


@router.get("/api/status/{crawl_id}", response_model=CrawlStatus)
async def get_crawl_status(crawl_id: str):
    from scraper.crawl_service import get_crawl_service

    status = get_crawl_service().get_crawl_status(crawl_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Crawl not found")
    return status


@router.get("/api/gif/{crawl_id}")
async def get_crawl_artifact(crawl_id: str):
    from scraper.crawl_service import get_crawl_service

    found = get_crawl_service().get_artifact(crawl_id)
    if found is None:
        raise HTTPException(status_code=404, detail="GIF not found")

    path, media_type = found
    return FileResponse(path, media_type=media_type, filename=f"crawl_{crawl_id}{path.suffix}")


@router.get("/api/loading-gif/{crawl_id}")
async def get_loading_artifact(crawl_id: str):
    from scraper.crawl_service import get_crawl_service

    found = get_crawl_service().get_loading_artifact(crawl_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Loading GIF not found")

    path, media_type = found
    return FileResponse(path, media_type=media_type, filename=f"loading_{crawl_id}{path.suffix}")


@router.post("/api/elements", response_model=ElementsResponse)
async def get_page_elements(request: PageRequest):
    """List the visible interactive elements of a page"""
    from scraper.discovery import get_page_elements as discover_elements

    url = str(request.url)
    try:
        elements = await discover_elements(url)
    except Exception as e:
        logger.error(f"❌ Element discovery failed for {url}: {str(e)}")
        raise _browser_error(e, "get page elements")

    return {
        "elements": elements,
        "url": url,
        "count": len(elements),
        "timestamp": _timestamp(),
    }


# ======================
# Artifact cache
# ======================

@router.get("/api/cache/stats")
async def get_cache_stats():
    from scraper.artifacts import get_artifact_generator

    stats = await asyncio.to_thread(get_artifact_generator().stats)
    return {"cache": stats, "timestamp": _timestamp()}


@router.post("/api/cache/clear")
async def clear_artifact_cache():
    from scraper.artifacts import get_artifact_generator

    cleared = await asyncio.to_thread(get_artifact_generator().clear)
    return {
        "message": "Cache cleared successfully",
        "cleared": cleared,
        "timestamp": _timestamp(),
    }


# ======================
# Proactive scraping
# ======================

@router.post("/api/proactive-scrape")
async def proactive_scrape(request: PageRequest):
    """
    Click every labelled element of a page and return the element list with
    preview links. Results are cached per URL.
    """
    from scraper.proactive import get_proactive_scraper

    url = str(request.url)
    try:
        result = await get_proactive_scraper().scrape_page(url)
    except Exception as e:
        logger.error(f"❌ Proactive scrape failed for {url}: {str(e)}")
        raise _browser_error(e, "scrape page")

    return {
        "success": True,
        "data": result,
        "message": f"Found {result.total_elements} elements, {result.successful_previews} with previews",
    }


@router.post("/api/proactive-scrape/async")
async def proactive_scrape_async(request: PageRequest):
    """
    Submit a proactive scrape to the Celery workers.

    Poll /api/proactive-scrape/task/{task_id} for progress and the result.
    """
    from tasks.scraping import proactive_scrape as proactive_scrape_task

    try:
        task = proactive_scrape_task.delay(str(request.url))
    except Exception as e:
        logger.error(f"❌ Failed to submit proactive scrape task: {str(e)}")
        raise HTTPException(status_code=503, detail=f"Task queue unavailable: {str(e)}")

    return {
        "task_id": task.id,
        "status": "PENDING",
        "message": "Proactive scrape task submitted successfully",
        "poll_url": f"/api/proactive-scrape/task/{task.id}",
    }


@router.get("/api/proactive-scrape/task/{task_id}")
async def get_proactive_scrape_task(task_id: str):
    """
    Check the status of a background proactive scrape.

    Returns:
        - PENDING: Task is waiting in queue (or unknown)
        - STARTED: Task is being processed
        - PROGRESS: Task is in progress (current, total, percent, status, url)
        - SUCCESS: Task completed successfully (includes result)
        - FAILURE: Task failed (includes error details)
    """
    from celery.result import AsyncResult
    from core.celery import celery_app

    try:
        task = AsyncResult(task_id, app=celery_app)
        state = task.state
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to get task status: {str(e)}")

    response = {"task_id": task_id, "status": state}

    if state == "PENDING":
        response["message"] = "Task is waiting in queue"
    elif state == "STARTED":
        response["message"] = "Task is being processed"
    elif state == "PROGRESS":
        response["message"] = "Task is in progress"
        response["progress"] = task.info
    elif state == "SUCCESS":
        response["message"] = "Task completed successfully"
        response["result"] = task.result
    elif state == "FAILURE":
        response["message"] = "Task failed"
        response["error"] = str(task.info)
    else:
        response["message"] = f"Unknown state: {state}"

    return response


@router.get("/api/proactive-scrape/stats")
async def get_proactive_scrape_stats():
    from scraper.proactive import get_proactive_scraper

    stats = await asyncio.to_thread(get_proactive_scraper().stats)
    return {"success": True, "data": stats}


@router.delete("/api/proactive-scrape/cache")
async def clear_proactive_scrape_cache():
    from scraper.proactive import get_proactive_scraper

    cleared = await asyncio.to_thread(get_proactive_scraper().clear_cache)
    return {
        "success": True,
        "cleared": cleared,
        "message": "Proactive scraping cache cleared successfully",
    }


@router.get("/api/proactive-scrape/{url:path}")
async def get_cached_proactive_scrape(url: str):
    """Cached proactive scrape for a URL (the URL may be percent-encoded)"""
    from scraper.proactive import get_proactive_scraper

    try:
        url = normalize_url(url)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid URL format")

    result = await asyncio.to_thread(get_proactive_scraper().get_cached_result, url)
    if result is None:
        raise HTTPException(status_code=404, detail="No cached results found for this URL")

    return {"success": True, "data": result}


@router.get("/api/element-preview/{preview_id}")
async def get_element_preview(preview_id: str):
    from scraper.proactive import get_proactive_scraper

    found = get_proactive_scraper().get_element_preview(preview_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Preview not found")

    path, media_type = found
    return FileResponse(
        path,
        media_type=media_type,
        filename=f"{preview_id}{path.suffix}",
        content_disposition_type="inline",
    )
