"""
Proactive Scraper for ToolTip Companion

Ahead of any user interaction, clicks every labelled interactive element of a
page and stores a preview for each one that visibly changes the page. The
resulting element list is cached per URL in Redis so the API process and the
Celery workers share it.
"""

import asyncio
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from playwright.async_api import Page

from api.models import ClickableElement, ScrapeResult
from config import settings
from core.cache import SCRAPE_CACHE_PREFIX, get_optional_redis_client
from scraper.artifacts import ArtifactGenerator, find_artifact, get_artifact_generator, save_artifact
from scraper.change_detector import ChangeDetector
from scraper.discovery import ElementDiscovery
from scraper.interactions import InteractionChain, InteractionTarget

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], Awaitable[None]]


def _human_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.2f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024


class ProactiveScraper:
    """
    Discovers, clicks and previews the interactive elements of a page.
    """

    def __init__(
        self,
        pool=None,
        artifact_generator: Optional[ArtifactGenerator] = None,
        preview_dir: str = settings.PREVIEW_DIR,
        max_elements: int = settings.MAX_ELEMENTS_PER_SCRAPE,
        redis_getter=get_optional_redis_client,
    ):
        """
        Args:
            pool: BrowserPool (defaults to the global pool on first use)
            artifact_generator: ArtifactGenerator (defaults to the global one)
            preview_dir: Directory where element previews are written
            max_elements: Max elements clicked per page
            redis_getter: Callable returning a RedisClient or None
        """
        self._pool = pool
        self.artifacts = artifact_generator or get_artifact_generator()
        self.preview_dir = preview_dir
        self.max_elements = max_elements
        self._redis_getter = redis_getter

    async def _get_pool(self):
        if self._pool is None:
            from core.browser import get_browser_pool

            self._pool = await get_browser_pool()
        return self._pool

    def get_cached_result(self, url: str) -> Optional[ScrapeResult]:
        redis_client = self._redis_getter()
        if redis_client is None:
            return None

        cached = redis_client.get_cached_scrape_result(url)
        if not cached:
            return None
        try:
            return ScrapeResult.model_validate(cached)
        except ValueError as e:
            logger.warning(f"⚠️  Discarding unreadable cached scrape for {url}: {str(e)}")
            return None

    def _cache_result(self, result: ScrapeResult):
        redis_client = self._redis_getter()
        if redis_client is not None:
            redis_client.cache_scrape_result(result.url, result.model_dump(mode="json"))

    async def scrape_page(
        self,
        url: str,
        use_cache: bool = True,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ScrapeResult:
        """
        Scrape a page and generate previews for its interactive elements.

        Args:
            url: Page URL (already normalised)
            use_cache: Return the cached result when one exists
            progress_callback: Awaited with (current, total, message) after
                each element

        Returns:
            ScrapeResult (elements whose click failed have no preview)

        Raises:
            BrowserUnavailableError: If no page can be acquired
            playwright TimeoutError: If the initial navigation times out
        """
        if use_cache:
            cached = await asyncio.to_thread(self.get_cached_result, url)
            if cached is not None:
                logger.info(f"💾 Using cached proactive scrape for {url}")
                return cached

        logger.info(f"🚀 Starting proactive scrape for {url}")
        pool = await self._get_pool()
        browser, context, page = await pool.acquire()

        try:
            await page.goto(url, wait_until="networkidle", timeout=settings.NAVIGATION_TIMEOUT_MS)

            elements = await ElementDiscovery(page).discover(require_label=True, limit=self.max_elements)
            total = len(elements)

            for index, element in enumerate(elements, start=1):
                try:
                    await self._process_element(page, url, element)
                except Exception as e:
                    logger.warning(f"⚠️  Failed to process element {element.selector}: {str(e)}")

                if progress_callback is not None:
                    await progress_callback(index, total, f"Processed {element.selector}")

        finally:
            await pool.release(browser, context, page)

        result = ScrapeResult(
            url=url,
            elements=elements,
            scraped_at=datetime.now(timezone.utc).isoformat(),
            total_elements=len(elements),
            successful_previews=sum(1 for element in elements if element.preview_id),
        )
        await asyncio.to_thread(self._cache_result, result)

        logger.info(
            f"✅ Proactive scrape of {url} complete: "
            f"{result.successful_previews}/{result.total_elements} previews"
        )
        return result

    async def _process_element(self, page: Page, url: str, element: ClickableElement):
        """Click one element and attach a preview to it when the page changed"""
        target = InteractionTarget.from_element(element)
        chain = InteractionChain(page)
        detector = ChangeDetector(page)

        start_url = page.url
        before = await page.screenshot(full_page=True)
        baseline = await detector.probe_ui_changes()

        # Page state is unknown from the click until a verdict says otherwise
        dirty = False
        try:
            await chain.scroll_into_view(target)
            await asyncio.sleep(0.5)

            outcome = await chain.interact(target)
            if not outcome.succeeded:
                return
            dirty = True

            await detector.wait_for_ui_settle()
            after = await page.screenshot(full_page=True)

            verdict = await detector.detect(before, after, baseline=baseline)
            dirty = verdict.changed
            if verdict.changed:
                artifact = await asyncio.to_thread(self.artifacts.generate, before, after)
                preview_id = str(uuid.uuid4())
                save_artifact(artifact, self.preview_dir, preview_id)
                element.preview_id = preview_id
                element.preview_url = f"/api/element-preview/{preview_id}"
                logger.info(f"📸 Preview for {element.selector} ({verdict.reason} change)")
        finally:
            await self._restore_page(page, url, start_url, changed=dirty)

    async def _restore_page(self, page: Page, url: str, start_url: str, changed: bool):
        """Bring the page back to its original state before the next element"""
        if page.url != start_url:
            try:
                await page.go_back(wait_until="networkidle", timeout=settings.NAVIGATION_TIMEOUT_MS)
                if page.url == start_url:
                    return
            except Exception as e:
                logger.debug(f"go_back failed, re-navigating: {e}")
            await page.goto(url, wait_until="networkidle", timeout=settings.NAVIGATION_TIMEOUT_MS)
        elif changed:
            await page.goto(url, wait_until="networkidle", timeout=settings.NAVIGATION_TIMEOUT_MS)

    def get_element_preview(self, preview_id: str):
        """(path, media_type) of a stored preview, or None"""
        return find_artifact(self.preview_dir, preview_id)

    def clear_cache(self) -> int:
        """Drop every cached scrape result (previews stay on disk)"""
        redis_client = self._redis_getter()
        if redis_client is None:
            return 0
        deleted = redis_client.clear_cache(f"{SCRAPE_CACHE_PREFIX}*")
        logger.info(f"🧹 Cleared {deleted} cached scrape results")
        return deleted

    def stats(self) -> dict:
        redis_client = self._redis_getter()
        cached_urls = redis_client.count_keys(f"{SCRAPE_CACHE_PREFIX}*") if redis_client else 0

        previews: List[Path] = []
        if os.path.isdir(self.preview_dir):
            previews = [path for path in Path(self.preview_dir).iterdir() if path.is_file()]
        preview_bytes = sum(path.stat().st_size for path in previews)

        return {
            "cached_urls": cached_urls,
            "total_previews": len(previews),
            "preview_bytes": preview_bytes,
            "cache_size": _human_size(preview_bytes),
        }


# Global proactive scraper instance
_proactive_scraper: Optional[ProactiveScraper] = None


def get_proactive_scraper() -> ProactiveScraper:
    global _proactive_scraper

    if _proactive_scraper is None:
        _proactive_scraper = ProactiveScraper()

    return _proactive_scraper
