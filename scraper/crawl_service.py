"""
Crawl Orchestrator for ToolTip Companion

A crawl loads a page, clicks one target element, captures before/after
screenshots and stores a preview artifact for it. Crawls run as background
asyncio tasks; clients poll their status by crawl id.

Status lifecycle: pending → processing → completed | failed
(pending → failed is allowed for crawls that fail before they start).
"""

import asyncio
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Set, Tuple

from api.models import CrawlRequest, CrawlState, CrawlStatus
from config import settings
from scraper.artifacts import ArtifactGenerator, find_artifact, get_artifact_generator, save_artifact
from scraper.change_detector import screenshots_identical
from scraper.interactions import InteractionChain, InteractionTarget

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    CrawlState.PENDING: {CrawlState.PENDING, CrawlState.PROCESSING, CrawlState.FAILED},
    CrawlState.PROCESSING: {CrawlState.PROCESSING, CrawlState.COMPLETED, CrawlState.FAILED},
    CrawlState.COMPLETED: set(),
    CrawlState.FAILED: set(),
}


class InvalidTransitionError(Exception):
    """Raised when a crawl status update violates the status lifecycle"""
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CrawlRegistry:
    """
    In-memory map of crawl id → CrawlStatus.

    Lost on restart. Updates are validated against the status lifecycle and
    progress never moves backwards.
    """

    def __init__(self):
        self._crawls: Dict[str, CrawlStatus] = {}

    def create(self, crawl_id: str) -> CrawlStatus:
        now = _now()
        status = CrawlStatus(crawl_id=crawl_id, created_at=now, updated_at=now)
        self._crawls[crawl_id] = status
        return status

    def get(self, crawl_id: str) -> Optional[CrawlStatus]:
        return self._crawls.get(crawl_id)

    def update(self, crawl_id: str, **changes) -> CrawlStatus:
        """
        Apply changes to a crawl's status.

        Raises:
            KeyError: If the crawl id is unknown
            InvalidTransitionError: If the crawl is terminal or the new
                status is not reachable from the current one
        """
        current = self._crawls[crawl_id]
        new_state = CrawlState(changes.get("status", current.status))

        if new_state not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidTransitionError(
                f"Crawl {crawl_id}: cannot move from {current.status.value} to {new_state.value}"
            )

        if "progress" in changes:
            changes["progress"] = max(current.progress, min(100, int(changes["progress"])))

        changes["status"] = new_state
        updated = current.model_copy(update={**changes, "updated_at": _now()})
        self._crawls[crawl_id] = updated
        return updated

    def __len__(self):
        return len(self._crawls)


class CrawlService:
    """
    Starts crawls in the background and tracks their status.
    """

    def __init__(
        self,
        pool=None,
        artifact_generator: Optional[ArtifactGenerator] = None,
        artifact_dir: str = settings.ARTIFACT_DIR,
    ):
        """
        Args:
            pool: BrowserPool (defaults to the global pool on first use)
            artifact_generator: ArtifactGenerator (defaults to the global one)
            artifact_dir: Directory where artifacts and debug images are written
        """
        self._pool = pool
        self.artifacts = artifact_generator or get_artifact_generator()
        self.artifact_dir = artifact_dir
        self.registry = CrawlRegistry()
        self._tasks: Set[asyncio.Task] = set()

    async def _get_pool(self):
        if self._pool is None:
            from core.browser import get_browser_pool

            self._pool = await get_browser_pool()
        return self._pool

    async def start_crawl(self, request: CrawlRequest) -> str:
        """
        Register a crawl and schedule it in the background.

        Returns:
            The new crawl id (the crawl is pending when this returns)
        """
        crawl_id = str(uuid.uuid4())
        self.registry.create(crawl_id)

        task = asyncio.create_task(self.process_crawl(crawl_id, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(f"🚀 Crawl {crawl_id} queued for {request.url}")
        return crawl_id

    def _set(self, crawl_id: str, **changes):
        try:
            self.registry.update(crawl_id, **changes)
        except InvalidTransitionError as e:
            logger.error(f"❌ {str(e)}")

    async def process_crawl(self, crawl_id: str, request: CrawlRequest):
        """Run one crawl to completion, recording every outcome in the registry"""
        url = str(request.url)
        page_handle: Optional[Tuple] = None

        try:
            self._set(crawl_id, status=CrawlState.PROCESSING, progress=10)

            pool = await self._get_pool()
            page_handle = await pool.acquire()
            page = page_handle[2]

            logger.info(f"🌐 Crawl {crawl_id}: navigating to {url}")
            await page.goto(url, wait_until="networkidle", timeout=settings.NAVIGATION_TIMEOUT_MS)
            self._set(crawl_id, progress=30)

            before = await page.screenshot(full_page=False)
            logger.info(f"📸 Crawl {crawl_id}: before screenshot ({len(before)} bytes)")
            self._set(crawl_id, progress=50)

            target = InteractionTarget.from_request(request)
            chain = InteractionChain(page)
            outcome = await chain.interact(target)
            if not outcome.succeeded:
                logger.warning(
                    f"⚠️  Crawl {crawl_id}: could not interact with {target.describe()}, "
                    f"continuing with synthetic clicks ("
                    + "; ".join(f"{name}: {error}" for name, error in outcome.errors.items())
                    + ")"
                )

            await asyncio.sleep(request.wait_time)
            self._set(crawl_id, progress=70)

            after = await page.screenshot(full_page=False)
            after = await self._retry_until_changed(crawl_id, page, chain, target, request.wait_time, before, after)

            if screenshots_identical(before, after):
                logger.warning(f"⚠️  Crawl {crawl_id}: no visible change after click")
                self._write_debug_images(crawl_id, before, after)
            self._set(crawl_id, progress=90)

            artifact = await asyncio.to_thread(self.artifacts.generate, before, after)
            loading = await asyncio.to_thread(self.artifacts.generate_loading)
            save_artifact(artifact, self.artifact_dir, crawl_id)
            save_artifact(loading, self.artifact_dir, f"{crawl_id}_loading")

            self._set(
                crawl_id,
                status=CrawlState.COMPLETED,
                progress=100,
                gif_available=True,
                gif_url=f"/api/gif/{crawl_id}",
                loading_gif_url=f"/api/loading-gif/{crawl_id}",
            )
            logger.info(f"✅ Crawl {crawl_id} completed")

        except Exception as e:
            logger.error(f"❌ Crawl {crawl_id} failed: {str(e)}")
            self._set(crawl_id, status=CrawlState.FAILED, error=str(e) or type(e).__name__)

        finally:
            if page_handle is not None:
                await self._pool.release(*page_handle)

    async def _retry_until_changed(self, crawl_id, page, chain, target, wait_time, before, after) -> bytes:
        """Synthetic clicks until the after-shot differs, waiting longer each attempt"""
        attempt = 0
        while screenshots_identical(before, after) and attempt < settings.SYNTHETIC_CLICK_ATTEMPTS:
            attempt += 1
            logger.info(f"🔁 Crawl {crawl_id}: no change yet, synthetic click attempt {attempt}")
            await chain.synthetic_click(target)
            await asyncio.sleep(wait_time * attempt)
            after = await page.screenshot(full_page=False)
        return after

    def _write_debug_images(self, crawl_id: str, before: bytes, after: bytes):
        if not settings.WRITE_DEBUG_IMAGES:
            return
        try:
            os.makedirs(self.artifact_dir, exist_ok=True)
            for suffix, data in (("before", before), ("after", after)):
                with open(os.path.join(self.artifact_dir, f"{crawl_id}_debug_{suffix}.png"), "wb") as f:
                    f.write(data)
        except OSError as e:
            logger.warning(f"⚠️  Could not write debug images for {crawl_id}: {str(e)}")

    def get_crawl_status(self, crawl_id: str) -> Optional[CrawlStatus]:
        return self.registry.get(crawl_id)

    def get_artifact(self, crawl_id: str):
        """(path, media_type) of a crawl's artifact, or None"""
        return find_artifact(self.artifact_dir, crawl_id)

    def get_loading_artifact(self, crawl_id: str):
        """(path, media_type) of a crawl's loading artifact, or None"""
        return find_artifact(self.artifact_dir, f"{crawl_id}_loading")


# Global crawl service instance
_crawl_service: Optional[CrawlService] = None


def get_crawl_service() -> CrawlService:
    """
    Get or create the global crawl service.

    Returns:
        CrawlService instance
    """
    global _crawl_service

    if _crawl_service is None:
        _crawl_service = CrawlService()

    return _crawl_service
