"""
Browser pool manager for ToolTip Companion
Owns the shared Playwright browser(s) and hands out one page per operation
"""

import asyncio
from typing import Optional, List
from playwright.async_api import async_playwright, Browser, BrowserContext, Page
import logging
from datetime import datetime

from config import settings

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BrowserUnavailableError(RuntimeError):
    """Raised when the pool cannot supply a browser page"""
    pass


class BrowserPool:
    """
    Manages long-lived Playwright browsers with bounded page concurrency.

    With the default pool size of one this is the single shared browser:
    launched lazily on first use and reused across requests. Every crawl or
    scan gets its own context and page, closed again on release.
    """

    def __init__(
        self,
        pool_size: int = settings.BROWSER_POOL_SIZE,
        max_concurrent_pages: int = settings.BROWSER_MAX_CONCURRENT_PAGES,
        max_pages_per_browser: int = settings.BROWSER_MAX_PAGES,
        browser_timeout: int = settings.BROWSER_TIMEOUT,
        acquire_timeout: int = settings.BROWSER_ACQUIRE_TIMEOUT,
    ):
        """
        Initialize browser pool.

        Args:
            pool_size: Number of browser instances to maintain
            max_concurrent_pages: Max pages open at once across all browsers
            max_pages_per_browser: Pages served before an idle browser is recycled
            browser_timeout: Max seconds an idle browser can live before recycling
            acquire_timeout: Seconds to wait for a free page slot
        """
        self.pool_size = max(1, pool_size)
        self.max_concurrent_pages = max(1, max_concurrent_pages)
        self.max_pages_per_browser = max_pages_per_browser
        self.browser_timeout = browser_timeout
        self.acquire_timeout = acquire_timeout

        self.playwright = None
        self.browsers: List[dict] = []
        self.semaphore = asyncio.Semaphore(self.max_concurrent_pages)
        self._lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self):
        """Launch the pool's browsers (idempotent)"""
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            try:
                logger.info(f"🚀 Initializing browser pool with {self.pool_size} browser(s)...")
                self.playwright = await async_playwright().start()

                for i in range(self.pool_size):
                    browser = await self._create_browser()
                    self.browsers.append(self._new_info(browser))
                    logger.info(f"✅ Browser {i+1}/{self.pool_size} launched")

                self._initialized = True

            except Exception as e:
                logger.error(f"❌ Failed to initialize browser pool: {str(e)}")
                await self._shutdown()
                raise BrowserUnavailableError(f"Failed to launch browser: {str(e)}") from e

    @staticmethod
    def _new_info(browser: Browser) -> dict:
        return {
            "browser": browser,
            "created_at": datetime.now(),
            "page_count": 0,
            "active_pages": 0,
        }

    async def _create_browser(self) -> Browser:
        """Create a new browser instance with container-friendly settings"""
        return await self.playwright.chromium.launch(
            headless=True,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",  # Prevents memory issues in Docker
                "--no-sandbox",  # Required in some containerized environments
                "--disable-setuid-sandbox",
                "--disable-gpu",
            ],
        )

    async def _replace_browser(self, info: dict, reason: str):
        logger.info(f"♻️  Relaunching browser ({reason})")
        try:
            await info["browser"].close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing stale browser: {e}")
        info.update(self._new_info(await self._create_browser()))

    async def _select_browser(self) -> dict:
        """Pick the least loaded browser, relaunching or recycling it if needed"""
        info = min(self.browsers, key=lambda b: b["active_pages"])

        if not info["browser"].is_connected():
            await self._replace_browser(info, "disconnected")
        elif info["active_pages"] == 0:
            age = (datetime.now() - info["created_at"]).total_seconds()
            if age > self.browser_timeout or info["page_count"] >= self.max_pages_per_browser:
                await self._replace_browser(
                    info, f"age: {age:.0f}s, pages: {info['page_count']}"
                )

        return info

    async def acquire(self) -> tuple[Browser, BrowserContext, Page]:
        """
        Acquire a fresh page from the pool.

        Returns:
            Tuple of (browser, context, page)

        Raises:
            BrowserUnavailableError: If no page slot frees up in time or the
                browser cannot open a page
        """
        await self.initialize()

        try:
            await asyncio.wait_for(self.semaphore.acquire(), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            raise BrowserUnavailableError(
                f"No browser page available after {self.acquire_timeout}s "
                f"({self.max_concurrent_pages} pages in use)"
            )

        async with self._lock:
            try:
                browser_info = await self._select_browser()
            except Exception as e:
                self.semaphore.release()
                raise BrowserUnavailableError(f"Failed to relaunch browser: {str(e)}") from e

            browser_info["active_pages"] += 1
            browser_info["page_count"] += 1

        browser = browser_info["browser"]
        try:
            context = await browser.new_context(
                viewport={"width": settings.VIEWPORT_WIDTH, "height": settings.VIEWPORT_HEIGHT},
                user_agent=USER_AGENT,
            )
            page = await context.new_page()
        except Exception as e:
            logger.error(f"❌ Failed to create browser context/page: {str(e)}")
            await self._mark_released(browser)
            raise BrowserUnavailableError(f"Failed to open page: {str(e)}") from e

        logger.debug(
            f"Page acquired (browser page count: {browser_info['page_count']}, "
            f"active: {browser_info['active_pages']})"
        )
        return browser, context, page

    async def _mark_released(self, browser: Browser):
        async with self._lock:
            for info in self.browsers:
                if info["browser"] is browser:
                    info["active_pages"] = max(0, info["active_pages"] - 1)
                    break
        self.semaphore.release()

    async def release(self, browser: Browser, context: BrowserContext, page: Page):
        """
        Close a page and its context and free its slot.

        Args:
            browser: Browser instance
            context: Browser context
            page: Page instance
        """
        try:
            await page.close()
            await context.close()
        except Exception as e:
            logger.warning(f"⚠️  Error releasing page: {str(e)}")
        finally:
            await self._mark_released(browser)

    async def health_check(self) -> dict:
        """
        Check health of all browsers in the pool.

        Returns:
            Dictionary with health status
        """
        async with self._lock:
            total = len(self.browsers)
            active_pages = sum(b["active_pages"] for b in self.browsers)
            connected = sum(1 for b in self.browsers if b["browser"].is_connected())

            ages = [
                (datetime.now() - b["created_at"]).total_seconds()
                for b in self.browsers
            ]
            avg_age = sum(ages) / len(ages) if ages else 0

            page_counts = [b["page_count"] for b in self.browsers]
            avg_pages = sum(page_counts) / len(page_counts) if page_counts else 0

            return {
                "total_browsers": total,
                "connected_browsers": connected,
                "active_pages": active_pages,
                "available_pages": self.max_concurrent_pages - active_pages,
                "average_age_seconds": round(avg_age, 2),
                "average_page_count": round(avg_pages, 2),
                "status": "healthy" if active_pages < self.max_concurrent_pages else "saturated",
            }

    async def _shutdown(self):
        for info in self.browsers:
            try:
                await info["browser"].close()
            except Exception as e:
                logger.warning(f"⚠️  Error closing browser: {str(e)}")

        self.browsers.clear()

        if self.playwright:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.warning(f"⚠️  Error stopping Playwright: {str(e)}")
            self.playwright = None

        self._initialized = False

    async def cleanup(self):
        """Close all browsers and stop Playwright"""
        logger.info("🧹 Cleaning up browser pool...")

        async with self._lock:
            await self._shutdown()

        logger.info("✅ Browser pool cleaned up")


# Global browser pool instance
_browser_pool: Optional[BrowserPool] = None


async def get_browser_pool() -> BrowserPool:
    """
    Get or create the global browser pool instance.

    Returns:
        BrowserPool instance
    """
    global _browser_pool

    if _browser_pool is None:
        _browser_pool = BrowserPool()
        await _browser_pool.initialize()

    return _browser_pool


async def close_browser_pool():
    """Close the global browser pool"""
    global _browser_pool

    if _browser_pool is not None:
        await _browser_pool.cleanup()
        _browser_pool = None
