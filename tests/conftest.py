"""
Shared fixtures: an in-memory stand-in for RedisClient, fabricated
screenshots and mocked Playwright pages.
"""

import fnmatch
import io
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image


class FakeRedisClient:
    """Implements the RedisClient methods the scraper uses, in memory"""

    def __init__(self):
        self.store = {}

    def get_bytes(self, key):
        return self.store.get(key)

    def set_bytes(self, key, data, ttl=None):
        self.store[key] = data
        return True

    def cache_scrape_result(self, url, result, ttl=3600):
        self.store[f"cache:scrape:{url}"] = result
        return True

    def get_cached_scrape_result(self, url):
        return self.store.get(f"cache:scrape:{url}")

    def count_keys(self, pattern):
        return sum(1 for key in self.store if fnmatch.fnmatch(key, pattern))

    def clear_cache(self, pattern="cache:*"):
        keys = [key for key in self.store if fnmatch.fnmatch(key, pattern)]
        for key in keys:
            del self.store[key]
        return len(keys)


def make_png(color="white", size=(320, 240)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_screenshot():
    return make_png


@pytest.fixture
def fake_redis():
    return FakeRedisClient()


@pytest.fixture
def before_png():
    return make_png("white")


@pytest.fixture
def after_png():
    return make_png("navy")


def make_page(url="https://example.com/"):
    """A Playwright Page mock with async methods and a sync locator()"""
    page = MagicMock()
    page.url = url
    page.goto = AsyncMock()
    page.go_back = AsyncMock()
    page.click = AsyncMock()
    page.evaluate = AsyncMock()
    page.screenshot = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.mouse = MagicMock()
    page.mouse.move = AsyncMock()
    page.mouse.down = AsyncMock()
    page.mouse.up = AsyncMock()
    page.mouse.click = AsyncMock()

    locator = MagicMock()
    locator.first.click = AsyncMock()
    locator.first.bounding_box = AsyncMock(return_value={"x": 10, "y": 20, "width": 100, "height": 40})
    page.locator = MagicMock(return_value=locator)
    return page


@pytest.fixture
def page():
    return make_page()


class FakePool:
    """BrowserPool stand-in handing out one mocked page"""

    def __init__(self, page):
        self.page = page
        self.browser = MagicMock()
        self.context = MagicMock()
        self.acquired = 0
        self.released = 0

    async def acquire(self):
        self.acquired += 1
        return self.browser, self.context, self.page

    async def release(self, browser, context, page):
        self.released += 1


@pytest.fixture
def pool(page):
    return FakePool(page)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Skip the fixed waits between browser steps"""
    sleep = AsyncMock()
    monkeypatch.setattr("asyncio.sleep", sleep)
    return sleep
