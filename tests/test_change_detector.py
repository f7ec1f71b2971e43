"""
Tests for change detection
"""
from unittest.mock import AsyncMock

from playwright.async_api import TimeoutError as PlaywrightTimeout

from scraper.change_detector import OVERLAY_PATTERNS, ChangeDetector, screenshots_identical


class TestScreenshotsIdentical:
    def test_identical(self):
        assert screenshots_identical(b"abc" * 10, b"abc" * 10)

    def test_difference_after_first_kilobyte(self):
        before = b"\x00" * 5000
        after = b"\x00" * 4000 + b"\x01" + b"\x00" * 999
        assert len(before) == len(after)
        assert not screenshots_identical(before, after)

    def test_length_mismatch(self):
        assert not screenshots_identical(b"abc", b"abcd")

    def test_empty_is_never_identical(self):
        assert not screenshots_identical(b"", b"")
        assert not screenshots_identical(None, b"abc")


class TestChangeDetector:
    async def test_screenshot_change(self, page):
        verdict = await ChangeDetector(page).detect(b"before", b"after!")
        assert verdict.changed
        assert verdict.reason == "screenshot"
        page.evaluate.assert_not_awaited()

    async def test_dom_change_when_screenshots_match(self, page):
        page.evaluate = AsyncMock(return_value={"modals": 1, "new_content": 0, "overlays": 0})

        verdict = await ChangeDetector(page).detect(b"same", b"same")

        assert verdict.changed
        assert verdict.reason == "dom"
        assert verdict.indicators["modals"] == 1

    async def test_no_change(self, page):
        page.evaluate = AsyncMock(return_value={"modals": 0, "new_content": 0, "overlays": 0})

        verdict = await ChangeDetector(page).detect(b"same", b"same")

        assert not verdict.changed
        assert verdict.reason == "none"

    async def test_probe_failure_counts_as_no_indicators(self, page):
        page.evaluate = AsyncMock(side_effect=Exception("context destroyed"))
        indicators = await ChangeDetector(page).probe_ui_changes()
        assert indicators == {"modals": 0, "new_content": 0, "overlays": 0}

    async def test_settle_ignores_selector_timeout(self, page):
        page.wait_for_selector = AsyncMock(side_effect=PlaywrightTimeout("no overlay"))
        await ChangeDetector(page).wait_for_ui_settle()
        page.wait_for_selector.assert_awaited_once()

    async def test_settle_ignores_destroyed_context(self, page):
        page.wait_for_selector = AsyncMock(side_effect=Exception("Execution context was destroyed"))
        await ChangeDetector(page).wait_for_ui_settle()
        page.wait_for_selector.assert_awaited_once()

    async def test_indicators_present_before_click_are_not_a_change(self, page):
        counts = {"modals": 0, "new_content": 0, "overlays": 3}
        page.evaluate = AsyncMock(return_value=counts)

        verdict = await ChangeDetector(page).detect(b"same", b"same", baseline=dict(counts))

        assert not verdict.changed
        assert verdict.reason == "none"

    async def test_new_indicator_over_baseline_is_a_change(self, page):
        page.evaluate = AsyncMock(return_value={"modals": 1, "new_content": 0, "overlays": 3})

        verdict = await ChangeDetector(page).detect(
            b"same", b"same", baseline={"modals": 0, "new_content": 0, "overlays": 3}
        )

        assert verdict.changed
        assert verdict.reason == "dom"


class TestOverlayPatterns:
    def test_only_high_z_index_counts(self):
        overlays = OVERLAY_PATTERNS["overlays"]
        assert '[style*="z-index"]' not in overlays
        assert '[style*="z-index: 40"]' in overlays
        assert '[style*="z-index: 50"]' in overlays
        assert '[class*="z-40"]' in overlays
        assert '[class*="z-50"]' in overlays
