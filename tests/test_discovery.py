"""
Tests for element discovery: selector priority, target URLs and filtering
"""
from unittest.mock import AsyncMock

import pytest

from scraper.discovery import (
    ElementDiscovery,
    build_selectors,
    determine_action_type,
    get_page_elements,
    resolve_target_url,
    to_clickable_element,
)


def raw_element(**overrides):
    raw = {
        "index": 0,
        "tag": "button",
        "text": "Buy now",
        "raw_id": None,
        "id": None,
        "classes": [],
        "class_name": "",
        "position": 3,
        "rect": {"x": 10, "y": 20, "width": 100, "height": 40},
        "attributes": {},
    }
    raw.update(overrides)
    return raw


class TestBuildSelectors:
    def test_priority_order(self):
        raw = raw_element(
            id="buy",
            classes=["btn", "primary"],
            attributes={"title": "Buy", "aria-label": "Buy it", "data-testid": "buy-btn", "href": None},
        )
        assert build_selectors(raw) == [
            "#buy",
            ".btn",
            ".primary",
            '[title="Buy"]',
            '[aria-label="Buy it"]',
            '[data-testid="buy-btn"]',
            "button:nth-child(3)",
        ]

    def test_nth_child_fallback_only(self):
        assert build_selectors(raw_element()) == ["button:nth-child(3)"]

    def test_attribute_values_are_quoted(self):
        raw = raw_element(attributes={"title": 'Say "hi"'})
        assert build_selectors(raw)[0] == '[title="Say \\"hi\\""]'


class TestActionType:
    def test_mapping(self):
        assert determine_action_type("a") == "link"
        assert determine_action_type("button") == "button"
        assert determine_action_type("input") == "button"
        assert determine_action_type("form") == "form"
        assert determine_action_type("div") == "custom"


class TestResolveTargetUrl:
    base = "https://example.com/shop/"

    def test_relative_href(self):
        assert resolve_target_url("a", {"href": "../about"}, self.base) == "https://example.com/about"

    def test_form_action(self):
        assert resolve_target_url("form", {"action": "/search"}, self.base) == "https://example.com/search"

    def test_data_url(self):
        assert resolve_target_url("div", {"data-url": "/cart"}, self.base) == "https://example.com/cart"

    def test_onclick_location(self):
        attributes = {"onclick": "window.location.href = '/checkout'"}
        assert resolve_target_url("div", attributes, self.base) == "https://example.com/checkout"

    def test_ignores_fragment_and_javascript(self):
        assert resolve_target_url("a", {"href": "#top"}, self.base) is None
        assert resolve_target_url("a", {"href": "javascript:void(0)"}, self.base) is None
        assert resolve_target_url("a", {"href": "mailto:hi@example.com"}, self.base) is None

    def test_href_ignored_on_non_links(self):
        assert resolve_target_url("button", {"href": "/x"}, self.base) is None


class TestToClickableElement:
    def test_coordinates_are_box_centre(self):
        element = to_clickable_element(raw_element(), "https://example.com/")
        assert element.coordinates == (60, 40)
        assert element.visible
        assert element.id == "element-0"
        assert element.selector == element.all_selectors[0]

    def test_zero_area_is_invisible(self):
        raw = raw_element(rect={"x": 0, "y": 0, "width": 0, "height": 10})
        assert not to_clickable_element(raw, "https://example.com/").visible

    def test_keeps_raw_id(self):
        raw = raw_element(raw_id="main:buy", id="main\\:buy")
        element = to_clickable_element(raw, "https://example.com/")
        assert element.id == "main:buy"
        assert element.selector == "#main\\:buy"


class TestElementDiscovery:
    async def test_filters_invisible_and_unlabelled(self, page):
        page.evaluate.return_value = [
            raw_element(index=0, text="Visible"),
            raw_element(index=1, rect={"x": 0, "y": 0, "width": 0, "height": 0}),
            raw_element(index=2, text=""),
            raw_element(index=3, text="", attributes={"aria-label": "Close"}),
        ]

        all_visible = await ElementDiscovery(page).discover()
        labelled = await ElementDiscovery(page).discover(require_label=True)

        assert [e.id for e in all_visible] == ["element-0", "element-2", "element-3"]
        assert [e.id for e in labelled] == ["element-0", "element-3"]

    async def test_limit(self, page):
        page.evaluate.return_value = [raw_element(index=i) for i in range(5)]
        elements = await ElementDiscovery(page).discover(limit=2)
        assert len(elements) == 2

    async def test_get_page_elements_releases_page(self, pool, page):
        page.evaluate.return_value = [raw_element()]
        elements = await get_page_elements("https://example.com/", pool=pool)

        assert len(elements) == 1
        page.goto.assert_awaited_once()
        assert pool.released == 1

    async def test_get_page_elements_releases_on_error(self, pool, page):
        page.goto = AsyncMock(side_effect=TimeoutError("slow"))
        with pytest.raises(TimeoutError):
            await get_page_elements("https://example.com/", pool=pool)
        assert pool.released == 1
