"""
Tests for the interaction strategy chain
"""
from unittest.mock import AsyncMock

from api.models import ClickableElement, CrawlRequest
from scraper.interactions import InteractionChain, InteractionTarget


class TestInteractionTarget:
    def test_locator_expression(self):
        assert InteractionTarget(selector="#buy").locator_expression == "#buy"
        assert InteractionTarget(text="Buy").locator_expression == "text=Buy"
        assert InteractionTarget(coordinates=(1, 2)).locator_expression is None

    def test_from_request(self):
        request = CrawlRequest(url="https://example.com", element_text="Buy", coordinates=(5, 6))
        target = InteractionTarget.from_request(request)
        assert target.selector is None
        assert target.text == "Buy"
        assert target.coordinates == (5, 6)

    def test_from_element(self):
        element = ClickableElement(id="a", tag="a", selector="#a", coordinates=(3, 4))
        target = InteractionTarget.from_element(element)
        assert target.selector == "#a"
        assert target.coordinates == (3, 4)


class TestStrategyOrder:
    def test_selector_target_uses_every_strategy(self, page):
        chain = InteractionChain(page)
        assert chain.applicable_strategies(InteractionTarget(selector="#buy")) == [
            "selector_click",
            "locator_click",
            "dispatch_event",
            "mouse_click",
        ]

    def test_text_target_skips_selector_click(self, page):
        chain = InteractionChain(page)
        assert chain.applicable_strategies(InteractionTarget(text="Buy")) == [
            "locator_click",
            "dispatch_event",
            "mouse_click",
        ]

    def test_coordinates_only(self, page):
        chain = InteractionChain(page)
        assert chain.applicable_strategies(InteractionTarget(coordinates=(1, 2))) == ["mouse_click"]


class TestInteract:
    async def test_first_strategy_wins(self, page):
        outcome = await InteractionChain(page).interact(InteractionTarget(selector="#buy"))

        assert outcome.succeeded
        assert outcome.strategy == "selector_click"
        page.click.assert_awaited_once()
        page.locator.assert_not_called()

    async def test_falls_through_in_order(self, page):
        page.click = AsyncMock(side_effect=Exception("not clickable"))
        page.locator.return_value.first.click = AsyncMock(side_effect=Exception("detached"))
        page.evaluate = AsyncMock(return_value=True)

        outcome = await InteractionChain(page).interact(InteractionTarget(selector="#buy"))

        assert outcome.succeeded
        assert outcome.strategy == "dispatch_event"
        assert set(outcome.errors) == {"selector_click", "locator_click"}
        args = page.evaluate.await_args.args
        assert args[1]["events"] == ["pointerdown", "mousedown", "mouseup", "click"]

    async def test_dispatch_not_found_falls_back_to_mouse(self, page):
        page.locator.return_value.first.click = AsyncMock(side_effect=Exception("timeout"))
        page.evaluate = AsyncMock(return_value=False)

        outcome = await InteractionChain(page).interact(InteractionTarget(text="Buy"))

        assert outcome.strategy == "mouse_click"
        page.mouse.move.assert_awaited_once_with(60.0, 40.0, steps=6)
        page.mouse.down.assert_awaited_once()
        page.mouse.up.assert_awaited_once()

    async def test_coordinates_click(self, page):
        outcome = await InteractionChain(page).interact(InteractionTarget(coordinates=(100, 200)))

        assert outcome.strategy == "mouse_click"
        page.mouse.move.assert_awaited_once_with(100, 200, steps=6)

    async def test_all_strategies_fail(self, page):
        page.locator.return_value.first.click = AsyncMock(side_effect=Exception("timeout"))
        page.locator.return_value.first.bounding_box = AsyncMock(return_value=None)
        page.evaluate = AsyncMock(return_value=False)

        outcome = await InteractionChain(page).interact(InteractionTarget(text="Missing"))

        assert not outcome.succeeded
        assert outcome.strategy is None
        assert set(outcome.errors) == {"locator_click", "dispatch_event", "mouse_click"}

    async def test_no_target(self, page):
        outcome = await InteractionChain(page).interact(InteractionTarget())
        assert not outcome.succeeded
        assert "target" in outcome.errors


class TestSyntheticClick:
    async def test_dispatches_click_for_selector(self, page):
        page.evaluate = AsyncMock(return_value=True)
        assert await InteractionChain(page).synthetic_click(InteractionTarget(selector="#buy"))
        assert page.evaluate.await_args.args[1]["events"] == ["click"]

    async def test_mouse_click_for_coordinates(self, page):
        assert await InteractionChain(page).synthetic_click(InteractionTarget(coordinates=(7, 8)))
        page.mouse.click.assert_awaited_once_with(7, 8)

    async def test_reports_failure(self, page):
        page.evaluate = AsyncMock(return_value=False)
        assert not await InteractionChain(page).synthetic_click(InteractionTarget(text="Gone"))
