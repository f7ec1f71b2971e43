"""
Interaction Strategy Chain for ToolTip Companion

Clicks a target element using several methods in order, stopping at the
first one that does not raise:
1. page.click(selector)
2. locator click (by selector, or by text)
3. synthetic pointer/mouse events dispatched inside the page
4. raw mouse move + down + up at the element's centre

Many sites only react to specific event semantics (framework-managed click
handlers, custom overlays) that a single raw click does not trigger reliably.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from playwright.async_api import Page

from api.models import ClickableElement, CrawlRequest
from config import settings

logger = logging.getLogger(__name__)

STRATEGY_ORDER = ("selector_click", "locator_click", "dispatch_event", "mouse_click")

DISPATCH_EVENTS_SCRIPT = """
({ selector, text, events }) => {
  let el = null;
  if (selector) {
    el = document.querySelector(selector);
  } else if (text) {
    // Innermost element of the first subtree whose text contains the target
    for (const node of document.body.querySelectorAll('*')) {
      if (!(node.textContent || '').trim().includes(text)) continue;
      if (el === null || el.contains(node)) { el = node; } else { break; }
    }
  }
  if (!el) return false;
  events.forEach(type => {
    const init = { bubbles: true, cancelable: true, view: window };
    const event = type.startsWith('pointer') && typeof PointerEvent !== 'undefined'
      ? new PointerEvent(type, init)
      : new MouseEvent(type, init);
    el.dispatchEvent(event);
  });
  return true;
}
"""

SCROLL_INTO_VIEW_SCRIPT = """
(selector) => {
  const el = document.querySelector(selector);
  if (el) el.scrollIntoView({ behavior: 'smooth', block: 'center' });
  return !!el;
}
"""


class InteractionError(Exception):
    """Raised when a strategy cannot act on the target"""
    pass


@dataclass
class InteractionTarget:
    selector: Optional[str] = None
    text: Optional[str] = None
    coordinates: Optional[Tuple[float, float]] = None

    @classmethod
    def from_element(cls, element: ClickableElement) -> "InteractionTarget":
        return cls(selector=element.selector, coordinates=element.coordinates)

    @classmethod
    def from_request(cls, request: CrawlRequest) -> "InteractionTarget":
        return cls(
            selector=request.element_selector or None,
            text=request.element_text or None,
            coordinates=request.coordinates,
        )

    @property
    def locator_expression(self) -> Optional[str]:
        if self.selector:
            return self.selector
        if self.text:
            return f"text={self.text}"
        return None

    def describe(self) -> str:
        if self.selector:
            return self.selector
        if self.text:
            return f"text '{self.text}'"
        if self.coordinates:
            return f"point {self.coordinates}"
        return "nothing"


@dataclass
class InteractionOutcome:
    succeeded: bool
    strategy: Optional[str] = None
    errors: Dict[str, str] = field(default_factory=dict)


class InteractionChain:
    """
    Tries each applicable click strategy in order until one succeeds.
    """

    def __init__(self, page: Page, click_timeout: int = settings.CLICK_TIMEOUT_MS):
        """
        Args:
            page: Playwright Page object
            click_timeout: Timeout in milliseconds for each strategy
        """
        self.page = page
        self.click_timeout = click_timeout

    def applicable_strategies(self, target: InteractionTarget) -> List[str]:
        strategies = []
        if target.selector:
            strategies.append("selector_click")
        if target.locator_expression:
            strategies.extend(["locator_click", "dispatch_event"])
        if target.coordinates or target.locator_expression:
            strategies.append("mouse_click")
        return [name for name in STRATEGY_ORDER if name in strategies]

    async def interact(self, target: InteractionTarget) -> InteractionOutcome:
        """
        Click the target with the first strategy that works.

        Returns:
            InteractionOutcome with the strategy used and the errors of the
            strategies that failed before it
        """
        outcome = InteractionOutcome(succeeded=False)
        strategies = self.applicable_strategies(target)

        if not strategies:
            outcome.errors["target"] = "No targeting method provided"
            return outcome

        for name in strategies:
            try:
                await getattr(self, f"_{name}")(target)
                outcome.succeeded = True
                outcome.strategy = name
                logger.info(f"🖱 Clicked {target.describe()} via {name}")
                return outcome
            except Exception as e:
                outcome.errors[name] = str(e)
                logger.debug(f"Click strategy {name} failed for {target.describe()}: {e}")

        logger.warning(f"⚠️  All click strategies failed for {target.describe()}")
        return outcome

    async def _selector_click(self, target: InteractionTarget):
        await self.page.click(target.selector, timeout=self.click_timeout)

    async def _locator_click(self, target: InteractionTarget):
        await self.page.locator(target.locator_expression).first.click(timeout=self.click_timeout)

    async def _dispatch_events(self, target: InteractionTarget, events: List[str]):
        found = await self.page.evaluate(
            DISPATCH_EVENTS_SCRIPT,
            {"selector": target.selector, "text": target.text, "events": events},
        )
        if not found:
            raise InteractionError(f"Element not found for {target.describe()}")

    async def _dispatch_event(self, target: InteractionTarget):
        await self._dispatch_events(target, ["pointerdown", "mousedown", "mouseup", "click"])

    async def _element_center(self, target: InteractionTarget) -> Optional[Tuple[float, float]]:
        box = await self.page.locator(target.locator_expression).first.bounding_box(
            timeout=self.click_timeout
        )
        if not box:
            return None
        return box["x"] + box["width"] / 2, box["y"] + box["height"] / 2

    async def _mouse_click(self, target: InteractionTarget):
        point = target.coordinates
        if point is None:
            point = await self._element_center(target)
        if point is None:
            raise InteractionError(f"No coordinates for {target.describe()}")

        x, y = point
        await self.page.mouse.move(x, y, steps=6)
        await self.page.mouse.down()
        await self.page.mouse.up()

    async def scroll_into_view(self, target: InteractionTarget) -> bool:
        """Centre the target in the viewport (best effort)"""
        if not target.selector:
            return False
        try:
            return bool(await self.page.evaluate(SCROLL_INTO_VIEW_SCRIPT, target.selector))
        except Exception as e:
            logger.debug(f"Scroll into view failed for {target.describe()}: {e}")
            return False

    async def synthetic_click(self, target: InteractionTarget) -> bool:
        """
        Single fallback click used when a first interaction changed nothing:
        a DOM click event for selector/text targets, a raw mouse click for
        coordinate-only targets.
        """
        try:
            if target.locator_expression:
                await self._dispatch_events(target, ["click"])
            elif target.coordinates:
                x, y = target.coordinates
                await self.page.mouse.click(x, y)
            else:
                return False
            return True
        except Exception as e:
            logger.warning(f"⚠️  Synthetic click failed for {target.describe()}: {e}")
            return False
