"""
Change Detector Module for ToolTip Companion

Decides whether a click produced a visible or DOM-observable change.

Two signals, checked in order:
1. Screenshots - full byte comparison of the before/after captures
2. DOM probe - visible modals, panels, overlays, animated or "open" elements
   that appeared after the click (catches changes outside the captured area)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

logger = logging.getLogger(__name__)

# Selectors that usually indicate an overlay opened after an interaction
OVERLAY_PATTERNS = {
    "modals": [
        '[role="dialog"]',
        ".modal",
        ".overlay",
        ".panel",
        '[data-state="open"]',
    ],
    "new_content": [
        ".animate-in",
        ".fade-in",
        ".slide-in",
    ],
    "overlays": [
        ".fixed",
        ".absolute",
        '[class*="z-40"]',
        '[class*="z-50"]',
        '[style*="z-index: 40"]',
        '[style*="z-index: 50"]',
    ],
}

SETTLE_SELECTOR = '.fixed, .absolute, [role="dialog"], .z-50, .z-40'

PROBE_SCRIPT = """
(patterns) => {
  const isVisible = (el) => {
    const style = window.getComputedStyle(el);
    return el.offsetParent !== null && style.display !== 'none' && style.opacity !== '0';
  };
  const counts = {};
  Object.entries(patterns).forEach(([name, selectors]) => {
    counts[name] = Array.from(document.querySelectorAll(selectors.join(', ')))
      .filter(isVisible).length;
  });
  return counts;
}
"""


def screenshots_identical(before: Optional[bytes], after: Optional[bytes]) -> bool:
    """
    Byte-for-byte equality of two screenshots.

    Empty or missing captures are never considered identical.
    """
    if not before or not after:
        return False
    if len(before) != len(after):
        return False
    return before == after


@dataclass
class ChangeVerdict:
    changed: bool
    reason: str  # screenshot, dom or none
    indicators: Dict[str, int] = field(default_factory=dict)


class ChangeDetector:
    """
    Detects whether an interaction changed the page.
    """

    def __init__(self, page: Page):
        self.page = page

    async def probe_ui_changes(self) -> Dict[str, int]:
        """
        Count visible overlay indicators currently on the page.

        Returns:
            Dict with counts for modals, new_content and overlays
        """
        try:
            return await self.page.evaluate(PROBE_SCRIPT, OVERLAY_PATTERNS)
        except Exception as e:
            logger.warning(f"⚠️  UI change probe failed: {str(e)}")
            return {name: 0 for name in OVERLAY_PATTERNS}

    async def wait_for_ui_settle(self):
        """Give the page time to render whatever the click opened"""
        await asyncio.sleep(2)
        try:
            await self.page.wait_for_selector(SETTLE_SELECTOR, timeout=2000)
        except PlaywrightTimeout:
            pass
        except Exception as e:
            # Navigation destroys the execution context mid-wait
            logger.debug(f"Settle wait interrupted: {str(e)}")
        await asyncio.sleep(1)

    async def detect(
        self,
        before: bytes,
        after: bytes,
        baseline: Optional[Dict[str, int]] = None,
    ) -> ChangeVerdict:
        """
        Compare before/after captures, falling back to the DOM probe.

        Args:
            before: Screenshot taken before the click
            after: Screenshot taken after the click
            baseline: Indicator counts probed before the click; only indicators
                that increased count as a change

        Returns:
            ChangeVerdict
        """
        if not screenshots_identical(before, after):
            return ChangeVerdict(changed=True, reason="screenshot")

        indicators = await self.probe_ui_changes()
        baseline = baseline or {}
        if any(count > baseline.get(name, 0) for name, count in indicators.items()):
            logger.info(f"🔎 No visual change but UI indicators found: {indicators}")
            return ChangeVerdict(changed=True, reason="dom", indicators=indicators)

        return ChangeVerdict(changed=False, reason="none", indicators=indicators)
