"""
Element Discovery Module for ToolTip Companion

Enumerates the interactive elements of a loaded page so each one can be
clicked and previewed.

The in-page script only collects raw DOM facts (tag, text, id, classes,
attributes, sibling position, bounding box). Everything derived from those
facts lives in Python:
- candidate CSS selectors, in priority order id → class → attribute → nth-child
- click coordinates (centre of the bounding box)
- action type (link / button / form / custom)
- the absolute URL a click would navigate to, when one can be read off the DOM

Selectors are best-effort and not guaranteed to be unique; the first match is
treated as canonical.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from playwright.async_api import Page

from api.models import ClickableElement, ElementAttributes
from config import settings

logger = logging.getLogger(__name__)

# Attributes turned into [name="value"] selectors, in priority order
SELECTOR_ATTRIBUTES = ("title", "aria-label", "data-testid", "data-cy", "href")

ONCLICK_LOCATION = re.compile(r"window\.location\.href\s*=\s*['\"]([^'\"]+)['\"]")

DISCOVERY_SCRIPT = """
(selectors) => {
  const nodes = Array.from(document.querySelectorAll(selectors.join(', ')));
  const attributeNames = [
    'title', 'aria-label', 'data-testid', 'data-cy', 'href', 'onclick',
    'type', 'action', 'data-url', 'data-href', 'data-target'
  ];

  return nodes.map((el, index) => {
    const rect = el.getBoundingClientRect();
    const parent = el.parentElement;
    const className = typeof el.className === 'string'
      ? el.className
      : (el.getAttribute('class') || '');
    const attributes = {};
    attributeNames.forEach(name => { attributes[name] = el.getAttribute(name); });

    return {
      index,
      tag: el.tagName.toLowerCase(),
      text: (el.textContent || '').trim().substring(0, 50),
      raw_id: el.id || null,
      id: el.id ? CSS.escape(el.id) : null,
      classes: className.split(/\\s+/).filter(Boolean).map(c => CSS.escape(c)),
      class_name: className,
      position: parent ? Array.prototype.indexOf.call(parent.children, el) + 1 : 1,
      rect: { x: rect.left, y: rect.top, width: rect.width, height: rect.height },
      attributes,
    };
  });
}
"""


def quote_attribute(value: str) -> str:
    """Escape a value for use inside a double-quoted CSS attribute selector"""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")


def build_selectors(raw: Dict[str, Any]) -> List[str]:
    """
    Build candidate selectors for a raw element, most specific first.

    Priority: #id, then one .class per class, then attribute selectors
    (title, aria-label, data-testid, data-cy, href), then tag:nth-child(n).
    The nth-child fallback is always present.
    """
    selectors = []

    if raw.get("id"):
        selectors.append(f"#{raw['id']}")

    for cls in raw.get("classes") or []:
        selectors.append(f".{cls}")

    attributes = raw.get("attributes") or {}
    for name in SELECTOR_ATTRIBUTES:
        value = attributes.get(name)
        if value:
            selectors.append(f'[{name}="{quote_attribute(value)}"]')

    selectors.append(f"{raw['tag']}:nth-child({raw.get('position') or 1})")
    return selectors


def determine_action_type(tag: str) -> str:
    if tag == "a":
        return "link"
    if tag in ("button", "input"):
        return "button"
    if tag == "form":
        return "form"
    return "custom"


def _absolute_url(value: Optional[str], base_url: str) -> Optional[str]:
    if not value:
        return None
    value = value.strip()
    if not value or value.startswith("#") or value.lower().startswith("javascript:"):
        return None
    resolved = urljoin(base_url, value)
    if urlparse(resolved).scheme not in ("http", "https"):
        return None
    return resolved


def resolve_target_url(tag: str, attributes: Dict[str, Optional[str]], base_url: str) -> Optional[str]:
    """
    Work out where clicking an element would navigate, if the DOM says so.

    Checks, in order: href on links, action on forms, data-url / data-href /
    data-target, and a window.location.href assignment inside onclick.
    Fragment-only, javascript: and non-http(s) targets are ignored.
    """
    candidates = []
    if tag == "a":
        candidates.append(attributes.get("href"))
    if tag == "form":
        candidates.append(attributes.get("action"))
    candidates.extend(
        attributes.get(name) for name in ("data-url", "data-href", "data-target")
    )

    onclick = attributes.get("onclick")
    if onclick:
        match = ONCLICK_LOCATION.search(onclick)
        if match:
            candidates.append(match.group(1))

    for candidate in candidates:
        url = _absolute_url(candidate, base_url)
        if url:
            return url
    return None


def is_visible(raw: Dict[str, Any]) -> bool:
    rect = raw.get("rect") or {}
    return rect.get("width", 0) > 0 and rect.get("height", 0) > 0 and rect.get("y", 0) >= 0


def to_clickable_element(raw: Dict[str, Any], base_url: str) -> ClickableElement:
    """Convert the raw facts collected in the page into a ClickableElement"""
    rect = raw.get("rect") or {}
    attributes = raw.get("attributes") or {}
    selectors = build_selectors(raw)

    return ClickableElement(
        id=raw.get("raw_id") or f"element-{raw.get('index', 0)}",
        tag=raw["tag"],
        text=raw.get("text") or "",
        selector=selectors[0],
        all_selectors=selectors,
        coordinates=(
            round(rect.get("x", 0) + rect.get("width", 0) / 2),
            round(rect.get("y", 0) + rect.get("height", 0) / 2),
        ),
        visible=is_visible(raw),
        action_type=determine_action_type(raw["tag"]),
        target_url=resolve_target_url(raw["tag"], attributes, base_url),
        attributes=ElementAttributes(
            title=attributes.get("title"),
            aria_label=attributes.get("aria-label"),
            data_testid=attributes.get("data-testid"),
            data_cy=attributes.get("data-cy"),
            href=attributes.get("href"),
            class_name=raw.get("class_name") or "",
        ),
    )


def is_labelled(element: ClickableElement) -> bool:
    """Elements worth previewing carry text, a title or an aria-label"""
    return bool(element.text or element.attributes.title or element.attributes.aria_label)


class ElementDiscovery:
    """
    Finds interactive elements on a loaded page.
    """

    # Interactive roles, common class-name patterns and attribute presence
    SELECTORS = [
        "button",
        "a",
        "input[type='button']",
        "input[type='submit']",
        "input[type='reset']",
        "input[type='checkbox']",
        "input[type='radio']",
        "select",
        "textarea",
        "summary",
        "[onclick]",
        "[role='button']",
        "[role='link']",
        "[role='menuitem']",
        "[role='tab']",
        "[data-action]",
        ".clickable",
        ".btn",
        ".button",
        "[title]",
        "[aria-label]",
        "[data-testid]",
        "[data-cy]",
        "[data-test]",
        "[tabindex]:not([tabindex='-1'])",
        "[contenteditable='true']",
    ]

    def __init__(self, page: Page):
        """
        Initialize element discovery.

        Args:
            page: Playwright Page object, already navigated
        """
        self.page = page

    async def collect_raw(self) -> List[Dict[str, Any]]:
        """Run the discovery script and return the raw element facts"""
        return await self.page.evaluate(DISCOVERY_SCRIPT, self.SELECTORS)

    async def discover(
        self, require_label: bool = False, limit: Optional[int] = None
    ) -> List[ClickableElement]:
        """
        Discover visible interactive elements.

        Args:
            require_label: Keep only elements with text, title or aria-label
            limit: Max number of elements returned (document order)

        Returns:
            List of ClickableElement
        """
        raw_elements = await self.collect_raw()
        base_url = self.page.url

        elements = []
        for raw in raw_elements:
            element = to_clickable_element(raw, base_url)
            if not element.visible:
                continue
            if require_label and not is_labelled(element):
                continue
            elements.append(element)

        logger.info(
            f"🔍 Discovered {len(elements)} interactive elements "
            f"({len(raw_elements)} candidates) on {base_url}"
        )

        if limit is not None and len(elements) > limit:
            logger.info(f"  Limiting to first {limit} elements")
            elements = elements[:limit]

        return elements


async def get_page_elements(url: str, pool=None) -> List[ClickableElement]:
    """
    Open a page, navigate to it and list its interactive elements.

    Args:
        url: Page URL
        pool: BrowserPool to use (defaults to the global pool)

    Returns:
        List of visible ClickableElement
    """
    if pool is None:
        from core.browser import get_browser_pool

        pool = await get_browser_pool()

    browser, context, page = await pool.acquire()
    try:
        await page.goto(url, wait_until="networkidle", timeout=settings.NAVIGATION_TIMEOUT_MS)
        return await ElementDiscovery(page).discover()
    finally:
        await pool.release(browser, context, page)
