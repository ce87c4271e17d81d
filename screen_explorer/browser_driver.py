from __future__ import annotations

"""Playwright-backed perception and execution for exploring web apps.

The page's visible text nodes stand in for recognised screen text: each
element carries its text and the centre of its bounding box in viewport
pixels. Navigation stays on the start URL's domain.
"""

import logging
import os
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from playwright.sync_api import Browser, Error as PlaywrightError, Page, Playwright, sync_playwright

from .errors import PerceptionUnavailableError
from .interfaces import ActionOutcome
from .knowledge import ActionType, Element, ElementRole, Snapshot

logger = logging.getLogger(__name__)

# Collects visible, text-bearing elements with their viewport centres.
_COLLECT_JS = """
() => {
  const NAV = new Set(['A', 'BUTTON', 'SUMMARY', 'SELECT', 'OPTION']);
  const INFO = new Set(['P', 'LABEL', 'TD', 'TH', 'DT', 'DD']);
  const DECORATION = new Set(['H1', 'H2', 'H3', 'H4', 'H5', 'H6', 'SMALL']);
  const out = [];
  const seen = new Set();
  const nodes = document.querySelectorAll(
    'a, button, summary, select, option, [role=button], [role=link], [role=tab], [role=menuitem],' +
    'h1, h2, h3, h4, h5, h6, p, label, li, td, th, dt, dd, span, small');
  for (const el of nodes) {
    const text = (el.innerText || el.value || '').trim().split('\\n')[0].trim();
    if (!text || text.length > 80 || seen.has(text)) continue;
    const r = el.getBoundingClientRect();
    if (r.width === 0 || r.height === 0) continue;
    if (r.bottom < 0 || r.top > window.innerHeight) continue;
    const style = window.getComputedStyle(el);
    if (style.visibility === 'hidden' || style.display === 'none') continue;
    seen.add(text);
    let role = 'unknown';
    const aria = el.getAttribute('role');
    if (NAV.has(el.tagName) || aria === 'button' || aria === 'link' || aria === 'tab' || aria === 'menuitem') {
      role = 'navigation';
    } else if (INFO.has(el.tagName)) {
      role = 'info';
    } else if (DECORATION.has(el.tagName)) {
      role = 'decoration';
    }
    out.push({text, x: r.left + r.width / 2, y: r.top + r.height / 2, role});
  }
  return {elements: out, height: window.innerHeight, width: window.innerWidth};
}
"""


class BrowserDriver:
    """Perception + Execution over a single Playwright page.

    Use as a context manager; the browser is launched on enter and closed on exit.
    """

    def __init__(
        self,
        start_url: str,
        headless: bool = True,
        settle_seconds: float = 1.0,
        screenshot_dir: Optional[str] = None,
        action_timeout_ms: int = 5000,
    ) -> None:
        self.start_url = start_url
        self.headless = headless
        self.settle_seconds = settle_seconds
        self.screenshot_dir = screenshot_dir
        self.action_timeout_ms = action_timeout_ms
        self._origin = urlparse(start_url).netloc
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None
        self._observations = 0

    def __enter__(self) -> "BrowserDriver":
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self.headless)
        context = self._browser.new_context()
        self._page = context.new_page()
        self._page.goto(self.start_url, wait_until="load")
        self._settle()
        logger.info("Opened %s", self.start_url)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._browser is not None:
            self._browser.close()
        if self._playwright is not None:
            self._playwright.stop()
        self._page = self._browser = self._playwright = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise PerceptionUnavailableError("browser is not running")
        return self._page

    # ---- Perception -------------------------------------------------------
    def observe(self) -> Snapshot:
        page = self.page
        if page.is_closed():
            raise PerceptionUnavailableError("page was closed")
        try:
            data: Dict[str, Any] = page.evaluate(_COLLECT_JS)
        except PlaywrightError as exc:
            raise PerceptionUnavailableError(f"could not read page: {exc}") from exc

        elements = [
            Element(text=item["text"], x=float(item["x"]), y=float(item["y"]), role=ElementRole(item["role"]))
            for item in data.get("elements", [])
        ]
        return Snapshot(
            elements=elements,
            hints=self._hints(page),
            raw_image_ref=self._screenshot(page),
            screen_height=float(data.get("height") or 0) or None,
        )

    def _hints(self, page: Page) -> List[str]:
        if page.url.rstrip("/") == self.start_url.rstrip("/"):
            return ["no back navigation"]
        return ["back navigation"]

    def _screenshot(self, page: Page) -> Optional[str]:
        if not self.screenshot_dir:
            return None
        os.makedirs(self.screenshot_dir, exist_ok=True)
        path = os.path.join(self.screenshot_dir, f"screen_{self._observations}.png")
        self._observations += 1
        try:
            page.screenshot(path=path)
        except PlaywrightError as exc:
            logger.warning("Screenshot failed: %s", exc)
            return None
        return path

    # ---- Execution --------------------------------------------------------
    def perform(self, action_type: ActionType, target: str) -> ActionOutcome:
        page = self.page
        try:
            if action_type == ActionType.PRESS_KEY:
                self._press_key(page, target)
            elif action_type == ActionType.SWIPE:
                height = (page.viewport_size or {}).get("height", 800)
                page.mouse.wheel(0, height / 2 if target != "up" else -height / 2)
            elif action_type == ActionType.TYPE:
                page.keyboard.type(target)
            else:
                locator = page.get_by_text(target, exact=True).first
                if action_type == ActionType.SCROLL_TO:
                    locator.scroll_into_view_if_needed(timeout=self.action_timeout_ms)
                elif action_type == ActionType.LONG_PRESS:
                    locator.click(delay=1000, timeout=self.action_timeout_ms)
                else:
                    locator.click(timeout=self.action_timeout_ms)
        except PlaywrightError as exc:
            return ActionOutcome.failed(f"{action_type.value} {target!r}: {exc}")

        self._ensure_single_tab(page)
        if not self._on_allowed_domain(page):
            logger.warning("Navigated outside %s, going back", self._origin)
            self._return_to_domain(page)
            return ActionOutcome.failed(f"{target!r} leads outside {self._origin}")
        self._settle()
        return ActionOutcome.ok()

    def _press_key(self, page: Page, key: str) -> None:
        if key == "back":
            page.go_back(wait_until="domcontentloaded", timeout=self.action_timeout_ms)
        elif key == "home":
            page.goto(self.start_url, wait_until="domcontentloaded")
        else:
            page.keyboard.press(key)

    def _on_allowed_domain(self, page: Page) -> bool:
        netloc = urlparse(page.url).netloc
        return netloc in ("", self._origin)

    def _return_to_domain(self, page: Page) -> None:
        try:
            page.go_back(timeout=self.action_timeout_ms, wait_until="domcontentloaded")
        except PlaywrightError as exc:
            logger.warning("Failed to go back: %s", exc)
        if not self._on_allowed_domain(page):
            page.goto(self.start_url, wait_until="domcontentloaded")

    def _ensure_single_tab(self, page: Page) -> None:
        """Close popups so exploration stays on one page."""
        for other in page.context.pages:
            if other is not page:
                other.close()

    def _settle(self) -> None:
        if self.settle_seconds > 0 and self._page is not None:
            self._page.wait_for_timeout(self.settle_seconds * 1000)
