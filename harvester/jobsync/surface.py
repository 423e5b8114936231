from __future__ import annotations
"""
Render surface abstraction over a live browser page.

The collector only talks to `RenderSurface`; `PlaywrightSurface` is the real
implementation. Playwright is heavy to import, so it is only imported when a
browser is actually opened.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Protocol, runtime_checkable
import logging

from .errors import SourceFatalError
from .settings import SETTINGS, Settings

logger = logging.getLogger(__name__)

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

SCROLL_MARKER_ATTR = 'data-harvester-scroll'

# Finds the list's scroll container: explicit selector if given, otherwise the first
# overflow:auto/scroll block whose descendants are positioned with CSS transforms
# (the usual shape of a windowed list).
PROBE_CONTAINER_JS = """
(sel) => {
  const scrollable = (node) => {
    const st = window.getComputedStyle(node);
    return ['auto', 'scroll'].includes(st.overflowY) || ['auto', 'scroll'].includes(st.overflow);
  };
  const virtualized = (node) => {
    const kids = node.querySelectorAll('*');
    const n = Math.min(kids.length, 300);
    for (let i = 0; i < n; i++) {
      const t = window.getComputedStyle(kids[i]).transform;
      if (t && t !== 'none') return true;
    }
    return false;
  };
  const pool = sel ? Array.from(document.querySelectorAll(sel)) : Array.from(document.querySelectorAll('div, ul, section, main'));
  const match = pool.find((n) => scrollable(n) && (sel ? true : virtualized(n)));
  if (!match) return null;
  document.querySelectorAll('[%s]').forEach((n) => n.removeAttribute('%s'));
  match.setAttribute('%s', '1');
  return { scrollHeight: match.scrollHeight, clientHeight: match.clientHeight };
}
""" % (SCROLL_MARKER_ATTR, SCROLL_MARKER_ATTR, SCROLL_MARKER_ATTR)

SCROLL_TO_JS = """
([sel, y]) => {
  const el = sel ? document.querySelector(sel) : null;
  if (el) { el.scrollTop = y; return true; }
  window.scrollTo(0, y);
  return false;
}
"""


@dataclass(frozen=True)
class ContainerMetrics:
    scroll_height: float
    client_height: float

    @property
    def max_scroll(self) -> float:
        return self.scroll_height - self.client_height


@runtime_checkable
class RenderSurface(Protocol):
    def navigate(self, url: str) -> None:  # pragma: no cover - interface definition
        ...

    def find_elements(self, selector: str) -> List[Any]:  # pragma: no cover
        ...

    def evaluate(self, script: str, arg: Any = None) -> Any:  # pragma: no cover
        ...

    def scroll_container_to(self, offset: float) -> None:  # pragma: no cover
        ...

    def wait_ms(self, ms: int) -> None:  # pragma: no cover
        ...

    def probe_container(self, selector: Optional[str] = None) -> Optional[ContainerMetrics]:  # pragma: no cover
        ...


_PW_ERRORS: tuple | None = None

def _playwright_errors() -> tuple:
    global _PW_ERRORS
    if _PW_ERRORS is None:
        from playwright.sync_api import Error as PlaywrightError  # type: ignore
        _PW_ERRORS = (PlaywrightError,)
    return _PW_ERRORS


class PlaywrightSurface:
    """RenderSurface over a sync Playwright `Page`. One instance per source task."""

    def __init__(self, page, settings: Settings | None = None):
        self.page = page
        self.settings = settings or SETTINGS
        self._container_selector: Optional[str] = None

    def navigate(self, url: str) -> None:
        logger.debug(f"Navigating to {url}")
        try:
            self.page.goto(url, wait_until='networkidle', timeout=self.settings.nav_timeout_ms)
            self.page.wait_for_timeout(self.settings.load_wait_ms)
        except _playwright_errors() as e:
            raise SourceFatalError(f"navigation to {url} failed: {e}") from e

    def find_elements(self, selector: str) -> List[Any]:
        try:
            return self.page.query_selector_all(selector)
        except _playwright_errors() as e:
            raise SourceFatalError(f"query {selector!r} failed: {e}") from e

    def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            return self.page.evaluate(script, arg)
        except _playwright_errors() as e:
            raise SourceFatalError(f"evaluate failed: {e}") from e

    def probe_container(self, selector: Optional[str] = None) -> Optional[ContainerMetrics]:
        found = self.evaluate(PROBE_CONTAINER_JS, selector)
        if not found:
            self._container_selector = None
            return None
        self._container_selector = f'[{SCROLL_MARKER_ATTR}="1"]'
        return ContainerMetrics(scroll_height=float(found['scrollHeight']), client_height=float(found['clientHeight']))

    def scroll_container_to(self, offset: float) -> None:
        self.evaluate(SCROLL_TO_JS, [self._container_selector, offset])

    def wait_ms(self, ms: int) -> None:
        try:
            self.page.wait_for_timeout(ms)
        except _playwright_errors() as e:
            raise SourceFatalError(f"wait failed: {e}") from e


@contextmanager
def open_surface(settings: Settings | None = None, headless: Optional[bool] = None) -> Iterator[PlaywrightSurface]:
    """Launch Chromium and yield a fresh PlaywrightSurface; the browser closes on exit."""
    from playwright.sync_api import sync_playwright  # type: ignore
    settings = settings or SETTINGS
    headless = settings.headless if headless is None else headless
    with sync_playwright() as p:
        try:
            browser = p.chromium.launch(headless=headless, args=BROWSER_ARGS)
        except _playwright_errors() as e:
            msg = str(e)
            if "Executable doesn't exist" in msg or 'playwright install' in msg:
                logger.error("Playwright browsers not installed. Run 'playwright install chromium'.")
            raise SourceFatalError(f"browser launch failed: {e}") from e
        try:
            page = browser.new_page()
            yield PlaywrightSurface(page, settings)
        finally:
            try:
                browser.close()
            except _playwright_errors():
                logger.debug("Browser close failed", exc_info=True)
