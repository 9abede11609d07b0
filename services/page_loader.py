"""Playwright-backed page loading and DOM capture."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, sync_playwright

from aiautofill.commands import attribute_selector, id_selector
from aiautofill.config import Settings

from .field_detector import FieldDetector, PageSnapshot

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}
WAIT_STRATEGIES = ("networkidle", "load", "domcontentloaded")


class ExtractionError(Exception):
    """Raised when a page cannot be loaded or captured."""
    pass


class PageExtractor(Protocol):
    def extract(self, url: str) -> PageSnapshot:
        ...

    def extract_pages(self, url: str, max_pages: int) -> List[PageSnapshot]:
        ...


class PlaywrightPageLoader:
    """Open a page in Chromium and release the browser on every exit path."""

    def __init__(self, settings: Settings):
        self._settings = settings

    @contextmanager
    def open_page(self, url: str) -> Iterator[Page]:
        logger.info("[Scan] Loading page: %s", url)
        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=self._settings.headless)
                try:
                    context = browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
                    page = context.new_page()
                    self.navigate(page, url)
                    yield page
                finally:
                    browser.close()
        except PlaywrightError as exc:
            raise ExtractionError(f"Failed to load {url}: {exc}") from exc

    def navigate(self, page: Page, url: str) -> None:
        """Try each wait strategy in turn; the last failure is fatal."""

        timeout = self._settings.navigation_timeout_ms
        for index, strategy in enumerate(WAIT_STRATEGIES):
            try:
                page.goto(url, wait_until=strategy, timeout=timeout)
                logger.info("[Scan] Page loaded with %s", strategy)
                break
            except PlaywrightError as exc:
                if index == len(WAIT_STRATEGIES) - 1:
                    raise ExtractionError(f"Page never reached a usable load state: {exc}") from exc
                logger.warning("[Scan] %s wait failed, falling back: %s", strategy, exc)
        page.wait_for_timeout(self._settings.settle_ms)


def _button_locator(button: Dict[str, Any]) -> str:
    if button.get("id"):
        return id_selector(button["id"])
    if button.get("name"):
        return attribute_selector("name", button["name"])
    text = (button.get("text") or "").replace('"', '\\"')
    return f'button:has-text("{text}"), input{attribute_selector("value", button.get("value") or text)}'


class PlaywrightPageExtractor:
    """PageExtractor that renders pages with Playwright and parses them with BeautifulSoup."""

    def __init__(
        self,
        settings: Settings,
        loader: Optional[PlaywrightPageLoader] = None,
        detector: Optional[FieldDetector] = None,
    ) -> None:
        self._settings = settings
        self._loader = loader or PlaywrightPageLoader(settings)
        self._detector = detector or FieldDetector()

    def _capture(self, page: Page) -> PageSnapshot:
        snapshot = self._detector.extract_snapshot(page.content(), url=page.url)
        logger.info(
            "[Scan] Extracted %d DOM elements, %d buttons, %d step indicators",
            len(snapshot.fields),
            len(snapshot.buttons),
            len(snapshot.step_indicators),
        )
        return snapshot

    def extract(self, url: str) -> PageSnapshot:
        with self._loader.open_page(url) as page:
            return self._capture(page)

    def extract_pages(self, url: str, max_pages: int) -> List[PageSnapshot]:
        """Capture each wizard page, clicking "next" until it disappears or repeats."""

        snapshots: List[PageSnapshot] = []
        seen = set()
        with self._loader.open_page(url) as page:
            while len(snapshots) < max_pages:
                snapshot = self._capture(page)
                signature = snapshot.signature()
                if signature in seen:
                    logger.info("[Scan] Page %d repeats an earlier page; stopping", len(snapshots) + 1)
                    break
                seen.add(signature)
                snapshots.append(snapshot)

                button = snapshot.next_button()
                if button is None:
                    logger.info("[Scan] No next button on page %d; stopping", len(snapshots))
                    break
                try:
                    page.locator(_button_locator(button)).first.click(
                        timeout=self._settings.navigation_timeout_ms
                    )
                    page.wait_for_load_state("domcontentloaded")
                except PlaywrightError as exc:
                    logger.warning("[Scan] Could not advance past page %d: %s", len(snapshots), exc)
                    break
                page.wait_for_timeout(self._settings.settle_ms)
        return snapshots


__all__ = [
    "ExtractionError",
    "PageExtractor",
    "PlaywrightPageExtractor",
    "PlaywrightPageLoader",
]
