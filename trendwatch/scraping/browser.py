"""
Interactive access path: Playwright-driven page loads.

One Chromium instance is launched lazily and reused across sources for
the lifetime of a run. Each source gets its own browser context and page,
acquired through BrowserSession.page() and closed when the block exits,
whether or not extraction succeeded.

Usage:
    browser = BrowserSession(headless=True)
    try:
        with browser.page() as page:
            html = browser.load(page, source)
            records = cascade.run(html, source)
    finally:
        browser.close()
"""

from __future__ import annotations

import logging
import random
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from trendwatch.scraping.errors import BrowserError
from trendwatch.scraping.fetch import random_user_agent
from trendwatch.scraping.types import SourceDescriptor

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1920, "height": 1080}

PAGE_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}

SETTLE_WAIT_S = (3.0, 7.0)
POST_SCROLL_WAIT_S = (2.0, 5.0)
SELECTOR_TIMEOUT_MS = 10_000
MAX_SCROLL_STEPS = 30


class BrowserSession:
    """Lazily launched Chromium shared by the interactive sources of one run."""

    def __init__(
        self,
        headless: bool = True,
        page_timeout_ms: int = 60_000,
        sleep: Callable[[float], None] | None = None,
        rng: random.Random | None = None,
    ):
        self.headless = headless
        self.page_timeout_ms = page_timeout_ms
        self._sleep = sleep or time.sleep
        self._rng = rng or random.Random()
        self._playwright = None
        self._browser = None

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    def _ensure_browser(self):
        if self._browser is None:
            try:
                self._playwright = sync_playwright().start()
                self._browser = self._playwright.chromium.launch(
                    headless=self.headless,
                    args=["--no-sandbox", "--disable-setuid-sandbox"],
                )
            except PlaywrightError as e:
                self._stop_playwright()
                raise BrowserError(f"Failed to launch browser: {e}", e) from e
            logger.info("Browser launched (headless=%s)", self.headless)
        return self._browser

    @contextmanager
    def page(self) -> Iterator[Page]:
        """A fresh page in its own context, closed when the block exits."""
        browser = self._ensure_browser()
        context = browser.new_context(
            user_agent=random_user_agent(self._rng),
            viewport=VIEWPORT,
            extra_http_headers=PAGE_HEADERS,
        )
        try:
            yield context.new_page()
        finally:
            context.close()
            logger.debug("Browser page closed")

    def load(self, page: Page, source: SourceDescriptor) -> str:
        """
        Navigate, settle, and return the rendered HTML.

        Raises:
            BrowserError: If navigation fails or times out
        """
        logger.info("Navigating to %s", source.url)
        start = time.monotonic()
        try:
            page.goto(source.url, wait_until="networkidle", timeout=self.page_timeout_ms)
        except PlaywrightError as e:
            raise BrowserError(f"Navigation to {source.url} failed: {e}", e) from e

        logger.info(
            "Page loaded in %dms (title=%r)",
            int((time.monotonic() - start) * 1000),
            page.title(),
        )
        if page.url != source.url:
            logger.warning("Page redirected from %s to %s", source.url, page.url)

        self._settle(page)

        if source.wait_selector:
            try:
                page.wait_for_selector(source.wait_selector, timeout=SELECTOR_TIMEOUT_MS)
            except PlaywrightTimeoutError:
                logger.warning("Target selector not found: %s", source.wait_selector)

        try:
            return page.content()
        except PlaywrightError as e:
            raise BrowserError(f"Could not read page content: {e}", e) from e

    def _settle(self, page: Page) -> None:
        self._sleep(self._rng.uniform(*SETTLE_WAIT_S))

        page.mouse.move(self._rng.uniform(100, 600), self._rng.uniform(100, 500))
        for _ in range(MAX_SCROLL_STEPS):
            page.mouse.wheel(0, self._rng.randint(50, 150))
            self._sleep(self._rng.uniform(0.1, 0.3))
            at_bottom = page.evaluate(
                "() => window.scrollY + window.innerHeight >= "
                "document.documentElement.scrollHeight"
            )
            if at_bottom:
                break

        self._sleep(self._rng.uniform(*POST_SCROLL_WAIT_S))

    def close(self) -> None:
        if self._browser is not None:
            try:
                self._browser.close()
            finally:
                self._browser = None
                self._stop_playwright()
            logger.info("Browser closed")

    def _stop_playwright(self) -> None:
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
