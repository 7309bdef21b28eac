"""Playwright boundary: one shared browser, one page per unit of work.

Callers never touch Playwright objects directly. ``BrowserSession.open_page``
yields a :class:`PageFetcher` whose ``fetch`` returns a plain
:class:`PageSnapshot`, and translates Playwright failures into the
``appharvest.errors`` taxonomy.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, FrozenSet, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from ..config.settings import (
    BLOCKED_RESOURCE_TYPES,
    LISTING_WAIT_MS,
    NAVIGATION_TIMEOUT_MS,
    VIEWPORT,
)
from ..errors import ContentMissing, TransientNetwork
from ..parsing.launch_date import page_title
from ..utils.logging import get_logger

logger = get_logger(__name__)

NETWORK_FAULT_MARKERS = ("net::ERR_", "NS_ERROR_")


@dataclass
class PageSnapshot:
    url: str
    status: Optional[int]
    html: str
    title: str


def _is_network_fault(exc: BaseException) -> bool:
    message = str(exc)
    return any(marker in message for marker in NETWORK_FAULT_MARKERS)


class PageFetcher:
    def __init__(self, page) -> None:
        self._page = page

    async def fetch(
        self,
        url: str,
        *,
        wait_until: str = "domcontentloaded",
        timeout_ms: int = NAVIGATION_TIMEOUT_MS,
        wait_for: Optional[str] = None,
        wait_timeout_ms: int = LISTING_WAIT_MS,
        wait_required: bool = True,
    ) -> PageSnapshot:
        """Navigate to ``url`` and return what loaded.

        ``wait_for`` names a selector that must show up within
        ``wait_timeout_ms``; when it does not, :class:`ContentMissing` is
        raised unless ``wait_required`` is False, in which case the wait
        timeout is only logged.
        """
        try:
            response = await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise TransientNetwork(f"Navigation timeout after {timeout_ms}ms: {url}") from exc
        except PlaywrightError as exc:
            if _is_network_fault(exc):
                raise TransientNetwork(str(exc)) from exc
            raise

        if wait_for:
            try:
                await self._page.wait_for_selector(wait_for, timeout=wait_timeout_ms)
            except PlaywrightTimeoutError as exc:
                if wait_required:
                    raise ContentMissing(f"'{wait_for}' not found on {url}") from exc
                logger.info("Timeout waiting for '%s' on %s", wait_for, url)

        html = await self._page.content()
        title = page_title(html)
        return PageSnapshot(
            url=self._page.url,
            status=response.status if response is not None else None,
            html=html,
            title=title,
        )


class BrowserSession:
    """Async context manager around a headless Chromium instance."""

    def __init__(
        self,
        headless: bool = True,
        viewport: Optional[Dict[str, int]] = None,
        blocked_types: FrozenSet[str] = BLOCKED_RESOURCE_TYPES,
    ) -> None:
        self.headless = headless
        self.viewport = viewport or dict(VIEWPORT)
        self.blocked_types = blocked_types
        self._pw = None
        self._browser = None

    async def start(self) -> "BrowserSession":
        if self._browser is not None:
            return self
        self._pw = await async_playwright().start()
        self._browser = await self._pw.chromium.launch(headless=self.headless)
        logger.debug("Chromium started (headless=%s)", self.headless)
        return self

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._pw is not None:
            await self._pw.stop()
        self._browser = None
        self._pw = None

    async def __aenter__(self) -> "BrowserSession":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _route_handler(self, route) -> None:
        if route.request.resource_type in self.blocked_types:
            await route.abort()
        else:
            await route.continue_()

    @asynccontextmanager
    async def open_page(self, block_resources: bool = False) -> AsyncIterator[PageFetcher]:
        """Yield a fresh page; it is closed on every exit path."""
        if self._browser is None:
            raise RuntimeError("BrowserSession.open_page() called before start()")
        page = await self._browser.new_page(viewport=self.viewport)
        try:
            if block_resources:
                await page.route("**/*", self._route_handler)
            yield PageFetcher(page)
        finally:
            try:
                await page.close()
            except PlaywrightError as exc:
                logger.warning("Failed to close page: %s", exc)
