"""
Playwright implementation of browser interfaces
"""
import asyncio
from typing import Any, Optional

import structlog
from playwright.async_api import Browser, BrowserContext, ElementHandle, Page, async_playwright

from ..interfaces import (
    DEFAULT_USER_AGENT,
    BrowserConfig,
    IElement,
    IPage,
    IPageProvider,
    PageLease,
)

logger = structlog.get_logger()


class PlaywrightElement(IElement):
    """Playwright element handle wrapper"""

    def __init__(self, element: ElementHandle):
        self._element = element

    async def click(self) -> None:
        await self._element.click()

    async def fill(self, value: str) -> None:
        await self._element.fill(value)

    async def select_option(
        self,
        value: Optional[str] = None,
        label: Optional[str] = None
    ) -> None:
        if value is not None:
            await self._element.select_option(value=value)
        else:
            await self._element.select_option(label=label)

    async def screenshot(self) -> bytes:
        return await self._element.screenshot(type="png")


class PlaywrightPage(IPage):
    """Playwright page wrapper"""

    def __init__(self, page: Page):
        self._page = page

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 30000) -> None:
        await self._page.goto(url, wait_until=wait_until, timeout=timeout)

    async def wait_for_selector(self, selector: str, timeout: int = 30000) -> None:
        await self._page.wait_for_selector(selector, timeout=timeout)

    async def query_selector(self, selector: str) -> Optional[IElement]:
        element = await self._page.query_selector(selector)
        return PlaywrightElement(element) if element else None

    async def wait_for_load_state(self, state: str = "load", timeout: int = 30000) -> None:
        await self._page.wait_for_load_state(state, timeout=timeout)

    async def evaluate(self, script: str) -> Any:
        return await self._page.evaluate(script)

    async def content(self) -> str:
        return await self._page.content()

    async def close(self) -> None:
        await self._page.close()


class PlaywrightPageProvider(IPageProvider):
    """
    Page provider backed by one shared Chromium instance.

    The browser is launched on first use. Each lease gets its own context so
    cookies never leak between checks, and a semaphore bounds how many pages
    are open at once.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self._config = config or BrowserConfig()
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._start_lock = asyncio.Lock()
        self._slots = asyncio.Semaphore(self._config.max_pages)

    @property
    def is_initialized(self) -> bool:
        return self._browser is not None

    async def _ensure_started(self) -> Browser:
        async with self._start_lock:
            if self._browser is None:
                self._playwright = await async_playwright().start()

                args = [
                    '--disable-blink-features=AutomationControlled',
                    '--no-sandbox',
                    '--disable-setuid-sandbox',
                    '--disable-dev-shm-usage',
                ] + self._config.extra_args

                self._browser = await self._playwright.chromium.launch(
                    headless=self._config.headless,
                    args=args,
                    proxy={"server": self._config.proxy} if self._config.proxy else None
                )
                logger.info("playwright_browser_launched", headless=self._config.headless)
        return self._browser

    async def _new_context(self) -> BrowserContext:
        browser = await self._ensure_started()
        context = await browser.new_context(
            viewport=self._config.viewport,
            user_agent=self._config.user_agent or DEFAULT_USER_AGENT,
            locale=self._config.locale,
            extra_http_headers={"Accept-Language": "ru-RU,ru;q=0.9,en;q=0.8"},
        )
        context.set_default_timeout(self._config.selector_timeout * 1000)
        context.set_default_navigation_timeout(self._config.navigation_timeout * 1000)
        return context

    async def acquire(self, url: str) -> PageLease:
        """Open a fresh context and page, then navigate to url"""
        await self._slots.acquire()
        context = None
        try:
            context = await self._new_context()
            page = PlaywrightPage(await context.new_page())
            await page.goto(
                url,
                wait_until="networkidle",
                timeout=int(self._config.navigation_timeout * 1000)
            )
        except BaseException:
            if context is not None:
                await self._close_quietly(context)
            self._slots.release()
            raise

        logger.debug("page_acquired", url=url)
        return PageLease(page=page, handle=context)

    async def release(self, lease: PageLease) -> None:
        """Close page and context, then free the slot"""
        try:
            await self._close_quietly(lease.page)
            if lease.handle is not None:
                await self._close_quietly(lease.handle)
        finally:
            self._slots.release()

    @staticmethod
    async def _close_quietly(closable) -> None:
        try:
            await closable.close()
        except Exception as e:
            logger.warning("browser_close_failed", error=str(e))

    async def close(self) -> None:
        """Cleanup resources"""
        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        logger.info("playwright_browser_closed")
