"""Tests for the Playwright page provider (Playwright itself is mocked)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mcp_gov_verifier.browser.engines.playwright_engine import (
    PlaywrightElement,
    PlaywrightPage,
    PlaywrightPageProvider,
)
from mcp_gov_verifier.browser.interfaces import DEFAULT_USER_AGENT, BrowserConfig


@pytest.fixture
def mock_playwright():
    """Mock async_playwright().start() down to the page."""
    with patch('mcp_gov_verifier.browser.engines.playwright_engine.async_playwright') as mock:
        mock_page = AsyncMock()
        mock_page.content.return_value = "<html><body>Форма</body></html>"

        mock_context = MagicMock()
        mock_context.new_page = AsyncMock(return_value=mock_page)
        mock_context.close = AsyncMock()

        mock_browser = AsyncMock()
        mock_browser.new_context.return_value = mock_context

        mock_playwright_instance = AsyncMock()
        mock_playwright_instance.chromium.launch.return_value = mock_browser

        mock.return_value.start = AsyncMock(return_value=mock_playwright_instance)

        yield {
            'playwright': mock,
            'instance': mock_playwright_instance,
            'browser': mock_browser,
            'context': mock_context,
            'page': mock_page
        }


class TestPlaywrightPageProvider:
    """Test suite for PlaywrightPageProvider."""

    def test_not_started_on_creation(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig())

        assert provider.is_initialized is False
        mock_playwright['playwright'].assert_not_called()

    @pytest.mark.asyncio
    async def test_acquire_launches_browser_and_navigates(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig(headless=True, navigation_timeout=20))

        lease = await provider.acquire("https://fssp.gov.ru/iss/ip")

        assert provider.is_initialized
        launch_kwargs = mock_playwright['instance'].chromium.launch.call_args.kwargs
        assert launch_kwargs['headless'] is True
        assert '--disable-blink-features=AutomationControlled' in launch_kwargs['args']
        assert launch_kwargs['proxy'] is None
        mock_playwright['page'].goto.assert_awaited_once_with(
            "https://fssp.gov.ru/iss/ip", wait_until="networkidle", timeout=20000
        )
        assert isinstance(lease.page, PlaywrightPage)
        assert lease.handle is mock_playwright['context']

    @pytest.mark.asyncio
    async def test_context_is_russian_locale(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig(selector_timeout=7, navigation_timeout=25))

        await provider.acquire("https://example.ru")

        context_kwargs = mock_playwright['browser'].new_context.call_args.kwargs
        assert context_kwargs['locale'] == "ru-RU"
        assert context_kwargs['user_agent'] == DEFAULT_USER_AGENT
        assert context_kwargs['extra_http_headers']['Accept-Language'].startswith("ru-RU")
        mock_playwright['context'].set_default_timeout.assert_called_once_with(7000)
        mock_playwright['context'].set_default_navigation_timeout.assert_called_once_with(25000)

    @pytest.mark.asyncio
    async def test_proxy_passed_to_launch(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig(proxy="http://proxy.example:3128"))

        await provider.acquire("https://example.ru")

        launch_kwargs = mock_playwright['instance'].chromium.launch.call_args.kwargs
        assert launch_kwargs['proxy'] == {"server": "http://proxy.example:3128"}

    @pytest.mark.asyncio
    async def test_browser_launched_once(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig())

        await asyncio.gather(*(provider.acquire("https://example.ru") for _ in range(3)))

        mock_playwright['instance'].chromium.launch.assert_awaited_once()
        assert mock_playwright['browser'].new_context.await_count == 3

    @pytest.mark.asyncio
    async def test_release_closes_page_and_context(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig(max_pages=1))

        lease = await provider.acquire("https://example.ru")
        await provider.release(lease)

        mock_playwright['page'].close.assert_awaited_once()
        mock_playwright['context'].close.assert_awaited_once()
        # Slot is free again
        await asyncio.wait_for(provider.acquire("https://example.ru"), timeout=1)

    @pytest.mark.asyncio
    async def test_navigation_failure_frees_slot(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig(max_pages=1))
        mock_playwright['page'].goto.side_effect = RuntimeError("net::ERR_CONNECTION_RESET")

        with pytest.raises(RuntimeError):
            await provider.acquire("https://example.ru")

        mock_playwright['context'].close.assert_awaited_once()
        mock_playwright['page'].goto.side_effect = None
        await asyncio.wait_for(provider.acquire("https://example.ru"), timeout=1)

    @pytest.mark.asyncio
    async def test_pages_bounded_by_max_pages(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig(max_pages=1))
        await provider.acquire("https://example.ru")

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(provider.acquire("https://example.ru"), timeout=0.05)

    @pytest.mark.asyncio
    async def test_close(self, mock_playwright):
        provider = PlaywrightPageProvider(BrowserConfig())
        await provider.acquire("https://example.ru")

        await provider.close()

        mock_playwright['browser'].close.assert_awaited_once()
        mock_playwright['instance'].stop.assert_awaited_once()
        assert provider.is_initialized is False


class TestPlaywrightWrappers:
    """Tests for the page and element adapters."""

    @pytest.mark.asyncio
    async def test_query_selector_wraps_element(self):
        raw_page = AsyncMock()
        raw_element = AsyncMock()
        raw_page.query_selector.return_value = raw_element

        element = await PlaywrightPage(raw_page).query_selector("input#lastname")

        assert isinstance(element, PlaywrightElement)
        await element.fill("ИВАНОВ")
        raw_element.fill.assert_awaited_once_with("ИВАНОВ")

    @pytest.mark.asyncio
    async def test_query_selector_missing(self):
        raw_page = AsyncMock()
        raw_page.query_selector.return_value = None

        assert await PlaywrightPage(raw_page).query_selector("#nothing") is None

    @pytest.mark.asyncio
    async def test_select_option_by_value_or_label(self):
        raw_element = AsyncMock()
        element = PlaywrightElement(raw_element)

        await element.select_option(value="77")
        await element.select_option(label="г. Москва")

        raw_element.select_option.assert_any_await(value="77")
        raw_element.select_option.assert_any_await(label="г. Москва")

    @pytest.mark.asyncio
    async def test_screenshot_png(self):
        raw_element = AsyncMock()
        raw_element.screenshot.return_value = b"\x89PNG"

        assert await PlaywrightElement(raw_element).screenshot() == b"\x89PNG"
        raw_element.screenshot.assert_awaited_once_with(type="png")
