"""
Page provider factory
Design Pattern: Factory Method + Registry Pattern
"""
from typing import Dict, Optional, Type

import structlog

from .engines.playwright_engine import PlaywrightPageProvider
from .interfaces import BrowserConfig, BrowserType, IPageProvider

logger = structlog.get_logger()


class PageProviderFactory:
    """
    Factory for creating page providers
    """

    # Registry of available providers
    _providers: Dict[BrowserType, Type[IPageProvider]] = {
        BrowserType.PLAYWRIGHT: PlaywrightPageProvider,
    }

    @classmethod
    def register_provider(
            cls,
            browser_type: BrowserType,
            provider_class: Type[IPageProvider]
    ) -> None:
        """Register a new provider type"""
        cls._providers[browser_type] = provider_class
        logger.info("page_provider_registered", browser_type=browser_type.value)

    @classmethod
    def create(
            cls,
            browser_type: BrowserType = BrowserType.PLAYWRIGHT,
            config: Optional[BrowserConfig] = None
    ) -> IPageProvider:
        """Create a page provider. The browser itself starts on first use."""
        if browser_type not in cls._providers:
            raise ValueError(f"Unknown browser type: {browser_type}")

        provider = cls._providers[browser_type](config or BrowserConfig())

        logger.info("page_provider_created", browser_type=browser_type.value)
        return provider
