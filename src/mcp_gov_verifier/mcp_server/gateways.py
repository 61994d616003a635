"""Construction of the long-lived verification gateways.

All gateways share one page provider (one browser process), one captcha
chain and one result cache. Each gets its own circuit breaker, so a failing
portal does not affect the others.
"""

from typing import Dict, Optional

from ..browser.factory import PageProviderFactory
from ..browser.interfaces import BrowserConfig, BrowserType, IPageProvider
from ..browser.session import BrowserAutomationSession
from ..cache.interfaces import ICacheAdapter
from ..cache.storage import EncryptedFileCacheAdapter, InMemoryCacheAdapter
from ..captcha.chain import CaptchaChain
from ..config.mcp_logger import logger
from ..config.settings import AppSettings, BrowserSettings, CacheSettings, load_app_settings
from ..connectors.fssp import FsspService
from ..connectors.gateway import VerificationGateway
from ..connectors.gibdd import GibddService
from ..connectors.passport import PassportService

_gateways: Optional[Dict[str, VerificationGateway]] = None


def build_cache(settings: CacheSettings) -> ICacheAdapter:
    """Cache backend selected by ``CACHE_BACKEND``."""
    if settings.backend == "encrypted":
        return EncryptedFileCacheAdapter(settings.path, settings.encryption_key)
    if settings.backend != "memory":
        logger.warning("unknown_cache_backend", backend=settings.backend, fallback="memory")
    return InMemoryCacheAdapter()


def build_page_provider(settings: BrowserSettings) -> IPageProvider:
    config = BrowserConfig(
        headless=settings.headless,
        proxy=settings.proxy,
        user_agent=settings.user_agent,
        navigation_timeout=settings.navigation_timeout,
        selector_timeout=settings.selector_timeout,
        max_pages=settings.max_pages,
    )
    return PageProviderFactory.create(BrowserType.PLAYWRIGHT, config)


def build_gateways(settings: AppSettings) -> Dict[str, VerificationGateway]:
    """Wire one gateway per service from the application settings.

    Args:
        settings: Loaded application settings.

    Returns:
        Gateways keyed by service name (``fssp``, ``gibdd``, ``passport``).
    """
    cache = build_cache(settings.cache)
    page_provider = build_page_provider(settings.browser)
    captcha = CaptchaChain.from_settings(settings.captcha)

    services = (
        (FsspService(), settings.fssp),
        (GibddService(), settings.gibdd),
        (PassportService(), settings.passport),
    )

    gateways = {}
    for service, service_settings in services:
        session = BrowserAutomationSession(
            page_provider,
            captcha_provider=captcha,
            selector_timeout=settings.browser.selector_timeout,
            service=service.name,
        )
        gateways[service.name] = VerificationGateway(service, service_settings, session, cache)

    logger.info(
        "gateways_ready",
        enabled=[name for name, gateway in gateways.items() if gateway.settings.enabled],
        cache_backend=settings.cache.backend,
        captcha_enabled=captcha.is_enabled(),
    )
    return gateways


def get_gateways() -> Dict[str, VerificationGateway]:
    """Get or create the process-wide gateways."""
    global _gateways

    if _gateways is None:
        _gateways = build_gateways(load_app_settings())

    return _gateways
