"""Browser automation: page interfaces, Playwright provider and the form session."""

from .factory import PageProviderFactory
from .interfaces import BrowserConfig, BrowserType, IElement, IPage, IPageProvider, PageLease
from .session import BrowserAutomationSession, FieldSpec, FormSpec, first_match

__all__ = [
    "PageProviderFactory",
    "BrowserConfig",
    "BrowserType",
    "IElement",
    "IPage",
    "IPageProvider",
    "PageLease",
    "BrowserAutomationSession",
    "FieldSpec",
    "FormSpec",
    "first_match",
]
