"""
Browser page interfaces using ABC
Design Pattern: Strategy + Dependency Inversion Principle

The automation session only ever talks to these interfaces, so the concrete
browser (Playwright today) can be swapped or faked in tests.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class BrowserType(Enum):
    """Supported browser backends"""
    PLAYWRIGHT = "playwright"


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class BrowserConfig:
    """Browser configuration

    Timeouts are in seconds.
    """
    headless: bool = True
    proxy: Optional[str] = None
    user_agent: Optional[str] = None
    locale: str = "ru-RU"
    viewport: Dict[str, int] = field(default_factory=lambda: {"width": 1920, "height": 1080})
    extra_args: List[str] = field(default_factory=list)
    navigation_timeout: float = 30.0
    selector_timeout: float = 10.0
    max_pages: int = 4


class IElement(ABC):
    """Interface for an element handle on a page"""

    @abstractmethod
    async def click(self) -> None:
        """Click the element"""
        pass

    @abstractmethod
    async def fill(self, value: str) -> None:
        """Replace the element's value"""
        pass

    @abstractmethod
    async def select_option(
        self,
        value: Optional[str] = None,
        label: Optional[str] = None
    ) -> None:
        """Choose an option of a <select> by value or by visible label"""
        pass

    @abstractmethod
    async def screenshot(self) -> bytes:
        """Capture the element as PNG bytes"""
        pass


class IPage(ABC):
    """Interface for a browser page

    Timeouts are in milliseconds, as in the browser APIs.
    """

    @abstractmethod
    async def goto(self, url: str, wait_until: str = "load", timeout: int = 30000) -> None:
        """Navigate to URL"""
        pass

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout: int = 30000) -> None:
        """Wait for element to appear"""
        pass

    @abstractmethod
    async def query_selector(self, selector: str) -> Optional[IElement]:
        """Return the first element matching selector, or None"""
        pass

    @abstractmethod
    async def wait_for_load_state(self, state: str = "load", timeout: int = 30000) -> None:
        """Wait until the page reaches a load state"""
        pass

    @abstractmethod
    async def evaluate(self, script: str) -> Any:
        """Execute JavaScript"""
        pass

    @abstractmethod
    async def content(self) -> str:
        """Get page HTML content"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the page"""
        pass


@dataclass
class PageLease:
    """A page handed out by a provider for one attempt.

    ``handle`` is opaque to callers; providers use it to free whatever backs
    the page (context, pool slot).
    """
    page: IPage
    handle: Any = None


class IPageProvider(ABC):
    """
    Hands out pages already navigated to a URL.
    Every acquired lease must be released exactly once.
    """

    @abstractmethod
    async def acquire(self, url: str) -> PageLease:
        """Open a page on url"""
        pass

    @abstractmethod
    async def release(self, lease: PageLease) -> None:
        """Close the page and free its resources"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Shut down the underlying browser"""
        pass
