"""Interfaces for the captcha system.

Two levels are defined here. An ``ICaptchaSolver`` talks to one remote
solving service. An ``ICaptchaProvider`` is what the browser session sees:
a single entry point that may front several solvers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class CaptchaSolution:
    """Outcome of a captcha solve request.

    Attributes:
        success: True when ``solution`` holds an answer.
        solution: The recognised captcha text.
        error: Human-readable reason when the solve failed.
        timed_out: True when the chain gave up at its deadline rather than
            because every solver failed.
    """
    success: bool
    solution: Optional[str] = None
    error: Optional[str] = None
    timed_out: bool = False


class ICaptchaSolver(ABC):
    """Interface for captcha solvers.

    All captcha solver implementations must inherit from this interface
    and implement the required methods. This ensures consistency across
    different captcha solving services (CapSolver, 2Captcha, AntiCaptcha, etc.).
    """

    @abstractmethod
    async def solve(self, image: bytes) -> Optional[str]:
        """Solve an image captcha.

        Args:
            image: Raw PNG bytes of the captcha image.

        Returns:
            The text shown in the image, or None if the service gave no answer.

        Raises:
            Exception: On transport or API errors. The chain counts these
                against the solver's circuit breaker.
        """
        pass

    @abstractmethod
    def can_handle(self, captcha_type: str) -> bool:
        """Check if this solver can handle a specific captcha type.

        Args:
            captcha_type: The type of captcha to check, e.g. ``"image"``.

        Returns:
            True if this solver supports the given captcha type, False otherwise.
        """
        pass


class ICaptchaProvider(ABC):
    """Captcha solving entry point used by the browser automation session."""

    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether solving is configured at all."""
        pass

    @abstractmethod
    async def solve(self, image: bytes) -> CaptchaSolution:
        """Solve an image captcha. Never raises for solver failures."""
        pass
