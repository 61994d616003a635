"""Captcha handling module.

Main components:
- CaptchaChain: Captcha provider that tries several solvers in order
- CaptchaSolverHandler: Wraps individual solvers with circuit breaker protection
- ICaptchaSolver / ICaptchaProvider: Interfaces for solver services and providers
- Solver implementations: TwoCaptchaSolver, AntiCaptchaSolver, CapSolverAI
"""

from .chain import CaptchaChain, CaptchaSolverHandler
from .interfaces import CaptchaSolution, ICaptchaProvider, ICaptchaSolver
from .solvers import AntiCaptchaSolver, CapSolverAI, TwoCaptchaSolver

__all__ = [
    "CaptchaChain",
    "CaptchaSolverHandler",
    "CaptchaSolution",
    "ICaptchaProvider",
    "ICaptchaSolver",
    "AntiCaptchaSolver",
    "CapSolverAI",
    "TwoCaptchaSolver",
]
