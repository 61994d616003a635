"""Fault-tolerance primitives shared by the gateways and the captcha chain."""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitBreakerState,
    CircuitState,
)
from .retry import RetryPolicy

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpen",
    "CircuitBreakerState",
    "CircuitState",
    "RetryPolicy",
]
