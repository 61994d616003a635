"""
Pytest configuration and shared fixtures for the test suite.
"""
from datetime import datetime

import pytest

from mcp_gov_verifier.cache.storage import InMemoryCacheAdapter
from mcp_gov_verifier.config.settings import ServiceSettings
from mcp_gov_verifier.resilience.retry import RetryPolicy

from tests.fixtures.browser_fixtures import FakeCaptchaProvider, FakePageProvider


class FakeClock:
    """Manually advanced clock for time-dependent components."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    """Clock starting at t=1000 that only moves when told to."""
    return FakeClock()


@pytest.fixture
def fixed_now():
    """Wall clock frozen at a known instant, for ``checked_at``."""
    return lambda: datetime(2025, 3, 1, 12, 0, 0)


@pytest.fixture
def no_sleep():
    """Sleep replacement that records the requested delays."""
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
def instant_retry(no_sleep):
    """Three-attempt retry policy that never actually waits."""
    return RetryPolicy(max_attempts=3, base_delay=2.0, rand=lambda: 0.0, sleep=no_sleep)


@pytest.fixture
def enabled_settings():
    """Enabled service settings with short timeouts."""
    return ServiceSettings(
        enabled=True,
        service_url="https://portal.example/form",
        timeout=5.0,
        retry_attempts=3,
        retry_base_delay=2.0,
        circuit_threshold=5,
        circuit_reset_timeout=60.0,
        cache_ttl=3600,
    )


@pytest.fixture
def disabled_settings(enabled_settings):
    """Same settings with the integration switched off."""
    enabled_settings.enabled = False
    return enabled_settings


@pytest.fixture
def memory_cache():
    """Empty in-memory result cache."""
    return InMemoryCacheAdapter()


@pytest.fixture
def page_provider():
    """Page provider serving a blank results page."""
    return FakePageProvider()


@pytest.fixture
def captcha_provider():
    """Enabled captcha provider answering "АБВГД"."""
    return FakeCaptchaProvider(solution="АБВГД")


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
