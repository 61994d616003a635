"""Tests for the verification gateway."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from mcp_gov_verifier.browser.session import BrowserAutomationSession
from mcp_gov_verifier.connectors.fssp import FsspService
from mcp_gov_verifier.connectors.gateway import VerificationGateway
from mcp_gov_verifier.connectors.interfaces import VerificationResult, VerificationSource
from mcp_gov_verifier.connectors.passport import PassportService
from mcp_gov_verifier.exceptions import CaptchaUnavailableError, FormNotFoundError, PortalError
from mcp_gov_verifier.resilience import CircuitBreaker, CircuitBreakerConfig, CircuitState, RetryPolicy
from tests.fixtures import html_fixtures
from tests.fixtures.browser_fixtures import FakeCaptchaProvider, FakeElement, FakePage, FakePageProvider

FSSP_QUERY = {
    "last_name": "Иванов",
    "first_name": "Иван",
    "birth_date": "1985-05-15",
    "region": 77,
}


class StubSession:
    """Session returning canned HTML or raising canned errors, in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def execute(self, form):
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _gateway(service, settings, session, cache, now, breaker=None, retry=None):
    return VerificationGateway(
        service,
        settings,
        session,
        cache,
        breaker=breaker,
        retry_policy=retry,
        now=now,
    )


@pytest.fixture
def breaker(fake_clock):
    return CircuitBreaker("fssp", CircuitBreakerConfig(failure_threshold=5, recovery_timeout=60), clock=fake_clock)


class TestFsspEndToEnd:
    """Full path through a real session and extractor with a fake browser."""

    @pytest.mark.asyncio
    async def test_disabled_then_enabled_then_cached(
        self, disabled_settings, memory_cache, fixed_now, instant_retry, no_sleep
    ):
        provider = FakePageProvider(lambda: FakePage(html=html_fixtures.FSSP_TWO_PROCEEDINGS))
        session = BrowserAutomationSession(provider, FakeCaptchaProvider(), sleep=no_sleep, service="fssp")
        gateway = _gateway(FsspService(), disabled_settings, session, memory_cache, fixed_now, retry=instant_retry)

        disabled = await gateway.check(FSSP_QUERY)

        assert disabled.source == VerificationSource.FALLBACK
        assert disabled.verdict is False
        assert disabled.payload["has_debt"] is False
        assert "fssp.gov.ru" in disabled.error
        assert provider.acquired == 0

        gateway.settings.enabled = True
        live = await gateway.check(FSSP_QUERY)

        assert live.source == VerificationSource.LIVE
        assert live.verdict is True
        assert live.error is None
        assert live.payload["total_amount"] == 6500.5
        assert live.payload["total_proceedings"] == 2
        assert live.checked_at == datetime(2025, 3, 1, 12, 0, 0)
        assert provider.acquired == provider.released == 1

        cached = await gateway.check(dict(FSSP_QUERY, last_name="ИВАНОВ"))

        assert cached.source == VerificationSource.CACHE
        assert cached.payload == live.payload
        assert provider.acquired == 1


class TestGatewayFlow:
    """Ordering of cache, enablement, breaker and retries."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_browser_and_captcha(self, enabled_settings, memory_cache, fixed_now):
        service = FsspService()
        key = service.cache_key(service.normalize(FSSP_QUERY))
        stored = VerificationResult(
            service="fssp",
            verdict=True,
            payload={"has_debt": True, "total_amount": 10.0, "exec_proceedings": [], "total_proceedings": 0},
            source=VerificationSource.LIVE,
            checked_at=datetime(2025, 2, 28, 9, 0, 0),
        )
        await memory_cache.set(key, stored.to_dict(), 3600)
        provider = FakePageProvider()
        captcha = FakeCaptchaProvider()
        session = BrowserAutomationSession(provider, captcha)

        result = await _gateway(service, enabled_settings, session, memory_cache, fixed_now).check(FSSP_QUERY)

        assert result.source == VerificationSource.CACHE
        assert result.verdict is True
        assert result.checked_at == datetime(2025, 2, 28, 9, 0, 0)
        assert provider.acquired == 0
        assert captcha.images == []

    @pytest.mark.asyncio
    async def test_cache_hit_served_even_when_disabled(self, disabled_settings, memory_cache, fixed_now):
        service = PassportService()
        gateway = _gateway(service, disabled_settings, StubSession("<html/>"), memory_cache, fixed_now)
        key = service.cache_key(service.normalize({"series": "4510", "number": "123456"}))
        stored = VerificationResult("passport", True, {"status": "INVALID"}, VerificationSource.LIVE, fixed_now())
        await memory_cache.set(key, stored.to_dict(), 3600)

        result = await gateway.check({"series": "4510", "number": "123456"})

        assert result.source == VerificationSource.CACHE
        assert result.verdict is True

    @pytest.mark.asyncio
    async def test_passport_test_series_when_disabled(self, disabled_settings, memory_cache, fixed_now):
        gateway = _gateway(PassportService(), disabled_settings, StubSession("<html/>"), memory_cache, fixed_now)

        flagged = await gateway.check({"series": "0000", "number": "123456"})
        clean = await gateway.check({"series": "4510", "number": "123456"})

        assert flagged.source == VerificationSource.FALLBACK
        assert flagged.verdict is True
        assert flagged.payload["status"] == "INVALID"
        assert clean.verdict is False
        assert clean.payload["status"] == "NOT_FOUND"
        assert clean.error and flagged.error

    @pytest.mark.asyncio
    async def test_invalid_query_touches_nothing(self, enabled_settings, fixed_now):
        cache = AsyncMock()
        session = StubSession("<html/>")
        gateway = _gateway(FsspService(), enabled_settings, session, cache, fixed_now)

        result = await gateway.check(dict(FSSP_QUERY, region=123))

        assert result.source == VerificationSource.FALLBACK
        assert result.verdict is False
        assert result.payload == {}
        assert result.error == "Invalid field 'region': must be a region code between 1 and 99"
        cache.get.assert_not_called()
        assert session.calls == 0
        assert gateway.breaker.snapshot()["failures"] == 0

    @pytest.mark.asyncio
    async def test_retry_then_success(self, enabled_settings, memory_cache, fixed_now, instant_retry, breaker):
        session = StubSession(FormNotFoundError("no form"), PortalError("reset"), html_fixtures.FSSP_NO_DEBT)
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, breaker, instant_retry)

        result = await gateway.check(FSSP_QUERY)

        assert result.source == VerificationSource.LIVE
        assert result.verdict is False
        assert session.calls == 3
        assert breaker.snapshot()["failures"] == 0

    @pytest.mark.asyncio
    async def test_exhausted_retries_fall_back(self, enabled_settings, memory_cache, fixed_now, instant_retry, breaker):
        session = StubSession(PortalError("down"))
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, breaker, instant_retry)

        result = await gateway.check(FSSP_QUERY)

        assert result.source == VerificationSource.FALLBACK
        assert result.error == FsspService.failure_error
        assert result.payload["has_debt"] is False
        assert session.calls == 3
        assert breaker.snapshot()["failures"] == 1
        assert await memory_cache.get(FsspService().cache_key(FsspService().normalize(FSSP_QUERY))) is None

    @pytest.mark.asyncio
    async def test_non_retryable_error_aborts(self, enabled_settings, memory_cache, fixed_now, instant_retry, breaker):
        session = StubSession(CaptchaUnavailableError("no solver"))
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, breaker, instant_retry)

        result = await gateway.check(FSSP_QUERY)

        assert result.source == VerificationSource.FALLBACK
        assert session.calls == 1
        assert breaker.snapshot()["failures"] == 1

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_retried(self, enabled_settings, memory_cache, fixed_now, instant_retry):
        class HangingOnce(StubSession):
            async def execute(self, form):
                self.calls += 1
                if self.calls == 1:
                    await asyncio.sleep(3600)
                return html_fixtures.FSSP_NO_DEBT

        enabled_settings.timeout = 0.05
        session = HangingOnce()
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, retry=instant_retry)

        result = await gateway.check(FSSP_QUERY)

        assert result.source == VerificationSource.LIVE
        assert session.calls == 2

    @pytest.mark.asyncio
    async def test_breaker_opens_and_rejects(self, enabled_settings, memory_cache, fixed_now, breaker, no_sleep):
        session = StubSession(PortalError("down"))
        retry = RetryPolicy(max_attempts=1, sleep=no_sleep)
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, breaker, retry)

        for _ in range(5):
            await gateway.check(FSSP_QUERY)
        assert breaker.current_state == CircuitState.OPEN
        calls_before = session.calls

        rejected = await gateway.check(FSSP_QUERY)

        assert rejected.source == VerificationSource.FALLBACK
        assert rejected.error == FsspService.circuit_open_error
        assert rejected.error != FsspService.failure_error
        assert session.calls == calls_before
        assert breaker.snapshot()["failures"] == 5

    @pytest.mark.asyncio
    async def test_breaker_recovers_after_timeout(
        self, enabled_settings, memory_cache, fixed_now, breaker, fake_clock, no_sleep
    ):
        session = StubSession(PortalError("down"))
        retry = RetryPolicy(max_attempts=1, sleep=no_sleep)
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, breaker, retry)
        for _ in range(5):
            await gateway.check(FSSP_QUERY)

        fake_clock.advance(61)
        session.outcomes = [html_fixtures.FSSP_NO_DEBT]
        result = await gateway.check(FSSP_QUERY)

        assert result.source == VerificationSource.LIVE
        assert breaker.is_closed()

    @pytest.mark.asyncio
    async def test_concurrent_failures_open_at_threshold(
        self, enabled_settings, memory_cache, fixed_now, breaker, no_sleep
    ):
        session = StubSession(PortalError("down"))
        retry = RetryPolicy(max_attempts=1, sleep=no_sleep)
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, breaker, retry)

        results = await asyncio.gather(*(gateway.check(FSSP_QUERY) for _ in range(5)))

        assert all(r.source == VerificationSource.FALLBACK for r in results)
        assert breaker.is_open()

    @pytest.mark.asyncio
    async def test_cache_errors_are_ignored(self, enabled_settings, fixed_now, instant_retry):
        cache = AsyncMock()
        cache.get.side_effect = OSError("disk gone")
        cache.set.side_effect = OSError("disk gone")
        gateway = _gateway(
            FsspService(), enabled_settings, StubSession(html_fixtures.FSSP_NO_DEBT), cache, fixed_now, retry=instant_retry
        )

        result = await gateway.check(FSSP_QUERY)

        assert result.source == VerificationSource.LIVE
        cache.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cached_with_service_ttl(self, enabled_settings, fixed_now, instant_retry):
        cache = AsyncMock()
        cache.get.return_value = None
        gateway = _gateway(
            FsspService(), enabled_settings, StubSession(html_fixtures.FSSP_NO_DEBT), cache, fixed_now, retry=instant_retry
        )

        await gateway.check(FSSP_QUERY)

        key, value, ttl = cache.set.await_args.args
        assert key == "fssp-check:ИВАНОВ:ИВАН::1985-05-15:77"
        assert value["source"] == "live"
        assert ttl == 3600

    @pytest.mark.asyncio
    async def test_cancellation_propagates_and_frees_probe(
        self, enabled_settings, memory_cache, fixed_now, breaker, fake_clock, no_sleep
    ):
        started = asyncio.Event()

        class Hanging(StubSession):
            async def execute(self, form):
                started.set()
                await asyncio.sleep(3600)

        retry = RetryPolicy(max_attempts=1, sleep=no_sleep)
        for _ in range(5):
            await breaker.record_failure()
        fake_clock.advance(61)
        gateway = _gateway(FsspService(), enabled_settings, Hanging(), memory_cache, fixed_now, breaker, retry)

        task = asyncio.create_task(gateway.check(FSSP_QUERY))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert breaker.current_state == CircuitState.HALF_OPEN
        assert await breaker.allow() is True

    @pytest.mark.asyncio
    async def test_never_raises_on_unexpected_errors(self, enabled_settings, memory_cache, fixed_now, instant_retry):
        session = StubSession(KeyError("surprise"))
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, retry=instant_retry)

        result = await gateway.check(FSSP_QUERY)

        assert result.source == VerificationSource.FALLBACK

    @pytest.mark.asyncio
    async def test_unsolved_captcha_is_solved_once(
        self, enabled_settings, memory_cache, fixed_now, instant_retry, breaker, no_sleep
    ):
        def captcha_page():
            return FakePage({
                "img.captcha": FakeElement("img.captcha", image=b"captcha-png"),
                'input[name="captcha"]': FakeElement('input[name="captcha"]'),
            })

        provider = FakePageProvider(captcha_page)
        captcha = FakeCaptchaProvider(solution=None)
        session = BrowserAutomationSession(provider, captcha, sleep=no_sleep, service="fssp")
        gateway = _gateway(FsspService(), enabled_settings, session, memory_cache, fixed_now, breaker, instant_retry)

        result = await gateway.check(FSSP_QUERY)

        assert result.source == VerificationSource.FALLBACK
        assert result.error == FsspService.failure_error
        assert captcha.images == [b"captcha-png"]
        assert provider.acquired == provider.released == 1
        assert breaker.snapshot()["failures"] == 1

    def test_snapshot(self, enabled_settings, memory_cache, fixed_now):
        gateway = _gateway(FsspService(), enabled_settings, StubSession("<html/>"), memory_cache, fixed_now)

        snapshot = gateway.snapshot()

        assert snapshot["service"] == "fssp"
        assert snapshot["enabled"] is True
        assert snapshot["circuit_breaker"]["state"] == "closed"

    def test_demo_result(self, enabled_settings, memory_cache, fixed_now):
        gateway = _gateway(FsspService(), enabled_settings, StubSession("<html/>"), memory_cache, fixed_now)

        result = gateway.demo_result()

        assert result.source == VerificationSource.FALLBACK
        assert result.verdict is True
        assert result.error


class TestVerificationResult:
    """Serialization used by the cache."""

    def test_to_dict_inlines_payload(self):
        result = VerificationResult(
            service="passport",
            verdict=False,
            payload={"status": "NOT_FOUND", "is_valid": True},
            source=VerificationSource.LIVE,
            checked_at=datetime(2025, 3, 1, 12, 0, 0),
            message="Паспорт не найден",
        )

        data = result.to_dict()

        assert data["status"] == "NOT_FOUND"
        assert data["source"] == "live"
        assert data["checked_at"] == "2025-03-01T12:00:00"
        assert VerificationResult.from_dict(data) == result
