"""Resilient verification gateway.

Turns an unreliable, captcha-protected government web form into a cacheable,
fault-tolerant service call. The flow for every check is:

1. Normalize the query (invalid queries get a fallback result at once)
2. Cache lookup (hit returns the cached result tagged CACHE)
3. Integration disabled returns the service's fallback result
4. Circuit breaker open returns a fallback without touching the portal
5. Retry loop around one browser attempt plus extraction, each attempt
   bounded by a timeout
6. Success is recorded, cached and returned as LIVE; exhaustion is recorded
   as a breaker failure and returned as a fallback

``check`` never raises, with the exception of task cancellation.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..browser.session import BrowserAutomationSession
from ..cache.interfaces import ICacheAdapter
from ..config.mcp_logger import logger
from ..config.settings import ServiceSettings
from ..exceptions import NonRetryableError, QueryValidationError
from ..resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from ..resilience.retry import RetryPolicy
from .interfaces import Extraction, VerificationResult, VerificationService, VerificationSource

DEMO_ERROR = "Демонстрационные данные: запрос к порталу не выполнялся"


class VerificationGateway:
    """Gateway for one verification service.

    Gateways are long-lived: one per service for the life of the process, so
    the circuit breaker sees every request to its portal.

    Args:
        service: Portal-specific behaviour (forms, parsing, fallbacks).
        settings: Timeouts, retry, breaker and cache settings.
        session: Browser automation session used for live checks.
        cache: Result cache.
        breaker: Circuit breaker; built from settings when omitted.
        retry_policy: Retry policy; built from settings when omitted.
        now: Wall clock for ``checked_at``. Injectable for tests.
    """

    def __init__(
        self,
        service: VerificationService,
        settings: ServiceSettings,
        session: BrowserAutomationSession,
        cache: ICacheAdapter,
        breaker: Optional[CircuitBreaker] = None,
        retry_policy: Optional[RetryPolicy] = None,
        now: Callable[[], datetime] = datetime.now
    ):
        self.service = service
        self.settings = settings
        self._session = session
        self._cache = cache
        self._now = now
        self.breaker = breaker or CircuitBreaker(
            name=service.name,
            config=CircuitBreakerConfig(
                failure_threshold=settings.circuit_threshold,
                recovery_timeout=settings.circuit_reset_timeout
            )
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.retry_attempts,
            base_delay=settings.retry_base_delay,
            name=service.name
        )
        self.logger = logger.bind(service=service.name)

    async def check(self, query: Any) -> VerificationResult:
        """Run one verification check.

        Args:
            query: The service's query dataclass, or a mapping of its fields.

        Returns:
            VerificationResult tagged LIVE, CACHE or FALLBACK.
        """
        try:
            normalized = self.service.normalize(query)
        except QueryValidationError as e:
            self.logger.info("query_rejected", field=e.field, reason=e.reason)
            return self._result(
                self._empty_for_invalid(),
                VerificationSource.FALLBACK,
                error=str(e)
            )

        key = self.service.cache_key(normalized)

        cached = await self._cache_get(key)
        if cached is not None:
            self.logger.info("cache_hit")
            cached.source = VerificationSource.CACHE
            return cached

        if not self.settings.enabled:
            self.logger.debug("integration_disabled")
            return self._result(
                self.service.disabled_extraction(normalized),
                VerificationSource.FALLBACK,
                error=self.service.disabled_error
            )

        if not await self.breaker.allow():
            self.logger.warning("circuit_open_request_rejected", breaker=self.breaker.snapshot())
            return self._result(
                self.service.failure_extraction(normalized),
                VerificationSource.FALLBACK,
                error=self.service.circuit_open_error
            )

        try:
            extraction = await self.retry_policy.run(lambda: self._attempt(normalized))
        except asyncio.CancelledError:
            await self.breaker.release_probe()
            raise
        except Exception as e:
            await self.breaker.record_failure()
            self.logger.error(
                "verification_failed",
                error=str(e) or e.__class__.__name__,
                error_type=e.__class__.__name__,
                retryable=not isinstance(e, NonRetryableError)
            )
            return self._result(
                self.service.failure_extraction(normalized),
                VerificationSource.FALLBACK,
                error=self.service.failure_error
            )

        await self.breaker.record_success()
        result = self._result(extraction, VerificationSource.LIVE)
        await self._cache_set(key, result)

        self.logger.info(
            "verification_completed",
            verdict=result.verdict,
            low_confidence=result.low_confidence
        )
        return result

    async def _attempt(self, query: Any) -> Extraction:
        form = self.service.form_spec(query, self.settings.service_url)

        async def run_once() -> Extraction:
            html = await self._session.execute(form)
            return self.service.parse(html, query)

        return await asyncio.wait_for(run_once(), timeout=self.settings.timeout)

    def _empty_for_invalid(self) -> Extraction:
        return Extraction(verdict=False, payload={})

    def _result(
        self,
        extraction: Extraction,
        source: VerificationSource,
        error: Optional[str] = None
    ) -> VerificationResult:
        return VerificationResult(
            service=self.service.name,
            verdict=extraction.verdict,
            payload=extraction.payload,
            source=source,
            checked_at=self._now(),
            error=error,
            message=extraction.message,
            low_confidence=extraction.low_confidence,
        )

    async def _cache_get(self, key: str) -> Optional[VerificationResult]:
        try:
            data = await self._cache.get(key)
            return VerificationResult.from_dict(data) if data else None
        except Exception as e:
            self.logger.warning("cache_read_failed", error=str(e))
            return None

    async def _cache_set(self, key: str, result: VerificationResult) -> None:
        try:
            await self._cache.set(key, result.to_dict(), self.settings.cache_ttl)
        except Exception as e:
            self.logger.warning("cache_write_failed", error=str(e))

    def demo_result(self) -> VerificationResult:
        """Fixed sample answer of the service; the portal is not consulted."""
        return self._result(
            self.service.demo_extraction(),
            VerificationSource.FALLBACK,
            error=DEMO_ERROR
        )

    def snapshot(self) -> Dict[str, Any]:
        """Health information: enablement and circuit breaker state."""
        return {
            "service": self.service.name,
            "enabled": self.settings.enabled,
            "circuit_breaker": self.breaker.snapshot(),
        }
