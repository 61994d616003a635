"""Image captcha solving through a chain of paid solver services.

The portals show a distorted-text image before every form submission. The
solver services (2Captcha, Anti-Captcha, CapSolver) are tried one after
another; each sits behind its own circuit breaker, so a service that keeps
failing is skipped until it recovers. The whole chain shares one deadline.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from ..config.settings import CaptchaSettings
from ..resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitBreakerOpen
from .interfaces import CaptchaSolution, ICaptchaProvider, ICaptchaSolver
from .solvers import AntiCaptchaSolver, CapSolverAI, TwoCaptchaSolver

logger = structlog.get_logger()


class CaptchaSolverHandler:
    """Handler for a captcha solver with circuit breaker protection.

    If the solver cannot handle the captcha type, fails, or is blocked by its
    breaker, the request is passed to the next handler.
    """

    def __init__(
        self,
        solver: ICaptchaSolver,
        circuit_breaker: Optional[CircuitBreaker] = None,
        next_handler: Optional['CaptchaSolverHandler'] = None
    ):
        """Initialize the handler.

        Args:
            solver: The captcha solver implementation.
            circuit_breaker: Optional circuit breaker instance. If not provided,
                           a new one will be created with default configuration.
            next_handler: The next handler in the chain (optional).
        """
        self.solver = solver
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name=solver.__class__.__name__,
            config=CircuitBreakerConfig()
        )
        self.next_handler = next_handler
        self.logger = logger.bind(solver=solver.__class__.__name__)

    async def handle(self, image: bytes, captcha_type: str = "image") -> Optional[str]:
        """Try this solver, then delegate down the chain.

        Args:
            image: PNG bytes of the captcha image.
            captcha_type: Captcha type used to pick capable solvers.

        Returns:
            The captcha solution string if successful, None otherwise.
        """
        if not self.solver.can_handle(captcha_type):
            self.logger.debug("solver_cannot_handle", captcha_type=captcha_type)
            return await self._next(image, captcha_type)

        try:
            self.logger.info("attempting_captcha_solve", captcha_type=captcha_type)
            solution = await self.circuit_breaker.call(self.solver.solve, image)

            if solution:
                self.logger.info("captcha_solved_successfully")
                return solution
            self.logger.warning("solver_returned_no_solution")

        except CircuitBreakerOpen:
            self.logger.warning(
                "circuit_breaker_open",
                status=self.circuit_breaker.snapshot()
            )
        except Exception as e:
            self.logger.error(
                "captcha_solve_error",
                error=str(e),
                exc_info=True
            )

        return await self._next(image, captcha_type)

    async def _next(self, image: bytes, captcha_type: str) -> Optional[str]:
        if self.next_handler:
            return await self.next_handler.handle(image, captcha_type)
        return None

    def set_next(self, handler: 'CaptchaSolverHandler') -> 'CaptchaSolverHandler':
        """Set the next handler in the chain.

        Returns:
            The provided handler for method chaining.
        """
        self.next_handler = handler
        return handler


class CaptchaChain(ICaptchaProvider):
    """Captcha provider that tries a chain of solvers in order.

    An empty chain reports itself as disabled, which makes the browser
    session fail fast instead of submitting a form without an answer.
    """

    def __init__(self, timeout: float = 120.0):
        """Initialize an empty chain.

        Args:
            timeout: Seconds allowed for the whole chain to produce an answer.
        """
        self.timeout = timeout
        self._first_handler: Optional[CaptchaSolverHandler] = None
        self._handlers: List[CaptchaSolverHandler] = []
        self.logger = logger.bind(component="captcha_chain")

    @classmethod
    def from_settings(cls, settings: CaptchaSettings) -> 'CaptchaChain':
        """Build a chain with a solver for every configured API key.

        Order is 2Captcha, Anti-Captcha, CapSolver. Nothing is added when
        captcha solving is disabled.
        """
        chain = cls(timeout=settings.timeout)
        if not settings.enabled:
            return chain

        solver_keys = (
            (TwoCaptchaSolver, settings.twocaptcha_api_key),
            (AntiCaptchaSolver, settings.anticaptcha_api_key),
            (CapSolverAI, settings.capsolver_api_key),
        )
        for solver_class, api_key in solver_keys:
            if api_key:
                chain.add_solver(solver_class(
                    api_key,
                    timeout=settings.timeout,
                    polling_interval=settings.polling_interval
                ))

        if not chain._handlers:
            chain.logger.warning("captcha_enabled_without_api_keys")
        return chain

    def add_solver(
        self,
        solver: ICaptchaSolver,
        circuit_breaker_config: Optional[CircuitBreakerConfig] = None
    ) -> 'CaptchaChain':
        """Add a solver to the end of the chain.

        Each solver is automatically wrapped with a circuit breaker.

        Returns:
            Self for method chaining.
        """
        circuit_breaker = CircuitBreaker(
            name=solver.__class__.__name__,
            config=circuit_breaker_config or CircuitBreakerConfig()
        )

        handler = CaptchaSolverHandler(solver, circuit_breaker)

        if not self._first_handler:
            self._first_handler = handler
        else:
            self._handlers[-1].set_next(handler)

        self._handlers.append(handler)

        self.logger.info(
            "solver_added_to_chain",
            solver=solver.__class__.__name__,
            position=len(self._handlers)
        )

        return self

    def is_enabled(self) -> bool:
        return self._first_handler is not None

    async def solve(self, image: bytes) -> CaptchaSolution:
        """Attempt to solve an image captcha using the chain.

        Returns:
            CaptchaSolution; ``success`` is False when no solver answered
            or the chain ran out of time.
        """
        if not self._first_handler:
            self.logger.error("no_solvers_in_chain")
            return CaptchaSolution(success=False, error="No captcha solvers configured")

        self.logger.info("starting_captcha_resolution", solvers_count=len(self._handlers))

        try:
            solution = await asyncio.wait_for(
                self._first_handler.handle(image, "image"),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            self.logger.error("captcha_resolution_timeout", timeout=self.timeout)
            return CaptchaSolution(success=False, error="Captcha solving timed out", timed_out=True)

        if solution:
            self.logger.info("captcha_resolved_by_chain")
            return CaptchaSolution(success=True, solution=solution)

        self.logger.error("captcha_not_resolved_by_any_solver")
        return CaptchaSolution(success=False, error="No solver could solve the captcha")

    def get_status(self) -> List[Dict[str, Any]]:
        """Get the status of all circuit breakers in the chain."""
        return [
            handler.circuit_breaker.snapshot()
            for handler in self._handlers
        ]
