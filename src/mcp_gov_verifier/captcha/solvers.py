"""Captcha solver implementations.

Concrete ``ICaptchaSolver`` clients for remote solving services. Only image
captchas are needed by the government portals, so each client submits a
base64 PNG and polls until the service returns the recognised text.

All HTTP goes through ``_request`` so tests can stub the network.
"""

import asyncio
import base64
import math
from typing import Any, Dict, Optional

import aiohttp

from ..config.mcp_logger import logger
from ..exceptions import CaptchaSolveError
from .interfaces import ICaptchaSolver

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30)


class _HttpSolver(ICaptchaSolver):
    """Shared HTTP plumbing and polling budget for solver clients."""

    supported_types = ("image",)

    def __init__(self, api_key: str, timeout: float = 120.0, polling_interval: float = 5.0):
        self.api_key = api_key
        self.timeout = timeout
        self.polling_interval = polling_interval

    def can_handle(self, captcha_type: str) -> bool:
        return captcha_type.lower() in self.supported_types

    @property
    def max_polls(self) -> int:
        if self.polling_interval <= 0:
            return 1
        return max(1, math.ceil(self.timeout / self.polling_interval))

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        async with aiohttp.ClientSession(timeout=REQUEST_TIMEOUT) as session:
            async with session.request(method, url, **kwargs) as response:
                response.raise_for_status()
                return await response.json(content_type=None)

    @staticmethod
    def _encode(image: bytes) -> str:
        return base64.b64encode(image).decode("ascii")


class TwoCaptchaSolver(_HttpSolver):
    """Captcha solver using 2Captcha service.

    2Captcha is one of the oldest and most reliable captcha solving services.
    It combines automated recognition with human workers, which makes it
    slower but accurate on the distorted Cyrillic images the portals serve.
    """

    base_url = "https://2captcha.com"
    supported_types = ("image", "text")

    def __init__(self, api_key: str, timeout: float = 120.0, polling_interval: float = 5.0):
        """Initialize the 2Captcha solver.

        Args:
            api_key: 2Captcha API key for authentication.
            timeout: Seconds to keep polling for an answer.
            polling_interval: Seconds between result polls.
        """
        super().__init__(api_key, timeout, polling_interval)
        self.logger = logger.bind(solver="2Captcha")

    async def solve(self, image: bytes) -> Optional[str]:
        """Submit the image to in.php and poll res.php for the answer."""
        submitted = await self._request(
            "POST",
            f"{self.base_url}/in.php",
            data={
                "key": self.api_key,
                "method": "base64",
                "body": self._encode(image),
                "lang": "ru",
                "json": 1,
            },
        )
        if submitted.get("status") != 1:
            raise CaptchaSolveError(f"2Captcha rejected the task: {submitted.get('request')}")

        captcha_id = submitted["request"]
        self.logger.info("captcha_submitted", captcha_id=captcha_id)

        for _ in range(self.max_polls):
            await asyncio.sleep(self.polling_interval)
            result = await self._request(
                "GET",
                f"{self.base_url}/res.php",
                params={"key": self.api_key, "action": "get", "id": captcha_id, "json": 1},
            )
            if result.get("status") == 1:
                return result.get("request")
            if result.get("request") != "CAPCHA_NOT_READY":
                raise CaptchaSolveError(f"2Captcha error: {result.get('request')}")

        self.logger.warning("captcha_poll_timeout", captcha_id=captcha_id)
        return None


class _TaskApiSolver(_HttpSolver):
    """Client for the createTask/getTaskResult protocol."""

    base_url = ""
    service_name = ""

    def _create_payload(self, image: bytes) -> Dict[str, Any]:
        return {
            "clientKey": self.api_key,
            "task": {"type": "ImageToTextTask", "body": self._encode(image)},
        }

    def _check_error(self, response: Dict[str, Any]) -> None:
        if response.get("errorId", 0) != 0:
            raise CaptchaSolveError(
                f"{self.service_name} error {response.get('errorCode')}: "
                f"{response.get('errorDescription')}"
            )

    async def solve(self, image: bytes) -> Optional[str]:
        created = await self._request(
            "POST",
            f"{self.base_url}/createTask",
            json=self._create_payload(image),
        )
        self._check_error(created)

        # Some services answer image tasks synchronously
        if created.get("status") == "ready":
            return created.get("solution", {}).get("text")

        task_id = created.get("taskId")
        self.logger.info("captcha_submitted", task_id=task_id)

        for _ in range(self.max_polls):
            await asyncio.sleep(self.polling_interval)
            result = await self._request(
                "POST",
                f"{self.base_url}/getTaskResult",
                json={"clientKey": self.api_key, "taskId": task_id},
            )
            self._check_error(result)
            if result.get("status") == "ready":
                return result.get("solution", {}).get("text")

        self.logger.warning("captcha_poll_timeout", task_id=task_id)
        return None


class AntiCaptchaSolver(_TaskApiSolver):
    """Captcha solver using Anti-Captcha service.

    Anti-Captcha is known for its competitive pricing; the Russian worker
    pool is requested so Cyrillic captchas are read correctly.
    """

    base_url = "https://api.anti-captcha.com"
    service_name = "Anti-Captcha"

    def __init__(self, api_key: str, timeout: float = 120.0, polling_interval: float = 5.0):
        super().__init__(api_key, timeout, polling_interval)
        self.logger = logger.bind(solver="AntiCaptcha")

    def _create_payload(self, image: bytes) -> Dict[str, Any]:
        return {**super()._create_payload(image), "languagePool": "rn"}


class CapSolverAI(_TaskApiSolver):
    """Captcha solver using CapSolver AI service.

    CapSolver recognises image captchas with AI models and usually answers
    in the createTask response itself.
    """

    base_url = "https://api.capsolver.com"
    service_name = "CapSolver"

    def __init__(self, api_key: str, timeout: float = 120.0, polling_interval: float = 5.0):
        super().__init__(api_key, timeout, polling_interval)
        self.logger = logger.bind(solver="CapSolverAI")
