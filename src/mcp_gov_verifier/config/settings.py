"""Environment-driven settings for the verification gateways.

Every external portal gets its own :class:`ServiceSettings` block, read from
variables sharing a prefix (``FSSP_``, ``GIBDD_``, ``PASSPORT_VALIDITY_``).
Captcha, browser and cache settings are global. Values may come from the
process environment or from a ``.env`` file loaded with python-dotenv.

Durations are expressed in seconds.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from .mcp_logger import logger

HOUR = 60 * 60
DAY = 24 * HOUR


@dataclass
class ServiceSettings:
    """Per-portal settings consumed by a verification gateway."""
    enabled: bool = False
    service_url: str = ""
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_base_delay: float = 2.0
    circuit_threshold: int = 5
    circuit_reset_timeout: float = 60.0
    cache_ttl: float = DAY


@dataclass
class CaptchaSettings:
    """Settings for the captcha solver chain."""
    enabled: bool = False
    twocaptcha_api_key: Optional[str] = None
    anticaptcha_api_key: Optional[str] = None
    capsolver_api_key: Optional[str] = None
    timeout: float = 120.0
    polling_interval: float = 5.0


@dataclass
class BrowserSettings:
    """Settings for the headless browser page provider."""
    headless: bool = True
    navigation_timeout: float = 30.0
    selector_timeout: float = 10.0
    max_pages: int = 4
    user_agent: Optional[str] = None
    proxy: Optional[str] = None


@dataclass
class CacheSettings:
    """Settings for the result cache backend."""
    backend: str = "memory"
    path: str = "/tmp/verification_cache"
    encryption_key: Optional[str] = None


@dataclass
class AppSettings:
    """All settings needed to wire the verification gateways."""
    fssp: ServiceSettings
    gibdd: ServiceSettings
    passport: ServiceSettings
    captcha: CaptchaSettings = field(default_factory=CaptchaSettings)
    browser: BrowserSettings = field(default_factory=BrowserSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)


# Defaults taken from the portals each gateway talks to
SERVICE_DEFAULTS: Dict[str, ServiceSettings] = {
    "FSSP": ServiceSettings(
        service_url="https://fssp.gov.ru/iss/ip",
        cache_ttl=DAY,
    ),
    "GIBDD": ServiceSettings(
        service_url="https://xn--90adear.xn--p1ai/check/fines",
        cache_ttl=6 * HOUR,
    ),
    "PASSPORT_VALIDITY": ServiceSettings(
        service_url="https://services.fms.gov.ru/info-service.htm?sid=2000",
        cache_ttl=7 * DAY,
    ),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _get_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("invalid_setting_value", name=name, value=raw, default=default)
        return default
    if value < 0:
        logger.warning("negative_setting_value", name=name, value=raw, default=default)
        return default
    return value


def _get_str(env: Mapping[str, str], name: str, default: Optional[str]) -> Optional[str]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def load_service_settings(
    prefix: str,
    env: Optional[Mapping[str, str]] = None
) -> ServiceSettings:
    """Read one portal's settings from variables named ``{prefix}_*``.

    Args:
        prefix: Variable prefix such as ``"FSSP"``.
        env: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        ServiceSettings with defaults applied for anything unset or malformed.
    """
    env = os.environ if env is None else env
    defaults = SERVICE_DEFAULTS.get(prefix, ServiceSettings())

    return ServiceSettings(
        enabled=_get_bool(env, f"{prefix}_CHECK_ENABLED", defaults.enabled),
        service_url=_get_str(env, f"{prefix}_SERVICE_URL", defaults.service_url),
        timeout=_get_number(env, f"{prefix}_TIMEOUT", defaults.timeout, float),
        retry_attempts=max(1, _get_number(env, f"{prefix}_RETRY_ATTEMPTS", defaults.retry_attempts, int)),
        retry_base_delay=_get_number(env, f"{prefix}_RETRY_DELAY", defaults.retry_base_delay, float),
        circuit_threshold=max(1, _get_number(
            env, f"{prefix}_CIRCUIT_BREAKER_THRESHOLD", defaults.circuit_threshold, int
        )),
        circuit_reset_timeout=_get_number(
            env, f"{prefix}_CIRCUIT_BREAKER_RESET_TIME", defaults.circuit_reset_timeout, float
        ),
        cache_ttl=_get_number(env, f"{prefix}_CACHE_TTL", defaults.cache_ttl, float),
    )


def load_app_settings(env: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Load every settings block.

    When no mapping is passed, a ``.env`` file in the working directory is
    loaded first (existing environment variables win).
    """
    if env is None:
        load_dotenv()
        env = os.environ

    captcha = CaptchaSettings(
        enabled=_get_bool(env, "CAPTCHA_ENABLED", False),
        twocaptcha_api_key=_get_str(env, "TWOCAPTCHA_API_KEY", None),
        anticaptcha_api_key=_get_str(env, "ANTICAPTCHA_API_KEY", None),
        capsolver_api_key=_get_str(env, "CAPSOLVER_API_KEY", None),
        timeout=_get_number(env, "CAPTCHA_TIMEOUT", 120.0, float),
        polling_interval=_get_number(env, "CAPTCHA_POLLING_INTERVAL", 5.0, float),
    )

    browser = BrowserSettings(
        headless=_get_bool(env, "BROWSER_HEADLESS", True),
        navigation_timeout=_get_number(env, "BROWSER_NAVIGATION_TIMEOUT", 30.0, float),
        selector_timeout=_get_number(env, "BROWSER_SELECTOR_TIMEOUT", 10.0, float),
        max_pages=max(1, _get_number(env, "BROWSER_MAX_PAGES", 4, int)),
        user_agent=_get_str(env, "BROWSER_USER_AGENT", None),
        proxy=_get_str(env, "BROWSER_PROXY", None),
    )

    cache = CacheSettings(
        backend=(_get_str(env, "CACHE_BACKEND", "memory") or "memory").lower(),
        path=_get_str(env, "CACHE_PATH", "/tmp/verification_cache"),
        encryption_key=_get_str(env, "CACHE_ENCRYPTION_KEY", None),
    )

    return AppSettings(
        fssp=load_service_settings("FSSP", env),
        gibdd=load_service_settings("GIBDD", env),
        passport=load_service_settings("PASSPORT_VALIDITY", env),
        captcha=captcha,
        browser=browser,
        cache=cache,
    )
