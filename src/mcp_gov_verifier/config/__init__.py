"""Configuration package: structured logging and environment settings."""

from .mcp_logger import configure_mcp_logging, logger
from .settings import (
    AppSettings,
    BrowserSettings,
    CacheSettings,
    CaptchaSettings,
    ServiceSettings,
    load_app_settings,
    load_service_settings,
)

__all__ = [
    "configure_mcp_logging",
    "logger",
    "AppSettings",
    "BrowserSettings",
    "CacheSettings",
    "CaptchaSettings",
    "ServiceSettings",
    "load_app_settings",
    "load_service_settings",
]
