"""MCP-compatible logger configuration.

This module configures structlog to output JSON-formatted logs that won't
interfere with the MCP protocol communication.
"""

import logging
import os
import sys

import structlog


def _resolve_level(name: str) -> int:
    """Map a LOG_LEVEL value to a stdlib level, defaulting to INFO."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_mcp_logging(level: str = None):
    """Configure structlog for MCP server compatibility.

    MCP servers communicate via JSON-RPC over stdio. Any non-JSON output
    to stdout will break the protocol, so every log line goes to stderr
    as a JSON object.

    Args:
        level: Minimum log level name. Defaults to the LOG_LEVEL environment
            variable, then INFO.
    """
    log_level = _resolve_level(level or os.getenv("LOG_LEVEL", "INFO"))

    # Configure Python's standard logging to use stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    structlog.configure(
        processors=[
            # Don't use stdlib processors with PrintLoggerFactory
            # They expect stdlib logger objects, not PrintLogger
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            # Cyrillic stays readable in the JSON output
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# Configure logging when module is imported
configure_mcp_logging()

# Export configured logger
logger = structlog.get_logger()
