"""MCP tool registrations."""

from .verification_tools import register_verification_tools

__all__ = ["register_verification_tools"]
