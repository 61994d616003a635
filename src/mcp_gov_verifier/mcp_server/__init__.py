"""MCP server exposing the verification gateways as tools."""

from .server import create_server, run

__all__ = ["create_server", "run"]
