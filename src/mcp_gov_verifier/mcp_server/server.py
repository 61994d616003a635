"""
MCP server implementation
Serves the verification tools over the stdio transport.
"""
from typing import Optional

from mcp.server.fastmcp import FastMCP

from ..config.mcp_logger import logger
from .tools.verification_tools import register_verification_tools

SERVER_NAME = "gov-verifier"


def create_server(name: Optional[str] = None) -> FastMCP:
    """Create the MCP server with every verification tool registered."""
    mcp = FastMCP(name or SERVER_NAME)
    register_verification_tools(mcp)
    return mcp


def run():
    """Entry point: start the MCP server over stdio."""
    mcp = create_server()
    logger.info("mcp_server_starting", name=mcp.name, transport="stdio")
    mcp.run()
