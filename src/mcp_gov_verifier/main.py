"""
Gov Verifier MCP server - Main entry point
MCP (Model Context Protocol) lets LLM clients call the verification
gateways as tools over stdio.
"""
from .mcp_server.server import run

if __name__ == "__main__":
    run()
