"""Test suite for mcp_gov_verifier."""
