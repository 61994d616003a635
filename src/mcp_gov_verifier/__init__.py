"""Resilient verification of records on Russian government portals.

Debts (FSSP), traffic fines (GIBDD) and passport validity (MVD) are checked
through headless-browser form automation wrapped in caching, retries and a
circuit breaker, and exposed as MCP tools.
"""

__version__ = "0.1.0"
