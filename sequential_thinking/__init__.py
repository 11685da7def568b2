"""Sequential Thinking MCP - per-session reasoning ledger served over MCP."""

__version__ = "0.2.0"
