"""delivery-orchestrator - Multi-agent project delivery over MCP."""

__version__ = "0.1.0"
