"""Forwarder bridging MCP clients to a single remote MCP server."""

__version__ = "1.2.0"
