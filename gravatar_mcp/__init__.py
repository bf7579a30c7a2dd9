"""Gravatar MCP Server: Gravatar REST API tools for MCP clients."""

__version__ = "0.2.0"
