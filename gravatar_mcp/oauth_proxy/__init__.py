"""OAuth front door for the Gravatar MCP server."""
