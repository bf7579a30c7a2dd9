"""MCP tool modules. Each module exposes a register_*_tools function."""
