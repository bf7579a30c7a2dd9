"""
Core MCP server construction and transport runners.

create_server() builds the FastMCP instance with every Gravatar tool
registered; run_with_stdio() and run_with_http() start it.
"""

import logging
from typing import Optional

from fastmcp import FastMCP

from gravatar_mcp import __version__
from gravatar_mcp.config import ServerConfig
from gravatar_mcp.prompts import register_prompts
from gravatar_mcp.tools.tool_registry import ToolRegistry
from gravatar_mcp.utils.gravatar_client import GravatarClient

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "Tools for looking up public Gravatar data: profiles, avatar images, "
    "AI-inferred interests and verified-account search. Email addresses are "
    "normalized and hashed before they leave the server. The api-integration-prompt "
    "prompt returns the Gravatar API integration guide."
)


def create_server(config: Optional[ServerConfig] = None,
                  gravatar_client: Optional[GravatarClient] = None) -> FastMCP:
    """
    Create a FastMCP server with all Gravatar tools and prompts registered.

    Args:
        config: Server configuration (read from the environment when omitted)
        gravatar_client: Optional pre-built client (used by tests)

    Returns:
        Configured FastMCP server
    """
    config = config or ServerConfig.from_environment()
    gravatar_client = gravatar_client or GravatarClient(config)

    server = FastMCP(name=config.server_name, instructions=SERVER_INSTRUCTIONS)

    registry = ToolRegistry()
    registry.auto_discover_tools(server, gravatar_client)
    register_prompts(server, gravatar_client)

    logger.info(f"Created {config.server_name} v{__version__}")
    return server


def run_with_stdio(server: FastMCP) -> None:
    """
    Run a FastMCP server with STDIO transport.

    Args:
        server: FastMCP server instance to run
    """
    logger.info("Starting MCP server with STDIO transport")
    try:
        server.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise


def run_with_http(server: FastMCP, host: str = "localhost", port: int = 3000) -> None:
    """
    Run a FastMCP server with streamable HTTP transport.

    Warning: the MCP endpoint itself is not protected here. Put it behind
    the OAuth front door for anything beyond local development.

    Args:
        server: FastMCP server instance to run
        host: Host to bind to
        port: Port to bind to
    """
    logger.warning("Running MCP server with HTTP transport WITHOUT authentication")

    try:
        server.run(transport="http", host=host, port=port)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise
