"""MCP prompts for the Gravatar MCP server."""

import logging
from typing import Optional

from fastmcp import FastMCP, Context
from fastmcp.exceptions import PromptError

from gravatar_mcp.config import ClientInfo
from gravatar_mcp.utils.gravatar_client import GravatarClient, GravatarApiError

logger = logging.getLogger("gravatar_mcp_server")

INTEGRATION_GUIDE_DESCRIPTION = (
    "Gravatar API Integration Guide. Comprehensive API guide for Gravatar v3.0.0, detailing how "
    "developers can integrate avatar and profile services using email hash-based identification, "
    "API key authentication, and various endpoints across web, Android, and iOS platforms."
)


async def load_integration_guide(client: GravatarClient, client_info: Optional[ClientInfo] = None) -> str:
    try:
        guide = await client.fetch_integration_guide(client_info=client_info)
    except GravatarApiError as e:
        raise PromptError(str(e)) from e
    if not guide.strip():
        raise PromptError("Failed to load Gravatar integration guide: the guide is empty")
    return guide


def register_prompts(server: FastMCP, gravatar_client: GravatarClient):
    """Register the Gravatar prompts with the MCP server."""

    @server.prompt(name="api-integration-prompt", description=INTEGRATION_GUIDE_DESCRIPTION)
    async def api_integration_prompt(ctx: Context = None) -> str:
        logger.info("Loading Gravatar API integration guide")
        return await load_integration_guide(gravatar_client, ClientInfo.from_context(ctx))
