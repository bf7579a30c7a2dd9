"""Profile lookup tools for Gravatar MCP server."""

import logging
from typing import Dict, Any, Optional

import anyio
from fastmcp import FastMCP, Context
from fastmcp.exceptions import ToolError
from pydantic import Field

from gravatar_mcp.config import ClientInfo
from gravatar_mcp.utils.gravatar_client import GravatarClient, GravatarApiError
from gravatar_mcp.utils.identifiers import generate_identifier, EmptyStringError

logger = logging.getLogger("gravatar_mcp_server")

READ_ONLY_ANNOTATIONS = {"readOnlyHint": True, "openWorldHint": True, "idempotentHint": True}


async def fetch_profile_by_email(client: GravatarClient, email: str,
                                 client_info: Optional[ClientInfo] = None) -> Dict[str, Any]:
    """Hash the email and fetch the matching profile."""
    try:
        identifier = generate_identifier(email)
        return await client.get_profile(identifier, client_info=client_info)
    except (GravatarApiError, EmptyStringError) as e:
        raise ToolError(f'Failed to get profile for email "{email}": {e}') from e


async def fetch_profile_by_id(client: GravatarClient, profile_identifier: str,
                              client_info: Optional[ClientInfo] = None) -> Dict[str, Any]:
    """Fetch a profile by hash or URL slug."""
    try:
        return await client.get_profile(profile_identifier, client_info=client_info)
    except GravatarApiError as e:
        raise ToolError(f'Failed to get profile for ID "{profile_identifier}": {e}') from e


def register_profile_tools(server: FastMCP, gravatar_client: GravatarClient):
    """Register all profile-related tools with the MCP server.

    Args:
        server: The FastMCP server instance
        gravatar_client: The Gravatar API client wrapper
    """

    @server.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def get_profile_by_email(
        email: str = Field(..., description="The email address to look up"),
        ctx: Context = None
    ) -> Dict[str, Any]:
        """Retrieve comprehensive Gravatar profile information using an email address.

        Returns detailed profile data including personal information, social accounts,
        and avatar details. Examples: 'Show me the Gravatar profile for john.doe@example.com'
        or 'Get profile info for user@company.com.'
        """
        logger.info("Getting profile by email")
        try:
            return await fetch_profile_by_email(gravatar_client, email, ClientInfo.from_context(ctx))
        except anyio.ClosedResourceError:
            logger.warning("Client disconnected during get_profile_by_email. Server remains healthy.")
            return None

    @server.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def get_profile_by_id(
        profileIdentifier: str = Field(
            ..., description="This can either be an SHA256 hash of an email address or profile URL slug."
        ),
        ctx: Context = None
    ) -> Dict[str, Any]:
        """Retrieve comprehensive Gravatar profile information using a profile identifier.

        Examples: 'Get the profile for Gravatar user with ID abc123...' or
        'Show me the profile for username johndoe.'
        """
        logger.info(f"Getting profile by id: {profileIdentifier}")
        try:
            return await fetch_profile_by_id(gravatar_client, profileIdentifier, ClientInfo.from_context(ctx))
        except anyio.ClosedResourceError:
            logger.warning("Client disconnected during get_profile_by_id. Server remains healthy.")
            return None
