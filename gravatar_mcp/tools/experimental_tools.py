"""Experimental Gravatar API tools: inferred interests and verified-account search."""

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

INTERESTS_HINT = (
    "When searching for interests, prefer to look up the interests in the Gravatar profile "
    "over the inferred interests, since they are specified explicitly by the owner of the profile."
)


async def fetch_interests_by_email(client: GravatarClient, email: str,
                                   client_info: Optional[ClientInfo] = None) -> Dict[str, Any]:
    try:
        identifier = generate_identifier(email)
        interests = await client.get_inferred_interests(identifier, client_info=client_info)
    except (GravatarApiError, EmptyStringError) as e:
        raise ToolError(f'Failed to get interests for email "{email}": {e}') from e
    return {"interests": interests}


async def fetch_interests_by_id(client: GravatarClient, profile_identifier: str,
                                client_info: Optional[ClientInfo] = None) -> Dict[str, Any]:
    try:
        interests = await client.get_inferred_interests(profile_identifier, client_info=client_info)
    except GravatarApiError as e:
        raise ToolError(f'Failed to get interests for ID "{profile_identifier}": {e}') from e
    return {"interests": interests}


async def search_by_verified_account(client: GravatarClient, username: str, service: Optional[str] = None,
                                     page: Optional[int] = None, per_page: Optional[int] = None,
                                     client_info: Optional[ClientInfo] = None) -> Dict[str, Any]:
    try:
        return await client.search_profiles_by_verified_account(
            username, service=service, page=page, per_page=per_page, client_info=client_info
        )
    except GravatarApiError as e:
        raise ToolError(f"Failed to search profiles by verified account: {e}") from e


def register_experimental_tools(server: FastMCP, gravatar_client: GravatarClient):
    """Register inferred-interest and search tools with the MCP server.

    Args:
        server: The FastMCP server instance
        gravatar_client: The Gravatar API client wrapper
    """

    @server.tool(
        description=("Retrieve AI-inferred interests for a Gravatar profile using an email address. "
                     f"{INTERESTS_HINT} Examples: 'Get the inferred interests for user@example.com'."),
        annotations={"readOnlyHint": True, "openWorldHint": True, "idempotentHint": False},
    )
    async def get_inferred_interests_by_email(
        email: str = Field(..., description="The email address to look up"),
        ctx: Context = None
    ) -> Dict[str, Any]:
        try:
            return await fetch_interests_by_email(gravatar_client, email, ClientInfo.from_context(ctx))
        except anyio.ClosedResourceError:
            logger.warning("Client disconnected during get_inferred_interests_by_email.")
            return None

    @server.tool(
        description=("Retrieve AI-inferred interests for a Gravatar profile using a profile identifier. "
                     f"{INTERESTS_HINT} Examples: 'Show me inferred interests for username johndoe.'"),
        annotations={"readOnlyHint": True, "openWorldHint": True, "idempotentHint": False},
    )
    async def get_inferred_interests_by_id(
        profileIdentifier: str = Field(
            ..., description="This can either be an SHA256 hash of an email address or profile URL slug."
        ),
        ctx: Context = None
    ) -> Dict[str, Any]:
        try:
            return await fetch_interests_by_id(gravatar_client, profileIdentifier, ClientInfo.from_context(ctx))
        except anyio.ClosedResourceError:
            logger.warning("Client disconnected during get_inferred_interests_by_id.")
            return None

    @server.tool(annotations={"readOnlyHint": True, "openWorldHint": True, "idempotentHint": True})
    async def search_profiles_by_verified_account(
        username: str = Field(..., description="The username on the verified account to search for"),
        service: Optional[str] = Field(default=None, description="Optional service filter, e.g. 'github' or 'twitter'"),
        page: Optional[int] = Field(default=None, ge=1, description="Page number of results"),
        per_page: Optional[int] = Field(default=None, ge=1, le=50, description="Number of results per page"),
        ctx: Context = None
    ) -> Dict[str, Any]:
        """Search for Gravatar profiles that have a verified account with the given username.

        Optionally filter by service (e.g. 'github', 'twitter'). Results are paginated and
        require an API key. Examples: 'Search for profiles with GitHub username octocat'.
        """
        logger.info(f"Searching profiles by verified account: {username} (service={service})")
        try:
            return await search_by_verified_account(
                gravatar_client, username, service, page, per_page, ClientInfo.from_context(ctx)
            )
        except anyio.ClosedResourceError:
            logger.warning("Client disconnected during search_profiles_by_verified_account.")
            return None
