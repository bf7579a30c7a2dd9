"""Avatar image tools for Gravatar MCP server."""

import logging
from typing import Literal, Optional

import anyio
from fastmcp import FastMCP, Context
from fastmcp.exceptions import ToolError
from fastmcp.utilities.types import Image
from pydantic import Field

from gravatar_mcp.config import ClientInfo
from gravatar_mcp.utils.gravatar_client import GravatarClient, GravatarApiError, AvatarImage
from gravatar_mcp.utils.identifiers import generate_identifier, EmptyStringError

logger = logging.getLogger("gravatar_mcp_server")

DefaultOption = Literal["404", "mp", "identicon", "monsterid", "wavatar", "retro", "robohash", "blank"]
Rating = Literal["G", "PG", "R", "X", "g", "pg", "r", "x"]

SIZE_DESCRIPTION = ("Desired avatar size in pixels (1-2048). Images are square. Common sizes: "
                    "80 (default web), 200 (high-res web), 512 (large displays).")
DEFAULT_OPTION_DESCRIPTION = ("Fallback image style when no avatar exists: '404' (return an error), 'mp' "
                              "(mystery person), 'identicon', 'monsterid', 'wavatar', 'retro', 'robohash' "
                              "or 'blank'.")
FORCE_DEFAULT_DESCRIPTION = "When true, always returns the default image instead of the user's avatar."
RATING_DESCRIPTION = ("Maximum content rating to display: 'G', 'PG', 'R' or 'X'. Avatars above this "
                      "rating are replaced by the default image.")


def to_mcp_image(avatar: AvatarImage) -> Image:
    """Convert a fetched avatar into an MCP image content block."""
    image_format = avatar.mime_type.split("/", 1)[1] if "/" in avatar.mime_type else "png"
    return Image(data=avatar.data, format=image_format)


async def fetch_avatar_by_email(client: GravatarClient, email: str, size: Optional[int] = None,
                                default_option: Optional[str] = None, force_default: Optional[bool] = None,
                                rating: Optional[str] = None,
                                client_info: Optional[ClientInfo] = None) -> AvatarImage:
    try:
        identifier = generate_identifier(email)
        return await client.fetch_avatar(identifier, size, default_option, force_default, rating,
                                         client_info=client_info)
    except (GravatarApiError, EmptyStringError) as e:
        raise ToolError(f'Failed to get avatar for email "{email}": {e}') from e


async def fetch_avatar_by_id(client: GravatarClient, avatar_identifier: str, size: Optional[int] = None,
                             default_option: Optional[str] = None, force_default: Optional[bool] = None,
                             rating: Optional[str] = None,
                             client_info: Optional[ClientInfo] = None) -> AvatarImage:
    try:
        return await client.fetch_avatar(avatar_identifier, size, default_option, force_default, rating,
                                         client_info=client_info)
    except GravatarApiError as e:
        raise ToolError(f'Failed to get avatar for ID "{avatar_identifier}": {e}') from e


def register_avatar_tools(server: FastMCP, gravatar_client: GravatarClient):
    """Register avatar image tools with the MCP server."""

    @server.tool(annotations={"readOnlyHint": True, "openWorldHint": True, "idempotentHint": True})
    async def get_avatar_by_email(
        email: str = Field(..., description="The email address associated with the Gravatar profile. "
                                            "It is normalized and hashed before lookup."),
        size: Optional[int] = Field(default=None, ge=1, le=2048, description=SIZE_DESCRIPTION),
        defaultOption: Optional[DefaultOption] = Field(default=None, description=DEFAULT_OPTION_DESCRIPTION),
        forceDefault: Optional[bool] = Field(default=None, description=FORCE_DEFAULT_DESCRIPTION),
        rating: Optional[Rating] = Field(default=None, description=RATING_DESCRIPTION),
        ctx: Context = None
    ) -> Image:
        """Retrieve the avatar image for a Gravatar profile using an email address.

        Examples: 'Get the avatar image for user@example.com' or
        'Show me a 200px avatar for john.doe@company.com.'
        """
        try:
            avatar = await fetch_avatar_by_email(gravatar_client, email, size, defaultOption, forceDefault,
                                                 rating, ClientInfo.from_context(ctx))
            return to_mcp_image(avatar)
        except anyio.ClosedResourceError:
            logger.warning("Client disconnected during get_avatar_by_email. Server remains healthy.")
            return None

    @server.tool(annotations={"readOnlyHint": True, "openWorldHint": True, "idempotentHint": True})
    async def get_avatar_by_id(
        avatarIdentifier: str = Field(..., min_length=1,
                                      description="Avatar identifier: a normalized email hashed with SHA256 "
                                                  "(preferred) or MD5. URL slugs are not supported."),
        size: Optional[int] = Field(default=None, ge=1, le=2048, description=SIZE_DESCRIPTION),
        defaultOption: Optional[DefaultOption] = Field(default=None, description=DEFAULT_OPTION_DESCRIPTION),
        forceDefault: Optional[bool] = Field(default=None, description=FORCE_DEFAULT_DESCRIPTION),
        rating: Optional[Rating] = Field(default=None, description=RATING_DESCRIPTION),
        ctx: Context = None
    ) -> Image:
        """Retrieve the avatar image for a Gravatar profile using an avatar identifier."""
        try:
            avatar = await fetch_avatar_by_id(gravatar_client, avatarIdentifier, size, defaultOption,
                                              forceDefault, rating, ClientInfo.from_context(ctx))
            return to_mcp_image(avatar)
        except anyio.ClosedResourceError:
            logger.warning("Client disconnected during get_avatar_by_id. Server remains healthy.")
            return None
