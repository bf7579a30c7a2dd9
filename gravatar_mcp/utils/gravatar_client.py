"""Gravatar REST API client utilities for MCP server."""
import base64
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

import httpx

from gravatar_mcp.config import ServerConfig, ClientInfo, build_api_headers

logger = logging.getLogger(__name__)

AVATAR_DEFAULT_OPTIONS = ["404", "mp", "identicon", "monsterid", "wavatar", "retro", "robohash", "blank"]
AVATAR_RATINGS = ["G", "PG", "R", "X", "g", "pg", "r", "x"]


class GravatarApiError(Exception):
    """Raised when the Gravatar API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def map_http_error(status: int, reason: str, identifier: str) -> str:
    """Map an HTTP status code from the REST API to a readable message.

    Args:
        status: HTTP status code
        reason: HTTP reason phrase
        identifier: The identifier (email hash or profile slug) that was used

    Returns:
        Error message string
    """
    if status == 404:
        return f"No profile found for identifier: {identifier}"
    if status == 400:
        return f"Invalid identifier format: {identifier}"
    if status == 403:
        return "Profile is private or access denied"
    if status == 429:
        return "Rate limit exceeded. Please try again later"
    if status == 500:
        return "Gravatar service is temporarily unavailable"
    if status in (502, 503, 504):
        return "Gravatar service is experiencing issues. Please try again later"
    return f"Gravatar API error ({status}): {reason}"


def map_avatar_error(status: int, reason: str, identifier: str) -> str:
    """Map an HTTP status code from the avatar endpoint to a readable message."""
    if status == 404:
        return f"No avatar found for identifier: {identifier}."
    if status == 400:
        return (f"Invalid avatar request parameters for identifier: {identifier}. "
                "Check the identifier format and parameters.")
    if status == 403:
        return f"Avatar access denied for identifier: {identifier}"
    if status == 429:
        return "Rate limit exceeded. Please try again later."
    return f"Failed to fetch avatar ({status}): {reason}"


@dataclass
class AvatarImage:
    """An avatar image as returned by the avatar endpoint"""
    data: bytes
    mime_type: str

    @property
    def base64_data(self) -> str:
        return base64.b64encode(self.data).decode('ascii')


def avatar_params(size: Optional[int] = None, default_option: Optional[str] = None,
                  force_default: Optional[bool] = None, rating: Optional[str] = None) -> Dict[str, str]:
    """Build avatar query parameters, including only those explicitly provided."""
    params = {}
    if size is not None:
        params["s"] = str(size)
    if default_option is not None:
        params["d"] = default_option
    if force_default:
        params["f"] = "y"
    if rating is not None:
        params["r"] = rating
    return params


class GravatarClient:
    """Async wrapper around the Gravatar REST and avatar APIs."""

    def __init__(self, config: ServerConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize the Gravatar client wrapper.

        Args:
            config: Server configuration with API base URLs and credentials
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self._transport = transport

    def _client(self, client_info: Optional[ClientInfo] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=build_api_headers(self.config, client_info),
            timeout=self.config.request_timeout,
            transport=self._transport,
        )

    async def _get_json(self, path: str, identifier: str, what: str,
                        params: Optional[Dict[str, Any]] = None,
                        client_info: Optional[ClientInfo] = None) -> Any:
        url = f"{self.config.rest_api_base}{path}"
        try:
            async with self._client(client_info) as client:
                response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Network error while fetching {what} for {identifier}: {e}")
            raise GravatarApiError(f"Network error while fetching {what}: {e}") from e

        if response.is_error:
            logger.warning(f"Gravatar API returned {response.status_code} for {path}")
            raise GravatarApiError(
                map_http_error(response.status_code, response.reason_phrase, identifier),
                status_code=response.status_code,
            )
        return response.json()

    async def get_profile(self, identifier: str, client_info: Optional[ClientInfo] = None) -> Dict[str, Any]:
        """Get a profile by SHA-256 email hash or profile URL slug."""
        return await self._get_json(f"/profiles/{identifier}", identifier, "profile",
                                    client_info=client_info)

    async def get_inferred_interests(self, identifier: str,
                                     client_info: Optional[ClientInfo] = None) -> List[Dict[str, Any]]:
        """Get AI-inferred interests for a profile."""
        return await self._get_json(f"/profiles/{identifier}/inferred-interests", identifier,
                                    "interests", client_info=client_info)

    async def search_profiles_by_verified_account(self, username: str, service: Optional[str] = None,
                                                  page: Optional[int] = None, per_page: Optional[int] = None,
                                                  client_info: Optional[ClientInfo] = None) -> Dict[str, Any]:
        """Search profiles that have a verified account with the given username."""
        params: Dict[str, Any] = {"username": username}
        if service:
            params["service"] = service
        if page is not None:
            params["page"] = page
        if per_page is not None:
            params["per_page"] = per_page
        return await self._get_json("/profiles/search/by-verified-account", username,
                                    "verified account search", params=params, client_info=client_info)

    async def fetch_avatar(self, identifier: str, size: Optional[int] = None,
                           default_option: Optional[str] = None, force_default: Optional[bool] = None,
                           rating: Optional[str] = None,
                           client_info: Optional[ClientInfo] = None) -> AvatarImage:
        """Fetch an avatar image by avatar identifier (email hash)."""
        url = f"{self.config.avatar_api_base}/{identifier}"
        params = avatar_params(size, default_option, force_default, rating)
        try:
            async with self._client(client_info) as client:
                response = await client.get(url, params=params or None)
        except httpx.HTTPError as e:
            logger.error(f"Network error while fetching avatar for {identifier}: {e}")
            raise GravatarApiError(f"Network error while fetching avatar: {e}") from e

        if response.is_error:
            raise GravatarApiError(
                map_avatar_error(response.status_code, response.reason_phrase, identifier),
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "")
        # Gravatar serves PNG when no explicit image type is given
        mime_type = content_type.split(";")[0].strip() if content_type.startswith("image/") else "image/png"
        return AvatarImage(data=response.content, mime_type=mime_type)

    async def fetch_integration_guide(self, client_info: Optional[ClientInfo] = None) -> str:
        """Fetch the Gravatar API integration guide (markdown).

        Only the User-Agent is sent; the guide URL is configurable and never
        receives the API key.
        """
        url = self.config.integration_guide_url
        headers = {
            "User-Agent": build_api_headers(self.config, client_info)["User-Agent"],
            "Accept": "text/markdown, text/plain;q=0.9, */*;q=0.1",
        }
        try:
            async with httpx.AsyncClient(headers=headers, timeout=self.config.request_timeout,
                                         transport=self._transport, follow_redirects=True) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Network error while fetching integration guide from {url}: {e}")
            raise GravatarApiError(f"Failed to load Gravatar integration guide: {e}") from e

        if response.is_error:
            raise GravatarApiError(
                "Failed to load Gravatar integration guide: "
                f"{response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.text
