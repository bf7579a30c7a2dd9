"""Server configuration for the Gravatar MCP server."""

import os
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from gravatar_mcp import __version__

logger = logging.getLogger(__name__)

DEFAULT_REST_API_BASE = "https://api.gravatar.com/v3"
DEFAULT_AVATAR_API_BASE = "https://gravatar.com/avatar"
DEFAULT_INTEGRATION_GUIDE_URL = "https://gravatar.com/gravatar-api-integration-guide.md"


@dataclass(frozen=True)
class ClientInfo:
    """Name and version an MCP client reported during initialization."""
    name: str = "unknown"
    version: str = "unknown"

    @classmethod
    def from_context(cls, ctx) -> Optional['ClientInfo']:
        """Read client info from a FastMCP request context, if the client sent it."""
        if ctx is None:
            return None
        try:
            params = ctx.session.client_params
        except (AttributeError, RuntimeError, ValueError):
            return None
        implementation = getattr(params, "clientInfo", None)
        if implementation is None:
            return None
        return cls(name=implementation.name or "unknown", version=implementation.version or "unknown")


@dataclass
class ServerConfig:
    """Gravatar API endpoints, credentials and request settings"""

    api_key: Optional[str] = None
    rest_api_base: str = DEFAULT_REST_API_BASE
    avatar_api_base: str = DEFAULT_AVATAR_API_BASE
    request_timeout: float = 30.0
    server_name: str = "Gravatar MCP Server"
    integration_guide_url: str = DEFAULT_INTEGRATION_GUIDE_URL

    @property
    def user_agent(self) -> str:
        return f"Gravatar-MCP-Server/{__version__}"

    @classmethod
    def from_environment(cls) -> 'ServerConfig':
        """Create server config from environment variables"""
        config = cls(
            api_key=os.getenv("GRAVATAR_API_KEY") or None,
            rest_api_base=os.getenv("GRAVATAR_API_BASE", DEFAULT_REST_API_BASE).rstrip("/"),
            avatar_api_base=os.getenv("GRAVATAR_AVATAR_BASE", DEFAULT_AVATAR_API_BASE).rstrip("/"),
            request_timeout=float(os.getenv("GRAVATAR_REQUEST_TIMEOUT", "30")),
            server_name=os.getenv("MCP_SERVER_NAME", "Gravatar MCP Server"),
            integration_guide_url=os.getenv("GRAVATAR_INTEGRATION_GUIDE_URL", DEFAULT_INTEGRATION_GUIDE_URL),
        )
        if not config.api_key:
            logger.info("GRAVATAR_API_KEY not set, using unauthenticated Gravatar API access")
        return config

    def server_info(self) -> Dict[str, str]:
        """Name and version announced to MCP clients"""
        return {"name": self.server_name, "version": __version__}


def build_api_headers(config: ServerConfig, client_info: Optional[ClientInfo] = None) -> Dict[str, str]:
    """
    Build headers for Gravatar REST API requests.

    Client info is passed per request so concurrent sessions never see
    each other's client names in the User-Agent.
    """
    user_agent = config.user_agent
    if client_info is not None:
        user_agent = f"{user_agent} {client_info.name}/{client_info.version}"

    headers = {
        "User-Agent": user_agent,
        "Accept": "application/json",
    }
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    return headers
