"""
Discovery Handler for the OAuth front door

Serves OAuth 2.0 Authorization Server Metadata (RFC 8414) describing the
downstream endpoints.
"""

import logging
from aiohttp import web

from gravatar_mcp.auth.oauth_provider import OAuthConfig

logger = logging.getLogger("oauth_proxy.discovery")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, mcp-protocol-version",
}


class DiscoveryHandler:
    """Handles OAuth 2.0 discovery endpoints"""

    def __init__(self, config: OAuthConfig):
        self.config = config

    async def oauth_authorization_server_metadata(self, request: web.Request) -> web.Response:
        """OAuth 2.0 Authorization Server Metadata (RFC 8414)"""
        if request.method == "OPTIONS":
            return web.Response(status=200, headers=CORS_HEADERS)

        base_url = f"{request.scheme}://{request.host}"
        metadata = {
            "issuer": base_url,
            "authorization_endpoint": f"{base_url}/authorize",
            "token_endpoint": f"{base_url}/token",
            "registration_endpoint": f"{base_url}/register",
            "userinfo_endpoint": f"{base_url}/userinfo",
            "scopes_supported": self.config.scopes,
            "response_types_supported": ["code"],
            "grant_types_supported": ["authorization_code", "refresh_token"],
            "code_challenge_methods_supported": ["S256", "plain"],
            "token_endpoint_auth_methods_supported": ["none"],
        }

        logger.debug("Serving OAuth authorization server metadata")
        response = web.json_response(metadata)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response
