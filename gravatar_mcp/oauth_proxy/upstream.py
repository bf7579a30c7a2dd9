"""
Upstream OAuth2 client (WordPress.com).

Authorization URLs are built by hand; token requests go through authlib's
httpx integration with client_secret_post authentication.
"""

import logging
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from authlib.integrations.httpx_client import AsyncOAuth2Client, OAuthError

from gravatar_mcp.auth.oauth_provider import OAuthConfig
from .errors import UpstreamOAuthError, UpstreamIdentityError
from .identity import UpstreamIdentity, fetch_user_info
from .models import AuthorizationTransaction, UpstreamTokenSet

logger = logging.getLogger("oauth_proxy.upstream")


class UpstreamOAuthClient:
    """Talks to the upstream authorization, token and user-info endpoints"""

    def __init__(self, config: OAuthConfig):
        self.config = config

    def _oauth_client(self) -> AsyncOAuth2Client:
        return AsyncOAuth2Client(
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            token_endpoint_auth_method="client_secret_post",
            timeout=self.config.upstream_timeout,
        )

    def authorization_url(self, transaction: AuthorizationTransaction) -> str:
        """Build the upstream authorization URL for an approved transaction"""
        auth_params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": self.config.scope_string,
            "code_challenge": transaction.pkce_challenge,
            "code_challenge_method": "S256",
            "state": transaction.transaction_id,
        }
        return f"{self.config.authorization_endpoint}?{urlencode(auth_params)}"

    async def _token_request(self, grant_type: str, **params) -> Dict[str, Any]:
        try:
            async with self._oauth_client() as client:
                if grant_type == "refresh_token":
                    return await client.refresh_token(self.config.token_endpoint, **params)
                return await client.fetch_token(self.config.token_endpoint, grant_type=grant_type, **params)
        except OAuthError as e:
            logger.warning(f"Upstream {grant_type} request rejected: {e.error} ({e.description})")
            raise UpstreamOAuthError(e.error, e.description) from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Upstream token endpoint returned {e.response.status_code}")
            raise UpstreamOAuthError("server_error", f"Token endpoint returned {e.response.status_code}",
                                     status=500) from e
        except httpx.HTTPError as e:
            logger.error(f"Upstream token request failed: {e}")
            raise UpstreamOAuthError("temporarily_unavailable", str(e), status=500) from e
        except ValueError as e:
            # Body was not JSON
            raise UpstreamOAuthError("invalid_response", "Token endpoint returned a non-JSON body") from e

    async def exchange_code(self, code: str, code_verifier: str) -> UpstreamTokenSet:
        """Redeem an upstream authorization code using the transaction's PKCE verifier"""
        token = await self._token_request(
            "authorization_code",
            code=code,
            redirect_uri=self.config.redirect_uri,
            code_verifier=code_verifier,
        )
        if not token.get("access_token"):
            raise UpstreamOAuthError("invalid_response", "Token response has no access_token")
        logger.info("Exchanged authorization code with upstream provider")
        return UpstreamTokenSet.from_token_response(token)

    async def refresh(self, previous: UpstreamTokenSet) -> UpstreamTokenSet:
        """Refresh the upstream token set, keeping the old refresh token if none is returned"""
        token = await self._token_request("refresh_token", refresh_token=previous.refresh_token)
        if not token.get("access_token"):
            raise UpstreamOAuthError("invalid_response", "Token response has no access_token")
        logger.info("Refreshed upstream access token")
        return UpstreamTokenSet.from_token_response(token, previous=previous)

    async def fetch_identity(self, access_token: str) -> UpstreamIdentity:
        """Fetch user info for an upstream access token"""
        if not self.config.userinfo_endpoint:
            raise UpstreamIdentityError("No user information available")
        return await fetch_user_info(access_token, self.config.userinfo_endpoint, self.config.upstream_timeout)
