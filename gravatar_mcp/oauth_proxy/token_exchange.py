"""
Token exchange callback used by the downstream authorization provider.

Keeps the downstream access token lifetime in step with the upstream
token and refreshes upstream tokens when a downstream refresh token is
redeemed.
"""

import logging
from dataclasses import replace

from .errors import NoRefreshTokenError, UpstreamIdentityError, OAuthProxyError
from .identity import UpstreamIdentity
from .models import UserProps, TokenExchangeResult
from .upstream import UpstreamOAuthClient
from .utils import audit_log

logger = logging.getLogger("oauth_proxy.token_exchange")


class TokenRefreshSynchronizer:
    """Mirror upstream token lifetimes onto downstream tokens"""

    def __init__(self, upstream: UpstreamOAuthClient):
        self.upstream = upstream

    async def token_exchange_callback(self, grant_type: str, props: UserProps) -> TokenExchangeResult:
        """
        Called on every downstream token issuance.

        Args:
            grant_type: "authorization_code" or "refresh_token"
            props: the grant's stored claims and upstream token set

        Returns:
            The props to store and the access token TTL in seconds (None when unknown)

        Raises:
            NoRefreshTokenError: refresh requested without a stored upstream refresh token
            UpstreamOAuthError: the upstream refresh was rejected
        """
        if grant_type == "authorization_code":
            return TokenExchangeResult(new_props=props, access_token_ttl=props.token_set.expires_in)

        if grant_type == "refresh_token":
            return await self._refresh(props)

        raise OAuthProxyError(f"Unsupported grant type: {grant_type}")

    async def _refresh(self, props: UserProps) -> TokenExchangeResult:
        if not props.token_set.refresh_token:
            raise NoRefreshTokenError("No upstream refresh token found")

        # Nothing is written back if this raises
        token_set = await self.upstream.refresh(props.token_set)

        claims = props.claims
        if self.upstream.config.userinfo_endpoint:
            try:
                identity = await self.upstream.fetch_identity(token_set.access_token)
                claims = identity.claims
            except UpstreamIdentityError as e:
                logger.warning(f"Failed to fetch updated user info during refresh, keeping cached claims: {e}")

        audit_log("upstream_token_refreshed", user_id=UpstreamIdentity(claims).subject, details={
            "expires_in": token_set.expires_in,
            "refresh_token_rotated": token_set.refresh_token != props.token_set.refresh_token,
        })
        new_props = replace(props, claims=claims, token_set=token_set)
        return TokenExchangeResult(new_props=new_props, access_token_ttl=token_set.expires_in)
