"""
Upstream identity handling.

WordPress.com OAuth2 is not OpenID Connect: user info comes back with
provider-specific field names (ID, login, display_name, email) instead of
the standard sub/name claims. This module is the only place those names
are read.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import UpstreamIdentityError

logger = logging.getLogger("oauth_proxy.identity")


@dataclass
class UpstreamIdentity:
    """Provider claims plus the two values the front door actually uses"""
    claims: Dict[str, Any]

    @property
    def subject(self) -> Optional[str]:
        """Stable user id: the numeric account ID, falling back to the login"""
        user_id = self.claims.get("ID")
        if user_id is not None and user_id != "":
            return str(user_id)
        return self.claims.get("login")

    @property
    def label(self) -> Optional[str]:
        """Human-readable label for the grant"""
        return self.claims.get("display_name") or self.claims.get("email") or self.claims.get("login")


async def fetch_user_info(access_token: str, userinfo_endpoint: str, timeout: float) -> UpstreamIdentity:
    """
    Fetch the user's identity from the upstream user-info endpoint.

    Raises:
        UpstreamIdentityError: on network failure, a non-2xx status or a non-object body
    """
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(userinfo_endpoint, headers=headers)
    except httpx.HTTPError as e:
        raise UpstreamIdentityError(f"User info request failed: {e}") from e

    if response.is_error:
        raise UpstreamIdentityError(
            f"User info request failed: {response.status_code} {response.reason_phrase}"
        )

    try:
        claims = response.json()
    except ValueError as e:
        raise UpstreamIdentityError("User info response is not valid JSON") from e

    if not isinstance(claims, dict):
        raise UpstreamIdentityError("User info response is not a JSON object")

    logger.debug(f"Fetched user info with fields: {sorted(claims.keys())}")
    return UpstreamIdentity(claims=claims)
