"""
Exceptions raised by the OAuth front door.

Handlers in auth_handler catch these at the aiohttp boundary and turn them
into HTTP responses.
"""

from typing import Any, Dict, Optional


class OAuthProxyError(Exception):
    """Base class for OAuth front door errors"""

    status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransactionNotFound(OAuthProxyError):
    """The transaction cookie is absent, expired, tampered with or never issued"""


class InvalidAuthRequest(OAuthProxyError):
    """The downstream authorization request failed validation"""


class UpstreamOAuthError(OAuthProxyError):
    """The upstream token endpoint answered with an OAuth error body"""

    def __init__(self, error: str, description: Optional[str] = None, status: int = 400):
        super().__init__(f"OAuth error: {error}")
        self.error = error
        self.description = description
        self.status = status


class UpstreamIdentityError(OAuthProxyError):
    """The upstream user-info request failed"""

    status = 500


class NoRefreshTokenError(OAuthProxyError):
    """A refresh was requested but no upstream refresh token is stored"""


class TokenRequestError(OAuthProxyError):
    """
    An RFC 6749 error for the downstream token endpoint.

    Serializes to {"error": ..., "error_description": ...}.
    """

    def __init__(self, error: str, description: str, status: int = 400):
        super().__init__(description)
        self.error = error
        self.description = description
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "error_description": self.description}
