"""
Data models for the OAuth front door
"""

import os
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List


@dataclass
class AuthRequest:
    """A downstream client's authorization request as received at /authorize"""
    response_type: str
    client_id: str
    redirect_uri: str
    scope: List[str] = field(default_factory=list)
    state: Optional[str] = None
    code_challenge: Optional[str] = None
    code_challenge_method: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuthRequest':
        return cls(
            response_type=data["response_type"],
            client_id=data["client_id"],
            redirect_uri=data["redirect_uri"],
            scope=list(data.get("scope") or []),
            state=data.get("state"),
            code_challenge=data.get("code_challenge"),
            code_challenge_method=data.get("code_challenge_method"),
        )


@dataclass
class AuthorizationTransaction:
    """One in-flight login attempt, carried in an encrypted cookie"""
    transaction_id: str
    original_request: AuthRequest
    pkce_verifier: str
    pkce_challenge: str
    nonce: str
    consent_token: str
    created_at: float = field(default_factory=lambda: datetime.now(timezone.utc).timestamp())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "original_request": self.original_request.to_dict(),
            "pkce_verifier": self.pkce_verifier,
            "pkce_challenge": self.pkce_challenge,
            "nonce": self.nonce,
            "consent_token": self.consent_token,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuthorizationTransaction':
        return cls(
            transaction_id=data["transaction_id"],
            original_request=AuthRequest.from_dict(data["original_request"]),
            pkce_verifier=data["pkce_verifier"],
            pkce_challenge=data["pkce_challenge"],
            nonce=data["nonce"],
            consent_token=data["consent_token"],
            created_at=float(data.get("created_at", 0)),
        )


@dataclass
class UpstreamTokenSet:
    """Tokens issued by the upstream provider"""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: str = "Bearer"

    @classmethod
    def from_token_response(cls, token: Dict[str, Any],
                            previous: Optional['UpstreamTokenSet'] = None) -> 'UpstreamTokenSet':
        """
        Build a token set from a token endpoint response.

        When refreshing, a response without a new refresh token keeps the
        previous one.
        """
        refresh_token = token.get("refresh_token")
        if not refresh_token and previous is not None:
            refresh_token = previous.refresh_token
        expires_in = token.get("expires_in")
        return cls(
            access_token=token["access_token"],
            refresh_token=refresh_token,
            expires_in=int(expires_in) if expires_in is not None else None,
            token_type=token.get("token_type") or "Bearer",
        )


@dataclass
class UserProps:
    """Identity claims and upstream tokens stored on a downstream grant"""
    claims: Dict[str, Any]
    token_set: UpstreamTokenSet


@dataclass
class OAuthClientInfo:
    """A downstream client known to the authorization provider"""
    client_id: str
    redirect_uris: List[str]
    client_name: Optional[str] = None
    client_uri: Optional[str] = None
    logo_uri: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OAuthClientInfo':
        return cls(
            client_id=data["client_id"],
            redirect_uris=list(data.get("redirect_uris") or []),
            client_name=data.get("client_name"),
            client_uri=data.get("client_uri"),
            logo_uri=data.get("logo_uri"),
        )


@dataclass
class Grant:
    """A downstream grant: one user's authorization of one client"""
    grant_id: str
    client_id: str
    user_id: str
    label: Optional[str]
    scope: List[str]
    props: UserProps
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class AuthorizationCode:
    """Represents a downstream OAuth authorization code"""
    code: str
    grant_id: str
    client_id: str
    redirect_uri: str
    code_challenge: Optional[str]
    code_challenge_method: Optional[str]
    expires_at: datetime
    used: bool = False


@dataclass
class TokenExchangeResult:
    """Outcome of the token exchange callback"""
    new_props: UserProps
    access_token_ttl: Optional[int]


class ProxyConfig:
    """Configuration for the OAuth front door HTTP server"""

    def __init__(self):
        self.host = os.getenv('OAUTH_PROXY_HOST', 'localhost')
        self.port = int(os.getenv('OAUTH_PROXY_PORT', '3001'))
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')
