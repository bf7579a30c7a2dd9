"""
Downstream authorization provider.

Issues authorization codes, access tokens and refresh tokens to MCP clients
after the upstream login completes. Grants live in memory only and are lost
on restart.
"""

import json
import os
import time
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import jwt

from gravatar_mcp.auth.oauth_provider import OAuthConfig
from .errors import (
    InvalidAuthRequest,
    NoRefreshTokenError,
    TokenRequestError,
    UpstreamOAuthError,
)
from .models import AuthRequest, AuthorizationCode, Grant, OAuthClientInfo, UserProps
from .token_exchange import TokenRefreshSynchronizer
from .utils import append_query, audit_log, generate_token, verify_code_challenge

logger = logging.getLogger("oauth_proxy.downstream")

TOKEN_ISSUER = "gravatar-mcp-oauth"
DEFAULT_ACCESS_TOKEN_TTL = 3600
AUTHORIZATION_CODE_TTL = timedelta(minutes=10)
SUPPORTED_CHALLENGE_METHODS = ("S256", "plain")


def load_clients(raw: Optional[str]) -> List[OAuthClientInfo]:
    """Parse a JSON list of client registrations (the OAUTH_CLIENTS variable)"""
    if not raw:
        return []
    try:
        entries = json.loads(raw)
        if not isinstance(entries, list):
            raise ValueError("expected a JSON list")
        return [OAuthClientInfo.from_dict(entry) for entry in entries]
    except (ValueError, KeyError, TypeError) as e:
        raise ValueError(f"Invalid OAUTH_CLIENTS value: {e}") from e


class AuthorizationProvider:
    """In-process OAuth2 authorization server for MCP clients"""

    def __init__(self, config: OAuthConfig, token_exchange: TokenRefreshSynchronizer,
                 clients: Optional[List[OAuthClientInfo]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.token_exchange = token_exchange
        self._now = clock or (lambda: datetime.now(timezone.utc))

        self.clients: Dict[str, OAuthClientInfo] = {}
        self.grants: Dict[str, Grant] = {}
        self.authorization_codes: Dict[str, AuthorizationCode] = {}
        self.refresh_tokens: Dict[str, str] = {}  # refresh token -> grant id

        for client in clients or []:
            self.add_client(client)

    @classmethod
    def from_environment(cls, config: OAuthConfig,
                         token_exchange: TokenRefreshSynchronizer) -> 'AuthorizationProvider':
        clients = load_clients(os.getenv("OAUTH_CLIENTS"))
        logger.info(f"Loaded {len(clients)} OAuth client(s) from OAUTH_CLIENTS")
        return cls(config, token_exchange, clients=clients)

    # Client registry

    def add_client(self, client: OAuthClientInfo):
        self.clients[client.client_id] = client
        logger.debug(f"Registered client {client.client_id} ({client.client_name or 'unnamed'})")

    def lookup_client(self, client_id: str) -> Optional[OAuthClientInfo]:
        return self.clients.get(client_id)

    # Authorization

    def parse_auth_request(self, query: Mapping[str, str]) -> AuthRequest:
        """
        Validate a downstream authorization request.

        Raises:
            InvalidAuthRequest: with the message to show the user agent
        """
        client_id = query.get("client_id")
        if not client_id:
            raise InvalidAuthRequest("Invalid request")
        if query.get("response_type") != "code":
            raise InvalidAuthRequest("Invalid request")

        client = self.lookup_client(client_id)
        if client is None:
            raise InvalidAuthRequest("Invalid client")

        redirect_uri = query.get("redirect_uri")
        if not redirect_uri and len(client.redirect_uris) == 1:
            redirect_uri = client.redirect_uris[0]
        if not redirect_uri or redirect_uri not in client.redirect_uris:
            raise InvalidAuthRequest("Invalid redirect URI")

        code_challenge = query.get("code_challenge") or None
        code_challenge_method = None
        if code_challenge:
            code_challenge_method = query.get("code_challenge_method") or "plain"
            if code_challenge_method not in SUPPORTED_CHALLENGE_METHODS:
                raise InvalidAuthRequest("Unsupported code challenge method")

        return AuthRequest(
            response_type="code",
            client_id=client_id,
            redirect_uri=redirect_uri,
            scope=(query.get("scope") or "").split(),
            state=query.get("state") or None,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        )

    def _prune_expired_codes(self):
        """Drop expired codes; a grant whose code expired unused never issued tokens and goes too"""
        now = self._now()
        for code, stored in list(self.authorization_codes.items()):
            if now <= stored.expires_at:
                continue
            del self.authorization_codes[code]
            if not stored.used:
                self.grants.pop(stored.grant_id, None)

    def complete_authorization(self, request: AuthRequest, user_id: str, label: Optional[str],
                               scope: List[str], props: UserProps) -> str:
        """Create a grant and a single-use authorization code, returning the client redirect URL"""
        self._prune_expired_codes()

        grant = Grant(
            grant_id=uuid.uuid4().hex,
            client_id=request.client_id,
            user_id=user_id,
            label=label,
            scope=list(scope),
            props=props,
            created_at=self._now(),
        )
        self.grants[grant.grant_id] = grant

        code = generate_token()
        self.authorization_codes[code] = AuthorizationCode(
            code=code,
            grant_id=grant.grant_id,
            client_id=request.client_id,
            redirect_uri=request.redirect_uri,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method,
            expires_at=self._now() + AUTHORIZATION_CODE_TTL,
        )

        audit_log("authorization_completed", user_id=user_id, details={
            "client_id": request.client_id,
            "scope": scope,
        })

        params = {"code": code}
        if request.state:
            params["state"] = request.state
        return append_query(request.redirect_uri, params)

    # Token endpoint

    async def exchange_token(self, form: Mapping[str, str]) -> Dict[str, Any]:
        """
        Handle a token endpoint request.

        Raises:
            TokenRequestError: RFC 6749 error to return to the client
        """
        grant_type = form.get("grant_type")
        if not grant_type:
            raise TokenRequestError("invalid_request", "Missing grant_type")
        if grant_type == "authorization_code":
            return await self._exchange_authorization_code(form)
        if grant_type == "refresh_token":
            return await self._exchange_refresh_token(form)
        raise TokenRequestError("unsupported_grant_type", f"Grant type '{grant_type}' is not supported")

    async def _exchange_authorization_code(self, form: Mapping[str, str]) -> Dict[str, Any]:
        code = form.get("code")
        client_id = form.get("client_id")
        if not code or not client_id:
            raise TokenRequestError("invalid_request", "Missing code or client_id")

        if self.lookup_client(client_id) is None:
            raise TokenRequestError("invalid_client", "Unknown client", status=401)

        stored = self.authorization_codes.get(code)
        if stored is None:
            raise TokenRequestError("invalid_grant", "Authorization code not found or expired")

        if stored.used:
            # Replay: drop the code and everything issued from it
            del self.authorization_codes[code]
            self._revoke_grant(stored.grant_id)
            audit_log("authorization_code_replayed", details={"client_id": client_id})
            raise TokenRequestError("invalid_grant", "Authorization code has already been used")

        if self._now() > stored.expires_at:
            del self.authorization_codes[code]
            self.grants.pop(stored.grant_id, None)
            raise TokenRequestError("invalid_grant", "Authorization code has expired")

        if stored.client_id != client_id:
            raise TokenRequestError("invalid_grant", "Authorization code was issued to another client")

        redirect_uri = form.get("redirect_uri")
        if redirect_uri and redirect_uri != stored.redirect_uri:
            raise TokenRequestError("invalid_grant", "redirect_uri does not match the authorization request")

        if stored.code_challenge:
            code_verifier = form.get("code_verifier")
            if not code_verifier:
                raise TokenRequestError("invalid_grant", "Missing code_verifier")
            if not verify_code_challenge(code_verifier, stored.code_challenge, stored.code_challenge_method):
                raise TokenRequestError("invalid_grant", "PKCE verification failed")

        stored.used = True

        grant = self.grants.get(stored.grant_id)
        if grant is None:
            raise TokenRequestError("invalid_grant", "Grant has been revoked")

        result = await self.token_exchange.token_exchange_callback("authorization_code", grant.props)
        grant.props = result.new_props
        return self._issue_tokens(grant, result.access_token_ttl)

    async def _exchange_refresh_token(self, form: Mapping[str, str]) -> Dict[str, Any]:
        refresh_token = form.get("refresh_token")
        if not refresh_token:
            raise TokenRequestError("invalid_request", "Missing refresh_token")

        # Single use: removed before the upstream call, restored only if the refresh fails
        grant_id = self.refresh_tokens.pop(refresh_token, None)
        grant = self.grants.get(grant_id) if grant_id else None
        if grant is None:
            raise TokenRequestError("invalid_grant", "Refresh token is invalid or has been revoked")

        client_id = form.get("client_id")
        if client_id and client_id != grant.client_id:
            self._restore_refresh_token(refresh_token, grant.grant_id)
            raise TokenRequestError("invalid_grant", "Refresh token was issued to another client")

        try:
            result = await self.token_exchange.token_exchange_callback("refresh_token", grant.props)
        except NoRefreshTokenError as e:
            self._restore_refresh_token(refresh_token, grant.grant_id)
            raise TokenRequestError("invalid_grant", e.message) from e
        except UpstreamOAuthError as e:
            self._restore_refresh_token(refresh_token, grant.grant_id)
            audit_log("upstream_refresh_failed", user_id=grant.user_id, details={"error": e.error})
            if e.status >= 500:
                raise TokenRequestError("temporarily_unavailable", e.description or e.message, status=503) from e
            raise TokenRequestError("invalid_grant", e.description or e.message) from e

        if grant.grant_id not in self.grants:
            raise TokenRequestError("invalid_grant", "Grant has been revoked")

        grant.props = result.new_props
        return self._issue_tokens(grant, result.access_token_ttl)

    def _restore_refresh_token(self, refresh_token: str, grant_id: str):
        if grant_id in self.grants:
            self.refresh_tokens[refresh_token] = grant_id

    def _issue_tokens(self, grant: Grant, ttl: Optional[int]) -> Dict[str, Any]:
        expires_in = ttl if ttl is not None else DEFAULT_ACCESS_TOKEN_TTL
        now = int(time.time())
        access_token = jwt.encode(
            {
                "iss": TOKEN_ISSUER,
                "sub": grant.user_id,
                "client_id": grant.client_id,
                "scope": " ".join(grant.scope),
                "gid": grant.grant_id,
                "jti": uuid.uuid4().hex,
                "iat": now,
                "exp": now + expires_in,
            },
            self.config.signing_secret,
            algorithm="HS256",
        )

        refresh_token = generate_token()
        self.refresh_tokens[refresh_token] = grant.grant_id

        audit_log("downstream_tokens_issued", user_id=grant.user_id, details={
            "client_id": grant.client_id,
            "expires_in": expires_in,
        })

        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": expires_in,
            "refresh_token": refresh_token,
            "scope": " ".join(grant.scope),
        }

    def _revoke_grant(self, grant_id: str):
        self.grants.pop(grant_id, None)
        for token in [t for t, gid in self.refresh_tokens.items() if gid == grant_id]:
            del self.refresh_tokens[token]

    # Resource access

    def validate_access_token(self, token: str) -> Grant:
        """
        Resolve a downstream bearer token to its grant.

        Raises:
            TokenRequestError: invalid_token (401) for bad, expired or revoked tokens
        """
        try:
            claims = jwt.decode(token, self.config.signing_secret, algorithms=["HS256"], issuer=TOKEN_ISSUER)
        except jwt.InvalidTokenError as e:
            raise TokenRequestError("invalid_token", f"Access token is invalid: {e}", status=401) from e

        grant = self.grants.get(claims.get("gid"))
        if grant is None:
            raise TokenRequestError("invalid_token", "Access token has been revoked", status=401)
        return grant
