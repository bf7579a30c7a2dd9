"""
OAuth Authentication Handler for the OAuth front door

Handles the downstream authorization request, the consent decision, the
upstream callback, client registration, and the downstream token and
userinfo endpoints.
"""

import time
import logging
from typing import Dict, Any

from aiohttp import web

from gravatar_mcp.auth.oauth_provider import OAuthConfig
from .downstream import AuthorizationProvider
from .errors import (
    InvalidAuthRequest,
    TokenRequestError,
    TransactionNotFound,
    UpstreamIdentityError,
    UpstreamOAuthError,
)
from .models import AuthorizationTransaction, UserProps
from .transactions import TransactionStore
from .ui_handlers import render_consent_page
from .upstream import UpstreamOAuthClient
from .utils import append_query, audit_log, tokens_match

logger = logging.getLogger("oauth_proxy.auth")

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


class AuthHandler:
    """Handles the OAuth authorization-code flow between MCP clients and the upstream provider"""

    def __init__(self, config: OAuthConfig, transactions: TransactionStore,
                 upstream: UpstreamOAuthClient, provider: AuthorizationProvider):
        self.config = config
        self.transactions = transactions
        self.upstream = upstream
        self.provider = provider

    async def authorize(self, request: web.Request) -> web.Response:
        """Validate the client's request, start a transaction and show the consent page"""
        try:
            auth_request = self.provider.parse_auth_request(request.query)
        except InvalidAuthRequest as e:
            logger.warning(f"Rejected authorization request: {e.message}")
            return web.Response(text=e.message, status=400)

        client = self.provider.lookup_client(auth_request.client_id)
        transaction = self.transactions.create(auth_request)

        html = render_consent_page(
            client,
            redirect_uri=auth_request.redirect_uri,
            scopes=self.config.scopes,
            transaction_state=transaction.transaction_id,
            consent_token=transaction.consent_token,
        )
        response = web.Response(text=html, content_type="text/html", headers=NO_STORE_HEADERS)
        self.transactions.persist(response, transaction)

        audit_log("authorization_started", details={
            "client_id": auth_request.client_id,
            "redirect_uri": auth_request.redirect_uri,
        })
        return response

    async def confirm_consent(self, request: web.Request) -> web.Response:
        """Handle the consent form: deny back to the client or continue upstream"""
        form = await request.post()
        transaction_state = form.get("transaction_state")
        if not transaction_state:
            return web.Response(text="Invalid transaction state", status=400)

        try:
            transaction = self.transactions.load(request.cookies, transaction_state)
        except TransactionNotFound:
            return web.Response(text="Invalid or expired transaction", status=400)

        if not tokens_match(transaction.consent_token, form.get("consent_token")):
            # The transaction stays usable so the legitimate form can still be submitted
            audit_log("consent_csrf_failure", details={"client_id": transaction.original_request.client_id})
            return web.Response(text="Invalid consent token", status=403)

        if form.get("consent_action") != "approve":
            return self._deny(transaction)

        audit_log("consent_granted", details={"client_id": transaction.original_request.client_id})
        return web.Response(status=302, headers={"Location": self.upstream.authorization_url(transaction)})

    def _deny(self, transaction: AuthorizationTransaction) -> web.Response:
        original = transaction.original_request
        params = {
            "error": "access_denied",
            "error_description": "User denied the request",
        }
        if original.state:
            params["state"] = original.state

        response = web.Response(status=302, headers={"Location": append_query(original.redirect_uri, params)})
        self.transactions.mark_consumed(transaction)
        self.transactions.invalidate(response, transaction.transaction_id)
        audit_log("consent_denied", details={"client_id": original.client_id})
        return response

    async def callback(self, request: web.Request) -> web.Response:
        """Handle the upstream redirect: exchange the code, fetch identity and complete authorization"""
        state = request.query.get("state")
        if not state:
            return web.Response(text="Invalid state parameter", status=400)

        try:
            transaction = self.transactions.load(request.cookies, state)
        except TransactionNotFound:
            return web.Response(text="Invalid transaction state or session expired", status=400)

        # Consumed before any upstream call, whatever the outcome
        self.transactions.mark_consumed(transaction)
        response = await self._complete_callback(request, transaction)
        self.transactions.invalidate(response, state)
        return response

    async def _complete_callback(self, request: web.Request,
                                 transaction: AuthorizationTransaction) -> web.Response:
        error = request.query.get("error")
        if error:
            logger.warning(f"Upstream authorization failed: {error} ({request.query.get('error_description')})")
            audit_log("upstream_authorization_error", details={"error": error})
            return web.Response(text=f"OAuth error: {error}", status=400)

        code = request.query.get("code")
        if not code:
            return web.Response(text="Missing authorization code", status=400)

        try:
            token_set = await self.upstream.exchange_code(code, transaction.pkce_verifier)
        except UpstreamOAuthError as e:
            audit_log("upstream_code_exchange_failed", details={"error": e.error})
            return web.Response(text=e.message, status=e.status)

        if not self.config.userinfo_endpoint:
            return web.Response(text="No user information available", status=400)

        try:
            identity = await self.upstream.fetch_identity(token_set.access_token)
        except UpstreamIdentityError as e:
            logger.error(f"Failed to fetch user info: {e}")
            return web.Response(text="Failed to fetch user information", status=500)

        user_id = identity.subject
        if not user_id:
            return web.Response(text="No user information available", status=400)

        original = transaction.original_request
        redirect_to = self.provider.complete_authorization(
            original,
            user_id=user_id,
            label=identity.label,
            scope=original.scope,
            props=UserProps(claims=identity.claims, token_set=token_set),
        )
        audit_log("upstream_login_completed", user_id=user_id, details={"client_id": original.client_id})
        return web.Response(status=302, headers={"Location": redirect_to})

    async def register_client(self, request: web.Request) -> web.Response:
        """
        Dynamic client registration stub.

        Incomplete: a client_id is fabricated and nothing is stored, so the
        returned id is not usable at /authorize. Clients that should be able
        to log in are configured through OAUTH_CLIENTS.
        """
        if request.method == "OPTIONS":
            return web.Response(status=200, headers=CORS_HEADERS)

        try:
            registration_data = await request.json()
            if not isinstance(registration_data, dict):
                raise ValueError("registration body must be a JSON object")
        except ValueError as e:
            logger.error(f"Client registration error: {e}")
            return web.json_response(
                {"error": "invalid_client_metadata", "error_description": "Failed to register client"},
                status=400,
                headers={"Access-Control-Allow-Origin": "*"},
            )

        client_id = f"mcp_client_{int(time.time() * 1000)}"
        response_data: Dict[str, Any] = {
            "client_id": client_id,
            "client_name": registration_data.get("client_name") or "MCP Client",
            "redirect_uris": registration_data.get("redirect_uris") or [],
            "grant_types": ["authorization_code"],
            "response_types": ["code"],
            "token_endpoint_auth_method": "none",
        }
        audit_log("client_registration_stub", details={
            "client_id": client_id,
            "client_name": response_data["client_name"],
        })
        return web.json_response(response_data, headers={"Access-Control-Allow-Origin": "*"})

    async def token(self, request: web.Request) -> web.Response:
        """Downstream token endpoint (authorization_code and refresh_token grants)"""
        if request.method == "OPTIONS":
            return web.Response(status=200, headers=CORS_HEADERS)

        form = await request.post()
        try:
            token_response = await self.provider.exchange_token(form)
        except TokenRequestError as e:
            logger.warning(f"Token request rejected: {e.error} ({e.description})")
            return web.json_response(
                e.to_dict(),
                status=e.status,
                headers={**NO_STORE_HEADERS, "Access-Control-Allow-Origin": "*"},
            )

        return web.json_response(
            token_response,
            headers={**NO_STORE_HEADERS, "Access-Control-Allow-Origin": "*"},
        )

    async def userinfo(self, request: web.Request) -> web.Response:
        """Return the upstream identity claims for a downstream bearer token"""
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return web.json_response(
                {"error": "invalid_token", "error_description": "Missing bearer token"},
                status=401,
                headers={"WWW-Authenticate": 'Bearer error="invalid_token"'},
            )

        try:
            grant = self.provider.validate_access_token(auth_header[len("Bearer "):])
        except TokenRequestError as e:
            return web.json_response(
                e.to_dict(),
                status=e.status,
                headers={"WWW-Authenticate": f'Bearer error="{e.error}"'},
            )

        return web.json_response({
            "sub": grant.user_id,
            "name": grant.label,
            "client_id": grant.client_id,
            "scope": " ".join(grant.scope),
            "claims": grant.props.claims,
        })
