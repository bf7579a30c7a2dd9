"""
OAuth front door server

Wires the transaction store, upstream client, downstream provider and
handlers into an aiohttp application.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web

from gravatar_mcp import __version__
from gravatar_mcp.auth.oauth_provider import OAuthConfig
from .auth_handler import AuthHandler
from .discovery_handler import DiscoveryHandler
from .downstream import AuthorizationProvider
from .token_exchange import TokenRefreshSynchronizer
from .transactions import TransactionStore
from .upstream import UpstreamOAuthClient
from .utils import audit_log

logger = logging.getLogger("oauth_proxy")

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
}


@web.middleware
async def security_middleware(request: web.Request, handler):
    """Add security headers and audit each request"""
    audit_log("http_request", details={
        "method": request.method,
        "path": request.path,
        "remote": request.remote,
    })
    try:
        response = await handler(request)
    except web.HTTPException as e:
        for header, value in SECURITY_HEADERS.items():
            e.headers[header] = value
        raise
    except Exception as e:
        audit_log("request_error", details={"error": str(e), "path": request.path})
        raise

    for header, value in SECURITY_HEADERS.items():
        response.headers[header] = value
    return response


class OAuthProxyServer:
    """OAuth2 front door for MCP clients, backed by WordPress.com OAuth"""

    def __init__(self, config: Optional[OAuthConfig] = None,
                 provider: Optional[AuthorizationProvider] = None,
                 transactions: Optional[TransactionStore] = None):
        self.config = config or OAuthConfig.from_environment()

        self.upstream = UpstreamOAuthClient(self.config)
        self.token_exchange = TokenRefreshSynchronizer(self.upstream)
        self.provider = provider or AuthorizationProvider.from_environment(self.config, self.token_exchange)
        self.transactions = transactions or TransactionStore(self.config)

        self.auth_handler = AuthHandler(self.config, self.transactions, self.upstream, self.provider)
        self.discovery_handler = DiscoveryHandler(self.config)

        self.app = web.Application(middlewares=[security_middleware])
        self._setup_routes()

    def _setup_routes(self):
        """Setup all routes by delegating to handlers"""
        self.app.router.add_get("/health", self._health_check)

        self.app.router.add_route('*', '/.well-known/oauth-authorization-server',
                                  self.discovery_handler.oauth_authorization_server_metadata)

        self.app.router.add_get('/authorize', self.auth_handler.authorize)
        self.app.router.add_post('/authorize/consent', self.auth_handler.confirm_consent)
        self.app.router.add_get('/callback', self.auth_handler.callback)

        self.app.router.add_post('/register', self.auth_handler.register_client)
        self.app.router.add_options('/register', self.auth_handler.register_client)
        self.app.router.add_post('/token', self.auth_handler.token)
        self.app.router.add_options('/token', self.auth_handler.token)
        self.app.router.add_get('/userinfo', self.auth_handler.userinfo)

    async def _health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint"""
        base_url = f"{request.scheme}://{request.host}"
        return web.json_response({
            "status": "healthy",
            "version": __version__,
            "oauth_configured": bool(self.config.client_id),
            "registered_clients": len(self.provider.clients),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "oauth_discovery": {
                "authorization_server": f"{base_url}/.well-known/oauth-authorization-server",
            },
        })

    async def run(self, host: str = "localhost", port: int = 3001) -> web.AppRunner:
        """Start serving and return the runner"""
        logger.info(f"Starting OAuth front door on {host}:{port}")
        runner = web.AppRunner(self.app)
        await runner.setup()

        site = web.TCPSite(runner, host, port)
        await site.start()

        logger.info("Available endpoints:")
        logger.info(f"  - GET  http://{host}:{port}/authorize - Start authorization")
        logger.info(f"  - POST http://{host}:{port}/token - Token endpoint")
        logger.info(f"  - GET  http://{host}:{port}/callback - Upstream redirect target")
        logger.info(f"  - GET  http://{host}:{port}/.well-known/oauth-authorization-server - Metadata")
        return runner

    async def serve_forever(self, host: str = "localhost", port: int = 3001):
        """Run until cancelled, then clean up"""
        runner = await self.run(host=host, port=port)
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await runner.cleanup()
            logger.info("OAuth front door stopped")


def create_app(config: OAuthConfig, provider: Optional[AuthorizationProvider] = None,
               transactions: Optional[TransactionStore] = None) -> web.Application:
    """Build the aiohttp application for the OAuth front door"""
    return OAuthProxyServer(config, provider=provider, transactions=transactions).app
