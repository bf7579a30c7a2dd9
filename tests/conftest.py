"""Shared fixtures for the Gravatar MCP test suite."""

import re
from typing import Dict, Optional
from urllib.parse import urlencode

import pytest
import respx
from aiohttp import DummyCookieJar
from aiohttp.test_utils import TestClient, TestServer

from gravatar_mcp.auth.oauth_provider import OAuthConfig
from gravatar_mcp.config import ServerConfig
from gravatar_mcp.oauth_proxy.downstream import AuthorizationProvider
from gravatar_mcp.oauth_proxy.models import OAuthClientInfo
from gravatar_mcp.oauth_proxy.server import create_app
from gravatar_mcp.oauth_proxy.token_exchange import TokenRefreshSynchronizer
from gravatar_mcp.oauth_proxy.transactions import TransactionStore
from gravatar_mcp.oauth_proxy.upstream import UpstreamOAuthClient
from gravatar_mcp.utils.gravatar_client import GravatarClient

REST_API_BASE = "https://api.gravatar.test/v3"
AVATAR_API_BASE = "https://gravatar.test/avatar"
INTEGRATION_GUIDE_URL = "https://gravatar.test/gravatar-api-integration-guide.md"

UPSTREAM_AUTHORIZE = "https://public-api.wordpress.test/oauth2/authorize"
UPSTREAM_TOKEN = "https://public-api.wordpress.test/oauth2/token"
UPSTREAM_USERINFO = "https://public-api.wordpress.test/rest/v1/me"

MCP_CLIENT_ID = "mcp-inspector"
MCP_REDIRECT_URI = "http://localhost:6274/oauth/callback"

WORDPRESS_USER = {
    "ID": 4242,
    "login": "janedoe",
    "display_name": "Jane Doe",
    "email": "jane@example.com",
}


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(
        api_key="test-api-key",
        rest_api_base=REST_API_BASE,
        avatar_api_base=AVATAR_API_BASE,
        request_timeout=5.0,
        integration_guide_url=INTEGRATION_GUIDE_URL,
    )


@pytest.fixture
def gravatar_client(server_config) -> GravatarClient:
    return GravatarClient(server_config)


@pytest.fixture
def oauth_config() -> OAuthConfig:
    return OAuthConfig(
        client_id="wp-client-id",
        client_secret="wp-client-secret",
        redirect_uri="https://mcp.example.test/callback",
        authorization_endpoint=UPSTREAM_AUTHORIZE,
        token_endpoint=UPSTREAM_TOKEN,
        userinfo_endpoint=UPSTREAM_USERINFO,
        scopes=["auth", "gravatar-profile:manage"],
        signing_secret="test-signing-secret-that-is-long-enough-for-hs256",
        cookie_secret="test-cookie-secret",
        environment="development",
        upstream_timeout=5.0,
        cookie_prefix="test_tx",
    )


@pytest.fixture
def mcp_client_info() -> OAuthClientInfo:
    return OAuthClientInfo(
        client_id=MCP_CLIENT_ID,
        redirect_uris=[MCP_REDIRECT_URI],
        client_name="MCP Inspector",
        client_uri="https://modelcontextprotocol.io",
    )


@pytest.fixture
def upstream(oauth_config) -> UpstreamOAuthClient:
    return UpstreamOAuthClient(oauth_config)


@pytest.fixture
def synchronizer(upstream) -> TokenRefreshSynchronizer:
    return TokenRefreshSynchronizer(upstream)


@pytest.fixture
def provider(oauth_config, synchronizer, mcp_client_info) -> AuthorizationProvider:
    return AuthorizationProvider(oauth_config, synchronizer, clients=[mcp_client_info])


@pytest.fixture
def transactions(oauth_config) -> TransactionStore:
    return TransactionStore(oauth_config)


@pytest.fixture
def upstream_mock():
    """respx router for the upstream provider; unmatched requests fail the test"""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
async def http_client(oauth_config, provider, transactions):
    app = create_app(oauth_config, provider=provider, transactions=transactions)
    # Cookies are passed explicitly so each test controls exactly what the browser sends
    client = TestClient(TestServer(app), cookie_jar=DummyCookieJar())
    await client.start_server()
    yield client
    await client.close()


def authorize_query(**overrides) -> str:
    params = {
        "response_type": "code",
        "client_id": MCP_CLIENT_ID,
        "redirect_uri": MCP_REDIRECT_URI,
        "scope": "profile",
        "state": "client-state-123",
    }
    params.update(overrides)
    return urlencode({k: v for k, v in params.items() if v is not None})


def hidden_field(html: str, name: str) -> Optional[str]:
    match = re.search(rf'name="{name}" value="([^"]*)"', html)
    return match.group(1) if match else None


class StartedTransaction:
    """What a browser holds after GET /authorize"""

    def __init__(self, transaction_id: str, consent_token: str, cookie_name: str, cookie_value: str):
        self.transaction_id = transaction_id
        self.consent_token = consent_token
        self.cookie_name = cookie_name
        self.cookie_value = cookie_value

    @property
    def cookie_header(self) -> Dict[str, str]:
        return {"Cookie": f"{self.cookie_name}={self.cookie_value}"}


async def start_transaction(client: TestClient, prefix: str = "test_tx", **overrides) -> StartedTransaction:
    resp = await client.get(f"/authorize?{authorize_query(**overrides)}")
    assert resp.status == 200
    html = await resp.text()
    transaction_id = hidden_field(html, "transaction_state")
    consent_token = hidden_field(html, "consent_token")
    cookie_name = f"{prefix}_{transaction_id}"
    return StartedTransaction(transaction_id, consent_token, cookie_name, resp.cookies[cookie_name].value)
