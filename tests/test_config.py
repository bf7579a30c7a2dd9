"""Tests for server and OAuth configuration loading."""

import pytest

from gravatar_mcp import __version__
from gravatar_mcp.auth.oauth_provider import OAuthConfig, parse_scopes
from gravatar_mcp.config import ClientInfo, ServerConfig, build_api_headers

OAUTH_ENV = {
    "OAUTH_CLIENT_ID": "wp-client-id",
    "OAUTH_CLIENT_SECRET": "wp-client-secret",
    "OAUTH_REDIRECT_URI": "https://mcp.example.test/callback",
    "OAUTH_AUTHORIZATION_ENDPOINT": "https://public-api.wordpress.com/oauth2/authorize",
    "OAUTH_TOKEN_ENDPOINT": "https://public-api.wordpress.com/oauth2/token",
    "OAUTH_SIGNING_SECRET": "signing-secret",
    "OAUTH_COOKIE_SECRET": "cookie-secret",
}

OPTIONAL_ENV = [
    "OAUTH_USERINFO_ENDPOINT", "OAUTH_SCOPES", "OAUTH_UPSTREAM_TIMEOUT", "OAUTH_COOKIE_PREFIX",
    "NODE_ENV", "ENVIRONMENT",
]


@pytest.fixture
def oauth_env(monkeypatch):
    for name in OPTIONAL_ENV:
        monkeypatch.delenv(name, raising=False)
    for name, value in OAUTH_ENV.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


class TestOAuthConfig:

    def test_from_environment_defaults(self, oauth_env):
        config = OAuthConfig.from_environment()

        assert config.client_id == "wp-client-id"
        assert config.userinfo_endpoint is None
        assert config.scopes == ["auth"]
        assert config.environment == "production"
        assert config.cookie_prefix == "mcp_oauth_tx"
        assert config.upstream_timeout == 10.0
        assert config.cookie_secure is True
        assert config.cookie_samesite == "None"

    def test_optional_settings(self, oauth_env):
        oauth_env.setenv("OAUTH_USERINFO_ENDPOINT", "https://public-api.wordpress.com/rest/v1/me")
        oauth_env.setenv("OAUTH_SCOPES", "auth, gravatar-profile:manage")
        oauth_env.setenv("NODE_ENV", "development")
        oauth_env.setenv("OAUTH_UPSTREAM_TIMEOUT", "2.5")

        config = OAuthConfig.from_environment()

        assert config.userinfo_endpoint == "https://public-api.wordpress.com/rest/v1/me"
        assert config.scopes == ["auth", "gravatar-profile:manage"]
        assert config.scope_string == "auth gravatar-profile:manage"
        assert config.is_development
        assert config.cookie_secure is False
        assert config.cookie_samesite == "Lax"
        assert config.upstream_timeout == 2.5

    def test_environment_fallback(self, oauth_env):
        oauth_env.setenv("ENVIRONMENT", "Development")

        assert OAuthConfig.from_environment().is_development

    def test_missing_variables_are_listed(self, oauth_env):
        oauth_env.delenv("OAUTH_CLIENT_SECRET")
        oauth_env.delenv("OAUTH_COOKIE_SECRET")

        with pytest.raises(ValueError) as exc_info:
            OAuthConfig.from_environment()

        message = str(exc_info.value)
        assert "OAUTH_CLIENT_SECRET" in message
        assert "OAUTH_COOKIE_SECRET" in message
        assert "OAUTH_CLIENT_ID" not in message


@pytest.mark.parametrize("raw, expected", [
    ("auth", ["auth"]),
    ("auth gravatar-profile:manage", ["auth", "gravatar-profile:manage"]),
    ("auth,global", ["auth", "global"]),
    ("  auth ,  global  ", ["auth", "global"]),
    ("", []),
    (None, []),
])
def test_parse_scopes(raw, expected):
    assert parse_scopes(raw) == expected


class TestServerConfig:

    def test_defaults(self, monkeypatch):
        for name in ["GRAVATAR_API_KEY", "GRAVATAR_API_BASE", "GRAVATAR_AVATAR_BASE",
                     "GRAVATAR_REQUEST_TIMEOUT", "MCP_SERVER_NAME", "GRAVATAR_INTEGRATION_GUIDE_URL"]:
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig.from_environment()

        assert config.api_key is None
        assert config.rest_api_base == "https://api.gravatar.com/v3"
        assert config.avatar_api_base == "https://gravatar.com/avatar"
        assert config.integration_guide_url == "https://gravatar.com/gravatar-api-integration-guide.md"
        assert config.server_info() == {"name": "Gravatar MCP Server", "version": __version__}

    def test_overrides_strip_trailing_slash(self, monkeypatch):
        monkeypatch.setenv("GRAVATAR_API_KEY", "key-123")
        monkeypatch.setenv("GRAVATAR_API_BASE", "https://api.gravatar.test/v3/")
        monkeypatch.setenv("GRAVATAR_REQUEST_TIMEOUT", "7")
        monkeypatch.setenv("GRAVATAR_INTEGRATION_GUIDE_URL", "https://docs.example.test/guide.md")

        config = ServerConfig.from_environment()

        assert config.api_key == "key-123"
        assert config.rest_api_base == "https://api.gravatar.test/v3"
        assert config.request_timeout == 7.0
        assert config.integration_guide_url == "https://docs.example.test/guide.md"


class TestApiHeaders:

    def test_without_key_or_client(self):
        headers = build_api_headers(ServerConfig())

        assert headers["User-Agent"] == f"Gravatar-MCP-Server/{__version__}"
        assert headers["Accept"] == "application/json"
        assert "Authorization" not in headers

    def test_with_key_and_client(self):
        headers = build_api_headers(ServerConfig(api_key="key-123"), ClientInfo("claude-ai", "0.1.0"))

        assert headers["Authorization"] == "Bearer key-123"
        assert headers["User-Agent"] == f"Gravatar-MCP-Server/{__version__} claude-ai/0.1.0"

    def test_client_info_is_not_shared_between_calls(self):
        config = ServerConfig()
        build_api_headers(config, ClientInfo("first", "1"))

        assert "first" not in build_api_headers(config)["User-Agent"]


def test_client_info_from_missing_context():
    assert ClientInfo.from_context(None) is None
