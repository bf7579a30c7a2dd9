"""Tests for the MCP tools, both as plain functions and through an in-memory client."""

import base64
import json

import httpx
import pytest
import respx
from fastmcp import Client
from fastmcp.exceptions import PromptError, ToolError

from gravatar_mcp.prompts import load_integration_guide
from gravatar_mcp.server import create_server
from gravatar_mcp.tools.avatar_tools import fetch_avatar_by_email, fetch_avatar_by_id, to_mcp_image
from gravatar_mcp.tools.experimental_tools import fetch_interests_by_email, search_by_verified_account
from gravatar_mcp.tools.profile_tools import fetch_profile_by_email, fetch_profile_by_id
from gravatar_mcp.tools.tool_registry import ToolRegistry
from gravatar_mcp.utils.gravatar_client import AvatarImage
from gravatar_mcp.utils.identifiers import generate_identifier

from conftest import AVATAR_API_BASE, INTEGRATION_GUIDE_URL, REST_API_BASE

EMAIL = "Jane.Doe@Example.com"
EMAIL_HASH = generate_identifier(EMAIL)

EXPECTED_TOOLS = [
    "get_avatar_by_email",
    "get_avatar_by_id",
    "get_inferred_interests_by_email",
    "get_inferred_interests_by_id",
    "get_profile_by_email",
    "get_profile_by_id",
    "search_profiles_by_verified_account",
]


@pytest.fixture
def api_mock():
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def mcp_server(server_config, gravatar_client):
    return create_server(server_config, gravatar_client)


class TestToolFunctions:

    async def test_profile_by_email_hashes_address(self, gravatar_client, api_mock):
        route = api_mock.get(f"{REST_API_BASE}/profiles/{EMAIL_HASH}").mock(
            return_value=httpx.Response(200, json={"display_name": "Jane Doe"})
        )

        profile = await fetch_profile_by_email(gravatar_client, EMAIL)

        assert profile == {"display_name": "Jane Doe"}
        assert route.call_count == 1

    async def test_profile_by_email_rejects_blank_email(self, gravatar_client, api_mock):
        with pytest.raises(ToolError) as exc_info:
            await fetch_profile_by_email(gravatar_client, "   ")

        assert str(exc_info.value).startswith('Failed to get profile for email "   ":')
        assert len(api_mock.calls) == 0

    async def test_profile_by_id_error_message(self, gravatar_client, api_mock):
        api_mock.get(f"{REST_API_BASE}/profiles/nobody").mock(return_value=httpx.Response(404))

        with pytest.raises(ToolError) as exc_info:
            await fetch_profile_by_id(gravatar_client, "nobody")

        assert str(exc_info.value) == (
            'Failed to get profile for ID "nobody": No profile found for identifier: nobody'
        )

    async def test_interests_are_wrapped(self, gravatar_client, api_mock):
        api_mock.get(f"{REST_API_BASE}/profiles/{EMAIL_HASH}/inferred-interests").mock(
            return_value=httpx.Response(200, json=[{"id": 7, "name": "hiking"}])
        )

        result = await fetch_interests_by_email(gravatar_client, EMAIL)

        assert result == {"interests": [{"id": 7, "name": "hiking"}]}

    async def test_search_error_message(self, gravatar_client, api_mock):
        api_mock.get(f"{REST_API_BASE}/profiles/search/by-verified-account").mock(
            return_value=httpx.Response(429)
        )

        with pytest.raises(ToolError) as exc_info:
            await search_by_verified_account(gravatar_client, "octocat")

        assert "Rate limit exceeded" in str(exc_info.value)

    async def test_avatar_by_email(self, gravatar_client, api_mock):
        route = api_mock.get(f"{AVATAR_API_BASE}/{EMAIL_HASH}").mock(return_value=httpx.Response(
            200, content=b"png-bytes", headers={"Content-Type": "image/png"}
        ))

        avatar = await fetch_avatar_by_email(gravatar_client, EMAIL, size=80)

        assert avatar.data == b"png-bytes"
        assert route.calls.last.request.url.params["s"] == "80"

    async def test_avatar_by_id_error_message(self, gravatar_client, api_mock):
        api_mock.get(f"{AVATAR_API_BASE}/abc").mock(return_value=httpx.Response(404))

        with pytest.raises(ToolError) as exc_info:
            await fetch_avatar_by_id(gravatar_client, "abc")

        assert str(exc_info.value) == 'Failed to get avatar for ID "abc": No avatar found for identifier: abc.'


def test_to_mcp_image_uses_mime_subtype():
    content = to_mcp_image(AvatarImage(data=b"gif", mime_type="image/gif")).to_image_content()

    assert content.mimeType == "image/gif"
    assert base64.b64decode(content.data) == b"gif"


class TestRegistry:

    async def test_all_tool_modules_are_discovered(self, server_config, gravatar_client):
        from fastmcp import FastMCP

        server = FastMCP(name="registry-test")
        registry = ToolRegistry()
        registry.auto_discover_tools(server, gravatar_client)

        assert registry.list_categories() == ["avatar", "experimental", "profile"]
        assert registry.categories["profile"] == ["register_profile_tools"]
        assert await registry.list_tool_names(server) == EXPECTED_TOOLS


class TestMcpClient:

    async def test_list_tools(self, mcp_server):
        async with Client(mcp_server) as client:
            tools = await client.list_tools()

        assert sorted(tool.name for tool in tools) == EXPECTED_TOOLS
        by_name = {tool.name: tool for tool in tools}
        assert by_name["get_profile_by_email"].annotations.readOnlyHint is True
        schema = by_name["get_avatar_by_id"].inputSchema
        assert schema["required"] == ["avatarIdentifier"]
        assert "ctx" not in schema["properties"]

    async def test_profile_tool_returns_json(self, mcp_server, api_mock):
        api_mock.get(f"{REST_API_BASE}/profiles/janedoe").mock(
            return_value=httpx.Response(200, json={"display_name": "Jane Doe", "location": "Lisbon"})
        )

        async with Client(mcp_server) as client:
            result = await client.call_tool_mcp("get_profile_by_id", {"profileIdentifier": "janedoe"})

        assert not result.isError
        assert json.loads(result.content[0].text) == {"display_name": "Jane Doe", "location": "Lisbon"}

    async def test_tool_error_is_reported_to_client(self, mcp_server, api_mock):
        api_mock.get(f"{REST_API_BASE}/profiles/private").mock(return_value=httpx.Response(403))

        async with Client(mcp_server) as client:
            result = await client.call_tool_mcp("get_profile_by_id", {"profileIdentifier": "private"})

        assert result.isError
        assert "Profile is private or access denied" in result.content[0].text

    async def test_avatar_tool_returns_image_content(self, mcp_server, api_mock):
        route = api_mock.get(f"{AVATAR_API_BASE}/{EMAIL_HASH}").mock(return_value=httpx.Response(
            200, content=b"jpeg-bytes", headers={"Content-Type": "image/jpeg"}
        ))

        async with Client(mcp_server) as client:
            result = await client.call_tool_mcp("get_avatar_by_email", {
                "email": EMAIL, "size": 200, "defaultOption": "retro", "rating": "PG",
            })

        assert not result.isError
        image = result.content[0]
        assert image.type == "image"
        assert image.mimeType == "image/jpeg"
        assert base64.b64decode(image.data) == b"jpeg-bytes"
        params = route.calls.last.request.url.params
        assert params["s"] == "200"
        assert params["d"] == "retro"
        assert params["r"] == "PG"

    async def test_out_of_range_size_is_rejected(self, mcp_server, api_mock):
        async with Client(mcp_server) as client:
            result = await client.call_tool_mcp("get_avatar_by_id", {"avatarIdentifier": "abc", "size": 4096})

        assert result.isError
        assert len(api_mock.calls) == 0


GUIDE = "# Gravatar API Integration Guide\n\nUse SHA-256 email hashes as identifiers.\n"


class TestIntegrationGuidePrompt:

    async def test_load_guide(self, gravatar_client, api_mock):
        route = api_mock.get(INTEGRATION_GUIDE_URL).mock(return_value=httpx.Response(200, text=GUIDE))

        guide = await load_integration_guide(gravatar_client)

        assert guide == GUIDE
        assert "Authorization" not in route.calls.last.request.headers

    async def test_unavailable_guide_raises_readable_error(self, gravatar_client, api_mock):
        api_mock.get(INTEGRATION_GUIDE_URL).mock(return_value=httpx.Response(404))

        with pytest.raises(PromptError) as exc_info:
            await load_integration_guide(gravatar_client)

        assert str(exc_info.value) == "Failed to load Gravatar integration guide: 404 Not Found"

    async def test_network_error(self, gravatar_client, api_mock):
        api_mock.get(INTEGRATION_GUIDE_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(PromptError) as exc_info:
            await load_integration_guide(gravatar_client)

        assert str(exc_info.value).startswith("Failed to load Gravatar integration guide:")

    async def test_prompt_through_client(self, mcp_server, api_mock):
        api_mock.get(INTEGRATION_GUIDE_URL).mock(return_value=httpx.Response(200, text=GUIDE))

        async with Client(mcp_server) as client:
            prompts = await client.list_prompts()
            result = await client.get_prompt("api-integration-prompt")

        assert [prompt.name for prompt in prompts] == ["api-integration-prompt"]
        assert "Integration Guide" in prompts[0].description
        assert result.messages[0].role == "user"
        assert result.messages[0].content.text == GUIDE

    async def test_prompt_error_reaches_client(self, mcp_server, api_mock):
        api_mock.get(INTEGRATION_GUIDE_URL).mock(return_value=httpx.Response(503))

        async with Client(mcp_server) as client:
            with pytest.raises(Exception):
                await client.get_prompt("api-integration-prompt")
