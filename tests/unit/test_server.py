"""Unit tests for tool registration and dispatch over MCP.

The server is driven through FastMCP's in-memory client. Without an HTTP
request there are no tenant headers, so credentials come from settings.
"""

import json
import logging

import httpx
import pytest
from fastmcp import Client

from atlas_data_mcp.config.settings import settings
from atlas_data_mcp.mcp_server import server as server_module
from atlas_data_mcp.mcp_server.server import TOOL_NAMES, create_server


@pytest.fixture
def default_credentials(monkeypatch):
    monkeypatch.setattr(settings, "mongodb_data_api_key", "settings-key-123")
    monkeypatch.setattr(settings, "mongodb_app_id", "data-abcde")
    monkeypatch.setattr(settings, "mongodb_data_source", "Cluster0")
    monkeypatch.setattr(settings, "mongodb_data_api_base_url", None)


@pytest.fixture
def server(fake_api):
    return create_server(transport=fake_api.transport)


@pytest.mark.unit
class TestRegistration:
    @pytest.mark.asyncio
    async def test_all_tools_registered(self, server):
        async with Client(server) as client:
            tools = await client.list_tools()

        assert sorted(tool.name for tool in tools) == sorted(TOOL_NAMES)

    @pytest.mark.asyncio
    async def test_descriptions_come_from_prompt_files(self, server):
        async with Client(server) as client:
            tools = {tool.name: tool for tool in await client.list_tools()}

        assert tools["mongodb_find"].description.startswith(
            "Find documents in a MongoDB collection."
        )
        assert "groupBy" in tools["mongodb_group_by"].inputSchema["properties"]

    def test_missing_prompt_files_are_reported(self, fake_api, monkeypatch, caplog):
        monkeypatch.setattr(
            server_module, "list_available_prompts", lambda: ["mongodb_find", "mongodb_count"]
        )

        with caplog.at_level(logging.WARNING, logger=server_module.__name__):
            create_server(transport=fake_api.transport)

        assert "mongodb_find_one" in caplog.text
        assert "mongodb_find," not in caplog.text


@pytest.mark.unit
class TestDispatch:
    @pytest.mark.asyncio
    async def test_success_returns_json_text(self, server, fake_api, default_credentials):
        fake_api.respond("aggregate", json={"documents": [{"count": 3}]})

        async with Client(server) as client:
            result = await client.call_tool_mcp(
                "mongodb_count", {"database": "shop", "collection": "orders"}
            )

        assert not result.isError
        assert json.loads(result.content[0].text) == {"count": 3, "filter": {}}
        assert fake_api.last_request.headers["api-key"] == "settings-key-123"
        assert fake_api.last_body["dataSource"] == "Cluster0"

    @pytest.mark.asyncio
    async def test_failure_is_a_tool_error(self, server, fake_api, default_credentials):
        async with Client(server) as client:
            result = await client.call_tool_mcp(
                "mongodb_insert_many",
                {"database": "shop", "collection": "orders", "documents": "not json"},
            )

        assert result.isError is True
        body = json.loads(result.content[0].text)
        assert body["error"].startswith("Error: Invalid JSON in 'documents'")
        assert body["details"]["code"] == "INVALID_ARGUMENT"
        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_group_by_argument_name(self, server, fake_api, default_credentials):
        fake_api.respond("aggregate", json={"documents": [{"_id": "EU", "count": 2}]})

        async with Client(server) as client:
            result = await client.call_tool_mcp(
                "mongodb_group_by",
                {"database": "shop", "collection": "orders", "groupBy": "region"},
            )

        assert json.loads(result.content[0].text)["results"] == [{"region": "EU", "count": 2}]

    @pytest.mark.asyncio
    async def test_empty_collection_name_is_rejected(self, server, fake_api, default_credentials):
        async with Client(server) as client:
            result = await client.call_tool_mcp(
                "mongodb_find", {"database": "shop", "collection": ""}
            )

        assert result.isError is True
        assert json.loads(result.content[0].text)["details"]["kind"] == "ToolArgumentError"
        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_missing_credentials(self, server, fake_api, monkeypatch):
        monkeypatch.setattr(settings, "mongodb_data_api_key", None)
        monkeypatch.setattr(settings, "mongodb_app_id", None)
        monkeypatch.setattr(settings, "mongodb_data_source", None)

        async with Client(server) as client:
            result = await client.call_tool_mcp("mongodb_test_connection", {})

        assert result.isError is True
        body = json.loads(result.content[0].text)
        assert body["error"] == "Error: Missing X-MongoDB-API-Key header."
        assert fake_api.requests == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_health_route(server):
    transport = httpx.ASGITransport(app=server.http_app())

    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "server": "atlas-data-mcp"}
