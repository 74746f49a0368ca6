"""Unit tests for the Atlas Data API client.

The client is exercised against ``FakeDataApi`` (see conftest) so every test
can check the exact request sent and how each status code is mapped.
"""

import httpx
import pytest

from atlas_data_mcp.mcp_server.client import (
    AtlasDataApiClient,
    create_data_api_client,
    parse_retry_after,
)
from atlas_data_mcp.mcp_server.credentials import TenantCredentials
from atlas_data_mcp.mcp_server.exceptions import (
    AuthenticationError,
    DataApiConnectionError,
    MongoDbApiError,
    RateLimitError,
)


@pytest.fixture
def client(fake_api, credentials) -> AtlasDataApiClient:
    return create_data_api_client(credentials, transport=fake_api.transport)


# =============================================================================
# BASE URL
# =============================================================================


@pytest.mark.unit
class TestBaseUrl:
    def test_derived_from_app_id(self, credentials, expected_base_url):
        assert AtlasDataApiClient(credentials).base_url == expected_base_url

    def test_override_used_verbatim(self, credentials):
        custom = credentials.model_copy(
            update={"base_url": "https://eu-west-1.aws.data.mongodb-api.com/app/x/endpoint/data/v1"}
        )

        client = AtlasDataApiClient(custom)

        assert client.base_url == "https://eu-west-1.aws.data.mongodb-api.com/app/x/endpoint/data/v1"

    @pytest.mark.asyncio
    async def test_posts_to_action_path(self, client, fake_api, expected_base_url):
        await client.find_one("shop", "orders")

        request = fake_api.last_request
        assert request.method == "POST"
        assert str(request.url) == f"{expected_base_url}/action/findOne"


# =============================================================================
# REQUEST CONTRACT
# =============================================================================


@pytest.mark.unit
class TestRequestContract:
    @pytest.mark.asyncio
    async def test_headers(self, client, fake_api):
        await client.find("shop", "orders")

        headers = fake_api.last_request.headers
        assert headers["api-key"] == "test-key-1234567890"
        assert headers["content-type"] == "application/json"
        assert headers["accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_every_body_carries_data_source(self, client, fake_api):
        await client.find_one("shop", "orders")
        await client.insert_one("shop", "orders", {"a": 1})
        await client.update_many("shop", "orders", {}, {"$set": {"a": 2}})
        await client.delete_one("shop", "orders", {"a": 2})
        await client.aggregate("shop", "orders", [{"$match": {}}])

        assert len(fake_api.bodies) == 5
        for body in fake_api.bodies:
            assert body["dataSource"] == "Cluster0"
            assert body["database"] == "shop"
            assert body["collection"] == "orders"

    @pytest.mark.asyncio
    async def test_find_omits_unset_optional_fields(self, client, fake_api):
        await client.find("shop", "orders", {"status": "open"})

        body = fake_api.last_body
        assert body["filter"] == {"status": "open"}
        for key in ("projection", "sort", "limit", "skip"):
            assert key not in body

    @pytest.mark.asyncio
    async def test_find_sends_supplied_optional_fields(self, client, fake_api):
        await client.find(
            "shop", "orders", projection={"_id": 0}, sort={"createdAt": -1}, limit=5, skip=10
        )

        body = fake_api.last_body
        assert body["filter"] == {}
        assert body["projection"] == {"_id": 0}
        assert body["sort"] == {"createdAt": -1}
        assert body["limit"] == 5
        assert body["skip"] == 10

    @pytest.mark.asyncio
    async def test_update_sends_upsert_false_by_default(self, client, fake_api):
        await client.update_one("shop", "orders", {"a": 1}, {"$set": {"b": 2}})

        assert fake_api.last_body["upsert"] is False

    @pytest.mark.asyncio
    async def test_missing_api_key_sends_nothing(self, fake_api, credentials):
        client = create_data_api_client(
            credentials.model_copy(update={"api_key": None}), transport=fake_api.transport
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await client.find("shop", "orders")

        assert "X-MongoDB-API-Key" in exc_info.value.message
        assert fake_api.requests == []


# =============================================================================
# RESPONSE MAPPING
# =============================================================================


@pytest.mark.unit
class TestResponseMapping:
    @pytest.mark.asyncio
    async def test_find_result(self, client, fake_api):
        fake_api.respond("find", json={"documents": [{"_id": "1"}, {"_id": "2"}]})

        result = await client.find("shop", "orders")

        assert [doc["_id"] for doc in result.documents] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_find_one_null_document(self, client, fake_api):
        fake_api.respond("findOne", json={"document": None})

        result = await client.find_one("shop", "orders", {"_id": "missing"})

        assert result.document is None

    @pytest.mark.asyncio
    async def test_update_result_aliases(self, client, fake_api):
        fake_api.respond(
            "updateOne", json={"matchedCount": 0, "modifiedCount": 0, "upsertedId": "x"}
        )

        result = await client.update_one("shop", "orders", {}, {"$set": {"a": 1}}, upsert=True)

        assert result.matched_count == 0
        assert result.upserted_id == "x"

    @pytest.mark.asyncio
    async def test_rate_limit_with_retry_after(self, client, fake_api):
        fake_api.respond("find", status_code=429, headers={"Retry-After": "120"})

        with pytest.raises(RateLimitError) as exc_info:
            await client.find("shop", "orders")

        assert exc_info.value.retry_after == 120
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_rate_limit_without_retry_after(self, client, fake_api):
        fake_api.respond("find", status_code=429)

        with pytest.raises(RateLimitError) as exc_info:
            await client.find("shop", "orders")

        assert exc_info.value.retry_after == 60

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_failures_ignore_body(self, client, fake_api, status_code):
        fake_api.respond("find", status_code=status_code, json={"error": "something else"})

        with pytest.raises(AuthenticationError) as exc_info:
            await client.find("shop", "orders")

        assert exc_info.value.message == "Authentication failed. Check your API key and App ID."
        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_error_message_from_body(self, client, fake_api):
        fake_api.respond("find", status_code=400, json={"error": "invalid filter"})

        with pytest.raises(MongoDbApiError) as exc_info:
            await client.find("shop", "orders")

        assert exc_info.value.message == "invalid filter"
        assert exc_info.value.status_code == 400
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_error_message_field_fallback(self, client, fake_api):
        fake_api.respond("find", status_code=404, json={"message": "no such app"})

        with pytest.raises(MongoDbApiError) as exc_info:
            await client.find("shop", "orders")

        assert exc_info.value.message == "no such app"

    @pytest.mark.asyncio
    async def test_generic_message_for_non_json_body(self, client, fake_api):
        fake_api.respond("find", status_code=503, text="<html>Service Unavailable</html>")

        with pytest.raises(MongoDbApiError) as exc_info:
            await client.find("shop", "orders")

        assert exc_info.value.message == "MongoDB API error: 503"
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_transport_failure(self, client, fake_api):
        fake_api.fail("find", httpx.ConnectError("connection refused"))

        with pytest.raises(DataApiConnectionError) as exc_info:
            await client.find("shop", "orders")

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_unexpected_success_body(self, client, fake_api):
        fake_api.respond("find", text="not json")

        with pytest.raises(MongoDbApiError) as exc_info:
            await client.find("shop", "orders")

        assert "Unexpected response" in exc_info.value.message


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [
        ("120", 120),
        (None, 60),
        ("soon", 60),
        (" 5 ", 5),
        ("1.5", 1),
        ("30s", 30),
        ("-5", 0),
        ("", 60),
    ],
)
def test_parse_retry_after(value, expected):
    assert parse_retry_after(value) == expected


# =============================================================================
# CONNECTION TEST
# =============================================================================


@pytest.mark.unit
class TestConnectionProbe:
    @pytest.mark.asyncio
    async def test_first_probe_succeeds(self, client, fake_api):
        fake_api.respond("find", json={"documents": []})

        status = await client.test_connection()

        assert status.connected is True
        assert status.message == "Successfully connected to MongoDB Atlas (dataSource: Cluster0)"
        assert fake_api.last_body["database"] == "admin"
        assert fake_api.last_body["collection"] == "system.version"
        assert fake_api.last_body["limit"] == 1

    @pytest.mark.asyncio
    async def test_second_probe_succeeds(self, client, fake_api):
        fake_api.respond("find", status_code=400, json={"error": "not allowed"})
        fake_api.respond("find", json={"documents": []})

        status = await client.test_connection()

        assert status.connected is True
        assert status.message.startswith("Successfully connected")
        assert fake_api.last_body["collection"] == "__connection_test__"

    @pytest.mark.asyncio
    async def test_api_error_on_second_probe_still_connected(self, client, fake_api):
        fake_api.respond("find", status_code=404, json={"error": "no collection"})

        status = await client.test_connection()

        assert status.connected is True
        assert status.message == "Connected to MongoDB Atlas (dataSource: Cluster0)"
        assert len(fake_api.requests) == 2

    @pytest.mark.asyncio
    async def test_authentication_failure(self, client, fake_api):
        fake_api.respond("find", status_code=401)

        status = await client.test_connection()

        assert status.connected is False
        assert status.message == "Authentication failed. Check your API key and App ID."

    @pytest.mark.asyncio
    async def test_transport_failure(self, client, fake_api):
        fake_api.fail("find", httpx.ConnectError("connection refused"))

        status = await client.test_connection()

        assert status.connected is False
        assert "connection refused" in status.message

    @pytest.mark.asyncio
    async def test_rate_limit_counts_as_reachable(self, client, fake_api):
        fake_api.respond("find", status_code=429)

        status = await client.test_connection()

        assert status.connected is True


@pytest.mark.unit
def test_clients_do_not_share_credentials(credentials):
    other = TenantCredentials(api_key="other-key", app_id="data-zzzzz", data_source="Cluster1")

    first = create_data_api_client(credentials)
    second = create_data_api_client(other)

    assert first is not second
    assert "data-abcde" in first.base_url
    assert "data-zzzzz" in second.base_url
