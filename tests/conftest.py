"""Pytest configuration and shared fixtures for Atlas Data API MCP Server tests.

TESTING STRATEGY:
=================

Problem Statement:
------------------
Every tool call ends in an HTTPS request to the Atlas Data API. Unit tests must
check the exact request that would be sent (URL, headers, body) and how each
possible answer is reshaped, without ever touching the network.

Approach:
---------
``FakeDataApi`` plays the Data API behind an ``httpx.MockTransport``. Tools and
clients accept a transport argument, so the fake is injected the same way a
real transport would be. Each test queues the responses it needs per action
and inspects the recorded requests afterwards.

Test Organization:
-------------------
tests/
├── unit/                        # Fast, isolated tests
│   ├── test_exceptions.py       # Exception hierarchy and details schema
│   ├── test_settings.py         # Settings validation and fallbacks
│   ├── test_credentials.py      # Header parsing and fallback credentials
│   ├── test_client.py           # Request contract and status mapping
│   ├── test_formatters.py       # Envelopes and truncation
│   ├── test_server.py           # Tool registration over MCP
│   └── tools/
│       ├── test_document_tools.py
│       └── test_aggregation_tools.py
└── conftest.py                  # This file - shared fixtures

Example Usage:
--------------
```python
@pytest.mark.asyncio
async def test_find(fake_api, credentials):
    fake_api.respond("find", json={"documents": [{"a": 1}]})
    tools = DocumentTools(transport=fake_api.transport)
    response = await tools.find(FindRequest(database="db", collection="c"), credentials)
    assert fake_api.last_body["limit"] == 20
```
"""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from atlas_data_mcp.mcp_server.credentials import TenantCredentials

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Register custom markers.

    ```bash
    pytest -m unit              # Only unit tests (fast)
    pytest -m "not slow"        # Skip slow tests
    ```
    """
    config.addinivalue_line("markers", "unit: Fast unit tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: Integration tests with real dependencies")
    config.addinivalue_line("markers", "slow: Tests that take more than 1 second")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location.

    - tests/unit/* → @pytest.mark.unit
    - tests/integration/* → @pytest.mark.integration
    """
    for item in items:
        test_path = Path(item.fspath)

        if "unit" in test_path.parts:
            item.add_marker(pytest.mark.unit)
        elif "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# FAKE DATA API
# =============================================================================

QueuedResponse = dict[str, Any] | Exception | Callable[[httpx.Request], httpx.Response]


class FakeDataApi:
    """In-memory stand-in for the Atlas Data API.

    Responses are queued per action name (``find``, ``insertOne``, ...). When a
    queue holds several entries they are consumed in order and the last one is
    repeated. Actions with nothing queued answer ``200 {}``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: dict[str, list[QueuedResponse]] = {}

    def respond(
        self,
        action: str,
        status_code: int = 200,
        json: Any = None,
        headers: dict[str, str] | None = None,
        text: str | None = None,
    ) -> None:
        queued: dict[str, Any] = {"status_code": status_code, "headers": headers or {}}
        if text is not None:
            queued["text"] = text
        else:
            queued["json"] = json if json is not None else {}
        self._responses.setdefault(action, []).append(queued)

    def fail(self, action: str, error: Exception) -> None:
        """Queue a transport error for ``action``."""
        self._responses.setdefault(action, []).append(error)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        action = request.url.path.rsplit("/", 1)[-1]

        queue = self._responses.get(action)
        if not queue:
            return httpx.Response(200, json={})
        queued = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(queued, Exception):
            raise queued
        if callable(queued):
            return queued(request)
        return httpx.Response(**queued)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    @property
    def last_body(self) -> dict[str, Any]:
        return self.bodies[-1]

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def fake_api() -> FakeDataApi:
    """Fresh fake Data API per test."""
    return FakeDataApi()


# =============================================================================
# CREDENTIAL FIXTURES
# =============================================================================


@pytest.fixture
def credentials() -> TenantCredentials:
    """Complete tenant credentials without a base URL override."""
    return TenantCredentials(
        api_key="test-key-1234567890",
        app_id="data-abcde",
        data_source="Cluster0",
    )


@pytest.fixture
def expected_base_url() -> str:
    return "https://data.mongodb-api.com/app/data-abcde/endpoint/data/v1"

