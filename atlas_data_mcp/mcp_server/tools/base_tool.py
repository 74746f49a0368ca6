"""Base tool class for per-request Data API access.

Tools never share a client. Each call builds a fresh ``AtlasDataApiClient``
from the credentials that arrived with that call, so two tenants served by
the same process never see each other's keys.

Example:
    >>> from atlas_data_mcp.mcp_server.tools.base_tool import BaseTool
    >>> class MyTool(BaseTool):
    ...     async def my_operation(self, credentials):
    ...         client = self.create_client(credentials)
    ...         result = await client.find("shop", "orders", {"status": "open"})
"""

import logging

import httpx

from ..client import AtlasDataApiClient, create_data_api_client
from ..credentials import TenantCredentials

logger = logging.getLogger(__name__)


class BaseTool:
    """Base class for all MCP tool groups.

    Args:
        transport: Optional httpx transport handed to every client this tool
            builds. Production leaves it unset; tests pass ``httpx.MockTransport``.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport
        logger.debug(f"Initialized {self.__class__.__name__}")

    def create_client(self, credentials: TenantCredentials) -> AtlasDataApiClient:
        """Build a client for one tool call.

        Raises:
            AuthenticationError: If a mandatory credential is missing. Nothing
                is sent over the network in that case.
        """
        credentials.validate_required()
        return create_data_api_client(credentials, transport=self._transport)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
