"""Connectivity check tool."""

import logging

from ..credentials import TenantCredentials
from .base_tool import BaseTool
from .formatters import format_response
from .models import ToolResponse
from .utils import handle_tool_errors

logger = logging.getLogger(__name__)


class ConnectionTools(BaseTool):
    @handle_tool_errors
    async def test_connection(self, credentials: TenantCredentials) -> ToolResponse:
        """Probe the tenant's Data API endpoint.

        Missing credentials fail as a normal tool error. Otherwise the result
        is always a success envelope whose ``connected`` flag carries the
        outcome.
        """
        client = self.create_client(credentials)
        status = await client.test_connection()
        logger.info(f"Connection test for {client.base_url}: connected={status.connected}")
        return format_response(status.to_payload())
