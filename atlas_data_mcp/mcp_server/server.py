"""MongoDB Atlas Data API MCP Server using FastMCP.

This module implements a Model Context Protocol (MCP) server that lets MCP
clients read and write documents in MongoDB Atlas through the Atlas Data API.
It holds no database connection: every tool call turns into one HTTPS request
made with the credentials that came with that call.

Key Features:
    - FastMCP-based server implementation
    - Thirteen tools covering CRUD, aggregation and connectivity
    - Per-request tenant credentials (HTTP headers, with settings as fallback)
    - Uniform JSON envelopes for success and failure
    - /health route on HTTP transports

Architecture:
    - Document Tools: mongodb_find_one, mongodb_find, mongodb_insert_one,
      mongodb_insert_many, mongodb_update_one, mongodb_update_many,
      mongodb_delete_one, mongodb_delete_many
    - Aggregation Tools: mongodb_aggregate, mongodb_count, mongodb_distinct,
      mongodb_group_by
    - Connection Tools: mongodb_test_connection

Usage:
    atlas-data-mcp                          # stdio, credentials from environment
    MCP_TRANSPORT=http atlas-data-mcp       # streamable HTTP, credentials from headers
"""

import logging
from collections.abc import Awaitable, Callable

import httpx
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from atlas_data_mcp.config.settings import settings

from .credentials import resolve_tenant_credentials
from .tool_prompts import (
    get_instruction_category,
    get_system_instructions,
    get_tool_prompt,
    list_available_prompts,
)
from .tools import AggregationTools, ConnectionTools, DocumentTools
from .tools.formatters import format_error
from .tools.models import (
    AggregateRequest,
    CountRequest,
    DeleteRequest,
    DistinctRequest,
    FindOneRequest,
    FindRequest,
    GroupByRequest,
    InsertManyRequest,
    InsertOneRequest,
    ToolResponse,
    UpdateRequest,
)

SERVER_NAME = "atlas-data-mcp"

TOOL_NAMES = [
    "mongodb_test_connection",
    "mongodb_find_one",
    "mongodb_find",
    "mongodb_insert_one",
    "mongodb_insert_many",
    "mongodb_update_one",
    "mongodb_update_many",
    "mongodb_delete_one",
    "mongodb_delete_many",
    "mongodb_aggregate",
    "mongodb_count",
    "mongodb_distinct",
    "mongodb_group_by",
]


def with_centralized_prompt(tool_name: str):
    """Decorator to set function docstring from centralized prompts."""

    def decorator(func):
        prompt = get_tool_prompt(tool_name)
        if prompt:
            func.__doc__ = prompt
        return func

    return decorator


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def unwrap_response(response: ToolResponse) -> str:
    """Hand a ToolResponse to FastMCP.

    Success returns the JSON text. Failure raises ToolError carrying the same
    text, which FastMCP delivers as a result with ``isError: true``.
    """
    if response.is_error:
        raise ToolError(response.text)
    return response.text


async def run_tool(
    operation: Callable[..., Awaitable[ToolResponse]],
    request_model: type[BaseModel],
    **arguments,
) -> str:
    """Validate arguments, resolve credentials and run one tool method."""
    credentials = resolve_tenant_credentials()
    try:
        request = request_model(**arguments)
    except ValidationError as e:
        logger.error(f"Invalid arguments for {operation.__name__}: {e}")
        return unwrap_response(format_error(e))

    return unwrap_response(await operation(request, credentials))


def create_server(transport: httpx.AsyncBaseTransport | None = None) -> FastMCP:
    """Create and configure the FastMCP server with all Data API tools.

    Args:
        transport: Optional httpx transport for every Data API client the
            tools build. Left unset in production.

    Returns:
        Configured FastMCP server instance
    """
    system_instructions = get_system_instructions()
    if not system_instructions:
        logger.warning("System instructions not found, using default instructions")
        system_instructions = (
            "Use the mongodb_* tools to query and modify a MongoDB Atlas cluster "
            "through the Atlas Data API. Pass filters, updates and pipelines as JSON strings."
        )

    missing_prompts = sorted(set(TOOL_NAMES) - set(list_available_prompts()))
    if missing_prompts:
        logger.warning(f"No prompt file for tools: {', '.join(missing_prompts)}")

    server = FastMCP(name=SERVER_NAME, instructions=system_instructions)

    document_tools = DocumentTools(transport=transport)
    aggregation_tools = AggregationTools(transport=transport)
    connection_tools = ConnectionTools(transport=transport)

    # =============================================================================
    # HEALTH ROUTE
    # =============================================================================

    @server.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "server": SERVER_NAME})

    # =============================================================================
    # CONNECTION TOOLS REGISTRATION
    # =============================================================================

    @server.tool(name="mongodb_test_connection")
    @with_centralized_prompt("mongodb_test_connection")
    async def mongodb_test_connection() -> str:
        credentials = resolve_tenant_credentials()
        return unwrap_response(await connection_tools.test_connection(credentials))

    # =============================================================================
    # DOCUMENT TOOLS REGISTRATION
    # =============================================================================

    @server.tool(name="mongodb_find_one")
    @with_centralized_prompt("mongodb_find_one")
    async def mongodb_find_one(
        database: str,
        collection: str,
        filter: str | None = None,
        projection: str | None = None,
    ) -> str:
        return await run_tool(
            document_tools.find_one,
            FindOneRequest,
            database=database,
            collection=collection,
            filter=filter,
            projection=projection,
        )

    @server.tool(name="mongodb_find")
    @with_centralized_prompt("mongodb_find")
    async def mongodb_find(
        database: str,
        collection: str,
        filter: str | None = None,
        projection: str | None = None,
        sort: str | None = None,
        limit: int | None = None,
        skip: int | None = None,
    ) -> str:
        return await run_tool(
            document_tools.find,
            FindRequest,
            database=database,
            collection=collection,
            filter=filter,
            projection=projection,
            sort=sort,
            limit=limit,
            skip=skip,
        )

    @server.tool(name="mongodb_insert_one")
    @with_centralized_prompt("mongodb_insert_one")
    async def mongodb_insert_one(database: str, collection: str, document: str) -> str:
        return await run_tool(
            document_tools.insert_one,
            InsertOneRequest,
            database=database,
            collection=collection,
            document=document,
        )

    @server.tool(name="mongodb_insert_many")
    @with_centralized_prompt("mongodb_insert_many")
    async def mongodb_insert_many(database: str, collection: str, documents: str) -> str:
        return await run_tool(
            document_tools.insert_many,
            InsertManyRequest,
            database=database,
            collection=collection,
            documents=documents,
        )

    @server.tool(name="mongodb_update_one")
    @with_centralized_prompt("mongodb_update_one")
    async def mongodb_update_one(
        database: str, collection: str, filter: str, update: str, upsert: bool = False
    ) -> str:
        return await run_tool(
            document_tools.update_one,
            UpdateRequest,
            database=database,
            collection=collection,
            filter=filter,
            update=update,
            upsert=upsert,
        )

    @server.tool(name="mongodb_update_many")
    @with_centralized_prompt("mongodb_update_many")
    async def mongodb_update_many(
        database: str, collection: str, filter: str, update: str, upsert: bool = False
    ) -> str:
        return await run_tool(
            document_tools.update_many,
            UpdateRequest,
            database=database,
            collection=collection,
            filter=filter,
            update=update,
            upsert=upsert,
        )

    @server.tool(name="mongodb_delete_one")
    @with_centralized_prompt("mongodb_delete_one")
    async def mongodb_delete_one(database: str, collection: str, filter: str) -> str:
        return await run_tool(
            document_tools.delete_one,
            DeleteRequest,
            database=database,
            collection=collection,
            filter=filter,
        )

    @server.tool(name="mongodb_delete_many")
    @with_centralized_prompt("mongodb_delete_many")
    async def mongodb_delete_many(database: str, collection: str, filter: str) -> str:
        return await run_tool(
            document_tools.delete_many,
            DeleteRequest,
            database=database,
            collection=collection,
            filter=filter,
        )

    # =============================================================================
    # AGGREGATION TOOLS REGISTRATION
    # =============================================================================

    @server.tool(name="mongodb_aggregate")
    @with_centralized_prompt("mongodb_aggregate")
    async def mongodb_aggregate(database: str, collection: str, pipeline: str) -> str:
        return await run_tool(
            aggregation_tools.aggregate,
            AggregateRequest,
            database=database,
            collection=collection,
            pipeline=pipeline,
        )

    @server.tool(name="mongodb_count")
    @with_centralized_prompt("mongodb_count")
    async def mongodb_count(database: str, collection: str, filter: str | None = None) -> str:
        return await run_tool(
            aggregation_tools.count,
            CountRequest,
            database=database,
            collection=collection,
            filter=filter,
        )

    @server.tool(name="mongodb_distinct")
    @with_centralized_prompt("mongodb_distinct")
    async def mongodb_distinct(
        database: str, collection: str, field: str, filter: str | None = None
    ) -> str:
        return await run_tool(
            aggregation_tools.distinct,
            DistinctRequest,
            database=database,
            collection=collection,
            field=field,
            filter=filter,
        )

    @server.tool(name="mongodb_group_by")
    @with_centralized_prompt("mongodb_group_by")
    async def mongodb_group_by(
        database: str,
        collection: str,
        groupBy: str,  # noqa: N803
        filter: str | None = None,
        aggregations: str | None = None,
    ) -> str:
        return await run_tool(
            aggregation_tools.group_by,
            GroupByRequest,
            database=database,
            collection=collection,
            groupBy=groupBy,
            filter=filter,
            aggregations=aggregations,
        )

    return server


def main():
    """Main entry point for the MCP server."""
    try:
        logger.info("Starting Atlas Data API MCP Server...")
        settings.validate_configuration()

        server = create_server()

        logger.info("Atlas Data API MCP Server initialized successfully")
        logger.info(f"Available tools: {', '.join(TOOL_NAMES)}")

        if settings.mcp_transport == "stdio":
            if not settings.has_default_credentials:
                logger.warning(
                    "No default credentials configured; set MONGODB_DATA_API_KEY, "
                    "MONGODB_APP_ID and MONGODB_DATA_SOURCE for stdio use"
                )
            server.run()
        else:
            logger.info(f"Listening on {settings.mcp_server_url} ({settings.mcp_transport})")
            credential_headers = get_instruction_category("credential_headers")
            if credential_headers:
                logger.info(
                    f"Tenant credential headers: {', '.join(credential_headers['required'])}"
                )
            server.run(
                transport=settings.mcp_transport,
                host=settings.mcp_server_host,
                port=settings.mcp_server_port,
            )

    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise


if __name__ == "__main__":
    main()
