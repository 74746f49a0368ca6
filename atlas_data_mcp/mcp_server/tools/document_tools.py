"""Document CRUD tools.

Each method takes a validated request model and the caller's credentials,
decodes the JSON-string arguments, issues exactly one Data API action and
returns a ToolResponse. Failures, including malformed arguments and missing
credentials, come back as failure envelopes via ``handle_tool_errors``.

Tools:
    - find_one / find: read documents
    - insert_one / insert_many: write new documents
    - update_one / update_many: modify matching documents, optionally upserting
    - delete_one / delete_many: remove matching documents

Mutations require an explicit filter; ``{}`` has to be spelled out to touch
every document.
"""

import logging

from ..credentials import TenantCredentials
from ..models import UpdateResult
from .base_tool import BaseTool
from .formatters import format_documents, format_operation_result, format_response
from .models import (
    DeleteRequest,
    FindOneRequest,
    FindRequest,
    InsertManyRequest,
    InsertOneRequest,
    ToolResponse,
    UpdateRequest,
)
from .utils import handle_tool_errors, parse_json_array, parse_json_object, resolve_limit

logger = logging.getLogger(__name__)


def update_one_message(result: UpdateResult) -> str:
    """Summary for a single-document update.

    A modification wins over an upsert; with neither, nothing changed.
    """
    if result.modified_count > 0:
        return "Document updated successfully"
    if result.upserted_id is not None:
        return "Document upserted successfully"
    return "No documents modified"


class DocumentTools(BaseTool):
    """Tools for reading and writing individual documents."""

    # =========================================================================
    # READ
    # =========================================================================

    @handle_tool_errors
    async def find_one(
        self, request: FindOneRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        filter_ = parse_json_object(request.filter, "filter", default={})
        projection = parse_json_object(request.projection, "projection")

        client = self.create_client(credentials)
        result = await client.find_one(
            request.database, request.collection, filter_, projection=projection
        )
        return format_response(result.to_payload())

    @handle_tool_errors
    async def find(self, request: FindRequest, credentials: TenantCredentials) -> ToolResponse:
        """Find documents with optional projection, sort and paging.

        ``limit`` defaults to the configured page size and must not exceed
        the configured maximum.
        """
        filter_ = parse_json_object(request.filter, "filter", default={})
        projection = parse_json_object(request.projection, "projection")
        sort = parse_json_object(request.sort, "sort")
        limit = resolve_limit(request.limit)

        client = self.create_client(credentials)
        result = await client.find(
            request.database,
            request.collection,
            filter_,
            projection=projection,
            sort=sort,
            limit=limit,
            skip=request.skip,
        )
        logger.debug(
            f"find on {request.database}.{request.collection} returned {len(result.documents)} documents"
        )
        return format_documents(result.documents)

    # =========================================================================
    # INSERT
    # =========================================================================

    @handle_tool_errors
    async def insert_one(
        self, request: InsertOneRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        document = parse_json_object(request.document, "document", required=True)

        client = self.create_client(credentials)
        result = await client.insert_one(request.database, request.collection, document)
        return format_operation_result(
            "Document inserted successfully", {"insertedId": result.inserted_id}
        )

    @handle_tool_errors
    async def insert_many(
        self, request: InsertManyRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        """Insert a batch of documents.

        The ``documents`` argument is checked to be an array before any client
        is built, so a malformed batch never reaches the network.
        """
        documents = parse_json_array(
            request.documents, "documents", message="Documents must be an array"
        )

        client = self.create_client(credentials)
        result = await client.insert_many(request.database, request.collection, documents)
        return format_operation_result(
            f"{len(result.inserted_ids)} documents inserted successfully",
            {"insertedIds": result.inserted_ids},
        )

    # =========================================================================
    # UPDATE
    # =========================================================================

    @handle_tool_errors
    async def update_one(
        self, request: UpdateRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        filter_ = parse_json_object(request.filter, "filter", required=True)
        update = parse_json_object(request.update, "update", required=True)

        client = self.create_client(credentials)
        result = await client.update_one(
            request.database, request.collection, filter_, update, upsert=request.upsert
        )
        return format_operation_result(update_one_message(result), result.to_payload())

    @handle_tool_errors
    async def update_many(
        self, request: UpdateRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        filter_ = parse_json_object(request.filter, "filter", required=True)
        update = parse_json_object(request.update, "update", required=True)

        client = self.create_client(credentials)
        result = await client.update_many(
            request.database, request.collection, filter_, update, upsert=request.upsert
        )
        return format_operation_result(
            f"{result.modified_count} documents updated", result.to_payload()
        )

    # =========================================================================
    # DELETE
    # =========================================================================

    @handle_tool_errors
    async def delete_one(
        self, request: DeleteRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        filter_ = parse_json_object(request.filter, "filter", required=True)

        client = self.create_client(credentials)
        result = await client.delete_one(request.database, request.collection, filter_)
        message = (
            "Document deleted successfully"
            if result.deleted_count > 0
            else "No document found to delete"
        )
        return format_operation_result(message, result.to_payload())

    @handle_tool_errors
    async def delete_many(
        self, request: DeleteRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        filter_ = parse_json_object(request.filter, "filter", required=True)

        client = self.create_client(credentials)
        result = await client.delete_many(request.database, request.collection, filter_)
        return format_operation_result(
            f"{result.deleted_count} documents deleted", result.to_payload()
        )
