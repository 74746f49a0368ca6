"""Pydantic models for MCP tool requests and responses.

Tool arguments are flat scalars. Anything nested (filters, updates, documents,
pipelines) travels as a JSON-encoded string and is decoded inside the tool,
so these models only check presence and scalar bounds.

Key Components:
    - Request models for each tool
    - ToolResponse, the uniform envelope every tool returns
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# RESPONSE ENVELOPE
# =============================================================================


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    """Uniform envelope returned by every tool, success or failure."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent]
    is_error: bool | None = Field(None, alias="isError")

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# REQUEST MODELS
# =============================================================================


class CollectionRequest(BaseModel):
    """Arguments shared by every collection-level tool."""

    model_config = ConfigDict(populate_by_name=True)

    database: str = Field(..., min_length=1, description="Database name")
    collection: str = Field(..., min_length=1, description="Collection name")


class FindOneRequest(CollectionRequest):
    filter: str | None = Field(None, description="Query filter as JSON string")
    projection: str | None = Field(None, description="Projection as JSON string")


class FindRequest(CollectionRequest):
    filter: str | None = Field(None, description="Query filter as JSON string")
    projection: str | None = Field(None, description="Projection as JSON string")
    sort: str | None = Field(None, description="Sort order as JSON string")
    limit: int | None = Field(None, description="Maximum documents to return")
    skip: int | None = Field(None, ge=0, description="Documents to skip")


class InsertOneRequest(CollectionRequest):
    document: str = Field(..., description="Document to insert as JSON string")


class InsertManyRequest(CollectionRequest):
    documents: str = Field(..., description="Documents to insert as JSON array string")


class UpdateRequest(CollectionRequest):
    filter: str = Field(..., description="Query filter as JSON string")
    update: str = Field(..., description="Update operations as JSON string")
    upsert: bool = Field(False, description="Create the document if nothing matches")


class DeleteRequest(CollectionRequest):
    filter: str = Field(..., description="Query filter as JSON string")


class AggregateRequest(CollectionRequest):
    pipeline: str = Field(..., description="Aggregation pipeline as JSON array string")


class CountRequest(CollectionRequest):
    filter: str | None = Field(None, description="Query filter as JSON string")


class DistinctRequest(CollectionRequest):
    field: str = Field(..., min_length=1, description="Field name to get distinct values for")
    filter: str | None = Field(None, description="Query filter as JSON string")


class GroupByRequest(CollectionRequest):
    group_by: str = Field(..., alias="groupBy", min_length=1, description="Field to group by")
    filter: str | None = Field(None, description="Query filter as JSON string")
    aggregations: str | None = Field(
        None, description="Aggregation operations as JSON object string"
    )
