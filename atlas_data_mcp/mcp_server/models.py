"""Typed results of Atlas Data API actions.

The Data API answers in camelCase (``insertedId``, ``matchedCount``); the
models expose snake_case attributes and keep the wire names as aliases so a
response body validates directly with ``model_validate``.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MongoDocument = dict[str, Any]
MongoFilter = dict[str, Any]
MongoProjection = dict[str, Any]
MongoSort = dict[str, int]
MongoUpdate = dict[str, Any]
AggregationStage = dict[str, Any]


class DataApiAction(str, Enum):
    """Actions exposed by the Data API under ``{base_url}/action/{action}``."""

    FIND_ONE = "findOne"
    FIND = "find"
    INSERT_ONE = "insertOne"
    INSERT_MANY = "insertMany"
    UPDATE_ONE = "updateOne"
    UPDATE_MANY = "updateMany"
    DELETE_ONE = "deleteOne"
    DELETE_MANY = "deleteMany"
    AGGREGATE = "aggregate"


class DataApiResult(BaseModel):
    """Base for all action results."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        """Wire-shaped dict with unset optional fields left out."""
        return self.model_dump(by_alias=True, exclude_none=True)


class FindOneResult(DataApiResult):
    document: MongoDocument | None = None

    def to_payload(self) -> dict[str, Any]:
        # A missing document is reported as an explicit null
        return {"document": self.document}


class FindResult(DataApiResult):
    documents: list[MongoDocument] = Field(default_factory=list)


class InsertOneResult(DataApiResult):
    inserted_id: Any = Field(None, alias="insertedId")


class InsertManyResult(DataApiResult):
    inserted_ids: list[Any] = Field(default_factory=list, alias="insertedIds")


class UpdateResult(DataApiResult):
    matched_count: int = Field(0, alias="matchedCount")
    modified_count: int = Field(0, alias="modifiedCount")
    upserted_id: Any = Field(None, alias="upsertedId")


class DeleteResult(DataApiResult):
    deleted_count: int = Field(0, alias="deletedCount")


class AggregateResult(DataApiResult):
    documents: list[MongoDocument] = Field(default_factory=list)


class ConnectionStatus(DataApiResult):
    """Outcome of the connectivity probe."""

    connected: bool
    message: str
