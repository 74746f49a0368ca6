"""Aggregation pipeline tools.

``aggregate`` forwards a caller-supplied pipeline unchanged. ``count``,
``distinct`` and ``group_by`` are convenience wrappers that build a small
pipeline and reshape what comes back; the Data API offers no dedicated
actions for them.
"""

import logging
from typing import Any

from ..credentials import TenantCredentials
from ..exceptions import ToolArgumentError
from ..models import AggregationStage, MongoFilter
from .base_tool import BaseTool
from .formatters import format_documents, format_response
from .models import (
    AggregateRequest,
    CountRequest,
    DistinctRequest,
    GroupByRequest,
    ToolResponse,
)
from .utils import handle_tool_errors, parse_json_array, parse_json_object

logger = logging.getLogger(__name__)

PIPELINE_ARRAY_MESSAGE = "Pipeline must be an array of stage objects"

DEFAULT_GROUP_AGGREGATIONS: dict[str, Any] = {"count": True}

# (aggregations key, output field, accumulator operator)
GROUP_ACCUMULATORS = [
    ("sum", "total", "$sum"),
    ("avg", "average", "$avg"),
    ("min", "min", "$min"),
    ("max", "max", "$max"),
]


# ============================================================================
# Pipeline Builders
# ============================================================================


def build_count_pipeline(filter_: MongoFilter) -> list[AggregationStage]:
    return [{"$match": filter_}, {"$count": "count"}]


def build_distinct_pipeline(field: str, filter_: MongoFilter) -> list[AggregationStage]:
    return [
        {"$match": filter_},
        {"$group": {"_id": f"${field}"}},
        {"$sort": {"_id": 1}},
    ]


def build_group_stage(group_by: str, aggregations: dict[str, Any]) -> dict[str, Any]:
    """Build the ``$group`` stage for group_by.

    ``_id`` is always the grouping field. ``count`` is added when the
    ``count`` aggregation is truthy; ``sum``, ``avg``, ``min`` and ``max``
    each name the field their accumulator runs over.

    Example:
        >>> build_group_stage("status", {"count": True, "sum": "amount"})
        {'_id': '$status', 'count': {'$sum': 1}, 'total': {'$sum': '$amount'}}
    """
    stage: dict[str, Any] = {"_id": f"${group_by}"}
    if aggregations.get("count"):
        stage["count"] = {"$sum": 1}
    for key, output_field, operator in GROUP_ACCUMULATORS:
        source_field = aggregations.get(key)
        if source_field:
            stage[output_field] = {operator: f"${source_field}"}
    return stage


def build_group_by_pipeline(
    group_by: str, filter_: MongoFilter, aggregations: dict[str, Any]
) -> list[AggregationStage]:
    return [
        {"$match": filter_},
        {"$group": build_group_stage(group_by, aggregations)},
        {"$sort": {"count": -1, "_id": 1}},
    ]


def rename_group_key(document: dict[str, Any], group_by: str) -> dict[str, Any]:
    """Replace ``_id`` with the grouping field name, keeping it first."""
    renamed = {group_by: document.get("_id")}
    renamed.update((key, value) for key, value in document.items() if key != "_id")
    return renamed


# ============================================================================
# Tools
# ============================================================================


class AggregationTools(BaseTool):
    """Tools that run aggregation pipelines."""

    @handle_tool_errors
    async def aggregate(
        self, request: AggregateRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        pipeline = parse_json_array(request.pipeline, "pipeline", message=PIPELINE_ARRAY_MESSAGE)
        if not all(isinstance(stage, dict) for stage in pipeline):
            raise ToolArgumentError(
                message=PIPELINE_ARRAY_MESSAGE,
                details={"argument": "pipeline"},
            )

        client = self.create_client(credentials)
        result = await client.aggregate(request.database, request.collection, pipeline)
        return format_documents(result.documents)

    @handle_tool_errors
    async def count(self, request: CountRequest, credentials: TenantCredentials) -> ToolResponse:
        """Count matching documents; no matches reports 0."""
        filter_ = parse_json_object(request.filter, "filter", default={})

        client = self.create_client(credentials)
        result = await client.aggregate(
            request.database, request.collection, build_count_pipeline(filter_)
        )
        count = result.documents[0].get("count", 0) if result.documents else 0
        return format_response({"count": count, "filter": filter_})

    @handle_tool_errors
    async def distinct(
        self, request: DistinctRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        """Distinct non-null values of a field, ascending."""
        filter_ = parse_json_object(request.filter, "filter", default={})

        client = self.create_client(credentials)
        result = await client.aggregate(
            request.database,
            request.collection,
            build_distinct_pipeline(request.field, filter_),
        )
        values = [doc.get("_id") for doc in result.documents if doc.get("_id") is not None]
        return format_response({"field": request.field, "values": values, "count": len(values)})

    @handle_tool_errors
    async def group_by(
        self, request: GroupByRequest, credentials: TenantCredentials
    ) -> ToolResponse:
        """Group by a field and compute count/sum/avg/min/max per group."""
        filter_ = parse_json_object(request.filter, "filter", default={})
        aggregations = parse_json_object(
            request.aggregations, "aggregations", default=DEFAULT_GROUP_AGGREGATIONS
        )

        pipeline = build_group_by_pipeline(request.group_by, filter_, aggregations)
        logger.debug(f"group_by pipeline: {pipeline}")

        client = self.create_client(credentials)
        result = await client.aggregate(request.database, request.collection, pipeline)
        results = [rename_group_key(doc, request.group_by) for doc in result.documents]
        return format_response(
            {"groupedBy": request.group_by, "results": results, "count": len(results)}
        )
