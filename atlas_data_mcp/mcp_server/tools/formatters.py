"""Response formatting for Atlas Data API tools.

Every tool answers with the same envelope:

    {"content": [{"type": "text", "text": <JSON payload>}], "isError": true?}

Success payloads are pretty-printed JSON. Failure payloads carry an ``error``
string and a ``details`` object with a fixed schema (kind, code, message,
retryable, plus statusCode / retryAfter where they apply).
"""

import json
import logging
from typing import Any

from atlas_data_mcp.config.settings import settings

from ..exceptions import convert_to_atlas_error
from .models import TextContent, ToolResponse

logger = logging.getLogger(__name__)

# Payload keys holding lists that may be trimmed to respect the character limit
TRUNCATABLE_KEYS = ("documents", "results", "values")


def serialize_result(data: Any) -> str:
    """Serialize a payload to indented JSON.

    Raises:
        TypeError: If data contains non-serializable types
    """
    try:
        return json.dumps(data, indent=2, ensure_ascii=False)
    except TypeError as e:
        logger.error(f"Failed to serialize tool result: {e}")
        raise


def truncate_payload(payload: dict[str, Any], character_limit: int | None = None) -> dict[str, Any]:
    """Trim list payloads from the end until the serialized text fits.

    Only the first list found under ``documents``, ``results`` or ``values``
    is trimmed. The other keys (including ``count``) are left as returned by
    the API so the caller can tell how much was dropped.

    Args:
        payload: Success payload
        character_limit: Maximum serialized length (default: settings.character_limit)

    Returns:
        The payload unchanged when it fits, otherwise a trimmed copy with
        ``truncated`` and ``truncationMessage`` added
    """
    limit = character_limit if character_limit is not None else settings.character_limit
    if len(serialize_result(payload)) <= limit:
        return payload

    key = next(
        (name for name in TRUNCATABLE_KEYS if isinstance(payload.get(name), list)),
        None,
    )
    if key is None:
        return payload

    items = payload[key]
    total = len(items)

    def keep(count: int) -> dict[str, Any]:
        trimmed = dict(payload)
        trimmed[key] = items[:count]
        trimmed["truncated"] = True
        trimmed["truncationMessage"] = (
            f"Response truncated to {count} of {total} {key} to stay under "
            f"{limit} characters. Use limit/skip or a narrower filter to page through results."
        )
        return trimmed

    # Serialized length grows with the kept count, so search for the largest fit
    low, high = 0, total - 1
    while low < high:
        middle = (low + high + 1) // 2
        if len(serialize_result(keep(middle))) <= limit:
            low = middle
        else:
            high = middle - 1

    kept = low
    trimmed = keep(kept)
    logger.info(f"Truncated {key} from {total} to {kept} items")
    return trimmed


def format_response(data: Any) -> ToolResponse:
    """Format a successful response."""
    if isinstance(data, dict):
        data = truncate_payload(data)
    return ToolResponse(content=[TextContent(text=serialize_result(data))])


def format_error(error: Exception) -> ToolResponse:
    """Format an error response.

    The ``error`` string is ``"Error: <message>"`` with ``" (retryable)"``
    appended when the error is marked retryable.
    """
    atlas_error = convert_to_atlas_error(error)

    message = f"Error: {atlas_error.message}"
    if atlas_error.retryable:
        message += " (retryable)"

    payload = {"error": message, "details": atlas_error.to_details()}
    return ToolResponse(
        content=[TextContent(text=serialize_result(payload))],
        is_error=True,
    )


def format_documents(documents: list[Any]) -> ToolResponse:
    """Format a document list for display."""
    return format_response({"documents": documents, "count": len(documents)})


def format_operation_result(message: str, result: dict[str, Any]) -> ToolResponse:
    """Format an insert, update or delete result."""
    return format_response({"success": True, "message": message, **result})
