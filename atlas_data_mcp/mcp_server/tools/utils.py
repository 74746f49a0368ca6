"""Shared utilities for the Atlas Data API tools.

- Error handling decorator that turns any failure into a failure envelope
- Decoding of JSON-string tool arguments into typed structures
- Page-size resolution for find
"""

import json
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from atlas_data_mcp.config.settings import settings

from ..exceptions import ToolArgumentError
from .formatters import format_error

logger = logging.getLogger(__name__)


def handle_tool_errors(func: Callable) -> Callable:
    """Decorator for consistent error handling across tool methods.

    Any exception raised while parsing arguments, building the client or
    calling the Data API is logged and converted into a failure envelope. No
    exception escapes a tool call.

    Example:
        @handle_tool_errors
        async def find(self, request, credentials):
            ...
            return format_response(payload)
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {func.__name__}: {e}")
            return format_error(e)

    return wrapper


def parse_json_argument(
    value: str | None, name: str, default: Any = None, required: bool = False
) -> Any:
    """Decode one JSON-string tool argument.

    Args:
        value: Raw argument; None or an empty string means "not supplied"
        name: Argument name, used in error messages
        default: Returned when an optional argument was not supplied
        required: Reject a missing argument instead of returning ``default``

    Raises:
        ToolArgumentError: If a required argument is missing or the string is
            not valid JSON
    """
    if value is None or value == "":
        if required:
            raise ToolArgumentError(
                message=f"Missing required argument '{name}'",
                details={"argument": name},
            )
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ToolArgumentError(
            message=f"Invalid JSON in '{name}': {e.msg} (line {e.lineno} column {e.colno})",
            details={"argument": name},
            original_exception=e,
        ) from e


def parse_json_object(
    value: str | None,
    name: str,
    default: dict[str, Any] | None = None,
    required: bool = False,
) -> dict[str, Any] | None:
    """Decode a JSON-string argument that must be an object.

    A required argument must decode to an object; ``null`` is rejected too.
    """
    parsed = parse_json_argument(value, name, default, required=required)
    if (required or parsed is not None) and not isinstance(parsed, dict):
        raise ToolArgumentError(
            message=f"'{name}' must be a JSON object",
            details={"argument": name, "received_type": type(parsed).__name__},
        )
    return parsed


def parse_json_array(value: str | None, name: str, message: str | None = None) -> list[Any]:
    """Decode a JSON-string argument that must be an array."""
    parsed = parse_json_argument(value, name)
    if not isinstance(parsed, list):
        raise ToolArgumentError(
            message=message or f"'{name}' must be a JSON array",
            details={"argument": name, "received_type": type(parsed).__name__},
        )
    return parsed


def resolve_limit(limit: int | None) -> int:
    """Default and bound the find limit using the configured page sizes.

    Raises:
        ToolArgumentError: If the limit is outside [1, max_page_size]
    """
    if limit is None:
        return settings.default_page_size
    if not 1 <= limit <= settings.max_page_size:
        raise ToolArgumentError(
            message=f"limit must be between 1 and {settings.max_page_size}, got {limit}",
            details={"argument": "limit", "value": limit},
        )
    return limit
