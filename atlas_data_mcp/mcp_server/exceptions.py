"""Exception hierarchy for the Atlas Data API MCP server.

All errors raised by this package inherit from ``AtlasMCPError`` so a tool
boundary can catch them with a single clause and still tell the failure
modes apart:

- ``MongoDbApiError``: the Data API answered with a non-2xx status
    - ``AuthenticationError``: 401/403, or credentials missing before the call
    - ``RateLimitError``: 429, carries the retry-after duration
- ``DataApiConnectionError``: no HTTP response at all (DNS, connect, timeout)
- ``ToolArgumentError``: a tool argument is malformed or has the wrong shape
- ``ConfigurationError``: invalid process settings at startup

Every exception carries structured metadata (``error_code``, ``details``,
``timestamp``, ``request_id``) and exposes ``retryable`` as a hint to the
caller. Nothing in this package retries on its own.

Usage Example:
--------------
```python
try:
    result = await client.find("shop", "orders", {"status": "open"})
except RateLimitError as e:
    await asyncio.sleep(e.retry_after)
except MongoDbApiError as e:
    logger.error(f"Data API rejected the call: {e.status_code} {e.message}")
```
"""

import json
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import httpx
from pydantic import ValidationError as PydanticValidationError

DEFAULT_RETRY_AFTER_SECONDS = 60

# =============================================================================
# BASE EXCEPTION CLASS
# =============================================================================


@dataclass(frozen=True)
class AtlasMCPError(Exception):
    """Base exception for all Atlas Data API MCP errors.

    Attributes:
    -----------
    message : str
        Human-readable error description, shown to the tool caller
    error_code : str
        Machine-readable error identifier (e.g., "RATE_LIMIT_EXCEEDED")
    details : dict
        Additional context about the error (database, collection, action)
    timestamp : str
        ISO 8601 timestamp when the error occurred
    request_id : str
        Unique identifier for this failure, useful for correlating logs
    http_status_code : int
        Status code this error maps to when surfaced over HTTP
    original_exception : Optional[Exception]
        The underlying exception that caused this error
    """

    message: str
    error_code: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = field(default_factory=lambda: str(uuid4()))
    http_status_code: int = 500
    original_exception: Exception | None = None

    @property
    def retryable(self) -> bool:
        """Whether reissuing the same call may succeed."""
        return False

    def __str__(self) -> str:
        """Human-readable error representation for logs."""
        error_msg = f"[{self.error_code}] {self.message}"
        if self.details:
            error_msg += f" | Details: {self.details}"
        if self.original_exception:
            error_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: {self.original_exception}"
            )
        return error_msg

    def __repr__(self) -> str:
        """Developer-friendly representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"error_code='{self.error_code}', "
            f"message='{self.message}', "
            f"request_id='{self.request_id}', "
            f"timestamp='{self.timestamp}'"
            f")"
        )

    def to_details(self) -> dict[str, Any]:
        """Stable diagnostic payload placed in the failure envelope.

        Returns:
        --------
        dict with keys kind, code, message and retryable. Subclasses add
        statusCode / retryAfter where they apply.
        """
        return {
            "kind": type(self).__name__,
            "code": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging and HTTP responses.

        Example:
        --------
        >>> error = ToolArgumentError(message="filter is not valid JSON")
        >>> error.to_dict()["error_code"]
        'INVALID_ARGUMENT'
        """
        error_dict = {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp,
            "request_id": self.request_id,
            "http_status_code": self.http_status_code,
        }

        if self.original_exception:
            error_dict["original_error"] = {
                "type": type(self.original_exception).__name__,
                "message": str(self.original_exception),
                "traceback": traceback.format_exception(
                    type(self.original_exception),
                    self.original_exception,
                    self.original_exception.__traceback__,
                ),
            }

        return error_dict


# =============================================================================
# DATA API EXCEPTIONS
# =============================================================================
# The Data API reports every failure as an HTTP status. The status picks the
# exception class; the class decides whether the failure is worth retrying.


@dataclass(frozen=True)
class MongoDbApiError(AtlasMCPError):
    """The Data API returned a non-2xx response.

    The message comes from the response body's ``error`` or ``message`` field
    when the body is a JSON object, otherwise ``"MongoDB API error: {status}"``.

    Example:
    --------
    >>> raise MongoDbApiError(
    ...     message="no matching collection",
    ...     status_code=404,
    ...     details={"action": "find", "collection": "orders"}
    ... )
    """

    error_code: str = "MONGODB_API_ERROR"
    status_code: int = 500
    http_status_code: int = 502

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500

    def to_details(self) -> dict[str, Any]:
        details = super().to_details()
        # 0 marks a rejection made before any HTTP call
        if self.status_code:
            details["statusCode"] = self.status_code
        return details


@dataclass(frozen=True)
class AuthenticationError(MongoDbApiError):
    """Credentials are missing or were rejected by the Data API.

    Use Case:
    ---------
    - A mandatory tenant credential was not supplied with the request
    - The Data API answered 401 or 403

    Never retryable: the same credentials will be rejected again.
    """

    error_code: str = "AUTHENTICATION_FAILED"
    status_code: int = 401
    http_status_code: int = 401

    @property
    def retryable(self) -> bool:
        return False


@dataclass(frozen=True)
class RateLimitError(MongoDbApiError):
    """The Data API answered 429.

    ``retry_after`` is parsed from the ``Retry-After`` header and defaults to
    60 seconds. A caller should wait at least that long before reissuing the
    whole tool call.
    """

    error_code: str = "RATE_LIMIT_EXCEEDED"
    status_code: int = 429
    http_status_code: int = 429
    retry_after: int = DEFAULT_RETRY_AFTER_SECONDS

    @property
    def retryable(self) -> bool:
        return True

    def to_details(self) -> dict[str, Any]:
        details = super().to_details()
        details["retryAfter"] = self.retry_after
        return details


@dataclass(frozen=True)
class DataApiConnectionError(AtlasMCPError):
    """No HTTP response was received from the Data API.

    Use Case:
    ---------
    - DNS resolution failure for a custom base URL
    - Connection refused or reset
    - Transport timeout
    """

    error_code: str = "DATA_API_UNREACHABLE"
    http_status_code: int = 503

    @property
    def retryable(self) -> bool:
        return True


# =============================================================================
# VALIDATION EXCEPTIONS
# =============================================================================


@dataclass(frozen=True)
class ToolArgumentError(AtlasMCPError):
    """A tool argument could not be decoded or has the wrong structure.

    Use Case:
    ---------
    - ``filter`` is not valid JSON
    - ``documents`` decodes to an object instead of an array
    - ``limit`` is outside the configured page-size bounds

    Example:
    --------
    >>> raise ToolArgumentError(
    ...     message="Documents must be an array",
    ...     details={"argument": "documents"}
    ... )
    """

    error_code: str = "INVALID_ARGUMENT"
    http_status_code: int = 400


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================


@dataclass(frozen=True)
class ConfigurationError(AtlasMCPError):
    """Configuration or initialization errors.

    These should stop the server at startup rather than being handled.
    """

    error_code: str = "CONFIGURATION_ERROR"
    http_status_code: int = 500


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def convert_to_atlas_error(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    context: dict[str, Any] | None = None,
) -> AtlasMCPError:
    """Convert any exception to the matching exception of this package.

    Used at the tool boundary so every failure envelope carries the same
    structured details.

    Args:
    -----
    exception : Exception
        The original exception to convert
    default_message : str
        Prefix used when the exception type is unknown
    context : dict, optional
        Additional context to include in error details

    Returns:
    --------
    AtlasMCPError or subclass
    """
    context = context or {}

    if isinstance(exception, AtlasMCPError):
        return exception

    # Check before ValueError-style handling: JSONDecodeError subclasses ValueError
    if isinstance(exception, json.JSONDecodeError):
        return ToolArgumentError(
            message=f"Invalid JSON: {exception.msg} (line {exception.lineno} column {exception.colno})",
            details={**context},
            original_exception=exception,
        )

    if isinstance(exception, PydanticValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'value'}: {error['msg']}"
            for error in exception.errors()
        )
        return ToolArgumentError(
            message=f"Invalid arguments: {problems}",
            details={**context},
            original_exception=exception,
        )

    if isinstance(exception, httpx.HTTPError):
        return DataApiConnectionError(
            message=f"Could not reach the MongoDB Data API: {exception}",
            details={**context, "error_type": type(exception).__name__},
            original_exception=exception,
        )

    return AtlasMCPError(
        message=f"{default_message}: {exception}",
        error_code="INTERNAL_ERROR",
        details={**context, "error_type": type(exception).__name__},
        original_exception=exception,
    )
