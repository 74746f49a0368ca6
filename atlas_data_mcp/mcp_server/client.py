"""HTTP client for the MongoDB Atlas Data API.

Each logical database operation is exactly one authenticated ``POST`` to
``{base_url}/action/{action}``. The client is built per request from the
tenant's credentials and holds no connection state between calls: every
method opens an ``httpx.AsyncClient``, sends one request and closes it.

API Reference: https://www.mongodb.com/docs/atlas/app-services/data-api/

Status mapping:
    429          -> RateLimitError (Retry-After header, default 60 seconds)
    401, 403     -> AuthenticationError
    other non-2xx -> MongoDbApiError with the body's ``error``/``message``
    2xx          -> body validated into the action's result model

Example:
    >>> credentials = TenantCredentials(api_key="...", app_id="data-abcde", data_source="Cluster0")
    >>> client = create_data_api_client(credentials)
    >>> result = await client.find("shop", "orders", {"status": "open"}, limit=5)
    >>> len(result.documents)
"""

import logging
import re
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from atlas_data_mcp.config.settings import settings

from .credentials import TenantCredentials
from .exceptions import (
    DEFAULT_RETRY_AFTER_SECONDS,
    AuthenticationError,
    DataApiConnectionError,
    MongoDbApiError,
    RateLimitError,
)
from .models import (
    AggregateResult,
    AggregationStage,
    ConnectionStatus,
    DataApiAction,
    DataApiResult,
    DeleteResult,
    FindOneResult,
    FindResult,
    InsertManyResult,
    InsertOneResult,
    MongoDocument,
    MongoFilter,
    MongoProjection,
    MongoSort,
    MongoUpdate,
    UpdateResult,
)

logger = logging.getLogger(__name__)

AUTHENTICATION_FAILED_MESSAGE = "Authentication failed. Check your API key and App ID."

ResultT = TypeVar("ResultT", bound=DataApiResult)

# Leading integer of a Retry-After value, e.g. "1.5" -> 1
RETRY_AFTER_PATTERN = re.compile(r"^\s*([+-]?\d+)")


def parse_retry_after(value: str | None) -> int:
    """Seconds from a ``Retry-After`` header.

    Only the leading integer counts, so fractional values are truncated.
    Absent or non-numeric values give 60; negative values give 0.
    """
    match = RETRY_AFTER_PATTERN.match(value) if value is not None else None
    if match is None:
        return DEFAULT_RETRY_AFTER_SECONDS
    return max(0, int(match.group(1)))


def extract_error_message(response: httpx.Response) -> str:
    """Best-effort error message from a non-2xx response body."""
    message = f"MongoDB API error: {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return message
    if isinstance(body, dict):
        return body.get("error") or body.get("message") or message
    return message


class AtlasDataApiClient:
    """Typed client for one tenant's Atlas Data API endpoint.

    Attributes:
        credentials: The tenant credentials this client was built from
        base_url: Derived ``{host}/{app_id}/endpoint/data/v1`` or the override
        timeout: Transport timeout in seconds
    """

    def __init__(
        self,
        credentials: TenantCredentials,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
        default_host: str | None = None,
    ):
        """Initialize the client.

        Args:
            credentials: Tenant credentials for this request
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
            timeout: Transport timeout in seconds (default: settings.http_timeout)
            default_host: Host prefix for the derived base URL
                (default: settings.data_api_default_host)
        """
        self.credentials = credentials
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self._transport = transport

        if credentials.base_url:
            self.base_url = credentials.base_url
        else:
            host = (default_host or settings.data_api_default_host).rstrip("/")
            self.base_url = f"{host}/{credentials.app_id}/endpoint/data/v1"

    # ===========================================================================
    # HTTP Request Helper
    # ===========================================================================

    def _get_auth_headers(self) -> dict[str, str]:
        if not self.credentials.api_key:
            raise AuthenticationError(
                message="No API key provided. Include X-MongoDB-API-Key header."
            )

        return {
            "api-key": self.credentials.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self, action: DataApiAction, body: dict[str, Any], result_model: type[ResultT]
    ) -> ResultT:
        """POST one action and map the response.

        Args:
            action: Data API action name
            body: Action fields (database, collection, ...)
            result_model: Model the 2xx body is validated into

        Returns:
            The validated result model

        Raises:
            RateLimitError: On 429
            AuthenticationError: On 401/403 or a missing API key
            MongoDbApiError: On any other non-2xx status
            DataApiConnectionError: When no response was received
        """
        url = f"{self.base_url}/action/{action.value}"
        request_body = {"dataSource": self.credentials.data_source, **body}
        headers = self._get_auth_headers()

        logger.debug(
            f"Data API {action.value} on {body.get('database')}.{body.get('collection')}"
        )

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.timeout
            ) as http_client:
                response = await http_client.post(url, headers=headers, json=request_body)
        except httpx.HTTPError as error:
            logger.warning(f"Data API {action.value} request failed: {error}")
            raise DataApiConnectionError(
                message=f"Could not reach the MongoDB Data API: {error}",
                details={"action": action.value, "url": url},
                original_exception=error,
            ) from error

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitError(
                message="Rate limit exceeded",
                retry_after=retry_after,
                details={"action": action.value},
            )

        if response.status_code in (401, 403):
            raise AuthenticationError(
                message=AUTHENTICATION_FAILED_MESSAGE,
                status_code=response.status_code,
                details={"action": action.value},
            )

        if not response.is_success:
            raise MongoDbApiError(
                message=extract_error_message(response),
                status_code=response.status_code,
                details={"action": action.value},
            )

        try:
            return result_model.model_validate(response.json())
        except (ValueError, ValidationError) as error:
            raise MongoDbApiError(
                message=f"Unexpected response from MongoDB API for {action.value}",
                status_code=response.status_code,
                details={"action": action.value, "error": str(error)},
                original_exception=error,
            ) from error

    # ===========================================================================
    # Connection Test
    # ===========================================================================

    async def test_connection(self) -> ConnectionStatus:
        """Best-effort connectivity probe.

        The Data API has no health endpoint, so any answer other than an
        authentication failure counts as proof of connectivity. A reachable
        but misconfigured backend can still report connected.
        """
        data_source = self.credentials.data_source
        try:
            await self._request(
                DataApiAction.FIND,
                {"database": "admin", "collection": "system.version", "filter": {}, "limit": 1},
                FindResult,
            )
            return ConnectionStatus(
                connected=True,
                message=f"Successfully connected to MongoDB Atlas (dataSource: {data_source})",
            )
        except Exception as first_error:
            logger.debug(f"Connection probe on admin.system.version failed: {first_error}")

        try:
            # A collection that never exists; a 404-style answer still proves reachability
            await self._request(
                DataApiAction.FIND,
                {"database": "test", "collection": "__connection_test__", "filter": {}, "limit": 1},
                FindResult,
            )
            return ConnectionStatus(
                connected=True,
                message=f"Successfully connected to MongoDB Atlas (dataSource: {data_source})",
            )
        except AuthenticationError:
            return ConnectionStatus(connected=False, message=AUTHENTICATION_FAILED_MESSAGE)
        except MongoDbApiError:
            return ConnectionStatus(
                connected=True,
                message=f"Connected to MongoDB Atlas (dataSource: {data_source})",
            )
        except Exception as second_error:
            message = getattr(second_error, "message", None) or str(second_error)
            return ConnectionStatus(connected=False, message=message or "Connection failed")

    # ===========================================================================
    # Find Operations
    # ===========================================================================

    async def find_one(
        self,
        database: str,
        collection: str,
        filter: MongoFilter | None = None,
        projection: MongoProjection | None = None,
    ) -> FindOneResult:
        body: dict[str, Any] = {
            "database": database,
            "collection": collection,
            "filter": filter if filter is not None else {},
        }
        if projection is not None:
            body["projection"] = projection

        return await self._request(DataApiAction.FIND_ONE, body, FindOneResult)

    async def find(
        self,
        database: str,
        collection: str,
        filter: MongoFilter | None = None,
        projection: MongoProjection | None = None,
        sort: MongoSort | None = None,
        limit: int | None = None,
        skip: int | None = None,
    ) -> FindResult:
        """Find documents; optional fields are sent only when given."""
        body: dict[str, Any] = {
            "database": database,
            "collection": collection,
            "filter": filter if filter is not None else {},
        }
        if projection is not None:
            body["projection"] = projection
        if sort is not None:
            body["sort"] = sort
        if limit is not None:
            body["limit"] = limit
        if skip is not None:
            body["skip"] = skip

        return await self._request(DataApiAction.FIND, body, FindResult)

    # ===========================================================================
    # Insert Operations
    # ===========================================================================

    async def insert_one(
        self, database: str, collection: str, document: MongoDocument
    ) -> InsertOneResult:
        return await self._request(
            DataApiAction.INSERT_ONE,
            {"database": database, "collection": collection, "document": document},
            InsertOneResult,
        )

    async def insert_many(
        self, database: str, collection: str, documents: list[MongoDocument]
    ) -> InsertManyResult:
        return await self._request(
            DataApiAction.INSERT_MANY,
            {"database": database, "collection": collection, "documents": documents},
            InsertManyResult,
        )

    # ===========================================================================
    # Update Operations
    # ===========================================================================

    async def update_one(
        self,
        database: str,
        collection: str,
        filter: MongoFilter,
        update: MongoUpdate,
        upsert: bool = False,
    ) -> UpdateResult:
        return await self._request(
            DataApiAction.UPDATE_ONE,
            {
                "database": database,
                "collection": collection,
                "filter": filter,
                "update": update,
                "upsert": upsert,
            },
            UpdateResult,
        )

    async def update_many(
        self,
        database: str,
        collection: str,
        filter: MongoFilter,
        update: MongoUpdate,
        upsert: bool = False,
    ) -> UpdateResult:
        return await self._request(
            DataApiAction.UPDATE_MANY,
            {
                "database": database,
                "collection": collection,
                "filter": filter,
                "update": update,
                "upsert": upsert,
            },
            UpdateResult,
        )

    # ===========================================================================
    # Delete Operations
    # ===========================================================================

    async def delete_one(self, database: str, collection: str, filter: MongoFilter) -> DeleteResult:
        return await self._request(
            DataApiAction.DELETE_ONE,
            {"database": database, "collection": collection, "filter": filter},
            DeleteResult,
        )

    async def delete_many(
        self, database: str, collection: str, filter: MongoFilter
    ) -> DeleteResult:
        return await self._request(
            DataApiAction.DELETE_MANY,
            {"database": database, "collection": collection, "filter": filter},
            DeleteResult,
        )

    # ===========================================================================
    # Aggregation
    # ===========================================================================

    async def aggregate(
        self, database: str, collection: str, pipeline: list[AggregationStage]
    ) -> AggregateResult:
        return await self._request(
            DataApiAction.AGGREGATE,
            {"database": database, "collection": collection, "pipeline": pipeline},
            AggregateResult,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url='{self.base_url}')"


def create_data_api_client(
    credentials: TenantCredentials,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float | None = None,
) -> AtlasDataApiClient:
    """Create a client bound to one request's tenant credentials.

    Called once per tool invocation. Clients are never cached or shared
    between requests so credentials cannot leak from one tenant to another.
    """
    return AtlasDataApiClient(credentials, transport=transport, timeout=timeout)
