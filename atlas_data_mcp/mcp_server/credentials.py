"""Per-request tenant credentials.

One server process serves many tenants. Each request names the Atlas App,
cluster and API key it targets; nothing identifying a tenant is kept once the
request finishes.

Over the HTTP transports the credentials come from request headers:

- ``X-MongoDB-API-Key``: Data API key (required)
- ``X-MongoDB-App-ID``: Atlas App ID (required)
- ``X-MongoDB-Data-Source``: cluster name, e.g. ``Cluster0`` (required)
- ``X-MongoDB-Base-URL``: override of the derived Data API base URL (optional)

Any header that is absent falls back to the matching process setting, which
is how stdio deployments configure their single tenant.
"""

import logging

from fastmcp.server.dependencies import get_http_headers
from pydantic import BaseModel, ConfigDict, Field

from atlas_data_mcp.config.settings import settings

from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-MongoDB-API-Key"
APP_ID_HEADER = "X-MongoDB-App-ID"
DATA_SOURCE_HEADER = "X-MongoDB-Data-Source"
BASE_URL_HEADER = "X-MongoDB-Base-URL"

REQUIRED_HEADERS = [API_KEY_HEADER, APP_ID_HEADER, DATA_SOURCE_HEADER]


class TenantCredentials(BaseModel):
    """Credentials identifying which Atlas App, cluster and key a call targets."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = Field(None, description="MongoDB Atlas Data API key")
    app_id: str | None = Field(None, description="MongoDB Atlas App ID")
    data_source: str | None = Field(None, description="Cluster name within the App")
    base_url: str | None = Field(None, description="Override for the Data API base URL")

    def validate_required(self) -> None:
        """Reject the request unless every mandatory value is present.

        Raises:
            AuthenticationError: Naming the first missing header
        """
        required = [
            (self.api_key, API_KEY_HEADER),
            (self.app_id, APP_ID_HEADER),
            (self.data_source, DATA_SOURCE_HEADER),
        ]
        for value, header in required:
            if not value:
                raise AuthenticationError(
                    message=f"Missing {header} header.",
                    status_code=0,
                    details={"missing": header, "required_headers": REQUIRED_HEADERS},
                )

    def __repr__(self) -> str:
        # Keep API keys out of logs and tracebacks
        masked = f"{self.api_key[:4]}***" if self.api_key else None
        return (
            f"TenantCredentials(api_key={masked!r}, app_id={self.app_id!r}, "
            f"data_source={self.data_source!r}, base_url={self.base_url!r})"
        )

    __str__ = __repr__


def parse_tenant_credentials(headers: dict[str, str]) -> TenantCredentials:
    """Build credentials from request headers (lookup is case-insensitive).

    Empty header values count as absent.
    """
    lowered = {key.lower(): value for key, value in headers.items()}
    return TenantCredentials(
        api_key=lowered.get(API_KEY_HEADER.lower()) or None,
        app_id=lowered.get(APP_ID_HEADER.lower()) or None,
        data_source=lowered.get(DATA_SOURCE_HEADER.lower()) or None,
        base_url=lowered.get(BASE_URL_HEADER.lower()) or None,
    )


def resolve_tenant_credentials(headers: dict[str, str] | None = None) -> TenantCredentials:
    """Credentials for the current request.

    Header values win; anything missing is filled from settings. When called
    outside an HTTP request (stdio transport) no headers are available and the
    settings supply everything.

    Args:
        headers: Explicit headers, mainly for tests. Defaults to the headers of
            the active HTTP request, if any.

    Returns:
        TenantCredentials, not yet validated
    """
    if headers is None:
        headers = get_http_headers()

    from_headers = parse_tenant_credentials(headers)
    credentials = TenantCredentials(
        api_key=from_headers.api_key or settings.mongodb_data_api_key,
        app_id=from_headers.app_id or settings.mongodb_app_id,
        data_source=from_headers.data_source or settings.mongodb_data_source,
        base_url=from_headers.base_url or settings.mongodb_data_api_base_url,
    )
    logger.debug(f"Resolved tenant credentials: {credentials!r}")
    return credentials
