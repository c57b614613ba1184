"""Shared HTTP client and the single-request transport used by connectors.

One request per logical step: nothing here retries. Redelivery, when it
happens at all, belongs to the host.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Set

import httpx

from ..config import get_settings
from .exceptions import (
    ConnectorAuthExpiredError,
    ConnectorSchemaMismatchError,
    ConnectorTransportError,
)

logger = logging.getLogger(__name__)

# Status codes that mean the credential itself was rejected
AUTH_FAILURE_CODES: Set[int] = {401, 403}

_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the process-wide AsyncClient, creating it on first use."""
    global _client
    if _client is None or _client.is_closed:
        settings = get_settings()
        _client = httpx.AsyncClient(timeout=settings.http_timeout)
        logger.debug("Created shared HTTP client (timeout=%.1fs)", settings.http_timeout)
    return _client


async def close_http_client():
    """Close the shared client. Safe to call when none was created."""
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
    _client = None


def auth_header_value(auth_data: Mapping[str, Any]) -> str:
    """Build the Authorization header value from host credentials.

    API keys are sent raw; OAuth access tokens get a ``Bearer`` prefix.
    """
    api_key = auth_data.get("api_key")
    if api_key:
        return str(api_key)
    access_token = auth_data.get("access_token")
    if access_token:
        return f"Bearer {access_token}"
    raise ConnectorAuthExpiredError("Linear credentials are missing")


async def send_request(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    json: Optional[Dict[str, Any]] = None,
) -> httpx.Response:
    """Issue one HTTP request and map failures to connector exceptions.

    Raises:
        ConnectorAuthExpiredError: On 401/403.
        ConnectorTransportError: On any other non-2xx status, a timeout or
            a connection failure.
    """
    client = get_http_client()
    try:
        response = await client.request(method, url, headers=headers, json=json)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        if status in AUTH_FAILURE_CODES:
            raise ConnectorAuthExpiredError(
                f"Authentication failed: HTTP {status}"
            ) from exc
        raise ConnectorTransportError(
            f"Request failed: HTTP {status}",
            status_code=status,
            response_body=exc.response.text[:500],
        ) from exc
    except httpx.TimeoutException as exc:
        raise ConnectorTransportError(
            f"Request timed out: {method} {url}"
        ) from exc
    except httpx.TransportError as exc:
        raise ConnectorTransportError(
            f"Request failed: {type(exc).__name__}"
        ) from exc

    return response


def read_json(response: httpx.Response) -> Any:
    """Decode a response body, treating non-JSON as a schema mismatch."""
    try:
        return response.json()
    except ValueError as exc:
        raise ConnectorSchemaMismatchError(
            "Linear returned a non-JSON response"
        ) from exc
