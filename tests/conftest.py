"""Test configuration and fixtures."""

import json
import os
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

# Set test environment variables BEFORE importing the app
os.environ["ENVIRONMENT"] = "test"

from linear_connect.config import get_settings
from linear_connect.connectors.base import Bundle, BundleMeta


def make_response(json_data: Any = None, status_code: int = 200, text: str = None):
    """Build a mock httpx.Response-like object.

    ``raise_for_status`` raises a real HTTPStatusError for non-2xx codes so
    the transport's status mapping runs unchanged.
    """
    resp = MagicMock()
    resp.status_code = status_code
    if text is not None:
        resp.text = text
        resp.json.side_effect = ValueError("not json")
    else:
        resp.text = json.dumps(json_data)
        resp.json.return_value = json_data

    if status_code >= 400:
        request = httpx.Request("POST", "https://api.linear.app/graphql")
        real = httpx.Response(status_code, text=resp.text, request=request)
        resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}", request=request, response=real
        )
    else:
        resp.raise_for_status = MagicMock()
    return resp


def graphql_page(path: str, nodes: List[Dict[str, Any]], has_next: bool = False, end_cursor=None):
    """``{"data": ...}`` body for a connection at a dot-separated path."""
    connection: Dict[str, Any] = {
        "nodes": nodes,
        "pageInfo": {"hasNextPage": has_next, "endCursor": end_cursor},
    }
    for key in reversed(path.split(".")):
        connection = {key: connection}
    return {"data": connection}


class FakeLinear:
    """Queue of responses served by a patched shared HTTP client.

    ``calls`` records ``(method, url, headers, json)`` per request.
    """

    def __init__(self):
        self.responses: List[Any] = []
        self.calls: List[Dict[str, Any]] = []
        self.client = AsyncMock()
        self.client.request.side_effect = self._request

    def queue(self, json_data: Any = None, status_code: int = 200, text: str = None):
        self.responses.append(make_response(json_data, status_code, text))
        return self

    def queue_error(self, exc: Exception):
        self.responses.append(exc)
        return self

    async def _request(self, method, url, headers=None, json=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "json": json})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def last_json(self) -> Dict[str, Any]:
        return self.calls[-1]["json"]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_linear():
    """Patch the shared HTTP client with a scripted fake."""
    fake = FakeLinear()
    with patch(
        "linear_connect.connectors.http_client.get_http_client",
        return_value=fake.client,
    ):
        yield fake


@pytest.fixture
def bundle() -> Bundle:
    return Bundle(auth_data={"api_key": "lin_api_test"}, input_data={})


@pytest.fixture
def make_bundle():
    def _make(input_data=None, page=0, cursor=None, **kwargs) -> Bundle:
        return Bundle(
            auth_data={"api_key": "lin_api_test"},
            input_data=input_data or {},
            meta=BundleMeta(page=page),
            cursor=cursor,
            **kwargs,
        )
    return _make
