"""Tests for GraphQLClient (execute, paginate_connection, collect_connection).

Verifies:
- execute() returns the "data" portion of a successful response.
- Variables are included in the request payload only when provided.
- GraphQL-level errors raise the classified connector exception.
- paginate_connection yields each node once and stops on a repeated cursor.

get_http_client is patched at its source module:
  - linear_connect.connectors.http_client.get_http_client
"""

import pytest

from linear_connect.connectors.exceptions import (
    ConnectorAuthExpiredError,
    ConnectorSchemaMismatchError,
    ConnectorTransportError,
    ConnectorValidationError,
)
from linear_connect.connectors.graphql import GraphQLClient

from conftest import graphql_page


pytestmark = pytest.mark.asyncio


def _client():
    return GraphQLClient(
        endpoint="https://api.linear.app/graphql",
        auth_value="lin_api_test",
    )


# ---------------------------------------------------------------------------
# execute
# ---------------------------------------------------------------------------

class TestGraphQLClientExecute:
    """Tests for GraphQLClient.execute()."""

    async def test_execute_success(self, fake_linear):
        """Successful query returns the 'data' portion."""
        fake_linear.queue({"data": {"viewer": {"id": "u1"}}})

        result = await _client().execute("query { viewer { id } }")

        assert result == {"viewer": {"id": "u1"}}
        call = fake_linear.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == "https://api.linear.app/graphql"
        assert call["headers"]["Authorization"] == "lin_api_test"
        assert call["json"] == {"query": "query { viewer { id } }"}

    async def test_execute_with_variables(self, fake_linear):
        """Variables are passed in the request payload."""
        fake_linear.queue({"data": {"issue": {"title": "Bug"}}})

        await _client().execute("query($id: String!) { issue(id: $id) { title } }", {"id": "I1"})

        assert fake_linear.last_json["variables"] == {"id": "I1"}

    async def test_graphql_error_raises_validation(self, fake_linear):
        fake_linear.queue({
            "errors": [{
                "message": "Argument Validation Error",
                "extensions": {"userPresentableMessage": "Title is too long"},
            }]
        })

        with pytest.raises(ConnectorValidationError, match="Title is too long"):
            await _client().execute("mutation { x }")

    async def test_graphql_auth_error_raises_auth_expired(self, fake_linear):
        fake_linear.queue({
            "errors": [{
                "message": "Authentication required",
                "extensions": {"type": "authentication error"},
            }]
        })

        with pytest.raises(ConnectorAuthExpiredError):
            await _client().execute("query { viewer { id } }")

    async def test_http_401_raises_auth_expired(self, fake_linear):
        fake_linear.queue({"errors": []}, status_code=401)

        with pytest.raises(ConnectorAuthExpiredError):
            await _client().execute("query { viewer { id } }")

    async def test_http_500_raises_transport(self, fake_linear):
        fake_linear.queue({"error": "boom"}, status_code=500)

        with pytest.raises(ConnectorTransportError) as exc_info:
            await _client().execute("query { viewer { id } }")

        assert exc_info.value.status_code == 500
        assert len(fake_linear.calls) == 1

    async def test_non_json_body_raises_schema_mismatch(self, fake_linear):
        fake_linear.queue(text="<html>gateway</html>")

        with pytest.raises(ConnectorSchemaMismatchError):
            await _client().execute("query { viewer { id } }")

    async def test_missing_data_raises_schema_mismatch(self, fake_linear):
        fake_linear.queue({"data": None})

        with pytest.raises(ConnectorSchemaMismatchError):
            await _client().execute("query { viewer { id } }")

    async def test_custom_request_function(self):
        """A request callable can be injected in place of the shared client."""
        from conftest import make_response

        calls = []

        async def request(method, url, headers=None, json=None):
            calls.append(json)
            return make_response({"data": {"ok": True}})

        client = GraphQLClient("https://example.test/graphql", "key", request=request)

        assert await client.execute("query { ok }") == {"ok": True}
        assert calls == [{"query": "query { ok }"}]


# ---------------------------------------------------------------------------
# paginate_connection / collect_connection
# ---------------------------------------------------------------------------

_USERS = "query($first: Int!, $after: String) { users(first: $first, after: $after) { nodes { id } pageInfo { hasNextPage endCursor } } }"


class TestPaginateConnection:

    async def test_single_page(self, fake_linear):
        fake_linear.queue(graphql_page("users", [{"id": "1"}, {"id": "2"}], False, None))

        nodes = [n async for n in _client().paginate_connection(_USERS, connection_path="users")]

        assert [n["id"] for n in nodes] == ["1", "2"]
        assert "after" not in fake_linear.last_json["variables"]

    async def test_multiple_pages(self, fake_linear):
        fake_linear.queue(graphql_page("users", [{"id": "1"}], True, "c1"))
        fake_linear.queue(graphql_page("users", [{"id": "2"}], False, None))

        nodes = await _client().collect_connection(_USERS, connection_path="users", page_size=1)

        assert [n["id"] for n in nodes] == ["1", "2"]
        assert fake_linear.calls[1]["json"]["variables"] == {"first": 1, "after": "c1"}

    async def test_duplicate_nodes_skipped(self, fake_linear):
        fake_linear.queue(graphql_page("users", [{"id": "1"}, {"id": "2"}], True, "c1"))
        fake_linear.queue(graphql_page("users", [{"id": "2"}, {"id": "3"}], False, None))

        nodes = await _client().collect_connection(_USERS, connection_path="users")

        assert [n["id"] for n in nodes] == ["1", "2", "3"]

    async def test_repeated_cursor_stops(self, fake_linear):
        fake_linear.queue(graphql_page("users", [{"id": "1"}], True, "c1"))
        fake_linear.queue(graphql_page("users", [{"id": "2"}], True, "c1"))

        nodes = await _client().collect_connection(_USERS, connection_path="users")

        assert [n["id"] for n in nodes] == ["1", "2"]
        assert len(fake_linear.calls) == 2

    async def test_empty_page_stops(self, fake_linear):
        fake_linear.queue(graphql_page("users", [], True, "c1"))

        nodes = await _client().collect_connection(_USERS, connection_path="users")

        assert nodes == []
        assert len(fake_linear.calls) == 1

    async def test_max_pages(self, fake_linear):
        for i in range(3):
            fake_linear.queue(graphql_page("users", [{"id": str(i)}], True, f"c{i}"))

        nodes = [
            n async for n in _client().paginate_connection(
                _USERS, connection_path="users", max_pages=2
            )
        ]

        assert [n["id"] for n in nodes] == ["0", "1"]
        assert len(fake_linear.calls) == 2

    async def test_collect_respects_max_items(self, fake_linear):
        fake_linear.queue(graphql_page("users", [{"id": str(i)} for i in range(5)], True, "c1"))

        nodes = await _client().collect_connection(_USERS, connection_path="users", max_items=3)

        assert len(nodes) == 3
