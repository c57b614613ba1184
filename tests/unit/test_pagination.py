"""Tests for the cursor cycle in pagination.read_page.

Walks a fake paginated server end to end: every node is seen exactly once,
the stored cursor clears after the last page, and a non-advancing cursor
cannot loop forever.
"""

import pytest
from unittest.mock import AsyncMock

from linear_connect.connectors.exceptions import ConnectorSchemaMismatchError
from linear_connect.connectors.graphql import GraphQLClient
from linear_connect.connectors.pagination import extract_page, next_cursor, read_page
from linear_connect.connectors.query_builder import ListQuery, ParentScope

from conftest import graphql_page


pytestmark = pytest.mark.asyncio


ISSUES = ListQuery(
    name="ListIssues",
    connection="issues",
    selection={"id": True},
    parent=ParentScope("team", "team_id", "teamId"),
)


class MemoryCursorStore:

    def __init__(self, value=None):
        self.value = value
        self.writes = []

    async def get(self):
        return self.value

    async def set(self, value):
        self.value = value
        self.writes.append(value)


def _client():
    return GraphQLClient(endpoint="https://api.linear.app/graphql", auth_value="lin_api_test")


# ---------------------------------------------------------------------------
# extract_page / next_cursor
# ---------------------------------------------------------------------------

class TestExtractPage:

    async def test_extracts_nested_connection(self):
        data = graphql_page("team.issues", [{"id": "1"}], True, "c1")["data"]

        page = extract_page(data, "team.issues")

        assert page["nodes"] == [{"id": "1"}]
        assert page["pageInfo"]["endCursor"] == "c1"

    async def test_missing_connection_raises(self):
        with pytest.raises(ConnectorSchemaMismatchError):
            extract_page({"team": None}, "team.issues")

    async def test_nodes_not_a_list_raises(self):
        with pytest.raises(ConnectorSchemaMismatchError):
            extract_page({"issues": {"nodes": None, "pageInfo": {}}}, "issues")

    async def test_missing_page_info_raises(self):
        with pytest.raises(ConnectorSchemaMismatchError):
            extract_page({"issues": {"nodes": []}}, "issues")


class TestNextCursor:

    async def test_has_next_page(self):
        assert next_cursor({"hasNextPage": True, "endCursor": "c2"}) == "c2"

    async def test_last_page_clears(self):
        assert next_cursor({"hasNextPage": False, "endCursor": "c2"}) is None

    async def test_missing_end_cursor_clears(self):
        assert next_cursor({"hasNextPage": True, "endCursor": None}) is None


# ---------------------------------------------------------------------------
# read_page
# ---------------------------------------------------------------------------

class TestReadPage:

    async def test_walks_all_pages_without_duplicates(self, fake_linear):
        """Three pages then the last: each node once, cursor cleared at the end."""
        fake_linear.queue(graphql_page("team.issues", [{"id": "1"}, {"id": "2"}], True, "c1"))
        fake_linear.queue(graphql_page("team.issues", [{"id": "3"}, {"id": "4"}], True, "c2"))
        fake_linear.queue(graphql_page("team.issues", [{"id": "5"}], False, "c3"))

        store = MemoryCursorStore()
        client = _client()
        seen = []
        resume = False
        for _ in range(10):
            nodes = await read_page(
                client, ISSUES, {"team_id": "T1"}, store, resume=resume, page_size=2
            )
            seen.extend(node["id"] for node in nodes)
            if store.value is None:
                break
            resume = True

        assert seen == ["1", "2", "3", "4", "5"]
        assert store.writes == ["c1", "c2", None]
        assert [call["json"]["variables"].get("after") for call in fake_linear.calls] == [
            None, "c1", "c2",
        ]

    async def test_first_call_ignores_stored_cursor(self, fake_linear):
        fake_linear.queue(graphql_page("team.issues", [{"id": "1"}], False, "c9"))
        store = MemoryCursorStore("stale")

        await read_page(_client(), ISSUES, {"team_id": "T1"}, store, resume=False)

        assert "after" not in fake_linear.last_json["variables"]
        assert store.value is None

    async def test_resume_sends_stored_cursor(self, fake_linear):
        fake_linear.queue(graphql_page("team.issues", [{"id": "2"}], True, "c2"))
        store = MemoryCursorStore("c1")

        await read_page(_client(), ISSUES, {"team_id": "T1"}, store, resume=True)

        assert fake_linear.last_json["variables"]["after"] == "c1"
        assert store.value == "c2"

    async def test_non_advancing_cursor_is_reset(self, fake_linear):
        fake_linear.queue(graphql_page("team.issues", [{"id": "1"}], True, "c1"))
        store = MemoryCursorStore("c1")

        nodes = await read_page(_client(), ISSUES, {"team_id": "T1"}, store, resume=True)

        assert nodes == [{"id": "1"}]
        assert store.value is None

    async def test_uses_configured_page_size(self, fake_linear, monkeypatch):
        monkeypatch.setenv("PAGE_SIZE", "10")
        fake_linear.queue(graphql_page("team.issues", [], False, None))

        await read_page(_client(), ISSUES, {"team_id": "T1"}, MemoryCursorStore())

        assert fake_linear.last_json["variables"]["first"] == 10

    async def test_empty_page(self, fake_linear):
        fake_linear.queue(graphql_page("team.issues", [], False, None))
        store = MemoryCursorStore()

        nodes = await read_page(_client(), ISSUES, {"team_id": "T1"}, store)

        assert nodes == []
        assert store.writes == [None]

    async def test_request_is_built_before_sending(self):
        """A missing parent fails before the client is touched."""
        client = AsyncMock()

        with pytest.raises(Exception, match="Please select the team first"):
            await read_page(client, ISSUES, {}, MemoryCursorStore())

        client.execute.assert_not_awaited()
