"""Tests for the GraphQL list-query builder.

Verifies:
- Absent filters appear nowhere in the query text or the variables.
- 0 counts as a present filter value; None, "" and [] do not.
- Every variable used in the body is declared in the header.
- Parent scope and ordering are validated before anything is sent.
"""

import pytest

from linear_connect.connectors.exceptions import ConnectorPreconditionError
from linear_connect.connectors.query_builder import (
    FilterField,
    ListQuery,
    ParentScope,
    is_present,
    omit_absent,
    render_selection,
)


ISSUES = ListQuery(
    name="ListIssues",
    connection="issues",
    selection={"id": True, "title": True, "team": {"id": True}},
    filters=(
        FilterField("status_id", "statusId", "ID", ("state", "id")),
        FilterField("priority", "priority", "Float", ("priority",), coerce=float),
        FilterField("label_id", "labelId", "ID", ("labels", "id")),
    ),
    parent=ParentScope("team", "team_id", "teamId"),
)

COMMENTS = ListQuery(
    name="ListComments",
    connection="comments",
    selection={"id": True},
    filters=(FilterField("issue_id", "issueId", "ID", ("issue", "id")),),
    static_filters=("{ issue: { null: false } }",),
)


class TestIsPresent:

    @pytest.mark.parametrize("value", [None, "", []])
    def test_absent_values(self, value):
        assert is_present(value) is False

    @pytest.mark.parametrize("value", [0, False, "x", ["a"], 0.0])
    def test_present_values(self, value):
        assert is_present(value) is True


class TestListQueryBuild:

    def test_only_team_set_has_no_filter(self):
        request = ISSUES.build({"team_id": "T1"}, order_by="createdAt")

        assert "filter" not in request.query
        assert "statusId" not in request.query
        assert "priority" not in request.query
        assert request.variables == {"first": 25, "orderBy": "createdAt", "teamId": "T1"}

    def test_empty_string_filter_is_omitted(self):
        request = ISSUES.build({"team_id": "T1", "status_id": "", "label_id": None})

        assert "statusId" not in request.query
        assert "labelId" not in request.query
        assert "statusId" not in request.variables
        assert "labelId" not in request.variables

    def test_zero_priority_is_included(self):
        request = ISSUES.build({"team_id": "T1", "priority": 0})

        assert "$priority: Float" in request.query
        assert "{ priority: { eq: $priority } }" in request.query
        assert request.variables["priority"] == 0.0

    def test_priority_string_is_coerced(self):
        request = ISSUES.build({"team_id": "T1", "priority": "2"})

        assert request.variables["priority"] == 2.0

    def test_single_filter_clause(self):
        request = ISSUES.build({"team_id": "T1", "status_id": "S1"})

        assert "filter: { and: [{ state: { id: { eq: $statusId } } }] }" in request.query
        assert request.variables["statusId"] == "S1"

    def test_clauses_joined_in_declaration_order(self):
        request = ISSUES.build({"team_id": "T1", "label_id": "L1", "status_id": "S1"})

        assert request.query.index("$statusId }") < request.query.index("$labelId }")

    def test_static_filter_always_present(self):
        request = COMMENTS.build({})

        assert "filter: { and: [{ issue: { null: false } }] }" in request.query
        assert "issueId" not in request.variables

    def test_static_and_dynamic_filters_combined(self):
        request = COMMENTS.build({"issue_id": "I1"})

        assert (
            "filter: { and: [{ issue: { null: false } }, { issue: { id: { eq: $issueId } } }] }"
            in request.query
        )

    def test_after_only_sent_when_set(self):
        first = ISSUES.build({"team_id": "T1"})
        second = ISSUES.build({"team_id": "T1"}, after="c1")

        assert "after" not in first.variables
        assert second.variables["after"] == "c1"
        assert "$after: String" in first.query

    def test_order_by_declared_only_when_requested(self):
        unordered = ISSUES.build({"team_id": "T1"})
        ordered = ISSUES.build({"team_id": "T1"}, order_by="updatedAt")

        assert "orderBy" not in unordered.query
        assert "$orderBy: PaginationOrderBy" in ordered.query
        assert "orderBy: $orderBy" in ordered.query

    def test_invalid_order_by_raises(self):
        with pytest.raises(ConnectorPreconditionError):
            ISSUES.build({"team_id": "T1"}, order_by="priority")

    def test_missing_parent_raises(self):
        with pytest.raises(ConnectorPreconditionError, match="Please select the team first"):
            ISSUES.build({"status_id": "S1"})

    def test_parent_scope_wraps_connection(self):
        request = ISSUES.build({"team_id": "T1"})

        assert "team(id: $teamId) { issues(" in request.query
        assert ISSUES.connection_path == "team.issues"
        assert COMMENTS.connection_path == "comments"

    def test_page_size(self):
        request = ISSUES.build({"team_id": "T1"}, page_size=50)

        assert request.variables["first"] == 50

    def test_declared_variables_cover_every_variable(self):
        request = ISSUES.build(
            {"team_id": "T1", "status_id": "S1", "priority": 0, "label_id": "L1"},
            order_by="createdAt",
            after="c1",
        )
        header, body = request.query.split("{", 1)

        for name in request.variables:
            assert f"${name}:" in header
            assert f"${name}" in body

    def test_values_never_interpolated(self):
        request = ISSUES.build({"team_id": "T1", "status_id": '"} injected {'})

        assert "injected" not in request.query


class TestHelpers:

    def test_render_selection_nested(self):
        assert render_selection({"id": True, "team": {"id": True, "name": True}}) == (
            "{ id team { id name } }"
        )

    def test_render_selection_skips_false(self):
        assert render_selection({"id": True, "secret": False}) == "{ id }"

    def test_omit_absent(self):
        values = {"a": 0, "b": "", "c": None, "d": "x", "e": []}

        assert omit_absent(values, ["a", "b", "c", "d", "e", "f"]) == {"a": 0, "d": "x"}
