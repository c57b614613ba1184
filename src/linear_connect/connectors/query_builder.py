"""Parameterized GraphQL list-query builder.

A ``ListQuery`` describes one Relay connection (its selection, the optional
filters a caller may set, and an optional parent scope such as
``team(id: $teamId)``). ``ListQuery.build`` turns a mapping of input values
into query text plus variables. Input values only ever travel as variables;
the query text is assembled from declarations alone.

Example::

    ISSUES = ListQuery(
        name="ListIssues",
        connection="issues",
        selection={"id": True, "title": True},
        filters=(FilterField("status_id", "statusId", "ID", ("state", "id")),),
        parent=ParentScope("team", "team_id", "teamId"),
    )
    request = ISSUES.build({"team_id": "T1"}, order_by="createdAt")
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from .exceptions import ConnectorPreconditionError

ORDER_BY_FIELDS = ("createdAt", "updatedAt")

PAGE_INFO_SELECTION = {"hasNextPage": True, "endCursor": True}


class GraphQLRequest(BaseModel):
    """Query text and variables ready to POST."""

    query: str
    variables: Dict[str, Any] = {}


def is_present(value: Any) -> bool:
    """Whether a filter value counts as set. ``0`` and ``False`` do."""
    return value is not None and value != "" and value != []


@dataclass(frozen=True)
class FilterField:
    """One optional filter: input key -> typed variable -> filter clause.

    ``path`` is the nested filter location, e.g. ``("issue", "team", "id")``
    renders ``{ issue: { team: { id: { eq: $teamId } } } }``.
    """

    input_key: str
    variable: str
    graphql_type: str
    path: Tuple[str, ...]
    comparator: str = "eq"
    coerce: Optional[Callable[[Any], Any]] = None

    def clause(self) -> str:
        inner = f"{{ {self.comparator}: ${self.variable} }}"
        for key in reversed(self.path):
            inner = f"{{ {key}: {inner} }}"
        return inner

    def value_from(self, values: Mapping[str, Any]) -> Any:
        value = values.get(self.input_key)
        if self.coerce is not None and is_present(value):
            value = self.coerce(value)
        return value


@dataclass(frozen=True)
class ParentScope:
    """Root field the connection hangs off, selected by a required id."""

    field: str
    input_key: str
    variable: str
    graphql_type: str = "String!"
    argument: str = "id"
    missing_message: str = "Please select the team first"


@dataclass(frozen=True)
class ListQuery:
    name: str
    connection: str
    selection: Dict[str, Any]
    filters: Tuple[FilterField, ...] = ()
    parent: Optional[ParentScope] = None
    # Constant clauses with no caller input, e.g. '{ issue: { null: false } }'
    static_filters: Tuple[str, ...] = ()

    @property
    def connection_path(self) -> str:
        if self.parent:
            return f"{self.parent.field}.{self.connection}"
        return self.connection

    def build(
        self,
        values: Mapping[str, Any],
        order_by: Optional[str] = None,
        after: Optional[str] = None,
        page_size: int = 25,
    ) -> GraphQLRequest:
        """Render the query for the given input values.

        Raises:
            ConnectorPreconditionError: Parent id missing or bad ``order_by``.
        """
        declarations: List[str] = ["$first: Int!", "$after: String"]
        variables: Dict[str, Any] = {"first": page_size}
        if after:
            variables["after"] = after

        if order_by is not None:
            if order_by not in ORDER_BY_FIELDS:
                raise ConnectorPreconditionError(
                    f"Cannot order by '{order_by}', expected one of {', '.join(ORDER_BY_FIELDS)}"
                )
            declarations.append("$orderBy: PaginationOrderBy")
            variables["orderBy"] = order_by

        if self.parent:
            parent_value = values.get(self.parent.input_key)
            if not is_present(parent_value):
                raise ConnectorPreconditionError(self.parent.missing_message)
            declarations.append(f"${self.parent.variable}: {self.parent.graphql_type}")
            variables[self.parent.variable] = parent_value

        clauses: List[str] = list(self.static_filters)
        for filter_field in self.filters:
            value = filter_field.value_from(values)
            if not is_present(value):
                continue
            declarations.append(f"${filter_field.variable}: {filter_field.graphql_type}")
            variables[filter_field.variable] = value
            clauses.append(filter_field.clause())

        args = ["first: $first", "after: $after"]
        if order_by is not None:
            args.append("orderBy: $orderBy")
        if clauses:
            args.append(f"filter: {{ and: [{', '.join(clauses)}] }}")

        selection = dict(self.selection)
        body = (
            f"{self.connection}({', '.join(args)}) "
            f"{{ nodes {render_selection(selection)} pageInfo {render_selection(PAGE_INFO_SELECTION)} }}"
        )
        if self.parent:
            body = (
                f"{self.parent.field}({self.parent.argument}: ${self.parent.variable}) "
                f"{{ {body} }}"
            )

        query = f"query {self.name}({', '.join(declarations)}) {{ {body} }}"
        return GraphQLRequest(query=query, variables=variables)


def render_selection(selection: Mapping[str, Any]) -> str:
    """Render ``{"id": True, "team": {"id": True}}`` as ``{ id team { id } }``."""
    parts: List[str] = []
    for key, value in selection.items():
        if value is True:
            parts.append(key)
        elif isinstance(value, Mapping):
            parts.append(f"{key} {render_selection(value)}")
    return "{ " + " ".join(parts) + " }"


def omit_absent(values: Mapping[str, Any], keys: Sequence[str]) -> Dict[str, Any]:
    """Keep only the listed keys whose values are present."""
    return {key: values[key] for key in keys if is_present(values.get(key))}
