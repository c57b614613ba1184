"""Hidden triggers that populate the host's dynamic dropdowns.

Some pickers only make sense once another field is chosen (statuses belong
to a team, milestones to a project). ``DROPDOWN_DEPENDENCIES`` declares
those prerequisites once; ``check_prerequisites`` enforces them before any
request is built.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from .base import Bundle, BundleCursorStore, graphql_client_for
from .exceptions import ConnectorPreconditionError
from .normalize import dig
from .pagination import read_page
from .query_builder import ListQuery, ParentScope, is_present
from .registry import register_operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dependency:
    """Prerequisite input keys and what to do when one is missing.

    ``on_missing`` is ``"halt"`` (precondition error) or ``"empty"``
    (return no choices).
    """

    requires: Tuple[str, ...]
    on_missing: str = "halt"


PREREQUISITE_LABELS = {
    "team_id": "team",
    "project_id": "project",
}

DROPDOWN_DEPENDENCIES: Dict[str, Dependency] = {
    "team": Dependency(()),
    "user": Dependency(()),
    "status": Dependency(("team_id",)),
    "label": Dependency(("team_id",)),
    "project": Dependency(("team_id",)),
    "project_without_team": Dependency(()),
    "estimate": Dependency(("team_id",)),
    "project_milestone": Dependency(("project_id",), on_missing="empty"),
    "initiative": Dependency(()),
    "issue_template": Dependency(()),
    "project_status": Dependency(()),
}


def check_prerequisites(dropdown: str, input_data: Mapping[str, Any]) -> bool:
    """Return True when every prerequisite for ``dropdown`` is set.

    Raises:
        ConnectorPreconditionError: A prerequisite is missing and the
            dependency halts.
    """
    dependency = DROPDOWN_DEPENDENCIES.get(dropdown)
    if dependency is None:
        return True

    for key in dependency.requires:
        if is_present(input_data.get(key)):
            continue
        if dependency.on_missing == "empty":
            logger.debug("Dropdown %s skipped: %s not set", dropdown, key)
            return False
        label = PREREQUISITE_LABELS.get(key, key)
        raise ConnectorPreconditionError(f"Please select the {label} first")
    return True


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

_LIST_TEAMS_QUERY = """
query ListTeams($first: Int!, $after: String) {
  teams(first: $first, after: $after) {
    nodes { id name key archivedAt }
    pageInfo { hasNextPage endCursor }
  }
}
"""

_LIST_USERS_QUERY = """
query ListUsers($first: Int!, $after: String) {
  users(first: $first, after: $after) {
    nodes { id name displayName email active }
    pageInfo { hasNextPage endCursor }
  }
}
"""

_LIST_LABELS_QUERY = """
query ListLabels($first: Int!, $after: String) {
  issueLabels(first: $first, after: $after) {
    nodes { id name archivedAt team { id } }
    pageInfo { hasNextPage endCursor }
  }
}
"""

_TEAM_ESTIMATION_QUERY = """
query TeamEstimation($teamId: String!) {
  team(id: $teamId) {
    issueEstimationAllowZero
    issueEstimationExtended
    issueEstimationType
  }
}
"""

_TEAM_TEMPLATES_QUERY = """
query ListTeamTemplates($teamId: String!, $first: Int!, $after: String) {
  team(id: $teamId) {
    templates(first: $first, after: $after, filter: { type: { eq: "issue" } }) {
      nodes { id name }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""

_WORKSPACE_TEMPLATES_QUERY = """
query ListWorkspaceTemplates($first: Int!, $after: String) {
  organization {
    templates(first: $first, after: $after, filter: { type: { eq: "issue" } }) {
      nodes { id name }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""

_PROJECT_STATUSES_QUERY = """
query ListProjectStatuses {
  organization {
    projectStatuses { id name type }
  }
}
"""

STATUSES = ListQuery(
    name="ListStatuses",
    connection="states",
    selection={"id": True, "name": True, "type": True},
    parent=ParentScope("team", "team_id", "teamId"),
)

PROJECTS = ListQuery(
    name="ListProjects",
    connection="projects",
    selection={"id": True, "name": True, "state": True},
    parent=ParentScope("team", "team_id", "teamId"),
    static_filters=('{ state: { in: ["started", "planned", "paused"] } }',),
)

ALL_PROJECTS = ListQuery(
    name="ListAllProjects",
    connection="projects",
    selection={"id": True, "name": True},
)

PROJECT_MILESTONES = ListQuery(
    name="ListProjectMilestones",
    connection="projectMilestones",
    selection={"id": True, "name": True, "sortOrder": True},
    parent=ParentScope(
        "project", "project_id", "projectId",
        missing_message="Please select the project first",
    ),
)

INITIATIVES = ListQuery(
    name="ListInitiatives",
    connection="initiatives",
    selection={"id": True, "name": True},
)

# Base scale per estimation type, then the two extra values when "extended"
ESTIMATE_SCALES: Dict[str, Tuple[List[Tuple[int, str]], List[Tuple[int, str]]]] = {
    "exponential": (
        [(1, "1 Point"), (2, "2 Points"), (4, "4 Points"), (8, "8 Points"), (16, "16 Points")],
        [(32, "32 Points"), (64, "64 Points")],
    ),
    "fibonacci": (
        [(1, "1 Point"), (2, "2 Points"), (3, "3 Points"), (5, "5 Points"), (8, "8 Points")],
        [(13, "13 Points"), (21, "21 Points")],
    ),
    "linear": (
        [(1, "1 Point"), (2, "2 Points"), (3, "3 Points"), (4, "4 Points"), (5, "5 Points")],
        [(6, "6 Points"), (7, "7 Points")],
    ),
    "tShirt": (
        [(1, "XS"), (2, "S"), (3, "M"), (5, "L"), (8, "XL")],
        [(13, "XXL"), (21, "XXXL")],
    ),
}


def estimate_options(estimation_type: str, allow_zero: bool, extended: bool) -> List[Dict[str, Any]]:
    """Choices for a team's estimation settings. ``notUsed`` yields none."""
    scale = ESTIMATE_SCALES.get(estimation_type)
    if scale is None:
        return []

    base, extra = scale
    options: List[Tuple[int, str]] = []
    if allow_zero:
        options.append((0, "-" if estimation_type == "tShirt" else "0 Points"))
    options.extend(base)
    if extended:
        options.extend(extra)
    return [{"id": value, "label": label} for value, label in options]


# ---------------------------------------------------------------------------
# Hidden triggers
# ---------------------------------------------------------------------------

@register_operation("trigger", "team", noun="Team", label="Get team", hidden=True)
async def list_teams(bundle: Bundle) -> List[Dict[str, Any]]:
    check_prerequisites("team", bundle.input_data)
    client = graphql_client_for(bundle)
    teams = await client.collect_connection(_LIST_TEAMS_QUERY, connection_path="teams")
    return [
        {"id": team["id"], "name": team["name"], "key": team.get("key")}
        for team in teams
        if team.get("archivedAt") is None
    ]


@register_operation("trigger", "user", noun="User", label="Get user", hidden=True)
async def list_users(bundle: Bundle) -> List[Dict[str, Any]]:
    check_prerequisites("user", bundle.input_data)
    client = graphql_client_for(bundle)
    users = await client.collect_connection(_LIST_USERS_QUERY, connection_path="users")
    return [
        {"id": user["id"], "name": f"{user['name']} ({user['displayName']})"}
        for user in users
        if user.get("active")
    ]


@register_operation("trigger", "status", noun="Status", label="Get issue status", hidden=True)
async def list_statuses(bundle: Bundle) -> List[Dict[str, Any]]:
    check_prerequisites("status", bundle.input_data)
    client = graphql_client_for(bundle)
    return await read_page(
        client,
        STATUSES,
        bundle.input_data,
        BundleCursorStore(bundle),
        resume=bundle.meta.page > 0,
        page_size=50,
    )


@register_operation("trigger", "label", noun="Label", label="Get issue label", hidden=True)
async def list_labels(bundle: Bundle) -> List[Dict[str, Any]]:
    """Team labels plus workspace labels (those with no team)."""
    check_prerequisites("label", bundle.input_data)
    team_id = bundle.input_data["team_id"]
    client = graphql_client_for(bundle)
    labels = await client.collect_connection(
        _LIST_LABELS_QUERY, connection_path="issueLabels"
    )
    results = []
    for label in labels:
        if label.get("archivedAt") is not None:
            continue
        team = label.get("team")
        if team is not None and team.get("id") != team_id:
            continue
        results.append({"id": label["id"], "name": label["name"]})
    return results


@register_operation("trigger", "project", noun="Project", label="Get project", hidden=True)
async def list_projects(bundle: Bundle) -> List[Dict[str, Any]]:
    check_prerequisites("project", bundle.input_data)
    client = graphql_client_for(bundle)
    return await read_page(
        client,
        PROJECTS,
        bundle.input_data,
        BundleCursorStore(bundle),
        resume=bundle.meta.page > 0,
        order_by="updatedAt",
        page_size=50,
    )


@register_operation(
    "trigger", "project_without_team", noun="Project", label="Get project", hidden=True,
)
async def list_projects_without_team(bundle: Bundle) -> List[Dict[str, Any]]:
    """Every project in the workspace, for pickers that have no team field."""
    check_prerequisites("project_without_team", bundle.input_data)
    client = graphql_client_for(bundle)
    return await read_page(
        client,
        ALL_PROJECTS,
        bundle.input_data,
        BundleCursorStore(bundle),
        resume=bundle.meta.page > 0,
        order_by="updatedAt",
        page_size=100,
    )


@register_operation(
    "trigger", "project_milestone", noun="Project Milestone",
    label="Get project milestones", hidden=True,
)
async def list_project_milestones(bundle: Bundle) -> List[Dict[str, Any]]:
    if not check_prerequisites("project_milestone", bundle.input_data):
        return []
    client = graphql_client_for(bundle)
    milestones = await read_page(
        client,
        PROJECT_MILESTONES,
        bundle.input_data,
        BundleCursorStore(bundle),
        resume=bundle.meta.page > 0,
        order_by="createdAt",
        page_size=100,
    )
    return sorted(milestones, key=lambda m: m.get("sortOrder") or 0)


@register_operation("trigger", "estimate", noun="Estimate", label="Get issue estimates", hidden=True)
async def list_estimates(bundle: Bundle) -> List[Dict[str, Any]]:
    check_prerequisites("estimate", bundle.input_data)
    client = graphql_client_for(bundle)
    data = await client.execute(
        _TEAM_ESTIMATION_QUERY, {"teamId": bundle.input_data["team_id"]}
    )
    team = dig(data, "team")
    return estimate_options(
        team.get("issueEstimationType") or "notUsed",
        bool(team.get("issueEstimationAllowZero")),
        bool(team.get("issueEstimationExtended")),
    )


@register_operation("trigger", "initiative", noun="Initiative", label="Get initiative", hidden=True)
async def list_initiatives(bundle: Bundle) -> List[Dict[str, Any]]:
    check_prerequisites("initiative", bundle.input_data)
    client = graphql_client_for(bundle)
    return await read_page(
        client,
        INITIATIVES,
        bundle.input_data,
        BundleCursorStore(bundle),
        resume=bundle.meta.page > 0,
        page_size=50,
    )


@register_operation(
    "trigger", "issue_template", noun="Issue Template",
    label="Get issue templates", hidden=True,
)
async def list_issue_templates(bundle: Bundle) -> List[Dict[str, Any]]:
    """Team and workspace issue templates once a team is chosen, else workspace only."""
    check_prerequisites("issue_template", bundle.input_data)
    client = graphql_client_for(bundle)
    team_id = bundle.input_data.get("team_id")
    if is_present(team_id):
        templates = await client.collect_connection(
            _TEAM_TEMPLATES_QUERY, {"teamId": team_id}, connection_path="team.templates"
        )
    else:
        templates = await client.collect_connection(
            _WORKSPACE_TEMPLATES_QUERY, connection_path="organization.templates"
        )
    return [{"id": template["id"], "name": template["name"]} for template in templates]


@register_operation(
    "trigger", "project_status", noun="Project Status",
    label="Get project status", hidden=True,
)
async def list_project_statuses(bundle: Bundle) -> List[Dict[str, Any]]:
    check_prerequisites("project_status", bundle.input_data)
    client = graphql_client_for(bundle)
    data = await client.execute(_PROJECT_STATUSES_QUERY)
    return list(dig(data, "organization.projectStatuses"))
