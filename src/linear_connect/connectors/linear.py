"""Linear triggers, searches and creates.

All Linear API calls go through GraphQL at the configured endpoint. List
operations are declared as ``ListQuery`` objects and read one page at a time
through ``pagination.read_page``; instant triggers go through
``SubscriptionManager``.

Linear priority values: 0=No priority, 1=Urgent, 2=High, 3=Medium, 4=Low.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from .base import Bundle, BundleCursorStore, graphql_client_for, subscription_manager_for
from .exceptions import ConnectorError, ConnectorPreconditionError, ConnectorValidationError
from .graphql import GraphQLClient
from .normalize import dig, flatten_connections, normalize_polled, normalize_record, unwrap_mutation
from .pagination import read_page
from .query_builder import FilterField, ListQuery, ParentScope, is_present, omit_absent
from .registry import Operation, operation_registry, register_operation
from .webhooks import SubscriptionManager

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Selections (kept together so they are easy to audit)
# ---------------------------------------------------------------------------

_USER_REF = {"id": True, "name": True, "email": True}

ISSUE_SELECTION: Dict[str, Any] = {
    "id": True,
    "identifier": True,
    "url": True,
    "title": True,
    "description": True,
    "priority": True,
    "estimate": True,
    "dueDate": True,
    "slaBreachesAt": True,
    "slaStartedAt": True,
    "createdAt": True,
    "updatedAt": True,
    "team": {"id": True, "name": True, "key": True},
    "project": {"id": True, "name": True},
    "projectMilestone": {"id": True, "name": True},
    "creator": _USER_REF,
    "assignee": _USER_REF,
    "state": {"id": True, "name": True, "type": True},
    "parent": {"id": True, "identifier": True, "url": True, "title": True},
}

COMMENT_SELECTION: Dict[str, Any] = {
    "id": True,
    "body": True,
    "url": True,
    "createdAt": True,
    "resolvedAt": True,
    "issue": {
        "id": True,
        "identifier": True,
        "title": True,
        "url": True,
        "team": {"id": True, "name": True},
    },
    "user": {"id": True, "email": True, "name": True, "avatarUrl": True},
    "parent": {"id": True, "body": True, "createdAt": True},
}

PROJECT_SELECTION: Dict[str, Any] = {
    "id": True,
    "url": True,
    "name": True,
    "description": True,
    "priority": True,
    "createdAt": True,
    "updatedAt": True,
    "startDate": True,
    "targetDate": True,
    "status": {"id": True, "name": True, "type": True},
    "lead": _USER_REF,
    "teams": {"nodes": {"id": True, "name": True}},
    "projectMilestones": {"nodes": {"id": True, "name": True}},
    "initiatives": {"nodes": {"id": True, "name": True}},
}

PROJECT_UPDATE_SELECTION: Dict[str, Any] = {
    "id": True,
    "body": True,
    "url": True,
    "health": True,
    "createdAt": True,
    "updatedAt": True,
    "user": _USER_REF,
    "project": {"id": True, "name": True, "url": True},
}

INITIATIVE_UPDATE_SELECTION: Dict[str, Any] = {
    "id": True,
    "body": True,
    "url": True,
    "health": True,
    "createdAt": True,
    "updatedAt": True,
    "editedAt": True,
    "initiative": {"id": True, "name": True},
    "user": _USER_REF,
}

_COMMENT_AUTHOR = {"id": True, "email": True, "name": True, "avatarUrl": True}

PROJECT_UPDATE_COMMENT_SELECTION: Dict[str, Any] = {
    "id": True,
    "body": True,
    "url": True,
    "createdAt": True,
    "resolvedAt": True,
    "resolvingUser": _COMMENT_AUTHOR,
    "projectUpdate": {
        "id": True,
        "body": True,
        "url": True,
        "user": _COMMENT_AUTHOR,
        "project": {"id": True, "name": True, "url": True},
    },
    "user": _COMMENT_AUTHOR,
    "parent": {"id": True, "body": True, "createdAt": True, "user": _COMMENT_AUTHOR},
}

DOCUMENT_COMMENT_SELECTION: Dict[str, Any] = {
    "id": True,
    "body": True,
    "url": True,
    "createdAt": True,
    "resolvedAt": True,
    "resolvingUser": _COMMENT_AUTHOR,
    "documentContent": {
        "id": True,
        "createdAt": True,
        "updatedAt": True,
        "document": {
            "id": True,
            "title": True,
            "project": {"id": True, "name": True, "url": True},
        },
    },
    "user": _COMMENT_AUTHOR,
    "parent": {"id": True, "body": True, "createdAt": True, "user": _COMMENT_AUTHOR},
}

# ---------------------------------------------------------------------------
# List queries
# ---------------------------------------------------------------------------


def as_priority(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConnectorPreconditionError("Priority must be a number") from exc


ISSUE_FILTERS = (
    FilterField("status_id", "statusId", "ID", ("state", "id")),
    FilterField("creator_id", "creatorId", "ID", ("creator", "id")),
    FilterField("assignee_id", "assigneeId", "ID", ("assignee", "id")),
    FilterField("priority", "priority", "Float", ("priority",), coerce=as_priority),
    FilterField("label_id", "labelId", "ID", ("labels", "id")),
    FilterField("project_id", "projectId", "ID", ("project", "id")),
    FilterField("project_milestone_id", "projectMilestoneId", "ID", ("projectMilestone", "id")),
)

TEAM_ISSUES = ListQuery(
    name="ListTeamIssues",
    connection="issues",
    selection=ISSUE_SELECTION,
    filters=ISSUE_FILTERS,
    parent=ParentScope("team", "team_id", "teamId"),
)

COMMENTS = ListQuery(
    name="ListComments",
    connection="comments",
    selection=COMMENT_SELECTION,
    filters=(
        FilterField("creator_id", "creatorId", "ID", ("user", "id")),
        FilterField("team_id", "teamId", "ID", ("issue", "team", "id")),
        FilterField("issue_id", "issueId", "ID", ("issue", "id")),
    ),
    static_filters=("{ issue: { null: false } }",),
)

PROJECTS = ListQuery(
    name="ListProjects",
    connection="projects",
    selection=PROJECT_SELECTION,
    filters=(
        FilterField("team_id", "teamId", "ID", ("accessibleTeams", "some", "id")),
        FilterField("status_id", "statusId", "ID", ("status", "id")),
        FilterField("lead_id", "leadId", "ID", ("lead", "id")),
        FilterField("initiative_id", "initiativeId", "ID", ("initiatives", "some", "id")),
    ),
)

PROJECT_UPDATES = ListQuery(
    name="ListProjectUpdates",
    connection="projectUpdates",
    selection=PROJECT_UPDATE_SELECTION,
    filters=(
        FilterField("creator_id", "creatorId", "ID", ("user", "id")),
        FilterField("team_id", "teamId", "ID", ("project", "accessibleTeams", "some", "id")),
        FilterField("project_id", "projectId", "ID", ("project", "id")),
    ),
)

INITIATIVE_UPDATES = ListQuery(
    name="ListInitiativeUpdates",
    connection="initiativeUpdates",
    selection=INITIATIVE_UPDATE_SELECTION,
    filters=(
        FilterField("creator_id", "creatorId", "ID", ("user", "id")),
        FilterField("initiative_id", "initiativeId", "ID", ("initiative", "id")),
    ),
)

PROJECT_UPDATE_COMMENTS = ListQuery(
    name="ListProjectUpdateComments",
    connection="comments",
    selection=PROJECT_UPDATE_COMMENT_SELECTION,
    filters=(
        FilterField("creator_id", "creatorId", "ID", ("user", "id")),
        FilterField("project_id", "projectId", "ID", ("projectUpdate", "project", "id")),
    ),
    static_filters=("{ projectUpdate: { null: false } }",),
)

DOCUMENT_COMMENTS = ListQuery(
    name="ListDocumentComments",
    connection="comments",
    selection=DOCUMENT_COMMENT_SELECTION,
    filters=(
        FilterField("creator_id", "creatorId", "ID", ("user", "id")),
        FilterField(
            "project_id", "projectId", "ID", ("documentContent", "document", "project", "id"),
        ),
        FilterField("document_id", "documentId", "ID", ("documentContent", "document", "id")),
    ),
    static_filters=("{ documentContent: { null: false } }",),
)

# ---------------------------------------------------------------------------
# Single queries and mutations
# ---------------------------------------------------------------------------

_GET_ISSUE_QUERY = """
query GetIssue($id: String!) {
  issue(id: $id) {
    id
    identifier
    title
    description
    url
    priority
    priorityLabel
    estimate
    dueDate
    number
    archivedAt
    canceledAt
    completedAt
    startedAt
    createdAt
    updatedAt
    team { id name key }
    state { id name type }
    assignee { id name email displayName }
    creator { id name email displayName }
    project { id name }
    projectMilestone { id name }
    cycle { id name number }
    parent { id identifier url title }
    labels { nodes { id name } }
  }
}
"""

_GET_PROJECT_QUERY = """
query GetProject($id: String!) {
  project(id: $id) {
    id
    name
    url
    description
    content
    health
    progress
    startDate
    targetDate
    createdAt
    updatedAt
    completedAt
    canceledAt
    archivedAt
    status { id name type }
    creator { id name email }
    lead { id name email }
    teams { nodes { id name key } }
    projectMilestones { nodes { id name } }
  }
}
"""

_FIND_PROJECTS_BY_NAME_QUERY = """
query FindProjectsByName($name: String!) {
  projects(first: 1, orderBy: updatedAt, filter: { name: { containsIgnoreCase: $name } }) {
    nodes { id }
  }
}
"""

_ISSUE_ATTACHMENTS_QUERY = """
query IssueAttachments($id: String!) {
  issue(id: $id) {
    id
    attachments {
      nodes { id title subtitle url metadata createdAt }
    }
  }
}
"""

_USERS_BY_EMAIL_QUERY = """
query UsersByEmail($emails: [String!], $first: Int!, $after: String) {
  users(first: $first, after: $after, filter: { email: { in: $emails } }) {
    nodes { id email active }
    pageInfo { hasNextPage endCursor }
  }
}
"""

_CREATE_ISSUE_MUTATION = """
mutation CreateIssue($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    success
    issue { id identifier title url }
  }
}
"""

_UPDATE_ISSUE_MUTATION = """
mutation UpdateIssue($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) {
    success
    issue { id identifier title url }
  }
}
"""

_CREATE_COMMENT_MUTATION = """
mutation CreateComment($input: CommentCreateInput!) {
  commentCreate(input: $input) {
    success
    comment { id body url }
  }
}
"""

_ADD_LABEL_MUTATION = """
mutation AddIssueLabel($issueId: String!, $labelId: String!) {
  issueAddLabel(id: $issueId, labelId: $labelId) {
    success
    issue { id identifier title url }
  }
}
"""

_REMOVE_LABEL_MUTATION = """
mutation RemoveIssueLabel($issueId: String!, $labelId: String!) {
  issueRemoveLabel(id: $issueId, labelId: $labelId) {
    success
    issue { id identifier title url }
  }
}
"""

_TEAM_STATE_BY_NAME_QUERY = """
query TeamStateByName($teamId: String!, $name: String!) {
  team(id: $teamId) {
    states(first: 1, filter: { name: { eqIgnoreCase: $name } }) {
      nodes { id name type }
    }
  }
}
"""

_CREATE_PROJECT_MUTATION = """
mutation CreateProject($input: ProjectCreateInput!) {
  projectCreate(input: $input) {
    success
    project { id name url }
  }
}
"""

PRIORITY_CHOICES = [
    {"value": "0", "label": "No priority"},
    {"value": "1", "label": "Urgent"},
    {"value": "2", "label": "High"},
    {"value": "3", "label": "Medium"},
    {"value": "4", "label": "Low"},
]

# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------


def require_inputs(input_data: Mapping[str, Any], **labels: str):
    """Raise before any request when a required input is missing.

    Keyword names are input keys, values are user-facing field labels.
    """
    for key, label in labels.items():
        if not is_present(input_data.get(key)):
            raise ConnectorPreconditionError(f"You must specify the {label}")


def as_list(value: Any) -> List[str]:
    """Accept a list or a comma-separated string."""
    if not is_present(value):
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(v) for v in value if is_present(v)]


def as_int(value: Any, label: str) -> Optional[int]:
    if not is_present(value):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConnectorPreconditionError(f"{label} must be a whole number") from exc


def shape_project(node: Mapping[str, Any]) -> Dict[str, Any]:
    """Give a polled project the webhook payload's field layout.

    Webhook deliveries already carry ``teamIds``/``milestones`` and pass
    through unchanged.
    """
    record = dict(node)
    if "teams" in record:
        teams = record.pop("teams") or {}
        record["teamIds"] = [team["id"] for team in teams.get("nodes", [])]
    if "projectMilestones" in record:
        milestones = record.pop("projectMilestones") or {}
        record["milestones"] = milestones.get("nodes", [])
    if isinstance(record.get("initiatives"), dict):
        record["initiatives"] = record["initiatives"].get("nodes", [])
    return normalize_record(record)


async def resolve_user_ids(client: GraphQLClient, emails: List[str]) -> Dict[str, str]:
    """Map each email to an active user id. Unknown emails are an input error."""
    if not emails:
        return {}
    users = await client.collect_connection(
        _USERS_BY_EMAIL_QUERY,
        {"emails": emails},
        connection_path="users",
    )
    found = {
        user["email"].lower(): user["id"]
        for user in users
        if user.get("active") and user.get("email")
    }
    missing = [email for email in emails if email.lower() not in found]
    if missing:
        logger.debug("Unresolved emails: %d of %d", len(missing), len(emails))
        raise ConnectorValidationError(
            f"No active Linear user for: {', '.join(missing)}"
        )
    return {email: found[email.lower()] for email in emails}


# ---------------------------------------------------------------------------
# Polling triggers
# ---------------------------------------------------------------------------


async def _poll(
    bundle: Bundle,
    list_query: ListQuery,
    order_by: str,
    remote_id_key: str,
) -> List[Dict[str, Any]]:
    client = graphql_client_for(bundle)
    nodes = await read_page(
        client,
        list_query,
        bundle.input_data,
        BundleCursorStore(bundle),
        resume=bundle.meta.page > 0,
        order_by=order_by,
    )
    return normalize_polled(nodes, order_by, remote_id_key)


ISSUE_INPUT_FIELDS = [
    {"key": "team_id", "label": "Team", "required": True, "dynamic": "team.id.name"},
    {"key": "status_id", "label": "Status", "dynamic": "status.id.name"},
    {"key": "creator_id", "label": "Creator", "dynamic": "user.id.name"},
    {"key": "assignee_id", "label": "Assignee", "dynamic": "user.id.name"},
    {"key": "priority", "label": "Priority", "choices": PRIORITY_CHOICES},
    {"key": "label_id", "label": "Label", "dynamic": "label.id.name"},
    {"key": "project_id", "label": "Project", "dynamic": "project.id.name"},
    {"key": "project_milestone_id", "label": "Project Milestone", "dynamic": "project_milestone.id.name"},
]

COMMENT_INPUT_FIELDS = [
    {"key": "team_id", "label": "Team", "dynamic": "team.id.name"},
    {"key": "creator_id", "label": "Creator", "dynamic": "user.id.name"},
    {"key": "issue_id", "label": "Issue ID"},
]

PROJECT_INPUT_FIELDS = [
    {"key": "team_id", "label": "Team", "dynamic": "team.id.name"},
    {"key": "status_id", "label": "Status", "dynamic": "project_status.id.name"},
    {"key": "lead_id", "label": "Lead", "dynamic": "user.id.name"},
    {"key": "initiative_id", "label": "Initiative", "dynamic": "initiative.id.name"},
]


@register_operation(
    "trigger", "new_issue", noun="Issue", label="New Issue",
    description="Triggers when a new issue is created.",
    input_fields=ISSUE_INPUT_FIELDS,
)
async def new_issues(bundle: Bundle) -> List[Dict[str, Any]]:
    return await _poll(bundle, TEAM_ISSUES, "createdAt", "issueId")


@register_operation(
    "trigger", "updated_issue", noun="Issue", label="Updated Issue",
    description="Triggers when an issue is updated.",
    input_fields=ISSUE_INPUT_FIELDS,
)
async def updated_issues(bundle: Bundle) -> List[Dict[str, Any]]:
    return await _poll(bundle, TEAM_ISSUES, "updatedAt", "issueId")


@register_operation(
    "trigger", "new_comment", noun="Comment", label="New Issue Comment",
    description="Triggers when a new comment is added to an issue.",
    input_fields=COMMENT_INPUT_FIELDS,
)
async def new_comments(bundle: Bundle) -> List[Dict[str, Any]]:
    return await _poll(bundle, COMMENTS, "createdAt", "commentId")


# Zoho Desk syncs tickets into issues titled "#<ticket number> ..."
ZOHO_TICKET_TITLE = re.compile(r"^#\d+")


@register_operation(
    "trigger", "new_comment_with_zoho_desk_ticket_id", noun="Comment",
    label="New Comment With Zoho Desk Ticket ID",
    description="Triggers when a #support comment is added to an issue synced from a Zoho Desk ticket.",
    input_fields=COMMENT_INPUT_FIELDS,
)
async def new_zoho_desk_comments(bundle: Bundle) -> List[Dict[str, Any]]:
    comments = await _poll(bundle, COMMENTS, "createdAt", "commentId")
    return [
        comment for comment in comments
        if ZOHO_TICKET_TITLE.match((comment.get("issue") or {}).get("title") or "")
        and "#support" in (comment.get("body") or "")
    ]


@register_operation(
    "trigger", "new_project", noun="Project", label="New Project",
    description="Triggers when a new project is created.",
    input_fields=PROJECT_INPUT_FIELDS,
)
async def new_projects(bundle: Bundle) -> List[Dict[str, Any]]:
    client = graphql_client_for(bundle)
    nodes = await read_page(
        client,
        PROJECTS,
        bundle.input_data,
        BundleCursorStore(bundle),
        resume=bundle.meta.page > 0,
        order_by="createdAt",
    )
    records = [shape_project(node) for node in nodes]
    return normalize_polled(records, "createdAt", "projectId")


PROJECT_UPDATE_INPUT_FIELDS = [
    {"key": "team_id", "label": "Team", "dynamic": "team.id.name"},
    {"key": "project_id", "label": "Project", "dynamic": "project.id.name"},
    {"key": "creator_id", "label": "Creator", "dynamic": "user.id.name"},
]


@register_operation(
    "trigger", "new_project_update", noun="Project Update", label="New Project Update",
    description="Triggers when a project update is posted.",
    input_fields=PROJECT_UPDATE_INPUT_FIELDS,
)
async def new_project_updates(bundle: Bundle) -> List[Dict[str, Any]]:
    return await _poll(bundle, PROJECT_UPDATES, "createdAt", "projectUpdateId")


@register_operation(
    "trigger", "updated_project_update", noun="Project Update", label="Updated Project Update",
    description="Triggers when a project update is edited.",
    input_fields=PROJECT_UPDATE_INPUT_FIELDS,
)
async def updated_project_updates(bundle: Bundle) -> List[Dict[str, Any]]:
    return await _poll(bundle, PROJECT_UPDATES, "updatedAt", "projectUpdateId")


PROJECT_UPDATE_COMMENT_INPUT_FIELDS = [
    {"key": "creator_id", "label": "Creator", "dynamic": "user.id.name"},
    {"key": "project_id", "label": "Project", "dynamic": "project.id.name"},
]

DOCUMENT_COMMENT_INPUT_FIELDS = [
    {"key": "creator_id", "label": "Creator", "dynamic": "user.id.name"},
    {"key": "project_id", "label": "Project ID"},
    {"key": "document_id", "label": "Document ID"},
]


@register_operation(
    "trigger", "new_project_update_comment", noun="Comment",
    label="New Project Update Comment",
    description="Triggers when a comment is added to a project update.",
    input_fields=PROJECT_UPDATE_COMMENT_INPUT_FIELDS,
)
async def new_project_update_comments(bundle: Bundle) -> List[Dict[str, Any]]:
    return await _poll(bundle, PROJECT_UPDATE_COMMENTS, "createdAt", "commentId")


@register_operation(
    "trigger", "new_document_comment", noun="Comment", label="New Document Comment",
    description="Triggers when a comment is added to a document.",
    input_fields=DOCUMENT_COMMENT_INPUT_FIELDS,
)
async def new_document_comments(bundle: Bundle) -> List[Dict[str, Any]]:
    return await _poll(bundle, DOCUMENT_COMMENTS, "createdAt", "commentId")


# ---------------------------------------------------------------------------
# Instant (webhook) triggers
# ---------------------------------------------------------------------------

# Subscribe-body key per input key, per event family
ISSUE_HOOK_FILTERS = {
    "team_id": "teamId",
    "status_id": "statusId",
    "creator_id": "creatorId",
    "assignee_id": "assigneeId",
    "label_id": "labelId",
    "project_id": "projectId",
    "project_milestone_id": "projectMilestoneId",
    "priority": "priority",
}

COMMENT_HOOK_FILTERS = {
    "creator_id": "creatorId",
    "team_id": "teamId",
    "issue_id": "issueId",
}

PROJECT_HOOK_FILTERS = {
    "team_id": "teamId",
    "status_id": "statusId",
    "lead_id": "leadId",
    "initiative_id": "initiativeId",
}


def hook_filter_config(input_data: Mapping[str, Any], mapping: Mapping[str, str]) -> Dict[str, Any]:
    config = {mapping[key]: value for key, value in omit_absent(input_data, list(mapping)).items()}
    if "priority" in config:
        config["priority"] = as_int(config["priority"], "Priority")
    return config


def register_instant_trigger(
    key: str,
    noun: str,
    label: str,
    description: str,
    event_type: str,
    hook_filters: Mapping[str, str],
    list_query: ListQuery,
    input_fields: List[Dict[str, Any]],
    shape=normalize_record,
    required: Optional[Dict[str, str]] = None,
):
    """Register a webhook-backed trigger.

    ``perform_list`` reads the same records through the polling query so
    samples look exactly like deliveries (bare ids, no composite suffix).
    """

    async def perform_subscribe(bundle: Bundle) -> Dict[str, Any]:
        require_inputs(bundle.input_data, **(required or {}))
        if not bundle.target_url:
            raise ConnectorPreconditionError("Missing webhook target URL")
        manager = subscription_manager_for(bundle)
        handle = await manager.subscribe(
            event_type,
            bundle.target_url,
            hook_filter_config(bundle.input_data, hook_filters),
        )
        return handle.model_dump(by_alias=True)

    async def perform_unsubscribe(bundle: Bundle) -> None:
        if not (bundle.subscribe_data or {}).get("id"):
            logger.info("No subscription to remove for %s", key)
            return
        try:
            manager = subscription_manager_for(bundle)
        except ConnectorError as exc:
            logger.warning("Cannot remove %s subscription: %s", key, exc.message)
            return
        await manager.unsubscribe(bundle.subscribe_data)

    async def perform(bundle: Bundle) -> List[Dict[str, Any]]:
        # The host passes the cleaned delivery body as input_data
        return [shape(record) for record in SubscriptionManager.receive(bundle.input_data)]

    async def perform_list(bundle: Bundle) -> List[Dict[str, Any]]:
        require_inputs(bundle.input_data, **(required or {}))
        client = graphql_client_for(bundle)
        nodes = await read_page(
            client,
            list_query,
            bundle.input_data,
            BundleCursorStore(bundle),
            order_by="createdAt",
        )
        return [shape(node) for node in nodes]

    operation_registry.register(Operation(
        kind="trigger",
        key=key,
        noun=noun,
        label=label,
        description=description,
        instant=True,
        input_fields=input_fields,
        perform=perform,
        perform_subscribe=perform_subscribe,
        perform_unsubscribe=perform_unsubscribe,
        perform_list=perform_list,
    ))


register_instant_trigger(
    "new_issue_instant", "Issue", "New Issue (Instant)",
    "Triggers immediately when a new issue is created.",
    event_type="createIssue",
    hook_filters=ISSUE_HOOK_FILTERS,
    list_query=TEAM_ISSUES,
    input_fields=ISSUE_INPUT_FIELDS,
    required={"team_id": "team"},
)

register_instant_trigger(
    "updated_issue_instant", "Issue", "Updated Issue (Instant)",
    "Triggers immediately when an issue is updated.",
    event_type="updateIssue",
    hook_filters=ISSUE_HOOK_FILTERS,
    list_query=TEAM_ISSUES,
    input_fields=ISSUE_INPUT_FIELDS,
    required={"team_id": "team"},
)

register_instant_trigger(
    "new_comment_instant", "Comment", "New Issue Comment (Instant)",
    "Triggers immediately when a comment is added to an issue.",
    event_type="commentIssue",
    hook_filters=COMMENT_HOOK_FILTERS,
    list_query=COMMENTS,
    input_fields=COMMENT_INPUT_FIELDS,
)

register_instant_trigger(
    "new_project_instant", "Project", "New Project (Instant)",
    "Triggers immediately when a project is created.",
    event_type="createProject",
    hook_filters=PROJECT_HOOK_FILTERS,
    list_query=PROJECTS,
    input_fields=PROJECT_INPUT_FIELDS,
    shape=shape_project,
)

PROJECT_UPDATE_HOOK_FILTERS = {
    "creator_id": "creatorId",
    "project_id": "projectId",
    "team_id": "teamId",
}

register_instant_trigger(
    "new_project_update_instant", "Project Update", "New Project Update (Instant)",
    "Triggers immediately when a new project update is created.",
    event_type="createProjectUpdate",
    hook_filters=PROJECT_UPDATE_HOOK_FILTERS,
    list_query=PROJECT_UPDATES,
    input_fields=PROJECT_UPDATE_INPUT_FIELDS,
)

register_instant_trigger(
    "updated_project_update_instant", "Project Update", "Updated Project Update",
    "Triggers when a project update is edited.",
    event_type="updateProjectUpdate",
    hook_filters=PROJECT_UPDATE_HOOK_FILTERS,
    list_query=PROJECT_UPDATES,
    input_fields=PROJECT_UPDATE_INPUT_FIELDS,
)

INITIATIVE_UPDATE_HOOK_FILTERS = {
    "creator_id": "creatorId",
    "initiative_id": "initiativeId",
}

INITIATIVE_UPDATE_INPUT_FIELDS = [
    {"key": "creator_id", "label": "Creator", "dynamic": "user.id.name"},
    {"key": "initiative_id", "label": "Initiative", "dynamic": "initiative.id.name"},
]

register_instant_trigger(
    "new_initiative_update_instant", "Initiative Update", "New Initiative Update",
    "Triggers when a new initiative update is created.",
    event_type="createInitiativeUpdate",
    hook_filters=INITIATIVE_UPDATE_HOOK_FILTERS,
    list_query=INITIATIVE_UPDATES,
    input_fields=INITIATIVE_UPDATE_INPUT_FIELDS,
)

register_instant_trigger(
    "updated_initiative_update_instant", "Initiative Update", "Updated Initiative Update",
    "Triggers when an initiative update is edited.",
    event_type="updateInitiativeUpdate",
    hook_filters=INITIATIVE_UPDATE_HOOK_FILTERS,
    list_query=INITIATIVE_UPDATES,
    input_fields=INITIATIVE_UPDATE_INPUT_FIELDS,
)

register_instant_trigger(
    "new_project_update_comment_instant", "Comment", "New Project Update Comment (Instant)",
    "Triggers immediately when a comment is added to a project update.",
    event_type="commentProjectUpdate",
    hook_filters={"creator_id": "creatorId", "project_id": "projectId"},
    list_query=PROJECT_UPDATE_COMMENTS,
    input_fields=PROJECT_UPDATE_COMMENT_INPUT_FIELDS,
)

register_instant_trigger(
    "new_document_comment_instant", "Comment", "New Document Comment (Instant)",
    "Triggers immediately when a comment is added to a document.",
    event_type="commentDocument",
    hook_filters={"creator_id": "creatorId", "project_id": "projectId", "document_id": "documentId"},
    list_query=DOCUMENT_COMMENTS,
    input_fields=DOCUMENT_COMMENT_INPUT_FIELDS,
)


# ---------------------------------------------------------------------------
# Searches
# ---------------------------------------------------------------------------


@register_operation(
    "search", "find_issue", noun="Issue", label="Find Issue by ID",
    description="Find an issue by its UUID or identifier (e.g. ENG-123).",
    input_fields=[{"key": "id", "label": "Issue ID", "required": True}],
)
async def find_issue(bundle: Bundle) -> List[Dict[str, Any]]:
    require_inputs(bundle.input_data, id="issue ID")
    client = graphql_client_for(bundle)
    data = await client.execute(_GET_ISSUE_QUERY, {"id": bundle.input_data["id"]})
    issue = normalize_record(dig(data, "issue"))
    return [flatten_connections(issue, "labels")]


@register_operation(
    "search", "find_project", noun="Project", label="Find Project",
    description="Find a project by its ID or by name.",
    input_fields=[
        {"key": "id", "label": "Project ID"},
        {"key": "name", "label": "Project Name"},
    ],
)
async def find_project(bundle: Bundle) -> List[Dict[str, Any]]:
    """Look up by id when given, otherwise the most recently updated name match.

    Returns an empty list when no project matches the name.
    """
    inputs = bundle.input_data
    if not is_present(inputs.get("id")) and not is_present(inputs.get("name")):
        raise ConnectorPreconditionError("You must specify the project ID or name")

    client = graphql_client_for(bundle)
    project_id = inputs.get("id")
    if not is_present(project_id):
        data = await client.execute(
            _FIND_PROJECTS_BY_NAME_QUERY, {"name": str(inputs["name"]).strip()}
        )
        matches = dig(data, "projects").get("nodes") or []
        if not matches:
            return []
        project_id = matches[0]["id"]

    data = await client.execute(_GET_PROJECT_QUERY, {"id": project_id})
    return [shape_project(dig(data, "project"))]


@register_operation(
    "search", "issue_attachments", noun="Attachment", label="Find Issue Attachments",
    description="List the attachments of an issue.",
    input_fields=[{"key": "issue_id", "label": "Issue ID", "required": True}],
)
async def find_issue_attachments(bundle: Bundle) -> List[Dict[str, Any]]:
    require_inputs(bundle.input_data, issue_id="issue ID")
    client = graphql_client_for(bundle)
    data = await client.execute(
        _ISSUE_ATTACHMENTS_QUERY, {"id": bundle.input_data["issue_id"]}
    )
    return [normalize_record(node) for node in dig(data, "issue.attachments.nodes")]


# ---------------------------------------------------------------------------
# Creates
# ---------------------------------------------------------------------------


@register_operation(
    "create", "create_issue", noun="Issue", label="Create Issue",
    description="Create a new issue in Linear.",
    input_fields=[
        {"key": "team_id", "label": "Team", "required": True, "dynamic": "team.id.name"},
        {"key": "title", "label": "Title", "required": True},
        {"key": "description", "label": "Description"},
        {"key": "status_id", "label": "Status", "dynamic": "status.id.name"},
        {"key": "assignee_id", "label": "Assignee", "dynamic": "user.id.name"},
        {"key": "assignee_email", "label": "Assignee Email"},
        {"key": "priority", "label": "Priority", "choices": PRIORITY_CHOICES},
        {"key": "estimate", "label": "Estimate", "dynamic": "estimate.id.label"},
        {"key": "label_ids", "label": "Labels", "dynamic": "label.id.name", "list": True},
        {"key": "project_id", "label": "Project", "dynamic": "project.id.name"},
        {"key": "project_milestone_id", "label": "Project Milestone", "dynamic": "project_milestone.id.name"},
        {"key": "parent_id", "label": "Parent Issue"},
        {"key": "due_date", "label": "Due Date"},
        {"key": "subscriber_emails", "label": "Subscriber Emails", "list": True},
        {"key": "template_id", "label": "Template", "dynamic": "issue_template.id.name"},
    ],
)
async def create_issue(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, team_id="team", title="title")
    if is_present(inputs.get("assignee_id")) and is_present(inputs.get("assignee_email")):
        raise ConnectorPreconditionError(
            "Set either an assignee or an assignee email, not both"
        )
    priority = as_int(inputs.get("priority"), "Priority")
    estimate = as_int(inputs.get("estimate"), "Estimate")

    client = graphql_client_for(bundle)

    # Email lookups run first, one after the other
    assignee_id = inputs.get("assignee_id")
    if is_present(inputs.get("assignee_email")):
        email = str(inputs["assignee_email"]).strip()
        assignee_id = (await resolve_user_ids(client, [email]))[email]
    subscriber_emails = as_list(inputs.get("subscriber_emails"))
    subscriber_ids = list((await resolve_user_ids(client, subscriber_emails)).values())

    issue_input = omit_absent(
        {
            "teamId": inputs["team_id"],
            "title": inputs["title"],
            "description": inputs.get("description"),
            "stateId": inputs.get("status_id"),
            "assigneeId": assignee_id,
            "priority": priority,
            "estimate": estimate,
            "labelIds": as_list(inputs.get("label_ids")),
            "projectId": inputs.get("project_id"),
            "projectMilestoneId": inputs.get("project_milestone_id"),
            "parentId": inputs.get("parent_id"),
            "dueDate": inputs.get("due_date"),
            "subscriberIds": subscriber_ids,
            "templateId": inputs.get("template_id"),
        },
        [
            "teamId", "title", "description", "stateId", "assigneeId", "priority",
            "estimate", "labelIds", "projectId", "projectMilestoneId", "parentId",
            "dueDate", "subscriberIds", "templateId",
        ],
    )
    data = await client.execute(_CREATE_ISSUE_MUTATION, {"input": issue_input})
    issue = unwrap_mutation(data, "issueCreate", "issue")
    logger.info("Created issue %s", issue.get("identifier") or issue.get("id"))
    return issue


@register_operation(
    "create", "update_issue", noun="Issue", label="Update Issue",
    description="Update an existing issue in Linear.",
    input_fields=[
        {"key": "issue_id", "label": "Issue ID", "required": True},
        {"key": "team_id", "label": "Team", "dynamic": "team.id.name"},
        {"key": "title", "label": "Title"},
        {"key": "description", "label": "Description"},
        {"key": "status_id", "label": "Status", "dynamic": "status.id.name"},
        {"key": "assignee_id", "label": "Assignee", "dynamic": "user.id.name"},
        {"key": "priority", "label": "Priority", "choices": PRIORITY_CHOICES},
        {"key": "estimate", "label": "Estimate", "dynamic": "estimate.id.label"},
        {"key": "label_ids", "label": "Labels to add", "dynamic": "label.id.name", "list": True},
        {"key": "project_id", "label": "Project", "dynamic": "project.id.name"},
        {"key": "project_milestone_id", "label": "Project Milestone", "dynamic": "project_milestone.id.name"},
        {"key": "parent_id", "label": "Parent Issue"},
        {"key": "due_date", "label": "Due Date"},
    ],
)
async def update_issue(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, issue_id="ID of the issue to update")

    update_input = omit_absent(
        {
            "teamId": inputs.get("team_id"),
            "title": inputs.get("title"),
            "description": inputs.get("description"),
            "stateId": inputs.get("status_id"),
            "assigneeId": inputs.get("assignee_id"),
            "priority": as_int(inputs.get("priority"), "Priority"),
            "estimate": as_int(inputs.get("estimate"), "Estimate"),
            "addedLabelIds": as_list(inputs.get("label_ids")),
            "projectId": inputs.get("project_id"),
            "projectMilestoneId": inputs.get("project_milestone_id"),
            "parentId": inputs.get("parent_id"),
            "dueDate": inputs.get("due_date"),
        },
        [
            "teamId", "title", "description", "stateId", "assigneeId", "priority",
            "estimate", "addedLabelIds", "projectId", "projectMilestoneId",
            "parentId", "dueDate",
        ],
    )
    if not update_input:
        raise ConnectorPreconditionError("Nothing to update; set at least one field")

    client = graphql_client_for(bundle)
    data = await client.execute(
        _UPDATE_ISSUE_MUTATION, {"id": inputs["issue_id"], "input": update_input}
    )
    return unwrap_mutation(data, "issueUpdate", "issue")


@register_operation(
    "create", "move_issue", noun="Issue", label="Move Issue to Status",
    description="Move an existing issue to the team status with the given name.",
    input_fields=[
        {"key": "issue_id", "label": "Issue ID", "required": True},
        {"key": "team_id", "label": "Team", "required": True, "dynamic": "team.id.name"},
        {"key": "state_name", "label": "Status Name", "required": True},
    ],
)
async def move_issue(bundle: Bundle) -> Dict[str, Any]:
    """Resolve the status by name within the team, then update the issue."""
    inputs = bundle.input_data
    require_inputs(inputs, issue_id="issue", team_id="team", state_name="status name")
    state_name = str(inputs["state_name"]).strip()

    client = graphql_client_for(bundle)
    data = await client.execute(
        _TEAM_STATE_BY_NAME_QUERY, {"teamId": inputs["team_id"], "name": state_name}
    )
    states = dig(data, "team.states").get("nodes") or []
    if not states:
        raise ConnectorValidationError(f"The team has no status named '{state_name}'")

    data = await client.execute(
        _UPDATE_ISSUE_MUTATION,
        {"id": inputs["issue_id"], "input": {"stateId": states[0]["id"]}},
    )
    issue = unwrap_mutation(data, "issueUpdate", "issue")
    logger.info("Moved issue %s to %s", issue.get("identifier") or issue.get("id"), state_name)
    return issue


@register_operation(
    "create", "create_comment", noun="Comment", label="Create Comment",
    description="Create a new issue comment in Linear.",
    input_fields=[
        {"key": "issue_id", "label": "Issue", "required": True},
        {"key": "body", "label": "Comment Body", "required": True},
    ],
)
async def create_comment(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, issue_id="issue", body="comment body")
    client = graphql_client_for(bundle)
    data = await client.execute(
        _CREATE_COMMENT_MUTATION,
        {"input": {"issueId": inputs["issue_id"], "body": inputs["body"]}},
    )
    return unwrap_mutation(data, "commentCreate", "comment")


async def _change_label(bundle: Bundle, mutation: str, mutation_field: str) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, issue_id="issue", label_id="label")
    client = graphql_client_for(bundle)
    data = await client.execute(
        mutation, {"issueId": inputs["issue_id"], "labelId": inputs["label_id"]}
    )
    return unwrap_mutation(data, mutation_field, "issue")


LABEL_INPUT_FIELDS = [
    {"key": "issue_id", "label": "Issue", "required": True},
    {"key": "team_id", "label": "Team", "dynamic": "team.id.name"},
    {"key": "label_id", "label": "Label", "required": True, "dynamic": "label.id.name"},
]


@register_operation(
    "create", "add_issue_label", noun="Issue", label="Add Label to Issue",
    description="Add a label to an existing issue.",
    input_fields=LABEL_INPUT_FIELDS,
)
async def add_issue_label(bundle: Bundle) -> Dict[str, Any]:
    return await _change_label(bundle, _ADD_LABEL_MUTATION, "issueAddLabel")


@register_operation(
    "create", "remove_issue_label", noun="Issue", label="Remove Label from Issue",
    description="Remove a label from an existing issue.",
    input_fields=LABEL_INPUT_FIELDS,
)
async def remove_issue_label(bundle: Bundle) -> Dict[str, Any]:
    return await _change_label(bundle, _REMOVE_LABEL_MUTATION, "issueRemoveLabel")


@register_operation(
    "create", "create_project", noun="Project", label="Create Project",
    description="Create a new project in Linear.",
    input_fields=[
        {"key": "name", "label": "Name", "required": True},
        {"key": "team_ids", "label": "Teams", "required": True, "dynamic": "team.id.name", "list": True},
        {"key": "description", "label": "Summary"},
        {"key": "content", "label": "Description"},
        {"key": "status_id", "label": "Status", "dynamic": "project_status.id.name"},
        {"key": "lead_id", "label": "Lead", "dynamic": "user.id.name"},
        {"key": "priority", "label": "Priority", "choices": PRIORITY_CHOICES},
        {"key": "start_date", "label": "Start Date"},
        {"key": "target_date", "label": "Target Date"},
    ],
)
async def create_project(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, name="project name", team_ids="teams")

    project_input = omit_absent(
        {
            "name": inputs["name"],
            "teamIds": as_list(inputs["team_ids"]),
            "description": inputs.get("description"),
            "content": inputs.get("content"),
            "leadId": inputs.get("lead_id"),
            "statusId": inputs.get("status_id"),
            "priority": as_int(inputs.get("priority"), "Priority"),
            "startDate": inputs.get("start_date"),
            "targetDate": inputs.get("target_date"),
        },
        [
            "name", "teamIds", "description", "content", "leadId", "statusId", "priority",
            "startDate", "targetDate",
        ],
    )
    client = graphql_client_for(bundle)
    data = await client.execute(_CREATE_PROJECT_MUTATION, {"input": project_input})
    return unwrap_mutation(data, "projectCreate", "project")
