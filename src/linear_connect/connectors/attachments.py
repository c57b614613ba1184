"""Issue attachments: create, link and look up by URL."""

import logging
from typing import Any, Dict, List

from .base import Bundle, graphql_client_for
from .linear import require_inputs
from .normalize import dig, normalize_record, unwrap_mutation
from .query_builder import is_present
from .registry import register_operation

logger = logging.getLogger(__name__)

_CREATE_ATTACHMENT_MUTATION = """
mutation CreateAttachment($input: AttachmentCreateInput!) {
  attachmentCreate(input: $input) {
    success
    attachment { id url title }
  }
}
"""

_LINK_URL_MUTATION = """
mutation LinkUrl($issueId: String!, $url: String!, $title: String) {
  attachmentLinkURL(issueId: $issueId, url: $url, title: $title) {
    success
    attachment { id url title }
  }
}
"""

_LINK_INTERCOM_MUTATION = """
mutation LinkIntercom($issueId: String!, $conversationId: String!) {
  attachmentLinkIntercom(issueId: $issueId, conversationId: $conversationId) {
    success
    attachment { id url title }
  }
}
"""

_ATTACHMENTS_FOR_URL_QUERY = """
query AttachmentsForUrl($url: String!) {
  attachmentsForURL(url: $url) {
    nodes {
      id
      sourceType
      metadata
      issue {
        identifier
        description
        team { key }
        state { type }
        labels { nodes { id name } }
      }
    }
  }
}
"""


@register_operation(
    "create", "create_issue_attachment", noun="Attachment", label="Create Issue Attachment",
    description="Create a new issue URL attachment in Linear.",
    input_fields=[
        {"key": "issue_id", "label": "Issue", "required": True},
        {"key": "url", "label": "URL", "required": True},
        {"key": "title", "label": "Title"},
    ],
)
async def create_issue_attachment(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, issue_id="issue", url="attachment URL")
    client = graphql_client_for(bundle)
    data = await client.execute(
        _CREATE_ATTACHMENT_MUTATION,
        {"input": {
            "issueId": inputs["issue_id"],
            "url": inputs["url"],
            # Required by AttachmentCreateInput
            "title": inputs.get("title") or "",
        }},
    )
    return unwrap_mutation(data, "attachmentCreate", "attachment")


@register_operation(
    "create", "link_url", noun="Attachment", label="Link URL to Issue",
    description="Link an existing URL to an issue.",
    input_fields=[
        {"key": "issue_id", "label": "Issue", "required": True},
        {"key": "url", "label": "URL", "required": True},
        {"key": "title", "label": "Title"},
    ],
)
async def link_url(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, issue_id="issue", url="URL")
    variables = {"issueId": inputs["issue_id"], "url": inputs["url"]}
    if is_present(inputs.get("title")):
        variables["title"] = inputs["title"]

    client = graphql_client_for(bundle)
    data = await client.execute(_LINK_URL_MUTATION, variables)
    return unwrap_mutation(data, "attachmentLinkURL", "attachment")


@register_operation(
    "create", "link_intercom_conversation", noun="Attachment",
    label="Link Intercom Conversation to Issue",
    description="Link an existing Intercom conversation to an issue.",
    input_fields=[
        {"key": "issue_id", "label": "Issue", "required": True},
        {"key": "conversation_id", "label": "Conversation ID", "required": True},
    ],
)
async def link_intercom_conversation(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, issue_id="issue", conversation_id="conversation ID")
    client = graphql_client_for(bundle)
    data = await client.execute(
        _LINK_INTERCOM_MUTATION,
        {"issueId": inputs["issue_id"], "conversationId": inputs["conversation_id"]},
    )
    return unwrap_mutation(data, "attachmentLinkIntercom", "attachment")


@register_operation(
    "search", "attachments_for_url", noun="Attachment", label="Find Attachments for URL",
    description="Find the attachments that point at a URL, with their issues.",
    input_fields=[
        {"key": "url", "label": "URL", "required": True},
        {"key": "source_type", "label": "Source"},
        {"key": "description_pattern", "label": "Description Contains"},
    ],
)
async def attachments_for_url(bundle: Bundle) -> List[Dict[str, Any]]:
    """Narrowed client-side by source type and issue description text."""
    inputs = bundle.input_data
    require_inputs(inputs, url="URL")
    client = graphql_client_for(bundle)
    data = await client.execute(_ATTACHMENTS_FOR_URL_QUERY, {"url": inputs["url"]})
    attachments = dig(data, "attachmentsForURL").get("nodes") or []

    source_type = inputs.get("source_type")
    if is_present(source_type):
        attachments = [a for a in attachments if a.get("sourceType") == source_type]

    pattern = inputs.get("description_pattern")
    if is_present(pattern):
        attachments = [
            a for a in attachments
            if pattern in ((a.get("issue") or {}).get("description") or "")
        ]

    logger.debug("%d attachments match %s", len(attachments), inputs["url"])
    return [normalize_record(attachment) for attachment in attachments]
