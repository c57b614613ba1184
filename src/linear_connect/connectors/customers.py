"""Customer and customer-need operations.

Customers have no server-side filters worth exposing, so the instant
triggers subscribe without ``inputData`` and sample through an unfiltered
list query.
"""

import logging
from typing import Any, Dict, List

from .base import Bundle, graphql_client_for
from .exceptions import ConnectorPreconditionError
from .linear import as_int, as_list, register_instant_trigger, require_inputs
from .normalize import dig, normalize_record, unwrap_mutation
from .query_builder import ListQuery, is_present, omit_absent
from .registry import register_operation

logger = logging.getLogger(__name__)

CUSTOMER_SELECTION: Dict[str, Any] = {
    "id": True,
    "name": True,
    "domains": True,
    "externalIds": True,
    "createdAt": True,
    "updatedAt": True,
    "revenue": True,
    "size": True,
    "tier": {"id": True, "name": True},
}

CUSTOMER_NEED_SELECTION: Dict[str, Any] = {
    "id": True,
    "createdAt": True,
    "updatedAt": True,
    "body": True,
    "priority": True,
    "customer": {"id": True},
    "issue": {"id": True},
    "attachment": {"id": True},
}

CUSTOMERS = ListQuery(
    name="ListCustomers",
    connection="customers",
    selection=CUSTOMER_SELECTION,
)

CUSTOMER_NEEDS = ListQuery(
    name="ListCustomerNeeds",
    connection="customerNeeds",
    selection=CUSTOMER_NEED_SELECTION,
)

_GET_CUSTOMER_QUERY = """
query GetCustomer($id: String!) {
  customer(id: $id) {
    id
    name
    domains
    externalIds
    createdAt
    updatedAt
    revenue
    size
    tier { id name }
  }
}
"""

_CREATE_CUSTOMER_MUTATION = """
mutation CreateCustomer($input: CustomerCreateInput!) {
  customerCreate(input: $input) {
    success
    customer { id name domains externalIds }
  }
}
"""

_CREATE_CUSTOMER_NEED_MUTATION = """
mutation CreateCustomerNeed($input: CustomerNeedCreateInput!) {
  customerNeedCreate(input: $input) {
    success
    need {
      id
      customer { id }
      issue { id }
      attachment { id }
    }
  }
}
"""


# ---------------------------------------------------------------------------
# Instant triggers
# ---------------------------------------------------------------------------

register_instant_trigger(
    "new_customer_instant", "Customer", "New Customer",
    "Triggers when a new customer is created.",
    event_type="createCustomer",
    hook_filters={},
    list_query=CUSTOMERS,
    input_fields=[],
)

register_instant_trigger(
    "updated_customer_instant", "Customer", "Updated Customer",
    "Triggers when a customer is updated.",
    event_type="updateCustomer",
    hook_filters={},
    list_query=CUSTOMERS,
    input_fields=[],
)

register_instant_trigger(
    "new_customer_need_instant", "Customer Need", "New Customer Need",
    "Triggers when a new customer request is created.",
    event_type="createCustomerNeed",
    hook_filters={},
    list_query=CUSTOMER_NEEDS,
    input_fields=[],
)

register_instant_trigger(
    "updated_customer_need_instant", "Customer Need", "Updated Customer Need",
    "Triggers when a customer request is updated.",
    event_type="updateCustomerNeed",
    hook_filters={},
    list_query=CUSTOMER_NEEDS,
    input_fields=[],
)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@register_operation(
    "search", "find_customer", noun="Customer", label="Find Customer by ID",
    description="Find a customer by ID.",
    input_fields=[{"key": "id", "label": "Customer ID", "required": True}],
)
async def find_customer(bundle: Bundle) -> List[Dict[str, Any]]:
    require_inputs(bundle.input_data, id="customer ID")
    client = graphql_client_for(bundle)
    data = await client.execute(_GET_CUSTOMER_QUERY, {"id": bundle.input_data["id"]})
    return [normalize_record(dig(data, "customer"))]


# ---------------------------------------------------------------------------
# Creates
# ---------------------------------------------------------------------------

@register_operation(
    "create", "create_customer", noun="Customer", label="Create Customer",
    description="Create a new customer in Linear.",
    input_fields=[
        {"key": "name", "label": "Name", "required": True},
        {"key": "domains", "label": "Domains", "list": True},
        {"key": "external_ids", "label": "External IDs", "list": True},
        {"key": "revenue", "label": "Revenue", "type": "number"},
        {"key": "size", "label": "Size", "type": "number"},
        {"key": "tier_id", "label": "Tier ID"},
    ],
)
async def create_customer(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    require_inputs(inputs, name="customer name")

    customer_input = {
        "name": inputs["name"],
        "domains": as_list(inputs.get("domains")),
        "externalIds": as_list(inputs.get("external_ids")),
    }
    customer_input.update(omit_absent(
        {
            "revenue": as_int(inputs.get("revenue"), "Revenue"),
            "size": as_int(inputs.get("size"), "Size"),
            "tierId": inputs.get("tier_id"),
        },
        ["revenue", "size", "tierId"],
    ))

    client = graphql_client_for(bundle)
    data = await client.execute(_CREATE_CUSTOMER_MUTATION, {"input": customer_input})
    customer = unwrap_mutation(data, "customerCreate", "customer")
    logger.info("Created customer %s", customer.get("id"))
    return customer


@register_operation(
    "create", "create_customer_need", noun="Customer Need", label="Create Customer Need",
    description="Create a new customer need in Linear.",
    input_fields=[
        {"key": "customer_id", "label": "Customer ID"},
        {"key": "customer_external_id", "label": "External Customer ID"},
        {"key": "issue_id", "label": "Issue ID"},
        {"key": "attachment_id", "label": "Attachment ID"},
        {"key": "attachment_url", "label": "Attachment URL"},
        {"key": "body", "label": "Body"},
        {
            "key": "priority",
            "label": "Priority",
            "choices": [
                {"value": "0", "label": "Not important"},
                {"value": "1", "label": "Important"},
            ],
        },
    ],
)
async def create_customer_need(bundle: Bundle) -> Dict[str, Any]:
    inputs = bundle.input_data
    for first, second in (
        ("attachment_id", "attachment_url"),
        ("customer_id", "customer_external_id"),
    ):
        if is_present(inputs.get(first)) and is_present(inputs.get(second)):
            raise ConnectorPreconditionError(
                f"Cannot specify both {first} and {second}"
            )

    need_input = omit_absent(
        {
            "customerId": inputs.get("customer_id"),
            "customerExternalId": inputs.get("customer_external_id"),
            "issueId": inputs.get("issue_id"),
            "attachmentId": inputs.get("attachment_id"),
            "attachmentUrl": inputs.get("attachment_url"),
            "body": inputs.get("body"),
            "priority": as_int(inputs.get("priority"), "Priority"),
        },
        [
            "customerId", "customerExternalId", "issueId", "attachmentId",
            "attachmentUrl", "body", "priority",
        ],
    )
    client = graphql_client_for(bundle)
    data = await client.execute(_CREATE_CUSTOMER_NEED_MUTATION, {"input": need_input})
    return unwrap_mutation(data, "customerNeedCreate", "need")
