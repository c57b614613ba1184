"""Tests for customer and customer-need operations."""

import pytest

from linear_connect.connectors import customers
from linear_connect.connectors.exceptions import ConnectorPreconditionError, ConnectorValidationError
from linear_connect.connectors.registry import operation_registry

from conftest import graphql_page


pytestmark = pytest.mark.asyncio

HOOK_BASE = "https://client-api.linear.app/connect/zapier"


class TestCustomerTriggers:

    @pytest.mark.parametrize("key,event", [
        ("new_customer_instant", "createCustomer"),
        ("updated_customer_instant", "updateCustomer"),
        ("new_customer_need_instant", "createCustomerNeed"),
        ("updated_customer_need_instant", "updateCustomerNeed"),
    ])
    async def test_subscribe_without_filters(self, fake_linear, make_bundle, key, event):
        fake_linear.queue({"id": "hook-c"})
        operation = operation_registry.get("trigger", key)

        handle = await operation.perform_subscribe(make_bundle({}, target_url="https://hooks.example/c"))

        assert fake_linear.calls[0]["url"] == f"{HOOK_BASE}/subscribe/{event}"
        assert fake_linear.last_json == {"url": "https://hooks.example/c"}
        assert handle == {"id": "hook-c", "targetUrl": "https://hooks.example/c", "inputData": None}

    async def test_customer_samples(self, fake_linear, make_bundle):
        fake_linear.queue(graphql_page("customers", [
            {"id": "CU1", "name": "Acme", "domains": ["acme.com"], "createdAt": "t1"},
        ]))
        operation = operation_registry.get("trigger", "new_customer_instant")

        records = await operation.perform_list(make_bundle({}))

        assert records == [{"id": "CU1", "name": "Acme", "domains": ["acme.com"], "createdAt": "t1"}]
        assert "filter" not in fake_linear.last_json["query"]

    async def test_customer_need_delivery(self):
        from linear_connect.connectors.base import Bundle

        operation = operation_registry.get("trigger", "new_customer_need_instant")
        records = await operation.perform(Bundle(input_data={
            "id": "CN1", "body": "Needs SSO", "querystring": {},
        }))

        assert records == [{"id": "CN1", "body": "Needs SSO"}]


class TestFindCustomer:

    async def test_find_by_id(self, fake_linear, make_bundle):
        fake_linear.queue({"data": {"customer": {"id": "CU1", "name": "Acme", "tier": None}}})

        results = await customers.find_customer(make_bundle({"id": "CU1"}))

        assert results == [{"id": "CU1", "name": "Acme", "tier": None}]
        assert fake_linear.last_json["variables"] == {"id": "CU1"}

    async def test_requires_id(self, fake_linear, make_bundle):
        with pytest.raises(ConnectorPreconditionError, match="customer ID"):
            await customers.find_customer(make_bundle({}))

        assert fake_linear.calls == []


class TestCreateCustomer:

    async def test_minimal(self, fake_linear, make_bundle):
        fake_linear.queue({"data": {"customerCreate": {"success": True, "customer": {"id": "CU1"}}}})

        result = await customers.create_customer(make_bundle({"name": "Acme"}))

        assert result == {"id": "CU1"}
        assert fake_linear.last_json["variables"] == {
            "input": {"name": "Acme", "domains": [], "externalIds": []},
        }

    async def test_all_fields(self, fake_linear, make_bundle):
        fake_linear.queue({"data": {"customerCreate": {"success": True, "customer": {"id": "CU1"}}}})

        await customers.create_customer(make_bundle({
            "name": "Acme",
            "domains": "acme.com, acme.io",
            "external_ids": ["crm-42"],
            "revenue": "120000",
            "size": 0,
            "tier_id": "",
        }))

        assert fake_linear.last_json["variables"]["input"] == {
            "name": "Acme",
            "domains": ["acme.com", "acme.io"],
            "externalIds": ["crm-42"],
            "revenue": 120000,
            "size": 0,
        }

    async def test_bad_revenue(self, fake_linear, make_bundle):
        with pytest.raises(ConnectorPreconditionError, match="Revenue must be a whole number"):
            await customers.create_customer(make_bundle({"name": "Acme", "revenue": "lots"}))

        assert fake_linear.calls == []

    async def test_rejected_input_surfaces_verbatim(self, fake_linear, make_bundle):
        fake_linear.queue({"errors": [{
            "message": "Argument Validation Error",
            "extensions": {"userPresentableMessage": "Domain already in use"},
        }]})

        with pytest.raises(ConnectorValidationError, match="Domain already in use"):
            await customers.create_customer(make_bundle({"name": "Acme", "domains": ["acme.com"]}))


class TestCreateCustomerNeed:

    async def test_create(self, fake_linear, make_bundle):
        fake_linear.queue({"data": {"customerNeedCreate": {"success": True, "need": {"id": "CN1"}}}})

        result = await customers.create_customer_need(make_bundle({
            "customer_id": "CU1", "issue_id": "I1", "body": "Needs SSO", "priority": "1",
        }))

        assert result == {"id": "CN1"}
        assert fake_linear.last_json["variables"] == {"input": {
            "customerId": "CU1", "issueId": "I1", "body": "Needs SSO", "priority": 1,
        }}

    @pytest.mark.parametrize("inputs", [
        {"attachment_id": "A1", "attachment_url": "https://x.io"},
        {"customer_id": "CU1", "customer_external_id": "crm-42"},
    ])
    async def test_exclusive_inputs(self, fake_linear, make_bundle, inputs):
        with pytest.raises(ConnectorPreconditionError, match="Cannot specify both"):
            await customers.create_customer_need(make_bundle(inputs))

        assert fake_linear.calls == []
