# tests/test_api.py
"""
HTTP surface tests.

The views only parse the envelope and map CommandResult categories to
status codes; business rules are covered by the store tests.
"""

import pytest

from tests.conftest import CUSTOMER_SMART_CODE, SALE_SMART_CODE


ENTITIES_URL = "/api/v2/entities/"
RELATIONSHIPS_URL = "/api/v2/relationships/"
TRANSACTIONS_URL = "/api/v2/transactions/"
POSTING_URL = "/api/v2/posting/daily/"


def _envelope(actor, action, **kwargs):
    return {
        "action": action,
        "actor_user_id": str(actor.actor_user_id),
        "organization_id": str(actor.organization_id),
        **kwargs,
    }


@pytest.mark.django_db
class TestAuthentication:

    def test_unauthenticated_is_rejected(self, api_client, actor):
        response = api_client.post(ENTITIES_URL, _envelope(actor, "READ"), format="json")

        assert response.status_code == 401

    def test_health_live_is_open(self, api_client):
        response = api_client.get("/_health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"


@pytest.mark.django_db
class TestEntityApi:

    def test_create_returns_201(self, authenticated_client, actor):
        response = authenticated_client.post(ENTITIES_URL, _envelope(
            actor, "CREATE",
            entity={"entity_type": "customer", "entity_name": "Jane", "smart_code": CUSTOMER_SMART_CODE},
            dynamic_fields={"phone": {"value": "+971500000000", "type": "text",
                                      "smart_code": "HERA.SALON.CUSTOMER.DYN.PHONE.V1"}},
        ), format="json")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["entity_id"]

    def test_bad_smart_code_is_400(self, authenticated_client, actor):
        response = authenticated_client.post(ENTITIES_URL, _envelope(
            actor, "CREATE",
            entity={"entity_type": "customer", "entity_name": "Jane", "smart_code": "salon.customer"},
        ), format="json")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SMART_CODE_INVALID"

    def test_unknown_action_is_400(self, authenticated_client, actor):
        response = authenticated_client.post(ENTITIES_URL, _envelope(actor, "MERGE"), format="json")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert "action" in response.json()["error"]["details"]

    def test_other_tenant_is_404(self, authenticated_client, actor, second_actor, customer):
        response = authenticated_client.post(ENTITIES_URL, _envelope(
            second_actor, "READ", entity={"entity_id": str(customer.id)},
        ), format="json")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.django_db
class TestTransactionApi:

    def test_create_sale(self, authenticated_client, actor, customer):
        response = authenticated_client.post(TRANSACTIONS_URL, _envelope(
            actor, "CREATE",
            transaction={"transaction_type": "sale", "smart_code": SALE_SMART_CODE,
                         "source_entity_id": str(customer.id)},
            lines=[{"line_type": "service", "line_amount": "85.99"}],
        ), format="json")

        assert response.status_code == 201
        assert response.json()["data"]["transaction"]["total_amount"] == "85.99"

    def test_unbalanced_journal_is_409(self, authenticated_client, actor, cash_account, revenue_account):
        response = authenticated_client.post(TRANSACTIONS_URL, _envelope(
            actor, "CREATE",
            transaction={"transaction_type": "journal_entry", "smart_code": "HERA.FIN.GL.TXN.JOURNAL.MANUAL.V1"},
            lines=[
                {"line_entity_id": str(cash_account.id), "debit_amount": "1000.00"},
                {"line_entity_id": str(revenue_account.id), "credit_amount": "900.00"},
            ],
        ), format="json")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "UNBALANCED_JOURNAL"

    def test_read(self, authenticated_client, actor, draft_sale):
        response = authenticated_client.post(TRANSACTIONS_URL, _envelope(
            actor, "READ", transaction={"transaction_id": draft_sale},
        ), format="json")

        assert response.status_code == 200
        assert response.json()["data"]["transaction_id"] == draft_sale


@pytest.mark.django_db
class TestRelationshipApi:

    def test_upsert_and_list(self, authenticated_client, actor, customer, branch):
        upsert = authenticated_client.post(RELATIONSHIPS_URL, _envelope(
            actor, "UPSERT", payload={
                "from_entity_id": str(customer.id),
                "to_entity_id": str(branch.id),
                "relationship_type": "PREFERS_BRANCH",
                "smart_code": "HERA.SALON.CUSTOMER.REL.BRANCH.V1",
            },
        ), format="json")
        listing = authenticated_client.post(RELATIONSHIPS_URL, _envelope(
            actor, "LIST", payload={"from_entity_id": str(customer.id)},
        ), format="json")

        assert upsert.status_code == 200
        assert listing.status_code == 200
        assert listing.json()["data"]["total"] == 1

    def test_unknown_action_is_400(self, authenticated_client, actor):
        response = authenticated_client.post(RELATIONSHIPS_URL, _envelope(actor, "DROP"), format="json")

        assert response.status_code == 400


@pytest.mark.django_db
class TestPostingApi:

    def test_post_then_conflict(self, authenticated_client, actor, branch, posting_policy, make_sale, business_date):
        make_sale([
            {"line_type": "service", "line_amount": "100.00"},
            {"line_type": "tax", "line_amount": "5.00"},
        ])
        body = {
            "actor_user_id": str(actor.actor_user_id),
            "organization_id": str(actor.organization_id),
            "branch_id": str(branch.id),
            "business_date": business_date.isoformat(),
        }

        first = authenticated_client.post(POSTING_URL, body, format="json")
        second = authenticated_client.post(POSTING_URL, body, format="json")

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "ALREADY_POSTED"

    def test_no_sales_is_409(self, authenticated_client, actor, branch, posting_policy, business_date):
        response = authenticated_client.post(POSTING_URL, {
            "actor_user_id": str(actor.actor_user_id),
            "organization_id": str(actor.organization_id),
            "branch_id": str(branch.id),
            "business_date": business_date.isoformat(),
        }, format="json")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NO_SALES_FOUND"

    def test_bad_date_is_400(self, authenticated_client, actor, branch):
        response = authenticated_client.post(POSTING_URL, {
            "actor_user_id": str(actor.actor_user_id),
            "organization_id": str(actor.organization_id),
            "branch_id": str(branch.id),
            "business_date": "yesterday",
        }, format="json")

        assert response.status_code == 400
