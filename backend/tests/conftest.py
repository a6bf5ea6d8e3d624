# tests/conftest.py
"""
Pytest fixtures for HERA tests.

Actors are USER entities in the platform organization with a MEMBER_OF
edge into the organization they act in, exactly as production callers
are resolved by tenancy.authz.resolve_actor().
"""

import pytest
from datetime import date, datetime, timezone as dt_timezone

from django.conf import settings
from django.contrib.auth import get_user_model

from entities.commands import create_entity
from posting.policy import GL_ACCOUNT_ENTITY_TYPE, POLICY_CATEGORIES, set_posting_policy
from tenancy.authz import resolve_actor
from tenancy.provisioning import add_member, create_user_entity, provision_organization
from transactions.commands import create_transaction
from universal.models import Entity


SALE_SMART_CODE = "HERA.SALON.SALE.TXN.RETAIL.V1"
CUSTOMER_SMART_CODE = "HERA.SALON.CUSTOMER.ENTITY.REGULAR.V1"
BRANCH_SMART_CODE = "HERA.SALON.BRANCH.ENTITY.LOCATION.V1"
GL_ACCOUNT_SMART_CODE = "HERA.FIN.GL.ACCOUNT.ENTITY.LEDGER.V1"
JOURNAL_SMART_CODE = "HERA.FIN.GL.TXN.JOURNAL.MANUAL.V1"


@pytest.fixture(autouse=True)
def _testing_settings():
    """Ensure the write-barrier bypass is on unless a test turns it off."""
    settings.TESTING = True


def _entity(result) -> Entity:
    assert result.success, result.error
    return Entity.objects.get(pk=result.data["entity_id"])


# =============================================================================
# Organization & Actor Fixtures
# =============================================================================

@pytest.fixture
def organization(db):
    """Create a test organization."""
    return provision_organization(
        "Acme Salon",
        "ACME",
        default_currency="USD",
        timezone="UTC",
    )


@pytest.fixture
def second_organization(db):
    """Create a second organization for multi-tenant tests."""
    return provision_organization("Other Salon", "OTHER", default_currency="EUR")


@pytest.fixture
def user_entity(db):
    return create_user_entity("Test Owner", "owner@acme.test")


@pytest.fixture
def second_user_entity(db):
    return create_user_entity("Other Owner", "owner@other.test")


@pytest.fixture
def membership(organization, user_entity):
    return add_member(organization, user_entity, role="owner")


@pytest.fixture
def second_membership(second_organization, second_user_entity):
    return add_member(second_organization, second_user_entity, role="owner")


@pytest.fixture
def actor(organization, user_entity, membership):
    """ActorContext for the owner of the first organization."""
    return resolve_actor(user_entity.id, organization.id)


@pytest.fixture
def second_actor(second_organization, second_user_entity, second_membership):
    """ActorContext for the owner of the second organization."""
    return resolve_actor(second_user_entity.id, second_organization.id)


# =============================================================================
# Entity Fixtures
# =============================================================================

@pytest.fixture
def customer(actor):
    return _entity(create_entity(actor, {
        "entity_type": "customer",
        "entity_name": "Jane Doe",
        "smart_code": CUSTOMER_SMART_CODE,
    }))


@pytest.fixture
def branch(actor):
    return _entity(create_entity(actor, {
        "entity_type": "BRANCH",
        "entity_name": "Downtown",
        "entity_code": "BR-01",
        "smart_code": BRANCH_SMART_CODE,
    }))


@pytest.fixture
def gl_accounts(actor):
    """One GL_ACCOUNT entity per posting category."""
    accounts = {}
    for number, category in enumerate(POLICY_CATEGORIES, start=1):
        accounts[category] = _entity(create_entity(actor, {
            "entity_type": GL_ACCOUNT_ENTITY_TYPE,
            "entity_name": category.replace("_", " ").title(),
            "entity_code": f"{number:04d}",
            "smart_code": GL_ACCOUNT_SMART_CODE,
        }))
    return accounts


@pytest.fixture
def cash_account(gl_accounts):
    return gl_accounts["sales_clearing"]


@pytest.fixture
def revenue_account(gl_accounts):
    return gl_accounts["service_revenue"]


@pytest.fixture
def posting_policy(actor, gl_accounts):
    """DEFAULT posting policy mapping every category."""
    result = set_posting_policy(actor, {category: str(account.id) for category, account in gl_accounts.items()})
    assert result.success, result.error
    return result.data["entity_id"]


# =============================================================================
# Transaction Fixtures
# =============================================================================

BUSINESS_DATE = date(2026, 10, 18)


@pytest.fixture
def business_date():
    return BUSINESS_DATE


@pytest.fixture
def make_sale(actor, branch, customer):
    """Factory creating a completed sale on the test branch."""

    def _make_sale(lines, when=None, status="completed", currency=None, sale_actor=None, sale_branch=None):
        header = {
            "transaction_type": "sale",
            "smart_code": SALE_SMART_CODE,
            "transaction_date": when or datetime(2026, 10, 18, 12, 0, tzinfo=dt_timezone.utc),
            "transaction_status": status,
            "source_entity_id": str(customer.id),
            "metadata": {"branch_id": str((sale_branch or branch).id)},
        }
        if currency:
            header["transaction_currency_code"] = currency
        result = create_transaction(sale_actor or actor, header, lines)
        assert result.success, result.error
        return result.data["transaction_id"]

    return _make_sale


@pytest.fixture
def balanced_lines(cash_account, revenue_account):
    return [
        {"line_number": 1, "line_entity_id": str(cash_account.id), "debit_amount": "1000.00"},
        {"line_number": 2, "line_entity_id": str(revenue_account.id), "credit_amount": "1000.00"},
    ]


@pytest.fixture
def posted_journal(actor, balanced_lines):
    result = create_transaction(actor, {
        "transaction_type": "journal_entry",
        "smart_code": JOURNAL_SMART_CODE,
        "transaction_status": "posted",
        "transaction_code": "JE-0001",
    }, balanced_lines)
    assert result.success, result.error
    return result.data["transaction_id"]


@pytest.fixture
def draft_sale(actor, customer):
    result = create_transaction(actor, {
        "transaction_type": "sale",
        "smart_code": SALE_SMART_CODE,
        "source_entity_id": str(customer.id),
    }, [{"line_type": "service", "line_amount": "40.00"}])
    assert result.success, result.error
    return result.data["transaction_id"]


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def api_user(db):
    User = get_user_model()
    return User.objects.create_user(username="api-caller", password="testpass123")


@pytest.fixture
def api_client():
    """Create a DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, api_user):
    """Create an authenticated API client."""
    api_client.force_authenticate(user=api_user)
    return api_client

