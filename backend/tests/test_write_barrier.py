# tests/test_write_barrier.py
"""
Tests for write barrier enforcement.
"""

import pytest

from entities.commands import create_entity
from tenancy.provisioning import provision_organization
from universal.models import Entity, Organization
from universal.write_barrier import (
    bootstrap_writes_allowed,
    current_write_context,
    store_writes_allowed,
    writes_allowed,
)
from tests.conftest import CUSTOMER_SMART_CODE


def _customer_kwargs(organization):
    return {
        "organization": organization,
        "entity_type": "customer",
        "entity_name": "Barrier Customer",
        "smart_code": CUSTOMER_SMART_CODE,
    }


@pytest.mark.django_db
def test_direct_model_create_raises(settings, organization):
    settings.TESTING = False

    with pytest.raises(RuntimeError, match="written through the stores"):
        Entity.objects.create(**_customer_kwargs(organization))


@pytest.mark.django_db
def test_direct_model_save_raises(settings, organization):
    settings.TESTING = False

    with store_writes_allowed():
        entity = Entity.objects.create(**_customer_kwargs(organization))

    entity.entity_name = "Renamed"
    with pytest.raises(RuntimeError, match="written through the stores"):
        entity.save()


@pytest.mark.django_db
def test_queryset_update_raises(settings, organization):
    settings.TESTING = False

    with pytest.raises(RuntimeError, match="written through the stores"):
        Organization.objects.filter(pk=organization.pk).update(organization_name="Renamed")


@pytest.mark.django_db
def test_store_context_allows_writes(settings, organization):
    settings.TESTING = False

    with store_writes_allowed():
        entity = Entity.objects.create(**_customer_kwargs(organization))

    assert entity.pk is not None
    assert current_write_context() is None


@pytest.mark.django_db
def test_bootstrap_context_allows_provisioning(settings):
    settings.TESTING = False

    organization = provision_organization("Barrier Salon", "BARRIER")

    assert Organization.objects.filter(pk=organization.pk).exists()
    with bootstrap_writes_allowed():
        assert current_write_context() == "bootstrap"


@pytest.mark.django_db
def test_commands_write_with_barrier_on(settings, actor):
    settings.TESTING = False

    result = create_entity(actor, {
        "entity_type": "customer",
        "entity_name": "Through the store",
        "smart_code": CUSTOMER_SMART_CODE,
    })

    assert result.success, result.error


def test_contexts_nest_and_unwind():
    with store_writes_allowed():
        with bootstrap_writes_allowed():
            assert current_write_context() == "bootstrap"
        assert current_write_context() == "store"
    assert current_write_context() is None


def test_unknown_context_is_rejected():
    with pytest.raises(ValueError):
        with writes_allowed("admin"):
            pass
