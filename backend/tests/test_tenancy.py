# tests/test_tenancy.py
"""
Tests for actor resolution and the tenant boundary.

Tests cover:
- Membership checks (active MEMBER_OF edge required)
- Unknown / inactive organizations
- Cross-organization reads surface as NOT_FOUND
- Organization provisioning
"""

import pytest
from io import StringIO
from uuid import uuid4

from django.core.management import call_command
from django.core.management.base import CommandError

from entities.commands import entity_crud
from relationships.commands import close_relationship
from tenancy.authz import ActorResolutionError, resolve_actor
from tenancy.provisioning import add_member, organization_shadow_entity, provision_organization
from universal.models import PLATFORM_ORGANIZATION_ID, Entity, Organization, Relationship
from universal.results import ErrorCode
from tests.conftest import CUSTOMER_SMART_CODE


@pytest.mark.django_db
class TestResolveActor:

    def test_member_resolves(self, actor, organization, user_entity, membership):
        assert actor.organization_id == organization.id
        assert actor.actor_user_id == user_entity.id
        assert actor.membership == membership

    def test_non_member_is_not_found(self, organization, second_user_entity):
        with pytest.raises(ActorResolutionError) as exc:
            resolve_actor(second_user_entity.id, organization.id)
        assert exc.value.code == ErrorCode.NOT_FOUND

    def test_unknown_organization_is_not_found(self, user_entity):
        with pytest.raises(ActorResolutionError) as exc:
            resolve_actor(user_entity.id, uuid4())
        assert exc.value.code == ErrorCode.NOT_FOUND

    def test_malformed_ids_are_validation_errors(self, organization):
        with pytest.raises(ActorResolutionError) as exc:
            resolve_actor("not-a-uuid", organization.id)
        assert exc.value.code == ErrorCode.VALIDATION_ERROR

    def test_inactive_organization_is_not_found(self, organization, user_entity, membership):
        Organization.objects.filter(pk=organization.pk).update(status=Organization.Status.INACTIVE)

        with pytest.raises(ActorResolutionError) as exc:
            resolve_actor(user_entity.id, organization.id)
        assert exc.value.code == ErrorCode.NOT_FOUND

    def test_closed_membership_takes_effect_immediately(self, actor, organization, user_entity, membership):
        result = close_relationship(actor, membership.id, reason="left company")
        assert result.success

        with pytest.raises(ActorResolutionError):
            resolve_actor(user_entity.id, organization.id)

    def test_system_actor_skips_membership(self, organization, settings):
        system_id = uuid4()
        settings.HERA = {**getattr(settings, "HERA", {}), "SYSTEM_ACTOR_ID": str(system_id)}

        ctx = resolve_actor(system_id, organization.id)

        assert ctx.is_system
        assert ctx.membership is None


@pytest.mark.django_db
class TestTenantBoundary:

    def test_entity_from_other_organization_is_not_found(self, actor, second_actor):
        created = entity_crud(
            "CREATE", actor.actor_user_id, actor.organization_id,
            entity={"entity_type": "customer", "entity_name": "Jane", "smart_code": CUSTOMER_SMART_CODE},
        )
        assert created.success

        result = entity_crud(
            "READ", second_actor.actor_user_id, second_actor.organization_id,
            entity={"entity_id": created.data["entity_id"]},
        )

        assert result.success is False
        assert result.code == ErrorCode.NOT_FOUND
        assert result.data is None

    def test_actor_cannot_use_other_organization_id(self, actor, second_organization):
        result = entity_crud(
            "READ", actor.actor_user_id, second_organization.id,
            entity={"entity_type": "customer"},
        )

        assert result.success is False
        assert result.code == ErrorCode.NOT_FOUND

    def test_queries_never_include_foreign_rows(self, actor, second_actor):
        for ctx in (actor, second_actor):
            entity_crud(
                "CREATE", ctx.actor_user_id, ctx.organization_id,
                entity={"entity_type": "customer", "smart_code": CUSTOMER_SMART_CODE},
            )

        result = entity_crud("READ", actor.actor_user_id, actor.organization_id, entity={"entity_type": "customer"})

        assert result.success
        assert result.data["total"] == 1
        assert result.data["items"][0]["entity"]["organization_id"] == str(actor.organization_id)


@pytest.mark.django_db
class TestProvisioning:

    def test_provision_creates_shadow_entity(self, organization):
        shadow = organization_shadow_entity(organization)

        assert shadow is not None
        assert shadow.entity_type == "ORGANIZATION"
        assert shadow.entity_code == "ACME"
        assert organization.settings == {"default_currency": "USD", "timezone": "UTC"}

    def test_users_live_in_platform_organization(self, user_entity):
        assert user_entity.organization_id == PLATFORM_ORGANIZATION_ID
        assert user_entity.entity_type == "USER"

    def test_add_member_is_idempotent(self, organization, user_entity, membership):
        again = add_member(organization, user_entity, role="owner")

        assert again.pk == membership.pk
        assert Relationship.objects.filter(
            from_entity=user_entity, relationship_type=Relationship.MEMBER_OF, is_active=True,
        ).count() == 1

    def test_duplicate_organization_code_is_rejected(self, organization):
        from django.db import IntegrityError, transaction

        with pytest.raises(IntegrityError), transaction.atomic():
            provision_organization("Again", "ACME")

        assert Entity.objects.filter(entity_type="ORGANIZATION", entity_code="ACME").count() == 1


@pytest.mark.django_db
class TestProvisionCommand:

    def test_creates_organization_and_owner(self):
        out = StringIO()

        call_command(
            "provision_organization", "DXB", "Dubai Salon",
            "--currency", "aed", "--timezone", "Asia/Dubai", "--owner-name", "Sara", stdout=out,
        )

        organization = Organization.objects.get(organization_code="DXB")
        assert organization.settings == {"default_currency": "AED", "timezone": "Asia/Dubai"}
        owner = Entity.objects.get(entity_type="USER", entity_name="Sara")
        assert resolve_actor(owner.id, organization.id).membership is not None
        assert "Done!" in out.getvalue()

    def test_existing_code_is_an_error(self, organization):
        with pytest.raises(CommandError, match="already exists"):
            call_command("provision_organization", "ACME", "Again", stdout=StringIO())
