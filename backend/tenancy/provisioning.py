# tenancy/provisioning.py
"""
Organization provisioning.

Creates an organization together with the rows the stores expect to find:

- the platform organization (holder of USER entities), created on demand
- the ORGANIZATION shadow entity of the new tenant
- optionally a USER entity and its MEMBER_OF edge into the tenant

This is the only place Organization rows are written.
"""

import logging

from django.db import transaction

from universal.models import (
    PLATFORM_ORGANIZATION_ID,
    Entity,
    Organization,
    Relationship,
)
from universal.write_barrier import bootstrap_writes_allowed


logger = logging.getLogger(__name__)


ORGANIZATION_SMART_CODE = "HERA.UNIVERSAL.CORE.ORGANIZATION.ENTITY.V1"
USER_SMART_CODE = "HERA.UNIVERSAL.CORE.USER.ENTITY.V1"
ORGANIZATION_ENTITY_TYPE = "ORGANIZATION"
USER_ENTITY_TYPE = "USER"

MEMBERSHIP_SMART_CODE = "HERA.UNIVERSAL.CORE.USER.MEMBERSHIP.V1"


def ensure_platform_organization() -> Organization:
    with bootstrap_writes_allowed():
        organization, _ = Organization.objects.get_or_create(
            id=PLATFORM_ORGANIZATION_ID,
            defaults={
                "organization_name": "HERA Platform",
                "organization_code": "PLATFORM",
            },
        )
    return organization


def organization_shadow_entity(organization: Organization):
    """The ORGANIZATION entity representing the tenant inside itself."""
    return Entity.objects.filter(
        organization=organization,
        entity_type=ORGANIZATION_ENTITY_TYPE,
        entity_code=organization.organization_code,
    ).first()


@transaction.atomic
def provision_organization(
    organization_name: str,
    organization_code: str,
    default_currency: str = None,
    timezone: str = None,
    created_by=None,
) -> Organization:
    """
    Create an organization and its ORGANIZATION shadow entity.

    Args:
        organization_name: Display name
        organization_code: Unique short code
        default_currency: ISO 4217 code for transactions that name none
        timezone: IANA zone for the business day (daily posting)
        created_by: Actor id recorded on the shadow entity
    """
    org_settings = {}
    if default_currency:
        org_settings["default_currency"] = default_currency.upper()
    if timezone:
        org_settings["timezone"] = timezone

    with bootstrap_writes_allowed():
        organization = Organization.objects.create(
            organization_name=organization_name,
            organization_code=organization_code,
            settings=org_settings,
        )
        Entity.objects.create(
            organization=organization,
            entity_type=ORGANIZATION_ENTITY_TYPE,
            entity_name=organization_name,
            entity_code=organization_code,
            smart_code=ORGANIZATION_SMART_CODE,
            created_by=created_by,
        )

    logger.info(
        "Provisioned organization %s", organization_code,
        extra={"organization_id": str(organization.id)},
    )
    return organization


@transaction.atomic
def create_user_entity(user_name: str, email: str = None, user_id=None) -> Entity:
    """Create a USER entity in the platform organization."""
    platform = ensure_platform_organization()
    fields = {
        "organization": platform,
        "entity_type": USER_ENTITY_TYPE,
        "entity_name": user_name,
        "entity_code": email or None,
        "smart_code": USER_SMART_CODE,
        "metadata": {"email": email} if email else {},
    }
    if user_id is not None:
        fields["id"] = user_id
    with bootstrap_writes_allowed():
        return Entity.objects.create(**fields)


@transaction.atomic
def add_member(organization: Organization, user_entity: Entity, role: str = "member") -> Relationship:
    """
    Grant a USER entity membership in an organization.

    Idempotent: an existing active membership is returned unchanged.
    """
    shadow = organization_shadow_entity(organization)
    if shadow is None:
        raise ValueError(f"Organization {organization.organization_code} has no shadow entity.")

    existing = Relationship.objects.filter(
        organization=organization,
        from_entity=user_entity,
        to_entity=shadow,
        relationship_type=Relationship.MEMBER_OF,
        is_active=True,
    ).first()
    if existing:
        return existing

    with bootstrap_writes_allowed():
        membership = Relationship.objects.create(
            organization=organization,
            from_entity=user_entity,
            to_entity=shadow,
            relationship_type=Relationship.MEMBER_OF,
            relationship_data={"role": role},
            smart_code=MEMBERSHIP_SMART_CODE,
            created_by=user_entity.id,
        )

    logger.info(
        "Added member %s to %s", user_entity.id, organization.organization_code,
        extra={"organization_id": str(organization.id), "actor_user_id": str(user_entity.id)},
    )
    return membership
