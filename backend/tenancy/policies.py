# tenancy/policies.py
"""
Tenant boundary policies.

Every read and write in the stores is scoped through these helpers, so a
row belonging to another organization behaves exactly like a row that
does not exist.

Usage:
    entity = get_scoped(Entity, actor, entity_id)
    if entity is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Entity not found.")
"""

import uuid


def check_tenant_boundary(actor, row) -> bool:
    """
    Verify a row belongs to the actor's organization.
    This is the fundamental multi-tenant security check.
    """
    row_org_id = getattr(row, "organization_id", None)
    if row_org_id is None:
        organization = getattr(row, "organization", None)
        row_org_id = getattr(organization, "id", None) if organization else None
    return row_org_id == actor.organization.id


def scoped(queryset, actor):
    """Restrict a queryset to the actor's organization."""
    return queryset.filter(organization=actor.organization)


def as_uuid(value):
    """Parse a UUID, returning None for anything malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def get_scoped(model, actor, pk, queryset=None, for_update=False):
    """
    Fetch one row by primary key inside the actor's organization.

    Returns None when the id is malformed, unknown, or belongs to another
    organization.
    """
    pk = as_uuid(pk)
    if pk is None:
        return None
    qs = scoped(queryset if queryset is not None else model.objects.all(), actor)
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=pk)
    except model.DoesNotExist:
        return None
