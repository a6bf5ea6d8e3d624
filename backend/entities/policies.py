# entities/policies.py
"""
Business policy functions for entity operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action - that's the command's job.

Policies return (bool, str) tuples:

    allowed, reason = can_hard_delete_entity(actor, entity)
    if not allowed:
        return CommandResult.fail(ErrorCode.ENTITY_REFERENCED, reason)
"""

from django.db.models import Q

from universal.models import Relationship, Transaction, TransactionLine


def can_hard_delete_entity(actor, entity) -> tuple[bool, str]:
    """
    Check if an entity can be physically removed.

    An entity addressed by any transaction line, any transaction header
    (source or target) or any relationship in either direction must be
    archived instead. Closed edges count: they are the status history.
    """
    if TransactionLine.objects.filter(organization=actor.organization, line_entity=entity).exists():
        return False, "Entity is referenced by transaction lines. Archive it instead."

    if Transaction.objects.filter(
        Q(source_entity=entity) | Q(target_entity=entity),
        organization=actor.organization,
    ).exists():
        return False, "Entity is referenced by transactions. Archive it instead."

    edges = Relationship.objects.filter(Q(from_entity=entity) | Q(to_entity=entity))
    if edges.filter(is_active=True).exists():
        return False, "Entity has active relationships. Close them or archive the entity instead."
    if edges.exists():
        return False, "Entity is part of relationship history. Archive it instead."

    return True, ""


def can_update_entity(actor, entity, changes: dict) -> tuple[bool, str]:
    """Archived entities may only be restored (status back to active)."""
    if entity.status == entity.Status.ARCHIVED and set(changes) - {"status"}:
        return False, "Archived entities cannot be modified. Restore the entity first."
    return True, ""
