# relationships/commands.py
"""
Relationship engine.

Relationships are typed, directed edges between entities. They carry
status, hierarchy, membership and role assignment. An edge is never
updated to point somewhere else and never deleted: it is closed
(is_active=False) and a new edge is opened. The closed edges are the
audit trail.

Status workflow
===============
An entity has no status column for workflow states. Its current status
is its one active HAS_STATUS edge to a STATUS marker entity:

    set_status(actor, appointment_id, "CONFIRMED")

    1. lock the entity and its active HAS_STATUS edge
    2. close that edge (ended_at/ended_by/end_reason in relationship_data)
    3. open a new HAS_STATUS edge to the CONFIRMED marker

Steps 1-3 run in one atomic block and are retried as a whole on
transient contention. The one-active-status unique constraint makes a
half-applied transition impossible to commit.

Usage:
    result = upsert_relationship(actor, from_id, to_id, "PARENT_OF",
                                 smart_code="HERA.SALON.CATEGORY.REL.PARENT.V1")
    result = set_status(actor, entity_id, "CONFIRMED")
    result = status_history(actor, entity_id)
"""

import logging

from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from ops.metrics import track_command
from tenancy.authz import actor_or_failure
from tenancy.policies import as_uuid, get_scoped, scoped
from universal import smart_codes
from universal.conf import hera_setting
from universal.models import PLATFORM_ORGANIZATION_ID, Entity, Relationship
from universal.results import CommandResult, ErrorCode, smart_code_failure
from universal.write_barrier import store_writes_allowed


logger = logging.getLogger(__name__)


STATUS_ENTITY_TYPE = "STATUS"
STATUS_MARKER_SMART_CODE = "HERA.UNIVERSAL.WORKFLOW.STATUS.MARKER.V1"
STATUS_ASSIGN_SMART_CODE = "HERA.UNIVERSAL.WORKFLOW.STATUS.ASSIGN.V1"

REASSIGNABLE_TYPES = {
    Relationship.PARENT_OF,
    Relationship.MEMBER_OF,
    Relationship.HAS_ROLE,
}


def serialize_relationship(rel: Relationship) -> dict:
    return {
        "id": str(rel.id),
        "organization_id": str(rel.organization_id),
        "from_entity_id": str(rel.from_entity_id),
        "to_entity_id": str(rel.to_entity_id),
        "relationship_type": rel.relationship_type,
        "relationship_data": rel.relationship_data,
        "is_active": rel.is_active,
        "smart_code": rel.smart_code,
        "created_by": str(rel.created_by) if rel.created_by else None,
        "created_at": rel.created_at.isoformat() if rel.created_at else None,
        "updated_at": rel.updated_at.isoformat() if rel.updated_at else None,
    }


def is_exclusive(relationship_type: str) -> bool:
    return relationship_type.upper() in {t.upper() for t in hera_setting("EXCLUSIVE_RELATIONSHIP_TYPES")}


# =============================================================================
# Internal helpers (caller holds an atomic block and has validated input)
# =============================================================================

def _resolve_endpoint(actor, entity_id, allow_platform=False):
    """Fetch an edge endpoint inside the actor's organization."""
    entity = get_scoped(Entity, actor, entity_id)
    if entity is None and allow_platform:
        pk = as_uuid(entity_id)
        if pk is not None:
            entity = Entity.objects.filter(pk=pk, organization_id=PLATFORM_ORGANIZATION_ID).first()
    return entity


def _close(rel: Relationship, actor, reason=None) -> Relationship:
    rel.is_active = False
    data = dict(rel.relationship_data or {})
    data["ended_at"] = timezone.now().isoformat()
    data["ended_by"] = str(actor.actor_user_id)
    if reason:
        data["end_reason"] = reason
    rel.relationship_data = data
    with store_writes_allowed():
        rel.save(update_fields=["is_active", "relationship_data", "updated_at"])
    return rel


def _open(actor, from_entity, to_entity, relationship_type, relationship_data, smart_code) -> Relationship:
    data = dict(relationship_data or {})
    data.setdefault("started_at", timezone.now().isoformat())
    with store_writes_allowed():
        return Relationship.objects.create(
            organization=actor.organization,
            from_entity=from_entity,
            to_entity=to_entity,
            relationship_type=relationship_type,
            relationship_data=data,
            smart_code=smart_code,
            created_by=actor.actor_user_id,
        )


def _active_edges(actor, from_entity, relationship_type, for_update=True):
    qs = scoped(Relationship.objects.all(), actor).filter(
        from_entity=from_entity,
        relationship_type=relationship_type,
        is_active=True,
    )
    if for_update:
        qs = qs.select_for_update()
    return qs


def upsert_edge(actor, from_entity, to_entity, relationship_type, relationship_data=None,
                smart_code=None, exclusive=None):
    """
    Insert or merge one active edge.

    Returns (relationship, created). Exclusive types close every other
    active edge of the type from the same source first.
    """
    relationship_type = relationship_type.strip().upper()
    if exclusive is None:
        exclusive = is_exclusive(relationship_type)

    active = list(_active_edges(actor, from_entity, relationship_type))
    same = next((rel for rel in active if rel.to_entity_id == to_entity.id), None)

    if exclusive:
        for rel in active:
            if rel is not same:
                _close(rel, actor, reason="replaced")

    if same is not None:
        if relationship_data:
            same.relationship_data = {**(same.relationship_data or {}), **relationship_data}
            with store_writes_allowed():
                same.save(update_fields=["relationship_data", "updated_at"])
        return same, False

    return _open(actor, from_entity, to_entity, relationship_type, relationship_data, smart_code), True


def replace_edges(actor, from_entity, relationship_type, to_entities, smart_code):
    """
    Make the active edges of one type from a source exactly `to_entities`.

    Other relationship types are never touched.
    """
    relationship_type = relationship_type.strip().upper()
    wanted = {entity.id for entity in to_entities}
    for rel in _active_edges(actor, from_entity, relationship_type):
        if rel.to_entity_id not in wanted:
            _close(rel, actor, reason="replaced")
    return [
        upsert_edge(actor, from_entity, entity, relationship_type, smart_code=smart_code, exclusive=False)[0]
        for entity in to_entities
    ]


# =============================================================================
# Relationship commands
# =============================================================================

@transaction.atomic
def upsert_relationship(
    actor,
    from_entity_id,
    to_entity_id,
    relationship_type: str,
    relationship_data: dict = None,
    smart_code: str = None,
    exclusive: bool = None,
) -> CommandResult:
    """
    Create an active edge, or merge data into the existing active edge.

    Args:
        actor: ActorContext
        from_entity_id: Source entity (organization or platform USER entity)
        to_entity_id: Target entity in the actor's organization
        relationship_type: Open vocabulary, stored uppercase
        relationship_data: JSON payload merged on re-upsert
        smart_code: Required smart code of the edge
        exclusive: Close other active edges of this type from the source.
            Defaults to the EXCLUSIVE_RELATIONSHIP_TYPES setting.

    Returns:
        CommandResult with {"relationship_id", "created", "relationship"}
    """
    validation = smart_codes.validate(smart_code)
    if not validation.valid:
        return smart_code_failure("relationship", validation)

    if not relationship_type or not str(relationship_type).strip():
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "relationship_type is required.")
    if str(relationship_type).strip().upper() == Relationship.HAS_STATUS:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            "HAS_STATUS edges are written by SET_STATUS only.",
        )

    if relationship_data is not None and not isinstance(relationship_data, dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "relationship_data must be an object.")

    from_entity = _resolve_endpoint(actor, from_entity_id, allow_platform=True)
    if from_entity is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Source entity not found.")

    to_entity = _resolve_endpoint(actor, to_entity_id)
    if to_entity is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Target entity not found.")

    try:
        with transaction.atomic():
            rel, created = upsert_edge(
                actor, from_entity, to_entity, str(relationship_type),
                relationship_data=relationship_data,
                smart_code=validation.normalized,
                exclusive=exclusive,
            )
    except IntegrityError:
        return CommandResult.fail(
            ErrorCode.DUPLICATE,
            "A concurrent write created the same active relationship.",
        )

    if created:
        logger.info(
            "Relationship %s opened: %s -> %s", rel.relationship_type, from_entity.id, to_entity.id,
            extra={"organization_id": str(actor.organization_id), "relationship_id": str(rel.id),
                   "smart_code": rel.smart_code},
        )

    return CommandResult.ok({
        "relationship_id": str(rel.id),
        "created": created,
        "relationship": serialize_relationship(rel),
    })


def list_relationships(
    actor,
    from_entity_id=None,
    to_entity_id=None,
    relationship_type: str = None,
    active_only: bool = True,
) -> CommandResult:
    """List edges in the actor's organization, oldest first."""
    qs = scoped(Relationship.objects.all(), actor)

    for label, value, field in (
        ("from_entity_id", from_entity_id, "from_entity_id"),
        ("to_entity_id", to_entity_id, "to_entity_id"),
    ):
        if value is not None:
            pk = as_uuid(value)
            if pk is None:
                return CommandResult.fail(ErrorCode.VALIDATION_ERROR, f"{label} must be a UUID.")
            qs = qs.filter(**{field: pk})

    if relationship_type:
        qs = qs.filter(relationship_type=relationship_type.strip().upper())
    if active_only:
        qs = qs.filter(is_active=True)

    items = [serialize_relationship(rel) for rel in qs.order_by("created_at", "id")]
    return CommandResult.ok({"items": items, "total": len(items)})


@transaction.atomic
def close_relationship(actor, relationship_id, reason: str = None) -> CommandResult:
    """Close an active edge. Closing an already closed edge is a no-op."""
    rel = get_scoped(Relationship, actor, relationship_id, for_update=True)
    if rel is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Relationship not found.")

    if rel.is_active:
        _close(rel, actor, reason=reason)
        logger.info(
            "Relationship %s closed", rel.id,
            extra={"organization_id": str(actor.organization_id), "relationship_id": str(rel.id)},
        )

    return CommandResult.ok({"relationship_id": str(rel.id), "relationship": serialize_relationship(rel)})


@transaction.atomic
def reassign_relationship(
    actor,
    from_entity_id,
    relationship_type: str,
    to_entity_id,
    smart_code: str,
    relationship_data: dict = None,
    reason: str = None,
) -> CommandResult:
    """
    Move a source's edge of one type to a new target: close old, open new.

    Used for PARENT_OF, MEMBER_OF and HAS_ROLE. Reassigning to the current
    target is a no-op.
    """
    validation = smart_codes.validate(smart_code)
    if not validation.valid:
        return smart_code_failure("relationship", validation)

    relationship_type = (relationship_type or "").strip().upper()
    if relationship_type not in REASSIGNABLE_TYPES:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"relationship_type must be one of {sorted(REASSIGNABLE_TYPES)}.",
        )

    from_entity = _resolve_endpoint(actor, from_entity_id, allow_platform=True)
    if from_entity is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Source entity not found.")
    to_entity = _resolve_endpoint(actor, to_entity_id)
    if to_entity is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Target entity not found.")

    closed = []
    current = None
    for rel in _active_edges(actor, from_entity, relationship_type):
        if rel.to_entity_id == to_entity.id:
            current = rel
        else:
            closed.append(str(_close(rel, actor, reason=reason or "reassigned").id))

    created = current is None
    if created:
        current = _open(actor, from_entity, to_entity, relationship_type, relationship_data, validation.normalized)

    return CommandResult.ok({
        "relationship_id": str(current.id),
        "created": created,
        "closed": closed,
        "relationship": serialize_relationship(current),
    })


# =============================================================================
# Status workflow
# =============================================================================

def _status_marker(actor, status_code: str, status_name: str = None) -> Entity:
    """STATUS marker entity for a code, provisioned on first use."""
    marker = scoped(Entity.objects.all(), actor).filter(
        entity_type=STATUS_ENTITY_TYPE,
        entity_code=status_code,
    ).first()
    if marker is not None:
        return marker
    with store_writes_allowed():
        return Entity.objects.create(
            organization=actor.organization,
            entity_type=STATUS_ENTITY_TYPE,
            entity_code=status_code,
            entity_name=status_name or status_code.replace("_", " ").title(),
            smart_code=STATUS_MARKER_SMART_CODE,
            created_by=actor.actor_user_id,
        )


def _transition(actor, entity_id, status_code, smart_code, reason, status_name):
    entity = get_scoped(Entity, actor, entity_id, for_update=True)
    if entity is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Entity not found.")

    marker = _status_marker(actor, status_code, status_name)
    current = _active_edges(actor, entity, Relationship.HAS_STATUS).select_related("to_entity").first()

    if current is not None and current.to_entity_id == marker.id:
        return CommandResult.ok({
            "entity_id": str(entity.id),
            "status": status_code,
            "changed": False,
            "relationship_id": str(current.id),
        })

    previous = None
    if current is not None:
        previous = current.to_entity.entity_code
        _close(current, actor, reason=reason)

    data = {"status": status_code}
    if previous:
        data["previous_status"] = previous
    if reason:
        data["reason"] = reason
    rel = _open(actor, entity, marker, Relationship.HAS_STATUS, data, smart_code)

    logger.info(
        "Entity %s status %s -> %s", entity.id, previous, status_code,
        extra={"organization_id": str(actor.organization_id), "entity_id": str(entity.id),
               "relationship_id": str(rel.id)},
    )
    return CommandResult.ok({
        "entity_id": str(entity.id),
        "status": status_code,
        "previous_status": previous,
        "changed": True,
        "relationship_id": str(rel.id),
    })


def set_status(
    actor,
    entity_id,
    status_code: str,
    smart_code: str = None,
    reason: str = None,
    status_name: str = None,
) -> CommandResult:
    """
    Move an entity to a workflow status.

    Closes the current HAS_STATUS edge and opens one to the status marker
    in a single atomic block. On OperationalError/IntegrityError the whole
    block is retried up to STATUS_TRANSITION_RETRIES times; if contention
    persists the last error propagates.

    Setting the status the entity already has changes nothing.
    """
    validation = smart_codes.validate(smart_code or STATUS_ASSIGN_SMART_CODE)
    if not validation.valid:
        return smart_code_failure("relationship", validation)

    if not status_code or not str(status_code).strip():
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "status_code is required.")
    status_code = str(status_code).strip().upper()

    attempts = max(1, int(hera_setting("STATUS_TRANSITION_RETRIES")))
    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                return _transition(actor, entity_id, status_code, validation.normalized, reason, status_name)
        except (OperationalError, IntegrityError) as exc:
            if attempt == attempts:
                logger.error(
                    "Status transition for %s failed after %d attempts: %s", entity_id, attempts, exc,
                    extra={"organization_id": str(actor.organization_id)},
                )
                raise
            logger.warning(
                "Status transition for %s hit contention (attempt %d/%d): %s",
                entity_id, attempt, attempts, exc,
                extra={"organization_id": str(actor.organization_id)},
            )


def current_status(actor, entity_id) -> CommandResult:
    entity = get_scoped(Entity, actor, entity_id)
    if entity is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Entity not found.")

    rel = (
        _active_edges(actor, entity, Relationship.HAS_STATUS, for_update=False)
        .select_related("to_entity")
        .first()
    )
    return CommandResult.ok({
        "entity_id": str(entity.id),
        "status": rel.to_entity.entity_code if rel else None,
        "relationship_id": str(rel.id) if rel else None,
        "since": rel.created_at.isoformat() if rel else None,
    })


def status_history(actor, entity_id) -> CommandResult:
    """Every HAS_STATUS edge of an entity, oldest first."""
    entity = get_scoped(Entity, actor, entity_id)
    if entity is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Entity not found.")

    edges = (
        scoped(Relationship.objects.all(), actor)
        .filter(from_entity=entity, relationship_type=Relationship.HAS_STATUS)
        .select_related("to_entity")
        .order_by("created_at", "id")
    )
    items = []
    for rel in edges:
        item = serialize_relationship(rel)
        item["status"] = rel.to_entity.entity_code
        items.append(item)
    return CommandResult.ok({"entity_id": str(entity.id), "items": items, "total": len(items)})


# =============================================================================
# Entry point
# =============================================================================

RELATIONSHIP_ACTIONS = {"UPSERT", "LIST", "CLOSE", "REASSIGN", "SET_STATUS", "GET_STATUS", "STATUS_HISTORY"}


@track_command("relationships", RELATIONSHIP_ACTIONS)
def relationship_crud(action: str, actor_user_id, organization_id, payload: dict = None) -> CommandResult:
    """
    Actor-scoped entry point for relationship operations.

    Args:
        action: UPSERT | LIST | CLOSE | REASSIGN | SET_STATUS | GET_STATUS | STATUS_HISTORY
        actor_user_id: USER entity id of the caller
        organization_id: Target organization
        payload: Action arguments (see the matching function)
    """
    action = (action or "").upper()
    if action not in RELATIONSHIP_ACTIONS:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown action {action!r}. Expected one of {sorted(RELATIONSHIP_ACTIONS)}.",
        )

    actor, failure = actor_or_failure(actor_user_id, organization_id)
    if failure:
        return failure

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "payload must be an object.")

    if action == "UPSERT":
        return upsert_relationship(
            actor,
            payload.get("from_entity_id"),
            payload.get("to_entity_id"),
            payload.get("relationship_type"),
            relationship_data=payload.get("relationship_data"),
            smart_code=payload.get("smart_code"),
            exclusive=payload.get("exclusive"),
        )
    if action == "LIST":
        return list_relationships(
            actor,
            from_entity_id=payload.get("from_entity_id"),
            to_entity_id=payload.get("to_entity_id"),
            relationship_type=payload.get("relationship_type"),
            active_only=payload.get("active_only", True),
        )
    if action == "CLOSE":
        return close_relationship(actor, payload.get("relationship_id"), reason=payload.get("reason"))
    if action == "REASSIGN":
        return reassign_relationship(
            actor,
            payload.get("from_entity_id"),
            payload.get("relationship_type"),
            payload.get("to_entity_id"),
            smart_code=payload.get("smart_code"),
            relationship_data=payload.get("relationship_data"),
            reason=payload.get("reason"),
        )
    if action == "SET_STATUS":
        return set_status(
            actor,
            payload.get("entity_id"),
            payload.get("status_code"),
            smart_code=payload.get("smart_code"),
            reason=payload.get("reason"),
            status_name=payload.get("status_name"),
        )
    if action == "GET_STATUS":
        return current_status(actor, payload.get("entity_id"))
    return status_history(actor, payload.get("entity_id"))
