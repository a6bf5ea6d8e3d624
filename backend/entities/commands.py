# entities/commands.py
"""
Entity / dynamic-field store.

Commands are the single source of truth for entity writes. They:
1. Resolve the actor and organization (tenancy/authz.py)
2. Validate every smart code, field value and relationship target
3. Write the entity, its dynamic fields and its relationships in one
   atomic block
4. Return a CommandResult (never raise for business failures)

Validation happens entirely before the first write, so a rejected call
leaves no trace.

Payload formats:
    entity = {"entity_type": "customer", "entity_name": "Jane",
              "smart_code": "HERA.SALON.CUSTOMER.ENTITY.REGULAR.V1"}

    dynamic_fields = {
        "phone": {"value": "+971500000000", "type": "text",
                  "smart_code": "HERA.SALON.CUSTOMER.DYN.PHONE.V1"},
    }

    relationships = {"HAS_TIER": [tier_entity_id]}
    options = {"relationship_smart_code_map": {"HAS_TIER": "HERA.SALON.CUSTOMER.REL.TIER.V1"}}

Usage:
    result = entity_crud("CREATE", actor_user_id, organization_id,
                         entity=entity, dynamic_fields=dynamic_fields)
    if result.success:
        entity_id = result.data["entity_id"]
"""

import logging
from collections import namedtuple
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.db.models import Prefetch
from django.utils.dateparse import parse_date, parse_datetime

from entities.policies import can_hard_delete_entity, can_update_entity
from entities.serializers import serialize_dynamic_field, serialize_entity
from ops.metrics import track_command
from relationships.commands import is_exclusive, replace_edges, serialize_relationship, upsert_edge
from tenancy.authz import actor_or_failure
from tenancy.policies import get_scoped, scoped
from universal import smart_codes
from universal.models import DynamicField, Entity, Relationship
from universal.results import CommandResult, ErrorCode, smart_code_failure
from universal.write_barrier import store_writes_allowed


logger = logging.getLogger(__name__)


ENTITY_ACTIONS = ("CREATE", "READ", "UPDATE", "DELETE")
RELATIONSHIP_MODES = ("UPSERT", "REPLACE")

DEFAULT_OPTIONS = {
    "include_dynamic": True,
    "include_relationships": False,
    "relationships_mode": "UPSERT",
    "relationship_smart_code_map": {},
    "soft_delete": True,
    "include_archived": False,
    "field_filters": {},
    "limit": 100,
    "offset": 0,
}
MAX_LIMIT = 1000

UPDATABLE_FIELDS = {"entity_name", "entity_code", "smart_code", "status", "metadata"}
IMMUTABLE_FIELDS = {"entity_type", "organization_id", "created_by", "created_at"}

FieldSpec = namedtuple("FieldSpec", ["name", "field_type", "value", "smart_code"])
RelationshipSpec = namedtuple("RelationshipSpec", ["relationship_type", "smart_code", "targets"])


# =============================================================================
# Validation helpers (no writes)
# =============================================================================

def _options(options) -> dict:
    merged = {**DEFAULT_OPTIONS, **(options or {})}
    merged["relationships_mode"] = str(merged["relationships_mode"] or "UPSERT").upper()
    return merged


def infer_field_type(value) -> str:
    if isinstance(value, bool):
        return DynamicField.FieldType.BOOLEAN
    if isinstance(value, (int, float, Decimal)):
        return DynamicField.FieldType.NUMBER
    if isinstance(value, (dict, list)):
        return DynamicField.FieldType.JSON
    if isinstance(value, (date, datetime)):
        return DynamicField.FieldType.DATE
    return DynamicField.FieldType.TEXT


def coerce_field_value(field_type: str, value):
    """
    Convert a payload value to the Python value stored in the typed column.

    Raises:
        ValueError: value does not fit the field type
    """
    if field_type == DynamicField.FieldType.TEXT:
        return value if isinstance(value, str) else str(value)

    if field_type == DynamicField.FieldType.NUMBER:
        if isinstance(value, bool):
            raise ValueError("expected a number, got a boolean")
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"expected a number, got {value!r}")
        if not number.is_finite():
            raise ValueError("number must be finite")
        return number

    if field_type == DynamicField.FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise ValueError(f"expected a boolean, got {value!r}")

    if field_type == DynamicField.FieldType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            parsed = parse_date(value)
            if parsed is None:
                parsed_dt = parse_datetime(value)
                parsed = parsed_dt.date() if parsed_dt else None
            if parsed is not None:
                return parsed
        raise ValueError(f"expected an ISO date, got {value!r}")

    if field_type == DynamicField.FieldType.JSON:
        return value

    raise ValueError(f"unknown field type {field_type!r}")


def prepare_dynamic_fields(dynamic_fields):
    """
    Validate a dynamic-field payload.

    Returns:
        (list[FieldSpec], None) or (None, CommandResult failure)
    """
    if not dynamic_fields:
        return [], None
    if not isinstance(dynamic_fields, dict):
        return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "dynamic_fields must be an object.")

    specs = []
    for name, spec in dynamic_fields.items():
        if not name or not str(name).strip():
            return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "Dynamic field names must be non-empty.")
        if not isinstance(spec, dict):
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"Dynamic field '{name}' must be an object with value, type and smart_code.",
            )

        validation = smart_codes.validate(spec.get("smart_code"))
        if not validation.valid:
            return None, smart_code_failure(f"dynamic field '{name}'", validation)

        value = spec.get("value")
        if value is None:
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"Dynamic field '{name}' has no value.",
                details={"field": name},
            )

        field_type = (spec.get("type") or infer_field_type(value)).lower()
        if field_type not in DynamicField.VALUE_COLUMNS:
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"Dynamic field '{name}' has unknown type '{field_type}'.",
                details={"field": name, "allowed": sorted(DynamicField.VALUE_COLUMNS)},
            )

        try:
            coerced = coerce_field_value(field_type, value)
        except ValueError as exc:
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"Dynamic field '{name}': {exc}.",
                details={"field": name, "type": field_type},
            )

        specs.append(FieldSpec(str(name).strip(), field_type, coerced, validation.normalized))
    return specs, None


def prepare_relationships(actor, relationships, options):
    """
    Validate a relationship payload and resolve every target.

    Returns:
        (list[RelationshipSpec], None) or (None, CommandResult failure)
    """
    if not relationships:
        return [], None
    if not isinstance(relationships, dict):
        return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "relationships must be an object.")

    smart_code_map = options.get("relationship_smart_code_map") or {}
    specs = []
    for rel_type, target_ids in relationships.items():
        rel_type = str(rel_type).strip().upper()
        if not rel_type:
            return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "Relationship types must be non-empty.")
        if rel_type == Relationship.HAS_STATUS:
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                "HAS_STATUS edges are written by SET_STATUS only.",
            )
        if not isinstance(target_ids, (list, tuple)):
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"relationships.{rel_type} must be a list of entity ids.",
            )
        if is_exclusive(rel_type) and len(target_ids) > 1:
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"{rel_type} is exclusive and accepts a single target.",
            )

        code = smart_code_map.get(rel_type) or smart_code_map.get(rel_type.lower())
        validation = smart_codes.validate(code)
        if not validation.valid:
            return None, smart_code_failure(f"relationship '{rel_type}'", validation)

        targets = []
        for target_id in target_ids:
            target = get_scoped(Entity, actor, target_id)
            if target is None:
                return None, CommandResult.fail(
                    ErrorCode.NOT_FOUND,
                    f"Relationship target for {rel_type} not found.",
                    details={"relationship_type": rel_type, "entity_id": str(target_id)},
                )
            targets.append(target)
        specs.append(RelationshipSpec(rel_type, validation.normalized, targets))
    return specs, None


def _validate_limit(options):
    try:
        limit = int(options["limit"])
        offset = int(options["offset"])
    except (TypeError, ValueError):
        return None, None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "limit and offset must be integers.")
    if not 1 <= limit <= MAX_LIMIT or offset < 0:
        return None, None, CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"limit must be 1-{MAX_LIMIT} and offset must be non-negative.",
        )
    return limit, offset, None


# =============================================================================
# Write helpers (caller holds an atomic block)
# =============================================================================

def _write_fields(actor, entity, specs):
    for spec in specs:
        values = {column: None for column in DynamicField.VALUE_COLUMNS.values()}
        values[DynamicField.VALUE_COLUMNS[spec.field_type]] = spec.value
        DynamicField.objects.update_or_create(
            entity=entity,
            field_name=spec.name,
            defaults={
                "organization": actor.organization,
                "field_type": spec.field_type,
                "smart_code": spec.smart_code,
                **values,
            },
        )


def _write_relationships(actor, entity, specs, mode):
    for spec in specs:
        if mode == "REPLACE":
            replace_edges(actor, entity, spec.relationship_type, spec.targets, spec.smart_code)
        else:
            for target in spec.targets:
                upsert_edge(actor, entity, target, spec.relationship_type, smart_code=spec.smart_code)


# =============================================================================
# Read helpers
# =============================================================================

def _with_related(queryset, actor, options):
    if options["include_dynamic"]:
        queryset = queryset.prefetch_related("dynamic_fields")
    if options["include_relationships"]:
        queryset = queryset.prefetch_related(Prefetch(
            "outgoing_relationships",
            queryset=Relationship.objects.filter(organization=actor.organization, is_active=True)
            .order_by("created_at", "id"),
            to_attr="active_relationships",
        ))
    return queryset


def _entity_payload(actor, entity, options) -> dict:
    data = {"entity_id": str(entity.id), "entity": serialize_entity(entity)}
    if options["include_dynamic"]:
        data["dynamic_data"] = [serialize_dynamic_field(f) for f in entity.dynamic_fields.all()]
    if options["include_relationships"]:
        edges = getattr(entity, "active_relationships", None)
        if edges is None:
            edges = entity.outgoing_relationships.filter(
                organization=actor.organization, is_active=True,
            ).order_by("created_at", "id")
        data["relationships"] = [serialize_relationship(rel) for rel in edges]
    return data


def _reload(actor, entity_id, options):
    queryset = _with_related(Entity.objects.all(), actor, options)
    return get_scoped(Entity, actor, entity_id, queryset=queryset)


def _entity_id(entity: dict):
    return entity.get("entity_id") or entity.get("id")


# =============================================================================
# Commands
# =============================================================================

def create_entity(actor, entity: dict, dynamic_fields=None, relationships=None, options=None) -> CommandResult:
    """
    Create an entity with its dynamic fields and relationships as one unit.

    Returns:
        CommandResult with {"entity_id", "entity", "dynamic_data"?, "relationships"?}
    """
    options = _options(options)

    entity_type = str(entity.get("entity_type") or "").strip()
    if not entity_type:
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "entity.entity_type is required.")

    validation = smart_codes.validate(entity.get("smart_code"))
    if not validation.valid:
        return smart_code_failure("entity", validation)

    status = entity.get("status") or Entity.Status.ACTIVE
    if status not in Entity.Status.values:
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown entity status '{status}'.")

    metadata = entity.get("metadata") or {}
    if not isinstance(metadata, dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "entity.metadata must be an object.")

    field_specs, failure = prepare_dynamic_fields(dynamic_fields)
    if failure:
        return failure
    rel_specs, failure = prepare_relationships(actor, relationships, options)
    if failure:
        return failure

    entity_code = entity.get("entity_code") or None
    try:
        with transaction.atomic(), store_writes_allowed():
            row = Entity.objects.create(
                organization=actor.organization,
                entity_type=entity_type,
                entity_name=entity.get("entity_name") or "",
                entity_code=entity_code,
                smart_code=validation.normalized,
                status=status,
                metadata=metadata,
                created_by=actor.actor_user_id,
                updated_by=actor.actor_user_id,
            )
            _write_fields(actor, row, field_specs)
            _write_relationships(actor, row, rel_specs, options["relationships_mode"])
    except IntegrityError:
        return CommandResult.fail(
            ErrorCode.DUPLICATE,
            f"An entity of type {entity_type.upper()} with code '{entity_code}' already exists.",
            details={"entity_type": entity_type.upper(), "entity_code": entity_code},
        )

    logger.info(
        "Entity created: %s %s", row.entity_type, row.id,
        extra={"organization_id": str(actor.organization_id), "entity_id": str(row.id),
               "smart_code": row.smart_code, "fields": len(field_specs)},
    )
    return CommandResult.ok(_entity_payload(actor, _reload(actor, row.id, options), options))


def read_entities(actor, entity: dict, options=None) -> CommandResult:
    """
    Read one entity by id, or query by type and filters.

    By id: {"entity_id", "entity", ...}. Query: {"items": [...], "total"}.
    Archived entities are excluded from queries unless include_archived is
    set or a status filter is given.
    """
    options = _options(options)

    entity_id = _entity_id(entity)
    if entity_id:
        row = _reload(actor, entity_id, options)
        if row is None:
            return CommandResult.fail(ErrorCode.NOT_FOUND, "Entity not found.")
        return CommandResult.ok(_entity_payload(actor, row, options))

    limit, offset, failure = _validate_limit(options)
    if failure:
        return failure

    qs = scoped(Entity.objects.all(), actor)
    if entity.get("entity_type"):
        qs = qs.filter(entity_type=str(entity["entity_type"]).strip().upper())
    if entity.get("entity_code"):
        qs = qs.filter(entity_code=entity["entity_code"])
    if entity.get("smart_code"):
        qs = qs.filter(smart_code=entity["smart_code"])
    if entity.get("entity_name"):
        qs = qs.filter(entity_name__icontains=entity["entity_name"])
    if entity.get("status"):
        qs = qs.filter(status=entity["status"])
    elif not options["include_archived"]:
        qs = qs.exclude(status=Entity.Status.ARCHIVED)

    field_filters = options.get("field_filters") or {}
    if not isinstance(field_filters, dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "field_filters must be an object.")
    for name, value in field_filters.items():
        field_type = infer_field_type(value)
        try:
            coerced = coerce_field_value(field_type, value)
        except ValueError as exc:
            return CommandResult.fail(ErrorCode.VALIDATION_ERROR, f"field_filters.{name}: {exc}.")
        column = DynamicField.VALUE_COLUMNS[field_type]
        qs = qs.filter(**{
            "dynamic_fields__field_name": name,
            f"dynamic_fields__{column}": coerced,
        })

    qs = qs.distinct()
    total = qs.count()
    rows = _with_related(qs.order_by("created_at", "id"), actor, options)[offset:offset + limit]
    items = [_entity_payload(actor, row, options) for row in rows]
    return CommandResult.ok({"items": items, "total": total, "limit": limit, "offset": offset})


def update_entity(actor, entity: dict, dynamic_fields=None, relationships=None, options=None) -> CommandResult:
    """
    Partially update an entity.

    Only listed columns and fields change. relationships_mode UPSERT merges
    edges; REPLACE makes the listed types match exactly and leaves other
    types alone.
    """
    options = _options(options)

    entity_id = _entity_id(entity)
    if not entity_id:
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "entity.entity_id is required for UPDATE.")

    changes = {k: v for k, v in entity.items() if k in UPDATABLE_FIELDS}
    unknown = set(entity) - UPDATABLE_FIELDS - IMMUTABLE_FIELDS - {"entity_id", "id"}
    if unknown:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown entity field(s): {', '.join(sorted(unknown))}.",
        )

    if "smart_code" in changes:
        validation = smart_codes.validate(changes["smart_code"])
        if not validation.valid:
            return smart_code_failure("entity", validation)
        changes["smart_code"] = validation.normalized
    if "status" in changes and changes["status"] not in Entity.Status.values:
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown entity status '{changes['status']}'.")
    if "metadata" in changes and not isinstance(changes["metadata"], dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "entity.metadata must be an object.")
    if "entity_code" in changes:
        changes["entity_code"] = changes["entity_code"] or None

    field_specs, failure = prepare_dynamic_fields(dynamic_fields)
    if failure:
        return failure
    rel_specs, failure = prepare_relationships(actor, relationships, options)
    if failure:
        return failure
    if options["relationships_mode"] not in RELATIONSHIP_MODES:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"relationships_mode must be one of {', '.join(RELATIONSHIP_MODES)}.",
        )

    try:
        with transaction.atomic():
            row = get_scoped(Entity, actor, entity_id, for_update=True)
            if row is None:
                return CommandResult.fail(ErrorCode.NOT_FOUND, "Entity not found.")

            for field in IMMUTABLE_FIELDS & set(entity):
                current = getattr(row, field)
                requested = entity[field]
                if field == "entity_type":
                    requested = str(requested or "").strip().upper()
                if str(current) != str(requested):
                    return CommandResult.fail(
                        ErrorCode.IMMUTABLE_FIELD,
                        f"Entity field '{field}' cannot be changed.",
                        details={"field": field},
                    )

            allowed, reason = can_update_entity(actor, row, {**changes, **{f.name: f for f in field_specs}})
            if not allowed:
                return CommandResult.fail(ErrorCode.INVALID_STATUS, reason)

            with store_writes_allowed():
                if changes:
                    metadata = changes.pop("metadata", None)
                    if metadata is not None:
                        row.metadata = {**(row.metadata or {}), **metadata}
                    for field, value in changes.items():
                        setattr(row, field, value)
                    row.updated_by = actor.actor_user_id
                    row.save()
                _write_fields(actor, row, field_specs)
                _write_relationships(actor, row, rel_specs, options["relationships_mode"])
    except IntegrityError:
        return CommandResult.fail(
            ErrorCode.DUPLICATE,
            "Another entity of this type already uses that entity_code.",
            details={"entity_code": changes.get("entity_code")},
        )

    logger.info(
        "Entity updated: %s", row.id,
        extra={"organization_id": str(actor.organization_id), "entity_id": str(row.id),
               "fields": len(field_specs), "relationship_types": len(rel_specs)},
    )
    return CommandResult.ok(_entity_payload(actor, _reload(actor, row.id, options), options))


@transaction.atomic
def delete_entity(actor, entity: dict, options=None) -> CommandResult:
    """
    Archive (default) or hard-delete an entity.

    Hard delete requires options {"soft_delete": False} and is rejected with
    ENTITY_REFERENCED while transactions or relationships (open or closed) address
    the entity.
    """
    options = _options(options)

    row = get_scoped(Entity, actor, _entity_id(entity), for_update=True)
    if row is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Entity not found.")

    if options["soft_delete"]:
        if row.status != Entity.Status.ARCHIVED:
            row.status = Entity.Status.ARCHIVED
            row.updated_by = actor.actor_user_id
            with store_writes_allowed():
                row.save(update_fields=["status", "updated_by", "updated_at"])
        logger.info(
            "Entity archived: %s", row.id,
            extra={"organization_id": str(actor.organization_id), "entity_id": str(row.id)},
        )
        return CommandResult.ok({"entity_id": str(row.id), "deleted": False, "archived": True})

    allowed, reason = can_hard_delete_entity(actor, row)
    if not allowed:
        return CommandResult.fail(ErrorCode.ENTITY_REFERENCED, reason, details={"entity_id": str(row.id)})

    entity_id = str(row.id)
    with store_writes_allowed():
        row.delete()

    logger.info(
        "Entity deleted: %s", entity_id,
        extra={"organization_id": str(actor.organization_id), "entity_id": entity_id},
    )
    return CommandResult.ok({"entity_id": entity_id, "deleted": True, "archived": False})


# =============================================================================
# Entry point
# =============================================================================

@track_command("entities", ENTITY_ACTIONS)
def entity_crud(
    action: str,
    actor_user_id,
    organization_id,
    entity: dict = None,
    dynamic_fields: dict = None,
    relationships: dict = None,
    options: dict = None,
) -> CommandResult:
    """
    Actor-scoped entry point for entity CRUD.

    Args:
        action: CREATE | READ | UPDATE | DELETE
        actor_user_id: USER entity id of the caller
        organization_id: Target organization
        entity: Entity columns (entity_id for READ/UPDATE/DELETE)
        dynamic_fields: {name: {"value", "type", "smart_code"}}
        relationships: {TYPE: [to_entity_id, ...]}
        options: include_dynamic, include_relationships, relationships_mode,
            relationship_smart_code_map, soft_delete, include_archived,
            field_filters, limit, offset
    """
    action = (action or "").upper()
    if action not in ENTITY_ACTIONS:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown action {action!r}. Expected one of {', '.join(ENTITY_ACTIONS)}.",
        )

    actor, failure = actor_or_failure(actor_user_id, organization_id)
    if failure:
        return failure

    entity = entity or {}
    if not isinstance(entity, dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "entity must be an object.")
    if options is not None and not isinstance(options, dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "options must be an object.")

    if _options(options)["relationships_mode"] not in RELATIONSHIP_MODES:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"relationships_mode must be one of {', '.join(RELATIONSHIP_MODES)}.",
        )

    if action == "CREATE":
        return create_entity(actor, entity, dynamic_fields, relationships, options)
    if action == "READ":
        return read_entities(actor, entity, options)
    if action == "UPDATE":
        return update_entity(actor, entity, dynamic_fields, relationships, options)
    return delete_entity(actor, entity, options)
