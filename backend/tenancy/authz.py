# tenancy/authz.py
"""
Actor resolution for the stores.

Provides:
- ActorContext: Immutable context for the current call
- resolve_actor: Load and check organization + actor membership
- actor_or_failure: resolve_actor for entry points that return CommandResult

Every store entry point receives (actor_user_id, organization_id) explicitly
and resolves them here before touching storage. An actor is a USER entity
(normally in the platform organization) with an active MEMBER_OF edge
inside the target organization.

Unknown organization, inactive organization and missing membership are all
reported as NOT_FOUND so callers cannot discover other tenants.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from universal.conf import hera_setting
from universal.models import Organization, Relationship
from universal.results import CommandResult, ErrorCode


logger = logging.getLogger(__name__)


class ActorResolutionError(Exception):
    """Raised when an actor cannot act inside an organization."""

    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(message)


@dataclass(frozen=True)
class ActorContext:
    """
    Immutable context for the current actor (user entity + organization).

    Attributes:
        actor_user_id: The USER entity id performing the call
        organization: The organization (tenant) the call is scoped to
        membership: The active MEMBER_OF relationship, None for the system actor
            or when membership checks are disabled
    """
    actor_user_id: uuid.UUID
    organization: Organization
    membership: Optional[Relationship] = None

    @property
    def organization_id(self) -> uuid.UUID:
        return self.organization.id

    @property
    def is_system(self) -> bool:
        return _system_actor_id() == self.actor_user_id


def parse_uuid(value, label: str) -> uuid.UUID:
    """Parse a UUID argument or raise ActorResolutionError(VALIDATION_ERROR)."""
    if isinstance(value, uuid.UUID):
        return value
    if value is None or value == "":
        raise ActorResolutionError(ErrorCode.VALIDATION_ERROR, f"{label} is required.")
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ActorResolutionError(ErrorCode.VALIDATION_ERROR, f"{label} must be a UUID.")


def _system_actor_id() -> Optional[uuid.UUID]:
    configured = hera_setting("SYSTEM_ACTOR_ID")
    if not configured:
        return None
    return uuid.UUID(str(configured))


def resolve_actor(actor_user_id, organization_id) -> ActorContext:
    """
    Build the ActorContext for a store call.

    Membership is loaded fresh on every call so that a revoked MEMBER_OF
    edge takes effect immediately.

    Raises:
        ActorResolutionError: VALIDATION_ERROR for a missing/malformed id,
            NOT_FOUND for an unknown/inactive organization or a non-member.
    """
    actor_id = parse_uuid(actor_user_id, "actor_user_id")
    org_id = parse_uuid(organization_id, "organization_id")

    try:
        organization = Organization.objects.get(pk=org_id)
    except Organization.DoesNotExist:
        raise ActorResolutionError(ErrorCode.NOT_FOUND, "Organization not found.")

    if not organization.is_active:
        raise ActorResolutionError(ErrorCode.NOT_FOUND, "Organization not found.")

    if actor_id == _system_actor_id() or not hera_setting("REQUIRE_MEMBERSHIP"):
        return ActorContext(actor_user_id=actor_id, organization=organization)

    membership = (
        Relationship.objects.filter(
            organization=organization,
            from_entity_id=actor_id,
            from_entity__status="active",
            relationship_type=Relationship.MEMBER_OF,
            is_active=True,
        )
        .order_by("created_at")
        .first()
    )
    if membership is None:
        logger.info(
            "Actor %s rejected: no active membership in %s", actor_id, org_id,
            extra={"organization_id": str(org_id), "actor_user_id": str(actor_id)},
        )
        raise ActorResolutionError(ErrorCode.NOT_FOUND, "Organization not found.")

    return ActorContext(actor_user_id=actor_id, organization=organization, membership=membership)


def actor_or_failure(actor_user_id, organization_id):
    """
    Resolve an actor for a CommandResult-returning entry point.

    Returns:
        (ActorContext, None) on success
        (None, CommandResult) describing the failure otherwise
    """
    try:
        return resolve_actor(actor_user_id, organization_id), None
    except ActorResolutionError as exc:
        return None, CommandResult.fail(exc.code, str(exc))
