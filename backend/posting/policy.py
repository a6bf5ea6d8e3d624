# posting/policy.py
"""
Posting policies.

A posting policy maps each summary category (plus the sales_clearing
debit) to a GL_ACCOUNT entity. It is stored as a POSTING_POLICY entity
whose entity_code is the branch id, or DEFAULT for the whole
organization; every mapping is a text dynamic field holding the account
entity id:

    POSTING_POLICY (entity_code="DEFAULT")
        sales_clearing   -> <GL_ACCOUNT id>
        service_revenue  -> <GL_ACCOUNT id>
        vat_services     -> <GL_ACCOUNT id>
        ...

A missing policy or an unmapped non-zero category stops posting.
Accounts are never guessed.
"""

from dataclasses import dataclass, field

from entities.commands import create_entity, update_entity
from posting.summary import CATEGORIES
from tenancy.policies import as_uuid, scoped
from universal.models import DynamicField, Entity
from universal.results import CommandResult, ErrorCode


POLICY_ENTITY_TYPE = "POSTING_POLICY"
GL_ACCOUNT_ENTITY_TYPE = "GL_ACCOUNT"
DEFAULT_POLICY_CODE = "DEFAULT"

SALES_CLEARING = "sales_clearing"
POLICY_CATEGORIES = (SALES_CLEARING,) + CATEGORIES

POLICY_SMART_CODE = "HERA.FIN.GL.POLICY.DAILY_SALES.V1"
POLICY_FIELD_SMART_CODE = "HERA.FIN.GL.POLICY.ACCOUNT_MAP.V1"


@dataclass(frozen=True)
class PostingPolicy:
    policy_entity_id: str
    policy_code: str
    accounts: dict = field(default_factory=dict)

    def account_for(self, category: str):
        return self.accounts.get(category)

    def to_dict(self) -> dict:
        return {
            "policy_entity_id": self.policy_entity_id,
            "policy_code": self.policy_code,
            "accounts": dict(self.accounts),
        }


def resolve_posting_policy(actor, branch_id):
    """
    Find the policy for a branch: the branch's own, else DEFAULT.

    Only mappings that point at active GL_ACCOUNT entities of the
    organization are kept.

    Returns:
        (PostingPolicy, "") or (None, reason)
    """
    policies = scoped(Entity.objects.all(), actor).filter(
        entity_type=POLICY_ENTITY_TYPE,
        status=Entity.Status.ACTIVE,
    )
    policy_entity = (
        policies.filter(entity_code=str(branch_id)).first()
        or policies.filter(entity_code=DEFAULT_POLICY_CODE).first()
    )
    if policy_entity is None:
        return None, "No posting policy configured for this branch or organization."

    mapped = {
        f.field_name: f.value_text
        for f in DynamicField.objects.filter(
            entity=policy_entity,
            field_name__in=POLICY_CATEGORIES,
            field_type=DynamicField.FieldType.TEXT,
        )
    }
    account_ids = {as_uuid(value) for value in mapped.values()} - {None}
    valid_accounts = {
        str(pk) for pk in scoped(Entity.objects.all(), actor).filter(
            pk__in=account_ids,
            entity_type=GL_ACCOUNT_ENTITY_TYPE,
            status=Entity.Status.ACTIVE,
        ).values_list("pk", flat=True)
    }
    accounts = {}
    for category, value in mapped.items():
        pk = as_uuid(value)
        if pk is not None and str(pk) in valid_accounts:
            accounts[category] = str(pk)

    return PostingPolicy(
        policy_entity_id=str(policy_entity.id),
        policy_code=policy_entity.entity_code,
        accounts=accounts,
    ), ""


def missing_accounts(policy: PostingPolicy, summary) -> list:
    """Categories with a non-zero amount in any currency but no GL account."""
    needed = {SALES_CLEARING}
    for bucket in summary.totals.values():
        needed.update(category for category, amount in bucket.items() if amount)
    return [category for category in POLICY_CATEGORIES if category in needed and not policy.account_for(category)]


def set_posting_policy(actor, accounts: dict, branch_id=None):
    """
    Create or update a posting policy through the entity store.

    Args:
        actor: ActorContext
        accounts: {category: GL_ACCOUNT entity id}
        branch_id: Branch the policy applies to; None for the DEFAULT policy

    Returns:
        CommandResult from the entity store
    """
    unknown = set(accounts) - set(POLICY_CATEGORIES)
    if unknown:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown posting categories: {', '.join(sorted(unknown))}.",
            details={"allowed": list(POLICY_CATEGORIES)},
        )

    gl_accounts = scoped(Entity.objects.all(), actor).filter(entity_type=GL_ACCOUNT_ENTITY_TYPE)
    for category, account_id in accounts.items():
        pk = as_uuid(account_id)
        if pk is None or not gl_accounts.filter(pk=pk).exists():
            return CommandResult.fail(
                ErrorCode.NOT_FOUND,
                f"GL account for {category} not found.",
                details={"category": category, "entity_id": str(account_id)},
            )

    policy_code = str(branch_id) if branch_id else DEFAULT_POLICY_CODE
    dynamic_fields = {
        category: {"value": str(account_id), "type": "text", "smart_code": POLICY_FIELD_SMART_CODE}
        for category, account_id in accounts.items()
    }

    existing = scoped(Entity.objects.all(), actor).filter(
        entity_type=POLICY_ENTITY_TYPE, entity_code=policy_code,
    ).first()
    if existing is None:
        return create_entity(
            actor,
            {
                "entity_type": POLICY_ENTITY_TYPE,
                "entity_name": f"Daily sales posting policy ({policy_code})",
                "entity_code": policy_code,
                "smart_code": POLICY_SMART_CODE,
            },
            dynamic_fields=dynamic_fields,
        )
    return update_entity(actor, {"entity_id": str(existing.id)}, dynamic_fields=dynamic_fields)
