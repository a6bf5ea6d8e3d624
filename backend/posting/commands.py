# posting/commands.py
"""
Daily sales posting.

post_daily_sales turns one branch's sales for one business day into
exactly one balanced journal_entry transaction:

1. Summarize    committed sales of the day (posting/summary.py)
2. Resolve      the posting policy (posting/policy.py)
3. Build        the journal payload (posting/journal.py)
4. Post         through the transaction store CREATE

Steps 1-3 never write. Step 4 is protected by the journal's natural key
GLJ-<branch>-<YYYYMMDD>: a pre-check answers the common re-run and the
unique transaction_code settles two schedulers racing for the same day.
Either way the loser gets ALREADY_POSTED.

Every failure carries the summary it tried to post in details["summary"].
"""

import logging
from datetime import date

from django.utils.dateparse import parse_date

from ops.metrics import track_posting
from posting.journal import NegativeReceipts, build_journal_payload, journal_code
from posting.policy import missing_accounts, resolve_posting_policy
from posting.summary import InvalidTimezone, summarize_sales_day
from tenancy.authz import actor_or_failure
from tenancy.policies import get_scoped, scoped
from transactions.commands import create_transaction, resolve_currency
from universal.models import Entity, Transaction
from universal.results import CommandResult, ErrorCode


logger = logging.getLogger(__name__)


BRANCH_ENTITY_TYPE = "BRANCH"


def parse_business_date(value):
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_date(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValueError(f"business_date must be an ISO date (YYYY-MM-DD), got {value!r}.")


def _fail(code, message, summary=None, **details):
    if summary is not None:
        details["summary"] = summary.to_dict()
    return CommandResult.fail(code, message, details=details)


@track_posting
def post_daily_sales_for_actor(actor, branch_id, business_date) -> CommandResult:
    """
    Post one branch-day for an already resolved actor.

    Returns:
        CommandResult with {"journal_id", "transaction_id", "journal_code",
        "summary", "transaction"}
    """
    try:
        business_date = parse_business_date(business_date)
    except ValueError as exc:
        return _fail(ErrorCode.VALIDATION_ERROR, str(exc))

    branch = get_scoped(Entity, actor, branch_id)
    if branch is None or branch.entity_type != BRANCH_ENTITY_TYPE:
        return _fail(ErrorCode.NOT_FOUND, "Branch not found.", branch_id=str(branch_id))

    try:
        summary = summarize_sales_day(actor, branch.id, business_date)
    except InvalidTimezone as exc:
        return _fail(ErrorCode.VALIDATION_ERROR, str(exc))

    code = journal_code(branch.id, business_date)
    existing = scoped(Transaction.objects.all(), actor).filter(transaction_code=code).first()
    if existing is not None:
        logger.info(
            "Daily sales already posted: %s", code,
            extra={"organization_id": str(actor.organization_id), "transaction_id": str(existing.id)},
        )
        return _fail(
            ErrorCode.ALREADY_POSTED,
            f"Sales for branch {branch.id} on {business_date} are already posted.",
            summary,
            journal_id=str(existing.id),
            journal_code=code,
        )

    if summary.is_empty:
        return _fail(
            ErrorCode.NO_SALES_FOUND,
            f"No sales to post for branch {branch.id} on {business_date}.",
            summary,
        )

    policy, reason = resolve_posting_policy(actor, branch.id)
    if policy is None:
        logger.warning(
            "Posting blocked for %s: %s", code, reason,
            extra={"organization_id": str(actor.organization_id), "branch_id": str(branch.id)},
        )
        return _fail(ErrorCode.NO_POLICY, reason, summary)

    missing = missing_accounts(policy, summary)
    if missing:
        logger.warning(
            "Posting blocked for %s: unmapped categories %s", code, missing,
            extra={"organization_id": str(actor.organization_id), "branch_id": str(branch.id)},
        )
        return _fail(
            ErrorCode.NO_POLICY,
            f"Posting policy {policy.policy_code} has no GL account for: {', '.join(missing)}.",
            summary,
            missing_categories=missing,
            policy=policy.to_dict(),
        )

    try:
        header, lines = build_journal_payload(
            summary, policy, actor.organization, resolve_currency(actor, None),
        )
    except NegativeReceipts as exc:
        return _fail(ErrorCode.VALIDATION_ERROR, str(exc), summary, currency=exc.currency)

    result = create_transaction(actor, header, lines)
    if not result.success:
        if result.code == ErrorCode.DUPLICATE:
            return _fail(
                ErrorCode.ALREADY_POSTED,
                f"Sales for branch {branch.id} on {business_date} are already posted.",
                summary,
                journal_code=code,
            )
        return _fail(result.code, result.error, summary, **result.details)

    logger.info(
        "Daily sales posted: %s (%d sales)", code, summary.transaction_count,
        extra={"organization_id": str(actor.organization_id), "transaction_id": result.data["transaction_id"],
               "branch_id": str(branch.id), "business_date": business_date.isoformat()},
    )
    return CommandResult.ok({
        "journal_id": result.data["transaction_id"],
        "transaction_id": result.data["transaction_id"],
        "journal_code": code,
        "summary": summary.to_dict(),
        "transaction": result.data["transaction"],
    })


def post_daily_sales(actor_user_id, organization_id, branch_id, business_date) -> CommandResult:
    """
    Actor-scoped entry point for daily posting.

    Args:
        actor_user_id: USER entity id (or the configured system actor)
        organization_id: Organization the branch belongs to
        branch_id: BRANCH entity id
        business_date: Calendar day in the organization's timezone
    """
    actor, failure = actor_or_failure(actor_user_id, organization_id)
    if failure:
        return failure
    return post_daily_sales_for_actor(actor, branch_id, business_date)
