"""
Celery tasks for scheduled daily posting.

Tasks:
- post_daily_sales_task: Post one branch-day
- post_previous_day_all_branches: Fan out yesterday's posting to every
  active branch of every active organization (beat-scheduled)

Business failures (NO_SALES_FOUND, ALREADY_POSTED, NO_POLICY) are returned
in the task result. Only storage errors raise and are retried.

Usage:
    from posting.tasks import post_daily_sales_task
    post_daily_sales_task.delay(organization_id, branch_id, "2026-10-18")
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from celery import shared_task

from posting.commands import BRANCH_ENTITY_TYPE, post_daily_sales
from posting.summary import InvalidTimezone, organization_timezone
from universal.conf import hera_setting
from universal.models import PLATFORM_ORGANIZATION_ID, Entity, Organization

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    retry_backoff=True,
)
def post_daily_sales_task(
    self,
    organization_id: str,
    branch_id: str,
    business_date: str,
    actor_user_id: Optional[str] = None,
) -> dict:
    """
    Post one branch's sales for one business day.

    Args:
        organization_id: Organization id
        branch_id: BRANCH entity id
        business_date: ISO date
        actor_user_id: Acting USER entity; defaults to HERA SYSTEM_ACTOR_ID

    Returns:
        CommandResult as a dict
    """
    actor_user_id = actor_user_id or hera_setting("SYSTEM_ACTOR_ID")
    logger.info(f"Posting daily sales for branch {branch_id} on {business_date}")

    result = post_daily_sales(actor_user_id, organization_id, branch_id, business_date)
    if result.success:
        logger.info(f"Posted journal {result.data['journal_code']}")
    elif result.code in ("NO_SALES_FOUND", "ALREADY_POSTED"):
        logger.info(f"Nothing posted for branch {branch_id} on {business_date}: {result.code}")
    else:
        logger.warning(f"Posting failed for branch {branch_id} on {business_date}: {result.code} {result.error}")
    return result.to_dict()


@shared_task
def post_previous_day_all_branches() -> dict:
    """
    Queue yesterday's posting for every active branch.

    "Yesterday" is computed per organization in its own timezone.

    Returns:
        Dict with the number of queued branch-days per organization
    """
    if not hera_setting("SYSTEM_ACTOR_ID"):
        logger.error("HERA SYSTEM_ACTOR_ID is not configured; scheduled posting skipped")
        return {"error": "SYSTEM_ACTOR_ID not configured"}

    queued = {}
    organizations = Organization.objects.filter(status=Organization.Status.ACTIVE).exclude(
        id=PLATFORM_ORGANIZATION_ID,
    )
    for organization in organizations:
        try:
            tz = organization_timezone(organization)
        except InvalidTimezone as exc:
            logger.error(str(exc))
            continue
        business_date = (datetime.now(tz) - timedelta(days=1)).date().isoformat()

        branch_ids = Entity.objects.filter(
            organization=organization,
            entity_type=BRANCH_ENTITY_TYPE,
            status=Entity.Status.ACTIVE,
        ).values_list("id", flat=True)

        for branch_id in branch_ids:
            post_daily_sales_task.delay(str(organization.id), str(branch_id), business_date)
        queued[str(organization.id)] = len(branch_ids)

    logger.info(f"Queued daily posting for {sum(queued.values())} branches")
    return {"queued": queued}
