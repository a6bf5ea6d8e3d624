# ops/health.py
"""
Health endpoints.

- /_health/live   process is up; touches nothing
- /_health/ready  default database answers; gate for traffic
- /_health/full   every check below, for dashboards and on-call

A check returns a dict with "status" in {"healthy", "unhealthy", "skipped"}
plus whatever it measured. Checks never raise.
"""
import logging
import time
from contextlib import contextmanager

import redis
from django.conf import settings
from django.db import DatabaseError, connections
from django.http import JsonResponse
from django.views import View

from tenancy.provisioning import ORGANIZATION_ENTITY_TYPE
from universal.models import PLATFORM_ORGANIZATION_ID, Entity, Organization

logger = logging.getLogger(__name__)


@contextmanager
def _timed(report: dict):
    started = time.perf_counter()
    try:
        yield report
    finally:
        report["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)


def check_database(alias: str = "default") -> dict:
    report = {"alias": alias}
    with _timed(report):
        try:
            with connections[alias].cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            report["status"] = "healthy"
        except DatabaseError as exc:
            logger.warning("Database %s unhealthy: %s", alias, exc)
            report.update(status="unhealthy", error=str(exc))
    return report


def check_databases() -> dict:
    databases = {alias: check_database(alias) for alias in settings.DATABASES}
    healthy = all(db["status"] == "healthy" for db in databases.values())
    return {"status": "healthy" if healthy else "unhealthy", "databases": databases}


def check_broker() -> dict:
    """Redis behind Celery; scheduled posting stalls without it."""
    url = getattr(settings, "CELERY_BROKER_URL", None)
    if not url or getattr(settings, "CELERY_TASK_ALWAYS_EAGER", False):
        return {"status": "skipped", "reason": "no broker in use"}

    report = {}
    with _timed(report):
        try:
            redis.from_url(url, socket_connect_timeout=2).ping()
            report["status"] = "healthy"
        except redis.RedisError as exc:
            logger.warning("Broker unhealthy: %s", exc)
            report.update(status="unhealthy", error=str(exc))
    return report


def check_bootstrap_rows() -> dict:
    """
    The platform organization holds every USER entity and each tenant needs
    its ORGANIZATION shadow entity for membership edges. Missing rows mean a
    tenant was created outside provision_organization.
    """
    try:
        tenant_ids = set(
            Organization.objects.exclude(id=PLATFORM_ORGANIZATION_ID).values_list("id", flat=True)
        )
        shadowed = set(
            Entity.objects.filter(
                organization_id__in=tenant_ids,
                entity_type=ORGANIZATION_ENTITY_TYPE,
            ).values_list("organization_id", flat=True)
        )
        has_platform = Organization.objects.filter(id=PLATFORM_ORGANIZATION_ID).exists()
    except DatabaseError as exc:
        return {"status": "unhealthy", "error": str(exc)}

    unshadowed = sorted(str(pk) for pk in tenant_ids - shadowed)
    return {
        "status": "healthy" if has_platform and not unshadowed else "unhealthy",
        "organizations": len(tenant_ids),
        "platform_organization": has_platform,
        "organizations_without_shadow_entity": unshadowed,
    }


CHECKS = {
    "databases": check_databases,
    "broker": check_broker,
    "organizations": check_bootstrap_rows,
}


def full_report() -> dict:
    checks = {name: check() for name, check in CHECKS.items()}
    healthy = all(c["status"] in ("healthy", "skipped") for c in checks.values())
    return {
        "status": "healthy" if healthy else "unhealthy",
        "checks": checks,
        "version": getattr(settings, "VERSION", "unknown"),
    }


class LivenessView(View):
    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """200 while the default database answers, 503 otherwise."""

    def get(self, request):
        database = check_database()
        ready = database["status"] == "healthy"
        return JsonResponse(
            {"status": "ready" if ready else "not_ready", "database": database},
            status=200 if ready else 503,
        )


class FullHealthView(View):
    """Every check. Keep it on the internal network."""

    def get(self, request):
        report = full_report()
        return JsonResponse(report, status=200 if report["status"] == "healthy" else 503)
