# ops/metrics.py
"""
Prometheus metrics endpoint.

Exposes application metrics in Prometheus format for scraping at /_metrics/.

Metrics exposed:
- hera_command_results_total: store command outcomes by store, action and
  result code ("OK" or the ErrorCode)
- hera_command_duration_seconds: store command duration histogram
- hera_daily_postings_total: daily posting outcomes by result code
- hera_universal_rows: row count per universal table
- hera_request_duration_seconds: HTTP request duration histogram
- hera_active_requests: requests currently being processed
"""
import logging
import re
import time
from functools import wraps

from django.db import DatabaseError
from django.http import HttpResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from universal.models import DynamicField, Entity, Organization, Relationship, Transaction, TransactionLine

logger = logging.getLogger(__name__)

OK_OUTCOME = "OK"
EXCEPTION_OUTCOME = "EXCEPTION"
UNKNOWN_ACTION = "UNKNOWN"

UNIVERSAL_TABLES = {
    "core_organizations": Organization,
    "core_entities": Entity,
    "core_dynamic_data": DynamicField,
    "core_relationships": Relationship,
    "universal_transactions": Transaction,
    "universal_transaction_lines": TransactionLine,
}


# =============================================================================
# Metric definitions
# =============================================================================

command_results = Counter(
    "hera_command_results_total",
    "Store command outcomes",
    ["store", "action", "outcome"],
)

command_duration = Histogram(
    "hera_command_duration_seconds",
    "Store command duration in seconds",
    ["store", "action"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

daily_postings = Counter(
    "hera_daily_postings_total",
    "Daily sales posting outcomes",
    ["outcome"],
)

universal_rows = Gauge(
    "hera_universal_rows",
    "Rows per universal table",
    ["table"],
)

request_duration = Histogram(
    "hera_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

active_requests = Gauge(
    "hera_active_requests",
    "Number of requests currently being processed",
)


# =============================================================================
# Command instrumentation
# =============================================================================

def result_outcome(result) -> str:
    if result.success:
        return OK_OUTCOME
    return result.code or UNKNOWN_ACTION


def track_command(store: str, actions):
    """
    Count every outcome of a `*_crud` entry point.

    Unknown actions are folded into one label value so callers cannot
    grow the series set.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(action, *args, **kwargs):
            name = action.upper() if isinstance(action, str) else ""
            label = name if name in actions else UNKNOWN_ACTION
            start = time.perf_counter()
            try:
                result = func(action, *args, **kwargs)
            except Exception:
                command_results.labels(store=store, action=label, outcome=EXCEPTION_OUTCOME).inc()
                raise
            finally:
                command_duration.labels(store=store, action=label).observe(time.perf_counter() - start)
            command_results.labels(store=store, action=label, outcome=result_outcome(result)).inc()
            return result
        return wrapper
    return decorator


def track_posting(func):
    """Count daily posting outcomes (OK, ALREADY_POSTED, NO_SALES_FOUND, ...)."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        result = func(*args, **kwargs)
        daily_postings.labels(outcome=result_outcome(result)).inc()
        return result
    return wrapper


# =============================================================================
# Scrape
# =============================================================================

def collect_metrics():
    """Collect current table sizes."""
    try:
        for table, model in UNIVERSAL_TABLES.items():
            universal_rows.labels(table=table).set(model.objects.count())
    except DatabaseError as e:
        logger.error(f"Error collecting metrics: {e}")


def get_prometheus_response():
    collect_metrics()
    return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)


class MetricsView(View):
    """
    Prometheus metrics endpoint.

    Exposes metrics in Prometheus format at /_metrics/.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        return get_prometheus_response()


_NUMERIC_SEGMENT = re.compile(r"/\d+/")
_UUID_SEGMENT = re.compile(r"/[0-9a-f-]{36}/")


def track_request_metrics(get_response):
    """
    Middleware to track request duration metrics.

    Add to MIDDLEWARE after SecurityMiddleware:
        "ops.metrics.track_request_metrics",
    """
    def middleware(request):
        start = time.perf_counter()
        active_requests.inc()
        status = 500
        try:
            response = get_response(request)
            status = response.status_code
            return response
        finally:
            active_requests.dec()
            # Normalize endpoint for cardinality control
            endpoint = _UUID_SEGMENT.sub("/{uuid}/", _NUMERIC_SEGMENT.sub("/{id}/", request.path))
            request_duration.labels(
                method=request.method,
                endpoint=endpoint[:50],
                status=f"{status // 100}xx",
            ).observe(time.perf_counter() - start)

    return middleware
