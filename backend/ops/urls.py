# ops/urls.py
"""
Operations endpoints.

Mounted without authentication; protect them at network level (internal
only) in production.
"""
from django.urls import path

from ops.health import FullHealthView, LivenessView, ReadinessView
from ops.metrics import MetricsView

urlpatterns = [
    path("live", LivenessView.as_view(), name="health-live"),
    path("ready", ReadinessView.as_view(), name="health-ready"),
    path("full", FullHealthView.as_view(), name="health-full"),
]

# Metrics endpoint (separate path prefix in hera_backend/urls.py)
metrics_patterns = [
    path("", MetricsView.as_view(), name="metrics"),
]
