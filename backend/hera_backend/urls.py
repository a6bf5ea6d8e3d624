# hera_backend/urls.py
"""
URL configuration for the HERA backend.

    /api/v2/entities/        entity CRUD
    /api/v2/relationships/   relationship engine and status workflow
    /api/v2/transactions/    transaction CRUD
    /api/v2/posting/         daily ledger posting
    /_health/                liveness / readiness checks
    /_metrics/               Prometheus scrape endpoint
"""
from django.contrib import admin
from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from ops.urls import metrics_patterns

urlpatterns = [
    path("_health/", include("ops.urls")),
    path("_metrics/", include(metrics_patterns)),
    path("admin/", admin.site.urls),
    path("api-auth/", include("rest_framework.urls")),
    path("api/auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("api/auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("api/v2/entities/", include("entities.urls")),
    path("api/v2/relationships/", include("relationships.urls")),
    path("api/v2/transactions/", include("transactions.urls")),
    path("api/v2/posting/", include("posting.urls")),
]
