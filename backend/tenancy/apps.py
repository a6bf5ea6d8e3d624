# tenancy/apps.py
"""Tenancy app configuration."""

from django.apps import AppConfig


class TenancyConfig(AppConfig):
    """Configuration for the tenancy app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "tenancy"
    verbose_name = "Tenancy"
