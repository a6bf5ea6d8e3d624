# universal/apps.py
"""Universal schema app configuration."""

from django.apps import AppConfig


class UniversalConfig(AppConfig):
    """Configuration for the universal app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "universal"
    verbose_name = "Universal Tables"
