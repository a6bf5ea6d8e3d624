# relationships/apps.py
"""Relationships app configuration."""

from django.apps import AppConfig


class RelationshipsConfig(AppConfig):
    """Configuration for the relationships app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "relationships"
    verbose_name = "Relationships"
