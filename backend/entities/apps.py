# entities/apps.py
"""Entities app configuration."""

from django.apps import AppConfig


class EntitiesConfig(AppConfig):
    """Configuration for the entities app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "entities"
    verbose_name = "Entities"
