# posting/apps.py
"""Posting app configuration."""

from django.apps import AppConfig


class PostingConfig(AppConfig):
    """Configuration for the posting app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "posting"
    verbose_name = "Ledger Posting"
