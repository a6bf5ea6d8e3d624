# hera_backend/celery.py
"""
Celery app for the HERA backend.

Runs the daily sales posting: the beat entry in settings fans out one
posting task per active branch every hour.

    celery -A hera_backend worker -l INFO
    celery -A hera_backend beat -l INFO
"""
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hera_backend.settings")

app = Celery("hera_backend")

# CELERY_* keys in Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up posting.tasks
app.autodiscover_tasks()
