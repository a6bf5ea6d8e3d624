# hera_backend/settings.py
"""
Django settings for the HERA universal data engine.

Everything environment-specific comes from the process environment, with
a local .env loaded first for development.
"""
import os
import sys
from datetime import timedelta
from pathlib import Path

import dj_database_url
from celery.schedules import crontab
from dotenv import load_dotenv

from ops.logging_config import get_logging_config


BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def env_list(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-not-secret")
DEBUG = env_bool("DEBUG", True)
ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", "127.0.0.1,localhost")
VERSION = os.getenv("APP_VERSION", "dev")

# Set under pytest and `manage.py test`; lifts the universal write barrier
# so fixtures can build rows directly.
TESTING = "PYTEST_CURRENT_TEST" in os.environ or "pytest" in sys.argv[0] or "test" in sys.argv[1:2]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt.token_blacklist",
    "ops.apps.OpsConfig",
    "universal.apps.UniversalConfig",
    "tenancy.apps.TenancyConfig",
    "entities.apps.EntitiesConfig",
    "relationships.apps.RelationshipsConfig",
    "transactions.apps.TransactionsConfig",
    "posting.apps.PostingConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "ops.metrics.track_request_metrics",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "hera_backend.urls"
WSGI_APPLICATION = "hera_backend.wsgi.application"

# Only the admin renders templates.
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# =============================================================================
# Database
# =============================================================================
# Postgres in every deployed environment (DATABASE_URL); sqlite is only a
# local fallback.
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=int(os.getenv("DB_CONN_MAX_AGE", "600")),
    )
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

STATIC_URL = "static/"

# =============================================================================
# API
# =============================================================================
# Callers authenticate with a bearer token; which organization they act in
# is decided per call by actor_user_id membership (tenancy.authz).
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_RENDERER_CLASSES": (
        "rest_framework.renderers.JSONRenderer",
    ),
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": os.getenv("THROTTLE_ANON", "100/hour"),
        "user": os.getenv("THROTTLE_USER", "5000/hour"),
    },
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MINUTES", "30"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "30"))),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": True,
}

CORS_ALLOWED_ORIGINS = env_list("CORS_ALLOWED_ORIGINS", "http://localhost:3000")
CORS_ALLOW_CREDENTIALS = True
CSRF_TRUSTED_ORIGINS = env_list("CSRF_TRUSTED_ORIGINS", "http://localhost:3000")

# =============================================================================
# HERA engine
# =============================================================================
# Keys left out fall back to universal.conf.DEFAULTS.
HERA = {
    "DEFAULT_CURRENCY": os.getenv("HERA_DEFAULT_CURRENCY", "USD"),
    "DEFAULT_TIMEZONE": os.getenv("HERA_DEFAULT_TIMEZONE", "UTC"),
    "REQUIRE_MEMBERSHIP": env_bool("HERA_REQUIRE_MEMBERSHIP", True),
    # USER entity the scheduled posting jobs act as
    "SYSTEM_ACTOR_ID": os.getenv("HERA_SYSTEM_ACTOR_ID") or None,
}

# =============================================================================
# Celery
# =============================================================================
REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")

CELERY_BROKER_URL = REDIS_URL
CELERY_RESULT_BACKEND = REDIS_URL
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TIME_LIMIT = 10 * 60
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ALWAYS_EAGER = TESTING

# Hourly so every organization's "yesterday" is picked up soon after its
# own midnight; reruns end in ALREADY_POSTED.
CELERY_BEAT_SCHEDULE = {
    "post-previous-day-sales": {
        "task": "posting.tasks.post_previous_day_all_branches",
        "schedule": crontab(minute=15),
    },
}

# =============================================================================
# Logging
# =============================================================================
LOGGING = get_logging_config(DEBUG)
