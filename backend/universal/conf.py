# universal/conf.py
"""
HERA engine settings.

Values come from the HERA dict in Django settings; anything missing falls
back to DEFAULTS.

    HERA = {
        "DEFAULT_CURRENCY": "AED",
        "SYSTEM_ACTOR_ID": "6f1c...",
    }
"""

from django.conf import settings


DEFAULTS = {
    "DEFAULT_CURRENCY": "USD",
    "REQUIRE_MEMBERSHIP": True,
    "SYSTEM_ACTOR_ID": None,
    "EXCLUSIVE_RELATIONSHIP_TYPES": {"HAS_STATUS"},
    "SALES_TRANSACTION_TYPES": {"sale"},
    "POSTABLE_SALE_STATUSES": {"completed", "posted"},
    "STATUS_TRANSITION_RETRIES": 3,
    "DEFAULT_TIMEZONE": "UTC",
}


def hera_setting(name: str):
    if name not in DEFAULTS:
        raise KeyError(f"Unknown HERA setting: {name}")
    return getattr(settings, "HERA", {}).get(name, DEFAULTS[name])
