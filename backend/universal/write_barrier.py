# universal/write_barrier.py
"""
Write contexts for the universal tables.

Rows may only be written while a write context is open:

    STORE      entities / relationships / transactions commands
    BOOTSTRAP  organization provisioning (tenancy/provisioning.py)

The stores open a context around their ORM calls; model save()/delete()
and the bulk queryset methods call assert_write_allowed(). Contexts nest
per thread. settings.TESTING lifts the barrier for fixtures.
"""

from contextlib import contextmanager
import threading

from django.conf import settings


STORE = "store"
BOOTSTRAP = "bootstrap"
WRITE_CONTEXTS = frozenset({STORE, BOOTSTRAP})

_local = threading.local()


def _stack() -> list[str]:
    if not hasattr(_local, "contexts"):
        _local.contexts = []
    return _local.contexts


def current_write_context() -> str | None:
    stack = _stack()
    return stack[-1] if stack else None


@contextmanager
def writes_allowed(context: str):
    if context not in WRITE_CONTEXTS:
        raise ValueError(f"Unknown write context {context!r}.")
    stack = _stack()
    stack.append(context)
    try:
        yield
    finally:
        stack.pop()


def store_writes_allowed():
    return writes_allowed(STORE)


def bootstrap_writes_allowed():
    return writes_allowed(BOOTSTRAP)


def assert_write_allowed(model_name: str) -> None:
    if getattr(settings, "TESTING", False) or current_write_context() in WRITE_CONTEXTS:
        return
    raise RuntimeError(
        f"{model_name} rows are written through the stores only. "
        "Use the entities, relationships or transactions commands."
    )
