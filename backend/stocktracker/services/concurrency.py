# Overview: Locking helpers that serialize stock mutations per product name.

from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager


_registry_guard = threading.Lock()

# Entries disappear once no caller holds a reference to the lock
_name_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def name_lock(name: str) -> threading.Lock:
    """
    Return the process-wide lock for a product name.

    Names are folded to lowercase, so "Widget" and "widget" share one lock.
    The registry only keeps locks that someone is still holding a reference to.
    """
    key = name.lower()
    with _registry_guard:
        lock = _name_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _name_locks[key] = lock
        return lock


@contextmanager
def product_lock(name: str):
    """Hold the per-name lock for the duration of one read-modify-write."""
    lock = name_lock(name)
    with lock:
        yield
