"""Per-entity write locks.

Ledger aggregates are single-writer: ``record_payment``, allocation and refund
application all read-then-write the same fields. Within one process the
registry below serializes writers per key; across processes the repositories
additionally load rows with ``SELECT ... FOR UPDATE``.

A registry entry lives only while some thread holds or waits on its lock.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any


@dataclass
class _Entry:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


_registry_lock = threading.Lock()
_locks: dict[tuple[str, str], _Entry] = {}


def _acquire_entry(lock_key: tuple[str, str]) -> _Entry:
    with _registry_lock:
        entry = _locks.get(lock_key)
        if entry is None:
            entry = _locks[lock_key] = _Entry()
        entry.users += 1
        return entry


def _release_entry(lock_key: tuple[str, str], entry: _Entry) -> None:
    with _registry_lock:
        entry.users -= 1
        if entry.users == 0:
            del _locks[lock_key]


@contextmanager
def entity_lock(kind: str, key: Any) -> Iterator[None]:
    """Hold the write lock for one entity, e.g. ``entity_lock("invoice", invoice_id)``."""
    lock_key = (kind, str(key))
    entry = _acquire_entry(lock_key)
    try:
        with entry.lock:
            yield
    finally:
        _release_entry(lock_key, entry)
