"""
In-process serialization of writes per property.

Admission (check-then-insert), status transitions and inventory edits for a
property all run while holding that property's lock, so two request threads
in the same process can never interleave their read and write phases.

Strategy:
- One ``threading.Lock`` per property id, created lazily
- The registry itself is guarded by a module-level lock
- Cross-process safety comes from the row lock and version counter on
  ``properties`` (see ``bed_booking.db.readers.properties``)
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

import structlog

logger = structlog.get_logger(__name__)

_property_locks: dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


def get_property_lock(property_id: str) -> threading.Lock:
    """
    Return the lock for ``property_id``, creating it on first use.

    Args:
        property_id: Property identifier

    Returns:
        threading.Lock: The same lock object for every call with this id
    """
    with _registry_lock:
        lock = _property_locks.get(property_id)
        if lock is None:
            lock = threading.Lock()
            _property_locks[property_id] = lock
        return lock


@contextmanager
def property_lock(property_id: str) -> Iterator[None]:
    """
    Hold the write lock for ``property_id`` for the duration of the block.

    Example:
        >>> with property_lock(prop_id):
        ...     with Session(engine) as session, session.begin():
        ...         ...  # check availability, insert reservation
    """
    lock = get_property_lock(property_id)
    with lock:
        logger.debug("property_lock_acquired", property_id=property_id)
        yield
