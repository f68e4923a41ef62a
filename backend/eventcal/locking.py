# backend/eventcal/locking.py
"""Serialises conflict-check + write so two requests cannot both book a slot."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session

# arbitrary constant shared by every worker process
BOOKING_LOCK_KEY = 0x65766E74

_process_lock = threading.Lock()


@contextmanager
def booking_lock(db: Session) -> Iterator[None]:
    """
    Hold the booking lock for the duration of the block.

    Threads in this process queue on a plain mutex. On PostgreSQL the
    transaction also takes pg_advisory_xact_lock, which other processes share
    and which is released when the caller commits or rolls back.
    """
    with _process_lock:
        if db.get_bind().dialect.name == "postgresql":
            db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": BOOKING_LOCK_KEY})
        try:
            yield
        except BaseException:
            db.rollback()
            raise
