# backend/eventcal/service.py
"""
Caller-facing scheduling operations.

Reads expand stored events into occurrences for a window. Writes run the
conflict check and the store write under one booking lock, then notify the
event bus. Conflicts come back as a ScheduleConflict value rather than an
exception so the HTTP layer can map them to 409 without try/except.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy.orm import Session

from .conflicts import Candidate, ScheduleConflict, check_conflict
from .errors import InvalidEventTimes
from .locking import booking_lock
from .notifier import EventBus, event_bus
from .recurrence import (
    Occurrence,
    expand_events,
    parse_recurrence,
    rule_for_event,
    validate_window,
)
from .search import filter_by_search
from .store import EventFilters, EventStore
from .timeutil import iso_z, to_utc

logger = logging.getLogger(__name__)

WriteResult = Union[list[Occurrence], ScheduleConflict]


class EventService:
    def __init__(self, db: Session, bus: EventBus = event_bus):
        self.db = db
        self.store = EventStore(db)
        self.bus = bus

    # ── reads ───────────────────────────────────────────────────────
    def list_occurrences(
        self,
        range_start: datetime,
        range_end: datetime,
        filters: Optional[EventFilters] = None,
    ) -> list[Occurrence]:
        range_start, range_end = validate_window(range_start, range_end)
        rows = self.store.find_in_window(range_start, range_end, filters)
        occurrences = expand_events(rows, range_start, range_end)
        return filter_by_search(occurrences, filters.search if filters else None)

    # ── writes ──────────────────────────────────────────────────────
    def create_event(self, fields: dict[str, Any]) -> WriteResult:
        """
        fields: title, description, location, color, category, start, end,
        timezone, recurrence, participant_ids (EventIn.model_dump()).
        """
        start, end = to_utc(fields["start"]), to_utc(fields["end"])
        if end <= start:
            raise InvalidEventTimes("end must be after start")
        rule = parse_recurrence(fields.get("recurrence"))
        candidate = Candidate(start=start, end=end, recurrence_rule=rule)

        with booking_lock(self.db):
            conflict = check_conflict(candidate, self.store.find_in_window)
            if conflict is not None:
                self.db.rollback()
                logger.info(
                    "Rejected new event %r: overlaps %s at %s",
                    fields.get("title"), conflict.existing.source_event_id, iso_z(conflict.existing.start),
                )
                return conflict
            row = dict(fields, start=start, end=end, recurrence_rule=rule.to_json() if rule else None)
            ev = self.store.create(row, fields.get("participant_ids"))
            self.db.commit()

        logger.info("Created event %s (%s)", ev.id, "recurring" if rule else "single")
        self.bus.emit_change({"action": "created", "id": ev.id})
        return expand_events([ev], start, end)

    def update_event(self, event_id: str, changes: dict[str, Any]) -> WriteResult:
        """
        Apply changes to a stored event (and so to its whole series).
        Keys absent from changes keep their stored values; an explicit
        recurrence=None turns a series back into a single event.
        """
        ev = self.store.get(event_id)
        start = to_utc(changes["start"]) if changes.get("start") is not None else to_utc(ev.start)
        end = to_utc(changes["end"]) if changes.get("end") is not None else to_utc(ev.end)
        if end <= start:
            raise InvalidEventTimes("end must be after start")
        if "recurrence" in changes:
            rule = parse_recurrence(changes["recurrence"])
        else:
            rule = rule_for_event(ev)
        candidate = Candidate(start=start, end=end, recurrence_rule=rule, id=event_id)

        with booking_lock(self.db):
            conflict = check_conflict(candidate, self.store.find_in_window, exclude_id=event_id)
            if conflict is not None:
                self.db.rollback()
                logger.info(
                    "Rejected update of %s: overlaps %s at %s",
                    event_id, conflict.existing.source_event_id, iso_z(conflict.existing.start),
                )
                return conflict
            row = {k: v for k, v in changes.items() if v is not None or k in ("description", "location")}
            row.update(start=start, end=end, recurrence_rule=rule.to_json() if rule else None)
            ev = self.store.update(event_id, row, changes.get("participant_ids"))
            self.db.commit()

        logger.info("Updated event %s", event_id)
        self.bus.emit_change({"action": "updated", "id": event_id})
        return expand_events([ev], start, end)

    def delete_event(self, event_id: str) -> None:
        """Removes the stored event, i.e. every occurrence of a series."""
        self.store.delete(event_id)
        self.db.commit()
        logger.info("Deleted event %s", event_id)
        self.bus.emit_change({"action": "deleted", "id": event_id})
