# backend/eventcal/store.py
"""SQLAlchemy-backed event and member persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import select, and_, or_
from sqlalchemy.orm import Session

from .errors import EventNotFound, MemberNotFound
from .models import Event, EventParticipant, Member
from .timeutil import to_utc

EVENT_FIELDS = ("title", "description", "location", "color", "category", "start", "end", "timezone", "recurrence_rule")


@dataclass
class EventFilters:
    categories: list[str] = field(default_factory=list)
    participant_ids: list[str] = field(default_factory=list)
    search: Optional[str] = None


class EventStore:
    """
    Raw event rows. Knows nothing about recurrence beyond "has a rule", so
    window queries return every recurring event that started before the
    window closes and leave positioning to the expander.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_in_window(
        self,
        start: datetime,
        end: datetime,
        filters: Optional[EventFilters] = None,
    ) -> Sequence[Event]:
        start, end = to_utc(start), to_utc(end)
        q = select(Event).where(
            and_(
                Event.start <= end,
                or_(Event.end >= start, Event.recurrence_rule.is_not(None)),
            )
        )
        if filters and filters.categories:
            q = q.where(Event.category.in_(filters.categories))
        if filters and filters.participant_ids:
            q = q.where(Event.participants.any(EventParticipant.member_id.in_(filters.participant_ids)))
        q = q.order_by(Event.start.asc())
        return self.db.execute(q).scalars().all()

    def get(self, event_id: str) -> Event:
        ev = self.db.get(Event, event_id)
        if ev is None:
            raise EventNotFound(event_id)
        return ev

    def create(self, fields: dict[str, Any], participant_ids: Optional[list[str]] = None) -> Event:
        ev = Event(**{k: v for k, v in fields.items() if k in EVENT_FIELDS})
        self.db.add(ev)
        if participant_ids:
            self._set_participants(ev, participant_ids)
        self.db.flush()
        return ev

    def update(self, event_id: str, fields: dict[str, Any], participant_ids: Optional[list[str]] = None) -> Event:
        """participant_ids=None keeps the current participants."""
        ev = self.get(event_id)
        for key, value in fields.items():
            if key in EVENT_FIELDS:
                setattr(ev, key, value)
        if participant_ids is not None:
            self._set_participants(ev, participant_ids)
        self.db.flush()
        return ev

    def delete(self, event_id: str) -> None:
        ev = self.get(event_id)
        self.db.delete(ev)
        self.db.flush()

    def _set_participants(self, ev: Event, member_ids: list[str]) -> None:
        wanted = list(dict.fromkeys(member_ids))
        known = set(self.db.execute(select(Member.id).where(Member.id.in_(wanted))).scalars())
        missing = [m for m in wanted if m not in known]
        if missing:
            raise MemberNotFound(missing)
        # keep surviving rows so the (event_id, member_id) constraint never sees a duplicate
        current = {p.member_id: p for p in ev.participants}
        ev.participants = [current.get(m) or EventParticipant(member_id=m) for m in wanted]

    # ── members ─────────────────────────────────────────────────────
    def list_members(self) -> Sequence[Member]:
        return self.db.execute(select(Member).order_by(Member.name.asc())).scalars().all()

    def create_member(self, name: str, part: Optional[str] = None, contact: Optional[str] = None) -> Member:
        member = Member(name=name, part=part, contact=contact)
        self.db.add(member)
        self.db.flush()
        return member
