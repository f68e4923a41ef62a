# backend/eventcal/errors.py
"""Error taxonomy for the scheduling engine and service layer."""

from __future__ import annotations


class MalformedRecurrenceRule(ValueError):
    """Stored recurrence payload could not be turned into a usable rule."""


class InvalidWindow(ValueError):
    """Query window is unparseable or ends before it starts."""


class EventNotFound(LookupError):
    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class MemberNotFound(LookupError):
    def __init__(self, member_ids: list[str]):
        super().__init__(f"Unknown member(s): {', '.join(member_ids)}")
        self.member_ids = member_ids


class InvalidEventTimes(ValueError):
    """Event would end at or before its start."""
