# backend/eventcal/schemas.py
from __future__ import annotations
from typing import Annotated, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .config import DEFAULT_CATEGORY, DEFAULT_COLOR, DEFAULT_TIMEZONE
from .recurrence import Occurrence, RecurrenceRule
from .timeutil import to_utc


class CamelModel(BaseModel):
    """Snake-case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


Weekday = Annotated[int, Field(ge=0, le=6)]


class RecurrenceIn(CamelModel):
    """Wire form of a weekly rule. An empty weekday list means no recurrence."""
    weekdays: list[Weekday] = Field(default_factory=list)
    interval: Optional[int] = Field(default=None, ge=1)
    count:    Optional[int] = Field(default=None, ge=1)
    until:    Optional[datetime] = None


class RecurrenceOut(CamelModel):
    weekdays: list[int]
    interval: int = 1
    count:    Optional[int] = None
    until:    Optional[datetime] = None

    @classmethod
    def from_rule(cls, rule: RecurrenceRule) -> "RecurrenceOut":
        return cls(weekdays=list(rule.weekdays), interval=rule.interval, count=rule.count, until=rule.until)


class EventIn(CamelModel):
    """Request schema for event creation and full replacement."""
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    location:    Optional[str] = None
    color:    str = Field(default=DEFAULT_COLOR, min_length=1)
    category: str = Field(default=DEFAULT_CATEGORY, min_length=1)
    start: datetime  # UTC ISO string in/out
    end:   datetime
    timezone: str = Field(default=DEFAULT_TIMEZONE, min_length=1)
    recurrence: Optional[RecurrenceIn] = None
    participant_ids: Optional[list[str]] = None

    @field_validator("start", "end")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @model_validator(mode="after")
    def _end_after_start(self) -> "EventIn":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class EventPatch(CamelModel):
    """Partial update; omitted fields keep their stored value."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    location:    Optional[str] = None
    color:    Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    start: Optional[datetime] = None
    end:   Optional[datetime] = None
    timezone: Optional[str] = Field(default=None, min_length=1)
    recurrence: Optional[RecurrenceIn] = None
    participant_ids: Optional[list[str]] = None

    @field_validator("start", "end")
    @classmethod
    def _as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else None


class ParticipantOut(CamelModel):
    id: str
    name: str
    part:    Optional[str] = None
    contact: Optional[str] = None


class OccurrenceOut(CamelModel):
    """One expanded occurrence as the calendar UI consumes it."""
    id: str
    source_event_id: str
    title: str
    description: Optional[str] = None
    location:    Optional[str] = None
    color: str
    category: str
    start: datetime
    end:   datetime
    timezone: str
    is_recurring: bool
    recurrence_summary: Optional[str] = None
    recurrence: Optional[RecurrenceOut] = None
    participants: list[ParticipantOut] = Field(default_factory=list)

    @classmethod
    def from_occurrence(cls, occ: Occurrence) -> "OccurrenceOut":
        ev = occ.event
        return cls(
            id=occ.id,
            source_event_id=occ.source_event_id,
            title=ev.title,
            description=ev.description,
            location=ev.location,
            color=ev.color,
            category=ev.category,
            start=occ.start,
            end=occ.end,
            timezone=ev.timezone,
            is_recurring=occ.is_recurring,
            recurrence_summary=occ.recurrence_summary,
            recurrence=RecurrenceOut.from_rule(occ.rule) if occ.rule else None,
            participants=[
                ParticipantOut(id=p.member.id, name=p.member.name, part=p.member.part, contact=p.member.contact)
                for p in ev.participants
            ],
        )


class EventsOut(CamelModel):
    events: list[OccurrenceOut]


class WriteOut(CamelModel):
    status: str = "ok"
    events: list[OccurrenceOut] = Field(default_factory=list)


class StatusOut(CamelModel):
    status: str = "ok"


class MemberIn(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    part:    Optional[str] = None
    contact: Optional[str] = None


class MemberOut(MemberIn):
    """Response schema for a member row (includes ID)."""
    id: str
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class MembersOut(CamelModel):
    members: list[MemberOut]
