# backend/eventcal/recurrence.py
"""
Weekly-by-weekday recurrence expansion.

A stored event is either a single interval or a weekly rule anchored at the
event's start. Expansion turns either form into concrete occurrences inside a
closed query window. Rules are enumerated lazily with dateutil.rrule and are
never walked past the window, so unbounded series are safe to query.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Iterator, Optional

from dateutil import rrule as dr

from .errors import InvalidWindow, MalformedRecurrenceRule
from .timeutil import iso_z, parse_iso_z, to_utc

logger = logging.getLogger(__name__)

MIN_OCCURRENCE_DURATION = timedelta(minutes=30)

# index 0=Sunday..6=Saturday, the order clients send
RRULE_WEEKDAYS = (dr.SU, dr.MO, dr.TU, dr.WE, dr.TH, dr.FR, dr.SA)
WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass(frozen=True)
class RecurrenceRule:
    weekdays: tuple[int, ...]
    interval: int = 1
    count: Optional[int] = None
    until: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"weekdays": list(self.weekdays), "interval": self.interval}
        if self.count is not None:
            out["count"] = self.count
        if self.until is not None:
            out["until"] = iso_z(self.until)
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @property
    def summary(self) -> str:
        return recurrence_summary(self)


@dataclass(frozen=True)
class Occurrence:
    """One concrete instance of a stored event. Never persisted."""
    start: datetime
    end: datetime
    source_event_id: Optional[str]
    is_recurring: bool = False
    rule: Optional[RecurrenceRule] = None
    event: Any = field(default=None, repr=False, compare=False)

    @property
    def id(self) -> Optional[str]:
        if self.is_recurring:
            return f"{self.source_event_id}:{iso_z(self.start)}"
        return self.source_event_id

    @property
    def recurrence_summary(self) -> Optional[str]:
        return recurrence_summary(self.rule) if self.rule else None


def _positive_int(data: dict, key: str, default: Optional[int] = None) -> Optional[int]:
    raw = data.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
        raise MalformedRecurrenceRule(f"{key} must be a positive integer, got {raw!r}")
    return raw


def parse_recurrence(value: Any) -> Optional[RecurrenceRule]:
    """
    Build a RecurrenceRule from JSON text, a wire dict, or an existing rule.

    Returns None for "no recurrence" (nothing stored, or no weekdays).
    Raises MalformedRecurrenceRule when the payload is present but unusable.
    """
    if value is None or isinstance(value, RecurrenceRule):
        return value
    if isinstance(value, (str, bytes)):
        if not value.strip():
            return None
        try:
            data = json.loads(value)
        except ValueError as exc:
            raise MalformedRecurrenceRule(f"not valid JSON: {exc}") from exc
    else:
        data = value
    if data is None:
        return None
    if not isinstance(data, dict):
        raise MalformedRecurrenceRule(f"expected an object, got {type(data).__name__}")

    raw_days = data.get("weekdays")
    if not raw_days:
        return None
    if not isinstance(raw_days, (list, tuple)):
        raise MalformedRecurrenceRule("weekdays must be a list")
    days: set[int] = set()
    for d in raw_days:
        if isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6:
            raise MalformedRecurrenceRule(f"weekday out of range: {d!r}")
        days.add(d)

    interval = _positive_int(data, "interval", 1)
    count = _positive_int(data, "count")

    until = None
    if data.get("until") is not None:
        try:
            until = parse_iso_z(data["until"])
        except (ValueError, TypeError, OverflowError) as exc:
            raise MalformedRecurrenceRule(f"until is not an ISO-8601 instant: {data['until']!r}") from exc

    return RecurrenceRule(weekdays=tuple(sorted(days)), interval=interval, count=count, until=until)


def rule_for_event(event: Any) -> Optional[RecurrenceRule]:
    """Rule attached to a stored event; a corrupt rule degrades to None."""
    try:
        return parse_recurrence(getattr(event, "recurrence_rule", None))
    except MalformedRecurrenceRule as exc:
        logger.warning("Ignoring malformed recurrence rule on event %s: %s", getattr(event, "id", None), exc)
        return None


def build_rrule(rule: RecurrenceRule, dtstart: datetime) -> dr.rrule:
    # until is applied by the caller so count and until can coexist
    return dr.rrule(
        dr.WEEKLY,
        dtstart=to_utc(dtstart),
        interval=rule.interval,
        byweekday=[RRULE_WEEKDAYS[d] for d in rule.weekdays],
        count=rule.count,
    )


def occurrence_starts(
    rule: RecurrenceRule,
    dtstart: datetime,
    range_start: datetime,
    range_end: datetime,
) -> Iterator[datetime]:
    """Lazily yield rule start instants within [range_start, range_end]."""
    upper = range_end if rule.until is None else min(range_end, rule.until)
    if upper < range_start:
        return
    # rrule truncates dtstart to whole seconds
    fraction = timedelta(microseconds=to_utc(dtstart).microsecond)
    for s in build_rrule(rule, dtstart):
        s += fraction
        if s > upper:
            break
        if s >= range_start:
            yield s


def validate_window(range_start: datetime, range_end: datetime) -> tuple[datetime, datetime]:
    range_start, range_end = to_utc(range_start), to_utc(range_end)
    if range_end < range_start:
        raise InvalidWindow(f"window ends ({iso_z(range_end)}) before it starts ({iso_z(range_start)})")
    return range_start, range_end


def parse_window(start: str, end: str) -> tuple[datetime, datetime]:
    try:
        range_start, range_end = parse_iso_z(start), parse_iso_z(end)
    except (ValueError, TypeError, OverflowError) as exc:
        raise InvalidWindow(f"invalid date range provided: {exc}") from exc
    return validate_window(range_start, range_end)


def intersects_inclusive(start: datetime, end: datetime, range_start: datetime, range_end: datetime) -> bool:
    return (
        range_start <= start <= range_end
        or range_start <= end <= range_end
        or (start <= range_start and end >= range_end)
    )


def expand_event(event: Any, range_start: datetime, range_end: datetime) -> list[Occurrence]:
    """Occurrences of one event that fall in the closed window."""
    range_start, range_end = validate_window(range_start, range_end)
    start, end = to_utc(event.start), to_utc(event.end)
    source_id = getattr(event, "id", None)
    rule = rule_for_event(event)

    if rule is None:
        if intersects_inclusive(start, end, range_start, range_end):
            return [Occurrence(start, end, source_id, False, None, event)]
        return []

    duration = max(end - start, MIN_OCCURRENCE_DURATION)
    return [
        Occurrence(s, s + duration, source_id, True, rule, event)
        for s in occurrence_starts(rule, start, range_start, range_end)
    ]


def expand_events(events: Iterable[Any], range_start: datetime, range_end: datetime) -> list[Occurrence]:
    out: list[Occurrence] = []
    for ev in events:
        out.extend(expand_event(ev, range_start, range_end))
    out.sort(key=lambda o: o.start)
    return out


def recurrence_summary(rule: RecurrenceRule) -> str:
    interval = "Every week" if rule.interval == 1 else f"Every {rule.interval} weeks"
    days = ", ".join(WEEKDAY_NAMES[d] for d in rule.weekdays)
    text = f"{interval} on {days}"
    if rule.count:
        return f"{text} · {rule.count} {'time' if rule.count == 1 else 'times'}"
    if rule.until:
        return f"{text} · until {rule.until:%b} {rule.until.day}"
    return text
