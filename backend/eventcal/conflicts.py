# backend/eventcal/conflicts.py
"""Double-booking detection between a candidate event and stored events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from dateutil.relativedelta import relativedelta

from .config import CONFLICT_HORIZON_MONTHS
from .recurrence import MIN_OCCURRENCE_DURATION, Occurrence, RecurrenceRule, expand_event
from .timeutil import to_utc


@dataclass(frozen=True)
class Candidate:
    """Event fields as they would be written, before they exist in the store."""
    start: datetime
    end: datetime
    recurrence_rule: Optional[RecurrenceRule] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class ScheduleConflict:
    candidate: Occurrence
    existing: Occurrence
    message: str = "This time slot is already booked."


def overlaps(a: Occurrence, b: Occurrence) -> bool:
    # open intervals: back-to-back slots are allowed
    return a.start < b.end and a.end > b.start


def conflict_horizon(candidate: Candidate, months: int = CONFLICT_HORIZON_MONTHS) -> tuple[datetime, datetime]:
    start, end = to_utc(candidate.start), to_utc(candidate.end)
    horizon_end = start + relativedelta(months=months)
    rule = candidate.recurrence_rule
    if rule is not None and rule.until is not None:
        horizon_end = max(horizon_end, rule.until)
    return start, max(horizon_end, end)


def find_conflict(
    candidate: Candidate,
    existing_events: Iterable[Any],
    horizon: tuple[datetime, datetime],
    exclude_id: Optional[str] = None,
) -> Optional[ScheduleConflict]:
    """First overlapping (candidate, existing) occurrence pair, or None."""
    range_start, range_end = horizon
    wanted = expand_event(candidate, range_start, range_end)
    if not wanted:
        return None
    for ev in existing_events:
        if exclude_id is not None and getattr(ev, "id", None) == exclude_id:
            continue
        # an occurrence that began just before the horizon can still run into it
        lookback = max(to_utc(ev.end) - to_utc(ev.start), MIN_OCCURRENCE_DURATION)
        for occ in expand_event(ev, range_start - lookback, range_end):
            for cand in wanted:
                if overlaps(cand, occ):
                    return ScheduleConflict(candidate=cand, existing=occ)
    return None


def check_conflict(
    candidate: Candidate,
    find_in_window: Callable[[datetime, datetime], Iterable[Any]],
    exclude_id: Optional[str] = None,
) -> Optional[ScheduleConflict]:
    """
    Expand the candidate over its horizon and compare it against every stored
    event the store returns for that same horizon. Read-only.
    """
    horizon = conflict_horizon(candidate)
    return find_conflict(candidate, find_in_window(*horizon), horizon, exclude_id)
