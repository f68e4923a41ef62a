# backend/eventcal/timeutil.py
"""UTC normalisation helpers. Everything inside the engine is UTC-aware."""

from __future__ import annotations

from datetime import datetime, timezone

from dateutil.parser import isoparse as iso_parse


def to_utc(dt: datetime) -> datetime:
    # sqlite hands back naive datetimes; they were written as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_z(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(iso_parse(value))


def iso_z(dt: datetime) -> str:
    return to_utc(dt).isoformat().replace("+00:00", "Z")
