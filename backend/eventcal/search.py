# backend/eventcal/search.py
"""Loose free-text search over expanded occurrences."""

from __future__ import annotations

import math

from .recurrence import Occurrence


def build_search_patterns(text: str) -> list[str]:
    """
    Tokens plus their leading/trailing ~60% slices, so partial words still hit.
    Multi-word input also matches as a whole phrase.
    """
    tokens = [t.strip() for t in text.split() if t.strip()]
    patterns: dict[str, None] = {}
    for token in tokens:
        patterns[token] = None
        if len(token) >= 3:
            n = max(2, math.ceil(len(token) * 0.6))
            patterns[token[:n]] = None
            patterns[token[-n:]] = None
    if len(tokens) > 1:
        patterns[" ".join(tokens)] = None
    return [p.lower() for p in patterns]


def _haystack(occ: Occurrence) -> str:
    ev = occ.event
    members = [p.member for p in (getattr(ev, "participants", None) or []) if p.member is not None]
    parts = [
        getattr(ev, "title", "") or "",
        getattr(ev, "description", "") or "",
        getattr(ev, "location", "") or "",
        getattr(ev, "category", "") or "",
        occ.recurrence_summary or "",
        " ".join(m.name for m in members),
        " ".join(m.part for m in members if m.part),
    ]
    return " ".join(parts).lower()


def matches_search(occ: Occurrence, patterns: list[str]) -> bool:
    hay = _haystack(occ)
    return any(p in hay for p in patterns)


def filter_by_search(occurrences: list[Occurrence], text: str | None) -> list[Occurrence]:
    if not text or not text.strip():
        return occurrences
    patterns = build_search_patterns(text)
    return [o for o in occurrences if matches_search(o, patterns)]
