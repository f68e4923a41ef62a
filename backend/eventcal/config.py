# backend/eventcal/config.py
"""Environment-driven settings shared by the API, store and engine."""

from __future__ import annotations

import os


def _clean(s: str | None) -> str | None:
    return s.strip().rstrip("/") if s and s.strip() else None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        return default


DATABASE_URL = os.getenv("DATABASE_URL")

FRONTEND_ORIGIN = _clean(os.getenv("FRONTEND_ORIGIN")) or "http://localhost:5173"
EXTRA_CORS_ORIGINS = [x for x in (_clean(p) for p in os.getenv("EXTRA_CORS_ORIGINS", "").split(",")) if x]

AUTO_MIGRATE = os.getenv("AUTO_MIGRATE") == "1"

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE") or "Asia/Seoul"
DEFAULT_COLOR = "#1A73E8"
DEFAULT_CATEGORY = "rehearsal"

# how far ahead an unbounded recurrence is scanned for conflicts
CONFLICT_HORIZON_MONTHS = _int_env("CONFLICT_HORIZON_MONTHS", 6)

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()


def cors_origins() -> list[str]:
    if "*" in EXTRA_CORS_ORIGINS:
        return ["*"]
    return [o for o in {FRONTEND_ORIGIN, *EXTRA_CORS_ORIGINS} if o]
