from __future__ import annotations
from typing import Optional
from datetime import datetime, timezone
import uuid

from sqlalchemy import String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .config import DEFAULT_COLOR, DEFAULT_CATEGORY, DEFAULT_TIMEZONE


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    """Raw stored event. Recurring events are kept as one row plus a JSON rule."""
    __tablename__ = "events"

    id:       Mapped[str]       = mapped_column(String(32), primary_key=True, default=_new_id)
    title:    Mapped[str]       = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    location:    Mapped[Optional[str]] = mapped_column(String(255),  nullable=True)
    color:    Mapped[str]       = mapped_column(String(32), nullable=False, default=DEFAULT_COLOR)
    category: Mapped[str]       = mapped_column(String(64), nullable=False, default=DEFAULT_CATEGORY, index=True)
    start:    Mapped[datetime]  = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end:      Mapped[datetime]  = mapped_column(DateTime(timezone=True), nullable=False)
    timezone: Mapped[str]       = mapped_column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    recurrence_rule: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    participants: Mapped[list["EventParticipant"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class Member(Base):
    __tablename__ = "members"

    id:      Mapped[str]           = mapped_column(String(32), primary_key=True, default=_new_id)
    name:    Mapped[str]           = mapped_column(String(120), nullable=False)
    part:    Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    contact: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class EventParticipant(Base):
    __tablename__ = "event_participants"
    __table_args__ = (UniqueConstraint("event_id", "member_id", name="uq_event_participant"),)

    id:        Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    event_id:  Mapped[str] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    event:  Mapped[Event]  = relationship(back_populates="participants")
    member: Mapped[Member] = relationship(lazy="joined")
