"""Scheduling ORM models."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, SmallInteger, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin

if TYPE_CHECKING:
    from app.modules.programs.models import Program


class RecurrenceRule(BaseModelMixin, Base):
    """Weekly schedule of a recurring program (weekday 0 = Sunday)."""

    __tablename__ = "program_recurrence_rules"
    __table_args__ = (CheckConstraint("weekday >= 0 AND weekday <= 6", name="weekday_range"),)

    program_id: Mapped[UUID] = mapped_column(
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    weekday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    season_start: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    season_end: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    program: Mapped[Program] = relationship(back_populates="recurrence_rule")


class ScheduledOccurrence(BaseModelMixin, Base):
    """Listed date of a one-off workshop or trial program."""

    __tablename__ = "program_occurrences"
    __table_args__ = (UniqueConstraint("program_id", "date", "start_time", name="uq_program_occurrences_slot"),)

    program_id: Mapped[UUID] = mapped_column(
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)

    program: Mapped[Program] = relationship(back_populates="occurrences")


class OccurrenceOverride(BaseModelMixin, Base):
    """Per-date patch on top of a recurrence (rescheduled, cancelled or extra class)."""

    __tablename__ = "program_occurrence_overrides"
    __table_args__ = (UniqueConstraint("program_id", "date", name="uq_program_occurrence_overrides_date"),)

    program_id: Mapped[UUID] = mapped_column(
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    program: Mapped[Program] = relationship(back_populates="overrides")
