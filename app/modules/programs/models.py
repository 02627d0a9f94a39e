"""Program ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Enum as SAEnum, Integer, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.config import get_settings
from app.core.database import Base, BaseModelMixin
from app.core.enums import ProgramTypeEnum

if TYPE_CHECKING:
    from app.modules.enrollment.models import Enrollment
    from app.modules.scheduling.models import OccurrenceOverride, RecurrenceRule, ScheduledOccurrence


class Program(BaseModelMixin, Base):
    """Bookable offering of a studio."""

    __tablename__ = "programs"

    studio_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    program_type: Mapped[ProgramTypeEnum] = mapped_column(
        SAEnum(ProgramTypeEnum, name="program_type_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    waitlist_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    manual_full_override: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default=get_settings().default_studio_timezone, nullable=False)

    recurrence_rule: Mapped["RecurrenceRule | None"] = relationship(
        back_populates="program",
        uselist=False,
        cascade="all, delete-orphan",
    )
    occurrences: Mapped[list["ScheduledOccurrence"]] = relationship(
        back_populates="program",
        cascade="all, delete-orphan",
        order_by="(ScheduledOccurrence.date, ScheduledOccurrence.start_time)",
    )
    overrides: Mapped[list["OccurrenceOverride"]] = relationship(
        back_populates="program",
        cascade="all, delete-orphan",
        order_by="OccurrenceOverride.date",
    )
    enrollments: Mapped[list["Enrollment"]] = relationship(back_populates="program")

    @property
    def effective_capacity(self) -> int | None:
        """Capacity limit, or None when unlimited (unset or non-positive)."""
        if self.capacity is None or self.capacity <= 0:
            return None
        return self.capacity
