"""Enrollment ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import EnrollmentStatusEnum
from app.shared.utils import utc_now

if TYPE_CHECKING:
    from app.modules.programs.models import Program


class Enrollment(BaseModelMixin, Base):
    """Relationship of a holder to a program; ``created_at`` is the waitlist position."""

    __tablename__ = "enrollments"
    __table_args__ = (
        Index(
            "uq_enrollments_program_holder_open",
            "program_id",
            "holder_key",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
        ),
        Index("ix_enrollments_program_status_created", "program_id", "status", "created_at"),
    )

    program_id: Mapped[UUID] = mapped_column(
        ForeignKey("programs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    holder_user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    holder_sub_profile_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    holder_key: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[EnrollmentStatusEnum] = mapped_column(
        SAEnum(EnrollmentStatusEnum, name="enrollment_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    status_changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claim_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    claim_expirations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)

    program: Mapped["Program"] = relationship(back_populates="enrollments")
