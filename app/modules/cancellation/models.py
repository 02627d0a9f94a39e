"""Cancellation policy ORM models."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Enum as SAEnum, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin
from app.core.enums import WindowUnitEnum


def _unit_column() -> Mapped[WindowUnitEnum | None]:
    return mapped_column(
        SAEnum(WindowUnitEnum, name="window_unit_enum", native_enum=False),
        nullable=True,
    )


class CancellationPolicy(BaseModelMixin, Base):
    """Versioned studio policy; the highest version is the current one."""

    __tablename__ = "cancellation_policies"
    __table_args__ = (UniqueConstraint("studio_id", "version", name="uq_cancellation_policies_studio_version"),)

    studio_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    cancellation_policy: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_policy: Mapped[str | None] = mapped_column(Text, nullable=True)

    recurring_window_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recurring_window_unit: Mapped[WindowUnitEnum | None] = _unit_column()
    workshop_window_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    workshop_window_unit: Mapped[WindowUnitEnum | None] = _unit_column()
    trial_window_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trial_window_unit: Mapped[WindowUnitEnum | None] = _unit_column()
    cancellation_period_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
