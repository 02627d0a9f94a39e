"""Enrollment schemas and engine results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import EnrollmentStatusEnum, HolderStatusEnum, RejectionReasonEnum
from app.modules.enrollment.models import Enrollment


@dataclass(slots=True)
class EnrollmentResult:
    """Outcome of an engine operation: an enrollment or a typed rejection."""

    enrollment: Enrollment | None = None
    rejection: RejectionReasonEnum | None = None
    promoted: list[Enrollment] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @classmethod
    def rejected(cls, reason: RejectionReasonEnum, enrollment: Enrollment | None = None) -> "EnrollmentResult":
        return cls(enrollment=enrollment, rejection=reason)


class ReserveRequest(BaseModel):
    """Reserve or join-waitlist request."""

    sub_profile_id: UUID | None = None


class WithdrawRequest(BaseModel):
    """Withdraw from waitlist or decline an offered seat."""

    reason: str | None = Field(default=None, max_length=512)


class AvailabilityRead(BaseModel):
    """Capacity and waitlist snapshot for a program."""

    program_id: UUID
    capacity: int | None
    enrolled_count: int
    held_seats: int
    is_full: bool
    waitlist_enabled: bool
    is_offered: bool
    holder_status: HolderStatusEnum = HolderStatusEnum.NONE
    is_enrolled: bool = False
    waitlist_position: int | None = None


class EnrollmentRead(BaseModel):
    """Enrollment response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    program_id: UUID
    holder_user_id: UUID
    holder_sub_profile_id: UUID | None
    status: EnrollmentStatusEnum
    status_changed_at: datetime
    accepted_at: datetime | None
    claim_expires_at: datetime | None
    claim_expirations: int
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime
