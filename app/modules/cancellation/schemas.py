"""Cancellation schemas and decisions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.modules.enrollment.schemas import EnrollmentResult


@dataclass(frozen=True, slots=True)
class CancellationDecision:
    """Whether cancelling is still allowed, and until when."""

    allowed: bool
    cutoff: datetime | None = None
    window_label: str | None = None


class StudioContact(BaseModel):
    """Studio contact details shown next to cancellation denials."""

    contact_email: str | None = None
    phone_number: str | None = None


class EvaluateRequest(BaseModel):
    """Evaluate the cancellation window of an enrollment or, before enrolling, of a program."""

    enrollment_id: UUID | None = None
    program_id: UUID | None = None

    @model_validator(mode="after")
    def validate_target(self) -> "EvaluateRequest":
        if self.enrollment_id is None and self.program_id is None:
            raise ValueError("enrollment_id or program_id is required")
        return self


class ConfirmRequest(BaseModel):
    """Cancel an enrollment."""

    enrollment_id: UUID
    reason: str | None = Field(default=None, max_length=512)


class CancellationEvaluationRead(BaseModel):
    """Cancellation window together with the studio's policy texts."""

    allowed: bool
    cutoff: datetime | None = None
    window_label: str | None = None
    cancellation_policy: str | None = None
    refund_policy: str | None = None
    contact: StudioContact | None = None


@dataclass(slots=True)
class CancellationOutcome:
    """Result of a cancellation request with the window it was judged against."""

    result: EnrollmentResult
    evaluation: CancellationEvaluationRead | None = None
