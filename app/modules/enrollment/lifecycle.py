"""Enrollment lifecycle state machine.

``cancelled`` is terminal: re-enrolling creates a new enrollment so the
history of the old one stays intact.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from app.core.enums import EnrollmentStatusEnum, LifecycleEventEnum, RejectionReasonEnum
from app.modules.enrollment.models import Enrollment

TRANSITIONS: dict[tuple[EnrollmentStatusEnum | None, LifecycleEventEnum], EnrollmentStatusEnum] = {
    (None, LifecycleEventEnum.BOOK): EnrollmentStatusEnum.ACTIVE,
    (None, LifecycleEventEnum.JOIN_WAITLIST): EnrollmentStatusEnum.WAITLISTED,
    (EnrollmentStatusEnum.WAITLISTED, LifecycleEventEnum.PROMOTE): EnrollmentStatusEnum.ACCEPTED,
    (EnrollmentStatusEnum.ACCEPTED, LifecycleEventEnum.CLAIM): EnrollmentStatusEnum.ACTIVE,
    (EnrollmentStatusEnum.ACCEPTED, LifecycleEventEnum.CLAIM_LAPSED): EnrollmentStatusEnum.WAITLISTED,
    (EnrollmentStatusEnum.ACTIVE, LifecycleEventEnum.CANCEL): EnrollmentStatusEnum.CANCELLED,
    (EnrollmentStatusEnum.WAITLISTED, LifecycleEventEnum.WITHDRAW): EnrollmentStatusEnum.CANCELLED,
    (EnrollmentStatusEnum.ACCEPTED, LifecycleEventEnum.WITHDRAW): EnrollmentStatusEnum.CANCELLED,
}


class EnrollmentStateMachine:
    """Single place where enrollment status is mutated."""

    def __init__(self, claim_window: timedelta) -> None:
        self.claim_window = claim_window

    @staticmethod
    def target(current: EnrollmentStatusEnum | None, event: LifecycleEventEnum) -> EnrollmentStatusEnum | None:
        return TRANSITIONS.get((current, event))

    def initial_status(self, event: LifecycleEventEnum) -> EnrollmentStatusEnum:
        """Status of a new enrollment created by ``event``."""
        status = self.target(None, event)
        if status is None:
            raise ValueError(f"Event {event} cannot create an enrollment")
        return status

    def apply(
        self,
        enrollment: Enrollment,
        event: LifecycleEventEnum,
        now: datetime,
        *,
        reason: str | None = None,
    ) -> RejectionReasonEnum | None:
        """Apply ``event``; return a rejection when the transition is not allowed."""
        target = self.target(enrollment.status, event)
        if target is None:
            return RejectionReasonEnum.NOT_ELIGIBLE

        if event == LifecycleEventEnum.PROMOTE:
            enrollment.accepted_at = now
            enrollment.claim_expires_at = now + self.claim_window
        elif event == LifecycleEventEnum.CLAIM:
            enrollment.claim_expires_at = None
        elif event == LifecycleEventEnum.CLAIM_LAPSED:
            enrollment.accepted_at = None
            enrollment.claim_expires_at = None
            enrollment.claim_expirations += 1
        elif target == EnrollmentStatusEnum.CANCELLED:
            enrollment.cancelled_at = now
            enrollment.cancellation_reason = reason
            enrollment.claim_expires_at = None

        enrollment.status = target
        enrollment.status_changed_at = now
        return None
