from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from app.core.enums import EnrollmentStatusEnum, LifecycleEventEnum, RejectionReasonEnum
from app.modules.enrollment.lifecycle import TRANSITIONS, EnrollmentStateMachine
from tests.fakes import FakeEnrollment, utc

NOW = utc(2025, 3, 3, 9, 0)
machine = EnrollmentStateMachine(timedelta(hours=24))


def make_enrollment(status: EnrollmentStatusEnum) -> FakeEnrollment:
    user_id = uuid4()
    return FakeEnrollment(
        program_id=uuid4(),
        holder_user_id=user_id,
        holder_sub_profile_id=None,
        holder_key=f"user:{user_id}",
        status=status,
        created_at=NOW - timedelta(days=1),
        updated_at=NOW - timedelta(days=1),
        status_changed_at=NOW - timedelta(days=1),
    )


def test_new_enrollments_start_active_or_waitlisted() -> None:
    assert machine.initial_status(LifecycleEventEnum.BOOK) == EnrollmentStatusEnum.ACTIVE
    assert machine.initial_status(LifecycleEventEnum.JOIN_WAITLIST) == EnrollmentStatusEnum.WAITLISTED
    with pytest.raises(ValueError):
        machine.initial_status(LifecycleEventEnum.CANCEL)


def test_promotion_opens_claim_window() -> None:
    enrollment = make_enrollment(EnrollmentStatusEnum.WAITLISTED)

    assert machine.apply(enrollment, LifecycleEventEnum.PROMOTE, NOW) is None

    assert enrollment.status == EnrollmentStatusEnum.ACCEPTED
    assert enrollment.accepted_at == NOW
    assert enrollment.claim_expires_at == NOW + timedelta(hours=24)
    assert enrollment.status_changed_at == NOW


def test_claim_makes_enrollment_active() -> None:
    enrollment = make_enrollment(EnrollmentStatusEnum.WAITLISTED)
    machine.apply(enrollment, LifecycleEventEnum.PROMOTE, NOW)

    assert machine.apply(enrollment, LifecycleEventEnum.CLAIM, NOW + timedelta(hours=2)) is None

    assert enrollment.status == EnrollmentStatusEnum.ACTIVE
    assert enrollment.claim_expires_at is None
    assert enrollment.accepted_at == NOW


def test_lapsed_claim_returns_to_waitlist_keeping_position() -> None:
    enrollment = make_enrollment(EnrollmentStatusEnum.WAITLISTED)
    created_at = enrollment.created_at
    machine.apply(enrollment, LifecycleEventEnum.PROMOTE, NOW)

    assert machine.apply(enrollment, LifecycleEventEnum.CLAIM_LAPSED, NOW + timedelta(hours=25)) is None

    assert enrollment.status == EnrollmentStatusEnum.WAITLISTED
    assert enrollment.claim_expires_at is None
    assert enrollment.accepted_at is None
    assert enrollment.claim_expirations == 1
    assert enrollment.created_at == created_at


@pytest.mark.parametrize(
    ("status", "event"),
    [
        (EnrollmentStatusEnum.ACTIVE, LifecycleEventEnum.CANCEL),
        (EnrollmentStatusEnum.WAITLISTED, LifecycleEventEnum.WITHDRAW),
        (EnrollmentStatusEnum.ACCEPTED, LifecycleEventEnum.WITHDRAW),
    ],
)
def test_leaving_transitions_end_in_cancelled(status, event) -> None:
    enrollment = make_enrollment(status)
    enrollment.claim_expires_at = NOW + timedelta(hours=3)

    assert machine.apply(enrollment, event, NOW, reason="verhuisd") is None

    assert enrollment.status == EnrollmentStatusEnum.CANCELLED
    assert enrollment.cancelled_at == NOW
    assert enrollment.cancellation_reason == "verhuisd"
    assert enrollment.claim_expires_at is None


@pytest.mark.parametrize(
    ("status", "event"),
    [
        (EnrollmentStatusEnum.CANCELLED, LifecycleEventEnum.CANCEL),
        (EnrollmentStatusEnum.CANCELLED, LifecycleEventEnum.WITHDRAW),
        (EnrollmentStatusEnum.ACTIVE, LifecycleEventEnum.WITHDRAW),
        (EnrollmentStatusEnum.ACTIVE, LifecycleEventEnum.PROMOTE),
        (EnrollmentStatusEnum.WAITLISTED, LifecycleEventEnum.CANCEL),
        (EnrollmentStatusEnum.WAITLISTED, LifecycleEventEnum.CLAIM),
        (EnrollmentStatusEnum.ACCEPTED, LifecycleEventEnum.PROMOTE),
    ],
)
def test_transitions_outside_the_table_are_not_eligible(status, event) -> None:
    enrollment = make_enrollment(status)

    assert machine.apply(enrollment, event, NOW) == RejectionReasonEnum.NOT_ELIGIBLE
    assert enrollment.status == status


def test_cancelled_is_terminal() -> None:
    assert not any(current == EnrollmentStatusEnum.CANCELLED for current, _ in TRANSITIONS)
