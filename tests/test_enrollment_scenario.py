from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from app.core.enums import EnrollmentStatusEnum, HolderStatusEnum, RejectionReasonEnum, WindowUnitEnum
from app.modules.cancellation.schemas import ConfirmRequest
from app.modules.identity.schemas import Claims
from tests.fakes import FakePolicy, build_engine, weekly_program


@pytest.mark.asyncio
async def test_full_class_waitlist_cancellation_and_claim(clock) -> None:
    program = weekly_program(weekday=3, capacity=2, waitlist_enabled=True, title="Bachata gevorderd")
    policy = FakePolicy(
        studio_id=program.studio_id,
        recurring_window_value=1,
        recurring_window_unit=WindowUnitEnum.DAYS,
    )
    engine = build_engine([program], clock, policies=[policy])
    enrollments = engine.enrollment_service
    h1, h2, h3 = (Claims(user_id=uuid4()) for _ in range(3))

    first = await enrollments.reserve(program.id, h1)
    second = await enrollments.reserve(program.id, h2)
    third = await enrollments.reserve(program.id, h3)
    assert first.ok and second.ok
    assert third.rejection == RejectionReasonEnum.FULL

    queued = await enrollments.join_waitlist(program.id, h3)
    assert queued.enrollment.status == EnrollmentStatusEnum.WAITLISTED
    assert (await enrollments.availability(program.id, h3)).waitlist_position == 1

    clock.advance(hours=2)
    cancelled = await engine.cancellation_service.confirm(ConfirmRequest(enrollment_id=first.enrollment.id), h1)
    assert cancelled.result.ok
    assert first.enrollment.status == EnrollmentStatusEnum.CANCELLED
    assert queued.enrollment.status == EnrollmentStatusEnum.ACCEPTED
    assert queued.enrollment.claim_expires_at == clock.now + timedelta(hours=24)
    assert (await enrollments.availability(program.id, h3)).holder_status == HolderStatusEnum.ACCEPTED

    clock.advance(hours=5)
    claimed = await enrollments.reserve(program.id, h3)
    assert claimed.ok
    assert claimed.enrollment.status == EnrollmentStatusEnum.ACTIVE

    availability = await enrollments.availability(program.id, None)
    assert availability.enrolled_count == 2
    assert availability.is_full is True
    assert engine.audit.event_types() == [
        "enrollment.reserved",
        "enrollment.reserved",
        "enrollment.waitlisted",
        "enrollment.cancelled",
        "waitlist.promoted",
    ]
