"""Enrollment business logic layer."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import EnrollmentStatusEnum, LifecycleEventEnum, RejectionReasonEnum
from app.core.metrics import CANCELLATIONS_TOTAL, ENROLLMENT_RESERVATIONS_TOTAL
from app.modules.audit.repository import AuditRepository
from app.modules.enrollment.capacity import CapacityManager, waitlist_effective
from app.modules.enrollment.events import EnrollmentEventRecorder
from app.modules.enrollment.lifecycle import EnrollmentStateMachine
from app.modules.enrollment.models import Enrollment
from app.modules.enrollment.repository import EnrollmentRepository
from app.modules.enrollment.schemas import AvailabilityRead, EnrollmentResult
from app.modules.identity.schemas import Claims, HolderRef
from app.modules.programs.models import Program
from app.modules.programs.repository import ProgramsRepository
from app.modules.scheduling.service import ScheduleResolver
from app.shared.exceptions import NotFoundException, UnauthorizedException
from app.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


def holder_of(enrollment: Enrollment) -> HolderRef:
    return HolderRef(user_id=enrollment.holder_user_id, sub_profile_id=enrollment.holder_sub_profile_id)


def build_capacity_manager(
    enrollment_repository: EnrollmentRepository,
    audit_repository: AuditRepository,
) -> CapacityManager:
    """Wire the capacity manager with the configured claim window."""
    return CapacityManager(
        enrollment_repository=enrollment_repository,
        resolver=ScheduleResolver(),
        state_machine=EnrollmentStateMachine(timedelta(hours=settings.waitlist_claim_window_hours)),
        recorder=EnrollmentEventRecorder(audit_repository),
    )


class EnrollmentService:
    """Enrollment domain service: reservations, waitlists and withdrawals."""

    def __init__(
        self,
        programs_repository: ProgramsRepository,
        enrollment_repository: EnrollmentRepository,
        capacity_manager: CapacityManager,
    ) -> None:
        self.programs_repository = programs_repository
        self.enrollment_repository = enrollment_repository
        self.capacity_manager = capacity_manager

    @asynccontextmanager
    async def locked_program(self, program_id: UUID) -> AsyncIterator[Program]:
        async with self.programs_repository.lock_program(program_id) as program:
            if program is None:
                raise NotFoundException("Program not found")
            yield program

    @staticmethod
    def _holder(claims: Claims, sub_profile_id: UUID | None) -> HolderRef:
        holder = claims.holder(sub_profile_id)
        if not claims.can_act_for(holder):
            raise UnauthorizedException("You cannot enroll this sub-profile")
        return holder

    async def availability(
        self,
        program_id: UUID,
        claims: Claims | None,
        sub_profile_id: UUID | None = None,
    ) -> AvailabilityRead:
        """Return capacity, waitlist and holder status of a program."""
        program = await self.programs_repository.get_program(program_id)
        if program is None:
            raise NotFoundException("Program not found")
        holder = self._holder(claims, sub_profile_id) if claims is not None else None
        return await self.capacity_manager.check_availability(program, holder, utc_now())

    async def reserve(self, program_id: UUID, claims: Claims, sub_profile_id: UUID | None = None) -> EnrollmentResult:
        """Reserve a seat without falling back to the waitlist."""
        holder = self._holder(claims, sub_profile_id)
        async with self.locked_program(program_id) as program:
            result = await self.capacity_manager.reserve(program, holder, utc_now(), claims.user_id)
        self._count_reservation(result, "reserved")
        return result

    async def join_waitlist(
        self,
        program_id: UUID,
        claims: Claims,
        sub_profile_id: UUID | None = None,
    ) -> EnrollmentResult:
        """Join the waitlist of a full program."""
        holder = self._holder(claims, sub_profile_id)
        async with self.locked_program(program_id) as program:
            result = await self.capacity_manager.join_waitlist(program, holder, utc_now(), claims.user_id)
        self._count_reservation(result, "waitlisted")
        return result

    async def book(self, program_id: UUID, claims: Claims, sub_profile_id: UUID | None = None) -> EnrollmentResult:
        """Reserve a seat, joining the waitlist when the program is full."""
        holder = self._holder(claims, sub_profile_id)
        async with self.locked_program(program_id) as program:
            now = utc_now()
            result = await self.capacity_manager.reserve(program, holder, now, claims.user_id)
            if result.rejection == RejectionReasonEnum.FULL:
                if result.enrollment is not None:
                    result.rejection = RejectionReasonEnum.ALREADY_WAITLISTED
                elif waitlist_effective(program):
                    joined = await self.capacity_manager.join_waitlist(program, holder, now, claims.user_id)
                    joined.promoted = [*result.promoted, *joined.promoted]
                    result = joined

        outcome = "reserved"
        if result.enrollment is not None and result.enrollment.status == EnrollmentStatusEnum.WAITLISTED:
            outcome = "waitlisted"
        self._count_reservation(result, outcome)
        return result

    async def withdraw(self, enrollment_id: UUID, claims: Claims, reason: str | None = None) -> EnrollmentResult:
        """Leave the waitlist or decline an offered seat."""
        enrollment = await self._get_enrollment(enrollment_id)
        async with self.locked_program(enrollment.program_id) as program:
            enrollment = await self._get_enrollment(enrollment_id)
            if not claims.can_act_for(holder_of(enrollment)) or enrollment.status not in (
                EnrollmentStatusEnum.WAITLISTED,
                EnrollmentStatusEnum.ACCEPTED,
            ):
                result = EnrollmentResult.rejected(RejectionReasonEnum.NOT_ELIGIBLE, enrollment)
            else:
                result = await self.capacity_manager.release(
                    program,
                    enrollment,
                    LifecycleEventEnum.WITHDRAW,
                    utc_now(),
                    actor_id=claims.user_id,
                    reason=reason,
                )

        CANCELLATIONS_TOTAL.labels(outcome="withdrawn" if result.ok else result.rejection.value).inc()
        return result

    async def accept_from_waitlist(self, program_id: UUID, enrollment_id: UUID, claims: Claims) -> EnrollmentResult:
        """Studio admin offers a seat of a full program to a specific waitlisted holder."""
        async with self.locked_program(program_id) as program:
            enrollment = await self.enrollment_repository.get_enrollment_by_id(enrollment_id)
            if enrollment is None or enrollment.program_id != program.id:
                raise NotFoundException("Enrollment not found")
            return await self.capacity_manager.accept_from_waitlist(program, enrollment, claims, utc_now())

    async def list_my_enrollments(
        self,
        claims: Claims,
        statuses: list[EnrollmentStatusEnum] | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Enrollment], int]:
        """List enrollments held by the caller and their sub-profiles."""
        return await self.enrollment_repository.list_enrollments_for_user(claims.user_id, statuses, limit, offset)

    async def expire_program_claims(self, program_id: UUID) -> list[Enrollment]:
        """Expire lapsed claims of one program and promote the next holders."""
        async with self.programs_repository.lock_program(program_id) as program:
            if program is None:
                return []
            return await self.capacity_manager.settle(program, utc_now())

    async def _get_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self.enrollment_repository.get_enrollment_by_id(enrollment_id)
        if enrollment is None:
            raise NotFoundException("Enrollment not found")
        return enrollment

    @staticmethod
    def _count_reservation(result: EnrollmentResult, outcome: str) -> None:
        ENROLLMENT_RESERVATIONS_TOTAL.labels(outcome=outcome if result.ok else result.rejection.value).inc()


def build_enrollment_service(session: AsyncSession) -> EnrollmentService:
    enrollment_repository = EnrollmentRepository(session)
    return EnrollmentService(
        programs_repository=ProgramsRepository(session),
        enrollment_repository=enrollment_repository,
        capacity_manager=build_capacity_manager(enrollment_repository, AuditRepository(session)),
    )


async def get_enrollment_service(session: AsyncSession = Depends(get_db_session)) -> EnrollmentService:
    """Dependency provider for enrollment service."""
    return build_enrollment_service(session)
