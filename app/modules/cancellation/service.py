"""Cancellation business logic layer."""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import EnrollmentStatusEnum, LifecycleEventEnum, RejectionReasonEnum
from app.core.metrics import CANCELLATIONS_TOTAL
from app.modules.audit.repository import AuditRepository
from app.modules.cancellation.calculator import CancellationWindowCalculator
from app.modules.cancellation.models import CancellationPolicy
from app.modules.cancellation.repository import CancellationPolicyRepository
from app.modules.cancellation.schemas import (
    CancellationDecision,
    CancellationEvaluationRead,
    CancellationOutcome,
    ConfirmRequest,
    EvaluateRequest,
    StudioContact,
)
from app.modules.enrollment.capacity import CapacityManager
from app.modules.enrollment.models import Enrollment
from app.modules.enrollment.repository import EnrollmentRepository
from app.modules.enrollment.schemas import EnrollmentResult
from app.modules.enrollment.service import build_capacity_manager, holder_of
from app.modules.identity.schemas import Claims
from app.modules.programs.models import Program
from app.modules.programs.repository import ProgramsRepository
from app.shared.exceptions import NotFoundException
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)


def build_evaluation(decision: CancellationDecision, policy: CancellationPolicy | None) -> CancellationEvaluationRead:
    """Attach the studio's policy texts and contact details to a decision."""
    contact = None
    if policy is not None and (policy.contact_email or policy.contact_phone):
        contact = StudioContact(contact_email=policy.contact_email, phone_number=policy.contact_phone)
    return CancellationEvaluationRead(
        allowed=decision.allowed,
        cutoff=decision.cutoff,
        window_label=decision.window_label,
        cancellation_policy=policy.cancellation_policy if policy else None,
        refund_policy=policy.refund_policy if policy else None,
        contact=contact,
    )


class CancellationService:
    """Cancellation window checks and enrollment cancellation."""

    def __init__(
        self,
        programs_repository: ProgramsRepository,
        enrollment_repository: EnrollmentRepository,
        policy_repository: CancellationPolicyRepository,
        calculator: CancellationWindowCalculator,
        capacity_manager: CapacityManager,
    ) -> None:
        self.programs_repository = programs_repository
        self.enrollment_repository = enrollment_repository
        self.policy_repository = policy_repository
        self.calculator = calculator
        self.capacity_manager = capacity_manager

    async def _evaluate_program(
        self,
        program: Program,
        enrollment: Enrollment | None = None,
    ) -> CancellationEvaluationRead:
        policy = await self.policy_repository.get_current_policy(program.studio_id)
        decision = self.calculator.evaluate(program, policy, utc_now(), enrollment)
        return build_evaluation(decision, policy)

    async def evaluate(self, payload: EvaluateRequest, claims: Claims | None) -> CancellationOutcome:
        """Evaluate the cancellation window for one of the caller's enrollments or for a program."""
        enrollment = None
        program_id = payload.program_id
        if payload.enrollment_id is not None:
            enrollment = await self.enrollment_repository.get_enrollment_by_id(payload.enrollment_id)
            if enrollment is None:
                raise NotFoundException("Enrollment not found")
            if (
                claims is None
                or not claims.can_act_for(holder_of(enrollment))
                or enrollment.status == EnrollmentStatusEnum.CANCELLED
            ):
                return CancellationOutcome(EnrollmentResult.rejected(RejectionReasonEnum.NOT_ELIGIBLE))
            program_id = enrollment.program_id

        program = await self.programs_repository.get_program(program_id)
        if program is None:
            raise NotFoundException("Program not found")
        evaluation = await self._evaluate_program(program, enrollment)
        return CancellationOutcome(EnrollmentResult(enrollment=enrollment), evaluation)

    async def confirm(self, payload: ConfirmRequest, claims: Claims) -> CancellationOutcome:
        """Cancel an enrollment if its window is still open; waitlist entries may always withdraw."""
        enrollment = await self.enrollment_repository.get_enrollment_by_id(payload.enrollment_id)
        if enrollment is None:
            raise NotFoundException("Enrollment not found")

        async with self.programs_repository.lock_program(enrollment.program_id) as program:
            if program is None:
                raise NotFoundException("Program not found")
            enrollment = await self.enrollment_repository.get_enrollment_by_id(payload.enrollment_id)
            outcome = await self._confirm_locked(program, enrollment, payload.reason, claims)

        result = outcome.result
        CANCELLATIONS_TOTAL.labels(outcome="cancelled" if result.ok else result.rejection.value).inc()
        return outcome

    async def _confirm_locked(
        self,
        program: Program,
        enrollment: Enrollment,
        reason: str | None,
        claims: Claims,
    ) -> CancellationOutcome:
        if not claims.can_act_for(holder_of(enrollment)):
            return CancellationOutcome(EnrollmentResult.rejected(RejectionReasonEnum.NOT_ELIGIBLE, enrollment))

        now = utc_now()
        if enrollment.status in (EnrollmentStatusEnum.WAITLISTED, EnrollmentStatusEnum.ACCEPTED):
            result = await self.capacity_manager.release(
                program,
                enrollment,
                LifecycleEventEnum.WITHDRAW,
                now,
                actor_id=claims.user_id,
                reason=reason,
            )
            return CancellationOutcome(result)

        if enrollment.status != EnrollmentStatusEnum.ACTIVE:
            return CancellationOutcome(EnrollmentResult.rejected(RejectionReasonEnum.NOT_ELIGIBLE, enrollment))

        evaluation = await self._evaluate_program(program, enrollment)
        if not evaluation.allowed:
            logger.info("Cancellation of enrollment %s denied, cutoff was %s", enrollment.id, evaluation.cutoff)
            return CancellationOutcome(
                EnrollmentResult.rejected(RejectionReasonEnum.CANCELLATION_WINDOW_CLOSED, enrollment),
                evaluation,
            )

        result = await self.capacity_manager.release(
            program,
            enrollment,
            LifecycleEventEnum.CANCEL,
            now,
            actor_id=claims.user_id,
            reason=reason,
        )
        logger.info("Enrollment %s cancelled, %d holders promoted", enrollment.id, len(result.promoted))
        return CancellationOutcome(result, evaluation)


async def get_cancellation_service(session: AsyncSession = Depends(get_db_session)) -> CancellationService:
    """Dependency provider for cancellation service."""
    enrollment_repository = EnrollmentRepository(session)
    capacity_manager = build_capacity_manager(enrollment_repository, AuditRepository(session))
    return CancellationService(
        programs_repository=ProgramsRepository(session),
        enrollment_repository=enrollment_repository,
        policy_repository=CancellationPolicyRepository(session),
        calculator=CancellationWindowCalculator(capacity_manager.resolver),
        capacity_manager=capacity_manager,
    )
