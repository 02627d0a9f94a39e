"""Capacity and waitlist rules.

Every mutating method expects the caller to hold the program lock
(``ProgramsRepository.lock_program``) for the duration of the call.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import datetime
from uuid import UUID

from app.core.enums import (
    EnrollmentStatusEnum,
    HolderStatusEnum,
    LifecycleEventEnum,
    RejectionReasonEnum,
)
from app.core.metrics import CLAIM_EXPIRATIONS_TOTAL, WAITLIST_PROMOTIONS_TOTAL
from app.modules.enrollment.events import EnrollmentEventRecorder
from app.modules.enrollment.lifecycle import EnrollmentStateMachine
from app.modules.enrollment.models import Enrollment
from app.modules.enrollment.repository import EnrollmentRepository
from app.modules.enrollment.schemas import AvailabilityRead, EnrollmentResult
from app.modules.identity.schemas import Claims, HolderRef
from app.modules.programs.models import Program
from app.modules.scheduling.service import ScheduleResolver, ScheduleUnresolvableError

logger = logging.getLogger(__name__)


def waitlist_effective(program: Program) -> bool:
    """Waitlists only apply to programs with a positive capacity."""
    return bool(program.waitlist_enabled) and program.effective_capacity is not None


def is_full(program: Program, held_seats: int) -> bool:
    if program.manual_full_override:
        return True
    capacity = program.effective_capacity
    return capacity is not None and held_seats >= capacity


def claim_running(enrollment: Enrollment, now: datetime) -> bool:
    return (
        enrollment.status == EnrollmentStatusEnum.ACCEPTED
        and enrollment.claim_expires_at is not None
        and enrollment.claim_expires_at > now
    )


class CapacityManager:
    """Seat accounting, waitlist joins and FIFO promotion for one program at a time."""

    def __init__(
        self,
        enrollment_repository: EnrollmentRepository,
        resolver: ScheduleResolver,
        state_machine: EnrollmentStateMachine,
        recorder: EnrollmentEventRecorder,
    ) -> None:
        self.enrollment_repository = enrollment_repository
        self.resolver = resolver
        self.state_machine = state_machine
        self.recorder = recorder

    async def held_seats(self, program: Program, now: datetime) -> tuple[int, int]:
        """Return (active enrollments, seats held by active enrollments and running claims)."""
        active, pending_claims = await self.enrollment_repository.count_seats(program.id, now)
        return active, active + pending_claims

    def offer_rejection(self, program: Program, now: datetime) -> RejectionReasonEnum | None:
        try:
            offered = self.resolver.is_offering_active(program, now)
        except ScheduleUnresolvableError as exc:
            logger.warning("Rejecting enrollment change: %s", exc)
            return RejectionReasonEnum.SCHEDULE_UNRESOLVABLE
        return None if offered else RejectionReasonEnum.NOT_ELIGIBLE

    async def check_availability(
        self,
        program: Program,
        holder: HolderRef | None,
        now: datetime,
    ) -> AvailabilityRead:
        """Read-only availability snapshot, optionally from one holder's point of view."""
        try:
            offered = self.resolver.is_offering_active(program, now)
        except ScheduleUnresolvableError as exc:
            logger.warning("Availability of unresolvable schedule: %s", exc)
            offered = False

        active, held = await self.held_seats(program, now)
        snapshot = AvailabilityRead(
            program_id=program.id,
            capacity=program.effective_capacity,
            enrolled_count=active,
            held_seats=held,
            is_full=is_full(program, held),
            waitlist_enabled=waitlist_effective(program),
            is_offered=offered,
        )
        if holder is None:
            return snapshot

        enrollment = await self.enrollment_repository.get_open_enrollment(program.id, holder.key)
        if enrollment is None:
            return snapshot
        if enrollment.status == EnrollmentStatusEnum.ACTIVE:
            snapshot.is_enrolled = True
            return snapshot
        if claim_running(enrollment, now):
            snapshot.holder_status = HolderStatusEnum.ACCEPTED
            return snapshot

        # Waitlisted, or accepted with a lapsed claim that has not been swept yet.
        waitlist = await self.enrollment_repository.list_waitlist(program.id)
        ahead = sum(
            1
            for entry in waitlist
            if entry.id != enrollment.id and (entry.created_at, entry.id) < (enrollment.created_at, enrollment.id)
        )
        snapshot.holder_status = HolderStatusEnum.WAITLISTED
        snapshot.waitlist_position = ahead + 1
        return snapshot

    async def reserve(
        self,
        program: Program,
        holder: HolderRef,
        now: datetime,
        actor_id: UUID | None = None,
    ) -> EnrollmentResult:
        """Take a seat for the holder, or reject with a typed reason."""
        rejection = self.offer_rejection(program, now)
        if rejection is not None:
            return EnrollmentResult.rejected(rejection)

        promoted = await self.settle(program, now)
        existing = await self.enrollment_repository.get_open_enrollment(program.id, holder.key)

        if existing is not None:
            if existing.status == EnrollmentStatusEnum.ACTIVE:
                return EnrollmentResult(existing, RejectionReasonEnum.ALREADY_ENROLLED, promoted)
            if existing.status == EnrollmentStatusEnum.WAITLISTED:
                _, held = await self.held_seats(program, now)
                if is_full(program, held):
                    return EnrollmentResult(existing, RejectionReasonEnum.FULL, promoted)
                await self._transition(existing, LifecycleEventEnum.PROMOTE, now, actor_id)
            # An accepted holder's claim already holds the seat.
            await self._transition(existing, LifecycleEventEnum.CLAIM, now, actor_id)
            logger.info("Enrollment %s claimed seat in program %s", existing.id, program.id)
            return EnrollmentResult(enrollment=existing, promoted=promoted)

        _, held = await self.held_seats(program, now)
        if is_full(program, held):
            return EnrollmentResult(rejection=RejectionReasonEnum.FULL, promoted=promoted)

        enrollment = await self._create(program, holder, LifecycleEventEnum.BOOK, actor_id)
        logger.info("Enrollment %s reserved seat in program %s", enrollment.id, program.id)
        return EnrollmentResult(enrollment=enrollment, promoted=promoted)

    async def join_waitlist(
        self,
        program: Program,
        holder: HolderRef,
        now: datetime,
        actor_id: UUID | None = None,
    ) -> EnrollmentResult:
        """Queue the holder behind everyone already waiting."""
        rejection = self.offer_rejection(program, now)
        if rejection is not None:
            return EnrollmentResult.rejected(rejection)

        promoted = await self.settle(program, now)
        if not waitlist_effective(program):
            return EnrollmentResult(rejection=RejectionReasonEnum.WAITLIST_DISABLED, promoted=promoted)

        existing = await self.enrollment_repository.get_open_enrollment(program.id, holder.key)
        if existing is not None:
            reason = (
                RejectionReasonEnum.ALREADY_ENROLLED
                if existing.status == EnrollmentStatusEnum.ACTIVE
                else RejectionReasonEnum.ALREADY_WAITLISTED
            )
            return EnrollmentResult(existing, reason, promoted)

        _, held = await self.held_seats(program, now)
        if not is_full(program, held):
            return EnrollmentResult(rejection=RejectionReasonEnum.NOT_FULL, promoted=promoted)

        enrollment = await self._create(program, holder, LifecycleEventEnum.JOIN_WAITLIST, actor_id)
        logger.info("Enrollment %s joined waitlist of program %s", enrollment.id, program.id)
        return EnrollmentResult(enrollment=enrollment, promoted=promoted)

    async def release(
        self,
        program: Program,
        enrollment: Enrollment,
        event: LifecycleEventEnum,
        now: datetime,
        *,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> EnrollmentResult:
        """Cancel or withdraw an enrollment and hand any freed seat to the waitlist."""
        promoted = await self.settle(program, now)
        held_seat = enrollment.status == EnrollmentStatusEnum.ACTIVE or claim_running(enrollment, now)

        rejection = await self._transition(enrollment, event, now, actor_id, reason=reason)
        if rejection is not None:
            return EnrollmentResult(enrollment, rejection, promoted)

        if held_seat:
            promoted.extend(await self.on_cancellation(program, now, actor_id))
        return EnrollmentResult(enrollment=enrollment, promoted=promoted)

    async def on_cancellation(
        self,
        program: Program,
        now: datetime,
        actor_id: UUID | None = None,
    ) -> list[Enrollment]:
        """Promote waitlisted holders FIFO into seats that became free."""
        return await self._promote(program, now, exclude_ids=(), trigger="cancellation", actor_id=actor_id)

    async def on_claim_expired(self, program: Program, enrollment: Enrollment, now: datetime) -> list[Enrollment]:
        """Return a lapsed claim to the waitlist and offer the seat to the next holder."""
        if enrollment.status != EnrollmentStatusEnum.ACCEPTED or claim_running(enrollment, now):
            return []
        await self._revert_claims(program, [enrollment], now)
        return await self._promote(program, now, exclude_ids={enrollment.id}, trigger="claim_expired")

    async def settle(self, program: Program, now: datetime) -> list[Enrollment]:
        """Expire lapsed claims and promote waitlisted holders into any free seats.

        Seats also free up when the full override is cleared or capacity is
        raised, so the waitlist is served before a newcomer is considered.
        Holders whose claim just lapsed are skipped in this pass.
        """
        lapsed = await self.enrollment_repository.find_lapsed_claims(program.id, now)
        if lapsed:
            await self._revert_claims(program, lapsed, now)
            return await self._promote(
                program,
                now,
                exclude_ids={enrollment.id for enrollment in lapsed},
                trigger="claim_expired",
            )
        return await self._promote(program, now, exclude_ids=(), trigger="capacity")

    async def accept_from_waitlist(
        self,
        program: Program,
        enrollment: Enrollment,
        claims: Claims,
        now: datetime,
    ) -> EnrollmentResult:
        """Studio admin hands a seat of a full program to a specific waitlisted holder."""
        if not claims.administers(program.studio_id) or enrollment.program_id != program.id:
            return EnrollmentResult.rejected(RejectionReasonEnum.NOT_ELIGIBLE, enrollment)

        promoted = await self.settle(program, now)
        if not waitlist_effective(program):
            return EnrollmentResult(enrollment, RejectionReasonEnum.WAITLIST_DISABLED, promoted)

        _, held = await self.held_seats(program, now)
        if not is_full(program, held):
            return EnrollmentResult(enrollment, RejectionReasonEnum.NOT_FULL, promoted)

        rejection = await self._transition(enrollment, LifecycleEventEnum.PROMOTE, now, claims.user_id)
        if rejection is not None:
            return EnrollmentResult(enrollment, rejection, promoted)

        WAITLIST_PROMOTIONS_TOTAL.labels(trigger="studio_admin").inc()
        logger.info("Studio admin %s accepted enrollment %s from waitlist", claims.user_id, enrollment.id)
        return EnrollmentResult(enrollment=enrollment, promoted=[*promoted, enrollment])

    async def _promote(
        self,
        program: Program,
        now: datetime,
        *,
        exclude_ids: Collection[UUID],
        trigger: str,
        actor_id: UUID | None = None,
    ) -> list[Enrollment]:
        if program.manual_full_override:
            return []

        capacity = program.effective_capacity
        _, held = await self.held_seats(program, now)
        promoted: list[Enrollment] = []
        for entry in await self.enrollment_repository.list_waitlist(program.id):
            if capacity is not None and held >= capacity:
                break
            if entry.id in exclude_ids:
                continue
            await self._transition(entry, LifecycleEventEnum.PROMOTE, now, actor_id)
            held += 1
            promoted.append(entry)
            WAITLIST_PROMOTIONS_TOTAL.labels(trigger=trigger).inc()
            logger.info(
                "Promoted enrollment %s in program %s, claim open until %s",
                entry.id,
                program.id,
                entry.claim_expires_at,
            )
        return promoted

    async def _revert_claims(self, program: Program, enrollments: list[Enrollment], now: datetime) -> None:
        for enrollment in enrollments:
            await self._transition(enrollment, LifecycleEventEnum.CLAIM_LAPSED, now, None)
            CLAIM_EXPIRATIONS_TOTAL.inc()
            logger.info("Claim of enrollment %s in program %s lapsed", enrollment.id, program.id)

    async def _create(
        self,
        program: Program,
        holder: HolderRef,
        event: LifecycleEventEnum,
        actor_id: UUID | None,
    ) -> Enrollment:
        enrollment = await self.enrollment_repository.create_enrollment(
            program_id=program.id,
            holder=holder,
            status=self.state_machine.initial_status(event),
        )
        await self.recorder.record(enrollment, event, None, actor_id)
        return enrollment

    async def _transition(
        self,
        enrollment: Enrollment,
        event: LifecycleEventEnum,
        now: datetime,
        actor_id: UUID | None,
        *,
        reason: str | None = None,
    ) -> RejectionReasonEnum | None:
        from_status = enrollment.status
        rejection = self.state_machine.apply(enrollment, event, now, reason=reason)
        if rejection is not None:
            return rejection
        await self.enrollment_repository.save(enrollment)
        await self.recorder.record(enrollment, event, from_status, actor_id)
        return None
