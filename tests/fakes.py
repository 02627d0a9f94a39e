"""In-memory stand-ins for the repositories used by the enrollment services."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4

from app.core.enums import EnrollmentStatusEnum, OutboxStatusEnum, ProgramTypeEnum, WindowUnitEnum
from app.modules.cancellation.calculator import CancellationWindowCalculator
from app.modules.cancellation.service import CancellationService
from app.modules.enrollment.capacity import CapacityManager
from app.modules.enrollment.events import EnrollmentEventRecorder
from app.modules.enrollment.lifecycle import EnrollmentStateMachine
from app.modules.enrollment.service import EnrollmentService
from app.modules.identity.schemas import HolderRef
from app.modules.scheduling.service import ScheduleResolver


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class FakeRecurrenceRule:
    weekday: int
    start_time: time
    end_time: time
    season_start: date | None = None
    season_end: date | None = None


@dataclass
class FakeListedOccurrence:
    date: date
    start_time: time
    end_time: time


@dataclass
class FakeOverride:
    date: date
    start_time: time | None = None
    end_time: time | None = None
    is_cancelled: bool = False


@dataclass
class FakeProgram:
    program_type: ProgramTypeEnum
    capacity: int | None = None
    waitlist_enabled: bool = False
    manual_full_override: bool = False
    timezone: str = "Europe/Amsterdam"
    recurrence_rule: FakeRecurrenceRule | None = None
    occurrences: list[FakeListedOccurrence] = field(default_factory=list)
    overrides: list[FakeOverride] = field(default_factory=list)
    title: str = "Salsa beginners"
    id: UUID = field(default_factory=uuid4)
    studio_id: UUID = field(default_factory=uuid4)

    @property
    def effective_capacity(self) -> int | None:
        if self.capacity is None or self.capacity <= 0:
            return None
        return self.capacity


def weekly_program(
    weekday: int = 1,
    start: time = time(18, 0),
    end: time = time(19, 0),
    **kwargs,
) -> FakeProgram:
    season_start = kwargs.pop("season_start", None)
    season_end = kwargs.pop("season_end", None)
    return FakeProgram(
        program_type=ProgramTypeEnum.RECURRING,
        recurrence_rule=FakeRecurrenceRule(weekday, start, end, season_start, season_end),
        **kwargs,
    )


def dated_program(
    *days: date,
    start: time = time(10, 0),
    end: time = time(12, 0),
    program_type: ProgramTypeEnum = ProgramTypeEnum.ONE_OFF_WORKSHOP,
    **kwargs,
) -> FakeProgram:
    return FakeProgram(
        program_type=program_type,
        occurrences=[FakeListedOccurrence(day, start, end) for day in days],
        **kwargs,
    )


@dataclass
class FakeEnrollment:
    program_id: UUID
    holder_user_id: UUID
    holder_sub_profile_id: UUID | None
    holder_key: str
    status: EnrollmentStatusEnum
    created_at: datetime
    updated_at: datetime
    status_changed_at: datetime
    accepted_at: datetime | None = None
    claim_expires_at: datetime | None = None
    claim_expirations: int = 0
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass
class FakePolicy:
    studio_id: UUID
    cancellation_policy: str | None = "Annuleren kan tot 24 uur voor de les."
    refund_policy: str | None = "Geen restitutie na de annuleringstermijn."
    recurring_window_value: int | None = None
    recurring_window_unit: WindowUnitEnum | None = None
    workshop_window_value: int | None = None
    workshop_window_unit: WindowUnitEnum | None = None
    trial_window_value: int | None = None
    trial_window_unit: WindowUnitEnum | None = None
    cancellation_period_days: int | None = None
    contact_email: str | None = "info@dansstudio.nl"
    contact_phone: str | None = "+31 20 123 4567"
    version: int = 1


class FakeProgramsRepository:
    def __init__(self, programs: list[FakeProgram]) -> None:
        self.programs = {program.id: program for program in programs}
        self._locks: dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get_program(self, program_id: UUID) -> FakeProgram | None:
        return self.programs.get(program_id)

    @asynccontextmanager
    async def lock_program(self, program_id: UUID):
        async with self._locks[program_id]:
            yield self.programs.get(program_id)


class FakeEnrollmentRepository:
    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.items: list[FakeEnrollment] = []

    async def create_enrollment(
        self,
        program_id: UUID,
        holder: HolderRef,
        status: EnrollmentStatusEnum,
    ) -> FakeEnrollment:
        # Yield so that unlocked callers would interleave between check and insert.
        await asyncio.sleep(0)
        created_at = self.clock() + timedelta(microseconds=len(self.items))
        enrollment = FakeEnrollment(
            program_id=program_id,
            holder_user_id=holder.user_id,
            holder_sub_profile_id=holder.sub_profile_id,
            holder_key=holder.key,
            status=status,
            created_at=created_at,
            updated_at=created_at,
            status_changed_at=created_at,
        )
        self.items.append(enrollment)
        return enrollment

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> FakeEnrollment | None:
        return next((item for item in self.items if item.id == enrollment_id), None)

    async def get_open_enrollment(self, program_id: UUID, holder_key: str) -> FakeEnrollment | None:
        return next(
            (
                item
                for item in self.items
                if item.program_id == program_id
                and item.holder_key == holder_key
                and item.status != EnrollmentStatusEnum.CANCELLED
            ),
            None,
        )

    async def count_seats(self, program_id: UUID, now: datetime) -> tuple[int, int]:
        await asyncio.sleep(0)
        program_items = [item for item in self.items if item.program_id == program_id]
        active = sum(1 for item in program_items if item.status == EnrollmentStatusEnum.ACTIVE)
        pending = sum(
            1
            for item in program_items
            if item.status == EnrollmentStatusEnum.ACCEPTED
            and item.claim_expires_at is not None
            and item.claim_expires_at > now
        )
        return active, pending

    async def list_waitlist(self, program_id: UUID) -> list[FakeEnrollment]:
        waitlist = [
            item
            for item in self.items
            if item.program_id == program_id and item.status == EnrollmentStatusEnum.WAITLISTED
        ]
        return sorted(waitlist, key=lambda item: item.created_at)

    async def find_lapsed_claims(self, program_id: UUID, now: datetime) -> list[FakeEnrollment]:
        return [
            item
            for item in self.items
            if item.program_id == program_id
            and item.status == EnrollmentStatusEnum.ACCEPTED
            and item.claim_expires_at is not None
            and item.claim_expires_at <= now
        ]

    async def list_programs_with_lapsed_claims(self, now: datetime, limit: int) -> list[UUID]:
        program_ids: list[UUID] = []
        for item in self.items:
            if (
                item.status == EnrollmentStatusEnum.ACCEPTED
                and item.claim_expires_at is not None
                and item.claim_expires_at <= now
                and item.program_id not in program_ids
            ):
                program_ids.append(item.program_id)
        return program_ids[:limit]

    async def list_enrollments_for_user(self, user_id, statuses, limit, offset):
        items = [
            item
            for item in self.items
            if item.holder_user_id == user_id and (not statuses or item.status in statuses)
        ]
        items.sort(key=lambda item: item.created_at, reverse=True)
        return items[offset : offset + limit], len(items)

    async def save(self, enrollment: FakeEnrollment) -> FakeEnrollment:
        enrollment.updated_at = self.clock()
        return enrollment

    def by_status(self, status: EnrollmentStatusEnum) -> list[FakeEnrollment]:
        return [item for item in self.items if item.status == status]


class FakeAuditRepository:
    def __init__(self) -> None:
        self.logs: list[dict] = []
        self.events: list[dict] = []

    async def create_audit_log(self, actor_id, action, entity_type, entity_id, payload) -> dict:
        log = {"actor_id": actor_id, "action": action, "entity_id": entity_id, "payload": payload}
        self.logs.append(log)
        return log

    async def create_outbox_event(self, aggregate_type, aggregate_id, event_type, payload) -> dict:
        event = {
            "aggregate_type": aggregate_type,
            "aggregate_id": aggregate_id,
            "event_type": event_type,
            "payload": payload,
            "status": OutboxStatusEnum.PENDING,
        }
        self.events.append(event)
        return event

    def event_types(self) -> list[str]:
        return [event["event_type"] for event in self.events]


class FakePolicyRepository:
    def __init__(self, policies: list[FakePolicy] | None = None) -> None:
        self.policies = policies or []

    async def get_current_policy(self, studio_id: UUID) -> FakePolicy | None:
        matching = [policy for policy in self.policies if policy.studio_id == studio_id]
        return max(matching, key=lambda policy: policy.version, default=None)


class FakeSession:
    def __init__(self) -> None:
        self.committed = False
        self.rolled_back = False

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True


class FakeSessionFactory:
    def __init__(self) -> None:
        self.sessions: list[FakeSession] = []

    def __call__(self) -> FakeSession:
        session = FakeSession()
        self.sessions.append(session)
        return session


def build_engine(
    programs: list[FakeProgram],
    clock: FakeClock,
    policies: list[FakePolicy] | None = None,
    claim_window: timedelta = timedelta(hours=24),
) -> SimpleNamespace:
    """Wire both services against in-memory repositories."""
    programs_repo = FakeProgramsRepository(programs)
    enrollment_repo = FakeEnrollmentRepository(clock)
    audit_repo = FakeAuditRepository()
    policy_repo = FakePolicyRepository(policies)
    resolver = ScheduleResolver(scan_weeks=104)
    capacity = CapacityManager(
        enrollment_repository=enrollment_repo,  # type: ignore[arg-type]
        resolver=resolver,
        state_machine=EnrollmentStateMachine(claim_window),
        recorder=EnrollmentEventRecorder(audit_repo),  # type: ignore[arg-type]
    )
    enrollment_service = EnrollmentService(
        programs_repository=programs_repo,  # type: ignore[arg-type]
        enrollment_repository=enrollment_repo,  # type: ignore[arg-type]
        capacity_manager=capacity,
    )
    cancellation_service = CancellationService(
        programs_repository=programs_repo,  # type: ignore[arg-type]
        enrollment_repository=enrollment_repo,  # type: ignore[arg-type]
        policy_repository=policy_repo,  # type: ignore[arg-type]
        calculator=CancellationWindowCalculator(resolver),
        capacity_manager=capacity,
    )
    return SimpleNamespace(
        programs=programs_repo,
        enrollments=enrollment_repo,
        audit=audit_repo,
        policies=policy_repo,
        capacity=capacity,
        enrollment_service=enrollment_service,
        cancellation_service=cancellation_service,
    )


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)
