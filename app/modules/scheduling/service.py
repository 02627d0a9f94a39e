"""Schedule occurrence resolution.

Programs describe their schedule either as a weekly recurrence rule (recurring
programs) or as an explicit list of dated occurrences (one-off workshops and
trial classes). ``ScheduleResolver`` turns both into concrete ``Occurrence``
values. Day comparisons use the studio's local calendar, so a class later
today still counts as upcoming.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta
from itertools import count, islice, takewhile
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import OccurrenceSourceEnum, ProgramTypeEnum
from app.modules.programs.repository import ProgramsRepository
from app.modules.scheduling.schemas import Occurrence, OccurrenceRead, ProgramOccurrencesRead
from app.shared.exceptions import NotFoundException
from app.shared.utils import get_zone, local_day, sunday_based_weekday, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


class ScheduleUnresolvableError(Exception):
    """Raised when a program's schedule data is missing or malformed."""

    def __init__(self, program_id: UUID | None, reason: str) -> None:
        self.program_id = program_id
        self.reason = reason
        super().__init__(f"Schedule of program {program_id} is unresolvable: {reason}")


def _build_occurrence(
    day: date,
    start_time: time,
    end_time: time,
    tz_name: str,
    source: OccurrenceSourceEnum,
) -> Occurrence:
    zone = get_zone(tz_name)
    return Occurrence(
        day=day,
        start_at=datetime.combine(day, start_time, tzinfo=zone),
        end_at=datetime.combine(day, end_time, tzinfo=zone),
        source=source,
    )


class ScheduleResolver:
    """Resolve program schedules into occurrences."""

    def __init__(self, scan_weeks: int | None = None) -> None:
        self.scan_weeks = scan_weeks or settings.occurrence_scan_weeks

    def validate(self, program) -> None:
        """Raise ScheduleUnresolvableError unless exactly one valid schedule is set."""
        rule = program.recurrence_rule
        listed = program.occurrences or []

        if program.program_type == ProgramTypeEnum.RECURRING:
            if rule is None:
                raise ScheduleUnresolvableError(program.id, "recurring program has no recurrence rule")
            if listed:
                raise ScheduleUnresolvableError(program.id, "recurring program also lists occurrences")
            if not 0 <= rule.weekday <= 6:
                raise ScheduleUnresolvableError(program.id, f"weekday {rule.weekday} out of range")
            if rule.end_time <= rule.start_time:
                raise ScheduleUnresolvableError(program.id, "recurrence ends before it starts")
            if rule.season_start and rule.season_end and rule.season_end < rule.season_start:
                raise ScheduleUnresolvableError(program.id, "season ends before it starts")
            for override in program.overrides or []:
                start_time = override.start_time or rule.start_time
                end_time = override.end_time or rule.end_time
                if not override.is_cancelled and end_time <= start_time:
                    raise ScheduleUnresolvableError(program.id, f"override on {override.date} ends before it starts")
            return

        if rule is not None:
            raise ScheduleUnresolvableError(program.id, f"{program.program_type} program has a recurrence rule")
        for item in listed:
            if item.end_time <= item.start_time:
                raise ScheduleUnresolvableError(program.id, f"occurrence on {item.date} ends before it starts")

    def iter_occurrences(self, program, after: datetime) -> Iterator[Occurrence]:
        """Yield occurrences on or after the local day of ``after`` in start order.

        The iterator is restartable: calling again with a later instant
        recomputes the sequence from that day.
        """
        self.validate(program)
        start_day = local_day(after, program.timezone)
        if program.program_type == ProgramTypeEnum.RECURRING:
            return self._iter_recurring(program, start_day)
        return self._iter_listed(program, start_day)

    def next_occurrence(self, program, after: datetime) -> Occurrence | None:
        """Return the first occurrence on or after the local day of ``after``."""
        return next(self.iter_occurrences(program, after), None)

    def all_upcoming_occurrences(self, program, after: datetime, limit: int) -> list[Occurrence]:
        """Return up to ``limit`` upcoming occurrences."""
        return list(islice(self.iter_occurrences(program, after), limit))

    def is_offering_active(self, program, now: datetime) -> bool:
        """Return True while the program is still offered.

        Raises ScheduleUnresolvableError for malformed schedules.
        """
        if self.next_occurrence(program, now) is not None:
            return True
        if program.program_type != ProgramTypeEnum.RECURRING:
            return False
        season_end = program.recurrence_rule.season_end
        return season_end is None or season_end >= local_day(now, program.timezone)

    def _iter_listed(self, program, start_day: date) -> Iterator[Occurrence]:
        items = sorted(program.occurrences or [], key=lambda item: (item.date, item.start_time))
        for item in items:
            if item.date < start_day:
                continue
            yield _build_occurrence(
                item.date,
                item.start_time,
                item.end_time,
                program.timezone,
                OccurrenceSourceEnum.LISTED,
            )

    def _iter_recurring(self, program, start_day: date) -> Iterator[Occurrence]:
        rule = program.recurrence_rule
        first_day = max(start_day, rule.season_start) if rule.season_start else start_day
        last_day = rule.season_end or first_day + timedelta(weeks=self.scan_weeks)
        if last_day < first_day:
            return iter(())

        overrides = {override.date: override for override in program.overrides or []}
        offset = (rule.weekday - sunday_based_weekday(first_day)) % 7
        recurrence_days = takewhile(
            lambda day: day <= last_day,
            (first_day + timedelta(days=offset + 7 * week) for week in count()),
        )

        def weekly() -> Iterator[Occurrence]:
            for day in recurrence_days:
                override = overrides.get(day)
                if override is None:
                    yield _build_occurrence(
                        day,
                        rule.start_time,
                        rule.end_time,
                        program.timezone,
                        OccurrenceSourceEnum.RECURRENCE,
                    )
                elif not override.is_cancelled:
                    yield _build_occurrence(
                        day,
                        override.start_time or rule.start_time,
                        override.end_time or rule.end_time,
                        program.timezone,
                        OccurrenceSourceEnum.OVERRIDE,
                    )

        extras = [
            _build_occurrence(
                override.date,
                override.start_time or rule.start_time,
                override.end_time or rule.end_time,
                program.timezone,
                OccurrenceSourceEnum.OVERRIDE,
            )
            for override in sorted(overrides.values(), key=lambda item: item.date)
            if not override.is_cancelled
            and first_day <= override.date <= last_day
            and sunday_based_weekday(override.date) != rule.weekday
        ]
        return heapq.merge(weekly(), extras, key=lambda occurrence: occurrence.start_at)


class SchedulingService:
    """Read-side service exposing resolved occurrences."""

    def __init__(self, programs_repository: ProgramsRepository, resolver: ScheduleResolver | None = None) -> None:
        self.programs_repository = programs_repository
        self.resolver = resolver or ScheduleResolver()

    async def list_upcoming(self, program_id: UUID, limit: int) -> ProgramOccurrencesRead:
        """Return upcoming occurrences; unresolvable schedules report an inactive offering."""
        program = await self.programs_repository.get_program(program_id)
        if program is None:
            raise NotFoundException("Program not found")

        now = utc_now()
        try:
            items = self.resolver.all_upcoming_occurrences(program, now, limit)
            active = self.resolver.is_offering_active(program, now)
        except ScheduleUnresolvableError as exc:
            logger.warning("Unresolvable schedule: %s", exc)
            items, active = [], False

        return ProgramOccurrencesRead(
            program_id=program.id,
            is_offering_active=active,
            items=[OccurrenceRead.model_validate(item) for item in items],
        )


async def get_scheduling_service(session: AsyncSession = Depends(get_db_session)) -> SchedulingService:
    """Dependency provider for scheduling service."""
    return SchedulingService(ProgramsRepository(session))
