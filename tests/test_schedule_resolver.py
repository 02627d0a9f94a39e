from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from app.core.enums import OccurrenceSourceEnum, ProgramTypeEnum
from app.modules.scheduling.service import ScheduleResolver, ScheduleUnresolvableError, SchedulingService
from app.shared.utils import ensure_utc, local_day, sunday_based_weekday, utc_now
from tests.fakes import (
    FakeListedOccurrence,
    FakeOverride,
    FakeProgramsRepository,
    FakeRecurrenceRule,
    dated_program,
    utc,
    weekly_program,
)

AMS = ZoneInfo("Europe/Amsterdam")
resolver = ScheduleResolver(scan_weeks=104)


def local(*args: int) -> datetime:
    return datetime(*args, tzinfo=AMS)


def test_recurring_program_next_occurrence_matches_weekday() -> None:
    program = weekly_program(weekday=1)  # Monday

    occurrence = resolver.next_occurrence(program, local(2025, 3, 5, 12, 0))

    assert occurrence is not None
    assert occurrence.day == date(2025, 3, 10)
    assert occurrence.start_at == local(2025, 3, 10, 18, 0)
    assert occurrence.end_at == local(2025, 3, 10, 19, 0)
    assert occurrence.source == OccurrenceSourceEnum.RECURRENCE


def test_weekday_zero_is_sunday() -> None:
    program = weekly_program(weekday=0)

    occurrence = resolver.next_occurrence(program, local(2025, 3, 5, 12, 0))

    assert occurrence.day == date(2025, 3, 9)
    assert occurrence.day.isoweekday() == 7


def test_class_later_today_is_upcoming() -> None:
    program = weekly_program(weekday=1)

    morning = resolver.next_occurrence(program, local(2025, 3, 10, 9, 0))
    evening = resolver.next_occurrence(program, local(2025, 3, 10, 21, 0))

    assert morning.day == date(2025, 3, 10)
    assert evening.day == date(2025, 3, 10)


def test_day_comparison_uses_studio_calendar() -> None:
    program = weekly_program(weekday=1)

    # Sunday 23:30 UTC is already Monday 00:30 in Amsterdam.
    occurrence = resolver.next_occurrence(program, utc(2025, 3, 9, 23, 30))

    assert occurrence.day == date(2025, 3, 10)


def test_season_bounds_limit_recurrence() -> None:
    program = weekly_program(weekday=1, season_start=date(2025, 4, 1), season_end=date(2025, 6, 30))

    first = resolver.next_occurrence(program, local(2025, 3, 5, 12, 0))
    last = resolver.next_occurrence(program, local(2025, 6, 25, 12, 0))
    after = resolver.next_occurrence(program, local(2025, 7, 1, 12, 0))

    assert first.day == date(2025, 4, 7)
    assert last.day == date(2025, 6, 30)
    assert after is None
    assert resolver.is_offering_active(program, local(2025, 7, 1, 12, 0)) is False


def test_open_ended_recurrence_stays_active() -> None:
    program = weekly_program(weekday=3)

    assert resolver.is_offering_active(program, local(2030, 1, 1, 12, 0)) is True


def test_overrides_cancel_reschedule_and_add_dates() -> None:
    program = weekly_program(weekday=1)
    program.overrides = [
        FakeOverride(date(2025, 3, 10), is_cancelled=True),
        FakeOverride(date(2025, 3, 17), start_time=time(19, 0), end_time=time(20, 30)),
        FakeOverride(date(2025, 3, 12)),
    ]

    items = resolver.all_upcoming_occurrences(program, local(2025, 3, 9, 12, 0), limit=4)

    assert [item.day for item in items] == [
        date(2025, 3, 12),
        date(2025, 3, 17),
        date(2025, 3, 24),
        date(2025, 3, 31),
    ]
    assert items[0].source == OccurrenceSourceEnum.OVERRIDE
    assert items[0].start_at == local(2025, 3, 12, 18, 0)
    assert items[1].start_at == local(2025, 3, 17, 19, 0)
    assert items[1].end_at == local(2025, 3, 17, 20, 30)


def test_upcoming_occurrences_restart_from_any_instant() -> None:
    program = weekly_program(weekday=1)

    first = resolver.all_upcoming_occurrences(program, local(2025, 3, 5, 12, 0), limit=3)
    later = resolver.all_upcoming_occurrences(program, local(2025, 3, 18, 12, 0), limit=2)

    assert [item.day for item in first] == [date(2025, 3, 10), date(2025, 3, 17), date(2025, 3, 24)]
    assert [item.day for item in later] == [date(2025, 3, 24), date(2025, 3, 31)]


def test_occurrences_follow_daylight_saving_offset() -> None:
    program = weekly_program(weekday=1)

    items = resolver.all_upcoming_occurrences(program, local(2025, 3, 24, 0, 0), limit=2)

    assert items[0].start_at.utcoffset() != items[1].start_at.utcoffset()
    assert items[1].start_at == local(2025, 3, 31, 18, 0)


def test_one_off_program_with_only_past_dates_is_not_offered() -> None:
    program = dated_program(date(2025, 1, 10), date(2025, 2, 10))

    assert resolver.next_occurrence(program, local(2025, 3, 5, 12, 0)) is None
    assert resolver.is_offering_active(program, local(2025, 3, 5, 12, 0)) is False


def test_one_off_program_returns_earliest_remaining_date() -> None:
    program = dated_program(date(2025, 4, 2), date(2025, 3, 1), date(2025, 3, 20))

    occurrence = resolver.next_occurrence(program, local(2025, 3, 5, 12, 0))

    assert occurrence.day == date(2025, 3, 20)
    assert occurrence.source == OccurrenceSourceEnum.LISTED


def test_trial_without_dates_is_not_offered() -> None:
    program = dated_program(program_type=ProgramTypeEnum.TRIAL)

    assert resolver.next_occurrence(program, local(2025, 3, 5, 12, 0)) is None
    assert resolver.is_offering_active(program, local(2025, 3, 5, 12, 0)) is False


@pytest.mark.parametrize(
    "program",
    [
        dated_program(program_type=ProgramTypeEnum.RECURRING),
        weekly_program(weekday=7),
        weekly_program(weekday=1, start=time(19, 0), end=time(18, 0)),
        weekly_program(weekday=1, season_start=date(2025, 6, 1), season_end=date(2025, 5, 1)),
    ],
    ids=["missing-rule", "weekday-out-of-range", "ends-before-start", "season-reversed"],
)
def test_malformed_schedules_are_unresolvable(program) -> None:
    with pytest.raises(ScheduleUnresolvableError):
        resolver.next_occurrence(program, local(2025, 3, 5, 12, 0))


def test_program_with_both_schedule_shapes_is_unresolvable() -> None:
    program = weekly_program(weekday=1)
    program.occurrences = [FakeListedOccurrence(date(2025, 3, 12), time(10, 0), time(11, 0))]

    with pytest.raises(ScheduleUnresolvableError):
        resolver.is_offering_active(program, local(2025, 3, 5, 12, 0))


def test_workshop_with_recurrence_rule_is_unresolvable() -> None:
    program = dated_program(date(2025, 3, 12))
    program.recurrence_rule = FakeRecurrenceRule(1, time(18, 0), time(19, 0))

    with pytest.raises(ScheduleUnresolvableError):
        resolver.next_occurrence(program, local(2025, 3, 5, 12, 0))


@pytest.mark.asyncio
async def test_scheduling_service_reports_unresolvable_schedule_as_inactive(clock) -> None:
    broken = weekly_program(weekday=9)
    service = SchedulingService(FakeProgramsRepository([broken]), resolver)  # type: ignore[arg-type]

    response = await service.list_upcoming(broken.id, limit=5)

    assert response.is_offering_active is False
    assert response.items == []


@pytest.mark.asyncio
async def test_scheduling_service_lists_upcoming_occurrences(clock) -> None:
    program = weekly_program(weekday=1)
    service = SchedulingService(FakeProgramsRepository([program]), resolver)  # type: ignore[arg-type]

    response = await service.list_upcoming(program.id, limit=2)

    assert response.is_offering_active is True
    assert [item.day for item in response.items] == [date(2025, 3, 3), date(2025, 3, 10)]


def test_instants_normalize_to_utc_and_local_days() -> None:
    naive = datetime(2025, 3, 29, 23, 30)
    late_evening = local(2025, 3, 29, 23, 30)

    assert ensure_utc(naive) == datetime(2025, 3, 29, 23, 30, tzinfo=UTC)
    assert ensure_utc(late_evening).utcoffset() == timedelta(0)
    assert ensure_utc(late_evening) == datetime(2025, 3, 29, 22, 30, tzinfo=UTC)
    assert local_day(datetime(2025, 3, 29, 23, 30, tzinfo=UTC), "Europe/Amsterdam") == date(2025, 3, 30)
    assert sunday_based_weekday(date(2025, 3, 30)) == 0
    assert utc_now().tzinfo is UTC
