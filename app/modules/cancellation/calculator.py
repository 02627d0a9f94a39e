"""Cancellation window calculation."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from app.core.enums import EnrollmentStatusEnum, ProgramTypeEnum, WindowUnitEnum
from app.modules.cancellation.models import CancellationPolicy
from app.modules.cancellation.schemas import CancellationDecision
from app.modules.enrollment.models import Enrollment
from app.modules.programs.models import Program
from app.modules.scheduling.schemas import Occurrence
from app.modules.scheduling.service import ScheduleResolver, ScheduleUnresolvableError

logger = logging.getLogger(__name__)

_WINDOW_FIELDS: dict[ProgramTypeEnum, tuple[str, str]] = {
    ProgramTypeEnum.RECURRING: ("recurring_window_value", "recurring_window_unit"),
    ProgramTypeEnum.ONE_OFF_WORKSHOP: ("workshop_window_value", "workshop_window_unit"),
    ProgramTypeEnum.TRIAL: ("trial_window_value", "trial_window_unit"),
}


def window_label(value: int, unit: WindowUnitEnum) -> str:
    """Dutch rendering of a window, e.g. ``24 uur`` or ``3 dagen``."""
    if unit == WindowUnitEnum.HOURS:
        return f"{value} uur"
    return f"{value} {'dag' if value == 1 else 'dagen'}"


def cancellation_window(
    policy: CancellationPolicy | None,
    program_type: ProgramTypeEnum,
) -> tuple[int, WindowUnitEnum] | None:
    """Window configured for the program type, falling back to the legacy day count."""
    if policy is None:
        return None
    value_field, unit_field = _WINDOW_FIELDS[program_type]
    value = getattr(policy, value_field)
    if value is not None:
        return value, getattr(policy, unit_field) or WindowUnitEnum.DAYS
    if policy.cancellation_period_days is not None:
        return policy.cancellation_period_days, WindowUnitEnum.DAYS
    return None


def window_duration(value: int, unit: WindowUnitEnum) -> timedelta:
    if unit == WindowUnitEnum.HOURS:
        return timedelta(hours=value)
    return timedelta(days=value)


class CancellationWindowCalculator:
    """Decide whether an enrollment may still be cancelled."""

    def __init__(self, resolver: ScheduleResolver) -> None:
        self.resolver = resolver

    def reference_occurrence(self, program: Program, now: datetime) -> Occurrence | None:
        """Occurrence the cutoff is measured against.

        Recurring programs move on to the next weekly class once today's has
        started; dated programs keep their remaining occurrence, so a workshop
        that already began stays closed for cancellation.
        """
        if program.program_type != ProgramTypeEnum.RECURRING:
            return self.resolver.next_occurrence(program, now)
        return next(
            (occurrence for occurrence in self.resolver.iter_occurrences(program, now) if occurrence.start_at > now),
            None,
        )

    def evaluate(
        self,
        program: Program,
        policy: CancellationPolicy | None,
        now: datetime,
        enrollment: Enrollment | None = None,
    ) -> CancellationDecision:
        """Decide for a program, or for one enrollment of it.

        Waitlisted and accepted enrollments are never bound by the window.
        """
        window = cancellation_window(policy, program.program_type)
        if window is None:
            return CancellationDecision(allowed=True)

        value, unit = window
        label = window_label(value, unit)
        if enrollment is not None and enrollment.status in (
            EnrollmentStatusEnum.WAITLISTED,
            EnrollmentStatusEnum.ACCEPTED,
        ):
            return CancellationDecision(allowed=True, window_label=label)
        try:
            occurrence = self.reference_occurrence(program, now)
        except ScheduleUnresolvableError as exc:
            logger.warning("Cancellation allowed for unresolvable schedule: %s", exc)
            return CancellationDecision(allowed=True, window_label=label)
        if occurrence is None:
            return CancellationDecision(allowed=True, window_label=label)

        start_at = occurrence.start_at
        # Window length is absolute time, independent of DST changes.
        cutoff_utc = start_at.astimezone(UTC) - window_duration(value, unit)
        return CancellationDecision(
            allowed=now.astimezone(UTC) <= cutoff_utc,
            cutoff=cutoff_utc.astimezone(start_at.tzinfo),
            window_label=label,
        )
