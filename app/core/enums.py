"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """Roles carried in access token claims."""

    VISITOR = "visitor"
    STUDIO_ADMIN = "studio_admin"
    ADMIN = "admin"


class ProgramTypeEnum(StrEnum):
    """Bookable program kind."""

    RECURRING = "recurring"
    ONE_OFF_WORKSHOP = "one_off_workshop"
    TRIAL = "trial"


class EnrollmentStatusEnum(StrEnum):
    """Enrollment lifecycle status."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    WAITLISTED = "waitlisted"
    ACCEPTED = "accepted"


class HolderStatusEnum(StrEnum):
    """Waitlist position of a holder as reported by availability checks."""

    NONE = "none"
    WAITLISTED = "waitlisted"
    ACCEPTED = "accepted"


class LifecycleEventEnum(StrEnum):
    """Events driving enrollment transitions."""

    BOOK = "book"
    JOIN_WAITLIST = "join_waitlist"
    PROMOTE = "promote"
    CLAIM = "claim"
    CLAIM_LAPSED = "claim_lapsed"
    CANCEL = "cancel"
    WITHDRAW = "withdraw"


class RejectionReasonEnum(StrEnum):
    """Typed outcome of a refused engine operation."""

    FULL = "full"
    WAITLIST_DISABLED = "waitlist_disabled"
    ALREADY_ENROLLED = "already_enrolled"
    ALREADY_WAITLISTED = "already_waitlisted"
    NOT_FULL = "not_full"
    CANCELLATION_WINDOW_CLOSED = "cancellation_window_closed"
    NOT_ELIGIBLE = "not_eligible"
    SCHEDULE_UNRESOLVABLE = "schedule_unresolvable"


class WindowUnitEnum(StrEnum):
    """Unit of a cancellation window."""

    HOURS = "hours"
    DAYS = "days"


class OccurrenceSourceEnum(StrEnum):
    """Where a resolved occurrence came from."""

    RECURRENCE = "recurrence"
    OVERRIDE = "override"
    LISTED = "listed"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
