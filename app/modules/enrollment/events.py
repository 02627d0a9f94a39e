"""Audit and outbox records for enrollment transitions."""

from __future__ import annotations

from uuid import UUID

from app.core.enums import EnrollmentStatusEnum, LifecycleEventEnum
from app.modules.audit.repository import AuditRepository
from app.modules.enrollment.models import Enrollment

EVENT_TYPES: dict[LifecycleEventEnum, str] = {
    LifecycleEventEnum.BOOK: "enrollment.reserved",
    LifecycleEventEnum.JOIN_WAITLIST: "enrollment.waitlisted",
    LifecycleEventEnum.PROMOTE: "waitlist.promoted",
    LifecycleEventEnum.CLAIM: "waitlist.claimed",
    LifecycleEventEnum.CLAIM_LAPSED: "waitlist.claim_expired",
    LifecycleEventEnum.CANCEL: "enrollment.cancelled",
    LifecycleEventEnum.WITHDRAW: "enrollment.withdrawn",
}

# Claims only confirm a seat the holder was already told about.
SILENT_EVENTS = frozenset({LifecycleEventEnum.CLAIM})


class EnrollmentEventRecorder:
    """Write an audit entry and, when notifiable, an outbox event per transition."""

    def __init__(self, audit_repository: AuditRepository) -> None:
        self.audit_repository = audit_repository

    async def record(
        self,
        enrollment: Enrollment,
        event: LifecycleEventEnum,
        from_status: EnrollmentStatusEnum | None,
        actor_id: UUID | None,
    ) -> None:
        event_type = EVENT_TYPES[event]
        payload = {
            "enrollment_id": str(enrollment.id),
            "program_id": str(enrollment.program_id),
            "holder_user_id": str(enrollment.holder_user_id),
            "holder_sub_profile_id": (
                str(enrollment.holder_sub_profile_id) if enrollment.holder_sub_profile_id else None
            ),
            "from_status": from_status.value if from_status else None,
            "to_status": enrollment.status.value,
            "claim_expires_at": enrollment.claim_expires_at.isoformat() if enrollment.claim_expires_at else None,
        }
        await self.audit_repository.create_audit_log(
            actor_id=actor_id,
            action=event_type,
            entity_type="enrollment",
            entity_id=str(enrollment.id),
            payload=payload,
        )
        if event in SILENT_EVENTS:
            return
        await self.audit_repository.create_outbox_event(
            aggregate_type="enrollment",
            aggregate_id=str(enrollment.id),
            event_type=event_type,
            payload=payload,
        )
