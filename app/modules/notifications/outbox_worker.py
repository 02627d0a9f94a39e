"""Outbox consumer that materializes enrollment events into notifications."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from app.core.enums import NotificationStatusEnum
from app.modules.audit.models import OutboxEvent
from app.modules.audit.repository import AuditRepository
from app.modules.notifications.repository import NotificationsRepository
from app.shared.utils import utc_now

MESSAGE_TEMPLATES: dict[str, tuple[str, str]] = {
    "enrollment.reserved": (
        "Inschrijving bevestigd",
        "Je bent ingeschreven voor programma {program_id}.",
    ),
    "enrollment.waitlisted": (
        "Op de wachtlijst",
        "Het programma {program_id} is vol. Je staat op de wachtlijst.",
    ),
    "waitlist.promoted": (
        "Er is een plek vrij",
        "Er is een plek vrijgekomen in programma {program_id}. Bevestig je plek voor {claim_expires_at}.",
    ),
    "waitlist.claim_expired": (
        "Plek verlopen",
        "Je hebt je plek in programma {program_id} niet op tijd bevestigd. Je staat weer op de wachtlijst.",
    ),
    "enrollment.cancelled": (
        "Inschrijving geannuleerd",
        "Je inschrijving voor programma {program_id} is geannuleerd.",
    ),
    "enrollment.withdrawn": (
        "Uitgeschreven van de wachtlijst",
        "Je staat niet meer op de wachtlijst van programma {program_id}.",
    ),
}


@dataclass(slots=True)
class NotificationMessage:
    user_id: UUID
    title: str
    body: str
    enrollment_id: UUID | None = None
    channel: str = "email"


class NotificationsOutboxWorker:
    """Process outbox events and create holder notifications."""

    def __init__(
        self,
        audit_repository: AuditRepository,
        notifications_repository: NotificationsRepository,
        *,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.audit_repository = audit_repository
        self.notifications_repository = notifications_repository
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "dispatched": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.audit_repository.list_pending_outbox(limit=self.batch_size)
        for event in events:
            try:
                for message in self._build_messages(event):
                    notification = await self.notifications_repository.create_notification(
                        user_id=message.user_id,
                        channel=message.channel,
                        title=message.title,
                        body=message.body,
                        enrollment_id=message.enrollment_id,
                    )
                    await self.notifications_repository.set_status(
                        notification,
                        NotificationStatusEnum.SENT,
                        self.now_provider(),
                    )
                    stats["dispatched"] += 1

                await self.audit_repository.mark_outbox_processed(event, self.now_provider())
                stats["processed"] += 1
            except Exception as exc:
                await self.audit_repository.mark_outbox_failed(event, str(exc))
                stats["failed"] += 1
        return stats

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.audit_repository.list_failed_outbox(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self._is_backoff_elapsed(event, now):
                await self.audit_repository.mark_outbox_pending(event)
                requeued += 1
        return requeued

    def _is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        retries = max(event.retries, 1)
        backoff_seconds = min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (retries - 1)),
        )
        last_attempt_at = event.updated_at or event.occurred_at
        return now >= last_attempt_at + timedelta(seconds=backoff_seconds)

    def _build_messages(self, event: OutboxEvent) -> list[NotificationMessage]:
        template = MESSAGE_TEMPLATES.get(event.event_type)
        if template is None:
            return []

        payload = event.payload or {}
        title, body = template
        return [
            NotificationMessage(
                user_id=self._required_uuid(payload, "holder_user_id"),
                enrollment_id=self._optional_uuid(payload, "enrollment_id"),
                title=title,
                body=body.format(
                    program_id=payload.get("program_id", "unknown"),
                    claim_expires_at=payload.get("claim_expires_at") or "unknown",
                ),
            ),
        ]

    @staticmethod
    def _required_uuid(payload: dict, key: str) -> UUID:
        value = payload.get(key)
        if value is None:
            raise ValueError(f"Missing required key: {key}")
        return UUID(str(value))

    @staticmethod
    def _optional_uuid(payload: dict, key: str) -> UUID | None:
        value = payload.get(key)
        if value is None:
            return None
        return UUID(str(value))
