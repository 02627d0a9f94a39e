"""Notifications repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import NotificationStatusEnum
from app.modules.notifications.models import Notification


class NotificationsRepository:
    """DB operations for notifications domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_notification(
        self,
        user_id: UUID,
        channel: str,
        title: str,
        body: str,
        enrollment_id: UUID | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            enrollment_id=enrollment_id,
            channel=channel,
            title=title,
            body=body,
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def set_status(
        self,
        notification: Notification,
        status: NotificationStatusEnum,
        sent_at: datetime | None,
    ) -> Notification:
        notification.status = status
        notification.sent_at = sent_at
        await self.session.flush()
        return notification
