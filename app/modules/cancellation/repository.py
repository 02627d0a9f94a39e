"""Cancellation policy repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.cancellation.models import CancellationPolicy


class CancellationPolicyRepository:
    """DB access for studio cancellation policies."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_current_policy(self, studio_id: UUID) -> CancellationPolicy | None:
        stmt = (
            select(CancellationPolicy)
            .where(CancellationPolicy.studio_id == studio_id)
            .order_by(CancellationPolicy.version.desc())
            .limit(1)
        )
        return await self.session.scalar(stmt)
