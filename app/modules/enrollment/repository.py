"""Enrollment repository layer."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EnrollmentStatusEnum
from app.modules.enrollment.models import Enrollment
from app.modules.identity.schemas import HolderRef
from app.shared.utils import utc_now


class EnrollmentRepository:
    """DB operations for the enrollment domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_enrollment(
        self,
        program_id: UUID,
        holder: HolderRef,
        status: EnrollmentStatusEnum,
    ) -> Enrollment:
        now = utc_now()
        enrollment = Enrollment(
            program_id=program_id,
            holder_user_id=holder.user_id,
            holder_sub_profile_id=holder.sub_profile_id,
            holder_key=holder.key,
            status=status,
            status_changed_at=now,
            created_at=now,
            updated_at=now,
        )
        self.session.add(enrollment)
        await self.session.flush()
        return enrollment

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = select(Enrollment).where(Enrollment.id == enrollment_id).execution_options(populate_existing=True)
        return await self.session.scalar(stmt)

    async def get_open_enrollment(self, program_id: UUID, holder_key: str) -> Enrollment | None:
        stmt = select(Enrollment).where(
            Enrollment.program_id == program_id,
            Enrollment.holder_key == holder_key,
            Enrollment.status != EnrollmentStatusEnum.CANCELLED,
        )
        return await self.session.scalar(stmt)

    async def count_seats(self, program_id: UUID, now: datetime) -> tuple[int, int]:
        """Return (active enrollments, accepted enrollments with a running claim)."""
        stmt = (
            select(Enrollment.status, func.count())
            .where(
                Enrollment.program_id == program_id,
                or_(
                    Enrollment.status == EnrollmentStatusEnum.ACTIVE,
                    and_(
                        Enrollment.status == EnrollmentStatusEnum.ACCEPTED,
                        Enrollment.claim_expires_at > now,
                    ),
                ),
            )
            .group_by(Enrollment.status)
        )
        counts = {status: int(total) for status, total in (await self.session.execute(stmt)).all()}
        return counts.get(EnrollmentStatusEnum.ACTIVE, 0), counts.get(EnrollmentStatusEnum.ACCEPTED, 0)

    async def list_waitlist(self, program_id: UUID) -> list[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(
                Enrollment.program_id == program_id,
                Enrollment.status == EnrollmentStatusEnum.WAITLISTED,
            )
            .order_by(Enrollment.created_at.asc(), Enrollment.id.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def find_lapsed_claims(self, program_id: UUID, now: datetime) -> list[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(
                Enrollment.program_id == program_id,
                Enrollment.status == EnrollmentStatusEnum.ACCEPTED,
                Enrollment.claim_expires_at.is_not(None),
                Enrollment.claim_expires_at <= now,
            )
            .order_by(Enrollment.created_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_programs_with_lapsed_claims(self, now: datetime, limit: int) -> list[UUID]:
        stmt = (
            select(Enrollment.program_id)
            .where(
                Enrollment.status == EnrollmentStatusEnum.ACCEPTED,
                Enrollment.claim_expires_at.is_not(None),
                Enrollment.claim_expires_at <= now,
            )
            .distinct()
            .limit(limit)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_enrollments_for_user(
        self,
        user_id: UUID,
        statuses: Iterable[EnrollmentStatusEnum] | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Enrollment], int]:
        base_stmt: Select[tuple[Enrollment]] = select(Enrollment).where(Enrollment.holder_user_id == user_id)
        if statuses:
            base_stmt = base_stmt.where(Enrollment.status.in_(list(statuses)))

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Enrollment.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return list(items), total

    async def save(self, enrollment: Enrollment) -> Enrollment:
        await self.session.flush()
        return enrollment
