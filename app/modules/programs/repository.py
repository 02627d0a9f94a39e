"""Program repository layer."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.modules.programs.models import Program


def _with_schedule(stmt):
    return stmt.options(
        selectinload(Program.recurrence_rule),
        selectinload(Program.occurrences),
        selectinload(Program.overrides),
    )


class ProgramsRepository:
    """DB access for programs and their schedules."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_program(self, program_id: UUID) -> Program | None:
        stmt = _with_schedule(select(Program)).where(Program.id == program_id)
        return await self.session.scalar(stmt)

    @asynccontextmanager
    async def lock_program(self, program_id: UUID) -> AsyncIterator[Program | None]:
        """Serialize enrollment mutations of one program via a row lock.

        The lock is held until the surrounding transaction ends; other programs
        are unaffected.
        """
        stmt = (
            _with_schedule(select(Program))
            .where(Program.id == program_id)
            .with_for_update(of=Program)
            .execution_options(populate_existing=True)
        )
        yield await self.session.scalar(stmt)
