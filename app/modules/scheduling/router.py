"""Scheduling API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.config import get_settings
from app.modules.scheduling.schemas import ProgramOccurrencesRead
from app.modules.scheduling.service import SchedulingService, get_scheduling_service

settings = get_settings()

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


@router.get("/programs/{program_id}/occurrences", response_model=ProgramOccurrencesRead)
async def list_program_occurrences(
    program_id: UUID,
    limit: int = Query(default=10, ge=1, le=settings.occurrence_list_max_limit),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ProgramOccurrencesRead:
    """List upcoming occurrences of a program."""
    return await service.list_upcoming(program_id, limit)
