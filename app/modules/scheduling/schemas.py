"""Scheduling value objects and schemas."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.core.enums import OccurrenceSourceEnum


@dataclass(frozen=True, slots=True)
class Occurrence:
    """Concrete instance of a program on a studio-local calendar day."""

    day: date
    start_at: datetime
    end_at: datetime
    source: OccurrenceSourceEnum


class OccurrenceRead(BaseModel):
    """Resolved occurrence response schema."""

    model_config = ConfigDict(from_attributes=True)

    day: date
    start_at: datetime
    end_at: datetime
    source: OccurrenceSourceEnum


class ProgramOccurrencesRead(BaseModel):
    """Upcoming occurrences of a program."""

    program_id: UUID
    is_offering_active: bool
    items: list[OccurrenceRead]
