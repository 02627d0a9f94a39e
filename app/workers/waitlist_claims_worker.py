"""Executable worker expiring lapsed waitlist claims.

Each program is processed in its own transaction so the program lock is held
only while that program's claims are expired and the next holders promoted.
"""

from __future__ import annotations

import asyncio
import logging
import os

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.modules.enrollment.repository import EnrollmentRepository
from app.modules.enrollment.service import build_enrollment_service
from app.shared.utils import utc_now
from app.workers.loop import run_worker

settings = get_settings()
logger = logging.getLogger(__name__)


async def run_cycle() -> dict[str, int]:
    """Expire lapsed claims of up to one batch of programs."""
    batch_size = int(os.getenv("CLAIMS_WORKER_BATCH_SIZE", "100"))
    async with SessionLocal() as session:
        program_ids = await EnrollmentRepository(session).list_programs_with_lapsed_claims(utc_now(), batch_size)

    stats = {"programs": 0, "promoted": 0, "failed": 0}
    for program_id in program_ids:
        async with SessionLocal() as session:
            try:
                promoted = await build_enrollment_service(session).expire_program_claims(program_id)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception("Expiring claims of program %s failed", program_id)
                stats["failed"] += 1
                continue
        stats["programs"] += 1
        stats["promoted"] += len(promoted)
    return stats


async def main() -> None:
    await run_worker(
        "CLAIMS_WORKER",
        run_cycle,
        default_poll_seconds=settings.claim_sweep_interval_seconds,
        logger=logger,
    )


if __name__ == "__main__":
    asyncio.run(main())
