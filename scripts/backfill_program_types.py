"""One-time backfill of explicit program types from a legacy program export.

The legacy storefront never stored a trial flag reliably and guessed trial
classes from the title, the price and an optional ``is_trial`` column. This
script applies that guess once, writing an explicit ``program_type`` so the
enrollment engine never has to infer it.

Input is a JSON Lines file with one legacy program per line:
``{"id": "...", "program_type": "group", "title": "...", "price": 0, "is_trial": false}``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

from sqlalchemy import select

from app.core.database import SessionLocal, close_engine
from app.core.enums import ProgramTypeEnum
from app.modules.programs.models import Program

LEGACY_TYPES = {
    "group": ProgramTypeEnum.RECURRING,
    "recurring": ProgramTypeEnum.RECURRING,
    "workshop": ProgramTypeEnum.ONE_OFF_WORKSHOP,
    "trial": ProgramTypeEnum.TRIAL,
}
TRIAL_TITLE_MARKERS = ("proef", "trial")


@dataclass(slots=True)
class BackfillStats:
    rows_read: int = 0
    programs_updated: int = 0
    programs_missing: int = 0
    unknown_types: int = 0


def _is_free(price: object) -> bool:
    if price is None or price == "":
        return False
    try:
        return Decimal(str(price)) == 0
    except InvalidOperation:
        return False


def classify_legacy_program(row: dict) -> ProgramTypeEnum | None:
    """Map a legacy program row to an explicit type; None when the type is unknown."""
    legacy_type = str(row.get("program_type") or "").strip().lower()
    title = str(row.get("title") or "").lower()
    if (
        "trial" in legacy_type
        or bool(row.get("is_trial"))
        or any(marker in title for marker in TRIAL_TITLE_MARKERS)
        or _is_free(row.get("price"))
    ):
        return ProgramTypeEnum.TRIAL
    return LEGACY_TYPES.get(legacy_type)


def _read_rows(path: Path) -> list[dict]:
    with path.open(encoding="utf-8") as source:
        return [json.loads(line) for line in source if line.strip()]


async def _run_backfill(path: Path, *, dry_run: bool) -> BackfillStats:
    stats = BackfillStats()
    rows = _read_rows(path)
    async with SessionLocal() as session:
        try:
            for row in rows:
                stats.rows_read += 1
                program_type = classify_legacy_program(row)
                if program_type is None:
                    stats.unknown_types += 1
                    continue

                program = await session.scalar(select(Program).where(Program.id == UUID(str(row["id"]))))
                if program is None:
                    stats.programs_missing += 1
                    continue
                if program.program_type != program_type:
                    program.program_type = program_type
                    stats.programs_updated += 1

            if dry_run:
                await session.rollback()
            else:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Backfill explicit program types from a legacy JSON Lines export.")
    parser.add_argument("export", type=Path, help="Path to the legacy programs export (.jsonl).")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without committing them.")
    return parser


def main() -> int:
    args = _build_parser().parse_args()

    try:
        stats = asyncio.run(_run_backfill(args.export, dry_run=args.dry_run))
    except Exception as exc:
        print(f"Program type backfill failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    print("Program type backfill completed." + (" (dry run)" if args.dry_run else ""))
    print(f"- Rows read: {stats.rows_read}")
    print(f"- Programs updated: {stats.programs_updated}")
    print(f"- Programs missing: {stats.programs_missing}")
    print(f"- Unknown legacy types: {stats.unknown_types}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
