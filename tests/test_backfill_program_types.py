from __future__ import annotations

import pytest

from app.core.enums import ProgramTypeEnum
from scripts.backfill_program_types import classify_legacy_program


@pytest.mark.parametrize(
    ("row", "expected"),
    [
        ({"program_type": "group", "title": "Salsa 1", "price": "12.50"}, ProgramTypeEnum.RECURRING),
        ({"program_type": "Recurring", "title": "Tango"}, ProgramTypeEnum.RECURRING),
        ({"program_type": "workshop", "title": "Zouk weekend", "price": 45}, ProgramTypeEnum.ONE_OFF_WORKSHOP),
        ({"program_type": "trial", "title": "Kennismaking"}, ProgramTypeEnum.TRIAL),
        ({"program_type": "group", "title": "Proefles hiphop", "price": 10}, ProgramTypeEnum.TRIAL),
        ({"program_type": "workshop", "title": "Kizomba", "is_trial": True}, ProgramTypeEnum.TRIAL),
        ({"program_type": "group", "title": "Ballet", "price": "0.00"}, ProgramTypeEnum.TRIAL),
        ({"program_type": "private", "title": "Privéles", "price": 60}, None),
        ({"title": "Onbekend"}, None),
    ],
)
def test_classify_legacy_program(row, expected) -> None:
    assert classify_legacy_program(row) == expected


def test_unparseable_price_is_not_treated_as_free() -> None:
    assert classify_legacy_program({"program_type": "group", "price": "gratis?"}) == ProgramTypeEnum.RECURRING
