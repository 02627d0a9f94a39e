from __future__ import annotations

import pytest

import app.modules.cancellation.service as cancellation_service_module
import app.modules.enrollment.service as enrollment_service_module
import app.modules.scheduling.service as scheduling_service_module
from tests.fakes import FakeClock, utc


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Frozen, adjustable clock shared by every service module."""
    fake = FakeClock(utc(2025, 3, 3, 9, 0))
    for module in (enrollment_service_module, cancellation_service_module, scheduling_service_module):
        monkeypatch.setattr(module, "utc_now", fake)
    return fake
