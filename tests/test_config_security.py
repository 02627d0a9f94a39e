from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_default_secret_key_allowed_in_development() -> None:
    settings = Settings(_env_file=None, app_env="development", secret_key="change-me")
    assert settings.secret_key == "change-me"


def test_default_secret_key_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="production", secret_key="change-me")


def test_placeholder_secret_key_prefix_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="prod", secret_key="Change-Me-In-Production")


def test_custom_secret_key_allowed_in_production() -> None:
    settings = Settings(_env_file=None, app_env="production", secret_key="super-secure-value")
    assert settings.secret_key == "super-secure-value"


def test_engine_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.default_studio_timezone == "Europe/Amsterdam"
    assert settings.waitlist_claim_window_hours == 24


def test_unknown_studio_timezone_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, default_studio_timezone="Europe/Atlantis")


@pytest.mark.parametrize("hours", [0, -6])
def test_claim_window_must_be_positive(hours: int) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, waitlist_claim_window_hours=hours)
