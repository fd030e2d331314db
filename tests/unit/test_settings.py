"""Unit tests for settings validation."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.config.settings import Settings


SQLITE_URL = "sqlite+aiosqlite:///:memory:"


def test_defaults():
    settings = Settings(database_url=SQLITE_URL, environment="test")

    assert settings.get_level_splits() == {
        1: Decimal("20"),
        2: Decimal("18"),
        3: Decimal("12"),
    }
    assert settings.default_pool_percent == Decimal("60")
    assert settings.min_payout_amount == Decimal("500")
    assert settings.referral_bonus_amount == Decimal("20")
    assert settings.referral_bonus_policy == "per_upgrade"


def test_splits_over_hundred_rejected():
    with pytest.raises(ValidationError):
        Settings(
            database_url=SQLITE_URL,
            environment="test",
            level1_split=Decimal("60"),
            level2_split=Decimal("30"),
            level3_split=Decimal("20"),
        )


def test_unknown_database_scheme_rejected():
    with pytest.raises(ValidationError):
        Settings(database_url="mysql://localhost/db", environment="test")


def test_sqlite_rejected_in_production():
    with pytest.raises(ValidationError):
        Settings(database_url=SQLITE_URL, environment="production")


def test_debug_rejected_in_production():
    with pytest.raises(ValidationError):
        Settings(
            database_url="postgresql+asyncpg://u:p@localhost/db",
            environment="production",
            debug=True,
        )


def test_log_level_normalized():
    settings = Settings(database_url=SQLITE_URL, environment="test", log_level="warning")
    assert settings.log_level == "WARNING"


def test_unknown_bonus_policy_rejected():
    with pytest.raises(ValidationError):
        Settings(
            database_url=SQLITE_URL,
            environment="test",
            referral_bonus_policy="sometimes",
        )
