"""Tests for ledger settings."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from shopledger.config import DEFAULT_MAX_LOOKBACK_DAYS, LedgerSettings
from shopledger.domain.errors import InvalidDateError, ValidationError


def test_defaults():
    """Test default settings."""
    settings = LedgerSettings()
    assert settings.timezone is None
    assert settings.max_lookback_days == DEFAULT_MAX_LOOKBACK_DAYS
    assert settings.reconciliation_tolerance == Decimal("0.01")
    assert settings.epoch is None
    assert settings.tzinfo is not None


def test_from_env():
    """Test reading every SHOPLEDGER_* variable."""
    settings = LedgerSettings.from_env(
        {
            "SHOPLEDGER_TIMEZONE": "Asia/Karachi",
            "SHOPLEDGER_MAX_LOOKBACK_DAYS": "30",
            "SHOPLEDGER_RECONCILIATION_TOLERANCE": "0.5",
            "SHOPLEDGER_EPOCH": "2024-01-01",
        }
    )
    assert settings.timezone == "Asia/Karachi"
    assert settings.max_lookback_days == 30
    assert settings.reconciliation_tolerance == Decimal("0.5")
    assert settings.epoch == date(2024, 1, 1)


def test_from_env_empty():
    """Test that missing or empty variables fall back to defaults."""
    settings = LedgerSettings.from_env({"SHOPLEDGER_TIMEZONE": "", "SHOPLEDGER_DB_PATH": "/tmp/x.db"})
    assert settings.timezone is None
    assert settings.max_lookback_days == DEFAULT_MAX_LOOKBACK_DAYS
    assert settings.epoch is None


def test_from_process_environment(monkeypatch):
    """Test reading the process environment with a command line override."""
    monkeypatch.setenv("SHOPLEDGER_TIMEZONE", "Asia/Karachi")
    monkeypatch.setenv("SHOPLEDGER_MAX_LOOKBACK_DAYS", "12")

    settings = LedgerSettings.from_env(timezone="UTC")

    assert settings.timezone == "UTC"
    assert settings.max_lookback_days == 12


def test_settings_are_frozen():
    """Test that settings cannot be changed after creation."""
    settings = LedgerSettings(timezone="UTC")
    with pytest.raises(PydanticValidationError):
        settings.timezone = "Asia/Karachi"


@pytest.mark.parametrize(
    "environ",
    [
        {"SHOPLEDGER_MAX_LOOKBACK_DAYS": "many"},
        {"SHOPLEDGER_MAX_LOOKBACK_DAYS": "0"},
        {"SHOPLEDGER_RECONCILIATION_TOLERANCE": "abc"},
        {"SHOPLEDGER_RECONCILIATION_TOLERANCE": "-1"},
        {"SHOPLEDGER_TIMEZONE": "Mars/Olympus"},
    ],
)
def test_from_env_rejects(environ):
    """Test that unusable values raise ValidationError."""
    with pytest.raises(ValidationError):
        LedgerSettings.from_env(environ)


def test_invalid_epoch():
    """Test that a malformed epoch is an invalid date."""
    with pytest.raises(InvalidDateError):
        LedgerSettings.from_env({"SHOPLEDGER_EPOCH": "01/01/2024"})
