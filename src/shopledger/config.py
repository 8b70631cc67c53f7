"""Runtime settings for shopledger, read from SHOPLEDGER_* environment variables."""

from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Any, Mapping, Optional

from dateutil import tz
from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shopledger.domain.errors import DomainError, ValidationError
from shopledger.utils.date_parser import parse_iso_date

ENV_PREFIX = "SHOPLEDGER_"
DEFAULT_MAX_LOOKBACK_DAYS = 400
DEFAULT_RECONCILIATION_TOLERANCE = Decimal("0.01")


class LedgerSettings(BaseSettings):
    """Settings shared by the ledger services.

    Attributes:
        timezone: IANA zone name used to turn ``created_at`` timestamps into
            calendar days. None means the machine's local zone.
        max_lookback_days: Longest carry-forward chain the engine walks back
            before assuming a zero baseline.
        reconciliation_tolerance: Largest per-account difference between
            ledger and payment-line flows that still counts as consistent.
        epoch: Optional first business day. Days before it have a zero
            baseline without any lookup.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    timezone: Optional[str] = None
    max_lookback_days: int = Field(default=DEFAULT_MAX_LOOKBACK_DAYS, ge=1)
    reconciliation_tolerance: Decimal = Field(default=DEFAULT_RECONCILIATION_TOLERANCE, ge=0)
    epoch: Optional[date] = None

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and tz.gettz(value) is None:
            raise ValueError(f"Unknown timezone '{value}'")
        return value

    @field_validator("epoch", mode="before")
    @classmethod
    def iso_epoch(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_iso_date(value)
        return value

    @property
    def tzinfo(self) -> tzinfo:
        """Zone used for calendar-day attribution."""
        if self.timezone is None:
            return tz.tzlocal()
        return tz.gettz(self.timezone)

    def today(self) -> date:
        """Today's calendar date in the configured zone."""
        return datetime.now(self.tzinfo).date()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "LedgerSettings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read instead of the process environment
            **overrides: Field values that win over the environment, such as
                a timezone given on the command line

        Raises:
            ValidationError: If a variable holds an unusable value
            InvalidDateError: If SHOPLEDGER_EPOCH is not YYYY-MM-DD
        """
        overrides = {name: value for name, value in overrides.items() if value not in (None, "")}
        try:
            if environ is None:
                return cls(**overrides)
            values = {}
            for name in cls.model_fields:
                raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
                if raw:
                    values[name] = raw
            values.update(overrides)
            return cls.model_validate(values)
        except PydanticValidationError as e:
            raise _settings_error(e) from e


def _settings_error(error: PydanticValidationError) -> DomainError:
    """The domain error behind a settings validation failure."""
    messages = []
    for detail in error.errors():
        cause = detail.get("ctx", {}).get("error")
        if isinstance(cause, DomainError):
            return cause
        field = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{ENV_PREFIX}{field.upper()}: {detail['msg']}")
    return ValidationError("; ".join(messages))
