"""Shared domain error messages and error types."""

from datetime import date
from decimal import Decimal
from typing import Any, Sequence


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class InvalidDateError(ValidationError):
    """Malformed date input, rejected before any computation."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class StorageUnavailableError(DomainError):
    """Transient storage failure.

    Nothing was persisted by the failing operation; retrying the whole
    operation is safe.
    """


class InsufficientBalanceError(DomainError):
    """An outgoing payment would drive an account negative."""

    def __init__(self, account: Any, available: Decimal, required: Decimal):
        self.account = account
        self.available = available
        self.required = required
        super().__init__(insufficient_balance(account, available, required))


class BalanceInconsistencyError(DomainError):
    """Ledger-derived and payment-line-derived balances disagree."""

    def __init__(self, day: date, discrepancies: Sequence[Any]):
        self.date = day
        self.discrepancies = tuple(discrepancies)
        super().__init__(balance_inconsistency(day, self.discrepancies))


class OperationCancelledError(DomainError):
    """A multi-day operation was cancelled or ran past its deadline.

    ``completed`` holds the results of the days finished before the stop;
    they are already persisted and remain valid.
    """

    def __init__(self, message: str, completed: Sequence[Any] = ()):
        self.completed = tuple(completed)
        super().__init__(message)


def opening_balance_not_found(day: date) -> str:
    """Return message for missing opening balance."""
    return f"No opening balance for {day.isoformat()}"


def closing_balance_not_found(day: date) -> str:
    """Return message for missing closing balance."""
    return f"No closing balance for {day.isoformat()}"


def record_not_found(kind: str, record_id: int) -> str:
    """Return message for a missing sale, purchase or expense."""
    return f"{kind.capitalize()} {record_id} not found"


def insufficient_balance(account: Any, available: Decimal, required: Decimal) -> str:
    """Return message when a payment exceeds the available balance."""
    return (
        f"Insufficient {account} balance. "
        f"Available balance: {available:,.2f}, required amount: {required:,.2f}"
    )


def balance_inconsistency(day: date, discrepancies: Sequence[Any]) -> str:
    """Return message listing every account whose flows disagree."""
    parts = [
        f"{d.account}: ledger {d.ledger_flow:,.2f} vs records {d.record_flow:,.2f}"
        for d in discrepancies
    ]
    return f"Balance inconsistency on {day.isoformat()}: " + "; ".join(parts)


def invalid_date_range(start: date, end: date) -> str:
    """Return message when a range ends before it starts."""
    return f"End date {end.isoformat()} is before start date {start.isoformat()}"
