"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, including the JSON encoding of
per-account balance lists, so the domain never sees storage details.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from shopledger.domain import entities as domain
from shopledger.database.models import (
    BalanceTransaction as ORMBalanceTransaction,
    DailyOpeningBalance as ORMOpeningBalance,
    DailyClosingBalance as ORMClosingBalance,
    Sale as ORMSale,
    Purchase as ORMPurchase,
    Expense as ORMExpense,
    PaymentLine as ORMPaymentLine,
)


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


def _money(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return domain.quantize(Decimal(str(value)))


def balances_to_json(balances: Iterable[domain.AccountBalance]) -> list[dict[str, str]]:
    """Encode balances as JSON-safe dicts, amounts as strings."""
    return [
        {"account_ref": entry.account_ref, "balance": str(domain.quantize(entry.balance))}
        for entry in balances
    ]


def balances_from_json(raw: Optional[list[dict[str, Any]]]) -> tuple[domain.AccountBalance, ...]:
    """Decode a stored balance list."""
    return tuple(
        domain.AccountBalance(account_ref=str(item["account_ref"]), balance=_money(item["balance"]))
        for item in (raw or [])
    )


def balance_transaction_to_domain(orm_txn: ORMBalanceTransaction) -> domain.BalanceTransaction:
    """Convert SQLAlchemy BalanceTransaction model to domain entity."""
    return domain.BalanceTransaction(
        id=orm_txn.id,
        date=orm_txn.date,
        created_at=_aware(orm_txn.created_at),
        type=domain.TransactionType(orm_txn.type),
        amount=_money(orm_txn.amount),
        payment_type=domain.PaymentType(orm_txn.payment_type),
        account_ref=orm_txn.account_ref,
        source=orm_txn.source,
        source_id=orm_txn.source_id,
        description=orm_txn.description,
        before_balance=_money(orm_txn.before_balance),
        after_balance=_money(orm_txn.after_balance),
        change_amount=_money(orm_txn.change_amount),
    )


def opening_balance_to_domain(orm_opening: ORMOpeningBalance) -> domain.OpeningBalance:
    """Convert SQLAlchemy DailyOpeningBalance model to domain entity."""
    return domain.OpeningBalance(
        id=orm_opening.id,
        date=orm_opening.date,
        cash_balance=_money(orm_opening.cash_balance),
        bank_balances=balances_from_json(orm_opening.bank_balances),
        card_balances=balances_from_json(orm_opening.card_balances),
        notes=orm_opening.notes,
        created_at=_aware(orm_opening.created_at),
    )


def closing_balance_to_domain(orm_closing: ORMClosingBalance) -> domain.ClosingBalance:
    """Convert SQLAlchemy DailyClosingBalance model to domain entity."""
    return domain.ClosingBalance(
        id=orm_closing.id,
        date=orm_closing.date,
        cash_balance=_money(orm_closing.cash_balance),
        bank_balances=balances_from_json(orm_closing.bank_balances),
        card_balances=balances_from_json(orm_closing.card_balances),
        computed_at=_aware(orm_closing.computed_at),
    )


def payment_line_to_domain(orm_line: ORMPaymentLine) -> domain.PaymentLine:
    """Convert SQLAlchemy PaymentLine model to domain entity."""
    return domain.PaymentLine(
        id=orm_line.id,
        payment_type=domain.PaymentType(orm_line.payment_type),
        amount=_money(orm_line.amount),
        date=orm_line.date,
        account_ref=orm_line.account_ref,
    )


def sale_to_domain(orm_sale: ORMSale, lines: Iterable[ORMPaymentLine]) -> domain.Sale:
    """Convert SQLAlchemy Sale model and its payment lines to domain entity."""
    return domain.Sale(
        id=orm_sale.id,
        reference=orm_sale.reference,
        date=orm_sale.date,
        total=_money(orm_sale.total),
        status=orm_sale.status,
        created_at=_aware(orm_sale.created_at),
        payments=tuple(payment_line_to_domain(line) for line in lines),
        cancelled_on=orm_sale.cancelled_on,
    )


def purchase_to_domain(orm_purchase: ORMPurchase, lines: Iterable[ORMPaymentLine]) -> domain.Purchase:
    """Convert SQLAlchemy Purchase model and its payment lines to domain entity."""
    return domain.Purchase(
        id=orm_purchase.id,
        reference=orm_purchase.reference,
        date=orm_purchase.date,
        total=_money(orm_purchase.total),
        status=orm_purchase.status,
        created_at=_aware(orm_purchase.created_at),
        payments=tuple(payment_line_to_domain(line) for line in lines),
        cancelled_on=orm_purchase.cancelled_on,
    )


def expense_to_domain(orm_expense: ORMExpense) -> domain.Expense:
    """Convert SQLAlchemy Expense model to domain entity."""
    return domain.Expense(
        id=orm_expense.id,
        date=orm_expense.date,
        amount=_money(orm_expense.amount),
        category=orm_expense.category,
        payment_type=domain.PaymentType(orm_expense.payment_type),
        account_ref=orm_expense.account_ref,
        description=orm_expense.description,
        created_at=_aware(orm_expense.created_at),
    )
