"""Calendar-day attribution of ledger transactions and payment lines.

Every component (engine, report, reconciliation) decides which day a
movement belongs to through this module, so the answer is the same
everywhere.

Rules per source:

======================================================  =========================
source                                                  rule
======================================================  =========================
opening_balance, add_opening_balance, manual_deduction  BUSINESS_DATE
sale, sale_payment, purchase, purchase_payment,         BUSINESS_DATE_OR_RECORDED
expense, any unknown source
sale_refund, purchase_refund, expense_refund            RECORDED_DATE
======================================================  =========================

BUSINESS_DATE uses the transaction's ``date`` field. BUSINESS_DATE_OR_RECORDED
uses ``date`` when present and otherwise the local calendar date of
``created_at``. RECORDED_DATE always uses the local calendar date of
``created_at``: a refund moves money on the day it is processed. A payment
line belongs to its own date, or to its record's date when it has none.
"""

from datetime import date, tzinfo
from enum import Enum
from typing import Iterable

from shopledger.domain.entities import (
    AttributedPayment,
    BalanceTransaction,
    PaymentLine,
    RecordKind,
    ReportCategory,
    TransactionSource,
)
from shopledger.utils.date_parser import local_date


class AttributionRule(str, Enum):
    """How the calendar day of a transaction is chosen."""

    BUSINESS_DATE = "business_date"
    BUSINESS_DATE_OR_RECORDED = "business_date_or_recorded"
    RECORDED_DATE = "recorded_date"


SOURCE_RULES = {
    TransactionSource.OPENING_BALANCE: AttributionRule.BUSINESS_DATE,
    TransactionSource.ADD_OPENING_BALANCE: AttributionRule.BUSINESS_DATE,
    TransactionSource.MANUAL_DEDUCTION: AttributionRule.BUSINESS_DATE,
    TransactionSource.SALE: AttributionRule.BUSINESS_DATE_OR_RECORDED,
    TransactionSource.SALE_PAYMENT: AttributionRule.BUSINESS_DATE_OR_RECORDED,
    TransactionSource.PURCHASE: AttributionRule.BUSINESS_DATE_OR_RECORDED,
    TransactionSource.PURCHASE_PAYMENT: AttributionRule.BUSINESS_DATE_OR_RECORDED,
    TransactionSource.EXPENSE: AttributionRule.BUSINESS_DATE_OR_RECORDED,
    TransactionSource.SALE_REFUND: AttributionRule.RECORDED_DATE,
    TransactionSource.PURCHASE_REFUND: AttributionRule.RECORDED_DATE,
    TransactionSource.EXPENSE_REFUND: AttributionRule.RECORDED_DATE,
}

SOURCE_CATEGORIES = {
    TransactionSource.SALE: ReportCategory.SALES,
    TransactionSource.SALE_PAYMENT: ReportCategory.SALES,
    TransactionSource.PURCHASE: ReportCategory.PURCHASES,
    TransactionSource.PURCHASE_PAYMENT: ReportCategory.PURCHASES,
    TransactionSource.EXPENSE: ReportCategory.EXPENSES,
    TransactionSource.OPENING_BALANCE: ReportCategory.ADDITIONS,
    TransactionSource.ADD_OPENING_BALANCE: ReportCategory.ADDITIONS,
    TransactionSource.MANUAL_DEDUCTION: ReportCategory.ADDITIONS,
    TransactionSource.SALE_REFUND: ReportCategory.REFUNDS,
    TransactionSource.PURCHASE_REFUND: ReportCategory.REFUNDS,
    TransactionSource.EXPENSE_REFUND: ReportCategory.REFUNDS,
}


def rule_for_source(source: str) -> AttributionRule:
    """Return the attribution rule of a source tag."""
    return SOURCE_RULES.get(source, AttributionRule.BUSINESS_DATE_OR_RECORDED)


def category_for_source(source: str) -> ReportCategory:
    """Return the report category of a source tag."""
    return SOURCE_CATEGORIES.get(source, ReportCategory.OTHER)


def attributed_date(transaction: BalanceTransaction, zone: tzinfo) -> date:
    """Calendar day a ledger transaction contributes to."""
    rule = rule_for_source(transaction.source)
    if rule == AttributionRule.RECORDED_DATE or transaction.date is None:
        return local_date(transaction.created_at, zone)
    return transaction.date


def attribute_transactions(
    transactions: Iterable[BalanceTransaction], start: date, end: date, zone: tzinfo
) -> list[BalanceTransaction]:
    """Keep the transactions attributed to a day in start..end.

    Result is ordered by (created_at, id), the order the fold applies them.
    """
    selected = [t for t in transactions if start <= attributed_date(t, zone) <= end]
    return sorted(selected, key=lambda t: (t.created_at, t.id))


def payment_date(payment: PaymentLine, record_date: date) -> date:
    """Calendar day a payment line belongs to."""
    return payment.date if payment.date is not None else record_date


def attribute_payments(
    record_kind: RecordKind, record_id: int, record_date: date, payments: Iterable[PaymentLine]
) -> list[AttributedPayment]:
    """Resolve each payment line of a record to its calendar day."""
    return [
        AttributedPayment(
            record_kind=record_kind,
            record_id=record_id,
            payment=payment,
            date=payment_date(payment, record_date),
        )
        for payment in payments
    ]
