"""Domain model entities for shopledger.

These are pure data classes representing business concepts, independent of
database schema. The ORM models in ``shopledger.database.models`` are
converted to and from these through ``shopledger.database.mappers``.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional

from shopledger.domain.errors import ValidationError

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def quantize(value: Decimal) -> Decimal:
    """Round a money value to cents."""
    return Decimal(value).quantize(CENT)


class AccountKind(str, Enum):
    """Kind of balance-carrying account."""

    CASH = "cash"
    BANK = "bank"
    CARD = "card"


class PaymentType(str, Enum):
    """Instrument a movement was paid with."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"

    @property
    def account_kind(self) -> AccountKind:
        return _PAYMENT_TYPE_KINDS[self]


_PAYMENT_TYPE_KINDS = {
    PaymentType.CASH: AccountKind.CASH,
    PaymentType.BANK_TRANSFER: AccountKind.BANK,
    PaymentType.CARD: AccountKind.CARD,
}


class TransactionType(str, Enum):
    """Direction of a balance transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class TransactionSource:
    """Well-known values of ``BalanceTransaction.source``.

    The source column is free-form; these are the tags the ledger itself
    gives meaning to.
    """

    SALE = "sale"
    SALE_PAYMENT = "sale_payment"
    SALE_REFUND = "sale_refund"
    PURCHASE = "purchase"
    PURCHASE_PAYMENT = "purchase_payment"
    PURCHASE_REFUND = "purchase_refund"
    EXPENSE = "expense"
    EXPENSE_REFUND = "expense_refund"
    OPENING_BALANCE = "opening_balance"
    ADD_OPENING_BALANCE = "add_opening_balance"
    MANUAL_DEDUCTION = "manual_deduction"

    REFUNDS = frozenset({SALE_REFUND, PURCHASE_REFUND, EXPENSE_REFUND})
    BUSINESS = frozenset({SALE, SALE_PAYMENT, PURCHASE, PURCHASE_PAYMENT, EXPENSE}) | REFUNDS


class RecordStatus:
    """Lifecycle of a sale or purchase."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Account:
    """A cash drawer, a specific bank account or a specific card."""

    kind: AccountKind
    ref: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "kind", AccountKind(self.kind))
        if self.kind == AccountKind.CASH:
            if self.ref is not None:
                raise ValidationError("Cash account does not take a reference")
        elif not self.ref:
            raise ValidationError(f"{self.kind.value.capitalize()} account requires a reference")

    @classmethod
    def cash(cls) -> "Account":
        return cls(AccountKind.CASH)

    @classmethod
    def bank(cls, ref: str) -> "Account":
        return cls(AccountKind.BANK, ref)

    @classmethod
    def card(cls, ref: str) -> "Account":
        return cls(AccountKind.CARD, ref)

    @classmethod
    def for_payment(cls, payment_type: PaymentType, account_ref: Optional[str]) -> "Account":
        """Build the account a payment of the given type lands in."""
        kind = PaymentType(payment_type).account_kind
        if kind == AccountKind.CASH:
            return cls.cash()
        return cls(kind, account_ref)

    @property
    def payment_type(self) -> PaymentType:
        for payment_type, kind in _PAYMENT_TYPE_KINDS.items():
            if kind == self.kind:
                return payment_type
        raise ValueError(f"No payment type for {self.kind}")

    def __str__(self) -> str:
        if self.kind == AccountKind.CASH:
            return "cash"
        return f"{self.kind.value}:{self.ref}"


@dataclass(frozen=True)
class AccountBalance:
    """Balance of one bank account or card inside a snapshot."""

    account_ref: str
    balance: Decimal


@dataclass(frozen=True)
class BalanceTransaction:
    """Balance transaction domain entity (one cash/bank/card movement)."""

    id: int
    date: Optional[date]
    created_at: datetime
    type: TransactionType
    amount: Decimal
    payment_type: PaymentType
    account_ref: Optional[str]
    source: str
    source_id: Optional[str] = None
    description: Optional[str] = None
    before_balance: Optional[Decimal] = None
    after_balance: Optional[Decimal] = None
    change_amount: Optional[Decimal] = None

    @property
    def account(self) -> Account:
        return Account.for_payment(self.payment_type, self.account_ref)

    @property
    def signed_amount(self) -> Decimal:
        if self.type == TransactionType.INCOME:
            return self.amount
        return -self.amount


@dataclass(frozen=True)
class BalanceSnapshot:
    """Per-account balances at one point of a calendar day."""

    date: date
    cash_balance: Decimal
    bank_balances: tuple[AccountBalance, ...] = ()
    card_balances: tuple[AccountBalance, ...] = ()

    def balance_of(self, account: Account) -> Decimal:
        """Return the balance of an account, zero if it is not tracked."""
        if account.kind == AccountKind.CASH:
            return self.cash_balance
        entries = self.bank_balances if account.kind == AccountKind.BANK else self.card_balances
        for entry in entries:
            if entry.account_ref == account.ref:
                return entry.balance
        return ZERO

    @property
    def accounts(self) -> tuple[Account, ...]:
        return (
            (Account.cash(),)
            + tuple(Account.bank(b.account_ref) for b in self.bank_balances)
            + tuple(Account.card(c.account_ref) for c in self.card_balances)
        )

    @property
    def total(self) -> Decimal:
        return (
            self.cash_balance
            + sum((b.balance for b in self.bank_balances), ZERO)
            + sum((c.balance for c in self.card_balances), ZERO)
        )

    def same_balances(self, other: "BalanceSnapshot") -> bool:
        """Compare balances only (ignores ids and timestamps)."""
        return (
            self.date == other.date
            and self.cash_balance == other.cash_balance
            and self.bank_balances == other.bank_balances
            and self.card_balances == other.card_balances
        )


@dataclass(frozen=True)
class OpeningBalance(BalanceSnapshot):
    """Explicit opening balance for a calendar day."""

    id: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ClosingBalance(BalanceSnapshot):
    """Computed closing balance for a calendar day."""

    id: Optional[int] = None
    computed_at: Optional[datetime] = None


class BaselineSource(str, Enum):
    """Where a day's starting balances came from."""

    OPENING_BALANCE = "opening_balance"
    PREVIOUS_CLOSING = "previous_closing"
    ZERO = "zero"


@dataclass(frozen=True)
class PaymentLine:
    """One payment of a sale or purchase."""

    payment_type: PaymentType
    amount: Decimal
    date: Optional[date] = None
    account_ref: Optional[str] = None
    id: Optional[int] = None

    @property
    def account(self) -> Account:
        return Account.for_payment(self.payment_type, self.account_ref)


@dataclass(frozen=True)
class Sale:
    """Sale record with its payment lines."""

    id: int
    reference: Optional[str]
    date: date
    total: Decimal
    status: str
    created_at: datetime
    payments: tuple[PaymentLine, ...] = ()
    cancelled_on: Optional[date] = None

    @property
    def paid(self) -> Decimal:
        return sum((p.amount for p in self.payments), ZERO)

    @property
    def outstanding(self) -> Decimal:
        return self.total - self.paid


@dataclass(frozen=True)
class Purchase:
    """Purchase record with its payment lines."""

    id: int
    reference: Optional[str]
    date: date
    total: Decimal
    status: str
    created_at: datetime
    payments: tuple[PaymentLine, ...] = ()
    cancelled_on: Optional[date] = None

    @property
    def paid(self) -> Decimal:
        return sum((p.amount for p in self.payments), ZERO)

    @property
    def outstanding(self) -> Decimal:
        return self.total - self.paid


@dataclass(frozen=True)
class Expense:
    """Expense record (always paid in one go)."""

    id: int
    date: date
    amount: Decimal
    category: str
    payment_type: PaymentType
    account_ref: Optional[str]
    created_at: datetime
    description: Optional[str] = None

    @property
    def account(self) -> Account:
        return Account.for_payment(self.payment_type, self.account_ref)


class RecordKind(str, Enum):
    """Business record a payment belongs to."""

    SALE = "sale"
    PURCHASE = "purchase"
    EXPENSE = "expense"


@dataclass(frozen=True)
class AttributedPayment:
    """A payment line resolved to the calendar day it belongs to."""

    record_kind: RecordKind
    record_id: int
    payment: PaymentLine
    date: date

    @property
    def is_income(self) -> bool:
        return self.record_kind == RecordKind.SALE


class ReportCategory(str, Enum):
    """Report grouping of ledger sources."""

    SALES = "sales"
    PURCHASES = "purchases"
    EXPENSES = "expenses"
    ADDITIONS = "additions"
    REFUNDS = "refunds"
    OTHER = "other"


@dataclass(frozen=True)
class InstrumentTotals:
    """Amounts split by payment instrument."""

    cash: Decimal = ZERO
    bank_transfer: Decimal = ZERO
    card: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.cash + self.bank_transfer + self.card

    def add(self, payment_type: PaymentType, amount: Decimal) -> "InstrumentTotals":
        if payment_type == PaymentType.CASH:
            return InstrumentTotals(self.cash + amount, self.bank_transfer, self.card)
        if payment_type == PaymentType.BANK_TRANSFER:
            return InstrumentTotals(self.cash, self.bank_transfer + amount, self.card)
        return InstrumentTotals(self.cash, self.bank_transfer, self.card + amount)

    def __add__(self, other: "InstrumentTotals") -> "InstrumentTotals":
        return InstrumentTotals(
            self.cash + other.cash,
            self.bank_transfer + other.bank_transfer,
            self.card + other.card,
        )


@dataclass(frozen=True)
class CategoryTotals:
    """Income and expense of one report category."""

    category: ReportCategory
    income: InstrumentTotals = field(default_factory=InstrumentTotals)
    expense: InstrumentTotals = field(default_factory=InstrumentTotals)
    count: int = 0

    @property
    def net(self) -> Decimal:
        return self.income.total - self.expense.total

    def __add__(self, other: "CategoryTotals") -> "CategoryTotals":
        return CategoryTotals(
            category=self.category,
            income=self.income + other.income,
            expense=self.expense + other.expense,
            count=self.count + other.count,
        )


@dataclass(frozen=True)
class ReportTotals:
    """Totals of a report, one entry per category in enum order."""

    categories: tuple[CategoryTotals, ...] = tuple(
        CategoryTotals(category) for category in ReportCategory
    )

    def for_category(self, category: ReportCategory) -> CategoryTotals:
        for totals in self.categories:
            if totals.category == category:
                return totals
        return CategoryTotals(category)

    @property
    def income(self) -> InstrumentTotals:
        result = InstrumentTotals()
        for totals in self.categories:
            result = result + totals.income
        return result

    @property
    def expense(self) -> InstrumentTotals:
        result = InstrumentTotals()
        for totals in self.categories:
            result = result + totals.expense
        return result

    @property
    def net(self) -> Decimal:
        return self.income.total - self.expense.total

    def __add__(self, other: "ReportTotals") -> "ReportTotals":
        return ReportTotals(
            tuple(self.for_category(c) + other.for_category(c) for c in ReportCategory)
        )


@dataclass(frozen=True)
class TimelineEntry:
    """One ledger movement with the running balance of its account."""

    transaction: BalanceTransaction
    category: ReportCategory
    account: Account
    before_balance: Decimal
    after_balance: Decimal
    before_opening_snapshot: bool = False


@dataclass(frozen=True)
class DailyReport:
    """Everything that happened to the shop's balances on one day."""

    date: date
    opening: BalanceSnapshot
    opening_source: BaselineSource
    timeline: tuple[TimelineEntry, ...]
    totals: ReportTotals
    closing: ClosingBalance
    sales: tuple[Sale, ...] = ()
    purchases: tuple[Purchase, ...] = ()
    expenses: tuple[Expense, ...] = ()
    payments: tuple[AttributedPayment, ...] = ()
    deferred_payments: tuple[AttributedPayment, ...] = ()
    is_stale: bool = False

    @property
    def sales_credit(self) -> Decimal:
        """Part of this day's sales that is still unpaid."""
        return sum((sale.outstanding for sale in self.sales), ZERO)


@dataclass(frozen=True)
class DayFailure:
    """Marker for a day a range report could not build."""

    date: date
    error: str


@dataclass(frozen=True)
class RangeReport:
    """Day-by-day report over an inclusive date range."""

    start_date: date
    end_date: date
    days: tuple[DailyReport, ...]
    failures: tuple[DayFailure, ...]
    totals: ReportTotals

    @property
    def opening(self) -> Optional[BalanceSnapshot]:
        if self.days and self.days[0].date == self.start_date:
            return self.days[0].opening
        return None

    @property
    def closing(self) -> Optional[ClosingBalance]:
        if self.days and self.days[-1].date == self.end_date:
            return self.days[-1].closing
        return None

    @property
    def is_complete(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class AccountDiscrepancy:
    """Ledger and payment-line flows of one account on one day."""

    account: Account
    ledger_flow: Decimal
    record_flow: Decimal

    @property
    def difference(self) -> Decimal:
        return self.ledger_flow - self.record_flow


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of comparing ledger flows with payment-line flows."""

    date: date
    flows: tuple[AccountDiscrepancy, ...]
    discrepancies: tuple[AccountDiscrepancy, ...]

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies
