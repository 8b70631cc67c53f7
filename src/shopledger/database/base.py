"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from shopledger.domain.entities import (
    AccountBalance,
    BalanceSnapshot,
    BalanceTransaction,
    ClosingBalance,
    Expense,
    OpeningBalance,
    PaymentType,
    Purchase,
    RecordKind,
    Sale,
    TransactionType,
)


class Database(ABC):
    """Abstract database interface for shopledger."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Transaction boundaries
    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """Group writes so they commit together or roll back together.

        Writes issued inside the block are flushed but only committed when
        the outermost block exits cleanly. Nested blocks join the outer one.
        """
        pass

    @abstractmethod
    def closing_lock(self, day: date) -> AbstractContextManager[None]:
        """Serialize closing balance read-fold-write sequences for one date."""
        pass

    # Balance transaction operations
    @abstractmethod
    def create_balance_transaction(
        self,
        day: Optional[date],
        txn_type: TransactionType,
        amount: Decimal,
        payment_type: PaymentType,
        account_ref: Optional[str],
        source: str,
        source_id: Optional[str] = None,
        description: Optional[str] = None,
        before_balance: Optional[Decimal] = None,
        after_balance: Optional[Decimal] = None,
        change_amount: Optional[Decimal] = None,
        created_at: Optional[datetime] = None,
    ) -> BalanceTransaction:
        """Append a balance transaction. Returns the stored entry."""
        pass

    @abstractmethod
    def get_balance_transaction(self, transaction_id: int) -> Optional[BalanceTransaction]:
        """Get balance transaction by ID."""
        pass

    @abstractmethod
    def list_balance_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        payment_type: Optional[PaymentType] = None,
        account_ref: Optional[str] = None,
        txn_type: Optional[TransactionType] = None,
        source: Optional[str] = None,
        source_id: Optional[str] = None,
    ) -> list[BalanceTransaction]:
        """List balance transactions filtered on their business date.

        Ordered by created_at, then id.
        """
        pass

    @abstractmethod
    def list_transaction_candidates(
        self, start_date: date, end_date: date, created_from: datetime, created_to: datetime
    ) -> list[BalanceTransaction]:
        """List transactions that may belong to a range of days.

        Returns rows whose business date is within start_date..end_date or
        whose created_at is within [created_from, created_to). Callers
        narrow the result with the attribution rules.
        """
        pass

    @abstractmethod
    def delete_balance_transactions(self, source: str, source_id: str) -> int:
        """Delete the transactions of one originating record. Returns count."""
        pass

    @abstractmethod
    def get_earliest_activity(self) -> tuple[Optional[date], Optional[datetime]]:
        """Earliest business date and earliest created_at in the ledger.

        The business date considers transactions and both balance stores.
        """
        pass

    # Opening balance operations
    @abstractmethod
    def get_opening_balance(self, day: date) -> Optional[OpeningBalance]:
        """Get opening balance by date."""
        pass

    @abstractmethod
    def save_opening_balance(
        self,
        day: date,
        cash_balance: Decimal,
        bank_balances: tuple[AccountBalance, ...],
        card_balances: tuple[AccountBalance, ...],
        notes: Optional[str] = None,
    ) -> OpeningBalance:
        """Create or replace the opening balance of a date."""
        pass

    @abstractmethod
    def delete_opening_balance(self, day: date) -> bool:
        """Delete the opening balance of a date. Returns whether a row existed."""
        pass

    @abstractmethod
    def list_opening_balances(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[OpeningBalance]:
        """List opening balances ordered by date."""
        pass

    # Closing balance operations
    @abstractmethod
    def get_closing_balance(self, day: date) -> Optional[ClosingBalance]:
        """Get closing balance by date."""
        pass

    @abstractmethod
    def upsert_closing_balance(self, snapshot: BalanceSnapshot) -> ClosingBalance:
        """Insert or update the closing balance keyed by snapshot.date.

        A row whose balances already equal the snapshot is left untouched.
        """
        pass

    @abstractmethod
    def list_closing_balances(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[ClosingBalance]:
        """List closing balances ordered by date."""
        pass

    # Business record operations
    @abstractmethod
    def create_sale(self, reference: Optional[str], day: date, total: Decimal, status: str = "completed") -> int:
        """Create a sale. Returns sale ID."""
        pass

    @abstractmethod
    def create_purchase(
        self, reference: Optional[str], day: date, total: Decimal, status: str = "completed"
    ) -> int:
        """Create a purchase. Returns purchase ID."""
        pass

    @abstractmethod
    def create_expense(
        self,
        day: date,
        amount: Decimal,
        category: str,
        payment_type: PaymentType,
        account_ref: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        """Create an expense. Returns expense ID."""
        pass

    @abstractmethod
    def add_payment_line(
        self,
        record_kind: RecordKind,
        record_id: int,
        payment_type: PaymentType,
        amount: Decimal,
        day: Optional[date] = None,
        account_ref: Optional[str] = None,
    ) -> int:
        """Attach a payment line to a sale or purchase. Returns line ID."""
        pass

    @abstractmethod
    def get_sale(self, sale_id: int) -> Optional[Sale]:
        """Get sale with its payment lines."""
        pass

    @abstractmethod
    def get_purchase(self, purchase_id: int) -> Optional[Purchase]:
        """Get purchase with its payment lines."""
        pass

    @abstractmethod
    def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Get expense by ID."""
        pass

    @abstractmethod
    def list_sales(self, start_date: date, end_date: date) -> list[Sale]:
        """List sales dated within the range."""
        pass

    @abstractmethod
    def list_purchases(self, start_date: date, end_date: date) -> list[Purchase]:
        """List purchases dated within the range."""
        pass

    @abstractmethod
    def list_expenses(self, start_date: date, end_date: date) -> list[Expense]:
        """List expenses dated within the range."""
        pass

    @abstractmethod
    def list_sales_for_payment_date(self, day: date) -> list[Sale]:
        """List sales with a payment line attributed to the given day.

        A line without its own date counts on its sale's date.
        """
        pass

    @abstractmethod
    def list_purchases_for_payment_date(self, day: date) -> list[Purchase]:
        """List purchases with a payment line attributed to the given day."""
        pass

    @abstractmethod
    def cancel_sale(self, sale_id: int, day: date) -> None:
        """Mark a sale cancelled on the given day."""
        pass

    @abstractmethod
    def cancel_purchase(self, purchase_id: int, day: date) -> None:
        """Mark a purchase cancelled on the given day."""
        pass

    @abstractmethod
    def delete_expense(self, expense_id: int) -> bool:
        """Delete an expense. Returns whether a row existed."""
        pass

    @abstractmethod
    def list_sales_cancelled_on(self, day: date) -> list[Sale]:
        """List sales cancelled on the given day."""
        pass

    @abstractmethod
    def list_purchases_cancelled_on(self, day: date) -> list[Purchase]:
        """List purchases cancelled on the given day."""
        pass
