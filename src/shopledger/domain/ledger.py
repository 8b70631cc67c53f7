"""Balance transaction log domain service."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from shopledger.config import LedgerSettings
from shopledger.database.base import Database
from shopledger.domain.attribution import attribute_transactions
from shopledger.domain.entities import (
    Account,
    BalanceTransaction,
    ClosingBalance,
    PaymentType,
    TransactionSource,
    TransactionType,
    quantize,
)
from shopledger.domain.errors import ValidationError
from shopledger.utils.date_parser import day_bounds, ensure_date, ensure_range

logger = logging.getLogger(__name__)


class LedgerService:
    """Service for appending to and reading the balance transaction log."""

    def __init__(self, db: Database, settings: Optional[LedgerSettings] = None, engine=None):
        """Initialize ledger service.

        Args:
            db: Database instance
            settings: Ledger settings, defaults to LedgerSettings()
            engine: BalanceEngine used for balance lookups, created on first use
        """
        self.db = db
        self.settings = settings or LedgerSettings()
        self._engine = engine

    @property
    def engine(self):
        if self._engine is None:
            from shopledger.domain.engine import BalanceEngine

            self._engine = BalanceEngine(self.db, self.settings, ledger=self)
        return self._engine

    def record_transaction(
        self,
        day: Optional[date],
        txn_type: TransactionType,
        amount: Decimal,
        payment_type: PaymentType,
        source: str,
        account_ref: Optional[str] = None,
        source_id: Optional[str] = None,
        description: Optional[str] = None,
        before_balance: Optional[Decimal] = None,
        after_balance: Optional[Decimal] = None,
        change_amount: Optional[Decimal] = None,
        created_at: Optional[datetime] = None,
    ) -> BalanceTransaction:
        """Append one cash/bank/card movement to the log.

        Callers recording a business event do this inside the same
        ``db.unit_of_work()`` as the business record.

        Args:
            day: Business date, None to attribute by recording time
            txn_type: Income or expense
            amount: Non-negative amount
            payment_type: Instrument the money moved through
            source: Tag of the originating event (see TransactionSource)
            account_ref: Bank account or card reference, None for cash
            source_id: Identifier of the originating record
            description: Optional free text
            before_balance: Audit balance of the account before the movement
            after_balance: Audit balance of the account after the movement
            change_amount: Audit signed change, +amount or -amount
            created_at: Recording time, defaults to now

        Returns:
            The stored BalanceTransaction

        Raises:
            ValidationError: If the movement violates a ledger invariant
        """
        if day is not None:
            day = ensure_date(day)
        txn_type = TransactionType(txn_type)
        payment_type = PaymentType(payment_type)
        if not source:
            raise ValidationError("Transaction source is required")

        amount = quantize(Decimal(amount))
        if amount < 0:
            raise ValidationError(f"Transaction amount cannot be negative: {amount}")

        # Bank and card movements need a reference
        Account.for_payment(payment_type, account_ref)
        if payment_type == PaymentType.CASH and account_ref is not None:
            raise ValidationError("Cash transactions do not take an account reference")

        expected_change = amount if txn_type == TransactionType.INCOME else -amount
        if change_amount is not None and quantize(change_amount) != expected_change:
            raise ValidationError(
                f"Change amount {change_amount} does not match {txn_type.value} of {amount}"
            )
        if before_balance is not None and after_balance is not None and change_amount is not None:
            if quantize(before_balance) + quantize(change_amount) != quantize(after_balance):
                raise ValidationError(
                    f"After balance {after_balance} is not before balance {before_balance} "
                    f"plus change {change_amount}"
                )

        txn = self.db.create_balance_transaction(
            day=day,
            txn_type=txn_type,
            amount=amount,
            payment_type=payment_type,
            account_ref=account_ref,
            source=source,
            source_id=str(source_id) if source_id is not None else None,
            description=description,
            before_balance=quantize(before_balance) if before_balance is not None else None,
            after_balance=quantize(after_balance) if after_balance is not None else None,
            change_amount=quantize(change_amount) if change_amount is not None else None,
            created_at=created_at,
        )
        logger.debug(
            "Recorded %s %s %s on %s (source=%s, id=%s)",
            txn.type.value,
            txn.amount,
            txn.account,
            txn.date,
            txn.source,
            txn.id,
        )
        return txn

    def get_transaction(self, transaction_id: int) -> Optional[BalanceTransaction]:
        """Get balance transaction by ID."""
        return self.db.get_balance_transaction(transaction_id)

    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        payment_type: Optional[PaymentType] = None,
        account_ref: Optional[str] = None,
        txn_type: Optional[TransactionType] = None,
        source: Optional[str] = None,
    ) -> list[BalanceTransaction]:
        """List transactions by business date and optional filters.

        Args:
            start_date: Optional start date filter
            end_date: Optional end date filter
            payment_type: Optional instrument filter
            account_ref: Optional bank account or card filter
            txn_type: Optional income/expense filter
            source: Optional source tag filter

        Returns:
            Transactions ordered by recording time
        """
        if start_date is not None and end_date is not None:
            start_date, end_date = ensure_range(start_date, end_date)
        return self.db.list_balance_transactions(
            start_date=start_date,
            end_date=end_date,
            payment_type=payment_type,
            account_ref=account_ref,
            txn_type=txn_type,
            source=source,
        )

    def transactions_for_range(self, start_date: date, end_date: date) -> list[BalanceTransaction]:
        """Transactions attributed to any day of start_date..end_date.

        Ordered by (created_at, id), the order the engine folds them.
        """
        start_date, end_date = ensure_range(start_date, end_date)
        zone = self.settings.tzinfo
        created_from, created_to = day_bounds(start_date, end_date, zone)
        candidates = self.db.list_transaction_candidates(start_date, end_date, created_from, created_to)
        return attribute_transactions(candidates, start_date, end_date, zone)

    def transactions_for_day(self, day: date) -> list[BalanceTransaction]:
        """Transactions attributed to one calendar day."""
        day = ensure_date(day)
        return self.transactions_for_range(day, day)

    def rollback_source(self, source: str, source_id) -> int:
        """Delete every transaction recorded for one originating record.

        This is the compensating action of a business operation whose own
        write failed after its ledger entries were appended.

        Returns:
            Number of deleted transactions
        """
        deleted = self.db.delete_balance_transactions(source, str(source_id))
        logger.info("Rolled back %d transaction(s) of %s %s", deleted, source, source_id)
        return deleted

    def running_balance(self, day: date, account: Account) -> Decimal:
        """Balance of an account on a day: baseline plus every movement so far."""
        return self.engine.fold_day(ensure_date(day)).balances.get(account)

    def add_to_opening_or_closing_balance(
        self,
        day: date,
        amount: Decimal,
        account: Account,
        is_expense: bool = False,
        description: Optional[str] = None,
    ) -> ClosingBalance:
        """Record a manual top-up or deduction and apply it to the day's closing.

        Args:
            day: Business date of the movement
            amount: Non-negative amount
            account: Account the money is added to or taken from
            is_expense: Deduct instead of add
            description: Optional free text

        The day stays locked from reading the running balance until the
        closing is adjusted, so no concurrent compute of the day can see the
        new entry before the delta is applied.

        Returns:
            The adjusted ClosingBalance of the day
        """
        day = ensure_date(day)
        if is_expense:
            txn_type, source = TransactionType.EXPENSE, TransactionSource.MANUAL_DEDUCTION
            default_description = f"Manual deduction from {account}"
        else:
            txn_type, source = TransactionType.INCOME, TransactionSource.ADD_OPENING_BALANCE
            default_description = f"Manual addition to {account}"

        amount = quantize(Decimal(amount))
        if amount < 0:
            raise ValidationError(f"Amount cannot be negative: {amount}")
        change = -amount if is_expense else amount

        self.engine.prepare_baseline(day)
        with self.db.closing_lock(day), self.db.unit_of_work():
            before = self.running_balance(day, account)
            txn = self.record_transaction(
                day=day,
                txn_type=txn_type,
                amount=amount,
                payment_type=account.payment_type,
                account_ref=account.ref,
                source=source,
                description=description or default_description,
                before_balance=before,
                after_balance=before + change,
                change_amount=change,
            )
            return self.engine.adjust_closing_balance(day, txn.amount, account, is_expense=is_expense)
