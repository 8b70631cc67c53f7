"""Sale, purchase and expense recording.

Each operation writes its business record, its payment lines and one
balance transaction per payment line in a single unit of work, so either
all of them are stored or none. The days an operation moves money on stay
locked from the balance check until the commit.
"""

import logging
from contextlib import ExitStack, contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Iterator, Optional, Sequence

from shopledger.config import LedgerSettings
from shopledger.database.base import Database
from shopledger.domain.entities import (
    Account,
    Expense,
    PaymentLine,
    PaymentType,
    Purchase,
    RecordKind,
    RecordStatus,
    Sale,
    TransactionSource,
    TransactionType,
    quantize,
)
from shopledger.domain.errors import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
    record_not_found,
)
from shopledger.domain.ledger import LedgerService
from shopledger.utils.date_parser import ensure_date, local_date

logger = logging.getLogger(__name__)


def _validate_payments(payments: Sequence[PaymentLine], limit: Decimal, label: str) -> list[PaymentLine]:
    """Normalize payment amounts and check they fit within ``limit``."""
    normalized = []
    for payment in payments:
        amount = quantize(Decimal(payment.amount))
        if amount <= 0:
            raise ValidationError(f"Payment amount must be positive, got {amount}")
        # Rejects bank/card payments without a reference
        Account.for_payment(payment.payment_type, payment.account_ref)
        if payment.payment_type == PaymentType.CASH and payment.account_ref is not None:
            raise ValidationError("Cash payments do not take an account reference")
        normalized.append(
            PaymentLine(
                payment_type=PaymentType(payment.payment_type),
                amount=amount,
                date=ensure_date(payment.date) if payment.date is not None else None,
                account_ref=payment.account_ref,
            )
        )
    paid = sum((p.amount for p in normalized), Decimal("0"))
    if paid > limit:
        raise ValidationError(f"Payments of {paid:,.2f} exceed the {label} of {limit:,.2f}")
    return normalized


class CommerceService:
    """Service recording sales, purchases and expenses with their ledger entries."""

    def __init__(
        self,
        db: Database,
        settings: Optional[LedgerSettings] = None,
        ledger: Optional[LedgerService] = None,
    ):
        """Initialize commerce service.

        Args:
            db: Database instance
            settings: Ledger settings, defaults to LedgerSettings()
            ledger: Ledger service, created from db and settings if omitted
        """
        self.db = db
        self.settings = settings or LedgerSettings()
        self.ledger = ledger or LedgerService(db, self.settings)

    @contextmanager
    def _serialized(self, days: Iterable[date]) -> Iterator[None]:
        """Lock every touched day, oldest first, around one unit of work."""
        days = sorted(set(days))
        for day in days:
            self.ledger.engine.prepare_baseline(day)
        with ExitStack() as stack:
            for day in days:
                stack.enter_context(self.db.closing_lock(day))
            stack.enter_context(self.db.unit_of_work())
            yield

    def _audit_balances(
        self, movements: Sequence[tuple[date, Account, Decimal]]
    ) -> list[tuple[Decimal, Decimal]]:
        """Before/after balance of each movement, applied in order.

        Raises:
            InsufficientBalanceError: If an outgoing movement would take its
                account below zero
        """
        running: dict[tuple[date, Account], Decimal] = {}
        audits = []
        for day, account, change in movements:
            key = (day, account)
            if key not in running:
                running[key] = self.ledger.running_balance(day, account)
            before = running[key]
            after = before + change
            if change < 0 and after < 0:
                raise InsufficientBalanceError(account, before, -change)
            running[key] = after
            audits.append((before, after))
        return audits

    def _record_payments(
        self,
        record_kind: RecordKind,
        record_id: int,
        record_date: date,
        payments: Sequence[PaymentLine],
        audits: Sequence[tuple[Decimal, Decimal]],
        txn_type: TransactionType,
        source: str,
        description: str,
    ) -> None:
        for payment, (before, after) in zip(payments, audits):
            self.db.add_payment_line(
                record_kind=record_kind,
                record_id=record_id,
                payment_type=payment.payment_type,
                amount=payment.amount,
                day=payment.date,
                account_ref=payment.account_ref,
            )
            self.ledger.record_transaction(
                day=payment.date or record_date,
                txn_type=txn_type,
                amount=payment.amount,
                payment_type=payment.payment_type,
                account_ref=payment.account_ref,
                source=source,
                source_id=str(record_id),
                description=description,
                before_balance=before,
                after_balance=after,
                change_amount=after - before,
            )

    def _record_refunds(
        self,
        record_id: int,
        day: date,
        moment: datetime,
        payments: Sequence[PaymentLine],
        audits: Sequence[tuple[Decimal, Decimal]],
        txn_type: TransactionType,
        source: str,
        description: str,
    ) -> None:
        for payment, (before, after) in zip(payments, audits):
            self.ledger.record_transaction(
                day=day,
                txn_type=txn_type,
                amount=payment.amount,
                payment_type=payment.payment_type,
                account_ref=payment.account_ref,
                source=source,
                source_id=str(record_id),
                description=description,
                before_balance=before,
                after_balance=after,
                change_amount=after - before,
                created_at=moment,
            )

    def _processing_day(self, moment: Optional[datetime]) -> tuple[datetime, date]:
        """Timestamp of a cancellation and the local day it falls on."""
        moment = moment or datetime.now(timezone.utc)
        return moment, local_date(moment, self.settings.tzinfo)

    # Sales
    def record_sale(
        self,
        day: date,
        total: Decimal,
        payments: Sequence[PaymentLine] = (),
        reference: Optional[str] = None,
    ) -> Sale:
        """Record a completed sale and its initial payments.

        Args:
            day: Sale date
            total: Sale total
            payments: Payment lines; a line without a date is paid on the sale date
            reference: Optional invoice reference

        Returns:
            The stored Sale with its payment lines

        Raises:
            ValidationError: If the total or a payment is invalid
        """
        day = ensure_date(day)
        total = quantize(Decimal(total))
        if total <= 0:
            raise ValidationError("Sale total must be positive")
        payments = _validate_payments(payments, total, "sale total")

        with self._serialized(p.date or day for p in payments):
            audits = self._audit_balances([(p.date or day, p.account, p.amount) for p in payments])
            sale_id = self.db.create_sale(reference, day, total)
            self._record_payments(
                RecordKind.SALE,
                sale_id,
                day,
                payments,
                audits,
                TransactionType.INCOME,
                TransactionSource.SALE,
                f"Sale {reference or sale_id}",
            )
        logger.info("Recorded sale %s on %s: total %s, %d payment(s)", sale_id, day, total, len(payments))
        return self.db.get_sale(sale_id)

    def add_sale_payment(self, sale_id: int, payment: PaymentLine) -> Sale:
        """Record a later payment against an existing sale.

        Args:
            sale_id: Sale ID
            payment: Payment line; without a date it is paid today

        Returns:
            The updated Sale

        Raises:
            NotFoundError: If the sale does not exist
            ValidationError: If the sale is cancelled or the payment exceeds
                the outstanding amount
        """
        payment = self._dated(payment)
        with self._serialized([payment.date]):
            sale = self.db.get_sale(sale_id)
            if sale is None:
                raise NotFoundError(record_not_found("sale", sale_id))
            if sale.status == RecordStatus.CANCELLED:
                raise ValidationError(f"Cannot add a payment to cancelled sale {sale_id}")
            (payment,) = _validate_payments([payment], sale.outstanding, "outstanding amount")
            audits = self._audit_balances([(payment.date, payment.account, payment.amount)])
            self._record_payments(
                RecordKind.SALE,
                sale.id,
                sale.date,
                [payment],
                audits,
                TransactionType.INCOME,
                TransactionSource.SALE_PAYMENT,
                f"Payment for sale {sale.reference or sale.id}",
            )
        logger.info("Recorded payment of %s for sale %s on %s", payment.amount, sale.id, payment.date)
        return self.db.get_sale(sale.id)

    def cancel_sale(self, sale_id: int, cancelled_at: Optional[datetime] = None) -> Sale:
        """Cancel a sale and give back every payment received for it.

        Each payment line gets a ``sale_refund`` expense on the day of the
        cancellation. The sale's own ledger entries stay where they are.

        Args:
            sale_id: Sale ID
            cancelled_at: When the cancellation happens, defaults to now

        Raises:
            NotFoundError: If the sale does not exist
            ConflictError: If the sale is already cancelled
            InsufficientBalanceError: If an account cannot pay the refund back
        """
        moment, day = self._processing_day(cancelled_at)
        with self._serialized([day]):
            sale = self.db.get_sale(sale_id)
            if sale is None:
                raise NotFoundError(record_not_found("sale", sale_id))
            if sale.status == RecordStatus.CANCELLED:
                raise ConflictError(f"Sale {sale_id} is already cancelled")
            audits = self._audit_balances([(day, p.account, -p.amount) for p in sale.payments])
            self.db.cancel_sale(sale.id, day)
            self._record_refunds(
                sale.id,
                day,
                moment,
                sale.payments,
                audits,
                TransactionType.EXPENSE,
                TransactionSource.SALE_REFUND,
                f"Refund for cancelled sale {sale.reference or sale.id}",
            )
        logger.info("Cancelled sale %s on %s, refunded %s", sale.id, day, sale.paid)
        return self.db.get_sale(sale.id)

    # Purchases
    def record_purchase(
        self,
        day: date,
        total: Decimal,
        payments: Sequence[PaymentLine] = (),
        reference: Optional[str] = None,
    ) -> Purchase:
        """Record a completed purchase and its initial payments.

        Raises:
            ValidationError: If the total or a payment is invalid
            InsufficientBalanceError: If a payment exceeds its account's balance;
                nothing is written
        """
        day = ensure_date(day)
        total = quantize(Decimal(total))
        if total <= 0:
            raise ValidationError("Purchase total must be positive")
        payments = _validate_payments(payments, total, "purchase total")

        with self._serialized(p.date or day for p in payments):
            audits = self._audit_balances([(p.date or day, p.account, -p.amount) for p in payments])
            purchase_id = self.db.create_purchase(reference, day, total)
            self._record_payments(
                RecordKind.PURCHASE,
                purchase_id,
                day,
                payments,
                audits,
                TransactionType.EXPENSE,
                TransactionSource.PURCHASE,
                f"Purchase {reference or purchase_id}",
            )
        logger.info(
            "Recorded purchase %s on %s: total %s, %d payment(s)", purchase_id, day, total, len(payments)
        )
        return self.db.get_purchase(purchase_id)

    def add_purchase_payment(self, purchase_id: int, payment: PaymentLine) -> Purchase:
        """Record a later payment against an existing purchase.

        Raises:
            NotFoundError: If the purchase does not exist
            ValidationError: If the purchase is cancelled or the payment
                exceeds the outstanding amount
            InsufficientBalanceError: If the payment exceeds its account's balance
        """
        payment = self._dated(payment)
        with self._serialized([payment.date]):
            purchase = self.db.get_purchase(purchase_id)
            if purchase is None:
                raise NotFoundError(record_not_found("purchase", purchase_id))
            if purchase.status == RecordStatus.CANCELLED:
                raise ValidationError(f"Cannot add a payment to cancelled purchase {purchase_id}")
            (payment,) = _validate_payments([payment], purchase.outstanding, "outstanding amount")
            audits = self._audit_balances([(payment.date, payment.account, -payment.amount)])
            self._record_payments(
                RecordKind.PURCHASE,
                purchase.id,
                purchase.date,
                [payment],
                audits,
                TransactionType.EXPENSE,
                TransactionSource.PURCHASE_PAYMENT,
                f"Payment for purchase {purchase.reference or purchase.id}",
            )
        logger.info("Recorded payment of %s for purchase %s on %s", payment.amount, purchase.id, payment.date)
        return self.db.get_purchase(purchase.id)

    def cancel_purchase(self, purchase_id: int, cancelled_at: Optional[datetime] = None) -> Purchase:
        """Cancel a purchase; every payment made comes back as a ``purchase_refund``.

        Raises:
            NotFoundError: If the purchase does not exist
            ConflictError: If the purchase is already cancelled
        """
        moment, day = self._processing_day(cancelled_at)
        with self._serialized([day]):
            purchase = self.db.get_purchase(purchase_id)
            if purchase is None:
                raise NotFoundError(record_not_found("purchase", purchase_id))
            if purchase.status == RecordStatus.CANCELLED:
                raise ConflictError(f"Purchase {purchase_id} is already cancelled")
            audits = self._audit_balances([(day, p.account, p.amount) for p in purchase.payments])
            self.db.cancel_purchase(purchase.id, day)
            self._record_refunds(
                purchase.id,
                day,
                moment,
                purchase.payments,
                audits,
                TransactionType.INCOME,
                TransactionSource.PURCHASE_REFUND,
                f"Refund for cancelled purchase {purchase.reference or purchase.id}",
            )
        logger.info("Cancelled purchase %s on %s, refunded %s", purchase.id, day, purchase.paid)
        return self.db.get_purchase(purchase.id)

    # Expenses
    def record_expense(
        self,
        day: date,
        amount: Decimal,
        category: str,
        payment_type: PaymentType,
        account_ref: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Expense:
        """Record an expense paid in full.

        Raises:
            ValidationError: If the amount or category is invalid
            InsufficientBalanceError: If the amount exceeds the account's balance
        """
        day = ensure_date(day)
        if not category or not category.strip():
            raise ValidationError("Expense category is required")
        (payment,) = _validate_payments(
            [PaymentLine(payment_type=payment_type, amount=amount, account_ref=account_ref)],
            quantize(Decimal(amount)),
            "expense amount",
        )

        with self._serialized([day]):
            ((before, after),) = self._audit_balances([(day, payment.account, -payment.amount)])
            expense_id = self.db.create_expense(
                day,
                payment.amount,
                category.strip(),
                payment.payment_type,
                account_ref=payment.account_ref,
                description=description,
            )
            self.ledger.record_transaction(
                day=day,
                txn_type=TransactionType.EXPENSE,
                amount=payment.amount,
                payment_type=payment.payment_type,
                account_ref=payment.account_ref,
                source=TransactionSource.EXPENSE,
                source_id=str(expense_id),
                description=description or f"Expense: {category.strip()}",
                before_balance=before,
                after_balance=after,
                change_amount=after - before,
            )
        logger.info("Recorded expense %s on %s: %s from %s", expense_id, day, payment.amount, payment.account)
        return self.db.get_expense(expense_id)

    def delete_expense(self, expense_id: int, deleted_at: Optional[datetime] = None) -> Expense:
        """Delete an expense of the current day and refund its amount.

        The refund is an ``expense_refund`` income on the same day, so the
        day's balances end up as if the expense never happened.

        Args:
            expense_id: Expense ID
            deleted_at: When the deletion happens, defaults to now

        Returns:
            The deleted Expense

        Raises:
            NotFoundError: If the expense does not exist
            ValidationError: If the expense is dated on another day
        """
        moment, day = self._processing_day(deleted_at)
        with self._serialized([day]):
            expense = self.db.get_expense(expense_id)
            if expense is None:
                raise NotFoundError(record_not_found("expense", expense_id))
            if expense.date != day:
                raise ValidationError(
                    f"Only expenses dated {day.isoformat()} can be deleted; "
                    f"expense {expense_id} is dated {expense.date.isoformat()}"
                )
            ((before, after),) = self._audit_balances([(day, expense.account, expense.amount)])
            self.ledger.record_transaction(
                day=day,
                txn_type=TransactionType.INCOME,
                amount=expense.amount,
                payment_type=expense.payment_type,
                account_ref=expense.account_ref,
                source=TransactionSource.EXPENSE_REFUND,
                source_id=str(expense.id),
                description=f"Refund for deleted expense: {expense.category}",
                before_balance=before,
                after_balance=after,
                change_amount=after - before,
                created_at=moment,
            )
            self.db.delete_expense(expense.id)
        logger.info("Deleted expense %s on %s, refunded %s to %s", expense.id, day, expense.amount, expense.account)
        return expense

    def _dated(self, payment: PaymentLine) -> PaymentLine:
        return PaymentLine(
            payment_type=payment.payment_type,
            amount=payment.amount,
            date=ensure_date(payment.date) if payment.date is not None else self.settings.today(),
            account_ref=payment.account_ref,
        )
