"""Tests for database mappers."""

from datetime import datetime, date, timezone, UTC
from decimal import Decimal

from shopledger.database.models import (
    BalanceTransaction as ORMBalanceTransaction,
    DailyClosingBalance as ORMClosingBalance,
    DailyOpeningBalance as ORMOpeningBalance,
    PaymentLine as ORMPaymentLine,
    Sale as ORMSale,
)
from shopledger.database.mappers import (
    balance_transaction_to_domain,
    balances_from_json,
    balances_to_json,
    closing_balance_to_domain,
    opening_balance_to_domain,
    sale_to_domain,
)
from shopledger.domain.entities import (
    AccountBalance,
    BalanceTransaction,
    ClosingBalance,
    OpeningBalance,
    PaymentType,
    Sale,
    TransactionType,
)


class TestBalanceJson:
    """Tests for the per-account balance list encoding."""

    def test_to_json_uses_strings(self):
        """Test that amounts are stored as exact strings."""
        encoded = balances_to_json((AccountBalance("HBL", Decimal("10.5")),))
        assert encoded == [{"account_ref": "HBL", "balance": "10.50"}]

    def test_from_json(self):
        """Test decoding, including legacy float amounts and empty lists."""
        decoded = balances_from_json([{"account_ref": "V", "balance": 0.1}, {"account_ref": 7, "balance": "3"}])
        assert decoded == (AccountBalance("V", Decimal("0.10")), AccountBalance("7", Decimal("3.00")))
        assert balances_from_json(None) == ()


class TestBalanceTransactionMapper:
    """Tests for BalanceTransaction mapper."""

    def test_balance_transaction_to_domain(self):
        """Test converting an ORM transaction to a domain transaction."""
        orm_txn = ORMBalanceTransaction(
            id=3,
            date=date(2024, 3, 1),
            created_at=datetime(2024, 3, 1, 9, 30),
            type="expense",
            amount=Decimal("12.5"),
            payment_type="bank_transfer",
            account_ref="HBL",
            source="purchase",
            source_id="8",
            before_balance=Decimal("100"),
            after_balance=Decimal("87.5"),
            change_amount=Decimal("-12.5"),
        )

        txn = balance_transaction_to_domain(orm_txn)

        assert isinstance(txn, BalanceTransaction)
        assert txn.type == TransactionType.EXPENSE
        assert txn.payment_type == PaymentType.BANK_TRANSFER
        assert txn.amount == Decimal("12.50")
        # Stored timestamps are naive UTC
        assert txn.created_at == datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
        assert txn.change_amount == Decimal("-12.50")

    def test_optional_audit_fields(self):
        """Test that missing audit values stay None."""
        orm_txn = ORMBalanceTransaction(
            id=1,
            date=None,
            created_at=datetime.now(UTC),
            type="income",
            amount=Decimal("1"),
            payment_type="cash",
            source="sale",
        )

        txn = balance_transaction_to_domain(orm_txn)

        assert txn.date is None
        assert txn.before_balance is None
        assert txn.created_at.tzinfo is not None


class TestSnapshotMappers:
    """Tests for opening and closing balance mappers."""

    def test_opening_balance_to_domain(self):
        """Test converting an ORM opening balance."""
        orm_opening = ORMOpeningBalance(
            id=1,
            date=date(2024, 3, 1),
            cash_balance=Decimal("1000"),
            bank_balances=[{"account_ref": "HBL", "balance": "250.00"}],
            card_balances=[],
            notes="Start",
            created_at=datetime(2024, 3, 1, 8, 0),
        )

        opening = opening_balance_to_domain(orm_opening)

        assert isinstance(opening, OpeningBalance)
        assert opening.cash_balance == Decimal("1000.00")
        assert opening.bank_balances == (AccountBalance("HBL", Decimal("250.00")),)
        assert opening.notes == "Start"

    def test_closing_balance_to_domain(self):
        """Test converting an ORM closing balance."""
        orm_closing = ORMClosingBalance(
            id=2,
            date=date(2024, 3, 1),
            cash_balance=Decimal("5"),
            bank_balances=[],
            card_balances=[{"account_ref": "VISA", "balance": "0.00"}],
            computed_at=datetime(2024, 3, 2, 0, 0),
        )

        closing = closing_balance_to_domain(orm_closing)

        assert isinstance(closing, ClosingBalance)
        assert closing.card_balances == (AccountBalance("VISA", Decimal("0.00")),)
        assert closing.computed_at.tzinfo is not None


class TestSaleMapper:
    """Tests for Sale mapper."""

    def test_sale_to_domain(self):
        """Test converting a sale with its payment lines."""
        orm_sale = ORMSale(
            id=4,
            reference="INV-4",
            date=date(2024, 3, 1),
            total=Decimal("100"),
            status="completed",
            created_at=datetime(2024, 3, 1, 10, 0),
        )
        lines = [
            ORMPaymentLine(id=1, record_kind="sale", record_id=4, payment_type="cash", amount=Decimal("60")),
            ORMPaymentLine(
                id=2,
                record_kind="sale",
                record_id=4,
                payment_type="card",
                amount=Decimal("40"),
                date=date(2024, 3, 3),
                account_ref="VISA",
            ),
        ]

        sale = sale_to_domain(orm_sale, lines)

        assert isinstance(sale, Sale)
        assert len(sale.payments) == 2
        assert sale.payments[1].date == date(2024, 3, 3)
        assert sale.outstanding == Decimal("0.00")
