"""Tests for domain entities."""

import pytest
from datetime import datetime, date, UTC
from decimal import Decimal

from shopledger.domain.entities import (
    Account,
    AccountBalance,
    AccountKind,
    BalanceSnapshot,
    BalanceTransaction,
    CategoryTotals,
    InstrumentTotals,
    PaymentLine,
    PaymentType,
    ReportCategory,
    ReportTotals,
    Sale,
    TransactionType,
)
from shopledger.domain.errors import ValidationError


class TestAccount:
    """Tests for the tagged Account identifier."""

    def test_cash_has_no_reference(self):
        """Test that cash accounts reject a reference."""
        assert Account.cash().ref is None
        with pytest.raises(ValidationError):
            Account(AccountKind.CASH, "drawer")

    def test_bank_and_card_require_reference(self):
        """Test that bank and card accounts need a reference."""
        with pytest.raises(ValidationError):
            Account(AccountKind.BANK)
        with pytest.raises(ValidationError):
            Account.card("")

    def test_bank_and_card_with_same_ref_differ(self):
        """Test that a bank and a card sharing a ref are distinct accounts."""
        assert Account.bank("7") != Account.card("7")
        assert len({Account.bank("7"), Account.card("7"), Account.bank("7")}) == 2

    def test_for_payment(self):
        """Test building accounts from payment types."""
        assert Account.for_payment(PaymentType.CASH, None) == Account.cash()
        assert Account.for_payment(PaymentType.BANK_TRANSFER, "HBL") == Account.bank("HBL")
        assert Account.for_payment("card", "VISA") == Account.card("VISA")

    def test_payment_type_and_str(self):
        """Test payment type mapping and display."""
        assert Account.bank("HBL").payment_type == PaymentType.BANK_TRANSFER
        assert str(Account.cash()) == "cash"
        assert str(Account.card("VISA")) == "card:VISA"


class TestBalanceTransaction:
    """Tests for BalanceTransaction entity."""

    def _txn(self, txn_type, payment_type=PaymentType.CASH, account_ref=None):
        return BalanceTransaction(
            id=1,
            date=date(2024, 3, 1),
            created_at=datetime.now(UTC),
            type=txn_type,
            amount=Decimal("250.00"),
            payment_type=payment_type,
            account_ref=account_ref,
            source="sale",
        )

    def test_signed_amount(self):
        """Test that expenses are negative and income positive."""
        assert self._txn(TransactionType.INCOME).signed_amount == Decimal("250.00")
        assert self._txn(TransactionType.EXPENSE).signed_amount == Decimal("-250.00")

    def test_account(self):
        """Test the tagged account of a transaction."""
        txn = self._txn(TransactionType.INCOME, PaymentType.BANK_TRANSFER, "HBL")
        assert txn.account == Account.bank("HBL")

    def test_immutability(self):
        """Test that transactions are frozen."""
        txn = self._txn(TransactionType.INCOME)
        with pytest.raises(Exception):
            txn.amount = Decimal("1")


class TestBalanceSnapshot:
    """Tests for BalanceSnapshot entity."""

    def test_balance_of_and_total(self):
        """Test per-account lookup with zero default."""
        snapshot = BalanceSnapshot(
            date=date(2024, 3, 1),
            cash_balance=Decimal("100.00"),
            bank_balances=(AccountBalance("HBL", Decimal("50.00")),),
            card_balances=(AccountBalance("VISA", Decimal("25.00")),),
        )
        assert snapshot.balance_of(Account.cash()) == Decimal("100.00")
        assert snapshot.balance_of(Account.bank("HBL")) == Decimal("50.00")
        assert snapshot.balance_of(Account.bank("MCB")) == Decimal("0")
        assert snapshot.total == Decimal("175.00")
        assert snapshot.accounts == (Account.cash(), Account.bank("HBL"), Account.card("VISA"))


class TestRecords:
    """Tests for sale/purchase helpers."""

    def test_outstanding(self):
        """Test paid and outstanding amounts of a sale."""
        sale = Sale(
            id=1,
            reference=None,
            date=date(2024, 3, 1),
            total=Decimal("1000.00"),
            status="completed",
            created_at=datetime.now(UTC),
            payments=(
                PaymentLine(PaymentType.CASH, Decimal("400.00")),
                PaymentLine(PaymentType.CARD, Decimal("100.00"), account_ref="VISA"),
            ),
        )
        assert sale.paid == Decimal("500.00")
        assert sale.outstanding == Decimal("500.00")


class TestTotals:
    """Tests for report totals arithmetic."""

    def test_instrument_totals_add(self):
        """Test adding amounts per instrument."""
        totals = InstrumentTotals().add(PaymentType.CASH, Decimal("10")).add(PaymentType.CARD, Decimal("5"))
        assert totals.cash == Decimal("10")
        assert totals.card == Decimal("5")
        assert totals.total == Decimal("15")

    def test_report_totals_sum(self):
        """Test that report totals add per category."""
        sales = CategoryTotals(
            ReportCategory.SALES, income=InstrumentTotals(cash=Decimal("100")), count=1
        )
        expenses = CategoryTotals(
            ReportCategory.EXPENSES, expense=InstrumentTotals(bank_transfer=Decimal("30")), count=1
        )
        first = ReportTotals((sales,))
        second = ReportTotals((sales, expenses))
        combined = first + second

        assert combined.for_category(ReportCategory.SALES).income.cash == Decimal("200")
        assert combined.for_category(ReportCategory.SALES).count == 2
        assert combined.for_category(ReportCategory.EXPENSES).expense.total == Decimal("30")
        assert combined.net == Decimal("170")
        assert len(combined.categories) == len(ReportCategory)
