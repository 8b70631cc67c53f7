"""Tests for ledger versus payment-line reconciliation."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from shopledger.domain.entities import Account, PaymentLine, PaymentType, TransactionSource
from shopledger.domain.errors import BalanceInconsistencyError

from conftest import DAY1, DAY2, DAY4


class TestReconcile:
    """Tests for BalanceEngine.reconcile."""

    def test_consistent_day(self, engine, commerce_service, store_service):
        """Test that commerce writes reconcile per account."""
        store_service.set_opening(DAY1, Decimal("1000"), bank_balances={"A": Decimal("500")})
        commerce_service.record_sale(
            DAY1,
            Decimal("1000"),
            payments=[
                PaymentLine(PaymentType.CASH, Decimal("400")),
                PaymentLine(PaymentType.BANK_TRANSFER, Decimal("600"), account_ref="A"),
            ],
        )
        commerce_service.record_purchase(
            DAY1, Decimal("300"), payments=[PaymentLine(PaymentType.CASH, Decimal("300"))]
        )
        commerce_service.record_expense(DAY1, Decimal("50"), "Rent", PaymentType.BANK_TRANSFER, account_ref="A")

        result = engine.reconcile(DAY1)

        assert result.is_consistent
        flows = {f.account: f for f in result.flows}
        assert flows[Account.cash()].ledger_flow == Decimal("100.00")
        assert flows[Account.bank("A")].record_flow == Decimal("550.00")

    def test_later_payment_reconciles_on_its_day(self, engine, commerce_service):
        """Test that a backdated payment is compared on the day it is dated."""
        sale = commerce_service.record_sale(
            DAY1, Decimal("900"), payments=[PaymentLine(PaymentType.CASH, Decimal("500"))]
        )
        commerce_service.add_sale_payment(sale.id, PaymentLine(PaymentType.CARD, Decimal("400"), date=DAY4, account_ref="V"))

        assert engine.reconcile(DAY1).is_consistent
        day4 = engine.reconcile(DAY4)
        assert day4.is_consistent
        assert [f.account for f in day4.flows] == [Account.card("V")]

    def test_cancellation_reconciles(self, engine, commerce_service, store_service):
        """Test that refunds balance against the payments of cancelled and deleted records."""
        store_service.set_opening(DAY1, Decimal("100"))
        sale = commerce_service.record_sale(
            DAY1, Decimal("250"), payments=[PaymentLine(PaymentType.CASH, Decimal("250"))]
        )
        expense = commerce_service.record_expense(DAY1, Decimal("30"), "Tea", PaymentType.CASH)
        commerce_service.delete_expense(expense.id, deleted_at=datetime(2024, 3, 1, 20, 0, tzinfo=timezone.utc))
        commerce_service.cancel_sale(sale.id, cancelled_at=datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc))

        day1 = engine.reconcile(DAY1)
        day2 = engine.reconcile(DAY2)

        assert day1.is_consistent
        assert {f.account: f.ledger_flow for f in day1.flows} == {Account.cash(): Decimal("250.00")}
        assert day2.is_consistent
        assert {f.account: f.record_flow for f in day2.flows} == {Account.cash(): Decimal("-250.00")}

    def test_manual_adjustments_are_ignored(self, engine, ledger_service):
        """Test that top-ups without business records do not count as mismatches."""
        ledger_service.add_to_opening_or_closing_balance(DAY2, Decimal("100"), Account.cash())

        result = engine.reconcile(DAY2)

        assert result.is_consistent
        assert result.flows == ()

    def test_mismatch_raises(self, engine, commerce_service, record):
        """Test that a ledger entry without a payment line is surfaced."""
        commerce_service.record_sale(DAY1, Decimal("100"), payments=[PaymentLine(PaymentType.CASH, Decimal("100"))])
        record(DAY1, "25", payment_type=PaymentType.CARD, account_ref="V", source=TransactionSource.SALE)

        with pytest.raises(BalanceInconsistencyError) as exc_info:
            engine.reconcile(DAY1)

        (discrepancy,) = exc_info.value.discrepancies
        assert discrepancy.account == Account.card("V")
        assert discrepancy.difference == Decimal("25.00")
        assert "card:V" in str(exc_info.value)

    def test_mismatch_without_raising(self, engine, record):
        """Test returning discrepancies instead of raising."""
        record(DAY1, "10", source=TransactionSource.EXPENSE)

        result = engine.reconcile(DAY1, raise_on_mismatch=False)

        assert not result.is_consistent
        assert result.discrepancies[0].account == Account.cash()

    def test_tolerance(self, engine, commerce_service, record):
        """Test that differences within the tolerance are accepted."""
        commerce_service.record_sale(DAY1, Decimal("100"), payments=[PaymentLine(PaymentType.CASH, Decimal("100"))])
        record(DAY1, "0.01", source=TransactionSource.SALE)

        assert engine.reconcile(DAY1).is_consistent
