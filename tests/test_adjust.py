"""Tests for incremental closing balance adjustments."""

import threading
from decimal import Decimal

import pytest

from shopledger.domain.entities import Account
from shopledger.domain.errors import ValidationError

from conftest import DAY1, DAY2, DAY3, DAY4, DAY5


class TestAdjustClosingBalance:
    """Tests for BalanceEngine.adjust_closing_balance."""

    def test_adjusts_one_account(self, engine, store_service, record):
        """Test that only the named account of a stored closing changes."""
        store_service.set_opening(DAY1, Decimal("100"), bank_balances={"A": Decimal("40")})
        engine.compute_closing_balance(DAY1)

        adjusted = engine.adjust_closing_balance(DAY1, Decimal("25"), Account.bank("A"), is_expense=True)

        assert adjusted.balance_of(Account.bank("A")) == Decimal("15.00")
        assert adjusted.cash_balance == Decimal("100.00")
        assert store_service.get_closing(DAY1) == adjusted

    def test_new_account_starts_at_zero(self, engine, record):
        """Test adjusting an account the closing did not hold yet."""
        record(DAY1, "10")
        engine.compute_closing_balance(DAY1)

        adjusted = engine.adjust_closing_balance(DAY1, Decimal("5"), Account.card("V"))

        assert adjusted.balance_of(Account.card("V")) == Decimal("5.00")
        assert adjusted.cash_balance == Decimal("10.00")

    def test_carries_forward_until_next_opening(self, engine, store_service, record):
        """Test that later stored closings move too, up to the next opening."""
        record(DAY1, "100")
        engine.compute_range(DAY1, DAY2)
        store_service.set_opening(DAY3, Decimal("500"))
        engine.compute_range(DAY3, DAY4)

        engine.adjust_closing_balance(DAY1, Decimal("50"), Account.cash())

        assert store_service.get_closing(DAY1).cash_balance == Decimal("150.00")
        assert store_service.get_closing(DAY2).cash_balance == Decimal("150.00")
        assert store_service.get_closing(DAY3).cash_balance == Decimal("500.00")
        assert store_service.get_closing(DAY4).cash_balance == Decimal("500.00")

    def test_missing_row_is_computed(self, engine, ledger_service, store_service):
        """Test that a day without a stored closing is computed in full."""
        closing = ledger_service.add_to_opening_or_closing_balance(DAY2, Decimal("80"), Account.cash())

        assert closing.cash_balance == Decimal("80.00")
        assert store_service.get_closing(DAY2) == closing

    def test_missing_row_carries_into_later_closings(self, engine, ledger_service, store_service, record):
        """Test that computing a missing day still moves later stored closings."""
        record(DAY3, "100")
        engine.compute_range(DAY3, DAY5)

        ledger_service.add_to_opening_or_closing_balance(DAY1, Decimal("50"), Account.cash())

        assert store_service.get_closing(DAY1).cash_balance == Decimal("50.00")
        assert store_service.get_closing(DAY5).cash_balance == Decimal("150.00")
        recomputed = engine.recompute_range(DAY1, DAY5)
        assert [c.cash_balance for c in recomputed] == [Decimal("50.00")] * 2 + [Decimal("150.00")] * 3
        assert store_service.get_closing(DAY5).cash_balance == Decimal("150.00")

    def test_concurrent_compute_does_not_double_count(self, engine, ledger_service, store_service, record, monkeypatch):
        """Test that a compute of the day racing a manual addition waits for it."""
        record(DAY1, "100")
        engine.compute_closing_balance(DAY1)
        original = ledger_service.record_transaction
        workers = []

        def record_then_compute(*args, **kwargs):
            txn = original(*args, **kwargs)
            worker = threading.Thread(target=engine.compute_closing_balance, args=(DAY1,))
            worker.start()
            worker.join(timeout=0.5)
            workers.append(worker)
            return txn

        monkeypatch.setattr(ledger_service, "record_transaction", record_then_compute)

        adjusted = ledger_service.add_to_opening_or_closing_balance(DAY1, Decimal("30"), Account.cash())
        for worker in workers:
            worker.join(timeout=10)

        assert adjusted.cash_balance == Decimal("130.00")
        assert store_service.get_closing(DAY1).cash_balance == Decimal("130.00")
        assert engine.compute_closing_balance(DAY1).cash_balance == Decimal("130.00")

    def test_matches_full_recompute(self, engine, ledger_service, record):
        """Test that an adjusted closing equals a full recompute of the day."""
        record(DAY1, "100")
        engine.compute_closing_balance(DAY1)

        adjusted = ledger_service.add_to_opening_or_closing_balance(DAY1, Decimal("30"), Account.bank("B"))

        assert engine.compute_closing_balance(DAY1).same_balances(adjusted)

    def test_negative_amount_rejected(self, engine):
        """Test that adjustments carry their direction in is_expense."""
        with pytest.raises(ValidationError):
            engine.adjust_closing_balance(DAY1, Decimal("-1"), Account.cash())
