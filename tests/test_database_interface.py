"""Tests for Database interface returning domain models."""

from datetime import date, datetime, timezone
from decimal import Decimal

from shopledger.domain import entities
from shopledger.domain.entities import PaymentType, RecordKind, TransactionType

DAY = date(2024, 3, 1)


class TestDatabaseInterface:
    """Tests to verify Database interface returns domain models."""

    def test_balance_transaction_round_trip(self, temp_db):
        """Test that created transactions come back as domain entities."""
        txn = temp_db.create_balance_transaction(
            day=DAY,
            txn_type=TransactionType.INCOME,
            amount=Decimal("10.00"),
            payment_type=PaymentType.CASH,
            account_ref=None,
            source="sale",
            source_id="1",
        )

        fetched = temp_db.get_balance_transaction(txn.id)

        assert isinstance(fetched, entities.BalanceTransaction)
        assert fetched.id == txn.id
        assert isinstance(fetched.created_at, datetime)
        assert temp_db.get_balance_transaction(999) is None

    def test_transaction_candidates(self, temp_db):
        """Test selecting by business date or by recording window."""
        dated = temp_db.create_balance_transaction(
            DAY, TransactionType.INCOME, Decimal("1"), PaymentType.CASH, None, "sale"
        )
        undated = temp_db.create_balance_transaction(
            None,
            TransactionType.INCOME,
            Decimal("1"),
            PaymentType.CASH,
            None,
            "sale",
            created_at=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
        )
        temp_db.create_balance_transaction(
            None,
            TransactionType.INCOME,
            Decimal("1"),
            PaymentType.CASH,
            None,
            "sale",
            created_at=datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc),
        )

        candidates = temp_db.list_transaction_candidates(
            DAY, DAY, datetime(2024, 3, 1, 0, 0), datetime(2024, 3, 2, 0, 0)
        )

        assert {t.id for t in candidates} == {dated.id, undated.id}

    def test_earliest_activity(self, temp_db):
        """Test the earliest business date and recording time."""
        assert temp_db.get_earliest_activity() == (None, None)

        temp_db.create_balance_transaction(
            date(2024, 3, 4), TransactionType.INCOME, Decimal("1"), PaymentType.CASH, None, "sale"
        )
        temp_db.save_opening_balance(DAY, Decimal("5"), (), ())

        earliest_date, earliest_created = temp_db.get_earliest_activity()
        assert earliest_date == DAY
        assert earliest_created.tzinfo is not None

    def test_delete_balance_transactions(self, temp_db):
        """Test deleting by source and source id."""
        for source_id in ("1", "1", "2"):
            temp_db.create_balance_transaction(
                DAY, TransactionType.INCOME, Decimal("1"), PaymentType.CASH, None, "sale", source_id=source_id
            )

        assert temp_db.delete_balance_transactions("sale", "1") == 2
        assert len(temp_db.list_balance_transactions()) == 1

    def test_unit_of_work_rolls_back(self, temp_db):
        """Test that an error inside a unit of work discards every write."""
        try:
            with temp_db.unit_of_work():
                temp_db.create_sale("INV-1", DAY, Decimal("10"))
                with temp_db.unit_of_work():
                    temp_db.create_expense(DAY, Decimal("1"), "Rent", PaymentType.CASH)
                raise RuntimeError("abort")
        except RuntimeError:
            pass

        assert temp_db.list_sales(DAY, DAY) == []
        assert temp_db.list_expenses(DAY, DAY) == []

    def test_unit_of_work_commits(self, temp_db):
        """Test that a finished unit of work commits once."""
        with temp_db.unit_of_work():
            sale_id = temp_db.create_sale("INV-1", DAY, Decimal("10"))
            temp_db.add_payment_line(RecordKind.SALE, sale_id, PaymentType.CASH, Decimal("4"))

        sale = temp_db.get_sale(sale_id)
        assert isinstance(sale, entities.Sale)
        assert sale.payments[0].amount == Decimal("4.00")

    def test_payment_date_lookup(self, temp_db):
        """Test finding records by the day their payment lines fall on."""
        early = temp_db.create_sale(None, DAY, Decimal("10"))
        temp_db.add_payment_line(RecordKind.SALE, early, PaymentType.CASH, Decimal("5"))
        temp_db.add_payment_line(RecordKind.SALE, early, PaymentType.CASH, Decimal("5"), day=date(2024, 3, 3))
        purchase = temp_db.create_purchase(None, date(2024, 3, 2), Decimal("10"))
        temp_db.add_payment_line(RecordKind.PURCHASE, purchase, PaymentType.CASH, Decimal("10"))

        assert [s.id for s in temp_db.list_sales_for_payment_date(DAY)] == [early]
        assert [s.id for s in temp_db.list_sales_for_payment_date(date(2024, 3, 3))] == [early]
        assert temp_db.list_sales_for_payment_date(date(2024, 3, 2)) == []
        assert [p.id for p in temp_db.list_purchases_for_payment_date(date(2024, 3, 2))] == [purchase]

    def test_opening_and_closing_lists(self, temp_db):
        """Test that balance rows list as domain entities ordered by date."""
        temp_db.save_opening_balance(date(2024, 3, 2), Decimal("1"), (), ())
        temp_db.save_opening_balance(DAY, Decimal("1"), (), ())
        temp_db.upsert_closing_balance(entities.BalanceSnapshot(date=DAY, cash_balance=Decimal("1")))

        openings = temp_db.list_opening_balances()
        assert [o.date for o in openings] == [DAY, date(2024, 3, 2)]
        assert all(isinstance(o, entities.OpeningBalance) for o in openings)
        assert isinstance(temp_db.list_closing_balances()[0], entities.ClosingBalance)
        assert temp_db.delete_opening_balance(DAY) is True
        assert temp_db.delete_opening_balance(DAY) is False

    def test_cancel_and_delete_records(self, temp_db):
        """Test marking records cancelled and deleting expenses."""
        sale_id = temp_db.create_sale(None, DAY, Decimal("10"))
        purchase_id = temp_db.create_purchase(None, DAY, Decimal("10"))
        expense_id = temp_db.create_expense(DAY, Decimal("3"), "Tea", PaymentType.CASH)

        temp_db.cancel_sale(sale_id, date(2024, 3, 2))
        temp_db.cancel_purchase(purchase_id, date(2024, 3, 2))

        sale = temp_db.get_sale(sale_id)
        assert (sale.status, sale.cancelled_on) == (entities.RecordStatus.CANCELLED, date(2024, 3, 2))
        assert [s.id for s in temp_db.list_sales_cancelled_on(date(2024, 3, 2))] == [sale_id]
        assert [p.id for p in temp_db.list_purchases_cancelled_on(date(2024, 3, 2))] == [purchase_id]
        assert temp_db.list_sales_cancelled_on(DAY) == []
        assert temp_db.delete_expense(expense_id) is True
        assert temp_db.delete_expense(expense_id) is False
        assert temp_db.get_expense(expense_id) is None
