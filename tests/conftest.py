"""Shared pytest fixtures for shopledger tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from shopledger.config import LedgerSettings
from shopledger.database.factories import create_sqlite_database
from shopledger.domain.balances import BalanceStoreService
from shopledger.domain.commerce import CommerceService
from shopledger.domain.engine import BalanceEngine
from shopledger.domain.entities import PaymentType, TransactionSource, TransactionType
from shopledger.domain.ledger import LedgerService
from shopledger.domain.report import ReportService

DAY1 = date(2024, 3, 1)
DAY2 = date(2024, 3, 2)
DAY3 = date(2024, 3, 3)
DAY4 = date(2024, 3, 4)
DAY5 = date(2024, 3, 5)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def settings():
    """Settings pinned to UTC so calendar days do not depend on the host."""
    return LedgerSettings(timezone="UTC")


@pytest.fixture
def ledger_service(temp_db, settings):
    """Create a LedgerService with a temporary database."""
    return LedgerService(temp_db, settings)


@pytest.fixture
def engine(temp_db, settings, ledger_service):
    """Create a BalanceEngine sharing the ledger service."""
    engine = BalanceEngine(temp_db, settings, ledger=ledger_service)
    ledger_service._engine = engine
    return engine


@pytest.fixture
def store_service(temp_db):
    """Create a BalanceStoreService with a temporary database."""
    return BalanceStoreService(temp_db)


@pytest.fixture
def report_service(temp_db, settings, engine):
    """Create a ReportService with a temporary database."""
    return ReportService(temp_db, settings, engine=engine)


@pytest.fixture
def commerce_service(temp_db, settings, ledger_service):
    """Create a CommerceService with a temporary database."""
    return CommerceService(temp_db, settings, ledger=ledger_service)


@pytest.fixture
def record(ledger_service):
    """Shortcut for appending a ledger transaction."""

    def _record(day, amount, txn_type=TransactionType.INCOME, payment_type=PaymentType.CASH,
                source=TransactionSource.SALE, account_ref=None, **kwargs):
        return ledger_service.record_transaction(
            day=day,
            txn_type=txn_type,
            amount=Decimal(str(amount)),
            payment_type=payment_type,
            source=source,
            account_ref=account_ref,
            **kwargs,
        )

    return _record


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
