"""SQLAlchemy models for shopledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Numeric,
    JSON,
    Index,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()

MONEY = Numeric(14, 2)


def utcnow() -> datetime:
    """Current UTC time as stored (naive UTC)."""
    return datetime.now(UTC).replace(tzinfo=None)


class BalanceTransaction(Base):
    """Append-only ledger entry for one cash/bank/card movement."""

    __tablename__ = "balance_transactions"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    type = Column(String(16), nullable=False)
    amount = Column(MONEY, nullable=False)
    payment_type = Column(String(16), nullable=False)
    account_ref = Column(String, nullable=True)
    source = Column(String, nullable=False)
    source_id = Column(String, nullable=True)
    description = Column(String, nullable=True)
    before_balance = Column(MONEY, nullable=True)
    after_balance = Column(MONEY, nullable=True)
    change_amount = Column(MONEY, nullable=True)

    __table_args__ = (
        Index("ix_balance_transactions_date", "date"),
        Index("ix_balance_transactions_created_at", "created_at"),
        Index("ix_balance_transactions_source", "source", "source_id"),
    )


class DailyOpeningBalance(Base):
    """Explicit opening balance, at most one per date."""

    __tablename__ = "daily_opening_balances"

    id = Column(Integer, primary_key=True)
    date = Column(Date, unique=True, nullable=False)
    cash_balance = Column(MONEY, nullable=False)
    bank_balances = Column(JSON, nullable=False, default=list)
    card_balances = Column(JSON, nullable=False, default=list)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class DailyClosingBalance(Base):
    """Computed closing balance, at most one per date."""

    __tablename__ = "daily_closing_balances"

    id = Column(Integer, primary_key=True)
    date = Column(Date, unique=True, nullable=False)
    cash_balance = Column(MONEY, nullable=False)
    bank_balances = Column(JSON, nullable=False, default=list)
    card_balances = Column(JSON, nullable=False, default=list)
    computed_at = Column(DateTime, default=utcnow, nullable=False)


class Sale(Base):
    """Sale record."""

    __tablename__ = "sales"

    id = Column(Integer, primary_key=True)
    reference = Column(String, nullable=True)
    date = Column(Date, nullable=False, index=True)
    total = Column(MONEY, nullable=False)
    status = Column(String(16), nullable=False, default="completed")
    cancelled_on = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Purchase(Base):
    """Purchase record."""

    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True)
    reference = Column(String, nullable=True)
    date = Column(Date, nullable=False, index=True)
    total = Column(MONEY, nullable=False)
    status = Column(String(16), nullable=False, default="completed")
    cancelled_on = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Expense(Base):
    """Expense record."""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    category = Column(String, nullable=False)
    payment_type = Column(String(16), nullable=False)
    account_ref = Column(String, nullable=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PaymentLine(Base):
    """One payment of a sale or purchase."""

    __tablename__ = "payment_lines"

    id = Column(Integer, primary_key=True)
    record_kind = Column(String(16), nullable=False)
    record_id = Column(Integer, nullable=False)
    payment_type = Column(String(16), nullable=False)
    amount = Column(MONEY, nullable=False)
    date = Column(Date, nullable=True)
    account_ref = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_payment_lines_record", "record_kind", "record_id"),
        Index("ix_payment_lines_date", "date"),
    )


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions live one per thread; the pool hands connections across threads
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
