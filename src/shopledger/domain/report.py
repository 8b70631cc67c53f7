"""Daily and range report domain service."""

import logging
from datetime import date
from typing import Optional

from shopledger.config import LedgerSettings
from shopledger.database.base import Database
from shopledger.domain.attribution import attribute_payments
from shopledger.domain.engine import BalanceEngine
from shopledger.domain.entities import (
    AttributedPayment,
    CategoryTotals,
    DailyReport,
    DayFailure,
    RangeReport,
    RecordKind,
    RecordStatus,
    ReportCategory,
    ReportTotals,
    TimelineEntry,
    TransactionType,
)
from shopledger.domain.errors import DomainError, OperationCancelledError
from shopledger.utils.cancellation import CancelToken
from shopledger.utils.date_parser import ensure_date, ensure_range, iter_days

logger = logging.getLogger(__name__)


def summarize_timeline(timeline: tuple[TimelineEntry, ...]) -> ReportTotals:
    """Sum a day's movements per report category, split by instrument."""
    by_category = {category: CategoryTotals(category) for category in ReportCategory}
    for entry in timeline:
        txn = entry.transaction
        current = by_category[entry.category]
        if txn.type == TransactionType.INCOME:
            income, expense = current.income.add(txn.payment_type, txn.amount), current.expense
        else:
            income, expense = current.income, current.expense.add(txn.payment_type, txn.amount)
        by_category[entry.category] = CategoryTotals(
            category=entry.category, income=income, expense=expense, count=current.count + 1
        )
    return ReportTotals(tuple(by_category[category] for category in ReportCategory))


class ReportService:
    """Service for building daily and range balance reports."""

    def __init__(
        self,
        db: Database,
        settings: Optional[LedgerSettings] = None,
        engine: Optional[BalanceEngine] = None,
    ):
        """Initialize report service.

        Args:
            db: Database instance
            settings: Ledger settings, defaults to LedgerSettings()
            engine: Balance engine, created from db and settings if omitted
        """
        self.db = db
        self.settings = settings or LedgerSettings()
        self.engine = engine or BalanceEngine(db, self.settings)

    def _payments_on(self, day: date) -> tuple[AttributedPayment, ...]:
        """Payment lines of completed sales and purchases that fall on ``day``."""
        payments = []
        for kind, records in (
            (RecordKind.SALE, self.db.list_sales_for_payment_date(day)),
            (RecordKind.PURCHASE, self.db.list_purchases_for_payment_date(day)),
        ):
            for record in records:
                if record.status != RecordStatus.COMPLETED:
                    continue
                payments.extend(
                    p
                    for p in attribute_payments(kind, record.id, record.date, record.payments)
                    if p.date == day
                )
        return tuple(payments)

    def build_daily_report(self, day: date) -> DailyReport:
        """Build the balance report of one day.

        Args:
            day: Calendar day

        Returns:
            DailyReport with opening, timeline, totals, closing and records

        Raises:
            InvalidDateError: If day is not a calendar date
            StorageUnavailableError: If the day cannot be read or computed
        """
        day = ensure_date(day)
        computation = self.engine.fold_day(day)
        closing = self.engine.get_closing_balance(day)
        is_stale = not closing.same_balances(computation.closing_snapshot())
        if is_stale:
            logger.warning("Stored closing balance of %s no longer matches its transactions", day)

        sales = tuple(s for s in self.db.list_sales(day, day) if s.status == RecordStatus.COMPLETED)
        purchases = tuple(p for p in self.db.list_purchases(day, day) if p.status == RecordStatus.COMPLETED)
        expenses = tuple(self.db.list_expenses(day, day))

        deferred = []
        for kind, records in ((RecordKind.SALE, sales), (RecordKind.PURCHASE, purchases)):
            for record in records:
                deferred.extend(
                    p
                    for p in attribute_payments(kind, record.id, record.date, record.payments)
                    if p.date != day
                )

        return DailyReport(
            date=day,
            opening=computation.baseline,
            opening_source=computation.baseline_source,
            timeline=computation.timeline,
            totals=summarize_timeline(computation.timeline),
            closing=closing,
            sales=sales,
            purchases=purchases,
            expenses=expenses,
            payments=self._payments_on(day),
            deferred_payments=tuple(deferred),
            is_stale=is_stale,
        )

    def build_range_report(
        self, start_date: date, end_date: date, cancel: Optional[CancelToken] = None
    ) -> RangeReport:
        """Build a day-by-day report over an inclusive range.

        A day that fails is recorded as a DayFailure and the range goes on.

        Args:
            start_date: First day
            end_date: Last day
            cancel: Optional cancellation token checked between days

        Returns:
            RangeReport whose totals are the sum of the daily totals

        Raises:
            InvalidDateError: If the range is invalid
            OperationCancelledError: If cancelled; carries the finished days
        """
        start_date, end_date = ensure_range(start_date, end_date)
        days: list[DailyReport] = []
        failures: list[DayFailure] = []
        totals = ReportTotals()
        for day in iter_days(start_date, end_date):
            if cancel is not None:
                cancel.check(days)
            try:
                report = self.build_daily_report(day)
            except OperationCancelledError:
                raise
            except DomainError as e:
                logger.error("Failed to build report for %s: %s", day, e)
                failures.append(DayFailure(date=day, error=str(e)))
                continue
            days.append(report)
            totals = totals + report.totals

        return RangeReport(
            start_date=start_date,
            end_date=end_date,
            days=tuple(days),
            failures=tuple(failures),
            totals=totals,
        )
