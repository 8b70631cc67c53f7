"""Balance computation engine.

Computes a day's closing balance from its baseline (explicit opening
balance, else the previous day's closing, else zero) plus every ledger
transaction attributed to the day, and persists it keyed by date.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from shopledger.config import LedgerSettings
from shopledger.database.base import Database
from shopledger.domain.attribution import attribute_payments, category_for_source
from shopledger.domain.balance_map import BalanceMap, account_sort_key
from shopledger.domain.balances import BalanceStoreService
from shopledger.domain.entities import (
    ZERO,
    Account,
    AccountDiscrepancy,
    BalanceSnapshot,
    BalanceTransaction,
    BaselineSource,
    ClosingBalance,
    OpeningBalance,
    RecordKind,
    ReconciliationResult,
    TimelineEntry,
    TransactionSource,
    quantize,
)
from shopledger.domain.errors import BalanceInconsistencyError, ValidationError
from shopledger.domain.ledger import LedgerService
from shopledger.utils.cancellation import CancelToken
from shopledger.utils.date_parser import ensure_date, ensure_range, iter_days, local_date

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DayComputation:
    """Result of folding one day without persisting it."""

    date: date
    baseline: BalanceSnapshot
    baseline_source: BaselineSource
    timeline: tuple[TimelineEntry, ...]
    balances: BalanceMap

    @property
    def transactions(self) -> tuple[BalanceTransaction, ...]:
        return tuple(entry.transaction for entry in self.timeline)

    def closing_snapshot(self) -> BalanceSnapshot:
        return self.balances.to_snapshot(self.date)


def _as_baseline(day: date, snapshot: BalanceSnapshot) -> BalanceSnapshot:
    """Re-date a snapshot as the starting balances of ``day``."""
    return BalanceSnapshot(
        date=day,
        cash_balance=snapshot.cash_balance,
        bank_balances=snapshot.bank_balances,
        card_balances=snapshot.card_balances,
    )


class BalanceEngine:
    """Computes, persists and adjusts daily closing balances."""

    def __init__(
        self,
        db: Database,
        settings: Optional[LedgerSettings] = None,
        ledger: Optional[LedgerService] = None,
    ):
        """Initialize balance engine.

        Args:
            db: Database instance
            settings: Ledger settings, defaults to LedgerSettings()
            ledger: Ledger service used to read attributed transactions
        """
        self.db = db
        self.settings = settings or LedgerSettings()
        self.ledger = ledger or LedgerService(db, self.settings, engine=self)
        self.stores = BalanceStoreService(db)

    # Baseline resolution
    def resolve_baseline(self, day: date) -> tuple[BalanceSnapshot, BaselineSource]:
        """Starting balances of a day and where they came from.

        An explicit opening balance wins. Otherwise the previous day's
        closing balance is used, computing the missing chain of days first.
        With neither, every account starts at zero.
        """
        day = ensure_date(day)
        opening = self.db.get_opening_balance(day)
        if opening is not None:
            return opening, BaselineSource.OPENING_BALANCE
        previous = self.get_previous_closing(day)
        if previous is not None:
            return _as_baseline(day, previous), BaselineSource.PREVIOUS_CLOSING
        return BalanceSnapshot(date=day, cash_balance=ZERO), BaselineSource.ZERO

    def _stored_baseline(self, day: date, memo: dict[date, ClosingBalance]) -> tuple[BalanceSnapshot, BaselineSource]:
        """Baseline from stored rows only, used while walking a chain."""
        opening = self.db.get_opening_balance(day)
        if opening is not None:
            return opening, BaselineSource.OPENING_BALANCE
        previous = memo.get(day - ONE_DAY) or self.db.get_closing_balance(day - ONE_DAY)
        if previous is not None:
            return _as_baseline(day, previous), BaselineSource.PREVIOUS_CLOSING
        return BalanceSnapshot(date=day, cash_balance=ZERO), BaselineSource.ZERO

    def ledger_epoch(self) -> Optional[date]:
        """First day that can carry a balance.

        The configured epoch wins; otherwise the earliest business date or
        recording day found in the ledger and the balance stores. None
        means the ledger is empty.
        """
        if self.settings.epoch is not None:
            return self.settings.epoch
        earliest_date, earliest_created = self.db.get_earliest_activity()
        candidates = [d for d in (earliest_date,) if d is not None]
        if earliest_created is not None:
            candidates.append(local_date(earliest_created, self.settings.tzinfo))
        return min(candidates) if candidates else None

    def get_previous_closing(self, day: date) -> Optional[ClosingBalance]:
        """Closing balance of ``day - 1``, computing the chain on a miss.

        Returns:
            The previous day's ClosingBalance, or None when that day lies
            before the ledger epoch (its balances are all zero)
        """
        day = ensure_date(day)
        previous_day = day - ONE_DAY
        stored = self.db.get_closing_balance(previous_day)
        if stored is not None:
            return stored
        return self._compute_chain(previous_day)

    def prepare_baseline(self, day: date) -> None:
        """Persist the missing closing chain before ``day``.

        Called before taking the lock of ``day``: computing the chain locks
        earlier days, which must never wait while a later day is held.
        """
        day = ensure_date(day)
        if self.db.get_opening_balance(day) is None:
            self.get_previous_closing(day)

    def _compute_chain(self, target: date) -> Optional[ClosingBalance]:
        """Compute and persist every missing closing balance up to ``target``.

        Walks back iteratively until a day with an opening balance, a day
        whose previous closing is stored, the ledger epoch or the lookback
        limit, then computes the missing days oldest first.
        """
        epoch = self.ledger_epoch()
        memo: dict[date, ClosingBalance] = {}
        missing: list[date] = []
        current = target
        while True:
            if epoch is None or current < epoch:
                break
            if len(missing) >= self.settings.max_lookback_days:
                logger.warning(
                    "Closing balance chain for %s exceeds %d days, assuming zero balances before %s",
                    target,
                    self.settings.max_lookback_days,
                    current + ONE_DAY,
                )
                break
            missing.append(current)
            if self.db.get_opening_balance(current) is not None:
                break
            previous = self.db.get_closing_balance(current - ONE_DAY)
            if previous is not None:
                memo[current - ONE_DAY] = previous
                break
            current -= ONE_DAY

        if not missing:
            return None
        logger.debug("Computing %d missing closing balance(s) from %s to %s", len(missing), missing[-1], target)
        for day in reversed(missing):
            memo[day] = self._compute_and_store(day, memo)
        return memo[target]

    # Folding
    def _fold(self, day: date, baseline: BalanceSnapshot, source: BaselineSource) -> DayComputation:
        transactions = self.ledger.transactions_for_day(day)
        if source == BaselineSource.OPENING_BALANCE:
            # The explicit opening already holds the seed
            transactions = [t for t in transactions if t.source != TransactionSource.OPENING_BALANCE]

        opening_created_at = baseline.created_at if isinstance(baseline, OpeningBalance) else None
        balances = BalanceMap.from_snapshot(baseline)
        timeline = []
        for txn in transactions:
            before, after = balances.apply(txn)
            timeline.append(
                TimelineEntry(
                    transaction=txn,
                    category=category_for_source(txn.source),
                    account=txn.account,
                    before_balance=before,
                    after_balance=after,
                    before_opening_snapshot=(
                        opening_created_at is not None and txn.created_at < opening_created_at
                    ),
                )
            )
        return DayComputation(
            date=day,
            baseline=baseline,
            baseline_source=source,
            timeline=tuple(timeline),
            balances=balances,
        )

    def fold_day(self, day: date) -> DayComputation:
        """Fold a day's transactions onto its baseline without persisting the day."""
        day = ensure_date(day)
        baseline, source = self.resolve_baseline(day)
        return self._fold(day, baseline, source)

    def _compute_and_store(self, day: date, memo: dict[date, ClosingBalance]) -> ClosingBalance:
        with self.db.closing_lock(day):
            baseline, source = self._stored_baseline(day, memo)
            computation = self._fold(day, baseline, source)
            closing = self.stores.upsert_closing(computation.closing_snapshot())
        logger.info("Computed closing balance for %s from %s baseline", day, source.value)
        return closing

    # Closing balances
    def compute_closing_balance(self, day: date) -> ClosingBalance:
        """Recompute and persist the closing balance of a day.

        Idempotent: with no new transactions in between, repeated calls
        leave the stored row unchanged.

        Raises:
            InvalidDateError: If day is not a calendar date
            StorageUnavailableError: If storage fails; nothing is persisted
        """
        day = ensure_date(day)
        self.prepare_baseline(day)
        with self.db.closing_lock(day):
            computation = self.fold_day(day)
            closing = self.stores.upsert_closing(computation.closing_snapshot())
        logger.info(
            "Computed closing balance for %s from %s baseline (%d transaction(s))",
            day,
            computation.baseline_source.value,
            len(computation.timeline),
        )
        return closing

    def get_closing_balance(self, day: date) -> ClosingBalance:
        """Closing balance of a day.

        A stored closing of a past day is durable and returned as is, even
        if backdated transactions arrived since; use compute_closing_balance
        or recompute_range to refresh it. Today and later days are still
        open and always recomputed.
        """
        day = ensure_date(day)
        if day < self.settings.today():
            stored = self.db.get_closing_balance(day)
            if stored is not None:
                return stored
        return self.compute_closing_balance(day)

    def adjust_closing_balance(
        self, day: date, amount: Decimal, account: Account, is_expense: bool = False
    ) -> ClosingBalance:
        """Apply one already-recorded movement to a day's closing balance.

        When the day has a stored closing, only ``account`` changes.
        Without one the day is computed in full, which already includes the
        movement. Either way the delta is then carried into later stored
        closings up to the next explicit opening balance.

        Args:
            day: Day the movement is attributed to
            amount: Non-negative amount of the movement
            account: Account the movement touched
            is_expense: Whether the movement took money out

        Returns:
            The ClosingBalance of ``day``
        """
        day = ensure_date(day)
        amount = quantize(Decimal(amount))
        if amount < 0:
            raise ValidationError(f"Adjustment amount cannot be negative: {amount}")
        delta = -amount if is_expense else amount

        self.prepare_baseline(day)
        with self.db.closing_lock(day):
            existing = self.db.get_closing_balance(day)
            if existing is None:
                adjusted = self.compute_closing_balance(day)
            else:
                adjusted = self._apply_delta(existing, account, delta)
                logger.info("Adjusted closing balance for %s: %s %+.2f", day, account, delta)
        self._carry_forward(day, account, delta)
        return adjusted

    def _apply_delta(self, closing: ClosingBalance, account: Account, delta: Decimal) -> ClosingBalance:
        balances = BalanceMap.from_snapshot(closing)
        balances.add(account, delta)
        return self.stores.upsert_closing(balances.to_snapshot(closing.date))

    def _carry_forward(self, day: date, account: Account, delta: Decimal) -> None:
        later_openings = self.db.list_opening_balances(start_date=day + ONE_DAY)
        stop = later_openings[0].date if later_openings else None
        end = stop - ONE_DAY if stop is not None else None
        for closing in self.db.list_closing_balances(start_date=day + ONE_DAY, end_date=end):
            with self.db.closing_lock(closing.date):
                current = self.db.get_closing_balance(closing.date)
                if current is not None:
                    self._apply_delta(current, account, delta)
            logger.debug("Carried %s %+.2f into closing balance of %s", account, delta, closing.date)

    # Ranges
    def recompute_range(
        self, start_date: date, end_date: date, cancel: Optional[CancelToken] = None
    ) -> list[ClosingBalance]:
        """Recompute every day of a range, oldest first.

        Raises:
            OperationCancelledError: If cancelled between days; carries the
                closings computed so far, which stay persisted
        """
        start_date, end_date = ensure_range(start_date, end_date)
        completed: list[ClosingBalance] = []
        for day in iter_days(start_date, end_date):
            if cancel is not None:
                cancel.check(completed)
            completed.append(self.compute_closing_balance(day))
        return completed

    def compute_range(
        self, start_date: date, end_date: date, cancel: Optional[CancelToken] = None
    ) -> list[ClosingBalance]:
        """Closing balance of every day of a range, computing only what is missing."""
        start_date, end_date = ensure_range(start_date, end_date)
        completed: list[ClosingBalance] = []
        for day in iter_days(start_date, end_date):
            if cancel is not None:
                cancel.check(completed)
            completed.append(self.get_closing_balance(day))
        return completed

    # Reconciliation
    def ledger_flows(self, day: date) -> dict[Account, Decimal]:
        """Net flow per account from business-sourced ledger transactions."""
        flows: dict[Account, Decimal] = {}
        for txn in self.ledger.transactions_for_day(ensure_date(day)):
            if txn.source in TransactionSource.BUSINESS:
                flows[txn.account] = flows.get(txn.account, ZERO) + txn.signed_amount
        return flows

    def record_flows(self, day: date) -> dict[Account, Decimal]:
        """Net flow per account derived from payment lines of business records.

        Payments of a record cancelled later still moved money on their own
        days; the cancellation day carries the reverse of every payment.
        """
        day = ensure_date(day)
        flows: dict[Account, Decimal] = {}

        def add(account: Account, amount: Decimal) -> None:
            flows[account] = flows.get(account, ZERO) + amount

        for kind, records, sign in (
            (RecordKind.SALE, self.db.list_sales_for_payment_date(day), 1),
            (RecordKind.PURCHASE, self.db.list_purchases_for_payment_date(day), -1),
        ):
            for record in records:
                for attributed in attribute_payments(kind, record.id, record.date, record.payments):
                    if attributed.date == day:
                        add(attributed.payment.account, sign * attributed.payment.amount)
        for records, sign in (
            (self.db.list_sales_cancelled_on(day), -1),
            (self.db.list_purchases_cancelled_on(day), 1),
        ):
            for record in records:
                for payment in record.payments:
                    add(payment.account, sign * payment.amount)
        for expense in self.db.list_expenses(day, day):
            add(expense.account, -expense.amount)
        return flows

    def reconcile(self, day: date, raise_on_mismatch: bool = True) -> ReconciliationResult:
        """Compare ledger flows of a day with flows derived from payment lines.

        Raises:
            BalanceInconsistencyError: If any account differs by more than
                the configured tolerance and raise_on_mismatch is set
        """
        day = ensure_date(day)
        ledger = self.ledger_flows(day)
        records = self.record_flows(day)
        flows = tuple(
            AccountDiscrepancy(account, ledger.get(account, ZERO), records.get(account, ZERO))
            for account in sorted(set(ledger) | set(records), key=account_sort_key)
        )
        tolerance = self.settings.reconciliation_tolerance
        discrepancies = tuple(f for f in flows if abs(f.difference) > tolerance)
        result = ReconciliationResult(date=day, flows=flows, discrepancies=discrepancies)
        if discrepancies:
            logger.warning("Reconciliation of %s found %d discrepancy(ies)", day, len(discrepancies))
            if raise_on_mismatch:
                raise BalanceInconsistencyError(day, discrepancies)
        return result
