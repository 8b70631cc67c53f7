"""Opening and closing balance store domain service."""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from shopledger.database.base import Database
from shopledger.domain.entities import (
    AccountBalance,
    BalanceSnapshot,
    ClosingBalance,
    OpeningBalance,
    quantize,
)
from shopledger.domain.errors import (
    NotFoundError,
    ValidationError,
    closing_balance_not_found,
    opening_balance_not_found,
)
from shopledger.utils.date_parser import ensure_date, ensure_range

logger = logging.getLogger(__name__)

BalanceInput = Union[Mapping[str, Decimal], Iterable[AccountBalance], None]


def normalize_balances(balances: BalanceInput, kind: str) -> tuple[AccountBalance, ...]:
    """Turn a ref->balance mapping or AccountBalance list into the stored form.

    Entries are ordered by account_ref.

    Raises:
        ValidationError: If a ref is empty or repeated
    """
    if balances is None:
        return ()
    if isinstance(balances, Mapping):
        entries = [AccountBalance(str(ref), Decimal(balance)) for ref, balance in balances.items()]
    else:
        entries = list(balances)

    seen = set()
    normalized = []
    for entry in entries:
        ref = (entry.account_ref or "").strip()
        if not ref:
            raise ValidationError(f"{kind.capitalize()} balance requires an account reference")
        if ref in seen:
            raise ValidationError(f"Duplicate {kind} account reference '{ref}'")
        seen.add(ref)
        normalized.append(AccountBalance(ref, quantize(Decimal(entry.balance))))
    return tuple(sorted(normalized, key=lambda e: e.account_ref))


class BalanceStoreService:
    """Service for the per-day opening and closing balance stores.

    Opening rows are written only through ``set_opening``. Closing rows are
    written only by the balance engine through ``upsert_closing``.
    """

    def __init__(self, db: Database, engine=None):
        """Initialize balance store service.

        Args:
            db: Database instance
            engine: BalanceEngine used to carry closings forward, created on first use
        """
        self.db = db
        self._engine = engine

    @property
    def engine(self):
        if self._engine is None:
            from shopledger.domain.engine import BalanceEngine

            self._engine = BalanceEngine(self.db)
        return self._engine

    # Opening balances
    def get_opening(self, day: date) -> OpeningBalance:
        """Get the opening balance of a day.

        Raises:
            NotFoundError: If no opening balance was set for the day
        """
        day = ensure_date(day)
        opening = self.db.get_opening_balance(day)
        if opening is None:
            raise NotFoundError(opening_balance_not_found(day))
        return opening

    def find_opening(self, day: date) -> Optional[OpeningBalance]:
        """Get the opening balance of a day, or None."""
        return self.db.get_opening_balance(ensure_date(day))

    def set_opening(
        self,
        day: date,
        cash_balance: Decimal,
        bank_balances: BalanceInput = None,
        card_balances: BalanceInput = None,
        notes: Optional[str] = None,
    ) -> OpeningBalance:
        """Create or replace the opening balance of a day.

        Args:
            day: Calendar day
            cash_balance: Starting cash, must not be negative
            bank_balances: Starting balance per bank account reference
            card_balances: Starting balance per card reference
            notes: Optional operator notes

        Returns:
            The stored OpeningBalance

        Raises:
            ValidationError: If cash is negative or an account ref is invalid
        """
        day = ensure_date(day)
        cash = quantize(Decimal(cash_balance))
        if cash < 0:
            raise ValidationError("Opening cash balance cannot be negative")
        banks = normalize_balances(bank_balances, "bank")
        cards = normalize_balances(card_balances, "card")

        opening = self.db.save_opening_balance(day, cash, banks, cards, notes=notes)
        logger.info(
            "Opening balance for %s set: cash %s, %d bank(s), %d card(s)",
            day,
            cash,
            len(banks),
            len(cards),
        )
        return opening

    def carry_forward_opening(self, day: date) -> OpeningBalance:
        """Set the opening balance of a day to the previous day's closing.

        The previous closing is taken from the store, or computed from its
        chain when missing. Before the ledger epoch there is none and every
        account opens at zero; the notes say which happened. Calling this
        again with nothing changed keeps the stored row as it is.

        Returns:
            The stored OpeningBalance

        Raises:
            ValidationError: If the previous closing holds negative cash
        """
        day = ensure_date(day)
        previous_day = day - timedelta(days=1)
        previous = self.engine.get_previous_closing(day)
        if previous is None:
            previous = BalanceSnapshot(date=previous_day, cash_balance=Decimal("0"))
            notes = f"No closing balance for {previous_day.isoformat()}, carried zero balances"
        else:
            notes = f"Carried from closing balance of {previous_day.isoformat()}"

        carried = BalanceSnapshot(
            date=day,
            cash_balance=quantize(previous.cash_balance),
            bank_balances=normalize_balances(previous.bank_balances, "bank"),
            card_balances=normalize_balances(previous.card_balances, "card"),
        )

        with self.db.closing_lock(day):
            existing = self.db.get_opening_balance(day)
            if existing is not None and existing.notes == notes and existing.same_balances(carried):
                logger.debug("Opening balance for %s already carried forward", day)
                return existing
            opening = self.set_opening(
                day,
                carried.cash_balance,
                bank_balances=carried.bank_balances,
                card_balances=carried.card_balances,
                notes=notes,
            )
        logger.info("Carried closing balance of %s into opening of %s", previous_day, day)
        return opening

    def delete_opening(self, day: date) -> None:
        """Delete the opening balance of a day.

        Raises:
            NotFoundError: If no opening balance was set for the day
        """
        day = ensure_date(day)
        if not self.db.delete_opening_balance(day):
            raise NotFoundError(opening_balance_not_found(day))
        logger.info("Opening balance for %s deleted", day)

    def list_openings(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> list[OpeningBalance]:
        """List opening balances, optionally within a range."""
        if start_date is not None and end_date is not None:
            start_date, end_date = ensure_range(start_date, end_date)
        return self.db.list_opening_balances(start_date, end_date)

    # Closing balances
    def get_closing(self, day: date) -> ClosingBalance:
        """Get the stored closing balance of a day without computing it.

        Raises:
            NotFoundError: If the day has no stored closing balance
        """
        day = ensure_date(day)
        closing = self.db.get_closing_balance(day)
        if closing is None:
            raise NotFoundError(closing_balance_not_found(day))
        return closing

    def find_closing(self, day: date) -> Optional[ClosingBalance]:
        """Get the stored closing balance of a day, or None."""
        return self.db.get_closing_balance(ensure_date(day))

    def list_closings(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> list[ClosingBalance]:
        """List stored closing balances, optionally within a range."""
        if start_date is not None and end_date is not None:
            start_date, end_date = ensure_range(start_date, end_date)
        return self.db.list_closing_balances(start_date, end_date)

    def upsert_closing(self, snapshot: BalanceSnapshot) -> ClosingBalance:
        """Persist a computed closing balance keyed by its date."""
        return self.db.upsert_closing_balance(snapshot)
