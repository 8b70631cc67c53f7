"""Sparse per-account balance map."""

from datetime import date
from decimal import Decimal
from typing import Iterator, Optional

from shopledger.domain.entities import (
    ZERO,
    Account,
    AccountBalance,
    AccountKind,
    BalanceSnapshot,
    BalanceTransaction,
    quantize,
)
from shopledger.domain.errors import ValidationError


class BalanceMap:
    """Running balances keyed by account.

    Accounts that were never seen read as zero. Cash is always tracked;
    bank accounts and cards appear as soon as a snapshot or a transaction
    mentions them, so a bank added mid-day starts implicitly at zero.
    """

    def __init__(self, balances: Optional[dict[Account, Decimal]] = None):
        self._balances: dict[Account, Decimal] = {Account.cash(): ZERO}
        for account, balance in (balances or {}).items():
            self._balances[account] = quantize(balance)

    @classmethod
    def from_snapshot(cls, snapshot: Optional[BalanceSnapshot]) -> "BalanceMap":
        """Build a map from a stored snapshot; None gives an all-zero map."""
        balance_map = cls()
        if snapshot is None:
            return balance_map
        balance_map._balances[Account.cash()] = quantize(snapshot.cash_balance)
        for entry in snapshot.bank_balances:
            balance_map._balances[Account.bank(entry.account_ref)] = quantize(entry.balance)
        for entry in snapshot.card_balances:
            balance_map._balances[Account.card(entry.account_ref)] = quantize(entry.balance)
        return balance_map

    def get(self, account: Account) -> Decimal:
        return self._balances.get(account, ZERO)

    def __getitem__(self, account: Account) -> Decimal:
        return self.get(account)

    def __contains__(self, account: Account) -> bool:
        return account in self._balances

    def __iter__(self) -> Iterator[Account]:
        return iter(self._balances)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BalanceMap):
            return NotImplemented
        return self._balances == other._balances

    def __repr__(self) -> str:
        items = ", ".join(f"{account}={balance}" for account, balance in self.items())
        return f"BalanceMap({items})"

    def items(self) -> list[tuple[Account, Decimal]]:
        """Accounts and balances, cash first, then banks and cards by ref."""
        return sorted(self._balances.items(), key=lambda item: account_sort_key(item[0]))

    def add(self, account: Account, delta: Decimal) -> tuple[Decimal, Decimal]:
        """Add a signed delta to one account.

        Returns:
            Tuple of (before, after) balance of the account
        """
        before = self.get(account)
        after = quantize(before + delta)
        self._balances[account] = after
        return before, after

    def apply(self, transaction: BalanceTransaction) -> tuple[Decimal, Decimal]:
        """Fold one ledger transaction: income adds, expense subtracts."""
        if transaction.amount < 0:
            raise ValidationError(f"Transaction {transaction.id} has a negative amount")
        return self.add(transaction.account, transaction.signed_amount)

    def to_snapshot(self, day: date) -> BalanceSnapshot:
        """Convert to the persisted list form, ordered by account ref."""
        banks = []
        cards = []
        for account, balance in self.items():
            if account.kind == AccountKind.BANK:
                banks.append(AccountBalance(account.ref, balance))
            elif account.kind == AccountKind.CARD:
                cards.append(AccountBalance(account.ref, balance))
        return BalanceSnapshot(
            date=day,
            cash_balance=self.get(Account.cash()),
            bank_balances=tuple(banks),
            card_balances=tuple(cards),
        )


def account_sort_key(account: Account) -> tuple[int, str]:
    """Order accounts cash first, then banks, then cards, each by ref."""
    order = {AccountKind.CASH: 0, AccountKind.BANK: 1, AccountKind.CARD: 2}
    return order[account.kind], account.ref or ""
