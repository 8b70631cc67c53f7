"""CLI helpers for account selection and payment specs."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import click

from shopledger.domain.entities import Account, PaymentLine, PaymentType
from shopledger.domain.errors import ValidationError
from shopledger.utils.amount_parser import parse_amount

PAYMENT_KINDS = {
    "cash": PaymentType.CASH,
    "bank": PaymentType.BANK_TRANSFER,
    "card": PaymentType.CARD,
}


def resolve_account_or_exit(
    ctx: click.Context, cash: bool, bank: str | None, card: str | None
) -> Account:
    """Turn the --cash/--bank/--card options into an Account, or exit with a CLI error.

    Exactly one of the options must be given.
    """
    chosen = [flag for flag, value in (("--cash", cash), ("--bank", bank), ("--card", card)) if value]
    if len(chosen) != 1:
        click.echo("Error: Specify exactly one of --cash, --bank REF or --card REF", err=True)
        ctx.exit(1)
    if cash:
        return Account.cash()
    if bank:
        return Account.bank(bank)
    return Account.card(card)


def parse_payment_spec(spec: str, day: date | None = None) -> PaymentLine:
    """Parse ``cash:AMOUNT``, ``bank:REF:AMOUNT`` or ``card:REF:AMOUNT``.

    Raises:
        ValidationError: If the spec is malformed
    """
    parts = [part.strip() for part in spec.split(":")]
    kind = parts[0].lower()
    if kind not in PAYMENT_KINDS:
        raise ValidationError(f"Unknown payment kind in '{spec}'. Use cash, bank or card")
    if kind == "cash":
        if len(parts) != 2:
            raise ValidationError(f"Invalid payment '{spec}'. Expected cash:AMOUNT")
        return PaymentLine(PaymentType.CASH, parse_amount(parts[1]), date=day)
    if len(parts) != 3 or not parts[1]:
        raise ValidationError(f"Invalid payment '{spec}'. Expected {kind}:REF:AMOUNT")
    return PaymentLine(PAYMENT_KINDS[kind], parse_amount(parts[2]), date=day, account_ref=parts[1])


def parse_balance_options(values: tuple[str, ...], kind: str) -> dict[str, Decimal]:
    """Parse repeated ``REF=AMOUNT`` options into a ref->balance mapping.

    Raises:
        ValidationError: If an option is malformed or a ref repeats
    """
    balances: dict[str, Decimal] = {}
    for value in values:
        ref, separator, amount = value.partition("=")
        ref = ref.strip()
        if not separator or not ref:
            raise ValidationError(f"Invalid {kind} balance '{value}'. Expected REF=AMOUNT")
        if ref in balances:
            raise ValidationError(f"Duplicate {kind} account reference '{ref}'")
        balances[ref] = parse_amount(amount)
    return balances
