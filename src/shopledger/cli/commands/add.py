"""Manual balance addition/deduction command."""

import click

from shopledger.cli.account_resolution import resolve_account_or_exit
from shopledger.cli.date_filters import parse_amount_or_exit, parse_date_or_exit
from shopledger.cli.error_handling import handle_domain_error
from shopledger.cli.formatting import echo_snapshot, format_money
from shopledger.domain.ledger import LedgerService


@click.command("add")
@click.argument("day", metavar="DATE")
@click.argument("amount", metavar="AMOUNT")
@click.option("--cash", is_flag=True, help="Add to the cash drawer")
@click.option("--bank", metavar="REF", help="Add to a bank account")
@click.option("--card", metavar="REF", help="Add to a card")
@click.option("--expense", is_flag=True, help="Deduct instead of add")
@click.option("--description", help="Description")
@click.pass_context
def add_balance(
    ctx,
    day: str,
    amount: str,
    cash: bool,
    bank: str | None,
    card: str | None,
    expense: bool,
    description: str | None,
):
    """Add money to (or deduct it from) an account on DATE.

    Examples:
        shopledger add today 500 --cash
        shopledger add 2024-01-15 2000 --bank HBL --description "Owner top-up"
        shopledger add yesterday 150 --cash --expense
    """
    account = resolve_account_or_exit(ctx, cash, bank, card)
    txn_date = parse_date_or_exit(ctx, day)
    txn_amount = parse_amount_or_exit(ctx, amount)

    service = LedgerService(ctx.obj["db"], ctx.obj["settings"])
    try:
        closing = service.add_to_opening_or_closing_balance(
            txn_date, txn_amount, account, is_expense=expense, description=description
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    verb = "Deducted" if expense else "Added"
    click.echo(f"{verb} {format_money(txn_amount)} {'from' if expense else 'to'} {account} on {txn_date.isoformat()}")
    echo_snapshot("Closing balance", closing)


def register_commands(cli):
    """Register add command with main CLI."""
    cli.add_command(add_balance)
