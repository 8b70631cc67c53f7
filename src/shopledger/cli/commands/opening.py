"""Opening balance commands."""

import click

from shopledger.cli.account_resolution import parse_balance_options
from shopledger.cli.date_filters import parse_date_or_exit, resolve_cli_date_range
from shopledger.cli.error_handling import handle_domain_error
from shopledger.cli.formatting import echo_snapshot, format_money
from shopledger.domain.balances import BalanceStoreService
from shopledger.domain.engine import BalanceEngine
from shopledger.utils.amount_parser import parse_amount


@click.group("opening")
def opening_group():
    """Manage explicit opening balances."""
    pass


@opening_group.command("show")
@click.argument("day", metavar="DATE")
@click.pass_context
def show_opening(ctx, day: str):
    """Show the opening balance set for DATE."""
    service = BalanceStoreService(ctx.obj["db"])
    opening_date = parse_date_or_exit(ctx, day)
    try:
        opening = service.get_opening(opening_date)
    except ValueError as e:
        handle_domain_error(ctx, e)
    echo_snapshot(f"Opening balance for {opening.date.isoformat()}", opening)
    if opening.notes:
        click.echo(f"Notes: {opening.notes}")


@opening_group.command("set")
@click.argument("day", metavar="DATE")
@click.option("--cash", required=True, help="Opening cash balance")
@click.option("--bank", "banks", multiple=True, help="Bank balance as REF=AMOUNT (repeatable)")
@click.option("--card", "cards", multiple=True, help="Card balance as REF=AMOUNT (repeatable)")
@click.option("--notes", help="Notes")
@click.pass_context
def set_opening(ctx, day: str, cash: str, banks: tuple[str, ...], cards: tuple[str, ...], notes: str | None):
    """Set (or replace) the opening balance of DATE.

    Examples:
        shopledger opening set 2024-01-15 --cash 1000
        shopledger opening set today --cash 500 --bank HBL=25000 --card VISA=0
    """
    service = BalanceStoreService(ctx.obj["db"])
    opening_date = parse_date_or_exit(ctx, day)
    try:
        opening = service.set_opening(
            opening_date,
            parse_amount(cash),
            bank_balances=parse_balance_options(banks, "bank"),
            card_balances=parse_balance_options(cards, "card"),
            notes=notes,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Opening balance set for {opening.date.isoformat()}")
    echo_snapshot("Balances", opening)


@opening_group.command("carry")
@click.argument("day", metavar="DATE")
@click.pass_context
def carry_opening(ctx, day: str):
    """Set the opening balance of DATE to the previous day's closing balance."""
    service = BalanceStoreService(ctx.obj["db"], engine=BalanceEngine(ctx.obj["db"], ctx.obj["settings"]))
    opening_date = parse_date_or_exit(ctx, day)
    try:
        opening = service.carry_forward_opening(opening_date)
    except ValueError as e:
        handle_domain_error(ctx, e)
    echo_snapshot(f"Opening balance for {opening.date.isoformat()}", opening)
    click.echo(f"Notes: {opening.notes}")


@opening_group.command("delete")
@click.argument("day", metavar="DATE")
@click.pass_context
def delete_opening(ctx, day: str):
    """Delete the opening balance of DATE; the day falls back to the previous closing."""
    service = BalanceStoreService(ctx.obj["db"])
    opening_date = parse_date_or_exit(ctx, day)
    try:
        service.delete_opening(opening_date)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted opening balance for {opening_date.isoformat()}")


@opening_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD)")
@click.option("--end-date", help="End date (YYYY-MM-DD)")
@click.pass_context
def list_openings(ctx, start_date: str | None, end_date: str | None):
    """List opening balances."""
    service = BalanceStoreService(ctx.obj["db"])
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period_flags={})
    openings = service.list_openings(start, end)
    if not openings:
        click.echo("No opening balances found.")
        return
    for opening in openings:
        click.echo(
            f"{opening.date.isoformat()}  cash {format_money(opening.cash_balance):>12}  "
            f"banks {len(opening.bank_balances)}  cards {len(opening.card_balances)}  "
            f"total {format_money(opening.total):>12}"
        )


def register_commands(cli):
    """Register opening balance commands with main CLI."""
    cli.add_command(opening_group)
