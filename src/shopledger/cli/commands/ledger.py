"""Balance transaction log commands."""

import click

from shopledger.cli.date_filters import resolve_cli_date_range
from shopledger.cli.error_handling import handle_domain_error
from shopledger.cli.formatting import echo_transactions
from shopledger.domain.entities import PaymentType
from shopledger.domain.ledger import LedgerService


@click.group("ledger")
def ledger_group():
    """Inspect the balance transaction log."""
    pass


@ledger_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD)")
@click.option("--end-date", help="End date (YYYY-MM-DD)")
@click.option("--this-month", is_flag=True, help="Filter to current month")
@click.option("--this-week", is_flag=True, help="Filter to current week")
@click.option("--last-month", is_flag=True, help="Filter to last month")
@click.option("--last-week", is_flag=True, help="Filter to last week")
@click.option(
    "--payment-type",
    type=click.Choice([p.value for p in PaymentType]),
    help="Only this instrument",
)
@click.option("--account", "account_ref", metavar="REF", help="Only this bank account or card")
@click.option("--source", help="Only this source tag (e.g. sale, expense)")
@click.pass_context
def list_ledger(
    ctx,
    start_date: str | None,
    end_date: str | None,
    this_month: bool,
    this_week: bool,
    last_month: bool,
    last_week: bool,
    payment_type: str | None,
    account_ref: str | None,
    source: str | None,
):
    """List balance transactions by business date."""
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-month": this_month,
            "this-week": this_week,
            "last-month": last_month,
            "last-week": last_week,
        },
    )
    service = LedgerService(ctx.obj["db"], ctx.obj["settings"])
    try:
        transactions = service.list_transactions(
            start_date=start,
            end_date=end,
            payment_type=PaymentType(payment_type) if payment_type else None,
            account_ref=account_ref,
            source=source,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not transactions:
        click.echo("No transactions found.")
        return
    echo_transactions(transactions)


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(ledger_group)
