"""Closing balance commands."""

import click

from shopledger.cli.date_filters import parse_date_or_exit, resolve_cli_date_range
from shopledger.cli.error_handling import handle_domain_error
from shopledger.cli.formatting import echo_reconciliation, echo_snapshot, format_money
from shopledger.domain.balances import BalanceStoreService
from shopledger.domain.engine import BalanceEngine
from shopledger.domain.errors import BalanceInconsistencyError, OperationCancelledError
from shopledger.utils.cancellation import CancelToken


@click.group("closing")
def closing_group():
    """Show, recompute and reconcile closing balances."""
    pass


@closing_group.command("show")
@click.argument("day", metavar="DATE")
@click.pass_context
def show_closing(ctx, day: str):
    """Show the closing balance of DATE, computing it if needed."""
    engine = BalanceEngine(ctx.obj["db"], ctx.obj["settings"])
    closing_date = parse_date_or_exit(ctx, day)
    try:
        closing = engine.get_closing_balance(closing_date)
    except ValueError as e:
        handle_domain_error(ctx, e)
    echo_snapshot(f"Closing balance for {closing.date.isoformat()}", closing)


@closing_group.command("recompute")
@click.argument("start", metavar="START")
@click.argument("end", metavar="[END]", required=False)
@click.option("--timeout", type=float, help="Stop after this many seconds")
@click.pass_context
def recompute_closing(ctx, start: str, end: str | None, timeout: float | None):
    """Recompute closing balances from START to END (default: START only).

    Use this after backdated entries; stored past closings are never
    rewritten implicitly.
    """
    engine = BalanceEngine(ctx.obj["db"], ctx.obj["settings"])
    start_date = parse_date_or_exit(ctx, start, "start date")
    end_date = parse_date_or_exit(ctx, end, "end date") if end else start_date
    cancel = CancelToken(timeout=timeout) if timeout is not None else None
    try:
        closings = engine.recompute_range(start_date, end_date, cancel=cancel)
    except OperationCancelledError as e:
        click.echo(f"Error: {e} after {len(e.completed)} day(s)", err=True)
        ctx.exit(1)
    except ValueError as e:
        handle_domain_error(ctx, e)
    for closing in closings:
        click.echo(
            f"{closing.date.isoformat()}  cash {format_money(closing.cash_balance):>12}  "
            f"total {format_money(closing.total):>12}"
        )
    click.echo(f"Recomputed {len(closings)} day(s)")


@closing_group.command("reconcile")
@click.argument("day", metavar="DATE")
@click.pass_context
def reconcile_closing(ctx, day: str):
    """Compare DATE's ledger flows with its sale/purchase/expense payments."""
    engine = BalanceEngine(ctx.obj["db"], ctx.obj["settings"])
    reconcile_date = parse_date_or_exit(ctx, day)
    try:
        result = engine.reconcile(reconcile_date, raise_on_mismatch=False)
    except ValueError as e:
        handle_domain_error(ctx, e)
    echo_reconciliation(result)
    if not result.is_consistent:
        handle_domain_error(ctx, BalanceInconsistencyError(reconcile_date, result.discrepancies))


@closing_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD)")
@click.option("--end-date", help="End date (YYYY-MM-DD)")
@click.pass_context
def list_closings(ctx, start_date: str | None, end_date: str | None):
    """List stored closing balances."""
    service = BalanceStoreService(ctx.obj["db"])
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period_flags={})
    closings = service.list_closings(start, end)
    if not closings:
        click.echo("No closing balances found.")
        return
    for closing in closings:
        click.echo(
            f"{closing.date.isoformat()}  cash {format_money(closing.cash_balance):>12}  "
            f"total {format_money(closing.total):>12}"
        )


def register_commands(cli):
    """Register closing balance commands with main CLI."""
    cli.add_command(closing_group)
