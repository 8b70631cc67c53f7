"""Report commands."""

import click

from shopledger.cli.date_filters import parse_date_or_exit
from shopledger.cli.error_handling import handle_domain_error
from shopledger.cli.formatting import echo_daily_report, echo_range_report
from shopledger.domain.errors import OperationCancelledError
from shopledger.domain.report import ReportService
from shopledger.utils.cancellation import CancelToken


@click.group("report")
def report_group():
    """Daily and date range balance reports."""
    pass


@report_group.command("daily")
@click.argument("day", metavar="DATE")
@click.pass_context
def daily_report(ctx, day: str):
    """Show the balance report of DATE."""
    report_date = parse_date_or_exit(ctx, day)
    service = ReportService(ctx.obj["db"], ctx.obj["settings"])
    try:
        report = service.build_daily_report(report_date)
    except ValueError as e:
        handle_domain_error(ctx, e)
    echo_daily_report(report)


@report_group.command("range")
@click.argument("start", metavar="START")
@click.argument("end", metavar="END")
@click.option("--timeout", type=float, help="Stop after this many seconds")
@click.pass_context
def range_report(ctx, start: str, end: str, timeout: float | None):
    """Show the report from START to END, one line per day."""
    start_date = parse_date_or_exit(ctx, start, "start date")
    end_date = parse_date_or_exit(ctx, end, "end date")
    cancel = CancelToken(timeout=timeout) if timeout is not None else None
    service = ReportService(ctx.obj["db"], ctx.obj["settings"])
    try:
        report = service.build_range_report(start_date, end_date, cancel=cancel)
    except OperationCancelledError as e:
        click.echo(f"Error: {e} after {len(e.completed)} day(s)", err=True)
        ctx.exit(1)
    except ValueError as e:
        handle_domain_error(ctx, e)
    echo_range_report(report)
    if not report.is_complete:
        ctx.exit(1)


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(report_group)
