"""Plain-text rendering of balances and reports for the CLI."""

from decimal import Decimal

import click

from shopledger.domain.entities import (
    BalanceSnapshot,
    BalanceTransaction,
    DailyReport,
    InstrumentTotals,
    RangeReport,
    ReconciliationResult,
    ReportCategory,
    ReportTotals,
)


def format_money(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def echo_snapshot(title: str, snapshot: BalanceSnapshot) -> None:
    """Print a balance snapshot, one account per line."""
    click.echo(f"{title}:")
    click.echo(f"  {'Cash':<24} {format_money(snapshot.cash_balance):>14}")
    for entry in snapshot.bank_balances:
        click.echo(f"  {'Bank ' + entry.account_ref:<24} {format_money(entry.balance):>14}")
    for entry in snapshot.card_balances:
        click.echo(f"  {'Card ' + entry.account_ref:<24} {format_money(entry.balance):>14}")
    click.echo(f"  {'Total':<24} {format_money(snapshot.total):>14}")


def echo_transactions(transactions: list[BalanceTransaction]) -> None:
    """Print ledger transactions as a table."""
    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 100)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Type':<8} {'Amount':>12}  {'Account':<18} {'Source':<20} {'Description':<20}"
    )
    click.echo("-" * 100)
    for txn in transactions:
        day = txn.date.isoformat() if txn.date else "-"
        description = (txn.description or "")[:20]
        click.echo(
            f"{txn.id:<6} {day:<12} {txn.type.value:<8} {format_money(txn.amount):>12}  "
            f"{str(txn.account):<18} {txn.source:<20} {description:<20}"
        )


def _instrument_line(totals: InstrumentTotals) -> str:
    return (
        f"cash {format_money(totals.cash)}, bank {format_money(totals.bank_transfer)}, "
        f"card {format_money(totals.card)}"
    )


def echo_totals(totals: ReportTotals) -> None:
    """Print per-category income and expense."""
    click.echo("Totals:")
    for category in ReportCategory:
        entry = totals.for_category(category)
        if entry.count == 0:
            continue
        click.echo(f"  {category.value.capitalize()} ({entry.count})")
        if entry.income.total:
            click.echo(f"    In:  {_instrument_line(entry.income)}")
        if entry.expense.total:
            click.echo(f"    Out: {_instrument_line(entry.expense)}")
    click.echo(
        f"  Net: {format_money(totals.net)} "
        f"(in {format_money(totals.income.total)}, out {format_money(totals.expense.total)})"
    )


def echo_daily_report(report: DailyReport) -> None:
    """Print a daily balance report."""
    click.echo(f"Daily report for {report.date.isoformat()}")
    click.echo("=" * 60)
    echo_snapshot(f"Opening balance ({report.opening_source.value.replace('_', ' ')})", report.opening)

    click.echo("\nTransactions:")
    if not report.timeline:
        click.echo("  None")
    for entry in report.timeline:
        txn = entry.transaction
        sign = "+" if txn.signed_amount >= 0 else "-"
        marker = " *" if entry.before_opening_snapshot else ""
        click.echo(
            f"  {txn.created_at:%H:%M}  {txn.source:<18} {str(entry.account):<16} "
            f"{sign}{format_money(txn.amount):>12}  "
            f"{format_money(entry.before_balance)} -> {format_money(entry.after_balance)}{marker}"
        )

    if report.payments:
        click.echo("\nPayments received/made:")
        for attributed in report.payments:
            payment = attributed.payment
            click.echo(
                f"  {attributed.record_kind.value} {attributed.record_id}: "
                f"{payment.account} {format_money(payment.amount)}"
            )
    if report.deferred_payments:
        click.echo("\nPayments on other days:")
        for attributed in report.deferred_payments:
            click.echo(
                f"  {attributed.record_kind.value} {attributed.record_id}: "
                f"{attributed.payment.account} {format_money(attributed.payment.amount)} "
                f"on {attributed.date.isoformat()}"
            )
    if report.sales_credit:
        click.echo(f"\nUnpaid sales: {format_money(report.sales_credit)}")

    click.echo("")
    echo_totals(report.totals)
    click.echo("")
    echo_snapshot("Closing balance", report.closing)
    if report.is_stale:
        click.echo("Warning: stored closing balance differs from its transactions; run 'closing recompute'.")


def echo_range_report(report: RangeReport) -> None:
    """Print a range report: one line per day, then the totals."""
    click.echo(f"Report for {report.start_date.isoformat()} to {report.end_date.isoformat()}")
    click.echo("=" * 60)
    for day in report.days:
        click.echo(
            f"  {day.date.isoformat()}  opening {format_money(day.opening.total):>12}  "
            f"net {format_money(day.totals.net):>12}  closing {format_money(day.closing.total):>12}"
        )
    for failure in report.failures:
        click.echo(f"  {failure.date.isoformat()}  FAILED: {failure.error}")
    click.echo("")
    echo_totals(report.totals)
    if report.opening is not None:
        click.echo("")
        echo_snapshot("Opening balance", report.opening)
    if report.closing is not None:
        click.echo("")
        echo_snapshot("Closing balance", report.closing)


def echo_reconciliation(result: ReconciliationResult) -> None:
    """Print ledger and payment-line flows per account."""
    click.echo(f"Reconciliation for {result.date.isoformat()}")
    click.echo(f"  {'Account':<20} {'Ledger':>12} {'Records':>12} {'Diff':>10}")
    for flow in result.flows:
        click.echo(
            f"  {str(flow.account):<20} {format_money(flow.ledger_flow):>12} "
            f"{format_money(flow.record_flow):>12} {format_money(flow.difference):>10}"
        )
    click.echo("Consistent" if result.is_consistent else f"{len(result.discrepancies)} discrepancy(ies)")
