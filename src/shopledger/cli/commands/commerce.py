"""Sale, purchase and expense commands."""

import click

from shopledger.cli.account_resolution import parse_payment_spec, resolve_account_or_exit
from shopledger.cli.date_filters import parse_amount_or_exit, parse_date_or_exit
from shopledger.cli.error_handling import handle_domain_error
from shopledger.cli.formatting import format_money
from shopledger.domain.commerce import CommerceService

PAY_HELP = "Payment as cash:AMOUNT, bank:REF:AMOUNT or card:REF:AMOUNT"


def _echo_record(kind: str, record) -> None:
    click.echo(f"{kind} {record.id} on {record.date.isoformat()}: total {format_money(record.total)}")
    for payment in record.payments:
        day = f" on {payment.date.isoformat()}" if payment.date else ""
        click.echo(f"  {payment.account} {format_money(payment.amount)}{day}")
    click.echo(f"  Outstanding: {format_money(record.outstanding)}")


@click.group("sale")
def sale_group():
    """Record sales and their payments."""
    pass


@sale_group.command("add")
@click.argument("day", metavar="DATE")
@click.argument("total", metavar="TOTAL")
@click.option("--pay", "payments", multiple=True, help=PAY_HELP)
@click.option("--reference", help="Invoice reference")
@click.pass_context
def add_sale(ctx, day: str, total: str, payments: tuple[str, ...], reference: str | None):
    """Record a sale of TOTAL on DATE.

    Examples:
        shopledger sale add today 1000 --pay cash:400 --pay bank:HBL:600
    """
    sale_date = parse_date_or_exit(ctx, day)
    sale_total = parse_amount_or_exit(ctx, total)
    service = CommerceService(ctx.obj["db"], ctx.obj["settings"])
    try:
        lines = [parse_payment_spec(spec) for spec in payments]
        sale = service.record_sale(sale_date, sale_total, lines, reference=reference)
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_record("Sale", sale)


@sale_group.command("pay")
@click.argument("sale_id", metavar="ID", type=int)
@click.option("--pay", "payment", required=True, help=PAY_HELP)
@click.option("--date", "day", help="Payment date (default: today)")
@click.pass_context
def pay_sale(ctx, sale_id: int, payment: str, day: str | None):
    """Record a later payment for sale ID."""
    pay_date = parse_date_or_exit(ctx, day) if day else None
    service = CommerceService(ctx.obj["db"], ctx.obj["settings"])
    try:
        sale = service.add_sale_payment(sale_id, parse_payment_spec(payment, pay_date))
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_record("Sale", sale)


@sale_group.command("cancel")
@click.argument("sale_id", metavar="ID", type=int)
@click.pass_context
def cancel_sale(ctx, sale_id: int):
    """Cancel sale ID and refund its payments today."""
    service = CommerceService(ctx.obj["db"], ctx.obj["settings"])
    try:
        sale = service.cancel_sale(sale_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Cancelled sale {sale.id}, refunded {format_money(sale.paid)}")


@click.group("purchase")
def purchase_group():
    """Record purchases and their payments."""
    pass


@purchase_group.command("add")
@click.argument("day", metavar="DATE")
@click.argument("total", metavar="TOTAL")
@click.option("--pay", "payments", multiple=True, help=PAY_HELP)
@click.option("--reference", help="Supplier invoice reference")
@click.pass_context
def add_purchase(ctx, day: str, total: str, payments: tuple[str, ...], reference: str | None):
    """Record a purchase of TOTAL on DATE."""
    purchase_date = parse_date_or_exit(ctx, day)
    purchase_total = parse_amount_or_exit(ctx, total)
    service = CommerceService(ctx.obj["db"], ctx.obj["settings"])
    try:
        lines = [parse_payment_spec(spec) for spec in payments]
        purchase = service.record_purchase(purchase_date, purchase_total, lines, reference=reference)
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_record("Purchase", purchase)


@purchase_group.command("pay")
@click.argument("purchase_id", metavar="ID", type=int)
@click.option("--pay", "payment", required=True, help=PAY_HELP)
@click.option("--date", "day", help="Payment date (default: today)")
@click.pass_context
def pay_purchase(ctx, purchase_id: int, payment: str, day: str | None):
    """Record a later payment for purchase ID."""
    pay_date = parse_date_or_exit(ctx, day) if day else None
    service = CommerceService(ctx.obj["db"], ctx.obj["settings"])
    try:
        purchase = service.add_purchase_payment(purchase_id, parse_payment_spec(payment, pay_date))
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_record("Purchase", purchase)


@purchase_group.command("cancel")
@click.argument("purchase_id", metavar="ID", type=int)
@click.pass_context
def cancel_purchase(ctx, purchase_id: int):
    """Cancel purchase ID; its payments come back today."""
    service = CommerceService(ctx.obj["db"], ctx.obj["settings"])
    try:
        purchase = service.cancel_purchase(purchase_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Cancelled purchase {purchase.id}, refunded {format_money(purchase.paid)}")


@click.group("expense")
def expense_group():
    """Record expenses."""
    pass


@expense_group.command("add")
@click.argument("day", metavar="DATE")
@click.argument("amount", metavar="AMOUNT")
@click.option("--category", required=True, help="Expense category")
@click.option("--cash", is_flag=True, help="Paid in cash")
@click.option("--bank", metavar="REF", help="Paid from a bank account")
@click.option("--card", metavar="REF", help="Paid by card")
@click.option("--description", help="Description")
@click.pass_context
def add_expense(
    ctx,
    day: str,
    amount: str,
    category: str,
    cash: bool,
    bank: str | None,
    card: str | None,
    description: str | None,
):
    """Record an expense of AMOUNT on DATE."""
    account = resolve_account_or_exit(ctx, cash, bank, card)
    expense_date = parse_date_or_exit(ctx, day)
    expense_amount = parse_amount_or_exit(ctx, amount)
    service = CommerceService(ctx.obj["db"], ctx.obj["settings"])
    try:
        expense = service.record_expense(
            expense_date,
            expense_amount,
            category,
            account.payment_type,
            account_ref=account.ref,
            description=description,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(
        f"Expense {expense.id} on {expense.date.isoformat()}: {format_money(expense.amount)} "
        f"from {expense.account} ({expense.category})"
    )


@expense_group.command("delete")
@click.argument("expense_id", metavar="ID", type=int)
@click.pass_context
def delete_expense(ctx, expense_id: int):
    """Delete today's expense ID and refund its amount."""
    service = CommerceService(ctx.obj["db"], ctx.obj["settings"])
    try:
        expense = service.delete_expense(expense_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted expense {expense.id}, refunded {format_money(expense.amount)} to {expense.account}")


def register_commands(cli):
    """Register sale, purchase and expense commands with main CLI."""
    cli.add_command(sale_group)
    cli.add_command(purchase_group)
    cli.add_command(expense_group)
