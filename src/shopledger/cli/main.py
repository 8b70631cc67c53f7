"""Main CLI entry point."""

import click
from shopledger.config import LedgerSettings
from shopledger.database.factories import create_sqlite_database
from shopledger.utils.log_config import configure_logging

# Import and register all commands at module level
from shopledger.cli.commands import (
    opening,
    closing,
    add,
    ledger,
    commerce,
    report,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides SHOPLEDGER_DB_PATH environment variable)",
    envvar="SHOPLEDGER_DB_PATH",
)
@click.option(
    "--timezone",
    help="IANA timezone for calendar days (overrides SHOPLEDGER_TIMEZONE)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, timezone: str | None, verbose: bool):
    """Shopledger - daily cash, bank and card balances for a shop.

    Tracks opening and closing balances per day, carries each closing into
    the next day and reports every sale, purchase and expense movement.
    """
    ctx.ensure_object(dict)
    if verbose:
        configure_logging(verbose=True)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            settings = LedgerSettings.from_env(timezone=timezone)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.call_on_close(db.disconnect)


# Register all commands
opening.register_commands(cli)
closing.register_commands(cli)
add.register_commands(cli)
ledger.register_commands(cli)
commerce.register_commands(cli)
report.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
