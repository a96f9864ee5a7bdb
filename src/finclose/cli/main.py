"""Main CLI entry point."""

import logging

import click

from finclose.config import Settings
from finclose.database.factories import create_sqlite_database
from finclose.logging_config import configure_logging

# Import and register all commands at module level
from finclose.cli.commands import (
    add,
    import_cmd,
    journey,
    legacy,
    migrate,
    snapshot,
    tax,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides FINCLOSE_DB_PATH environment variable)",
    envvar="FINCLOSE_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Finclose - Monthly financial close for freelancers and small businesses.

    Consolidates bank movements, invoices and manual entries into one
    record store, summarizes each month and estimates taxes.
    """
    ctx.ensure_object(dict)
    configure_logging(logging.DEBUG if verbose else logging.WARNING)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        settings = Settings.from_env()
        db = create_sqlite_database(database_path=db_path, settings=settings)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.call_on_close(db.disconnect)


# Register all commands
migrate.register_commands(cli)
legacy.register_commands(cli)
add.register_commands(cli)
import_cmd.register_commands(cli)
snapshot.register_commands(cli)
tax.register_commands(cli)
journey.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
