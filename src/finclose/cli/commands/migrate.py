"""Legacy migration command."""

import click

from finclose.cli.error_handling import handle_domain_error
from finclose.domain.errors import DomainError
from finclose.domain.migration import MigrationService


@click.command("migrate")
@click.option("--status", "show_status", is_flag=True, help="Only show the migration status")
@click.option(
    "--mark-restored",
    is_flag=True,
    help="Mark the migration complete because data was restored from a backup",
)
@click.pass_context
def migrate(ctx, show_status: bool, mark_restored: bool):
    """Consolidate legacy data into the canonical record store.

    Safe to run repeatedly: once complete, later runs do nothing.

    Examples:
        finclose migrate
        finclose migrate --status
    """
    service = MigrationService(ctx.obj["db"])

    if show_status:
        status = service.get_status()
        if not status.complete:
            click.echo("Migration: pending")
            return
        completed = status.completed_at.isoformat() if status.completed_at else "unknown"
        suffix = f" ({status.source})" if status.source else ""
        click.echo(f"Migration: complete at {completed}{suffix}")
        return

    if mark_restored:
        service.mark_restored()
        click.echo("Migration marked complete (restored from backup).")
        return

    try:
        result = service.run()
    except DomainError as e:
        handle_domain_error(ctx, e)

    if result.skipped:
        click.echo("Migration already complete.")
        return

    click.echo("Migration complete:")
    click.echo(f"  Migrated: {result.migrated} records")
    click.echo(f"  Duplicates dropped: {result.duplicates_dropped}")
    for source_key, count in sorted(result.per_source.items()):
        click.echo(f"  {source_key}: {count} items")
    for collection, count in sorted(result.side_collections.items()):
        click.echo(f"  {collection}: {count} documents")


def register_commands(cli):
    """Register migrate command with main CLI."""
    cli.add_command(migrate)
