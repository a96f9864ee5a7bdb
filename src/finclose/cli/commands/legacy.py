"""Legacy store commands."""

import click

from finclose.cli.error_handling import handle_domain_error, load_json_file
from finclose.domain.errors import DomainError
from finclose.domain.migration import LEGACY_SOURCES


@click.group("legacy")
def legacy_group():
    """Inspect or feed the legacy per-tool store."""
    pass


@legacy_group.command("add")
@click.argument("source_key")
@click.argument("json_file", type=click.Path(exists=True))
@click.pass_context
def add_snapshot(ctx, source_key: str, json_file: str):
    """Append a legacy snapshot read from a JSON file.

    Refused while legacy data is read-only (FINCLOSE_LEGACY_READONLY).

    Examples:
        FINCLOSE_LEGACY_READONLY=0 finclose legacy add bank-movements movements.json
    """
    known = {source.key for source in LEGACY_SOURCES}
    if source_key not in known:
        click.echo(
            f"Warning: '{source_key}' is not a known legacy source "
            f"({', '.join(sorted(known))}); it will not be migrated.",
            err=True,
        )

    payload = load_json_file(ctx, json_file)
    try:
        record = ctx.obj["db"].legacy.append_record(source_key, payload)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Stored legacy snapshot {record.id} for {source_key}")


@legacy_group.command("list")
@click.argument("source_key")
@click.pass_context
def list_snapshots(ctx, source_key: str):
    """List stored snapshots of a legacy source, oldest first."""
    records = ctx.obj["db"].legacy.list_records(source_key)
    if not records:
        click.echo(f"No snapshots for {source_key}.")
        return
    for record in records:
        click.echo(f"{record.id}  {record.created_at.isoformat()}")


def register_commands(cli):
    """Register legacy commands with main CLI."""
    cli.add_command(legacy_group)
