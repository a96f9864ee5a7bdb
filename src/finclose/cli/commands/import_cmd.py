"""JSON import command."""

import click

from finclose.cli.error_handling import handle_domain_error, load_json_file
from finclose.domain.entities import RecordType
from finclose.domain.errors import DomainError
from finclose.domain.migration import deduplicate, merge_with_existing, wrapped_list
from finclose.domain.normalizer import InputKind, NormalizationContext, normalize

extract_items = wrapped_list("items", "movements", "invoices", "records")


@click.command("import")
@click.argument("kind", type=click.Choice([k.value for k in InputKind]))
@click.argument("json_file", type=click.Path(exists=True))
@click.option(
    "--type",
    "record_type",
    type=click.Choice([RecordType.INCOME.value, RecordType.EXPENSE.value]),
    help="Record type for items that do not carry one (issued vs received invoices)",
)
@click.pass_context
def import_json(ctx, kind: str, json_file: str, record_type: str | None):
    """Import raw records of one kind from a JSON file.

    The file holds a list of items, or an object wrapping the list under
    "items", "movements", "invoices" or "records". Items already stored
    are updated in place instead of duplicated.

    Examples:
        finclose import bank movements.json
        finclose import invoice issued.json --type income
    """
    db = ctx.obj["db"]
    payload = load_json_file(ctx, json_file)
    items = extract_items(payload)
    if not items:
        click.echo("No items found.")
        return

    context = NormalizationContext(
        kind=InputKind(kind),
        default_type=RecordType(record_type) if record_type else None,
    )
    records = [normalize(item, context) for item in items]
    unique = deduplicate(records)

    existing = db.financial_records.get_all()
    existing_ids = {record.id for record in existing}
    try:
        to_write, already_present = merge_with_existing(unique, existing)
        if to_write:
            db.financial_records.put_many(to_write)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo("\nImport complete:")
    created = sum(1 for record in to_write if record.id not in existing_ids)
    click.echo(f"  Imported: {created} records")
    click.echo(f"  Updated: {len(to_write) - created} records")
    click.echo(f"  Skipped: {len(records) - len(unique) + already_present} duplicates")


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_json)
