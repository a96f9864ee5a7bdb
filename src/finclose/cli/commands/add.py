"""Add record command."""

import click

from finclose.cli.error_handling import handle_domain_error
from finclose.domain.entities import RecordType, Taxability
from finclose.domain.errors import DomainError
from finclose.domain.normalizer import InputKind, NormalizationContext, normalize
from finclose.utils.amount_parser import parse_amount
from finclose.utils.date_parser import parse_date


@click.command("add")
@click.option(
    "--date",
    required=True,
    help="Record date (YYYY-MM-DD or relative like 'today', 'yesterday')",
)
@click.option("--amount", required=True, help="Record amount (e.g., 123.45)")
@click.option(
    "--type",
    "record_type",
    type=click.Choice([t.value for t in RecordType]),
    default=RecordType.EXPENSE.value,
    show_default=True,
    help="Record type",
)
@click.option(
    "--taxability",
    type=click.Choice([t.value for t in Taxability]),
    default=Taxability.UNKNOWN.value,
    show_default=True,
    help="Tax classification",
)
@click.option("--concept", help="Description of the record")
@click.pass_context
def add_record(
    ctx,
    date: str,
    amount: str,
    record_type: str,
    taxability: str,
    concept: str | None,
):
    """Add a manual record.

    Examples:
        finclose add --date 2024-03-05 --amount 1200 --type expense --taxability deductible
        finclose add --date today --amount 15000 --type income --concept "Consulting"
    """
    try:
        record_date = parse_date(date)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        record_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    raw = {
        "date": record_date.isoformat(),
        "amount": str(record_amount),
        "type": record_type,
        "taxability": taxability,
        "concept": concept,
    }
    record = normalize(raw, NormalizationContext(kind=InputKind.MANUAL))

    try:
        ctx.obj["db"].financial_records.add(record)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created record {record.id}")


def register_commands(cli):
    """Register add command with main CLI."""
    cli.add_command(add_record)
