"""Monthly snapshot command."""

import click

from finclose.cli.error_handling import handle_domain_error
from finclose.cli.profile_options import (
    build_profile,
    format_money,
    regime_option,
    tax_engine_option,
)
from finclose.domain.entities import MonthlySnapshot
from finclose.domain.errors import DomainError
from finclose.domain.summary import MonthlyAggregator
from finclose.utils.date_parser import parse_month

SIGNAL_LABELS = (
    ("needs_bank_import", "Bank statements missing"),
    ("needs_invoice_import", "Invoices missing"),
    ("needs_classification", "Records need classification"),
    ("needs_reconciliation", "Reconciliation pending"),
)


def display_snapshot(snapshot: MonthlySnapshot) -> None:
    stats = snapshot.stats
    sources = stats.sources_count
    click.echo(f"Month: {snapshot.month}")
    click.echo(f"  {'Income':<20} {format_money(stats.income_total):>16}")
    click.echo(f"  {'Expenses':<20} {format_money(stats.expense_total):>16}")
    click.echo(f"  {'Taxes paid':<20} {format_money(stats.tax_total):>16}")
    click.echo(f"  {'Deductible':<20} {format_money(stats.deductible_total):>16}")
    click.echo(f"  {'Non-deductible':<20} {format_money(stats.non_deductible_total):>16}")
    click.echo(
        f"  Records: {stats.records_count} "
        f"(bank {sources.bank}, invoice {sources.invoice}, "
        f"manual {sources.manual}, tax {sources.tax})"
    )
    click.echo(f"  Unclassified: {stats.unknown_classifications_count}")

    pending = [label for name, label in SIGNAL_LABELS if getattr(snapshot.signals, name)]
    if pending:
        click.echo("Attention:")
        for label in pending:
            click.echo(f"  - {label}")

    if snapshot.tax_summary is not None:
        summary = snapshot.tax_summary
        click.echo("Tax estimate:")
        click.echo(f"  Taxable base: {format_money(summary.taxable_base)}")
        click.echo(f"  Estimated tax: {format_money(summary.estimated_tax)}")
        click.echo(f"  Confidence: {summary.confidence:.0%}")
        for warning in summary.warnings:
            click.echo(f"  Warning: {warning}")


@click.command("snapshot")
@click.argument("month")
@regime_option()
@tax_engine_option()
@click.pass_context
def snapshot(ctx, month: str, regime: str | None, tax_engine: bool | None):
    """Show totals and readiness signals of a month (YYYY-MM).

    Examples:
        finclose snapshot 2024-03
        finclose snapshot "last month" --regime simplified --tax-engine
    """
    try:
        month_key = parse_month(month)
    except DomainError as e:
        handle_domain_error(ctx, e)

    profile = build_profile(regime, tax_engine=tax_engine)
    aggregator = MonthlyAggregator(ctx.obj["settings"])
    records = ctx.obj["db"].financial_records.get_all()
    display_snapshot(aggregator.get_snapshot(month_key, records, profile))


@click.command("months")
@click.pass_context
def months(ctx):
    """List months that have records, newest first."""
    aggregator = MonthlyAggregator(ctx.obj["settings"])
    records = ctx.obj["db"].financial_records.get_all()
    grouped = aggregator.group_by_month(records)
    month_keys = aggregator.months_with_activity(records)
    if not month_keys:
        click.echo("No records found.")
        return
    for month_key in month_keys:
        click.echo(f"{month_key}  {len(grouped[month_key]):>5} records")


def register_commands(cli):
    """Register snapshot commands with main CLI."""
    cli.add_command(snapshot)
    cli.add_command(months)
