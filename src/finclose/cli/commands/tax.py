"""Tax estimate command."""

import click

from finclose.cli.error_handling import handle_domain_error
from finclose.cli.profile_options import (
    build_profile,
    format_money,
    regime_option,
    tax_engine_option,
)
from finclose.domain.errors import DomainError
from finclose.domain.tax import TaxEstimator
from finclose.utils.date_parser import parse_month


@click.command("tax")
@click.argument("month")
@regime_option(required=True)
@tax_engine_option()
@click.pass_context
def tax(ctx, month: str, regime: str, tax_engine: bool | None):
    """Estimate the taxes of a month under a regime.

    Estimates are informative only and never replace a tax filing.

    Examples:
        finclose tax 2024-03 --regime simplified --tax-engine
    """
    try:
        month_key = parse_month(month)
    except DomainError as e:
        handle_domain_error(ctx, e)

    profile = build_profile(regime, tax_engine=tax_engine)
    estimator = TaxEstimator(ctx.obj["settings"])
    estimate = estimator.estimate_month(
        month_key, ctx.obj["db"].financial_records.get_all(), profile
    )

    click.echo(f"Tax estimate for {month_key} ({regime}):")
    if estimate.enabled:
        click.echo(f"  Income: {format_money(estimate.income)}")
        click.echo(f"  Deductible expenses: {format_money(estimate.deductible_expenses)}")
        click.echo(f"  Taxable base: {format_money(estimate.taxable_base)}")
        if estimate.applied_rate is not None:
            click.echo(f"  Rate: {estimate.applied_rate:.2%}")
        click.echo(f"  Estimated tax: {format_money(estimate.estimated_tax)}")
        click.echo(f"  Confidence: {estimate.confidence:.0%}")
    for warning in estimate.warnings:
        click.echo(f"  Warning: {warning}")


def register_commands(cli):
    """Register tax command with main CLI."""
    cli.add_command(tax)
