"""Monthly close journey commands."""

import functools

import click

from finclose.cli.error_handling import handle_domain_error
from finclose.cli.profile_options import build_profile, regime_option, tax_engine_option
from finclose.config import JOURNEY_ENABLED_ENV
from finclose.domain.entities import JourneyState, StepStatus
from finclose.domain.errors import DomainError
from finclose.domain.journey import BackupPolicy, JourneyService
from finclose.domain.summary import MonthlyAggregator
from finclose.utils.date_parser import parse_month

STATUS_MARKERS = {
    StepStatus.DONE: "[x]",
    StepStatus.PENDING: "[ ]",
    StepStatus.BLOCKED: "[-]",
}


def journey_options(f):
    """Options shared by every journey command."""

    @click.argument("month")
    @regime_option()
    @tax_engine_option()
    @click.option(
        "--journey/--no-journey",
        "journey_flag",
        default=None,
        help=f"Enable or disable the journey (overrides {JOURNEY_ENABLED_ENV})",
    )
    @click.option(
        "--backup-policy",
        type=click.Choice([p.value for p in BackupPolicy]),
        default=BackupPolicy.PERSIST.value,
        show_default=True,
        help="Whether a done backup step resets when the month's data changes",
    )
    @click.pass_context
    @functools.wraps(f)
    def wrapper(ctx, month, regime, tax_engine, journey_flag, backup_policy, **kwargs):
        try:
            month_key = parse_month(month)
        except DomainError as e:
            handle_domain_error(ctx, e)

        settings = ctx.obj["settings"]
        profile = build_profile(regime, tax_engine=tax_engine, journey=journey_flag)
        service = JourneyService(ctx.obj["db"], settings, BackupPolicy(backup_policy))
        if not service.is_enabled(profile):
            click.echo(
                f"Error: The monthly close journey is disabled. "
                f"Set {JOURNEY_ENABLED_ENV}=1 or pass --journey.",
                err=True,
            )
            ctx.exit(1)

        records = ctx.obj["db"].financial_records.get_all()
        snapshot = MonthlyAggregator(settings).get_snapshot(month_key, records, profile)
        return f(ctx, service, month_key, snapshot, profile, **kwargs)

    return wrapper


def display_journey(state: JourneyState) -> None:
    click.echo(f"Monthly close {state.month}:")
    for step in state.steps:
        line = f"  {STATUS_MARKERS[step.status]} {step.title}"
        if step.status == StepStatus.BLOCKED and step.blocked_by:
            line += f" (waiting on: {', '.join(step.blocked_by)})"
        click.echo(line)


@click.group("journey")
def journey_group():
    """Guided monthly close."""
    pass


@journey_group.command("show")
@journey_options
def show(ctx, service, month, snapshot, profile):
    """Show every step of a month's close (YYYY-MM)."""
    display_journey(service.refresh(month, snapshot, profile))


@journey_group.command("next")
@journey_options
def next_action(ctx, service, month, snapshot, profile):
    """Show the next step to work on."""
    state = service.refresh(month, snapshot, profile)
    step = service.get_next_action(state)
    if step is None:
        click.echo("No pending steps.")
        return
    click.echo(f"Next: {step.title} ({step.id})")


@journey_group.command("backup")
@click.option("--undo", is_flag=True, help="Mark the backup step as not done")
@journey_options
def backup(ctx, service, month, snapshot, profile, undo: bool):
    """Mark the backup step of a month as done."""
    try:
        service.set_backup_done(month, done=not undo, snapshot=snapshot)
    except DomainError as e:
        handle_domain_error(ctx, e)

    state = service.refresh(month, snapshot, profile)
    step = state.get_step("backup")
    if not undo and step is not None and step.status == StepStatus.BLOCKED:
        click.echo("Backup recorded; it stays blocked until the earlier steps are complete.")
    display_journey(state)


def register_commands(cli):
    """Register journey commands with main CLI."""
    cli.add_command(journey_group)
