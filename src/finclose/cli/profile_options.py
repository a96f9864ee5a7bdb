"""Shared options describing the active profile."""

from typing import Optional

import click

from finclose.domain.entities import FeatureFlags, Profile, TaxRegime

DEFAULT_PROFILE_ID = "default"

REGIME_CHOICE = click.Choice([regime.value for regime in TaxRegime], case_sensitive=False)


def build_profile(
    regime: Optional[str],
    tax_engine: Optional[bool] = None,
    journey: Optional[bool] = None,
) -> Profile:
    """Profile for one CLI invocation. Unset flags fall back to the environment."""
    return Profile(
        id=DEFAULT_PROFILE_ID,
        tax_regime=TaxRegime(regime.lower()) if regime else None,
        feature_flags=FeatureFlags(journey_enabled=journey, tax_engine_enabled=tax_engine),
    )


def regime_option(required: bool = False):
    return click.option(
        "--regime",
        type=REGIME_CHOICE,
        required=required,
        help="Tax regime of the profile",
    )


def tax_engine_option():
    return click.option(
        "--tax-engine/--no-tax-engine",
        default=None,
        help="Enable or disable the tax estimate (overrides FINCLOSE_TAX_ENGINE_ENABLED)",
    )


def format_money(amount) -> str:
    return f"${amount:,.2f}"
