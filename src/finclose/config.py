"""Process-wide configuration and feature flag resolution."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from finclose.domain.entities import FeatureFlags, Profile

JOURNEY_ENABLED_ENV = "FINCLOSE_JOURNEY_ENABLED"
TAX_ENGINE_ENABLED_ENV = "FINCLOSE_TAX_ENGINE_ENABLED"
LEGACY_READONLY_ENV = "FINCLOSE_LEGACY_READONLY"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    """Process-wide defaults.

    Attributes:
        journey_enabled: Default for the monthly close journey
        tax_engine_enabled: Default for the tax estimator
        legacy_readonly: If True, appends to the legacy store are refused
    """

    journey_enabled: bool = False
    tax_engine_enabled: bool = False
    legacy_readonly: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ

        Returns:
            Settings instance
        """
        if environ is None:
            environ = os.environ
        return cls(
            journey_enabled=_env_flag(environ, JOURNEY_ENABLED_ENV, False),
            tax_engine_enabled=_env_flag(environ, TAX_ENGINE_ENABLED_ENV, False),
            legacy_readonly=_env_flag(environ, LEGACY_READONLY_ENV, True),
        )


def resolve_flag(profile: Optional[Profile], name: str, settings: Settings) -> bool:
    """Resolve a feature flag for a profile.

    A value set on the profile wins over the process-wide default.

    Args:
        profile: Profile to check, or None
        name: Flag name ("journey_enabled" or "tax_engine_enabled")
        settings: Process-wide defaults

    Returns:
        Effective flag value
    """
    if name not in {"journey_enabled", "tax_engine_enabled"}:
        raise ValueError(f"Unknown feature flag '{name}'")

    flags: Optional[FeatureFlags] = profile.feature_flags if profile is not None else None
    if flags is not None:
        value = getattr(flags, name)
        if value is not None:
            return value
    return getattr(settings, name)


def is_journey_enabled(profile: Optional[Profile], settings: Settings) -> bool:
    return resolve_flag(profile, "journey_enabled", settings)


def is_tax_engine_enabled(profile: Optional[Profile], settings: Settings) -> bool:
    return resolve_flag(profile, "tax_engine_enabled", settings)
