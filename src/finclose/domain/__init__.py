"""Domain layer for finclose application."""

# Services are resolved lazily: utils imports domain.errors, and the
# services import utils.
_EXPORTS = {
    "normalize": "finclose.domain.normalizer",
    "MigrationService": "finclose.domain.migration",
    "MigrationRegistry": "finclose.domain.migration",
    "MonthlyAggregator": "finclose.domain.summary",
    "TaxEstimator": "finclose.domain.tax",
    "JourneyService": "finclose.domain.journey",
}

__all__ = list(_EXPORTS)


def __getattr__(name):
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    import importlib

    return getattr(importlib.import_module(module_name), name)
