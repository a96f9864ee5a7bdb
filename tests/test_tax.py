"""Tests for tax estimation."""

from datetime import date
from decimal import Decimal

import pytest

from finclose.config import Settings
from finclose.domain.entities import (
    FeatureFlags,
    Profile,
    RecordSource,
    RecordType,
    Taxability,
    TaxBracket,
    TaxRegime,
)
from finclose.domain.tax import (
    GENERAL_REGIME_WARNINGS,
    WARNING_DISABLED,
    WARNING_LOW_CONFIDENCE,
    WARNING_NO_RECORDS,
    WARNING_NO_REGIME,
    WARNING_UNKNOWN_TAXABILITY,
    GeneralRegimeStrategy,
    SimplifiedRegimeStrategy,
    TaxEstimator,
    calculate_confidence,
    lookup_rate,
)


def _income(make_record, amount, **kwargs):
    kwargs.setdefault("source", RecordSource.INVOICE)
    return make_record(amount=amount, type=RecordType.INCOME, **kwargs)


def test_simplified_single_bracket(make_record):
    estimator = TaxEstimator(
        Settings(tax_engine_enabled=True),
        strategies=[
            SimplifiedRegimeStrategy([TaxBracket(Decimal("25000"), Decimal("0.01"))])
        ],
    )

    estimate = estimator.estimate([_income(make_record, "15000")], TaxRegime.SIMPLIFIED)

    assert estimate.estimated_tax == Decimal("150.00")
    assert estimate.taxable_base == Decimal("15000")
    assert estimate.applied_rate == Decimal("0.01")
    assert estimate.regime == TaxRegime.SIMPLIFIED


@pytest.mark.parametrize(
    "base,rate",
    [
        ("25000", "0.0100"),
        ("25000.01", "0.0110"),
        ("83333.33", "0.0150"),
        ("200000", "0.0200"),
        ("9000000", "0.0250"),
    ],
)
def test_default_bracket_lookup(base, rate):
    from finclose.domain.tax import SIMPLIFIED_BRACKETS

    assert lookup_rate(Decimal(base), SIMPLIFIED_BRACKETS) == Decimal(rate)


def test_simplified_ignores_tax_source_income(tax_estimator, make_record):
    records = [
        _income(make_record, "10000"),
        _income(make_record, "5000", source=RecordSource.TAX),
    ]

    estimate = tax_estimator.estimate(records, TaxRegime.SIMPLIFIED)

    assert estimate.income == Decimal("10000")
    assert estimate.estimated_tax == Decimal("100.00")


def test_general_regime_subtracts_deductible_expenses(tax_estimator, make_record):
    records = [
        _income(make_record, "50000"),
        make_record(amount="10000", taxability=Taxability.DEDUCTIBLE, source=RecordSource.BANK),
        make_record(amount="5000", taxability=Taxability.NON_DEDUCTIBLE, source=RecordSource.BANK),
    ]

    estimate = tax_estimator.estimate(records, TaxRegime.GENERAL)

    assert estimate.deductible_expenses == Decimal("10000")
    assert estimate.taxable_base == Decimal("40000")
    assert estimate.estimated_tax == Decimal("12000.00")
    for warning in GENERAL_REGIME_WARNINGS:
        assert warning in estimate.warnings


def test_general_regime_base_never_negative(tax_estimator, make_record):
    records = [
        _income(make_record, "1000"),
        make_record(amount="5000", taxability=Taxability.DEDUCTIBLE, source=RecordSource.BANK),
    ]

    estimate = tax_estimator.estimate(records, "general")

    assert estimate.taxable_base == Decimal("0")
    assert estimate.estimated_tax == Decimal("0.00")


def test_disabled_returns_zeroed_result():
    estimator = TaxEstimator(Settings(tax_engine_enabled=False))

    estimate = estimator.estimate([], TaxRegime.SIMPLIFIED)

    assert not estimate.enabled
    assert estimate.estimated_tax == Decimal("0")
    assert estimate.warnings == (WARNING_DISABLED,)


def test_profile_flag_enables_estimator():
    estimator = TaxEstimator(Settings(tax_engine_enabled=False))
    profile = Profile(id="p", feature_flags=FeatureFlags(tax_engine_enabled=True))

    assert estimator.is_enabled(profile)
    assert estimator.estimate([], TaxRegime.SIMPLIFIED, profile).enabled


def test_no_records_is_fully_confident(tax_estimator):
    estimate = tax_estimator.estimate([], TaxRegime.SIMPLIFIED)

    assert estimate.confidence == 1.0
    assert estimate.warnings == (WARNING_NO_RECORDS,)


def test_missing_regime(tax_estimator, make_record):
    estimate = tax_estimator.estimate([_income(make_record, "100")], None)

    assert estimate.confidence == 0.0
    assert estimate.warnings == (WARNING_NO_REGIME,)


def test_unsupported_regime_is_a_warning(tax_estimator, make_record):
    estimate = tax_estimator.estimate([_income(make_record, "100")], "flat-tax")

    assert estimate.estimated_tax == Decimal("0")
    assert any("flat-tax" in warning for warning in estimate.warnings)


def test_low_confidence_warnings(tax_estimator, make_record):
    records = [
        make_record(amount="100", taxability=Taxability.UNKNOWN, source=RecordSource.MANUAL),
        make_record(amount="100", taxability=Taxability.UNKNOWN, source=RecordSource.MANUAL),
    ]

    estimate = tax_estimator.estimate(records, TaxRegime.SIMPLIFIED)

    assert estimate.confidence == 0.0
    assert WARNING_LOW_CONFIDENCE in estimate.warnings
    assert WARNING_UNKNOWN_TAXABILITY in estimate.warnings


def test_confidence_weights(make_record):
    classified_bank = make_record(source=RecordSource.BANK)
    classified_manual = make_record(source=RecordSource.MANUAL)
    unknown_bank = make_record(source=RecordSource.BANK, taxability=Taxability.UNKNOWN)

    assert calculate_confidence([classified_bank]) == 1.0
    assert calculate_confidence([classified_manual]) == 0.6
    assert calculate_confidence([unknown_bank]) == 0.4


def test_confidence_never_increases_with_more_uncertain_records(make_record):
    good = [make_record(source=RecordSource.BANK) for _ in range(4)]
    uncertain = make_record(source=RecordSource.MANUAL, taxability=Taxability.UNKNOWN)

    scores = [calculate_confidence(good + [uncertain] * n) for n in range(6)]

    assert all(0.0 <= score <= 1.0 for score in scores)
    assert scores == sorted(scores, reverse=True)


def test_estimate_month_filters_records(tax_estimator, make_record):
    records = [
        _income(make_record, "1000", record_date=date(2024, 3, 1)),
        _income(make_record, "9000", record_date=date(2024, 4, 1)),
    ]
    profile = Profile(id="p", tax_regime=TaxRegime.SIMPLIFIED)

    estimate = tax_estimator.estimate_month("2024-03", records, profile)

    assert estimate.income == Decimal("1000")


def test_register_replaces_strategy(tax_estimator, make_record):
    tax_estimator.register(TaxRegime.GENERAL, GeneralRegimeStrategy(Decimal("0.10")))

    estimate = tax_estimator.estimate([_income(make_record, "1000")], TaxRegime.GENERAL)

    assert estimate.estimated_tax == Decimal("100.00")
