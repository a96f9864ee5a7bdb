"""Tests for monthly aggregation."""

from datetime import date
from decimal import Decimal

from finclose.config import Settings
from finclose.domain.entities import (
    FeatureFlags,
    Profile,
    RecordSource,
    RecordType,
    Taxability,
    TaxRegime,
)
from finclose.domain.summary import MonthlyAggregator


def _month_records(make_record):
    return [
        make_record(record_date=date(2024, 3, 1), amount="15000", type=RecordType.INCOME,
                    source=RecordSource.INVOICE),
        make_record(record_date=date(2024, 3, 5), amount="1200", source=RecordSource.BANK),
        make_record(record_date=date(2024, 3, 9), amount="300.50",
                    taxability=Taxability.NON_DEDUCTIBLE),
        make_record(record_date=date(2024, 3, 20), amount="80", taxability=Taxability.UNKNOWN,
                    source=RecordSource.BANK),
        make_record(record_date=date(2024, 3, 17), amount="2500", type=RecordType.TAX,
                    source=RecordSource.TAX),
        # Other months
        make_record(record_date=date(2024, 2, 29), amount="999"),
        make_record(record_date=date(2024, 4, 1), amount="999", type=RecordType.INCOME),
    ]


def test_totals_only_include_the_month(aggregator, make_record):
    records = _month_records(make_record)
    expected = [r for r in records if r.date.strftime("%Y-%m") == "2024-03"]

    stats = aggregator.get_snapshot("2024-03", records).stats

    assert stats.records_count == len(expected)
    assert stats.income_total == sum(
        (r.amount for r in expected if r.type == RecordType.INCOME), Decimal("0")
    )
    assert stats.expense_total == Decimal("1580.50")
    assert stats.tax_total == Decimal("2500")
    assert stats.deductible_total == Decimal("1200")
    assert stats.non_deductible_total == Decimal("300.50")
    assert stats.unknown_classifications_count == 1


def test_source_counts(aggregator, make_record):
    stats = aggregator.get_snapshot("2024-03", _month_records(make_record)).stats

    assert stats.sources_count.bank == 2
    assert stats.sources_count.invoice == 1
    assert stats.sources_count.manual == 1
    assert stats.sources_count.tax == 1
    assert stats.reconcile_pending_count == 0


def test_signals(aggregator, make_record):
    signals = aggregator.get_snapshot("2024-03", _month_records(make_record)).signals
    assert not signals.needs_bank_import
    assert not signals.needs_invoice_import
    assert signals.needs_classification
    assert not signals.needs_reconciliation

    empty = aggregator.get_snapshot("2023-01", []).signals
    assert empty.needs_bank_import
    assert empty.needs_invoice_import
    assert not empty.needs_classification


def test_empty_month_has_zero_stats(aggregator):
    snapshot = aggregator.get_snapshot("2024-05", [])

    assert snapshot.month == "2024-05"
    assert snapshot.stats.records_count == 0
    assert snapshot.stats.income_total == Decimal("0")
    assert snapshot.last_updated_at.tzinfo is not None


def test_tax_summary_only_when_engine_enabled(make_record):
    records = _month_records(make_record)
    profile = Profile(id="p", tax_regime=TaxRegime.SIMPLIFIED)

    disabled = MonthlyAggregator(Settings()).get_snapshot("2024-03", records, profile)
    assert disabled.tax_summary is None

    enabled = MonthlyAggregator(Settings(tax_engine_enabled=True)).get_snapshot(
        "2024-03", records, profile
    )
    assert enabled.tax_summary is not None
    assert enabled.tax_summary.taxable_base == Decimal("15000")


def test_profile_flag_overrides_default(make_record):
    profile = Profile(
        id="p",
        tax_regime=TaxRegime.GENERAL,
        feature_flags=FeatureFlags(tax_engine_enabled=False),
    )
    aggregator = MonthlyAggregator(Settings(tax_engine_enabled=True))

    snapshot = aggregator.get_snapshot("2024-03", _month_records(make_record), profile)

    assert snapshot.tax_summary is None


def test_group_by_month_and_activity(aggregator, make_record):
    records = _month_records(make_record)

    groups = aggregator.group_by_month(records)

    assert set(groups) == {"2024-02", "2024-03", "2024-04"}
    assert len(groups["2024-03"]) == 5
    assert aggregator.months_with_activity(records) == ["2024-04", "2024-03", "2024-02"]


def test_monthly_records_accepts_legacy_mappings(aggregator):
    legacy = [
        {"fecha": "2024-03-02T10:00:00Z"},
        {"invoiceDate": "2024-03-15"},
        {"date": "2024-04-01"},
        {"date": "garbage"},
        {},
    ]

    assert len(aggregator.monthly_records(legacy, "2024-03")) == 2
