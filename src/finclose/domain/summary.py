"""Monthly aggregation domain service."""

from collections import defaultdict
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional, Sequence

from finclose.config import Settings
from finclose.domain.entities import (
    FinancialRecord,
    MonthlySignals,
    MonthlySnapshot,
    MonthlyStats,
    Profile,
    RecordSource,
    RecordType,
    SourceCounts,
    Taxability,
    TaxSummary,
)
from finclose.domain.tax import TaxEstimator
from finclose.utils.date_parser import record_month_key


class MonthlyAggregator:
    """Service computing read-only monthly snapshots from canonical records."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        tax_estimator: Optional[TaxEstimator] = None,
    ):
        """Initialize monthly aggregator.

        Args:
            settings: Process-wide defaults
            tax_estimator: Estimator used for the optional tax summary
        """
        self.settings = settings or Settings()
        self.tax_estimator = tax_estimator or TaxEstimator(self.settings)

    def get_snapshot(
        self,
        month: str,
        records: Sequence[FinancialRecord],
        profile: Optional[Profile] = None,
    ) -> MonthlySnapshot:
        """Build the snapshot of one month.

        Args:
            month: Month key (YYYY-MM)
            records: Full canonical record set; filtering happens here
            profile: Optional profile, used for the tax flag and regime

        Returns:
            MonthlySnapshot for the month
        """
        month_records = self.monthly_records(records, month)
        stats = self.compute_stats(month_records)
        signals = self.compute_signals(stats)

        tax_summary: Optional[TaxSummary] = None
        if self.tax_estimator.is_enabled(profile):
            regime = profile.tax_regime if profile is not None else None
            estimate = self.tax_estimator.estimate(month_records, regime, profile)
            tax_summary = estimate.to_summary()

        return MonthlySnapshot(
            month=month,
            stats=stats,
            signals=signals,
            tax_summary=tax_summary,
            last_updated_at=datetime.now(UTC),
        )

    def monthly_records(
        self, records: Sequence[FinancialRecord], month: str
    ) -> list[FinancialRecord]:
        """Records whose date falls in month. Unparseable dates are excluded."""
        return [r for r in records if record_month_key(r) == month]

    def compute_stats(self, records: Sequence[FinancialRecord]) -> MonthlyStats:
        """Totals by type and taxability, plus per-source counts."""
        totals: dict[RecordType, Decimal] = defaultdict(Decimal)
        deductible_total = Decimal("0")
        non_deductible_total = Decimal("0")
        unknown_count = 0
        sources: dict[str, int] = defaultdict(int)

        for record in records:
            totals[record.type] += record.amount

            if record.taxability == Taxability.UNKNOWN:
                unknown_count += 1
            if record.type == RecordType.EXPENSE:
                if record.taxability == Taxability.DEDUCTIBLE:
                    deductible_total += record.amount
                elif record.taxability == Taxability.NON_DEDUCTIBLE:
                    non_deductible_total += record.amount

            # Anything that is not bank, invoice or tax counts as manual
            if record.source in (RecordSource.BANK, RecordSource.INVOICE, RecordSource.TAX):
                sources[record.source.value] += 1
            else:
                sources[RecordSource.MANUAL.value] += 1

        return MonthlyStats(
            income_total=totals[RecordType.INCOME],
            expense_total=totals[RecordType.EXPENSE],
            tax_total=totals[RecordType.TAX],
            deductible_total=deductible_total,
            non_deductible_total=non_deductible_total,
            unknown_classifications_count=unknown_count,
            sources_count=SourceCounts(
                bank=sources["bank"],
                invoice=sources["invoice"],
                manual=sources["manual"],
                tax=sources["tax"],
            ),
            records_count=len(records),
            # Bank-to-invoice matching does not exist yet
            reconcile_pending_count=0,
        )

    def compute_signals(self, stats: MonthlyStats) -> MonthlySignals:
        """Readiness signals derived from stats."""
        return MonthlySignals(
            needs_bank_import=stats.sources_count.bank == 0,
            needs_invoice_import=stats.sources_count.invoice == 0,
            needs_classification=stats.unknown_classifications_count > 0,
            # Reserved for bank-to-invoice matching
            needs_reconciliation=False,
        )

    def group_by_month(
        self, records: Sequence[FinancialRecord]
    ) -> dict[str, list[FinancialRecord]]:
        """Group records by YYYY-MM. Records without a usable date are dropped."""
        period_records: dict[str, list[FinancialRecord]] = defaultdict(list)
        for record in records:
            period_key = record_month_key(record)
            if period_key is not None:
                period_records[period_key].append(record)
        return dict(period_records)

    def months_with_activity(self, records: Sequence[FinancialRecord]) -> list[str]:
        """Month keys that have at least one record, newest first."""
        return sorted(self.group_by_month(records).keys(), reverse=True)
