"""Domain model entities for finclose.

These are pure data classes representing business concepts, independent of
database schema. Every source (bank statement, tax document, manual entry,
tax payment) ends up as a FinancialRecord; everything else here is either
derived from those records or consumed from the outside (profiles, flags).
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class RecordType(str, Enum):
    """Direction of money for a financial record."""

    INCOME = "income"
    EXPENSE = "expense"
    TAX = "tax"


class RecordSource(str, Enum):
    """Origin classification of a financial record."""

    BANK = "bank"
    INVOICE = "invoice"
    MANUAL = "manual"
    TAX = "tax"


class Taxability(str, Enum):
    """Tax classification of a financial record."""

    DEDUCTIBLE = "deductible"
    NON_DEDUCTIBLE = "non_deductible"
    UNKNOWN = "unknown"


class StepStatus(str, Enum):
    """Status of a journey step."""

    PENDING = "pending"
    DONE = "done"
    BLOCKED = "blocked"


class TaxRegime(str, Enum):
    """Declared tax regime of a profile."""

    SIMPLIFIED = "simplified"
    GENERAL = "general"


@dataclass(frozen=True)
class RecordLinks:
    """Cross-references to the documents a record came from.

    Used as dedup and reconciliation keys.
    """

    invoice_id: Optional[str] = None
    document_uuid: Optional[str] = None
    bank_movement_id: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.invoice_id or self.document_uuid or self.bank_movement_id)


@dataclass(frozen=True)
class FinancialRecord:
    """Canonical financial record, the single unit of financial fact."""

    id: str
    date: date
    concept: str
    amount: Decimal
    type: RecordType
    source: RecordSource
    taxability: Taxability
    created_at: datetime
    updated_at: datetime
    links: RecordLinks = field(default_factory=RecordLinks)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MigrationStatus:
    """Persisted completion flag of the legacy migration."""

    complete: bool
    completed_at: Optional[datetime] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class SourceCounts:
    """Number of records per source."""

    bank: int = 0
    invoice: int = 0
    manual: int = 0
    tax: int = 0


@dataclass(frozen=True)
class MonthlyStats:
    """Totals and counts for one month of records."""

    income_total: Decimal
    expense_total: Decimal
    tax_total: Decimal
    deductible_total: Decimal
    non_deductible_total: Decimal
    unknown_classifications_count: int
    sources_count: SourceCounts
    records_count: int
    reconcile_pending_count: int = 0


@dataclass(frozen=True)
class MonthlySignals:
    """Readiness signals derived from monthly stats."""

    needs_bank_import: bool
    needs_invoice_import: bool
    needs_classification: bool
    needs_reconciliation: bool


@dataclass(frozen=True)
class TaxSummary:
    """Condensed tax estimate attached to a monthly snapshot."""

    taxable_base: Decimal
    estimated_tax: Decimal
    confidence: float
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class MonthlySnapshot:
    """Derived, recomputable summary of one month. Never the source of truth."""

    month: str
    stats: MonthlyStats
    signals: MonthlySignals
    last_updated_at: datetime
    tax_summary: Optional[TaxSummary] = None


@dataclass(frozen=True)
class JourneyStep:
    """One step of the monthly close journey."""

    id: str
    title: str
    status: StepStatus
    blocked_by: tuple[str, ...] = ()


@dataclass(frozen=True)
class JourneyState:
    """State of the monthly close journey for one month.

    ``backup_done`` is the user's backup toggle, kept apart from the step
    status so it survives the step being blocked. ``backup_fingerprint``
    holds the stats fingerprint captured when the toggle was set.
    """

    id: str
    month: str
    steps: tuple[JourneyStep, ...]
    updated_at: Optional[datetime] = None
    backup_done: bool = False
    backup_fingerprint: Optional[str] = None

    def get_step(self, step_id: str) -> Optional[JourneyStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


@dataclass(frozen=True)
class FeatureFlags:
    """Feature flag values. ``None`` means "not set here"."""

    journey_enabled: Optional[bool] = None
    tax_engine_enabled: Optional[bool] = None


@dataclass(frozen=True)
class Profile:
    """Profile as exposed by the profile switcher."""

    id: str
    tax_regime: Optional[TaxRegime] = None
    feature_flags: Optional[FeatureFlags] = None


@dataclass(frozen=True)
class TaxBracket:
    """Row of an ascending bracket table."""

    upper_limit: Decimal
    rate: Decimal


@dataclass(frozen=True)
class TaxEstimate:
    """Result of a tax estimation."""

    income: Decimal
    deductible_expenses: Decimal
    taxable_base: Decimal
    estimated_tax: Decimal
    confidence: float
    warnings: tuple[str, ...] = ()
    applied_rate: Optional[Decimal] = None
    regime: Optional[TaxRegime] = None
    method: Optional[str] = None
    enabled: bool = True

    def to_summary(self) -> TaxSummary:
        return TaxSummary(
            taxable_base=self.taxable_base,
            estimated_tax=self.estimated_tax,
            confidence=self.confidence,
            warnings=self.warnings,
        )


@dataclass(frozen=True)
class LegacyRecord:
    """Append-only legacy snapshot written by a pre-canonical tool."""

    id: str
    source_key: str
    created_at: datetime
    payload: Any
