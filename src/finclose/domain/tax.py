"""Regime-based tax estimation.

Estimates only: none of the strategies try to be regulatory-exact. Any
uncertainty is reported through the confidence score and warning strings,
never through exceptions. A disabled estimator returns a zeroed result with
a warning, which callers must treat as a normal outcome.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from finclose.config import Settings, is_tax_engine_enabled
from finclose.domain.entities import (
    FinancialRecord,
    Profile,
    RecordSource,
    RecordType,
    TaxBracket,
    TaxEstimate,
    TaxRegime,
    Taxability,
)
from finclose.logging_config import get_logger
from finclose.utils.date_parser import record_month_key

logger = get_logger("domain.tax")

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Monthly brackets of the simplified individual regime, ascending by limit
SIMPLIFIED_BRACKETS: tuple[TaxBracket, ...] = (
    TaxBracket(upper_limit=Decimal("25000.00"), rate=Decimal("0.0100")),
    TaxBracket(upper_limit=Decimal("50000.00"), rate=Decimal("0.0110")),
    TaxBracket(upper_limit=Decimal("83333.33"), rate=Decimal("0.0150")),
    TaxBracket(upper_limit=Decimal("208333.33"), rate=Decimal("0.0200")),
    TaxBracket(upper_limit=Decimal("3500000.00"), rate=Decimal("0.0250")),
)
GENERAL_ESTIMATED_RATE = Decimal("0.30")

LOW_CONFIDENCE_THRESHOLD = 0.7
CLASSIFICATION_WEIGHT = 0.6
SOURCE_WEIGHT = 0.4
VERIFIED_SOURCES = frozenset({RecordSource.BANK, RecordSource.INVOICE, RecordSource.TAX})

WARNING_DISABLED = "Tax estimation is disabled for this profile."
WARNING_NO_RECORDS = "No records for the selected period."
WARNING_NO_REGIME = "The profile has no tax regime configured."
WARNING_LOW_CONFIDENCE = (
    "Low confidence estimate: review unclassified or manually entered records."
)
WARNING_UNKNOWN_TAXABILITY = (
    "Some records have unknown taxability; the estimate may be inaccurate."
)
GENERAL_REGIME_WARNINGS = (
    "Unofficial estimate for the general regime.",
    "Does not consider prior-period losses, profit-coefficient provisional payments "
    "or the annual adjustment.",
)


def unsupported_regime(regime: object) -> str:
    """Return warning for a regime without a strategy."""
    return f"Tax regime not supported: {regime}"


def lookup_rate(base: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Rate of the first bracket whose upper limit covers base.

    Bases above every bracket use the top bracket's rate.
    """
    for bracket in brackets:
        if base <= bracket.upper_limit:
            return bracket.rate
    return brackets[-1].rate


def calculate_confidence(records: Sequence[FinancialRecord]) -> float:
    """Weighted share of classified and verified-source records, 0.0 to 1.0."""
    if not records:
        return 1.0
    total = len(records)
    classified = sum(1 for r in records if r.taxability != Taxability.UNKNOWN)
    verified = sum(1 for r in records if r.source in VERIFIED_SOURCES)
    score = (classified / total) * CLASSIFICATION_WEIGHT + (verified / total) * SOURCE_WEIGHT
    return round(min(max(score, 0.0), 1.0), 2)


def sum_income(records: Iterable[FinancialRecord]) -> Decimal:
    """Income excluding anything that came from tax records."""
    return sum(
        (r.amount for r in records if r.type == RecordType.INCOME and r.source != RecordSource.TAX),
        ZERO,
    )


def sum_deductible_expenses(records: Iterable[FinancialRecord]) -> Decimal:
    return sum(
        (
            r.amount
            for r in records
            if r.type == RecordType.EXPENSE and r.taxability == Taxability.DEDUCTIBLE
        ),
        ZERO,
    )


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RegimeComputation:
    """Figures produced by a regime strategy."""

    income: Decimal
    deductible_expenses: Decimal
    taxable_base: Decimal
    estimated_tax: Decimal
    applied_rate: Decimal
    warnings: tuple[str, ...] = ()


class RegimeStrategy(ABC):
    """Tax computation for one regime."""

    regime: TaxRegime
    method: str

    @abstractmethod
    def compute(self, records: Sequence[FinancialRecord]) -> RegimeComputation:
        """Compute base, rate and tax for already-filtered records."""
        pass


class SimplifiedRegimeStrategy(RegimeStrategy):
    """Simplified individual regime: gross income times a bracket rate."""

    regime = TaxRegime.SIMPLIFIED
    method = "income * bracket rate"

    def __init__(self, brackets: Sequence[TaxBracket] = SIMPLIFIED_BRACKETS):
        if not brackets:
            raise ValueError("Bracket table must not be empty")
        self.brackets = tuple(sorted(brackets, key=lambda b: b.upper_limit))

    def compute(self, records: Sequence[FinancialRecord]) -> RegimeComputation:
        income = sum_income(records)
        rate = lookup_rate(income, self.brackets)
        return RegimeComputation(
            income=income,
            deductible_expenses=ZERO,
            taxable_base=income,
            estimated_tax=_money(income * rate),
            applied_rate=rate,
        )


class GeneralRegimeStrategy(RegimeStrategy):
    """Corporate/general regime: (income - deductible expenses) times a fixed rate."""

    regime = TaxRegime.GENERAL
    method = "(income - deductible expenses) * estimated rate"

    def __init__(self, rate: Decimal = GENERAL_ESTIMATED_RATE):
        self.rate = rate

    def compute(self, records: Sequence[FinancialRecord]) -> RegimeComputation:
        income = sum_income(records)
        deductible = sum_deductible_expenses(records)
        base = max(ZERO, income - deductible)
        return RegimeComputation(
            income=income,
            deductible_expenses=deductible,
            taxable_base=base,
            estimated_tax=_money(base * self.rate),
            applied_rate=self.rate,
            warnings=GENERAL_REGIME_WARNINGS,
        )


def _zeroed(
    warnings: tuple[str, ...],
    confidence: float,
    regime: Optional[TaxRegime] = None,
    enabled: bool = True,
) -> TaxEstimate:
    return TaxEstimate(
        income=ZERO,
        deductible_expenses=ZERO,
        taxable_base=ZERO,
        estimated_tax=ZERO,
        confidence=confidence,
        warnings=warnings,
        regime=regime,
        enabled=enabled,
    )


class TaxEstimator:
    """Service estimating taxes for a set of canonical records."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        strategies: Optional[Iterable[RegimeStrategy]] = None,
    ):
        """Initialize tax estimator.

        Args:
            settings: Process-wide defaults, used for the feature flag
            strategies: Regime strategies. Defaults to simplified and general
        """
        self.settings = settings or Settings()
        if strategies is None:
            strategies = (SimplifiedRegimeStrategy(), GeneralRegimeStrategy())
        self._strategies: dict[TaxRegime, RegimeStrategy] = {}
        for strategy in strategies:
            self.register(strategy.regime, strategy)

    def register(self, regime: TaxRegime, strategy: RegimeStrategy) -> None:
        """Register (or replace) the strategy of a regime."""
        self._strategies[regime] = strategy

    def is_enabled(self, profile: Optional[Profile] = None) -> bool:
        return is_tax_engine_enabled(profile, self.settings)

    def estimate(
        self,
        records: Sequence[FinancialRecord],
        regime: Optional[TaxRegime | str],
        profile: Optional[Profile] = None,
    ) -> TaxEstimate:
        """Estimate taxes for records under a regime.

        Args:
            records: Records of the period (already filtered)
            regime: Tax regime, or None when the profile has none
            profile: Profile used for flag resolution

        Returns:
            TaxEstimate. Disabled, empty or misconfigured inputs yield a
            zeroed estimate with warnings.
        """
        if not self.is_enabled(profile):
            logger.warning(
                "tax_engine_disabled",
                extra={"profile_id": profile.id if profile is not None else None},
            )
            return _zeroed((WARNING_DISABLED,), confidence=0.0, enabled=False)

        if not records:
            return _zeroed((WARNING_NO_RECORDS,), confidence=1.0)

        if regime is None:
            return _zeroed((WARNING_NO_REGIME,), confidence=0.0)

        confidence = calculate_confidence(records)
        warnings: list[str] = []
        if confidence < LOW_CONFIDENCE_THRESHOLD:
            warnings.append(WARNING_LOW_CONFIDENCE)
        if any(r.taxability == Taxability.UNKNOWN for r in records):
            warnings.append(WARNING_UNKNOWN_TAXABILITY)

        strategy = self._strategy_for(regime)
        if strategy is None:
            warnings.append(unsupported_regime(getattr(regime, "value", regime)))
            return _zeroed(tuple(warnings), confidence=confidence)

        computed = strategy.compute(records)
        return TaxEstimate(
            income=computed.income,
            deductible_expenses=computed.deductible_expenses,
            taxable_base=computed.taxable_base,
            estimated_tax=computed.estimated_tax,
            confidence=confidence,
            warnings=tuple(warnings) + computed.warnings,
            applied_rate=computed.applied_rate,
            regime=strategy.regime,
            method=strategy.method,
        )

    def estimate_month(
        self, month: str, records: Sequence[FinancialRecord], profile: Profile
    ) -> TaxEstimate:
        """Estimate taxes for one month of records under the profile's regime."""
        month_records = [r for r in records if record_month_key(r) == month]
        return self.estimate(month_records, profile.tax_regime, profile)

    def _strategy_for(self, regime: TaxRegime | str) -> Optional[RegimeStrategy]:
        if not isinstance(regime, TaxRegime):
            try:
                regime = TaxRegime(str(regime).strip().lower())
            except ValueError:
                return None
        return self._strategies.get(regime)
