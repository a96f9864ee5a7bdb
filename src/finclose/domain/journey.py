"""Monthly close journey.

Step statuses are derived from a monthly snapshot and the profile flags on
every evaluation; only the backup step is toggled by the user. Evaluation
never mutates its input: it returns a new ``JourneyState``.
"""

import dataclasses
import hashlib
from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from finclose.config import Settings, is_journey_enabled, is_tax_engine_enabled
from finclose.database.base import Database
from finclose.domain.entities import (
    JourneyState,
    JourneyStep,
    MonthlySnapshot,
    MonthlyStats,
    Profile,
    StepStatus,
)
from finclose.domain.errors import (
    NotFoundError,
    ValidationError,
    step_not_found,
    step_not_manual,
)

JOURNEY_ID = "monthly-close"

SELECT_MONTH = "select-month"
IMPORT_BANK = "import-bank"
IMPORT_INVOICE = "import-invoice"
CLASSIFY = "classify"
RECONCILE = "reconcile"
FISCAL_PREVIEW = "fiscal-preview"
BACKUP = "backup"

MANUAL_STEPS = frozenset({BACKUP})


class BackupPolicy(str, Enum):
    """What happens to a done backup step when the month's data changes.

    PERSIST keeps the user's toggle indefinitely. RESET_ON_DATA_CHANGE clears
    the toggle once the stats differ from those seen when the step was marked
    done. Either way the toggle is kept apart from the reported status, so a
    step blocked by earlier steps reports done again once they complete.
    """

    PERSIST = "persist"
    RESET_ON_DATA_CHANGE = "reset_on_data_change"


def journey_id(month: str) -> str:
    return f"{JOURNEY_ID}:{month}"


def create_initial_state(month: str) -> JourneyState:
    """Default step graph for a month, in dependency order."""
    return JourneyState(
        id=journey_id(month),
        month=month,
        updated_at=datetime.now(UTC),
        steps=(
            JourneyStep(SELECT_MONTH, "Select month", StepStatus.DONE),
            JourneyStep(IMPORT_BANK, "Import bank statements", StepStatus.PENDING),
            JourneyStep(IMPORT_INVOICE, "Import invoices", StepStatus.PENDING),
            JourneyStep(
                CLASSIFY,
                "Classify records",
                StepStatus.PENDING,
                blocked_by=(IMPORT_BANK, IMPORT_INVOICE),
            ),
            JourneyStep(RECONCILE, "Reconcile", StepStatus.PENDING, blocked_by=(CLASSIFY,)),
            JourneyStep(
                FISCAL_PREVIEW,
                "Review tax estimate",
                StepStatus.PENDING,
                blocked_by=(RECONCILE,),
            ),
            JourneyStep(
                BACKUP, "Export backup", StepStatus.PENDING, blocked_by=(FISCAL_PREVIEW,)
            ),
        ),
    )


def stats_fingerprint(stats: MonthlyStats) -> str:
    """Short stable digest of a month's stats."""
    return hashlib.sha256(repr(stats).encode("utf-8")).hexdigest()[:16]


def _done_if(condition: bool) -> StepStatus:
    return StepStatus.DONE if condition else StepStatus.PENDING


def derive_statuses(
    snapshot: MonthlySnapshot, tax_enabled: bool
) -> dict[str, StepStatus]:
    """Statuses of the derived steps, before the dependency pass."""
    stats = snapshot.stats
    has_bank = stats.sources_count.bank > 0
    has_invoice = stats.sources_count.invoice > 0

    if not tax_enabled:
        fiscal_status = StepStatus.BLOCKED
    else:
        tax_summary = snapshot.tax_summary
        fiscal_status = _done_if(tax_summary is not None and tax_summary.confidence > 0)

    return {
        SELECT_MONTH: StepStatus.DONE,
        IMPORT_BANK: _done_if(has_bank),
        IMPORT_INVOICE: _done_if(has_invoice),
        CLASSIFY: _done_if(
            stats.records_count > 0 and stats.unknown_classifications_count == 0
        ),
        RECONCILE: _done_if(has_bank and has_invoice and stats.reconcile_pending_count == 0),
        FISCAL_PREVIEW: fiscal_status,
    }


def evaluate(
    current_state: JourneyState,
    snapshot: MonthlySnapshot,
    profile: Optional[Profile],
    settings: Optional[Settings] = None,
    backup_policy: BackupPolicy = BackupPolicy.PERSIST,
) -> JourneyState:
    """Derive the journey state from a snapshot and the profile flags.

    Args:
        current_state: Previous state; only the step graph and the manual
            backup toggle are read from it
        snapshot: Monthly snapshot of the same month
        profile: Profile used for the tax flag
        settings: Process-wide defaults
        backup_policy: Policy for the manual backup step

    Returns:
        New JourneyState
    """
    settings = settings or Settings()
    tax_enabled = is_tax_engine_enabled(profile, settings)

    statuses = {step.id: step.status for step in current_state.steps}
    statuses.update(
        {
            step_id: status
            for step_id, status in derive_statuses(snapshot, tax_enabled).items()
            if step_id in statuses
        }
    )

    backup_done = current_state.backup_done
    fingerprint = current_state.backup_fingerprint
    if (
        backup_policy is BackupPolicy.RESET_ON_DATA_CHANGE
        and backup_done
        and fingerprint is not None
        and fingerprint != stats_fingerprint(snapshot.stats)
    ):
        backup_done = False
    if BACKUP in statuses:
        statuses[BACKUP] = _done_if(backup_done)

    # Dependency pass, in declared order so later steps see updated blockers
    for step in current_state.steps:
        if step.id == SELECT_MONTH or not step.blocked_by:
            continue
        blockers_done = all(
            statuses[blocker] == StepStatus.DONE
            for blocker in step.blocked_by
            if blocker in statuses
        )
        if not blockers_done:
            statuses[step.id] = StepStatus.BLOCKED
        elif statuses[step.id] == StepStatus.BLOCKED:
            if step.id == FISCAL_PREVIEW and not tax_enabled:
                continue
            statuses[step.id] = StepStatus.PENDING

    steps = tuple(dataclasses.replace(step, status=statuses[step.id]) for step in current_state.steps)
    if not backup_done:
        fingerprint = None

    return dataclasses.replace(
        current_state,
        steps=steps,
        updated_at=datetime.now(UTC),
        backup_done=backup_done,
        backup_fingerprint=fingerprint,
    )


def get_next_action(state: JourneyState) -> Optional[JourneyStep]:
    """First pending step in declared order, or None when nothing is pending."""
    for step in state.steps:
        if step.status == StepStatus.PENDING:
            return step
    return None


class JourneyService:
    """Service for evaluating and persisting monthly close journeys."""

    def __init__(
        self,
        db: Database,
        settings: Optional[Settings] = None,
        backup_policy: BackupPolicy = BackupPolicy.PERSIST,
    ):
        """Initialize journey service.

        Args:
            db: Database instance
            settings: Process-wide defaults
            backup_policy: Policy for the manual backup step
        """
        self.db = db
        self.settings = settings or Settings()
        self.backup_policy = backup_policy

    def is_enabled(self, profile: Optional[Profile] = None) -> bool:
        return is_journey_enabled(profile, self.settings)

    def evaluate(
        self,
        current_state: JourneyState,
        snapshot: MonthlySnapshot,
        profile: Optional[Profile] = None,
    ) -> JourneyState:
        """Derive the journey state. Does not persist anything."""
        return evaluate(current_state, snapshot, profile, self.settings, self.backup_policy)

    def get_next_action(self, state: JourneyState) -> Optional[JourneyStep]:
        return get_next_action(state)

    def get_or_create(self, month: str) -> JourneyState:
        """Get the persisted journey of a month, creating the default one."""
        state = self.db.get_journey(journey_id(month))
        if state is None:
            state = create_initial_state(month)
            self.db.save_journey(state)
        return state

    def refresh(
        self, month: str, snapshot: MonthlySnapshot, profile: Optional[Profile] = None
    ) -> JourneyState:
        """Evaluate the month's journey against a snapshot and persist it."""
        state = self.evaluate(self.get_or_create(month), snapshot, profile)
        self.db.save_journey(state)
        return state

    def set_step_done(
        self,
        month: str,
        step_id: str,
        done: bool = True,
        snapshot: Optional[MonthlySnapshot] = None,
    ) -> JourneyState:
        """Toggle a manual step.

        The toggle is remembered even while the step is blocked; the next
        evaluation reports it as blocked until its blockers are done.

        Args:
            month: Month key
            step_id: Step to toggle; only manual steps are accepted
            done: New value of the toggle
            snapshot: Current snapshot, recorded for the reset policy

        Returns:
            Updated JourneyState

        Raises:
            NotFoundError: If the step does not exist
            ValidationError: If the step is derived rather than manual
        """
        state = self.get_or_create(month)
        if state.get_step(step_id) is None:
            raise NotFoundError(step_not_found(step_id))
        if step_id not in MANUAL_STEPS:
            raise ValidationError(step_not_manual(step_id))

        status = StepStatus.DONE if done else StepStatus.PENDING
        steps = tuple(
            dataclasses.replace(step, status=status) if step.id == step_id else step
            for step in state.steps
        )
        fingerprint = None
        if done and snapshot is not None:
            fingerprint = stats_fingerprint(snapshot.stats)

        updated = dataclasses.replace(
            state,
            steps=steps,
            updated_at=datetime.now(UTC),
            backup_done=done,
            backup_fingerprint=fingerprint,
        )
        self.db.save_journey(updated)
        return updated

    def set_backup_done(
        self, month: str, done: bool = True, snapshot: Optional[MonthlySnapshot] = None
    ) -> JourneyState:
        return self.set_step_done(month, BACKUP, done, snapshot)
