"""One-time consolidation of legacy per-tool data into the canonical store.

Each legacy source declares how its payload is unwrapped and how its items
are normalized (``LEGACY_SOURCES``). A run picks the latest snapshot of
every source, normalizes the items, deduplicates them against each other
and against the canonical store, upserts the survivors in one batch and only
then marks the migration complete. A failed run leaves the status untouched
and is retried from scratch on the next start.
"""

import dataclasses
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional

from finclose.database.base import Database, Document
from finclose.domain.entities import (
    FinancialRecord,
    LegacyRecord,
    MigrationStatus,
    RecordSource,
    RecordType,
)
from finclose.domain.errors import MigrationError, migration_failed
from finclose.domain.normalizer import InputKind, NormalizationContext, normalize
from finclose.logging_config import get_logger

logger = get_logger("domain.migration")

MIGRATION_STATUS_KEY = "system:migration"
RESTORE_SOURCE = "restore"

Extractor = Callable[[Any], list[Any]]
ItemAdapter = Callable[[Mapping[str, Any]], Mapping[str, Any]]


def wrapped_list(*field_names: str) -> Extractor:
    """Build an extractor for a bare list or a list wrapped under one of field_names.

    Field names are tried in order; the first one holding a list wins.
    """

    def extract(payload: Any) -> list[Any]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, Mapping):
            for name in field_names:
                value = payload.get(name)
                if isinstance(value, list):
                    return value
        return []

    return extract


def _same_item(item: Mapping[str, Any]) -> Mapping[str, Any]:
    return item


_LEGACY_INCOME_TYPES = {"ingreso": "income", "gasto": "expense", "impuesto": "tax"}


def adapt_income_item(item: Mapping[str, Any]) -> Mapping[str, Any]:
    """Translate income-manager field names to the generic shape."""
    adapted = dict(item)
    for old, new in (("fecha", "date"), ("monto", "amount"), ("concepto", "concept")):
        if old in adapted and new not in adapted:
            adapted[new] = adapted.pop(old)
    legacy_type = adapted.pop("tipo", None)
    record_type = adapted.get("type", legacy_type)
    if isinstance(record_type, str):
        adapted["type"] = _LEGACY_INCOME_TYPES.get(record_type.lower(), record_type)
    if "origen" in adapted and "source" not in adapted:
        adapted["source"] = adapted.pop("origen")
    if adapted.get("source") == "cfdi":
        adapted["source"] = RecordSource.INVOICE.value
    return adapted


def adapt_tax_payment(item: Mapping[str, Any]) -> Mapping[str, Any]:
    """Tax payments carry their own "type" (e.g. "ISR") which is not a record type."""
    adapted = dict(item)
    adapted["tax_kind"] = adapted.pop("type", None)
    adapted["type"] = RecordType.TAX.value
    adapted["source"] = RecordSource.TAX.value
    metadata = adapted.get("metadata")
    adapted["metadata"] = {
        **(metadata if isinstance(metadata, Mapping) else {}),
        "tax_kind": adapted["tax_kind"],
        "status": adapted.get("status"),
    }
    return adapted


@dataclass(frozen=True)
class LegacySource:
    """How one legacy tool's snapshots become canonical records."""

    key: str
    extract: Extractor
    context: NormalizationContext
    adapt: ItemAdapter = _same_item


@dataclass(frozen=True)
class SideCollection:
    """Legacy snapshot field consolidated into a canonical side collection."""

    source_key: str
    extract: Extractor
    collection: str


LEGACY_SOURCES: tuple[LegacySource, ...] = (
    LegacySource(
        key="income-manager",
        extract=wrapped_list("incomes", "ingresos", "items"),
        context=NormalizationContext(kind=InputKind.MANUAL),
        adapt=adapt_income_item,
    ),
    LegacySource(
        key="invoice-manager",
        extract=wrapped_list("invoices", "facturas", "items"),
        # The legacy invoice tool only held issued invoices
        context=NormalizationContext(kind=InputKind.INVOICE, default_type=RecordType.INCOME),
    ),
    LegacySource(
        key="tax-tracker",
        extract=wrapped_list("payments", "items"),
        context=NormalizationContext(
            kind=InputKind.MANUAL,
            default_type=RecordType.TAX,
            default_source=RecordSource.TAX,
        ),
        adapt=adapt_tax_payment,
    ),
    LegacySource(
        key="bank-movements",
        extract=wrapped_list("movements", "items"),
        context=NormalizationContext(kind=InputKind.BANK),
    ),
)

SIDE_COLLECTIONS: tuple[SideCollection, ...] = (
    SideCollection("invoice-manager", wrapped_list("invoices", "facturas"), "invoices"),
    SideCollection("invoice-manager", wrapped_list("clients", "clientes"), "clients"),
    SideCollection("tax-tracker", wrapped_list("payments", "items"), "tax_payments"),
)


def dedup_key(record: FinancialRecord) -> str:
    """Identity of the real-world event behind a record.

    Document UUID first, then bank movement ID, then the content hash
    of (date, amount, source, type).
    """
    if record.links.document_uuid:
        return f"doc:{record.links.document_uuid}"
    if record.links.bank_movement_id:
        return f"bank:{record.links.bank_movement_id}"
    amount = Decimal(record.amount).quantize(Decimal("0.01"))
    return f"hash:{record.date.isoformat()}|{amount}|{record.source.value}|{record.type.value}"


def prefer(first: FinancialRecord, second: FinancialRecord) -> FinancialRecord:
    """Pick the winner of two records with the same dedup key.

    Later ``updated_at`` wins; the larger id breaks ties, so the choice does
    not depend on argument order.
    """
    if (second.updated_at, second.id) > (first.updated_at, first.id):
        return second
    return first


def deduplicate(records: Iterable[FinancialRecord]) -> list[FinancialRecord]:
    """Collapse records sharing a dedup key into one, keeping input order of first sight."""
    winners: dict[str, FinancialRecord] = {}
    for record in records:
        key = dedup_key(record)
        current = winners.get(key)
        winners[key] = record if current is None else prefer(current, record)
    return list(winners.values())


def merge_with_existing(
    records: Iterable[FinancialRecord], existing_records: Iterable[FinancialRecord]
) -> tuple[list[FinancialRecord], int]:
    """Match incoming records against records already stored.

    An incoming record colliding with a stored one takes over its id, so
    writing the result upserts instead of appending. Collisions where the
    stored record wins are dropped. A record whose id is already held by a
    different event, stored or incoming, gets an id derived from its dedup
    key so neither overwrites the other.

    Returns:
        Tuple of (records to write, number of records already present)
    """
    existing: dict[str, FinancialRecord] = {}
    claimed_ids: dict[str, str] = {}
    for record in existing_records:
        key = dedup_key(record)
        claimed_ids[record.id] = key
        current = existing.get(key)
        existing[key] = record if current is None else prefer(current, record)

    to_write: list[FinancialRecord] = []
    already_present = 0
    for record in records:
        current = existing.get(dedup_key(record))
        if current is None:
            to_write.append(record)
            continue
        candidate = dataclasses.replace(record, id=current.id)
        if prefer(current, candidate) is current:
            already_present += 1
        else:
            to_write.append(candidate)
    return _reassign_colliding_ids(to_write, claimed_ids), already_present


def _reassign_colliding_ids(
    records: list[FinancialRecord], claimed_ids: dict[str, str]
) -> list[FinancialRecord]:
    result = []
    for record in records:
        key = dedup_key(record)
        owner = claimed_ids.get(record.id)
        if owner is not None and owner != key:
            new_id = str(uuid.uuid5(uuid.NAMESPACE_URL, key))
            logger.warning(
                "record_id_reassigned",
                extra={"record_id": record.id, "new_id": new_id},
            )
            record = dataclasses.replace(record, id=new_id)
        claimed_ids[record.id] = key
        result.append(record)
    return result


@dataclass(frozen=True)
class MigrationResult:
    """Outcome of a migration run."""

    skipped: bool
    migrated: int = 0
    duplicates_dropped: int = 0
    per_source: dict[str, int] = field(default_factory=dict)
    side_collections: dict[str, int] = field(default_factory=dict)


class MigrationService:
    """Service running the legacy migration for one profile's database."""

    def __init__(
        self,
        db: Database,
        sources: tuple[LegacySource, ...] = LEGACY_SOURCES,
        side_collections: tuple[SideCollection, ...] = SIDE_COLLECTIONS,
    ):
        """Initialize migration service.

        Args:
            db: Database holding both the legacy and the canonical store
            sources: Legacy source adapter table
            side_collections: Legacy fields consolidated into side collections
        """
        self.db = db
        self.sources = sources
        self.side_collections = side_collections
        self._lock = threading.Lock()

    def get_status(self) -> MigrationStatus:
        """Read the persisted migration status. Missing means incomplete."""
        raw = self.db.legacy.get_snapshot(MIGRATION_STATUS_KEY)
        if not isinstance(raw, Mapping):
            return MigrationStatus(complete=False)
        return MigrationStatus(
            complete=bool(raw.get("complete") or raw.get("v1_complete")),
            completed_at=_parse_timestamp(raw.get("completed_at") or raw.get("timestamp")),
            source=raw.get("source"),
        )

    def is_complete(self) -> bool:
        return self.get_status().complete

    def mark_restored(self) -> None:
        """Record that a backup restore made the migration unnecessary."""
        self._mark_complete(source=RESTORE_SOURCE)

    def run(self) -> MigrationResult:
        """Run the migration once. Safe to call on every start.

        Concurrent callers are serialized; the second one finds the status
        complete and returns a skipped result.

        Returns:
            MigrationResult describing what was written

        Raises:
            MigrationError: If any step failed. Completion is not recorded.
        """
        with self._lock:
            status = self.get_status()
            if status.complete:
                logger.info(
                    "migration_already_complete", extra={"status_source": status.source}
                )
                return MigrationResult(skipped=True)

            logger.info("migration_started", extra={"sources": len(self.sources)})
            try:
                result = self._migrate()
                self._mark_complete()
            except Exception as e:
                logger.exception("migration_failed")
                raise MigrationError(migration_failed(e)) from e

            logger.info(
                "migration_completed",
                extra={
                    "migrated": result.migrated,
                    "duplicates_dropped": result.duplicates_dropped,
                },
            )
            return result

    def run_safely(self) -> Optional[MigrationResult]:
        """Run the migration, logging instead of raising on failure.

        Returns:
            MigrationResult, or None if the run failed and will be retried
        """
        try:
            return self.run()
        except MigrationError:
            return None

    def _migrate(self) -> MigrationResult:
        collected: list[FinancialRecord] = []
        per_source: dict[str, int] = {}

        for source in self.sources:
            latest = self._latest_record(source.key)
            if latest is None:
                continue
            items = source.extract(latest.payload)
            if not items:
                logger.debug("legacy_payload_without_items", extra={"source_key": source.key})
                continue
            records = [self._normalize_item(source, item, latest) for item in items]
            per_source[source.key] = len(records)
            collected.extend(records)
            logger.info(
                "legacy_source_loaded",
                extra={"source_key": source.key, "items": len(records)},
            )

        unique = deduplicate(collected)
        to_write, already_present = self._merge_with_canonical(unique)
        if to_write:
            self.db.financial_records.put_many(to_write)
            logger.info("migration_records_saved", extra={"records": len(to_write)})

        side_counts = self._consolidate_side_collections()
        return MigrationResult(
            skipped=False,
            migrated=len(to_write),
            duplicates_dropped=len(collected) - len(unique) + already_present,
            per_source=per_source,
            side_collections=side_counts,
        )

    def _latest_record(self, source_key: str) -> Optional[LegacyRecord]:
        records = self.db.legacy.list_records(source_key)
        if not records:
            return None
        return max(records, key=lambda record: record.created_at)

    def _normalize_item(
        self, source: LegacySource, item: Any, snapshot: LegacyRecord
    ) -> FinancialRecord:
        if isinstance(item, Mapping):
            item = source.adapt(item)
        # Stamp with the snapshot time so re-runs produce identical records
        return normalize(item, source.context, now=snapshot.created_at)

    def _merge_with_canonical(
        self, records: list[FinancialRecord]
    ) -> tuple[list[FinancialRecord], int]:
        return merge_with_existing(records, self.db.financial_records.get_all())

    def _consolidate_side_collections(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for side in self.side_collections:
            collection = getattr(self.db, side.collection)
            # Never overwrite data already written through the canonical store
            if collection.count() > 0:
                continue
            latest = self._latest_record(side.source_key)
            if latest is None:
                continue
            documents = [
                _as_document(item)
                for item in side.extract(latest.payload)
                if isinstance(item, Mapping) and item.get("id") is not None
            ]
            if documents:
                collection.put_many(documents)
                counts[side.collection] = len(documents)
        return counts

    def _mark_complete(self, source: Optional[str] = None) -> None:
        value: dict[str, Any] = {
            "complete": True,
            "completed_at": datetime.now(UTC).isoformat(),
        }
        if source is not None:
            value["source"] = source
        self.db.legacy.set_snapshot(MIGRATION_STATUS_KEY, value)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _as_document(item: Mapping[str, Any]) -> Document:
    document = dict(item)
    document["id"] = str(document["id"])
    return document


class MigrationRegistry:
    """Explicit per-profile registry of migration services.

    Built once at startup and handed to whoever needs to trigger or await
    a profile's migration.
    """

    def __init__(self, database_for: Callable[[str], Database]):
        """Initialize registry.

        Args:
            database_for: Returns the database of a profile ID
        """
        self.database_for = database_for
        self._services: dict[str, MigrationService] = {}
        self._in_flight: dict[str, Future] = {}
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    def get(self, profile_id: str) -> MigrationService:
        """Get the migration service of a profile, creating it on first use."""
        with self._lock:
            service = self._services.get(profile_id)
            if service is None:
                service = MigrationService(self.database_for(profile_id))
                self._services[profile_id] = service
            return service

    def run(self, profile_id: str) -> MigrationResult:
        """Run a profile's migration in the calling thread."""
        return self.get(profile_id).run()

    def start(self, profile_id: str) -> Future:
        """Start a profile's migration in the background.

        While a run is in flight the same future is returned. The run is
        never cancelled by the registry; callers that stop waiting leave it
        to finish on its own.
        """
        service = self.get(profile_id)
        with self._lock:
            current = self._in_flight.get(profile_id)
            if current is not None and not current.done():
                return current
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="finclose-migration"
                )
            future = self._executor.submit(service.run_safely)
            self._in_flight[profile_id] = future
            return future

    def shutdown(self) -> None:
        """Wait for background runs and release the worker thread."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
