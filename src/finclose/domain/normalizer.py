"""Normalization of raw financial inputs into canonical records.

``normalize`` sits on the ingestion path of every write (bank imports,
invoice imports, manual entries, legacy migration), so it never raises:
malformed input degrades to defaults instead of blocking a save.

Callers should say what they are handing over, either with a ``kind`` key
on the raw mapping or with ``NormalizationContext.kind``. Untagged input
falls back to shape detection, checked in this order: bank movement
(credit/debit discriminator), invoice (invoice date, tax ID or folio),
generic/manual.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Mapping, Optional, TypeVar

from finclose.domain.entities import (
    FinancialRecord,
    RecordLinks,
    RecordSource,
    RecordType,
    Taxability,
)
from finclose.utils.amount_parser import coerce_amount
from finclose.utils.date_parser import coerce_date


class InputKind(str, Enum):
    """Tag naming the shape of a raw input."""

    BANK = "bank"
    INVOICE = "invoice"
    MANUAL = "manual"


@dataclass(frozen=True)
class NormalizationContext:
    """Caller-supplied hints for normalization."""

    kind: Optional[InputKind] = None
    default_type: Optional[RecordType] = None
    default_source: Optional[RecordSource] = None
    default_taxability: Optional[Taxability] = None


FALLBACK_CONCEPTS = {
    RecordType.INCOME: "Income",
    RecordType.EXPENSE: "Expense",
    RecordType.TAX: "Tax",
}

BANK_DIRECTIONS = {"CREDIT": RecordType.INCOME, "DEBIT": RecordType.EXPENSE}
INVOICE_MARKERS = ("invoice_date", "invoiceDate", "rfc", "tax_id", "folio")
DOCUMENT_UUID_FIELDS = ("document_uuid", "documentUuid", "uuid", "xml_uuid", "xmlUuid")
BANK_MOVEMENT_ID_FIELDS = ("bank_movement_id", "bankMovementId", "movement_id")

E = TypeVar("E", bound=Enum)


def normalize(
    raw: Any,
    context: Optional[NormalizationContext] = None,
    now: Optional[datetime] = None,
) -> FinancialRecord:
    """Normalize a raw input into a canonical financial record.

    Args:
        raw: Raw input (mapping, or anything else which degrades to defaults)
        context: Optional hints (input kind, default type/source/taxability)
        now: Timestamp to use for created/updated stamps. Defaults to now

    Returns:
        FinancialRecord that is always structurally valid
    """
    ctx = context or NormalizationContext()
    now = now or datetime.now(UTC)

    fields: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "date": now.date(),
        "amount": coerce_amount(None),
        "type": ctx.default_type or RecordType.EXPENSE,
        "source": ctx.default_source or RecordSource.MANUAL,
        "taxability": ctx.default_taxability or Taxability.UNKNOWN,
        "links": RecordLinks(),
        "metadata": {},
        "created_at": now,
        "updated_at": now,
    }

    if not isinstance(raw, Mapping):
        return _build(fields, None)

    kind = resolve_kind(raw, ctx)
    if kind is InputKind.BANK:
        _apply_bank(raw, fields)
    elif kind is InputKind.INVOICE:
        _apply_invoice(raw, fields)
    else:
        _apply_manual(raw, fields)

    created_at = _coerce_timestamp(_first(raw, ("created_at", "createdAt")))
    updated_at = _coerce_timestamp(_first(raw, ("updated_at", "updatedAt")))
    if created_at is not None:
        fields["created_at"] = created_at
    if updated_at is not None:
        fields["updated_at"] = updated_at
    elif created_at is not None:
        fields["updated_at"] = created_at

    return _build(fields, raw)


def resolve_kind(raw: Mapping[str, Any], context: NormalizationContext) -> InputKind:
    """Determine the input kind: explicit tag first, shape detection last."""
    tagged = _parse_enum(InputKind, raw.get("kind"))
    if tagged is not None:
        return tagged
    if context.kind is not None:
        return context.kind
    return detect_kind(raw)


def detect_kind(raw: Mapping[str, Any]) -> InputKind:
    """Guess the kind of an untagged input from its shape."""
    if _bank_direction(raw) is not None:
        return InputKind.BANK
    if any(marker in raw for marker in INVOICE_MARKERS):
        return InputKind.INVOICE
    return InputKind.MANUAL


def resolve_concept(raw: Any, record_type: RecordType) -> str:
    """Return an explicit concept if present, else a type-derived default."""
    if isinstance(raw, Mapping):
        metadata = raw.get("metadata")
        candidates = [raw.get("concept"), raw.get("concepto")]
        if isinstance(metadata, Mapping):
            candidates.extend([metadata.get("concept"), metadata.get("concepto")])
        for candidate in candidates:
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
    return FALLBACK_CONCEPTS.get(record_type, "Movement")


def _apply_bank(raw: Mapping[str, Any], fields: dict[str, Any]) -> None:
    fields["source"] = RecordSource.BANK
    fields["amount"] = coerce_amount(raw.get("amount"))
    fields["date"] = coerce_date(raw.get("date")) or fields["date"]

    direction = _bank_direction(raw)
    if direction is not None:
        fields["type"] = direction

    movement_id = _first_text(raw, BANK_MOVEMENT_ID_FIELDS)
    if movement_id:
        fields["links"] = RecordLinks(bank_movement_id=movement_id)

    fields["metadata"] = {"description": raw.get("description")}


def _apply_invoice(raw: Mapping[str, Any], fields: dict[str, Any]) -> None:
    # Issued and received documents share one shape; direction comes from
    # the caller's context default and is never guessed here.
    fields["source"] = RecordSource.INVOICE
    fields["amount"] = coerce_amount(raw.get("amount", raw.get("total")))
    fields["date"] = (
        coerce_date(_first(raw, ("invoice_date", "invoiceDate", "date"))) or fields["date"]
    )

    invoice_id = _first_text(raw, ("id", "invoice_id", "invoiceId"))
    document_uuid = _first_text(raw, DOCUMENT_UUID_FIELDS)
    if document_uuid:
        fields["links"] = RecordLinks(document_uuid=document_uuid)
    elif invoice_id:
        fields["links"] = RecordLinks(invoice_id=invoice_id)

    fields["metadata"] = {
        "invoice_id": invoice_id,
        "counterparty_tax_id": _first(raw, ("rfc", "tax_id")),
        "folio": raw.get("folio"),
        "concept": raw.get("concept"),
        "status": raw.get("status"),
    }


def _apply_manual(raw: Mapping[str, Any], fields: dict[str, Any]) -> None:
    if raw.get("amount") is not None:
        fields["amount"] = coerce_amount(raw.get("amount"))
    if raw.get("date"):
        fields["date"] = coerce_date(raw.get("date")) or fields["date"]

    record_type = _parse_enum(RecordType, raw.get("type"))
    if record_type is not None:
        fields["type"] = record_type
    source = _parse_enum(RecordSource, raw.get("source"))
    if source is not None:
        fields["source"] = source
    taxability = _parse_enum(Taxability, raw.get("taxability"))
    if taxability is not None:
        fields["taxability"] = taxability

    links = raw.get("links")
    if isinstance(links, Mapping):
        fields["links"] = _links_from_mapping(links)

    metadata = raw.get("metadata")
    if isinstance(metadata, Mapping):
        fields["metadata"] = {**fields["metadata"], **metadata}

    # Manual entries may carry stable identifiers
    record_id = raw.get("id")
    if record_id is not None and str(record_id).strip():
        fields["id"] = str(record_id).strip()


def _links_from_mapping(links: Mapping[str, Any]) -> RecordLinks:
    document_uuid = _first_text(links, DOCUMENT_UUID_FIELDS)
    if document_uuid:
        return RecordLinks(document_uuid=document_uuid)
    movement_id = _first_text(links, BANK_MOVEMENT_ID_FIELDS)
    if movement_id:
        return RecordLinks(bank_movement_id=movement_id)
    invoice_id = _first_text(links, ("invoice_id", "invoiceId", "facturaId"))
    if invoice_id:
        return RecordLinks(invoice_id=invoice_id)
    return RecordLinks()


def _build(fields: dict[str, Any], raw: Any) -> FinancialRecord:
    return FinancialRecord(concept=resolve_concept(raw, fields["type"]), **fields)


def _bank_direction(raw: Mapping[str, Any]) -> Optional[RecordType]:
    for key in ("type", "direction"):
        value = raw.get(key)
        if isinstance(value, str) and value.strip().upper() in BANK_DIRECTIONS:
            return BANK_DIRECTIONS[value.strip().upper()]
    return None


def _parse_enum(enum_cls: type[E], value: Any) -> Optional[E]:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return None
    return None


def _first(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _first_text(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _coerce_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None
