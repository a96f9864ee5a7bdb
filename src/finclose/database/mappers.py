"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so the canonical record shape can
change without touching the domain services.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Optional

from finclose.domain import entities as domain
from finclose.database.models import (
    FinancialRecord as ORMFinancialRecord,
    Journey as ORMJourney,
    LegacyRecord as ORMLegacyRecord,
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def to_utc(value: datetime) -> datetime:
    """Convert an aware datetime to UTC before storage."""
    return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)


def json_safe(value: Any) -> Any:
    """Return a JSON-serializable copy of value (dates/decimals become strings)."""
    return json.loads(json.dumps(value, default=str))


def links_to_dict(links: domain.RecordLinks) -> dict[str, str]:
    """Convert RecordLinks to a dict without empty keys."""
    data = {
        "invoice_id": links.invoice_id,
        "document_uuid": links.document_uuid,
        "bank_movement_id": links.bank_movement_id,
    }
    return {key: value for key, value in data.items() if value}


def record_to_domain(orm_record: ORMFinancialRecord) -> domain.FinancialRecord:
    """Convert SQLAlchemy FinancialRecord model to domain FinancialRecord entity."""
    links = orm_record.links or {}
    return domain.FinancialRecord(
        id=orm_record.id,
        date=orm_record.date,
        concept=orm_record.concept,
        amount=Decimal(orm_record.amount),
        type=domain.RecordType(orm_record.type),
        source=domain.RecordSource(orm_record.source),
        taxability=domain.Taxability(orm_record.taxability),
        links=domain.RecordLinks(
            invoice_id=links.get("invoice_id"),
            document_uuid=links.get("document_uuid"),
            bank_movement_id=links.get("bank_movement_id"),
        ),
        metadata=dict(orm_record.extra or {}),
        created_at=as_utc(orm_record.created_at),
        updated_at=as_utc(orm_record.updated_at),
    )


def record_to_orm(
    record: domain.FinancialRecord, orm_record: Optional[ORMFinancialRecord] = None
) -> ORMFinancialRecord:
    """Copy a domain FinancialRecord onto a (new or existing) SQLAlchemy model."""
    if orm_record is None:
        orm_record = ORMFinancialRecord(id=record.id)
    orm_record.date = record.date
    orm_record.concept = record.concept
    orm_record.amount = record.amount
    orm_record.type = record.type.value
    orm_record.source = record.source.value
    orm_record.taxability = record.taxability.value
    orm_record.links = links_to_dict(record.links)
    orm_record.extra = json_safe(record.metadata)
    orm_record.created_at = to_utc(record.created_at)
    orm_record.updated_at = to_utc(record.updated_at)
    return orm_record


def legacy_record_to_domain(orm_record: ORMLegacyRecord) -> domain.LegacyRecord:
    """Convert SQLAlchemy LegacyRecord model to domain LegacyRecord entity."""
    return domain.LegacyRecord(
        id=orm_record.id,
        source_key=orm_record.source_key,
        created_at=as_utc(orm_record.created_at),
        payload=orm_record.payload,
    )


def journey_to_domain(orm_journey: ORMJourney) -> domain.JourneyState:
    """Convert SQLAlchemy Journey model to domain JourneyState entity."""
    steps = tuple(
        domain.JourneyStep(
            id=step["id"],
            title=step["title"],
            status=domain.StepStatus(step["status"]),
            blocked_by=tuple(step.get("blocked_by") or ()),
        )
        for step in orm_journey.steps
    )
    return domain.JourneyState(
        id=orm_journey.id,
        month=orm_journey.month,
        steps=steps,
        updated_at=as_utc(orm_journey.updated_at),
        backup_done=bool(orm_journey.backup_done),
        backup_fingerprint=orm_journey.backup_fingerprint,
    )


def steps_to_json(steps: tuple[domain.JourneyStep, ...]) -> list[dict[str, Any]]:
    """Convert journey steps to their JSON column representation."""
    return [
        {
            "id": step.id,
            "title": step.title,
            "status": step.status.value,
            "blocked_by": list(step.blocked_by),
        }
        for step in steps
    ]
