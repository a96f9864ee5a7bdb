"""Tests for database mappers."""

from datetime import UTC, date, datetime
from decimal import Decimal

from finclose.database.mappers import (
    as_utc,
    journey_to_domain,
    links_to_dict,
    record_to_domain,
    record_to_orm,
    steps_to_json,
)
from finclose.database.models import (
    FinancialRecord as ORMFinancialRecord,
    Journey as ORMJourney,
)
from finclose.domain.entities import (
    RecordLinks,
    RecordSource,
    RecordType,
    StepStatus,
    Taxability,
)
from finclose.domain.journey import create_initial_state


def test_record_to_domain_from_naive_row():
    """SQLite hands back naive timestamps; the mapper marks them UTC."""
    orm_record = ORMFinancialRecord(
        id="r1",
        date=date(2024, 3, 1),
        concept="Rent",
        amount=Decimal("1200.00"),
        type="expense",
        source="bank",
        taxability="deductible",
        links={"bank_movement_id": "M1"},
        extra={"description": "Office"},
        created_at=datetime(2024, 3, 1, 12, 0),
        updated_at=datetime(2024, 3, 2, 12, 0),
    )

    record = record_to_domain(orm_record)

    assert record.type == RecordType.EXPENSE
    assert record.source == RecordSource.BANK
    assert record.taxability == Taxability.DEDUCTIBLE
    assert record.links == RecordLinks(bank_movement_id="M1")
    assert record.metadata == {"description": "Office"}
    assert record.created_at == datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def test_record_to_orm_updates_existing_row(make_record):
    orm_record = ORMFinancialRecord(id="r1")
    record = make_record(record_id="r1", amount="55.5", metadata={"when": date(2024, 1, 1)})

    result = record_to_orm(record, orm_record)

    assert result is orm_record
    assert orm_record.amount == Decimal("55.5")
    assert orm_record.type == "expense"
    assert orm_record.extra == {"when": "2024-01-01"}


def test_links_to_dict_drops_empty_keys():
    assert links_to_dict(RecordLinks()) == {}
    assert links_to_dict(RecordLinks(document_uuid="U1")) == {"document_uuid": "U1"}


def test_as_utc():
    assert as_utc(None) is None
    aware = datetime(2024, 1, 1, tzinfo=UTC)
    assert as_utc(aware) is aware


def test_journey_steps_json():
    state = create_initial_state("2024-03")
    orm_journey = ORMJourney(
        id=state.id,
        month=state.month,
        steps=steps_to_json(state.steps),
        updated_at=datetime(2024, 3, 1),
    )

    loaded = journey_to_domain(orm_journey)

    assert loaded.steps == state.steps
    assert loaded.get_step("classify").blocked_by == ("import-bank", "import-invoice")
    assert loaded.get_step("select-month").status == StepStatus.DONE
