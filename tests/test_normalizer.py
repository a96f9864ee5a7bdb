"""Tests for raw input normalization."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from finclose.domain.entities import RecordSource, RecordType, Taxability
from finclose.domain.normalizer import (
    InputKind,
    NormalizationContext,
    detect_kind,
    normalize,
)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        42,
        "not a record",
        [],
        {},
        {"amount": "abc"},
        {"amount": float("nan")},
        {"amount": float("inf")},
        {"amount": -250},
        {"concept": "   "},
        {"kind": "bank", "type": "CREDIT"},
        {"kind": "invoice", "total": None},
        {"kind": "manual", "taxability": "maybe", "type": "refund"},
        {"date": "not a date", "metadata": "oops", "links": ["x"]},
    ],
)
def test_normalize_always_returns_valid_record(raw):
    record = normalize(raw)

    assert record.amount >= 0
    assert record.concept.strip()
    assert record.taxability in set(Taxability)
    assert record.type in set(RecordType)
    assert record.source in set(RecordSource)
    assert isinstance(record.date, date)


def test_bank_credit_becomes_income():
    record = normalize({"kind": "bank", "type": "CREDIT", "amount": 5000, "date": "2023-10-01"})

    assert record.source == RecordSource.BANK
    assert record.type == RecordType.INCOME
    assert record.amount == Decimal("5000")
    assert record.date == date(2023, 10, 1)


def test_bank_debit_becomes_expense_with_movement_link():
    record = normalize(
        {
            "kind": "bank",
            "direction": "debit",
            "amount": "-1,250.50",
            "date": "2023-10-02",
            "bank_movement_id": "MOV-1",
            "description": "Office rent",
        }
    )

    assert record.type == RecordType.EXPENSE
    assert record.amount == Decimal("1250.50")
    assert record.links.bank_movement_id == "MOV-1"
    assert record.metadata["description"] == "Office rent"
    assert record.taxability == Taxability.UNKNOWN


def test_invoice_prefers_document_uuid_link():
    record = normalize(
        {
            "kind": "invoice",
            "id": "INV-7",
            "uuid": "ABC-123",
            "total": "1160.00",
            "invoice_date": "2023-11-15",
            "rfc": "XAXX010101000",
        },
        NormalizationContext(default_type=RecordType.INCOME),
    )

    assert record.source == RecordSource.INVOICE
    assert record.type == RecordType.INCOME
    assert record.amount == Decimal("1160.00")
    assert record.date == date(2023, 11, 15)
    assert record.links.document_uuid == "ABC-123"
    assert record.links.invoice_id is None
    assert record.metadata["invoice_id"] == "INV-7"
    assert record.metadata["counterparty_tax_id"] == "XAXX010101000"


def test_invoice_without_uuid_links_invoice_id():
    record = normalize({"kind": "invoice", "id": "INV-8", "amount": 10})

    assert record.links.invoice_id == "INV-8"
    assert record.links.document_uuid is None


def test_invoice_direction_comes_from_context_only():
    received = normalize(
        {"kind": "invoice", "amount": 10},
        NormalizationContext(default_type=RecordType.EXPENSE),
    )
    assert received.type == RecordType.EXPENSE


def test_manual_keeps_valid_enums_and_id():
    record = normalize(
        {
            "kind": "manual",
            "id": "rec-1",
            "amount": "99.90",
            "date": "2024-02-29",
            "type": "income",
            "taxability": "non_deductible",
            "concept": "  Workshop  ",
            "links": {"invoice_id": "INV-1"},
            "metadata": {"note": "cash"},
        }
    )

    assert record.id == "rec-1"
    assert record.type == RecordType.INCOME
    assert record.source == RecordSource.MANUAL
    assert record.taxability == Taxability.NON_DEDUCTIBLE
    assert record.concept == "Workshop"
    assert record.links.invoice_id == "INV-1"
    assert record.metadata == {"note": "cash"}


def test_manual_invalid_enums_fall_back_to_context_defaults():
    record = normalize(
        {"type": "refund", "source": "crypto", "taxability": "maybe"},
        NormalizationContext(
            kind=InputKind.MANUAL,
            default_type=RecordType.TAX,
            default_source=RecordSource.TAX,
            default_taxability=Taxability.DEDUCTIBLE,
        ),
    )

    assert record.type == RecordType.TAX
    assert record.source == RecordSource.TAX
    assert record.taxability == Taxability.DEDUCTIBLE
    assert record.concept == "Tax"


def test_explicit_kind_tag_wins_over_context():
    record = normalize(
        {"kind": "bank", "type": "CREDIT", "amount": 1},
        NormalizationContext(kind=InputKind.INVOICE),
    )
    assert record.source == RecordSource.BANK


def test_detect_kind_from_shape():
    assert detect_kind({"direction": "CREDIT"}) is InputKind.BANK
    assert detect_kind({"folio": "A-1"}) is InputKind.INVOICE
    assert detect_kind({"amount": 1}) is InputKind.MANUAL


def test_fallback_concepts_by_type():
    assert normalize({"type": "income"}).concept == "Income"
    assert normalize({"type": "expense"}).concept == "Expense"
    assert normalize(None).concept == "Expense"


def test_timestamps_use_now_or_raw_values():
    now = datetime(2024, 1, 1, 9, 30, tzinfo=UTC)
    stamped = normalize({"amount": 1}, now=now)
    assert stamped.created_at == now
    assert stamped.updated_at == now
    assert stamped.date == date(2024, 1, 1)

    carried = normalize({"amount": 1, "updated_at": "2024-01-05T10:00:00Z"}, now=now)
    assert carried.created_at == now
    assert carried.updated_at == datetime(2024, 1, 5, 10, 0, tzinfo=UTC)
