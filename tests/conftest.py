"""Shared pytest fixtures for finclose tests."""

import os
import tempfile
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from finclose.config import Settings
from finclose.database.factories import create_sqlite_database
from finclose.domain.entities import (
    FinancialRecord,
    RecordLinks,
    RecordSource,
    RecordType,
    Taxability,
)
from finclose.domain.journey import JourneyService
from finclose.domain.migration import MigrationService
from finclose.domain.summary import MonthlyAggregator
from finclose.domain.tax import TaxEstimator

ENABLED = Settings(journey_enabled=True, tax_engine_enabled=True, legacy_readonly=False)


@pytest.fixture
def temp_db():
    """Create a temporary database with a writable legacy store."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(
        database_path=db_path, settings=Settings(legacy_readonly=False)
    )
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def settings():
    """Settings with every feature enabled."""
    return ENABLED


@pytest.fixture
def migration_service(temp_db):
    return MigrationService(temp_db)


@pytest.fixture
def aggregator(settings):
    return MonthlyAggregator(settings)


@pytest.fixture
def tax_estimator(settings):
    return TaxEstimator(settings)


@pytest.fixture
def journey_service(temp_db, settings):
    return JourneyService(temp_db, settings)


@pytest.fixture
def make_record():
    """Factory for canonical records with sensible defaults."""

    def _make(
        record_date=date(2024, 3, 10),
        amount="100.00",
        type=RecordType.EXPENSE,
        source=RecordSource.MANUAL,
        taxability=Taxability.DEDUCTIBLE,
        concept="Test record",
        links=None,
        record_id=None,
        updated_at=None,
        metadata=None,
    ):
        stamp = updated_at or datetime(2024, 3, 10, 12, 0, tzinfo=UTC)
        return FinancialRecord(
            id=record_id or str(uuid.uuid4()),
            date=record_date,
            concept=concept,
            amount=Decimal(amount),
            type=type,
            source=source,
            taxability=taxability,
            created_at=stamp,
            updated_at=stamp,
            links=links or RecordLinks(),
            metadata=metadata or {},
        )

    return _make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
