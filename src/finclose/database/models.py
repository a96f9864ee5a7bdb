"""SQLAlchemy models for finclose database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Numeric,
    String,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FinancialRecord(Base):
    """Canonical financial record model."""

    __tablename__ = "financial_records"

    id = Column(String, primary_key=True)
    date = Column(Date, nullable=False)
    concept = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    type = Column(String, nullable=False)
    source = Column(String, nullable=False)
    taxability = Column(String, nullable=False)
    links = Column(JSON, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (Index("ix_financial_records_date", "date"),)


class Document(Base):
    """Document of a side collection (invoices, clients, tax payments)."""

    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class LegacyRecord(Base):
    """Append-only legacy record model."""

    __tablename__ = "legacy_records"

    id = Column(String, primary_key=True)
    source_key = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    payload = Column(JSON, nullable=True)


class Snapshot(Base):
    """Key/value snapshot model."""

    __tablename__ = "snapshots"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Journey(Base):
    """Persisted monthly close journey."""

    __tablename__ = "journeys"

    id = Column(String, primary_key=True)
    month = Column(String, nullable=False)
    steps = Column(JSON, nullable=False)
    backup_done = Column(Boolean, nullable=False, default=False)
    backup_fingerprint = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Migrations may run on a background worker thread
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
