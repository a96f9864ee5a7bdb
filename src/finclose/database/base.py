"""Abstract storage interfaces."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

# Import entities directly, domain/__init__.py resolves services lazily
from finclose.domain.entities import FinancialRecord, JourneyState, LegacyRecord

T = TypeVar("T")

# Documents of the side collections (invoices, clients, tax payments) are
# plain dicts keyed by "id"; core logic only carries them through.
Document = dict[str, Any]


class RecordCollection(ABC, Generic[T]):
    """One entity collection of the canonical store."""

    @abstractmethod
    def get_all(self) -> list[T]:
        """Return every item of the collection."""
        pass

    @abstractmethod
    def get(self, item_id: str) -> Optional[T]:
        """Get item by ID."""
        pass

    @abstractmethod
    def add(self, item: T) -> None:
        """Insert a new item.

        Raises:
            ConflictError: If an item with the same ID exists
        """
        pass

    @abstractmethod
    def put_many(self, items: list[T]) -> None:
        """Upsert items by ID in one batch."""
        pass

    @abstractmethod
    def delete(self, item_id: str) -> None:
        """Delete item by ID.

        Raises:
            NotFoundError: If the item does not exist
        """
        pass

    def count(self) -> int:
        return len(self.get_all())


class LegacyStore(ABC):
    """Key/value snapshots plus the append log of pre-canonical tools."""

    @abstractmethod
    def list_records(self, source_key: str) -> list[LegacyRecord]:
        """List legacy records for a source, oldest first."""
        pass

    @abstractmethod
    def append_record(
        self, source_key: str, payload: Any, created_at: Optional[datetime] = None
    ) -> LegacyRecord:
        """Append a legacy record, stamped now unless created_at is given.

        Raises:
            ReadOnlyError: If the legacy store is read-only
        """
        pass

    @abstractmethod
    def get_snapshot(self, key: str) -> Optional[Any]:
        """Get snapshot value by key, or None."""
        pass

    @abstractmethod
    def set_snapshot(self, key: str, value: Any) -> None:
        """Store snapshot value under key, replacing any previous value."""
        pass


class Database(ABC):
    """Abstract database interface for finclose."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Canonical collections
    @property
    @abstractmethod
    def financial_records(self) -> RecordCollection[FinancialRecord]:
        """Canonical financial records."""
        pass

    @property
    @abstractmethod
    def invoices(self) -> RecordCollection[Document]:
        """Canonical invoices."""
        pass

    @property
    @abstractmethod
    def clients(self) -> RecordCollection[Document]:
        """Canonical clients."""
        pass

    @property
    @abstractmethod
    def tax_payments(self) -> RecordCollection[Document]:
        """Canonical tax payments."""
        pass

    @property
    @abstractmethod
    def legacy(self) -> LegacyStore:
        """Legacy key/value and append-log store."""
        pass

    # Journey operations
    @abstractmethod
    def get_journey(self, journey_id: str) -> Optional[JourneyState]:
        """Get persisted journey state by ID."""
        pass

    @abstractmethod
    def save_journey(self, state: JourneyState) -> None:
        """Insert or replace a journey state."""
        pass
