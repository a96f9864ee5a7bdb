"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class ReadOnlyError(DomainError):
    """Write attempted against a store that only allows reads."""


class MigrationError(DomainError):
    """Legacy migration run failed and will be retried."""


def invalid_month(value: str) -> str:
    """Return message for a malformed month key."""
    return f"Invalid month '{value}': expected YYYY-MM"


def record_not_found(record_id: str) -> str:
    """Return message for missing financial record."""
    return f"Financial record {record_id} not found"


def duplicate_record_id(record_id: str) -> str:
    """Return message for duplicate financial record ID."""
    return f"Financial record with id '{record_id}' already exists"


def step_not_found(step_id: str) -> str:
    """Return message for unknown journey step."""
    return f"Journey step '{step_id}' not found"


def step_not_manual(step_id: str) -> str:
    """Return message when trying to toggle a derived step."""
    return f"Journey step '{step_id}' is derived and cannot be toggled manually"


def legacy_store_read_only(source_key: str) -> str:
    """Return message for blocked legacy writes."""
    return (
        f"Cannot write to legacy source '{source_key}': legacy data is read-only. "
        "Set FINCLOSE_LEGACY_READONLY=0 to allow it."
    )


def migration_failed(error: Exception) -> str:
    """Return message for a failed migration run."""
    return f"Migration failed and will be retried on next start: {error}"
