"""
Storage-layer exception classes.

These are raised by the persistence gateway (storage.database) and never
escape a repository: repositories translate them into Err results via
repositories.base.translate_storage_error().

Usage:
    from core.exceptions import ConcurrencyError, StorageError

    try:
        await session.save_changes()
    except ConcurrencyError:
        ...  # lost update
    except StorageError:
        ...  # any other storage fault
"""
from typing import Any, Dict, Optional


# =============================================================================
# BASE EXCEPTION CLASSES
# =============================================================================

class StorageError(Exception):
    """
    Base exception for all persistence gateway faults.

    Provides a consistent structure with a detail message and optional
    context for logging.
    """

    detail: str = "Database operation failed"

    def __init__(self, detail: Optional[str] = None, **kwargs: Any):
        """
        Initialize the exception.

        Args:
            detail: Human-readable error message. Uses class default if not provided.
            **kwargs: Additional context (table, entity id, operation, ...).
        """
        self.detail = detail or self.__class__.detail
        self.context = kwargs
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for structured logging."""
        result: Dict[str, Any] = {"detail": self.detail}
        if self.context:
            result["context"] = self.context
        return result


# =============================================================================
# WRITE EXCEPTIONS
# =============================================================================

class ConcurrencyError(StorageError):
    """Raised when an update or delete matched no row at the expected row_version."""

    detail = "The record was modified or removed by another writer"

    def __init__(self, table: Optional[str] = None, entity_id: Optional[str] = None, **kwargs: Any):
        detail = (
            f"Row {entity_id} in '{table}' was modified or removed by another writer"
            if table and entity_id else None
        )
        super().__init__(detail=detail, table=table, entity_id=entity_id, **kwargs)


class ConstraintViolationError(StorageError):
    """Raised when the store rejects a write (unique key, foreign key, check)."""

    detail = "A database constraint rejected the write"


# =============================================================================
# READ EXCEPTIONS
# =============================================================================

class RowMappingError(StorageError):
    """Raised when a stored row cannot be mapped back onto its entity model."""

    detail = "Stored row could not be mapped to an entity"


class InvalidIncludeError(StorageError):
    """Raised when an include path names a relation the entity does not have."""

    detail = "Unknown relation in include path"


# =============================================================================
# PROGRAMMING ERRORS
# =============================================================================

class ImmutableEntityError(TypeError):
    """Raised when code tries to stage an update or delete of an append-only entity."""

    def __init__(self, entity_name: str):
        super().__init__(f"{entity_name} entries are append-only and cannot be updated or deleted")
        self.entity_name = entity_name
