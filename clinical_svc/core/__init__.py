"""
Core module for configuration, logging, results and shared utilities.

This module provides:
- Settings: Application configuration via pydantic-settings
- Result: Ok/Err return type used by every repository operation
- Errors: Catalogue of error codes returned to callers
- Exceptions: Storage-layer exceptions raised by the persistence gateway
- Datetime utilities: UTC-first datetime handling
"""
from core.config import settings, Settings

# Result type and error catalogue
from core.result import (
    DELETED,
    Deleted,
    Err,
    Error,
    ErrorType,
    Ok,
    Page,
    Result,
    UnwrapError,
)
from core.errors import GeneralErrors, PatientErrors, UserErrors

# Exception classes raised below the repository boundary
from core.exceptions import (
    StorageError,
    ConcurrencyError,
    ConstraintViolationError,
    RowMappingError,
    InvalidIncludeError,
    ImmutableEntityError,
)

# UTC datetime utilities
from core.datetime_utils import (
    utc_now,
    utc_today,
    to_utc,
    parse_datetime,
    to_db_string,
)
from core.config import (
    DATABASE_DIR,
    DATABASE_PATH,
    AUDIT_DATABASE_PATH,
    DATABASE_BUSY_TIMEOUT,
    DEFAULT_PAGE_SIZE,
)

__all__ = [
    # Settings
    "settings",
    "Settings",
    # Result type
    "DELETED",
    "Deleted",
    "Err",
    "Error",
    "ErrorType",
    "Ok",
    "Page",
    "Result",
    "UnwrapError",
    # Error catalogue
    "GeneralErrors",
    "PatientErrors",
    "UserErrors",
    # Exceptions
    "StorageError",
    "ConcurrencyError",
    "ConstraintViolationError",
    "RowMappingError",
    "InvalidIncludeError",
    "ImmutableEntityError",
    # Datetime utilities
    "utc_now",
    "utc_today",
    "to_utc",
    "parse_datetime",
    "to_db_string",
    # Configuration constants
    "DATABASE_DIR",
    "DATABASE_PATH",
    "AUDIT_DATABASE_PATH",
    "DATABASE_BUSY_TIMEOUT",
    "DEFAULT_PAGE_SIZE",
]
