"""
Success-or-error result type returned by every repository operation.

A Result is either ``Ok(value)`` or ``Err(error)``. Only ``Ok`` has a
``value`` attribute and only ``Err`` has an ``error`` attribute, so reading
a value without first checking the branch fails loudly.

Usage:
    result = await patient_repo.get_by_mrn("MRN-001")

    if result.is_err():
        return to_response(result.error)
    patient = result.value

    # or without branching
    name = result.map(lambda p: p.last_name).unwrap_or("unknown")
    message = result.match(
        on_ok=lambda p: f"found {p.mrn}",
        on_err=lambda e: e.description,
    )
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, List, NoReturn, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


class ErrorType(str, Enum):
    """Closed set of error kinds a repository can report."""

    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    VALIDATION = "Validation"
    FAILURE = "Failure"


@dataclass(frozen=True)
class Error:
    """An error with a stable code and a human-readable description."""

    type: ErrorType
    code: str
    description: str

    @classmethod
    def not_found(cls, code: str, description: str) -> "Error":
        return cls(ErrorType.NOT_FOUND, code, description)

    @classmethod
    def conflict(cls, code: str, description: str) -> "Error":
        return cls(ErrorType.CONFLICT, code, description)

    @classmethod
    def validation(cls, code: str, description: str) -> "Error":
        return cls(ErrorType.VALIDATION, code, description)

    @classmethod
    def failure(cls, code: str, description: str) -> "Error":
        return cls(ErrorType.FAILURE, code, description)


class UnwrapError(Exception):
    """Raised when unwrap() is called on an Err. Indicates a programming error."""

    def __init__(self, error: Error):
        super().__init__(f"Called unwrap() on Err: {error.code}: {error.description}")
        self.error = error


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_or_else(self, fn: Callable[[Error], T]) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        return fn(self.value)

    def match(self, on_ok: Callable[[T], U], on_err: Callable[[Error], U]) -> U:
        return on_ok(self.value)


@dataclass(frozen=True)
class Err:
    """Failed result carrying an Error."""

    error: Error

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise UnwrapError(self.error)

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_or_else(self, fn: Callable[[Error], T]) -> T:
        return fn(self.error)

    def map(self, fn: Callable) -> "Err":
        return self

    def and_then(self, fn: Callable) -> "Err":
        return self

    def match(self, on_ok: Callable, on_err: Callable[[Error], U]) -> U:
        return on_err(self.error)


Result = Union[Ok[T], Err]


class Deleted:
    """Success marker returned by delete operations."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETED"


DELETED = Deleted()


@dataclass(frozen=True)
class Page(Generic[T]):
    """One window of a paged query plus the unfiltered row count."""

    items: List[T] = field(default_factory=list)
    total_count: int = 0
