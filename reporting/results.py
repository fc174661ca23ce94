"""
Result values and error taxonomy for the reporting system.

Resolvers, the assembler and the export adapter return a `Result`
instead of raising; only the HTTP layer turns an `ErrorKind` into a
status code.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Stable, machine-distinguishable failure kinds."""
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ReportError:
    """A failure with its kind and a human-readable message."""
    kind: ErrorKind
    message: str
    field: Optional[str] = None


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a `ReportError`."""
    value: Optional[T] = None
    error: Optional[ReportError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, field: Optional[str] = None) -> "Result[T]":
        return cls(error=ReportError(kind, message, field))

    def propagate(self) -> "Result":
        """Re-wrap this failure for a caller expecting another value type."""
        return Result(error=self.error)


def not_found(entity: str, entity_id) -> Result:
    return Result.failure(ErrorKind.NOT_FOUND, f"{entity} with id {entity_id} not found")


def forbidden(message: str) -> Result:
    return Result.failure(ErrorKind.FORBIDDEN, message)


def validation_failure(message: str, field: Optional[str] = None) -> Result:
    return Result.failure(ErrorKind.VALIDATION, message, field)


def internal_failure(message: str = "Internal error while generating the report") -> Result:
    return Result.failure(ErrorKind.INTERNAL, message)


class RepositoryError(Exception):
    """Raised by repository implementations when the store fails."""

    def __init__(self, message: str, operation: str = None):
        self.message = message
        self.operation = operation
        super().__init__(self.message)
