"""Base exceptions for the domain layer."""

from __future__ import annotations

from typing import Iterable, List


class DomainError(Exception):
    """Base class for all domain level exceptions."""


class NotFoundError(DomainError):
    """Raised when an entity cannot be located."""


class ValidationError(DomainError):
    """Raised when data fails domain validation rules."""


class InvalidFormatError(ValidationError):
    """Raised when a serialized document fails structural validation."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__(f"Invalid data format: {', '.join(self.errors)}")


class ProtectedResourceError(DomainError):
    """Raised on an attempt to remove a system folder."""


class PersistenceError(DomainError):
    """Raised when the storage backend fails to read or write."""


# Alias to keep a generic name for error type hints
Error = DomainError

__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "InvalidFormatError",
    "ProtectedResourceError",
    "PersistenceError",
    "Error",
]
