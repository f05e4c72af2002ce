"""Core library exposing domain models, settings and exceptions."""

from .settings import Settings, get_settings
from .exceptions import (
    DomainError,
    NotFoundError,
    ValidationError,
    InvalidFormatError,
    ProtectedResourceError,
    PersistenceError,
    Error,
)
from .models import Record, Document, QueryFilters, Analytics, ImportResult

__all__ = [
    "Settings",
    "get_settings",
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "InvalidFormatError",
    "ProtectedResourceError",
    "PersistenceError",
    "Error",
    "Record",
    "Document",
    "QueryFilters",
    "Analytics",
    "ImportResult",
]
