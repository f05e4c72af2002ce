"""Structural validation of serialized documents (persisted or imported)."""

from __future__ import annotations

from numbers import Real
from typing import Any, List

from libs.core.models import MAX_RATING, MIN_RATING, ValidationResult


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_whole(value: Any) -> bool:
    return _is_number(value) and float(value).is_integer()


# Integer record fields, under either key spelling
_INTEGER_FIELDS = ("views", "score", "timestamp", "createdAt", "created_at", "updatedAt", "updated_at")


def validate_document(data: Any) -> ValidationResult:
    """Check the shape of a raw document; never raises.

    ``records`` is the current key, ``qas`` the legacy one.
    """

    errors: List[str] = []
    if not isinstance(data, dict):
        return ValidationResult(valid=False, errors=["Data must be an object"])

    records = data.get("records", data.get("qas"))
    if not isinstance(records, list):
        errors.append("records must be an array")
    else:
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                errors.append(f"Record {index}: must be an object")
                continue
            if not _non_empty_str(record.get("id")):
                errors.append(f"Record {index}: missing id")
            if not _non_empty_str(record.get("question")):
                errors.append(f"Record {index}: question must be a non-empty string")
            if not _non_empty_str(record.get("answer")):
                errors.append(f"Record {index}: answer must be a non-empty string")
            if not _non_empty_str(record.get("category")):
                errors.append(f"Record {index}: category must be a non-empty string")
            tags = record.get("tags")
            if tags is not None and not isinstance(tags, list):
                errors.append(f"Record {index}: tags must be an array")
            elif tags and not all(isinstance(tag, str) for tag in tags):
                errors.append(f"Record {index}: tags must be strings")
            folder = record.get("folder")
            if folder is not None and not _non_empty_str(folder):
                errors.append(f"Record {index}: folder must be a non-empty string")
            for key in _INTEGER_FIELDS:
                value = record.get(key)
                if value is not None and not _is_whole(value):
                    errors.append(f"Record {index}: {key} must be an integer")
            views = record.get("views")
            if _is_whole(views) and views < 0:
                errors.append(f"Record {index}: views must not be negative")
            rating = record.get("rating")
            if rating is not None and (
                not _is_number(rating) or not MIN_RATING <= rating <= MAX_RATING
            ):
                errors.append(f"Record {index}: rating must be a number between 0 and 5")

    if data.get("folders") is not None and not isinstance(data["folders"], list):
        errors.append("folders must be an array")

    return ValidationResult(valid=not errors, errors=errors)


__all__ = ["validate_document"]
