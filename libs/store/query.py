from __future__ import annotations

import locale
from typing import Callable, Dict, Iterable, List

from libs.core.models import QueryFilters, Record

ALL_FOLDERS = "all"


def _matches_search(record: Record, term: str) -> bool:
    return (
        term in record.question.lower()
        or term in record.answer.lower()
        or any(term in tag.lower() for tag in record.tags)
    )


def filter_records(records: Iterable[Record], filters: QueryFilters) -> List[Record]:
    """Apply every set filter conjunctively, keeping input order."""

    result = list(records)
    if filters.folder and filters.folder != ALL_FOLDERS:
        result = [r for r in result if r.folder == filters.folder]
    if filters.category:
        result = [r for r in result if r.category == filters.category]
    if filters.search:
        term = filters.search.lower()
        result = [r for r in result if _matches_search(r, term)]
    if filters.rating:
        result = [r for r in result if r.rating >= filters.rating]
    if filters.date_range is not None:
        start, end = filters.date_range.start, filters.date_range.end
        result = [r for r in result if start <= r.timestamp <= end]
    return result


def _alphabetical_key(record: Record) -> str:
    return locale.strxfrm(record.question.casefold())


# sort key -> (key function, descending)
SORTERS: Dict[str, tuple[Callable[[Record], object], bool]] = {
    "newest": (lambda r: r.timestamp, True),
    "oldest": (lambda r: r.timestamp, False),
    "mostViewed": (lambda r: r.views, True),
    "rating": (lambda r: r.rating, True),
    "alphabetical": (_alphabetical_key, False),
}


def sort_records(records: List[Record], sort_by: str) -> List[Record]:
    """Return a sorted copy; unknown sort keys keep the current order."""

    sorter = SORTERS.get(sort_by)
    if sorter is None:
        return list(records)
    key, descending = sorter
    return sorted(records, key=key, reverse=descending)


def apply_query(records: Iterable[Record], filters: QueryFilters) -> List[Record]:
    return sort_records(filter_records(records, filters), filters.sort_by)


__all__ = ["ALL_FOLDERS", "SORTERS", "filter_records", "sort_records", "apply_query"]
