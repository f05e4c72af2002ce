"""Pydantic models representing core domain entities."""

from __future__ import annotations

import time
from numbers import Real
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = "2.0"
DEFAULT_FOLDER = "default"
DEFAULT_CATEGORY = "general"
PROTECTED_FOLDERS = ("all", "favorites", "archive", "default")
DEFAULT_CATEGORIES = (
    "general",
    "coding",
    "business",
    "marketing",
    "design",
    "productivity",
    "ai",
    "career",
    "education",
    "finance",
    "health",
    "lifestyle",
)
MIN_RATING = 0
MAX_RATING = 5


def now_ms() -> int:
    """Current time as milliseconds since the epoch."""
    return int(time.time() * 1000)


def clamp_rating(value: Union[int, float]) -> Union[int, float]:
    return max(MIN_RATING, min(MAX_RATING, value))


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys (``createdAt``...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Record(CamelModel):
    """A single question/answer entry."""

    id: str = Field(..., min_length=1)
    question: str
    answer: str
    category: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    folder: str = Field(default=DEFAULT_FOLDER, min_length=1)
    # whole or fractional stars
    rating: Union[int, float] = MIN_RATING
    views: int = Field(default=0, ge=0)
    score: int = 7
    # Set once at creation; drives newest/oldest sorting
    timestamp: int = Field(default_factory=now_ms)
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)

    @field_validator("question", "answer")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be a non-empty string")
        return value

    @field_validator("question")
    @classmethod
    def _strip_question(cls, value: str) -> str:
        return value.strip()

    @field_validator("tags")
    @classmethod
    def _dedup_tags(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @field_validator("rating", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> Any:
        if isinstance(value, Real) and not isinstance(value, bool):
            return clamp_rating(value)
        return value


class ViewSettings(CamelModel):
    """UI view state; informational only, not enforced by the store."""

    current_folder: str = "all"
    current_category: str = ""
    sort_by: str = "newest"
    search_term: str = ""
    view_mode: str = "grid"


class DocumentMetadata(CamelModel):
    version: str = SCHEMA_VERSION
    created_at: int = Field(default_factory=now_ms)
    last_modified: int = Field(default_factory=now_ms)


class Document(CamelModel):
    """The entire persisted state of the store."""

    # ``qas`` is the legacy name of the records list
    records: List[Record] = Field(
        default_factory=list,
        validation_alias=AliasChoices("records", "qas"),
    )
    folders: List[str] = Field(default_factory=lambda: list(PROTECTED_FOLDERS))
    categories: List[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    settings: ViewSettings = Field(default_factory=ViewSettings)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


class DateRange(CamelModel):
    start: int
    end: int


class QueryFilters(CamelModel):
    """Conjunctive filters plus a sort key for :meth:`QADatabase.query`."""

    folder: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = None
    rating: Optional[int] = None
    date_range: Optional[DateRange] = None
    sort_by: str = "newest"


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


class CategoryScore(CamelModel):
    category: str
    average_score: float
    count: int


class RecentActivity(CamelModel):
    count: int
    percentage: float


class Analytics(CamelModel):
    total_prompts: int
    total_views: int
    average_score: float
    average_rating: float
    category_stats: Dict[str, int]
    folder_stats: Dict[str, int]
    top_categories: List[CategoryScore]
    recent_activity: RecentActivity
    storage_size: int


class ImportResult(BaseModel):
    success: bool
    imported: int
    total: int


__all__ = [
    "SCHEMA_VERSION",
    "DEFAULT_FOLDER",
    "DEFAULT_CATEGORY",
    "PROTECTED_FOLDERS",
    "DEFAULT_CATEGORIES",
    "now_ms",
    "clamp_rating",
    "CamelModel",
    "Record",
    "ViewSettings",
    "DocumentMetadata",
    "Document",
    "DateRange",
    "QueryFilters",
    "ValidationResult",
    "CategoryScore",
    "RecentActivity",
    "Analytics",
    "ImportResult",
]
