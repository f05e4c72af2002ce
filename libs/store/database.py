"""
In-memory Q&A document store with observer events and auto-save.

The store owns the whole document (records, folders, categories, view
settings, metadata), persists it as one JSON blob under a single key of a
:class:`~libs.storage.KeyValueBackend`, and publishes an event after every
state change.

Auto-save:
  - every mutation marks the document dirty and (re)arms a debounce timer
  - a periodic timer saves whenever the document is dirty
  - :meth:`QADatabase.close` flushes a pending save and cancels both timers

Every public operation runs under one re-entrant lock, so timer callbacks
coming from :class:`ThreadingScheduler` never interleave with a mutation.
"""

from __future__ import annotations

import json
import logging
import random
import threading
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from libs.core.exceptions import (
    InvalidFormatError,
    NotFoundError,
    PersistenceError,
    ProtectedResourceError,
    ValidationError,
)
from libs.core.models import (
    DEFAULT_FOLDER,
    PROTECTED_FOLDERS,
    SCHEMA_VERSION,
    Analytics,
    Document,
    DocumentMetadata,
    ImportResult,
    QueryFilters,
    Record,
    ValidationResult,
    ViewSettings,
    clamp_rating,
    now_ms,
)
from libs.core.settings import Settings, get_settings
from libs.logging import ErrorLog, log_duration
from libs.storage import KeyValueBackend, create_backend

from .analytics import compute_analytics
from .categorizer import Categorizer
from .data import load_yaml
from .events import Callback, EventBus, Topic, TopicName
from .query import apply_query
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle
from .validation import validate_document

logger = logging.getLogger(__name__)

STORAGE_KEY = "data"
DAY_MS = 24 * 60 * 60 * 1000
SCORE_RANGE = (7, 10)
SAMPLE_RATING_RANGE = (3, 5)
SAMPLE_VIEWS_RANGE = (10, 59)

IMMUTABLE_FIELDS = {"id", "timestamp", "created_at", "createdAt"}
UPDATABLE_FIELDS = {"question", "answer", "category", "tags", "folder", "rating", "views", "score"}

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if not value:
            return "".join(reversed(digits))


def generate_id(prefix: str = "", now: Optional[int] = None) -> str:
    """``<prefix><base36 ms time>_<random suffix>``, e.g. ``qa_lq2x9k1c_3f9a0c2be``."""
    stamp = now if now is not None else now_ms()
    return f"{prefix}{_base36(stamp)}_{uuid.uuid4().hex[:9]}"


def _format_errors(exc: PydanticValidationError) -> List[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}" for err in exc.errors()
    ]


def _merge_folders(*groups: Iterable[Any]) -> List[str]:
    """Union of folder names, first occurrence order, non-strings dropped."""
    merged: Dict[str, None] = {}
    for group in groups:
        for name in group:
            if isinstance(name, str) and name:
                merged[name] = None
    return list(merged)


class QADatabase:
    """The Q&A document store."""

    def __init__(
        self,
        backend: KeyValueBackend,
        *,
        scheduler: Optional[Scheduler] = None,
        categorizer: Optional[Categorizer] = None,
        error_log: Optional[ErrorLog] = None,
        clock: Callable[[], int] = now_ms,
        rng: Optional[random.Random] = None,
        debounce_seconds: float = 2.0,
        autosave_interval: float = 30.0,
    ) -> None:
        self.backend = backend
        self.scheduler = scheduler or ThreadingScheduler()
        self.categorizer = categorizer or Categorizer.default()
        self.error_log = error_log or ErrorLog()
        self.events = EventBus(self.error_log)
        self.clock = clock
        self.rng = rng or random.Random()
        self.debounce_seconds = debounce_seconds
        self.autosave_interval = autosave_interval

        self._document = self._default_document()
        self._dirty = False
        self._loading = False
        self._closed = False
        self._save_timer: Optional[TimerHandle] = None
        self._interval_timer: Optional[TimerHandle] = None
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "QADatabase":
        settings = settings or get_settings()
        kwargs.setdefault("debounce_seconds", settings.autosave_debounce_seconds)
        kwargs.setdefault("autosave_interval", settings.autosave_interval_seconds)
        return cls(create_backend(settings), **kwargs)

    # ------------------------------------------------------------------
    # state
    @property
    def data(self) -> Document:
        """Deep copy of the current document."""
        with self._lock:
            return self._document.model_copy(deep=True)

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def is_loading(self) -> bool:
        return self._loading

    def get_state(self) -> Dict[str, Any]:
        with self._lock:
            return {"data": self.data, "is_loading": self._loading, "is_dirty": self._dirty}

    # ------------------------------------------------------------------
    # events
    def subscribe(self, topic: TopicName, callback: Callback) -> None:
        self.events.subscribe(topic, callback)

    def unsubscribe(self, topic: TopicName, callback: Callback) -> None:
        self.events.unsubscribe(topic, callback)

    # ------------------------------------------------------------------
    # lifecycle
    def initialize(self) -> Document:
        """Load persisted state, seed samples if empty; never raises."""

        with self._lock:
            self._loading = True
            try:
                self._start_autosave()
                self.load()
                self.validate()
                if not self._document.records:
                    self.add_sample_data()
                self.events.publish(Topic.INITIALIZED, self.data)
            except Exception as exc:
                self.error_log.log(exc, "Database initialization")
                if not self._document.records:
                    try:
                        self.add_sample_data()
                    except Exception as sample_exc:
                        self.error_log.log(sample_exc, "Sample data seeding")
            finally:
                self._loading = False
            return self.data

    @log_duration("loadData")
    def load(self) -> Document:
        with self._lock:
            saved = self.backend.get(STORAGE_KEY)
            if saved is None:
                return self.data
            validation = validate_document(saved)
            if not validation.valid:
                logger.warning("invalid_saved_data", extra={"errors": validation.errors})
                return self.data
            try:
                metadata = self._loaded_metadata(saved.get("metadata"))
                self._document = self._merge_document(saved, metadata)
            except InvalidFormatError as exc:
                logger.warning("invalid_saved_data", extra={"errors": exc.errors})
            return self.data

    @log_duration("saveData")
    def save(self, force: bool = False) -> bool:
        with self._lock:
            if not self._dirty and not force:
                return True
            try:
                self._document.metadata.last_modified = self.clock()
                if not self.backend.set(STORAGE_KEY, self._document.to_payload()):
                    raise PersistenceError("Failed to write document to storage")
            except Exception as exc:
                error = exc if isinstance(exc, PersistenceError) else PersistenceError(str(exc))
                self.error_log.log(error, "saveData")
                self.events.publish(Topic.SAVE_ERROR, error)
                return False
            self._dirty = False
            self.events.publish(Topic.SAVED, self.data)
            return True

    def close(self) -> None:
        """Flush a pending save, cancel timers and drop subscribers."""

        with self._lock:
            if self._closed:
                return
            if self._dirty:
                self.save()
            for timer in (self._save_timer, self._interval_timer):
                if timer is not None:
                    timer.cancel()
            self._save_timer = None
            self._interval_timer = None
            self._closed = True
            self.events.clear()

    def __enter__(self) -> "QADatabase":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def validate(self) -> ValidationResult:
        with self._lock:
            result = validate_document(self._document.to_payload())
        if not result.valid:
            logger.warning("data_validation_issues", extra={"errors": result.errors})
        return result

    # ------------------------------------------------------------------
    # categorization
    def categorize(self, text: str) -> str:
        return self.categorizer.categorize(text)

    def generate_tags(self, text: str, category: str) -> List[str]:
        return self.categorizer.generate_tags(text, category)

    # ------------------------------------------------------------------
    # records
    @log_duration("addPrompt")
    def add_prompt(
        self,
        question: str,
        answer: Optional[str] = None,
        *,
        category: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        folder: Optional[str] = None,
        rating: Optional[int] = None,
        score: Optional[int] = None,
    ) -> Record:
        with self._lock:
            question = question.strip()
            category = category or self.categorize(question)
            tags = list(tags) if tags is not None else self.generate_tags(question, category)
            now = self.clock()
            record = self._build_record(
                {
                    "id": generate_id("qa_", now),
                    "question": question,
                    "answer": answer or self.categorizer.generate_answer(question, category),
                    "category": category,
                    "tags": tags,
                    "folder": folder or DEFAULT_FOLDER,
                    "rating": rating or 0,
                    "views": 0,
                    "score": score if score is not None else self.rng.randint(*SCORE_RANGE),
                    "timestamp": now,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            new_folder = self._register_folder(record.folder)
            self._document.records.insert(0, record)
            self._mark_dirty()
            if new_folder:
                self.events.publish(Topic.FOLDER_ADDED, record.folder)
            added = record.model_copy(deep=True)
            self.events.publish(Topic.PROMPT_ADDED, added)
            return added

    @log_duration("updatePrompt")
    def update_prompt(
        self, prompt_id: str, updates: Optional[Mapping[str, Any]] = None, **fields: Any
    ) -> Record:
        with self._lock:
            index = self._find_index(prompt_id)
            if index == -1:
                raise NotFoundError(f"Prompt with id {prompt_id} not found")
            changes = {**(updates or {}), **fields}
            immutable = sorted(set(changes) & IMMUTABLE_FIELDS)
            if immutable:
                raise ValidationError(f"Cannot update immutable field(s): {', '.join(immutable)}")
            unknown = sorted(set(changes) - UPDATABLE_FIELDS)
            if unknown:
                raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")

            existing = self._document.records[index]
            merged = {**existing.model_dump(), **changes, "updated_at": self.clock()}
            new_question = changes.get("question")
            if new_question and new_question != existing.question:
                merged["category"] = changes.get("category") or self.categorize(new_question)
                if changes.get("tags") is None:
                    merged["tags"] = self.generate_tags(new_question, merged["category"])
            record = self._build_record(merged)

            new_folder = self._register_folder(record.folder)
            self._document.records[index] = record
            self._mark_dirty()
            if new_folder:
                self.events.publish(Topic.FOLDER_ADDED, record.folder)
            updated = record.model_copy(deep=True)
            self.events.publish(Topic.PROMPT_UPDATED, updated)
            return updated

    @log_duration("deletePrompt")
    def delete_prompt(self, prompt_id: str) -> Record:
        with self._lock:
            index = self._find_index(prompt_id)
            if index == -1:
                raise NotFoundError(f"Prompt with id {prompt_id} not found")
            deleted = self._document.records.pop(index)
            self._mark_dirty()
            self.events.publish(Topic.PROMPT_DELETED, deleted.model_copy(deep=True))
            return deleted.model_copy(deep=True)

    def batch_delete(self, ids: Iterable[str]) -> List[Record]:
        with self._lock:
            deleted: List[Record] = []
            for prompt_id in ids:
                try:
                    deleted.append(self.delete_prompt(prompt_id))
                except NotFoundError as exc:
                    self.error_log.log(exc, f"Batch delete prompt {prompt_id}")
            self.events.publish(Topic.BATCH_DELETED, [r.model_copy(deep=True) for r in deleted])
            return deleted

    def get_prompt(self, prompt_id: str) -> Optional[Record]:
        with self._lock:
            index = self._find_index(prompt_id)
            if index == -1:
                return None
            return self._document.records[index].model_copy(deep=True)

    @log_duration("getPrompts")
    def query(
        self, filters: Union[QueryFilters, Mapping[str, Any], None] = None, **kwargs: Any
    ) -> List[Record]:
        """Filtered, sorted copies of the records; document order is untouched."""

        if isinstance(filters, QueryFilters):
            raw: Dict[str, Any] = filters.model_dump(exclude_unset=True)
        else:
            raw = dict(filters or {})
        raw.update(kwargs)
        try:
            parsed = QueryFilters.model_validate(raw)
        except PydanticValidationError as exc:
            raise ValidationError("; ".join(_format_errors(exc))) from exc
        with self._lock:
            return [r.model_copy(deep=True) for r in apply_query(self._document.records, parsed)]

    def increment_views(self, prompt_id: str) -> Optional[Record]:
        with self._lock:
            index = self._find_index(prompt_id)
            if index == -1:
                return None
            record = self._document.records[index]
            record.views += 1
            record.updated_at = self.clock()
            self._mark_dirty()
            updated = record.model_copy(deep=True)
            self.events.publish(Topic.VIEWS_INCREMENTED, updated)
            return updated

    def update_rating(self, prompt_id: str, rating: float) -> Optional[Record]:
        with self._lock:
            index = self._find_index(prompt_id)
            if index == -1:
                return None
            record = self._document.records[index]
            record.rating = clamp_rating(rating)
            record.updated_at = self.clock()
            self._mark_dirty()
            updated = record.model_copy(deep=True)
            self.events.publish(Topic.RATING_UPDATED, updated)
            return updated

    # ------------------------------------------------------------------
    # folders
    def add_folder(self, name: str) -> bool:
        if not name or not name.strip():
            raise ValidationError("Folder name must be a non-empty string")
        with self._lock:
            if name in self._document.folders:
                return False
            self._document.folders.append(name)
            self._mark_dirty()
            self.events.publish(Topic.FOLDER_ADDED, name)
            return True

    def delete_folder(self, name: str) -> bool:
        if name in PROTECTED_FOLDERS:
            raise ProtectedResourceError("Cannot delete system folders")
        with self._lock:
            if name not in self._document.folders:
                return False
            for record in self._document.records:
                if record.folder == name:
                    record.folder = DEFAULT_FOLDER
            self._document.folders.remove(name)
            self._mark_dirty()
            self.events.publish(Topic.FOLDER_DELETED, name)
            return True

    def move_to_folder(self, ids: Iterable[str], folder: str) -> List[Record]:
        if not folder:
            raise ValidationError("Folder name must be a non-empty string")
        with self._lock:
            wanted = set(ids)
            targets = [r for r in self._document.records if r.id in wanted]
            if not targets:
                return []
            new_folder = self._register_folder(folder)
            now = self.clock()
            for record in targets:
                record.folder = folder
                record.updated_at = now
            self._mark_dirty()
            if new_folder:
                self.events.publish(Topic.FOLDER_ADDED, folder)
            moved = [r.model_copy(deep=True) for r in targets]
            self.events.publish(Topic.PROMPTS_MOVED, {"records": moved, "folder": folder})
            return moved

    # ------------------------------------------------------------------
    # analytics
    @log_duration("getAnalytics")
    def get_analytics(self) -> Analytics:
        with self._lock:
            return compute_analytics(self._document.records, self.backend.size(), self.clock())

    # ------------------------------------------------------------------
    # import / export
    def export_data(self) -> str:
        with self._lock:
            payload = self._document.to_payload()
        payload["exportedAt"] = self.clock()
        payload["exportVersion"] = SCHEMA_VERSION
        return json.dumps(payload, indent=2, ensure_ascii=False)

    @log_duration("importData")
    def import_data(self, payload: Union[str, bytes, Mapping[str, Any]], merge: bool = False) -> ImportResult:
        """Replace (default) or merge the document with an exported one.

        Raises :class:`InvalidFormatError` when the payload does not parse or
        fails structural validation; nothing is changed in that case.
        """

        with self._lock:
            try:
                data = json.loads(payload) if isinstance(payload, (str, bytes)) else dict(payload)
                validation = validate_document(data)
                if not validation.valid:
                    raise InvalidFormatError(validation.errors)
                if merge:
                    imported = self._merge_import(data)
                else:
                    metadata = self._document.metadata.model_copy(
                        update={"last_modified": self.clock()}
                    )
                    self._document = self._merge_document(data, metadata)
                    imported = len(self._document.records)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                error = InvalidFormatError([f"Invalid JSON: {exc}"])
                self.error_log.log(error, "importData")
                raise error from exc
            except InvalidFormatError as exc:
                self.error_log.log(exc, "importData")
                raise

            self._mark_dirty()
            self.save(force=True)
            self.events.publish(Topic.DATA_IMPORTED, self.data)
            return ImportResult(success=True, imported=imported, total=len(self._document.records))

    def clear_data(self) -> None:
        """Reset to an empty document, keeping categories and view settings."""

        with self._lock:
            now = self.clock()
            self._document = Document(
                records=[],
                folders=list(PROTECTED_FOLDERS),
                categories=list(self._document.categories),
                settings=self._document.settings.model_copy(),
                metadata=DocumentMetadata(created_at=now, last_modified=now),
            )
            self._mark_dirty()
            self.events.publish(Topic.DATA_CLEARED, None)

    def add_sample_data(self) -> List[Record]:
        with self._lock:
            now = self.clock()
            added: List[Record] = []
            for index, sample in enumerate(load_yaml("samples").get("samples", [])):
                stamp = now - index * DAY_MS
                record = self._build_record(
                    {
                        "id": generate_id("sample_", stamp),
                        "question": sample["question"],
                        "answer": sample["answer"],
                        "category": sample["category"],
                        "tags": self.generate_tags(sample["question"], sample["category"]),
                        "folder": sample.get("folder", DEFAULT_FOLDER),
                        "rating": self.rng.randint(*SAMPLE_RATING_RANGE),
                        "views": self.rng.randint(*SAMPLE_VIEWS_RANGE),
                        "score": self.rng.randint(*SCORE_RANGE),
                        "timestamp": stamp,
                        "created_at": stamp,
                        "updated_at": stamp,
                    }
                )
                added.append(record)
            for record in added:
                self._register_folder(record.folder)
            self._document.records.extend(added)
            self._mark_dirty()
            self.events.publish(
                Topic.SAMPLE_DATA_ADDED, [r.model_copy(deep=True) for r in self._document.records]
            )
            return [r.model_copy(deep=True) for r in added]

    # ------------------------------------------------------------------
    # helpers
    def _default_document(self) -> Document:
        now = self.clock()
        return Document(metadata=DocumentMetadata(created_at=now, last_modified=now))

    def _find_index(self, prompt_id: str) -> int:
        for index, record in enumerate(self._document.records):
            if record.id == prompt_id:
                return index
        return -1

    def _build_record(self, data: Mapping[str, Any]) -> Record:
        try:
            return Record.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError("; ".join(_format_errors(exc))) from exc

    def _register_folder(self, name: str) -> bool:
        if name in self._document.folders:
            return False
        self._document.folders.append(name)
        return True

    def _parse_records(self, raw: Sequence[Any]) -> List[Record]:
        records: List[Record] = []
        errors: List[str] = []
        for index, item in enumerate(raw):
            try:
                # null fields fall back to their defaults
                fields = {k: v for k, v in item.items() if v is not None}
                records.append(Record.model_validate(fields))
            except PydanticValidationError as exc:
                errors.extend(f"Record {index}: {msg}" for msg in _format_errors(exc))
        if errors:
            raise InvalidFormatError(errors)
        # Keep the first record for any repeated id
        unique: Dict[str, Record] = {}
        for record in records:
            unique.setdefault(record.id, record)
        return list(unique.values())

    def _loaded_metadata(self, raw: Any) -> DocumentMetadata:
        current = self._document.metadata
        raw = raw if isinstance(raw, dict) else {}
        version = raw.get("version")
        created_at = raw.get("createdAt", raw.get("created_at"))
        return DocumentMetadata(
            version=version if isinstance(version, str) else current.version,
            created_at=created_at if isinstance(created_at, int) else current.created_at,
            last_modified=self.clock(),
        )

    def _merge_document(self, data: Mapping[str, Any], metadata: DocumentMetadata) -> Document:
        """Field-by-field merge of a raw document over the current one.

        records    -> taken from ``data``
        folders    -> protected folders + loaded folders + folders used by records
        categories -> loaded list when non-empty, else current
        settings   -> current settings updated key-by-key
        metadata   -> supplied by the caller
        """

        records = self._parse_records(data.get("records", data.get("qas", [])))
        folders = _merge_folders(
            PROTECTED_FOLDERS, data.get("folders") or [], (r.folder for r in records)
        )
        raw_categories = data.get("categories")
        categories = (
            [c for c in raw_categories if isinstance(c, str) and c]
            if isinstance(raw_categories, list)
            else []
        )
        return Document(
            records=records,
            folders=folders,
            categories=categories or list(self._document.categories),
            settings=self._merge_settings(data.get("settings")),
            metadata=metadata,
        )

    def _merge_settings(self, raw: Any) -> ViewSettings:
        """Current view settings updated with every loaded key that validates."""

        settings = self._document.settings.model_copy()
        if not isinstance(raw, dict):
            return settings
        for key, value in raw.items():
            try:
                settings = ViewSettings.model_validate({**settings.to_payload(), key: value})
            except PydanticValidationError:
                logger.warning("invalid_view_setting", extra={"setting": key})
        return settings

    def _merge_import(self, data: Mapping[str, Any]) -> int:
        incoming = self._parse_records(data.get("records", data.get("qas", [])))
        existing_ids = {r.id for r in self._document.records}
        new_records = [r for r in incoming if r.id not in existing_ids]
        self._document.folders = _merge_folders(
            self._document.folders, data.get("folders") or [], (r.folder for r in new_records)
        )
        self._document.records.extend(new_records)
        return len(new_records)

    def _mark_dirty(self) -> None:
        self._dirty = True
        if self._closed:
            return
        if self._save_timer is not None:
            self._save_timer.cancel()
        self._save_timer = self.scheduler.call_later(self.debounce_seconds, self._debounced_save)

    def _debounced_save(self) -> None:
        with self._lock:
            self.save()

    def _autosave_tick(self) -> None:
        with self._lock:
            if self._dirty:
                self.save()

    def _start_autosave(self) -> None:
        if self._interval_timer is None and not self._closed:
            self._interval_timer = self.scheduler.call_every(
                self.autosave_interval, self._autosave_tick
            )


__all__ = ["QADatabase", "STORAGE_KEY", "generate_id"]
