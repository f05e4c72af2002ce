"""Namespaced key-value persistence backends.

Each backend stores JSON-serialized values under ``prefix + key``. Failures
never propagate past the backend boundary: reads degrade to the supplied
default, writes to ``False`` and size queries to ``0``.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import DateTime, String, Text, create_engine, delete, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from libs.core.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "qa_synthesizer_"


class KeyValueBackend(ABC):
    """Base class handling serialization, namespacing and error containment."""

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        self.prefix = prefix

    # ------------------------------------------------------------------
    # public API
    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self._read(self.prefix + key)
            return json.loads(raw) if raw else default
        except Exception as exc:
            logger.warning("storage_read_failed", extra={"key": key, "reason": str(exc)})
            return default

    def set(self, key: str, value: Any) -> bool:
        try:
            self._write(self.prefix + key, json.dumps(value, ensure_ascii=False))
            return True
        except Exception as exc:
            logger.warning("storage_write_failed", extra={"key": key, "reason": str(exc)})
            return False

    def remove(self, key: str) -> bool:
        try:
            self._delete(self.prefix + key)
            return True
        except Exception as exc:
            logger.warning("storage_remove_failed", extra={"key": key, "reason": str(exc)})
            return False

    def clear(self) -> bool:
        try:
            for full_key in list(self._keys()):
                if full_key.startswith(self.prefix):
                    self._delete(full_key)
            return True
        except Exception as exc:
            logger.warning("storage_clear_failed", extra={"reason": str(exc)})
            return False

    def size(self) -> int:
        """Bytes (UTF-8) currently stored under this backend's prefix."""
        try:
            total = 0
            for full_key in self._keys():
                if full_key.startswith(self.prefix):
                    total += len((self._read(full_key) or "").encode("utf-8"))
            return total
        except Exception as exc:
            logger.warning("storage_size_failed", extra={"reason": str(exc)})
            return 0

    # ------------------------------------------------------------------
    # raw access implemented by subclasses; may raise freely
    @abstractmethod
    def _read(self, full_key: str) -> Optional[str]:
        ...

    @abstractmethod
    def _write(self, full_key: str, text: str) -> None:
        ...

    @abstractmethod
    def _delete(self, full_key: str) -> None:
        ...

    @abstractmethod
    def _keys(self) -> Iterable[str]:
        ...


class MemoryBackend(KeyValueBackend):
    """Volatile backend keeping serialized values in a dict."""

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        super().__init__(prefix)
        self.items: Dict[str, str] = {}

    def _read(self, full_key: str) -> Optional[str]:
        return self.items.get(full_key)

    def _write(self, full_key: str, text: str) -> None:
        self.items[full_key] = text

    def _delete(self, full_key: str) -> None:
        self.items.pop(full_key, None)

    def _keys(self) -> Iterable[str]:
        return list(self.items)


class FileBackend(KeyValueBackend):
    """File system backend: one ``<key>.json`` file per key."""

    def __init__(self, directory: Path, prefix: str = DEFAULT_PREFIX) -> None:
        super().__init__(prefix)
        self.directory = Path(directory)

    def _path(self, full_key: str) -> Path:
        return self.directory / f"{full_key}.json"

    def _read(self, full_key: str) -> Optional[str]:
        path = self._path(full_key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, full_key: str, text: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(full_key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(text, encoding="utf-8")
        # replace() is atomic so readers never observe a half-written file
        os.replace(tmp, path)

    def _delete(self, full_key: str) -> None:
        self._path(full_key).unlink(missing_ok=True)

    def _keys(self) -> Iterable[str]:
        if not self.directory.exists():
            return []
        return [p.stem for p in self.directory.glob("*.json")]


class _Base(DeclarativeBase):
    """Declarative base for the key-value table."""


class KeyValueEntry(_Base):
    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class SQLBackend(KeyValueBackend):
    """SQLAlchemy backed store; any SQLAlchemy URL works, SQLite by default."""

    def __init__(self, uri: str, prefix: str = DEFAULT_PREFIX) -> None:
        super().__init__(prefix)
        self.engine = create_engine(uri, future=True)
        _Base.metadata.create_all(self.engine)

    def _read(self, full_key: str) -> Optional[str]:
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, full_key)
            return entry.value if entry else None

    def _write(self, full_key: str, text: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, full_key)
            if entry is None:
                session.add(KeyValueEntry(key=full_key, value=text))
            else:
                entry.value = text
                entry.updated_at = datetime.now(timezone.utc)
            session.commit()

    def _delete(self, full_key: str) -> None:
        with Session(self.engine) as session:
            session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == full_key))
            session.commit()

    def _keys(self) -> Iterable[str]:
        with Session(self.engine) as session:
            return list(session.scalars(select(KeyValueEntry.key)))

    def dispose(self) -> None:
        self.engine.dispose()


def create_backend(settings: Settings) -> KeyValueBackend:
    """Build the backend selected by ``settings.storage_backend``."""

    if settings.storage_backend == "memory":
        return MemoryBackend(prefix=settings.storage_prefix)
    if settings.storage_backend == "sql":
        return SQLBackend(settings.storage_uri, prefix=settings.storage_prefix)
    return FileBackend(settings.storage_dir, prefix=settings.storage_prefix)


__all__ = [
    "KeyValueBackend",
    "MemoryBackend",
    "FileBackend",
    "SQLBackend",
    "KeyValueEntry",
    "create_backend",
]
