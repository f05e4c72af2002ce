"""Key-value persistence backends for the Q&A store."""

from .backends import (
    KeyValueBackend,
    MemoryBackend,
    FileBackend,
    SQLBackend,
    create_backend,
)

__all__ = ["KeyValueBackend", "MemoryBackend", "FileBackend", "SQLBackend", "create_backend"]
