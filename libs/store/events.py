"""
Event bus: named topics mapped to insertion-ordered sets of callbacks.

The store publishes every state change here; UI layers and other
collaborators subscribe to the topics they care about.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from libs.logging import ErrorLog

Callback = Callable[[Any], None]


class Topic(str, Enum):
    """Topics published by :class:`QADatabase`."""

    INITIALIZED = "initialized"
    SAVED = "saved"
    SAVE_ERROR = "saveError"
    PROMPT_ADDED = "promptAdded"
    PROMPT_UPDATED = "promptUpdated"
    PROMPT_DELETED = "promptDeleted"
    VIEWS_INCREMENTED = "viewsIncremented"
    RATING_UPDATED = "ratingUpdated"
    FOLDER_ADDED = "folderAdded"
    FOLDER_DELETED = "folderDeleted"
    PROMPTS_MOVED = "promptsMoved"
    BATCH_DELETED = "batchDeleted"
    DATA_IMPORTED = "dataImported"
    DATA_CLEARED = "dataCleared"
    SAMPLE_DATA_ADDED = "sampleDataAdded"


TopicName = Union[Topic, str]


def _key(topic: TopicName) -> str:
    return topic.value if isinstance(topic, Topic) else str(topic)


class EventBus:
    """Synchronous publish/subscribe with per-callback failure isolation."""

    def __init__(self, error_log: Optional[ErrorLog] = None) -> None:
        self.error_log = error_log or ErrorLog()
        # dict keys double as an ordered set of callbacks
        self._subscribers: Dict[str, Dict[Callback, None]] = {}

    def subscribe(self, topic: TopicName, callback: Callback) -> None:
        """Register ``callback``; registering the same one twice is a no-op."""
        self._subscribers.setdefault(_key(topic), {})[callback] = None

    def unsubscribe(self, topic: TopicName, callback: Callback) -> None:
        self._subscribers.get(_key(topic), {}).pop(callback, None)

    def publish(self, topic: TopicName, payload: Any = None) -> None:
        name = _key(topic)
        # Snapshot so callbacks may (un)subscribe while being dispatched
        for callback in list(self._subscribers.get(name, {})):
            try:
                callback(payload)
            except Exception as exc:
                self.error_log.log(exc, f"Event callback for {name}")

    def subscribers(self, topic: TopicName) -> List[Callback]:
        return list(self._subscribers.get(_key(topic), {}))

    def clear(self) -> None:
        self._subscribers.clear()


__all__ = ["Topic", "TopicName", "EventBus", "Callback"]
