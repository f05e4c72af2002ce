"""Q&A document store: records, folders, events and auto-save."""

from .categorizer import Categorizer
from .database import QADatabase, generate_id
from .events import EventBus, Topic
from .scheduler import ManualScheduler, Scheduler, ThreadingScheduler, TimerHandle

__all__ = [
    "Categorizer",
    "QADatabase",
    "generate_id",
    "EventBus",
    "Topic",
    "Scheduler",
    "ThreadingScheduler",
    "ManualScheduler",
    "TimerHandle",
]
