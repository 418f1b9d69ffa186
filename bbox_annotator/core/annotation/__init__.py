"""
Core annotation module - UI-agnostic bounding-box editing logic.

This module provides the editing abstractions (store, selection, commands,
controllers) that can be used with any UI framework (Tkinter, Qt, Web).
"""

from .session import AnnotationSession
from .events import AnnotationEvent, EventType, EventEmitter
from .state import (
    Annotation,
    Direction,
    GestureEvent,
    GestureKind,
    Handle,
    InteractionState,
    Modifiers,
    Side,
)
from .classes import ClassInfo, ClassRegistry
from .commands import Command, CommandKind, CommandLog
from .errors import (
    AnnotationError,
    GeometryRejected,
    PersistenceWriteFailure,
    StaleTargetReference,
    UserCancelledDeletion,
)
from .scheduler import AsyncioScheduler, ManualScheduler
from .store import AnnotationStore
from .sync import PersistenceSync, collection_key_for

__all__ = [
    "AnnotationSession",
    "AnnotationEvent",
    "EventType",
    "EventEmitter",
    "Annotation",
    "Direction",
    "GestureEvent",
    "GestureKind",
    "Handle",
    "InteractionState",
    "Modifiers",
    "Side",
    "ClassInfo",
    "ClassRegistry",
    "Command",
    "CommandKind",
    "CommandLog",
    "AnnotationError",
    "GeometryRejected",
    "PersistenceWriteFailure",
    "StaleTargetReference",
    "UserCancelledDeletion",
    "AsyncioScheduler",
    "ManualScheduler",
    "AnnotationStore",
    "PersistenceSync",
    "collection_key_for",
]
