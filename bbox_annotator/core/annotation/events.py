"""
Event system for the annotation editor.

Provides a decoupled way for the editing core to notify UI components
about state changes without depending on specific UI frameworks.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events that can occur while editing annotations."""

    # Image events
    IMAGE_LOADED = "image_loaded"

    # Store events
    ANNOTATIONS_CHANGED = "annotations_changed"
    ANNOTATIONS_UPDATED = "annotations_updated"

    # Command log events
    COMMAND_PERFORMED = "command_performed"
    COMMAND_UNDONE = "command_undone"
    COMMAND_REDONE = "command_redone"

    # Interaction events
    SELECTION_CHANGED = "selection_changed"
    DRAW_MODE_CHANGED = "draw_mode_changed"
    PREVIEW_UPDATED = "preview_updated"
    VISIBILITY_CHANGED = "visibility_changed"

    # Persistence events
    SAVE_FAILED = "save_failed"
    CLASSES_UPDATED = "classes_updated"


@dataclass
class AnnotationEvent:
    """Event that occurs while editing annotations."""

    event_type: EventType
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.data is None:
            self.data = {}


class EventEmitter:
    """
    Simple event emitter for pub/sub pattern.

    Allows components to subscribe to events without tight coupling.
    The same class backs the cross-view change channel.
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[Callable]] = {}

    def on(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Subscribe to an event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        self._listeners[event_type].append(callback)

    def off(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Unsubscribe from an event type."""
        if event_type in self._listeners and callback in self._listeners[event_type]:
            self._listeners[event_type].remove(callback)

    def emit(self, event: AnnotationEvent):
        """Emit an event to all subscribers."""
        # Copy so listeners may unsubscribe while being notified
        for callback in list(self._listeners.get(event.event_type, [])):
            try:
                callback(event)
            except Exception:
                # Log but don't crash on listener errors
                logger.exception("Error in event listener for %s", event.event_type.value)

    def clear(self):
        """Clear all event listeners."""
        self._listeners.clear()
