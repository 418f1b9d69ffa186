"""
GUI adapter for annotation session.

Bridges the AnnotationSession with toolkit event handlers and owns the
canonical key bindings.
"""

import logging
from gettext import gettext as _
from typing import Any, Callable, Dict, Iterable, Optional

import numpy as np

from ..core.annotation import AnnotationEvent, AnnotationSession, EventType
from ..core.annotation.classes import digit_class_name
from ..core.annotation.geometry import normalize_rect
from ..core.annotation.state import (
    Annotation,
    Direction,
    GestureEvent,
    GestureKind,
    Modifiers,
)
from ..core.annotation.utils import (
    default_class_color,
    draw_annotations_on_image,
    draw_draft_on_image,
    summarize_annotations,
)

logger = logging.getLogger(__name__)

ARROW_KEYS = {
    "up": Direction.UP,
    "arrowup": Direction.UP,
    "down": Direction.DOWN,
    "arrowdown": Direction.DOWN,
    "left": Direction.LEFT,
    "arrowleft": Direction.LEFT,
    "right": Direction.RIGHT,
    "arrowright": Direction.RIGHT,
}

FOCUS_KEYS = {
    "w": Direction.UP,
    "s": Direction.DOWN,
    "a": Direction.LEFT,
    "d": Direction.RIGHT,
}

_REDRAW_EVENTS = (
    EventType.IMAGE_LOADED,
    EventType.ANNOTATIONS_CHANGED,
    EventType.SELECTION_CHANGED,
    EventType.PREVIEW_UPDATED,
    EventType.DRAW_MODE_CHANGED,
    EventType.VISIBILITY_CHANGED,
)


class GUIAnnotationAdapter:
    """
    Adapter connecting AnnotationSession to a GUI toolkit.

    Provides a compatibility layer that:
    - Translates pointer gestures and key presses to session calls
    - Translates session events to GUI callbacks
    - Handles visualization rendering
    """

    def __init__(
        self,
        session: AnnotationSession,
        update_image_callback: Optional[Callable] = None,
        confirm_callback: Optional[Callable[[str], bool]] = None,
        error_callback: Optional[Callable[[str], None]] = None,
        thickness: int = 2,
    ):
        """
        Initialize adapter.

        Args:
            session: Core annotation session
            update_image_callback: Callback to redraw the GUI image
            confirm_callback: Asks the user a yes/no question
            error_callback: Shows an error message to the user
            thickness: Outline thickness for rendered annotations
        """
        self.session = session
        self.update_image_callback = update_image_callback
        self.confirm_callback = confirm_callback
        self.error_callback = error_callback
        self.thickness = thickness

        # Subscribe to session events
        self._setup_event_handlers()

    def _setup_event_handlers(self):
        """Setup event handlers for session events."""
        for event_type in _REDRAW_EVENTS:
            self.session.events.on(event_type, self._on_redraw)
        self.session.events.on(EventType.SAVE_FAILED, self._on_save_failed)

    def detach(self):
        """Stop listening to the session."""
        for event_type in _REDRAW_EVENTS:
            self.session.events.off(event_type, self._on_redraw)
        self.session.events.off(EventType.SAVE_FAILED, self._on_save_failed)

    def _on_redraw(self, event: AnnotationEvent):
        if self.update_image_callback:
            self.update_image_callback()

    def _on_save_failed(self, event: AnnotationEvent):
        if self.error_callback:
            self.error_callback(
                _("Could not save annotations for {key}: {error}").format(
                    key=event.data.get("collection_key"), error=event.data.get("error")
                )
            )

    # Pointer input

    def on_gesture(
        self,
        kind: GestureKind,
        x: float,
        y: float,
        alt: bool = False,
        ctrl: bool = False,
        shift: bool = False,
        meta: bool = False,
    ) -> bool:
        """
        Forward a pointer gesture at screen pixel ``(x, y)``.

        Returns:
            True if the editor consumed it; otherwise the viewport should
            handle it (panning)
        """
        event = GestureEvent(
            kind=kind,
            position=(x, y),
            modifiers=Modifiers(alt=alt, ctrl=ctrl, shift=shift, meta=meta),
        )
        return self.session.handle_gesture(event)

    def on_focus_lost(self):
        self.session.focus_lost()

    # Keyboard input

    def on_key(
        self,
        key: str,
        ctrl: bool = False,
        shift: bool = False,
        alt: bool = False,
        meta: bool = False,
    ) -> bool:
        """
        Dispatch a key press through the canonical bindings.

        Args:
            key: Key name as reported by the toolkit ("r", "Escape", "Up",
                "ArrowUp", "Delete", "3", ...)

        Returns:
            True if the key is bound (whether or not it changed anything)
        """
        name = key.lower()
        ctrl = ctrl or meta

        if name in ARROW_KEYS:
            direction = ARROW_KEYS[name]
            if shift:
                self.session.nudge(direction)
            else:
                self.session.toggle_handle(direction)
            return True

        if len(name) == 1 and name.isdigit():
            label = digit_class_name(int(name))
            if ctrl:
                self.session.toggle_class_visibility(label)
            elif alt:
                self.session.select_class(label)
            else:
                self.session.classify(label)
            return True

        if ctrl:
            if name == "z":
                self.session.undo()
                return True
            if name == "y":
                self.session.redo()
                return True
            return False

        if name == "escape":
            self.session.cancel()
            return True
        if name == "delete":
            self.delete_selected()
            return True
        if name == "r":
            self.session.enter_draw_mode()
            return True
        if name in FOCUS_KEYS:
            self.session.focus(FOCUS_KEYS[name])
            return True
        if name == "v":
            self.session.toggle_all_visibility()
            return True
        if name == "f":
            self.session.toggle_show_only_unclassified()
            return True
        return False

    def delete_selected(self) -> bool:
        confirm = self.confirm_callback or self.session.confirm
        if confirm is None:
            logger.warning(_("No confirmation dialog available, not deleting"))
            return False
        return self.session.delete_selected(confirm)

    # Rendering

    def get_visualization(self, image: np.ndarray) -> np.ndarray:
        """
        Get visualization for display.

        Args:
            image: BGR image of the open picture

        Returns:
            BGR image with annotations, selection, handle and draft drawn
        """
        viz_data = self.session.get_visualization_data()
        vis = draw_annotations_on_image(
            image,
            viz_data["annotations"],
            class_colors=self.class_colors(viz_data["annotations"], viz_data["colors"]),
            selected=viz_data["selected"],
            handle=viz_data["handle"],
            thickness=self.thickness,
        )
        draft = viz_data["draft"]
        if draft is not None:
            vis = draw_draft_on_image(vis, normalize_rect(draft.start, draft.current))
        return vis

    def class_colors(
        self, annotations: Iterable[Annotation], registered: Dict[str, str]
    ) -> Dict[str, str]:
        """Registered colours, plus palette colours for unregistered labels."""
        colors = dict(registered)
        unregistered = sorted({a.label for a in annotations} - set(colors))
        for offset, label in enumerate(unregistered):
            colors[label] = default_class_color(len(registered) + offset)
        return colors

    def get_status(self) -> Dict[str, Any]:
        """Counts and history flags for a status bar."""
        viz_data = self.session.get_visualization_data()
        return {
            "class_counts": summarize_annotations(
                self.session.annotations(), self.session.registry.names
            ),
            "num_annotations": viz_data["num_annotations"],
            "draw_mode": viz_data["draw_mode"],
            "can_undo": viz_data["can_undo"],
            "can_redo": viz_data["can_redo"],
        }
