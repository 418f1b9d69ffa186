"""
Annotation editing session.

Core logic for editing the bounding boxes of one open image.
UI-agnostic - can be used with any interface (Tk, Qt, Web).
"""

import logging
from gettext import gettext as _
from typing import Any, Callable, Dict, List, Optional

from ...utils.config import load_config
from .classes import ClassRegistry
from .commands import Command, CommandLog, LogAction
from .controllers import (
    ClassificationController,
    CreationController,
    DeletionController,
    KeyboardEditController,
    MoveController,
    ResizeController,
    new_annotation_id,
)
from .errors import (
    AnnotationError,
    GeometryRejected,
    StaleTargetReference,
    UserCancelledDeletion,
)
from .events import AnnotationEvent, EventEmitter, EventType
from .selection import SelectionEngine
from .state import (
    Annotation,
    BBox,
    Direction,
    EditMode,
    GestureEvent,
    GestureKind,
    InteractionState,
    Modifiers,
    Point,
)
from .store import AnnotationStore
from .sync import PersistenceSync, collection_key_for
from .viewport import CoordinateAdapter, NavigationLock

logger = logging.getLogger(__name__)

_LOG_EVENTS = {
    LogAction.PERFORM: EventType.COMMAND_PERFORMED,
    LogAction.UNDO: EventType.COMMAND_UNDONE,
    LogAction.REDO: EventType.COMMAND_REDONE,
}


class AnnotationSession:
    """
    Manages the state and logic of a bounding-box editing session.

    This class handles:
    - Image switching and loading through the persistence sync
    - Pointer gestures (draw, select, move, resize)
    - Keyboard operations (focus, handles, nudges, classes, deletion)
    - Undo/redo through the command log
    - Event emission for UI updates

    The session is UI-agnostic - it emits events that UI components
    can listen to, rather than directly manipulating UI elements.
    """

    def __init__(
        self,
        viewport,
        repository,
        config=None,
        scheduler=None,
        registry: Optional[ClassRegistry] = None,
        channel: Optional[EventEmitter] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        id_factory: Callable[[], str] = new_annotation_id,
    ):
        """
        Initialize an editing session.

        Args:
            viewport: Pan/zoom viewport (see ``viewport`` module)
            repository: Persistence collaborator (see ``sync`` module)
            config: Configuration tree, defaults from ``load_config`` (with
                environment overrides)
            scheduler: Timer source settling nudge bursts; without one every
                nudge is its own undo entry
            registry: Known classes
            channel: Change channel shared with other views of the images
            confirm: Deletion confirmation callback
            id_factory: Generator of ids for new annotations
        """
        self.config = config if config is not None else load_config()
        editing = self.config.editing

        # Event emitter for UI notifications
        self.events = EventEmitter()

        self.state = InteractionState()
        self.store = AnnotationStore(min_size=editing.min_size)
        self.registry = registry if registry is not None else ClassRegistry()
        self.confirm = confirm
        self.collection_key: Optional[str] = None
        self.image_name: Optional[str] = None

        self.coords = CoordinateAdapter(viewport)
        self.nav_lock = NavigationLock(viewport)

        self.selection = SelectionEngine(self.store, self.state, editing.border_tolerance)
        self.creation = CreationController(
            self.store,
            self.state,
            self.coords,
            self.nav_lock,
            min_size=editing.min_size,
            id_factory=id_factory,
            default_label=self.config.classes.unclassified,
        )
        self.mover = MoveController(self.store, self.state, self.coords, self.nav_lock, self.config)
        self.resizer = ResizeController(
            self.store, self.state, self.coords, self.nav_lock, self.config
        )
        self.keyboard = KeyboardEditController(
            self.store, self.state, self.coords, min_size=editing.min_size
        )
        self.classifier = ClassificationController(self.store, self.state)
        self.deleter = DeletionController(self.store, self.state)

        self.log = CommandLog(
            self._apply_command,
            max_depth=self.config.history.max_depth,
            scheduler=scheduler,
            settle_delay=editing.nudge_debounce,
        )
        self.log.add_listener(self._on_log_change)

        self.sync = PersistenceSync(repository, channel=channel, events=self.events)
        self.sync.subscribe(self._on_external_update)

    # Image lifecycle

    def load_image(self, image_name: str, auto_select: bool = True):
        """
        Open the annotations of another image.

        Pending edits of the previous image are settled and saved first;
        the undo history does not carry over.

        Args:
            image_name: Image file name, used to derive the collection key
            auto_select: Select the annotation nearest the viewport center
        """
        self.log.clear()
        self._end_gestures()

        self.image_name = image_name
        self.collection_key = collection_key_for(image_name)
        annotations = self.sync.load(self.collection_key)
        repaired = self.store.replace_all(annotations, self.coords.content_bounds())
        if repaired:
            logger.warning(
                _("Repaired {count} annotation(s) of {key}").format(
                    count=repaired, key=self.collection_key
                )
            )
        self.state.reset_for_image()

        self.events.emit(
            AnnotationEvent(
                EventType.IMAGE_LOADED,
                {
                    "collection_key": self.collection_key,
                    "num_annotations": len(self.store),
                    "bounds": self.store.bounds,
                },
            )
        )

        if auto_select:
            self.auto_select()

    def auto_select(self) -> bool:
        """Run the once-per-load selection of the most central annotation."""
        if self.selection.auto_select(self.coords.viewport_center()):
            self._selection_changed()
            return True
        return False

    def close(self):
        """Settle pending edits and detach from the change channel."""
        self.log.flush()
        self._end_gestures()
        self.sync.close()

    # Pointer gestures

    def handle_gesture(self, event: GestureEvent) -> bool:
        """
        Dispatch a viewport gesture.

        Returns:
            True if the gesture was consumed by the editor, False if the
            viewport should handle it (e.g. panning)
        """
        if event.kind == GestureKind.PRESS:
            return self.press(event.position, event.modifiers)
        if event.kind == GestureKind.DRAG:
            return self.drag(event.position)
        if event.kind == GestureKind.RELEASE:
            return self.release(event.position)
        if event.kind == GestureKind.DOUBLE_ACTIVATE:
            return self.primary_select(event.position)
        raise ValueError(f"Unknown gesture kind: {event.kind!r}")

    def press(self, position: Point, modifiers: Optional[Modifiers] = None) -> bool:
        modifiers = modifiers or Modifiers()
        if self.creation.active:
            return self.creation.press(position)
        if modifiers.alt:
            return self.secondary_select(position)
        if self.resizer.press(position) or self.mover.press(position):
            self._emit_preview()
            return True
        return False

    def drag(self, position: Point) -> bool:
        if self.creation.drag(position):
            return True
        for controller in (self.resizer, self.mover):
            if controller.active:
                try:
                    controller.drag(position)
                except GeometryRejected as e:
                    logger.debug("Drag step rejected: %s", e)
                    return True
                self._emit_preview()
                return True
        return False

    def release(self, position: Point) -> bool:
        if self.state.draft is not None:
            command = self._attempt(self.creation.release, position)
            self._emit_draw_mode()
            if command is not None and self._perform(command):
                self.state.select([command.ids[0]])
                self._selection_changed()
            return True
        for controller in (self.resizer, self.mover):
            if controller.active:
                command = self._attempt(controller.release, position)
                self._emit_preview()
                if command is not None:
                    self._perform(command)
                return True
        return False

    def primary_select(self, position: Point) -> bool:
        if self.creation.active or self.state.drag is not None:
            return False
        if self.selection.primary_select(self.coords.pixel_to_image(position)):
            self._selection_changed()
        return True

    def secondary_select(self, position: Point) -> bool:
        if self.selection.secondary_select(self.coords.pixel_to_image(position)):
            self._selection_changed()
            return True
        return False

    def focus_lost(self):
        """Abort gestures in progress; navigation is always given back."""
        self._end_gestures()

    # Keyboard operations

    def enter_draw_mode(self) -> bool:
        if self.state.drag is not None:
            return False
        if self.creation.enter_draw_mode():
            self._emit_draw_mode()
            return True
        return False

    def cancel(self) -> bool:
        """Escape: leave draw mode or abandon the current drag."""
        cancelled = self._end_gestures()
        if cancelled:
            self._emit_draw_mode()
            self._emit_preview()
        return cancelled

    def focus(self, direction: Direction) -> bool:
        """Move a single selection to the nearest annotation in a direction."""
        if self.selection.focus_direction(direction):
            self._selection_changed()
            return True
        return False

    def toggle_handle(self, direction: Direction) -> bool:
        """Arrow key: toggle the handle on the matching side."""
        if self.selection.toggle_handle(direction.side):
            self._selection_changed()
            return True
        return False

    def nudge(self, direction: Direction) -> bool:
        """Modifier+arrow: resize by the active handle, else move, one pixel."""
        if self.state.drag is not None:
            return False
        result = self._attempt(self.keyboard.nudge, direction)
        if result is None:
            return False
        command, key = result
        try:
            self.log.perform_coalesced(command, key)
        except GeometryRejected as e:
            logger.debug("Nudge rejected: %s", e)
            return False
        return True

    def classify(self, label: str) -> bool:
        """Apply a class to every selected annotation as one command."""
        if label not in self.registry:
            logger.info(_("Assigning unregistered class {label}").format(label=label))
        command = self.classifier.classify(label)
        return command is not None and self._perform(command)

    def select_class(self, label: str) -> bool:
        if self.selection.select_class(label):
            self._selection_changed()
            return True
        return False

    def delete_selected(self, confirm: Optional[Callable[[str], bool]] = None) -> bool:
        """
        Delete the selection after confirmation.

        Returns:
            True if annotations were deleted
        """
        confirm = confirm or self.confirm
        if confirm is None:
            raise ValueError("Deleting annotations requires a confirmation callback")
        had_selection = bool(self.state.selected)
        command = self._attempt(self.deleter.delete, confirm)
        if had_selection:
            self._selection_changed()
        return command is not None and self._perform(command)

    def undo(self) -> bool:
        return self.log.undo()

    def redo(self) -> bool:
        return self.log.redo()

    # Visibility

    def toggle_all_visibility(self) -> bool:
        labels = set(self.registry.names) | {a.label for a in self.store}
        had_selection = bool(self.state.selected) or self.state.stashed_selection is not None
        visible = self.selection.toggle_all_visibility(labels)
        self._emit_visibility()
        if had_selection:
            self._selection_changed()
        return visible

    def toggle_class_visibility(self, label: str) -> bool:
        visible = self.selection.toggle_class_visibility(label)
        self._emit_visibility()
        return visible

    def toggle_show_only_unclassified(self) -> bool:
        enabled = self.selection.toggle_show_only_unclassified()
        self._emit_visibility()
        return enabled

    # Classes

    def rename_class(self, old: str, new: str) -> int:
        """
        Rename a class in the registry, the open store and every persisted image.

        The undo history is cleared since it refers to the old name.

        Returns:
            Number of persisted records rewritten

        Raises:
            ValueError: If the registry refuses the rename
        """
        self.registry.rename(old, new)
        self.log.clear()
        rewritten = self.sync.rename_class(old, new)
        if self.store.rename_label(old, new):
            self._store_changed({"renamed": [old, new]})
            self._commit()
        if old in self.state.class_visibility:
            self.state.class_visibility[new] = self.state.class_visibility.pop(old)
        self.events.emit(
            AnnotationEvent(EventType.CLASSES_UPDATED, {"classes": self.registry.to_list()})
        )
        return rewritten

    # Queries

    def annotations(self) -> List[Annotation]:
        return self.store.snapshot()

    def visible_annotations(self) -> List[Annotation]:
        return self.selection.visible_annotations()

    def display_bbox(self, annotation: Annotation) -> BBox:
        """Bbox to draw: the live preview while dragging, else the stored one."""
        return self.state.preview_bbox(annotation.id) or annotation.bbox

    def overlay_rect(self, annotation: Annotation):
        """Image-fraction rectangle for placing an annotation overlay."""
        return self.coords.image_to_viewport_fraction(self.display_bbox(annotation))

    def get_visualization_data(self) -> Dict[str, Any]:
        """
        Get data needed for visualization.

        Returns:
            Dictionary with visualization data
        """
        visible = self.visible_annotations()
        return {
            "annotations": [a.with_bbox(self.display_bbox(a)) for a in visible],
            "overlays": {a.id: self.overlay_rect(a) for a in visible},
            "selected": list(self.state.selected),
            "handle": self.state.handle,
            "draft": self.state.draft,
            "draw_mode": self.state.mode == EditMode.DRAW,
            "colors": {c.name: c.color for c in self.registry},
            "num_annotations": len(self.store),
            "can_undo": self.log.can_undo,
            "can_redo": self.log.can_redo,
        }

    # Internals

    def _attempt(self, fn, *args):
        """Run a controller step, recovering from the editor's error kinds."""
        try:
            return fn(*args)
        except GeometryRejected as e:
            logger.debug("Geometry rejected: %s", e)
        except StaleTargetReference as e:
            logger.debug("Ignoring stale target: %s", e)
            if self.selection.prune():
                self._selection_changed()
        except UserCancelledDeletion as e:
            logger.info(_("Deletion cancelled: {reason}").format(reason=e))
        return None

    def _perform(self, command: Command) -> bool:
        try:
            self.log.perform(command)
        except AnnotationError as e:
            logger.debug("Command %s rejected: %s", command.describe(), e)
            return False
        return True

    def _apply_command(self, command: Command):
        changed = self.store.apply(command)
        self._store_changed({"kind": command.kind.value, "ids": changed})
        if self.selection.prune():
            self._selection_changed()

    def _on_log_change(self, action: LogAction, command: Command, settled: bool):
        if action in _LOG_EVENTS:
            self.events.emit(
                AnnotationEvent(
                    _LOG_EVENTS[action],
                    {"kind": command.kind.value, "ids": command.ids, "settled": settled},
                )
            )
        if settled:
            self._commit()

    def _commit(self):
        if self.collection_key is None:
            return
        self.sync.commit(self.collection_key, self.store.snapshot())

    def _on_external_update(self, collection_key: str, annotations: List[Annotation]):
        if collection_key != self.collection_key:
            return
        changed = self.store.merge_external(annotations)
        if changed:
            self._store_changed({"ids": changed, "external": True})
            if self.selection.prune():
                self._selection_changed()

    def _end_gestures(self) -> bool:
        ended = self.creation.cancel()
        ended = self.mover.cancel() or ended
        ended = self.resizer.cancel() or ended
        self.nav_lock.release()
        return ended

    def _store_changed(self, data: Dict[str, Any]):
        self.events.emit(AnnotationEvent(EventType.ANNOTATIONS_CHANGED, data))

    def _selection_changed(self):
        self.events.emit(AnnotationEvent(EventType.SELECTION_CHANGED, self.state.to_dict()))

    def _emit_preview(self):
        drag = self.state.drag
        self.events.emit(
            AnnotationEvent(
                EventType.PREVIEW_UPDATED,
                {
                    "id": drag.annotation_id if drag else None,
                    "bbox": drag.preview_bbox if drag else None,
                },
            )
        )

    def _emit_draw_mode(self):
        self.events.emit(
            AnnotationEvent(
                EventType.DRAW_MODE_CHANGED, {"active": self.state.mode == EditMode.DRAW}
            )
        )

    def _emit_visibility(self):
        self.events.emit(
            AnnotationEvent(
                EventType.VISIBILITY_CHANGED,
                {
                    "class_visibility": dict(self.state.class_visibility),
                    "show_only_unclassified": self.state.show_only_unclassified,
                },
            )
        )
