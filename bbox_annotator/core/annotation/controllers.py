"""
Interaction controllers.

Each controller turns one kind of gesture into a ``Command`` (or nothing)
without touching the store itself: the session performs the returned
commands through the undo log. Controllers raise ``GeometryRejected`` and
``StaleTargetReference`` for the caller to recover from.
"""

import logging
import uuid
from gettext import gettext as _
from typing import Callable, Hashable, Optional, Tuple

from ...utils.config import UNCLASSIFIED
from .commands import Command, CommandKind
from .errors import GeometryRejected, StaleTargetReference, UserCancelledDeletion
from .geometry import (
    clip_rect_to_bounds,
    contains,
    edge_position,
    hit_test,
    move_bbox,
    move_bbox_to,
    normalize_rect,
    nudge_edge,
    overlaps,
    resize_edge,
)
from .selection import selected_annotations, single_selected
from .state import (
    Annotation,
    BBox,
    CreationDraft,
    Direction,
    DragKind,
    DragState,
    EditMode,
    InteractionState,
    Point,
)
from .store import AnnotationStore
from .viewport import CoordinateAdapter, NavigationLock

logger = logging.getLogger(__name__)

DRAFT_OVERLAY_KEY = "bbox-draft"


def new_annotation_id() -> str:
    return str(uuid.uuid4())


class CreationController:
    """Draws new annotations in explicit draw mode."""

    def __init__(
        self,
        store: AnnotationStore,
        state: InteractionState,
        coords: CoordinateAdapter,
        nav_lock: NavigationLock,
        min_size: int = 1,
        id_factory: Callable[[], str] = new_annotation_id,
        default_label: str = UNCLASSIFIED,
    ):
        self.store = store
        self.state = state
        self.coords = coords
        self.nav_lock = nav_lock
        self.min_size = min_size
        self.id_factory = id_factory
        self.default_label = default_label

    @property
    def viewport(self):
        return self.coords.viewport

    @property
    def active(self) -> bool:
        return self.state.mode == EditMode.DRAW

    def enter_draw_mode(self) -> bool:
        if self.active:
            return False
        self.state.mode = EditMode.DRAW
        self.nav_lock.acquire()
        return True

    def cancel(self) -> bool:
        """Leave draw mode, discarding the rectangle being drawn."""
        if not self.active and self.state.draft is None:
            return False
        self._discard_draft()
        self._exit_draw_mode()
        return True

    def press(self, position: Point) -> bool:
        if not self.active:
            return False
        self._discard_draft()
        start = self.coords.pixel_to_image(position)
        self.state.draft = CreationDraft(start=start, current=start, overlay_key=DRAFT_OVERLAY_KEY)
        self.viewport.add_overlay(
            DRAFT_OVERLAY_KEY, self.coords.image_to_viewport_fraction((start[0], start[1], 0, 0))
        )
        return True

    def drag(self, position: Point) -> bool:
        draft = self.state.draft
        if draft is None:
            return False
        draft.current = self.coords.pixel_to_image(position)
        rect = normalize_rect(draft.start, draft.current)
        self.viewport.update_overlay(draft.overlay_key, self.coords.image_to_viewport_fraction(rect))
        return True

    def release(self, position: Point) -> Optional[Command]:
        """
        Finish the rectangle and build its creation command.

        Draw mode ends with every release, whether or not a box is created.

        Raises:
            GeometryRejected: If the clipped rectangle has no area
        """
        draft = self.state.draft
        if draft is None:
            return None
        try:
            end = self.coords.pixel_to_image(position)
            bbox = clip_rect_to_bounds(draft.start, end, self.coords.content_bounds())
        finally:
            self._discard_draft()
            self._exit_draw_mode()

        w, h = bbox[2], bbox[3]
        if w < max(self.min_size, 1) or h < max(self.min_size, 1):
            raise GeometryRejected(f"Drawn rectangle {bbox} is too small")

        annotation = Annotation(id=self.id_factory(), bbox=bbox, label=self.default_label)
        logger.debug("Creating annotation %s at %s", annotation.id, bbox)
        return Command.create(annotation, position=len(self.store))

    def _discard_draft(self):
        if self.state.draft is not None:
            self.viewport.remove_overlay(self.state.draft.overlay_key)
            self.state.draft = None

    def _exit_draw_mode(self):
        self.state.mode = EditMode.IDLE
        self.nav_lock.release()


class _DragController:
    """
    Shared press/drag/release handling for pointer drags.

    Subclasses decide when a drag may start and how the live bbox follows
    the pointer. Navigation is suspended for the whole gesture.
    """

    kind: DragKind
    command_kind: CommandKind

    def __init__(
        self,
        store: AnnotationStore,
        state: InteractionState,
        coords: CoordinateAdapter,
        nav_lock: NavigationLock,
        config,
    ):
        self.store = store
        self.state = state
        self.coords = coords
        self.nav_lock = nav_lock
        self.config = config

    @property
    def active(self) -> bool:
        return self.state.drag is not None and self.state.drag.kind == self.kind

    def press(self, position: Point) -> bool:
        annotation = single_selected(self.store, self.state)
        if annotation is None:
            return False
        point = self.coords.pixel_to_image(position)
        drag = self._start(annotation, point)
        if drag is None:
            return False
        self.state.drag = drag
        self.nav_lock.acquire()
        return True

    def drag(self, position: Point) -> bool:
        if not self.active:
            return False
        drag = self.state.drag
        point = self.coords.pixel_to_image(position)
        drag.preview_bbox = self._follow(drag, point)
        return True

    def release(self, position: Point) -> Optional[Command]:
        """
        End the drag and build the command for the final geometry.

        Returns:
            The command, or None if the geometry did not change

        Raises:
            StaleTargetReference: If the annotation vanished during the drag
        """
        if not self.active:
            return None
        drag = self.state.drag
        try:
            final = self._follow(drag, self.coords.pixel_to_image(position))
        finally:
            self.state.drag = None
            self.nav_lock.release()

        current = self.store.require(drag.annotation_id)
        if final == current.bbox:
            return None
        return Command.update(self.command_kind, [current], [current.with_bbox(final)])

    def cancel(self) -> bool:
        """Abandon the drag, leaving the annotation untouched."""
        if not self.active:
            return False
        self.state.drag = None
        self.nav_lock.release()
        return True

    def _start(self, annotation: Annotation, point: Point) -> Optional[DragState]:
        raise NotImplementedError

    def _follow(self, drag: DragState, point: Point) -> BBox:
        raise NotImplementedError


class MoveController(_DragController):
    """Drags the single selected annotation when no handle is active."""

    kind = DragKind.MOVE
    command_kind = CommandKind.MOVE

    def _start(self, annotation: Annotation, point: Point) -> Optional[DragState]:
        if self.state.handle is not None or not contains(point, annotation.bbox):
            return None
        x, y = annotation.bbox[0], annotation.bbox[1]
        return DragState(
            kind=self.kind,
            annotation_id=annotation.id,
            start_bbox=annotation.bbox,
            preview_bbox=annotation.bbox,
            offset=(point[0] - x, point[1] - y),
        )

    def _follow(self, drag: DragState, point: Point) -> BBox:
        origin = (point[0] - drag.offset[0], point[1] - drag.offset[1])
        candidate = move_bbox_to(origin, drag.start_bbox, self.coords.content_bounds())
        if self.config.editing.avoid_overlap and self._overlaps_others(
            drag.annotation_id, candidate
        ):
            return drag.preview_bbox
        return candidate

    def _overlaps_others(self, annotation_id: str, bbox: BBox) -> bool:
        return any(
            overlaps(bbox, other.bbox) for other in self.store if other.id != annotation_id
        )


class ResizeController(_DragController):
    """Drags the active handle edge of the single selected annotation."""

    kind = DragKind.RESIZE
    command_kind = CommandKind.RESIZE

    def _start(self, annotation: Annotation, point: Point) -> Optional[DragState]:
        handle = self.state.handle
        if handle is None or handle.annotation_id != annotation.id:
            return None
        if not hit_test(point, annotation.bbox, self.config.editing.border_tolerance).inside:
            return None
        edge = edge_position(annotation.bbox, handle.side)
        if handle.side.is_horizontal:
            offset = (0.0, point[1] - edge)
        else:
            offset = (point[0] - edge, 0.0)
        return DragState(
            kind=self.kind,
            annotation_id=annotation.id,
            start_bbox=annotation.bbox,
            preview_bbox=annotation.bbox,
            offset=offset,
            side=handle.side,
        )

    def _follow(self, drag: DragState, point: Point) -> BBox:
        if drag.side.is_horizontal:
            position = point[1] - drag.offset[1]
        else:
            position = point[0] - drag.offset[0]
        return resize_edge(
            drag.start_bbox,
            drag.side,
            position,
            self.coords.content_bounds(),
            self.config.editing.min_size,
        )


class KeyboardEditController:
    """
    One-pixel keyboard nudges.

    With an active handle the handle's edge moves, otherwise the whole box.
    Each nudge comes with a coalescing key so a burst on the same target
    collapses into one undo entry.
    """

    def __init__(
        self,
        store: AnnotationStore,
        state: InteractionState,
        coords: CoordinateAdapter,
        min_size: int = 1,
    ):
        self.store = store
        self.state = state
        self.coords = coords
        self.min_size = min_size

    def nudge(self, direction: Direction) -> Optional[Tuple[Command, Hashable]]:
        """
        Build the command for one nudge.

        Returns:
            ``(command, coalescing_key)``, or None when nothing would change
            (no single selection, already at the border or size floor, or an
            arrow running along the active edge)
        """
        annotation = single_selected(self.store, self.state)
        if annotation is None:
            if self.state.single_id is not None:
                raise StaleTargetReference(self.state.single_id)
            return None

        bounds = self.coords.content_bounds()
        handle = self.state.handle
        if handle is not None and handle.annotation_id == annotation.id:
            bbox = nudge_edge(annotation.bbox, handle.side, direction, bounds, self.min_size)
            kind = CommandKind.RESIZE
            key = (kind, annotation.id, handle.side)
        else:
            dx, dy = direction.vector
            bbox = move_bbox(annotation.bbox, dx, dy, bounds)
            kind = CommandKind.MOVE
            key = (kind, annotation.id)

        if bbox is None or bbox == annotation.bbox:
            return None
        return Command.update(kind, [annotation], [annotation.with_bbox(bbox)]), key


class ClassificationController:
    """Applies a class to the whole selection as one command."""

    def __init__(self, store: AnnotationStore, state: InteractionState):
        self.store = store
        self.state = state

    def classify(self, label: str) -> Optional[Command]:
        records = [a for a in selected_annotations(self.store, self.state) if a.label != label]
        if not records:
            return None
        return Command.update(
            CommandKind.CLASSIFY, records, [a.with_label(label) for a in records]
        )


class DeletionController:
    """Deletes the whole selection after confirmation."""

    def __init__(self, store: AnnotationStore, state: InteractionState):
        self.store = store
        self.state = state

    def delete(self, confirm: Callable[[str], bool]) -> Optional[Command]:
        """
        Build the deletion command for the selection.

        The selection is cleared whatever the outcome.

        Args:
            confirm: Asked with a message, returns True to go ahead

        Raises:
            UserCancelledDeletion: If ``confirm`` declined
        """
        try:
            records = selected_annotations(self.store, self.state)
            if not records:
                return None
            if not confirm(_("Are you sure you want to delete the selected annotations?")):
                raise UserCancelledDeletion(f"Deletion of {len(records)} annotation(s) declined")
            indexed = sorted(((self.store.index_of(a.id), a) for a in records), key=lambda p: p[0])
            return Command.delete([a for idx, a in indexed], [idx for idx, a in indexed])
        finally:
            self.state.clear_selection()
