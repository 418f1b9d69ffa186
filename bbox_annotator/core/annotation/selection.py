"""
Selection and hit-test engine.

Turns resolved pointer and keyboard input into selection transitions on an
``InteractionState``:

- Empty: nothing selected
- Single: one id, optionally with an active edit handle
- Multi: two or more ids, never with a handle
"""

import logging
from typing import Iterable, List, Optional

from ...utils.config import UNCLASSIFIED
from .geometry import hit_test, nearest_in_direction, nearest_to_point
from .state import Annotation, Direction, Handle, InteractionState, Point, Side
from .store import AnnotationStore

logger = logging.getLogger(__name__)


def is_visible(annotation: Annotation, state: InteractionState) -> bool:
    """Whether the visibility filters let an annotation be drawn and hit."""
    if state.show_only_unclassified:
        return annotation.label == UNCLASSIFIED
    return state.class_visibility.get(annotation.label, True) or state.is_selected(
        annotation.id
    )


class SelectionEngine:
    """Resolves input against the store into selection-state changes."""

    def __init__(self, store: AnnotationStore, state: InteractionState, tolerance: float = 2):
        self.store = store
        self.state = state
        self.tolerance = tolerance

    def visible_annotations(self) -> List[Annotation]:
        return [a for a in self.store if is_visible(a, self.state)]

    def hit(self, point: Point):
        """
        Find the topmost visible annotation under an image point.

        Returns:
            ``(annotation, HitResult)`` or ``(None, None)``
        """
        for annotation in reversed(self.visible_annotations()):
            result = hit_test(point, annotation.bbox, self.tolerance)
            if result.inside:
                return annotation, result
        return None, None

    def primary_select(self, point: Point) -> bool:
        """
        Select the annotation under ``point`` alone.

        A point on a border also activates that side's handle, and doing it
        again on the same side turns the handle off. Empty space clears the
        selection.

        Returns:
            True if the selection changed
        """
        before = self._snapshot()
        annotation, result = self.hit(point)
        if annotation is None:
            self.state.clear_selection()
            return self._snapshot() != before

        handle = None
        if result.side is not None:
            candidate = Handle(annotation.id, result.side)
            if self.state.handle != candidate:
                handle = candidate
        self.state.select([annotation.id], handle)
        return self._snapshot() != before

    def secondary_select(self, point: Point) -> bool:
        """Toggle the annotation under ``point`` in or out of the selection."""
        annotation, _ = self.hit(point)
        if annotation is None:
            return False
        if self.state.is_selected(annotation.id):
            ids = [i for i in self.state.selected if i != annotation.id]
        else:
            ids = self.state.selected + [annotation.id]
        self.state.select(ids)
        return True

    def focus_direction(self, direction: Direction) -> bool:
        """Move a single selection to the best neighbour in ``direction``."""
        current_id = self.state.single_id
        if current_id is None:
            return False
        current = self.store.get(current_id)
        if current is None:
            return False

        candidates = [
            (a.id, a.center) for a in self.visible_annotations() if a.id != current_id
        ]
        target = nearest_in_direction(current.center, candidates, direction.vector)
        if target is None:
            return False
        self.state.select([target])
        return True

    def toggle_handle(self, side: Side) -> bool:
        """Activate ``side`` on a single selection, or deactivate it on repeat."""
        current_id = self.state.single_id
        if current_id is None or current_id not in self.store:
            return False
        candidate = Handle(current_id, side)
        self.state.handle = None if self.state.handle == candidate else candidate
        return True

    def select_class(self, label: str) -> bool:
        """Select every annotation of one class; never an undoable change."""
        before = self._snapshot()
        self.state.select(self.store.ids_with_label(label))
        return self._snapshot() != before

    def auto_select(self, center: Point) -> bool:
        """
        Select the annotation nearest the viewport center, once per image load.

        Returns:
            True if something was selected by this call
        """
        if self.state.auto_selected:
            return False
        self.state.auto_selected = True
        candidates = [(a.id, a.center) for a in self.store]
        target = nearest_to_point(center, candidates)
        if target is None:
            logger.debug("No annotation to auto-select")
            return False
        self.state.select([target])
        return True

    def prune(self) -> bool:
        """Drop selected ids that left the store; returns True if any did."""
        kept = [i for i in self.state.selected if i in self.store]
        changed = kept != self.state.selected
        handle = self.state.handle
        if handle is not None and (len(kept) != 1 or handle.annotation_id != kept[0]):
            handle = None
            changed = True
        if changed:
            self.state.select(kept, handle)
        if self.state.stashed_selection is not None:
            self.state.stashed_selection = [
                i for i in self.state.stashed_selection if i in self.store
            ]
        return changed

    def toggle_all_visibility(self, labels: Iterable[str]) -> bool:
        """
        Hide every class if any is visible, otherwise show them all.

        Hiding everything parks the selection; showing again restores it.

        Returns:
            New visibility
        """
        labels = set(labels) | set(self.state.class_visibility)
        any_visible = any(self.state.class_visibility.get(label, True) for label in labels)
        visible = not any_visible
        for label in labels:
            self.state.class_visibility[label] = visible

        if not visible:
            self.state.stashed_selection = list(self.state.selected)
            self.state.clear_selection()
        elif self.state.stashed_selection is not None:
            restored = [i for i in self.state.stashed_selection if i in self.store]
            self.state.stashed_selection = None
            self.state.select(restored)
        return visible

    def toggle_class_visibility(self, label: str) -> bool:
        """Flip the visibility of one class; returns the new value."""
        visible = not self.state.class_visibility.get(label, True)
        self.state.class_visibility[label] = visible
        return visible

    def toggle_show_only_unclassified(self) -> bool:
        self.state.show_only_unclassified = not self.state.show_only_unclassified
        return self.state.show_only_unclassified

    def _snapshot(self):
        return (tuple(self.state.selected), self.state.handle)


def selected_annotations(store: AnnotationStore, state: InteractionState) -> List[Annotation]:
    """Selected records still present in the store, in selection order."""
    records = []
    for annotation_id in state.selected:
        annotation = store.get(annotation_id)
        if annotation is not None:
            records.append(annotation)
    return records


def single_selected(store: AnnotationStore, state: InteractionState) -> Optional[Annotation]:
    annotation_id = state.single_id
    return None if annotation_id is None else store.get(annotation_id)
