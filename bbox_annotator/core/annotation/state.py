"""
State management for the annotation editor.

Contains data classes representing annotations and the ephemeral
interaction state (selection, handle, drag, draw mode) of an editing session.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ...utils.config import UNCLASSIFIED

BBox = Tuple[int, int, int, int]
Point = Tuple[float, float]


class Side(Enum):
    """Edge of a bounding box that can hold the edit handle."""

    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"

    @property
    def is_horizontal(self) -> bool:
        """True for the edges running along the x axis."""
        return self in (Side.TOP, Side.BOTTOM)


class Direction(Enum):
    """Arrow-key and directional-focus directions."""

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @property
    def vector(self) -> Tuple[int, int]:
        return _DIRECTION_VECTORS[self]

    @property
    def side(self) -> Side:
        """Handle side selected by the unmodified arrow key."""
        return _DIRECTION_SIDES[self]


_DIRECTION_VECTORS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}

_DIRECTION_SIDES = {
    Direction.UP: Side.TOP,
    Direction.DOWN: Side.BOTTOM,
    Direction.LEFT: Side.LEFT,
    Direction.RIGHT: Side.RIGHT,
}


class SelectionKind(Enum):
    EMPTY = "empty"
    SINGLE = "single"
    MULTI = "multi"


class EditMode(Enum):
    IDLE = "idle"
    DRAW = "draw"


class DragKind(Enum):
    MOVE = "move"
    RESIZE = "resize"


@dataclass(frozen=True)
class Annotation:
    """A labelled bounding box in image pixel coordinates."""

    id: str
    bbox: BBox
    label: str = UNCLASSIFIED

    def with_bbox(self, bbox: BBox) -> "Annotation":
        return replace(self, bbox=tuple(int(v) for v in bbox))

    def with_label(self, label: str) -> "Annotation":
        return replace(self, label=label)

    @property
    def center(self) -> Point:
        x, y, w, h = self.bbox
        return (x + w / 2, y + h / 2)

    def to_dict(self):
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "bbox": list(self.bbox),
            "class": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict):
        """
        Create from dictionary.

        Raises:
            ValueError: If the record has no id or a malformed bbox
        """
        if not data.get("id"):
            raise ValueError(f"Annotation record without id: {data!r}")
        bbox = data.get("bbox")
        if bbox is None or len(bbox) != 4:
            raise ValueError(f"Annotation record with malformed bbox: {data!r}")
        values = [float(v) for v in bbox]
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"Annotation record with non-finite bbox: {data!r}")
        return cls(
            id=str(data["id"]),
            bbox=tuple(int(round(v)) for v in values),
            label=data.get("class") or UNCLASSIFIED,
        )


@dataclass(frozen=True)
class Handle:
    """The active edit handle: one side of the single selected annotation."""

    annotation_id: str
    side: Side


@dataclass
class CreationDraft:
    """Rectangle being drawn in draw mode, in image coordinates."""

    start: Point
    current: Point
    overlay_key: str


@dataclass
class DragState:
    """Move or resize gesture in progress."""

    kind: DragKind
    annotation_id: str
    start_bbox: BBox
    preview_bbox: BBox
    # Pointer offset from the box origin (moves) or the active edge (resizes)
    offset: Point = (0.0, 0.0)
    side: Optional[Side] = None


@dataclass
class InteractionState:
    """
    Ephemeral editing state for the open image.

    Passed explicitly to the selection engine and every controller;
    never persisted.
    """

    selected: List[str] = field(default_factory=list)
    handle: Optional[Handle] = None
    mode: EditMode = EditMode.IDLE
    draft: Optional[CreationDraft] = None
    drag: Optional[DragState] = None
    class_visibility: Dict[str, bool] = field(default_factory=dict)
    show_only_unclassified: bool = False
    stashed_selection: Optional[List[str]] = None
    auto_selected: bool = False

    @property
    def selection_kind(self) -> SelectionKind:
        if not self.selected:
            return SelectionKind.EMPTY
        if len(self.selected) == 1:
            return SelectionKind.SINGLE
        return SelectionKind.MULTI

    @property
    def single_id(self) -> Optional[str]:
        """Id of the selected annotation when exactly one is selected."""
        if len(self.selected) == 1:
            return self.selected[0]
        return None

    def select(self, ids, handle: Optional[Handle] = None):
        """Replace the selection, dropping duplicates but keeping order."""
        unique = []
        for annotation_id in ids:
            if annotation_id not in unique:
                unique.append(annotation_id)
        self.selected = unique
        if handle is not None and (
            len(unique) != 1 or handle.annotation_id != unique[0]
        ):
            raise ValueError("A handle requires exactly one selected annotation it belongs to")
        self.handle = handle

    def clear_selection(self):
        self.selected = []
        self.handle = None

    def is_selected(self, annotation_id: str) -> bool:
        return annotation_id in self.selected

    def preview_bbox(self, annotation_id: str) -> Optional[BBox]:
        """Live bbox of an annotation being dragged, if any."""
        if self.drag is not None and self.drag.annotation_id == annotation_id:
            return self.drag.preview_bbox
        return None

    def reset_for_image(self):
        """Forget everything tied to the previous image; visibility is kept."""
        self.clear_selection()
        self.mode = EditMode.IDLE
        self.draft = None
        self.drag = None
        self.stashed_selection = None
        self.auto_selected = False

    def to_dict(self):
        """Convert to dictionary (for debugging and UI snapshots)."""
        return {
            "selected": list(self.selected),
            "handle": (
                {"id": self.handle.annotation_id, "side": self.handle.side.value}
                if self.handle
                else None
            ),
            "mode": self.mode.value,
            "dragging": self.drag.kind.value if self.drag else None,
        }


class GestureKind(Enum):
    """Pointer gestures delivered by the viewport."""

    PRESS = "press"
    DRAG = "drag"
    RELEASE = "release"
    DOUBLE_ACTIVATE = "double_activate"


@dataclass(frozen=True)
class Modifiers:
    """Modifier keys held during a gesture or key press."""

    alt: bool = False
    ctrl: bool = False
    shift: bool = False
    meta: bool = False


@dataclass(frozen=True)
class GestureEvent:
    """A pointer gesture at a screen pixel position."""

    kind: GestureKind
    position: Point
    modifiers: Modifiers = field(default_factory=Modifiers)
