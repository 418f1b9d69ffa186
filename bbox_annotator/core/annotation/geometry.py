"""
Pure geometry functions for bounding-box editing.

These functions have no side effects and can be tested in isolation.
All boxes are ``(x, y, width, height)`` in image pixels and bounds are
``(image_width, image_height)``.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import GeometryRejected
from .state import BBox, Direction, Point, Side

# cos(45°), with a little slack so exact diagonals stay eligible
_MAX_ANGLE_COS = float(np.cos(np.pi / 4)) - 1e-9


@dataclass(frozen=True)
class HitResult:
    """Outcome of testing a point against one bbox."""

    inside: bool
    side: Optional[Side] = None


MISS = HitResult(inside=False)


def _bounds(bounds: Tuple[float, float]) -> Tuple[int, int]:
    width, height = bounds
    return int(width), int(height)


def bbox_center(bbox: BBox) -> Point:
    x, y, w, h = bbox
    return (x + w / 2, y + h / 2)


def is_valid_bbox(bbox: BBox, bounds: Tuple[float, float], min_size: int = 1) -> bool:
    """Check the annotation invariants for ``bbox`` inside ``bounds``."""
    x, y, w, h = bbox
    width, height = _bounds(bounds)
    return (
        x >= 0
        and y >= 0
        and w >= min_size
        and h >= min_size
        and x + w <= width
        and y + h <= height
    )


def clamp_bbox(bbox: BBox, bounds: Tuple[float, float], min_size: int = 1) -> BBox:
    """
    Clamp a bbox into the image.

    The size is clipped to ``[min_size, bound]`` first, then the origin is
    clipped to ``[0, bound - size]``, so a box pushed past an edge slides back
    inside instead of shrinking.

    Args:
        bbox: Box to clamp
        bounds: Image (width, height)
        min_size: Minimum width and height

    Returns:
        Clamped integer bbox

    Raises:
        GeometryRejected: If the image cannot hold a box of ``min_size``
    """
    width, height = _bounds(bounds)
    if width < min_size or height < min_size:
        raise GeometryRejected(
            f"Bounds {width}x{height} cannot hold a box of size {min_size}"
        )

    x, y, w, h = (int(round(v)) for v in bbox)
    w = min(max(w, min_size), width)
    h = min(max(h, min_size), height)
    x = min(max(x, 0), width - w)
    y = min(max(y, 0), height - h)
    return (x, y, w, h)


def overlaps(a: BBox, b: BBox) -> bool:
    """Strict intersection test; boxes sharing only an edge do not overlap."""
    ax, ay, aw, ah = a
    bx, by, bw, bh = b
    return ax < bx + bw and bx < ax + aw and ay < by + bh and by < ay + ah


def hit_test(point: Point, bbox: BBox, tolerance: float = 0) -> HitResult:
    """
    Test a point against a bbox and its borders.

    The point is inside when it lies within ``tolerance`` of the box extents.
    When it is also within ``tolerance`` of a border, that side is reported;
    at corners the priority is top, bottom, left, right.
    """
    px, py = point
    x, y, w, h = bbox
    if not (
        x - tolerance <= px <= x + w + tolerance
        and y - tolerance <= py <= y + h + tolerance
    ):
        return MISS

    if abs(py - y) <= tolerance:
        side = Side.TOP
    elif abs(py - (y + h)) <= tolerance:
        side = Side.BOTTOM
    elif abs(px - x) <= tolerance:
        side = Side.LEFT
    elif abs(px - (x + w)) <= tolerance:
        side = Side.RIGHT
    else:
        side = None
    return HitResult(inside=True, side=side)


def contains(point: Point, bbox: BBox) -> bool:
    """True when the point is within the box extents, borders included."""
    return hit_test(point, bbox, 0).inside


def nearest_in_direction(
    origin: Point,
    candidates: Sequence[Tuple[str, Point]],
    unit_direction: Tuple[float, float],
) -> Optional[str]:
    """
    Pick the candidate to move focus to when stepping in a direction.

    Each candidate center is scored by its distance from ``origin`` plus the
    length of the part of the offset orthogonal to ``unit_direction``, so
    well-aligned neighbours win over closer but sideways ones. Candidates
    more than 45° off the direction are not eligible.

    Args:
        origin: Center of the currently focused box
        candidates: ``(id, center)`` pairs
        unit_direction: Direction to move in

    Returns:
        Id of the best candidate, or None if none is eligible
    """
    if not candidates:
        return None

    direction = np.asarray(unit_direction, dtype=np.float64)
    norm = np.linalg.norm(direction)
    if norm == 0:
        raise ValueError("Direction vector must be non-zero")
    direction = direction / norm

    centers = np.asarray([center for _, center in candidates], dtype=np.float64)
    vectors = centers - np.asarray(origin, dtype=np.float64)
    distances = np.linalg.norm(vectors, axis=1)
    dots = vectors @ direction
    orthogonal = np.linalg.norm(vectors - np.outer(dots, direction), axis=1)
    cosines = np.divide(
        dots, distances, out=np.zeros_like(dots), where=distances > 0
    )

    eligible = cosines >= _MAX_ANGLE_COS
    if not eligible.any():
        return None

    scores = np.where(eligible, distances + orthogonal, np.inf)
    return candidates[int(np.argmin(scores))][0]


def nearest_to_point(
    point: Point, candidates: Sequence[Tuple[str, Point]]
) -> Optional[str]:
    """Id of the candidate whose center is closest to ``point``."""
    if not candidates:
        return None
    centers = np.asarray([center for _, center in candidates], dtype=np.float64)
    distances = np.linalg.norm(centers - np.asarray(point, dtype=np.float64), axis=1)
    return candidates[int(np.argmin(distances))][0]


def normalize_rect(start: Point, end: Point) -> Tuple[float, float, float, float]:
    """Rectangle spanned by two corners as top-left plus absolute size."""
    (x0, y0), (x1, y1) = start, end
    return (min(x0, x1), min(y0, y1), abs(x1 - x0), abs(y1 - y0))


def clip_rect_to_bounds(start: Point, end: Point, bounds: Tuple[float, float]) -> BBox:
    """
    Clip two drag corners into the image and round them to pixels.

    The result may have zero width or height; callers decide whether that
    is acceptable.
    """
    width, height = _bounds(bounds)

    def clip(value, limit):
        return int(round(min(max(value, 0), limit)))

    x0, x1 = clip(start[0], width), clip(end[0], width)
    y0, y1 = clip(start[1], height), clip(end[1], height)
    return (min(x0, x1), min(y0, y1), abs(x1 - x0), abs(y1 - y0))


def move_bbox(bbox: BBox, dx: float, dy: float, bounds: Tuple[float, float]) -> BBox:
    """Shift a bbox, sliding it back inside the image if needed."""
    x, y, w, h = bbox
    return clamp_bbox((x + dx, y + dy, w, h), bounds)


def move_bbox_to(origin: Point, bbox: BBox, bounds: Tuple[float, float]) -> BBox:
    """Place a bbox at a new origin, keeping its size, clamped to the image."""
    _, _, w, h = bbox
    return clamp_bbox((origin[0], origin[1], w, h), bounds)


def resize_edge(
    bbox: BBox,
    side: Side,
    position: float,
    bounds: Tuple[float, float],
    min_size: int = 1,
) -> BBox:
    """
    Move one edge of a bbox, holding the opposite edge fixed.

    Args:
        bbox: Box to resize
        side: Edge being moved
        position: Requested coordinate of that edge
        bounds: Image (width, height)
        min_size: Size floor the box cannot shrink past

    Returns:
        Resized bbox; growing stops at the image border and shrinking at
        ``min_size``

    Raises:
        GeometryRejected: If the fixed edge leaves no room for ``min_size``
    """
    x, y, w, h = bbox
    width, height = _bounds(bounds)
    edge = int(round(position))

    if side == Side.TOP:
        bottom = y + h
        if bottom - min_size < 0:
            raise GeometryRejected(f"No room to keep {min_size}px above y={bottom}")
        new_y = min(max(edge, 0), bottom - min_size)
        return (x, new_y, w, bottom - new_y)
    if side == Side.BOTTOM:
        if y + min_size > height:
            raise GeometryRejected(f"No room to keep {min_size}px below y={y}")
        new_bottom = min(max(edge, y + min_size), height)
        return (x, y, w, new_bottom - y)
    if side == Side.LEFT:
        right = x + w
        if right - min_size < 0:
            raise GeometryRejected(f"No room to keep {min_size}px left of x={right}")
        new_x = min(max(edge, 0), right - min_size)
        return (new_x, y, right - new_x, h)
    if side == Side.RIGHT:
        if x + min_size > width:
            raise GeometryRejected(f"No room to keep {min_size}px right of x={x}")
        new_right = min(max(edge, x + min_size), width)
        return (x, y, new_right - x, h)
    raise ValueError(f"Unknown side: {side!r}")


def edge_position(bbox: BBox, side: Side) -> int:
    """Coordinate of one edge of a bbox."""
    x, y, w, h = bbox
    if side == Side.TOP:
        return y
    if side == Side.BOTTOM:
        return y + h
    if side == Side.LEFT:
        return x
    if side == Side.RIGHT:
        return x + w
    raise ValueError(f"Unknown side: {side!r}")


def nudge_edge(
    bbox: BBox,
    side: Side,
    direction: Direction,
    bounds: Tuple[float, float],
    min_size: int = 1,
) -> Optional[BBox]:
    """
    Move the ``side`` edge one pixel in ``direction``.

    Returns None when the direction runs along the edge (e.g. left/right on
    the top edge), since that cannot move it.
    """
    dx, dy = direction.vector
    step = dy if side.is_horizontal else dx
    if step == 0:
        return None
    return resize_edge(bbox, side, edge_position(bbox, side) + step, bounds, min_size)
