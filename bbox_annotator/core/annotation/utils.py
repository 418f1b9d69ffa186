"""
Pure rendering helpers for annotation display.

These functions have no side effects and can be tested in isolation.
Images are numpy arrays in OpenCV's BGR channel order.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import cv2
import numpy as np
from matplotlib import colors as mcolors

from .geometry import edge_position
from .state import Annotation, Handle, Side

Color = Tuple[int, int, int]

SELECTION_COLOR: Color = (0, 255, 255)  # yellow
HANDLE_COLOR: Color = (255, 255, 0)  # cyan
DRAFT_COLOR: Color = (255, 255, 255)


def parse_color(color) -> Color:
    """
    Convert a matplotlib colour spec to a BGR tuple.

    Args:
        color: Anything ``matplotlib.colors.to_rgb`` accepts
            (``"#FF0000"``, ``"red"``, ``(1.0, 0, 0)``)

    Returns:
        ``(b, g, r)`` in ``[0, 255]``

    Raises:
        ValueError: If the colour cannot be parsed
    """
    r, g, b = (int(round(c * 255)) for c in mcolors.to_rgb(color))
    return (b, g, r)


def default_class_color(index: int, colormap: str = "tab10") -> str:
    """Hex colour for the ``index``-th class, cycling through a palette."""
    import matplotlib.pyplot as plt

    cmap = plt.get_cmap(colormap)
    n = getattr(cmap, "N", 10)
    return mcolors.to_hex(cmap(index % n)).upper()


def validate_image(image: np.ndarray) -> None:
    """
    Validate that image has correct format.

    Raises:
        ValueError: If image is invalid
    """
    if image is None:
        raise ValueError("Image is None")

    if not isinstance(image, np.ndarray):
        raise ValueError(f"Image must be numpy array, got {type(image)}")

    if image.ndim != 3:
        raise ValueError(f"Image must be 3D (H, W, C), got shape {image.shape}")

    if image.shape[2] != 3:
        raise ValueError(f"Image must have 3 channels, got {image.shape[2]}")

    if image.dtype != np.uint8:
        raise ValueError(f"Invalid image dtype: {image.dtype}")


def _edge_segment(bbox, side: Side) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    x, y, w, h = bbox
    pos = edge_position(bbox, side)
    if side.is_horizontal:
        return (x, pos), (x + w, pos)
    return (pos, y), (pos, y + h)


def draw_annotations_on_image(
    image: np.ndarray,
    annotations: Sequence[Annotation],
    class_colors: Optional[Dict[str, str]] = None,
    selected: Iterable[str] = (),
    handle: Optional[Handle] = None,
    thickness: int = 2,
    default_color: Color = (0, 0, 255),
) -> np.ndarray:
    """
    Draw annotation outlines on an image.

    Args:
        image: BGR image, left untouched
        annotations: Annotations to draw, bottom first
        class_colors: Colour spec per class name
        selected: Ids drawn with the selection colour
        handle: Active handle, whose edge is highlighted
        thickness: Outline thickness in pixels
        default_color: BGR colour for classes without one

    Returns:
        Image with outlines drawn
    """
    validate_image(image)
    result = image.copy()
    class_colors = class_colors or {}
    selected = set(selected)

    for annotation in annotations:
        x, y, w, h = annotation.bbox
        spec = class_colors.get(annotation.label)
        color = parse_color(spec) if spec is not None else default_color
        if annotation.id in selected:
            color = SELECTION_COLOR
        cv2.rectangle(result, (x, y), (x + w, y + h), color, thickness)

        if handle is not None and handle.annotation_id == annotation.id:
            start, end = _edge_segment(annotation.bbox, handle.side)
            cv2.line(result, start, end, HANDLE_COLOR, thickness + 1)

    return result


def draw_draft_on_image(image: np.ndarray, rect, thickness: int = 1) -> np.ndarray:
    """Draw the rectangle being created, if any."""
    if rect is None:
        return image
    x, y, w, h = (int(round(v)) for v in rect)
    result = image.copy()
    cv2.rectangle(result, (x, y), (x + w, y + h), DRAFT_COLOR, thickness)
    return result


def summarize_annotations(
    annotations: Iterable[Annotation], class_names: Sequence[str] = ()
) -> List[Tuple[str, int]]:
    """
    Count annotations per class for status displays.

    Registered classes come first in their order, with zero counts kept;
    labels outside ``class_names`` follow alphabetically.
    """
    counts = {name: 0 for name in class_names}
    extra: Dict[str, int] = {}
    for annotation in annotations:
        if annotation.label in counts:
            counts[annotation.label] += 1
        else:
            extra[annotation.label] = extra.get(annotation.label, 0) + 1
    return list(counts.items()) + sorted(extra.items())
