"""
Viewport bridge for the annotation editor.

The pan/zoom engine itself lives in the host toolkit. The editor only needs
a few things from it, consumed duck-typed from a ``viewport`` object:

- ``pixel_to_image(x, y) -> (x, y)``: screen pixel to image pixel
- ``content_size() -> (width, height)``: image size in pixels
- ``get_center() -> (x, y)``: viewport center in image pixels
- ``set_mouse_nav_enabled(enabled)``: pan/zoom gestures on or off
- ``add_overlay(key, rect)``, ``update_overlay(key, rect)``,
  ``remove_overlay(key)``: rectangles given as fractions of the image size
"""

import logging
from typing import Tuple

from .state import Point

logger = logging.getLogger(__name__)


class CoordinateAdapter:
    """
    Stateless coordinate conversions backed by the viewport.

    Nothing is cached: pan and zoom can change between two calls, so every
    call asks the viewport again.
    """

    def __init__(self, viewport):
        self.viewport = viewport

    def pixel_to_image(self, point: Point) -> Point:
        x, y = self.viewport.pixel_to_image(point[0], point[1])
        return (float(x), float(y))

    def content_bounds(self) -> Tuple[int, int]:
        width, height = self.viewport.content_size()
        return (int(width), int(height))

    def viewport_center(self) -> Point:
        """Center of the visible area in image coordinates."""
        x, y = self.viewport.get_center()
        return (float(x), float(y))

    def image_to_viewport_fraction(self, bbox) -> Tuple[float, float, float, float]:
        """
        Express a bbox as fractions of the image size, for overlay placement.

        Args:
            bbox: ``(x, y, width, height)`` in image pixels, floats allowed

        Returns:
            ``(left, top, width, height)`` in ``[0, 1]`` image fractions
        """
        width, height = self.content_bounds()
        if width <= 0 or height <= 0:
            return (0.0, 0.0, 0.0, 0.0)
        x, y, w, h = bbox
        return (x / width, y / height, w / width, h / height)


class NavigationLock:
    """
    Scoped suspension of viewport pan/zoom gestures.

    Drags and draw mode acquire the lock at their start; every exit path
    releases it. Both calls are idempotent, so a release after focus loss
    and the regular pointer-up release can both run safely.
    """

    def __init__(self, viewport):
        self.viewport = viewport
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self):
        if self._held:
            return
        self.viewport.set_mouse_nav_enabled(False)
        self._held = True
        logger.debug("Viewport navigation suspended")

    def release(self):
        if not self._held:
            return
        self.viewport.set_mouse_nav_enabled(True)
        self._held = False
        logger.debug("Viewport navigation restored")
