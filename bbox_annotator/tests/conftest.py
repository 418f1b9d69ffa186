"""
Shared pytest fixtures and utilities for testing.

Provides fake viewports, repositories and sessions so the editing core can be
tested without a GUI toolkit.
"""

import itertools
from unittest.mock import Mock

import numpy as np
import pytest

from bbox_annotator.core.annotation import AnnotationSession
from bbox_annotator.core.annotation.scheduler import ManualScheduler
from bbox_annotator.core.annotation.state import Annotation
from bbox_annotator.storage import InMemoryRepository

IMAGE_NAME = "img.png"
COLLECTION_KEY = "img_annotation"


class FakeViewport:
    """
    Minimal stand-in for a pan/zoom viewport.

    Screen pixels map to image pixels as ``pixel / scale + offset``.
    """

    def __init__(self, width=1000, height=800, scale=1.0, offset=(0.0, 0.0)):
        self.width = width
        self.height = height
        self.scale = scale
        self.offset = offset
        self.center = (width / 2, height / 2)
        self.nav_enabled = True
        self.nav_calls = []
        self.overlays = {}
        self.removed_overlays = []

    def pixel_to_image(self, x, y):
        return (x / self.scale + self.offset[0], y / self.scale + self.offset[1])

    def content_size(self):
        return (self.width, self.height)

    def get_center(self):
        return self.center

    def set_mouse_nav_enabled(self, enabled):
        self.nav_enabled = enabled
        self.nav_calls.append(enabled)

    def add_overlay(self, key, rect):
        self.overlays[key] = rect

    def update_overlay(self, key, rect):
        assert key in self.overlays, f"Overlay {key} was never added"
        self.overlays[key] = rect

    def remove_overlay(self, key):
        self.overlays.pop(key, None)
        self.removed_overlays.append(key)


def record(annotation_id, bbox, label="Unclassified"):
    """Persisted annotation record as the repository stores it."""
    return {"id": annotation_id, "bbox": list(bbox), "class": label}


def make_annotation(annotation_id, bbox, label="Unclassified"):
    return Annotation(id=annotation_id, bbox=tuple(bbox), label=label)


@pytest.fixture
def viewport():
    """1000x800 image shown at 100% zoom."""
    return FakeViewport()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def repository():
    """
    Repository holding two unclassified boxes for ``img.png``.

    A is centered at (50, 50) and B at (50, 150).
    """
    return InMemoryRepository(
        {
            COLLECTION_KEY: {
                "annotations": [
                    record("A", (25, 25, 50, 50)),
                    record("B", (25, 125, 50, 50)),
                ]
            }
        }
    )


@pytest.fixture
def confirm():
    return Mock(return_value=True)


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"new-{next(counter)}"


@pytest.fixture
def session(viewport, repository, scheduler, confirm, id_factory):
    """Session with ``img.png`` loaded and nothing selected."""
    session = AnnotationSession(
        viewport,
        repository,
        scheduler=scheduler,
        confirm=confirm,
        id_factory=id_factory,
    )
    session.load_image(IMAGE_NAME, auto_select=False)
    return session


@pytest.fixture
def blank_image():
    """Black BGR image matching the fake viewport."""
    return np.zeros((800, 1000, 3), dtype=np.uint8)
