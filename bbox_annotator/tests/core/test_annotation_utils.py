"""
Tests for pure annotation rendering functions.

These tests validate individual pure functions that have no side effects.
"""

import numpy as np
import pytest

from bbox_annotator.core.annotation.state import Annotation, Handle, Side
from bbox_annotator.core.annotation.utils import (
    HANDLE_COLOR,
    SELECTION_COLOR,
    default_class_color,
    draw_annotations_on_image,
    draw_draft_on_image,
    parse_color,
    summarize_annotations,
    validate_image,
)


@pytest.fixture
def image():
    return np.zeros((100, 100, 3), dtype=np.uint8)


class TestColors:
    """Tests for colour helpers."""

    def test_parse_color(self):
        assert parse_color("#FF0000") == (0, 0, 255)
        assert parse_color("blue") == (255, 0, 0)
        assert parse_color((0.0, 1.0, 0.0)) == (0, 255, 0)

    def test_parse_color_invalid(self):
        with pytest.raises(ValueError):
            parse_color("not-a-colour")

    def test_default_class_color_cycles(self):
        assert default_class_color(0) == "#1F77B4"
        assert default_class_color(10) == default_class_color(0)
        assert default_class_color(1) != default_class_color(0)


class TestDrawing:
    """Tests for drawing annotations."""

    def test_class_color_and_selection(self, image):
        annotations = [
            Annotation("a", (10, 10, 20, 20), "Car"),
            Annotation("b", (50, 50, 20, 20), "Car"),
        ]
        result = draw_annotations_on_image(
            image, annotations, class_colors={"Car": "#00FF00"}, selected=["b"]
        )
        assert tuple(result[10, 20]) == (0, 255, 0)
        assert tuple(result[50, 60]) == SELECTION_COLOR
        assert tuple(result[20, 20]) == (0, 0, 0)
        assert image.max() == 0

    def test_unknown_class_uses_default(self, image):
        result = draw_annotations_on_image(image, [Annotation("a", (10, 10, 20, 20), "X")])
        assert tuple(result[10, 20]) == (0, 0, 255)

    def test_handle_edge(self, image):
        annotation = Annotation("a", (10, 10, 20, 20))
        result = draw_annotations_on_image(
            image, [annotation], selected=["a"], handle=Handle("a", Side.BOTTOM)
        )
        assert tuple(result[30, 20]) == HANDLE_COLOR
        assert tuple(result[10, 20]) == SELECTION_COLOR

    def test_draft(self, image):
        assert draw_draft_on_image(image, None) is image
        result = draw_draft_on_image(image, (10.2, 10.0, 30.0, 20.4))
        assert tuple(result[10, 25]) == (255, 255, 255)

    def test_validate_image(self):
        with pytest.raises(ValueError):
            validate_image(None)
        with pytest.raises(ValueError):
            validate_image(np.zeros((10, 10), dtype=np.uint8))
        with pytest.raises(ValueError):
            validate_image(np.zeros((10, 10, 4), dtype=np.uint8))
        with pytest.raises(ValueError):
            validate_image(np.zeros((10, 10, 3), dtype=np.float32))
        validate_image(np.zeros((10, 10, 3), dtype=np.uint8))


def test_summarize_annotations():
    annotations = [
        Annotation("a", (0, 0, 1, 1), "Car"),
        Annotation("b", (0, 0, 1, 1), "Zebra"),
        Annotation("c", (0, 0, 1, 1), "Car"),
        Annotation("d", (0, 0, 1, 1), "Apple"),
    ]
    summary = summarize_annotations(annotations, ["Unclassified", "Car"])
    assert summary == [("Unclassified", 0), ("Car", 2), ("Apple", 1), ("Zebra", 1)]
