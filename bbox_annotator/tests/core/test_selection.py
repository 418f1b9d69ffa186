"""
Tests for the selection and hit-test engine.
"""

import pytest

from bbox_annotator.core.annotation.selection import SelectionEngine, is_visible
from bbox_annotator.core.annotation.state import (
    Annotation,
    Direction,
    Handle,
    InteractionState,
    SelectionKind,
    Side,
)
from bbox_annotator.core.annotation.store import AnnotationStore


@pytest.fixture
def state():
    return InteractionState()


@pytest.fixture
def store():
    """A and C overlap, C is on top; B sits apart and belongs to Class 1."""
    store = AnnotationStore(bounds=(1000, 800))
    store.replace_all(
        [
            Annotation("A", (10, 10, 100, 50)),
            Annotation("B", (200, 10, 100, 50), "Class 1"),
            Annotation("C", (50, 20, 100, 50)),
        ]
    )
    return store


@pytest.fixture
def engine(store, state):
    return SelectionEngine(store, state, tolerance=2)


class TestPointerSelection:
    """Tests for primary and secondary selection."""

    def test_topmost_hit_wins(self, engine, state):
        assert engine.primary_select((80, 40))
        assert state.selected == ["C"]
        assert state.handle is None

    def test_border_activates_handle(self, engine, state):
        engine.primary_select((300, 30))
        assert state.selected == ["B"]
        assert state.handle == Handle("B", Side.RIGHT)

    def test_same_border_again_turns_handle_off(self, engine, state):
        engine.primary_select((300, 30))
        assert engine.primary_select((300, 30))
        assert state.selected == ["B"]
        assert state.handle is None

    def test_empty_space_clears(self, engine, state):
        engine.primary_select((250, 30))
        assert engine.primary_select((600, 600))
        assert state.selection_kind == SelectionKind.EMPTY
        assert not engine.primary_select((600, 600))

    def test_secondary_select_toggles(self, engine, state):
        engine.primary_select((300, 30))
        assert engine.secondary_select((250, 30)) is True
        assert state.selected == []

        engine.secondary_select((250, 30))
        engine.secondary_select((30, 30))
        assert state.selected == ["B", "A"]
        assert state.selection_kind == SelectionKind.MULTI
        assert state.handle is None

    def test_secondary_select_on_empty_space(self, engine, state):
        engine.primary_select((250, 30))
        assert not engine.secondary_select((600, 600))
        assert state.selected == ["B"]

    def test_hidden_annotations_are_not_hit(self, engine, state):
        engine.toggle_class_visibility("Class 1")
        engine.primary_select((250, 30))
        assert state.selected == []


class TestKeyboardSelection:
    """Tests for directional focus, handles and class selection."""

    @pytest.fixture
    def grid(self):
        store = AnnotationStore(bounds=(1000, 800))
        store.replace_all(
            [
                Annotation("A", (25, 25, 50, 50)),
                Annotation("B", (25, 125, 50, 50)),
                Annotation("R", (225, 35, 50, 50)),
            ]
        )
        return store

    def test_focus_moves_to_neighbour(self, grid, state):
        engine = SelectionEngine(grid, state)
        state.select(["A"])
        assert engine.focus_direction(Direction.DOWN)
        assert state.selected == ["B"]
        assert engine.focus_direction(Direction.UP)
        assert state.selected == ["A"]
        assert engine.focus_direction(Direction.RIGHT)
        assert state.selected == ["R"]

    def test_focus_without_candidate_keeps_selection(self, grid, state):
        engine = SelectionEngine(grid, state)
        state.select(["A"])
        assert not engine.focus_direction(Direction.LEFT)
        assert state.selected == ["A"]

    def test_focus_needs_single_selection(self, grid, state):
        engine = SelectionEngine(grid, state)
        assert not engine.focus_direction(Direction.DOWN)
        state.select(["A", "B"])
        assert not engine.focus_direction(Direction.DOWN)

    def test_toggle_handle(self, engine, state):
        assert not engine.toggle_handle(Side.TOP)
        state.select(["A"])
        assert engine.toggle_handle(Side.TOP)
        assert state.handle == Handle("A", Side.TOP)
        engine.toggle_handle(Side.LEFT)
        assert state.handle == Handle("A", Side.LEFT)
        engine.toggle_handle(Side.LEFT)
        assert state.handle is None

    def test_select_class(self, engine, state):
        assert engine.select_class("Unclassified")
        assert state.selected == ["A", "C"]
        assert engine.select_class("Class 9")
        assert state.selected == []

    def test_auto_select_runs_once(self, engine, state):
        assert engine.auto_select((250, 35))
        assert state.selected == ["B"]
        state.clear_selection()
        assert not engine.auto_select((250, 35))
        assert state.selected == []

    def test_prune_drops_missing_ids(self, engine, state, store):
        state.select(["B"], Handle("B", Side.TOP))
        store.replace_all([a for a in store if a.id != "B"])
        assert engine.prune()
        assert state.selected == []
        assert state.handle is None
        assert not engine.prune()


class TestVisibility:
    """Tests for class visibility filters."""

    def test_selected_annotations_stay_visible(self, engine, state, store):
        state.select(["B"])
        engine.toggle_class_visibility("Class 1")
        assert is_visible(store.get("B"), state)
        state.clear_selection()
        assert not is_visible(store.get("B"), state)

    def test_show_only_unclassified(self, engine, state, store):
        state.select(["B"])
        assert engine.toggle_show_only_unclassified()
        assert [a.id for a in engine.visible_annotations()] == ["A", "C"]
        assert not engine.toggle_show_only_unclassified()
        assert len(engine.visible_annotations()) == 3

    def test_toggle_all_stashes_and_restores_selection(self, engine, state):
        state.select(["A", "B"])
        labels = ["Unclassified", "Class 1"]

        assert engine.toggle_all_visibility(labels) is False
        assert state.selected == []
        assert engine.visible_annotations() == []

        assert engine.toggle_all_visibility(labels) is True
        assert state.selected == ["A", "B"]
        assert len(engine.visible_annotations()) == 3

    def test_toggle_all_shows_everything_if_all_hidden(self, engine, state):
        engine.toggle_class_visibility("Unclassified")
        engine.toggle_class_visibility("Class 1")
        assert engine.toggle_all_visibility(["Unclassified", "Class 1"]) is True
        assert len(engine.visible_annotations()) == 3
