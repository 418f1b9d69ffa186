"""
Tests for the interaction controllers.

Controllers only build commands; these tests apply them to the store
directly where the outcome matters.
"""

from unittest.mock import Mock

import pytest

from bbox_annotator.core.annotation.commands import CommandKind
from bbox_annotator.core.annotation.controllers import (
    DRAFT_OVERLAY_KEY,
    ClassificationController,
    CreationController,
    DeletionController,
    KeyboardEditController,
    MoveController,
    ResizeController,
)
from bbox_annotator.core.annotation.errors import (
    GeometryRejected,
    StaleTargetReference,
    UserCancelledDeletion,
)
from bbox_annotator.core.annotation.state import (
    Annotation,
    Direction,
    EditMode,
    Handle,
    InteractionState,
    Side,
)
from bbox_annotator.core.annotation.store import AnnotationStore
from bbox_annotator.core.annotation.viewport import CoordinateAdapter, NavigationLock
from bbox_annotator.utils.config import get_default_config


@pytest.fixture
def store():
    store = AnnotationStore(bounds=(1000, 800))
    store.replace_all(
        [
            Annotation("A", (25, 25, 50, 50)),
            Annotation("B", (200, 25, 50, 50), "Class 1"),
        ]
    )
    return store


@pytest.fixture
def state():
    return InteractionState()


@pytest.fixture
def coords(viewport):
    return CoordinateAdapter(viewport)


@pytest.fixture
def nav_lock(viewport):
    return NavigationLock(viewport)


@pytest.fixture
def config():
    return get_default_config()


class TestCreationController:
    """Tests for drawing new annotations."""

    @pytest.fixture
    def creation(self, store, state, coords, nav_lock):
        return CreationController(store, state, coords, nav_lock, id_factory=lambda: "N")

    def test_press_outside_draw_mode_is_ignored(self, creation, state):
        assert not creation.press((10, 10))
        assert state.draft is None

    def test_draw(self, creation, state, viewport):
        assert creation.enter_draw_mode()
        assert not viewport.nav_enabled

        creation.press((100, 100))
        creation.drag((200, 180))
        assert viewport.overlays[DRAFT_OVERLAY_KEY] == pytest.approx((0.1, 0.125, 0.1, 0.1))

        command = creation.release((300, 250))
        assert command.kind == CommandKind.CREATE
        assert command.after[0] == Annotation("N", (100, 100, 200, 150), "Unclassified")
        assert command.positions == (2,)

        assert state.mode == EditMode.IDLE
        assert state.draft is None
        assert viewport.nav_enabled
        assert DRAFT_OVERLAY_KEY not in viewport.overlays

    def test_zero_size_is_rejected(self, creation, state, viewport):
        creation.enter_draw_mode()
        creation.press((100, 100))
        with pytest.raises(GeometryRejected):
            creation.release((100, 100))
        assert state.mode == EditMode.IDLE
        assert viewport.nav_enabled

    def test_clipped_to_image(self, creation):
        creation.enter_draw_mode()
        creation.press((900, 700))
        command = creation.release((1200, 900))
        assert command.after[0].bbox == (900, 700, 100, 100)

    def test_zoomed_viewport(self, creation, viewport):
        viewport.scale = 2.0
        creation.enter_draw_mode()
        creation.press((200, 200))
        command = creation.release((600, 500))
        assert command.after[0].bbox == (100, 100, 200, 150)

    def test_cancel(self, creation, state, viewport):
        assert not creation.cancel()
        creation.enter_draw_mode()
        creation.press((10, 10))
        assert creation.cancel()
        assert state.mode == EditMode.IDLE
        assert state.draft is None
        assert viewport.nav_enabled
        assert viewport.overlays == {}


class TestDragControllers:
    """Tests for pointer move and resize."""

    @pytest.fixture
    def mover(self, store, state, coords, nav_lock, config):
        return MoveController(store, state, coords, nav_lock, config)

    @pytest.fixture
    def resizer(self, store, state, coords, nav_lock, config):
        return ResizeController(store, state, coords, nav_lock, config)

    def test_move_previews_without_touching_store(self, mover, store, state, viewport):
        state.select(["A"])
        assert mover.press((50, 50))
        assert not viewport.nav_enabled

        mover.drag((60, 70))
        assert state.drag.preview_bbox == (35, 45, 50, 50)
        assert store.get("A").bbox == (25, 25, 50, 50)

        command = mover.release((60, 70))
        assert command.kind == CommandKind.MOVE
        assert command.after[0].bbox == (35, 45, 50, 50)
        assert state.drag is None
        assert viewport.nav_enabled

    def test_move_clamps_origin(self, mover, state):
        state.select(["A"])
        mover.press((50, 50))
        command = mover.release((10, 10))
        assert command.after[0].bbox == (0, 0, 50, 50)

    def test_move_requires_press_inside(self, mover, state):
        state.select(["A"])
        assert not mover.press((150, 150))
        assert state.drag is None

    def test_move_requires_no_handle(self, mover, state):
        state.select(["A"], Handle("A", Side.TOP))
        assert not mover.press((50, 50))

    def test_unchanged_release_builds_nothing(self, mover, state):
        state.select(["A"])
        mover.press((50, 50))
        assert mover.release((50, 50)) is None

    def test_avoid_overlap_keeps_last_free_position(self, mover, state, config):
        config.editing.avoid_overlap = True
        state.select(["A"])
        mover.press((50, 50))
        mover.drag((100, 50))
        assert state.drag.preview_bbox == (75, 25, 50, 50)
        mover.drag((200, 50))
        assert state.drag.preview_bbox == (75, 25, 50, 50)

    def test_resize_right_handle_to_border(self, resizer, state):
        state.select(["A"], Handle("A", Side.RIGHT))
        assert resizer.press((75, 50))
        resizer.drag((1500, 50))
        assert state.drag.preview_bbox == (25, 25, 975, 50)
        command = resizer.release((1500, 50))
        assert command.kind == CommandKind.RESIZE
        assert command.after[0].bbox == (25, 25, 975, 50)

    def test_resize_follows_pointer_delta(self, resizer, state):
        state.select(["A"], Handle("A", Side.TOP))
        assert resizer.press((50, 50))
        resizer.drag((50, 51))
        assert state.drag.preview_bbox == (25, 26, 50, 49)
        command = resizer.release((50, 40))
        assert command.after[0].bbox == (25, 15, 50, 60)

    def test_resize_left_from_inside(self, resizer, state):
        state.select(["A"], Handle("A", Side.LEFT))
        resizer.press((60, 50))
        command = resizer.release((50, 50))
        assert command.after[0].bbox == (15, 25, 60, 50)

    def test_resize_requires_handle_and_hit(self, resizer, state):
        state.select(["A"])
        assert not resizer.press((75, 50))
        state.select(["A"], Handle("A", Side.RIGHT))
        assert not resizer.press((500, 500))

    def test_release_after_target_vanished(self, mover, store, state, viewport):
        state.select(["A"])
        mover.press((50, 50))
        store.replace_all([a for a in store if a.id != "A"])
        with pytest.raises(StaleTargetReference):
            mover.release((60, 60))
        assert state.drag is None
        assert viewport.nav_enabled

    def test_cancel_releases_navigation(self, resizer, state, viewport):
        state.select(["A"], Handle("A", Side.TOP))
        resizer.press((50, 25))
        assert resizer.cancel()
        assert state.drag is None
        assert viewport.nav_enabled
        assert not resizer.cancel()


class TestKeyboardEditController:
    """Tests for one-pixel nudges."""

    @pytest.fixture
    def keyboard(self, store, state, coords):
        return KeyboardEditController(store, state, coords)

    def test_move_nudge(self, keyboard, state):
        state.select(["A"])
        command, key = keyboard.nudge(Direction.LEFT)
        assert command.kind == CommandKind.MOVE
        assert command.after[0].bbox == (24, 25, 50, 50)
        assert key == (CommandKind.MOVE, "A")

    def test_resize_nudge(self, keyboard, state):
        state.select(["A"], Handle("A", Side.RIGHT))
        command, key = keyboard.nudge(Direction.RIGHT)
        assert command.kind == CommandKind.RESIZE
        assert command.after[0].bbox == (25, 25, 51, 50)
        assert key == (CommandKind.RESIZE, "A", Side.RIGHT)

    def test_nudge_along_edge_does_nothing(self, keyboard, state):
        state.select(["A"], Handle("A", Side.RIGHT))
        assert keyboard.nudge(Direction.UP) is None

    def test_nudge_at_border_does_nothing(self, keyboard, store, state):
        store.replace_all([Annotation("E", (0, 0, 10, 10))])
        state.select(["E"])
        assert keyboard.nudge(Direction.LEFT) is None

    def test_nudge_needs_single_selection(self, keyboard, state):
        assert keyboard.nudge(Direction.LEFT) is None
        state.select(["A", "B"])
        assert keyboard.nudge(Direction.LEFT) is None

    def test_stale_selection(self, keyboard, state):
        state.select(["ghost"])
        with pytest.raises(StaleTargetReference):
            keyboard.nudge(Direction.LEFT)


class TestClassificationAndDeletion:
    """Tests for classify and delete."""

    def test_classify_changes_only_differing_records(self, store, state):
        state.select(["A", "B"])
        command = ClassificationController(store, state).classify("Class 1")
        assert command.kind == CommandKind.CLASSIFY
        assert command.ids == ["A"]

    def test_classify_without_change(self, store, state):
        state.select(["B"])
        assert ClassificationController(store, state).classify("Class 1") is None

    def test_delete_confirmed(self, store, state):
        state.select(["B", "A"])
        confirm = Mock(return_value=True)
        command = DeletionController(store, state).delete(confirm)
        confirm.assert_called_once()
        assert command.kind == CommandKind.DELETE
        assert command.ids == ["A", "B"]
        assert command.positions == (0, 1)
        assert state.selected == []

    def test_delete_declined_clears_selection(self, store, state):
        state.select(["A"])
        with pytest.raises(UserCancelledDeletion):
            DeletionController(store, state).delete(Mock(return_value=False))
        assert state.selected == []
        assert len(store) == 2

    def test_delete_without_selection(self, store, state):
        confirm = Mock()
        assert DeletionController(store, state).delete(confirm) is None
        confirm.assert_not_called()
