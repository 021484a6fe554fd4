"""
Tests for the canvas interaction engine.

Geometry used below, at scale 1 and zero pan:
- START at (0, 0) is 96x96; its output port sits at (96, 48).
- TWITTER_EXTRACTOR at (300, 0) is 192x120; its input port sits at
  (300, 60) and its output port at (492, 60).
- END at (300, 300) is 96x96; its input port sits at (300, 348).
"""

import pytest

from sigflow.domain.workflow.canvas import (
    MAX_PAN_OFFSET,
    MAX_SCALE,
    MIN_SCALE,
    CanvasEngine,
    Connecting,
    DraggingNode,
    HitKind,
    Idle,
    Panning,
    Point,
    PointerButton,
    ThreeFingerPanning,
    Touch,
    graph_to_screen,
    screen_to_graph,
)
from sigflow.domain.workflow.entities import Position
from sigflow.domain.workflow.graph import WorkflowGraph
from tests.conftest import make_node, make_workflow


@pytest.fixture
def canvas() -> CanvasEngine:
    workflow = make_workflow(
        [
            make_node("start", "START", 0, 0),
            make_node("feed", "TWITTER_EXTRACTOR", 300, 0),
            make_node("end", "END", 300, 300),
        ],
        [],
    )
    return CanvasEngine(WorkflowGraph(workflow), scale=1.0)


def _touches(dx: float = 0.0, dy: float = 0.0) -> list[Touch]:
    return [
        Touch(identifier=1, x=100 + dx, y=100 + dy),
        Touch(identifier=2, x=200 + dx, y=100 + dy),
        Touch(identifier=3, x=150 + dx, y=200 + dy),
    ]


class TestCoordinates:
    """Tests for the screen/graph transform."""

    def test_transform_formula(self) -> None:
        assert screen_to_graph(Point(110, 70), 2.0, Point(10, 10)) == Point(50, 30)
        assert graph_to_screen(Point(50, 30), 2.0, Point(10, 10)) == Point(110, 70)

    @pytest.mark.parametrize("scale", [0.1, 0.8, 1.7, 3.0])
    def test_round_trip(self, scale) -> None:
        canvas = CanvasEngine(WorkflowGraph(make_workflow([], [])), scale=scale)
        point = Point(123.5, -42.25)
        back = canvas.to_graph(canvas.to_screen(point))
        assert back.x == pytest.approx(point.x)
        assert back.y == pytest.approx(point.y)

    def test_initial_scale_is_clamped(self) -> None:
        canvas = CanvasEngine(WorkflowGraph(make_workflow([], [])), scale=10)
        assert canvas.scale == MAX_SCALE

    def test_hit_test(self, canvas) -> None:
        assert canvas.hit(Point(96, 48)).kind is HitKind.OUTPUT_PORT
        assert canvas.hit(Point(300, 60)).kind is HitKind.INPUT_PORT
        assert canvas.hit(Point(350, 30)).node_id == "feed"
        assert canvas.hit(Point(350, 30)).kind is HitKind.NODE_BODY
        assert canvas.hit(Point(1000, 1000)).kind is HitKind.CANVAS


class TestZoom:
    """Wheel and toolbar zoom."""

    def test_default_zoom(self) -> None:
        canvas = CanvasEngine(WorkflowGraph(make_workflow([], [])))
        assert canvas.scale == pytest.approx(0.8)
        assert canvas.zoom_percent == 80

    def test_wheel_steps(self, canvas) -> None:
        canvas.wheel(120)
        assert canvas.scale == pytest.approx(0.9)
        canvas.wheel(-120)
        assert canvas.scale == pytest.approx(0.99)

    def test_wheel_clamps(self, canvas) -> None:
        for _ in range(100):
            canvas.wheel(-1)
        assert canvas.scale == MAX_SCALE
        for _ in range(100):
            canvas.wheel(1)
        assert canvas.scale == MIN_SCALE

    def test_toolbar_zoom_clamps(self, canvas) -> None:
        for _ in range(20):
            canvas.zoom_in()
            assert MIN_SCALE <= canvas.scale <= MAX_SCALE
        assert canvas.scale == MAX_SCALE
        for _ in range(40):
            canvas.zoom_out()
        assert canvas.scale == MIN_SCALE

    def test_zoom_in_then_out(self, canvas) -> None:
        canvas.zoom_in()
        assert canvas.scale == pytest.approx(1.2)
        canvas.zoom_out()
        assert canvas.scale == pytest.approx(1.0)

    def test_reset(self, canvas) -> None:
        canvas.pointer_down(Point(0, 0), PointerButton.SECONDARY)
        canvas.pointer_move(Point(40, 40))
        canvas.pointer_up(Point(40, 40))
        canvas.zoom_in()
        canvas.reset_zoom()
        assert canvas.scale == 1.0
        assert canvas.pan == Point(0, 0)


class TestPointerGestures:
    """Drag, pan and connect gestures."""

    def test_drag_node(self, canvas) -> None:
        canvas.pointer_down(Point(350, 30))
        assert isinstance(canvas.mode, DraggingNode)
        canvas.pointer_move(Point(450, 130))
        assert canvas.pointer_up(Point(450, 130)) is None
        assert canvas.graph.node("feed").position == Position(400, 100)
        assert isinstance(canvas.mode, Idle)

    def test_drag_respects_zoom(self) -> None:
        workflow = make_workflow([make_node("feed", "TWITTER_EXTRACTOR", 300, 0)], [])
        canvas = CanvasEngine(WorkflowGraph(workflow), scale=2.0)
        canvas.pointer_down(Point(700, 40))
        canvas.pointer_move(Point(800, 40))
        canvas.pointer_up(Point(800, 40))
        assert canvas.graph.node("feed").position == Position(350, 0)

    def test_readonly_node_does_not_drag(self, canvas) -> None:
        canvas.graph.node("feed").readonly = True
        canvas.pointer_down(Point(350, 30))
        assert isinstance(canvas.mode, Idle)

    def test_secondary_button_pans(self, canvas) -> None:
        canvas.pointer_down(Point(5, 5), PointerButton.SECONDARY)
        assert isinstance(canvas.mode, Panning)
        canvas.pointer_move(Point(25, 15))
        canvas.pointer_move(Point(30, 15))
        canvas.pointer_up(Point(30, 15))
        assert canvas.pan == Point(25, 10)
        assert canvas.to_graph(Point(25, 10)) == Point(0, 0)

    def test_connect_via_ports(self, canvas) -> None:
        canvas.pointer_down(Point(96, 48))
        assert isinstance(canvas.mode, Connecting)
        canvas.pointer_move(Point(200, 50))
        assert canvas.preview_edge() == (Point(96, 48), Point(200, 50))

        connection = canvas.pointer_up(Point(300, 60))

        assert connection is not None
        assert (connection.source, connection.target) == ("start", "feed")
        assert canvas.graph.connections == [connection]
        assert isinstance(canvas.mode, Idle)

    def test_invalid_connection_is_discarded(self, canvas) -> None:
        canvas.pointer_down(Point(96, 48))
        assert canvas.pointer_up(Point(300, 348)) is None
        assert canvas.graph.connections == []
        assert isinstance(canvas.mode, Idle)

    def test_release_on_canvas_discards_edge(self, canvas) -> None:
        canvas.pointer_down(Point(96, 48))
        assert canvas.pointer_up(Point(700, 700)) is None
        assert canvas.graph.connections == []

    def test_new_gesture_only_from_idle(self, canvas) -> None:
        canvas.pointer_down(Point(5, 5), PointerButton.SECONDARY)
        canvas.pointer_down(Point(350, 30))
        assert isinstance(canvas.mode, Panning)

    def test_pointer_leave_cancels(self, canvas) -> None:
        canvas.pointer_down(Point(96, 48))
        canvas.pointer_leave()
        assert isinstance(canvas.mode, Idle)
        assert canvas.preview_edge() is None

    def test_add_node_at_screen_position(self) -> None:
        canvas = CanvasEngine(
            WorkflowGraph(make_workflow([], [])), scale=2.0, pan=Point(100, 100)
        )
        node = canvas.add_node_at("AI_EVALUATOR", Point(300, 500))
        assert node.position == Position(100, 200)


class TestThreeFingerPan:
    """Touch panning."""

    def test_enters_with_three_touches(self, canvas) -> None:
        canvas.touch_start(_touches())
        assert isinstance(canvas.mode, ThreeFingerPanning)

    def test_two_touches_do_nothing(self, canvas) -> None:
        canvas.touch_start(_touches()[:2])
        assert isinstance(canvas.mode, Idle)

    def test_pan_moves_against_average_delta(self, canvas) -> None:
        canvas.touch_start(_touches())
        canvas.touch_move(_touches(dx=10, dy=-5))
        assert canvas.pan.x == pytest.approx(-12)
        assert canvas.pan.y == pytest.approx(6)

    def test_pan_is_clamped(self, canvas) -> None:
        canvas.touch_start(_touches())
        canvas.touch_move(_touches(dx=5000, dy=-5000))
        assert canvas.pan == Point(-MAX_PAN_OFFSET, MAX_PAN_OFFSET)

    def test_lifting_a_finger_ends_pan(self, canvas) -> None:
        canvas.touch_start(_touches())
        canvas.touch_end(_touches()[:2])
        assert isinstance(canvas.mode, Idle)

    def test_touch_ignored_while_dragging(self, canvas) -> None:
        canvas.pointer_down(Point(350, 30))
        canvas.touch_start(_touches())
        assert isinstance(canvas.mode, DraggingNode)
