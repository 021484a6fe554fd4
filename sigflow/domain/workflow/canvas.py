"""
Canvas interaction engine for the workflow editor.

Turns discrete pointer, touch and wheel events into graph edits under a
pan/zoom coordinate system:

    graph = (screen - pan) / scale
    screen = graph * scale + pan

Exactly one drag mode is active at a time. New modes are entered only
from Idle; move/up events only act on the current mode. Rejected
connections are discarded here and never raised to the caller.

Single-threaded and event driven. No IO.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from sigflow.domain.workflow.entities import Connection, Node, Position
from sigflow.domain.workflow.errors import InvalidConnectionError
from sigflow.domain.workflow.graph import WorkflowGraph
from sigflow.domain.workflow.registry import ComponentCategory, get_schema

logger = logging.getLogger(__name__)

MIN_SCALE = 0.1
MAX_SCALE = 3.0
DEFAULT_SCALE = 0.8
WHEEL_ZOOM_OUT = 0.9
WHEEL_ZOOM_IN = 1.1
TOOLBAR_ZOOM_STEP = 1.2
TOUCH_PAN_MULTIPLIER = 1.2
MAX_PAN_OFFSET = 2000.0
THREE_FINGERS = 3

FLOW_NODE_SIZE = (96.0, 96.0)
COMPONENT_NODE_SIZE = (192.0, 120.0)
PORT_HIT_RADIUS = 10.0

INPUT_PORT = "input"
OUTPUT_PORT = "output"


@dataclass(frozen=True)
class Point:
    """A 2D point or vector. Space (screen or graph) is implied by context."""

    x: float
    y: float

    def __add__(self, other: "Point") -> "Point":
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Point") -> "Point":
        return Point(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> "Point":
        return Point(self.x * factor, self.y * factor)

    def __truediv__(self, factor: float) -> "Point":
        return Point(self.x / factor, self.y / factor)

    def distance_to(self, other: "Point") -> float:
        return ((self.x - other.x) ** 2 + (self.y - other.y) ** 2) ** 0.5


ORIGIN = Point(0.0, 0.0)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_scale(scale: float) -> float:
    return clamp(scale, MIN_SCALE, MAX_SCALE)


def screen_to_graph(point: Point, scale: float, pan: Point) -> Point:
    return (point - pan) / scale


def graph_to_screen(point: Point, scale: float, pan: Point) -> Point:
    return point * scale + pan


class PointerButton(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class HitKind(Enum):
    CANVAS = "canvas"
    NODE_BODY = "node_body"
    INPUT_PORT = "input_port"
    OUTPUT_PORT = "output_port"


@dataclass(frozen=True)
class HitTarget:
    kind: HitKind
    node_id: Optional[str] = None
    port_id: Optional[str] = None


CANVAS_HIT = HitTarget(HitKind.CANVAS)


@dataclass(frozen=True)
class Touch:
    """One active touch point in screen space."""

    identifier: int
    x: float
    y: float

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)


# ----------------------------------------------------------------------
# Drag modes
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class DraggingNode:
    """A node follows the pointer. ``offset`` is pointer minus node origin."""

    node_id: str
    offset: Point


@dataclass(frozen=True)
class Panning:
    """Viewport translation driven by the secondary button."""

    last: Point


@dataclass(frozen=True)
class Connecting:
    """An edge is being dragged out of an output port.

    ``pointer`` is the live preview endpoint in graph space.
    """

    source_id: str
    source_port: str
    pointer: Point


@dataclass(frozen=True)
class ThreeFingerPanning:
    touches: tuple[Touch, ...]


DragMode = Union[Idle, DraggingNode, Panning, Connecting, ThreeFingerPanning]

IDLE = Idle()


# ----------------------------------------------------------------------
# Geometry
# ----------------------------------------------------------------------


def node_size(component_type: str) -> tuple[float, float]:
    if get_schema(component_type).category is ComponentCategory.FLOW_CONTROL:
        return FLOW_NODE_SIZE
    return COMPONENT_NODE_SIZE


def port_anchor(node: Node, port: str) -> Point:
    """Graph-space centre of a node's input (left) or output (right) port."""
    width, height = node_size(node.type)
    x = node.position.x if port == INPUT_PORT else node.position.x + width
    return Point(x, node.position.y + height / 2)


def _node_ports(node: Node) -> list[str]:
    schema = get_schema(node.type)
    ports = []
    if schema.has_input_port:
        ports.append(INPUT_PORT)
    if schema.has_output_port:
        ports.append(OUTPUT_PORT)
    return ports


def hit_test(nodes: Sequence[Node], point: Point) -> HitTarget:
    """Find what lies under a graph-space point.

    Later nodes are drawn on top, so they are tested first. Ports win
    over bodies because they overhang the node edge.
    """
    for node in reversed(nodes):
        for port in _node_ports(node):
            if port_anchor(node, port).distance_to(point) <= PORT_HIT_RADIUS:
                kind = HitKind.INPUT_PORT if port == INPUT_PORT else HitKind.OUTPUT_PORT
                return HitTarget(kind, node.id, port)

    for node in reversed(nodes):
        width, height = node_size(node.type)
        if (
            node.position.x <= point.x <= node.position.x + width
            and node.position.y <= point.y <= node.position.y + height
        ):
            return HitTarget(HitKind.NODE_BODY, node.id)

    return CANVAS_HIT


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------


class CanvasEngine:
    """Pan/zoom state machine driving edits on a WorkflowGraph.

    Usage:
        canvas = CanvasEngine(WorkflowGraph(workflow))
        canvas.pointer_down(Point(120, 80))
        canvas.pointer_move(Point(160, 90))
        canvas.pointer_up(Point(160, 90))
    """

    def __init__(
        self,
        graph: WorkflowGraph,
        scale: float = DEFAULT_SCALE,
        pan: Point = ORIGIN,
    ) -> None:
        self._graph = graph
        self._scale = clamp_scale(scale)
        self._pan = pan
        self._mode: DragMode = IDLE

    @property
    def graph(self) -> WorkflowGraph:
        return self._graph

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def pan(self) -> Point:
        return self._pan

    @property
    def mode(self) -> DragMode:
        return self._mode

    @property
    def zoom_percent(self) -> int:
        return round(self._scale * 100)

    def to_graph(self, screen: Point) -> Point:
        return screen_to_graph(screen, self._scale, self._pan)

    def to_screen(self, graph_point: Point) -> Point:
        return graph_to_screen(graph_point, self._scale, self._pan)

    def hit(self, screen: Point) -> HitTarget:
        return hit_test(self._graph.nodes, self.to_graph(screen))

    # ------------------------------------------------------------------
    # Pointer
    # ------------------------------------------------------------------

    def pointer_down(
        self, screen: Point, button: PointerButton = PointerButton.PRIMARY
    ) -> None:
        """Start a gesture. Ignored unless the engine is idle."""
        if not isinstance(self._mode, Idle):
            logger.debug("Ignoring pointer-down while %s.", type(self._mode).__name__)
            return

        if button is PointerButton.SECONDARY:
            self._mode = Panning(last=screen)
            return

        point = self.to_graph(screen)
        target = hit_test(self._graph.nodes, point)
        if target.kind is HitKind.OUTPUT_PORT:
            self._mode = Connecting(
                source_id=target.node_id,
                source_port=target.port_id,
                pointer=point,
            )
        elif target.kind is HitKind.NODE_BODY:
            node = self._graph.node(target.node_id)
            if node.readonly:
                return
            origin = Point(node.position.x, node.position.y)
            self._mode = DraggingNode(node_id=node.id, offset=point - origin)

    def pointer_move(self, screen: Point) -> None:
        mode = self._mode
        if isinstance(mode, DraggingNode):
            origin = self.to_graph(screen) - mode.offset
            self._graph.move_node(mode.node_id, Position(x=origin.x, y=origin.y))
        elif isinstance(mode, Panning):
            self._pan = self._pan + (screen - mode.last)
            self._mode = Panning(last=screen)
        elif isinstance(mode, Connecting):
            self._mode = Connecting(
                source_id=mode.source_id,
                source_port=mode.source_port,
                pointer=self.to_graph(screen),
            )

    def pointer_up(self, screen: Point) -> Optional[Connection]:
        """Finish the current gesture.

        Returns:
            The new Connection when an edge drag ends on an input port
            and passes validation, otherwise None.
        """
        mode = self._mode
        self._mode = IDLE
        if not isinstance(mode, Connecting):
            return None

        target = self.hit(screen)
        if target.kind is not HitKind.INPUT_PORT:
            return None
        try:
            return self._graph.connect(mode.source_id, target.node_id)
        except InvalidConnectionError as exc:
            logger.debug("Discarded connection: %s", exc.reason)
            return None

    def pointer_leave(self) -> None:
        if isinstance(self._mode, (DraggingNode, Panning, Connecting)):
            self._mode = IDLE

    def preview_edge(self) -> Optional[tuple[Point, Point]]:
        """Graph-space (anchor, pointer) of the edge being dragged, if any."""
        mode = self._mode
        if not isinstance(mode, Connecting):
            return None
        source = self._graph.node(mode.source_id)
        return port_anchor(source, mode.source_port), mode.pointer

    # ------------------------------------------------------------------
    # Touch
    # ------------------------------------------------------------------

    def touch_start(self, touches: Sequence[Touch]) -> None:
        if isinstance(self._mode, Idle) and len(touches) == THREE_FINGERS:
            self._mode = ThreeFingerPanning(touches=tuple(touches))
        elif isinstance(self._mode, ThreeFingerPanning) and len(touches) != THREE_FINGERS:
            self._mode = IDLE

    def touch_move(self, touches: Sequence[Touch]) -> None:
        mode = self._mode
        if not isinstance(mode, ThreeFingerPanning):
            return
        if len(touches) != THREE_FINGERS:
            self._mode = IDLE
            return

        previous = {t.identifier: t for t in mode.touches}
        deltas = []
        for index, touch in enumerate(touches):
            before = previous.get(touch.identifier, mode.touches[index])
            deltas.append(touch.point - before.point)
        average = Point(
            sum(d.x for d in deltas) / len(deltas),
            sum(d.y for d in deltas) / len(deltas),
        )

        moved = self._pan - average * TOUCH_PAN_MULTIPLIER
        self._pan = Point(
            clamp(moved.x, -MAX_PAN_OFFSET, MAX_PAN_OFFSET),
            clamp(moved.y, -MAX_PAN_OFFSET, MAX_PAN_OFFSET),
        )
        self._mode = ThreeFingerPanning(touches=tuple(touches))

    def touch_end(self, remaining: Sequence[Touch]) -> None:
        if isinstance(self._mode, ThreeFingerPanning) and len(remaining) < THREE_FINGERS:
            self._mode = IDLE

    # ------------------------------------------------------------------
    # Zoom
    # ------------------------------------------------------------------

    def wheel(self, delta_y: float) -> None:
        factor = WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN
        self._scale = clamp_scale(self._scale * factor)

    def zoom_in(self) -> None:
        self._scale = clamp_scale(self._scale * TOOLBAR_ZOOM_STEP)

    def zoom_out(self) -> None:
        self._scale = clamp_scale(self._scale / TOOLBAR_ZOOM_STEP)

    def reset_zoom(self) -> None:
        self._scale = 1.0
        self._pan = ORIGIN

    # ------------------------------------------------------------------
    # Palette
    # ------------------------------------------------------------------

    def add_node_at(self, component_type: str, screen: Point) -> Node:
        """Drop a new node from the palette at a screen position.

        Raises:
            UnknownComponentTypeError: If the type is not registered.
        """
        point = self.to_graph(screen)
        return self._graph.add_node(component_type, Position(x=point.x, y=point.y))
