"""
Graph model for the workflow bounded context.

WorkflowGraph is the editor-side mutable model of a Workflow. Every
edit goes through it so the structural invariants hold:
- node ids are unique and every node type is registered;
- no self connections and no duplicate (source, target) pairs;
- deleting a node removes exactly its incident connections.

Also provides the persisted document form of a workflow and the
read-only run replay view.
"""

import copy
import logging
import time
from typing import Any, Callable, Mapping, Optional
from uuid import uuid4

from sigflow.domain.workflow.entities import (
    Connection,
    Node,
    NodeRunStatus,
    NodeStatus,
    Position,
    Workflow,
    WorkflowRun,
    WorkflowStatus,
    utc_now,
)
from sigflow.domain.workflow.errors import (
    InvalidConnectionError,
    InvalidWorkflowDocumentError,
    NodeNotFoundError,
)
from sigflow.domain.workflow.node_configs import build_config, update_config
from sigflow.domain.workflow.registry import get_schema
from sigflow.domain.workflow.validator import (
    ConnectionPolicy,
    is_valid_connection,
    validate_connection,
)

logger = logging.getLogger(__name__)


def default_node_id(component_type: str) -> str:
    return f"{component_type.lower()}-{uuid4().hex[:8]}"


def _millis() -> int:
    return time.time_ns() // 1_000_000


class WorkflowGraph:
    """Mutable editor model wrapping a Workflow.

    Args:
        workflow: The workflow to edit in place.
        policy: Type compatibility rule used by connect().
        enforce_arity: Reject connections exceeding SINGLE port arity.
        id_factory: Builds node ids from a component type.
        clock: Returns milliseconds used in connection ids.
    """

    def __init__(
        self,
        workflow: Workflow,
        policy: ConnectionPolicy = ConnectionPolicy.TARGET_AUTHORITATIVE,
        enforce_arity: bool = False,
        id_factory: Callable[[str], str] = default_node_id,
        clock: Callable[[], int] = _millis,
    ) -> None:
        self._workflow = workflow
        self._policy = policy
        self._enforce_arity = enforce_arity
        self._id_factory = id_factory
        self._clock = clock

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    @property
    def nodes(self) -> list[Node]:
        return self._workflow.nodes

    @property
    def connections(self) -> list[Connection]:
        return self._workflow.connections

    def node(self, node_id: str) -> Node:
        """Return the node with the given id.

        Raises:
            NodeNotFoundError: If no node has this id.
        """
        node = self._workflow.find_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def incoming(self, node_id: str) -> list[Connection]:
        return [c for c in self._workflow.connections if c.target == node_id]

    def outgoing(self, node_id: str) -> list[Connection]:
        return [c for c in self._workflow.connections if c.source == node_id]

    def _touch(self) -> None:
        self._workflow.updated_at = utc_now()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(
        self, component_type: str, position: Position, name: Optional[str] = None
    ) -> Node:
        """Add a node of the given type with the type's default configuration.

        Raises:
            UnknownComponentTypeError: If the type is not registered.
        """
        schema = get_schema(component_type)
        node_id = self._id_factory(component_type)
        while self._workflow.find_node(node_id) is not None:
            node_id = self._id_factory(component_type)

        node = Node(
            id=node_id,
            type=component_type,
            name=name or schema.name,
            position=position,
            config=build_config(component_type),
        )
        self._workflow.nodes.append(node)
        self._touch()
        logger.debug("Added node %s (%s).", node.id, component_type)
        return node

    def move_node(self, node_id: str, position: Position) -> None:
        self.node(node_id).position = position
        self._touch()

    def rename_node(self, node_id: str, name: str) -> None:
        self.node(node_id).name = name
        self._touch()

    def update_node_config(self, node_id: str, changes: Mapping[str, Any]) -> Node:
        """Apply document-form configuration changes to a node.

        Raises:
            NodeNotFoundError: If the node does not exist.
            InvalidNodeConfigError: If the resulting configuration is invalid.
        """
        node = self.node(node_id)
        node.config = update_config(node.type, node.config, changes)
        self._touch()
        return node

    def remove_node(self, node_id: str) -> list[Connection]:
        """Delete a node and every connection touching it.

        Returns:
            The connections removed along with the node.
        """
        node = self.node(node_id)
        removed = [
            c for c in self._workflow.connections
            if c.source == node_id or c.target == node_id
        ]
        self._workflow.connections = [
            c for c in self._workflow.connections
            if c.source != node_id and c.target != node_id
        ]
        self._workflow.nodes.remove(node)
        self._touch()
        logger.debug(
            "Removed node %s and %d connection(s).", node_id, len(removed)
        )
        return removed

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def can_connect_nodes(self, source_id: str, target_id: str) -> bool:
        return is_valid_connection(
            self._workflow, source_id, target_id,
            self._policy, self._enforce_arity,
        )

    def connect(self, source_id: str, target_id: str) -> Connection:
        """Create a connection after validating it.

        Raises:
            InvalidConnectionError: If the edge breaks any connection rule.
        """
        validate_connection(
            self._workflow, source_id, target_id,
            self._policy, self._enforce_arity,
        )
        connection = Connection(
            id=f"{source_id}-{target_id}-{self._clock()}",
            source=source_id,
            target=target_id,
        )
        self._workflow.connections.append(connection)
        self._touch()
        return connection

    def disconnect(self, connection_id: str) -> Optional[Connection]:
        """Remove a connection by id. Returns None if it did not exist."""
        for connection in self._workflow.connections:
            if connection.id == connection_id:
                self._workflow.connections.remove(connection)
                self._touch()
                return connection
        return None


# ----------------------------------------------------------------------
# Persisted document form
# ----------------------------------------------------------------------


def _enum_value(enum_cls, value, default):
    values = {member.value: member for member in enum_cls}
    return values.get(value, default)


def node_to_document(node: Node) -> dict[str, Any]:
    return {
        "id": node.id,
        "type": node.type,
        "name": node.name,
        "position": {"x": node.position.x, "y": node.position.y},
        "config": node.config.to_mapping(),
        "status": node.status.value,
    }


def connection_to_document(connection: Connection) -> dict[str, Any]:
    return {
        "id": connection.id,
        "source": connection.source,
        "target": connection.target,
        "sourceOutput": connection.source_output,
        "targetInput": connection.target_input,
    }


def workflow_to_document(workflow: Workflow) -> dict[str, Any]:
    """Serialize the graph part of a workflow as one nested document."""
    return {
        "nodes": [node_to_document(n) for n in workflow.nodes],
        "connections": [connection_to_document(c) for c in workflow.connections],
        "status": workflow.status.value,
    }


def _node_from_document(raw: Mapping[str, Any]) -> Node:
    if not isinstance(raw, Mapping):
        raise InvalidWorkflowDocumentError("node entries must be objects")
    node_id = raw.get("id")
    component_type = raw.get("type")
    if not node_id or not component_type:
        raise InvalidWorkflowDocumentError("node requires id and type")

    schema = get_schema(component_type)
    position = raw.get("position") or {}
    try:
        x = float(position.get("x", 0))
        y = float(position.get("y", 0))
    except (TypeError, ValueError) as exc:
        raise InvalidWorkflowDocumentError(
            f"node {node_id} has an invalid position"
        ) from exc

    return Node(
        id=str(node_id),
        type=component_type,
        name=raw.get("name") or schema.name,
        position=Position(x=x, y=y),
        config=build_config(component_type, raw.get("config") or {}),
        status=_enum_value(NodeStatus, raw.get("status"), NodeStatus.IDLE),
    )


def workflow_from_document(
    workflow_id: str,
    name: str,
    document: Mapping[str, Any],
    description: Optional[str] = None,
    created_at=None,
    updated_at=None,
) -> Workflow:
    """Rebuild a Workflow from its persisted document.

    Registry compatibility of existing edges is not re-checked, so
    graphs saved under older connection rules still load.

    Raises:
        UnknownComponentTypeError: If a node type is not registered.
        InvalidNodeConfigError: If a node configuration is invalid.
        InvalidConnectionError: On self connections, duplicate pairs or
            edges whose endpoints are missing.
        InvalidWorkflowDocumentError: If the document shape is wrong.
    """
    nodes = [_node_from_document(raw) for raw in document.get("nodes") or []]
    node_ids: set[str] = set()
    for node in nodes:
        if node.id in node_ids:
            raise InvalidWorkflowDocumentError(f"duplicate node id {node.id}")
        node_ids.add(node.id)

    connections: list[Connection] = []
    pairs: set[tuple[str, str]] = set()
    for raw in document.get("connections") or []:
        if not isinstance(raw, Mapping):
            raise InvalidWorkflowDocumentError("connection entries must be objects")
        source = raw.get("source")
        target = raw.get("target")
        if not source or not target:
            raise InvalidWorkflowDocumentError("connection requires source and target")
        if source == target:
            raise InvalidConnectionError(source, target, "self connection")
        if source not in node_ids or target not in node_ids:
            raise InvalidConnectionError(source, target, "missing endpoint")
        if (source, target) in pairs:
            raise InvalidConnectionError(source, target, "duplicate connection")
        pairs.add((source, target))
        connections.append(
            Connection(
                id=raw.get("id") or f"{source}-{target}-{_millis()}",
                source=source,
                target=target,
                source_output=raw.get("sourceOutput") or "output",
                target_input=raw.get("targetInput") or "input",
            )
        )

    workflow = Workflow(
        id=workflow_id,
        name=name,
        nodes=nodes,
        connections=connections,
        description=description,
        status=_enum_value(
            WorkflowStatus, document.get("status"), WorkflowStatus.DRAFT
        ),
    )
    if created_at is not None:
        workflow.created_at = created_at
    if updated_at is not None:
        workflow.updated_at = updated_at
    return workflow


# ----------------------------------------------------------------------
# Run replay
# ----------------------------------------------------------------------


def replay_view(workflow: Workflow, run: WorkflowRun) -> Workflow:
    """Return a read-only copy of the workflow overlaid with run results."""
    view = copy.deepcopy(workflow)
    for node in view.nodes:
        node.readonly = True
        state = run.node_states.get(node.id)
        if state is None:
            node.run_status = NodeRunStatus.SKIPPED
            node.run_logs = []
            continue
        node.run_status = state.status
        node.run_logs = list(state.logs)
    return view


def log_focus_node(workflow: Workflow) -> Optional[Node]:
    """Pick the node whose logs a replay should show first.

    A failed node wins. Otherwise the top-most, then left-most node
    that has a run status.
    """
    candidates = [n for n in workflow.nodes if n.run_status is not None]
    if not candidates:
        return None
    for node in candidates:
        if node.run_status is NodeRunStatus.FAILED:
            return node
    return min(candidates, key=lambda n: (n.position.y, n.position.x))


def node_log_messages(run: WorkflowRun, node_id: str) -> list[str]:
    state = run.node_states.get(node_id)
    if state is None or not state.logs:
        return ["No logs available"]
    return [entry.message for entry in state.logs]
