"""
Domain entities for the workflow bounded context.

Entities represent core business objects with identity and lifecycle.
They contain no framework imports and no IO operations.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sigflow.domain.workflow.node_configs import NodeConfig


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NodeStatus(Enum):
    """Design-time preview status of a node."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class NodeRunStatus(Enum):
    """Status of a node within one workflow run."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowStatus(Enum):
    """Lifecycle status of a saved workflow."""

    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class RunType(Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class RunState(Enum):
    """State of a workflow run. SUCCESS and FAILED are terminal."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.SUCCESS, RunState.FAILED)


class LogLevel(Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class Position:
    """A point in graph space."""

    x: float
    y: float


@dataclass(frozen=True)
class LogEntry:
    """One line of a node's run log."""

    message: str
    level: LogLevel = LogLevel.INFO
    timestamp: datetime = field(default_factory=utc_now)
    data: Optional[dict[str, Any]] = None


@dataclass
class Node:
    """One instance of a component type placed on the canvas.

    ``run_status``, ``run_logs`` and ``readonly`` are only populated
    when the graph is viewed as a run replay.
    """

    id: str
    type: str
    name: str
    position: Position
    config: NodeConfig
    status: NodeStatus = NodeStatus.IDLE
    run_status: Optional[NodeRunStatus] = None
    run_logs: list[LogEntry] = field(default_factory=list)
    readonly: bool = False


@dataclass(frozen=True)
class Connection:
    """A directed edge from one node's output port to another's input port."""

    id: str
    source: str
    target: str
    source_output: str = "output"
    target_input: str = "input"


@dataclass
class Workflow:
    """A saved graph of nodes and connections plus lifecycle status."""

    id: str
    name: str
    nodes: list[Node] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    description: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.DRAFT
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def find_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


@dataclass(frozen=True)
class Profit:
    """Aggregate profit summary of a run."""

    amount: float = 0.0
    percentage: float = 0.0


@dataclass
class NodeRunState:
    """Status and log trail of one node within a run."""

    status: NodeRunStatus = NodeRunStatus.SKIPPED
    logs: list[LogEntry] = field(default_factory=list)
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    def log(
        self,
        message: str,
        level: LogLevel = LogLevel.INFO,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        self.logs.append(LogEntry(message=message, level=level, data=data))


@dataclass
class WorkflowRun:
    """One execution attempt of a workflow.

    Mutated only by the execution engine once dequeued; immutable once
    its state is terminal.
    """

    id: str
    workflow_id: str
    params: dict[str, Any] = field(default_factory=dict)
    run_type: RunType = RunType.MANUAL
    state: RunState = RunState.QUEUED
    start_time: datetime = field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    profit: Profit = field(default_factory=Profit)
    node_states: dict[str, NodeRunState] = field(default_factory=dict)
