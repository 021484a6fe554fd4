"""
Data Transfer Objects for the workflow application layer.

DTOs carry data between the interface and application layers.
They are plain dataclasses with no behavior.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from sigflow.domain.workflow.entities import RunType, Workflow, WorkflowRun


@dataclass(frozen=True)
class SaveWorkflowCommand:
    """Input DTO for creating or replacing a workflow.

    Attributes:
        workflow_id: Existing id to overwrite, or None to create.
        name: Display name.
        description: Optional free text.
        document: Graph document with nodes, connections and status.
    """

    workflow_id: Optional[str]
    name: str
    document: dict[str, Any]
    description: Optional[str] = None


@dataclass(frozen=True)
class StartRunCommand:
    """Input DTO for requesting a workflow run.

    Attributes:
        workflow_id: Workflow to execute.
        params: Free-form run parameters (``capital`` sets the profit base).
        run_type: Manual or scheduled.
    """

    workflow_id: str
    params: dict[str, Any] = field(default_factory=dict)
    run_type: RunType = RunType.MANUAL


@dataclass(frozen=True)
class ExecuteWorkflowCommand:
    """Input DTO for executing a posted graph immediately.

    Attributes:
        workflow_id: Id the execution is reported under.
        document: Graph document with nodes and connections.
        params: Free-form run parameters (``capital`` sets the profit base).
    """

    workflow_id: str
    document: dict[str, Any]
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NodeLogsQuery:
    run_id: str
    node_id: str


@dataclass(frozen=True)
class NodeLogsResult:
    run_id: str
    node_id: str
    status: Optional[str]
    logs: list[str]


@dataclass(frozen=True)
class RunReplayResult:
    """Output DTO for viewing a run on the read-only canvas.

    Attributes:
        run: The run record.
        workflow: Read-only copy of the workflow overlaid with node run states.
        focus_node_id: Node whose logs should be shown first.
    """

    run: WorkflowRun
    workflow: Workflow
    focus_node_id: Optional[str]


@dataclass(frozen=True)
class ComponentInfo:
    type: str
    name: str
    description: str
    input_mode: str
    output_mode: str
    input_connectables: list[str]
    output_connectables: list[str]
    default_config: dict[str, Any]


@dataclass(frozen=True)
class ComponentCategoryInfo:
    id: str
    name: str
    description: str
    components: list[ComponentInfo]


@dataclass(frozen=True)
class CheckConnectionQuery:
    source_type: str
    target_type: str


@dataclass(frozen=True)
class CheckConnectionResult:
    source_type: str
    target_type: str
    allowed: bool
