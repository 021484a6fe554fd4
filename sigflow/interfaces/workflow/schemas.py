"""
Pydantic schemas for workflow API request/response validation.

These schemas enforce input validation and define the API contract.
Node configurations travel in their persisted camelCase form.
No business logic belongs here.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

ID_MAX_LEN = 128
NAME_MAX_LEN = 255
DESCRIPTION_MAX_LEN = 2000
TYPE_PATTERN = r"^[A-Z][A-Z0-9_]*$"


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str


class PositionSchema(BaseModel):
    x: float = 0.0
    y: float = 0.0


class NodeSchema(BaseModel):
    """A node as submitted by the editor.

    Attributes:
        id: Unique id within the workflow.
        type: Registered component type (e.g. BINANCE_TRADE_EXECUTOR).
        name: Display name. Defaults to the component name.
        position: Graph-space position.
        config: Component configuration in document form.
        status: Design-time preview status.
    """

    id: str = Field(..., min_length=1, max_length=ID_MAX_LEN)
    type: str = Field(..., min_length=1, max_length=64, pattern=TYPE_PATTERN)
    name: Optional[str] = Field(default=None, max_length=NAME_MAX_LEN)
    position: PositionSchema = Field(default_factory=PositionSchema)
    config: dict[str, Any] = Field(default_factory=dict)
    status: Literal["idle", "running", "success", "error"] = "idle"


class ConnectionSchema(BaseModel):
    id: Optional[str] = Field(default=None, max_length=3 * ID_MAX_LEN)
    source: str = Field(..., min_length=1, max_length=ID_MAX_LEN)
    target: str = Field(..., min_length=1, max_length=ID_MAX_LEN)
    source_output: str = "output"
    target_input: str = "input"


class WorkflowRequest(BaseModel):
    """Request schema for creating or replacing a workflow."""

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LEN)
    status: Literal["draft", "running", "paused", "completed", "error"] = "draft"
    nodes: list[NodeSchema] = Field(default_factory=list)
    connections: list[ConnectionSchema] = Field(default_factory=list)


class LogEntrySchema(BaseModel):
    timestamp: datetime
    level: str
    message: str


class NodeItem(BaseModel):
    """A node in a workflow response. Run fields are set on replays only."""

    id: str
    type: str
    name: str
    position: PositionSchema
    config: dict[str, Any]
    status: str
    run_status: Optional[str] = None
    run_logs: list[LogEntrySchema] = Field(default_factory=list)
    readonly: bool = False


class WorkflowResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime
    nodes: list[NodeItem]
    connections: list[ConnectionSchema]


class WorkflowListResponse(BaseModel):
    workflows: list[WorkflowResponse]


class StartRunRequest(BaseModel):
    """Request schema for starting a workflow run.

    Attributes:
        params: Free-form run parameters. A positive ``capital`` sets the
            base the profit percentage is computed against.
        run_type: Manual or scheduled.
    """

    params: dict[str, Any] = Field(default_factory=dict)
    run_type: Literal["manual", "scheduled"] = "manual"


class ExecuteWorkflowRequest(BaseModel):
    """Request schema for executing a graph immediately.

    The graph is executed as posted; it is not saved.
    """

    nodes: list[NodeSchema] = Field(default_factory=list)
    connections: list[ConnectionSchema] = Field(default_factory=list)
    params: dict[str, Any] = Field(default_factory=dict)


class ProfitSchema(BaseModel):
    amount: float
    percentage: float


class NodeRunStateSchema(BaseModel):
    status: str
    logs: list[LogEntrySchema]
    error: Optional[str] = None


class RunResponse(BaseModel):
    id: str
    workflow_id: str
    params: dict[str, Any]
    run_type: str
    state: str
    start_time: datetime
    end_time: Optional[datetime] = None
    profit: ProfitSchema
    node_states: dict[str, NodeRunStateSchema]


class RunListResponse(BaseModel):
    runs: list[RunResponse]


class RunReplayResponse(BaseModel):
    run: RunResponse
    workflow: WorkflowResponse
    focus_node_id: Optional[str] = None


class NodeLogsResponse(BaseModel):
    run_id: str
    node_id: str
    status: Optional[str] = None
    logs: list[str]


class ComponentItem(BaseModel):
    type: str
    name: str
    description: str
    input_mode: str
    output_mode: str
    input_connectables: list[str]
    output_connectables: list[str]
    default_config: dict[str, Any]


class ComponentCategoryItem(BaseModel):
    id: str
    name: str
    description: str
    components: list[ComponentItem]


class ComponentPaletteResponse(BaseModel):
    categories: list[ComponentCategoryItem]


class CanConnectRequest(BaseModel):
    source_type: str = Field(..., min_length=1, max_length=64, pattern=TYPE_PATTERN)
    target_type: str = Field(..., min_length=1, max_length=64, pattern=TYPE_PATTERN)


class CanConnectResponse(BaseModel):
    source_type: str
    target_type: str
    allowed: bool


class NodeExecutionItem(BaseModel):
    node_id: str
    type: str
    status: str
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    logs: list[str] = Field(default_factory=list)


class ExecuteWorkflowResponse(BaseModel):
    """Outcome of a direct execution.

    Attributes:
        execution_id: Id of the throwaway run record.
        status: ``completed`` when every reached node succeeded, else ``failed``.
        results: One entry per node, in workflow order. Unreached nodes
            are ``skipped``.
    """

    execution_id: str
    workflow_id: str
    status: Literal["completed", "failed"]
    profit: ProfitSchema
    results: list[NodeExecutionItem]
