"""
FastAPI router for the workflow bounded context.

All routes delegate to use cases. No business logic here.
Input validation is handled by Pydantic schemas.
Error mapping is handled by centralized error handlers.
"""

from fastapi import APIRouter, Depends, Request, Response, status

from sigflow.application.workflow.components import (
    CheckConnectionUseCase,
    GetComponentPaletteUseCase,
)
from sigflow.application.workflow.dtos import (
    CheckConnectionQuery,
    ExecuteWorkflowCommand,
    NodeLogsQuery,
    SaveWorkflowCommand,
    StartRunCommand,
)
from sigflow.application.workflow.manage_runs import (
    ExecuteWorkflowUseCase,
    GetNodeLogsUseCase,
    GetRunReplayUseCase,
    GetWorkflowRunUseCase,
    ListWorkflowRunsUseCase,
    StartWorkflowRunUseCase,
)
from sigflow.application.workflow.manage_workflows import (
    DeleteWorkflowUseCase,
    GetWorkflowUseCase,
    ListWorkflowsUseCase,
    SaveWorkflowUseCase,
)
from sigflow.domain.workflow.entities import (
    LogEntry,
    Node,
    RunState,
    RunType,
    Workflow,
    WorkflowRun,
)
from sigflow.interfaces.workflow.dependencies import (
    get_check_connection_use_case,
    get_component_palette_use_case,
    get_delete_workflow_use_case,
    get_execute_workflow_use_case,
    get_get_run_use_case,
    get_get_workflow_use_case,
    get_list_runs_use_case,
    get_list_workflows_use_case,
    get_node_logs_use_case,
    get_run_replay_use_case,
    get_save_workflow_use_case,
    get_start_run_use_case,
)
from sigflow.interfaces.workflow.schemas import (
    CanConnectRequest,
    CanConnectResponse,
    ComponentCategoryItem,
    ComponentItem,
    ComponentPaletteResponse,
    ConnectionSchema,
    ErrorResponse,
    ExecuteWorkflowRequest,
    ExecuteWorkflowResponse,
    LogEntrySchema,
    NodeExecutionItem,
    NodeItem,
    NodeLogsResponse,
    NodeRunStateSchema,
    NodeSchema,
    PositionSchema,
    ProfitSchema,
    RunListResponse,
    RunReplayResponse,
    RunResponse,
    StartRunRequest,
    WorkflowListResponse,
    WorkflowRequest,
    WorkflowResponse,
)
from sigflow.shared.security.rate_limiting import RUN_SUBMISSION_LIMIT, limiter

router = APIRouter(tags=["workflows"])


# ----------------------------------------------------------------------
# Mapping helpers
# ----------------------------------------------------------------------


def _log_items(entries: list[LogEntry]) -> list[LogEntrySchema]:
    return [
        LogEntrySchema(timestamp=e.timestamp, level=e.level.value, message=e.message)
        for e in entries
    ]


def _node_item(node: Node) -> NodeItem:
    return NodeItem(
        id=node.id,
        type=node.type,
        name=node.name,
        position=PositionSchema(x=node.position.x, y=node.position.y),
        config=node.config.to_mapping(),
        status=node.status.value,
        run_status=node.run_status.value if node.run_status else None,
        run_logs=_log_items(node.run_logs),
        readonly=node.readonly,
    )


def _workflow_response(workflow: Workflow) -> WorkflowResponse:
    return WorkflowResponse(
        id=workflow.id,
        name=workflow.name,
        description=workflow.description,
        status=workflow.status.value,
        created_at=workflow.created_at,
        updated_at=workflow.updated_at,
        nodes=[_node_item(n) for n in workflow.nodes],
        connections=[
            ConnectionSchema(
                id=c.id,
                source=c.source,
                target=c.target,
                source_output=c.source_output,
                target_input=c.target_input,
            )
            for c in workflow.connections
        ],
    )


def _run_response(run: WorkflowRun) -> RunResponse:
    return RunResponse(
        id=run.id,
        workflow_id=run.workflow_id,
        params=run.params,
        run_type=run.run_type.value,
        state=run.state.value,
        start_time=run.start_time,
        end_time=run.end_time,
        profit=ProfitSchema(amount=run.profit.amount, percentage=run.profit.percentage),
        node_states={
            node_id: NodeRunStateSchema(
                status=state.status.value,
                logs=_log_items(state.logs),
                error=state.error,
            )
            for node_id, state in run.node_states.items()
        },
    )


def _document(
    nodes: list[NodeSchema], connections: list[ConnectionSchema], status: str = "draft"
) -> dict:
    return {
        "nodes": [
            {
                "id": n.id,
                "type": n.type,
                "name": n.name,
                "position": {"x": n.position.x, "y": n.position.y},
                "config": n.config,
                "status": n.status,
            }
            for n in nodes
        ],
        "connections": [
            {
                "id": c.id,
                "source": c.source,
                "target": c.target,
                "sourceOutput": c.source_output,
                "targetInput": c.target_input,
            }
            for c in connections
        ],
        "status": status,
    }


def _save_command(workflow_id: str | None, request: WorkflowRequest) -> SaveWorkflowCommand:
    return SaveWorkflowCommand(
        workflow_id=workflow_id,
        name=request.name,
        description=request.description,
        document=_document(request.nodes, request.connections, request.status),
    )


# ----------------------------------------------------------------------
# Components
# ----------------------------------------------------------------------


@router.get(
    "/components",
    response_model=ComponentPaletteResponse,
    summary="List component types",
    description="Return every component type grouped by palette category.",
)
def list_components(
    use_case: GetComponentPaletteUseCase = Depends(get_component_palette_use_case),
) -> ComponentPaletteResponse:
    return ComponentPaletteResponse(
        categories=[
            ComponentCategoryItem(
                id=c.id,
                name=c.name,
                description=c.description,
                components=[ComponentItem(**vars(item)) for item in c.components],
            )
            for c in use_case.execute()
        ]
    )


@router.post(
    "/components/can-connect",
    response_model=CanConnectResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Check type compatibility",
    description="Return whether a source component type may feed a target type.",
)
def can_connect(
    request: CanConnectRequest,
    use_case: CheckConnectionUseCase = Depends(get_check_connection_use_case),
) -> CanConnectResponse:
    result = use_case.execute(
        CheckConnectionQuery(
            source_type=request.source_type, target_type=request.target_type
        )
    )
    return CanConnectResponse(
        source_type=result.source_type,
        target_type=result.target_type,
        allowed=result.allowed,
    )


# ----------------------------------------------------------------------
# Workflows
# ----------------------------------------------------------------------


@router.get(
    "/workflows",
    response_model=WorkflowListResponse,
    summary="List workflows",
)
def list_workflows(
    use_case: ListWorkflowsUseCase = Depends(get_list_workflows_use_case),
) -> WorkflowListResponse:
    return WorkflowListResponse(
        workflows=[_workflow_response(w) for w in use_case.execute()]
    )


@router.post(
    "/workflows",
    response_model=WorkflowResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
    summary="Create a workflow",
    description="Validate a graph document and store it as a new workflow.",
)
def create_workflow(
    request: WorkflowRequest,
    use_case: SaveWorkflowUseCase = Depends(get_save_workflow_use_case),
) -> WorkflowResponse:
    return _workflow_response(use_case.execute(_save_command(None, request)))


@router.get(
    "/workflows/{workflow_id}",
    response_model=WorkflowResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a workflow",
)
def get_workflow(
    workflow_id: str,
    use_case: GetWorkflowUseCase = Depends(get_get_workflow_use_case),
) -> WorkflowResponse:
    return _workflow_response(use_case.execute(workflow_id))


@router.put(
    "/workflows/{workflow_id}",
    response_model=WorkflowResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Replace a workflow",
)
def update_workflow(
    workflow_id: str,
    request: WorkflowRequest,
    use_case: SaveWorkflowUseCase = Depends(get_save_workflow_use_case),
) -> WorkflowResponse:
    return _workflow_response(use_case.execute(_save_command(workflow_id, request)))


@router.delete(
    "/workflows/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a workflow",
)
def delete_workflow(
    workflow_id: str,
    use_case: DeleteWorkflowUseCase = Depends(get_delete_workflow_use_case),
) -> Response:
    use_case.execute(workflow_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------------------------------------------------
# Runs
# ----------------------------------------------------------------------


@router.post(
    "/workflows/{workflow_id}/runs",
    response_model=RunResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Run a workflow",
    description="Queue a run of the workflow. Runs execute one at a time in submission order.",
)
@limiter.limit(RUN_SUBMISSION_LIMIT)
async def start_run(
    request: Request,
    workflow_id: str,
    body: StartRunRequest,
    use_case: StartWorkflowRunUseCase = Depends(get_start_run_use_case),
) -> RunResponse:
    run = await use_case.execute(
        StartRunCommand(
            workflow_id=workflow_id,
            params=body.params,
            run_type=RunType(body.run_type),
        )
    )
    return _run_response(run)


@router.post(
    "/workflows/{workflow_id}/execute",
    response_model=ExecuteWorkflowResponse,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Execute a graph now",
    description=(
        "Execute the posted nodes and connections immediately, outside the run "
        "queue. Nothing is saved. Execution stops at the first failing node."
    ),
)
@limiter.limit(RUN_SUBMISSION_LIMIT)
async def execute_workflow(
    request: Request,
    workflow_id: str,
    body: ExecuteWorkflowRequest,
    use_case: ExecuteWorkflowUseCase = Depends(get_execute_workflow_use_case),
) -> ExecuteWorkflowResponse:
    run = await use_case.execute(
        ExecuteWorkflowCommand(
            workflow_id=workflow_id,
            document=_document(body.nodes, body.connections),
            params=body.params,
        )
    )
    types = {n.id: n.type for n in body.nodes}
    return ExecuteWorkflowResponse(
        execution_id=run.id,
        workflow_id=run.workflow_id,
        status="completed" if run.state is RunState.SUCCESS else "failed",
        profit=ProfitSchema(amount=run.profit.amount, percentage=run.profit.percentage),
        results=[
            NodeExecutionItem(
                node_id=node_id,
                type=types[node_id],
                status=state.status.value,
                data=state.result,
                error=state.error,
                logs=[entry.message for entry in state.logs],
            )
            for node_id, state in run.node_states.items()
        ],
    )


@router.get(
    "/workflows/{workflow_id}/runs",
    response_model=RunListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List runs of a workflow",
)
def list_runs(
    workflow_id: str,
    use_case: ListWorkflowRunsUseCase = Depends(get_list_runs_use_case),
) -> RunListResponse:
    return RunListResponse(runs=[_run_response(r) for r in use_case.execute(workflow_id)])


@router.get(
    "/runs/{run_id}",
    response_model=RunResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a run",
)
def get_run(
    run_id: str,
    use_case: GetWorkflowRunUseCase = Depends(get_get_run_use_case),
) -> RunResponse:
    return _run_response(use_case.execute(run_id))


@router.get(
    "/runs/{run_id}/replay",
    response_model=RunReplayResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Replay a run",
    description="Return the read-only workflow overlaid with each node's run status and logs.",
)
def get_run_replay(
    run_id: str,
    use_case: GetRunReplayUseCase = Depends(get_run_replay_use_case),
) -> RunReplayResponse:
    result = use_case.execute(run_id)
    return RunReplayResponse(
        run=_run_response(result.run),
        workflow=_workflow_response(result.workflow),
        focus_node_id=result.focus_node_id,
    )


@router.get(
    "/runs/{run_id}/nodes/{node_id}/logs",
    response_model=NodeLogsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get node logs",
)
def get_node_logs(
    run_id: str,
    node_id: str,
    use_case: GetNodeLogsUseCase = Depends(get_node_logs_use_case),
) -> NodeLogsResponse:
    result = use_case.execute(NodeLogsQuery(run_id=run_id, node_id=node_id))
    return NodeLogsResponse(
        run_id=result.run_id,
        node_id=result.node_id,
        status=result.status,
        logs=result.logs,
    )
