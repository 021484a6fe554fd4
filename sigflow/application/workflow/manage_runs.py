"""
Use cases: Start workflow runs and inspect their results.

Input: StartRunCommand, ExecuteWorkflowCommand, run ids, NodeLogsQuery
Output: WorkflowRun entities, NodeLogsResult, RunReplayResult
Side effects: StartWorkflowRunUseCase writes a queued run and hands it
    to the run queue. ExecuteWorkflowUseCase calls the node services.
Failure cases: WorkflowNotFoundError, RunNotFoundError, PersistenceError,
    EmptyWorkflowError, InvalidWorkflowDocumentError.
"""

import asyncio
import logging

from sigflow.application.workflow.dtos import (
    ExecuteWorkflowCommand,
    NodeLogsQuery,
    NodeLogsResult,
    RunReplayResult,
    StartRunCommand,
)
from sigflow.application.workflow.run_queue import RunJob, RunQueue
from sigflow.domain.workflow.engine import ExecutionEngine
from sigflow.domain.workflow.entities import WorkflowRun
from sigflow.domain.workflow.errors import EmptyWorkflowError
from sigflow.domain.workflow.graph import (
    log_focus_node,
    node_log_messages,
    replay_view,
    workflow_from_document,
)
from sigflow.domain.workflow.ports import WorkflowRepository, WorkflowRunRepository

logger = logging.getLogger(__name__)


class StartWorkflowRunUseCase:
    """Creates a queued run and hands it to the run queue.

    The workflow is loaded once here; the worker executes that snapshot
    even if the workflow is edited while the run waits. Store calls run
    in a worker thread; only the hand-off to the queue happens on the
    event loop.
    """

    def __init__(
        self,
        workflow_repository: WorkflowRepository,
        run_repository: WorkflowRunRepository,
        run_queue: RunQueue,
    ) -> None:
        self._workflows = workflow_repository
        self._runs = run_repository
        self._queue = run_queue

    async def execute(self, command: StartRunCommand) -> WorkflowRun:
        """Queue a run of a workflow.

        Args:
            command: Workflow id, run parameters and run type.

        Returns:
            The new run, in the queued state.

        Raises:
            WorkflowNotFoundError: If the workflow does not exist.
            PersistenceError: If the run record cannot be created.
        """
        workflow = await asyncio.to_thread(
            self._workflows.get_workflow, command.workflow_id
        )
        run = await asyncio.to_thread(
            self._runs.create_run, workflow.id, command.params, command.run_type
        )
        self._queue.enqueue(RunJob(run=run, workflow=workflow))
        return run


class ListWorkflowRunsUseCase:
    def __init__(
        self,
        workflow_repository: WorkflowRepository,
        run_repository: WorkflowRunRepository,
    ) -> None:
        self._workflows = workflow_repository
        self._runs = run_repository

    def execute(self, workflow_id: str) -> list[WorkflowRun]:
        self._workflows.get_workflow(workflow_id)
        return self._runs.list_runs(workflow_id)


class GetWorkflowRunUseCase:
    def __init__(self, run_repository: WorkflowRunRepository) -> None:
        self._runs = run_repository

    def execute(self, run_id: str) -> WorkflowRun:
        return self._runs.get_run(run_id)


class GetNodeLogsUseCase:
    """Returns the log messages one node produced during a run."""

    def __init__(self, run_repository: WorkflowRunRepository) -> None:
        self._runs = run_repository

    def execute(self, query: NodeLogsQuery) -> NodeLogsResult:
        run = self._runs.get_run(query.run_id)
        state = run.node_states.get(query.node_id)
        return NodeLogsResult(
            run_id=run.id,
            node_id=query.node_id,
            status=state.status.value if state else None,
            logs=node_log_messages(run, query.node_id),
        )


class GetRunReplayUseCase:
    """Builds the read-only canvas view of a finished or running run."""

    def __init__(
        self,
        workflow_repository: WorkflowRepository,
        run_repository: WorkflowRunRepository,
    ) -> None:
        self._workflows = workflow_repository
        self._runs = run_repository

    def execute(self, run_id: str) -> RunReplayResult:
        run = self._runs.get_run(run_id)
        workflow = self._workflows.get_workflow(run.workflow_id)
        view = replay_view(workflow, run)
        focus = log_focus_node(view)
        return RunReplayResult(
            run=run,
            workflow=view,
            focus_node_id=focus.id if focus else None,
        )


class ExecuteWorkflowUseCase:
    """Executes a posted graph immediately, bypassing the run queue.

    The graph is not read from or written to the workflow store. The run
    record lives in the given run repository, normally an in-memory one
    scoped to the request.
    """

    def __init__(
        self, engine: ExecutionEngine, run_repository: WorkflowRunRepository
    ) -> None:
        self._engine = engine
        self._runs = run_repository

    async def execute(self, command: ExecuteWorkflowCommand) -> WorkflowRun:
        """Run the graph to a terminal state.

        Raises:
            EmptyWorkflowError: If the document holds no nodes.
            InvalidWorkflowDocumentError: If the document is malformed.
            InvalidConnectionError: If an edge breaks a structural rule.
            UnknownComponentTypeError: If a node type is not registered.
        """
        if not command.document.get("nodes"):
            raise EmptyWorkflowError()

        workflow = workflow_from_document(
            workflow_id=command.workflow_id,
            name=command.workflow_id,
            document=command.document,
        )
        run = self._runs.create_run(workflow.id, command.params)
        logger.info(
            "Executing workflow %s directly (%d nodes).",
            workflow.id, len(workflow.nodes),
        )
        return await self._engine.execute(workflow, run)
