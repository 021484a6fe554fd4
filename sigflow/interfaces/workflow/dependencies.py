"""
Dependency injection for the workflow bounded context.

Provides FastAPI dependency functions that wire infrastructure
adapters into use cases via constructor injection.
These are the composition root for the workflow context.
"""

from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.engine import Engine

from sigflow.application.workflow.components import (
    CheckConnectionUseCase,
    GetComponentPaletteUseCase,
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
from sigflow.application.workflow.run_queue import RunQueue
from sigflow.core.config import settings
from sigflow.domain.workflow.engine import ExecutionEngine
from sigflow.domain.workflow.errors import RunQueueUnavailableError
from sigflow.domain.workflow.ordering import OrderingStrategy
from sigflow.domain.workflow.ports import WorkflowRepository, WorkflowRunRepository
from sigflow.domain.workflow.validator import ConnectionPolicy
from sigflow.infrastructure.workflow.database import create_db_engine
from sigflow.infrastructure.workflow.memory_run_repository import InMemoryRunRepository
from sigflow.infrastructure.workflow.node_services import build_simulated_services
from sigflow.infrastructure.workflow.run_repository import WorkflowRunRepositoryAdapter
from sigflow.infrastructure.workflow.workflow_repository import (
    WorkflowRepositoryAdapter,
)


@lru_cache
def get_db_engine() -> Engine:
    """Build the shared SQLAlchemy engine from application settings."""
    return create_db_engine(settings.get_database_url())


def get_workflow_repository(
    engine: Engine = Depends(get_db_engine),
) -> WorkflowRepository:
    return WorkflowRepositoryAdapter(engine=engine)


def get_run_repository(
    engine: Engine = Depends(get_db_engine),
) -> WorkflowRunRepository:
    return WorkflowRunRepositoryAdapter(engine=engine)


def build_execution_engine(run_repository: WorkflowRunRepository) -> ExecutionEngine:
    """Build an execution engine over the simulated node services."""
    return ExecutionEngine(
        services=build_simulated_services(
            seed=settings.simulation_seed,
            latency_seconds=settings.simulation_latency_seconds,
        ),
        run_repository=run_repository,
        ordering=OrderingStrategy(settings.execution_ordering),
        base_capital=settings.run_base_capital,
    )


def build_run_queue(engine: Engine) -> RunQueue:
    """Build the run queue with its execution engine and node services."""
    run_repository = WorkflowRunRepositoryAdapter(engine=engine)
    return RunQueue(
        engine=build_execution_engine(run_repository),
        run_repository=run_repository,
    )


def get_run_queue(request: Request) -> RunQueue:
    """Return the run queue started by the application lifespan.

    Raises:
        RunQueueUnavailableError: If the lifespan has not created one.
    """
    run_queue = getattr(request.app.state, "run_queue", None)
    if run_queue is None:
        raise RunQueueUnavailableError()
    return run_queue


def get_list_workflows_use_case(
    workflows: WorkflowRepository = Depends(get_workflow_repository),
) -> ListWorkflowsUseCase:
    return ListWorkflowsUseCase(workflow_repository=workflows)


def get_get_workflow_use_case(
    workflows: WorkflowRepository = Depends(get_workflow_repository),
) -> GetWorkflowUseCase:
    return GetWorkflowUseCase(workflow_repository=workflows)


def get_save_workflow_use_case(
    workflows: WorkflowRepository = Depends(get_workflow_repository),
) -> SaveWorkflowUseCase:
    return SaveWorkflowUseCase(
        workflow_repository=workflows,
        enforce_arity=settings.enforce_port_arity,
    )


def get_delete_workflow_use_case(
    workflows: WorkflowRepository = Depends(get_workflow_repository),
) -> DeleteWorkflowUseCase:
    return DeleteWorkflowUseCase(workflow_repository=workflows)


def get_start_run_use_case(
    workflows: WorkflowRepository = Depends(get_workflow_repository),
    runs: WorkflowRunRepository = Depends(get_run_repository),
    run_queue: RunQueue = Depends(get_run_queue),
) -> StartWorkflowRunUseCase:
    """Build StartWorkflowRunUseCase with its infrastructure dependencies."""
    return StartWorkflowRunUseCase(
        workflow_repository=workflows,
        run_repository=runs,
        run_queue=run_queue,
    )


def get_execute_workflow_use_case() -> ExecuteWorkflowUseCase:
    """Build ExecuteWorkflowUseCase over a run store scoped to the request."""
    run_repository = InMemoryRunRepository()
    return ExecuteWorkflowUseCase(
        engine=build_execution_engine(run_repository),
        run_repository=run_repository,
    )


def get_list_runs_use_case(
    workflows: WorkflowRepository = Depends(get_workflow_repository),
    runs: WorkflowRunRepository = Depends(get_run_repository),
) -> ListWorkflowRunsUseCase:
    return ListWorkflowRunsUseCase(workflow_repository=workflows, run_repository=runs)


def get_get_run_use_case(
    runs: WorkflowRunRepository = Depends(get_run_repository),
) -> GetWorkflowRunUseCase:
    return GetWorkflowRunUseCase(run_repository=runs)


def get_node_logs_use_case(
    runs: WorkflowRunRepository = Depends(get_run_repository),
) -> GetNodeLogsUseCase:
    return GetNodeLogsUseCase(run_repository=runs)


def get_run_replay_use_case(
    workflows: WorkflowRepository = Depends(get_workflow_repository),
    runs: WorkflowRunRepository = Depends(get_run_repository),
) -> GetRunReplayUseCase:
    return GetRunReplayUseCase(workflow_repository=workflows, run_repository=runs)


def get_component_palette_use_case() -> GetComponentPaletteUseCase:
    return GetComponentPaletteUseCase()


def get_check_connection_use_case() -> CheckConnectionUseCase:
    return CheckConnectionUseCase(
        policy=ConnectionPolicy(settings.connection_policy)
    )
