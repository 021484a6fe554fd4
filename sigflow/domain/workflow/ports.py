"""
Port interfaces (ABCs) for the workflow bounded context.

Ports define the contracts that the domain requires from the outside world.
Infrastructure adapters implement these interfaces.
The domain layer never depends on concrete implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sigflow.domain.workflow.entities import (
    NodeRunState,
    Profit,
    RunState,
    RunType,
    Workflow,
    WorkflowRun,
)
from sigflow.domain.workflow.node_configs import (
    CollectorConfig,
    EvaluatorConfig,
    NodeConfig,
)

RESULT_SUCCESS = "success"
RESULT_ERROR = "error"


@dataclass(frozen=True)
class NodeResult:
    """Uniform result shape returned by every node service.

    Attributes:
        status: "success" or "error".
        data: Payload on success.
        error: Human-readable reason on failure.
        logs: Extra log lines the service wants attached to the node.
    """

    status: str
    data: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    logs: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status == RESULT_SUCCESS

    @classmethod
    def success(cls, data: dict[str, Any], logs: tuple[str, ...] = ()) -> "NodeResult":
        return cls(status=RESULT_SUCCESS, data=data, logs=logs)

    @classmethod
    def failure(cls, error: str) -> "NodeResult":
        return cls(status=RESULT_ERROR, error=error)


class WorkflowRepository(ABC):
    """Port for persisting workflow graphs."""

    @abstractmethod
    def list_workflows(self) -> list[Workflow]:
        """Return all live workflows, most recently updated first."""
        raise NotImplementedError

    @abstractmethod
    def get_workflow(self, workflow_id: str) -> Workflow:
        """Return one workflow.

        Raises:
            WorkflowNotFoundError: If no live workflow has this id.
            PersistenceError: If the store cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    def save_workflow(self, workflow: Workflow) -> Workflow:
        """Insert or update a workflow and return the stored version.

        Raises:
            PersistenceError: If the store cannot be written.
        """
        raise NotImplementedError

    @abstractmethod
    def delete_workflow(self, workflow_id: str) -> None:
        """Soft-delete a workflow.

        Raises:
            WorkflowNotFoundError: If no live workflow has this id.
        """
        raise NotImplementedError


class WorkflowRunRepository(ABC):
    """Port for persisting workflow run records."""

    @abstractmethod
    def list_runs(self, workflow_id: str) -> list[WorkflowRun]:
        """Return runs of a workflow, newest first."""
        raise NotImplementedError

    @abstractmethod
    def get_run(self, run_id: str) -> WorkflowRun:
        """Return one run.

        Raises:
            RunNotFoundError: If the run does not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def create_run(
        self,
        workflow_id: str,
        params: dict[str, Any],
        run_type: RunType = RunType.MANUAL,
    ) -> WorkflowRun:
        """Create a queued run record."""
        raise NotImplementedError

    @abstractmethod
    def update_run_state(
        self,
        run_id: str,
        state: RunState,
        profit: Optional[Profit] = None,
        end_time: Optional[datetime] = None,
        node_states: Optional[dict[str, NodeRunState]] = None,
    ) -> None:
        """Update the mutable parts of a run.

        Args:
            run_id: Run to update.
            state: New run state.
            profit: Profit summary, left unchanged when None.
            end_time: Completion time, left unchanged when None.
            node_states: Per-node states, left unchanged when None.

        Raises:
            RunNotFoundError: If the run does not exist.
            PersistenceError: If the store cannot be written.
        """
        raise NotImplementedError


class ListenerService(ABC):
    """Port for data-source nodes (fetch or stream market/social data)."""

    @abstractmethod
    async def fetch_or_stream(
        self, component_type: str, config: NodeConfig
    ) -> NodeResult:
        raise NotImplementedError


class EvaluatorService(ABC):
    """Port for the AI evaluator (turns an input bundle into a strategy)."""

    @abstractmethod
    async def infer(
        self, bundle: dict[str, dict[str, Any]], config: EvaluatorConfig
    ) -> NodeResult:
        """Produce a strategy from upstream data.

        Args:
            bundle: Successful upstream results keyed by source node id.
            config: Evaluator configuration.

        Returns:
            NodeResult whose data carries at least ``action``.
        """
        raise NotImplementedError


class ExecutorService(ABC):
    """Port for trade executors."""

    @abstractmethod
    async def submit(
        self,
        component_type: str,
        strategy: Optional[dict[str, Any]],
        config: NodeConfig,
    ) -> NodeResult:
        """Submit a trade for a strategy.

        Returns:
            NodeResult whose data carries ``txHash`` when a trade was
            placed, and optionally a numeric ``profit``.
        """
        raise NotImplementedError


class CollectorService(ABC):
    """Port for result collectors (monitor a submitted transaction)."""

    @abstractmethod
    async def monitor(
        self,
        component_type: str,
        tx_result: Optional[dict[str, Any]],
        config: CollectorConfig,
    ) -> NodeResult:
        raise NotImplementedError


@dataclass(frozen=True)
class NodeServices:
    """The four node service families the execution engine dispatches to."""

    listener: ListenerService
    evaluator: EvaluatorService
    executor: ExecutorService
    collector: CollectorService
