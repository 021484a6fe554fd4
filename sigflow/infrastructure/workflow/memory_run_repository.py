"""
In-memory run repository.

Holds run records for the lifetime of the object only. Backs one-shot
executions (the synchronous execute endpoint and the CLI ``run``
command) where nothing should reach the workflow store.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sigflow.domain.workflow.entities import (
    NodeRunState,
    Profit,
    RunState,
    RunType,
    WorkflowRun,
    utc_now,
)
from sigflow.domain.workflow.errors import RunNotFoundError
from sigflow.domain.workflow.ports import WorkflowRunRepository


class InMemoryRunRepository(WorkflowRunRepository):
    def __init__(self) -> None:
        self._runs: dict[str, WorkflowRun] = {}

    def list_runs(self, workflow_id: str) -> list[WorkflowRun]:
        runs = [r for r in self._runs.values() if r.workflow_id == workflow_id]
        return sorted(runs, key=lambda r: r.start_time, reverse=True)

    def get_run(self, run_id: str) -> WorkflowRun:
        try:
            return self._runs[run_id]
        except KeyError:
            raise RunNotFoundError(run_id) from None

    def create_run(
        self,
        workflow_id: str,
        params: dict[str, Any],
        run_type: RunType = RunType.MANUAL,
    ) -> WorkflowRun:
        run = WorkflowRun(
            id=str(uuid4()),
            workflow_id=workflow_id,
            params=dict(params),
            run_type=run_type,
            state=RunState.QUEUED,
            start_time=utc_now(),
        )
        self._runs[run.id] = run
        return run

    def update_run_state(
        self,
        run_id: str,
        state: RunState,
        profit: Optional[Profit] = None,
        end_time: Optional[datetime] = None,
        node_states: Optional[dict[str, NodeRunState]] = None,
    ) -> None:
        run = self.get_run(run_id)
        run.state = state
        if profit is not None:
            run.profit = profit
        if end_time is not None:
            run.end_time = end_time
        if node_states is not None:
            run.node_states = node_states
