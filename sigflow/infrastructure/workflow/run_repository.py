"""
Adapter: Workflow run repository.

Implements the WorkflowRunRepository port.
Run records live in t_workflow_run; profit and per-node states are
stored as JSON columns.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from sigflow.domain.workflow.entities import (
    LogEntry,
    LogLevel,
    NodeRunState,
    NodeRunStatus,
    Profit,
    RunState,
    RunType,
    WorkflowRun,
    utc_now,
)
from sigflow.domain.workflow.errors import RunNotFoundError
from sigflow.domain.workflow.ports import WorkflowRunRepository
from sigflow.infrastructure.workflow.database import (
    as_utc,
    persistence_guard,
    workflow_run_table,
)

logger = logging.getLogger(__name__)


def node_states_to_json(states: dict[str, NodeRunState]) -> dict[str, Any]:
    return {
        node_id: {
            "status": state.status.value,
            "logs": [
                {
                    "timestamp": entry.timestamp.isoformat(),
                    "level": entry.level.value,
                    "message": entry.message,
                    "data": entry.data,
                }
                for entry in state.logs
            ],
            "result": state.result,
            "error": state.error,
        }
        for node_id, state in states.items()
    }


def node_states_from_json(raw: Optional[dict[str, Any]]) -> dict[str, NodeRunState]:
    states: dict[str, NodeRunState] = {}
    for node_id, item in (raw or {}).items():
        logs = [
            LogEntry(
                message=entry.get("message", ""),
                level=LogLevel(entry.get("level", LogLevel.INFO.value)),
                timestamp=datetime.fromisoformat(entry["timestamp"]),
                data=entry.get("data"),
            )
            for entry in item.get("logs", [])
        ]
        states[node_id] = NodeRunState(
            status=NodeRunStatus(item.get("status", NodeRunStatus.SKIPPED.value)),
            logs=logs,
            result=item.get("result"),
            error=item.get("error"),
        )
    return states


class WorkflowRunRepositoryAdapter(WorkflowRunRepository):
    """Reads and writes workflow runs with SQLAlchemy."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @staticmethod
    def _to_entity(row) -> WorkflowRun:
        profit = row.profit or {}
        return WorkflowRun(
            id=row.id,
            workflow_id=row.workflow_id,
            params=row.params or {},
            run_type=RunType(row.run_type),
            state=RunState(row.state),
            start_time=as_utc(row.start_date),
            end_time=as_utc(row.end_date),
            profit=Profit(
                amount=float(profit.get("amount", 0)),
                percentage=float(profit.get("percentage", 0)),
            ),
            node_states=node_states_from_json(row.node_states),
        )

    def list_runs(self, workflow_id: str) -> list[WorkflowRun]:
        query = (
            select(workflow_run_table)
            .where(workflow_run_table.c.workflow_id == workflow_id)
            .order_by(workflow_run_table.c.start_date.desc())
        )
        with persistence_guard("list_runs"):
            with self._engine.connect() as conn:
                rows = conn.execute(query).fetchall()
        return [self._to_entity(row) for row in rows]

    def get_run(self, run_id: str) -> WorkflowRun:
        query = select(workflow_run_table).where(workflow_run_table.c.id == run_id)
        with persistence_guard("get_run"):
            with self._engine.connect() as conn:
                row = conn.execute(query).first()
        if row is None:
            raise RunNotFoundError(run_id)
        return self._to_entity(row)

    def create_run(
        self,
        workflow_id: str,
        params: dict[str, Any],
        run_type: RunType = RunType.MANUAL,
    ) -> WorkflowRun:
        """Insert a queued run with zero profit and no node states."""
        run = WorkflowRun(
            id=str(uuid4()),
            workflow_id=workflow_id,
            params=dict(params),
            run_type=run_type,
            state=RunState.QUEUED,
            start_time=utc_now(),
        )
        with persistence_guard("create_run"):
            with self._engine.begin() as conn:
                conn.execute(
                    insert(workflow_run_table).values(
                        id=run.id,
                        workflow_id=run.workflow_id,
                        params=run.params,
                        start_date=run.start_time,
                        end_date=None,
                        run_type=run.run_type.value,
                        state=run.state.value,
                        profit={"amount": 0, "percentage": 0},
                        node_states={},
                    )
                )
        logger.info("Created run %s for workflow %s.", run.id, workflow_id)
        return run

    def update_run_state(
        self,
        run_id: str,
        state: RunState,
        profit: Optional[Profit] = None,
        end_time: Optional[datetime] = None,
        node_states: Optional[dict[str, NodeRunState]] = None,
    ) -> None:
        values: dict[str, Any] = {"state": state.value}
        if profit is not None:
            values["profit"] = {"amount": profit.amount, "percentage": profit.percentage}
        if end_time is not None:
            values["end_date"] = end_time
        if node_states is not None:
            values["node_states"] = node_states_to_json(node_states)

        statement = (
            update(workflow_run_table)
            .where(workflow_run_table.c.id == run_id)
            .values(**values)
        )
        with persistence_guard("update_run_state"):
            with self._engine.begin() as conn:
                rowcount = conn.execute(statement).rowcount
        if rowcount == 0:
            raise RunNotFoundError(run_id)
