"""
Tests for the SQLAlchemy workflow and run stores and the in-memory run store.

Each SQLAlchemy test gets a fresh in-memory SQLite database.
"""

import pytest
from sqlalchemy import select

from sigflow.domain.workflow.entities import (
    LogLevel,
    NodeRunState,
    NodeRunStatus,
    Profit,
    RunState,
    RunType,
    Workflow,
    utc_now,
)
from sigflow.domain.workflow.errors import (
    PersistenceError,
    RunNotFoundError,
    WorkflowNotFoundError,
)
from sigflow.infrastructure.workflow.database import (
    create_db_engine,
    persistence_guard,
    workflow_table,
)
from sigflow.infrastructure.workflow.memory_run_repository import InMemoryRunRepository
from sigflow.infrastructure.workflow.run_repository import (
    WorkflowRunRepositoryAdapter,
    node_states_from_json,
    node_states_to_json,
)
from sigflow.infrastructure.workflow.workflow_repository import (
    WorkflowRepositoryAdapter,
)
from tests.conftest import full_pipeline_workflow


@pytest.fixture
def workflows(db_engine) -> WorkflowRepositoryAdapter:
    return WorkflowRepositoryAdapter(db_engine)


@pytest.fixture
def runs(db_engine) -> WorkflowRunRepositoryAdapter:
    return WorkflowRunRepositoryAdapter(db_engine)


class TestWorkflowRepository:
    """CRUD on t_workflow."""

    def test_save_and_get(self, workflows) -> None:
        saved = workflows.save_workflow(full_pipeline_workflow("wf-a"))

        loaded = workflows.get_workflow("wf-a")

        assert loaded.id == saved.id == "wf-a"
        assert [n.id for n in loaded.nodes] == ["start", "feed", "ai", "exec", "collect", "end"]
        assert len(loaded.connections) == 5
        assert loaded.created_at.tzinfo is not None

    def test_save_assigns_id(self, workflows) -> None:
        saved = workflows.save_workflow(Workflow(id="", name="unnamed"))
        assert saved.id
        assert workflows.get_workflow(saved.id).name == "unnamed"

    def test_update_overwrites(self, workflows) -> None:
        workflow = workflows.save_workflow(full_pipeline_workflow("wf-a"))
        workflow.name = "renamed"
        workflow.nodes = workflow.nodes[:1]
        workflow.connections = []

        workflows.save_workflow(workflow)

        loaded = workflows.get_workflow("wf-a")
        assert loaded.name == "renamed"
        assert [n.id for n in loaded.nodes] == ["start"]

    def test_list_newest_first(self, workflows) -> None:
        workflows.save_workflow(full_pipeline_workflow("wf-old"))
        workflows.save_workflow(full_pipeline_workflow("wf-new"))
        assert [w.id for w in workflows.list_workflows()] == ["wf-new", "wf-old"]

    def test_missing_workflow_raises(self, workflows) -> None:
        with pytest.raises(WorkflowNotFoundError):
            workflows.get_workflow("nope")

    def test_delete_is_soft(self, workflows, db_engine) -> None:
        workflows.save_workflow(full_pipeline_workflow("wf-a"))

        workflows.delete_workflow("wf-a")

        with pytest.raises(WorkflowNotFoundError):
            workflows.get_workflow("wf-a")
        assert workflows.list_workflows() == []
        with db_engine.connect() as conn:
            row = conn.execute(
                select(workflow_table.c.del_flag).where(workflow_table.c.id == "wf-a")
            ).first()
        assert row.del_flag is True

    def test_delete_twice_raises(self, workflows) -> None:
        workflows.save_workflow(full_pipeline_workflow("wf-a"))
        workflows.delete_workflow("wf-a")
        with pytest.raises(WorkflowNotFoundError):
            workflows.delete_workflow("wf-a")

    def test_save_revives_deleted(self, workflows) -> None:
        workflows.save_workflow(full_pipeline_workflow("wf-a"))
        workflows.delete_workflow("wf-a")
        workflows.save_workflow(full_pipeline_workflow("wf-a"))
        assert workflows.get_workflow("wf-a").id == "wf-a"


class TestRunRepository:
    """Run records in t_workflow_run."""

    def test_create_run_is_queued(self, runs) -> None:
        run = runs.create_run("wf-a", {"capital": 100}, RunType.SCHEDULED)

        stored = runs.get_run(run.id)

        assert stored.state is RunState.QUEUED
        assert stored.run_type is RunType.SCHEDULED
        assert stored.params == {"capital": 100}
        assert stored.profit == Profit(0.0, 0.0)
        assert stored.node_states == {}
        assert stored.end_time is None

    def test_update_run_state(self, runs) -> None:
        run = runs.create_run("wf-a", {})
        state = NodeRunState(status=NodeRunStatus.FAILED, error="boom")
        state.log("Error: boom", LogLevel.ERROR)
        finished = utc_now()

        runs.update_run_state(
            run.id,
            RunState.FAILED,
            profit=Profit(amount=-3.5, percentage=-0.35),
            end_time=finished,
            node_states={"feed": state, "end": NodeRunState()},
        )

        stored = runs.get_run(run.id)
        assert stored.state is RunState.FAILED
        assert stored.profit == Profit(-3.5, -0.35)
        assert stored.end_time == finished
        assert stored.node_states["feed"].status is NodeRunStatus.FAILED
        assert stored.node_states["feed"].error == "boom"
        assert stored.node_states["feed"].logs[0].level is LogLevel.ERROR
        assert stored.node_states["end"].status is NodeRunStatus.SKIPPED

    def test_partial_update_keeps_other_fields(self, runs) -> None:
        run = runs.create_run("wf-a", {})
        runs.update_run_state(run.id, RunState.RUNNING, node_states={"start": NodeRunState()})
        runs.update_run_state(run.id, RunState.SUCCESS)

        stored = runs.get_run(run.id)
        assert stored.state is RunState.SUCCESS
        assert set(stored.node_states) == {"start"}
        assert stored.end_time is None

    def test_list_runs_scoped_to_workflow(self, runs) -> None:
        first = runs.create_run("wf-a", {})
        second = runs.create_run("wf-a", {})
        runs.create_run("wf-b", {})

        listed = [r.id for r in runs.list_runs("wf-a")]

        assert set(listed) == {first.id, second.id}

    def test_missing_run_raises(self, runs) -> None:
        with pytest.raises(RunNotFoundError):
            runs.get_run("nope")
        with pytest.raises(RunNotFoundError):
            runs.update_run_state("nope", RunState.SUCCESS)

    def test_node_state_json_round_trip(self) -> None:
        state = NodeRunState(status=NodeRunStatus.SUCCESS, result={"profit": 1.5})
        state.log("done", data={"k": 1})

        restored = node_states_from_json(node_states_to_json({"n": state}))["n"]

        assert restored.status is NodeRunStatus.SUCCESS
        assert restored.result == {"profit": 1.5}
        assert restored.logs[0].message == "done"
        assert restored.logs[0].data == {"k": 1}
        assert restored.logs[0].timestamp == state.logs[0].timestamp


class TestInMemoryRunRepository:
    """Run store backing one-shot executions."""

    def test_create_and_update(self) -> None:
        runs = InMemoryRunRepository()
        run = runs.create_run("wf-1", {"capital": 100})
        assert run.state is RunState.QUEUED

        states = {"start": NodeRunState(status=NodeRunStatus.SUCCESS)}
        finished = utc_now()
        runs.update_run_state(
            run.id,
            RunState.SUCCESS,
            profit=Profit(amount=4.0, percentage=4.0),
            end_time=finished,
            node_states=states,
        )

        stored = runs.get_run(run.id)
        assert stored.state is RunState.SUCCESS
        assert stored.profit.amount == 4.0
        assert stored.end_time == finished
        assert stored.node_states["start"].status is NodeRunStatus.SUCCESS
        assert runs.list_runs("wf-1") == [stored]
        assert runs.list_runs("wf-2") == []

    def test_missing_run_raises(self) -> None:
        runs = InMemoryRunRepository()
        with pytest.raises(RunNotFoundError):
            runs.get_run("nope")
        with pytest.raises(RunNotFoundError):
            runs.update_run_state("nope", RunState.FAILED)


class TestPersistenceErrors:
    """SQLAlchemy failures surface as PersistenceError."""

    def test_missing_tables(self) -> None:
        engine = create_db_engine("sqlite://")
        with pytest.raises(PersistenceError) as exc_info:
            WorkflowRepositoryAdapter(engine).list_workflows()
        assert exc_info.value.operation == "list_workflows"
        engine.dispose()

    def test_guard_passes_other_errors(self) -> None:
        with pytest.raises(ValueError):
            with persistence_guard("noop"):
                raise ValueError("not a database error")
