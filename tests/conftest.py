"""
Shared test fixtures.

The application reads its settings at import time, so the test
environment is set before anything from sigflow is imported.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SIMULATION_SEED", "7")

from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402

from sigflow.domain.workflow.entities import (  # noqa: E402
    Connection,
    Node,
    Position,
    Workflow,
    WorkflowRun,
)
from sigflow.domain.workflow.node_configs import build_config  # noqa: E402
from sigflow.domain.workflow.ports import WorkflowRunRepository  # noqa: E402
from sigflow.infrastructure.workflow.database import (  # noqa: E402
    create_db_engine,
    init_schema,
)


def make_node(node_id: str, component_type: str, x: float = 0.0, y: float = 0.0) -> Node:
    return Node(
        id=node_id,
        type=component_type,
        name=node_id,
        position=Position(x=x, y=y),
        config=build_config(component_type),
    )


def make_workflow(nodes: list[Node], edges: list[tuple[str, str]], workflow_id: str = "wf-1") -> Workflow:
    return Workflow(
        id=workflow_id,
        name="Test workflow",
        nodes=nodes,
        connections=[
            Connection(id=f"{s}-{t}-0", source=s, target=t) for s, t in edges
        ],
    )


def full_pipeline_workflow(workflow_id: str = "wf-full") -> Workflow:
    """START -> feed -> evaluator -> executor -> collector -> END."""
    nodes = [
        make_node("start", "START", 0, 0),
        make_node("feed", "BINANCE_EXTRACTOR", 200, 0),
        make_node("ai", "AI_EVALUATOR", 400, 0),
        make_node("exec", "BINANCE_TRADE_EXECUTOR", 600, 0),
        make_node("collect", "BINANCE_RESULT_COLLECTOR", 800, 0),
        make_node("end", "END", 1000, 0),
    ]
    edges = [
        ("start", "feed"),
        ("feed", "ai"),
        ("ai", "exec"),
        ("exec", "collect"),
        ("collect", "end"),
    ]
    return make_workflow(nodes, edges, workflow_id)


@pytest.fixture
def db_engine():
    """A fresh in-memory SQLite database with the workflow schema."""
    engine = create_db_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def run_store() -> MagicMock:
    return MagicMock(spec=WorkflowRunRepository)


@pytest.fixture
def queued_run() -> WorkflowRun:
    return WorkflowRun(id="run-1", workflow_id="wf-1")
