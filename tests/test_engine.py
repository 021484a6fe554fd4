"""
Tests for the execution engine.

Node services are mocked; the run repository is a MagicMock so the
engine's progress writes can be inspected.
"""

import asyncio
import time
from unittest.mock import AsyncMock

import pytest

from sigflow.domain.workflow.engine import ExecutionEngine, aggregate_profit
from sigflow.domain.workflow.entities import (
    NodeRunState,
    NodeRunStatus,
    RunState,
    WorkflowRun,
)
from sigflow.domain.workflow.ordering import OrderingStrategy
from sigflow.domain.workflow.ports import (
    CollectorService,
    EvaluatorService,
    ExecutorService,
    ListenerService,
    NodeResult,
    NodeServices,
)
from tests.conftest import full_pipeline_workflow, make_node, make_workflow

STRATEGY = {"action": "buy", "amount": 100.0, "confidence": 0.9, "pair": "BTC/USDT"}


@pytest.fixture
def services() -> NodeServices:
    listener = AsyncMock(spec=ListenerService)
    listener.fetch_or_stream.return_value = NodeResult.success(
        {"source": "Binance Extractor", "symbols": ["BTCUSDT"]}
    )
    evaluator = AsyncMock(spec=EvaluatorService)
    evaluator.infer.return_value = NodeResult.success(dict(STRATEGY))
    executor = AsyncMock(spec=ExecutorService)
    executor.submit.return_value = NodeResult.success(
        {"action": "buy", "amount": 100.0, "txHash": "0xabc"}
    )
    collector = AsyncMock(spec=CollectorService)
    collector.monitor.return_value = NodeResult.success(
        {"status": "completed", "txHash": "0xabc", "profit": 5.0}
    )
    return NodeServices(
        listener=listener, evaluator=evaluator, executor=executor, collector=collector
    )


def _statuses(run: WorkflowRun, node_ids: list[str]) -> list[NodeRunStatus]:
    return [run.node_states[node_id].status for node_id in node_ids]


def _short_workflow():
    return make_workflow(
        [
            make_node("start", "START"),
            make_node("feed", "BINANCE_EXTRACTOR"),
            make_node("end", "END"),
        ],
        [("start", "feed"), ("feed", "end")],
        workflow_id="wf-short",
    )


class TestExecutionSuccess:
    """Runs where every node succeeds."""

    @pytest.mark.asyncio
    async def test_short_chain_succeeds(self, services, run_store) -> None:
        engine = ExecutionEngine(services, run_store)
        run = WorkflowRun(id="run-1", workflow_id="wf-short")

        result = await engine.execute(_short_workflow(), run)

        assert result is run
        assert run.state is RunState.SUCCESS
        assert _statuses(run, ["start", "feed", "end"]) == [NodeRunStatus.SUCCESS] * 3
        assert run.end_time is not None
        assert run.profit.amount == 0.0

    @pytest.mark.asyncio
    async def test_full_pipeline_passes_results_downstream(self, services, run_store) -> None:
        engine = ExecutionEngine(services, run_store)
        workflow = full_pipeline_workflow()
        run = WorkflowRun(id="run-1", workflow_id=workflow.id)

        await engine.execute(workflow, run)

        assert run.state is RunState.SUCCESS
        services.listener.fetch_or_stream.assert_awaited_once_with(
            "BINANCE_EXTRACTOR", workflow.find_node("feed").config
        )
        bundle = services.evaluator.infer.await_args.args[0]
        assert bundle == {"feed": {"source": "Binance Extractor", "symbols": ["BTCUSDT"]}}
        services.executor.submit.assert_awaited_once_with(
            "BINANCE_TRADE_EXECUTOR", STRATEGY, workflow.find_node("exec").config
        )
        tx_result = services.collector.monitor.await_args.args[1]
        assert tx_result["txHash"] == "0xabc"
        assert run.profit.amount == 5.0
        assert run.profit.percentage == 0.5

    @pytest.mark.asyncio
    async def test_node_logs(self, services, run_store) -> None:
        engine = ExecutionEngine(services, run_store)
        run = WorkflowRun(id="run-1", workflow_id="wf-short")

        await engine.execute(_short_workflow(), run)

        messages = [entry.message for entry in run.node_states["feed"].logs]
        assert messages[0] == "Executing feed node..."
        assert "Fetched data from Binance Extractor" in messages
        assert messages[-1] == "feed completed successfully"
        start_messages = [entry.message for entry in run.node_states["start"].logs]
        assert "Workflow started" in start_messages

    @pytest.mark.asyncio
    async def test_terminal_state_is_persisted(self, services, run_store) -> None:
        engine = ExecutionEngine(services, run_store)
        run = WorkflowRun(id="run-1", workflow_id="wf-short")

        await engine.execute(_short_workflow(), run)

        call = run_store.update_run_state.call_args
        assert call.args == ("run-1", RunState.SUCCESS)
        assert call.kwargs["profit"] == run.profit
        assert call.kwargs["end_time"] == run.end_time
        assert call.kwargs["node_states"] is run.node_states

    @pytest.mark.asyncio
    async def test_category_ordering(self, services, run_store) -> None:
        engine = ExecutionEngine(services, run_store, ordering=OrderingStrategy.CATEGORY)
        workflow = _short_workflow()
        workflow.nodes.reverse()
        run = WorkflowRun(id="run-1", workflow_id=workflow.id)

        await engine.execute(workflow, run)

        assert run.state is RunState.SUCCESS


class TestExecutionFailure:
    """Fail-fast behavior."""

    @pytest.mark.asyncio
    async def test_failed_node_stops_run(self, services, run_store) -> None:
        services.listener.fetch_or_stream.return_value = NodeResult.failure("rate limited")
        engine = ExecutionEngine(services, run_store)
        run = WorkflowRun(id="run-1", workflow_id="wf-short")

        await engine.execute(_short_workflow(), run)

        assert run.state is RunState.FAILED
        assert _statuses(run, ["start", "feed", "end"]) == [
            NodeRunStatus.SUCCESS,
            NodeRunStatus.FAILED,
            NodeRunStatus.SKIPPED,
        ]
        assert run.node_states["feed"].error == "rate limited"
        assert run.node_states["feed"].logs[-1].message == "Error: rate limited"
        assert run.node_states["end"].logs == []

    @pytest.mark.asyncio
    async def test_raising_service_is_captured(self, services, run_store) -> None:
        services.evaluator.infer.side_effect = RuntimeError("model offline")
        engine = ExecutionEngine(services, run_store)
        workflow = full_pipeline_workflow()
        run = WorkflowRun(id="run-1", workflow_id=workflow.id)

        await engine.execute(workflow, run)

        assert run.state is RunState.FAILED
        assert run.node_states["ai"].status is NodeRunStatus.FAILED
        assert run.node_states["ai"].error == "model offline"
        services.executor.submit.assert_not_awaited()
        services.collector.monitor.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_every_node_has_a_state(self, services, run_store) -> None:
        """Nodes never reached are explicitly skipped."""
        services.listener.fetch_or_stream.return_value = NodeResult.failure("down")
        engine = ExecutionEngine(services, run_store)
        workflow = full_pipeline_workflow()
        run = WorkflowRun(id="run-1", workflow_id=workflow.id)

        await engine.execute(workflow, run)

        assert set(run.node_states) == {n.id for n in workflow.nodes}
        assert _statuses(run, ["ai", "exec", "collect", "end"]) == [
            NodeRunStatus.SKIPPED
        ] * 4
        assert run.profit.amount == 0.0


class TestProfitAggregation:
    """Tests for aggregate_profit and its use by the engine."""

    @pytest.mark.asyncio
    async def test_profits_sum_across_nodes(self, services, run_store) -> None:
        workflow = make_workflow(
            [
                make_node("start", "START"),
                make_node("feed", "BINANCE_STREAM"),
                make_node("ai", "AI_EVALUATOR"),
                make_node("bn_exec", "BINANCE_TRADE_EXECUTOR"),
                make_node("okx_exec", "OKX_TRADE_EXECUTOR"),
                make_node("bn_collect", "BINANCE_RESULT_COLLECTOR"),
                make_node("okx_collect", "OKX_RESULT_COLLECTOR"),
                make_node("end", "END"),
            ],
            [
                ("start", "feed"),
                ("feed", "ai"),
                ("ai", "bn_exec"),
                ("ai", "okx_exec"),
                ("bn_exec", "bn_collect"),
                ("okx_exec", "okx_collect"),
                ("bn_collect", "end"),
                ("okx_collect", "end"),
            ],
        )
        services.executor.submit.side_effect = [
            NodeResult.success({"txHash": "0x1", "profit": 10}),
            NodeResult.success({"txHash": "0x2"}),
        ]
        services.collector.monitor.side_effect = [
            NodeResult.success({"profit": -3}),
            NodeResult.success({"profit": 7}),
        ]
        engine = ExecutionEngine(services, run_store)
        run = WorkflowRun(id="run-1", workflow_id=workflow.id)

        await engine.execute(workflow, run)

        assert run.state is RunState.SUCCESS
        assert run.profit.amount == 14.0
        assert run.profit.percentage == 1.4

    @pytest.mark.asyncio
    async def test_capital_param_sets_percentage_base(self, services, run_store) -> None:
        engine = ExecutionEngine(services, run_store)
        workflow = full_pipeline_workflow()
        run = WorkflowRun(id="run-1", workflow_id=workflow.id, params={"capital": 200})

        await engine.execute(workflow, run)

        assert run.profit.amount == 5.0
        assert run.profit.percentage == 2.5

    def test_ignores_non_numeric_and_failed_nodes(self) -> None:
        workflow = full_pipeline_workflow()
        states = {
            "exec": NodeRunState(status=NodeRunStatus.SUCCESS, result={"profit": True}),
            "collect": NodeRunState(status=NodeRunStatus.FAILED, result={"profit": 50}),
            "ai": NodeRunState(status=NodeRunStatus.SUCCESS, result={"profit": 99}),
        }
        profit = aggregate_profit(workflow, states, 1000)
        assert profit.amount == 0.0
        assert profit.percentage == 0.0

    def test_negative_total(self) -> None:
        workflow = full_pipeline_workflow()
        states = {
            "collect": NodeRunState(status=NodeRunStatus.SUCCESS, result={"profit": -25.5}),
        }
        profit = aggregate_profit(workflow, states, 1000)
        assert profit.amount == -25.5
        assert profit.percentage == -2.55


class SlowRunStore:
    """Run store whose writes block the calling thread."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.writes = 0

    def update_run_state(self, run_id, state, **kwargs) -> None:
        time.sleep(self.delay)
        self.writes += 1


class TestExecutionStoreWrites:
    """Store writes happen off the event loop."""

    @pytest.mark.asyncio
    async def test_blocking_store_does_not_stall_loop(self, services) -> None:
        store = SlowRunStore(delay=0.05)
        engine = ExecutionEngine(services, store)
        run = WorkflowRun(id="run-slow", workflow_id="wf-short")
        gaps: list[float] = []
        done = asyncio.Event()

        async def ticker() -> None:
            last = time.monotonic()
            while not done.is_set():
                await asyncio.sleep(0.005)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        ticking = asyncio.create_task(ticker())
        await engine.execute(_short_workflow(), run)
        done.set()
        await ticking

        assert run.state is RunState.SUCCESS
        assert store.writes >= 8
        assert max(gaps) < store.delay
