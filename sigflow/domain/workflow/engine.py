"""
Execution engine for workflow runs.

Walks a workflow snapshot in execution order and, for every node:
1. marks it running and logs the start of execution;
2. gathers the successful results of its upstream nodes, keyed by
   source node id;
3. dispatches to the node service matching its role;
4. records the result and marks it success, or marks it failed and
   stops the run.

Every node starts the run as ``skipped`` so nodes never reached keep an
explicit status. Node failures become run state and are never raised
to the caller. Persistence failures propagate.

Node calls are awaited one at a time, even where the graph would allow
running branches concurrently.
Store writes run in a worker thread so a blocking store never stalls
the event loop.
"""

import asyncio
import logging
import numbers
from typing import Any, Optional

from sigflow.domain.workflow.entities import (
    LogLevel,
    Node,
    NodeRunState,
    NodeRunStatus,
    Profit,
    RunState,
    Workflow,
    WorkflowRun,
    utc_now,
)
from sigflow.domain.workflow.errors import NodeExecutionError
from sigflow.domain.workflow.ordering import OrderingStrategy, execution_order
from sigflow.domain.workflow.ports import NodeResult, NodeServices, WorkflowRunRepository
from sigflow.domain.workflow.registry import NodeRole, get_schema

logger = logging.getLogger(__name__)

DEFAULT_BASE_CAPITAL = 1000.0
PROFIT_ROLES = (NodeRole.EXECUTOR, NodeRole.COLLECTOR)


def aggregate_profit(
    workflow: Workflow, node_states: dict[str, NodeRunState], base_capital: float
) -> Profit:
    """Sum the ``profit`` signals of successful executor and collector nodes.

    The percentage is relative to ``base_capital``.
    """
    amount = 0.0
    for node in workflow.nodes:
        if get_schema(node.type).role not in PROFIT_ROLES:
            continue
        state = node_states.get(node.id)
        if state is None or state.status is not NodeRunStatus.SUCCESS or not state.result:
            continue
        value = state.result.get("profit")
        if isinstance(value, numbers.Real) and not isinstance(value, bool):
            amount += float(value)

    percentage = amount / base_capital * 100 if base_capital > 0 else 0.0
    return Profit(amount=round(amount, 8), percentage=round(percentage, 4))


def _first_with(bundle: dict[str, dict[str, Any]], key: str) -> Optional[dict[str, Any]]:
    for data in bundle.values():
        if isinstance(data, dict) and data.get(key) is not None:
            return data
    return None


class ExecutionEngine:
    """Runs one workflow snapshot to a terminal WorkflowRun.

    Args:
        services: Node service families to dispatch to.
        run_repository: Store receiving progress and the terminal state.
        ordering: Execution ordering strategy.
        base_capital: Default capital for the profit percentage when the
            run params carry no ``capital``.
    """

    def __init__(
        self,
        services: NodeServices,
        run_repository: WorkflowRunRepository,
        ordering: OrderingStrategy = OrderingStrategy.TOPOLOGICAL,
        base_capital: float = DEFAULT_BASE_CAPITAL,
    ) -> None:
        self._services = services
        self._runs = run_repository
        self._ordering = ordering
        self._base_capital = base_capital

    async def execute(self, workflow: Workflow, run: WorkflowRun) -> WorkflowRun:
        """Execute the workflow and persist the terminal run.

        Args:
            workflow: Snapshot of the graph taken when the run was requested.
            run: The dequeued run record. Mutated in place.

        Returns:
            The same run in a terminal state.

        Raises:
            PersistenceError: If progress or the terminal state cannot be saved.
        """
        run.state = RunState.RUNNING
        run.node_states = {node.id: NodeRunState() for node in workflow.nodes}
        await self._save_progress(run)
        logger.info(
            "Run %s started for workflow %s (%d nodes).",
            run.id, workflow.id, len(workflow.nodes),
        )

        results: dict[str, dict[str, Any]] = {}
        failed = False
        for node in execution_order(workflow, self._ordering):
            state = run.node_states[node.id]
            state.status = NodeRunStatus.RUNNING
            state.log(f"Executing {node.name} node...")
            await self._save_progress(run)

            bundle = {
                c.source: results[c.source]
                for c in workflow.connections
                if c.target == node.id and c.source in results
            }
            try:
                result = await self._run_node(node, bundle)
            except NodeExecutionError as exc:
                state.status = NodeRunStatus.FAILED
                state.error = exc.reason
                state.log(f"Error: {exc.reason}", LogLevel.ERROR)
                await self._save_progress(run)
                logger.warning("Run %s stopped at node %s: %s", run.id, node.id, exc.reason)
                failed = True
                break

            results[node.id] = result.data
            state.result = result.data
            for line in result.logs:
                state.log(line)
            for line in self._summary_lines(result.data):
                state.log(line)
            state.status = NodeRunStatus.SUCCESS
            state.log(f"{node.name} completed successfully")
            await self._save_progress(run)

        run.state = RunState.FAILED if failed else RunState.SUCCESS
        run.profit = aggregate_profit(workflow, run.node_states, self._capital_for(run))
        run.end_time = utc_now()
        await asyncio.to_thread(
            self._runs.update_run_state,
            run.id,
            run.state,
            profit=run.profit,
            end_time=run.end_time,
            node_states=run.node_states,
        )
        logger.info(
            "Run %s finished: state=%s profit=%.2f",
            run.id, run.state.value, run.profit.amount,
        )
        return run

    async def _save_progress(self, run: WorkflowRun) -> None:
        await asyncio.to_thread(
            self._runs.update_run_state, run.id, run.state, node_states=run.node_states
        )

    def _capital_for(self, run: WorkflowRun) -> float:
        capital = run.params.get("capital")
        if isinstance(capital, numbers.Real) and not isinstance(capital, bool) and capital > 0:
            return float(capital)
        return self._base_capital

    async def _run_node(
        self, node: Node, bundle: dict[str, dict[str, Any]]
    ) -> NodeResult:
        """Dispatch a node to its service and normalize failures.

        Raises:
            NodeExecutionError: If the service reports an error or raises.
        """
        role = get_schema(node.type).role
        try:
            result = await self._dispatch(role, node, bundle)
        except NodeExecutionError:
            raise
        except Exception as exc:
            logger.exception("Node service for %s raised.", node.id)
            raise NodeExecutionError(node.id, str(exc) or type(exc).__name__) from exc

        if not result.ok:
            raise NodeExecutionError(node.id, result.error or "unknown error")
        return result

    async def _dispatch(
        self, role: NodeRole, node: Node, bundle: dict[str, dict[str, Any]]
    ) -> NodeResult:
        if role is NodeRole.START:
            return NodeResult.success({"started": True}, logs=("Workflow started",))
        if role is NodeRole.END:
            return NodeResult.success(
                {"inputs": len(bundle)}, logs=("Workflow completed",)
            )
        if role is NodeRole.LISTENER:
            return await self._services.listener.fetch_or_stream(node.type, node.config)
        if role is NodeRole.EVALUATOR:
            return await self._services.evaluator.infer(bundle, node.config)
        if role is NodeRole.EXECUTOR:
            strategy = _first_with(bundle, "action")
            return await self._services.executor.submit(node.type, strategy, node.config)
        tx_result = _first_with(bundle, "txHash")
        return await self._services.collector.monitor(node.type, tx_result, node.config)

    @staticmethod
    def _summary_lines(data: dict[str, Any]) -> list[str]:
        """Human-readable log lines for well-known result fields."""
        lines = []
        if data.get("source"):
            lines.append(f"Fetched data from {data['source']}")
        if data.get("confidence") is not None:
            lines.append(f"Confidence: {data['confidence']}")
        if data.get("action"):
            lines.append(f"Recommendation: {data['action']}")
        if data.get("amount") is not None:
            lines.append(f"Amount: ${data['amount']}")
        if data.get("txHash"):
            lines.append(f"Transaction: {data['txHash']}")
        if data.get("profit") is not None:
            lines.append(f"Profit: ${data['profit']}")
        return lines
