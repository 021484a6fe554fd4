"""
Adapter: Simulated node services.

Implements the listener, evaluator, executor and collector ports
without touching real exchanges, chains or AI models. Results are
driven by an injectable random generator so runs are reproducible
under a fixed seed.
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Optional

from sigflow.domain.workflow.node_configs import (
    ChainExecutorConfig,
    CollectorConfig,
    EvaluatorConfig,
    NodeConfig,
)
from sigflow.domain.workflow.ports import (
    CollectorService,
    EvaluatorService,
    ExecutorService,
    ListenerService,
    NodeResult,
    NodeServices,
)
from sigflow.domain.workflow.registry import get_schema

logger = logging.getLogger(__name__)

ACTIONS = ("buy", "sell", "hold")
DEFAULT_PAIR = "BTC/USDT"
MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.99
MIN_STRATEGY_AMOUNT = 10.0
MAX_STRATEGY_AMOUNT = 500.0
MIN_RETURN = -0.05
MAX_RETURN = 0.08


class _Simulated:
    def __init__(self, rng: random.Random, latency_seconds: float = 0.0) -> None:
        self._rng = rng
        self._latency = latency_seconds

    async def _wait(self) -> None:
        if self._latency > 0:
            await asyncio.sleep(self._latency)


class SimulatedListenerService(_Simulated, ListenerService):
    """Pretends to fetch or stream from the node's data source."""

    async def fetch_or_stream(
        self, component_type: str, config: NodeConfig
    ) -> NodeResult:
        await self._wait()
        schema = get_schema(component_type)
        symbols = (
            getattr(config, "symbols", None)
            or getattr(config, "keywords", None)
            or [DEFAULT_PAIR]
        )
        data = {
            "source": schema.name,
            "symbols": list(symbols),
            "items": self._rng.randint(5, 50),
            "sentiment": round(self._rng.uniform(-1.0, 1.0), 2),
            "fetchedAt": datetime.now(timezone.utc).isoformat(),
        }
        logger.debug("Listener %s produced %d items.", component_type, data["items"])
        return NodeResult.success(data)


class SimulatedEvaluatorService(_Simulated, EvaluatorService):
    """Turns upstream data into a buy/sell/hold strategy."""

    async def infer(
        self, bundle: dict[str, dict[str, Any]], config: EvaluatorConfig
    ) -> NodeResult:
        await self._wait()
        if not bundle:
            return NodeResult.failure("No input data to evaluate")

        confidence = round(self._rng.uniform(MIN_CONFIDENCE, MAX_CONFIDENCE), 2)
        action = self._rng.choice(ACTIONS)
        threshold = config.confidence_threshold
        if threshold is not None and confidence < threshold:
            action = "hold"

        symbols = next(
            (d["symbols"] for d in bundle.values() if d.get("symbols")),
            [DEFAULT_PAIR],
        )
        return NodeResult.success(
            {
                "action": action,
                "confidence": confidence,
                "amount": round(
                    self._rng.uniform(MIN_STRATEGY_AMOUNT, MAX_STRATEGY_AMOUNT), 2
                ),
                "pair": symbols[0],
                "model": config.model or "default",
                "inputs": len(bundle),
            }
        )


def clamp_amount(
    amount: float, minimum: Optional[float], maximum: Optional[float]
) -> float:
    if minimum is not None:
        amount = max(amount, minimum)
    if maximum is not None:
        amount = min(amount, maximum)
    return amount


class SimulatedExecutorService(_Simulated, ExecutorService):
    """Places a fake trade for the strategy, clamped to the node's limits."""

    async def submit(
        self,
        component_type: str,
        strategy: Optional[dict[str, Any]],
        config: NodeConfig,
    ) -> NodeResult:
        await self._wait()
        if strategy is None or strategy.get("action") == "hold":
            return NodeResult.success(
                {"action": "hold", "status": "skipped"},
                logs=("No trade placed: strategy is hold",),
            )

        amount = clamp_amount(
            float(strategy.get("amount") or 0.0),
            getattr(config, "min_amount", None),
            getattr(config, "max_amount", None),
        )
        data: dict[str, Any] = {
            "action": strategy["action"],
            "pair": strategy.get("pair", DEFAULT_PAIR),
            "amount": round(amount, 2),
            "actualAmount": round(amount, 2),
            "txHash": f"0x{self._rng.getrandbits(256):064x}",
            "status": "confirmed",
            "venue": get_schema(component_type).name,
        }
        if isinstance(config, ChainExecutorConfig):
            data["gasUsed"] = self._rng.randint(21_000, 250_000)
        return NodeResult.success(data)


class SimulatedCollectorService(_Simulated, CollectorService):
    """Monitors a fake transaction and reports its realised profit."""

    async def monitor(
        self,
        component_type: str,
        tx_result: Optional[dict[str, Any]],
        config: CollectorConfig,
    ) -> NodeResult:
        await self._wait()
        if tx_result is None:
            return NodeResult.success({"status": "no_transaction", "profit": 0.0})

        amount = float(tx_result.get("actualAmount") or tx_result.get("amount") or 0.0)
        profit = round(amount * self._rng.uniform(MIN_RETURN, MAX_RETURN), 2)
        return NodeResult.success(
            {
                "status": "completed",
                "txHash": tx_result["txHash"],
                "profit": profit,
                "monitoredFor": config.monitor_duration or 0,
            }
        )


def build_simulated_services(
    seed: Optional[int] = None, latency_seconds: float = 0.0
) -> NodeServices:
    """Wire the four simulated service families on one shared generator."""
    rng = random.Random(seed)
    return NodeServices(
        listener=SimulatedListenerService(rng, latency_seconds),
        evaluator=SimulatedEvaluatorService(rng, latency_seconds),
        executor=SimulatedExecutorService(rng, latency_seconds),
        collector=SimulatedCollectorService(rng, latency_seconds),
    )
