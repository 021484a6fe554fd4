"""
Run queue: serializes workflow runs through a single worker task.

Run requests go into an asyncio.Queue. One consumer task takes them
out in submission order and drives each to a terminal state before
taking the next. Only the worker mutates a run once it is dequeued.

There is no cancellation, timeout or priority: a long run delays every
run queued behind it.
"""

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Optional

from sigflow.domain.workflow.engine import ExecutionEngine
from sigflow.domain.workflow.entities import RunState, Workflow, WorkflowRun, utc_now
from sigflow.domain.workflow.errors import WorkflowDomainError
from sigflow.domain.workflow.ports import WorkflowRunRepository

logger = logging.getLogger(__name__)

TERMINAL_STATES = (RunState.SUCCESS, RunState.FAILED)


@dataclass(frozen=True)
class RunJob:
    """A queued run together with the workflow snapshot it executes."""

    run: WorkflowRun
    workflow: Workflow


@dataclass(frozen=True)
class RunOutcome:
    run_id: str
    workflow_id: str
    state: RunState


class RunQueue:
    """FIFO channel feeding a single execution worker.

    Usage:
        queue = RunQueue(engine, run_repository)
        queue.start()          # inside a running event loop
        queue.enqueue(job)
        await queue.join()     # wait until drained
        await queue.stop()
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        run_repository: WorkflowRunRepository,
        max_history: int = 200,
    ) -> None:
        self._engine = engine
        self._runs = run_repository
        self._queue: asyncio.Queue[RunJob] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[str] = None
        self._history: list[RunOutcome] = []
        self._max_history = max_history

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def is_processing(self) -> bool:
        return self._current is not None

    @property
    def current_run_id(self) -> Optional[str]:
        return self._current

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def history(self) -> list[RunOutcome]:
        return list(self._history)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker task. Must be called from a running event loop."""
        if self.is_running:
            logger.warning("Run queue worker already running.")
            return
        self._worker = asyncio.create_task(self._consume(), name="run-queue-worker")
        logger.info("Run queue worker started.")

    async def stop(self) -> None:
        """Cancel the worker. Runs still queued stay in the queued state."""
        if self._worker is None:
            return
        self._worker.cancel()
        with suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        if self.pending:
            logger.warning("Run queue stopped with %d run(s) pending.", self.pending)
        logger.info("Run queue worker stopped.")

    def enqueue(self, job: RunJob) -> None:
        """Append a run to the queue. Must be called from the event loop thread."""
        self._queue.put_nowait(job)
        logger.info(
            "Queued run %s for workflow %s (%d pending).",
            job.run.id, job.workflow.id, self.pending,
        )

    async def join(self) -> None:
        """Wait until every queued run has reached a terminal state."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _consume(self) -> None:
        while True:
            job = await self._queue.get()
            self._current = job.run.id
            try:
                await self._process(job)
            except Exception:
                logger.exception("Run queue worker failed on run %s.", job.run.id)
            finally:
                self._current = None
                self._queue.task_done()

    async def _process(self, job: RunJob) -> None:
        try:
            run = await self._engine.execute(job.workflow, job.run)
        except Exception:
            logger.exception("Run %s aborted.", job.run.id)
            await self._mark_failed(job.run)
            return
        self._record(RunOutcome(run.id, run.workflow_id, run.state))

    async def _mark_failed(self, run: WorkflowRun) -> None:
        # A run the engine already finished keeps its state even when
        # storing that state failed.
        if run.state in TERMINAL_STATES:
            logger.error(
                "Run %s finished as %s but its final state was not stored.",
                run.id, run.state.value,
            )
            self._record(RunOutcome(run.id, run.workflow_id, run.state))
            return

        run.state = RunState.FAILED
        run.end_time = utc_now()
        try:
            await asyncio.to_thread(
                self._runs.update_run_state,
                run.id,
                RunState.FAILED,
                end_time=run.end_time,
            )
        except WorkflowDomainError as exc:
            logger.error("Could not mark run %s as failed: %s", run.id, exc.message)
        self._record(RunOutcome(run.id, run.workflow_id, RunState.FAILED))

    def _record(self, outcome: RunOutcome) -> None:
        self._history.append(outcome)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]
