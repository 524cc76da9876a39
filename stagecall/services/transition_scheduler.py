"""TransitionScheduler: runs the automatic transition sweep on a fixed interval.

Runs as an asyncio.Task inside the API process, not a separate worker.
The first sweep happens immediately on start, then every interval. A failing
sweep is logged and counted; the loop keeps polling.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog

from stagecall.services.automatic_transition_evaluator import AutomaticTransitionEvaluator, TransitionSweepResult

logger = structlog.get_logger(__name__)


@dataclass
class SchedulerStatus:
    is_running: bool = False
    interval_minutes: int = 15
    last_run: datetime | None = None
    next_run: datetime | None = None
    last_result: TransitionSweepResult | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    total_runs: int = 0


class TransitionScheduler:
    """Periodic driver for AutomaticTransitionEvaluator.evaluate_all_projects.

    Usage:
        scheduler = TransitionScheduler(evaluator, interval_minutes=15)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(self, evaluator: AutomaticTransitionEvaluator, interval_minutes: int = 15) -> None:
        if interval_minutes < 1:
            raise ValueError("interval_minutes must be at least 1")
        self.evaluator = evaluator
        self.interval_minutes = interval_minutes
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._status = SchedulerStatus(interval_minutes=interval_minutes)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the polling loop on the running event loop. No-op if already running."""
        if self.is_running:
            logger.warning("transition_scheduler_already_running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="transition-scheduler")
        self._status.is_running = True
        logger.info("transition_scheduler_started", interval_minutes=self.interval_minutes)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._status.is_running = False
        self._status.next_run = None
        logger.info("transition_scheduler_stopped", total_runs=self._status.total_runs)

    async def run_once(self, now: datetime | None = None) -> TransitionSweepResult | None:
        """Run a single sweep and record its outcome. Returns None if the sweep failed.

        Args:
            now: Injectable current time for testing
        """
        if now is None:
            now = datetime.now(UTC)

        self._status.last_run = now
        self._status.total_runs += 1
        try:
            result = await self.evaluator.evaluate_all_projects(now)
        except Exception as exc:
            self._status.consecutive_failures += 1
            self._status.last_error = str(exc)
            logger.error(
                "transition_sweep_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                consecutive_failures=self._status.consecutive_failures,
            )
            return None

        self._status.last_result = result
        self._status.last_error = None
        self._status.consecutive_failures = 0
        return result

    async def _loop(self) -> None:
        interval = self.interval_minutes * 60
        while not self._stop_event.is_set():
            await self.run_once()
            self._status.next_run = datetime.now(UTC) + timedelta(seconds=interval)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except TimeoutError:
                continue

    def get_status(self) -> SchedulerStatus:
        self._status.is_running = self.is_running
        return self._status
