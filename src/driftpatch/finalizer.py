"""
Bounded reassertion of critical patches after construction.

Host initialization can keep running after a target is patched and silently
overwrite what was set. A finalizer applies a small critical batch once
immediately and then once per scheduler tick for a bounded number of ticks,
which converges without knowing the host's initialization order.

State machine (owned by the scheduler's task list):

    Armed(n) --tick: reapply, n -= 1--> Armed(n - 1)   if n - 1 > 0
                                        Done            otherwise (deregistered)

A failure to deregister is logged and recorded on the task; the task stays
Done, so any further ticks it receives do nothing.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from driftpatch.config import get_config
from driftpatch.errors import PatchError, SchedulerDeregistrationFailure
from driftpatch.orchestrator import BatchReport, PatchOrchestrator
from driftpatch.rules import PatchBatch, RuleSource, as_batch
from driftpatch.scheduler import TickScheduler

logger = logging.getLogger(__name__)


class FinalizerState(Enum):
    ARMED = "armed"
    DONE = "done"


@dataclass
class FinalizerTask:
    """Scheduled reapplication of a critical batch to one target."""
    target: Any
    critical_batch: PatchBatch
    remaining_attempts: int
    state: FinalizerState = FinalizerState.ARMED
    applications: int = 0
    registration: Any = None
    last_report: Optional[BatchReport] = None
    last_error: Optional[PatchError] = None

    @property
    def done(self) -> bool:
        return self.state is FinalizerState.DONE


class Finalizer:
    """
    Arms per-target finalizer tasks on a TickScheduler.

    At most one live task exists per target object; arming a target that
    already has one returns the existing task untouched.
    """

    def __init__(self, orchestrator: PatchOrchestrator, scheduler: TickScheduler):
        self._orchestrator = orchestrator
        self._scheduler = scheduler
        self._tasks: Dict[int, FinalizerTask] = {}  # id(target) -> live task

    def arm(self, target: Any, critical_batch: RuleSource, attempts: Optional[int] = None) -> FinalizerTask:
        """Apply critical_batch now and on the next `attempts` ticks.

        Args:
            target: Just-constructed object to defend
            critical_batch: Rules to reassert
            attempts: Scheduled reapplications (default from config). 0 applies
                once and schedules nothing.

        Returns:
            The live (or already finished) FinalizerTask
        """
        if attempts is None:
            attempts = get_config().finalizer_attempts
        if attempts < 0:
            raise ValueError(f"Finalizer attempts must be >= 0, got {attempts}")

        existing = self._tasks.get(id(target))
        if existing is not None and existing.target is target:
            logger.debug(f"Finalizer already armed for {type(target).__name__}")
            return existing

        task = FinalizerTask(
            target=target,
            critical_batch=as_batch(critical_batch, label="critical"),
            remaining_attempts=attempts,
        )
        self._apply(task)

        if attempts == 0:
            task.state = FinalizerState.DONE
            return task

        task.registration = self._scheduler.register(lambda dt: self._on_tick(task, dt))
        self._tasks[id(target)] = task
        logger.debug(f"Armed finalizer for {type(target).__name__} ({attempts} tick(s))")
        return task

    def active_tasks(self) -> List[FinalizerTask]:
        return list(self._tasks.values())

    def _on_tick(self, task: FinalizerTask, dt: float) -> None:
        if task.done:
            return
        self._apply(task)
        task.remaining_attempts -= 1
        if task.remaining_attempts <= 0:
            self._finish(task)

    def _apply(self, task: FinalizerTask) -> None:
        task.applications += 1
        try:
            task.last_report = self._orchestrator.apply_batch(task.target, task.critical_batch)
        except Exception as e:
            logger.warning(f"Finalizer application on {type(task.target).__name__} failed: {e}")

    def _finish(self, task: FinalizerTask) -> None:
        task.state = FinalizerState.DONE
        if self._tasks.get(id(task.target)) is task:
            del self._tasks[id(task.target)]
        try:
            self._scheduler.deregister(task.registration)
        except Exception as e:
            task.last_error = SchedulerDeregistrationFailure(task.registration, e)
            logger.warning(f"Could not deregister finalizer for {type(task.target).__name__}: {e}")
            return
        logger.debug(f"Finalizer for {type(task.target).__name__} done after {task.applications} application(s)")
