"""
Construction hooks: patch plans keyed by content key.

The host calls on_constructed() when a target finishes spawning and
on_completed() when a later stage (e.g. construction completing) may have
rewritten its members. Which targets get which rules is decided by the
caller's configuration layer through register().
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional

from driftpatch.finalizer import Finalizer
from driftpatch.orchestrator import BatchReport, PatchOrchestrator
from driftpatch.rules import PatchBatch, RuleSource, as_batch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatchPlan:
    """Everything applied to targets of one content key."""
    key: Hashable
    batch: PatchBatch
    critical: Optional[PatchBatch] = None
    attempts: Optional[int] = None  # None: finalizer default from config


class PatchRegistry:
    """Maps content keys to patch plans and applies them on host events."""

    def __init__(self, orchestrator: PatchOrchestrator, finalizer: Finalizer):
        self._orchestrator = orchestrator
        self._finalizer = finalizer
        self._plans: Dict[Hashable, PatchPlan] = {}

    def register(
        self,
        key: Hashable,
        batch: RuleSource,
        critical: Optional[RuleSource] = None,
        attempts: Optional[int] = None
    ) -> PatchPlan:
        """Register the plan for targets identified by key.

        Args:
            key: Content key the host reports for matching targets
            batch: Rules applied once on construction
            critical: Rules reasserted by a finalizer and on completion
            attempts: Finalizer tick count for this plan

        Returns:
            The registered PatchPlan
        """
        if key in self._plans:
            logger.warning(f"Overwriting patch plan for key: {key!r}")
        plan = PatchPlan(
            key=key,
            batch=as_batch(batch, label=str(key)),
            critical=as_batch(critical, label=f"{key}:critical") if critical is not None else None,
            attempts=attempts,
        )
        self._plans[key] = plan
        logger.debug(f"Registered patch plan: key={key!r}, rules={len(plan.batch)}")
        return plan

    def unregister(self, key: Hashable) -> None:
        if self._plans.pop(key, None) is not None:
            logger.debug(f"Unregistered patch plan: key={key!r}")

    def is_registered(self, key: Hashable) -> bool:
        return key in self._plans

    def plan_for(self, key: Hashable) -> Optional[PatchPlan]:
        return self._plans.get(key)

    def on_constructed(self, target: Any, key: Hashable) -> Optional[BatchReport]:
        """Apply the plan's batch and arm a finalizer for its critical rules.

        Returns:
            Report of the main batch, or None when key has no plan
        """
        plan = self._plans.get(key)
        if plan is None or target is None:
            return None
        report = self._orchestrator.apply_batch(target, plan.batch)
        if plan.critical is not None and len(plan.critical):
            self._finalizer.arm(target, plan.critical, plan.attempts)
        return report

    def on_completed(self, target: Any, key: Hashable) -> Optional[BatchReport]:
        """Reassert the plan's critical rules once.

        Returns:
            Report of the critical batch, or None when there is nothing to apply
        """
        plan = self._plans.get(key)
        if plan is None or plan.critical is None or target is None:
            return None
        return self._orchestrator.apply_batch(target, plan.critical)
