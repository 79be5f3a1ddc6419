"""
Best-effort application of patch batches to live targets.

For each rule, in order:
    1. resolve the aliases on the target's concrete type (cached per type)
    2. produce the desired value
    3. coerce it to the member's declared type
    4. invoke the setter

A failure at any step is recorded in the BatchReport as an explicit outcome
and the next rule runs. Nothing is raised to the caller and no rule is
retried within one call; a skipped member keeps its prior value.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from driftpatch.cache import ArtifactCache, CacheKey
from driftpatch.coercion import INCOMPATIBLE, coerce
from driftpatch.config import get_config
from driftpatch.errors import InvocationFailure, MemberNotFound, PatchError, TypeIncompatible
from driftpatch.member_resolver import MemberHandle, MemberResolver, aliases_before
from driftpatch.rules import PatchRule, RuleKind, RuleSource, as_batch

logger = logging.getLogger(__name__)


class PatchOutcome(Enum):
    """Result of one rule."""
    APPLIED = "applied"
    MEMBER_NOT_FOUND = "member_not_found"
    TYPE_INCOMPATIBLE = "type_incompatible"
    INVOCATION_FAILURE = "invocation_failure"
    SOURCE_EMPTY = "source_empty"  # copy_members only: source value was None


@dataclass(frozen=True)
class RuleResult:
    rule: PatchRule
    outcome: PatchOutcome
    member: Optional[MemberHandle] = None
    error: Optional[PatchError] = None

    @property
    def applied(self) -> bool:
        return self.outcome is PatchOutcome.APPLIED


@dataclass(frozen=True)
class BatchReport:
    """Per-rule results of one batch application, in rule order."""
    label: str
    target_type: Optional[type]
    results: Tuple[RuleResult, ...]

    @property
    def applied_count(self) -> int:
        return sum(1 for r in self.results if r.applied)

    @property
    def skipped_count(self) -> int:
        return len(self.results) - self.applied_count

    @property
    def skipped(self) -> List[RuleResult]:
        return [r for r in self.results if not r.applied]

    def outcome_of(self, name: str) -> Optional[PatchOutcome]:
        """Outcome of the first rule whose label or first alias is name."""
        for result in self.results:
            if result.rule.name == name:
                return result.outcome
        return None


CopySpec = Union[str, Sequence[str]]


class PatchOrchestrator:
    """
    Applies ordered patch rules to targets, continuing past any failure.

    Resolved handles are memoized in the supplied ArtifactCache keyed by
    (resolver, rule kind, concrete type, alias tuple). Pass the same cache to
    every orchestrator that should share lookups; orchestrators with different
    resolvers keep separate entries in it. The cache lives as long as its
    owner.

    Instance attributes are never cached: an alias found only in the target's
    __dict__ still takes precedence over any later declared alias.

    Thread safety: Not thread-safe (all operations expected on the host's
    scheduling thread).
    """

    def __init__(self, cache: Optional[ArtifactCache] = None, resolver: Optional[MemberResolver] = None):
        self._cache = cache if cache is not None else ArtifactCache()
        self._resolver = resolver if resolver is not None else MemberResolver()
        # Report listeners receive every BatchReport (observability hook)
        self._report_listeners: List[Callable[[BatchReport], None]] = []

    @property
    def cache(self) -> ArtifactCache:
        return self._cache

    @property
    def resolver(self) -> MemberResolver:
        return self._resolver

    def add_report_listener(self, callback: Callable[[BatchReport], None]) -> None:
        """Subscribe to batch reports."""
        if callback not in self._report_listeners:
            self._report_listeners.append(callback)

    def remove_report_listener(self, callback: Callable[[BatchReport], None]) -> None:
        """Unsubscribe from batch reports."""
        if callback in self._report_listeners:
            self._report_listeners.remove(callback)

    def _fire_report_listeners(self, report: BatchReport) -> None:
        for callback in self._report_listeners:
            try:
                callback(report)
            except Exception as e:
                logger.warning(f"Error in report listener: {e}")

    def apply_batch(self, target: Any, rules: RuleSource) -> BatchReport:
        """Apply rules to target in order, recording every outcome.

        Args:
            target: Live object to patch (None skips every rule)
            rules: PatchBatch or iterable of PatchRule

        Returns:
            BatchReport with one RuleResult per rule
        """
        batch = as_batch(rules)
        target_type = type(target) if target is not None else None

        results = tuple(self._apply_rule(target, rule) for rule in batch)
        report = BatchReport(label=batch.label, target_type=target_type, results=results)

        type_name = target_type.__name__ if target_type is not None else "None"
        logger.debug(
            f"Batch '{batch.label}' on {type_name}: "
            f"applied={report.applied_count}, skipped={report.skipped_count}"
        )
        self._fire_report_listeners(report)
        return report

    def apply_many(self, targets: Iterable[Any], rules: RuleSource) -> List[BatchReport]:
        """Apply the same rules to each target; one report per target."""
        batch = as_batch(rules)
        return [self.apply_batch(target, batch) for target in targets]

    def copy_members(self, dst: Any, src: Any, names: Iterable[CopySpec], label: str = "copy") -> BatchReport:
        """Copy same-named members from src to dst.

        Each entry of names is a member name or an alias sequence, resolved
        independently on both objects. A None source value is not copied.
        """
        results = []
        for entry in names:
            aliases = (entry,) if isinstance(entry, str) else tuple(entry)
            rule = PatchRule(aliases=aliases, label=aliases[0])
            results.append(self._copy_one(dst, src, rule))

        report = BatchReport(
            label=label,
            target_type=type(dst) if dst is not None else None,
            results=tuple(results),
        )
        logger.debug(f"Copy '{label}': applied={report.applied_count}, skipped={report.skipped_count}")
        self._fire_report_listeners(report)
        return report

    def resolve(self, obj_type: type, aliases: Sequence[str], kind: RuleKind = RuleKind.MEMBER) -> Optional[MemberHandle]:
        """Cached type-level resolution; may raise if the resolver does."""
        aliases = tuple(aliases)
        key = CacheKey.from_args(self._resolver, kind, obj_type, aliases)
        if kind is RuleKind.METHOD:
            return self._cache.get_or_compute(key, lambda: self._resolver.resolve_method(obj_type, aliases))
        return self._cache.get_or_compute(key, lambda: self._resolver.resolve(obj_type, aliases))

    def _resolve_on(self, target: Any, rule: PatchRule) -> Tuple[Optional[MemberHandle], Optional[PatchError]]:
        if target is None:
            return None, MemberNotFound(None, rule.aliases)
        try:
            handle = self.resolve(type(target), rule.aliases, rule.kind)
            if rule.kind is RuleKind.MEMBER:
                # Only aliases ahead of the declared match may win from __dict__
                earlier = rule.aliases if handle is None else aliases_before(type(target), rule.aliases, handle)
                instance_handle = self._resolver.resolve_instance_attribute(target, earlier)
                if instance_handle is not None:
                    handle = instance_handle
        except Exception as e:
            logger.warning(f"Resolving {list(rule.aliases)} on {type(target).__name__} raised: {e}")
            error = MemberNotFound(type(target), rule.aliases)
            error.__cause__ = e
            return None, error
        if handle is None:
            return None, MemberNotFound(type(target), rule.aliases)
        return handle, None

    def _apply_rule(self, target: Any, rule: PatchRule) -> RuleResult:
        handle, error = self._resolve_on(target, rule)
        if handle is None:
            return self._skip(rule, PatchOutcome.MEMBER_NOT_FOUND, None, error)

        try:
            value = rule.desired_value(target)
        except Exception as e:
            return self._skip(rule, PatchOutcome.INVOCATION_FAILURE, handle, InvocationFailure(handle.name, e))

        return self._write(target, rule, handle, value)

    def _copy_one(self, dst: Any, src: Any, rule: PatchRule) -> RuleResult:
        source_handle, error = self._resolve_on(src, rule)
        if source_handle is None:
            return self._skip(rule, PatchOutcome.MEMBER_NOT_FOUND, None, error)
        if not source_handle.readable:
            return self._skip(rule, PatchOutcome.MEMBER_NOT_FOUND, None, MemberNotFound(type(src), rule.aliases))

        try:
            value = source_handle.get(src)
        except Exception as e:
            return self._skip(rule, PatchOutcome.INVOCATION_FAILURE, source_handle, InvocationFailure(source_handle.name, e))
        if value is None:
            return self._skip(rule, PatchOutcome.SOURCE_EMPTY, source_handle, None)

        handle, error = self._resolve_on(dst, rule)
        if handle is None:
            return self._skip(rule, PatchOutcome.MEMBER_NOT_FOUND, None, error)
        return self._write(dst, rule, handle, value)

    def _write(self, target: Any, rule: PatchRule, handle: MemberHandle, value: Any) -> RuleResult:
        declared = handle.declared_type if handle.declared_type is not None else rule.type_hint
        coerced = coerce(value, declared)
        if coerced is INCOMPATIBLE:
            return self._skip(rule, PatchOutcome.TYPE_INCOMPATIBLE, handle, TypeIncompatible(handle.name, value, declared))

        try:
            handle.set(target, coerced)
        except Exception as e:
            return self._skip(rule, PatchOutcome.INVOCATION_FAILURE, handle, InvocationFailure(handle.name, e))

        logger.debug(f"Set {type(target).__name__}.{handle.name} = {coerced!r}")
        return RuleResult(rule=rule, outcome=PatchOutcome.APPLIED, member=handle)

    def _skip(
        self,
        rule: PatchRule,
        outcome: PatchOutcome,
        handle: Optional[MemberHandle],
        error: Optional[PatchError]
    ) -> RuleResult:
        reason = error if error is not None else outcome.value
        logger.log(get_config().skip_log_level, f"Skipped rule '{rule.name}': {reason}")
        return RuleResult(rule=rule, outcome=outcome, member=handle, error=error)
