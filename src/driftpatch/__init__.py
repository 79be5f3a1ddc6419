"""
Runtime patching for objects whose shape drifts across host versions.

This package locates members by ordered candidate names, coerces values
across enum/integer representation changes, applies batches of best-effort
writes, and reasserts critical writes for a few scheduler ticks after a
target is constructed.

Key Features:
- Alias-based member resolution (fields, properties, setter methods)
- Narrow enum/int coercion that never raises
- Continue-on-error batch application with explicit per-rule outcomes
- Content-keyed artifact cache owned by the caller
- Bounded-retry finalizer driven by the host's tick scheduler

Quick Start:
    >>> from driftpatch import (
    ...     PatchRule, PatchBatch, PatchOrchestrator,
    ...     Finalizer, FixedIntervalScheduler,
    ... )
    >>>
    >>> orchestrator = PatchOrchestrator()
    >>> batch = PatchBatch.of(
    ...     "power",
    ...     PatchRule.assign("Power", "power", "RequiresPower", value=True),
    ... )
    >>> report = orchestrator.apply_batch(building, batch)
    >>> report.applied_count
    1
    >>>
    >>> # Reassert on the next two ticks
    >>> scheduler = FixedIntervalScheduler()
    >>> Finalizer(orchestrator, scheduler).arm(building, batch, attempts=2)

Modules:
    - member_resolver: Alias-based member lookup
    - coercion: enum/int representation bridging
    - rules: PatchRule and PatchBatch declarations
    - orchestrator: Batch application and reports
    - cache: Content-keyed artifact cache
    - scheduler: Tick scheduler interface and in-process implementation
    - finalizer: Bounded reassertion after construction
    - hooks: Patch plans keyed by content key
    - errors: Recorded failure taxonomy
    - config: Process-wide defaults
"""

# Resolver
from driftpatch.member_resolver import (
    MemberHandle,
    MemberKind,
    MemberProvider,
    MemberResolver,
    SchemaTable,
    aliases_before,
    field_declarations,
)

# Coercion
from driftpatch.coercion import INCOMPATIBLE, coerce, enum_ordinal, is_assignable

# Rules
from driftpatch.rules import PatchBatch, PatchRule, RuleKind, as_batch

# Orchestrator
from driftpatch.orchestrator import BatchReport, PatchOrchestrator, PatchOutcome, RuleResult

# Cache
from driftpatch.cache import ArtifactCache, CacheKey, CacheStats

# Scheduling
from driftpatch.scheduler import FixedIntervalScheduler, Registration, TickScheduler

# Finalizer
from driftpatch.finalizer import Finalizer, FinalizerState, FinalizerTask

# Hooks
from driftpatch.hooks import PatchPlan, PatchRegistry

# Errors
from driftpatch.errors import (
    InvocationFailure,
    MemberNotFound,
    PatchError,
    SchedulerDeregistrationFailure,
    TypeIncompatible,
)

# Configuration
from driftpatch.config import DriftPatchConfig, config_override, get_config, reset_config, set_config

__all__ = [
    # Resolver
    'MemberHandle',
    'MemberKind',
    'MemberProvider',
    'MemberResolver',
    'SchemaTable',
    'aliases_before',
    'field_declarations',
    # Coercion
    'INCOMPATIBLE',
    'coerce',
    'enum_ordinal',
    'is_assignable',
    # Rules
    'PatchBatch',
    'PatchRule',
    'RuleKind',
    'as_batch',
    # Orchestrator
    'BatchReport',
    'PatchOrchestrator',
    'PatchOutcome',
    'RuleResult',
    # Cache
    'ArtifactCache',
    'CacheKey',
    'CacheStats',
    # Scheduling
    'FixedIntervalScheduler',
    'Registration',
    'TickScheduler',
    # Finalizer
    'Finalizer',
    'FinalizerState',
    'FinalizerTask',
    # Hooks
    'PatchPlan',
    'PatchRegistry',
    # Errors
    'InvocationFailure',
    'MemberNotFound',
    'PatchError',
    'SchedulerDeregistrationFailure',
    'TypeIncompatible',
    # Configuration
    'DriftPatchConfig',
    'config_override',
    'get_config',
    'reset_config',
    'set_config',
]

__version__ = '1.0.0'
__description__ = 'Alias-based runtime patching for drifting object schemas'
