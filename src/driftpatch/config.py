"""
Process-wide defaults for drift patching.

Holds a single frozen DriftPatchConfig. Callers replace it wholesale with
set_config() or temporarily with config_override(); components read it at
call time, so a change takes effect on the next batch or arm().
"""

import dataclasses
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator


@dataclass(frozen=True)
class DriftPatchConfig:
    """Defaults consumed by the orchestrator, finalizer and scheduler."""
    finalizer_attempts: int = 2  # scheduled reapplications after the immediate one
    tick_interval: float = 1.0  # seconds between FixedIntervalScheduler ticks
    skip_log_level: int = logging.DEBUG  # level used when a rule is skipped


_DEFAULT_CONFIG = DriftPatchConfig()
_current_config: DriftPatchConfig = _DEFAULT_CONFIG


def set_config(config: DriftPatchConfig) -> None:
    """Replace the active configuration.

    Args:
        config: The new configuration instance
    """
    global _current_config
    if not isinstance(config, DriftPatchConfig):
        raise TypeError(f"Expected DriftPatchConfig, got {type(config).__name__}")
    _current_config = config


def get_config() -> DriftPatchConfig:
    """Get the active configuration."""
    return _current_config


def reset_config() -> None:
    """Restore the built-in defaults."""
    global _current_config
    _current_config = _DEFAULT_CONFIG


@contextmanager
def config_override(**changes) -> Generator[DriftPatchConfig, None, None]:
    """Temporarily replace selected configuration fields.

    Example:
        with config_override(finalizer_attempts=5):
            finalizer.arm(target, critical)
    """
    previous = _current_config
    set_config(dataclasses.replace(previous, **changes))
    try:
        yield _current_config
    finally:
        set_config(previous)
