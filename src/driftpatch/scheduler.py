"""
Tick scheduling seam.

The host owns the update loop; this package only needs fixed-interval tick
notifications. TickScheduler is the interface consumed by the finalizer.
FixedIntervalScheduler is an in-process implementation for hosts that hand
out elapsed time instead of ticks, and for tests.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from driftpatch.config import get_config

logger = logging.getLogger(__name__)

TickCallback = Callable[[float], None]


class TickScheduler(Protocol):
    """Host facility delivering fixed-interval ticks to registered callbacks."""

    def register(self, callback: TickCallback) -> Any:
        """Register callback; returns an opaque registration."""
        ...

    def deregister(self, registration: Any) -> None:
        """Stop delivering ticks to a registration."""
        ...


@dataclass(frozen=True)
class Registration:
    id: int
    callback: TickCallback


class FixedIntervalScheduler:
    """
    Delivers a tick every `interval` seconds of advanced time.

    Callbacks run in registration order. A callback registered during a tick
    first runs on the next tick; one deregistered during a tick is not called
    for the rest of it. A callback that raises is logged and does not stop the
    tick.
    """

    def __init__(self, interval: Optional[float] = None):
        self._interval = interval if interval is not None else get_config().tick_interval
        if self._interval <= 0:
            raise ValueError(f"Tick interval must be positive, got {self._interval}")
        self._registrations: Dict[int, Registration] = {}
        self._next_id = 0
        self._elapsed = 0.0
        self._tick_count = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def register(self, callback: TickCallback) -> Registration:
        registration = Registration(id=self._next_id, callback=callback)
        self._next_id += 1
        self._registrations[registration.id] = registration
        logger.debug(f"Registered tick callback #{registration.id}")
        return registration

    def deregister(self, registration: Registration) -> None:
        if registration.id not in self._registrations:
            raise KeyError(f"Tick registration #{registration.id} is not registered")
        del self._registrations[registration.id]
        logger.debug(f"Deregistered tick callback #{registration.id}")

    def is_registered(self, registration: Registration) -> bool:
        return registration.id in self._registrations

    def advance(self, dt: float) -> int:
        """Add elapsed time and fire every tick that became due.

        Returns:
            Number of ticks fired
        """
        self._elapsed += dt
        fired = 0
        while self._elapsed >= self._interval:
            self._elapsed -= self._interval
            self.tick()
            fired += 1
        return fired

    def tick(self, dt: Optional[float] = None) -> None:
        """Fire one tick immediately."""
        self._tick_count += 1
        dt = self._interval if dt is None else dt
        for registration in list(self._registrations.values()):
            if registration.id not in self._registrations:
                continue
            try:
                registration.callback(dt)
            except Exception as e:
                logger.warning(f"Error in tick callback #{registration.id}: {e}")

    def __len__(self) -> int:
        return len(self._registrations)
