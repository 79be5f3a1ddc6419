"""
Patching a host object whose schema drifts between versions.

Two host versions disagree on member names (`Power` vs `power`) and on the
element enum type. One patch plan covers both: aliases pick whichever member
exists, ordinals bridge the enums, and a finalizer reasserts `power` while
the host's own initialization keeps resetting it.
"""

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum

from driftpatch import (
    Finalizer,
    FixedIntervalScheduler,
    PatchOrchestrator,
    PatchRegistry,
    PatchRule,
)

logger = logging.getLogger(__name__)


class Element(IntEnum):
    Sand = 1
    Steel = 2


class LegacyElement(Enum):
    SAND = 1
    STEEL = 2


@dataclass
class SatelliteV1:
    Power: bool = False
    Element: LegacyElement = LegacyElement.SAND


@dataclass
class SatelliteV2:
    power: bool = False
    element_id: Element = Element.Sand


SATELLITE_RULES = [
    PatchRule.assign("Element", "element_id", value=Element.Steel),
    PatchRule.assign("Overheatable", value=False),  # absent in both versions; skipped
]
CRITICAL_RULES = [PatchRule.assign("Power", "power", value=True)]


def main():
    logging.basicConfig(level=logging.DEBUG)

    scheduler = FixedIntervalScheduler(interval=1.0)
    orchestrator = PatchOrchestrator()
    registry = PatchRegistry(orchestrator, Finalizer(orchestrator, scheduler))
    registry.register("Satellite", SATELLITE_RULES, critical=CRITICAL_RULES, attempts=2)

    for satellite in (SatelliteV1(), SatelliteV2()):
        report = registry.on_constructed(satellite, "Satellite")
        logger.info(f"{type(satellite).__name__}: applied={report.applied_count}, skipped={report.skipped_count}")

        # Host initialization resets power after our first application
        if isinstance(satellite, SatelliteV1):
            satellite.Power = False
        else:
            satellite.power = False

    scheduler.advance(2.0)
    logger.info(f"Finalizers still armed: {len(scheduler)}")


if __name__ == "__main__":
    main()
