"""Tests for batch application."""
import dataclasses
import logging
from dataclasses import dataclass

import pytest

from driftpatch import (
    ArtifactCache,
    InvocationFailure,
    MemberNotFound,
    MemberResolver,
    PatchBatch,
    PatchOrchestrator,
    PatchOutcome,
    PatchRule,
    SchemaTable,
    TypeIncompatible,
    config_override,
)
from hosts import Element, LegacyElement, PoweredBuilding, PrimaryElement
from hosts import ObjectLayer as Layer


@dataclass
class BuildingDef:
    ObjectLayer: Layer = Layer.Building
    SceneLayer: int = 0
    Overheatable: bool = True
    BaseMeltingPoint: float = 1600.0
    AnimFiles: list = dataclasses.field(default_factory=list)


class Emitter:
    """Property setter that rejects negative values."""

    def __init__(self):
        self._rads = 0.0

    @property
    def emit_rads(self) -> float:
        return self._rads

    @emit_rads.setter
    def emit_rads(self, value: float) -> None:
        if value < 0:
            raise ValueError("negative emission")
        self._rads = value


class Smelter:
    def __init__(self):
        self.element = None

    def set_element(self, element: Element) -> None:
        self.element = element


class CountingResolver(MemberResolver):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def resolve(self, obj_type, alias_names):
        self.calls += 1
        return super().resolve(obj_type, alias_names)


class FlakyResolver(MemberResolver):
    """Raises on its first lookup only."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def resolve(self, obj_type, alias_names):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("type not loaded")
        return super().resolve(obj_type, alias_names)


def test_power_alias_scenario(orchestrator):
    building = PoweredBuilding(power=False)
    rules = [PatchRule.assign("Power", "power", "RequiresPower", value=True)]

    report = orchestrator.apply_batch(building, rules)

    assert building.power is True
    assert report.applied_count == 1
    assert report.skipped_count == 0
    assert report.results[0].member.name == "power"


def test_invalid_rule_between_valid_rules(orchestrator):
    definition = BuildingDef()
    batch = PatchBatch.of(
        "satellite",
        PatchRule.assign("Overheatable", "overheatable", value=False),
        PatchRule.assign("RequiredDlcIds", "requiredDlcIds", value=["EXPANSION1_ID"]),
        PatchRule.assign("BaseMeltingPoint", value=9999.0),
    )

    report = orchestrator.apply_batch(definition, batch)

    assert definition.Overheatable is False
    assert definition.BaseMeltingPoint == 9999.0
    assert [r.outcome for r in report.results] == [
        PatchOutcome.APPLIED,
        PatchOutcome.MEMBER_NOT_FOUND,
        PatchOutcome.APPLIED,
    ]
    assert isinstance(report.results[1].error, MemberNotFound)
    assert report.applied_count == 2
    assert report.skipped_count == 1


def test_every_failure_kind_is_contained(orchestrator):
    emitter = Emitter()

    def broken_factory(target):
        raise KeyError("tuning table missing")

    report = orchestrator.apply_batch(emitter, [
        PatchRule.assign("emit_rads", value=-1.0),
        PatchRule.assign("emit_rads", value="lots"),
        PatchRule.compute("emit_rads", factory=broken_factory),
        PatchRule.assign("EmitRads", "emit_rads", value=12.5),
    ])

    assert [r.outcome for r in report.results] == [
        PatchOutcome.INVOCATION_FAILURE,
        PatchOutcome.TYPE_INCOMPATIBLE,
        PatchOutcome.INVOCATION_FAILURE,
        PatchOutcome.APPLIED,
    ]
    assert isinstance(report.results[0].error, InvocationFailure)
    assert isinstance(report.results[0].error.cause, ValueError)
    assert isinstance(report.results[1].error, TypeIncompatible)
    assert emitter.emit_rads == 12.5
    assert report.applied_count + report.skipped_count == len(report.results)


def test_apply_batch_is_idempotent(orchestrator):
    definition = BuildingDef()
    batch = PatchBatch.of(
        "layers",
        PatchRule.assign("ObjectLayer", value=Layer.Backwall),
        PatchRule.assign("SceneLayer", value=Layer.Gantry),
        PatchRule.assign("Missing", value=1),
        PatchRule.assign("AnimFiles", value=["satellite_kanim"]),
    )

    orchestrator.apply_batch(definition, batch)
    once = dataclasses.asdict(definition)
    orchestrator.apply_batch(definition, batch)

    assert dataclasses.asdict(definition) == once
    assert definition.ObjectLayer is Layer.Backwall
    assert definition.SceneLayer == 3


def test_enum_drift_is_bridged(orchestrator):
    element = PrimaryElement()

    report = orchestrator.apply_batch(element, [PatchRule.assign("ElementID", "element_id", value=LegacyElement.UNOBTANIUM)])

    assert report.applied_count == 1
    assert element.element_id is Element.Unobtanium


def test_type_hint_applies_to_untyped_members(orchestrator):
    class Plain:
        def __init__(self):
            self.layer = 0

    plain = Plain()
    report = orchestrator.apply_batch(plain, [PatchRule.assign("layer", value=Layer.Gantry, type_hint=int)])

    assert report.applied_count == 1
    assert plain.layer == 3
    assert type(plain.layer) is int


def test_method_rule_calls_setter(orchestrator):
    smelter = Smelter()

    report = orchestrator.apply_batch(smelter, [PatchRule.call("SetElement", "set_element", value=7)])

    assert report.applied_count == 1
    assert smelter.element is Element.Unobtanium


def test_none_target_skips_every_rule(orchestrator):
    report = orchestrator.apply_batch(None, [PatchRule.assign("power", value=True)] * 3)

    assert report.target_type is None
    assert report.applied_count == 0
    assert report.skipped_count == 3
    assert all(r.outcome is PatchOutcome.MEMBER_NOT_FOUND for r in report.results)


def test_resolution_is_cached_per_type_and_aliases():
    resolver = CountingResolver()
    cache = ArtifactCache()
    orchestrator = PatchOrchestrator(cache=cache, resolver=resolver)
    rules = [PatchRule.assign("Power", "power", value=True)]

    reports = orchestrator.apply_many([PoweredBuilding() for _ in range(5)], rules)

    assert [r.applied_count for r in reports] == [1] * 5
    assert resolver.calls == 1
    assert len(cache) == 1


class MixedPower:
    """Declares RequiresPower, but assigns power only in __init__."""
    RequiresPower: bool = False

    def __init__(self):
        self.power = False


class DeclaredPower:
    power: bool = False

    def __init__(self):
        self.RequiresPower = False


def test_instance_attribute_beats_later_declared_alias(orchestrator):
    mixed = MixedPower()
    rules = [PatchRule.assign("Power", "power", "RequiresPower", value=True)]

    report = orchestrator.apply_batch(mixed, rules)
    again = orchestrator.apply_batch(MixedPower(), rules)

    assert report.results[0].member.name == "power"
    assert mixed.power is True
    assert mixed.RequiresPower is False
    assert again.results[0].member.name == "power"


def test_declared_alias_beats_later_instance_attribute(orchestrator):
    declared = DeclaredPower()

    report = orchestrator.apply_batch(declared, [PatchRule.assign("power", "RequiresPower", value=True)])

    assert report.results[0].member.name == "power"
    assert declared.power is True
    assert declared.RequiresPower is False


def test_shared_cache_keeps_resolvers_apart():
    cache = ArtifactCache()
    legacy_schemas = SchemaTable()
    legacy_schemas.register(PoweredBuilding, {"power_on": bool})
    modern_schemas = SchemaTable()
    modern_schemas.register(PoweredBuilding, {"power": bool})
    legacy = PatchOrchestrator(cache=cache, resolver=MemberResolver(legacy_schemas))
    modern = PatchOrchestrator(cache=cache, resolver=MemberResolver(modern_schemas))
    rules = [PatchRule.assign("power_on", "power", value=True)]

    modern_report = modern.apply_batch(PoweredBuilding(), rules)
    legacy_report = legacy.apply_batch(PoweredBuilding(), rules)

    assert modern_report.results[0].member.name == "power"
    assert legacy_report.results[0].member.name == "power_on"
    assert len(cache) == 2


def test_resolution_error_is_not_cached():
    resolver = FlakyResolver()
    orchestrator = PatchOrchestrator(resolver=resolver)
    rules = [PatchRule.assign("power", value=True)]

    first = orchestrator.apply_batch(PoweredBuilding(), rules)
    second = orchestrator.apply_batch(PoweredBuilding(), rules)

    assert first.results[0].outcome is PatchOutcome.MEMBER_NOT_FOUND
    assert isinstance(first.results[0].error.__cause__, RuntimeError)
    assert second.applied_count == 1
    assert resolver.calls == 2


def test_report_listeners(orchestrator):
    received = []

    def failing_listener(report):
        raise RuntimeError("telemetry offline")

    orchestrator.add_report_listener(failing_listener)
    orchestrator.add_report_listener(received.append)
    orchestrator.add_report_listener(received.append)

    report = orchestrator.apply_batch(PoweredBuilding(), [PatchRule.assign("Missing", value=1)])

    assert received == [report]
    assert report.skipped_count == 1

    orchestrator.remove_report_listener(received.append)
    orchestrator.apply_batch(PoweredBuilding(), [])
    assert received == [report]


def test_skips_are_logged_at_configured_level(orchestrator, caplog):
    with config_override(skip_log_level=logging.WARNING):
        with caplog.at_level(logging.WARNING, logger="driftpatch.orchestrator"):
            orchestrator.apply_batch(PoweredBuilding(), [PatchRule.assign("Missing", label="missing rule", value=1)])

    assert "missing rule" in caplog.text


def test_copy_members_bridges_enum_drift(orchestrator):
    @dataclass
    class VanillaDef:
        ObjectLayer: LegacyElement = LegacyElement.GRANITE
        SceneLayer: Layer = Layer.Gantry
        Overheatable: object = None

    buildable = BuildingDef()
    report = orchestrator.copy_members(buildable, VanillaDef(), ["ObjectLayer", "SceneLayer", "Overheatable", "TileLayer"])

    assert buildable.ObjectLayer is Layer.Backwall
    assert buildable.SceneLayer == 3
    assert buildable.Overheatable is True
    assert report.outcome_of("ObjectLayer") is PatchOutcome.APPLIED
    assert report.outcome_of("Overheatable") is PatchOutcome.SOURCE_EMPTY
    assert report.outcome_of("TileLayer") is PatchOutcome.MEMBER_NOT_FOUND
    assert report.applied_count == 2


def test_rule_validation():
    with pytest.raises(ValueError):
        PatchRule(aliases=())
    with pytest.raises(TypeError):
        PatchRule(aliases=("power",), value=True, factory=lambda target: True)
    assert PatchRule(aliases="power", value=True).aliases == ("power",)
    with pytest.raises(TypeError):
        PatchBatch.of("bad", "power")
