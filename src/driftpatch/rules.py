"""
Declarative patch rules.

A PatchRule names a member by an ordered alias list and says what it should
hold: a literal value, or a factory computing the value from the target.
Alias order is precedence; the first alias that resolves is the only one used.

A PatchBatch is an ordered, labelled sequence of rules applied to one target.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Optional, Tuple, Union


class RuleKind(Enum):
    """What the aliases of a rule name."""
    MEMBER = "member"  # field or property, assigned
    METHOD = "method"  # one-argument setter method, called


@dataclass(frozen=True)
class PatchRule:
    """One best-effort write: first resolvable alias receives the value.

    type_hint is used as the coercion target only when the resolved member
    carries no declared type of its own.
    """
    aliases: Tuple[str, ...]
    value: Any = None
    factory: Optional[Callable[[Any], Any]] = None
    type_hint: Any = None
    kind: RuleKind = RuleKind.MEMBER
    label: Optional[str] = None

    def __post_init__(self):
        aliases = (self.aliases,) if isinstance(self.aliases, str) else tuple(self.aliases)
        if not aliases or not all(isinstance(name, str) and name for name in aliases):
            raise ValueError(f"PatchRule needs at least one non-empty alias, got {self.aliases!r}")
        if self.factory is not None and self.value is not None:
            raise TypeError("PatchRule takes either a value or a factory, not both")
        object.__setattr__(self, 'aliases', aliases)

    @classmethod
    def assign(cls, *aliases: str, value: Any, type_hint: Any = None, label: Optional[str] = None) -> 'PatchRule':
        """Rule assigning a literal value to the first resolvable alias."""
        return cls(aliases=aliases, value=value, type_hint=type_hint, label=label)

    @classmethod
    def compute(
        cls,
        *aliases: str,
        factory: Callable[[Any], Any],
        type_hint: Any = None,
        label: Optional[str] = None
    ) -> 'PatchRule':
        """Rule assigning factory(target), evaluated at apply time."""
        return cls(aliases=aliases, factory=factory, type_hint=type_hint, label=label)

    @classmethod
    def call(cls, *method_names: str, value: Any, type_hint: Any = None, label: Optional[str] = None) -> 'PatchRule':
        """Rule calling the first resolvable one-argument method with value."""
        return cls(aliases=method_names, value=value, type_hint=type_hint, kind=RuleKind.METHOD, label=label)

    @property
    def name(self) -> str:
        return self.label or self.aliases[0]

    def desired_value(self, target: Any) -> Any:
        """Produce the value to write; may raise if the factory does."""
        if self.factory is not None:
            return self.factory(target)
        return self.value


@dataclass(frozen=True)
class PatchBatch:
    """Ordered rules for one target. A failing rule never blocks later ones."""
    label: str
    rules: Tuple[PatchRule, ...] = ()

    def __post_init__(self):
        rules = tuple(self.rules)
        for rule in rules:
            if not isinstance(rule, PatchRule):
                raise TypeError(f"PatchBatch '{self.label}' got {type(rule).__name__}, expected PatchRule")
        object.__setattr__(self, 'rules', rules)

    @classmethod
    def of(cls, label: str, *rules: PatchRule) -> 'PatchBatch':
        return cls(label=label, rules=rules)

    def extended(self, *rules: PatchRule) -> 'PatchBatch':
        """Return a new batch with rules appended."""
        return PatchBatch(label=self.label, rules=self.rules + tuple(rules))

    def __iter__(self) -> Iterator[PatchRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


RuleSource = Union[PatchBatch, Iterable[PatchRule]]


def as_batch(rules: RuleSource, label: str = "batch") -> PatchBatch:
    """Normalize a PatchBatch or any iterable of rules to a PatchBatch."""
    if isinstance(rules, PatchBatch):
        return rules
    return PatchBatch(label=label, rules=tuple(rules))
