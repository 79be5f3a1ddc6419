"""
Member resolution for objects whose shape drifts across host versions.

Given a concrete type and an ordered list of candidate names, finds the first
name that denotes a writable instance member and returns an immutable
MemberHandle for it. Not finding anything is a normal outcome (None): it is
how renamed or removed attributes are tolerated.

Lookup sources, in order of authority:
    1. A per-type capability: the type defines try_get_member(name)
    2. An explicit SchemaTable registered for the type (or a base type)
    3. Static introspection along the MRO

Introspection checks, per alias:
    - property-like: properties with a setter, other data descriptors
    - field-like: dataclass fields, __slots__, class annotations (not ClassVar)
    - name-mangled forms of double-underscore aliases on every class in the MRO

The resolver itself is stateless; callers cache handles per
(type, alias tuple) through ArtifactCache.
"""

import dataclasses
import inspect
import logging
import types
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

logger = logging.getLogger(__name__)

_MISSING = object()  # Distinguishes "absent" from an attribute whose value is None
_SLOT_BOOKKEEPING = ('__dict__', '__weakref__')


class MemberKind(Enum):
    """How a resolved member is read and written."""
    FIELD = "field"
    PROPERTY = "property"
    METHOD = "method"


@dataclass(frozen=True)
class MemberHandle:
    """Resolved accessor pair for one member of one concrete type.

    declared_type is None when the member carries no usable annotation.
    getter is None for setter methods, which have nothing to read back.
    """
    name: str
    kind: MemberKind
    declared_type: Any
    owner: type
    getter: Optional[Callable[[Any], Any]] = field(default=None, compare=False, repr=False)
    setter: Optional[Callable[[Any, Any], None]] = field(default=None, compare=False, repr=False)

    @property
    def readable(self) -> bool:
        return self.getter is not None

    def get(self, obj: Any) -> Any:
        if self.getter is None:
            raise AttributeError(f"{self.kind.value} '{self.name}' of {self.owner.__name__} is not readable")
        return self.getter(obj)

    def set(self, obj: Any, value: Any) -> None:
        self.setter(obj, value)


@runtime_checkable
class MemberProvider(Protocol):
    """Capability a host type can implement to answer lookups itself."""

    @classmethod
    def try_get_member(cls, name: str) -> Optional[MemberHandle]: ...


class SchemaTable:
    """Explicit member tables, registered per type instead of introspected.

    A type whose MRO contains a registered class is resolved only from the
    nearest registered table.
    """

    def __init__(self):
        self._schemas: Dict[type, Dict[str, Any]] = {}

    def register(self, obj_type: type, members: Dict[str, Any]) -> None:
        """Register member names and their declared types for obj_type.

        Args:
            obj_type: The type the table describes
            members: Mapping of member name to declared type (None for untyped)
        """
        if obj_type in self._schemas:
            logger.warning(f"Overwriting member schema for {obj_type.__name__}")
        self._schemas[obj_type] = dict(members)

    def lookup(self, obj_type: type) -> Optional[Tuple[type, Dict[str, Any]]]:
        """Return (registered class, table) for the nearest registered class in the MRO."""
        for cls in getattr(obj_type, '__mro__', (obj_type,)):
            schema = self._schemas.get(cls)
            if schema is not None:
                return cls, schema
        return None

    def __contains__(self, obj_type: type) -> bool:
        return obj_type in self._schemas


class MemberResolver:
    """Locates writable instance members by ordered candidate names."""

    def __init__(self, schemas: Optional[SchemaTable] = None):
        self._schemas = schemas

    @property
    def schemas(self) -> Optional[SchemaTable]:
        return self._schemas

    def resolve(self, obj_type: type, alias_names: Sequence[str]) -> Optional[MemberHandle]:
        """Resolve the first alias that names a writable member of obj_type.

        Later aliases are never consulted once one matches, even if they
        would also resolve.

        Args:
            obj_type: Concrete runtime type of the target
            alias_names: Candidate member names in precedence order

        Returns:
            MemberHandle for the first match, or None if no alias matches
        """
        aliases = _normalize_aliases(alias_names)

        provider = _provider_for(obj_type)
        if provider is not None:
            for name in aliases:
                handle = provider(name)
                if handle is not None:
                    logger.debug(f"Resolved {obj_type.__name__}.{name} via try_get_member")
                    return handle
            return None

        registered = self._schemas.lookup(obj_type) if self._schemas is not None else None
        if registered is not None:
            owner, schema = registered
            for name in aliases:
                if name in schema:
                    logger.debug(f"Resolved {obj_type.__name__}.{name} via schema of {owner.__name__}")
                    return _schema_handle(owner, name, schema[name])
            return None

        declarations = None
        for name in aliases:
            for candidate in _candidate_names(obj_type, name):
                handle = _property_handle(obj_type, candidate)
                if handle is None:
                    if declarations is None:
                        declarations = field_declarations(obj_type)
                    handle = _field_handle(obj_type, candidate, declarations)
                if handle is not None:
                    logger.debug(f"Resolved {obj_type.__name__}.{candidate} as {handle.kind.value} (alias '{name}')")
                    return handle

        logger.debug(f"No member of {obj_type.__name__} matches {list(aliases)}")
        return None

    def resolve_instance_attribute(self, obj: Any, alias_names: Sequence[str]) -> Optional[MemberHandle]:
        """Resolve an alias against attributes present only in obj.__dict__.

        Covers plain classes that assign attributes in __init__ without
        declaring them. The handle is untyped and specific to this instance's
        current state, so callers must not cache it per type.
        """
        instance_dict = _instance_dict(obj)
        if not instance_dict:
            return None
        obj_type = type(obj)
        for name in _normalize_aliases(alias_names):
            for candidate in _candidate_names(obj_type, name):
                if candidate in instance_dict:
                    logger.debug(f"Resolved {obj_type.__name__}.{candidate} from instance attributes")
                    return _field_accessors(obj_type, candidate, None)
        return None

    def resolve_method(self, obj_type: type, method_names: Sequence[str]) -> Optional[MemberHandle]:
        """Resolve the first name that is a one-argument instance method.

        The returned handle's setter calls the method with the value; its
        declared_type is the parameter annotation, if any.
        """
        for name in _normalize_aliases(method_names):
            for candidate in _candidate_names(obj_type, name):
                owner, attr = _static_lookup(obj_type, candidate)
                if attr is _MISSING or not inspect.isfunction(attr):
                    continue
                parameter = _single_value_parameter(attr)
                if parameter is None:
                    continue
                declared = _evaluated_hints(attr).get(parameter.name)
                logger.debug(f"Resolved {obj_type.__name__}.{candidate}() as setter method")
                return MemberHandle(
                    name=candidate,
                    kind=MemberKind.METHOD,
                    declared_type=declared,
                    owner=owner,
                    setter=_method_caller(attr),
                )
        return None


def field_declarations(obj_type: type) -> Dict[str, Any]:
    """Collect instance field names and declared types along the MRO.

    Subclass declarations override base declarations. ClassVar and InitVar
    annotations are not instance members and are excluded.

    Returns:
        Mapping of field name to evaluated type (None if untyped or unevaluable)
    """
    hints = _evaluated_hints(obj_type)
    declarations: Dict[str, Any] = {}

    for cls in reversed(getattr(obj_type, '__mro__', ())):
        if cls is object:
            continue
        try:
            annotations = inspect.get_annotations(cls)
        except Exception as e:
            logger.debug(f"Cannot read annotations of {cls.__name__}: {e}")
            annotations = {}

        for name, raw in annotations.items():
            declared = hints.get(name, raw)
            if _is_class_level(declared) or _is_class_level(raw):
                declarations.pop(name, None)
                continue
            declarations[name] = None if isinstance(declared, str) else declared

        for name in _own_slots(cls):
            declarations.setdefault(name, None)

    if dataclasses.is_dataclass(obj_type):
        for f in dataclasses.fields(obj_type):
            declarations.setdefault(f.name, None if isinstance(f.type, str) else f.type)

    return declarations


def aliases_before(obj_type: type, alias_names: Sequence[str], handle: MemberHandle) -> Tuple[str, ...]:
    """Aliases that precede the one handle was resolved from.

    Returns an empty tuple when no alias names handle.
    """
    aliases = _normalize_aliases(alias_names)
    for index, name in enumerate(aliases):
        if handle.name in _candidate_names(obj_type, name):
            return aliases[:index]
    return ()


def _normalize_aliases(alias_names: Sequence[str]) -> Tuple[str, ...]:
    if isinstance(alias_names, str):
        return (alias_names,)
    return tuple(name for name in alias_names if name)


def _candidate_names(obj_type: type, name: str) -> Iterable[str]:
    """Yield name, then its private-name-mangled forms for each class in the MRO."""
    yield name
    if not name.startswith('__') or name.endswith('__'):
        return
    for cls in getattr(obj_type, '__mro__', ()):
        if cls is object:
            continue
        stripped = cls.__name__.lstrip('_')
        if stripped:
            yield f"_{stripped}{name}"


def _provider_for(obj_type: type) -> Optional[Callable[[str], Optional[MemberHandle]]]:
    provider = getattr(obj_type, 'try_get_member', None)
    return provider if callable(provider) else None


def _static_lookup(obj_type: type, name: str) -> Tuple[Optional[type], Any]:
    """Find name in the first class dict along the MRO without invoking descriptors."""
    for cls in getattr(obj_type, '__mro__', ()):
        attr = cls.__dict__.get(name, _MISSING)
        if attr is not _MISSING:
            return cls, attr
    return None, _MISSING


def _property_handle(obj_type: type, name: str) -> Optional[MemberHandle]:
    owner, attr = _static_lookup(obj_type, name)
    if attr is _MISSING or owner is object:
        return None

    if isinstance(attr, property):
        if attr.fset is None:
            return None
        declared = _evaluated_hints(attr.fget).get('return') if attr.fget is not None else None
        return MemberHandle(
            name=name,
            kind=MemberKind.PROPERTY,
            declared_type=declared,
            owner=owner,
            getter=attr.fget,
            setter=attr.fset,
        )

    # Slot members are data descriptors too, but they are fields
    if isinstance(attr, types.MemberDescriptorType):
        return None

    if hasattr(type(attr), '__set__'):
        return MemberHandle(
            name=name,
            kind=MemberKind.PROPERTY,
            declared_type=None,
            owner=owner,
            getter=_descriptor_getter(attr),
            setter=attr.__set__,
        )
    return None


def _field_handle(obj_type: type, name: str, declarations: Dict[str, Any]) -> Optional[MemberHandle]:
    if name not in declarations:
        return None
    owner, attr = _static_lookup(obj_type, name)
    # A read-only property or method shadowing the annotation makes it unwritable
    if attr is not _MISSING and _shadows_field(attr):
        return None
    return _field_accessors(_declaring_class(obj_type, name, owner), name, declarations[name])


def _field_accessors(owner: type, name: str, declared_type: Any) -> MemberHandle:
    return MemberHandle(
        name=name,
        kind=MemberKind.FIELD,
        declared_type=declared_type,
        owner=owner,
        getter=lambda obj: object.__getattribute__(obj, name),
        setter=lambda obj, value: object.__setattr__(obj, name, value),
    )


def _schema_handle(owner: type, name: str, declared_type: Any) -> MemberHandle:
    return MemberHandle(
        name=name,
        kind=MemberKind.FIELD,
        declared_type=declared_type,
        owner=owner,
        getter=lambda obj: getattr(obj, name),
        setter=lambda obj, value: setattr(obj, name, value),
    )


def _shadows_field(attr: Any) -> bool:
    if isinstance(attr, types.MemberDescriptorType):
        return False
    return isinstance(attr, (property, staticmethod, classmethod)) or inspect.isfunction(attr)


def _declaring_class(obj_type: type, name: str, found_owner: Optional[type]) -> type:
    if found_owner is not None:
        return found_owner
    for cls in getattr(obj_type, '__mro__', ()):
        try:
            if name in inspect.get_annotations(cls):
                return cls
        except Exception:
            continue
    return obj_type


def _own_slots(cls: type) -> List[str]:
    slots = cls.__dict__.get('__slots__', ())
    if isinstance(slots, str):
        slots = (slots,)
    names = []
    for slot in slots:
        if slot in _SLOT_BOOKKEEPING:
            continue
        if slot.startswith('__') and not slot.endswith('__'):
            slot = f"_{cls.__name__.lstrip('_')}{slot}"
        names.append(slot)
    return names


def _is_class_level(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(('ClassVar', 'typing.ClassVar', 'InitVar', 'dataclasses.InitVar'))
    if annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar:
        return True
    return isinstance(annotation, dataclasses.InitVar)


def _evaluated_hints(obj: Any) -> Dict[str, Any]:
    """typing.get_type_hints that degrades to {} when annotations cannot be evaluated."""
    try:
        return typing.get_type_hints(obj)
    except Exception as e:
        logger.debug(f"Unevaluable annotations on {getattr(obj, '__qualname__', obj)!r}: {e}")
        return {}


def _single_value_parameter(func: Callable) -> Optional[inspect.Parameter]:
    try:
        parameters = list(inspect.signature(func).parameters.values())[1:]
    except (TypeError, ValueError):
        return None
    positional = [
        p for p in parameters
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    if not positional:
        return None
    required_rest = [
        p for p in parameters[1:]
        if p.default is inspect.Parameter.empty
        and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    if required_rest:
        return None
    return positional[0]


def _method_caller(func: Callable) -> Callable[[Any, Any], None]:
    def call(obj: Any, value: Any) -> None:
        func(obj, value)
    return call


def _descriptor_getter(descriptor: Any) -> Optional[Callable[[Any], Any]]:
    if not hasattr(type(descriptor), '__get__'):
        return None
    return lambda obj: descriptor.__get__(obj, type(obj))


def _instance_dict(obj: Any) -> Dict[str, Any]:
    try:
        return object.__getattribute__(obj, '__dict__')
    except (AttributeError, TypeError):
        return {}
