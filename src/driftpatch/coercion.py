"""
Narrow value coercion between host representations.

Host versions disagree on whether a member holds an enumeration, a different
enumeration with the same ordinals, or a bare integer. coerce() bridges
exactly that drift and nothing else:

    1. value already assignable to the target type  -> value unchanged
    2. enum target, enum value                       -> same ordinal, target enum
    3. enum target, int value                        -> member with that ordinal
    4. int target, enum value                        -> the ordinal
    5. anything else                                 -> INCOMPATIBLE

coerce() is total: it returns INCOMPATIBLE instead of raising.
"""

import logging
import types
import typing
from enum import Enum
from typing import Any, Iterator, Optional, Union

logger = logging.getLogger(__name__)


class _Incompatible:
    """Singleton marking a value that cannot take the requested representation."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INCOMPATIBLE"

    def __bool__(self) -> bool:
        return False


INCOMPATIBLE = _Incompatible()


def coerce(value: Any, target_type: Any) -> Any:
    """Convert value into the representation target_type requires.

    Args:
        value: The desired value
        target_type: Declared type of the destination member. None, Any and
            object accept every value.

    Returns:
        The value (possibly converted), or INCOMPATIBLE
    """
    try:
        if is_assignable(value, target_type):
            return value
        for arm in _arms(target_type):
            converted = _bridge(value, arm)
            if converted is not INCOMPATIBLE:
                return converted
    except Exception as e:
        logger.debug(f"Coercion of {value!r} to {target_type!r} failed: {e}")
    return INCOMPATIBLE


def is_assignable(value: Any, target_type: Any) -> bool:
    """Check whether value can be stored as target_type without conversion."""
    if target_type is None or target_type is Any or target_type is object:
        return True

    target_type = _unwrap(target_type)
    if target_type is type(None):
        return value is None

    origin = typing.get_origin(target_type)
    if origin is Union or origin is types.UnionType:
        return any(is_assignable(value, arm) for arm in typing.get_args(target_type))
    if origin is typing.Literal:
        return value in typing.get_args(target_type)
    if origin is not None:
        # Parametrised generics (list[int], Dict[str, X]) are checked by their origin only
        return isinstance(origin, type) and isinstance(value, origin)

    if isinstance(target_type, typing.TypeVar):
        bound = target_type.__bound__
        return bound is None or is_assignable(value, bound)

    if not isinstance(target_type, type):
        return False
    if isinstance(value, target_type):
        return True
    # Numeric tower: int is acceptable where float or complex is declared
    return (
        target_type in (float, complex)
        and isinstance(value, int)
        and not isinstance(value, (bool, Enum))
    )


def enum_ordinal(member: Enum) -> Optional[int]:
    """Underlying integer of an enum member, or None for non-integer enums."""
    raw = member.value
    if isinstance(raw, int) and not isinstance(raw, bool):
        return int(raw)
    return None


def _bridge(value: Any, target_type: Any) -> Any:
    if _is_enum_type(target_type):
        if isinstance(value, Enum):
            ordinal = enum_ordinal(value)
            if ordinal is None:
                return INCOMPATIBLE
            return _enum_from_ordinal(target_type, ordinal)
        if isinstance(value, int) and not isinstance(value, bool):
            return _enum_from_ordinal(target_type, value)
        return INCOMPATIBLE

    if target_type is int and isinstance(value, Enum):
        ordinal = enum_ordinal(value)
        return INCOMPATIBLE if ordinal is None else ordinal

    return INCOMPATIBLE


def _enum_from_ordinal(enum_type: type, ordinal: int) -> Any:
    try:
        return enum_type(ordinal)
    except ValueError:
        logger.debug(f"{enum_type.__name__} has no member with ordinal {ordinal}")
        return INCOMPATIBLE


def _arms(target_type: Any) -> Iterator[Any]:
    """Yield the concrete types a value may be bridged to, in declaration order."""
    target_type = _unwrap(target_type)
    origin = typing.get_origin(target_type)
    if origin is Union or origin is types.UnionType:
        for arm in typing.get_args(target_type):
            yield _unwrap(arm)
    else:
        yield target_type


def _unwrap(target_type: Any) -> Any:
    """Strip Annotated[...] and NewType wrappers."""
    while True:
        if typing.get_origin(target_type) is typing.Annotated:
            target_type = typing.get_args(target_type)[0]
        elif hasattr(target_type, '__supertype__'):
            target_type = target_type.__supertype__
        else:
            return target_type


def _is_enum_type(target_type: Any) -> bool:
    return isinstance(target_type, type) and issubclass(target_type, Enum)
