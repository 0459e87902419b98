"""
Change strategies: the clone and equality functions an editable item uses.

The engine never inspects the managed value itself. It is handed a
ChangeStrategy (a clone function and an equality function) once, at
construction, and only ever calls those two functions.

ChangeStrategy.for_type() is the optional selection layer on top of that.
It looks at what a type declares, in priority order:

Clone:
    1. Explicit registration (register_strategy)
    2. deep_clone()    - DeepCloneable, best separation of state
    3. shallow_clone() - ShallowCloneable
    4. Immutable value types clone to themselves (identity)
    5. Nothing found   - NoCloningStrategyError

Equality:
    1. equals(other)   - Equatable
    2. operator.eq     - default Python equality

copy.copy/copy.deepcopy are never picked implicitly; ask for them with
ChangeStrategy.deep_copy().
"""

import copy
import datetime
import decimal
import enum
import fractions
import logging
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Type, runtime_checkable

from undoable.exceptions import NoCloningStrategyError

logger = logging.getLogger(__name__)

CloneFunction = Callable[[Any], Any]
EqualsFunction = Callable[[Any, Any], bool]

# Types with copy-by-value semantics: a "clone" can be the value itself
IMMUTABLE_VALUE_TYPES = (
    bool, int, float, complex, str, bytes, type(None), frozenset, range,
    decimal.Decimal, fractions.Fraction,
    datetime.date, datetime.time, datetime.timedelta, datetime.timezone,
    enum.Enum,
)


@runtime_checkable
class DeepCloneable(Protocol):
    """A value that can produce a fully independent copy of itself."""

    def deep_clone(self) -> Any:
        ...


@runtime_checkable
class ShallowCloneable(Protocol):
    """A value that can produce a shallow copy of itself."""

    def shallow_clone(self) -> Any:
        ...


@runtime_checkable
class Equatable(Protocol):
    """A value that declares its own state-wise equality."""

    def equals(self, other: Any) -> bool:
        ...


def _identity(value: Any) -> Any:
    return value


def _deep_clone(value: Any) -> Any:
    return value.deep_clone()


def _shallow_clone(value: Any) -> Any:
    return value.shallow_clone()


def _declared_equals(left: Any, right: Any) -> bool:
    return left.equals(right)


def _declares(value_type: type, capability: type) -> bool:
    return isinstance(value_type, type) and issubclass(value_type, capability)


def select_clone_function(value_type: type) -> Optional[CloneFunction]:
    """Pick a clone function from what value_type declares.

    Returns:
        The clone function, or None if the type declares nothing usable.
    """
    if _declares(value_type, DeepCloneable):
        return _deep_clone
    if _declares(value_type, ShallowCloneable):
        return _shallow_clone
    if isinstance(value_type, type) and issubclass(value_type, IMMUTABLE_VALUE_TYPES):
        return _identity
    return None


def select_equality_function(value_type: type) -> EqualsFunction:
    """Pick an equality function: declared equals() first, else operator.eq."""
    if _declares(value_type, Equatable):
        return _declared_equals
    return operator.eq


@dataclass(frozen=True)
class ChangeStrategy:
    """Clone and equality functions for one managed value type.

    clone must return an independent copy: mutating the original afterwards
    must not affect the clone, and vice versa. equals must be reflexive and
    symmetric. The engine cannot verify either.
    """
    clone: CloneFunction
    equals: EqualsFunction

    def __post_init__(self):
        if not callable(self.clone):
            raise TypeError("clone must be callable")
        if not callable(self.equals):
            raise TypeError("equals must be callable")

    @classmethod
    def for_type(cls, value_type: type) -> 'ChangeStrategy':
        """Select a strategy for value_type.

        Raises:
            NoCloningStrategyError: value_type declares no clone capability and
                                    is not an immutable value type.
        """
        registered = get_registered_strategy(value_type)
        if registered is not None:
            return registered

        clone = select_clone_function(value_type)
        if clone is None:
            raise NoCloningStrategyError(value_type)
        equals = select_equality_function(value_type)
        logger.debug(
            f"Selected strategy for {getattr(value_type, '__name__', value_type)}: "
            f"clone={clone.__name__}, equals={getattr(equals, '__name__', equals)}"
        )
        return cls(clone=clone, equals=equals)

    @classmethod
    def for_value(cls, value: Any) -> 'ChangeStrategy':
        """Select a strategy for type(value)."""
        return cls.for_type(type(value))

    @classmethod
    def deep_copy(cls) -> 'ChangeStrategy':
        """copy.deepcopy + operator.eq. The usual choice for dataclasses and containers."""
        return cls(clone=copy.deepcopy, equals=operator.eq)

    @classmethod
    def identity(cls) -> 'ChangeStrategy':
        """Values are their own clones. Only correct for immutable values."""
        return cls(clone=_identity, equals=operator.eq)


# ========== EXPLICIT REGISTRATIONS ==========

_registered_strategies: Dict[type, ChangeStrategy] = {}


def register_strategy(value_type: type, strategy: ChangeStrategy) -> None:
    """Register the strategy ChangeStrategy.for_type() returns for value_type and its subclasses."""
    _registered_strategies[value_type] = strategy
    logger.debug(f"Registered change strategy for {getattr(value_type, '__name__', value_type)}")


def unregister_strategy(value_type: type) -> None:
    """Remove an explicit registration. No-op if none exists."""
    _registered_strategies.pop(value_type, None)


def get_registered_strategy(value_type: Type) -> Optional[ChangeStrategy]:
    """Get the registered strategy for value_type, walking its MRO."""
    for base in getattr(value_type, '__mro__', (value_type,)):
        strategy = _registered_strategies.get(base)
        if strategy is not None:
            return strategy
    return None


def clear_registered_strategies() -> None:
    """Remove all explicit registrations. For testing only."""
    _registered_strategies.clear()
