"""Tests for clone/equality strategy selection."""
import copy
import datetime
import enum
import operator
from decimal import Decimal

import pytest

from undoable import (
    ChangeStrategy,
    EditableItem,
    NoCloningStrategyError,
    select_clone_function,
    select_equality_function,
    register_strategy,
    unregister_strategy,
    get_registered_strategy,
)

from conftest import PageSettings


class Color(enum.Enum):
    RED = 1
    BLUE = 2


class DeepNode:
    """Declares both clone capabilities; deep_clone wins."""

    def __init__(self, children=None):
        self.children = list(children or [])

    def deep_clone(self):
        return DeepNode([copy.deepcopy(child) for child in self.children])

    def shallow_clone(self):
        raise AssertionError("deep_clone should be preferred")


class ShallowNode:
    def __init__(self, value=0):
        self.value = value

    def shallow_clone(self):
        return ShallowNode(self.value)

    def equals(self, other):
        return isinstance(other, ShallowNode) and other.value == self.value


class TestCloneSelection:
    """Test clone function priority."""

    def test_deep_clone_preferred(self):
        clone = select_clone_function(DeepNode)
        node = DeepNode([[1]])

        cloned = clone(node)

        assert cloned is not node
        assert cloned.children == [[1]]
        assert cloned.children[0] is not node.children[0]

    def test_shallow_clone_used(self):
        clone = select_clone_function(ShallowNode)

        cloned = clone(ShallowNode(3))

        assert isinstance(cloned, ShallowNode)
        assert cloned.value == 3

    @pytest.mark.parametrize("value", [
        5, 2.5, True, "text", b"bytes", None, frozenset({1}), Decimal("1.5"),
        datetime.date(2024, 1, 1), datetime.timedelta(days=1), Color.RED,
    ])
    def test_immutable_values_clone_to_themselves(self, value):
        clone = select_clone_function(type(value))

        assert clone(value) is value

    @pytest.mark.parametrize("value_type", [list, dict, set, PageSettings, object])
    def test_no_clone_for_mutable_types(self, value_type):
        assert select_clone_function(value_type) is None


class TestEqualitySelection:
    """Test equality function selection."""

    def test_declared_equals_preferred(self):
        equals = select_equality_function(ShallowNode)

        assert equals(ShallowNode(1), ShallowNode(1)) is True
        assert equals(ShallowNode(1), ShallowNode(2)) is False

    def test_default_equality(self):
        assert select_equality_function(int) is operator.eq


class TestChangeStrategy:
    """Test ChangeStrategy construction and lookup."""

    def test_for_type(self):
        strategy = ChangeStrategy.for_type(ShallowNode)

        assert strategy.equals(ShallowNode(4), strategy.clone(ShallowNode(4)))

    def test_for_value(self):
        strategy = ChangeStrategy.for_value(10)

        assert strategy.clone(10) == 10

    def test_for_type_without_clone_raises(self):
        with pytest.raises(NoCloningStrategyError) as exc_info:
            ChangeStrategy.for_type(PageSettings)

        assert exc_info.value.value_type is PageSettings
        assert isinstance(exc_info.value, TypeError)

    def test_deep_copy_strategy(self):
        strategy = ChangeStrategy.deep_copy()
        value = PageSettings(tags=["a"])

        cloned = strategy.clone(value)
        value.tags.append("b")

        assert cloned.tags == ["a"]
        assert strategy.equals(PageSettings(), PageSettings())

    def test_identity_strategy(self):
        value = (1, 2)

        assert ChangeStrategy.identity().clone(value) is value

    def test_non_callable_functions_rejected(self):
        with pytest.raises(TypeError):
            ChangeStrategy(clone=None, equals=operator.eq)
        with pytest.raises(TypeError):
            ChangeStrategy(clone=copy.deepcopy, equals="eq")


class TestRegistry:
    """Test explicit strategy registrations."""

    def test_registered_strategy_wins(self):
        strategy = ChangeStrategy.deep_copy()
        register_strategy(PageSettings, strategy)

        assert ChangeStrategy.for_type(PageSettings) is strategy

    def test_registration_applies_to_subclasses(self):
        class Derived(PageSettings):
            pass

        strategy = ChangeStrategy.deep_copy()
        register_strategy(PageSettings, strategy)

        assert get_registered_strategy(Derived) is strategy

    def test_unregister(self):
        register_strategy(PageSettings, ChangeStrategy.deep_copy())

        unregister_strategy(PageSettings)

        assert get_registered_strategy(PageSettings) is None
        unregister_strategy(PageSettings)  # no-op

    def test_item_uses_registered_strategy(self):
        register_strategy(PageSettings, ChangeStrategy.deep_copy())
        item = EditableItem(PageSettings(title="A"))

        with item.editing():
            item.data.title = "B"
        item.undo()

        assert item.data.title == "A"
