"""Pytest configuration and shared fixtures."""
import pytest
import copy
from dataclasses import dataclass, field
from typing import List, Optional

from undoable import ChangeStrategy, EditableItem
import undoable.config as config_module
import undoable.strategies as strategies_module


@dataclass
class Margins:
    """Nested dataclass for dotted-path change tests."""
    top: int = 0
    bottom: int = 0


@dataclass
class PageSettings:
    """Test document settings - a mutable dataclass value."""
    title: str = "untitled"
    font_size: int = 12
    tags: List[str] = field(default_factory=list)
    margins: Margins = field(default_factory=Margins)
    footer: Optional[str] = None


class RecordingParent:
    """Fake undo context that only counts forwarded calls."""

    def __init__(self):
        self.undo_calls = 0
        self.redo_calls = 0

    @property
    def can_undo(self) -> bool:
        return True

    @property
    def can_redo(self) -> bool:
        return True

    def undo(self) -> None:
        self.undo_calls += 1

    def redo(self) -> None:
        self.redo_calls += 1


class Document(EditableItem):
    """Container item: owns settings of its own and captures a sub-item."""

    def __init__(self, name: str, settings: EditableItem):
        super().__init__({'name': name}, ChangeStrategy.deep_copy())
        self.settings = settings
        self._capture_sub_item(settings)

    def detach_settings(self) -> None:
        self._release_sub_item(self.settings)


@pytest.fixture(autouse=True)
def reset_undoable_config():
    """Restore configuration and strategy registrations after each test."""
    original_levels = config_module._default_history_levels
    original_registrations = dict(strategies_module._registered_strategies)

    yield

    config_module._default_history_levels = original_levels
    strategies_module._registered_strategies.clear()
    strategies_module._registered_strategies.update(original_registrations)


@pytest.fixture
def settings():
    """Provide a test settings value."""
    return PageSettings(title="Report", font_size=11, tags=["draft"])


@pytest.fixture
def settings_item(settings):
    """Provide an editable item over the test settings."""
    return EditableItem(copy.deepcopy(settings), ChangeStrategy.deep_copy())


@pytest.fixture
def recording_parent():
    """Provide a fake parent undo context."""
    return RecordingParent()
