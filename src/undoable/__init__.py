"""
Transactional editing with undo/redo for stateful objects.

This package provides an editable-item engine: open an edit transaction on a
value, mutate it, then commit or cancel, with bounded undo/redo history and
optional delegation of undo/redo to a containing item.

Key Features:
- Edit transactions (begin / commit / cancel / end) with snapshot-based cancel
- Stack-based undo/redo with a configurable history depth
- Capture into a parent undo context: nested items share one timeline
- Commit notifications carrying typed state-change records
- Pluggable clone/equality strategies

Quick Start:
    >>> from undoable import EditableItem
    >>>
    >>> item = EditableItem(5)
    >>> with item.editing():
    ...     item.data = 10
    >>> item.undo()
    >>> item.data
    5
    >>> item.redo()
    >>> item.data
    10

Architecture:
    A container captures its sub-items (EditableItem._capture_sub_item). From
    then on a sub-item forwards undo()/redo() to the container, and each
    sub-item commit is recorded as a commit of the container carrying a
    SubItemStateChange. Undo at the outermost uncaptured item steps the whole
    tree back.

Modules:
    - editable_item: The edit / undo / redo state machine
    - strategies: Clone and equality strategy selection
    - state_changes: State-change records and change description
    - exceptions: Usage errors raised by the engine
    - config: Process-wide defaults
"""

# Engine
from undoable.editable_item import (
    EditableItem,
    UndoableItem,
    TransactionEditableItem,
    replace_value,
    copy_fields,
)

# Strategies
from undoable.strategies import (
    ChangeStrategy,
    DeepCloneable,
    ShallowCloneable,
    Equatable,
    select_clone_function,
    select_equality_function,
    register_strategy,
    unregister_strategy,
    get_registered_strategy,
)

# State changes
from undoable.state_changes import (
    StateChange,
    PropertyStateChange,
    SubItemStateChange,
    EditCommitted,
    describe_changes,
)

# Exceptions
from undoable.exceptions import (
    UndoableError,
    ItemNotInEditModeError,
    ItemIsInEditModeError,
    InvalidParentContextError,
    ItemAlreadyCapturedError,
    NoCloningStrategyError,
)

# Configuration
from undoable.config import (
    set_default_history_levels,
    get_default_history_levels,
)

__all__ = [
    # Engine
    'EditableItem',
    'UndoableItem',
    'TransactionEditableItem',
    'replace_value',
    'copy_fields',
    # Strategies
    'ChangeStrategy',
    'DeepCloneable',
    'ShallowCloneable',
    'Equatable',
    'select_clone_function',
    'select_equality_function',
    'register_strategy',
    'unregister_strategy',
    'get_registered_strategy',
    # State changes
    'StateChange',
    'PropertyStateChange',
    'SubItemStateChange',
    'EditCommitted',
    'describe_changes',
    # Exceptions
    'UndoableError',
    'ItemNotInEditModeError',
    'ItemIsInEditModeError',
    'InvalidParentContextError',
    'ItemAlreadyCapturedError',
    'NoCloningStrategyError',
    # Configuration
    'set_default_history_levels',
    'get_default_history_levels',
]

__version__ = '1.0.0'
__description__ = 'Transactional edit and undo/redo engine for stateful objects'
