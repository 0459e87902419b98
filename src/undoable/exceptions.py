"""
Exceptions raised by the editable item engine.

All of these signal caller misuse (a programming error), not a runtime
condition worth retrying. They are raised synchronously at the point of
violation and never swallowed by the engine.
"""


class UndoableError(Exception):
    """Base class for all undoable engine errors."""


class ItemNotInEditModeError(UndoableError):
    """commit_edit(), cancel_edit() or end_edit() called outside an edit transaction."""

    def __init__(self, message: str = "The item is not in edit mode."):
        super().__init__(message)


class ItemIsInEditModeError(UndoableError):
    """The operation needs a quiescent item, but an edit transaction is open."""

    def __init__(self, message: str = "The item is in edit mode, and this operation cannot be performed at this time."):
        super().__init__(message)


class InvalidParentContextError(UndoableError, ValueError):
    """capture_into_undo_context() received no parent."""

    def __init__(self, message: str = "A parent undo context is required."):
        super().__init__(message)


class ItemAlreadyCapturedError(UndoableError):
    """The item is captured by another parent and has not been released."""

    def __init__(self, message: str = "The item is already captured into a different undo context."):
        super().__init__(message)


class NoCloningStrategyError(UndoableError, TypeError):
    """No clone function could be selected for a value type."""

    def __init__(self, value_type: type):
        type_name = getattr(value_type, '__name__', str(value_type))
        super().__init__(
            f"Cannot select a cloning function for {type_name}. Implement deep_clone() or "
            f"shallow_clone(), register a strategy, or pass one explicitly "
            f"(e.g. ChangeStrategy.deep_copy())."
        )
        self.value_type = value_type
