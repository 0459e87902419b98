"""
EditableItem: transactional editing with bounded undo/redo for a single value.

Lifecycle:
- Constructed with an initial value and a ChangeStrategy (clone + equals)
- begin_edit() opens a transaction and snapshots the value
- commit_edit() records what changed (undo history + EditCommitted notification)
- cancel_edit() rolls the value back to the last begin/commit snapshot
- end_edit() closes the transaction

Undo context (capture):
An item can be captured by a containing UndoableItem. While captured, the
item's own undo()/redo() forward to the parent and change nothing locally:
the parent is solely responsible for consistency. A container captures its
sub-items with _capture_sub_item(), which also subscribes to their commits,
so every sub-item commit becomes a commit of the container. A tree of
editable items therefore behaves as one undo/redo timeline rooted at the
outermost item that is not itself captured.

Ownership:
- data and the comparison snapshot are owned by the item
- history entries own the clones pushed into them
- the parent is held through a weak reference and never kept alive by a child

Thread safety: Not thread-safe (single-threaded, synchronous notifications).
"""

import logging
import weakref
from collections import deque
from collections.abc import MutableMapping, MutableSequence
from contextlib import contextmanager
from dataclasses import dataclass, fields as dataclass_fields, is_dataclass
from typing import (
    Any, Callable, Deque, Generator, Generic, List, Optional, Protocol, Sequence, Tuple, TypeVar,
    runtime_checkable,
)

from undoable.config import clamp_history_levels, get_default_history_levels
from undoable.exceptions import (
    InvalidParentContextError,
    ItemAlreadyCapturedError,
    ItemIsInEditModeError,
    ItemNotInEditModeError,
)
from undoable.state_changes import (
    WHOLE_VALUE,
    EditCommitted,
    PropertyStateChange,
    StateChange,
    SubItemStateChange,
    describe_changes,
)
from undoable.strategies import ChangeStrategy

logger = logging.getLogger(__name__)

TItem = TypeVar('TItem')

# restore(current, snapshot) -> new current value
RestoreFunction = Callable[[Any, Any], Any]
# describe(old, new) -> state changes
DescribeFunction = Callable[[Any, Any], Sequence[StateChange]]


@runtime_checkable
class UndoableItem(Protocol):
    """Contract of anything that can act as an undo context."""

    @property
    def can_undo(self) -> bool:
        ...

    @property
    def can_redo(self) -> bool:
        ...

    def undo(self) -> None:
        ...

    def redo(self) -> None:
        ...


@runtime_checkable
class TransactionEditableItem(Protocol):
    """Contract of an item editable in a transactional style."""

    @property
    def is_in_edit_mode(self) -> bool:
        ...

    def begin_edit(self) -> None:
        ...

    def commit_edit(self) -> EditCommitted:
        ...

    def cancel_edit(self) -> None:
        ...

    def end_edit(self) -> None:
        ...

    def on_edit_committed(self, callback: Callable[[EditCommitted], None]) -> None:
        ...

    def off_edit_committed(self, callback: Callable[[EditCommitted], None]) -> None:
        ...


# ========== RESTORE HOOKS ==========

def replace_value(current: Any, snapshot: Any) -> Any:
    """Restore by replacing the whole value with the snapshot."""
    return snapshot


def copy_fields(current: Any, snapshot: Any) -> Any:
    """Restore in place: write the snapshot's contents back into current.

    Keeps current's identity, so anything holding a reference to the value
    sees the restored state.
    - Dataclasses: every field is reassigned
    - Mutable mappings / sequences: contents are replaced
    - Other objects: every attribute in the snapshot's __dict__ is reassigned

    Returns:
        current (mutated)
    """
    if is_dataclass(current) and not isinstance(current, type):
        for f in dataclass_fields(current):
            setattr(current, f.name, getattr(snapshot, f.name))
    elif isinstance(current, MutableMapping):
        current.clear()
        current.update(snapshot)
    elif isinstance(current, MutableSequence):
        current[:] = snapshot
    else:
        for name, value in vars(snapshot).items():
            setattr(current, name, value)
    return current


@dataclass(frozen=True)
class _HistoryEntry:
    """One undo/redo step: the item's own value before the step, plus the
    captured sub-items whose commits contributed to it."""
    snapshot: Any
    sub_items: Tuple['EditableItem', ...] = ()
    has_own_changes: bool = True


class EditableItem(Generic[TItem]):
    """A value edited in transactions, with undo/redo and parent delegation.

    States: Idle, Editing.
    - begin_edit: Idle -> Editing (no-op when already editing)
    - commit_edit / cancel_edit: valid only while Editing, stay Editing
    - end_edit: Editing -> Idle

    Restoring a value (cancel, undo, redo) goes through the restore hook:
    the ``restore`` constructor argument, or an override of _apply_values()
    in a subclass. The default replaces the whole value.
    """

    def __init__(
        self,
        data: TItem,
        strategy: Optional[ChangeStrategy] = None,
        restore: Optional[RestoreFunction] = None,
        *,
        history_levels: Optional[int] = None,
        describe: Optional[DescribeFunction] = None,
    ):
        """
        Initialize EditableItem.

        Args:
            data: The initial value. Owned by the item from now on.
            strategy: Clone and equality functions for the value. Selected once
                      via ChangeStrategy.for_type(type(data)) when omitted.
            restore: restore(current, snapshot) -> new value. Defaults to
                     replace_value; use copy_fields to restore in place.
            history_levels: Max undo/redo depth. None uses the configured
                            default; negative values clamp to 0.
            describe: describe(old, new) -> state changes for commit records.
                      Defaults to describe_changes.

        Raises:
            NoCloningStrategyError: strategy omitted and none can be selected.
        """
        self._strategy: ChangeStrategy = strategy if strategy is not None else ChangeStrategy.for_type(type(data))
        self._restore: Optional[RestoreFunction] = restore
        self._describe: DescribeFunction = describe if describe is not None else describe_changes

        # === Value ===
        self._data: TItem = data
        self._comparison_data: TItem = self._strategy.clone(data)
        self._is_in_edit_mode = False

        # === History ===
        if history_levels is None:
            self._history_levels = get_default_history_levels()
        else:
            self._history_levels = clamp_history_levels(history_levels)
        self._undo_stack: Deque[_HistoryEntry] = deque(maxlen=self._history_levels)
        self._redo_stack: Deque[_HistoryEntry] = deque(maxlen=self._history_levels)

        # === Undo context ===
        self._parent_ref: Optional['weakref.ReferenceType[UndoableItem]'] = None

        # === Callbacks ===
        self._on_edit_committed_callbacks: List[Callable[[EditCommitted], None]] = []
        self._on_property_changed_callbacks: List[Callable[[str], None]] = []

    def __repr__(self) -> str:
        state = 'editing' if self._is_in_edit_mode else 'idle'
        captured = ', captured' if self.is_captured_in_undo_context else ''
        return f"{type(self).__name__}({self._data!r}, {state}{captured})"

    # ========== PROPERTIES ==========

    @property
    def data(self) -> TItem:
        """The current value."""
        return self._data

    @data.setter
    def data(self, value: TItem) -> None:
        self._data = value
        self._raise_property_changed('data')

    @property
    def strategy(self) -> ChangeStrategy:
        return self._strategy

    @property
    def is_in_edit_mode(self) -> bool:
        return self._is_in_edit_mode

    @property
    def parent_context(self) -> Optional[UndoableItem]:
        """The capturing undo context, or None if not captured."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def is_captured_in_undo_context(self) -> bool:
        return self.parent_context is not None

    @property
    def can_undo(self) -> bool:
        """True when captured (the parent answers) or local undo history exists."""
        return self.is_captured_in_undo_context or len(self._undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        """True when captured (the parent answers) or local redo history exists."""
        return self.is_captured_in_undo_context or len(self._redo_stack) > 0

    @property
    def history_levels(self) -> Optional[int]:
        """Max number of undo (and redo) steps retained. None = unbounded.

        Calling undo() more often than this is allowed and simply stops
        changing the value once history runs out.
        """
        return self._history_levels

    @history_levels.setter
    def history_levels(self, value: Optional[int]) -> None:
        levels = clamp_history_levels(value)
        if levels == self._history_levels:
            return

        before = (len(self._undo_stack), len(self._redo_stack))
        self._history_levels = levels
        self._rebound_stacks()
        after = (len(self._undo_stack), len(self._redo_stack))
        if before != after:
            logger.debug(f"History trimmed to {levels} levels: undo {before[0]}->{after[0]}, redo {before[1]}->{after[1]}")

        self._raise_property_changed('history_levels')
        if before != after:
            self._raise_property_changed('can_undo')
            self._raise_property_changed('can_redo')

    def _rebound_stacks(self) -> None:
        """Apply the effective bound to both stacks.

        While captured the parent's history decides how far back undo goes,
        so local stacks are unbounded and keep one entry per parent step.
        """
        maxlen = None if self.is_captured_in_undo_context else self._history_levels
        # deque(iterable, maxlen) keeps the newest entries
        self._undo_stack = deque(self._undo_stack, maxlen=maxlen)
        self._redo_stack = deque(self._redo_stack, maxlen=maxlen)

    # ========== CALLBACKS ==========

    def on_edit_committed(self, callback: Callable[[EditCommitted], None]) -> None:
        """Subscribe to commit notifications.

        Callbacks run synchronously inside commit_edit(); exceptions propagate
        to the committing caller.
        """
        if callback not in self._on_edit_committed_callbacks:
            self._on_edit_committed_callbacks.append(callback)

    def off_edit_committed(self, callback: Callable[[EditCommitted], None]) -> None:
        """Unsubscribe from commit notifications."""
        if callback in self._on_edit_committed_callbacks:
            self._on_edit_committed_callbacks.remove(callback)

    def on_property_changed(self, callback: Callable[[str], None]) -> None:
        """Subscribe to property change notifications (callback receives the property name)."""
        if callback not in self._on_property_changed_callbacks:
            self._on_property_changed_callbacks.append(callback)

    def off_property_changed(self, callback: Callable[[str], None]) -> None:
        """Unsubscribe from property change notifications."""
        if callback in self._on_property_changed_callbacks:
            self._on_property_changed_callbacks.remove(callback)

    def _raise_property_changed(self, property_name: str) -> None:
        """Notify that a named property changed.

        Override to marshal delivery elsewhere (e.g. onto a UI thread). The
        default delivers synchronously to on_property_changed subscribers,
        best-effort.
        """
        for callback in list(self._on_property_changed_callbacks):
            try:
                callback(property_name)
            except Exception as e:
                logger.warning(f"Error in property_changed callback for '{property_name}': {e}")

    def _raise_history_changed(self) -> None:
        self._raise_property_changed('can_undo')
        self._raise_property_changed('can_redo')

    # ========== EDIT TRANSACTION ==========

    def begin_edit(self) -> None:
        """Begin editing. No-op if already in edit mode."""
        if self._is_in_edit_mode:
            return

        self._is_in_edit_mode = True
        self._comparison_data = self._strategy.clone(self._data)
        logger.debug(f"begin_edit: {self!r}")

        self._raise_property_changed('is_in_edit_mode')

    def commit_edit(self) -> EditCommitted:
        """Commit the changes made so far, without ending the edit.

        Returns:
            The EditCommitted notification delivered to subscribers.

        Raises:
            ItemNotInEditModeError: not in edit mode.
        """
        self._require_edit_mode()
        return self._commit_internal()

    def cancel_edit(self) -> None:
        """Discard changes since begin_edit() or the last commit, whichever is later.

        Raises:
            ItemNotInEditModeError: not in edit mode.
        """
        self._require_edit_mode()

        if self._strategy.equals(self._data, self._comparison_data):
            logger.debug(f"cancel_edit: nothing to discard for {self!r}")
            return

        # Restore from a clone so the comparison snapshot stays exclusively owned
        self._restore_values(self._strategy.clone(self._comparison_data))
        logger.debug(f"cancel_edit: restored {self!r}")

    def end_edit(self) -> None:
        """End editing.

        Raises:
            ItemNotInEditModeError: not in edit mode.
        """
        self._require_edit_mode()

        self._is_in_edit_mode = False
        logger.debug(f"end_edit: {self!r}")

        self._raise_property_changed('is_in_edit_mode')

    @contextmanager
    def editing(self) -> Generator['EditableItem[TItem]', None, None]:
        """Context manager for a single edit transaction.

        Commits when the block exits normally, cancels (and re-raises) when it
        raises. Ends edit mode afterwards unless the item was already editing
        when the block started.

        Example:
            with item.editing():
                item.data = 10
            # committed, undo-able, back to idle
        """
        opened = not self._is_in_edit_mode
        self.begin_edit()
        try:
            yield self
        except Exception:
            self.cancel_edit()
            raise
        else:
            self.commit_edit()
        finally:
            if opened and self._is_in_edit_mode:
                self.end_edit()

    def _require_edit_mode(self) -> None:
        if not self._is_in_edit_mode:
            raise ItemNotInEditModeError()

    def _commit_internal(self, sub_item_change: Optional[SubItemStateChange] = None) -> EditCommitted:
        """Record the difference from the comparison snapshot and notify subscribers.

        Also runs, outside any edit transaction of this item, when a captured
        sub-item commits.
        """
        changes: List[StateChange] = []
        own_changes: List[StateChange] = []
        sub_items: Tuple['EditableItem', ...] = ()

        new_comparison = self._strategy.clone(self._data)
        if not self._strategy.equals(self._data, self._comparison_data):
            own_changes = list(self._describe(self._comparison_data, new_comparison))
            if not own_changes:
                # equals() and describe() disagree - record the value as a whole
                own_changes = [PropertyStateChange(WHOLE_VALUE, self._comparison_data, new_comparison)]
            changes.extend(own_changes)

        if sub_item_change is not None and sub_item_change.state_changes:
            changes.append(sub_item_change)
            sub_items = (sub_item_change.sub_item,)

        # Captured items push too: the parent's undo steps this history back
        if changes:
            self._undo_stack.append(_HistoryEntry(self._comparison_data, sub_items, bool(own_changes)))

        self._comparison_data = new_comparison
        self._redo_stack.clear()
        logger.debug(f"commit: {self!r} with {len(changes)} change(s), undo depth={len(self._undo_stack)}")

        self._raise_history_changed()

        event = EditCommitted(item=self, state_changes=tuple(changes))
        for callback in list(self._on_edit_committed_callbacks):
            callback(event)
        return event

    def _apply_values(self, current: TItem, snapshot: TItem) -> TItem:
        """Write snapshot back as the current value; returns the new value.

        Uses the restore function given at construction (replace_value by
        default). Subclasses may override instead.
        """
        restore = self._restore if self._restore is not None else replace_value
        return restore(current, snapshot)

    def _restore_values(self, snapshot: TItem) -> None:
        # Describe before applying: an in-place restore mutates the current value
        changed = self._describe(self._data, snapshot)
        self._data = self._apply_values(self._data, snapshot)

        self._raise_property_changed('data')
        for change in changed:
            if isinstance(change, PropertyStateChange) and change.property_name != WHOLE_VALUE:
                self._raise_property_changed(change.property_name)

    # ========== UNDO / REDO ==========

    def undo(self) -> None:
        """Undo the last committed change.

        Captured: forwards to the parent's undo() and changes nothing here.
        Not captured: no-op when there is nothing to undo.
        """
        parent = self.parent_context
        if parent is not None:
            logger.debug(f"undo: forwarding to parent context of {self!r}")
            parent.undo()
            return

        self._step_history(undo=True)

    def redo(self) -> None:
        """Redo the last undone change.

        Captured: forwards to the parent's redo() and changes nothing here.
        Not captured: no-op when there is nothing to redo.
        """
        parent = self.parent_context
        if parent is not None:
            logger.debug(f"redo: forwarding to parent context of {self!r}")
            parent.redo()
            return

        self._step_history(undo=False)

    def _step_history(self, undo: bool) -> bool:
        """Move one step through local history, stepping contributing sub-items too.

        Returns:
            False if the relevant stack was empty.
        """
        if undo:
            source, target = self._undo_stack, self._redo_stack
        else:
            source, target = self._redo_stack, self._undo_stack

        if not source:
            return False

        entry = source.pop()
        target.append(_HistoryEntry(self._strategy.clone(self._data), entry.sub_items, entry.has_own_changes))

        if not self._strategy.equals(self._data, entry.snapshot):
            # Restore from a clone: earlier EditCommitted records share the snapshot
            self._restore_values(self._strategy.clone(entry.snapshot))

        # Undo unwinds sub-items in reverse commit order
        sub_items = reversed(entry.sub_items) if undo else entry.sub_items
        for sub_item in sub_items:
            # A sub-item released since this entry owns its history again
            if sub_item.parent_context is self:
                sub_item._step_history(undo)

        # Later commits diff against the restored value
        self._comparison_data = self._strategy.clone(self._data)
        logger.debug(f"{'undo' if undo else 'redo'}: {self!r}, undo depth={len(self._undo_stack)}, redo depth={len(self._redo_stack)}")

        self._raise_history_changed()
        return True

    # ========== UNDO CONTEXT ==========

    def capture_into_undo_context(self, parent: UndoableItem) -> None:
        """Let a containing undo context take over undo/redo for this item.

        Meant for containers, not for direct use. Resets local history. While
        captured, history_levels is not applied to the local stacks; the
        parent's bound governs.

        The parent is held through a weak reference, so it must support
        weakrefs (classes using __slots__ need a '__weakref__' slot).

        Raises:
            InvalidParentContextError: parent is None, is this item, or cannot
                be weakly referenced.
            ItemIsInEditModeError: an edit transaction is open.
            ItemAlreadyCapturedError: captured by a different parent.
        """
        if parent is None:
            raise InvalidParentContextError()

        current = self.parent_context
        if parent is current:
            return

        if parent is self:
            raise InvalidParentContextError("An item cannot be captured into its own undo context.")

        if self._is_in_edit_mode:
            raise ItemIsInEditModeError()

        if current is not None:
            raise ItemAlreadyCapturedError()

        try:
            self._parent_ref = weakref.ref(parent, self._on_parent_collected)
        except TypeError as e:
            raise InvalidParentContextError(
                f"{type(parent).__name__} cannot be used as an undo context: {e}"
            ) from e
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._rebound_stacks()
        logger.debug(f"capture: {self!r} captured by {type(parent).__name__}")

        self._raise_property_changed('is_captured_in_undo_context')
        self._raise_history_changed()

    def release_from_undo_context(self) -> None:
        """Stop delegating undo/redo to the parent. No-op if not captured.

        History recorded while captured belonged to the parent's timeline and
        is discarded; local history starts empty. Clearing on release goes
        beyond simply ending the delegation: entries pushed while captured
        were only ever reachable through the parent, and must not resurface
        as local undo steps. history_levels applies again from here on.
        """
        if self.parent_context is None:
            return

        self._parent_ref = None
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._rebound_stacks()
        logger.debug(f"release: {self!r} released from undo context")

        self._raise_property_changed('is_captured_in_undo_context')
        self._raise_history_changed()

    def _on_parent_collected(self, ref: 'weakref.ReferenceType[UndoableItem]') -> None:
        # Parent is gone: behave as released
        if self._parent_ref is ref:
            self._parent_ref = None
            self._undo_stack.clear()
            self._redo_stack.clear()
            self._rebound_stacks()
            logger.debug(f"Parent context of {type(self).__name__} was garbage collected, item released")

    # ========== SUB-ITEMS ==========

    def _capture_sub_item(self, item: 'EditableItem') -> None:
        """Capture a sub-item into this item's undo context.

        Every commit on the sub-item then commits this item as well, with a
        SubItemStateChange describing the sub-item's changes. Only capture
        direct sub-objects that are themselves transactional and undoable.
        """
        item.capture_into_undo_context(self)
        item.on_edit_committed(self._on_sub_item_committed)

    def _release_sub_item(self, item: 'EditableItem') -> None:
        """Stop following a sub-item's commits and release it if captured here.

        The sub-item is also removed from this item's history. Steps that
        only recorded its commits are dropped.
        """
        item.off_edit_committed(self._on_sub_item_committed)
        if item.parent_context is self:
            item.release_from_undo_context()
        self._forget_sub_item(item)

    def _forget_sub_item(self, item: 'EditableItem') -> None:
        before = (len(self._undo_stack), len(self._redo_stack))
        self._undo_stack = self._without_sub_item(self._undo_stack, item)
        self._redo_stack = self._without_sub_item(self._redo_stack, item)
        after = (len(self._undo_stack), len(self._redo_stack))
        if before != after:
            logger.debug(f"Dropped {before[0] - after[0]} undo / {before[1] - after[1]} redo step(s) of released sub-item")
            self._raise_history_changed()

    @staticmethod
    def _without_sub_item(stack: Deque[_HistoryEntry], item: 'EditableItem') -> Deque[_HistoryEntry]:
        kept: Deque[_HistoryEntry] = deque(maxlen=stack.maxlen)
        for entry in stack:
            if item not in entry.sub_items:
                kept.append(entry)
                continue
            sub_items = tuple(sub_item for sub_item in entry.sub_items if sub_item is not item)
            if sub_items or entry.has_own_changes:
                kept.append(_HistoryEntry(entry.snapshot, sub_items, entry.has_own_changes))
        return kept

    def _on_sub_item_committed(self, event: EditCommitted) -> None:
        self._commit_internal(SubItemStateChange(sub_item=event.item, state_changes=event.state_changes))
