"""
State-change records describing what a commit changed.

These are the payload of the edit-committed notification. They are pure
data (frozen dataclasses, no behavior beyond construction) and nest
recursively: a SubItemStateChange carries the records its captured sub-item
reported, so a commit on a composite object says which leaf properties
changed on which nested object.

describe_changes() produces the records for a single value by comparing the
snapshot taken before the commit with the snapshot taken after it.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields as dataclass_fields, is_dataclass
from typing import Any, Dict, Generic, List, Tuple, TypeVar

T = TypeVar('T')

# Property name used when the value is compared as a whole
WHOLE_VALUE = 'value'


@dataclass(frozen=True)
class StateChange:
    """Opaque record of "something changed"."""


@dataclass(frozen=True)
class PropertyStateChange(StateChange, Generic[T]):
    """Change to a single named property.

    Nested dataclass fields use dotted paths (e.g. 'margins.top').
    """
    property_name: str
    old_value: T
    new_value: T


@dataclass(frozen=True)
class SubItemStateChange(StateChange):
    """Change that happened inside a captured sub-item."""
    sub_item: Any
    state_changes: Tuple[StateChange, ...] = ()


@dataclass(frozen=True)
class EditCommitted:
    """Notification emitted once per successful commit.

    state_changes is empty when the commit found nothing to record.
    """
    item: Any
    state_changes: Tuple[StateChange, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.state_changes)


def _flatten_dataclass(obj: Any, prefix: str = '') -> Dict[str, Any]:
    """Flatten a dataclass into {dotted_path: leaf_value}, recursing into nested dataclasses."""
    flat: Dict[str, Any] = {}
    for f in dataclass_fields(obj):
        path = f'{prefix}.{f.name}' if prefix else f.name
        value = getattr(obj, f.name)
        # Recurse on the value's type, not the annotation (Optional[...] fields may hold None)
        if value is not None and is_dataclass(type(value)):
            flat.update(_flatten_dataclass(value, prefix=path))
        else:
            flat[path] = value
    return flat


def _diff_flat(old: Dict[Any, Any], new: Dict[Any, Any]) -> List[StateChange]:
    changes: List[StateChange] = []
    missing = object()
    keys = list(old.keys()) + [k for k in new.keys() if k not in old]
    for key in keys:
        before = old.get(key, missing)
        after = new.get(key, missing)
        if before is missing or after is missing or before != after:
            changes.append(PropertyStateChange(
                property_name=str(key),
                old_value=None if before is missing else before,
                new_value=None if after is missing else after,
            ))
    return changes


def describe_changes(old: Any, new: Any) -> List[StateChange]:
    """Describe the difference between two snapshots of the same value.

    - Dataclass instances of the same type: one PropertyStateChange per
      differing leaf field, nested dataclasses flattened to dotted paths.
    - Mappings: one PropertyStateChange per added, removed or changed key
      (a missing side is reported as None).
    - Anything else: a single PropertyStateChange named 'value' if the two
      values differ.

    Args:
        old: Snapshot before the change
        new: Snapshot after the change

    Returns:
        List of StateChange records, empty if nothing differs.
    """
    if type(old) is type(new) and is_dataclass(old) and not isinstance(old, type):
        return _diff_flat(_flatten_dataclass(old), _flatten_dataclass(new))

    if isinstance(old, Mapping) and isinstance(new, Mapping):
        return _diff_flat(dict(old), dict(new))

    if old != new:
        return [PropertyStateChange(property_name=WHOLE_VALUE, old_value=old, new_value=new)]
    return []
