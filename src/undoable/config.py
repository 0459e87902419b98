"""
Process-wide defaults for editable items.

Module-level storage with explicit setter/getter functions. Values are read
once, when an item is constructed; changing a default never affects items
that already exist.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

# None = unbounded history
_default_history_levels: Optional[int] = None


def clamp_history_levels(levels: Optional[int]) -> Optional[int]:
    """Normalize a history depth: None stays unbounded, negatives clamp to 0."""
    if levels is None:
        return None
    return max(0, int(levels))


def set_default_history_levels(levels: Optional[int]) -> None:
    """Set the history depth used by items constructed without one.

    Args:
        levels: Maximum number of undo (and redo) steps to retain.
                None keeps history unbounded; negative values clamp to 0.
    """
    global _default_history_levels
    _default_history_levels = clamp_history_levels(levels)
    logger.debug(f"Default history levels set to {_default_history_levels}")


def get_default_history_levels() -> Optional[int]:
    """Get the history depth used by items constructed without one."""
    return _default_history_levels


def reset_config() -> None:
    """Restore every default to its initial value. For testing only."""
    global _default_history_levels
    _default_history_levels = None
