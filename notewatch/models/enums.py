"""Enumerations for notewatch."""

from enum import Enum


class ChangeKind(str, Enum):
    """Kind of a change notification or delivered change event."""
    
    CREATED = "Created"
    """An entry appeared in a watched directory (created or moved in)."""
    
    MODIFIED = "Modified"
    """An entry of a watched directory was written to."""
    
    OVERFLOW = "Overflow"
    """Notifications for a directory were dropped because its queue was full."""


class WatchState(str, Enum):
    """State of the event dispatch loop."""
    
    RUNNING = "running"
    """Initial registration finished; events are being dispatched."""
    
    TERMINATED = "terminated"
    """The loop exited (tree gone or watching cancelled)."""
