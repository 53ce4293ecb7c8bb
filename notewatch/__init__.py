"""notewatch - recursive change watching for notes directories."""

from .models import ChangeEvent, ChangeKind, WatchState
from .watchers import (
    ClosedWatchServiceError,
    ExclusionPolicy,
    WatchDir,
    WatchDirConfig,
    WatchService,
)

__version__ = "0.1.0"

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "WatchState",
    "ClosedWatchServiceError",
    "ExclusionPolicy",
    "WatchDir",
    "WatchDirConfig",
    "WatchService",
]
