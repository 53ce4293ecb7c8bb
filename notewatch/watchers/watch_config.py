"""Configuration for watching a notes directory."""

from dataclasses import dataclass, field
from pathlib import Path

from .exclusion import ExclusionPolicy
from .watch_service import DEFAULT_MAX_PENDING_EVENTS


@dataclass
class WatchDirConfig:
    """Configuration for a single watched tree.

    Attributes:
        root: Directory to watch
        recursive: Whether to watch subdirectories (and new ones as they appear)
        use_polling: Use a polling observer instead of OS notifications
        poll_interval: Polling interval in seconds (polling observer only)
        max_pending_events: Notifications held per directory before overflow
        exclusion: Rules for excluded directories and hidden entries
    """
    root: Path
    recursive: bool = True
    use_polling: bool = False
    poll_interval: float = 1.0
    max_pending_events: int = DEFAULT_MAX_PENDING_EVENTS
    exclusion: ExclusionPolicy = field(default_factory=ExclusionPolicy)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "root": str(self.root),
            "recursive": self.recursive,
            "use_polling": self.use_polling,
            "poll_interval": self.poll_interval,
            "max_pending_events": self.max_pending_events,
            "exclusion": self.exclusion.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WatchDirConfig":
        """Create from dictionary."""
        return cls(
            root=Path(data["root"]),
            recursive=data.get("recursive", True),
            use_polling=data.get("use_polling", False),
            poll_interval=data.get("poll_interval", 1.0),
            max_pending_events=data.get("max_pending_events", DEFAULT_MAX_PENDING_EVENTS),
            exclusion=ExclusionPolicy.from_dict(data.get("exclusion") or {}),
        )
