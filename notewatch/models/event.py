"""Event models - raw notifications and delivered change events."""

from pydantic import BaseModel, ConfigDict

from .enums import ChangeKind


class RawNotification(BaseModel):
    """
    A notification queued on a watch key, before it is resolved.
    
    Names are relative to the directory the key watches.
    """
    
    model_config = ConfigDict(frozen=True)
    
    kind: ChangeKind
    """What happened to the entry."""
    
    name: str = ""
    """Entry name relative to the watched directory (empty for overflow)."""
    
    count: int = 1
    """How many identical notifications were coalesced into this one."""
    
    @property
    def is_overflow(self) -> bool:
        return self.kind == ChangeKind.OVERFLOW


class ChangeEvent(BaseModel):
    """A change delivered to the listener: what happened, and to which path."""
    
    model_config = ConfigDict(frozen=True)
    
    kind: ChangeKind
    """Kind of change."""
    
    path: str
    """Absolute path of the changed entry."""
    
    def as_args(self) -> tuple[str, str]:
        """Listener call arguments: ``(kind, path)``."""
        return self.kind.value, self.path
