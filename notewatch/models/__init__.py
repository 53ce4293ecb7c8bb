"""Core data models for notewatch."""

from .enums import ChangeKind, WatchState
from .event import ChangeEvent, RawNotification

__all__ = [
    "ChangeKind",
    "WatchState",
    "ChangeEvent",
    "RawNotification",
]
