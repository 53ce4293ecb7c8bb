"""Recursive directory watching for notes trees."""

from .exclusion import ExclusionPolicy, DEFAULT_POLICY
from .watch_service import WatchService, WatchKey, ClosedWatchServiceError
from .registration import RegistrationManager
from .watch_config import WatchDirConfig
from .watch_dir import WatchDir, WatchListener
from .config_loader import load_config_from_yaml, save_config_to_yaml, write_example_config

__all__ = [
    "ExclusionPolicy",
    "DEFAULT_POLICY",
    "WatchService",
    "WatchKey",
    "ClosedWatchServiceError",
    "RegistrationManager",
    "WatchDirConfig",
    "WatchDir",
    "WatchListener",
    # Config loading
    "load_config_from_yaml",
    "save_config_to_yaml",
    "write_example_config",
]
