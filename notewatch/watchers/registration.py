"""Registration manager - keeps the watch registry in step with the tree."""

import logging
import os
from typing import Iterable, Optional

from ..models import ChangeKind
from .exclusion import DEFAULT_POLICY, ExclusionPolicy
from .watch_service import DEFAULT_KINDS, WatchKey, WatchService

logger = logging.getLogger(__name__)


class RegistrationManager:
    """
    Registers directories with a watch service and tracks which key
    belongs to which directory.

    The registry is only touched by one thread at a time: the constructing
    thread during the initial scan, then the dispatch worker.
    """

    def __init__(
        self,
        service: WatchService,
        policy: ExclusionPolicy = DEFAULT_POLICY,
        kinds: Iterable[ChangeKind] = DEFAULT_KINDS,
    ):
        self.service = service
        self.policy = policy
        self.kinds = frozenset(kinds)
        self.trace = False

        self._keys: dict[WatchKey, str] = {}
        self._key_for_path: dict[str, WatchKey] = {}

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: WatchKey) -> bool:
        return key in self._keys

    @property
    def registered_paths(self) -> dict[WatchKey, str]:
        """Snapshot of the registry."""
        return dict(self._keys)

    def lookup(self, key: WatchKey) -> Optional[str]:
        return self._keys.get(key)

    def register(self, directory: str | os.PathLike) -> Optional[WatchKey]:
        """
        Register one directory, unless the exclusion policy rejects it.

        Args:
            directory: Directory to watch

        Returns:
            The directory's key, or None if the directory is excluded

        Raises:
            OSError: If the watch service cannot watch the directory
        """
        directory = os.path.abspath(os.fspath(directory))
        if not self.policy.accepts_directory(directory):
            logger.debug(f"Skipping excluded directory: {directory}")
            return None

        key = self.service.register(directory, self.kinds)
        prev = self._keys.get(key)

        stale = self._key_for_path.get(directory)
        if stale is not None and stale is not key:
            # The service replaced an invalidated key for this directory
            self._keys.pop(stale, None)
            stale.cancel()
            logger.debug(f"replaced stale key for {directory}")

        log = logger.info if self.trace else logger.debug
        if prev is None:
            log(f"register: {directory}")
        elif prev != directory:
            log(f"update: {prev} -> {directory}")
            if self._key_for_path.get(prev) is key:
                del self._key_for_path[prev]

        self._keys[key] = directory
        self._key_for_path[directory] = key
        return key

    def register_all(self, start: str | os.PathLike) -> int:
        """
        Register a directory and every directory below it.

        Symbolic links are not followed. Failures below ``start`` are logged
        and leave only that directory unwatched.

        Args:
            start: Root of the subtree

        Returns:
            Number of directories registered

        Raises:
            OSError: If ``start`` itself cannot be registered
        """
        start = os.path.abspath(os.fspath(start))
        count = 1 if self.register(start) is not None else 0

        def on_walk_error(error: OSError) -> None:
            logger.warning(f"Cannot scan {error.filename}: {error}")

        for dirpath, dirnames, _ in os.walk(start, onerror=on_walk_error):
            for name in dirnames:
                child = os.path.join(dirpath, name)
                if os.path.islink(child):
                    continue
                try:
                    if self.register(child) is not None:
                        count += 1
                except OSError as e:
                    logger.warning(f"Failed to register {child}: {e}")

        return count

    def unregister(self, key: WatchKey) -> Optional[str]:
        """Drop a key from the registry and cancel its watch."""
        directory = self._keys.pop(key, None)
        if directory is not None and self._key_for_path.get(directory) is key:
            del self._key_for_path[directory]
        key.cancel()
        if directory is not None:
            logger.debug(f"unregister: {directory}")
        return directory
