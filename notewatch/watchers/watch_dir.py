"""Recursive directory watcher that delivers change events to a listener."""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional

from ..models import ChangeEvent, ChangeKind, RawNotification, WatchState
from .exclusion import DEFAULT_POLICY, ExclusionPolicy
from .registration import RegistrationManager
from .watch_config import WatchDirConfig
from .watch_service import ClosedWatchServiceError, WatchKey, WatchService

logger = logging.getLogger(__name__)

WatchListener = Callable[[str, str], None]


class WatchDir:
    """Watches a notes tree and forwards changes to a listener.

    Features:
    - Initial synchronous registration of the whole tree
    - New subdirectories are registered as soon as they appear
    - Internal directories (metadata, image cache, attachments) are never watched
    - Hidden files are not reported, except the save-timestamp heartbeat
    - Stops by itself once the watched tree no longer exists

    The listener is called as ``listener(kind, path)`` on the watch worker,
    so it should return quickly.

    Usage:
        def on_change(kind: str, path: str) -> None:
            print(kind, path)

        watcher = WatchDir("/path/to/notes", recursive=True, listener=on_change)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        root: str | os.PathLike,
        recursive: bool,
        listener: WatchListener,
        policy: Optional[ExclusionPolicy] = None,
        watch_service: Optional[WatchService] = None,
    ):
        """
        Create the watch service and register the tree.

        Args:
            root: Directory to watch
            recursive: Also watch subdirectories, including new ones
            listener: Called with ``(kind, path)`` for every delivered change
            policy: Exclusion rules (defaults to the notes layout rules)
            watch_service: Service to register with (a new one by default)

        Raises:
            OSError: If the root directory cannot be watched
        """
        self.root = Path(os.path.abspath(os.fspath(root)))
        self.recursive = recursive
        self.listener = listener
        self.policy = policy or DEFAULT_POLICY

        owns_service = watch_service is None
        self.service = watch_service or WatchService()
        self._registry = RegistrationManager(self.service, self.policy)

        try:
            if recursive:
                self._registry.register_all(self.root)
            else:
                self._registry.register(self.root)
        except Exception:
            if owns_service:
                self.service.close()
            raise

        # Log registrations from here on
        self._registry.trace = True

        self._state = WatchState.RUNNING
        self._thread: Optional[threading.Thread] = None

        logger.info(f"WatchDir initialized for {self.root} ({len(self._registry)} directories)")

    @classmethod
    def from_config(cls, config: WatchDirConfig, listener: WatchListener) -> "WatchDir":
        """Create a watcher (and its watch service) from a configuration."""
        service = WatchService(
            use_polling=config.use_polling,
            poll_interval=config.poll_interval,
            max_pending_events=config.max_pending_events,
        )
        try:
            return cls(
                config.root,
                recursive=config.recursive,
                listener=listener,
                policy=config.exclusion,
                watch_service=service,
            )
        except Exception:
            service.close()
            raise

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == WatchState.RUNNING

    @property
    def registered_paths(self) -> dict[WatchKey, str]:
        """Snapshot of the watch registry (key -> directory)."""
        return self._registry.registered_paths

    @property
    def watched_directories(self) -> set[str]:
        return set(self._registry.registered_paths.values())

    def start(self) -> None:
        """Run the dispatch loop on a dedicated worker thread."""
        if self._thread is not None:
            logger.warning(f"WatchDir for {self.root} is already started")
            return

        self._thread = threading.Thread(
            target=self.process_events,
            name=f"watch-dir:{self.root.name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel watching and wait for the worker to exit."""
        self.service.close()
        if self._thread is None:
            self._state = WatchState.TERMINATED
        self.join(timeout)
        logger.info(f"WatchDir for {self.root} stopped")

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the worker thread to finish.

        Returns:
            True if the worker is no longer running
        """
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            return not thread.is_alive()
        return not self.is_running

    def __enter__(self) -> "WatchDir":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def process_events(self) -> None:
        """
        Dispatch events until the tree is gone or watching is cancelled.

        Blocks the calling thread. Returns normally in both cases.
        """
        logger.info(f"Watching {self.root} for changes")

        try:
            while True:
                try:
                    key = self.service.take()
                except ClosedWatchServiceError:
                    logger.info(f"Watching cancelled: {self.root}")
                    break

                directory = self._registry.lookup(key)
                if directory is None:
                    if key.is_valid:
                        logger.error(f"WatchKey not recognized: {key!r}")
                    else:
                        logger.debug(f"Skipping replaced key: {key!r}")
                    continue

                for notification in key.poll_events():
                    self._handle_notification(directory, notification)

                if not key.reset():
                    self._registry.unregister(key)
                    logger.info(f"Directory no longer accessible: {directory}")

                    if len(self._registry) == 0:
                        logger.info(f"All watched directories are gone, stopping: {self.root}")
                        break
        finally:
            self._state = WatchState.TERMINATED
            self.service.close()

    def _handle_notification(self, directory: str, notification: RawNotification) -> None:
        """Deliver one notification and extend the watch to new directories."""
        if notification.is_overflow:
            logger.warning(f"Events lost for {directory} (overflow x{notification.count})")
            return

        try:
            child = os.path.join(directory, notification.name)
            if self.policy.accepts_file(child):
                self._emit_event(ChangeEvent(kind=notification.kind, path=child))
        except (OSError, ValueError) as e:
            logger.error(f"Cannot resolve {notification.name!r} in {directory}: {e}", exc_info=True)
            return

        if (
            self.recursive
            and notification.kind == ChangeKind.CREATED
            and os.path.isdir(child)
            and not os.path.islink(child)
        ):
            try:
                self._registry.register_all(child)
            except OSError as e:
                logger.warning(f"Failed to watch new directory {child}: {e}")

    def _emit_event(self, event: ChangeEvent) -> None:
        """Call the listener with a change event."""
        logger.debug(f"Change event: {event.kind.value} {event.path}")

        try:
            self.listener(*event.as_args())
        except Exception as e:
            logger.error(f"Error in watch listener for {event.path}: {e}", exc_info=True)
