"""Per-directory watch service built on watchdog observers.

Each registered directory gets a :class:`WatchKey`, but only top-level
directories get an OS watch: one recursive watchdog watch per tree, whose
events are routed to the key of the directory they happened in. A signalled
key is queued once on the service until the consumer resets it, giving a
single readiness queue for every registered directory.
"""

import logging
import os
import queue
import threading
from typing import Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from ..models import ChangeKind, RawNotification

logger = logging.getLogger(__name__)

DEFAULT_KINDS = frozenset({ChangeKind.CREATED, ChangeKind.MODIFIED})
DEFAULT_MAX_PENDING_EVENTS = 512

_CLOSED = object()


class ClosedWatchServiceError(RuntimeError):
    """Raised when a watch service is used after (or closed during) a wait."""


class WatchKey:
    """
    Token for one directory registration.

    A key is *ready* until its first notification arrives, then *signalled*
    and queued on its service. It stays signalled until :meth:`reset`.
    Once the directory is deleted or moved away the key becomes invalid.
    """

    def __init__(
        self,
        service: "WatchService",
        path: str,
        kinds: Iterable[ChangeKind],
        max_pending_events: int = DEFAULT_MAX_PENDING_EVENTS,
    ):
        self._service = service
        self.path = path
        self.kinds = frozenset(kinds)
        self.max_pending_events = max_pending_events

        self._events: list[RawNotification] = []
        self._signalled = False
        self._valid = True
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        state = "valid" if self._valid else "invalid"
        return f"WatchKey({self.path!r}, {state})"

    @property
    def is_valid(self) -> bool:
        return self._valid

    @property
    def is_signalled(self) -> bool:
        return self._signalled

    def signal_event(self, kind: ChangeKind, name: str = "") -> None:
        """
        Queue a notification for this key.

        Repeats of the last pending notification are coalesced into its count.
        When the pending list is full the notification is replaced by a single
        overflow marker.
        """
        with self._lock:
            if not self._valid:
                return
            if kind != ChangeKind.OVERFLOW and kind not in self.kinds:
                return

            if self._events:
                last = self._events[-1]
                if last.is_overflow or (last.kind == kind and last.name == name):
                    self._events[-1] = last.model_copy(update={"count": last.count + 1})
                    return
                if len(self._events) >= self.max_pending_events:
                    kind, name = ChangeKind.OVERFLOW, ""

            self._events.append(RawNotification(kind=kind, name=name))
            self._signal()

    def poll_events(self) -> list[RawNotification]:
        """Remove and return all pending notifications, oldest first."""
        with self._lock:
            events, self._events = self._events, []
            return events

    def reset(self) -> bool:
        """
        Re-arm the key so later notifications signal it again.

        Returns:
            False if the directory is no longer accessible
        """
        with self._lock:
            if self._valid and not os.path.isdir(self.path):
                self._valid = False
            if not self._valid:
                return False

            if self._signalled:
                if self._events:
                    self._service._enqueue(self)
                else:
                    self._signalled = False
            return True

    def cancel(self) -> None:
        """Stop watching the directory and invalidate the key."""
        self._service._cancel(self)

    def invalidate(self, signal: bool = True) -> None:
        """Mark the key invalid, signalling it so the consumer notices."""
        with self._lock:
            if not self._valid:
                return
            self._valid = False
            if signal:
                self._signal()

    def _signal(self) -> None:
        # Caller holds self._lock
        if not self._signalled:
            self._signalled = True
            self._service._enqueue(self)


class _TreeEventHandler(FileSystemEventHandler):
    """
    Routes watchdog events from a recursive watch to per-directory keys.

    An event belongs to the key of the directory containing the entry.
    Events in directories without a live key (excluded, or not registered
    yet) are dropped.
    """

    def __init__(self, service: "WatchService"):
        super().__init__()
        self._service = service

    def _key_for(self, path) -> Optional[WatchKey]:
        return self._service._keys_by_path.get(os.fsdecode(path))

    def _entry(self, path) -> tuple[Optional[WatchKey], str]:
        parent, name = os.path.split(os.fsdecode(path))
        if not name:
            return None, ""
        return self._key_for(parent), name

    def on_created(self, event: FileSystemEvent) -> None:
        key, name = self._entry(event.src_path)
        if key is not None:
            key.signal_event(ChangeKind.CREATED, name)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory modifications only echo changes to their entries
        if event.is_directory:
            return
        key, name = self._entry(event.src_path)
        if key is not None:
            key.signal_event(ChangeKind.MODIFIED, name)

    def on_moved(self, event: FileSystemEvent) -> None:
        moved = self._key_for(event.src_path)
        if moved is not None:
            logger.debug(f"Watched directory moved away: {moved.path}")
            moved.invalidate()

        # Moving an entry in shows up as a creation of the destination
        key, name = self._entry(event.dest_path)
        if key is not None:
            key.signal_event(ChangeKind.CREATED, name)

    def on_deleted(self, event: FileSystemEvent) -> None:
        deleted = self._key_for(event.src_path)
        if deleted is not None:
            logger.debug(f"Watched directory deleted: {deleted.path}")
            deleted.invalidate()


def _is_within(path: str, root: str) -> bool:
    return os.path.commonpath([path, root]) == root


class WatchService:
    """
    Multiplexes per-directory keys into one readiness queue.

    Only top-level directories get an OS watch: one recursive watchdog watch
    covers each of them, and its events are routed to the keys of the
    registered directories below it.

    Usage:
        service = WatchService()
        key = service.register("/notes")

        while True:
            key = service.take()
            for notification in key.poll_events():
                ...
            if not key.reset():
                key.cancel()

        service.close()
    """

    def __init__(
        self,
        use_polling: bool = False,
        poll_interval: float = 1.0,
        max_pending_events: int = DEFAULT_MAX_PENDING_EVENTS,
    ):
        if max_pending_events < 1:
            raise ValueError(f"max_pending_events must be positive, got {max_pending_events}")

        self.use_polling = use_polling
        self.max_pending_events = max_pending_events

        if use_polling:
            self._observer = PollingObserver(timeout=poll_interval)
            logger.debug(f"Using polling observer (interval: {poll_interval}s)")
        else:
            self._observer = Observer()
            logger.debug("Using OS event observer")
        self._observer.daemon = True

        self._handler = _TreeEventHandler(self)
        self._ready: queue.Queue = queue.Queue()
        self._keys_by_path: dict[str, WatchKey] = {}
        self._roots: dict[str, object] = {}  # path -> watchdog ObservedWatch
        # Never held while calling into the observer: its thread dispatches
        # events under the observer lock.
        self._lock = threading.Lock()
        self._closed = False

        self._observer.start()

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def watch_count(self) -> int:
        """Number of OS-level watches (one per top-level directory)."""
        return len(self._roots)

    def register(self, path: str | os.PathLike, kinds: Iterable[ChangeKind] = DEFAULT_KINDS) -> WatchKey:
        """
        Watch a single directory (not its subdirectories).

        Args:
            path: Directory to watch
            kinds: Notification kinds to queue on the key

        Returns:
            The key for the directory. A directory that is already watched
            keeps its key.

        Raises:
            FileNotFoundError: If the directory does not exist
            NotADirectoryError: If the path is not a directory
            OSError: If the underlying watch cannot be created
            ClosedWatchServiceError: If the service is closed
        """
        path = os.path.abspath(os.fspath(path))
        if self._closed:
            raise ClosedWatchServiceError("Watch service is closed")
        if not os.path.exists(path):
            raise FileNotFoundError(f"Directory not found: {path}")
        if not os.path.isdir(path):
            raise NotADirectoryError(f"Not a directory: {path}")

        stale_watch = None
        with self._lock:
            existing = self._keys_by_path.get(path)
            if existing is not None:
                if existing.is_valid:
                    existing.kinds = frozenset(kinds)
                    return existing
                # The directory was replaced; its old watch (if any) is dead
                stale_watch = self._roots.pop(path, None)

            key = WatchKey(self, path, kinds, self.max_pending_events)
            self._keys_by_path[path] = key
            covered = any(_is_within(path, root) for root in self._roots)

        if stale_watch is not None:
            self._unschedule(stale_watch, path)

        if not covered:
            try:
                self._add_root(path)
            except OSError:
                with self._lock:
                    if self._keys_by_path.get(path) is key:
                        del self._keys_by_path[path]
                raise

        return key

    def take(self, timeout: Optional[float] = None) -> Optional[WatchKey]:
        """
        Wait for a signalled key.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            The next signalled key, or None if the timeout expired

        Raises:
            ClosedWatchServiceError: If the service is closed before or during the wait
        """
        if self._closed:
            raise ClosedWatchServiceError("Watch service is closed")

        try:
            key = self._ready.get(timeout=timeout)
        except queue.Empty:
            return None

        if key is _CLOSED:
            # Leave the marker for any other waiter
            self._ready.put(_CLOSED)
            raise ClosedWatchServiceError("Watch service is closed")
        return key

    def close(self, timeout: Optional[float] = 10) -> None:
        """Stop the observer, invalidate every key and wake blocked waiters."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            keys = list(self._keys_by_path.values())
            self._keys_by_path.clear()
            self._roots.clear()

        for key in keys:
            key.invalidate(signal=False)
        self._ready.put(_CLOSED)

        self._observer.stop()
        if self._observer.is_alive() and threading.current_thread() is not self._observer:
            self._observer.join(timeout=timeout)

        logger.debug(f"Watch service closed ({len(keys)} keys released)")

    def __enter__(self) -> "WatchService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _add_root(self, path: str) -> None:
        """Schedule a recursive watch for ``path``, absorbing roots below it."""
        watch = self._observer.schedule(self._handler, path, recursive=True)

        with self._lock:
            nested = {
                root: nested_watch
                for root, nested_watch in self._roots.items()
                if _is_within(root, path)
            }
            for root in nested:
                del self._roots[root]
            self._roots[path] = watch

        for root, nested_watch in nested.items():
            self._unschedule(nested_watch, root)
        logger.debug(f"Watching tree: {path}")

    def _enqueue(self, key: WatchKey) -> None:
        if not self._closed:
            self._ready.put(key)

    def _cancel(self, key: WatchKey) -> None:
        key.invalidate(signal=False)
        watch = None
        with self._lock:
            if self._closed or self._keys_by_path.get(key.path) is not key:
                return
            del self._keys_by_path[key.path]
            watch = self._roots.pop(key.path, None)

        if watch is not None:
            self._unschedule(watch, key.path)
            self._rewatch_orphans(key.path)

    def _rewatch_orphans(self, path: str) -> None:
        """Give live keys below a released root a watch of their own."""
        with self._lock:
            orphans = sorted(
                other
                for other, other_key in self._keys_by_path.items()
                if other_key.is_valid and _is_within(other, path)
            )
        for orphan in orphans:
            with self._lock:
                if self._closed or any(_is_within(orphan, root) for root in self._roots):
                    continue
                orphan_key = self._keys_by_path.get(orphan)
            if orphan_key is None:
                continue
            try:
                self._add_root(orphan)
            except OSError as e:
                logger.warning(f"Lost watch on {orphan}: {e}")
                orphan_key.invalidate()

    def _unschedule(self, watch, path: str) -> None:
        try:
            self._observer.unschedule(watch)
        except KeyError:
            logger.debug(f"Watch already removed for {path}")
