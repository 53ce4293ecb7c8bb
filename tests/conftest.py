"""Shared fixtures: an in-memory watch service and a recording listener."""

import os
import queue
import threading
import time

import pytest

from notewatch.models import ChangeKind, RawNotification
from notewatch.watchers import ClosedWatchServiceError


class FakeWatchKey:
    """Key of the fake service; notifications are queued by the test."""

    def __init__(self, path: str):
        self.path = path
        self.events: list[RawNotification] = []
        self.valid = True
        self.cancelled = False
        self.resets = 0

    @property
    def is_valid(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        return f"FakeWatchKey({self.path!r})"

    def poll_events(self) -> list[RawNotification]:
        events, self.events = self.events, []
        return events

    def reset(self) -> bool:
        self.resets += 1
        return self.valid

    def cancel(self) -> None:
        self.cancelled = True
        self.valid = False


class FakeWatchService:
    """
    Scripted stand-in for WatchService.

    ``take()`` hands out queued keys and behaves like a cancelled wait once
    the script is exhausted, so ``process_events`` returns on its own.
    """

    def __init__(self, fail_on: set[str] | None = None):
        self.keys: dict[str, FakeWatchKey] = {}
        self.registrations: list[str] = []
        self.fail_on = set(fail_on or ())
        self.closed = False
        self._ready: queue.Queue = queue.Queue()

    def register(self, path, kinds=None) -> FakeWatchKey:
        path = os.fspath(path)
        if path in self.fail_on:
            raise PermissionError(f"Permission denied: {path}")

        self.registrations.append(path)
        key = self.keys.get(path)
        if key is None or not key.valid:
            key = FakeWatchKey(path)
            self.keys[path] = key
        return key

    def take(self, timeout=None) -> FakeWatchKey:
        if self.closed:
            raise ClosedWatchServiceError("closed")
        while True:
            try:
                item = self._ready.get_nowait()
            except queue.Empty:
                raise ClosedWatchServiceError("script exhausted")
            if not callable(item):
                return item
            item()

    def close(self) -> None:
        self.closed = True

    # Test helpers

    def emit(self, directory, kind: ChangeKind, name: str = "") -> FakeWatchKey:
        """Queue a notification for a registered directory and signal its key."""
        key = self.keys[os.fspath(directory)]
        key.events.append(RawNotification(kind=kind, name=name))
        self._ready.put(key)
        return key

    def signal(self, key) -> None:
        self._ready.put(key)

    def then(self, step) -> None:
        """Run ``step()`` when the loop reaches this point of the script."""
        self._ready.put(step)

    def invalidate(self, directory) -> FakeWatchKey:
        key = self.keys[os.fspath(directory)]
        key.valid = False
        self._ready.put(key)
        return key


class RecordingListener:
    """Listener that records ``(kind, path)`` calls from any thread."""

    def __init__(self):
        self.events: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def __call__(self, kind: str, path: str) -> None:
        with self._lock:
            self.events.append((kind, path))

    def paths(self) -> list[str]:
        with self._lock:
            return [path for _, path in self.events]

    def wait_for(self, path, timeout: float = 5.0) -> bool:
        path = os.fspath(path)
        return wait_until(lambda: path in self.paths(), timeout)


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll a predicate until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fake_service():
    return FakeWatchService()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def notes_tree(tmp_path):
    """A notes directory with regular folders and internal ones."""
    root = tmp_path / "notes"
    for sub in [
        "inbox",
        "projects/alpha",
        "projects/alpha/alpha.attachments",
        ".meta/index",
        "photos/.imagecache",
    ]:
        (root / sub).mkdir(parents=True)
    (root / "inbox" / "draft.txt").write_text("draft")
    return root
