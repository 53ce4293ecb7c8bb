"""Exclusion rules for watched directories and delivered events."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ExclusionPolicy:
    """Decides which paths take part in watching and event delivery.

    Directories are excluded from registration when their path contains one
    of ``excluded_markers`` (internal metadata or image caches) or ends with
    one of ``excluded_suffixes`` (attachment folders).

    Entries are excluded from event delivery when their final path segment
    starts with ``hidden_prefix``, except for names in ``always_visible``
    (the save-timestamp heartbeat file).

    Attributes:
        excluded_markers: Substrings that exclude a directory anywhere in its path
        excluded_suffixes: Suffixes that exclude a directory
        hidden_prefix: Prefix marking hidden entries
        always_visible: Hidden names that are delivered anyway
    """
    excluded_markers: tuple[str, ...] = (".meta", ".imagecache")
    excluded_suffixes: tuple[str, ...] = (".attachments",)
    hidden_prefix: str = "."
    always_visible: tuple[str, ...] = (".lastSaveTs",)

    def accepts_directory(self, path: str | os.PathLike) -> bool:
        """Check if a directory may be registered for watching."""
        path_str = os.fspath(path)
        if any(marker in path_str for marker in self.excluded_markers):
            return False
        return not path_str.endswith(self.excluded_suffixes)

    def accepts_file(self, path: str | os.PathLike) -> bool:
        """Check if an event for this entry may be delivered."""
        name = os.path.basename(os.fspath(path))
        if name in self.always_visible:
            return True
        return not (self.hidden_prefix and name.startswith(self.hidden_prefix))

    def accepts(self, path: str | os.PathLike, is_directory: bool = False) -> bool:
        if is_directory:
            return self.accepts_directory(path)
        return self.accepts_file(path)

    def to_dict(self) -> dict:
        return {
            "excluded_markers": list(self.excluded_markers),
            "excluded_suffixes": list(self.excluded_suffixes),
            "hidden_prefix": self.hidden_prefix,
            "always_visible": list(self.always_visible),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExclusionPolicy":
        """Create from dictionary, keeping defaults for missing keys."""
        defaults = cls()
        return cls(
            excluded_markers=tuple(data.get("excluded_markers", defaults.excluded_markers)),
            excluded_suffixes=tuple(data.get("excluded_suffixes", defaults.excluded_suffixes)),
            hidden_prefix=data.get("hidden_prefix", defaults.hidden_prefix),
            always_visible=tuple(data.get("always_visible", defaults.always_visible)),
        )


DEFAULT_POLICY = ExclusionPolicy()
