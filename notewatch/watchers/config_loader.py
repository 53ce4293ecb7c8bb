"""Load and save watch configuration as YAML."""

import logging
import os
from pathlib import Path
from typing import Optional
import yaml

from .watch_config import WatchDirConfig

logger = logging.getLogger(__name__)


def load_config_from_yaml(config_path: Path) -> Optional[WatchDirConfig]:
    """
    Load a watch configuration from a YAML file.

    Expected format:

    ```yaml
    watch:
      root: ~/Notes
      recursive: true
      use_polling: false
      exclusion:
        excluded_markers:
          - .meta
          - .imagecache
        excluded_suffixes:
          - .attachments
        always_visible:
          - .lastSaveTs
    ```

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        The configuration, or None if the file is missing or invalid
    """
    if not config_path.exists():
        logger.warning(f"Watch config file not found: {config_path}")
        return None

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading watch config: {e}")
        return None

    watch_data = data.get("watch") if isinstance(data, dict) else None
    if not isinstance(watch_data, dict):
        logger.warning(f"No 'watch' section in {config_path}")
        return None

    try:
        config = _parse_watch_config(watch_data)
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Error parsing watch config: {e}")
        return None

    if config:
        logger.info(f"Loaded watch configuration for {config.root} from {config_path}")
    return config


def _parse_watch_config(data: dict) -> Optional[WatchDirConfig]:
    """Parse the watch section, expanding ``~`` and environment variables in the root."""
    if "root" not in data:
        logger.warning("Watch config missing required 'root' field")
        return None

    root = Path(os.path.expandvars(os.path.expanduser(str(data["root"]))))
    return WatchDirConfig.from_dict({**data, "root": root})


def save_config_to_yaml(config: WatchDirConfig, config_path: Path) -> None:
    """
    Save a watch configuration to a YAML file.

    Args:
        config: Configuration to save
        config_path: Path to write the YAML file
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump({"watch": config.to_dict()}, f, default_flow_style=False, allow_unicode=True)

    logger.info(f"Saved watch configuration to {config_path}")


# Example configuration template
EXAMPLE_CONFIG = """# notewatch configuration
#
# The watched tree is scanned on startup; new subdirectories are picked up
# as they are created.

watch:
  root: ~/Notes
  recursive: true

  # Fall back to polling on filesystems without change notifications
  # (network shares, some container mounts)
  use_polling: false
  poll_interval: 1.0

  # Notifications kept per directory before they are reported as lost
  max_pending_events: 512

  exclusion:
    # Directories whose path contains one of these are never watched
    excluded_markers:
      - .meta
      - .imagecache
    # Directories ending with one of these are never watched
    excluded_suffixes:
      - .attachments
    # Entries starting with this prefix are not reported...
    hidden_prefix: "."
    # ...except these
    always_visible:
      - .lastSaveTs
"""


def write_example_config(config_path: Path) -> None:
    """Write an example configuration file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(EXAMPLE_CONFIG)
    logger.info(f"Wrote example watch configuration to {config_path}")
