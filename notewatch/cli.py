"""Command line runner: watch a notes tree and print change events."""

import argparse
import logging
import os
import sys
from pathlib import Path

from .watchers import WatchDir, WatchDirConfig, load_config_from_yaml

logger = logging.getLogger(__name__)


def print_event(kind: str, path: str) -> None:
    print(f"{kind}\t{path}", flush=True)


def build_config(args: argparse.Namespace) -> WatchDirConfig | None:
    """Build the watch configuration from arguments, falling back to the config file."""
    if args.root:
        config = WatchDirConfig(root=Path(args.root).expanduser())
    else:
        config_path = Path(args.config or os.environ.get("NOTEWATCH_CONFIG", "config/notewatch.yaml"))
        config = load_config_from_yaml(config_path)
        if config is None:
            return None

    if args.no_recursive:
        config.recursive = False
    if args.polling:
        config.use_polling = True
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Watch a notes directory for changes")
    parser.add_argument("root", nargs="?", help="Directory to watch (default: from config file)")
    parser.add_argument("--config", help="YAML config file (default: $NOTEWATCH_CONFIG)")
    parser.add_argument("--no-recursive", action="store_true", help="Only watch the root directory")
    parser.add_argument("--polling", action="store_true", help="Use the polling observer")
    parser.add_argument("--log-level", default="info", help="Log level")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the watcher until the tree disappears or the user interrupts."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = build_config(args)
    if config is None:
        logger.error("No directory to watch: pass a root or provide a config file")
        return 2

    try:
        watcher = WatchDir.from_config(config, print_event)
    except OSError as e:
        logger.error(f"Cannot watch {config.root}: {e}")
        return 1

    watcher.start()
    try:
        # Short joins keep Ctrl-C responsive
        while not watcher.join(timeout=0.5):
            pass
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        watcher.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
