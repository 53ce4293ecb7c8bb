"""Tests for watch configuration and YAML loading."""

from pathlib import Path

import yaml

from notewatch.watchers import (
    ExclusionPolicy,
    WatchDirConfig,
    load_config_from_yaml,
    save_config_to_yaml,
    write_example_config,
)
from notewatch import cli


class TestWatchDirConfig:
    """Tests for the WatchDirConfig dataclass."""

    def test_defaults(self):
        config = WatchDirConfig(root=Path("/notes"))

        assert config.recursive
        assert not config.use_polling
        assert config.max_pending_events == 512
        assert config.exclusion == ExclusionPolicy()

    def test_from_dict(self):
        config = WatchDirConfig.from_dict({
            "root": "/notes",
            "recursive": False,
            "exclusion": {"always_visible": [".lastSaveTs", ".keep"]},
        })

        assert config.root == Path("/notes")
        assert not config.recursive
        assert config.exclusion.accepts_file("/notes/.keep")


class TestYamlLoading:
    """Tests for load/save of YAML configuration files."""

    def test_save_and_load(self, tmp_path):
        config = WatchDirConfig(root=tmp_path / "notes", use_polling=True, poll_interval=0.5)
        path = tmp_path / "config" / "notewatch.yaml"

        save_config_to_yaml(config, path)
        loaded = load_config_from_yaml(path)

        assert loaded == config

    def test_missing_file(self, tmp_path):
        assert load_config_from_yaml(tmp_path / "missing.yaml") is None

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("watch: [unclosed")

        assert load_config_from_yaml(path) is None

    def test_missing_root(self, tmp_path):
        path = tmp_path / "noroot.yaml"
        path.write_text(yaml.dump({"watch": {"recursive": True}}))

        assert load_config_from_yaml(path) is None

    def test_root_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NOTES_HOME", str(tmp_path))
        path = tmp_path / "env.yaml"
        path.write_text(yaml.dump({"watch": {"root": "$NOTES_HOME/notes"}}))

        config = load_config_from_yaml(path)

        assert config.root == tmp_path / "notes"

    def test_example_config_loads(self, tmp_path):
        path = tmp_path / "example.yaml"
        write_example_config(path)

        config = load_config_from_yaml(path)

        assert config is not None
        assert config.recursive
        assert config.exclusion == ExclusionPolicy()


class TestCli:
    """Tests for the command line runner setup."""

    def test_no_root_and_no_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NOTEWATCH_CONFIG", str(tmp_path / "missing.yaml"))

        assert cli.main([]) == 2

    def test_missing_root_directory(self, tmp_path):
        assert cli.main([str(tmp_path / "missing")]) == 1

    def test_flags_override_config(self, tmp_path):
        path = tmp_path / "notewatch.yaml"
        save_config_to_yaml(WatchDirConfig(root=tmp_path), path)
        args = cli.build_parser().parse_args(["--config", str(path), "--no-recursive", "--polling"])

        config = cli.build_config(args)

        assert config.root == tmp_path
        assert not config.recursive
        assert config.use_polling

    def test_print_event(self, capsys):
        cli.print_event("Modified", "/notes/draft.txt")

        assert capsys.readouterr().out == "Modified\t/notes/draft.txt\n"
