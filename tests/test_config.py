from pathlib import Path
import textwrap

import pytest

from nogit_mcp.config import (
    DEFAULT_EXCLUDE_DIRS,
    ConfigLoadError,
    NogitSettings,
    SnapshotConfig,
    load_snapshot_config,
)


def write_config(path: Path, body: str) -> Path:
    path.write_text(textwrap.dedent(body).strip() + "\n", encoding="utf-8")
    return path


def test_defaults_when_file_missing(tmp_path: Path) -> None:
    config = load_snapshot_config(tmp_path / "nogit.yaml")

    assert config.enable is True
    assert config.snapshot_interval_minutes == 10
    assert config.max_snapshots == 48
    assert config.snapshot_folder_name == ".nogit"
    assert config.exclude_dirs == DEFAULT_EXCLUDE_DIRS
    assert config.interval_seconds == 600.0


def test_loads_namespaced_camel_case_keys(tmp_path: Path) -> None:
    path = write_config(
        tmp_path / "nogit.yaml",
        """
        nogit:
          enable: false
          snapshotIntervalMinutes: 2
          maxSnapshots: 5
          snapshotFolderName: .history
          excludeDirs:
            - target
            - .git
        """,
    )

    config = load_snapshot_config(path)

    assert config == SnapshotConfig(
        enable=False,
        snapshot_interval_minutes=2,
        max_snapshots=5,
        snapshot_folder_name=".history",
        exclude_dirs=("target", ".git"),
    )


def test_loads_top_level_keys(tmp_path: Path) -> None:
    path = write_config(tmp_path / "nogit.yaml", "maxSnapshots: 3")

    assert load_snapshot_config(path).max_snapshots == 3


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    path = write_config(tmp_path / "nogit.yaml", "")

    assert load_snapshot_config(path) == SnapshotConfig()


@pytest.mark.parametrize(
    "body",
    [
        "maxSnapshots: 0",
        "snapshotIntervalMinutes: 0",
        "snapshotFolderName: a/b",
        "snapshotFolderName: '..'",
        "- just\n- a list",
        "nogit: [1, 2]",
        "maxSnapshots: [unterminated",
    ],
)
def test_invalid_config_raises(tmp_path: Path, body: str) -> None:
    path = write_config(tmp_path / "nogit.yaml", body)

    with pytest.raises(ConfigLoadError):
        load_snapshot_config(path)


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("NOGIT_WORKSPACE", str(tmp_path))
    monkeypatch.setenv("NOGIT_LOG_LEVEL", "debug")
    monkeypatch.setenv("NOGIT_WATCH", "false")
    monkeypatch.delenv("NOGIT_JOURNAL_PATH", raising=False)

    settings = NogitSettings()

    assert settings.workspace == tmp_path
    assert settings.log_level == "DEBUG"
    assert settings.watch is False
    assert settings.journal_path is None
    assert settings.config_path == tmp_path / "nogit.yaml"


def test_settings_reject_unknown_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOGIT_LOG_LEVEL", "chatty")

    with pytest.raises(ValueError):
        NogitSettings()
