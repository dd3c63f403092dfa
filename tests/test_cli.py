from __future__ import annotations

import importlib.util
import json
from pathlib import Path

import pytest


def _load_diag(name: str):
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "nogit_diag.py"
    spec = importlib.util.spec_from_file_location(name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("NOGIT_WORKSPACE", "NOGIT_JOURNAL_PATH", "NOGIT_CONFIG_FILE"):
        monkeypatch.delenv(key, raising=False)


def _write(root: Path, rel: str, content: str = "data") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_capture_copies_files_and_reports_skipped(tmp_path: Path, capsys) -> None:
    diag = _load_diag("nogit_diag_capture_module")
    source = _write(tmp_path, "src/app.py", "print('hi')\n")
    missing = tmp_path / "gone.txt"

    diag.main(["--workspace", str(tmp_path), "capture", str(source), str(missing)])

    payload = json.loads(capsys.readouterr().out)
    assert payload["files"] == ["src/app.py"]
    assert payload["skipped"] == ["gone.txt"]
    assert payload["pruned"] == []
    stored = tmp_path / ".nogit" / "snapshots" / payload["timestamp"] / "src" / "app.py"
    assert stored.read_text(encoding="utf-8") == "print('hi')\n"


def test_capture_ignores_excluded_paths(tmp_path: Path, capsys) -> None:
    diag = _load_diag("nogit_diag_capture_excluded_module")
    dependency = _write(tmp_path, "node_modules/dep/index.js")

    diag.main(["--workspace", str(tmp_path), "capture", str(dependency)])

    assert capsys.readouterr().out.strip() == "Nothing to capture"
    assert not (tmp_path / ".nogit").exists()


def test_list_outputs_newest_first(tmp_path: Path, capsys) -> None:
    diag = _load_diag("nogit_diag_list_module")
    snapshots = tmp_path / ".nogit" / "snapshots"
    for name, files in (("20240101-120000", ["a.txt"]), ("20240101-121000", ["b.txt", "c.txt"])):
        (snapshots / name).mkdir(parents=True)
        (snapshots / name / "meta.json").write_text(
            json.dumps({"timestamp": name, "files": files}), encoding="utf-8"
        )

    diag.main(["--workspace", str(tmp_path), "list", "--json"])
    listing = json.loads(capsys.readouterr().out)

    assert [item["timestamp"] for item in listing] == ["20240101-121000", "20240101-120000"]
    assert listing[0]["files"] == ["b.txt", "c.txt"]

    diag.main(["--workspace", str(tmp_path), "list", "--limit", "1"])
    lines = capsys.readouterr().out.splitlines()

    assert lines == ["20240101-121000 (2 files)", "  b.txt", "  c.txt"]


def test_prune_with_override(tmp_path: Path, capsys) -> None:
    diag = _load_diag("nogit_diag_prune_module")
    snapshots = tmp_path / ".nogit" / "snapshots"
    names = ["20240101-120000", "20240101-121000", "20240101-122000"]
    for name in names:
        (snapshots / name).mkdir(parents=True)
        (snapshots / name / "meta.json").write_text(
            json.dumps({"timestamp": name, "files": []}), encoding="utf-8"
        )

    diag.main(["--workspace", str(tmp_path), "prune", "--max", "1"])

    payload = json.loads(capsys.readouterr().out)
    assert payload == {"limit": 1, "removed": names[:2], "remaining": 1}
    assert sorted(path.name for path in snapshots.iterdir()) == [names[2]]


def test_prune_rejects_invalid_limit(tmp_path: Path, capsys) -> None:
    diag = _load_diag("nogit_diag_prune_invalid_module")

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["--workspace", str(tmp_path), "prune", "--max", "0"])

    assert excinfo.value.code == 2
    assert "--max must be >= 1" in capsys.readouterr().out


def test_resolve_prints_stored_path(tmp_path: Path, capsys) -> None:
    diag = _load_diag("nogit_diag_resolve_module")

    diag.main(["--workspace", str(tmp_path), "resolve", "20240101-120000", "src/app.py"])

    expected = tmp_path.resolve() / ".nogit" / "snapshots" / "20240101-120000" / "src" / "app.py"
    assert capsys.readouterr().out.strip() == str(expected)


def test_missing_workspace_exits(capsys) -> None:
    diag = _load_diag("nogit_diag_no_workspace_module")

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["list"])

    assert excinfo.value.code == 1
    assert "No workspace" in capsys.readouterr().out


def test_invalid_config_exits(tmp_path: Path, capsys) -> None:
    diag = _load_diag("nogit_diag_bad_config_module")
    (tmp_path / "nogit.yaml").write_text("snapshotFolderName: a/b\n", encoding="utf-8")

    with pytest.raises(SystemExit):
        diag.main(["--workspace", str(tmp_path), "list"])

    assert "Invalid configuration" in capsys.readouterr().out


def test_journal_requires_path(capsys) -> None:
    diag = _load_diag("nogit_diag_journal_module")

    with pytest.raises(SystemExit):
        diag.main(["journal"])

    assert "Journal unavailable" in capsys.readouterr().out


def test_journal_lists_events(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    diag = _load_diag("nogit_diag_journal_events_module")
    monkeypatch.setenv("NOGIT_JOURNAL_PATH", str(tmp_path / "journal"))

    class StubEvent:
        id = "snapshot_captured:1"
        event_type = "snapshot_captured"
        metadata = {"snapshot": "20240101-120000", "workspace": "/ws"}
        document = json.dumps({"files": ["a.txt"]})

        class timestamp:
            @staticmethod
            def isoformat() -> str:
                return "2024-01-01T12:00:00+00:00"

    requested: list[tuple[object, object]] = []

    class StubJournal:
        def __init__(self, path, **_):
            self.path = path

        def fetch_events(self, event_type=None, *, limit=None):
            requested.append((event_type, limit))
            return [StubEvent()]

    monkeypatch.setattr(diag, "ChromaJournal", StubJournal)

    diag.main(["journal", "--type", "snapshot_captured", "--limit", "3"])

    payload = json.loads(capsys.readouterr().out)
    assert requested == [("snapshot_captured", 3)]
    assert payload[0]["snapshot"] == "20240101-120000"
    assert payload[0]["document"] == {"files": ["a.txt"]}
