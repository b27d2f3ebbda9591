"""Tests for fk.core.workspace module."""

from __future__ import annotations

from pathlib import Path

import pytest

from fk.core.config import Config, PathsConfig
from fk.core.result import Err, Ok
from fk.core.workspace import WORKSPACE_ENV, Workspace, detect_workspace, is_workspace_root


@pytest.fixture(autouse=True)
def _no_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(WORKSPACE_ENV, raising=False)


def _make_root(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    (path / "fork.toml").write_text("", encoding="utf-8")
    return path


class TestDetectWorkspace:
    def test_finds_marker_in_start_dir(self, tmp_path: Path) -> None:
        root = _make_root(tmp_path / "fork")
        result = detect_workspace(root)
        assert isinstance(result, Ok)
        assert result.value.root == root.resolve()

    def test_walks_up_to_parent(self, tmp_path: Path) -> None:
        root = _make_root(tmp_path / "fork")
        nested = root / "codex-rs" / "cli"
        nested.mkdir(parents=True)

        result = detect_workspace(nested)

        assert isinstance(result, Ok)
        assert result.value.root == root.resolve()

    def test_not_found(self, tmp_path: Path) -> None:
        result = detect_workspace(tmp_path)
        assert isinstance(result, Err)
        assert "fork.toml" in result.error.message

    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        root = _make_root(tmp_path / "elsewhere")
        monkeypatch.setenv(WORKSPACE_ENV, str(root))

        result = detect_workspace(tmp_path)

        assert isinstance(result, Ok)
        assert result.value.root == root.resolve()

    def test_env_without_marker_is_error(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(WORKSPACE_ENV, str(tmp_path))
        result = detect_workspace()
        assert isinstance(result, Err)
        assert WORKSPACE_ENV in result.error.message


def test_is_workspace_root(tmp_path: Path) -> None:
    assert not is_workspace_root(tmp_path)
    _make_root(tmp_path)
    assert is_workspace_root(tmp_path)


def test_paths_follow_config(tmp_path: Path) -> None:
    ws = Workspace(root=tmp_path)
    config = Config(paths=PathsConfig(state_dir="state", ledger="state/rules.json", dist="out"))

    assert ws.config_path == tmp_path / "fork.toml"
    assert ws.ledger_path(config) == tmp_path / "state" / "rules.json"
    assert ws.report_path(config) == tmp_path / "state" / "reconcile-report.json"
    assert ws.lock_path(config) == tmp_path / "state" / "branch.lock"
    assert ws.builds_dir(config) == tmp_path / "state" / "builds"
    assert ws.dist_dir(config) == tmp_path / "out"
    assert ws.manifest_path(config) == tmp_path / "codex-rs" / "Cargo.toml"
