"""Tests for git/repository.py."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

from fk.core.result import Err, Ok
from fk.git.repository import MergeOutcome, Repository


def make_completed_process(
    stdout: str = "",
    stderr: str = "",
    returncode: int = 0,
) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr=stderr)


def git_args(mock_run: MagicMock, call: int = -1) -> list[str]:
    """The git subcommand and arguments of a recorded call (without ``git -C path``)."""
    return list(mock_run.call_args_list[call].args[0][3:])


class TestMergeOutcome:
    def test_clean(self) -> None:
        assert MergeOutcome(ref="upstream/main").is_clean

    def test_conflicted(self) -> None:
        assert not MergeOutcome(ref="upstream/main", conflicted=("a.rs",)).is_clean


class TestRepository:
    def test_exists(self, tmp_path: Path) -> None:
        assert Repository(tmp_path).exists() is False
        (tmp_path / ".git").mkdir()
        assert Repository(tmp_path).exists() is True

    def test_read_and_write_file(self, tmp_path: Path) -> None:
        repo = Repository(tmp_path)
        assert repo.read_file("codex-rs/Cargo.toml") is None
        repo.write_file("codex-rs/Cargo.toml", "[package]\n")
        assert repo.read_file("codex-rs/Cargo.toml") == "[package]\n"

    @patch("subprocess.run")
    def test_head(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="abc123\n")

        result = Repository(tmp_path).head("main")

        assert result == Ok("abc123")
        assert git_args(mock_run) == ["rev-parse", "--verify", "refs/heads/main^{commit}"]

    @patch("subprocess.run")
    def test_current_branch_detached(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="HEAD\n")
        assert Repository(tmp_path).current_branch() is None

    @patch("subprocess.run")
    def test_merge_clean(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            stdout="Automatic merge went well; stopped before committing as requested\n"
        )

        result = Repository(tmp_path).merge("upstream/main")

        assert result == Ok(MergeOutcome(ref="upstream/main"))
        assert git_args(mock_run) == ["merge", "--no-ff", "--no-commit", "upstream/main"]

    @patch("subprocess.run")
    def test_merge_up_to_date(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="Already up to date.\n")

        result = Repository(tmp_path).merge("upstream/main")

        assert isinstance(result, Ok)
        assert result.value.up_to_date is True

    @patch("subprocess.run")
    def test_merge_conflict_lists_paths(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(
                stdout="CONFLICT (content): Merge conflict in codex-cli/package.json\n",
                returncode=1,
            ),
            make_completed_process(stdout="codex-cli/package.json\ncodex-rs/Cargo.toml\n"),
        ]

        result = Repository(tmp_path).merge("upstream/main")

        assert isinstance(result, Ok)
        assert result.value.conflicted == ("codex-cli/package.json", "codex-rs/Cargo.toml")
        assert git_args(mock_run) == ["diff", "--name-only", "--diff-filter=U"]

    @patch("subprocess.run")
    def test_merge_failure_without_conflict(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            stderr="merge: upstream/nope - not something we can merge\n",
            returncode=1,
        )

        result = Repository(tmp_path).merge("upstream/nope")

        assert isinstance(result, Err)
        assert "not something we can merge" in result.error.message

    @patch("subprocess.run")
    def test_commit_only_paths(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(),
            make_completed_process(stdout="def456\n"),
        ]

        result = Repository(tmp_path).commit("Release 1.2.3", paths=("codex-rs/Cargo.toml",))

        assert result == Ok("def456")
        assert git_args(mock_run, 0) == ["commit", "--only", "-m", "Release 1.2.3", "--", "codex-rs/Cargo.toml"]

    @patch("subprocess.run")
    def test_commit_all_tracked(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(),
            make_completed_process(),
            make_completed_process(stdout="def456\n"),
        ]

        result = Repository(tmp_path).commit("Merge upstream/main into main")

        assert result == Ok("def456")
        assert git_args(mock_run, 0) == ["add", "--update"]
        assert git_args(mock_run, 1)[:2] == ["commit", "--no-verify"]

    @patch("subprocess.run")
    def test_create_tag_existing_fails(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            stderr="fatal: tag 'rust-v1.2.3' already exists\n",
            returncode=128,
        )

        result = Repository(tmp_path).create_tag("rust-v1.2.3", "abc", "Release 1.2.3")

        assert isinstance(result, Err)
        assert "already exists" in result.error.message
        assert result.error.returncode == 128

    @patch("subprocess.run")
    def test_move_branch_not_checked_out_uses_update_ref(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(stdout="other\n"),
            make_completed_process(),
        ]

        result = Repository(tmp_path).move_branch("main", "new", "old")

        assert result == Ok(None)
        assert git_args(mock_run) == ["update-ref", "-m", "fk: move main", "refs/heads/main", "new", "old"]

    @patch("subprocess.run")
    def test_move_checked_out_branch_resets(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(stdout="main\n"),
            make_completed_process(stdout="old\n"),
            make_completed_process(),
        ]

        result = Repository(tmp_path).move_branch("main", "new", "old")

        assert result == Ok(None)
        assert git_args(mock_run) == ["reset", "--keep", "new"]

    @patch("subprocess.run")
    def test_move_checked_out_branch_refuses_stale_expectation(
        self, mock_run: MagicMock, tmp_path: Path
    ) -> None:
        mock_run.side_effect = [
            make_completed_process(stdout="main\n"),
            make_completed_process(stdout="someone-else\n"),
        ]

        result = Repository(tmp_path).move_branch("main", "new", "old")

        assert isinstance(result, Err)
        assert "expected old" in result.error.message
        assert mock_run.call_count == 2

    @patch("subprocess.run")
    def test_push_uses_network_timeout(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process()

        Repository(tmp_path).push("origin", "refs/tags/rust-v1.2.3")

        assert mock_run.call_args.kwargs["timeout"] == 180.0
