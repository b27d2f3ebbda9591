from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

from fk.core.result import Err, Ok, Result
from fk.output.console import MockConsole
from fk.platform.process import ProcessError
from fk.services.release.build import ReleaseArtifact
from fk.services.release.npm import DryRunRegistry, NpmPackager, NpmRegistry, rescope_package_json
from fk.services.release.publish import PackageArtifact, decide
from fk.services.release.tag import parse_tag
from fk.test._fakes import target

UPSTREAM_PACKAGE_JSON = json.dumps(
    {
        "name": "@openai/codex",
        "version": "0.0.0-dev",
        "bin": {"codex": "bin/codex.js"},
        "publishConfig": {"registry": "https://registry.npmjs.org", "access": "public"},
    }
)


def test_rescope_package_json() -> None:
    result = rescope_package_json(UPSTREAM_PACKAGE_JSON, name="@echoflux537/codex", version="1.2.3")

    assert isinstance(result, Ok)
    data = json.loads(result.value)
    assert data["name"] == "@echoflux537/codex"
    assert data["version"] == "1.2.3"
    assert data["bin"] == {"codex": "bin/codex.js"}
    assert "publishConfig" not in data


def test_rescope_rejects_non_object() -> None:
    assert isinstance(rescope_package_json("[]", name="x", version="1"), Err)
    assert isinstance(rescope_package_json("{", name="x", version="1"), Err)


class TestNpmPackager:
    def _workspace(self, root: Path) -> Path:
        cli = root / "codex-cli"
        (cli / "bin").mkdir(parents=True)
        (cli / "package.json").write_text(UPSTREAM_PACKAGE_JSON, encoding="utf-8")
        (cli / "bin" / "codex.js").write_text("#!/usr/bin/env node\n", encoding="utf-8")
        (cli / "node_modules" / "dep").mkdir(parents=True)
        return root

    def test_stages_rescopes_and_vendors(self, tmp_path: Path) -> None:
        root = self._workspace(tmp_path / "ws")
        dist = tmp_path / "dist"
        binary = tmp_path / "bin" / "x86_64-unknown-linux-musl" / "codex"
        binary.parent.mkdir(parents=True)
        binary.write_bytes(b"\x7fELF")
        artifact = ReleaseArtifact(target=target("x86_64-unknown-linux-musl"), blob_ref=binary, checksum="x")

        def fake_pack(cmd: list[str], cwd: Path, env: object = None, *, timeout: float | None = None) -> Result[str, ProcessError]:
            (dist / "echoflux537-codex-1.2.3.tgz").write_bytes(b"tarball")
            return Ok("npm notice\nechoflux537-codex-1.2.3.tgz\n")

        packager = NpmPackager(workspace_root=root, dist_dir=dist, binary="codex")
        with patch("fk.services.release.npm.run_process", side_effect=fake_pack) as mock_run:
            result = packager.package("codex", version="1.2.3", scope="@echoflux537", artifacts=(artifact,))

        assert isinstance(result, Ok)
        assert result.value.blob_ref == dist / "echoflux537-codex-1.2.3.tgz"
        stage = dist / "stage" / "codex"
        assert mock_run.call_args.kwargs["cwd"] == stage
        staged = json.loads((stage / "package.json").read_text(encoding="utf-8"))
        assert staged["name"] == "@echoflux537/codex"
        assert (stage / "vendor" / "x86_64-unknown-linux-musl" / "codex" / "codex").read_bytes() == b"\x7fELF"
        assert not (stage / "node_modules").exists()
        # Upstream sources are never modified.
        assert json.loads((root / "codex-cli" / "package.json").read_text(encoding="utf-8"))["name"] == "@openai/codex"

    def test_missing_binary_is_io_failure(self, tmp_path: Path) -> None:
        root = self._workspace(tmp_path / "ws")
        gone = tmp_path / "bin" / "x86_64-unknown-linux-musl" / "codex"
        artifact = ReleaseArtifact(target=target("x86_64-unknown-linux-musl"), blob_ref=gone, checksum="x")
        packager = NpmPackager(workspace_root=root, dist_dir=tmp_path / "dist", binary="codex")

        with patch("fk.services.release.npm.run_process") as mock_run:
            result = packager.package("codex", version="1.2.3", scope="@echoflux537", artifacts=(artifact,))

        assert isinstance(result, Err)
        assert result.error.kind == "io_failed"
        assert "failed to stage codex" in result.error.message
        mock_run.assert_not_called()

    def test_missing_tarball_is_io_failure(self, tmp_path: Path) -> None:
        root = self._workspace(tmp_path / "ws")
        packager = NpmPackager(workspace_root=root, dist_dir=tmp_path / "dist", binary="codex")

        with patch("fk.services.release.npm.run_process", return_value=Ok("echoflux537-codex-1.2.3.tgz\n")):
            result = packager.package("codex", version="1.2.3", scope="@echoflux537", artifacts=())

        assert isinstance(result, Err)
        assert result.error.kind == "io_failed"
        assert "cannot hash" in result.error.message

    def test_missing_source(self, tmp_path: Path) -> None:
        packager = NpmPackager(workspace_root=tmp_path, dist_dir=tmp_path / "dist", binary="codex")
        result = packager.package("codex-sdk", version="1.2.3", scope="@echoflux537", artifacts=())
        assert isinstance(result, Err)
        assert result.error.kind == "io_failed"

    def test_unknown_package(self, tmp_path: Path) -> None:
        packager = NpmPackager(workspace_root=tmp_path, dist_dir=tmp_path / "dist", binary="codex")
        result = packager.package("left-pad", version="1.2.3", scope="@echoflux537", artifacts=())
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_input"


class TestNpmRegistry:
    def test_publish_sets_dist_tag(self, tmp_path: Path) -> None:
        decision = decide(
            parse_tag("rust-v1.2.3-beta.1").unwrap(),
            scope="@echoflux537",
            primary_package="codex",
            allowed=frozenset({"codex"}),
        )
        artifact = PackageArtifact(package="codex", blob_ref=tmp_path / "codex.tgz", checksum="c")

        with patch("fk.services.release.npm.run_process", return_value=Ok("+ @echoflux537/codex")) as mock_run:
            result = NpmRegistry(cwd=tmp_path).publish(decision, artifact)

        assert result == Ok(None)
        cmd = mock_run.call_args.args[0]
        assert cmd[:3] == ["npm", "publish", str(tmp_path / "codex.tgz")]
        assert cmd[cmd.index("--tag") + 1] == "beta"

    def test_rejection(self, tmp_path: Path) -> None:
        decision = decide(
            parse_tag("rust-v1.2.3").unwrap(),
            scope="@echoflux537",
            primary_package="codex",
            allowed=frozenset({"codex"}),
        )
        artifact = PackageArtifact(package="codex", blob_ref=tmp_path / "codex.tgz", checksum="c")
        error = ProcessError(command=("npm",), returncode=1, stdout="", stderr="npm ERR! 403 Forbidden\n")

        with patch("fk.services.release.npm.run_process", return_value=Err(error)):
            result = NpmRegistry(cwd=tmp_path).publish(decision, artifact)

        assert isinstance(result, Err)
        assert result.error.message == "npm ERR! 403 Forbidden"


def test_dry_run_registry_only_prints(tmp_path: Path) -> None:
    console = MockConsole()
    decision = decide(
        parse_tag("rust-v1.2.3").unwrap(),
        scope="@echoflux537",
        primary_package="codex",
        allowed=frozenset({"codex"}),
    )
    artifact = PackageArtifact(package="codex", blob_ref=tmp_path / "codex.tgz", checksum="c")

    assert DryRunRegistry(console).publish(decision, artifact) == Ok(None)
    assert console.find("(dry-run) npm publish codex.tgz as @echoflux537/codex --tag latest")
