"""npm packaging and publishing under the fork's scope."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

from fk.core.result import Err, Ok, Result
from fk.core.structured import as_str_dict
from fk.output.console import ConsoleProtocol
from fk.platform.files import atomic_write_text, sha256_file
from fk.platform.process import run as run_process
from fk.services.errors import ReleaseError
from fk.services.release.build import ReleaseArtifact
from fk.services.release.publish import PackageArtifact, PublishDecision, PublishRejected

_NPM_TIMEOUT_SECONDS = 5 * 60.0

# Package -> npm package directory, relative to the workspace root.
PACKAGE_SOURCES: dict[str, str] = {
    "codex": "codex-cli",
    "codex-sdk": "sdk/typescript",
    "codex-responses-api-proxy": "codex-rs/responses-api-proxy/npm",
}

# Packages that ship the native binaries under vendor/<triple>/.
NATIVE_PACKAGES = frozenset({"codex"})


def rescope_package_json(text: str, *, name: str, version: str) -> Result[str, ReleaseError]:
    """Rename a package.json to the fork's scoped name and stamp its version."""
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="invalid_input", message=f"invalid package.json: {e}"))

    data = as_str_dict(obj)
    if data is None:
        return Err(ReleaseError(kind="invalid_input", message="package.json root must be an object"))

    data["name"] = name
    data["version"] = version
    # Registry config inherited from upstream would publish to upstream's scope.
    data.pop("publishConfig", None)
    return Ok(json.dumps(data, indent=2, ensure_ascii=False) + "\n")


class NpmPackager:
    """Stages each package directory and runs ``npm pack`` on it."""

    def __init__(self, *, workspace_root: Path, dist_dir: Path, binary: str) -> None:
        self.workspace_root = workspace_root
        self.dist_dir = dist_dir
        self.binary = binary

    def package(
        self,
        package: str,
        *,
        version: str,
        scope: str,
        artifacts: tuple[ReleaseArtifact, ...],
    ) -> Result[PackageArtifact, ReleaseError]:
        source_rel = PACKAGE_SOURCES.get(package)
        if source_rel is None:
            return Err(ReleaseError(kind="invalid_input", message=f"no npm source for package {package}"))
        source = self.workspace_root / source_rel
        if not (source / "package.json").is_file():
            return Err(
                ReleaseError(kind="io_failed", message=f"missing package.json for {package}", hint=str(source))
            )

        stage = self.dist_dir / "stage" / package
        try:
            shutil.rmtree(stage, ignore_errors=True)
            shutil.copytree(source, stage, ignore=shutil.ignore_patterns("node_modules", "vendor"))
        except OSError as e:
            return Err(ReleaseError(kind="io_failed", message=f"failed to stage {package}: {e}"))

        pkg_json = stage / "package.json"
        try:
            rescoped = rescope_package_json(
                pkg_json.read_text(encoding="utf-8"),
                name=f"{scope}/{package}",
                version=version,
            )
            if isinstance(rescoped, Err):
                return rescoped
            atomic_write_text(pkg_json, rescoped.value)

            if package in NATIVE_PACKAGES:
                for artifact in artifacts:
                    dest = stage / "vendor" / artifact.target.triple / self.binary / artifact.blob_ref.name
                    dest.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(artifact.blob_ref, dest)

            self.dist_dir.mkdir(parents=True, exist_ok=True)
        except (OSError, UnicodeDecodeError) as e:
            return Err(ReleaseError(kind="io_failed", message=f"failed to stage {package}: {e}", hint=str(stage)))

        packed = run_process(
            ["npm", "pack", "--pack-destination", str(self.dist_dir)],
            cwd=stage,
            timeout=_NPM_TIMEOUT_SECONDS,
        )
        if isinstance(packed, Err):
            return Err(ReleaseError(kind="build_failed", message=f"npm pack {package}: {packed.error.detail}"))

        lines = [ln.strip() for ln in packed.value.splitlines() if ln.strip()]
        if not lines:
            return Err(ReleaseError(kind="build_failed", message=f"npm pack {package} printed no tarball name"))
        tarball = self.dist_dir / lines[-1]
        try:
            checksum = sha256_file(tarball)
        except OSError as e:
            return Err(ReleaseError(kind="io_failed", message=f"cannot hash {tarball.name}: {e}", hint=str(tarball)))
        return Ok(PackageArtifact(package=package, blob_ref=tarball, checksum=checksum))


class NpmRegistry:
    """Publishes tarballs with an explicit ``--tag``."""

    def __init__(self, *, cwd: Path) -> None:
        self.cwd = cwd

    def publish(self, decision: PublishDecision, artifact: PackageArtifact) -> Result[None, PublishRejected]:
        result = run_process(
            ["npm", "publish", str(artifact.blob_ref), "--tag", decision.dist_tag, "--access", "public"],
            cwd=self.cwd,
            timeout=_NPM_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(PublishRejected(package=artifact.package, message=result.error.detail))
        return Ok(None)


class DryRunRegistry:
    """Prints what would be published."""

    def __init__(self, console: ConsoleProtocol) -> None:
        self.console = console

    def publish(self, decision: PublishDecision, artifact: PackageArtifact) -> Result[None, PublishRejected]:
        self.console.info(
            f"(dry-run) npm publish {artifact.blob_ref.name} as {decision.scoped(artifact.package)} "
            f"--tag {decision.dist_tag}"
        )
        return Ok(None)
