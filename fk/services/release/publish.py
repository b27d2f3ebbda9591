"""Publish decisions and the allow-listed publisher.

Which distribution tag a release gets is a closed decision table over
``Channel``. Which packages reach the registry is decided by the allow-list
alone: every other package is still built and collected, but withheld.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from fk.core.result import Err, Ok, Result
from fk.output.console import ConsoleProtocol
from fk.services.errors import ReleaseError
from fk.services.release.build import ReleaseArtifact
from fk.services.release.tag import Channel, VersionTag

LATEST = "latest"


@dataclass(frozen=True, slots=True)
class PackageArtifact:
    """A package tarball assembled from the per-target artifacts."""

    package: str
    blob_ref: Path
    checksum: str


@dataclass(frozen=True, slots=True)
class PublishDecision:
    scope: str
    package_name: str
    dist_tag: str
    allowed_packages: frozenset[str]
    version: str

    def scoped(self, package: str) -> str:
        return f"{self.scope}/{package}"

    def allows(self, package: str) -> bool:
        return package in self.allowed_packages


@dataclass(frozen=True, slots=True)
class PublishRejected:
    package: str
    message: str


@dataclass(frozen=True, slots=True)
class PublishReport:
    published: tuple[str, ...]
    withheld: tuple[str, ...]


class Registry(Protocol):
    def publish(self, decision: PublishDecision, artifact: PackageArtifact) -> Result[None, PublishRejected]: ...


class Packager(Protocol):
    def package(
        self,
        package: str,
        *,
        version: str,
        scope: str,
        artifacts: tuple[ReleaseArtifact, ...],
    ) -> Result[PackageArtifact, ReleaseError]: ...


def dist_tag_for(channel: Channel) -> str:
    """Distribution tag per channel. Never left unset: registries treat an
    unset tag on a pre-release-shaped version as non-stable."""
    match channel:
        case Channel.NONE:
            return LATEST
        case Channel.ALPHA:
            return "alpha"
        case Channel.BETA:
            return "beta"
        case Channel.PRODUCT:
            return LATEST
        case _:
            raise AssertionError(f"unexpected channel: {channel}")


def decide(
    tag: VersionTag,
    *,
    scope: str,
    primary_package: str,
    allowed: frozenset[str],
) -> PublishDecision:
    return PublishDecision(
        scope=scope,
        package_name=f"{scope}/{primary_package}",
        dist_tag=dist_tag_for(tag.channel),
        allowed_packages=allowed,
        version=tag.version,
    )


def collect_packages(
    *,
    packages: tuple[str, ...],
    version: str,
    scope: str,
    artifacts: tuple[ReleaseArtifact, ...],
    packager: Packager,
    console: ConsoleProtocol,
) -> Result[tuple[PackageArtifact, ...], ReleaseError]:
    """Assemble every release package, allowed or not."""
    out: list[PackageArtifact] = []
    for package in packages:
        packed = packager.package(package, version=version, scope=scope, artifacts=artifacts)
        if isinstance(packed, Err):
            return packed
        console.print(f"  packed {package}: {packed.value.blob_ref.name}")
        out.append(packed.value)
    return Ok(tuple(out))


def _ensure_allowed(decision: PublishDecision, package: str) -> None:
    if not decision.allows(package):
        raise AssertionError(f"refusing to publish {package}: not in the allow-list")


def publish(
    *,
    decision: PublishDecision,
    artifacts: tuple[PackageArtifact, ...],
    registry: Registry,
    console: ConsoleProtocol,
) -> Result[PublishReport, ReleaseError]:
    """Publish allow-listed packages one at a time, in artifact order.

    Stops at the first rejection; there is no retry.
    """
    by_name = {a.package: a for a in artifacts}
    missing = sorted(decision.allowed_packages - by_name.keys())
    if missing:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"allow-listed package(s) missing from the release: {', '.join(missing)}",
            )
        )

    selected = [a for a in artifacts if decision.allows(a.package)]
    withheld = tuple(a.package for a in artifacts if not decision.allows(a.package))
    for package in withheld:
        console.warning(f"withholding {package}: not allow-listed (kept as a release asset)")

    published: list[str] = []
    for artifact in selected:
        _ensure_allowed(decision, artifact.package)
        name = decision.scoped(artifact.package)
        result = registry.publish(decision, artifact)
        if isinstance(result, Err):
            done = f" (already published: {', '.join(published)})" if published else ""
            return Err(
                ReleaseError(
                    kind="publish_rejected",
                    message=f"{name}@{decision.version} rejected: {result.error.message}{done}",
                    hint="publish rejections are not retried",
                )
            )
        console.success(f"published {name}@{decision.version} --tag {decision.dist_tag}")
        published.append(artifact.package)

    return Ok(PublishReport(published=tuple(published), withheld=withheld))
