"""Multi-platform build fan-out.

One build task per active target runs in a thread pool. A failing target
never cancels its siblings: the join waits for every task, then the
reproducibility check and the all-required-succeed policy are applied to
the collected results.
"""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Protocol

from fk.core.result import Err, Ok, Result
from fk.core.structured import as_str_dict, get_table
from fk.output.console import ConsoleProtocol
from fk.platform.files import atomic_write_text
from fk.services.errors import ReleaseError
from fk.services.release.tag import VersionTag
from fk.services.release.targets import PlatformTarget, ordered

RECORD_SCHEMA = 1


@dataclass(frozen=True, slots=True)
class ReleaseArtifact:
    target: PlatformTarget
    blob_ref: Path
    checksum: str


@dataclass(frozen=True, slots=True)
class BuildFailure:
    target: PlatformTarget
    message: str
    kind: Literal["build_failed", "non_reproducible"] = "build_failed"


BuildOutcome = ReleaseArtifact | BuildFailure


class Builder(Protocol):
    """Turns one commit into one artifact for one target."""

    def build(self, target: PlatformTarget, commit: str) -> Result[ReleaseArtifact, BuildFailure]: ...


class ChecksumRecords(Protocol):
    """First successful checksum per (tag, target), kept across runs."""

    def first_checksum(self, tag: str, triple: str) -> Result[str | None, str]: ...

    def record(self, tag: str, triple: str, checksum: str) -> Result[None, str]: ...


class JsonChecksumRecords:
    """Checksum records stored as ``<dir>/<tag>.json``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, tag: str) -> Path:
        return self.directory / f"{tag}.json"

    def _load(self, tag: str) -> Result[dict[str, str], str]:
        path = self._path(tag)
        if not path.exists():
            return Ok({})
        try:
            obj: object = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            return Err(f"unreadable build record {path}: {e}")
        data = as_str_dict(obj)
        if data is None or data.get("schema") != RECORD_SCHEMA:
            return Err(f"unsupported build record: {path}")
        checksums = get_table(data, "checksums") or {}
        return Ok({k: v for k, v in checksums.items() if isinstance(v, str)})

    def first_checksum(self, tag: str, triple: str) -> Result[str | None, str]:
        loaded = self._load(tag)
        if isinstance(loaded, Err):
            return loaded
        return Ok(loaded.value.get(triple))

    def record(self, tag: str, triple: str, checksum: str) -> Result[None, str]:
        loaded = self._load(tag)
        if isinstance(loaded, Err):
            return loaded
        checksums = loaded.value
        if triple in checksums:
            return Ok(None)
        checksums[triple] = checksum
        payload = {"schema": RECORD_SCHEMA, "tag": tag, "checksums": dict(sorted(checksums.items()))}
        try:
            atomic_write_text(self._path(tag), json.dumps(payload, indent=2) + "\n")
        except OSError as e:
            return Err(f"cannot write build record {self._path(tag)}: {e}")
        return Ok(None)


def _empty_results() -> dict[PlatformTarget, BuildOutcome]:
    return {}


@dataclass(frozen=True, slots=True)
class BuildReport:
    tag: str
    results: dict[PlatformTarget, BuildOutcome] = field(default_factory=_empty_results)

    def _outcomes(self) -> list[BuildOutcome]:
        return [self.results[t] for t in ordered(tuple(self.results))]

    @property
    def artifacts(self) -> tuple[ReleaseArtifact, ...]:
        return tuple(r for r in self._outcomes() if isinstance(r, ReleaseArtifact))

    @property
    def failures(self) -> tuple[BuildFailure, ...]:
        return tuple(r for r in self._outcomes() if isinstance(r, BuildFailure))

    @property
    def required_failures(self) -> tuple[BuildFailure, ...]:
        return tuple(f for f in self.failures if f.target.required)

    @property
    def ok(self) -> bool:
        """Every required target produced an artifact."""
        required = [t for t in self.results if t.required]
        return bool(required) and not self.required_failures

    def to_error(self) -> ReleaseError:
        failures = self.required_failures
        kind = "non_reproducible" if any(f.kind == "non_reproducible" for f in failures) else "build_failed"
        names = ", ".join(f.target.triple for f in failures) or "no required targets"
        return ReleaseError(
            kind=kind,
            message=f"{len(failures)} required target(s) failed: {names}",
            hint="partial multi-platform releases are not published",
        )


def build_all(
    *,
    tag: VersionTag,
    commit: str,
    targets: frozenset[PlatformTarget],
    builder: Builder,
    records: ChecksumRecords,
    console: ConsoleProtocol,
    max_workers: int | None = None,
) -> BuildReport:
    """Build every target concurrently and join all results."""
    scheduled = ordered(targets)
    results: dict[PlatformTarget, BuildOutcome] = {}
    if not scheduled:
        return BuildReport(tag=tag.raw, results=results)

    console.header(f"Building {tag.raw} @ {commit[:8]} for {len(scheduled)} target(s)")
    workers = max_workers or len(scheduled)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fk-build") as pool:
        futures = {pool.submit(builder.build, target, commit): target for target in scheduled}
        for future in as_completed(futures):
            target = futures[future]
            try:
                result = future.result()
            except Exception as e:  # noqa: BLE001
                results[target] = BuildFailure(target=target, message=f"builder crashed: {e}")
                continue
            results[target] = result.value if isinstance(result, Ok) else result.error

    # Join step: single-threaded from here on.
    for target in scheduled:
        outcome = results[target]
        if isinstance(outcome, ReleaseArtifact):
            results[target] = _check_reproducible(tag.raw, outcome, records)

    for target in scheduled:
        outcome = results[target]
        if isinstance(outcome, ReleaseArtifact):
            console.success(f"{target.triple}: {outcome.checksum[:12]}")
        elif outcome.kind == "non_reproducible":
            console.error(f"{target.triple}: {outcome.message}")
        else:
            console.error(f"{target.triple}: build failed: {outcome.message}")

    return BuildReport(tag=tag.raw, results=results)


def _check_reproducible(tag: str, artifact: ReleaseArtifact, records: ChecksumRecords) -> BuildOutcome:
    triple = artifact.target.triple
    first = records.first_checksum(tag, triple)
    if isinstance(first, Err):
        return _unverifiable(artifact, first.error)
    if first.value is None:
        recorded = records.record(tag, triple, artifact.checksum)
        if isinstance(recorded, Err):
            return _unverifiable(artifact, recorded.error)
        return artifact
    if first.value != artifact.checksum:
        return BuildFailure(
            target=artifact.target,
            message=f"checksum {artifact.checksum[:12]} differs from first build {first.value[:12]}",
            kind="non_reproducible",
        )
    return artifact


def _unverifiable(artifact: ReleaseArtifact, reason: str) -> BuildFailure:
    return BuildFailure(
        target=artifact.target,
        message=f"cannot check reproducibility: {reason}",
        kind="non_reproducible",
    )


def require_success(report: BuildReport) -> Result[tuple[ReleaseArtifact, ...], ReleaseError]:
    if not report.ok:
        return Err(report.to_error())
    return Ok(report.artifacts)
