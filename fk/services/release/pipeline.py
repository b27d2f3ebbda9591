"""Release pipeline: validate -> build -> collect -> publish.

A pushed tag is the only trigger. Each stage gates the next, and the run
ends in exactly one terminal status:

- ``succeeded``: every allow-listed package was published
- ``rejected``: the tag failed validation; nothing was built
- ``built_not_published``: a required build (or packaging) failed
- ``publish_failed``: the registry rejected an allow-listed package
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

from fk.core.errors import ErrorCode
from fk.core.result import Err, Ok, Result
from fk.git.repository import VersionControl
from fk.output.console import ConsoleProtocol
from fk.services.errors import ReleaseError
from fk.services.release.build import BuildReport, Builder, ChecksumRecords, build_all
from fk.services.release.fsm import FINISH, StepOutcome, advance, run_state_machine
from fk.services.release.manifest import committed_version_at
from fk.services.release.publish import (
    PackageArtifact,
    Packager,
    PublishDecision,
    PublishReport,
    Registry,
    collect_packages,
    decide,
    publish,
)
from fk.services.release.tag import DEFAULT_GRAMMAR, TagGrammar, VersionTag, validate
from fk.services.release.targets import PlatformTarget

PipelineStep = Literal["validate", "build", "collect", "publish", "done"]
PipelineStatus = Literal["succeeded", "rejected", "built_not_published", "publish_failed"]

_STATUS_BY_STEP: dict[str, PipelineStatus] = {
    "validate": "rejected",
    "build": "built_not_published",
    "collect": "built_not_published",
    "publish": "publish_failed",
}

_EXIT_BY_STATUS: dict[PipelineStatus, ErrorCode] = {
    "succeeded": ErrorCode.OK,
    "rejected": ErrorCode.RELEASE_REJECTED,
    "built_not_published": ErrorCode.BUILD_ERROR,
    "publish_failed": ErrorCode.NETWORK_ERROR,
}


@dataclass(frozen=True, slots=True)
class ReleaseSettings:
    manifest: str
    sentinel: str
    scope: str
    packages: tuple[str, ...]
    allowed: frozenset[str]
    grammar: TagGrammar = DEFAULT_GRAMMAR

    @property
    def primary_package(self) -> str:
        return self.packages[0]


@dataclass(frozen=True, slots=True)
class ReleaseTools:
    """Capabilities the pipeline drives; all injected."""

    vcs: VersionControl
    builder: Builder
    records: ChecksumRecords
    packager: Packager
    registry: Registry
    targets: frozenset[PlatformTarget]
    console: ConsoleProtocol


@dataclass(frozen=True, slots=True)
class PipelineState:
    step: PipelineStep
    raw_tag: str
    tag: VersionTag | None = None
    commit: str | None = None
    build: BuildReport | None = None
    packages: tuple[PackageArtifact, ...] = ()
    decision: PublishDecision | None = None
    published: PublishReport | None = None


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    status: PipelineStatus
    state: PipelineState
    error: ReleaseError | None = None

    @property
    def exit_code(self) -> ErrorCode:
        return _EXIT_BY_STATUS[self.status]


def run_release_pipeline(
    *,
    raw_tag: str,
    settings: ReleaseSettings,
    tools: ReleaseTools,
) -> PipelineOutcome:
    console = tools.console

    def on_validate(state: PipelineState) -> Result[StepOutcome[PipelineState], ReleaseError]:
        commit = tools.vcs.tag_target(state.raw_tag)
        if isinstance(commit, Err):
            return Err(
                ReleaseError(kind="malformed_tag", message=f"unknown tag {state.raw_tag}: {commit.error.message}")
            )
        committed = committed_version_at(tools.vcs, state.raw_tag, settings.manifest)
        if isinstance(committed, Err):
            return committed
        checked = validate(
            state.raw_tag,
            committed.value,
            grammar=settings.grammar,
            sentinel=settings.sentinel,
        )
        if isinstance(checked, Err):
            return Err(checked.error.to_error())
        console.success(f"{state.raw_tag}: channel {checked.value.channel}, commit {commit.value[:8]}")
        return Ok(advance(replace(state, step="build", tag=checked.value, commit=commit.value)))

    def on_build(state: PipelineState) -> Result[StepOutcome[PipelineState], ReleaseError]:
        assert state.tag is not None and state.commit is not None
        report = build_all(
            tag=state.tag,
            commit=state.commit,
            targets=tools.targets,
            builder=tools.builder,
            records=tools.records,
            console=console,
        )
        if not report.ok:
            return Err(report.to_error())
        return Ok(advance(replace(state, step="collect", build=report)))

    def on_collect(state: PipelineState) -> Result[StepOutcome[PipelineState], ReleaseError]:
        assert state.tag is not None and state.build is not None
        packed = collect_packages(
            packages=settings.packages,
            version=state.tag.version,
            scope=settings.scope,
            artifacts=state.build.artifacts,
            packager=tools.packager,
            console=console,
        )
        if isinstance(packed, Err):
            return packed
        decision = decide(
            state.tag,
            scope=settings.scope,
            primary_package=settings.primary_package,
            allowed=settings.allowed,
        )
        return Ok(advance(replace(state, step="publish", packages=packed.value, decision=decision)))

    def on_publish(state: PipelineState) -> Result[StepOutcome[PipelineState], ReleaseError]:
        assert state.decision is not None
        report = publish(
            decision=state.decision,
            artifacts=state.packages,
            registry=tools.registry,
            console=console,
        )
        if isinstance(report, Err):
            return report
        return Ok(advance(replace(state, step="done", published=report.value)))

    def on_done(state: PipelineState) -> Result[StepOutcome[PipelineState], ReleaseError]:
        return Ok(FINISH)

    def save_state(state: PipelineState) -> Result[PipelineState, ReleaseError]:
        if state.step != "done":
            console.header(f"stage: {state.step}")
        return Ok(state)

    console.header("stage: validate")
    result = run_state_machine(
        initial_state=PipelineState(step="validate", raw_tag=raw_tag),
        get_step=lambda s: s.step,
        handlers={
            "validate": on_validate,
            "build": on_build,
            "collect": on_collect,
            "publish": on_publish,
            "done": on_done,
        },
        save_state=save_state,
    )

    if isinstance(result, Err):
        halted = result.error
        status = _STATUS_BY_STEP[halted.state.step]
        console.error(f"{status}: {halted.error.pretty()}")
        return PipelineOutcome(status=status, state=halted.state, error=halted.error)

    console.success(f"{raw_tag} released")
    return PipelineOutcome(status="succeeded", state=result.value)
