"""End-to-end release pipeline tests against in-memory capabilities."""

from __future__ import annotations

from pathlib import Path

from fk.core.errors import ErrorCode
from fk.output.console import MockConsole
from fk.services.release.build import ChecksumRecords, JsonChecksumRecords
from fk.services.release.pipeline import (
    PipelineOutcome,
    ReleaseSettings,
    ReleaseTools,
    run_release_pipeline,
)
from fk.services.release.targets import PlatformTarget
from fk.test._fakes import FakeBuilder, FakePackager, FakeRegistry, FakeVcs, MemoryRecords, target

MANIFEST = "codex-rs/Cargo.toml"
SETTINGS = ReleaseSettings(
    manifest=MANIFEST,
    sentinel="0.0.0",
    scope="@echoflux537",
    packages=("codex", "codex-sdk", "codex-responses-api-proxy"),
    allowed=frozenset({"codex"}),
)
TARGETS = frozenset({target("a-linux"), target("b-linux"), target("c-linux")})


def _tagged_vcs(version: str, tag: str) -> FakeVcs:
    vcs = FakeVcs({MANIFEST: f'[workspace.package]\nversion = "{version}"\n'})
    vcs.tags[tag] = vcs.branches["main"]
    return vcs


def _run(
    vcs: FakeVcs,
    raw_tag: str,
    *,
    builder: FakeBuilder | None = None,
    packager: FakePackager | None = None,
    registry: FakeRegistry | None = None,
    records: ChecksumRecords | None = None,
    targets: frozenset[PlatformTarget] = TARGETS,
) -> PipelineOutcome:
    tools = ReleaseTools(
        vcs=vcs,
        builder=builder or FakeBuilder(),
        records=records or MemoryRecords(),
        packager=packager or FakePackager(),
        registry=registry or FakeRegistry(),
        targets=targets,
        console=MockConsole(),
    )
    return run_release_pipeline(raw_tag=raw_tag, settings=SETTINGS, tools=tools)


def test_successful_release_publishes_only_allowed_package(
    builder: FakeBuilder, packager: FakePackager, registry: FakeRegistry
) -> None:
    vcs = _tagged_vcs("1.2.3", "rust-v1.2.3")

    outcome = _run(vcs, "rust-v1.2.3", builder=builder, packager=packager, registry=registry)

    assert outcome.status == "succeeded"
    assert outcome.exit_code == ErrorCode.OK
    assert len(builder.calls) == 3
    assert [c[0] for c in packager.calls] == ["codex", "codex-sdk", "codex-responses-api-proxy"]
    assert registry.calls == [("@echoflux537/codex", "1.2.3", "latest")]
    assert outcome.state.published is not None
    assert outcome.state.published.withheld == ("codex-sdk", "codex-responses-api-proxy")


def test_product_channel_publishes_as_latest() -> None:
    vcs = _tagged_vcs("1.2.3-cometix.1", "rust-v1.2.3-cometix.1")
    registry = FakeRegistry()

    outcome = _run(vcs, "rust-v1.2.3-cometix.1", registry=registry)

    assert outcome.status == "succeeded"
    assert registry.calls == [("@echoflux537/codex", "1.2.3-cometix.1", "latest")]


def test_beta_channel_dist_tag() -> None:
    registry = FakeRegistry()
    outcome = _run(_tagged_vcs("0.9.0-beta.2", "rust-v0.9.0-beta.2"), "rust-v0.9.0-beta.2", registry=registry)
    assert outcome.status == "succeeded"
    assert registry.calls[0][2] == "beta"


def test_version_mismatch_is_rejected_before_building() -> None:
    vcs = _tagged_vcs("1.2.4", "rust-v1.2.3")
    builder = FakeBuilder()
    registry = FakeRegistry()

    outcome = _run(vcs, "rust-v1.2.3", builder=builder, registry=registry)

    assert outcome.status == "rejected"
    assert outcome.error is not None and outcome.error.kind == "version_mismatch"
    assert outcome.exit_code == ErrorCode.RELEASE_REJECTED
    assert builder.calls == []
    assert registry.calls == []


def test_sentinel_tag_is_rejected() -> None:
    outcome = _run(_tagged_vcs("0.0.0", "rust-v0.0.0"), "rust-v0.0.0")
    assert outcome.status == "rejected"


def test_malformed_tag_is_rejected() -> None:
    outcome = _run(_tagged_vcs("1.2.3", "v1.2.3"), "v1.2.3")
    assert outcome.status == "rejected"
    assert outcome.error is not None and outcome.error.kind == "malformed_tag"


def test_unknown_tag_is_rejected() -> None:
    outcome = _run(FakeVcs({}), "rust-v1.2.3")
    assert outcome.status == "rejected"


def test_build_failure_never_reaches_publisher() -> None:
    builder = FakeBuilder(failing={"b-linux": "linker error"})
    packager = FakePackager()
    registry = FakeRegistry()

    outcome = _run(
        _tagged_vcs("1.2.3", "rust-v1.2.3"),
        "rust-v1.2.3",
        builder=builder,
        packager=packager,
        registry=registry,
    )

    assert outcome.status == "built_not_published"
    assert outcome.exit_code == ErrorCode.BUILD_ERROR
    assert len(builder.calls) == 3
    assert packager.calls == []
    assert registry.calls == []


def test_packaging_failure_is_built_not_published() -> None:
    registry = FakeRegistry()
    outcome = _run(
        _tagged_vcs("1.2.3", "rust-v1.2.3"),
        "rust-v1.2.3",
        packager=FakePackager(failing=frozenset({"codex-sdk"})),
        registry=registry,
    )
    assert outcome.status == "built_not_published"
    assert registry.calls == []


def test_registry_rejection_is_publish_failed() -> None:
    outcome = _run(
        _tagged_vcs("1.2.3", "rust-v1.2.3"),
        "rust-v1.2.3",
        registry=FakeRegistry(rejecting={"codex": "E403"}),
    )
    assert outcome.status == "publish_failed"
    assert outcome.error is not None and outcome.error.kind == "publish_rejected"


def test_corrupt_build_record_ends_built_not_published(tmp_path: Path) -> None:
    (tmp_path / "rust-v1.2.3.json").write_text("{not json", encoding="utf-8")
    vcs = _tagged_vcs("1.2.3", "rust-v1.2.3")
    registry = FakeRegistry()

    outcome = _run(vcs, "rust-v1.2.3", registry=registry, records=JsonChecksumRecords(tmp_path))

    assert outcome.status == "built_not_published"
    assert outcome.exit_code == ErrorCode.BUILD_ERROR
    assert registry.calls == []
