"""Release services: tag gate, version stamping, build fan-out, publishing."""

from fk.services.release.build import (
    BuildFailure,
    BuildReport,
    JsonChecksumRecords,
    ReleaseArtifact,
    build_all,
)
from fk.services.release.pipeline import (
    PipelineOutcome,
    ReleaseSettings,
    ReleaseTools,
    run_release_pipeline,
)
from fk.services.release.publish import PackageArtifact, PublishDecision, decide, publish
from fk.services.release.stamper import StampedRelease, reset_to_sentinel, stamp_release
from fk.services.release.tag import (
    Channel,
    Rejection,
    TagGrammar,
    VersionTag,
    format_tag,
    parse_tag,
    validate,
)
from fk.services.release.targets import ALL_TARGETS, PlatformTarget, active_targets

__all__ = [
    "ALL_TARGETS",
    "BuildFailure",
    "BuildReport",
    "Channel",
    "JsonChecksumRecords",
    "PackageArtifact",
    "PipelineOutcome",
    "PlatformTarget",
    "PublishDecision",
    "Rejection",
    "ReleaseArtifact",
    "ReleaseSettings",
    "ReleaseTools",
    "StampedRelease",
    "TagGrammar",
    "VersionTag",
    "active_targets",
    "build_all",
    "decide",
    "format_tag",
    "parse_tag",
    "publish",
    "reset_to_sentinel",
    "run_release_pipeline",
    "stamp_release",
    "validate",
]
