"""Platform target registry.

Every platform the upstream project ships is listed here, buildable or not.
A target is built only when a free CI runner exists for it; the others stay
listed with ``supported=False`` so re-enabling one is a one-line edit and no
target silently disappears.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

OsName = Literal["linux", "macos", "windows"]
ArchName = Literal["x86_64", "aarch64"]
LibcVariant = Literal["musl", "gnu", "darwin", "msvc"]
RunnerClass = Literal["free", "paid"]


@dataclass(frozen=True, slots=True)
class PlatformTarget:
    triple: str
    os: OsName
    arch: ArchName
    libc: LibcVariant
    runner: str
    runner_class: RunnerClass
    supported: bool

    def __post_init__(self) -> None:
        if self.supported and self.runner_class != "free":
            raise ValueError(f"{self.triple}: only free-runner targets can be supported")

    @property
    def required(self) -> bool:
        """A failed build of a required target blocks the whole release."""
        return self.supported

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self.os == "windows" else ""

    def __str__(self) -> str:
        return self.triple


ALL_TARGETS: tuple[PlatformTarget, ...] = (
    PlatformTarget(
        triple="x86_64-unknown-linux-musl",
        os="linux",
        arch="x86_64",
        libc="musl",
        runner="ubuntu-24.04",
        runner_class="free",
        supported=True,
    ),
    PlatformTarget(
        triple="x86_64-unknown-linux-gnu",
        os="linux",
        arch="x86_64",
        libc="gnu",
        runner="ubuntu-24.04",
        runner_class="free",
        supported=True,
    ),
    # arm64 Linux runners are a paid tier.
    PlatformTarget(
        triple="aarch64-unknown-linux-musl",
        os="linux",
        arch="aarch64",
        libc="musl",
        runner="ubuntu-24.04-arm64-large",
        runner_class="paid",
        supported=False,
    ),
    PlatformTarget(
        triple="aarch64-unknown-linux-gnu",
        os="linux",
        arch="aarch64",
        libc="gnu",
        runner="ubuntu-24.04-arm64-large",
        runner_class="paid",
        supported=False,
    ),
    PlatformTarget(
        triple="x86_64-apple-darwin",
        os="macos",
        arch="x86_64",
        libc="darwin",
        runner="macos-13",
        runner_class="free",
        supported=True,
    ),
    PlatformTarget(
        triple="aarch64-apple-darwin",
        os="macos",
        arch="aarch64",
        libc="darwin",
        runner="macos-14",
        runner_class="free",
        supported=True,
    ),
    PlatformTarget(
        triple="x86_64-pc-windows-msvc",
        os="windows",
        arch="x86_64",
        libc="msvc",
        runner="windows-latest",
        runner_class="free",
        supported=True,
    ),
    PlatformTarget(
        triple="aarch64-pc-windows-msvc",
        os="windows",
        arch="aarch64",
        libc="msvc",
        runner="windows-11-arm64-large",
        runner_class="paid",
        supported=False,
    ),
)


def active_targets(targets: tuple[PlatformTarget, ...] = ALL_TARGETS) -> frozenset[PlatformTarget]:
    """Targets every release builds."""
    return frozenset(t for t in targets if t.supported and t.runner_class == "free")


def find_target(triple: str, targets: tuple[PlatformTarget, ...] = ALL_TARGETS) -> PlatformTarget | None:
    for target in targets:
        if target.triple == triple:
            return target
    return None


def ordered(targets: frozenset[PlatformTarget] | tuple[PlatformTarget, ...]) -> tuple[PlatformTarget, ...]:
    """Stable registry order for display and scheduling."""
    index = {t.triple: i for i, t in enumerate(ALL_TARGETS)}
    return tuple(sorted(targets, key=lambda t: (index.get(t.triple, len(index)), t.triple)))
