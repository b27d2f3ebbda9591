"""Typed configuration loading and access.

This module provides dataclasses for the ``fork.toml`` structure with
defaults matching the downstream fork this tool was written for.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_str_list, get_table

__all__ = [
    "Config",
    "BranchConfig",
    "UpstreamConfig",
    "ReleaseConfig",
    "PublishConfig",
    "PathsConfig",
    "ConfigError",
    "load_config",
    "load_config_or_default",
    "DEFAULT_SENTINEL",
    "DEFAULT_TAG_PREFIX",
    "DEFAULT_PRODUCT_CHANNEL",
    "DEFAULT_SCOPE",
]

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULT_SENTINEL = "0.0.0"
DEFAULT_TAG_PREFIX = "rust-v"
DEFAULT_MANIFEST = "codex-rs/Cargo.toml"
DEFAULT_PRODUCT_CHANNEL = "cometix"
DEFAULT_SCOPE = "@echoflux537"
DEFAULT_PACKAGES = ("codex", "codex-sdk", "codex-responses-api-proxy")
DEFAULT_ALLOWED = ("codex",)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class BranchConfig:
    """The downstream base branch holding the sentinel version."""

    name: str = "main"
    remote: str = "origin"


@dataclass(frozen=True, slots=True)
class UpstreamConfig:
    """Where upstream history is merged from."""

    remote: str = "upstream"
    branch: str = "main"

    @property
    def ref(self) -> str:
        return f"{self.remote}/{self.branch}"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    tag_prefix: str = DEFAULT_TAG_PREFIX
    sentinel: str = DEFAULT_SENTINEL
    # Relative to the workspace root.
    manifest: str = DEFAULT_MANIFEST
    product_channel: str = DEFAULT_PRODUCT_CHANNEL
    # Cargo bin target, also the vendor directory name in the npm package.
    binary: str = "codex"


@dataclass(frozen=True, slots=True)
class PublishConfig:
    """Registry identity of the fork.

    ``packages`` are all packages a release builds; ``allowed`` is the subset
    that may reach the registry.
    """

    scope: str = DEFAULT_SCOPE
    packages: tuple[str, ...] = DEFAULT_PACKAGES
    allowed: frozenset[str] = frozenset(DEFAULT_ALLOWED)

    def __post_init__(self) -> None:
        unknown = sorted(self.allowed - set(self.packages))
        if unknown:
            raise ValueError(f"allowed packages not built by a release: {', '.join(unknown)}")
        if not self.scope.startswith("@"):
            raise ValueError(f"scope must start with '@': {self.scope}")


@dataclass(frozen=True, slots=True)
class PathsConfig:
    """Paths relative to the workspace root."""

    state_dir: str = ".fork"
    ledger: str = ".fork/ledger.json"
    dist: str = "dist"


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    branch: BranchConfig = field(default_factory=BranchConfig)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        branch: StrDict = get_table(data, "branch") or {}
        upstream: StrDict = get_table(data, "upstream") or {}
        release: StrDict = get_table(data, "release") or {}
        publish: StrDict = get_table(data, "publish") or {}
        paths: StrDict = get_table(data, "paths") or {}

        packages = get_str_list(publish, "packages")
        allowed = get_str_list(publish, "allowed")

        return cls(
            branch=BranchConfig(
                name=get_str(branch, "name") or "main",
                remote=get_str(branch, "remote") or "origin",
            ),
            upstream=UpstreamConfig(
                remote=get_str(upstream, "remote") or "upstream",
                branch=get_str(upstream, "branch") or "main",
            ),
            release=ReleaseConfig(
                tag_prefix=get_str(release, "tag_prefix") or DEFAULT_TAG_PREFIX,
                sentinel=get_str(release, "sentinel") or DEFAULT_SENTINEL,
                manifest=get_str(release, "manifest") or DEFAULT_MANIFEST,
                product_channel=get_str(release, "product_channel") or DEFAULT_PRODUCT_CHANNEL,
                binary=get_str(release, "binary") or "codex",
            ),
            publish=PublishConfig(
                scope=get_str(publish, "scope") or DEFAULT_SCOPE,
                packages=tuple(packages) if packages else DEFAULT_PACKAGES,
                allowed=frozenset(allowed) if allowed is not None else frozenset(DEFAULT_ALLOWED),
            ),
            paths=PathsConfig(
                state_dir=get_str(paths, "state_dir") or ".fork",
                ledger=get_str(paths, "ledger") or ".fork/ledger.json",
                dist=get_str(paths, "dist") or "dist",
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to fork.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        config = Config.from_dict(result.value)
        return Ok(config)
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Config:
    """Load config from file, or return the defaults if it cannot be read."""
    result = load_config(path)
    if isinstance(result, Ok):
        return result.value
    return Config()
