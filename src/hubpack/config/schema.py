"""Configuration schema for hubpack.yaml."""

from __future__ import annotations

import shlex
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _split_command(value: object) -> object:
    """Accept ``"dotnet nuget"`` as well as ``["dotnet", "nuget"]``."""
    if isinstance(value, str):
        return shlex.split(value)
    return value


ToolCommand = Annotated[list[str], BeforeValidator(_split_command), Field(min_length=1)]


class TerminalMode(str, Enum):
    """What happens to the version stamps once packages are built."""

    COMMIT = "commit"
    REVERT = "revert"


class UnresolvedDependencyPolicy(str, Enum):
    """How to treat units that reference other local projects."""

    BUILD = "build"
    SKIP = "skip"
    FAIL = "fail"


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ManifestConfig(_Section):
    """File naming conventions."""

    manifest_suffix: str = ".sln"
    solution_suffix: str = ".sln"


class PipelineConfig(_Section):
    """Pipeline policy.

    Attributes:
        terminal_mode: Commit, tag and push the stamps, or revert them.
        unresolved_dependencies: Policy for units with local project references.
        require_branch: Fail unless a branch argument is given.
        require_up_to_date: Require clean and up to date instead of merely clean.
        fetch: Run ``git fetch`` before checking repository status.
        rollback_on_failure: Revert touched repositories when a mutating stage fails.
    """

    terminal_mode: TerminalMode = TerminalMode.COMMIT
    unresolved_dependencies: UnresolvedDependencyPolicy = UnresolvedDependencyPolicy.BUILD
    require_branch: bool = False
    require_up_to_date: bool = True
    fetch: bool = False
    rollback_on_failure: bool = False


class ToolsConfig(_Section):
    """External tools, each an executable plus optional leading arguments."""

    build: ToolCommand = Field(default_factory=lambda: ["msbuild"])
    package: ToolCommand = Field(default_factory=lambda: ["nuget"])
    git: ToolCommand = Field(default_factory=lambda: ["git"])


class TimeoutConfig(_Section):
    """Per-command timeouts in minutes."""

    git: float = Field(default=1, gt=0)
    clean: float = Field(default=1, gt=0)
    restore: float = Field(default=5, gt=0)
    build: float = Field(default=5, gt=0)
    pack: float = Field(default=5, gt=0)
    publish: float = Field(default=5, gt=0)


class BuildConfig(_Section):
    """Build and pack options."""

    configuration: str = "Release"
    clean: bool = True
    include_referenced_projects: bool = True


class StampConfig(_Section):
    """Where and how the version is written."""

    file_name: str = "AssemblyInfo.cs"
    pattern: str = r'\[assembly:\s+AssemblyVersion\(".+"\)\]'
    replacement: str = '[assembly: AssemblyVersion("{version}")]'

    @field_validator("replacement")
    @classmethod
    def _has_placeholder(cls, value: str) -> str:
        if "{version}" not in value:
            raise ValueError("replacement must contain '{version}'")
        return value


class PublishConfig(_Section):
    """Package publishing."""

    enabled: bool = False
    source: str = "https://www.nuget.org/api/v2/package"
    package_extension: str = ".nupkg"


class GitConfig(_Section):
    """Commit and tag naming. ``{version}`` is replaced with the version."""

    commit_message: str = "version {version}"
    tag_format: str = "v{version}"
    tag_message: str = "version {version}"


class HubPackConfig(_Section):
    """Root configuration model."""

    manifest: ManifestConfig = Field(default_factory=ManifestConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    stamp: StampConfig = Field(default_factory=StampConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    git: GitConfig = Field(default_factory=GitConfig)
