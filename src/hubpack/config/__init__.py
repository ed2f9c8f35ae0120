"""hubpack configuration."""

from hubpack.config.loader import CONFIG_FILENAME, find_config, load_config
from hubpack.config.schema import (
    BuildConfig,
    GitConfig,
    HubPackConfig,
    ManifestConfig,
    PipelineConfig,
    PublishConfig,
    StampConfig,
    TerminalMode,
    TimeoutConfig,
    ToolsConfig,
    UnresolvedDependencyPolicy,
)

__all__ = [
    "CONFIG_FILENAME",
    "BuildConfig",
    "GitConfig",
    "HubPackConfig",
    "ManifestConfig",
    "PipelineConfig",
    "PublishConfig",
    "StampConfig",
    "TerminalMode",
    "TimeoutConfig",
    "ToolsConfig",
    "UnresolvedDependencyPolicy",
    "find_config",
    "load_config",
]
