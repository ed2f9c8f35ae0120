"""hubpack - package a graph of library repositories.

Given a hub solution, hubpack:
- Resolves every referenced project into a dependency-first build order
- Checks that each owning git repository is clean and on the right branch
- Stamps a new version, then restores, builds and packs each project
- Optionally publishes the packages
- Commits, tags and pushes the version bump, or reverts it
"""

from hubpack.commands import PackageCommand, PackageOptions, PackageResult, package, plan
from hubpack.config import HubPackConfig, TerminalMode, UnresolvedDependencyPolicy, load_config
from hubpack.errors import ErrorKind, PackagerError, Stage
from hubpack.execution import CommandOutcome, ProcessRunner
from hubpack.git import RepositoryGateway, RepositoryStatus
from hubpack.versioning import VersionStamper
from hubpack.workspace import DependencyGraphResolver, ProjectUnit, RepositoryLocation

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Pipeline
    "PackageCommand",
    "PackageOptions",
    "PackageResult",
    "package",
    "plan",
    # Components
    "ProcessRunner",
    "CommandOutcome",
    "RepositoryGateway",
    "RepositoryStatus",
    "DependencyGraphResolver",
    "ProjectUnit",
    "RepositoryLocation",
    "VersionStamper",
    # Config
    "HubPackConfig",
    "TerminalMode",
    "UnresolvedDependencyPolicy",
    "load_config",
    # Errors
    "PackagerError",
    "ErrorKind",
    "Stage",
]
