"""Solution and project file loading."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import Protocol
from xml.etree import ElementTree

from hubpack.errors import PackagerError

logger = logging.getLogger(__name__)

# Matches: Project("{type-guid}") = "Name", "relative\path.csproj", "{project-guid}"
PROJECT_LINE = re.compile(
    r'^Project\("\{(?P<type>[^}]+)\}"\)\s*=\s*'
    r'"(?P<name>[^"]+)"\s*,\s*'
    r'"(?P<path>[^"]+)"\s*,\s*'
    r'"\{(?P<guid>[^}]+)\}"',
    re.MULTILINE,
)

SOLUTION_FOLDER_TYPE = "2150E333-8FDC-42A3-9474-1A3956D46DE8"

PROJECT_SUFFIXES = (".csproj", ".vbproj", ".fsproj")


@dataclass(frozen=True, slots=True)
class ProjectEntry:
    """A project listed in a solution.

    Attributes:
        name: Project name as declared in the solution.
        path: Absolute path to the project file.
        references: Absolute paths of local projects this project references.
    """

    name: str
    path: Path
    references: tuple[Path, ...] = ()


@dataclass(frozen=True, slots=True)
class Solution:
    """A loaded solution file."""

    path: Path
    projects: tuple[ProjectEntry, ...]

    def get(self, name: str) -> ProjectEntry | None:
        """Find a project by name."""
        return next((p for p in self.projects if p.name == name), None)


class ManifestLoader(Protocol):
    """Anything able to turn a manifest path into a solution."""

    def load(self, path: Path) -> Solution: ...


def _native(relative: str) -> Path:
    """Convert a backslash separated path from a solution into a local path."""
    return Path(*PureWindowsPath(relative).parts)


class SolutionLoader:
    """Load ``.sln`` solutions and the project references of their projects."""

    def load(self, path: Path) -> Solution:
        """Load a solution file.

        Args:
            path: Path to the solution.

        Returns:
            Solution with its projects in declaration order.

        Raises:
            PackagerError: If the solution or one of its projects cannot be read.
        """
        path = path.resolve()
        logger.info("Getting projects in %s.", path)
        try:
            text = path.read_text(encoding="utf-8-sig", errors="replace")
        except OSError as e:
            raise PackagerError.expectation_failed(
                f"Could not read solution {path}: {e.strerror or e}"
            ) from e

        projects: list[ProjectEntry] = []
        for match in PROJECT_LINE.finditer(text):
            if match.group("type").upper() == SOLUTION_FOLDER_TYPE:
                continue
            relative = _native(match.group("path"))
            if relative.suffix.lower() not in PROJECT_SUFFIXES:
                continue

            project_path = (path.parent / relative).resolve()
            projects.append(
                ProjectEntry(
                    name=match.group("name"),
                    path=project_path,
                    references=self._read_references(project_path, path),
                )
            )

        return Solution(path=path, projects=tuple(projects))

    def _read_references(self, project_path: Path, solution_path: Path) -> tuple[Path, ...]:
        if not project_path.is_file():
            raise PackagerError.expectation_failed(
                f"Project {project_path} listed in {solution_path} does not exist."
            )

        try:
            tree = ElementTree.parse(project_path)
        except ElementTree.ParseError as e:
            raise PackagerError.expectation_failed(
                f"Project {project_path} is not valid XML: {e}"
            ) from e

        references = []
        for element in tree.iter():
            # MSBuild files may or may not declare a namespace
            if element.tag.rsplit("}", 1)[-1] != "ProjectReference":
                continue
            include = element.get("Include")
            if include:
                references.append((project_path.parent / _native(include)).resolve())
        return tuple(references)
