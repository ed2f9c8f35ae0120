"""Plan command: show the build order without touching anything."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

from hubpack.commands.base import CommandContext, SyncCommand
from hubpack.commands.package import distinct_repositories
from hubpack.workspace import DependencyGraphResolver, ProjectUnit, RepositoryLocation

if TYPE_CHECKING:
    from hubpack.config import HubPackConfig


@dataclass
class PlanResult:
    """Result of plan command."""

    units: list[ProjectUnit] = field(default_factory=list)
    repositories: list[RepositoryLocation] = field(default_factory=list)

    def to_dicts(self) -> list[dict[str, Any]]:
        """Units as JSON-serialisable dictionaries, in build order."""
        return [
            {
                "order": index,
                "name": unit.name,
                "project": str(unit.manifest_path),
                "repository": str(unit.repository),
                "solution": str(unit.solution_path),
                "dependencies": unit.dependency_names,
                "has_local_references": unit.has_local_references,
            }
            for index, unit in enumerate(self.units, start=1)
        ]


class PlanCommand(SyncCommand[PlanResult]):
    """Resolve a hub solution and report the units in build order."""

    def __init__(
        self,
        context: CommandContext,
        manifest: Path,
        resolver: DependencyGraphResolver | None = None,
    ) -> None:
        super().__init__(context)
        self.manifest = manifest
        self.resolver = resolver or DependencyGraphResolver(
            solution_suffix=self.config.manifest.solution_suffix
        )

    def execute(self) -> PlanResult:
        units = self.resolver.resolve(self.manifest)
        return PlanResult(units=units, repositories=distinct_repositories(units))


def plan(config: HubPackConfig, manifest: Path) -> PlanResult:
    """Convenience function to resolve the build plan."""
    return PlanCommand(CommandContext(config=config), manifest).execute()


def handle_plan_command(
    config: HubPackConfig,
    manifest: Path,
    *,
    console: Console,
    json_output: bool = False,
) -> None:
    """CLI handler for the plan command."""
    result = plan(config, manifest)

    if json_output:
        console.print_json(json.dumps(result.to_dicts()))
        return

    table = Table(title=f"Build order for {manifest.name}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Project", style="bold cyan")
    table.add_column("Repository")
    table.add_column("Dependencies")
    table.add_column("Local refs", justify="center")

    for row in result.to_dicts():
        table.add_row(
            str(row["order"]),
            row["name"],
            row["repository"],
            ", ".join(row["dependencies"]) or "-",
            "yes" if row["has_local_references"] else "-",
        )

    console.print(table)
    console.print(
        f"{len(result.units)} projects in {len(result.repositories)} repositories"
    )
