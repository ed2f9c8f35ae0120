"""Package command: the packaging pipeline."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

from hubpack.commands.base import Command, CommandContext
from hubpack.config import PipelineConfig, TerminalMode, UnresolvedDependencyPolicy
from hubpack.errors import PackagerError, Stage
from hubpack.execution import CommandOutcome, OutputHandler, ProcessRunner, minutes
from hubpack.git import RepositoryGateway, RepositoryStatus
from hubpack.versioning import VersionStamper
from hubpack.workspace import DependencyGraphResolver, ProjectUnit, RepositoryLocation

if TYPE_CHECKING:
    from hubpack.config import HubPackConfig

logger = logging.getLogger(__name__)

# Stages after which the working trees may hold version stamps
MUTATING_STAGES = frozenset({Stage.BUILD, Stage.PUBLISH})


def distinct_repositories(units: Iterable[ProjectUnit]) -> list[RepositoryLocation]:
    """Repositories of the given units, each once, in first-seen order."""
    return list(dict.fromkeys(unit.repository for unit in units))


@dataclass
class PackageOptions:
    """Options for package command."""

    manifest: Path
    version: str
    branch: str | None = None


@dataclass
class PackageResult:
    """Result of package command.

    Attributes:
        version: Version that was stamped.
        success: Whether the run completed every stage.
        units: Resolved units in build order.
        repositories: Distinct repositories of the resolved units.
        packaged: Names of units that were stamped, built and packed.
        skipped: Names of units skipped because of local project references.
        error: The first fatal error, if the run failed.
        duration_seconds: Total run time.
        rolled_back: Whether touched repositories were reverted after a failure.
        rollback_errors: Failures raised while rolling back.
    """

    version: str
    success: bool = True
    units: list[ProjectUnit] = field(default_factory=list)
    repositories: list[RepositoryLocation] = field(default_factory=list)
    packaged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: PackagerError | None = None
    duration_seconds: float = 0.0
    rolled_back: bool = False
    rollback_errors: list[PackagerError] = field(default_factory=list)


class PackageCommand(Command[PackageResult]):
    """Stamp, build, pack and publish every project of a hub solution.

    Stages run strictly in order and each stage handles every unit before the
    next one starts:

    resolve -> precondition -> clean -> restore -> stamp/build/pack -> publish
    -> commit, tag and push (or revert)

    The first failure stops the run. In revert mode the stamps are reverted even
    when building fails; in commit mode they are only rolled back when
    ``pipeline.rollback_on_failure`` is set.
    """

    def __init__(
        self,
        context: CommandContext,
        options: PackageOptions,
        *,
        runner: ProcessRunner | None = None,
        gateway: RepositoryGateway | None = None,
        resolver: DependencyGraphResolver | None = None,
        stamper: VersionStamper | None = None,
    ) -> None:
        super().__init__(context)
        self.options = options

        config = self.config
        self.runner = runner or ProcessRunner(env=context.env, on_output=context.output_handler)
        self.gateway = gateway or RepositoryGateway(
            self.runner,
            git=config.tools.git,
            timeout=minutes(config.timeouts.git),
        )
        self.resolver = resolver or DependencyGraphResolver(
            solution_suffix=config.manifest.solution_suffix
        )
        self.stamper = stamper or VersionStamper(config.stamp)

        self._stage = Stage.RESOLVE
        self._packaged: list[ProjectUnit] = []
        self._touched: list[RepositoryLocation] = []

    @property
    def pipeline(self) -> PipelineConfig:
        """Pipeline policy."""
        return self.config.pipeline

    @property
    def version(self) -> str:
        """Version being released."""
        return self.options.version

    def validate(self) -> list[str]:
        """Validate the command."""
        errors = super().validate()
        if not self.options.version.strip():
            errors.append("The version must not be empty.")
        if self.pipeline.require_branch and not self.options.branch:
            errors.append("A branch is required by pipeline.require_branch.")
        return errors

    def _enter(self, stage: Stage) -> None:
        self._stage = stage
        logger.info("Stage: %s", stage.value)

    async def _tool(
        self,
        tool: Sequence[str],
        cwd: Path,
        args: list[str],
        timeout_minutes: float,
    ) -> CommandOutcome:
        command, *prefix = tool
        return await self.runner.run(cwd, command, [*prefix, *args], minutes(timeout_minutes))

    async def _check_repositories(self, repositories: list[RepositoryLocation]) -> None:
        """Fail unless every repository is safe to modify."""
        branch = self.options.branch

        for repo in repositories:
            logger.info("Checking status of %s.", repo)

            if not self.gateway.is_repository(repo.path):
                raise PackagerError.expectation_failed(f"{repo} is not a git repo.")

            if self.pipeline.fetch:
                await self.gateway.fetch(repo.path)

            if branch:
                current = await self.gateway.current_branch(repo.path)
                if current != branch:
                    raise PackagerError.expectation_failed(
                        f"{repo} is checked out to {current}, expected {branch}."
                    )

            if self.pipeline.require_up_to_date:
                status = await self.gateway.status(repo.path)
                if status != RepositoryStatus.CLEAN_AND_UP_TO_DATE:
                    raise PackagerError.expectation_failed(
                        f"{repo} is not clean and up to date: {status.value}."
                    )
            elif await self.gateway.has_uncommitted_changes(repo.path):
                raise PackagerError.expectation_failed(f"{repo} has uncommitted changes.")

    async def _clean(self, units: list[ProjectUnit]) -> None:
        for unit in units:
            await self._tool(
                self.config.tools.build,
                unit.repository.path,
                [
                    unit.solution_path.name,
                    "/t:Clean",
                    f"/p:Configuration={self.config.build.configuration}",
                ],
                self.config.timeouts.clean,
            )

    async def _restore(self, units: list[ProjectUnit]) -> None:
        for unit in units:
            await self._tool(
                self.config.tools.package,
                unit.repository.path,
                ["restore", unit.solution_path.name],
                self.config.timeouts.restore,
            )

    def _check_local_references(self, units: list[ProjectUnit]) -> None:
        """Fail on units with local project references when the policy forbids them."""
        if self.pipeline.unresolved_dependencies != UnresolvedDependencyPolicy.FAIL:
            return
        for unit in units:
            if unit.has_local_references:
                raise PackagerError.expectation_failed(
                    f"Project {unit.name} references local projects "
                    f"({', '.join(unit.dependency_names) or 'outside the hub solution'})."
                )

    def _should_skip(self, unit: ProjectUnit) -> bool:
        """Check if a unit is skipped for referencing other local projects."""
        if not unit.has_local_references:
            return False
        if self.pipeline.unresolved_dependencies != UnresolvedDependencyPolicy.SKIP:
            return False
        logger.warning(
            "Skipping %s: it references local projects and must be packaged "
            "from published references.",
            unit.name,
        )
        return True

    async def _build_and_pack(self, units: list[ProjectUnit], result: PackageResult) -> None:
        build = self.config.build
        commit_mode = self.pipeline.terminal_mode == TerminalMode.COMMIT

        for unit in units:
            if self._should_skip(unit):
                result.skipped.append(unit.name)
                continue

            if unit.repository not in self._touched:
                self._touched.append(unit.repository)
            stamped = self.stamper.stamp(unit, self.version)
            if commit_mode:
                await self.gateway.stage(unit.repository.path, stamped)

            await self._tool(
                self.config.tools.build,
                unit.repository.path,
                [
                    unit.solution_path.name,
                    "/t:Build",
                    f"/p:Configuration={build.configuration}",
                ],
                self.config.timeouts.build,
            )

            pack_args = ["pack", unit.manifest_path.name]
            if build.include_referenced_projects:
                pack_args.append("-IncludeReferencedProjects")
            pack_args.extend(["-Prop", f"Configuration={build.configuration}"])
            await self._tool(
                self.config.tools.package,
                unit.directory,
                pack_args,
                self.config.timeouts.pack,
            )

            self._packaged.append(unit)
            result.packaged.append(unit.name)

    async def _publish(self) -> None:
        publish = self.config.publish
        for unit in self._packaged:
            await self._tool(
                self.config.tools.package,
                unit.directory,
                [
                    "push",
                    unit.package_file_name(self.version, publish.package_extension),
                    "-Source",
                    publish.source,
                ],
                self.config.timeouts.publish,
            )

    async def _commit_tag_and_push(self) -> None:
        git = self.config.git
        version = self.version
        for repo in self._touched:
            await self.gateway.commit(repo.path, git.commit_message.format(version=version))
            await self.gateway.tag(
                repo.path,
                git.tag_format.format(version=version),
                git.tag_message.format(version=version),
            )
            await self.gateway.push_with_tags(repo.path)

    async def _revert(self, repositories: list[RepositoryLocation]) -> None:
        for repo in repositories:
            if self.gateway.is_repository(repo.path):
                await self.gateway.revert_all_changes(repo.path)

    async def _rollback(self) -> list[PackagerError]:
        """Revert every touched repository, collecting failures instead of stopping."""
        errors: list[PackagerError] = []
        commit_mode = self.pipeline.terminal_mode == TerminalMode.COMMIT

        for repo in self._touched:
            logger.warning("Rolling back version stamps in %s.", repo)
            try:
                if commit_mode:
                    await self.gateway.unstage_all(repo.path)
                await self.gateway.revert_all_changes(repo.path)
            except PackagerError as e:
                logger.error("Rollback of %s failed: %s", repo, e.message)
                errors.append(e)
        return errors

    def _wants_rollback(self) -> bool:
        if not self._touched or self._stage not in MUTATING_STAGES:
            return False
        return (
            self.pipeline.terminal_mode == TerminalMode.REVERT
            or self.pipeline.rollback_on_failure
        )

    async def execute(self) -> PackageResult:
        """Execute the pipeline."""
        start_time = time.monotonic()
        result = PackageResult(version=self.version)

        errors = self.validate()
        if errors:
            result.success = False
            result.error = PackagerError.configuration(" ".join(errors))
            return result

        try:
            self._enter(Stage.RESOLVE)
            result.units = self.resolver.resolve(self.options.manifest)
            result.repositories = distinct_repositories(result.units)

            self._enter(Stage.PRECONDITION)
            self._check_local_references(result.units)
            await self._check_repositories(result.repositories)

            if self.config.build.clean:
                self._enter(Stage.CLEAN)
                await self._clean(result.units)

            self._enter(Stage.RESTORE)
            await self._restore(result.units)

            self._enter(Stage.BUILD)
            await self._build_and_pack(result.units, result)

            if self.config.publish.enabled:
                self._enter(Stage.PUBLISH)
                await self._publish()

            self._enter(Stage.TERMINAL)
            if self.pipeline.terminal_mode == TerminalMode.COMMIT:
                await self._commit_tag_and_push()
            else:
                await self._revert(result.repositories)

        except PackagerError as e:
            e.at_stage(self._stage)
            logger.error("%s stage failed: %s", self._stage.value.capitalize(), e.message)
            result.success = False
            result.error = e

            if self._wants_rollback():
                result.rollback_errors = await self._rollback()
                result.rolled_back = True

        result.duration_seconds = time.monotonic() - start_time
        return result


async def package(
    config: HubPackConfig,
    manifest: Path,
    version: str,
    *,
    branch: str | None = None,
    env: dict[str, str] | None = None,
    verbose: bool = False,
    output_handler: OutputHandler | None = None,
) -> PackageResult:
    """Convenience function to run the packaging pipeline."""
    context = CommandContext(
        config=config,
        verbose=verbose,
        env=env or {},
        output_handler=output_handler,
    )
    options = PackageOptions(manifest=manifest, version=version, branch=branch)
    return await PackageCommand(context, options).execute()


def print_failure(error: PackagerError, console: Console) -> None:
    """Print a failure with enough context to reproduce it by hand."""
    console.print(f"\n[red]{escape(error.describe())}[/red]")
    if error.stage is not None:
        console.print(f"[dim]Stage: {error.stage.value}[/dim]")

    outcome = error.outcome
    if outcome is None:
        return
    console.print(f"[dim]Working directory: {escape(str(outcome.working_directory))}[/dim]")
    if outcome.stdout.strip():
        console.print("[bold]Standard output:[/bold]")
        console.print(escape(outcome.stdout.rstrip()))
    if outcome.stderr.strip():
        console.print("[bold]Standard error:[/bold]")
        console.print(escape(outcome.stderr.rstrip()))


async def handle_package_command(
    config: HubPackConfig,
    manifest: Path,
    version: str,
    *,
    console: Console,
    error_console: Console,
    branch: str | None = None,
    verbose: bool = False,
) -> None:
    """CLI handler for the package command."""

    def output_handler(line: str, is_stderr: bool) -> None:
        style = "red" if is_stderr else "dim"
        console.print(f"[{style}]{escape(line)}[/{style}]")

    result = await package(
        config,
        manifest,
        version,
        branch=branch,
        verbose=verbose,
        output_handler=output_handler if verbose else None,
    )

    if result.success:
        console.print(f"\n[green]Packaged {len(result.packaged)} projects at {version}[/green]")
        if result.skipped:
            console.print(f"[yellow]Skipped: {', '.join(result.skipped)}[/yellow]")
        console.print(f"Finished in {result.duration_seconds:.1f} seconds")
        return

    error = result.error
    assert error is not None  # execute() sets error whenever success is False
    print_failure(error, error_console)

    if result.rolled_back:
        state = "with errors" if result.rollback_errors else "cleanly"
        error_console.print(f"[yellow]Version stamps were rolled back {state}.[/yellow]")
        for rollback_error in result.rollback_errors:
            error_console.print(f"[yellow]  {escape(rollback_error.describe())}[/yellow]")

    raise typer.Exit(error.exit_code)
