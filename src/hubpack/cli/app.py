"""hubpack CLI application."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from hubpack import exit_codes
from hubpack.config import HubPackConfig, TerminalMode, UnresolvedDependencyPolicy, load_config
from hubpack.errors import PackagerError

# Versions are substituted verbatim into files, so only reject what would break quoting
VERSION_PATTERN = re.compile(r"""^[^\s"']+$""")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from hubpack import __version__

        print(f"hubpack {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="hubpack",
    help="Version, build, pack and publish a graph of library repositories",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def _app_callback(
    version: Annotated[  # noqa: ARG001
        bool,
        typer.Option("--version", "-V", help="Show version and exit", callback=version_callback),
    ] = False,
) -> None:
    """Package every project referenced by a hub solution."""
    pass


console = Console()
error_console = Console(stderr=True)


def configure_logging(verbose: bool = False) -> None:
    """Send hubpack log records to stderr through rich."""
    logger = logging.getLogger("hubpack")
    logger.handlers.clear()
    logger.addHandler(
        RichHandler(console=error_console, show_path=False, show_time=verbose, markup=False)
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def get_config(manifest: Path, config_path: Path | None) -> HubPackConfig:
    """Load configuration from --config or next to the manifest."""
    try:
        return load_config(config_path, search_from=manifest.parent)
    except PackagerError as e:
        error_console.print(f"[red]{e.describe()}[/red]")
        raise typer.Exit(e.exit_code) from e


def check_manifest(manifest: Path, suffix: str) -> None:
    """Exit unless the manifest exists and has the expected suffix."""
    if not (manifest.is_file() and manifest.name.endswith(suffix)):
        error_console.print(
            f"[red]Error:[/red] Either {manifest} does not exist or it is not a "
            f"{suffix} solution file."
        )
        raise typer.Exit(exit_codes.USAGE_ERROR)


ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Config file (default: hubpack.yaml next to the manifest)"),
]


@app.command("package")
def package_cmd(
    manifest: Annotated[Path, typer.Argument(help="Hub solution listing the projects")],
    version: Annotated[str, typer.Argument(help="Version to stamp, e.g. 2.3.0")],
    branch: Annotated[
        str | None,
        typer.Argument(help="Branch every repository must be on"),
    ] = None,
    config_path: ConfigOption = None,
    mode: Annotated[
        TerminalMode | None,
        typer.Option("--mode", "-m", help="Commit, tag and push the stamps, or revert them"),
    ] = None,
    publish: Annotated[
        bool | None,
        typer.Option("--publish/--no-publish", help="Push packages to the registry"),
    ] = None,
    on_local_references: Annotated[
        UnresolvedDependencyPolicy | None,
        typer.Option(
            "--on-local-references",
            help="What to do with projects that reference other local projects",
        ),
    ] = None,
    rollback_on_failure: Annotated[
        bool | None,
        typer.Option(
            "--rollback-on-failure/--no-rollback-on-failure",
            help="Revert version stamps when building or publishing fails",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Stream tool output and debug logs"),
    ] = False,
) -> None:
    """Stamp, build, pack and optionally publish every project."""
    from hubpack.commands import handle_package_command

    configure_logging(verbose)
    config = get_config(manifest, config_path)
    check_manifest(manifest, config.manifest.manifest_suffix)

    if not VERSION_PATTERN.match(version):
        error_console.print(f"[red]Error:[/red] Invalid version: {version!r}")
        raise typer.Exit(exit_codes.USAGE_ERROR)

    if mode is not None:
        config.pipeline.terminal_mode = mode
    if on_local_references is not None:
        config.pipeline.unresolved_dependencies = on_local_references
    if rollback_on_failure is not None:
        config.pipeline.rollback_on_failure = rollback_on_failure
    if publish is not None:
        config.publish.enabled = publish

    try:
        asyncio.run(
            handle_package_command(
                config,
                manifest.resolve(),
                version,
                console=console,
                error_console=error_console,
                branch=branch,
                verbose=verbose,
            )
        )
    except typer.Exit:
        raise
    except KeyboardInterrupt:
        error_console.print("[yellow]Interrupted.[/yellow]")
        raise typer.Exit(exit_codes.INTERRUPTED) from None
    except Exception as e:
        error_console.print_exception()
        raise typer.Exit(exit_codes.GENERAL_ERROR) from e


@app.command("plan")
def plan_cmd(
    manifest: Annotated[Path, typer.Argument(help="Hub solution listing the projects")],
    config_path: ConfigOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the build order without running anything."""
    from hubpack.commands import handle_plan_command

    configure_logging()
    config = get_config(manifest, config_path)
    check_manifest(manifest, config.manifest.manifest_suffix)

    try:
        handle_plan_command(config, manifest.resolve(), console=console, json_output=json_output)
    except PackagerError as e:
        error_console.print(f"[red]{e.describe()}[/red]")
        raise typer.Exit(e.exit_code) from e


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
