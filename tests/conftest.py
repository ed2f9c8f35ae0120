"""Shared test fixtures for hubpack tests."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env from project root (doesn't override existing env vars)
load_dotenv(Path(__file__).parent.parent / ".env")

CSHARP_PROJECT_TYPE = "FAE04EC0-301F-11D3-BF4B-00C04F79EFBC"


def solution_text(projects: Sequence[tuple[str, str]]) -> str:
    """Render a minimal .sln file listing (name, relative path) projects."""
    lines = [
        "",
        "Microsoft Visual Studio Solution File, Format Version 12.00",
        "# Visual Studio 14",
    ]
    for index, (name, relative) in enumerate(projects, start=1):
        guid = f"{{00000000-0000-0000-0000-{index:012d}}}"
        lines.append(f'Project("{{{CSHARP_PROJECT_TYPE}}}") = "{name}", "{relative}", "{guid}"')
        lines.append("EndProject")
    lines.extend(["Global", "EndGlobal", ""])
    return "\r\n".join(lines)


def project_text(references: Sequence[str] = ()) -> str:
    """Render a minimal .csproj with the given ProjectReference includes."""
    items = "".join(f'    <ProjectReference Include="{ref}" />\n' for ref in references)
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<Project ToolsVersion="14.0" '
        'xmlns="http://schemas.microsoft.com/developer/msbuild/2003">\n'
        "  <ItemGroup>\n"
        f"{items}"
        "  </ItemGroup>\n"
        "</Project>\n"
    )


def assembly_info(name: str, version: str = "1.0.0.0") -> str:
    """Render an AssemblyInfo.cs declaring a version."""
    return (
        "using System.Reflection;\n"
        "\n"
        f'[assembly: AssemblyTitle("{name}")]\n'
        f'[assembly: AssemblyVersion("{version}")]\n'
        f'[assembly: AssemblyFileVersion("{version}")]\n'
    )


def run_git(args: list[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    """Run a git command."""
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )


@pytest.fixture
def make_repository(tmp_path: Path) -> Callable[..., Path]:
    """Factory laying out ``<root>/<Name>/<Name>.sln`` and ``<Name>/<Name>/<Name>.csproj``."""

    def make(name: str, references: Sequence[str] = (), root: Path | None = None) -> Path:
        repo = (root or tmp_path) / name
        project_dir = repo / name
        (project_dir / "Properties").mkdir(parents=True)

        (repo / f"{name}.sln").write_text(solution_text([(name, f"{name}\\{name}.csproj")]))
        (project_dir / f"{name}.csproj").write_text(
            project_text([f"..\\..\\{ref}\\{ref}\\{ref}.csproj" for ref in references])
        )
        (project_dir / "Properties" / "AssemblyInfo.cs").write_text(assembly_info(name))
        return repo

    return make


@pytest.fixture
def make_hub(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a hub solution that references repositories under tmp_path."""

    def make(names: Sequence[str], file_name: str = "Hub.sln") -> Path:
        path = tmp_path / file_name
        path.write_text(solution_text([(n, f"{n}\\{n}\\{n}.csproj") for n in names]))
        return path

    return make


@pytest.fixture
def hub_manifest(make_repository: Callable[..., Path], make_hub: Callable[..., Path]) -> Path:
    """Hub with Core and Extensions (depends on Core), listed dependent first."""
    make_repository("Core")
    make_repository("Extensions", ["Core"])
    return make_hub(["Extensions", "Core"])


@pytest.fixture
def init_repository(tmp_path: Path) -> Callable[..., Path]:
    """Factory turning a directory into a git repository on ``main``.

    With ``remote=True`` a bare repository is created and set as upstream.
    """

    def init(path: Path, remote: bool = False) -> Path:
        run_git(["init", "-q"], path)
        run_git(["symbolic-ref", "HEAD", "refs/heads/main"], path)
        run_git(["config", "user.email", "test@example.com"], path)
        run_git(["config", "user.name", "Test User"], path)
        run_git(["config", "commit.gpgsign", "false"], path)
        run_git(["config", "tag.gpgsign", "false"], path)
        run_git(["add", "-A"], path)
        run_git(["commit", "-q", "-m", "Initial commit"], path)

        if remote:
            bare = tmp_path / "remotes" / f"{path.name}.git"
            bare.parent.mkdir(exist_ok=True)
            run_git(["init", "-q", "--bare", str(bare)], path)
            run_git(["remote", "add", "origin", str(bare)], path)
            run_git(["push", "-q", "-u", "origin", "main"], path)
        return path

    return init


@pytest.fixture(autouse=True)
def reset_hubpack_logger():
    """Undo CLI logging setup so caplog sees hubpack records."""
    yield
    logger = logging.getLogger("hubpack")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
