"""Integration tests running the pipeline against real git repositories.

msbuild and nuget are replaced by a small script that records its arguments,
fails or hangs on request, and writes a package file on ``pack``.
"""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

from hubpack.commands import PackageResult, package
from hubpack.config import HubPackConfig, TerminalMode
from hubpack.errors import ErrorKind, Stage

pytestmark = pytest.mark.integration

FAKE_TOOL = r'''
import json
import os
import re
import sys
import time
from pathlib import Path

tool, *args = sys.argv[1:]
line = " ".join([tool, *args])
with open(os.environ["HUBPACK_FAKE_LOG"], "a") as log:
    log.write(json.dumps({"cwd": os.getcwd(), "args": [tool, *args]}) + "\n")

hang_on = os.environ.get("HUBPACK_FAKE_HANG_ON")
if hang_on and hang_on in line:
    time.sleep(60)

fail_on = os.environ.get("HUBPACK_FAKE_FAIL_ON")
if fail_on and fail_on in line:
    print("compiling", flush=True)
    print("build failed", file=sys.stderr)
    sys.exit(1)

if tool == "nuget" and args[0] == "pack":
    info = Path("Properties", "AssemblyInfo.cs").read_text()
    version = re.search(r'AssemblyVersion\("([^"]+)"\)', info).group(1)
    Path(Path(args[1]).stem + "." + version + ".nupkg").write_text("package")
'''


def git(args: list[str], cwd: Path) -> str:
    """Run git and return its stripped output."""
    return subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    ).stdout.strip()


@pytest.fixture
def tool_log(tmp_path: Path) -> Path:
    return tmp_path / "tools.jsonl"


@pytest.fixture
def config(tmp_path: Path) -> HubPackConfig:
    """Configuration pointing msbuild and nuget at the fake tool."""
    script = tmp_path / "fake_tool.py"
    script.write_text(FAKE_TOOL)
    return HubPackConfig.model_validate(
        {
            "tools": {
                "build": [sys.executable, str(script), "msbuild"],
                "package": [sys.executable, str(script), "nuget"],
            }
        }
    )


def tool_calls(log: Path) -> list[dict]:
    if not log.exists():
        return []
    return [json.loads(line) for line in log.read_text().splitlines()]


def info_file(repo: Path) -> Path:
    return repo / repo.name / "Properties" / "AssemblyInfo.cs"


async def run_package(
    config: HubPackConfig,
    manifest: Path,
    tool_log: Path,
    *,
    branch: str | None = None,
    **env: str,
) -> PackageResult:
    return await package(
        config,
        manifest,
        "2.3.0",
        branch=branch,
        env={"HUBPACK_FAKE_LOG": str(tool_log), **env},
    )


class TestCommitMode:
    """Stamps are committed, tagged and pushed."""

    async def test_release_two_repositories(
        self,
        tmp_path: Path,
        hub_manifest: Path,
        init_repository,
        config: HubPackConfig,
        tool_log: Path,
    ) -> None:
        core = init_repository(tmp_path / "Core", remote=True)
        extensions = init_repository(tmp_path / "Extensions", remote=True)

        result = await run_package(config, hub_manifest, tool_log, branch="main")

        assert result.success, result.error
        assert result.packaged == ["Core", "Extensions"]

        calls = [" ".join(call["args"]) for call in tool_calls(tool_log)]
        assert calls == [
            "msbuild Core.sln /t:Clean /p:Configuration=Release",
            "msbuild Extensions.sln /t:Clean /p:Configuration=Release",
            "nuget restore Core.sln",
            "nuget restore Extensions.sln",
            "msbuild Core.sln /t:Build /p:Configuration=Release",
            "nuget pack Core.csproj -IncludeReferencedProjects -Prop Configuration=Release",
            "msbuild Extensions.sln /t:Build /p:Configuration=Release",
            "nuget pack Extensions.csproj -IncludeReferencedProjects -Prop Configuration=Release",
        ]

        for repo in (core, extensions):
            assert git(["rev-list", "--count", "HEAD"], repo) == "2"
            assert git(["log", "-1", "--format=%s"], repo) == "version 2.3.0"
            assert git(["diff", "HEAD", "--name-only"], repo) == ""
            assert 'AssemblyVersion("2.3.0")' in info_file(repo).read_text()
            assert (repo / repo.name / f"{repo.name}.2.3.0.nupkg").exists()

            remote = tmp_path / "remotes" / f"{repo.name}.git"
            assert git(["cat-file", "-t", "v2.3.0"], remote) == "tag"
            assert git(["rev-parse", "main"], remote) == git(["rev-parse", "HEAD"], repo)
            assert git(["rev-parse", "v2.3.0^{commit}"], remote) == git(
                ["rev-parse", "HEAD"], repo
            )

    async def test_behind_upstream_fails_before_building(
        self,
        tmp_path: Path,
        hub_manifest: Path,
        init_repository,
        config: HubPackConfig,
        tool_log: Path,
    ) -> None:
        init_repository(tmp_path / "Core", remote=True)
        extensions = init_repository(tmp_path / "Extensions", remote=True)

        # Move the remote ahead through a second clone
        clone = tmp_path / "clone"
        remote = tmp_path / "remotes" / "Extensions.git"
        git(["clone", "-q", "-b", "main", str(remote), str(clone)], tmp_path)
        git(["config", "commit.gpgsign", "false"], clone)
        git(["config", "user.email", "test@example.com"], clone)
        git(["config", "user.name", "Test User"], clone)
        (clone / "README.md").write_text("# Extensions\n")
        git(["add", "README.md"], clone)
        git(["commit", "-q", "-m", "docs"], clone)
        git(["push", "-q", "origin", "main"], clone)
        git(["fetch", "-q"], extensions)

        result = await run_package(config, hub_manifest, tool_log)

        assert result.error is not None
        assert result.error.stage == Stage.PRECONDITION
        assert "behind its upstream" in result.error.message
        assert tool_calls(tool_log) == []


class TestPreconditionGate:
    """A failing precondition leaves every repository untouched."""

    async def test_dirty_repository(
        self,
        tmp_path: Path,
        hub_manifest: Path,
        init_repository,
        config: HubPackConfig,
        tool_log: Path,
    ) -> None:
        core = init_repository(tmp_path / "Core")
        extensions = init_repository(tmp_path / "Extensions")
        (extensions / "notes.txt").write_text("work in progress\n")
        before = info_file(core).read_bytes()

        result = await run_package(config, hub_manifest, tool_log)

        assert not result.success
        assert result.error is not None
        assert result.error.kind == ErrorKind.EXPECTATION_FAILED
        assert result.error.exit_code == 66
        assert tool_calls(tool_log) == []
        assert info_file(core).read_bytes() == before
        assert git(["rev-list", "--count", "HEAD"], core) == "1"

    async def test_not_a_repository(
        self,
        tmp_path: Path,
        hub_manifest: Path,
        init_repository,
        config: HubPackConfig,
        tool_log: Path,
    ) -> None:
        init_repository(tmp_path / "Core")

        result = await run_package(config, hub_manifest, tool_log)

        assert result.error is not None
        assert result.error.message.endswith("is not a git repo.")
        assert tool_calls(tool_log) == []


class TestRevertMode:
    """Stamps are reverted whether the run succeeds or fails."""

    async def test_success_restores_bytes(
        self,
        tmp_path: Path,
        hub_manifest: Path,
        init_repository,
        config: HubPackConfig,
        tool_log: Path,
    ) -> None:
        repos = [init_repository(tmp_path / "Core"), init_repository(tmp_path / "Extensions")]
        before = [info_file(repo).read_bytes() for repo in repos]
        config.pipeline.terminal_mode = TerminalMode.REVERT

        result = await run_package(config, hub_manifest, tool_log)

        assert result.success, result.error
        assert [info_file(repo).read_bytes() for repo in repos] == before
        for repo in repos:
            # Packages were built from the stamped version
            assert (repo / repo.name / f"{repo.name}.2.3.0.nupkg").exists()
            assert git(["rev-list", "--count", "HEAD"], repo) == "1"
            assert git(["tag", "-l"], repo) == ""

    async def test_build_failure_reverts_and_reports_output(
        self,
        tmp_path: Path,
        hub_manifest: Path,
        init_repository,
        config: HubPackConfig,
        tool_log: Path,
    ) -> None:
        repos = [init_repository(tmp_path / "Core"), init_repository(tmp_path / "Extensions")]
        before = [info_file(repo).read_bytes() for repo in repos]
        config.pipeline.terminal_mode = TerminalMode.REVERT

        result = await run_package(
            config, hub_manifest, tool_log, HUBPACK_FAKE_FAIL_ON="Extensions.sln /t:Build"
        )

        error = result.error
        assert error is not None
        assert error.kind == ErrorKind.COMMAND_FAILED
        assert error.stage == Stage.BUILD
        assert error.outcome is not None
        assert error.outcome.exit_code == 1
        assert error.outcome.stdout == "compiling\n"
        assert error.outcome.stderr == "build failed\n"
        assert error.outcome.working_directory == (tmp_path / "Extensions").resolve()

        assert result.rolled_back
        assert [info_file(repo).read_bytes() for repo in repos] == before
        calls = [" ".join(call["args"][:2]) for call in tool_calls(tool_log)]
        assert "nuget pack" in calls
        assert calls[-1] == "msbuild Extensions.sln"


class TestTimeouts:
    """A hung tool is killed and reported as timed out."""

    async def test_restore_timeout(
        self,
        tmp_path: Path,
        hub_manifest: Path,
        init_repository,
        config: HubPackConfig,
        tool_log: Path,
    ) -> None:
        core = init_repository(tmp_path / "Core")
        init_repository(tmp_path / "Extensions")
        before = info_file(core).read_bytes()
        config.timeouts.restore = 0.05

        result = await run_package(
            config, hub_manifest, tool_log, HUBPACK_FAKE_HANG_ON="restore Core.sln"
        )

        error = result.error
        assert error is not None
        assert error.kind == ErrorKind.TIMED_OUT
        assert error.stage == Stage.RESTORE
        assert error.exit_code == 65
        assert error.outcome is not None
        assert error.outcome.exit_code is None
        assert result.duration_seconds < 30
        assert info_file(core).read_bytes() == before
