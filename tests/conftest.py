from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import httpx
import pytest

from rn_build.core.core import BuildPipeline
from rn_build.core.models import RunFlags, TransportMode
from rn_build.core.output import EXTERN_PREFIX, OutputMultiplexer
from rn_build.core.services.git_module import (
    ClonedRepo,
    GitCheckoutError,
    GitCloneError,
    GitSource,
)
from rn_build.core.workspace import WorkspaceManager

SRC_DIR = "app"
APP_VERSION = "1.2.3"


def populate_app(root: Path) -> None:
    app = root / SRC_DIR
    (app / "js").mkdir(parents=True, exist_ok=True)
    (app / "package.json").write_text(json.dumps({"version": APP_VERSION}), encoding="utf-8")


def transport_error(transport: TransportMode = TransportMode.ssh) -> GitCloneError:
    return GitCloneError(
        repository="acme/mobile",
        transport=transport,
        transport_failure=transport == TransportMode.ssh,
        logs=["Permission denied (publickey)."],
    )


class FakeGit(GitSource):
    """Scripted stand-in for the GitPython collaborator."""

    def __init__(
        self,
        clone_failures: Optional[Sequence[Optional[GitCloneError]]] = None,
        missing_branches: Sequence[str] = (),
        on_clone: Optional[Callable[[], object]] = None,
    ) -> None:
        self.clone_failures = list(clone_failures or [])
        self.missing_branches = set(missing_branches)
        self.on_clone = on_clone
        self.clones: List[tuple] = []
        self.checkouts: List[str] = []

    async def clone(self, remote, dest, transport):
        self.clones.append((remote, Path(dest), transport))
        if self.on_clone is not None:
            result = self.on_clone()
            if asyncio.iscoroutine(result):
                await result
        if self.clone_failures:
            failure = self.clone_failures.pop(0)
            if failure is not None:
                raise failure
        populate_app(Path(dest))
        return ClonedRepo(repo_path=Path(dest), transport=transport)

    async def checkout_branch(self, repo, branch):
        self.checkouts.append(branch)
        if branch in self.missing_branches:
            raise GitCheckoutError(branch=branch)
        return repo


class FakeOutput(OutputMultiplexer):
    """Runs no processes, records what would have been run."""

    def __init__(self, *args, captured_codes: Optional[Dict[str, int]] = None, release_code: int = 0, **kwargs):
        kwargs.setdefault("animate", False)
        super().__init__(*args, **kwargs)
        self.captured_codes = captured_codes or {}
        self.release_code = release_code
        self.captured: List[str] = []
        self.streamed: List[tuple] = []

    async def run_captured(self, command, cwd=None, env=None, text=None):
        self.captured.append(command)
        return self.captured_codes.get(command, 0), "", ""

    async def run_streamed(self, cmd, args, prefix=EXTERN_PREFIX, env=None, cwd=None, log_path=None):
        self.streamed.append((cmd, list(args), env, cwd))
        channel = self.open_channel(prefix, log_path)
        try:
            channel.write("fastlane says hi\n")
            channel.write("deprecation notice\n", stderr=True)
        finally:
            channel.close()
        return self.release_code


def counter_transport(status: int = 200, body: object = 42, seen: Optional[list] = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture()
def config_data() -> dict:
    return {
        "repo": "acme/mobile",
        "srcDir": SRC_DIR,
        "versionCounter": "https://counter.test/next",
        "prefix": "mobile",
        "env": {"API_URL": "https://api.test"},
        "github": {"credentials": {"user": "bot", "password": "s3cret"}},
        "fastlane": {"credentials": {"user": "ci@acme.test", "password": "pw"}},
    }


@pytest.fixture()
def config_base(tmp_path: Path, config_data: dict) -> str:
    base = tmp_path / "config"
    (tmp_path / "config.json").write_text(json.dumps(config_data), encoding="utf-8")
    return str(base)


@pytest.fixture()
def templates_dir(tmp_path: Path) -> Path:
    templates = tmp_path / "templates"
    (templates / "android").mkdir(parents=True)
    (templates / "android" / "keystore.properties").write_text("storeFile=release.keystore\n")
    return templates


@pytest.fixture()
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture()
def make_pipeline(config_base: str, templates_dir: Path, work_dir: Path):
    def factory(
        git: Optional[FakeGit] = None,
        counter: Optional[httpx.MockTransport] = None,
        captured_codes: Optional[Dict[str, int]] = None,
        release_code: int = 0,
        **flag_overrides,
    ) -> BuildPipeline:
        flags = RunFlags(config=config_base, templates=str(templates_dir), **flag_overrides)
        output = FakeOutput(
            quiet=flags.quiet,
            stream=io.StringIO(),
            width=100,
            captured_codes=captured_codes,
            release_code=release_code,
        )
        return BuildPipeline(
            flags,
            output=output,
            git=git or FakeGit(),
            workspaces=WorkspaceManager(work_dir),
            counter_transport=counter or counter_transport(),
            darwin=False,
        )

    return factory
