from __future__ import annotations

from typing import List

import pytest
from click.testing import CliRunner

from rn_build import cli
from rn_build.core.models import RunFlags


class RecordingPipeline:
    created: List["RecordingPipeline"] = []
    exit_code = 0

    def __init__(self, flags: RunFlags, handle_signals: bool = False) -> None:
        self.flags = flags
        self.handle_signals = handle_signals
        RecordingPipeline.created.append(self)

    async def run(self) -> int:
        return RecordingPipeline.exit_code


@pytest.fixture()
def recording(monkeypatch: pytest.MonkeyPatch):
    RecordingPipeline.created = []
    RecordingPipeline.exit_code = 0
    monkeypatch.setattr(cli, "BuildPipeline", RecordingPipeline)
    return RecordingPipeline


def test_help_lists_flags() -> None:
    result = CliRunner().invoke(cli.main, ["--help"])

    assert result.exit_code == 0
    for flag in ("--branch", "--lane", "--config", "--quiet", "--release", "--live",
                 "--cleanup", "--increment"):
        assert flag in result.output


def test_defaults_reach_the_pipeline(recording) -> None:
    result = CliRunner().invoke(cli.main, [])

    assert result.exit_code == 0
    flags = recording.created[0].flags
    assert flags.branch == "master"
    assert flags.lane == "qa"
    assert flags.config == "./config"
    assert flags.cleanup and flags.increment
    assert not (flags.quiet or flags.release or flags.live)
    assert recording.created[0].handle_signals


def test_exit_code_is_the_issue_count(recording) -> None:
    recording.exit_code = 3

    result = CliRunner().invoke(cli.main, ["--branch", "feature-x", "--no-cleanup", "--quiet"])

    assert result.exit_code == 3
    flags = recording.created[0].flags
    assert flags.branch == "feature-x"
    assert not flags.cleanup
    assert flags.quiet


def test_empty_branch_prints_usage(recording) -> None:
    result = CliRunner().invoke(cli.main, ["--branch", ""])

    assert result.exit_code == 0
    assert "Usage:" in result.output
    assert recording.created == []


def test_release_flag_resolution() -> None:
    flags, warning = RunFlags(release=True).resolve(darwin=True)

    assert warning is None
    assert flags.live and flags.release
    assert flags.lane == "release"

    flags, _ = RunFlags(lane="release").resolve(darwin=True)
    assert flags.live and flags.release

    flags, warning = RunFlags(android=False).resolve(darwin=False)
    assert flags.android
    assert warning is not None
