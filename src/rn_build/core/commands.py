# core/commands.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .models import BuildConfig, RunFlags


@dataclass(frozen=True)
class BootstrapStep:
    """One dependency installation command run inside the app directory."""

    text: str
    command: str
    failure: str


BOOTSTRAP_STEPS: Tuple[BootstrapStep, ...] = (
    BootstrapStep(
        text="Installing node modules",
        command="npm i",
        failure="Failed to install node modules; check npm-debug.log for more information",
    ),
    BootstrapStep(
        text="Updating fastlane",
        command="bundle update fastlane",
        failure="Failed to run bundle install",
    ),
)


def make_fastlane_command(flags: RunFlags) -> Tuple[str, List[str]]:
    """
    bundle exec fastlane <android|ios> <lane>
    """
    return "bundle", ["exec", "fastlane", flags.platform.lower(), flags.lane]


def make_fastlane_env(config: BuildConfig) -> Dict[str, str]:
    credentials = config.fastlane.credentials
    if credentials is None:
        return {}
    env: Dict[str, str] = {}
    if credentials.user:
        env["FASTLANE_USER"] = credentials.user
    if credentials.password:
        env["FASTLANE_PASSWORD"] = credentials.password
    return env
