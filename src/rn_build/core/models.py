from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .config import BUILD_LOG_NAME, DEFAULT_BRANCH, DEFAULT_LANE, RELEASE_LANE


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: Optional[str] = None
    password: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.user and self.password)


class ServiceAccess(BaseModel):
    """Credentials block of one external service (github, fastlane)."""

    model_config = ConfigDict(frozen=True)

    credentials: Optional[Credentials] = None


class BuildConfig(BaseModel):
    """
    Contents of config[.<lane>].json.

    repo           : owner/name of the repository on the git host
    srcDir         : subdirectory of the repository holding the app
    versionCounter : URL of the build number counter service
    prefix         : name of the workspace root under <tmp>/rn-build
    env            : written verbatim to the app's env file
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    repo: str
    src_dir: str = Field(alias="srcDir")
    version_counter: str = Field(alias="versionCounter")
    prefix: str = "app"
    env: Dict[str, object] = Field(default_factory=dict)
    github: ServiceAccess = Field(default_factory=ServiceAccess)
    fastlane: ServiceAccess = Field(default_factory=ServiceAccess)
    default_branch: str = Field(default=DEFAULT_BRANCH, alias="defaultBranch")
    host: str = "github.com"
    env_file: str = Field(default="js/.env.json", alias="envFile")


class RunFlags(BaseModel):
    """Command line switches, fixed for the whole run once resolved."""

    model_config = ConfigDict(frozen=True)

    branch: str = DEFAULT_BRANCH
    lane: str = DEFAULT_LANE
    config: str = "./config"
    android: bool = True
    quiet: bool = False
    release: bool = False
    live: bool = False
    cleanup: bool = True
    increment: bool = True
    templates: str = "./templates"

    def resolve(self, darwin: bool) -> Tuple["RunFlags", Optional[str]]:
        """
        Apply the cross-flag rules and return (flags, warning).

        A release build is always live and always uses the release lane.
        Only Darwin can build for iOS, anywhere else android is forced on.
        """
        updates: Dict[str, object] = {}
        warning = None
        if not darwin and not self.android:
            warning = (
                "--android false is invalid on non-Darwin architectures, "
                "defaulting to --android true"
            )
            updates["android"] = True
        if self.release or self.lane == RELEASE_LANE:
            updates.update(live=True, release=True, lane=RELEASE_LANE)
        return self.model_copy(update=updates), warning

    @property
    def platform(self) -> str:
        return "Android" if self.android else "iOS"


class BuildType(str, Enum):
    development = "development"
    release = "release"


class BuildMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, use_enum_values=True)

    version: str
    build_type: BuildType = Field(alias="buildType")
    build: int

    def to_properties(self) -> Dict[str, object]:
        return self.model_dump(by_alias=True)


class TransportMode(str, Enum):
    ssh = "ssh"
    https = "https"


@dataclass(frozen=True)
class StageOutcome:
    """
    Result of one pipeline stage.

    continue  : stage succeeded, move on
    recovered : stage succeeded but something was off, each warning gets counted
    fatal     : stop here and go straight to finalize
    """

    kind: Literal["continue", "recovered", "fatal"]
    warnings: Tuple[str, ...] = ()
    message: Optional[str] = None

    @classmethod
    def proceed(cls) -> "StageOutcome":
        return cls("continue")

    @classmethod
    def recovered(cls, *warnings: str) -> "StageOutcome":
        return cls("recovered", warnings=tuple(warnings))

    @classmethod
    def fatal(cls, message: str, *warnings: str) -> "StageOutcome":
        return cls("fatal", warnings=tuple(warnings), message=message)

    @property
    def is_fatal(self) -> bool:
        return self.kind == "fatal"


@dataclass
class FallbackPolicy:
    name: str
    limit: int = 1
    attempts: int = 0

    def allow(self) -> bool:
        return self.attempts < self.limit

    def consume(self) -> None:
        self.attempts += 1


@dataclass
class Workspace:
    root: Path
    source: Path

    @property
    def log_path(self) -> Path:
        return self.root / BUILD_LOG_NAME


@dataclass
class PipelineContext:
    flags: RunFlags
    config: Optional[BuildConfig] = None
    workspace: Optional[Workspace] = None
    warnings: int = 0
    errors: int = 0
    aborted: bool = False
    branch: Optional[str] = None
    transport_fallback: FallbackPolicy = field(
        default_factory=lambda: FallbackPolicy("transport")
    )
    branch_fallback: FallbackPolicy = field(
        default_factory=lambda: FallbackPolicy("branch")
    )

    @property
    def transport_fallback_attempted(self) -> bool:
        return self.transport_fallback.attempts > 0

    @property
    def issues(self) -> int:
        return self.warnings + self.errors
