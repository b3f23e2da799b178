import json
from pathlib import Path
from typing import Tuple

from pydantic import ValidationError

from ...exception import CLIException
from ..models import BuildConfig


class ConfigError(CLIException):
    def __init__(self, path: Path, reason: str = "") -> None:
        super().__init__(description=f"Could not open {path}")
        self.path = path
        self.reason = reason


def candidate_files(base: str, lane: str) -> Tuple[Path, Path]:
    """<base>.<lane>.json first, then the shared <base>.json."""
    return Path(f"{base}.{lane}.json"), Path(f"{base}.json")


def _read(path: Path) -> BuildConfig:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return BuildConfig.model_validate(data)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(path, str(e))
    except ValidationError as e:
        raise ConfigError(path, str(e))


def load_config(base: str, lane: str) -> Tuple[BuildConfig, Path, bool]:
    """
    Loads the build configuration for lane.

    Returns (config, file used, fell back to the shared file).
    :raises ConfigError: naming the shared file when neither candidate loads.
    """
    lane_file, shared_file = candidate_files(base, lane)
    try:
        return _read(lane_file), lane_file, False
    except ConfigError:
        pass
    return _read(shared_file), shared_file, True
