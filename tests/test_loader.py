from __future__ import annotations

import json
from pathlib import Path

import pytest

from rn_build.core.services.loader import ConfigError, load_config


def test_lane_specific_config_wins(tmp_path: Path, config_base: str, config_data: dict) -> None:
    (tmp_path / "config.release.json").write_text(json.dumps({**config_data, "prefix": "mobile-release"}))

    config, used, fell_back = load_config(config_base, "release")

    assert used == tmp_path / "config.release.json"
    assert not fell_back
    assert config.prefix == "mobile-release"


def test_falls_back_to_shared_config(tmp_path: Path, config_base: str) -> None:
    config, used, fell_back = load_config(config_base, "qa")

    assert used == tmp_path / "config.json"
    assert fell_back
    assert config.repo == "acme/mobile"
    assert config.src_dir == "app"
    assert config.default_branch == "master"
    assert config.github.credentials.complete


def test_missing_config_names_the_shared_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as info:
        load_config(str(tmp_path / "nothing"), "qa")

    assert str(info.value) == f"Could not open {tmp_path / 'nothing.json'}"


def test_invalid_config_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text(json.dumps({"repo": "acme/mobile"}))

    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "config"), "qa")
