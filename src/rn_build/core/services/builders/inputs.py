import asyncio
import json
import shutil
from pathlib import Path
from typing import Dict, List

from ...models import BuildMetadata

PROPERTIES_FILES = ("properties.android.json", "properties.ios.json")


def _write_json(path: Path, payload: object) -> None:
    path.write_text(json.dumps(payload) + "\n", encoding="utf-8")


def write_properties(source_dir: Path, metadata: BuildMetadata) -> List[Path]:
    """
    One properties file per platform, both with the same
    {version, buildType, build} payload.
    """
    props = metadata.to_properties()
    written: List[Path] = []
    for name in PROPERTIES_FILES:
        target = source_dir / name
        _write_json(target, props)
        written.append(target)
    return written


def write_env(source_dir: Path, env_file: str, env: Dict[str, object]) -> Path:
    """
    Writes the configured env map verbatim. The parent directory must
    already exist in the checked out tree.
    """
    target = source_dir / env_file
    _write_json(target, env)
    return target


def copy_templates(templates_dir: Path, source_dir: Path) -> None:
    if not templates_dir.is_dir():
        raise FileNotFoundError(f"Template directory {templates_dir} not found")
    shutil.copytree(templates_dir, source_dir, dirs_exist_ok=True)


async def write_properties_async(source_dir: Path, metadata: BuildMetadata) -> List[Path]:
    return await asyncio.to_thread(write_properties, source_dir, metadata)


async def write_env_async(source_dir: Path, env_file: str, env: Dict[str, object]) -> Path:
    return await asyncio.to_thread(write_env, source_dir, env_file, env)


async def copy_templates_async(templates_dir: Path, source_dir: Path) -> None:
    await asyncio.to_thread(copy_templates, templates_dir, source_dir)
