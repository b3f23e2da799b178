from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional, Tuple

import httpx

from ....exception import CLIException
from ...config import COUNTER_TIMEOUT
from ...models import BuildMetadata, BuildType


class MetadataError(CLIException):
    pass


def counter_url(version_counter: str, increment: bool) -> str:
    return version_counter + ("" if increment else "?no-increment")


def read_local_facts(source_dir: Path, live: bool) -> Tuple[str, BuildType]:
    """
    Version from the app's package.json, build type from the live flag.
    """
    package_json = source_dir / "package.json"
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        raise MetadataError(description=f"Failed to read version from {package_json}")
    version = data.get("version") if isinstance(data, dict) else None
    if not version:
        raise MetadataError(description=f"No version in {package_json}")
    return str(version), BuildType.release if live else BuildType.development


class MetadataResolver:
    """
    Resolves the BuildMetadata record of a run.

    start() fires the build number request right away. resolve() joins it
    with the local facts once the source tree is there.
    """

    def __init__(
        self,
        version_counter: str,
        increment: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = COUNTER_TIMEOUT,
    ) -> None:
        self.url = counter_url(version_counter, increment)
        self._transport = transport
        self._timeout = timeout
        self._fetch: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        if self._fetch is None:
            self._fetch = asyncio.create_task(self._fetch_build_number())
        return self._fetch

    @property
    def pending(self) -> Optional[asyncio.Task]:
        if self._fetch is not None and not self._fetch.done():
            return self._fetch
        return None

    @property
    def failure(self) -> Optional[str]:
        task = self._fetch
        if task is None or not task.done() or task.cancelled():
            return None
        exc = task.exception()
        return str(exc) if exc is not None else None

    async def _fetch_build_number(self) -> int:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.get(self.url)
        except httpx.HTTPError:
            raise MetadataError(description="Failed to fetch next version number")
        if not response.is_success:
            raise MetadataError(description="Failed to fetch next version number")
        try:
            return int(response.json())
        except (ValueError, TypeError):
            raise MetadataError(description=f"Unexpected build number {response.text!r}")

    async def resolve(self, source_dir: Path, live: bool) -> BuildMetadata:
        """
        :raises MetadataError: when either half fails.
        """
        build, (version, build_type) = await asyncio.gather(
            self.start(),
            asyncio.to_thread(read_local_facts, source_dir, live),
        )
        return BuildMetadata(version=version, build_type=build_type, build=build)

    async def close(self) -> None:
        task = self.pending
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
