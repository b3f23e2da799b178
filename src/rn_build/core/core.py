from __future__ import annotations

import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple

import click
import httpx

from ..settings import DARWIN
from .commands import BOOTSTRAP_STEPS, make_fastlane_command, make_fastlane_env
from .fallback import FallbackExhausted, FallbackResolver
from .ledger import BuildAborted, Ledger
from .models import PipelineContext, RunFlags, StageOutcome
from .output import BUILD_PREFIX, OutputMultiplexer
from .services.builders.inputs import (
    copy_templates_async,
    write_env_async,
    write_properties_async,
)
from .services.git_module import ClonedRepo, GitSource
from .services.loader import ConfigError, candidate_files, load_config
from .services.metadata import MetadataError, MetadataResolver
from .workspace import WorkspaceError, WorkspaceManager

Stage = Callable[[], Awaitable[StageOutcome]]

SIGINT_MESSAGE = "Aborted on SIGINT"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")


class BuildPipeline:
    """
    Runs one release build:

    initialize -> acquire source -> select revision -> prepare build inputs
    -> invoke release tool -> finalize

    A fatal outcome skips everything up to finalize. Finalize runs exactly
    once on every path, SIGINT included, and its result is the exit code
    (warnings + errors).
    """

    def __init__(
        self,
        flags: RunFlags,
        *,
        output: Optional[OutputMultiplexer] = None,
        git: Optional[GitSource] = None,
        workspaces: Optional[WorkspaceManager] = None,
        counter_transport: Optional[httpx.AsyncBaseTransport] = None,
        darwin: bool = DARWIN,
        handle_signals: bool = False,
    ) -> None:
        self.context = PipelineContext(flags=flags)
        self.output = output or OutputMultiplexer(quiet=flags.quiet)
        self.ledger = Ledger(self.context, self.output)
        self.git = git or GitSource()
        self.fallback = FallbackResolver(self.context, self.ledger, self.git)
        self.workspaces = workspaces or WorkspaceManager()
        self.metadata: Optional[MetadataResolver] = None
        self.counter_transport = counter_transport
        self.darwin = darwin
        self.handle_signals = handle_signals

        self._repo: Optional[ClonedRepo] = None
        self._current: Optional[asyncio.Future] = None
        self._interrupted = False
        self._exit_code: Optional[int] = None

    @property
    def flags(self) -> RunFlags:
        return self.context.flags

    @property
    def stages(self) -> List[Tuple[str, Stage]]:
        return [
            ("initialize", self.initialize),
            ("acquire source", self.acquire_source),
            ("select revision", self.select_revision),
            ("prepare build inputs", self.prepare_build_inputs),
            ("invoke release tool", self.invoke_release_tool),
        ]

    def interrupt(self) -> None:
        """Abort at the next suspension point, finalize still runs."""
        self._interrupted = True
        self.output.echo()
        if self._current is not None and not self._current.done():
            self._current.cancel()

    async def run(self) -> int:
        loop = asyncio.get_running_loop()
        signals = False
        if self.handle_signals:
            try:
                loop.add_signal_handler(signal.SIGINT, self.interrupt)
                signals = True
            except (NotImplementedError, RuntimeError):
                pass
        try:
            for name, stage in self.stages:
                if self._interrupted:
                    self.ledger.error(SIGINT_MESSAGE)
                self.ledger.banner(name)
                self._apply(await self._await_stage(stage()))
                if name == "initialize":
                    self._start_metadata()
        except BuildAborted:
            pass
        except asyncio.CancelledError:
            if not self.context.aborted:
                self.ledger.error(SIGINT_MESSAGE, fatal=False)
                self.context.aborted = True
        finally:
            if signals:
                loop.remove_signal_handler(signal.SIGINT)
        return await self.finalize(abort=self.context.aborted)

    def _apply(self, outcome: StageOutcome) -> None:
        for warning in outcome.warnings:
            self.ledger.warn(warning)
        if outcome.is_fatal:
            self.ledger.error(outcome.message or "Build stage failed")

    def _start_metadata(self) -> None:
        config = self.context.config
        self.metadata = MetadataResolver(
            config.version_counter,
            increment=self.flags.increment,
            transport=self.counter_transport,
        )
        self.metadata.start()

    async def _await_stage(self, coro: Awaitable[StageOutcome]) -> StageOutcome:
        """
        Runs one stage while watching the build number request.

        A failed request cancels the running stage. So does interrupt().
        """
        stage = asyncio.ensure_future(coro)
        self._current = stage
        try:
            while not stage.done():
                watched = {stage}
                fetch = self.metadata.pending if self.metadata else None
                if fetch is not None:
                    watched.add(fetch)
                await asyncio.wait(watched, return_when=asyncio.FIRST_COMPLETED)
                if self._metadata_failure() and not stage.done():
                    stage.cancel()
                    await asyncio.wait({stage})
        except asyncio.CancelledError:
            stage.cancel()
            await asyncio.wait({stage})
            raise
        finally:
            self._current = None

        warnings: Tuple[str, ...] = ()
        if not stage.cancelled():
            exc = stage.exception()
            if exc is not None:
                return StageOutcome.fatal(f"Unexpected failure: {exc}")
            outcome = stage.result()
            if outcome.is_fatal:
                return outcome
            warnings = outcome.warnings
        # a finished stage still reports what it recovered from
        if self._interrupted:
            return StageOutcome.fatal(SIGINT_MESSAGE, *warnings)
        failure = self._metadata_failure()
        if failure:
            return StageOutcome.fatal(failure, *warnings)
        if stage.cancelled():
            return StageOutcome.fatal("Build stage cancelled")
        return outcome

    def _metadata_failure(self) -> Optional[str]:
        return self.metadata.failure if self.metadata else None

    async def initialize(self) -> StageOutcome:
        flags, warning = self.flags.resolve(self.darwin)
        self.context.flags = flags

        self.ledger.info(f"Detected build platform: {click.style(sys.platform, bold=True)}")
        self.ledger.info(f"Building for: {click.style(flags.platform, bold=True)}")
        self.output.echo()
        self.ledger.info("Using arguments:")
        for key, value in flags.model_dump().items():
            self.output.echo(
                f"           --{key}:{' ' * (10 - len(key))}"
                + click.style(str(value), fg="blue", bold=True)
            )
        self.output.echo()

        lane_file, shared_file = candidate_files(flags.config, flags.lane)
        self.ledger.info(f"Loading config from {lane_file}...")
        try:
            config, _, fell_back = await asyncio.to_thread(load_config, flags.config, flags.lane)
        except ConfigError as e:
            return StageOutcome.fatal(str(e))
        if fell_back:
            self.ledger.info(
                f"Failed to load lane-specific config file, falling back to {shared_file}"
            )
        self.context.config = config

        try:
            self.context.workspace = await self.workspaces.allocate(config.prefix, config.src_dir)
        except WorkspaceError as e:
            return StageOutcome.fatal(str(e))
        self.ledger.info(f"Build directory {click.style(str(self.context.workspace.root), bold=True)}")

        if warning:
            return StageOutcome.recovered(warning)
        return StageOutcome.proceed()

    async def acquire_source(self) -> StageOutcome:
        config = self.context.config
        root = self.context.workspace.root
        self.ledger.info(
            f"Cloning repository {click.style(config.repo, bold=True)} "
            f"into {click.style(str(root), bold=True)}"
        )
        try:
            self._repo = await self.fallback.clone(config, root)
        except FallbackExhausted as e:
            return StageOutcome.fatal(str(e))
        return StageOutcome.proceed()

    async def select_revision(self) -> StageOutcome:
        try:
            self.context.branch = await self.fallback.checkout(
                self._repo,
                self.flags.branch,
                self.context.config.default_branch,
            )
        except FallbackExhausted as e:
            return StageOutcome.fatal(str(e))
        return StageOutcome.proceed()

    async def prepare_build_inputs(self) -> StageOutcome:
        config = self.context.config
        source = self.context.workspace.source
        if not source.is_dir():
            return StageOutcome.fatal(f"Failed to change working directory to {source}")
        self.ledger.info(f"Working directory changed to {click.style(str(source), bold=True)}")

        for step in BOOTSTRAP_STEPS:
            self.ledger.info(step.text)
            code, _, _ = await self.output.run_captured(step.command, cwd=source, text=step.text)
            if code != 0:
                return StageOutcome.fatal(step.failure)

        try:
            metadata = await self.metadata.resolve(source, self.flags.live)
        except MetadataError as e:
            return StageOutcome.fatal(str(e))

        self.ledger.info(f"Writing properties files with: {json.dumps(metadata.to_properties())}")
        try:
            await write_properties_async(source, metadata)
        except OSError:
            return StageOutcome.fatal("Failed to write properties file")

        self.ledger.info(f"Writing {config.env_file} file with: {json.dumps(config.env)}")
        try:
            await write_env_async(source, config.env_file, config.env)
        except OSError:
            return StageOutcome.fatal(f"Failed to write {config.env_file} file")

        self.ledger.info("Copying template files")
        try:
            await copy_templates_async(Path(self.flags.templates), source)
        except OSError:
            return StageOutcome.fatal("Failed to copy template files")
        return StageOutcome.proceed()

    async def invoke_release_tool(self) -> StageOutcome:
        workspace = self.context.workspace
        cmd, args = make_fastlane_command(self.flags)
        self.ledger.info(
            f"Handing off to {click.style('fastlane', bold=True)} to build "
            f"{click.style(self.flags.lane, bold=True)} for "
            f"{click.style(self.flags.platform, bold=True)}"
        )
        try:
            code = await self.output.run_streamed(
                cmd,
                args,
                prefix=BUILD_PREFIX,
                env=make_fastlane_env(self.context.config),
                cwd=workspace.source,
                log_path=workspace.log_path,
            )
        except OSError as e:
            return StageOutcome.fatal(f"Could not start {cmd}: {e}")
        if code != 0:
            return StageOutcome.fatal("Build failed, see output for details")
        self.ledger.info("Build exited normally")
        return StageOutcome.proceed()

    async def finalize(self, abort: bool = False) -> int:
        """
        Releases the workspace and prints the summary.

        Runs once, later calls return the first exit code. Cleanup
        failures are warnings, they never abort again.
        """
        if self._exit_code is not None:
            return self._exit_code
        self._exit_code = -1
        self.ledger.banner("finalize")

        if self.metadata is not None:
            await self.metadata.close()
        if self._repo is not None:
            self._repo.close()

        flags = self.flags
        workspace = self.context.workspace
        if flags.quiet and workspace is not None:
            self.ledger.info(f"Build output logged to {workspace.log_path}")
        if workspace is not None and flags.cleanup:
            self.ledger.info(click.style("Cleaning up...", bold=True))
            if flags.quiet:
                self.ledger.info(f"Removing source directory {click.style(str(workspace.source), bold=True)}")
            else:
                self.ledger.info(
                    f"Removing temporary working directory {click.style(str(workspace.root), bold=True)}"
                )
            try:
                await self.workspaces.release(workspace, flags.quiet)
            except WorkspaceError as e:
                self.ledger.warn(str(e))

        self._summary(abort)
        self._exit_code = self.ledger.exit_code
        return self._exit_code

    def _summary(self, abort: bool) -> None:
        self.ledger.banner("summary")
        warnings, errors = self.context.warnings, self.context.errors
        if warnings + errors > 0:
            if abort:
                self.ledger.headline("Build aborted, with errors:", "error")
            else:
                self.ledger.headline("Build finished, with issues:", "warn")
            if warnings > 0:
                self.ledger.report(_plural(warnings, "warning"), "warn")
            if errors > 0:
                self.ledger.report(_plural(errors, "error"), "error")
        else:
            self.ledger.info(click.style("Build finished without issues", bold=True))
        if self.output.log_path is not None:
            self.ledger.info(f"External build log at {self.output.log_path}")
        self.output.echo()
