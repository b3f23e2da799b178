import asyncio
import codecs
import os
import shutil
import textwrap
from pathlib import Path
from typing import Dict, IO, List, Optional, Sequence, Tuple

import click

from .animation import run as run_animation
from .config import READ_CHUNK, WRAP_MARGIN

EXTERN_PREFIX = click.style(" EXTERN ", fg="magenta", reverse=True)
ERROR_PREFIX = click.style(" ERROR! ", fg="red", reverse=True)
BUILD_PREFIX = click.style(" BUILD! ", fg="green", reverse=True)


def prefix_stream(prefix: str, data: str, width: int) -> str:
    """
    Prefixes every line of data and word-wraps it to width - WRAP_MARGIN columns.

    The first chunk of a line gets "<prefix> ", wrapped continuations get
    "<prefix>   " so they read as indented. Blank lines are dropped.
    """
    chunk = max(width - WRAP_MARGIN, 1)
    lines: List[str] = []
    for line in str(data).strip().split("\n"):
        splits = textwrap.wrap(line, chunk)
        if not splits:
            continue
        lines.append(("\n" + prefix + "   ").join(splits))
    if not lines:
        return ""
    return prefix + " " + ("\n" + prefix + " ").join(lines) + "\n"


class OutputChannel:
    """
    Destination of one external invocation's output.

    Interactive: prefixed and wrapped text on the terminal stream.
    Quiet: color-stripped text appended to the build log.
    """

    def __init__(
        self,
        prefix: str,
        stream: Optional[IO[str]] = None,
        log_file: Optional[IO[str]] = None,
        width: int = 80,
    ) -> None:
        self.prefix = prefix
        self.stream = stream
        self.log_file = log_file
        self.width = width

    def write(self, data: str, stderr: bool = False) -> None:
        prefix = ERROR_PREFIX if stderr else self.prefix
        if self.log_file is not None:
            text = click.unstyle(data)
            if stderr:
                text = click.unstyle(prefix) + " " + text
            self.log_file.write(text)
            self.log_file.flush()
        else:
            text = prefix_stream(prefix, data, self.width)
            if text:
                click.echo(text, file=self.stream, nl=False)

    def close(self) -> None:
        if self.log_file is not None:
            self.log_file.close()
            self.log_file = None


class OutputMultiplexer:
    """
    Single sink for everything the build prints.

    The quiet flag is fixed for the whole run: when set, subprocess output
    goes to the build log instead of the terminal.
    """

    def __init__(
        self,
        quiet: bool = False,
        stream: Optional[IO[str]] = None,
        width: Optional[int] = None,
        animate: bool = True,
    ) -> None:
        self.quiet = quiet
        self.stream = stream
        self._width = width
        self.animate = animate
        self.log_path: Optional[Path] = None

    @property
    def width(self) -> int:
        if self._width is not None:
            return self._width
        return shutil.get_terminal_size((80, 24)).columns

    def echo(self, message: str = "") -> None:
        click.echo(message, file=self.stream)

    def open_channel(self, prefix: str, log_path: Optional[Path] = None) -> OutputChannel:
        if self.quiet:
            # without a log there is nowhere to put quiet output
            if log_path is None:
                return OutputChannel(prefix, log_file=open(os.devnull, "w", encoding="utf-8"))
            self.log_path = Path(log_path)
            return OutputChannel(
                prefix,
                log_file=open(self.log_path, "a", encoding="utf-8"),
            )
        return OutputChannel(prefix, stream=self.stream, width=self.width)

    async def run_streamed(
        self,
        cmd: str,
        args: Sequence[str],
        prefix: str = EXTERN_PREFIX,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Path] = None,
        log_path: Optional[Path] = None,
    ) -> int:
        """
        Runs cmd and streams its stdout/stderr through one channel while it runs.

        Returns the exit code. The process is killed if the caller is cancelled.
        """
        proc = await asyncio.create_subprocess_exec(
            cmd,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **(env or {})},
            cwd=cwd,
        )
        channel = self.open_channel(prefix, log_path)
        try:
            await asyncio.gather(
                self._pump(proc.stdout, channel, stderr=False),
                self._pump(proc.stderr, channel, stderr=True),
            )
            return await proc.wait()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            channel.close()

    @staticmethod
    async def _pump(reader: asyncio.StreamReader, channel: OutputChannel, stderr: bool) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await reader.read(READ_CHUNK)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                channel.write(text, stderr=stderr)
        tail = decoder.decode(b"", final=True)
        if tail:
            channel.write(tail, stderr=stderr)

    async def run_captured(
        self,
        command: str,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        text: Optional[str] = None,
    ) -> Tuple[int, str, str]:
        """
        Runs a shell command to completion and returns (exit code, stdout, stderr).

        In interactive mode a spinner labelled with text runs meanwhile.
        """
        if text and self.animate and not self.quiet:
            return await run_animation(
                self._capture,
                command,
                cwd,
                env,
                text=text,
                stream=self.stream,
                succeeded=lambda result: result[0] == 0,
            )
        return await self._capture(command, cwd, env)

    @staticmethod
    async def _capture(
        command: str,
        cwd: Optional[Path],
        env: Optional[Dict[str, str]],
    ) -> Tuple[int, str, str]:
        proc = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env={**os.environ, **(env or {})},
            executable="/bin/bash",
        )
        try:
            stdout, stderr = await proc.communicate()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
