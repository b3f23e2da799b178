from __future__ import annotations

import math
from typing import Literal

import click

from ..exception import CLIException
from .models import PipelineContext
from .output import OutputMultiplexer

Level = Literal["info", "warn", "error"]

_BADGES = {
    "info": ("  INFO  ", "cyan"),
    "warn": ("  WARN  ", "yellow"),
    "error": (" ERROR! ", "red"),
}


class BuildAborted(CLIException):
    """Raised by a fatal error, unwinds the running stage straight into finalize."""

    def __init__(self, message: str) -> None:
        super().__init__(description=message)
        self.message = message


class Ledger:
    """
    Warning and error accounting of one pipeline run.

    Counters live on the PipelineContext. A fatal error aborts the run
    exactly once: the first one marks the context aborted and raises
    BuildAborted, later ones are only counted.
    """

    def __init__(self, context: PipelineContext, output: OutputMultiplexer) -> None:
        self.context = context
        self.output = output

    def _line(self, level: Level, message: str) -> None:
        badge, color = _BADGES[level]
        self.output.echo(
            click.style(badge, fg=color, reverse=True) + click.style(f" {message}", fg=color)
        )

    def info(self, message: str) -> None:
        self._line("info", message)

    def warn(self, message: str) -> None:
        self.context.warnings += 1
        self._line("warn", message)

    def error(self, message: str, fatal: bool = True) -> None:
        self.context.errors += 1
        self._line("error", message)
        if fatal and not self.context.aborted:
            self.context.aborted = True
            raise BuildAborted(message)

    def headline(self, message: str, level: Level) -> None:
        """Summary header, styled like level but never counted."""
        self._line(level, click.style(message, bold=True))

    def report(self, message: str, level: Level) -> None:
        self._line(level, message)

    def banner(self, title: str) -> None:
        fill = max(self.output.width - len(title) - 2, 0) / 2
        self.output.echo()
        self.output.echo(
            click.style("=" * math.ceil(fill), fg="cyan")
            + " "
            + click.style(title.upper(), fg="green", bold=True)
            + " "
            + click.style("=" * math.floor(fill), fg="cyan")
        )
        self.output.echo()

    @property
    def exit_code(self) -> int:
        return self.context.issues
