"""Shared pieces of the command line: errors, filters and output helpers."""

from __future__ import annotations

import csv
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, TextIO

import click

from astcli.printer import print_view

KEY_VALUE_PAIR_SIZE = 2
FORMAT_FLAG_USAGE = "Format for the output. One of {}"
INVALID_FILTERS = "Invalid filters. Filters should be in a KEY=VALUE format"


class CommandError(click.ClickException):
    """A command failed; the message is shown to the user."""


class ApiError(Exception):
    """An error reported by a service, with its status code."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"CODE: {code}, {message}")
        self.code = code
        self.message = message


@dataclass
class CliContext:
    """Global options shared by every command."""

    verbose: bool = False
    insecure: bool = False
    settings: dict[str, str] = field(default_factory=dict)
    stream: TextIO | None = None

    @property
    def out(self) -> TextIO:
        """The stream commands write to."""
        return self.stream if self.stream is not None else sys.stdout


def parse_filters(filters: list[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` filters; ``;`` in a value becomes ``,``.

    Each given string may hold several comma separated filters.
    """
    result: dict[str, str] = {}
    for raw in filters:
        if raw == "":
            continue
        for item in next(csv.reader([raw])):
            parts = item.split("=")
            if len(parts) != KEY_VALUE_PAIR_SIZE:
                raise CommandError(INVALID_FILTERS)
            key, value = parts
            result[key] = value.replace(";", ",")
    return result


def write_to_standard_output(msg: str, stream: TextIO | None = None) -> None:
    """Write ``msg`` prefixed with the current local time."""
    target = stream if stream is not None else sys.stdout
    stamp = datetime.now().astimezone().isoformat(timespec="seconds")
    target.write(f"{stamp} {msg}\n")


def print_if_verbose(ctx: CliContext, msg: str) -> None:
    """Write ``msg`` only in verbose mode."""
    if ctx.verbose:
        write_to_standard_output(msg, ctx.out)


def format_option(default: str, *args: str) -> Callable[[Callable[..., Any]], Any]:
    """A ``--format`` option with ``default`` and the other accepted formats."""
    formats = [*args, default]
    return click.option(
        "--format",
        "output_format",
        default=default,
        help=FORMAT_FLAG_USAGE.format("[" + " ".join(formats) + "]"),
    )


def print_by_format(stream: TextIO, view: Any, output_format: str) -> None:
    """Print a view, turning a bad format into a command error."""
    try:
        print_view(stream, view, output_format)
    except ValueError as exc:
        raise CommandError(str(exc)) from exc


def api_failure(prefix: str, error: BaseException) -> CommandError:
    """Build the command error for a failed service call."""
    if isinstance(error, ApiError):
        return CommandError(f"{prefix}: CODE: {error.code}, {error.message}")
    return CommandError(f"{prefix}: {error}")