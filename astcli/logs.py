"""The logs command: download of the system logs archive."""

from __future__ import annotations

import shutil
import sys
from contextlib import closing
from pathlib import Path
from typing import Any, TextIO

import click

from astcli.common import CommandError, api_failure

FAILED_DOWNLOADING_LOGS = "failed downloading"
LOGS_DEST_FILE_NAME = "logs.zip"


def download_logs(logs_wrapper: Any, directory: str | Path, stream: TextIO) -> Path:
    """Download the logs archive into ``directory`` and return its path."""
    try:
        reader = logs_wrapper.get_url()
    except Exception as exc:
        raise api_failure(FAILED_DOWNLOADING_LOGS, exc) from exc

    destination = Path(directory) / LOGS_DEST_FILE_NAME
    with closing(reader):
        try:
            dest = destination.open("wb")
        except OSError as exc:
            raise CommandError(
                f"{FAILED_DOWNLOADING_LOGS} failed creating file to download into it: {exc}"
            ) from exc
        with dest:
            stream.write(f"Downloading into {destination}\n")
            try:
                shutil.copyfileobj(reader, dest)
            except OSError as exc:
                raise api_failure(FAILED_DOWNLOADING_LOGS, exc) from exc
    return destination


def make_logs_command(logs_wrapper: Any) -> click.Group:
    """Build the ``logs`` command group."""

    @click.group("logs", help="Manage logs")
    def logs() -> None:
        """Manage logs."""

    @logs.command("download", help="download zip file containing system logs")
    def download() -> None:
        download_logs(logs_wrapper, Path.cwd(), sys.stdout)

    return logs