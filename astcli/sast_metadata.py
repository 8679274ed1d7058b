"""The sast-metadata command: engine logs, scan information and metrics.

Scan information is a JSON-shaped mapping with ``scanId``, ``projectId``,
``loc``, ``fileCount``, ``queryPreset``, ``isIncremental``,
``isIncrementalCanceled``, ``baseId``, ``incrementalCancelReason``,
``addedFilesCount``, ``changedFilesCount``, ``deletedFilesCount`` and
``changePercentage``. Metrics are a mapping keyed the same way as the lines
that :func:`output_metrics` writes.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, TextIO

import click

from astcli.common import CliContext, CommandError, api_failure, format_option
from astcli.printer import FORMAT_JSON, FORMAT_LIST, FORMAT_TABLE, is_format, print_view

FAILED_DOWNLOADING_ENGINE_LOG = "failed downloading engine log"
FAILED_GETTING_SCAN_INFO = "failed getting scan info"
FAILED_GETTING_METRICS = "failed getting metrics"


@dataclass
class ScanInfoView:
    """How the information about a scan is displayed."""

    scan_id: str = field(default="", metadata={"format": "name:Scan id", "json": "ScanID"})
    project_id: str = field(default="", metadata={"format": "name:Project id", "json": "ProjectID"})
    file_count: int = field(default=0, metadata={"format": "name:File count"})
    loc: int = field(default=0, metadata={"format": "name:Lines of code"})
    query_preset: str = field(default="", metadata={"format": "name:Query Preset"})
    type: str = ""
    base_id: str = field(default="", metadata={"format": "name:Base id;omitempty", "json": "BaseID"})
    canceled_reason: str = field(default="", metadata={"format": "name:Canceled reason;omitempty"})
    added_files_count: Any = field(default=None, metadata={"format": "name:Added files count;omitempty"})
    changed_files_count: Any = field(
        default=None, metadata={"format": "name:Changed files count;omitempty"}
    )
    deleted_files_count: Any = field(
        default=None, metadata={"format": "name:Deleted files count;omitempty"}
    )
    change_percentage: Any = field(default=None, metadata={"format": "name:Change percentage;omitempty"})


def _scan_type(info: Mapping[str, Any]) -> str:
    if info.get("isIncremental"):
        return "incremental scan"
    if info.get("isIncrementalCanceled"):
        return "full scan - incremental canceled"
    return "full scan"


def to_scan_info_view(info: Mapping[str, Any]) -> ScanInfoView:
    """Build the display view of a scan's information.

    The incremental counters are shown only for incremental scans and for
    scans whose incremental run was canceled.
    """
    incremental = bool(info.get("isIncremental") or info.get("isIncrementalCanceled"))

    def counter(key: str) -> Any:
        return info.get(key, 0) if incremental else None

    return ScanInfoView(
        scan_id=info.get("scanId", ""),
        project_id=info.get("projectId", ""),
        file_count=info.get("fileCount", 0),
        loc=info.get("loc", 0),
        query_preset=info.get("queryPreset", ""),
        type=_scan_type(info),
        base_id=info.get("baseId", ""),
        canceled_reason=info.get("incrementalCancelReason", ""),
        added_files_count=counter("addedFilesCount"),
        changed_files_count=counter("changedFilesCount"),
        deleted_files_count=counter("deletedFilesCount"),
        change_percentage=counter("changePercentage"),
    )


def _output_languages(stream: TextIO, languages: Mapping[str, Any] | None) -> None:
    for language, count in (languages or {}).items():
        stream.write(f"{language} - {count}\n")


def output_metrics(metrics: Mapping[str, Any], stream: TextIO) -> None:
    """Write engine metrics in a readable form."""
    stream.write("************ Metrics ************\n")
    stream.write(f"Scan id: {metrics.get('scanId', '')}\n")
    stream.write(f"Memory peak: {metrics.get('memoryPeak', 0)}\n")
    stream.write(f"Virtual memory peak: {metrics.get('virtualMemoryPeak', 0)}\n")
    stream.write(f"Total scanned files count: {metrics.get('totalScannedFilesCount', 0)}\n")
    stream.write(f"Total scanned lines of code: {metrics.get('totalScannedLOC', 0)}\n")
    stream.write("Dom objects per language:\n")
    _output_languages(stream, metrics.get("domObjectsPerLanguage"))
    stream.write("Successful lines of code per language:\n")
    _output_languages(stream, metrics.get("successfullLOCPerLanguage"))
    stream.write("Failed lines of code per language:\n")
    _output_languages(stream, metrics.get("failedLOCPerLanguage"))
    stream.write("File count of detected but not scanned languages\n")
    _output_languages(stream, metrics.get("fileCountOfDetectedButNotScannedLanguages"))
    stream.write("Scanned files per language:\n")
    for language, files in (metrics.get("scannedFilesPerLanguage") or {}).items():
        stream.write(
            f"{language} - good files: {files.get('goodFiles', 0)}, "
            f"partially good files: {files.get('partiallyGoodFiles', 0)}, "
            f"bad files: {files.get('badFiles', 0)}\n"
        )


def _settings() -> CliContext:
    ctx = click.get_current_context(silent=True)
    found = ctx.find_object(CliContext) if ctx is not None else None
    return found if found is not None else CliContext()


def make_sast_metadata_command(metadata_wrapper: Any) -> click.Group:
    """Build the ``sast-metadata`` command group."""

    @click.group(
        "sast-metadata",
        help="Enables the ability to manage sast scans metadata in AST",
        invoke_without_command=True,
    )
    @click.pass_context
    def sast_metadata(ctx: click.Context) -> None:
        if ctx.invoked_subcommand is None:
            click.echo(ctx.get_help())

    @sast_metadata.command("engine-log", help="Print the engine log for a given scan id")
    @click.argument("args", nargs=-1)
    def engine_log(args: tuple[str, ...]) -> None:
        if not args:
            raise CommandError(f"{FAILED_DOWNLOADING_ENGINE_LOG}: Please provide scan id")
        try:
            reader = metadata_wrapper.download_engine_log(args[0])
        except Exception as exc:
            raise api_failure(FAILED_DOWNLOADING_ENGINE_LOG, exc) from exc
        out = _settings().out
        with closing(reader):
            try:
                content = reader.read()
            except OSError as exc:
                raise api_failure(FAILED_DOWNLOADING_ENGINE_LOG, exc) from exc
        if isinstance(content, bytes):
            content = content.decode("utf-8", errors="replace")
        out.write(content)

    @sast_metadata.command("scan-info", help="Retrieve information about a given scan id")
    @click.argument("args", nargs=-1)
    @format_option(FORMAT_LIST, FORMAT_JSON, FORMAT_TABLE)
    def scan_info(args: tuple[str, ...], output_format: str) -> None:
        if not args:
            raise CommandError(f"{FAILED_GETTING_SCAN_INFO}: Please provide scan id")
        try:
            info = metadata_wrapper.get_scan_info(args[0])
        except Exception as exc:
            raise api_failure(FAILED_GETTING_SCAN_INFO, exc) from exc
        try:
            print_view(_settings().out, to_scan_info_view(info or {}), output_format)
        except ValueError as exc:
            raise CommandError(f"{FAILED_GETTING_SCAN_INFO}: {exc}") from exc

    @sast_metadata.command("metrics", help="Retrieve engine metrics for a given scan id")
    @click.argument("args", nargs=-1)
    @format_option(FORMAT_LIST, FORMAT_JSON)
    def metrics(args: tuple[str, ...], output_format: str) -> None:
        if not args:
            raise CommandError(f"{FAILED_GETTING_METRICS}: please provide scan id")
        try:
            result = metadata_wrapper.get_metrics(args[0])
        except Exception as exc:
            raise api_failure(FAILED_GETTING_METRICS, exc) from exc
        out = _settings().out
        if is_format(output_format, FORMAT_JSON):
            out.write(json.dumps(result, separators=(",", ":"), ensure_ascii=False, default=str))
            out.write("\n")
            return
        output_metrics(result or {}, out)

    return sast_metadata