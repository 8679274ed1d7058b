"""The result command: listing of the results found by a scan.

Result collections are JSON-shaped mappings: ``{"results": [...]}`` where
every result and every node is a mapping keyed by the service's field names.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any, TextIO

import click

from astcli.common import (
    CliContext,
    CommandError,
    api_failure,
    format_option,
    parse_filters,
)
from astcli.printer import FORMAT_JSON, FORMAT_LIST, is_format

FAILED_LISTING_RESULTS = "Failed listing results"
SCAN_ID_QUERY_PARAM = "scan-id"
RESULTS_HEADER = "************ Results ************"
NODES_HEADER = "************ Nodes ************"

FILTER_RESULTS_USAGE = (
    "Filter the list of results. Use ';' as the delimeter for arrays. Available filters are: "
    + ",".join(
        [
            "scan-id",
            "limit",
            "offset",
            "sort",
            "include-nodes",
            "node-ids",
            "query",
            "group",
            "status",
            "severity",
        ]
    )
)

_RESULT_LINES = (
    ("Result Unique ID", "uniqueID"),
    ("Query ID", "queryID"),
    ("Query Name", "queryName"),
    ("Severity", "severity"),
    ("CWE ID", "cweID"),
    ("Similarity ID", "similarityID"),
    ("First Scan ID", "firstScanID"),
    ("Found At", "foundAt"),
    ("First Found At", "firstFoundAt"),
    ("Status", "status"),
    ("Path System ID", "pathSystemID"),
)

_NODE_LINES = (
    ("Name", "name"),
    ("File Name", "fileName"),
    ("Full Name", "fullName"),
    ("Length", "length"),
    ("Column", "column"),
    ("Line", "line"),
    ("Method Line", "methodLine"),
    ("Node System ID", "nodeSystemID"),
)


def _show(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _settings() -> CliContext:
    ctx = click.get_current_context(silent=True)
    found = ctx.find_object(CliContext) if ctx is not None else None
    return found if found is not None else CliContext()


def _write_lines(stream: TextIO, model: Mapping[str, Any], lines: Iterable[tuple[str, str]]) -> None:
    for label, key in lines:
        stream.write(f"{label}: {_show(model.get(key, ''))}\n")


def output_result_node(node: Mapping[str, Any], stream: TextIO) -> None:
    """Write the fields of one result node, one per line."""
    _write_lines(stream, node, _NODE_LINES)


def output_single_result(result: Mapping[str, Any], stream: TextIO) -> None:
    """Write one result followed by its nodes."""
    _write_lines(stream, result, _RESULT_LINES)
    stream.write("\n")
    stream.write(NODES_HEADER + "\n")
    for node in result.get("nodes") or []:
        output_result_node(node, stream)
        stream.write("\n")


def output_results_pretty(results: Iterable[Mapping[str, Any]] | None, stream: TextIO) -> None:
    """Write every result in a readable form."""
    stream.write(RESULTS_HEADER + "\n")
    for result in results or []:
        output_single_result(result, stream)
        stream.write("\n")


def make_result_command(results_wrapper: Any) -> click.Group:
    """Build the ``result`` command group."""

    @click.group("result", help="Retrieve results", invoke_without_command=True)
    @click.pass_context
    def result(ctx: click.Context) -> None:
        if ctx.invoked_subcommand is None:
            click.echo(ctx.get_help())

    @result.command("list", help="List results for a given scan")
    @click.argument("args", nargs=-1)
    @click.option("--filter", "filters", multiple=True, help=FILTER_RESULTS_USAGE)
    @format_option(FORMAT_LIST, FORMAT_JSON)
    def list_results(args: tuple[str, ...], filters: tuple[str, ...], output_format: str) -> None:
        if not args:
            raise CommandError(f"{FAILED_LISTING_RESULTS}: Please provide a scan ID")
        try:
            params = parse_filters(list(filters))
        except CommandError as exc:
            raise CommandError(f"{FAILED_LISTING_RESULTS}: {exc.message}") from exc
        params[SCAN_ID_QUERY_PARAM] = args[0]

        try:
            response = results_wrapper.get_by_scan_id(params)
        except Exception as exc:
            raise api_failure(FAILED_LISTING_RESULTS, exc) from exc
        if response is None:
            return

        out = _settings().out
        if is_format(output_format, FORMAT_JSON):
            out.write(json.dumps(response, separators=(",", ":"), ensure_ascii=False, default=str))
            out.write("\n")
            return
        output_results_pretty(response.get("results"), out)

    return result