"""The bfl command: the Best Fix Location of a scan's results.

A forest is a JSON-shaped mapping: ``{"id": ..., "trees": [...]}`` where each
tree holds ``id``, ``bflNode`` and ``results``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
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
from astcli.result import SCAN_ID_QUERY_PARAM, output_result_node, output_results_pretty

FAILED_GETTING_BFL = "Failed getting BFL"
FILTER_BFL_USAGE = (
    "Filter the Best Fix Location query. Use ';' as the delimeter for arrays. "
    "Filters are given in a KEY=VALUE format"
)


def _settings() -> CliContext:
    ctx = click.get_current_context(silent=True)
    found = ctx.find_object(CliContext) if ctx is not None else None
    return found if found is not None else CliContext()


def output_bfl(forest: Mapping[str, Any], output_format: str, stream: TextIO) -> None:
    """Write a forest as JSON, or in a readable form for any other format."""
    if is_format(output_format, FORMAT_JSON):
        stream.write(json.dumps(forest, separators=(",", ":"), ensure_ascii=False, default=str))
        stream.write("\n")
        return

    stream.write("************ Best Fix Location ************\n")
    stream.write(f"BFL ID: {forest.get('id', '')}\n\n")
    for tree in forest.get("trees") or []:
        stream.write("************ Tree ************\n")
        stream.write(f"ID: {tree.get('id', '')}\n\n")
        stream.write("************ BFL Node ************\n")
        output_result_node(tree.get("bflNode") or {}, stream)
        stream.write("\n")
        output_results_pretty(tree.get("results"), stream)


def make_bfl_command(bfl_wrapper: Any) -> click.Command:
    """Build the ``bfl`` command."""

    @click.command("bfl", help="Retrieve Best Fix Location for a given scan ID")
    @click.argument("args", nargs=-1)
    @click.option("--filter", "filters", multiple=True, help=FILTER_BFL_USAGE)
    @format_option(FORMAT_LIST, FORMAT_JSON)
    def bfl(args: tuple[str, ...], filters: tuple[str, ...], output_format: str) -> None:
        if not args:
            raise CommandError(f"{FAILED_GETTING_BFL}: Please provide a scan ID")
        try:
            params = parse_filters(list(filters))
        except CommandError as exc:
            raise CommandError(f"{FAILED_GETTING_BFL}: {exc.message}") from exc
        params[SCAN_ID_QUERY_PARAM] = args[0]

        try:
            forest = bfl_wrapper.get_by_scan_id(params)
        except Exception as exc:
            raise api_failure(FAILED_GETTING_BFL, exc) from exc
        if forest is not None:
            output_bfl(forest, output_format, _settings().out)

    return bfl