"""The sast-rm command: SAST resource management of scans, engines and pools.

The resource manager returns JSON-shaped mappings. A scan carries ``id``,
``state``, ``queuedAt``, ``runningAt``, ``engine`` and ``properties``; an
engine carries ``id``, ``status``, ``scanId``, ``registeredAt``,
``updatedAt``, ``properties`` and ``tags``. Statistics and pools are printed
as they come.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import click

from astcli.common import (
    CliContext,
    CommandError,
    api_failure,
    format_option,
    print_by_format,
    print_if_verbose,
)
from astcli.printer import FORMAT_JSON, FORMAT_LIST, FORMAT_TABLE

MISSING_POOL_ID_FLAG_ERROR = "please provide pool-id"
MISSING_ENGINE_ID_FLAG_ERROR = "please provide engine-id"
NO_POOL_IDS = "no pool ids provided"
BAD_TAGS = "provide tags in key=value format"
FAILED_GET_ENGINES = "failed get engines"
KEY_VALUE_PAIR_SIZE = 2

_TIME_LAYOUT = "time:01-02-06 15:04:05.000"
_FRACTION = re.compile(r"\.(\d+)")
_HELP_OPTIONS = {"help_option_names": ["-h", "--help"]}


class Resolution(str, Enum):
    """Time resolution of queue statistics."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MOMENT = "moment"


@dataclass
class RmScanView:
    """How a queued scan is displayed."""

    id: str = field(default="", metadata={"format": "name:ID", "json": "id"})
    state: str = field(default="", metadata={"json": "state"})
    queued_at: datetime | None = field(
        default=None, metadata={"format": f"{_TIME_LAYOUT};name:Queued at", "json": "queued-at"}
    )
    running_at: datetime | None = field(
        default=None, metadata={"format": f"{_TIME_LAYOUT};name:Running at", "json": "running-at"}
    )
    engine: str = field(default="", metadata={"json": "engine"})
    properties: dict[str, str] = field(default_factory=dict, metadata={"json": "properties"})


@dataclass
class RmEngineView:
    """How an engine is displayed."""

    id: str = field(default="", metadata={"format": "name:ID", "json": "id"})
    status: str = field(default="", metadata={"json": "status"})
    scan_id: str = field(default="", metadata={"format": "name:ScanID", "json": "scan"})
    registered_at: datetime | None = field(
        default=None,
        metadata={"format": f"{_TIME_LAYOUT};name:Discovered at", "json": "registered-at"},
    )
    updated_at: datetime | None = field(
        default=None,
        metadata={"format": f"{_TIME_LAYOUT};name:Heartbeat at", "json": "updated-at"},
    )
    properties: dict[str, str] = field(default_factory=dict, metadata={"json": "properties"})
    tags: dict[str, str] = field(default_factory=dict, metadata={"json": "tags"})


@dataclass
class TagView:
    """One tag and its value."""

    tag: str
    value: str


@dataclass
class ElementView:
    """One element of a list, numbered by position."""

    id: str = field(metadata={"format": "name:ID", "json": "ID"})
    value: str


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"invalid timestamp {value!r}") from exc


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


def parse_tags(args: Iterable[str]) -> dict[str, str]:
    """Parse ``key=value`` arguments into a tag mapping."""
    tags: dict[str, str] = {}
    for arg in args:
        parts = arg.split("=")
        if len(parts) != KEY_VALUE_PAIR_SIZE:
            raise CommandError(BAD_TAGS)
        key, value = parts
        tags[key] = value
    return tags


def scan_views(scans: Iterable[Mapping[str, Any]] | None) -> list[RmScanView]:
    """Display views of queued scans."""
    return [
        RmScanView(
            id=scan.get("id", ""),
            state=_text(scan.get("state", "")),
            queued_at=_parse_time(scan.get("queuedAt")),
            running_at=_parse_time(scan.get("runningAt")),
            engine=scan.get("engine", ""),
            properties=dict(scan.get("properties") or {}),
        )
        for scan in scans or []
    ]


def engine_views(engines: Iterable[Mapping[str, Any]] | None) -> list[RmEngineView]:
    """Display views of engines."""
    return [
        RmEngineView(
            id=engine.get("id", ""),
            status=_text(engine.get("status", "")),
            scan_id=engine.get("scanId", ""),
            registered_at=_parse_time(engine.get("registeredAt")),
            updated_at=_parse_time(engine.get("updatedAt")),
            properties=dict(engine.get("properties") or {}),
            tags=dict(engine.get("tags") or {}),
        )
        for engine in engines or []
    ]


def tag_views(tags: Mapping[str, str] | None) -> list[TagView]:
    """One view per tag."""
    return [TagView(tag=key, value=value) for key, value in (tags or {}).items()]


def element_views(data: Iterable[str] | None) -> list[ElementView]:
    """One view per element, identified by its ``[index]``."""
    return [ElementView(id=f"[{index}]", value=value) for index, value in enumerate(data or [])]


def _settings() -> CliContext:
    ctx = click.get_current_context(silent=True)
    found = ctx.find_object(CliContext) if ctx is not None else None
    return found if found is not None else CliContext()


def _call(function: Callable[..., Any], *args: Any, prefix: str | None = None) -> Any:
    try:
        return function(*args)
    except click.ClickException:
        raise
    except Exception as exc:
        if prefix is not None:
            raise api_failure(prefix, exc) from exc
        raise CommandError(str(exc)) from exc


def _require_pool_id(pool_id: str) -> str:
    if not pool_id:
        raise CommandError(MISSING_POOL_ID_FLAG_ERROR)
    return pool_id


def _show_help(ctx: click.Context) -> None:
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _pool_id_option(function: Callable[..., Any]) -> Callable[..., Any]:
    return click.option("--pool-id", "-i", "pool_id", default="", help="Pool id")(function)


def _output_formats(function: Callable[..., Any]) -> Callable[..., Any]:
    return format_option(FORMAT_TABLE, FORMAT_JSON, FORMAT_LIST)(function)


def _make_scans_command(rm_wrapper: Any) -> click.Command:
    @click.command("scans", help="Display scans in sast queue")
    @_output_formats
    def scans(output_format: str) -> None:
        settings = _settings()
        print_if_verbose(settings, "Reading sast resources scans")
        found = _call(rm_wrapper.get_scans)
        print_by_format(settings.out, scan_views(found), output_format)

    return scans


def _make_engines_command(rm_wrapper: Any) -> click.Group:
    @click.group("engines", help="Display sast engines", invoke_without_command=True)
    @_output_formats
    @click.pass_context
    def engines(ctx: click.Context, output_format: str) -> None:
        if ctx.invoked_subcommand is not None:
            return
        settings = _settings()
        print_if_verbose(settings, "Reading sast resources engines")
        found = _call(rm_wrapper.get_engines, prefix=FAILED_GET_ENGINES)
        print_by_format(settings.out, engine_views(found), output_format)

    @engines.command("set-tags", help="Set engine tags")
    @click.option("--engine-id", "-i", "engine_id", default="", help="Engine id")
    @click.argument("args", nargs=-1)
    def set_tags(engine_id: str, args: tuple[str, ...]) -> None:
        if not engine_id:
            raise CommandError(MISSING_ENGINE_ID_FLAG_ERROR)
        tags = parse_tags(args)
        print_if_verbose(
            _settings(), f"Setting engine tags, engineID:{engine_id} tags:{', '.join(args)}"
        )
        _call(rm_wrapper.set_engine_tags, engine_id, tags)

    return engines


def _make_stats_command(rm_wrapper: Any) -> click.Command:
    @click.command("stats", help="Display sast queue statistics")
    @click.option(
        "--resolution",
        "-r",
        "resolution_name",
        default=Resolution.MOMENT.value,
        help="Resolution, one of: minute, hour, day, week, moment",
    )
    @_output_formats
    def stats(resolution_name: str, output_format: str) -> None:
        try:
            resolution = Resolution(resolution_name)
        except ValueError:
            raise CommandError(f"unknown resolution {resolution_name}") from None
        settings = _settings()
        print_if_verbose(settings, f"Reading sast resources statistics per {resolution.value}")
        found = _call(rm_wrapper.get_stats, resolution)
        print_by_format(settings.out, found, output_format)

    return stats


def _make_pool_relation_group(
    name: str,
    what: str,
    getter: Callable[[str], Any],
    setter: Callable[[str, Any], Any],
    to_views: Callable[[Any], Any],
    parse_args: Callable[[tuple[str, ...]], Any],
    label: str,
) -> click.Group:
    @click.group(name, invoke_without_command=True)
    @click.pass_context
    def relation(ctx: click.Context) -> None:
        _show_help(ctx)

    @relation.command("get", help=f"List sast engine pool {what}")
    @_pool_id_option
    @_output_formats
    def get(pool_id: str, output_format: str) -> None:
        _require_pool_id(pool_id)
        settings = _settings()
        print_if_verbose(settings, f"Getting pool {label} poolID:{pool_id}")
        found = _call(getter, pool_id)
        print_by_format(settings.out, to_views(found), output_format)

    @relation.command("set", help=f"Assigns {what} to sast engine pool")
    @_pool_id_option
    @click.argument("args", nargs=-1)
    def set_(pool_id: str, args: tuple[str, ...]) -> None:
        _require_pool_id(pool_id)
        value = parse_args(args)
        print_if_verbose(
            _settings(), f"Setting pool {label}, poolID:{pool_id} {name}:{', '.join(args)}"
        )
        _call(setter, pool_id, value)

    return relation


def _make_pools_command(rm_wrapper: Any) -> click.Group:
    @click.group("pools", help="Manage sast pools", invoke_without_command=True)
    @click.pass_context
    def pools(ctx: click.Context) -> None:
        _show_help(ctx)

    @pools.command("list", help="List sast engine pools")
    @_output_formats
    def list_pools(output_format: str) -> None:
        settings = _settings()
        print_if_verbose(settings, "Getting pools")
        found = _call(rm_wrapper.get_pools)
        print_by_format(settings.out, found, output_format)

    @pools.command("create", help="Create sast engine pool")
    @click.option("--description", "-d", default="", help="Pool description")
    @_output_formats
    def create(description: str, output_format: str) -> None:
        settings = _settings()
        print_if_verbose(settings, f"Creating pool description:{description}")
        pool = _call(rm_wrapper.add_pool, description)
        print_if_verbose(settings, "Pool created")
        print_by_format(settings.out, pool, output_format)

    @pools.command("delete", help="Delete sast engine pools")
    @click.argument("args", nargs=-1)
    def delete(args: tuple[str, ...]) -> None:
        if not args:
            raise CommandError(NO_POOL_IDS)
        settings = _settings()
        print_if_verbose(settings, f"Deleting pools ids:{', '.join(args)}")
        for pool_id in args:
            _call(rm_wrapper.delete_pool, pool_id)
            print_if_verbose(settings, f"Deleted pool id={pool_id}")

    pools.add_command(
        _make_pool_relation_group(
            "projects",
            "projects",
            rm_wrapper.get_pool_projects,
            rm_wrapper.set_pool_projects,
            element_views,
            list,
            "projects",
        )
    )
    pools.add_command(
        _make_pool_relation_group(
            "project-tags",
            "project tags",
            rm_wrapper.get_pool_project_tags,
            rm_wrapper.set_pool_project_tags,
            tag_views,
            parse_tags,
            "project tags",
        )
    )
    pools.add_command(
        _make_pool_relation_group(
            "engines",
            "engines",
            rm_wrapper.get_pool_engines,
            rm_wrapper.set_pool_engines,
            element_views,
            list,
            "engines",
        )
    )
    pools.add_command(
        _make_pool_relation_group(
            "engine-tags",
            "engine tags",
            rm_wrapper.get_pool_engine_tags,
            rm_wrapper.set_pool_engine_tags,
            tag_views,
            parse_tags,
            "engine tags",
        )
    )
    return pools


def make_sast_rm_command(rm_wrapper: Any) -> click.Group:
    """Build the ``sast-rm`` command group."""

    @click.group(
        "sast-rm",
        help="SAST resource management",
        invoke_without_command=True,
        context_settings=_HELP_OPTIONS,
    )
    @click.pass_context
    def sast_rm(ctx: click.Context) -> None:
        _show_help(ctx)

    sast_rm.add_command(_make_scans_command(rm_wrapper))
    sast_rm.add_command(_make_engines_command(rm_wrapper))
    sast_rm.add_command(_make_stats_command(rm_wrapper))
    sast_rm.add_command(_make_pools_command(rm_wrapper))
    return sast_rm