"""The project command: creation, listing, display and deletion of projects.

The projects service speaks JSON-shaped mappings: a project carries ``id``,
``name``, ``createdAt``, ``updatedAt``, ``tags`` and ``groups``; a project
list is ``{"projects": [...]}``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import click

from astcli.common import (
    CliContext,
    CommandError,
    api_failure,
    format_option,
    parse_filters,
    print_by_format,
    print_if_verbose,
)
from astcli.printer import FORMAT_JSON, FORMAT_LIST, FORMAT_TABLE, print_view

FAILED_CREATING_PROJ = "Failed creating a project"
FAILED_GETTING_PROJ = "Failed getting a project"
FAILED_DELETING_PROJ = "Failed deleting a project"
FAILED_GETTING_ALL = "Failed listing"
FAILED_GETTING_TAGS = "Failed getting tags"
PROJECT_NAME_REQUIRED = "Project name is required"

FILTER_PROJECTS_USAGE = (
    "Filter the list of projects. Use ';' as the delimeter for arrays. Available filters are: "
    + ",".join(["limit", "offset", "id", "ids", "id-regex", "tags-keys", "tags-values"])
)

_FRACTION = re.compile(r"\.(\d+)")


@dataclass
class ProjectView:
    """How a project is displayed."""

    id: str = field(default="", metadata={"format": "name:Project ID", "json": "ID"})
    name: str = ""
    created_at: datetime | None = field(
        default=None, metadata={"format": "name:Created at;time:01-02-06 15:04:05"}
    )
    updated_at: datetime | None = field(
        default=None, metadata={"format": "name:Updated at;time:01-02-06 15:04:05"}
    )
    tags: dict[str, str] = field(default_factory=dict)
    groups: list[str] = field(default_factory=list)


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


def to_project_view(model: Mapping[str, Any]) -> ProjectView:
    """Build the display view of a project returned by the service."""
    return ProjectView(
        id=model.get("id", ""),
        name=model.get("name", ""),
        created_at=_parse_time(model.get("createdAt")),
        updated_at=_parse_time(model.get("updatedAt")),
        tags=dict(model.get("tags") or {}),
        groups=list(model.get("groups") or []),
    )


def build_project_request(name: str, main_branch: str = "", repo_url: str = "") -> dict[str, str]:
    """The payload that creates a project; the name is required."""
    if not name:
        raise CommandError(PROJECT_NAME_REQUIRED)
    request = {"name": name}
    if main_branch:
        request["mainBranch"] = main_branch
    if repo_url:
        request["repoUrl"] = repo_url
    return request


def _settings() -> CliContext:
    ctx = click.get_current_context(silent=True)
    found = ctx.find_object(CliContext) if ctx is not None else None
    return found if found is not None else CliContext()


def _dump(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, sort_keys=True, default=str)


def make_project_command(projects_wrapper: Any) -> click.Group:
    """Build the ``project`` command group."""

    @click.group("project", help="Manage projects", invoke_without_command=True)
    @click.pass_context
    def project(ctx: click.Context) -> None:
        if ctx.invoked_subcommand is None:
            click.echo(ctx.get_help())

    @project.command("create", help="Creates a new project")
    @click.option("--project-name", default="", help="Name of project")
    @click.option("--repo-url", default="", help="RepoURL of project")
    @click.option("--branch", "main_branch", default="", help="Main branch")
    @format_option(FORMAT_TABLE, FORMAT_JSON, FORMAT_LIST)
    def create(project_name: str, repo_url: str, main_branch: str, output_format: str) -> None:
        settings = _settings()
        request = build_project_request(project_name, main_branch, repo_url)
        print_if_verbose(settings, f"Payload to projects service: {_dump(request)}")
        try:
            response = projects_wrapper.create(request)
        except Exception as exc:
            raise api_failure(FAILED_CREATING_PROJ, exc) from exc
        if response is None:
            return
        view = to_project_view(response)
        try:
            print_view(settings.out, view, output_format)
        except ValueError as exc:
            raise CommandError(f"{FAILED_CREATING_PROJ}: {exc}") from exc

    @project.command("list", help="List all projects in the system")
    @click.option("--filter", "filters", multiple=True, help=FILTER_PROJECTS_USAGE)
    @format_option(FORMAT_TABLE, FORMAT_JSON, FORMAT_LIST)
    def list_projects(filters: tuple[str, ...], output_format: str) -> None:
        try:
            params = parse_filters(list(filters))
        except CommandError as exc:
            raise CommandError(f"{FAILED_GETTING_ALL}: {exc.message}") from exc
        try:
            response = projects_wrapper.get(params)
        except Exception as exc:
            raise api_failure(FAILED_GETTING_ALL, exc) from exc
        projects = response.get("projects") if response is not None else None
        if projects is not None:
            views = [to_project_view(model) for model in projects]
            print_by_format(_settings().out, views, output_format)

    @project.command("show", help="Show information about a project")
    @click.argument("args", nargs=-1)
    @format_option(FORMAT_TABLE, FORMAT_JSON, FORMAT_LIST)
    def show(args: tuple[str, ...], output_format: str) -> None:
        if not args:
            raise CommandError(f"{FAILED_GETTING_PROJ}: Please provide a project ID")
        try:
            response = projects_wrapper.get_by_id(args[0])
        except Exception as exc:
            raise api_failure(FAILED_GETTING_PROJ, exc) from exc
        if response is not None:
            print_by_format(_settings().out, to_project_view(response), output_format)

    @project.command("delete", help="Delete a project")
    @click.argument("args", nargs=-1)
    def delete(args: tuple[str, ...]) -> None:
        if not args:
            raise CommandError(f"{FAILED_DELETING_PROJ}: Please provide a project ID")
        try:
            projects_wrapper.delete(args[0])
        except Exception as exc:
            raise api_failure(FAILED_DELETING_PROJ, exc) from exc

    @project.command("tags", help="Get a list of all available tags")
    def tags() -> None:
        try:
            response = projects_wrapper.tags()
        except Exception as exc:
            raise api_failure(FAILED_GETTING_TAGS, exc) from exc
        if response is not None:
            _settings().out.write(_dump(response) + "\n")

    return project