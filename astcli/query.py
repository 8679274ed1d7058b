"""The query command: management of the query repositories used by the engine.

The queries service returns repositories as JSON-shaped mappings with
``name``, ``isActive`` and ``lastModified``. Downloads come back as binary
file-like objects.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Mapping
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import click

from astcli.common import CliContext, CommandError, api_failure, format_option, print_if_verbose
from astcli.printer import FORMAT_JSON, FORMAT_LIST, FORMAT_TABLE, print_view

FAILED_LISTING_REPOS = "failed listing queries repositories"
FAILED_DELETING_REPO = "failed deleting queries repository"
FAILED_ACTIVATING_REPO = "failed activating queries repository"
FAILED_ACTIVATING_AFTER_UPLOADING = "failed activating queries repository after uploading it"
FAILED_DOWNLOADING_REPO = "failed downloading queries repository"
FAILED_UPLOADING_REPO = "failed uploading queries repository"
QUERIES_REPO_DEST_FILE_NAME = "queries-repository.tar.gz"

_FRACTION = re.compile(r"\.(\d+)")


@dataclass
class QueryRepoView:
    """How a query repository is displayed."""

    name: str = ""
    is_active: str = field(default="", metadata={"format": "name:Is active"})
    last_modified: datetime | None = field(
        default=None, metadata={"format": "name:Last modified;time:01-02-06 15:04:05"}
    )


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


def to_query_repo_view(model: Mapping[str, Any]) -> QueryRepoView:
    """Build the display view of a repository returned by the service."""
    return QueryRepoView(
        name=model.get("name", ""),
        is_active="active" if model.get("isActive") else "inactive",
        last_modified=_parse_time(model.get("lastModified")),
    )


def repo_name_from_path(path: str) -> str:
    """The file name of ``path`` without its last extension."""
    base = Path(path).name
    dot = base.rfind(".")
    return base[:dot] if dot >= 0 else base


def _settings() -> CliContext:
    ctx = click.get_current_context(silent=True)
    found = ctx.find_object(CliContext) if ctx is not None else None
    return found if found is not None else CliContext()


def make_query_command(queries_wrapper: Any, uploads_wrapper: Any) -> click.Group:
    """Build the ``query`` command group."""

    @click.group("query", help="Manage queries", invoke_without_command=True)
    @click.pass_context
    def query(ctx: click.Context) -> None:
        if ctx.invoked_subcommand is None:
            click.echo(ctx.get_help())

    @query.command(
        "download", help="Download a remote query repository to a local archive file"
    )
    @click.argument("args", nargs=-1)
    def download(args: tuple[str, ...]) -> None:
        name = args[0] if args else ""
        try:
            repo = queries_wrapper.download(name)
        except Exception as exc:
            raise api_failure(FAILED_DOWNLOADING_REPO, exc) from exc

        out = _settings().out
        destination = Path.cwd() / QUERIES_REPO_DEST_FILE_NAME
        with closing(repo):
            try:
                dest = destination.open("wb")
            except OSError as exc:
                raise CommandError(
                    f"{FAILED_DOWNLOADING_REPO} failed creating file to download into it: {exc}"
                ) from exc
            with dest:
                out.write(f"Downloading into {destination}\n")
                try:
                    shutil.copyfileobj(repo, dest)
                except OSError as exc:
                    raise api_failure(FAILED_DOWNLOADING_REPO, exc) from exc

    @query.command(
        "upload",
        help="Upload local query repository archive file (tarball format) to AST",
    )
    @click.argument("args", nargs=-1)
    @click.option(
        "--name",
        "-n",
        "name_override",
        default="",
        help="A override name for your custom queries repository "
        "(default is the repository file name)",
    )
    @click.option(
        "--activate",
        "-a",
        "to_activate",
        is_flag=True,
        default=False,
        help="Whether to activate repository after uploading",
    )
    def upload(args: tuple[str, ...], name_override: str, to_activate: bool) -> None:
        if not args:
            raise CommandError(f"{FAILED_UPLOADING_REPO}: Please provide a path to queries repository")
        repo_file = args[0]
        try:
            url = uploads_wrapper.upload_file(repo_file)
        except Exception as exc:
            raise api_failure(f"{FAILED_UPLOADING_REPO}: failed to upload repository file", exc) from exc

        print_if_verbose(_settings(), f"Uploading file to {url}")
        name = name_override or repo_name_from_path(repo_file)
        try:
            queries_wrapper.import_repo(url, name)
        except Exception as exc:
            raise api_failure(FAILED_UPLOADING_REPO, exc) from exc

        if to_activate:
            try:
                queries_wrapper.activate(name)
            except Exception as exc:
                raise api_failure(FAILED_ACTIVATING_AFTER_UPLOADING, exc) from exc

    @query.command("list", help="List query repositories")
    @format_option(FORMAT_TABLE, FORMAT_LIST, FORMAT_JSON)
    def list_repos(output_format: str) -> None:
        try:
            repos = queries_wrapper.list() or []
        except Exception as exc:
            raise api_failure(FAILED_LISTING_REPOS, exc) from exc
        views = [to_query_repo_view(model) for model in repos]
        try:
            print_view(_settings().out, views, output_format)
        except ValueError as exc:
            raise CommandError(f"{FAILED_LISTING_REPOS}: {exc}") from exc

    @query.command("activate", help="Activate a queries repository for the engine usage")
    @click.argument("args", nargs=-1)
    def activate(args: tuple[str, ...]) -> None:
        if not args:
            raise CommandError(f"{FAILED_ACTIVATING_REPO}: Please provide a queries repository name")
        try:
            queries_wrapper.activate(args[0])
        except Exception as exc:
            raise api_failure(FAILED_ACTIVATING_REPO, exc) from exc

    @query.command("delete", help="Delete a query repository")
    @click.argument("args", nargs=-1)
    def delete(args: tuple[str, ...]) -> None:
        if not args:
            raise CommandError(f"{FAILED_DELETING_REPO}: Please provide a queries repository name")
        try:
            queries_wrapper.delete(args[0])
        except Exception as exc:
            raise api_failure(FAILED_DELETING_REPO, exc) from exc

    return query