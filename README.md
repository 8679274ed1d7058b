# astcli

Click commands and helpers for working with an application security testing
platform: projects, scan results, best fix locations, query repositories,
SAST resource management, scan metadata, system logs and health checks.

Every command is built by a factory that takes the service wrapper it talks
to. A wrapper is any object with the methods the command calls, so an
in-memory fake serves as well as a real client.

## Command factories

| Factory | Command | Subcommands |
|---|---|---|
| `astcli.project.make_project_command(projects_wrapper)` | `project` | `create`, `show`, `list`, `delete`, `tags` |
| `astcli.result.make_result_command(results_wrapper)` | `result` | `list <scan-id>` |
| `astcli.bfl.make_bfl_command(bfl_wrapper)` | `bfl <scan-id>` | |
| `astcli.query.make_query_command(queries_wrapper, uploads_wrapper)` | `query` | `download`, `upload`, `list`, `activate`, `delete` |
| `astcli.sast_metadata.make_sast_metadata_command(metadata_wrapper)` | `sast-metadata` | `engine-log`, `scan-info`, `metrics` |
| `astcli.rm.make_sast_rm_command(rm_wrapper)` | `sast-rm` | `scans`, `engines [set-tags]`, `stats`, `pools ...` |
| `astcli.logs.make_logs_command(logs_wrapper)` | `logs` | `download` (writes `logs.zip` into the current directory) |
| `astcli.health.make_health_check_command(wrapper)` | `health-check --role ROLE` | |
| `astcli.version.make_version_command()` | `version` | prints `v2.0.0_RC2` |

Listing commands take `--format` with `table`, `list` or `json`. Commands
that accept filters take `--filter KEY=VALUE`, repeatable or comma
separated; inside a value `;` stands for `,`.

The methods each command calls on its wrapper:

- projects: `create(request)`, `get(params)`, `get_by_id(id)`, `delete(id)`, `tags()`
- results and best fix location: `get_by_scan_id(params)`
- queries: `download(name)`, `import_repo(url, name)`, `activate(name)`, `list()`, `delete(name)`; uploads: `upload_file(path)`
- scan metadata: `download_engine_log(scan_id)`, `get_scan_info(scan_id)`, `get_metrics(scan_id)`
- logs: `get_url()`, returning a binary file-like object
- resource management: `get_scans`, `get_engines`, `set_engine_tags`, `get_stats`, `get_pools`, `add_pool`, `delete_pool`, and `get_`/`set_` methods for pool projects, project tags, engines and engine tags
- health checks: `run_db_check`, `run_web_app_check`, `run_keycloak_web_app_check`, `run_scan_flow_check`, `run_sast_engines_check`, `run_in_memory_db_check`, `run_object_store_check`, `run_message_queue_check`, `run_logging_check`, each returning a list of `HealthStatus`

A wrapper reports a service error by raising `astcli.common.ApiError(code,
message)`; the command then fails with `"<prefix>: CODE: <code>, <message>"`.

## Assembling a command line

The factories return plain click commands, so they can be attached to a
group of your own. Commands look for an `astcli.common.CliContext` in the
click context to decide where to write and whether to be verbose:

```python
import click
from astcli.common import CliContext
from astcli.project import make_project_command
from astcli.version import make_version_command

@click.group()
@click.option("--verbose", "-v", is_flag=True)
@click.pass_context
def cx(ctx, verbose):
    ctx.obj = CliContext(verbose=verbose)

cx.add_command(make_project_command(projects_wrapper))
cx.add_command(make_version_command())
cx()
```

## Helpers

```python
import sys
from astcli.common import parse_filters
from astcli.printer import print_view
from astcli.rm import parse_tags
from astcli.scan_archive import filter_matched, compress_folder

parse_filters(["statuses=Failed;Completed", "limit=40"])
# {'statuses': 'Failed,Completed', 'limit': '40'}

parse_tags(["tier=gold"])
# {'tier': 'gold'}

filter_matched(["*.py", "!test_*"], "main.py")
# (True, False): included, not excluded

print_view(sys.stdout, [{"Name": "alpha"}], "json")
# [{"Name":"alpha"}]
```

`print_view` renders dataclasses, mappings or lists of either as JSON, an
aligned key/value list or a table; dataclass fields can rename, hide,
truncate or time-format themselves through a `format` metadata entry.
`compress_folder(source_dir, file_filter)` packs a directory into a
temporary zip archive and returns its path, keeping files whose names match
the comma-separated patterns; a leading `!` marks an exclusion.

## What is not included

- There is no ready-made top-level command and no installed console script;
  you assemble the group yourself as shown above.
- There are no scan commands (creating, showing, listing, deleting or
  canceling scans); `compress_folder` is the only scan-related piece.
- There are no service clients: the wrappers that talk to the platform over
  the network, and loading of configuration or credentials, are up to you.