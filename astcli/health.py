"""The health-check command: runs the service checks that apply to a role."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TextIO

import click
from tqdm import tqdm

from astcli.common import CommandError, write_to_standard_output
from astcli.printer import pad

ERROR_COLOR = "\033[1;31m{}\033[0m"
SUCCESS_COLOR = "\033[1;32m{}\033[0m"
REPORT_BLANK_PAD_WIDTH = 2
CHECK_MARK = "\u2714\ufe0f"
CROSS_MARK = "\u274c"
MISSING_ROLE = (
    "Failed to get ast role. "
    "you can set it manually with either the command flags or the cli environment variables"
)


class Role(str, Enum):
    """Runtime roles of a deployment."""

    SCA_AGENT = "SCA_AGENT"
    SAST_ALL_IN_ONE = "SAST_ALL_IN_ONE"
    SAST_MANAGER = "SAST_MANAGER"
    SAST_ENGINE = "SAST_ENGINE"


ROLE_USAGE = "The runtime role. Available roles are: " + ",".join(
    role.value
    for role in (Role.SCA_AGENT, Role.SAST_ALL_IN_ONE, Role.SAST_MANAGER, Role.SAST_ENGINE)
)


def _role_value(role: Role | str) -> str:
    return role.value if isinstance(role, Role) else role


@dataclass
class HealthStatus:
    """Outcome of one sub-check."""

    name: str
    success: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class HealthCheck:
    """A named check and the roles it applies to."""

    name: str
    handler: Callable[[], Sequence[HealthStatus] | None]
    roles: Iterable[Role | str]

    def __post_init__(self) -> None:
        self.roles = frozenset(_role_value(role) for role in self.roles)

    def has_role(self, role: Role | str) -> bool:
        """Whether the check applies to ``role``."""
        return _role_value(role) in self.roles


@dataclass
class HealthView:
    """The result of running one check."""

    name: str
    error: BaseException | None = None
    sub_checks: list[HealthStatus] = field(default_factory=list)


def longest_width(views: Iterable[HealthView]) -> int:
    """Length of the longest sub-check name among successful checks."""
    return max(
        (len(sub.name) for view in views if view.error is None for sub in view.sub_checks),
        default=0,
    )


def print_health_checks(views: Sequence[HealthView], stream: TextIO) -> None:
    """Write the outcome of every check as a coloured summary."""
    width = longest_width(views)
    for view in views:
        stream.write(f"{view.name}\n{'-' * len(view.name)}\n")
        if view.error is not None:
            stream.write(ERROR_COLOR.format(view.error) + "\n")
        else:
            for sub in view.sub_checks:
                stream.write(sub.name + pad(width - len(sub.name) + REPORT_BLANK_PAD_WIDTH, ""))
                if sub.success:
                    stream.write(SUCCESS_COLOR.format(CHECK_MARK) + "\n")
                    continue
                stream.write(ERROR_COLOR.format(CROSS_MARK) + "\n")
                for error in sub.errors:
                    stream.write(ERROR_COLOR.format(error) + "\n")
        stream.write("\n\n")


def _run_check(check: HealthCheck) -> HealthView:
    try:
        statuses = check.handler() or []
    except Exception as exc:
        return HealthView(check.name, exc)
    return HealthView(check.name, None, list(statuses))


def run_checks_concurrently(checks: Sequence[HealthCheck]) -> list[HealthView]:
    """Run every check in its own thread; results keep the order of ``checks``."""
    with tqdm(total=len(checks), file=sys.stderr) as bar, ThreadPoolExecutor(
        max_workers=max(len(checks), 1)
    ) as pool:
        futures = [pool.submit(_run_check, check) for check in checks]
        for _ in as_completed(futures):
            bar.update(1)
        return [future.result() for future in futures]


def checks_for_role(wrapper: Any, role: Role | str) -> list[HealthCheck]:
    """The health checks that apply to ``role``."""
    sast = (Role.SAST_ALL_IN_ONE, Role.SAST_ENGINE, Role.SAST_MANAGER)
    sast_and_sca = (*sast, Role.SCA_AGENT)
    checks = [
        HealthCheck("DB", wrapper.run_db_check, sast),
        HealthCheck("Web-App", wrapper.run_web_app_check, sast),
        HealthCheck(
            "Identity and Access Management Web App",
            wrapper.run_keycloak_web_app_check,
            sast,
        ),
        HealthCheck("Scan-Flow", wrapper.run_scan_flow_check, sast),
        HealthCheck("Sast-Engines", wrapper.run_sast_engines_check, sast),
        HealthCheck("In-memory DB", wrapper.run_in_memory_db_check, sast_and_sca),
        HealthCheck("Object-Store", wrapper.run_object_store_check, sast_and_sca),
        HealthCheck("Message-Queue", wrapper.run_message_queue_check, sast_and_sca),
        HealthCheck("Logging", wrapper.run_logging_check, sast_and_sca),
    ]
    return [check for check in checks if check.has_role(role)]


def make_health_check_command(wrapper: Any) -> click.Command:
    """Build the ``health-check`` command."""

    @click.command("health-check", help="Run AST health check")
    @click.option("--role", default=Role.SCA_AGENT.value, help=ROLE_USAGE)
    def health_check(role: str) -> None:
        out = sys.stdout
        write_to_standard_output("Performing health checks...", out)
        if not role:
            raise CommandError(MISSING_ROLE)
        views = run_checks_concurrently(checks_for_role(wrapper, role))
        print_health_checks(views, out)

    return health_check