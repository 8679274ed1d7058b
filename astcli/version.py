"""The version command."""

import click

VERSION = "v2.0.0_RC2"


def make_version_command() -> click.Command:
    """Build the command that prints the version number."""

    @click.command("version", help="Prints the version number")
    def version() -> None:
        click.echo(VERSION)

    return version