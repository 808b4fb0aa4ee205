# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""CLI entry point for dock-copy."""

from __future__ import annotations

import dataclasses

import click

from dock_copy import __version__


@dataclasses.dataclass
class CliContext:
    """Shared state passed through Click's context object."""

    socket: str | None = None
    verbose: bool = False


@click.group()
@click.option(
    "--socket",
    envvar="DOCK_COPY_SOCKET",
    default=None,
    help="Path to container engine socket.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.version_option(version=__version__, prog_name="dock-copy")
@click.pass_context
def cli(ctx: click.Context, socket: str | None, *, verbose: bool) -> None:
    """Copy files and tar archives into running containers."""
    ctx.ensure_object(dict)
    ctx.obj = CliContext(socket=socket, verbose=verbose)


# --- Register commands ---

from dock_copy.cli._commands import cp_cmd  # noqa: E402

cli.add_command(cp_cmd)
