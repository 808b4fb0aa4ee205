# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Rich output formatters for the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dock_copy.types import TransferOutcome

from rich.console import Console
from rich.panel import Panel

from dock_copy._helpers import format_bytes

_console = Console()
_err_console = Console(stderr=True)


def format_outcome(outcome: TransferOutcome) -> None:
    """Print transfer statistics as a rich panel."""
    lines = [
        f"[bold]Container:[/bold] {outcome.container_id[:12]}",
        f"[bold]Source:[/bold]    {outcome.source}",
        f"[bold]Dest:[/bold]      {outcome.dest_path}",
        f"[bold]Sent:[/bold]      {format_bytes(outcome.bytes_sent)}",
        f"[bold]Duration:[/bold]  {outcome.duration_ms:.1f} ms",
    ]
    if outcome.archive_mode:
        lines.append("[bold]Mode:[/bold]      archive (uid/gid kept)")
    _console.print(Panel("\n".join(lines), title="[cyan]copy[/cyan]", expand=False))


def format_error(err: BaseException) -> None:
    """Print an error as a rich panel with suggestions."""
    title, suggestion = _error_info(err)
    lines = [str(err)]
    if suggestion:
        lines.append(f"\n[dim]{suggestion}[/dim]")

    panel = Panel(
        "\n".join(lines),
        title=f"[red]{title}[/red]",
        expand=False,
    )
    _err_console.print(panel)


def _error_info(err: BaseException) -> tuple[str, str]:
    """Map an error to a title and suggestion string."""
    from dock_copy.errors import (  # noqa: PLC0415
        ContainerNotFound,
        ContainerNotRunning,
        DestinationNotFound,
        EngineNotRunning,
        SourceConsumed,
        TransferPermissionDenied,
    )

    if isinstance(err, EngineNotRunning):
        return "Engine Not Found", "Start Podman or Docker and try again."
    if isinstance(err, ContainerNotFound):
        return "Container Not Found", "Check the id with 'docker ps -a' or 'podman ps -a'."
    if isinstance(err, ContainerNotRunning):
        return "Container Not Running", "Start the container and try again."
    if isinstance(err, DestinationNotFound):
        return "Path Not Found", "Create the destination directory inside the container first."
    if isinstance(err, TransferPermissionDenied):
        return "Permission Denied", "The container filesystem may be read-only."
    if isinstance(err, SourceConsumed):
        return "Stream Consumed", ""
    if isinstance(err, FileNotFoundError):
        return "Source Not Found", ""
    return "Error", ""


def print_success(msg: str) -> None:
    """Print a success message with a checkmark."""
    _console.print(f"[green]\u2713[/green] {msg}")
