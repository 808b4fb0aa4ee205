# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""CLI command implementations."""

from __future__ import annotations

import io
import pathlib
import tarfile
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from dock_copy.cli.main import CliContext

from dock_copy.cli._output import format_error, format_outcome, print_success


def _get_ctx(ctx: click.Context) -> CliContext:
    """Extract the CliContext from Click's context object."""
    return ctx.obj  # type: ignore[no-any-return]


def _split_container_path(arg: str) -> tuple[str | None, str]:
    """Split ``CONTAINER:PATH`` into its parts.

    Arguments starting with ``/`` or ``.`` are always host paths, so host
    paths containing a colon can be given as ``./a:b``.
    """
    if arg.startswith(("/", ".")) or ":" not in arg:
        return None, arg
    container, path = arg.split(":", 1)
    return container, path or "/"


def _extract_to_host(tar_data: bytes, dest: pathlib.Path) -> None:
    """Unpack a tar archive fetched from a container into *dest*."""
    with tarfile.open(fileobj=io.BytesIO(tar_data), mode="r:*") as tar:
        members = tar.getmembers()
        if len(members) == 1 and members[0].isfile() and not dest.is_dir():
            extracted = tar.extractfile(members[0])
            if extracted is not None:
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(extracted.read())
                return
        dest.mkdir(parents=True, exist_ok=True)
        tar.extractall(dest, filter="data")


@click.command("cp")
@click.argument("src")
@click.argument("dst")
@click.option("--archive", "-a", is_flag=True, help="Keep uid/gid of the source files.")
@click.option(
    "--no-overwrite-dir-non-dir",
    is_flag=True,
    help="Refuse to replace a directory with a file, or a file with a directory.",
)
@click.option(
    "--children-only",
    is_flag=True,
    help="Copy the contents of a source directory, not the directory itself.",
)
@click.option("--gzip", "compress", is_flag=True, help="Gzip the archive on the wire.")
@click.pass_context
def cp_cmd(  # noqa: PLR0913
    ctx: click.Context,
    src: str,
    dst: str,
    *,
    archive: bool,
    no_overwrite_dir_non_dir: bool,
    children_only: bool,
    compress: bool,
) -> None:
    """Copy between the host and a container.

    \b
    dock-copy cp ./build  CONTAINER:/srv      host -> container
    dock-copy cp -        CONTAINER:/srv      tar stream on stdin -> container
    dock-copy cp CONTAINER:/etc/hosts ./out   container -> host
    """
    import dock_copy  # noqa: PLC0415

    cli_ctx = _get_ctx(ctx)
    src_container, src_path = _split_container_path(src)
    dst_container, dst_path = _split_container_path(dst)

    if (src_container is None) == (dst_container is None):
        msg = "exactly one of SRC and DST must be CONTAINER:PATH"
        raise click.UsageError(msg)
    if not (src_path if src_container is None else dst_path).strip():
        msg = "host path must not be empty"
        raise click.UsageError(msg)

    try:
        if src_container is not None:
            data = dock_copy.copy_from_container(
                src_container, src_path, socket_path=cli_ctx.socket
            )
            _extract_to_host(data, pathlib.Path(dst_path))
            print_success(f"Copied {src_container}:{src_path} -> {dst_path}")
            return

        stream = click.get_binary_stream("stdin") if src_path == "-" else None
        transfer = dock_copy.create_transfer(
            dst_container,  # type: ignore[arg-type]
            None if stream is not None else src_path,
            stream=stream,
            dest=dst_path,
            archive_mode=archive,
            no_overwrite_dir_non_dir=no_overwrite_dir_non_dir,
            dir_children_only=children_only,
            compress=True if compress else None,
            socket_path=cli_ctx.socket,
        )
        transfer.execute()
    except (dock_copy.DockCopyError, OSError) as exc:
        format_error(exc)
        raise SystemExit(1) from exc

    if cli_ctx.verbose and transfer.last_outcome is not None:
        format_outcome(transfer.last_outcome)
    print_success(f"Copied {src_path} -> {dst_container}:{dst_path}")
