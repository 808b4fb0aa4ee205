# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Tar archive construction for host paths.

The archive is spooled (memory first, then a temporary file) so it can be
streamed to the engine and discarded.  A fresh archive is built for every
transfer, which is what lets a path-bound transfer run more than once.
"""

from __future__ import annotations

import contextlib
import os
import pathlib
import tarfile
import tempfile
from typing import IO, TYPE_CHECKING

from dock_copy.types import ArchiveEntry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

DEFAULT_SPOOL_MAX_SIZE = 16 * 1024 * 1024


def _ownership_filter(*, archive_mode: bool) -> Callable[[tarfile.TarInfo], tarfile.TarInfo]:
    """Return a ``tarfile`` filter applying the ownership policy.

    Permission bits are never touched.  Without archive mode the host
    uid/gid are dropped so the engine assigns its default owner.
    """

    def _filter(info: tarfile.TarInfo) -> tarfile.TarInfo:
        if not archive_mode:
            info.uid = 0
            info.gid = 0
            info.uname = ""
            info.gname = ""
        return info

    return _filter


def _archive_roots(
    host_path: pathlib.Path,
    *,
    dir_children_only: bool,
) -> list[tuple[pathlib.Path, str]]:
    """Return the ``(host path, archive name)`` pairs to add at the archive root."""
    # abspath normalises "." and ".." without following symlinks
    name = pathlib.Path(os.path.abspath(host_path)).name
    if host_path.is_dir() and not host_path.is_symlink() and (dir_children_only or not name):
        return [(child, child.name) for child in sorted(host_path.iterdir())]
    return [(host_path, name)]


@contextlib.contextmanager
def build_archive(
    path: str | os.PathLike[str],
    *,
    archive_mode: bool = False,
    dir_children_only: bool = False,
    compress: bool = False,
    spool_max_size: int = DEFAULT_SPOOL_MAX_SIZE,
) -> Iterator[IO[bytes]]:
    """Archive a host file or directory into a POSIX tar stream.

    Yields a binary file object positioned at the start of the archive.
    The object is closed when the context exits, whether or not the body
    raised.

    Args:
        path: File or directory on the host.
        archive_mode: Keep host uid/gid in the archive.
        dir_children_only: For a directory, archive its children at the
            archive root instead of the directory itself.
        compress: Wrap the archive in gzip.
        spool_max_size: Bytes kept in memory before spilling to disk.

    Raises:
        FileNotFoundError: If *path* is empty or does not exist.
        OSError: If *path* or something below it cannot be read.

    """
    # Path("") is ".", which would archive the working directory
    if not os.fspath(path).strip():
        msg = "source path is empty"
        raise FileNotFoundError(msg)
    host_path = pathlib.Path(path)
    if not host_path.exists() and not host_path.is_symlink():
        msg = f"source path does not exist: {path}"
        raise FileNotFoundError(msg)

    spool = tempfile.SpooledTemporaryFile(max_size=spool_max_size)  # noqa: SIM115
    try:
        mode = "w:gz" if compress else "w"
        with tarfile.open(fileobj=spool, mode=mode, format=tarfile.PAX_FORMAT) as tar:
            tar_filter = _ownership_filter(archive_mode=archive_mode)
            for src, arcname in _archive_roots(host_path, dir_children_only=dir_children_only):
                tar.add(str(src), arcname=arcname, filter=tar_filter)
        spool.seek(0)
        yield spool  # type: ignore[misc]
    finally:
        spool.close()


def _entry_kind(member: tarfile.TarInfo) -> str:
    if member.isdir():
        return "dir"
    if member.issym() or member.islnk():
        return "symlink"
    if member.isfile():
        return "file"
    return "other"


def describe_archive(fileobj: IO[bytes]) -> list[ArchiveEntry]:
    """List the entries of a (possibly compressed) tar archive.

    The file object is rewound to where it started, so the same stream can
    still be uploaded afterwards.
    """
    start = fileobj.tell()
    try:
        with tarfile.open(fileobj=fileobj, mode="r:*") as tar:
            members = tar.getmembers()
    finally:
        fileobj.seek(start)

    last_in_dir: dict[str, int] = {}
    for index, member in enumerate(members):
        parent = str(pathlib.PurePosixPath(member.name.rstrip("/")).parent)
        last_in_dir[parent] = index

    last_indexes = set(last_in_dir.values())
    return [
        ArchiveEntry(
            path=member.name,
            kind=_entry_kind(member),  # type: ignore[arg-type]
            size=member.size,
            mode=member.mode,
            uid=member.uid,
            gid=member.gid,
            uname=member.uname,
            gname=member.gname,
            is_last_in_directory=index in last_indexes,
        )
        for index, member in enumerate(members)
    ]
