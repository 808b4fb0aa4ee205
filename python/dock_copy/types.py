# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

import dataclasses
import pathlib
from typing import IO, Literal, Union

_DEFAULT_DEST = "/"


@dataclasses.dataclass(frozen=True)
class PathSource:
    """A host file or directory, archived afresh on every execution."""

    path: pathlib.Path

    def describe(self) -> str:
        return str(self.path)


@dataclasses.dataclass(frozen=True)
class StreamSource:
    """A caller-built tar stream, uploaded as-is."""

    stream: IO[bytes]

    def describe(self) -> str:
        return f"<stream {getattr(self.stream, 'name', type(self.stream).__name__)}>"


TransferSource = Union[PathSource, StreamSource]


@dataclasses.dataclass(frozen=True)
class TransferRequest:
    """Everything needed to copy an archive into a container.

    Exactly one of ``source_path`` and ``source_stream`` must be given.
    ``dest_path`` is a directory inside the container; the archive is
    extracted there.
    """

    container_id: str
    source_path: str | pathlib.Path | None = None
    source_stream: IO[bytes] | None = None
    dest_path: str = _DEFAULT_DEST
    archive_mode: bool = False
    no_overwrite_dir_non_dir: bool = False
    dir_children_only: bool = False
    compress: bool = False

    def __post_init__(self) -> None:
        if not self.container_id:
            msg = "container_id must not be empty"
            raise ValueError(msg)
        if (self.source_path is None) == (self.source_stream is None):
            msg = "exactly one of source_path and source_stream must be set"
            raise ValueError(msg)
        if self.source_path is not None and not str(self.source_path).strip():
            msg = "source_path must not be empty"
            raise ValueError(msg)
        if not self.dest_path:
            msg = "dest_path must not be empty"
            raise ValueError(msg)

    @property
    def source(self) -> TransferSource:
        """The request's source as a tagged variant."""
        if self.source_stream is not None:
            return StreamSource(self.source_stream)
        return PathSource(pathlib.Path(self.source_path))  # type: ignore[arg-type]


@dataclasses.dataclass(frozen=True)
class ArchiveEntry:
    """One member of a tar archive, as seen without extracting it."""

    path: str
    kind: Literal["file", "dir", "symlink", "other"]
    size: int = 0
    mode: int = 0
    uid: int = 0
    gid: int = 0
    uname: str = ""
    gname: str = ""
    is_last_in_directory: bool = False

    @property
    def executable(self) -> bool:
        """Return True if any execute bit is set."""
        return bool(self.mode & 0o111)


@dataclasses.dataclass(frozen=True)
class TransferOutcome:
    """Record of one completed transfer."""

    container_id: str
    dest_path: str
    source: str
    bytes_sent: int = 0
    duration_ms: float = 0.0
    archive_mode: bool = False


@dataclasses.dataclass(frozen=True)
class ExecResult:
    """Result of executing a command inside a container."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: float = 0.0
    timed_out: bool = False
    truncated: bool = False

    @property
    def ok(self) -> bool:
        """Return True if the command exited successfully (exit code 0)."""
        return self.exit_code == 0
