# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""AsyncArchiveTransfer, the async copy command.

All real work happens here.  The sync ``ArchiveTransfer`` class is a thin
facade that dispatches coroutines to a background event loop.
"""

from __future__ import annotations

import contextlib
import datetime
import time
from typing import IO, TYPE_CHECKING

from dock_copy import _socket_client as sc
from dock_copy._archive import build_archive
from dock_copy._config import DockCopyConfig, load_config
from dock_copy._helpers import parse_size
from dock_copy._logger import TransferLogger
from dock_copy.errors import EngineNotRunning, SourceConsumed
from dock_copy.types import PathSource, TransferOutcome, TransferRequest

if TYPE_CHECKING:
    import os
    from collections.abc import Iterator
    from pathlib import Path


def _seekable(stream: IO[bytes]) -> bool:
    seekable = getattr(stream, "seekable", None)
    return bool(seekable is not None and seekable())


def resolve_socket(socket_path: str | None, config: DockCopyConfig) -> str:
    """Pick the engine socket: explicit argument, then config, then auto-detect."""
    resolved = socket_path or config.socket or sc.detect_socket()
    if resolved is None:
        raise EngineNotRunning
    return resolved


class AsyncArchiveTransfer:
    """Async command that copies one :class:`TransferRequest` into a container.

    The command can be executed any number of times.  A host path source is
    archived afresh on every execution.  A stream source is uploaded as-is;
    it is rewound between executions when seekable, and refused with
    :class:`SourceConsumed` otherwise.
    """

    def __init__(
        self,
        request: TransferRequest,
        socket_path: str,
        *,
        config: DockCopyConfig | None = None,
        logger: TransferLogger | None = None,
    ) -> None:
        self._request = request
        self._socket_path = socket_path
        self._config = config if config is not None else DockCopyConfig()
        self._logger = logger if logger is not None else TransferLogger.from_config(self._config)
        self._execute_count = 0
        self._last_outcome: TransferOutcome | None = None
        self._stream_start: int | None = None
        self._stream_used = False

    @property
    def request(self) -> TransferRequest:
        """The request this command was built from."""
        return self._request

    @property
    def socket_path(self) -> str:
        """Path to the container engine Unix socket."""
        return self._socket_path

    @property
    def execute_count(self) -> int:
        """Number of executions that completed successfully."""
        return self._execute_count

    @property
    def last_outcome(self) -> TransferOutcome | None:
        """Outcome of the most recent successful execution."""
        return self._last_outcome

    async def execute(self) -> None:
        """Copy the source into the container.

        The container is looked up before anything is archived or sent, so
        an unknown container id fails without touching any filesystem.

        Raises:
            ContainerNotFound: The container does not exist.
            DestinationNotFound: ``dest_path`` does not exist in the container.
            TransferPermissionDenied: The engine refused the write.
            SourceConsumed: A non-seekable stream source was already used.
            OSError: The host source is missing or unreadable.
            SocketError: The engine could not be reached or misbehaved.

        """
        request = self._request
        started_at = datetime.datetime.now(tz=datetime.timezone.utc)
        start = time.monotonic()
        try:
            await sc.inspect_container(self._socket_path, request.container_id)
            with self._open_source() as tar_stream:
                sent = await sc.put_archive(
                    self._socket_path,
                    request.container_id,
                    request.dest_path,
                    tar_stream,
                    copy_uid_gid=request.archive_mode,
                    no_overwrite_dir_non_dir=request.no_overwrite_dir_non_dir,
                    chunk_size=self._config.chunk_size,
                )
        except Exception as exc:
            self._logger.log_failure(request, exc, started_at)
            raise

        outcome = TransferOutcome(
            container_id=request.container_id,
            dest_path=request.dest_path,
            source=request.source.describe(),
            bytes_sent=sent,
            duration_ms=(time.monotonic() - start) * 1000,
            archive_mode=request.archive_mode,
        )
        self._execute_count += 1
        self._last_outcome = outcome
        self._logger.log_success(outcome, started_at)

    @contextlib.contextmanager
    def _open_source(self) -> Iterator[IO[bytes]]:
        """Yield the tar stream for one execution."""
        source = self._request.source
        if isinstance(source, PathSource):
            with build_archive(
                source.path,
                archive_mode=self._request.archive_mode,
                dir_children_only=self._request.dir_children_only,
                compress=self._request.compress,
                spool_max_size=parse_size(self._config.spool_max_size),
            ) as archive:
                yield archive
            return

        # Caller-built archive: never re-wrapped or re-compressed
        stream = source.stream
        if self._stream_used:
            if not _seekable(stream) or self._stream_start is None:
                raise SourceConsumed
            stream.seek(self._stream_start)
        else:
            self._stream_start = stream.tell() if _seekable(stream) else None
            self._stream_used = True
        yield stream


def create_transfer(  # noqa: PLR0913
    container_id: str,
    src: str | os.PathLike[str] | None = None,
    *,
    stream: IO[bytes] | None = None,
    dest: str = "/",
    archive_mode: bool = False,
    no_overwrite_dir_non_dir: bool = False,
    dir_children_only: bool = False,
    compress: bool | None = None,
    socket_path: str | None = None,
    project_root: Path | None = None,
) -> AsyncArchiveTransfer:
    """Build a reusable copy command.

    Args:
        container_id: Target container ID or name.
        src: File or directory on the host.
        stream: Binary file object holding a ready tar archive.  Exactly one
            of *src* and *stream* must be given.
        dest: Directory inside the container to extract into.
        archive_mode: Keep host uid/gid instead of the container default.
        no_overwrite_dir_non_dir: Refuse to replace a directory with a file
            or a file with a directory.
        dir_children_only: Copy a directory's contents, not the directory.
        compress: Gzip the generated archive.  ``None`` uses the config value.
        socket_path: Engine socket.  ``None`` uses the config, then
            auto-detection.
        project_root: Directory holding a project-level ``.dock-copy/``
            config.

    Returns:
        An :class:`AsyncArchiveTransfer`; call ``await execute()`` to copy.

    """
    config = load_config(project_root)
    request = TransferRequest(
        container_id=container_id,
        source_path=src,
        source_stream=stream,
        dest_path=dest,
        archive_mode=archive_mode,
        no_overwrite_dir_non_dir=no_overwrite_dir_non_dir,
        dir_children_only=dir_children_only,
        compress=config.compress if compress is None else compress,
    )
    return AsyncArchiveTransfer(request, resolve_socket(socket_path, config), config=config)


async def copy_to_container(  # noqa: PLR0913
    container_id: str,
    src: str | os.PathLike[str] | None = None,
    *,
    stream: IO[bytes] | None = None,
    dest: str = "/",
    archive_mode: bool = False,
    no_overwrite_dir_non_dir: bool = False,
    dir_children_only: bool = False,
    compress: bool | None = None,
    socket_path: str | None = None,
    project_root: Path | None = None,
) -> None:
    """Copy a host path or tar stream into a container once.

    See :func:`create_transfer` for argument docs.
    """
    transfer = create_transfer(
        container_id,
        src,
        stream=stream,
        dest=dest,
        archive_mode=archive_mode,
        no_overwrite_dir_non_dir=no_overwrite_dir_non_dir,
        dir_children_only=dir_children_only,
        compress=compress,
        socket_path=socket_path,
        project_root=project_root,
    )
    await transfer.execute()


async def copy_from_container(
    container_id: str,
    path: str,
    *,
    socket_path: str | None = None,
    project_root: Path | None = None,
) -> bytes:
    """Fetch *path* from a container as raw tar bytes."""
    socket = resolve_socket(socket_path, load_config(project_root))
    return await sc.get_archive(socket, container_id, path)
