# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Sync facade over :class:`AsyncArchiveTransfer`.

Manages a background event loop thread so users never see ``async/await``
unless they want to.  Each call dispatches to the background event loop via
:func:`asyncio.run_coroutine_threadsafe`.
"""

from __future__ import annotations

import asyncio
import atexit
import threading
from typing import IO, TYPE_CHECKING

from dock_copy._transfer import (
    AsyncArchiveTransfer,
)
from dock_copy._transfer import (
    copy_from_container as _async_copy_from,
)
from dock_copy._transfer import (
    create_transfer as _async_create_transfer,
)

if TYPE_CHECKING:
    import concurrent.futures
    import os
    from pathlib import Path

    from dock_copy.types import TransferOutcome, TransferRequest


class _LoopThread:
    """Singleton background event loop thread shared by all sync transfers."""

    _instance: _LoopThread | None = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name="dock-copy-event-loop",
            daemon=True,
        )
        self._thread.start()
        atexit.register(self._shutdown)

    @classmethod
    def get(cls) -> _LoopThread:
        """Return the singleton, creating it lazily."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def run(self, coro: object, *, timeout: float | None = None) -> object:
        """Submit a coroutine and block until it finishes."""
        future: concurrent.futures.Future[object] = asyncio.run_coroutine_threadsafe(
            coro,  # type: ignore[arg-type]
            self._loop,
        )
        return future.result(timeout=timeout)

    def _shutdown(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)


class ArchiveTransfer:
    """Sync handle to a reusable copy command.

    Created via :func:`dock_copy.create_transfer`.
    """

    def __init__(self, at: AsyncArchiveTransfer, lt: _LoopThread) -> None:
        self._at = at
        self._lt = lt

    @property
    def request(self) -> TransferRequest:
        """The request this command was built from."""
        return self._at.request

    @property
    def execute_count(self) -> int:
        """Number of executions that completed successfully."""
        return self._at.execute_count

    @property
    def last_outcome(self) -> TransferOutcome | None:
        """Outcome of the most recent successful execution."""
        return self._at.last_outcome

    def execute(self) -> None:
        """Copy the source into the container.

        See :meth:`AsyncArchiveTransfer.execute` for full documentation.
        """
        self._lt.run(self._at.execute())


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
) -> ArchiveTransfer:
    """Build a reusable sync copy command.

    See :func:`dock_copy.async_.create_transfer` for argument docs.
    """
    at = _async_create_transfer(
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
    return ArchiveTransfer(at, _LoopThread.get())


def copy_to_container(  # noqa: PLR0913
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
    """Copy a host path or tar stream into a container once (sync)."""
    create_transfer(
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
    ).execute()


def copy_from_container(
    container_id: str,
    path: str,
    *,
    socket_path: str | None = None,
    project_root: Path | None = None,
) -> bytes:
    """Fetch *path* from a container as raw tar bytes (sync)."""
    lt = _LoopThread.get()
    return lt.run(  # type: ignore[return-value]
        _async_copy_from(container_id, path, socket_path=socket_path, project_root=project_root)
    )
