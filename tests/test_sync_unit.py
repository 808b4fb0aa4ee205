"""Unit tests for the sync facade (no container engine required)."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest
from dock_copy import (
    ArchiveTransfer,
    ContainerNotFound,
    copy_from_container,
    copy_to_container,
    create_transfer,
)
from dock_copy._sync import _LoopThread

if TYPE_CHECKING:
    from pathlib import Path


def test_loop_thread_is_singleton() -> None:
    assert _LoopThread.get() is _LoopThread.get()


def test_sync_transfer_runs_twice(tmp_path: Path) -> None:
    src = tmp_path / "testReadFile"
    src.write_text("x")

    transfer = create_transfer("cid", src, socket_path="/tmp/s.sock")
    assert isinstance(transfer, ArchiveTransfer)

    with (
        patch("dock_copy._transfer.sc.inspect_container", new_callable=AsyncMock),
        patch(
            "dock_copy._transfer.sc.put_archive", new_callable=AsyncMock, return_value=512
        ) as mock_put,
    ):
        transfer.execute()
        transfer.execute()

    assert mock_put.await_count == 2
    assert transfer.execute_count == 2
    assert transfer.last_outcome is not None
    assert transfer.last_outcome.bytes_sent == 512
    assert transfer.request.container_id == "cid"


def test_sync_not_found_propagates(tmp_path: Path) -> None:
    src = tmp_path / "testReadFile"
    src.write_text("x")

    with (
        patch(
            "dock_copy._transfer.sc.inspect_container",
            new_callable=AsyncMock,
            side_effect=ContainerNotFound("non-existing"),
        ),
        pytest.raises(ContainerNotFound),
    ):
        copy_to_container("non-existing", src, socket_path="/tmp/s.sock")


def test_sync_copy_from_container() -> None:
    with patch(
        "dock_copy._transfer.sc.get_archive",
        new_callable=AsyncMock,
        return_value=b"tar",
    ):
        assert copy_from_container("cid", "/x", socket_path="/tmp/s.sock") == b"tar"
