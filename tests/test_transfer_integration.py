"""Integration tests for copying into live containers.

Require a running Podman or Docker engine; skipped otherwise.
"""

from __future__ import annotations

import io
import os
import tarfile
from typing import TYPE_CHECKING

import pytest
from conftest import requires_engine
from dock_copy import _socket_client as sc
from dock_copy import copy_to_container as sync_copy_to_container
from dock_copy._archive import build_archive, describe_archive
from dock_copy.async_ import copy_from_container, copy_to_container, create_transfer
from dock_copy.errors import ContainerNotFound, DestinationNotFound

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Callable, Coroutine
    from typing import Any

    Factory = Callable[..., Coroutine[Any, Any, str]]

_SNAPSHOT = "cd {0} && find . | sort && find . -type f | sort | xargs md5sum"


async def _sh(socket_path: str, container_id: str, script: str) -> str:
    result = await sc.exec_command(socket_path, container_id, ["sh", "-c", script])
    assert result.ok, result.stderr
    return result.stdout


def _make_tree(root: pathlib.Path) -> pathlib.Path:
    tree = root / "tree"
    (tree / "a").mkdir(parents=True)
    (tree / "a" / "file").write_text("inside a")
    (tree / "0top.txt").write_text("top")
    # Sorts after every other entry of the root, and empty
    (tree / "b").mkdir()
    return tree


@requires_engine
async def test_copy_file_then_read_back(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    container_id = await container_factory()
    src = tmp_path / "testReadFile"
    src.write_text("read me back")

    await copy_to_container(container_id, src, socket_path=socket_path)

    data = await copy_from_container(container_id, "/testReadFile", socket_path=socket_path)
    assert data
    with tarfile.open(fileobj=io.BytesIO(data)) as tar:
        member = tar.extractfile("testReadFile")
        assert member is not None
        assert member.read() == b"read me back"


@requires_engine
async def test_stream_and_path_give_same_tree(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    tree = _make_tree(tmp_path)
    with build_archive(tree) as archive:
        payload = archive.read()

    by_path = await container_factory()
    by_stream = await container_factory()
    await copy_to_container(by_path, tree, dest="/tmp", socket_path=socket_path)
    await copy_to_container(
        by_stream, stream=io.BytesIO(payload), dest="/tmp", socket_path=socket_path
    )

    snapshot = _SNAPSHOT.format("/tmp/tree")
    assert await _sh(socket_path, by_path, snapshot) == await _sh(socket_path, by_stream, snapshot)


@requires_engine
async def test_execute_twice(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    container_id = await container_factory()
    src = tmp_path / "note.txt"
    src.write_text("first")
    transfer = create_transfer(container_id, src, dest="/tmp", socket_path=socket_path)

    await transfer.execute()
    src.write_text("second")
    await transfer.execute()

    assert transfer.execute_count == 2
    assert await _sh(socket_path, container_id, "cat /tmp/note.txt") == "second"


@requires_engine
async def test_unknown_container(socket_path: str, tmp_path: pathlib.Path) -> None:
    src = tmp_path / "testReadFile"
    src.write_text("x")
    with pytest.raises(ContainerNotFound):
        await copy_to_container("non-existing", src, socket_path=socket_path)


@requires_engine
async def test_missing_destination(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    container_id = await container_factory()
    src = tmp_path / "testReadFile"
    src.write_text("x")
    with pytest.raises(DestinationNotFound):
        await copy_to_container(
            container_id, src, dest="/does/not/exist", socket_path=socket_path
        )


@requires_engine
async def test_tree_ending_in_empty_dir(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    container_id = await container_factory()
    tree = _make_tree(tmp_path)
    with build_archive(tree) as archive:
        entries = describe_archive(archive)
    assert entries[-1].path == "tree/b"
    assert entries[-1].kind == "dir"

    await copy_to_container(container_id, tree, dest="/tmp", socket_path=socket_path)

    listing = await _sh(socket_path, container_id, "find /tmp/tree | sort")
    assert listing.split() == [
        "/tmp/tree",
        "/tmp/tree/0top.txt",
        "/tmp/tree/a",
        "/tmp/tree/a/file",
        "/tmp/tree/b",
    ]
    assert await _sh(socket_path, container_id, "ls -A /tmp/tree/b") == ""


@requires_engine
async def test_children_only(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    container_id = await container_factory()
    tree = _make_tree(tmp_path)

    await _sh(socket_path, container_id, "mkdir -p /srv")
    await copy_to_container(
        container_id, tree, dest="/srv", dir_children_only=True, socket_path=socket_path
    )

    await _sh(socket_path, container_id, "test -f /srv/a/file && test ! -e /srv/tree")


@requires_engine
async def test_ownership_normalized_without_archive_mode(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    container_id = await container_factory()
    src = tmp_path / "owned"
    src.write_text("x")
    if os.getuid() == 0:
        os.chown(src, 1234, 1234)

    await copy_to_container(container_id, src, dest="/tmp", socket_path=socket_path)

    assert (await _sh(socket_path, container_id, "stat -c '%u %g' /tmp/owned")).split() == [
        "0",
        "0",
    ]


@requires_engine
async def test_ownership_kept_in_archive_mode(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    container_id = await container_factory()
    src = tmp_path / "owned"
    src.write_text("x")
    if os.getuid() == 0:
        os.chown(src, 1234, 1234)
    st = src.stat()

    await copy_to_container(
        container_id, src, dest="/tmp", archive_mode=True, socket_path=socket_path
    )

    assert (await _sh(socket_path, container_id, "stat -c '%u %g' /tmp/owned")).split() == [
        str(st.st_uid),
        str(st.st_gid),
    ]


@requires_engine
async def test_copied_script_is_executable(
    socket_path: str, container_factory: Factory, tmp_path: pathlib.Path
) -> None:
    container_id = await container_factory(["sh", "-c", "sleep 3; /home/run.sh"])
    script = tmp_path / "run.sh"
    script.write_text("#!/bin/sh\necho copied script ran\n")
    script.chmod(0o755)

    await copy_to_container(container_id, script, dest="/home", socket_path=socket_path)

    assert await _sh(socket_path, container_id, "/home/run.sh") == "copied script ran\n"
    assert await sc.wait_container(socket_path, container_id) == 0


@requires_engine
def test_sync_copy(socket_path: str, tmp_path: pathlib.Path) -> None:
    src = tmp_path / "testReadFile"
    src.write_text("x")
    with pytest.raises(ContainerNotFound):
        sync_copy_to_container("non-existing", src, socket_path=socket_path)
