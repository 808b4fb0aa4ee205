"""Shared fixtures for dock-copy tests."""

from __future__ import annotations

import contextlib
import os
import pathlib
from typing import TYPE_CHECKING

import pytest
from dock_copy import _socket_client as sc
from dock_copy.errors import ContainerNotFound, ImageNotFound

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Coroutine
    from typing import Any

TEST_IMAGE = "busybox"


def _path_exists(path: pathlib.Path) -> bool:
    """Check if *path* exists, returning ``False`` on ``PermissionError``."""
    try:
        return path.exists()
    except PermissionError:
        return False


def _find_socket() -> str | None:
    """Detect an available container engine socket."""
    explicit = os.environ.get("DOCK_COPY_SOCKET")
    if explicit and _path_exists(pathlib.Path(explicit)):
        return explicit

    xdg = os.environ.get("XDG_RUNTIME_DIR", f"/run/user/{os.getuid()}")
    candidates = [
        pathlib.Path(xdg) / "podman" / "podman.sock",
        pathlib.Path("/run/podman/podman.sock"),
        pathlib.Path("/var/run/docker.sock"),
    ]
    for candidate in candidates:
        if _path_exists(candidate):
            return str(candidate)
    return None


SOCKET_PATH = _find_socket()
HAS_ENGINE = SOCKET_PATH is not None

requires_engine = pytest.mark.skipif(
    not HAS_ENGINE,
    reason="No container engine socket found (Podman or Docker)",
)


@pytest.fixture
def socket_path() -> str:
    """Return the detected socket path, or skip the test."""
    if SOCKET_PATH is None:
        pytest.skip("No container engine socket found")
    return SOCKET_PATH


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep install-level config in ``~/.dock-copy`` out of the tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setattr(pathlib.Path, "home", lambda: home)


@pytest.fixture
async def container_factory(socket_path: str) -> AsyncIterator[Callable[..., Coroutine[Any, Any, str]]]:
    """Create and start busybox containers; all are removed at teardown."""
    created: list[str] = []

    async def _make(command: list[str] | None = None, *, user: str | None = None) -> str:
        try:
            container_id = await sc.create_container(
                socket_path,
                TEST_IMAGE,
                command=command or ["sleep", "9999"],
                user=user,
                labels={"dock-copy.test": "true"},
            )
        except ImageNotFound:
            try:
                await sc.pull_image(socket_path, TEST_IMAGE)
            except ImageNotFound:
                pytest.skip(f"{TEST_IMAGE} image not available")
            container_id = await sc.create_container(
                socket_path,
                TEST_IMAGE,
                command=command or ["sleep", "9999"],
                user=user,
                labels={"dock-copy.test": "true"},
            )
        created.append(container_id)
        await sc.start_container(socket_path, container_id)
        return container_id

    yield _make  # type: ignore[misc]

    for container_id in created:
        with contextlib.suppress(ContainerNotFound):
            await sc.remove_container(socket_path, container_id, force=True)
