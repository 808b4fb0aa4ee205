# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Exceptions raised by dock-copy.

Everything derives from :class:`DockCopyError`.  A missing container and a
missing destination path are separate classes so callers can tell them apart;
the latter is also a :class:`FileNotFoundError`.
"""

from __future__ import annotations


def _with_detail(message: str, detail: str) -> str:
    return f"{message}: {detail}" if detail else message


class DockCopyError(Exception):
    """Base exception for all dock-copy errors."""


# --- engine transport ---


class SocketError(DockCopyError):
    """The container engine could not be reached or answered badly."""


class SocketConnectionError(SocketError):
    def __init__(self, socket_path: str, detail: str = "") -> None:
        self.socket_path = socket_path
        super().__init__(_with_detail(f"Cannot connect to socket at {socket_path}", detail))


class SocketCommunicationError(SocketError):
    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(_with_detail("Socket communication error", detail))


class EngineNotRunning(SocketError):
    """No engine socket was given, configured or found."""

    def __init__(self) -> None:
        super().__init__(
            "No container engine socket found; start Podman "
            "(systemctl --user start podman.socket) or Docker, "
            "or set DOCK_COPY_SOCKET"
        )


# --- container side ---


class ContainerError(DockCopyError):
    """Error tied to one container id."""

    def __init__(self, container_id: str, detail: str = "") -> None:
        self.container_id = container_id
        super().__init__(_with_detail(f"Container {container_id}", detail))


class ContainerNotFound(ContainerError):
    def __init__(self, container_id: str) -> None:
        super().__init__(container_id, "not found")


class ContainerNotRunning(ContainerError):
    def __init__(self, container_id: str) -> None:
        super().__init__(container_id, "is not running")


class TransferPermissionDenied(ContainerError):
    """The engine refused to write (HTTP 403), e.g. a read-only rootfs."""

    def __init__(self, container_id: str, dest_path: str) -> None:
        self.dest_path = dest_path
        super().__init__(container_id, f"write to {dest_path} denied")


class DestinationNotFound(DockCopyError, FileNotFoundError):
    def __init__(self, container_id: str, path: str) -> None:
        self.container_id = container_id
        self.path = path
        super().__init__(f"path not found in container {container_id}: {path}")


class ImageNotFound(DockCopyError):
    def __init__(self, image: str) -> None:
        self.image = image
        super().__init__(f"Image not found: {image}")


# --- host side ---


class SourceConsumed(DockCopyError):
    """A one-shot tar stream was already read by an earlier execution."""

    def __init__(self) -> None:
        super().__init__(
            "tar stream was already consumed by a previous execution; "
            "pass a seekable stream or a host path to copy more than once"
        )
