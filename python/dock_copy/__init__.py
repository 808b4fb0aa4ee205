# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

from importlib.metadata import version

from dock_copy._archive import build_archive, describe_archive
from dock_copy._config import DockCopyConfig, load_config
from dock_copy._sync import (
    ArchiveTransfer,
    copy_from_container,
    copy_to_container,
    create_transfer,
)
from dock_copy.errors import (
    ContainerError,
    ContainerNotFound,
    ContainerNotRunning,
    DestinationNotFound,
    DockCopyError,
    EngineNotRunning,
    ImageNotFound,
    SocketCommunicationError,
    SocketConnectionError,
    SocketError,
    SourceConsumed,
    TransferPermissionDenied,
)
from dock_copy.types import (
    ArchiveEntry,
    PathSource,
    StreamSource,
    TransferOutcome,
    TransferRequest,
)

__version__ = version("dock-copy")


def get_version() -> str:
    """Return the dock-copy package version string."""
    return __version__


__all__ = [
    "ArchiveEntry",
    "ArchiveTransfer",
    "ContainerError",
    "ContainerNotFound",
    "ContainerNotRunning",
    "DestinationNotFound",
    "DockCopyConfig",
    "DockCopyError",
    "EngineNotRunning",
    "ImageNotFound",
    "PathSource",
    "SocketCommunicationError",
    "SocketConnectionError",
    "SocketError",
    "SourceConsumed",
    "StreamSource",
    "TransferOutcome",
    "TransferPermissionDenied",
    "TransferRequest",
    "__version__",
    "build_archive",
    "copy_from_container",
    "copy_to_container",
    "create_transfer",
    "describe_archive",
    "get_version",
    "load_config",
]
