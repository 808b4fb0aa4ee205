# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Async public API for dock-copy.

Usage::

    from dock_copy.async_ import create_transfer

    async def main():
        transfer = create_transfer("my-container", "./build", dest="/srv")
        await transfer.execute()
"""

from __future__ import annotations

from dock_copy._archive import build_archive, describe_archive
from dock_copy._transfer import (
    AsyncArchiveTransfer,
    copy_from_container,
    copy_to_container,
    create_transfer,
)

__all__ = [
    "AsyncArchiveTransfer",
    "build_archive",
    "copy_from_container",
    "copy_to_container",
    "create_transfer",
    "describe_archive",
]
