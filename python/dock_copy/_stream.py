# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Frame reader for the engine's multiplexed exec output.

Integration checks run shell commands in the target container and need the
command's stdout and stderr apart.  Without a TTY the engine interleaves both
on one connection as frames of ``[type:1][pad:3][length:4 BE][payload]``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import struct
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

STREAM_STDOUT = 1
STREAM_STDERR = 2
HEADER_SIZE = 8
_HEADER = struct.Struct(">BxxxI")


class Frame(NamedTuple):
    stream_type: int
    payload: bytes


def parse_stream_header(header: bytes) -> tuple[int, int]:
    """Return ``(stream_type, payload_length)`` for an 8-byte frame header."""
    stream_type, length = _HEADER.unpack(header)
    return stream_type, length


async def iter_frames(reader: asyncio.StreamReader) -> AsyncIterator[Frame]:
    """Yield complete frames until EOF; a frame cut short by EOF is dropped."""
    while True:
        try:
            header = await reader.readexactly(HEADER_SIZE)
            stream_type, length = parse_stream_header(header)
            payload = await reader.readexactly(length) if length else b""
        except asyncio.IncompleteReadError:
            return
        if payload:
            yield Frame(stream_type, payload)


@dataclasses.dataclass
class DemuxResult:
    """Separated output of one exec call."""

    stdout_bytes: bytes = b""
    stderr_bytes: bytes = b""
    truncated: bool = False

    def stdout_text(self) -> str:
        return self.stdout_bytes.decode("utf-8", errors="replace")

    def stderr_text(self) -> str:
        return self.stderr_bytes.decode("utf-8", errors="replace")


async def demux_stream(
    reader: asyncio.StreamReader,
    max_output: int = 10 * 1024 * 1024,
) -> DemuxResult:
    """Split *reader* into stdout and stderr, keeping at most *max_output* bytes."""
    buffers = {STREAM_STDOUT: bytearray(), STREAM_STDERR: bytearray()}
    remaining = max_output

    async for frame in iter_frames(reader):
        kept = frame.payload[:remaining]
        remaining -= len(kept)
        target = buffers.get(frame.stream_type)
        if target is not None:
            target += kept
        if len(kept) < len(frame.payload):
            return DemuxResult(
                bytes(buffers[STREAM_STDOUT]), bytes(buffers[STREAM_STDERR]), truncated=True
            )

    return DemuxResult(bytes(buffers[STREAM_STDOUT]), bytes(buffers[STREAM_STDERR]))
