# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Async HTTP-over-Unix-socket client for Podman/Docker.

Every call opens its own connection and closes it when the response has been
read, so a long archive upload never holds up another request.  Paths are the
unversioned Docker-compatible ones (``/containers/{id}/archive``), which both
engines serve.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import pathlib
import time
import urllib.parse
from typing import IO, TYPE_CHECKING, Any

from dock_copy._stream import DemuxResult, demux_stream
from dock_copy.errors import (
    ContainerNotFound,
    ContainerNotRunning,
    DestinationNotFound,
    DockCopyError,
    ImageNotFound,
    SocketCommunicationError,
    SocketConnectionError,
    TransferPermissionDenied,
)
from dock_copy.types import ExecResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

DEFAULT_CHUNK_SIZE = 64 * 1024
_READ_SIZE = 64 * 1024
_CRLF = b"\r\n"

# ---------------------------------------------------------------------------
# Socket detection
# ---------------------------------------------------------------------------


def _candidate_sockets() -> Iterator[pathlib.Path]:
    explicit = os.environ.get("DOCK_COPY_SOCKET")
    if explicit:
        yield pathlib.Path(explicit)
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR") or f"/run/user/{os.getuid()}"
    yield pathlib.Path(runtime_dir, "podman", "podman.sock")  # rootless Podman
    yield pathlib.Path("/run/podman/podman.sock")
    yield pathlib.Path("/var/run/docker.sock")


def detect_socket() -> str | None:
    """Return the first engine socket that exists, or ``None``.

    Checked in order: ``$DOCK_COPY_SOCKET``, rootless Podman under
    ``$XDG_RUNTIME_DIR``, system Podman, then Docker.
    """
    found = next((path for path in _candidate_sockets() if path.exists()), None)
    return None if found is None else str(found)


# ---------------------------------------------------------------------------
# HTTP/1.1 framing
# ---------------------------------------------------------------------------


async def _open_connection(
    socket_path: str,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    try:
        return await asyncio.open_unix_connection(socket_path)
    except OSError as exc:
        raise SocketConnectionError(socket_path, str(exc)) from exc


@contextlib.asynccontextmanager
async def _connection(
    socket_path: str,
) -> AsyncIterator[tuple[asyncio.StreamReader, asyncio.StreamWriter]]:
    """Open a connection for one exchange; transport failures become SocketCommunicationError."""
    reader, writer = await _open_connection(socket_path)
    try:
        yield reader, writer
    except DockCopyError:
        raise
    except (OSError, asyncio.IncompleteReadError) as exc:
        raise SocketCommunicationError(str(exc)) from exc
    finally:
        writer.close()
        await writer.wait_closed()


async def _send_request(  # noqa: PLR0913
    writer: asyncio.StreamWriter,
    method: str,
    path: str,
    body: bytes | None = None,
    content_type: str = "application/json",
    *,
    chunked: bool = False,
) -> None:
    """Write the request head, plus *body* when it is sent in one piece.

    A ``chunked`` request only gets its head here; the payload follows through
    :func:`_send_chunked_body`.
    """
    fields = {"Host": "localhost"}
    if chunked or body is not None:
        fields["Content-Type"] = content_type
    if chunked:
        fields["Transfer-Encoding"] = "chunked"
    elif body is not None:
        fields["Content-Length"] = str(len(body))
    fields["Connection"] = "close"

    head = f"{method} {path} HTTP/1.1\r\n"
    head += "".join(f"{name}: {value}\r\n" for name, value in fields.items())
    writer.write(head.encode("ascii") + _CRLF)
    if body is not None and not chunked:
        writer.write(body)
    await writer.drain()


async def _send_chunked_body(
    writer: asyncio.StreamWriter,
    body: IO[bytes],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Copy *body* to the writer as HTTP chunks; return the payload byte count."""
    sent = 0
    while chunk := body.read(chunk_size):
        writer.write(b"%x\r\n" % len(chunk) + chunk + _CRLF)
        await writer.drain()
        sent += len(chunk)
    writer.write(b"0\r\n\r\n")
    await writer.drain()
    return sent


async def _read_status_line(reader: asyncio.StreamReader) -> int:
    line = await reader.readline()
    if not line:
        msg = "empty response"
        raise SocketCommunicationError(msg)
    _version, _, rest = line.strip().partition(b" ")
    code = rest[:3]
    if not code.isdigit():
        msg = f"malformed status line: {line!r}"
        raise SocketCommunicationError(msg)
    return int(code)


async def _read_headers(reader: asyncio.StreamReader) -> dict[str, str]:
    """Read header lines up to the blank separator; keys are lower-cased."""
    headers: dict[str, str] = {}
    while line := (await reader.readline()).strip():
        name, sep, value = line.decode("latin-1").partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()
    return headers


async def _read_body(
    reader: asyncio.StreamReader,
    headers: dict[str, str],
) -> bytes:
    if headers.get("transfer-encoding", "").lower() == "chunked":
        return await _read_chunked(reader)
    if "content-length" in headers:
        return await _read_exact_body(reader, int(headers["content-length"]))
    return await reader.read()


async def _read_exact_body(reader: asyncio.StreamReader, length: int) -> bytes:
    """Read *length* bytes, or whatever arrived before EOF."""
    try:
        return await reader.readexactly(length)
    except asyncio.IncompleteReadError as exc:
        return exc.partial


async def _read_chunked(reader: asyncio.StreamReader) -> bytes:
    """Decode a chunked body; stops quietly if the peer closes early."""
    body = bytearray()
    while size_line := await reader.readline():
        size_field = size_line.split(b";", 1)[0].strip()
        if not size_field:
            continue
        size = int(size_field, 16)
        if size == 0:
            await reader.readline()
            break
        body += await _read_exact_body(reader, size)
        await reader.readline()
    return bytes(body)


async def _request(
    socket_path: str,
    method: str,
    path: str,
    body: dict[str, Any] | None = None,
) -> tuple[int, bytes]:
    """Send a JSON request and return ``(status, body)``."""
    payload = None if body is None else json.dumps(body).encode("utf-8")
    async with _connection(socket_path) as (reader, writer):
        await _send_request(writer, method, path, payload)
        status = await _read_status_line(reader)
        response = await _read_body(reader, await _read_headers(reader))
    return status, response


async def _request_upload(  # noqa: PLR0913
    socket_path: str,
    method: str,
    path: str,
    body: IO[bytes],
    content_type: str = "application/x-tar",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> tuple[int, bytes, int]:
    """Stream *body* as a chunked request and return ``(status, body, bytes_sent)``.

    ``bytes_sent`` is ``-1`` when the engine hung up mid-upload; its response
    then explains the rejection.
    """
    async with _connection(socket_path) as (reader, writer):
        await _send_request(writer, method, path, content_type=content_type, chunked=True)
        try:
            sent = await _send_chunked_body(writer, body, chunk_size)
        except (BrokenPipeError, ConnectionResetError):
            sent = -1
        status = await _read_status_line(reader)
        response = await _read_body(reader, await _read_headers(reader))

    if sent < 0 and status < 400:  # noqa: PLR2004
        msg = "connection closed before the archive was fully sent"
        raise SocketCommunicationError(msg)
    return status, response, sent


# ---------------------------------------------------------------------------
# Response checks
# ---------------------------------------------------------------------------

_CONTAINER_ERRORS: dict[int, type[ContainerNotFound | ContainerNotRunning]] = {
    404: ContainerNotFound,
    409: ContainerNotRunning,
}


def _text(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


def _fail(action: str, status: int, body: bytes) -> SocketCommunicationError:
    return SocketCommunicationError(f"{action} failed: HTTP {status}: {_text(body)}")


def _check_container_response(
    status: int,
    body: bytes,
    container_id: str,
) -> None:
    """Raise for an error status on a ``/containers/{id}`` endpoint."""
    if status < 400:  # noqa: PLR2004
        return
    error = _CONTAINER_ERRORS.get(status)
    if error is not None:
        raise error(container_id)
    msg = f"HTTP {status}: {_text(body)}"
    raise SocketCommunicationError(msg)


def _is_missing_container(body: bytes) -> bool:
    # Docker says "No such container: x", Podman "... found: no such container"
    return b"no such container" in body.lower()


def _check_archive_response(
    status: int,
    body: bytes,
    container_id: str,
    path: str,
) -> None:
    """Raise for an error status on ``/archive``, where 404 can mean either side."""
    if status == 404 and not _is_missing_container(body):  # noqa: PLR2004
        raise DestinationNotFound(container_id, path)
    if status == 403:  # noqa: PLR2004
        raise TransferPermissionDenied(container_id, path)
    _check_container_response(status, body, container_id)


def _container_url(container_id: str, endpoint: str = "", **query: str) -> str:
    url = f"/containers/{urllib.parse.quote(container_id, safe='')}{endpoint}"
    if query:
        url += "?" + urllib.parse.urlencode(query, quote_via=urllib.parse.quote)
    return url


def _bool_param(value: bool) -> str:  # noqa: FBT001
    return str(value).lower()


# ---------------------------------------------------------------------------
# Archive API
# ---------------------------------------------------------------------------


async def put_archive(  # noqa: PLR0913
    socket_path: str,
    container_id: str,
    dest_path: str,
    tar_stream: IO[bytes],
    *,
    copy_uid_gid: bool = False,
    no_overwrite_dir_non_dir: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Upload a tar archive and extract it at *dest_path* inside the container.

    ``PUT /containers/{id}/archive``.  The engine accepts plain, gzip, bzip2
    or xz archives and works out which on its own.

    Args:
        socket_path: Path to the container engine Unix socket.
        container_id: Target container ID or name.
        dest_path: Destination directory inside the container.
        tar_stream: Binary file object positioned at the start of the archive.
        copy_uid_gid: Keep the uid/gid recorded in the archive (``copyUIDGID``).
            Docker chowns to the container's configured ``User`` instead when
            one is set.
        no_overwrite_dir_non_dir: Refuse to replace a directory with a
            non-directory or vice versa (``noOverwriteDirNonDir``).
        chunk_size: Bytes per chunk on the wire.

    Returns:
        The number of archive bytes sent.

    Raises:
        ContainerNotFound: The container does not exist.
        DestinationNotFound: *dest_path* does not exist in the container.
        TransferPermissionDenied: The engine refused the write.

    """
    query = {"path": dest_path}
    if no_overwrite_dir_non_dir:
        query["noOverwriteDirNonDir"] = _bool_param(no_overwrite_dir_non_dir)
    if copy_uid_gid:
        query["copyUIDGID"] = _bool_param(copy_uid_gid)

    status, body, sent = await _request_upload(
        socket_path,
        "PUT",
        _container_url(container_id, "/archive", **query),
        tar_stream,
        chunk_size=chunk_size,
    )
    _check_archive_response(status, body, container_id, dest_path)
    return sent


async def get_archive(
    socket_path: str,
    container_id: str,
    src_path: str,
) -> bytes:
    """Fetch *src_path* from the container as raw tar bytes.

    Raises:
        ContainerNotFound: The container does not exist.
        DestinationNotFound: *src_path* does not exist in the container.

    """
    status, body = await _request(
        socket_path, "GET", _container_url(container_id, "/archive", path=src_path)
    )
    _check_archive_response(status, body, container_id, src_path)
    return body


# ---------------------------------------------------------------------------
# Container lifecycle
# ---------------------------------------------------------------------------


async def ping(socket_path: str) -> str:
    """Return the engine's ``/_ping`` reply (``"OK"``)."""
    status, body = await _request(socket_path, "GET", "/_ping")
    if status != 200:  # noqa: PLR2004
        raise _fail("ping", status, body)
    return body.decode("ascii").strip()


async def inspect_container(socket_path: str, container_id: str) -> dict[str, Any]:
    """Return the container's JSON state; raises ContainerNotFound for unknown ids."""
    status, body = await _request(socket_path, "GET", _container_url(container_id, "/json"))
    _check_container_response(status, body, container_id)
    return json.loads(body)  # type: ignore[no-any-return]


async def pull_image(socket_path: str, image: str, tag: str = "latest") -> None:
    """Pull ``image:tag`` from its registry."""
    query = urllib.parse.urlencode({"fromImage": image, "tag": tag})
    status, body = await _request(socket_path, "POST", f"/images/create?{query}")
    if status == 404:  # noqa: PLR2004
        raise ImageNotFound(f"{image}:{tag}")
    if status >= 400:  # noqa: PLR2004
        raise _fail("pull", status, body)


async def create_container(  # noqa: PLR0913
    socket_path: str,
    image: str,
    command: list[str] | None = None,
    *,
    name: str | None = None,
    user: str | None = None,
    labels: dict[str, str] | None = None,
) -> str:
    """Create a container and return its full ID.

    Args:
        socket_path: Path to the container engine Unix socket.
        image: Image to create it from.
        command: Command to run instead of the image's CMD.
        name: Container name; the engine picks one when ``None``.
        user: User the container's processes run as.
        labels: Labels to attach.

    """
    spec: dict[str, Any] = {"Image": image}
    for key, value in (("Cmd", command), ("User", user), ("Labels", labels)):
        if value is not None:
            spec[key] = value

    path = "/containers/create"
    if name is not None:
        path += "?" + urllib.parse.urlencode({"name": name})
    status, body = await _request(socket_path, "POST", path, spec)

    if status == 404:  # noqa: PLR2004
        raise ImageNotFound(image)
    if status >= 400:  # noqa: PLR2004
        raise _fail("create", status, body)
    return str(json.loads(body)["Id"])


async def _container_action(
    socket_path: str,
    method: str,
    url: str,
    container_id: str,
    ok: tuple[int, ...],
) -> bytes:
    status, body = await _request(socket_path, method, url)
    if status not in ok:
        _check_container_response(status, body, container_id)
    return body


async def start_container(socket_path: str, container_id: str) -> None:
    # 304: already running
    await _container_action(
        socket_path, "POST", _container_url(container_id, "/start"), container_id, (204, 304)
    )


async def stop_container(socket_path: str, container_id: str, timeout: int = 10) -> None:
    await _container_action(
        socket_path,
        "POST",
        _container_url(container_id, "/stop", t=str(timeout)),
        container_id,
        (204, 304),
    )


async def remove_container(
    socket_path: str,
    container_id: str,
    *,
    force: bool = False,
) -> None:
    await _container_action(
        socket_path,
        "DELETE",
        _container_url(container_id, force=_bool_param(force)),
        container_id,
        (200, 204),
    )


async def wait_container(socket_path: str, container_id: str) -> int:
    """Block until the container exits; return its exit status."""
    body = await _container_action(
        socket_path, "POST", _container_url(container_id, "/wait"), container_id, (200,)
    )
    return int(json.loads(body)["StatusCode"])


# ---------------------------------------------------------------------------
# Exec (used to inspect container state)
# ---------------------------------------------------------------------------


async def exec_command(  # noqa: PLR0913
    socket_path: str,
    container_id: str,
    command: list[str],
    *,
    user: str | None = None,
    max_output: int = 10 * 1024 * 1024,
    timeout: float | None = None,
) -> ExecResult:
    """Run *command* in the container and collect its output and exit code.

    Creates an exec instance, attaches to its multiplexed output, then reads
    the exit code back from the instance.  On *timeout* the result carries
    ``timed_out=True`` and exit code ``-1``.
    """
    started = time.monotonic()
    exec_id = await _exec_create(socket_path, container_id, command, user=user)

    try:
        output = await asyncio.wait_for(
            _exec_start(socket_path, exec_id, max_output), timeout=timeout
        )
    except (TimeoutError, asyncio.TimeoutError):
        return ExecResult(
            exit_code=-1,
            duration_ms=(time.monotonic() - started) * 1000,
            timed_out=True,
        )

    return ExecResult(
        exit_code=await _exec_inspect_exit_code(socket_path, exec_id),
        stdout=output.stdout_text(),
        stderr=output.stderr_text(),
        duration_ms=(time.monotonic() - started) * 1000,
        truncated=output.truncated,
    )


async def _exec_create(
    socket_path: str,
    container_id: str,
    command: list[str],
    *,
    user: str | None = None,
) -> str:
    spec: dict[str, Any] = {"AttachStdout": True, "AttachStderr": True, "Cmd": command}
    if user is not None:
        spec["User"] = user
    status, body = await _request(
        socket_path, "POST", _container_url(container_id, "/exec"), spec
    )
    # Podman reports a stopped container as 500 "container state improper"
    if status >= 400 and "container state improper" in _text(body):  # noqa: PLR2004
        raise ContainerNotRunning(container_id)
    if status in _CONTAINER_ERRORS:
        _check_container_response(status, body, container_id)
    if status >= 400:  # noqa: PLR2004
        raise _fail("exec create", status, body)
    return str(json.loads(body)["Id"])


async def _exec_start(
    socket_path: str,
    exec_id: str,
    max_output: int,
) -> DemuxResult:
    payload = json.dumps({"Detach": False, "Tty": False}).encode("utf-8")
    async with _connection(socket_path) as (reader, writer):
        await _send_request(writer, "POST", f"/exec/{exec_id}/start", payload)
        status = await _read_status_line(reader)
        headers = await _read_headers(reader)
        if status >= 400:  # noqa: PLR2004
            raise _fail("exec start", status, await reader.read(_READ_SIZE))

        if headers.get("transfer-encoding", "").lower() != "chunked":
            # Podman: raw frames until EOF
            return await demux_stream(reader, max_output)
        # Docker: frames inside HTTP chunks
        unchunked = asyncio.StreamReader()
        unchunked.feed_data(await _read_chunked(reader))
        unchunked.feed_eof()
        return await demux_stream(unchunked, max_output)


async def _exec_inspect_exit_code(socket_path: str, exec_id: str) -> int:
    status, body = await _request(socket_path, "GET", f"/exec/{exec_id}/json")
    if status >= 400:  # noqa: PLR2004
        raise _fail("exec inspect", status, body)
    return int(json.loads(body)["ExitCode"])
