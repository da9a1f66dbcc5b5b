"""
Transports for external tool servers.

Each transport is a FastMCP ``ClientTransport`` that yields an initialized-
ready MCP ``ClientSession``. Three variants are supported:

- SubprocessTransport: spawns the configured command and speaks
  newline-delimited JSON-RPC over its standard streams, forwarding every
  stderr line to the logger
- WebSocketTransport: connects to a ``ws://`` or ``wss://`` endpoint
- Streamable HTTP (or SSE when explicitly requested): FastMCP's own
  HTTP transports with the configured headers
"""

import contextlib
import logging
import os
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import anyio
from anyio.abc import Process
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from anyio.streams.text import TextReceiveStream
from fastmcp.client.transports import ClientTransport, SSETransport, StreamableHttpTransport
from mcp import ClientSession
from mcp.client.websocket import websocket_client
from mcp.shared.message import SessionMessage
import mcp.types as mcp_types

from ..core.enums import TransportKind
from ..core.exceptions import TransportUnavailableError
from ..core.models import ExternalServerConfig

logger = logging.getLogger(__name__)


class SubprocessTransport(ClientTransport):
    """Runs an external tool server as a child process."""

    def __init__(
        self,
        server_name: str,
        command: str,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Union[str, Path]] = None
    ):
        self.server_name = server_name
        self.command = command
        self.args = list(args or [])
        self.env = dict(env or {})
        self.cwd = str(cwd) if cwd is not None else None

    def _environment(self) -> Dict[str, str]:
        merged = dict(os.environ)
        merged.update(self.env)
        return merged

    @contextlib.asynccontextmanager
    async def connect_session(self, **session_kwargs: Any) -> AsyncIterator[ClientSession]:
        try:
            process = await anyio.open_process(
                [self.command, *self.args],
                env=self._environment(),
                cwd=self.cwd,
            )
        except OSError as e:
            raise TransportUnavailableError(
                f"Failed to start MCP server '{self.server_name}': {e}",
                server_name=self.server_name,
                context={"command": self.command, "args": self.args}
            ) from e

        logger.info(f"Started MCP server process '{self.server_name}' (pid {process.pid})")

        read_send, read_receive = anyio.create_memory_object_stream(0)
        write_send, write_receive = anyio.create_memory_object_stream(0)

        async with process:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._read_stdout, process, read_send)
                tg.start_soon(self._write_stdin, process, write_receive)
                tg.start_soon(self._drain_stderr, process)
                try:
                    async with ClientSession(read_receive, write_send, **session_kwargs) as session:
                        yield session
                finally:
                    tg.cancel_scope.cancel()
                    with contextlib.suppress(ProcessLookupError, OSError):
                        process.kill()
                    logger.info(f"Stopped MCP server process '{self.server_name}'")

    async def _read_stdout(
        self,
        process: Process,
        read_send: MemoryObjectSendStream
    ) -> None:
        assert process.stdout is not None
        buffer = ""
        async with read_send:
            try:
                async for chunk in TextReceiveStream(process.stdout, encoding="utf-8", errors="replace"):
                    lines = (buffer + chunk).split("\n")
                    buffer = lines.pop()
                    for line in lines:
                        if not line.strip():
                            continue
                        try:
                            message = mcp_types.JSONRPCMessage.model_validate_json(line)
                        except Exception:
                            logger.debug(f"[{self.server_name}][stdout] {line}")
                            continue
                        await read_send.send(SessionMessage(message))
            except (anyio.ClosedResourceError, anyio.BrokenResourceError, anyio.EndOfStream):
                pass

    async def _write_stdin(
        self,
        process: Process,
        write_receive: MemoryObjectReceiveStream
    ) -> None:
        assert process.stdin is not None
        async with write_receive:
            try:
                async for session_message in write_receive:
                    payload = session_message.message.model_dump_json(by_alias=True, exclude_none=True)
                    await process.stdin.send((payload + "\n").encode("utf-8"))
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                pass

    async def _drain_stderr(self, process: Process) -> None:
        if process.stderr is None:
            return
        buffer = ""
        try:
            async for chunk in TextReceiveStream(process.stderr, encoding="utf-8", errors="replace"):
                lines = (buffer + chunk).split("\n")
                buffer = lines.pop()
                for line in lines:
                    if line.strip():
                        logger.warning(f"[{self.server_name}][stderr] {line.rstrip()}")
        except (anyio.ClosedResourceError, anyio.BrokenResourceError, anyio.EndOfStream):
            pass
        if buffer.strip():
            logger.warning(f"[{self.server_name}][stderr] {buffer.rstrip()}")

    def __repr__(self) -> str:
        return f"<SubprocessTransport(server='{self.server_name}', command='{self.command}')>"


class WebSocketTransport(ClientTransport):
    """Connects to an external tool server over WebSocket."""

    def __init__(self, server_name: str, url: str):
        self.server_name = server_name
        self.url = url

    @contextlib.asynccontextmanager
    async def connect_session(self, **session_kwargs: Any) -> AsyncIterator[ClientSession]:
        async with websocket_client(self.url) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream, **session_kwargs) as session:
                yield session

    def __repr__(self) -> str:
        return f"<WebSocketTransport(server='{self.server_name}', url='{self.url}')>"


def create_transport(
    server_name: str,
    config: ExternalServerConfig,
    project_root: Optional[Union[str, Path]] = None
) -> ClientTransport:
    """Select and build the transport for a server configuration.

    Raises:
        TransportUnavailableError: If the configuration names no usable
            endpoint or the transport preference contradicts the URL scheme
    """
    kind = config.kind

    if kind == TransportKind.SUBPROCESS:
        if not config.command:
            raise TransportUnavailableError(
                f"MCP server '{server_name}' has neither a command nor a url",
                server_name=server_name
            )
        preference = (config.transport or "stdio").strip().lower()
        if preference != "stdio":
            raise TransportUnavailableError(
                f"MCP server '{server_name}' uses unsupported transport '{config.transport}'",
                server_name=server_name
            )
        return SubprocessTransport(
            server_name,
            config.command,
            config.args,
            env=config.env,
            cwd=project_root,
        )

    if not config.url:
        raise TransportUnavailableError(
            f"MCP server '{server_name}' selects a {kind.value} transport without a url",
            server_name=server_name
        )
    scheme = config.url_scheme()

    if kind == TransportKind.WEBSOCKET:
        if scheme not in ("ws", "wss"):
            raise TransportUnavailableError(
                f"MCP server '{server_name}' requests websocket but url scheme is '{scheme}'",
                server_name=server_name
            )
        if config.headers:
            logger.debug(f"Headers are not sent over websocket for '{server_name}'")
        return WebSocketTransport(server_name, config.url)

    if scheme not in ("http", "https"):
        raise TransportUnavailableError(
            f"Unsupported url scheme '{scheme}' for MCP server '{server_name}'",
            server_name=server_name
        )
    if (config.transport or "").strip().lower() == "sse":
        return SSETransport(config.url, headers=config.headers or {})
    return StreamableHttpTransport(config.url, headers=config.headers or {})
