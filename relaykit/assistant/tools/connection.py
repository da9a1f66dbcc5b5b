"""
Runtime connections to external tool servers.

An ``ExternalConnection`` is owned exclusively by the external tool manager.
The FastMCP-backed implementation keeps its client session open inside one
dedicated runner task, so the transport's context is entered and exited in
the same task no matter which task asks for tools or calls them.
"""

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from fastmcp import Client
from fastmcp.client.transports import ClientTransport
import mcp.types as mcp_types

from ..core.exceptions import DiscoveryFailedError, ToolExecutionError, TransportUnavailableError
from ..core.models import ToolSchema

logger = logging.getLogger(__name__)


class ExternalConnection(ABC):
    """A live connection to one external tool server."""

    server_name: str

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection.

        Raises:
            TransportUnavailableError: If the server cannot be reached
        """
        pass

    @abstractmethod
    async def list_tools(self) -> List[ToolSchema]:
        """Fetch the server's current tool list."""
        pass

    @abstractmethod
    async def call_tool(self, method: str, arguments: Dict[str, Any]) -> str:
        """Call a tool and return its textual content.

        Raises:
            ToolExecutionError: If the server reports a tool error
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Tear the connection down. Best effort, never raises."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass


def content_text(content: List[Any]) -> str:
    """Join the text parts of MCP content blocks."""
    parts = []
    for block in content or []:
        if isinstance(block, mcp_types.TextContent):
            parts.append(block.text)
        else:
            text = getattr(block, "text", None)
            if isinstance(text, str):
                parts.append(text)
    return "\n".join(parts).strip()


class ClientConnection(ExternalConnection):
    """External connection driving a FastMCP client over any transport."""

    def __init__(
        self,
        server_name: str,
        transport: ClientTransport,
        connect_timeout: float = 30.0,
        request_timeout: float = 300.0,
        close_timeout: float = 5.0
    ):
        self.server_name = server_name
        self._transport = transport
        self._connect_timeout = connect_timeout
        self._close_timeout = close_timeout
        self._client = Client(transport, timeout=request_timeout)
        self._runner: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Future] = None
        self._closing = asyncio.Event()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._runner is not None:
            return

        loop = asyncio.get_running_loop()
        self._ready = loop.create_future()
        self._runner = asyncio.create_task(
            self._run(), name=f"mcp-connection-{self.server_name}"
        )

        try:
            await asyncio.wait_for(asyncio.shield(self._ready), timeout=self._connect_timeout)
        except asyncio.TimeoutError as e:
            await self.close()
            raise TransportUnavailableError(
                f"Timed out connecting to MCP server '{self.server_name}' "
                f"after {self._connect_timeout}s",
                server_name=self.server_name
            ) from e
        except TransportUnavailableError:
            await self.close()
            raise
        except Exception as e:
            await self.close()
            raise TransportUnavailableError(
                f"Failed to connect to MCP server '{self.server_name}': {type(e).__name__}: {e}",
                server_name=self.server_name
            ) from e

        logger.info(f"Connected to MCP server '{self.server_name}' via {self._transport!r}")

    async def _run(self) -> None:
        assert self._ready is not None
        try:
            async with self._client:
                self._connected = True
                if not self._ready.done():
                    self._ready.set_result(None)
                await self._closing.wait()
        except asyncio.CancelledError:
            if not self._ready.done():
                self._ready.cancel()
            raise
        except Exception as e:
            if not self._ready.done():
                self._ready.set_exception(e)
            else:
                logger.warning(f"Connection to MCP server '{self.server_name}' lost: {e}")
        finally:
            self._connected = False

    async def list_tools(self) -> List[ToolSchema]:
        if not self._connected:
            raise DiscoveryFailedError(
                f"MCP server '{self.server_name}' is not connected",
                server_name=self.server_name
            )
        try:
            tools = await self._client.list_tools()
        except Exception as e:
            raise DiscoveryFailedError(
                f"Tool discovery failed for '{self.server_name}': {e}",
                server_name=self.server_name
            ) from e
        return [
            ToolSchema.from_input_schema(
                self.server_name, tool.name, tool.description, tool.inputSchema
            )
            for tool in tools
        ]

    async def call_tool(self, method: str, arguments: Dict[str, Any]) -> str:
        if not self._connected:
            raise TransportUnavailableError(
                f"MCP server '{self.server_name}' is not connected",
                server_name=self.server_name
            )
        result = await self._client.call_tool_mcp(name=method, arguments=arguments)
        text = content_text(result.content)
        if result.isError:
            raise ToolExecutionError(
                text or f"Tool '{method}' reported an error",
                tool_name=method,
                context={"server": self.server_name}
            )
        return text

    async def close(self) -> None:
        runner = self._runner
        if runner is None:
            return
        self._closing.set()
        try:
            await asyncio.wait_for(asyncio.shield(runner), timeout=self._close_timeout)
        except asyncio.TimeoutError:
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await runner
        except Exception as e:
            logger.debug(f"Error closing MCP server '{self.server_name}': {e}")
        finally:
            self._runner = None
            self._connected = False

    def __repr__(self) -> str:
        return f"<ClientConnection(server='{self.server_name}', connected={self._connected})>"
