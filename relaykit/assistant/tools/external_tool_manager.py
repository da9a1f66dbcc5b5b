"""
External tool manager for Model Context Protocol servers.

This module owns the set of configured external tool servers. For each server
it holds at most one live connection, caches the tools the server advertises,
and reconciles connections when the configuration changes. Tool calls are
validated, coerced and executed under a time bound; every failure comes back
as an ``ExternalCallResult`` instead of an exception.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..core.enums import ErrorCode
from ..core.exceptions import ToolExecutionError
from ..core.interfaces import ConfigurationSource, DisplaySink, LoggingDisplaySink
from ..core.models import (
    AssistantSettings, ExternalCallResult, ExternalServerConfig, ExternalServersFile, ToolSchema
)
from ..utils.worker_pool import BackgroundWorkerPool
from .coercion import coerce_arguments
from .connection import ClientConnection, ExternalConnection
from .transports import create_transport

logger = logging.getLogger(__name__)

CONFIG_LABEL = "MCP config"

ConnectionFactory = Callable[[str, ExternalServerConfig], ExternalConnection]


class ExternalToolManager:
    """
    Manager for external MCP tool servers and their connections.

    This class handles:
    - Reconciling running servers against the configuration
    - Transport-specific connection setup on a bounded worker pool
    - Tool discovery and per-server schema caching
    - Validated, coerced, time-bounded tool calls

    Usage:
        manager = ExternalToolManager(FileConfigurationSource(project_root))
        await manager.refresh()
        await manager.wait_for_discovery()
        result = await manager.invoke("calc", "add", {"a": "2", "b": 3})
    """

    def __init__(
        self,
        config_source: Optional[ConfigurationSource] = None,
        display: Optional[DisplaySink] = None,
        settings: Optional[AssistantSettings] = None,
        project_root: Optional[Union[str, Path]] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        worker_pool: Optional[BackgroundWorkerPool] = None
    ):
        """
        Initialize the manager.

        Args:
            config_source: Source of the server configuration used by refresh()
            display: Display collaborator for user-visible call outcomes
            settings: Timeouts and pool size
            project_root: Working directory for subprocess servers
            connection_factory: Builds a connection for a server; defaults to a
                FastMCP client over the transport the config selects
            worker_pool: Pool for connection and discovery jobs
        """
        self._config_source = config_source
        self._display = display or LoggingDisplaySink()
        self._settings = settings or AssistantSettings()
        self._project_root = Path(project_root) if project_root is not None else None
        self._connection_factory = connection_factory or self._create_connection
        self._pool = worker_pool or BackgroundWorkerPool(
            self._settings.max_background_workers, name="mcp"
        )

        # Looked up independently per server name
        self._servers: Dict[str, ExternalServerConfig] = {}
        self._connections: Dict[str, ExternalConnection] = {}
        self._tools: Dict[str, List[ToolSchema]] = {}
        self._server_locks: Dict[str, asyncio.Lock] = {}

        self._refresh_lock = asyncio.Lock()
        self._refresh_count = 0

        logger.info("ExternalToolManager initialized")

    def _create_connection(self, name: str, config: ExternalServerConfig) -> ExternalConnection:
        transport = create_transport(name, config, self._project_root)
        return ClientConnection(
            name,
            transport,
            connect_timeout=self._settings.connect_timeout_seconds,
            request_timeout=self._settings.request_timeout_seconds,
        )

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._server_locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._server_locks[name] = lock
        return lock

    def _post(self, label: str, text: str) -> None:
        try:
            self._display.post(label, text)
        except Exception as e:
            logger.debug(f"Display post failed: {e}")

    # Reconciliation

    async def refresh(
        self,
        config: Optional[Union[ExternalServersFile, Mapping[str, ExternalServerConfig]]] = None
    ) -> Optional[Dict[str, List[str]]]:
        """
        Load a configuration snapshot and reconcile running servers against it.

        Args:
            config: Snapshot to apply; loaded from the configuration source when omitted

        Returns:
            Names of added, removed and changed servers, or None when the
            configuration could not be parsed and the previous one keeps running
        """
        async with self._refresh_lock:
            first_run = self._refresh_count == 0
            self._refresh_count += 1
            if first_run:
                logger.info("Loading external server configuration and starting servers")
            else:
                logger.info("Reloading external server configuration and reconciling servers")

            if config is None:
                servers = self._load_configuration()
                if servers is None:
                    return None
            elif isinstance(config, ExternalServersFile):
                servers = dict(config.mcp_servers)
            else:
                servers = dict(config)

            logger.debug(f"Loaded servers: {', '.join(sorted(servers)) or '<none>'}")
            summary = await self._reconcile(servers)

            for name in sorted(self._servers):
                logger.debug(f"Scheduling tool discovery for server '{name}'")
                self._pool.submit(lambda name=name: self._discovery_job(name), label=f"discover-{name}")

            return summary

    def _load_configuration(self) -> Optional[Dict[str, ExternalServerConfig]]:
        if self._config_source is None:
            return {}
        load = self._config_source.load()
        if load.parse_error is not None:
            self._post(CONFIG_LABEL, f"Invalid configuration: {load.parse_error}")
            logger.warning(f"Configuration parse error, keeping previous servers: {load.parse_error}")
            return None
        if load.warnings:
            message = "\n".join(load.warnings)
            self._post(CONFIG_LABEL, f"Configuration warnings:\n{message}")
            logger.warning(f"Configuration warnings:\n{message}")
        file = load.file or ExternalServersFile()
        return dict(file.mcp_servers)

    async def _reconcile(self, servers: Dict[str, ExternalServerConfig]) -> Dict[str, List[str]]:
        old = self._servers
        removed = sorted(set(old) - set(servers))
        added = sorted(set(servers) - set(old))
        changed = sorted(name for name in set(old) & set(servers) if old[name] != servers[name])

        self._servers = dict(servers)

        for name in removed + changed:
            await self._shutdown_server(name)

        for name in added + changed:
            config = servers[name]
            self._pool.submit(
                lambda name=name, config=config: self._connect_job(name, config),
                label=f"connect-{name}"
            )

        logger.info(
            f"Reconcile complete. added={len(added)}, removed={len(removed)}, changed={len(changed)}"
        )
        return {"added": added, "removed": removed, "changed": changed}

    async def _shutdown_server(self, name: str) -> None:
        logger.info(f"Shutting down MCP server '{name}'")
        async with self._lock_for(name):
            connection = self._connections.pop(name, None)
            self._tools.pop(name, None)
            if connection is not None:
                await self._close_quietly(connection)
        if name not in self._servers:
            self._server_locks.pop(name, None)

    async def _close_quietly(self, connection: ExternalConnection) -> None:
        try:
            await connection.close()
        except Exception as e:
            logger.debug(f"Error closing connection to '{connection.server_name}': {e}")

    # Connections

    async def _connect_job(self, name: str, config: ExternalServerConfig) -> None:
        if self._servers.get(name) != config:
            logger.debug(f"Skipping stale connect for '{name}'")
            return
        await self._ensure_connection(name)

    async def _ensure_connection(self, name: str) -> Optional[ExternalConnection]:
        async with self._lock_for(name):
            connection = self._connections.get(name)
            if connection is not None and connection.is_connected:
                return connection

            config = self._servers.get(name)
            if config is None:
                return None

            if connection is not None:
                logger.info(f"Connection to '{name}' is down, reconnecting")
                self._connections.pop(name, None)
                await self._close_quietly(connection)

            try:
                connection = self._connection_factory(name, config)
                await connection.connect()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to connect to MCP server '{name}': {e}")
                return None

            if self._servers.get(name) != config:
                # Reconfigured while connecting
                await self._close_quietly(connection)
                return None

            self._connections[name] = connection
            logger.info(f"MCP server '{name}' connected ({config.kind})")
            return connection

    # Discovery

    async def _discovery_job(self, name: str) -> None:
        await self.discover(name)

    async def discover(self, server: str) -> bool:
        """
        Fetch a server's tool list and replace its cached schemas.

        Args:
            server: Server name

        Returns:
            True if the cache was replaced; on failure the previous cache is kept
        """
        async with self._lock_for(server):
            connection = self._connections.get(server)
        if connection is None or not connection.is_connected:
            logger.debug(f"Tool discovery for '{server}' skipped: not connected")
            return False

        try:
            tools = await connection.list_tools()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Tool discovery for '{server}' failed: {e}")
            return False

        if self._connections.get(server) is not connection:
            logger.debug(f"Discarding tool list from replaced connection '{server}'")
            return False

        self._tools[server] = list(tools)
        logger.info(f"Discovered {len(tools)} tools on MCP server '{server}'")
        return True

    async def wait_for_discovery(self) -> None:
        """Wait for every outstanding connection and discovery job."""
        await self._pool.join()

    # Invocation

    def _find_tool(self, server: str, method: str) -> Optional[ToolSchema]:
        for tool in self._tools.get(server, []):
            if tool.name == method:
                return tool
        return None

    @staticmethod
    def _properties_summary(tool: ToolSchema) -> str:
        if not tool.properties:
            return "<unknown>"
        parts = []
        for key, declared in tool.property_types().items():
            parts.append(f"{key}:{declared}" if declared else key)
        return ", ".join(parts)

    def _failure(
        self,
        server: str,
        method: str,
        code: ErrorCode,
        text: str,
        display_text: Optional[str] = None,
        duration_ms: Optional[int] = None
    ) -> ExternalCallResult:
        self._post(f"MCP {server}.{method}", display_text or text)
        return ExternalCallResult(
            server=server, method=method, success=False, code=code, text=text,
            duration_ms=duration_ms
        )

    async def invoke(
        self,
        server: str,
        method: str,
        args: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> ExternalCallResult:
        """
        Call a tool on an external server.

        Args:
            server: Server name
            method: Tool name as declared by the server
            args: Raw arguments
            timeout: Bound in seconds; defaults to the configured external call timeout

        Returns:
            Call result; this method never raises except on cancellation
        """
        if server not in self._servers:
            return self._failure(
                server, method, ErrorCode.UNKNOWN_TARGET,
                f"MCP server '{server}' is not configured"
            )

        connection = self._connections.get(server)
        if connection is None or not connection.is_connected:
            connection = await self._ensure_connection(server)
        if connection is None:
            return self._failure(
                server, method, ErrorCode.TRANSPORT_UNAVAILABLE,
                f"MCP client for '{server}' is not available"
            )

        arguments = dict(args or {})
        tool = self._find_tool(server, method)
        if tool is not None:
            missing = [name for name in tool.required if arguments.get(name) is None]
            if missing:
                return self._failure(
                    server, method, ErrorCode.MISSING_REQUIRED_PARAMETER,
                    f"Missing required parameter(s): {', '.join(missing)}. "
                    f"Known properties: {self._properties_summary(tool)}"
                )

        arguments = coerce_arguments(
            arguments,
            tool.property_types() if tool is not None else None,
            label=f"{server}.{method}",
        )
        arguments = {key: value for key, value in arguments.items() if value is not None}

        bound = timeout if timeout is not None else self._settings.external_call_timeout_seconds
        bound_ms = int(bound * 1000)
        started = time.monotonic()
        try:
            text = await asyncio.wait_for(connection.call_tool(method, arguments), timeout=bound)
        except asyncio.TimeoutError:
            logger.warning(f"MCP call {server}.{method} timed out after {bound_ms}ms")
            return self._failure(
                server, method, ErrorCode.TIMEOUT,
                f"MCP call timed out after {bound_ms}ms",
                display_text=f"Timed out after {bound_ms}ms",
                duration_ms=bound_ms,
            )
        except asyncio.CancelledError:
            raise
        except ToolExecutionError as e:
            logger.error(f"MCP tool {server}.{method} reported an error: {e.message}")
            return self._failure(
                server, method, ErrorCode.TOOL_EXECUTION_FAILED,
                f"MCP tool error: {e.message}",
                display_text=f"Failed: {e.message}",
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        except Exception as e:
            detail = f"{type(e).__name__}: {str(e) or 'no message'}"
            logger.error(f"MCP call {server}.{method} failed: {detail}")
            return self._failure(
                server, method, ErrorCode.TOOL_EXECUTION_FAILED,
                f"MCP call failed: {detail}",
                display_text=f"Failed: {detail}",
                duration_ms=int((time.monotonic() - started) * 1000),
            )

        duration_ms = int((time.monotonic() - started) * 1000)
        rendered_args = ", ".join(f"{k}={v}" for k, v in arguments.items()) or "<no args>"
        self._post(f"MCP {server}.{method}", f"Completed in {duration_ms}ms. Args: {rendered_args}")
        return ExternalCallResult(
            server=server,
            method=method,
            success=True,
            text=text or f"MCP call {server}.{method} returned no textual content",
            duration_ms=duration_ms,
        )

    # Queries

    def list_servers(self) -> List[str]:
        """Get configured server names, sorted."""
        return sorted(self._servers)

    def get_server_config(self, server: str) -> Optional[ExternalServerConfig]:
        return self._servers.get(server)

    def get_tools(self, server: str) -> List[ToolSchema]:
        """Get cached tools for a server."""
        return list(self._tools.get(server, []))

    def tools_by_server(self) -> Dict[str, List[ToolSchema]]:
        """Get cached tools of every configured server."""
        return {name: list(self._tools.get(name, [])) for name in sorted(self._servers)}

    def is_connected(self, server: str) -> bool:
        connection = self._connections.get(server)
        return connection is not None and connection.is_connected

    def get_metrics(self) -> Dict[str, Any]:
        """Get manager metrics."""
        return {
            "configured_servers": len(self._servers),
            "connected_servers": sum(1 for name in self._servers if self.is_connected(name)),
            "total_tools": sum(len(tools) for tools in self._tools.values()),
            "pending_jobs": self._pool.pending,
        }

    async def shutdown(self) -> None:
        """Stop background jobs and tear down every connection."""
        await self._pool.shutdown()
        self._servers = {}
        for name in list(self._connections):
            await self._shutdown_server(name)
        self._server_locks.clear()
        logger.info("ExternalToolManager shutdown completed")
