"""
Loading and validation of the external tool server configuration.

The configuration is a JSON document of the form::

    {
        "mcpServers": {
            "calc": {"command": "python", "args": ["calc_server.py"]},
            "issues": {"url": "https://issues.example.com/mcp", "transport": "http"}
        }
    }

A document that cannot be parsed is reported as a parse error; entries that
parse but look wrong are reported as warnings. Neither case raises.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from ..core.interfaces import ConfigurationSource
from ..core.models import ConfigLoadResult, ExternalServersFile

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_RELATIVE_PATH = ".relaykit/mcp-servers.json"
NETWORK_TRANSPORTS = {
    "websocket", "ws", "wss", "sse", "http", "https", "streamable-http", "streamable_http"
}


class ExternalServersConfigLoader:
    """Parser and validator for external server configuration documents."""

    def parse(self, text: str, source: str = "mcp-servers.json") -> ConfigLoadResult:
        """Parse a configuration document.

        Args:
            text: Raw JSON document
            source: Name used in diagnostics

        Returns:
            Load result with the parsed file or a parse error
        """
        if not text.strip():
            return ConfigLoadResult(file=ExternalServersFile())
        try:
            parsed = ExternalServersFile.model_validate_json(text)
        except ValidationError as e:
            message = f"Failed to read {source}: {e.error_count()} validation error(s): {e.errors()[0]['msg']}"
            logger.warning(message)
            return ConfigLoadResult(parse_error=message)
        except ValueError as e:
            message = f"Failed to read {source}: {e}"
            logger.warning(message)
            return ConfigLoadResult(parse_error=message)

        return ConfigLoadResult(file=parsed, warnings=self.validate(parsed))

    def validate(self, config: ExternalServersFile) -> List[str]:
        """Validate server entries.

        Args:
            config: Parsed configuration

        Returns:
            List of warnings (empty if every entry looks usable)
        """
        warnings = []
        for name, server in config.mcp_servers.items():
            has_url = bool(server.url and server.url.strip())
            has_command = bool(server.command and server.command.strip())
            if not has_url and not has_command:
                warnings.append(f"Server '{name}' must specify either 'url' or 'command'")

            if server.transport is None:
                continue
            transport = server.transport.strip().lower()
            if has_url and transport not in NETWORK_TRANSPORTS:
                warnings.append(f"Server '{name}' has url but unsupported transport '{server.transport}'")
            if not has_url and transport != "stdio":
                warnings.append(
                    f"Server '{name}' without url must use transport=stdio (got '{server.transport}')"
                )
        return warnings


class FileConfigurationSource(ConfigurationSource):
    """Reads the configuration from ``<project root>/.relaykit/mcp-servers.json``.

    A missing file is an empty configuration.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        relative_path: str = DEFAULT_CONFIG_RELATIVE_PATH,
        loader: Optional[ExternalServersConfigLoader] = None
    ):
        self.project_root = Path(project_root)
        self.path = self.project_root / relative_path
        self._loader = loader or ExternalServersConfigLoader()

    def load(self) -> ConfigLoadResult:
        if not self.path.exists():
            return ConfigLoadResult(file=ExternalServersFile())
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            message = f"Failed to read {self.path.name}: {e}"
            logger.warning(message)
            return ConfigLoadResult(parse_error=message)
        return self._loader.parse(text, source=self.path.name)
