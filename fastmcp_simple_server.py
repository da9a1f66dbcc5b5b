#!/usr/bin/env python3
"""
Sample MCP server using FastMCP.

Exposes a few deployment and arithmetic tools over stdio. It is used by the
integration tests and by ``example.py`` as a realistic external tool server:

    {"mcpServers": {"deploy": {"command": "python", "args": ["fastmcp_simple_server.py"]}}}
"""

import logging
from typing import Dict

from fastmcp import FastMCP

# Logs go to stderr; stdout carries the protocol
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

server = FastMCP(name="sample-deploy-server")

_deployments: Dict[str, str] = {}


@server.tool
def deploy(service: str, version: str = "latest") -> str:
    """
    Deploy a service.

    Args:
        service: Service name, e.g. 'api'
        version: Version to deploy

    Returns:
        Deployment summary
    """
    _deployments[service] = version
    logger.info(f"Deployed {service}@{version}")
    return f"deployed {service}@{version}"


@server.tool
def status(service: str) -> str:
    """
    Report the deployed version of a service.

    Args:
        service: Service name

    Returns:
        Status line
    """
    version = _deployments.get(service)
    if version is None:
        return f"{service} is not deployed"
    return f"{service} is running {version}"


@server.tool
def add_numbers(a: float, b: float) -> str:
    """
    Add two numbers together.

    Args:
        a: First number
        b: Second number

    Returns:
        The sum of the two numbers
    """
    return f"{a} + {b} = {a + b}"


@server.tool
def fail(reason: str) -> str:
    """Always fails with the given reason."""
    raise ValueError(reason)


if __name__ == "__main__":
    logger.info("Starting sample deploy server")
    server.run()
