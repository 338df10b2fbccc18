"""
Tool server manager.

Bundles the registry, invocation logger, catalog installer and health
monitor behind one start/shutdown pair. Built by
``src.configuration.factories.create_mcp_manager``.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from src.domain.model.mcp.server import ServerConfig, ServerStatusSnapshot
from src.infrastructure.mcp.catalog import CatalogInstaller, MCPCatalog
from src.infrastructure.mcp.health_monitor import MCPServerHealthMonitor
from src.infrastructure.mcp.invocation_logger import InvocationLogger
from src.infrastructure.mcp.registry import MCPServerRegistry

logger = logging.getLogger(__name__)


def load_server_configs(path: str | Path) -> list[ServerConfig]:
    """
    Read server configs from a JSON file.

    The file holds either a list of config objects or ``{"servers": [...]}``;
    each object uses the ``ServerConfig.to_dict`` layout.

    Raises:
        ValueError: If the file is not valid JSON or a config is invalid.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid server config file {path}: {e}") from e

    entries = data.get("servers", []) if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ValueError(f"Invalid server config file {path}: expected a list of servers")

    configs = []
    for entry in entries:
        try:
            configs.append(ServerConfig.from_dict(entry))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid server config in {path}: {e}") from e
    return configs


@dataclass
class MCPServerManager:
    """Wired tool server manager components."""

    registry: MCPServerRegistry
    invocation_logger: InvocationLogger
    catalog: MCPCatalog
    installer: CatalogInstaller
    health_monitor: MCPServerHealthMonitor | None = None

    async def start(self, auto_start: bool | None = None) -> dict[str, ServerStatusSnapshot]:
        """Load stored configs, start enabled servers and the health monitor."""
        snapshot = await self.registry.initialize(auto_start=auto_start)
        if self.health_monitor is not None:
            await self.health_monitor.start()
        connected = sum(1 for s in snapshot.values() if s.is_connected)
        logger.info(f"MCP server manager started: {connected}/{len(snapshot)} connected")
        return snapshot

    async def shutdown(self) -> None:
        """Stop the health monitor, then every server."""
        if self.health_monitor is not None:
            await self.health_monitor.shutdown()
        await self.registry.shutdown()
        logger.info("MCP server manager shutdown complete")
