"""
In-memory implementation of MCPServerRepository.

Holds server configs and their last discovered tool sets in process
memory. Used when the manager runs without a durable store and in tests.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from src.domain.model.mcp.server import ServerConfig
from src.domain.model.mcp.tool import ToolSchema
from src.domain.ports.repositories.mcp_server_repository import MCPServerRepositoryPort

logger = logging.getLogger(__name__)


@dataclass
class _StoredServer:
    config: ServerConfig
    tools: list[ToolSchema] = field(default_factory=list)
    last_sync_at: datetime | None = None
    sync_error: str | None = None


class InMemoryMCPServerRepository(MCPServerRepositoryPort):
    """Dictionary-backed server config store."""

    def __init__(self, configs: list[ServerConfig] | None = None) -> None:
        self._servers: dict[str, _StoredServer] = {}
        for config in configs or []:
            self._servers[config.id] = _StoredServer(config=config)

    async def save(self, config: ServerConfig) -> None:
        stored = self._servers.get(config.id)
        if stored is None:
            self._servers[config.id] = _StoredServer(config=config)
        else:
            stored.config = config
        logger.debug(f"Saved server config: {config.id}")

    async def get_by_id(self, server_id: str) -> ServerConfig | None:
        stored = self._servers.get(server_id)
        return stored.config if stored else None

    async def get_by_catalog_id(self, catalog_id: str) -> ServerConfig | None:
        for stored in self._servers.values():
            if stored.config.catalog_id == catalog_id:
                return stored.config
        return None

    async def list_all(self, enabled_only: bool = False) -> list[ServerConfig]:
        configs = [stored.config for stored in self._servers.values()]
        if enabled_only:
            configs = [c for c in configs if c.enabled]
        return configs

    async def delete(self, server_id: str) -> bool:
        deleted = self._servers.pop(server_id, None) is not None
        if deleted:
            logger.debug(f"Deleted server config: {server_id}")
        return deleted

    async def update_discovered_tools(
        self,
        server_id: str,
        tools: list[ToolSchema],
        last_sync_at: datetime,
        sync_error: str | None = None,
    ) -> bool:
        stored = self._servers.get(server_id)
        if stored is None:
            return False
        stored.tools = list(tools)
        stored.last_sync_at = last_sync_at
        stored.sync_error = sync_error
        return True

    async def get_discovered_tools(self, server_id: str) -> list[ToolSchema]:
        stored = self._servers.get(server_id)
        return list(stored.tools) if stored else []

    def __len__(self) -> int:
        return len(self._servers)
