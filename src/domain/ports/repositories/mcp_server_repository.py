"""
MCPServerRepository port for tool server persistence.

Repository interface for the durable server configuration records and
the last discovered tool set of each server, following the Repository
pattern.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from src.domain.model.mcp.server import ServerConfig
    from src.domain.model.mcp.tool import ToolSchema


class MCPServerRepositoryPort(ABC):
    """
    Repository port for tool server configurations.

    Configs are written by the management layer and the catalog installer,
    and read by the registry on start and reload.
    """

    @abstractmethod
    async def save(self, config: "ServerConfig") -> None:
        """
        Create or replace a server configuration.

        Args:
            config: Server configuration keyed by ``config.id``
        """

    @abstractmethod
    async def get_by_id(self, server_id: str) -> Optional["ServerConfig"]:
        """
        Get a server configuration by its ID.

        Returns:
            ServerConfig if found, None otherwise
        """

    @abstractmethod
    async def get_by_catalog_id(self, catalog_id: str) -> Optional["ServerConfig"]:
        """
        Get the server installed from a catalog template.

        Returns:
            ServerConfig if the template is installed, None otherwise
        """

    @abstractmethod
    async def list_all(self, enabled_only: bool = False) -> list["ServerConfig"]:
        """
        List server configurations.

        Args:
            enabled_only: If True, only return enabled servers
        """

    @abstractmethod
    async def delete(self, server_id: str) -> bool:
        """
        Delete a server configuration and its stored tools.

        Returns:
            True if deleted, False if server not found
        """

    @abstractmethod
    async def update_discovered_tools(
        self,
        server_id: str,
        tools: list["ToolSchema"],
        last_sync_at: datetime,
        sync_error: str | None = None,
    ) -> bool:
        """
        Replace the stored tool set of a server.

        Args:
            server_id: Server ID
            tools: Complete discovered tool set (replaces the previous one)
            last_sync_at: Timestamp of the discovery
            sync_error: Optional error message from the last discovery attempt

        Returns:
            True if updated, False if server not found
        """

    @abstractmethod
    async def get_discovered_tools(self, server_id: str) -> list["ToolSchema"]:
        """Get the last stored tool set of a server (empty if none)."""
