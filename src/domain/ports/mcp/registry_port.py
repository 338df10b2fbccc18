"""
MCPRegistryPort - Interface exposed to the server management API layer.

This port defines the lifecycle and invocation contract of the tool
server registry.
"""

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable

from src.domain.model.mcp.server import ServerStatusSnapshot
from src.domain.model.mcp.tool import ToolSchema


@runtime_checkable
class MCPRegistryPort(Protocol):
    """
    Abstract interface for the tool server registry.

    Operations on one server id are serialized; operations on different
    ids run in parallel.
    """

    @abstractmethod
    async def start(self, server_id: str) -> ServerStatusSnapshot:
        """
        Start a configured server.

        Raises:
            MCPServerNotFoundError: If the id is not configured.
            MCPServerDisabledError: If the config is disabled.
            MCPConnectError: If the connection or handshake fails.
        """
        ...

    @abstractmethod
    async def stop(self, server_id: str) -> ServerStatusSnapshot:
        """Stop a server, failing its pending calls with MCPConnectionLostError."""
        ...

    @abstractmethod
    async def restart(self, server_id: str) -> ServerStatusSnapshot:
        """Stop then start as one serialized operation."""
        ...

    @abstractmethod
    async def reload(self, server_id: str) -> ServerStatusSnapshot:
        """Replace the session with one built from the stored config."""
        ...

    @abstractmethod
    async def discover(self, server_id: str) -> tuple[ToolSchema, ...]:
        """Refresh and return the server's tool set."""
        ...

    @abstractmethod
    async def invoke(
        self,
        server_id: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Call a tool.

        Raises:
            MCPServerNotConnectedError, MCPToolNotFoundError,
            MCPRequestTimeoutError, MCPConnectionLostError, MCPRemoteError
        """
        ...

    @abstractmethod
    def status_snapshot(self) -> dict[str, ServerStatusSnapshot]:
        """Point-in-time copy of every registered server's status."""
        ...
