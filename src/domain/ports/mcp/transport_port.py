"""
MCPTransportPort - Abstract interface for tool server connections.

This port defines the capability set every transport variant implements
(process pipes, HTTP event streams, sockets). Sessions talk to this
interface only and never branch on the transport kind.
"""

from abc import abstractmethod
from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from src.domain.model.mcp.transport import TransportConfig


@runtime_checkable
class MCPTransportPort(Protocol):
    """
    Abstract interface for one connection to a tool server.

    Errors surface through a single taxonomy: MCPConnectError from
    ``open``, MCPTransportError once established, MCPProtocolError for
    unrecoverable framing problems.
    """

    @abstractmethod
    async def open(self) -> None:
        """
        Establish the connection.

        Raises:
            MCPConnectError: If the connection cannot be established.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the connection and release its resources.

        Should be idempotent - safe to call multiple times.
        """
        ...

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """
        Send one JSON-RPC message.

        Messages are delivered in the order ``send`` is called.

        Raises:
            MCPTransportError: If the connection is closed or the write fails.
        """
        ...

    @abstractmethod
    def receive(self) -> AsyncIterator[dict[str, Any]]:
        """
        Stream inbound JSON-RPC messages.

        The iterator ends quietly after a local ``close``. Any other end of
        the stream raises.

        Raises:
            MCPTransportError: If the remote side goes away.
            MCPProtocolError: If the byte stream becomes unreadable.
        """
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Check if transport is currently open."""
        ...

    @property
    @abstractmethod
    def pid(self) -> int | None:
        """Child process id for process transports, else None."""
        ...

    @property
    @abstractmethod
    def diagnostics(self) -> tuple[str, ...]:
        """Recent out-of-band diagnostic lines (e.g. child stderr)."""
        ...


@runtime_checkable
class MCPTransportFactoryPort(Protocol):
    """
    Factory interface for creating transport instances.

    The variant is chosen once, from the configuration, at construction.
    """

    @abstractmethod
    def create(self, config: TransportConfig, label: str | None = None) -> MCPTransportPort:
        """
        Create a transport instance for the given configuration.

        Args:
            config: Transport configuration specifying kind and details.
            label: Name used in log lines (usually the server id).

        Raises:
            MCPTransportError: If the transport kind is not supported.
        """
        ...

    @abstractmethod
    def supports(self, transport_type: str) -> bool:
        """Check if this factory supports a transport type."""
        ...
