"""
Base transport implementation for MCP.

Provides the shared receive loop and the abstract interface every
transport variant implements.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from types import TracebackType
from typing import Any

from src.domain.exceptions.mcp import MCPProtocolError, MCPTransportError
from src.domain.model.mcp.transport import TransportConfig
from src.infrastructure.mcp.transport.framing import decode_frame

logger = logging.getLogger(__name__)


class BaseTransport(ABC):
    """
    Abstract base class for MCP transport implementations.

    Subclasses provide ``open``/``close``/``send`` and a raw frame source
    (``_receive_frames``). Decoding, batch unpacking and the handling of
    malformed frames live here so every variant behaves the same.
    """

    def __init__(self, config: TransportConfig, label: str | None = None) -> None:
        """
        Initialize base transport.

        Args:
            config: Transport configuration.
            label: Name used in log lines, usually the server id.
        """
        self._config = config
        self._label = label or config.endpoint
        self._is_open = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        """Check if transport is currently open."""
        return self._is_open

    @property
    def config(self) -> TransportConfig:
        """Get transport configuration."""
        return self._config

    @property
    def label(self) -> str:
        return self._label

    @property
    def pid(self) -> int | None:
        """Child process id; only process transports have one."""
        return None

    @property
    def diagnostics(self) -> tuple[str, ...]:
        """Out-of-band diagnostic lines; only process transports collect them."""
        return ()

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
        Close the connection.

        Should be idempotent.
        """
        ...

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """
        Send a message over the transport.

        Raises:
            MCPTransportError: If send fails.
        """
        ...

    @abstractmethod
    def _receive_frames(self) -> AsyncIterator[bytes | str]:
        """
        Yield raw inbound frames until the stream ends.

        Returns normally at end of stream; raises MCPTransportError on I/O
        failure and MCPProtocolError when framing is lost.
        """
        ...

    async def _closed_by_remote_error(self) -> MCPTransportError:
        """Error raised when the stream ends without a local close."""
        return MCPTransportError(f"Connection to '{self._label}' closed by remote")

    async def receive(self) -> AsyncIterator[dict[str, Any]]:
        """
        Receive messages as an async iterator.

        Malformed frames are logged and dropped. The iterator ends quietly
        after ``close``; an end of stream without ``close`` raises.

        Yields:
            Received JSON-RPC messages.

        Raises:
            MCPTransportError: If the connection drops.
            MCPProtocolError: If the byte stream can no longer be framed.
        """
        if not self._is_open:
            raise MCPTransportError(f"Transport '{self._label}' is not open")

        async for frame in self._receive_frames():
            try:
                messages = decode_frame(frame)
            except MCPProtocolError as e:
                logger.warning(f"[{self._label}] Dropping malformed message: {e}")
                continue
            for message in messages:
                logger.debug(
                    f"[{self._label}] Received: {message.get('method', 'response')} "
                    f"(id={message.get('id')})"
                )
                yield message

        if not self._closed:
            self._is_open = False
            raise await self._closed_by_remote_error()

    def _ensure_open(self) -> None:
        if not self._is_open:
            raise MCPTransportError(f"Transport '{self._label}' is not connected")

    async def __aenter__(self) -> "BaseTransport":
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(label={self._label!r}, "
            f"endpoint={self._config.endpoint!r}, open={self._is_open})"
        )
