"""
Raw TCP socket transport for MCP.

Connects to ``tcp://host:port`` endpoints and uses the same framing as
the stdio transport.
"""

import asyncio
import logging
from urllib.parse import urlsplit

from src.configuration.config import get_settings
from src.domain.exceptions.mcp import MCPConnectError
from src.domain.model.mcp.transport import TransportConfig
from src.infrastructure.mcp.transport.stream import StreamTransport

logger = logging.getLogger(__name__)


class TcpTransport(StreamTransport):
    """MCP transport over a persistent TCP connection."""

    def __init__(
        self,
        config: TransportConfig,
        label: str | None = None,
        stream_limit: int | None = None,
    ) -> None:
        super().__init__(config, label)
        self._stream_limit = stream_limit or get_settings().mcp_stream_limit

    async def open(self) -> None:
        """
        Open the TCP connection.

        Raises:
            MCPConnectError: If the URL is invalid or the peer is unreachable.
        """
        if self._is_open:
            return

        url = self._config.url or ""
        parts = urlsplit(url)
        try:
            port = parts.port
        except ValueError as e:
            raise MCPConnectError(url, message="Invalid socket port", original_error=e) from e
        if parts.scheme != "tcp" or not parts.hostname or port is None:
            raise MCPConnectError(url, message="Socket URL must look like tcp://host:port")

        logger.info(f"[{self._label}] Connecting to MCP server via TCP: {parts.hostname}:{port}")
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(parts.hostname, port, limit=self._stream_limit),
                timeout=self._config.timeout_seconds,
            )
        except (OSError, TimeoutError) as e:
            logger.error(f"[{self._label}] TCP connection failed: {e}")
            raise MCPConnectError(url, message="TCP connection failed", original_error=e) from e

        self._closed = False
        self._is_open = True

    async def close(self) -> None:
        """Close the socket."""
        if self._closed:
            return

        self._closed = True
        self._is_open = False

        writer, self._writer = self._writer, None
        self._reader = None
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"[{self._label}] Error while closing socket: {e}")
        logger.info(f"[{self._label}] TCP transport stopped")
