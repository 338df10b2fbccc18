"""
WebSocket transport for MCP.

Provides bidirectional communication with tool servers via WebSocket,
one JSON-RPC message (or batch) per text frame.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from src.configuration.config import get_settings
from src.domain.exceptions.mcp import MCPConnectError, MCPTransportError
from src.domain.model.mcp.transport import TransportConfig
from src.infrastructure.mcp.transport.base import BaseTransport
from src.infrastructure.mcp.transport.framing import dump_message

logger = logging.getLogger(__name__)


class WebSocketTransport(BaseTransport):
    """
    MCP transport using WebSocket for bidirectional communication.

    The server may push messages at any time; ordering of outbound
    frames follows the order of ``send`` calls.
    """

    def __init__(self, config: TransportConfig, label: str | None = None) -> None:
        """Initialize WebSocket transport."""
        super().__init__(config, label)
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._session: aiohttp.ClientSession | None = None
        self._send_lock = asyncio.Lock()

    async def open(self) -> None:
        """
        Establish WebSocket connection to the tool server.

        Raises:
            MCPConnectError: If the handshake fails.
        """
        if self._is_open:
            logger.debug(f"[{self._label}] WebSocket transport already started")
            return

        config = self._config
        if not config.url or config.scheme not in ("ws", "wss"):
            raise MCPConnectError(config.url, message="WebSocket URL must use ws:// or wss://")

        # None disables heartbeat; avoids PONG timeout killing long tool calls
        heartbeat = config.heartbeat_interval
        if heartbeat is None:
            heartbeat = get_settings().mcp_websocket_heartbeat

        logger.info(f"[{self._label}] Connecting to MCP server via WebSocket: {config.url}")
        try:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=config.timeout_seconds)
            )
            self._ws = await self._session.ws_connect(
                config.url,
                headers=config.headers or {},
                heartbeat=heartbeat,
            )
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            logger.error(f"[{self._label}] Failed to connect WebSocket: {e}")
            await self._cleanup()
            raise MCPConnectError(
                config.url, message="WebSocket connection failed", original_error=e
            ) from e

        self._closed = False
        self._is_open = True
        logger.info(f"[{self._label}] WebSocket transport connected to: {config.url}")

    async def send(self, message: dict[str, Any]) -> None:
        """Send one message as a text frame."""
        self._ensure_open()
        if not self._ws or self._ws.closed:
            raise MCPTransportError(f"WebSocket '{self._label}' not connected")

        text = dump_message(message)
        logger.debug(
            f"[{self._label}] Sending: {message.get('method', 'response')} (id={message.get('id')})"
        )
        async with self._send_lock:
            try:
                await self._ws.send_str(text)
            except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
                raise MCPTransportError(
                    f"WebSocket send to '{self._label}' failed", original_error=e
                ) from e

    async def _receive_frames(self) -> AsyncIterator[bytes | str]:
        ws = self._ws
        if ws is None:
            return
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    yield msg.data
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    yield msg.data
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise MCPTransportError(
                        f"WebSocket error on '{self._label}'", original_error=ws.exception()
                    )
                elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.CLOSE):
                    logger.info(f"[{self._label}] WebSocket connection closed by server")
                    return
        except aiohttp.ClientError as e:
            raise MCPTransportError(
                f"WebSocket receive from '{self._label}' failed", original_error=e
            ) from e

    async def close(self) -> None:
        """Close WebSocket connection."""
        if self._closed:
            return

        self._closed = True
        self._is_open = False

        await self._cleanup()
        logger.info(f"[{self._label}] WebSocket transport stopped")

    async def _cleanup(self) -> None:
        """Clean up resources."""
        if self._ws and not self._ws.closed:
            await self._ws.close()
        self._ws = None

        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
