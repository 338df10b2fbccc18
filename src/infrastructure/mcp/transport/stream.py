"""
Shared implementation for byte-stream transports.

Process pipes and raw TCP sockets both exchange framed JSON over an
asyncio reader/writer pair; only how the pair is obtained differs.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from src.domain.exceptions.mcp import MCPTransportError
from src.domain.model.mcp.transport import TransportConfig
from src.infrastructure.mcp.transport.base import BaseTransport
from src.infrastructure.mcp.transport.framing import encode_message, read_frame

logger = logging.getLogger(__name__)


class StreamTransport(BaseTransport):
    """Transport over an asyncio StreamReader/StreamWriter pair."""

    def __init__(self, config: TransportConfig, label: str | None = None) -> None:
        super().__init__(config, label)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._write_lock = asyncio.Lock()

    async def send(self, message: dict[str, Any]) -> None:
        """
        Write one framed message.

        Writes are serialized so frames from concurrent callers never
        interleave and reach the remote in call order.
        """
        self._ensure_open()
        if self._writer is None:
            raise MCPTransportError(f"Transport '{self._label}' is not connected")

        data = encode_message(message, self._config.framing)
        logger.debug(
            f"[{self._label}] Sending: {message.get('method', 'response')} (id={message.get('id')})"
        )
        async with self._write_lock:
            try:
                self._writer.write(data)
                await self._writer.drain()
            except (ConnectionError, OSError, RuntimeError) as e:
                raise MCPTransportError(
                    f"Write to '{self._label}' failed", original_error=e
                ) from e

    async def _receive_frames(self) -> AsyncIterator[bytes]:
        reader = self._reader
        if reader is None:
            return
        while True:
            try:
                frame = await read_frame(reader, self._config.framing)
            except (ConnectionError, OSError) as e:
                raise MCPTransportError(
                    f"Read from '{self._label}' failed", original_error=e
                ) from e
            if frame is None:
                return
            yield frame
