"""
Event stream (SSE) transport for MCP.

Wraps the MCP SDK's ``sse_client``: inbound messages arrive as events on a
long-lived HTTP GET, outbound messages are POSTed to the endpoint the
server advertises. The SDK client runs inside an anyio task group, so it
is entered and exited by one runner task owned by this transport.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import anyio
import httpx
from mcp.client.sse import sse_client
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage
from pydantic import ValidationError

from src.configuration.config import get_settings
from src.domain.exceptions.mcp import MCPConnectError, MCPProtocolError, MCPTransportError
from src.domain.model.mcp.transport import TransportConfig
from src.infrastructure.mcp.transport.base import BaseTransport
from src.infrastructure.mcp.transport.framing import dump_message

logger = logging.getLogger(__name__)


def _unwrap(error: BaseException) -> BaseException:
    """Dig the single cause out of task group exception groups."""
    while isinstance(error, BaseExceptionGroup) and len(error.exceptions) == 1:
        error = error.exceptions[0]
    return error


class SSETransport(BaseTransport):
    """
    MCP transport using an HTTP event stream plus companion POST endpoint.

    ``open`` returns once the server has advertised its endpoint. Sends are
    serialized so the server sees messages in send order.
    """

    def __init__(
        self,
        config: TransportConfig,
        label: str | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        sse_read_timeout: float | None = None,
    ) -> None:
        """
        Initialize SSE transport.

        Args:
            config: Transport configuration.
            label: Name used in log lines.
            http_transport: httpx transport for the underlying client.
            sse_read_timeout: Seconds without an event before the stream is
                considered dead.
        """
        super().__init__(config, label)
        self._http_transport = http_transport
        self._sse_read_timeout = sse_read_timeout or get_settings().mcp_sse_read_timeout
        self._runner: asyncio.Task[None] | None = None
        self._stop: asyncio.Event | None = None
        self._read_stream: Any | None = None
        self._write_stream: Any | None = None
        self._send_lock = asyncio.Lock()

    def _create_http_client(
        self,
        headers: dict[str, str] | None = None,
        timeout: httpx.Timeout | None = None,
        auth: httpx.Auth | None = None,
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=headers,
            timeout=timeout or httpx.Timeout(self._config.timeout_seconds),
            auth=auth,
            transport=self._http_transport,
            follow_redirects=True,
        )

    async def open(self) -> None:
        """
        Open the event stream and wait for the endpoint event.

        Raises:
            MCPConnectError: If the stream cannot be opened or no endpoint
                is advertised within the connect timeout.
        """
        if self._is_open:
            return

        url = self._config.url or ""
        logger.info(f"[{self._label}] Connecting to MCP server via SSE: {url}")

        self._stop = asyncio.Event()
        ready: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._runner = asyncio.create_task(self._run(ready), name=f"mcp-sse-{self._label}")
        try:
            await asyncio.wait_for(ready, timeout=self._config.timeout_seconds)
        except asyncio.CancelledError:
            await self._stop_runner(grace=0)
            raise
        except Exception as e:
            error = _unwrap(e)
            logger.error(f"[{self._label}] Failed to open event stream: {error}")
            await self._stop_runner(grace=0)
            raise MCPConnectError(
                url, message="Event stream connection failed", original_error=error
            ) from error

        self._closed = False
        self._is_open = True
        logger.info(f"[{self._label}] SSE transport connected")

    async def _run(self, ready: asyncio.Future[None]) -> None:
        """Hold the SDK client open until close is requested."""
        try:
            async with sse_client(
                self._config.url or "",
                headers=self._config.headers or None,
                timeout=self._config.timeout_seconds,
                sse_read_timeout=self._sse_read_timeout,
                httpx_client_factory=self._create_http_client,
            ) as (read_stream, write_stream):
                self._read_stream = read_stream
                self._write_stream = write_stream
                if not ready.done():
                    ready.set_result(None)
                if self._stop is not None:
                    await self._stop.wait()
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            elif not self._closed:
                logger.warning(f"[{self._label}] Event stream ended with error: {_unwrap(e)}")
        finally:
            self._read_stream = None
            self._write_stream = None

    async def send(self, message: dict[str, Any]) -> None:
        """
        Hand one message to the SDK client for POSTing.

        Raises:
            MCPProtocolError: If the message is not a JSON-RPC message.
            MCPTransportError: If the stream is closed.
        """
        self._ensure_open()
        write_stream = self._write_stream
        if write_stream is None:
            raise MCPTransportError(f"SSE transport '{self._label}' not connected")

        try:
            payload = JSONRPCMessage.model_validate_json(dump_message(message))
        except ValidationError as e:
            raise MCPProtocolError(
                f"Not a JSON-RPC message: {message.get('method', 'response')}", original_error=e
            ) from e

        logger.debug(
            f"[{self._label}] Sending: {message.get('method', 'response')} (id={message.get('id')})"
        )
        async with self._send_lock:
            try:
                await write_stream.send(SessionMessage(message=payload))
            except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
                raise MCPTransportError(
                    f"Event stream to '{self._label}' is closed", original_error=e
                ) from e

    async def _receive_frames(self) -> AsyncIterator[str]:
        read_stream = self._read_stream
        if read_stream is None:
            return
        try:
            async for item in read_stream:
                if isinstance(item, ValidationError):
                    logger.warning(f"[{self._label}] Dropping malformed message: {item}")
                    continue
                if isinstance(item, Exception):
                    raise MCPTransportError(
                        f"Event stream from '{self._label}' dropped", original_error=item
                    ) from item
                yield item.message.model_dump_json(by_alias=True, exclude_none=True)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            if self._closed:
                return
            raise MCPTransportError(
                f"Event stream from '{self._label}' dropped", original_error=e
            ) from e

    async def close(self) -> None:
        """Close the event stream and the HTTP client."""
        if self._closed:
            return

        self._closed = True
        self._is_open = False

        await self._stop_runner(grace=self._config.timeout_seconds)
        logger.info(f"[{self._label}] SSE transport stopped")

    async def _stop_runner(self, grace: float) -> None:
        """Ask the runner to leave the SDK client, cancelling it after ``grace`` seconds."""
        runner, self._runner = self._runner, None
        if self._stop is not None:
            self._stop.set()
        if runner is None:
            return

        if grace > 0:
            await asyncio.wait({runner}, timeout=grace)
        if not runner.done():
            logger.debug(f"[{self._label}] Cancelling event stream runner")
            runner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await runner
