"""
Tool server session.

A ServerSession wraps one server's live connection: the transport handle,
the correlator for that handle, the background reader task and the
discovered tool set. It runs the lifecycle state machine

    DISCONNECTED --connect--> CONNECTING --> CONNECTED
                                        \\--> ERROR
    CONNECTED --(transport failure)--> ERROR
    CONNECTED/ERROR --disconnect--> DISCONNECTED

and never branches on the transport kind past construction.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from src.configuration.config import get_settings
from src.domain.exceptions.mcp import (
    MCPConnectError,
    MCPConnectionLostError,
    MCPError,
    MCPProtocolError,
    MCPRemoteError,
    MCPServerDisabledError,
    MCPServerNotConnectedError,
    MCPToolNotFoundError,
    MCPTransportError,
)
from src.domain.model.mcp.server import ServerConfig, ServerState, ServerStatusSnapshot
from src.domain.model.mcp.tool import ToolSchema
from src.domain.model.mcp.transport import TransportConfig
from src.domain.ports.mcp.transport_port import MCPTransportPort
from src.infrastructure.mcp.correlator import RequestCorrelator
from src.infrastructure.mcp.invocation_logger import InvocationLogger
from src.infrastructure.mcp.transport.factory import TransportFactory

logger = logging.getLogger(__name__)

TransportBuilder = Callable[[TransportConfig, str], MCPTransportPort]

METHOD_NOT_FOUND = -32601
TOOLS_LIST_CHANGED = "notifications/tools/list_changed"


class ServerSession:
    """
    Runtime state of one configured tool server.

    Control operations (``connect``, ``disconnect``, ``discover``) are
    expected to be serialized by the caller; ``invoke`` and ``ping`` may
    run concurrently with each other and only read the tool set.
    """

    def __init__(
        self,
        config: ServerConfig,
        transport_factory: TransportBuilder | None = None,
        invocation_logger: InvocationLogger | None = None,
        request_timeout: float | None = None,
        connect_timeout: float | None = None,
        max_discovery_pages: int | None = None,
    ) -> None:
        settings = get_settings()
        self._config = config
        self._transport_factory = transport_factory or TransportFactory.create
        self._invocation_logger = invocation_logger
        self._request_timeout = (
            config.request_timeout or request_timeout or settings.mcp_request_timeout
        )
        self._connect_timeout = connect_timeout or settings.mcp_connect_timeout
        self._max_discovery_pages = max_discovery_pages or settings.mcp_discovery_max_pages
        self._protocol_version = settings.mcp_protocol_version
        self._client_info = settings.mcp_client_info

        self._state = ServerState.DISCONNECTED if config.enabled else ServerState.DISABLED
        self._transport: MCPTransportPort | None = None
        self._correlator: RequestCorrelator | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._responder_tasks: set[asyncio.Task[None]] = set()
        # Bumped on every connect and teardown; a reader from an older
        # generation can no longer touch session state
        self._generation = 0

        self._tools: tuple[ToolSchema, ...] = ()
        self._tool_names: frozenset[str] = frozenset()
        self._tools_stale = False
        self._discovery_error: str | None = None
        self._last_error: str | None = None
        self._error_type: str | None = None
        self._connected_since: datetime | None = None
        self._server_info: dict[str, Any] | None = None
        self._last_diagnostics: tuple[str, ...] = ()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def server_id(self) -> str:
        return self._config.id

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ServerState.CONNECTED

    @property
    def tools(self) -> tuple[ToolSchema, ...]:
        return self._tools

    @property
    def transport(self) -> MCPTransportPort | None:
        """Live transport handle, None unless connecting or connected."""
        return self._transport

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def pending_count(self) -> int:
        return len(self._correlator) if self._correlator is not None else 0

    def has_tool(self, tool_name: str) -> bool:
        return tool_name in self._tool_names

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the transport, run the initialize handshake and discover tools.

        A no-op while CONNECTING or CONNECTED. Discovery failure leaves the
        session CONNECTED with no tools and is recorded in the snapshot.

        Raises:
            MCPServerDisabledError: If the config is disabled.
            MCPConnectError: If the transport or handshake fails (state ERROR).
        """
        if self._state in (ServerState.CONNECTED, ServerState.CONNECTING):
            logger.debug(f"MCP server '{self.server_id}' already {self._state.value}")
            return
        if self._state == ServerState.DISABLED:
            raise MCPServerDisabledError(self.server_id)

        # At most one live handle: the previous one is fully gone first
        await self._teardown("Reconnecting")

        self._state = ServerState.CONNECTING
        self._last_error = None
        self._error_type = None
        self._discovery_error = None
        self._server_info = None

        transport_config = self._config.to_transport_config(
            timeout_ms=int(self._connect_timeout * 1000)
        )
        try:
            transport = self._transport_factory(transport_config, self.server_id)
        except (MCPError, ValueError) as e:
            error = MCPConnectError(
                transport_config.endpoint,
                message=f"Cannot create transport for MCP server '{self.server_id}'",
                original_error=e,
                server_id=self.server_id,
            )
            self._set_error(error)
            raise error from e

        correlator = RequestCorrelator(label=self.server_id, default_timeout=self._request_timeout)
        self._generation += 1
        generation = self._generation
        self._transport = transport
        self._correlator = correlator

        logger.info(f"Connecting MCP server '{self.server_id}' ({transport_config.endpoint})")
        reader_task: asyncio.Task[None] | None = None
        try:
            await asyncio.wait_for(transport.open(), timeout=self._connect_timeout)
            reader_task = asyncio.create_task(
                self._read_loop(transport, correlator, generation),
                name=f"mcp-reader-{self.server_id}",
            )
            self._reader_task = reader_task
            result = await self._request(
                "initialize",
                {
                    "protocolVersion": self._protocol_version,
                    "capabilities": {},
                    "clientInfo": self._client_info,
                },
                timeout=self._connect_timeout,
            )
            await self._notify("notifications/initialized")
        except asyncio.CancelledError:
            await self._teardown("Connect cancelled")
            self._state = ServerState.DISCONNECTED
            raise
        except Exception as e:
            await self._teardown(f"Connect failed: {e}", original_error=e)
            if reader_task is not None and not reader_task.done():
                # The reader may be closing the transport after seeing it fail
                await asyncio.wait({reader_task})
            if isinstance(e, MCPConnectError):
                self._set_error(e)
                logger.error(f"MCP server '{self.server_id}' failed to connect: {e}")
                raise
            error = MCPConnectError(
                transport_config.endpoint,
                message=f"Failed to connect MCP server '{self.server_id}'",
                original_error=e,
                server_id=self.server_id,
            )
            self._set_error(error)
            logger.error(f"MCP server '{self.server_id}' failed to connect: {error}")
            raise error from e

        if isinstance(result, dict) and isinstance(result.get("serverInfo"), dict):
            self._server_info = dict(result["serverInfo"])
        self._state = ServerState.CONNECTED
        self._connected_since = datetime.now(UTC)
        self._set_tools(())
        logger.info(f"MCP server '{self.server_id}' connected: {self._server_info or {}}")

        try:
            await self.discover()
        except MCPError as e:
            logger.warning(f"Tool discovery failed for MCP server '{self.server_id}': {e}")

        if self._state == ServerState.ERROR:
            raise MCPConnectError(
                transport_config.endpoint,
                message=(
                    f"MCP server '{self.server_id}' dropped during discovery: {self._last_error}"
                ),
                server_id=self.server_id,
            )

    async def disconnect(self, reason: str = "stopped") -> None:
        """
        Tear down the live handle, failing pending calls with
        MCPConnectionLostError, and move to DISCONNECTED.

        Idempotent. A DISABLED session stays DISABLED.
        """
        had_connection = self._transport is not None
        await self._teardown(f"Server {reason}")
        if self._state != ServerState.DISABLED:
            self._state = ServerState.DISCONNECTED
        self._last_error = None
        self._error_type = None
        if had_connection:
            logger.info(f"MCP server '{self.server_id}' disconnected ({reason})")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def discover(self) -> tuple[ToolSchema, ...]:
        """
        Fetch the full tool set and replace the current one atomically.

        Raises:
            MCPServerNotConnectedError: Unless CONNECTED.
            MCPError: Any request failure; the previous tool set is kept.
        """
        if self._state != ServerState.CONNECTED:
            raise MCPServerNotConnectedError(self.server_id, self._state.value)

        try:
            tools = await self._list_tools()
        except MCPError as e:
            self._discovery_error = str(e)
            raise

        self._set_tools(tools)
        self._tools_stale = False
        self._discovery_error = None
        logger.info(f"Discovered {len(tools)} tool(s) on MCP server '{self.server_id}'")
        return tools

    async def invoke(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Call a tool and return its result.

        Rejected before reaching the transport unless CONNECTED and the tool
        is in the discovered set. Exactly one invocation record is written
        per call.

        Raises:
            MCPServerNotConnectedError, MCPToolNotFoundError,
            MCPRequestTimeoutError, MCPConnectionLostError, MCPRemoteError
        """
        started = time.perf_counter()
        arguments = arguments if arguments is not None else {}
        try:
            if self._state != ServerState.CONNECTED:
                raise MCPServerNotConnectedError(self.server_id, self._state.value)
            if not self.has_tool(tool_name):
                raise MCPToolNotFoundError(tool_name, self.server_id)

            result = await self._request(
                "tools/call", {"name": tool_name, "arguments": arguments}, timeout=timeout
            )
            if isinstance(result, dict) and result.get("isError"):
                raise MCPRemoteError(result, method="tools/call", tool_name=tool_name)
        except MCPRemoteError as e:
            error = e
            if e.tool_name is None:
                error = MCPRemoteError(e.payload, method=e.method, tool_name=tool_name)
            await self._record(tool_name, arguments, started, error=error)
            if error is e:
                raise
            raise error from e
        except (Exception, asyncio.CancelledError) as e:
            await self._record(tool_name, arguments, started, error=e)
            raise

        await self._record(tool_name, arguments, started, result=result)
        return result

    async def ping(self, timeout: float | None = None) -> None:
        """
        Round-trip a ``ping`` request.

        Raises:
            MCPServerNotConnectedError: Unless CONNECTED.
            MCPError: If the ping fails or times out.
        """
        if self._state != ServerState.CONNECTED:
            raise MCPServerNotConnectedError(self.server_id, self._state.value)
        await self._request("ping", {}, timeout=timeout)

    def sweep_expired(self) -> int:
        """Expire overdue pending requests on the live connection."""
        if self._correlator is None:
            return 0
        return self._correlator.sweep_expired()

    def snapshot(self) -> ServerStatusSnapshot:
        """Frozen copy of the current status."""
        transport = self._transport
        return ServerStatusSnapshot(
            server_id=self.server_id,
            name=self._config.name,
            transport_type=self._config.transport_type,
            state=self._state,
            enabled=self._config.enabled,
            last_error=self._last_error,
            error_type=self._error_type,
            connected_since=self._connected_since,
            tool_count=len(self._tools),
            tools_stale=self._tools_stale,
            discovery_error=self._discovery_error,
            pending_requests=self.pending_count,
            pid=transport.pid if transport is not None else None,
            diagnostics=transport.diagnostics if transport is not None else self._last_diagnostics,
            server_info=dict(self._server_info) if self._server_info else None,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        transport, correlator = self._transport, self._correlator
        if transport is None or correlator is None:
            raise MCPServerNotConnectedError(self.server_id, self._state.value)

        pending = correlator.register(method, timeout)
        message = {
            "jsonrpc": "2.0",
            "id": pending.request_id,
            "method": method,
            "params": params or {},
        }
        try:
            await transport.send(message)
        except MCPTransportError as e:
            correlator.discard(pending.request_id)
            raise MCPConnectionLostError(
                f"Failed to send {method} to MCP server '{self.server_id}'", original_error=e
            ) from e
        except BaseException:
            correlator.discard(pending.request_id)
            raise
        return await correlator.wait(pending)

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        transport = self._transport
        if transport is None:
            raise MCPServerNotConnectedError(self.server_id, self._state.value)
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params:
            message["params"] = params
        await transport.send(message)

    async def _list_tools(self) -> tuple[ToolSchema, ...]:
        tools: list[ToolSchema] = []
        seen: set[str] = set()
        cursor: str | None = None

        for _ in range(self._max_discovery_pages):
            result = await self._request("tools/list", {"cursor": cursor} if cursor else {})
            if not isinstance(result, dict) or not isinstance(result.get("tools", []), list):
                raise MCPProtocolError(f"Malformed tools/list result from '{self.server_id}'")

            for entry in result.get("tools", []):
                try:
                    tool = ToolSchema.from_dict(entry)
                except ValueError as e:
                    logger.warning(f"[{self.server_id}] Skipping invalid tool entry: {e}")
                    continue
                if tool.name in seen:
                    logger.warning(f"[{self.server_id}] Duplicate tool name '{tool.name}' ignored")
                    continue
                seen.add(tool.name)
                tools.append(tool)

            cursor = result.get("nextCursor")
            if not cursor:
                break
        else:
            logger.warning(
                f"[{self.server_id}] Stopped tool discovery after "
                f"{self._max_discovery_pages} page(s)"
            )

        return tuple(tools)

    async def _read_loop(
        self,
        transport: MCPTransportPort,
        correlator: RequestCorrelator,
        generation: int,
    ) -> None:
        """Route inbound messages for one connection until it ends."""
        try:
            async for message in transport.receive():
                self._dispatch(message, transport, correlator)
        except asyncio.CancelledError:
            raise
        except MCPError as e:
            await self._on_connection_failure(transport, generation, e)
        except Exception as e:
            await self._on_connection_failure(
                transport,
                generation,
                MCPTransportError(f"Receive loop failed: {e}", original_error=e),
            )

    def _dispatch(
        self,
        message: dict[str, Any],
        transport: MCPTransportPort,
        correlator: RequestCorrelator,
    ) -> None:
        if "method" in message:
            if message.get("id") is not None:
                self._spawn_responder(transport, message)
            else:
                self._handle_notification(message)
            return

        if "id" in message and ("result" in message or "error" in message):
            correlator.resolve(message)
            return

        logger.warning(f"[{self.server_id}] Ignoring unrecognized message: {str(message)[:200]}")

    def _handle_notification(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        if method == TOOLS_LIST_CHANGED:
            self._tools_stale = True
            logger.info(f"MCP server '{self.server_id}' reported a changed tool list")
        else:
            logger.debug(f"[{self.server_id}] Received server notification: {method}")

    def _spawn_responder(self, transport: MCPTransportPort, message: dict[str, Any]) -> None:
        task = asyncio.create_task(self._answer_server_request(transport, message))
        self._responder_tasks.add(task)
        task.add_done_callback(self._responder_tasks.discard)

    async def _answer_server_request(
        self, transport: MCPTransportPort, message: dict[str, Any]
    ) -> None:
        method = message.get("method")
        response: dict[str, Any] = {"jsonrpc": "2.0", "id": message.get("id")}
        if method == "ping":
            response["result"] = {}
        else:
            logger.debug(f"[{self.server_id}] Rejecting server request: {method}")
            response["error"] = {"code": METHOD_NOT_FOUND, "message": f"Method not found: {method}"}
        try:
            await transport.send(response)
        except MCPTransportError as e:
            logger.warning(f"[{self.server_id}] Could not answer server request {method}: {e}")

    async def _on_connection_failure(
        self,
        transport: MCPTransportPort,
        generation: int,
        error: MCPError,
    ) -> None:
        if generation != self._generation or self._transport is not transport:
            logger.debug(f"[{self.server_id}] Ignoring failure of a replaced connection: {error}")
            return
        logger.error(f"MCP server '{self.server_id}' connection failed: {error}")
        # Set before teardown yields; a later connect owns the state after that
        self._set_error(error)
        await self._teardown(str(error), original_error=error)

    async def _teardown(self, reason: str, original_error: Exception | None = None) -> None:
        """Release the live handle. Pending calls fail before the transport closes."""
        transport, self._transport = self._transport, None
        correlator, self._correlator = self._correlator, None
        reader, self._reader_task = self._reader_task, None
        self._generation += 1
        self._connected_since = None

        if correlator is not None:
            failed = correlator.close(reason, original_error)
            if failed:
                logger.info(
                    f"Failed {failed} pending request(s) on MCP server '{self.server_id}': {reason}"
                )

        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        for task in list(self._responder_tasks):
            task.cancel()

        if transport is not None:
            try:
                await transport.close()
            except Exception as e:
                logger.warning(f"Error closing transport for MCP server '{self.server_id}': {e}")
            self._last_diagnostics = tuple(transport.diagnostics)

    def _set_tools(self, tools: tuple[ToolSchema, ...]) -> None:
        self._tools = tools
        self._tool_names = frozenset(tool.name for tool in tools)

    def _set_error(self, error: BaseException) -> None:
        self._state = ServerState.ERROR
        self._last_error = str(error)
        self._error_type = getattr(error, "error_type", type(error).__name__)

    async def _record(
        self,
        tool_name: str,
        arguments: Any,
        started: float,
        result: Any = None,
        error: BaseException | None = None,
    ) -> None:
        if self._invocation_logger is None:
            return
        await self._invocation_logger.record(
            server_id=self.server_id,
            tool_name=tool_name,
            arguments=arguments,
            duration_ms=(time.perf_counter() - started) * 1000,
            result=result,
            error=error,
        )

    def __repr__(self) -> str:
        return (
            f"ServerSession(id={self.server_id!r}, state={self._state.value}, "
            f"tools={len(self._tools)}, pending={self.pending_count})"
        )
