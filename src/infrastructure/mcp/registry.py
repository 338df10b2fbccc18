"""
Tool server registry and lifecycle supervisor.

Maps server ids to their sessions and serializes every control operation
on one id behind that id's lock. Operations on different ids never share
a lock, so a server hanging in its handshake cannot hold up any other.
``invoke`` takes no lock at all; it only reads the session's tool set.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from src.configuration.config import get_settings
from src.domain.exceptions.mcp import MCPError, MCPServerNotFoundError
from src.domain.model.mcp.server import ServerConfig, ServerState, ServerStatusSnapshot
from src.domain.model.mcp.tool import ToolSchema
from src.domain.ports.repositories.mcp_server_repository import MCPServerRepositoryPort
from src.infrastructure.mcp.invocation_logger import InvocationLogger
from src.infrastructure.mcp.session import ServerSession, TransportBuilder

logger = logging.getLogger(__name__)


class MCPServerRegistry:
    """
    Registry of tool server sessions.

    Usage:
        registry = MCPServerRegistry(repository)
        await registry.initialize()
        snapshot = await registry.start("github")
        result = await registry.invoke("github", "list_issues", {"repo": "x"})
        await registry.shutdown()
    """

    def __init__(
        self,
        repository: MCPServerRepositoryPort,
        invocation_logger: InvocationLogger | None = None,
        transport_factory: TransportBuilder | None = None,
        request_timeout: float | None = None,
        connect_timeout: float | None = None,
    ) -> None:
        self._repository = repository
        self._invocation_logger = (
            invocation_logger if invocation_logger is not None else InvocationLogger()
        )
        self._transport_factory = transport_factory
        self._request_timeout = request_timeout
        self._connect_timeout = connect_timeout

        self._sessions: dict[str, ServerSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def repository(self) -> MCPServerRepositoryPort:
        return self._repository

    @property
    def invocation_logger(self) -> InvocationLogger:
        return self._invocation_logger

    def server_ids(self) -> list[str]:
        return list(self._sessions.keys())

    def get_session(self, server_id: str) -> ServerSession | None:
        return self._sessions.get(server_id)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def initialize(self, auto_start: bool | None = None) -> dict[str, ServerStatusSnapshot]:
        """
        Create a session for every stored config and start the enabled ones.

        Servers start concurrently; a failing server is logged and left in
        ERROR without affecting the others.
        """
        if auto_start is None:
            auto_start = get_settings().mcp_auto_start

        configs = await self._repository.list_all()
        for config in configs:
            async with self._locked(config.id):
                if config.id not in self._sessions:
                    self._sessions[config.id] = self._build_session(config)
        logger.info(f"Loaded {len(configs)} MCP server config(s)")

        if auto_start:
            enabled = [config.id for config in configs if config.enabled]
            results = await asyncio.gather(
                *(self.start(server_id) for server_id in enabled), return_exceptions=True
            )
            for server_id, result in zip(enabled, results, strict=True):
                if isinstance(result, BaseException):
                    logger.warning(f"MCP server '{server_id}' failed to start: {result}")

        return self.status_snapshot()

    async def shutdown(self) -> None:
        """Stop every session concurrently."""
        server_ids = list(self._sessions.keys())
        results = await asyncio.gather(
            *(self.stop(server_id) for server_id in server_ids), return_exceptions=True
        )
        for server_id, result in zip(server_ids, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"Error stopping MCP server '{server_id}': {result}")
        logger.info(f"MCP server registry shut down ({len(server_ids)} server(s))")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def register(self, config: ServerConfig, start: bool = False) -> ServerStatusSnapshot:
        """
        Store a config and create its session, replacing any previous one.

        Args:
            config: Server configuration.
            start: Start the server right away (ignored when disabled).

        Raises:
            MCPConnectError: If ``start`` was requested and the start failed.
                The config stays registered with its session in ERROR.
        """
        async with self._locked(config.id):
            await self._repository.save(config)
            old = self._sessions.get(config.id)
            if old is not None:
                await old.disconnect("replaced")
            session = self._build_session(config)
            self._sessions[config.id] = session
            logger.info(f"Registered MCP server '{config.id}' ({config.transport_type.value})")

            if start and config.enabled:
                await self._connect(session)
            return session.snapshot()

    async def unregister(self, server_id: str) -> bool:
        """
        Stop a server and delete its stored config and tools.

        Returns:
            True if anything was removed.
        """
        async with self._locked(server_id):
            session = self._sessions.pop(server_id, None)
            if session is not None:
                await session.disconnect("unregistered")
            deleted = await self._repository.delete(server_id)
            removed = deleted or session is not None
            if removed:
                logger.info(f"Unregistered MCP server '{server_id}'")
            return removed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, server_id: str) -> ServerStatusSnapshot:
        """
        Start a configured server. A no-op if already connected.

        Raises:
            MCPServerNotFoundError: If the id is not configured.
            MCPServerDisabledError: If the config is disabled.
            MCPConnectError: If the connection or handshake fails.
        """
        async with self._locked(server_id):
            session = await self._ensure_session(server_id)
            await self._connect(session)
            return session.snapshot()

    async def stop(self, server_id: str) -> ServerStatusSnapshot:
        """Stop a server; its pending calls fail with MCPConnectionLostError."""
        async with self._locked(server_id):
            session = await self._ensure_session(server_id)
            await session.disconnect()
            return session.snapshot()

    async def restart(self, server_id: str) -> ServerStatusSnapshot:
        """Stop then start under one hold of the server's lock."""
        async with self._locked(server_id):
            session = await self._ensure_session(server_id)
            await session.disconnect("restarting")
            await self._connect(session)
            return session.snapshot()

    async def reload(self, server_id: str) -> ServerStatusSnapshot:
        """
        Replace the session with a new one built from the stored config.

        The new session is started when the config is enabled and left
        DISABLED otherwise.
        """
        async with self._locked(server_id):
            return await self._reload_locked(server_id)

    async def set_enabled(self, server_id: str, enabled: bool) -> ServerStatusSnapshot:
        """Persist the enabled flag and reload."""
        async with self._locked(server_id):
            config = await self._require_config(server_id)
            if config.enabled != enabled:
                await self._repository.save(config.with_enabled(enabled))
                logger.info(
                    f"MCP server '{server_id}' {'enabled' if enabled else 'disabled'}"
                )
            return await self._reload_locked(server_id)

    async def toggle(self, server_id: str) -> ServerStatusSnapshot:
        """Flip the enabled flag and reload."""
        async with self._locked(server_id):
            config = await self._require_config(server_id)
            await self._repository.save(config.with_enabled(not config.enabled))
            logger.info(
                f"MCP server '{server_id}' {'disabled' if config.enabled else 'enabled'}"
            )
            return await self._reload_locked(server_id)

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def discover(self, server_id: str) -> tuple[ToolSchema, ...]:
        """Refresh the tool set of a connected server and persist it."""
        async with self._locked(server_id):
            session = self._require_session(server_id)
            try:
                tools = await session.discover()
            except MCPError as e:
                await self._persist_tools(session, sync_error=str(e))
                raise
            await self._persist_tools(session)
            return tools

    async def invoke(
        self,
        server_id: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Call a tool on a server.

        Raises:
            MCPServerNotFoundError, MCPServerNotConnectedError,
            MCPToolNotFoundError, MCPRequestTimeoutError,
            MCPConnectionLostError, MCPRemoteError
        """
        session = self._sessions.get(server_id)
        if session is None:
            error = MCPServerNotFoundError(server_id)
            await self._invocation_logger.record(
                server_id=server_id,
                tool_name=tool_name,
                arguments=arguments if arguments is not None else {},
                duration_ms=0.0,
                error=error,
            )
            raise error
        return await session.invoke(tool_name, arguments, timeout=timeout)

    async def ping(self, server_id: str, timeout: float | None = None) -> bool:
        """
        Round-trip a ping.

        Returns:
            False if the server is configured but the ping fails, including
            when it is not connected.

        Raises:
            MCPServerNotFoundError: If the id is not configured.
        """
        session = self._sessions.get(server_id)
        if session is None:
            raise MCPServerNotFoundError(server_id)
        try:
            await session.ping(timeout=timeout)
        except MCPError as e:
            logger.debug(f"Ping to MCP server '{server_id}' failed: {e}")
            return False
        return True

    def list_tools(self, server_id: str) -> tuple[ToolSchema, ...]:
        return self._require_session(server_id).tools

    def list_all_tools(self) -> dict[str, tuple[ToolSchema, ...]]:
        return {server_id: session.tools for server_id, session in self._sessions.items()}

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status_snapshot(self) -> dict[str, ServerStatusSnapshot]:
        """Point-in-time copy of every registered server's status."""
        return {server_id: session.snapshot() for server_id, session in self._sessions.items()}

    def get_status(self, server_id: str) -> ServerStatusSnapshot:
        return self._require_session(server_id).snapshot()

    def sweep_expired(self) -> int:
        """Expire overdue pending requests on every session."""
        return sum(session.sweep_expired() for session in self._sessions.values())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _locked(self, server_id: str) -> AsyncIterator[None]:
        """
        Hold the lock for one server id.

        A lock outlives its holders only while the id has a session, so ids
        that were unregistered or never existed do not accumulate locks.
        """
        lock = self._locks.get(server_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[server_id] = lock
        self._lock_users[server_id] = self._lock_users.get(server_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            users = self._lock_users.pop(server_id) - 1
            if users:
                self._lock_users[server_id] = users
            elif server_id not in self._sessions:
                del self._locks[server_id]

    def _build_session(self, config: ServerConfig) -> ServerSession:
        return ServerSession(
            config,
            transport_factory=self._transport_factory,
            invocation_logger=self._invocation_logger,
            request_timeout=self._request_timeout,
            connect_timeout=self._connect_timeout,
        )

    def _require_session(self, server_id: str) -> ServerSession:
        session = self._sessions.get(server_id)
        if session is None:
            raise MCPServerNotFoundError(server_id)
        return session

    async def _require_config(self, server_id: str) -> ServerConfig:
        config = await self._repository.get_by_id(server_id)
        if config is None:
            raise MCPServerNotFoundError(server_id)
        return config

    async def _ensure_session(self, server_id: str) -> ServerSession:
        """Return the session for an id, building it from the stored config."""
        session = self._sessions.get(server_id)
        if session is not None:
            return session
        config = await self._require_config(server_id)
        session = self._build_session(config)
        self._sessions[server_id] = session
        return session

    async def _connect(self, session: ServerSession) -> None:
        await session.connect()
        if session.state == ServerState.CONNECTED:
            await self._persist_tools(session)

    async def _reload_locked(self, server_id: str) -> ServerStatusSnapshot:
        config = await self._repository.get_by_id(server_id)
        # Keep the old session registered until it is replaced
        old = self._sessions.get(server_id)
        if old is not None:
            await old.disconnect("reloading")
        if config is None:
            self._sessions.pop(server_id, None)
            raise MCPServerNotFoundError(server_id)

        session = self._build_session(config)
        self._sessions[server_id] = session
        logger.info(f"Reloaded MCP server '{server_id}' (enabled={config.enabled})")
        if config.enabled:
            await self._connect(session)
        return session.snapshot()

    async def _persist_tools(self, session: ServerSession, sync_error: str | None = None) -> None:
        snapshot = session.snapshot()
        try:
            await self._repository.update_discovered_tools(
                session.server_id,
                list(session.tools),
                last_sync_at=datetime.now(UTC),
                sync_error=sync_error or snapshot.discovery_error,
            )
        except Exception as e:
            logger.error(f"Failed to store tools for MCP server '{session.server_id}': {e}")

    def __repr__(self) -> str:
        states = {server_id: s.state.value for server_id, s in self._sessions.items()}
        return f"MCPServerRegistry({states})"

