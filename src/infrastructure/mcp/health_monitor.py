"""MCP Server Health Monitor.

Periodically pings every connected tool server and records the outcome.

The monitor only observes: it never restarts, reconnects or otherwise
changes a session. Operators (or callers) decide what to do with an
unhealthy server.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.domain.model.mcp.server import ServerState

if TYPE_CHECKING:
    from src.infrastructure.mcp.registry import MCPServerRegistry

logger = logging.getLogger(__name__)


@dataclass
class MCPServerHealth:
    """Health status of an MCP server.

    Attributes:
        name: Server id.
        status: Health status - "healthy", "unhealthy", or "unknown".
        last_check: Timestamp of last health check.
        error_message: Error message if unhealthy.
        latency_ms: Ping round trip, if the ping succeeded.
    """

    name: str
    status: str  # "healthy", "unhealthy", "unknown"
    last_check: datetime
    error_message: str | None = None
    latency_ms: float | None = None


class MCPServerHealthMonitor:
    """Monitors health of registered MCP servers.

    Usage:
        monitor = MCPServerHealthMonitor(registry)

        # Start the background loop
        await monitor.start()

        # Check health manually
        health = await monitor.health_check("my-server")

        # Stop the loop
        await monitor.shutdown()
    """

    def __init__(
        self,
        registry: MCPServerRegistry,
        check_interval_seconds: float = 60.0,
        health_check_timeout: float = 10.0,
    ) -> None:
        """Initialize the health monitor.

        Args:
            registry: Registry whose sessions are checked.
            check_interval_seconds: Interval between health checks.
            health_check_timeout: Deadline for each ping.
        """
        self._registry = registry
        self._check_interval_seconds = check_interval_seconds
        self._health_check_timeout = health_check_timeout

        self._task: asyncio.Task[None] | None = None
        self._health: dict[str, MCPServerHealth] = {}

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def health_check(self, server_id: str) -> MCPServerHealth:
        """Check health of a single MCP server.

        CONNECTED servers are pinged. ERROR servers are unhealthy without a
        ping; DISCONNECTED and DISABLED servers are unknown.

        Args:
            server_id: Server id.

        Returns:
            MCPServerHealth with current status.
        """
        now = datetime.now(UTC)
        session = self._registry.get_session(server_id)

        if session is None:
            health = MCPServerHealth(
                name=server_id,
                status="unhealthy",
                last_check=now,
                error_message="Server not found",
            )
        elif session.state == ServerState.ERROR:
            health = MCPServerHealth(
                name=server_id,
                status="unhealthy",
                last_check=now,
                error_message=session.last_error or "Server in error state",
            )
        elif session.state != ServerState.CONNECTED:
            health = MCPServerHealth(
                name=server_id,
                status="unknown",
                last_check=now,
                error_message=f"Server {session.state.value}",
            )
        else:
            health = await self._ping(server_id, now)

        self._health[server_id] = health
        return health

    async def check_all(self) -> dict[str, MCPServerHealth]:
        """Check every registered server concurrently."""
        server_ids = self._registry.server_ids()
        results = await asyncio.gather(*(self.health_check(sid) for sid in server_ids))
        for health in results:
            if health.status == "unhealthy":
                logger.warning(f"MCP server '{health.name}' is unhealthy: {health.error_message}")
        # Forget servers that were unregistered since the last pass
        for stale in set(self._health) - set(server_ids):
            self._health.pop(stale, None)
        return {h.name: h for h in results}

    def get_health(self, server_id: str) -> MCPServerHealth | None:
        """Last recorded health of a server, if any."""
        return self._health.get(server_id)

    def get_all_health(self) -> dict[str, MCPServerHealth]:
        return dict(self._health)

    async def start(self) -> None:
        """Start the background monitoring loop."""
        if self.is_running:
            logger.debug("Health monitor already running")
            return

        async def monitoring_loop() -> None:
            while True:
                try:
                    await self.check_all()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Error in health monitoring loop: {e}")

                await asyncio.sleep(self._check_interval_seconds)

        self._task = asyncio.create_task(monitoring_loop(), name="mcp-health-monitor")
        logger.info(f"Started MCP health monitor (interval {self._check_interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background monitoring loop."""
        task, self._task = self._task, None
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.info("Stopped MCP health monitor")

    async def shutdown(self) -> None:
        """Stop monitoring and drop recorded health.

        Should be called during application shutdown.
        """
        await self.stop()
        self._health.clear()
        logger.info("Health monitor shutdown complete")

    async def _ping(self, server_id: str, now: datetime) -> MCPServerHealth:
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            ok = await asyncio.wait_for(
                self._registry.ping(server_id, timeout=self._health_check_timeout),
                timeout=self._health_check_timeout + 1.0,
            )
        except TimeoutError:
            return MCPServerHealth(
                name=server_id,
                status="unhealthy",
                last_check=now,
                error_message="Health check timed out",
            )
        except Exception as e:
            return MCPServerHealth(
                name=server_id,
                status="unhealthy",
                last_check=now,
                error_message=str(e),
            )

        if not ok:
            return MCPServerHealth(
                name=server_id,
                status="unhealthy",
                last_check=now,
                error_message="Ping failed",
            )
        return MCPServerHealth(
            name=server_id,
            status="healthy",
            last_check=now,
            latency_ms=round((loop.time() - started) * 1000, 3),
        )
