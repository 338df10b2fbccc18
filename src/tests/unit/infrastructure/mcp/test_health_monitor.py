"""Unit tests for MCP Server Health Monitor."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.domain.exceptions.mcp import MCPConnectError
from src.domain.model.mcp.server import ServerState
from src.infrastructure.mcp.health_monitor import MCPServerHealthMonitor
from src.tests.fixtures.mcp_fakes import FakeServer, make_server_config, wait_until


@pytest.fixture
def monitor(registry):
    return MCPServerHealthMonitor(registry, check_interval_seconds=0.05, health_check_timeout=0.2)


@pytest.mark.unit
class TestHealthCheck:
    """Tests for MCPServerHealthMonitor.health_check."""

    async def test_unknown_server(self, monitor):
        """Test an unregistered id is reported unhealthy."""
        health = await monitor.health_check("ghost")

        assert health.status == "unhealthy"
        assert health.error_message == "Server not found"

    async def test_connected_server_is_healthy(self, monitor, registry):
        """Test a connected server that answers ping is healthy."""
        await registry.register(make_server_config("a"), start=True)

        health = await monitor.health_check("a")

        assert health.status == "healthy"
        assert health.latency_ms is not None
        assert monitor.get_health("a") is health

    async def test_unanswered_ping(self, monitor, registry, fake_factory):
        """Test a server that never answers ping is unhealthy but stays connected."""
        fake_factory.servers["a"] = FakeServer(hold=("ping",))
        await registry.register(make_server_config("a"), start=True)

        health = await monitor.health_check("a")

        assert health.status == "unhealthy"
        assert health.error_message == "Ping failed"
        assert registry.get_session("a").state == ServerState.CONNECTED

    async def test_error_state_is_not_pinged(self, monitor, registry, fake_factory):
        """Test ERROR servers report their last error without a ping."""
        fake_factory.fail_open("a", "spawn failed")
        with pytest.raises(MCPConnectError):
            await registry.register(make_server_config("a"), start=True)

        health = await monitor.health_check("a")

        assert health.status == "unhealthy"
        assert "spawn failed" in health.error_message

    async def test_idle_servers_are_unknown(self, monitor, registry):
        """Test disconnected and disabled servers have unknown health."""
        await registry.register(make_server_config("idle"))
        await registry.register(make_server_config("off", enabled=False))

        idle = await monitor.health_check("idle")
        off = await monitor.health_check("off")

        assert idle.status == "unknown"
        assert idle.error_message == "Server disconnected"
        assert off.status == "unknown"
        assert off.error_message == "Server disabled"

    async def test_ping_timeout(self, monitor, registry):
        """Test an overrunning ping is reported as a timeout."""
        await registry.register(make_server_config("a"), start=True)

        with patch.object(registry, "ping", AsyncMock(side_effect=TimeoutError())):
            health = await monitor.health_check("a")

        assert health.status == "unhealthy"
        assert health.error_message == "Health check timed out"

    async def test_ping_exception(self, monitor, registry):
        """Test unexpected ping errors mark the server unhealthy."""
        await registry.register(make_server_config("a"), start=True)

        with patch.object(registry, "ping", AsyncMock(side_effect=RuntimeError("boom"))):
            health = await monitor.health_check("a")

        assert health.status == "unhealthy"
        assert health.error_message == "boom"


@pytest.mark.unit
class TestMonitorLoop:
    """Tests for check_all and the background loop."""

    async def test_check_all(self, monitor, registry):
        """Test every registered server is checked."""
        await registry.register(make_server_config("a"), start=True)
        await registry.register(make_server_config("b"))

        results = await monitor.check_all()

        assert results["a"].status == "healthy"
        assert results["b"].status == "unknown"
        assert set(monitor.get_all_health()) == {"a", "b"}

    async def test_check_all_forgets_unregistered(self, monitor, registry):
        """Test health of removed servers is dropped."""
        await registry.register(make_server_config("a"))
        await monitor.check_all()

        await registry.unregister("a")
        await monitor.check_all()

        assert monitor.get_health("a") is None

    async def test_start_and_stop(self, monitor, registry):
        """Test the loop records health until stopped."""
        await registry.register(make_server_config("a"), start=True)

        await monitor.start()
        assert monitor.is_running
        await wait_until(lambda: monitor.get_health("a") is not None)

        await monitor.stop()
        assert not monitor.is_running
        assert monitor.get_health("a").status == "healthy"

    async def test_start_twice_keeps_one_loop(self, monitor):
        """Test start is idempotent."""
        await monitor.start()
        task = monitor._task
        await monitor.start()

        assert monitor._task is task
        await monitor.stop()

    async def test_loop_survives_errors(self, monitor):
        """Test a failing pass does not end the loop."""
        with patch.object(monitor, "check_all", AsyncMock(side_effect=RuntimeError("boom"))):
            await monitor.start()
            await asyncio.sleep(0.12)
            assert monitor.is_running
            assert monitor.check_all.await_count >= 2
        await monitor.stop()

    async def test_shutdown_clears_health(self, monitor, registry):
        """Test shutdown stops the loop and drops recorded health."""
        await registry.register(make_server_config("a"))
        await monitor.check_all()
        await monitor.start()

        await monitor.shutdown()

        assert not monitor.is_running
        assert monitor.get_all_health() == {}
