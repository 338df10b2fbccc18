"""Tests for the standalone tool server manager entry point."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src import worker_mcp


@pytest.fixture
def fake_manager(monkeypatch):
    manager = MagicMock()

    async def start():
        worker_mcp.shutdown_event.set()
        return {}

    manager.start = AsyncMock(side_effect=start)
    manager.shutdown = AsyncMock()
    monkeypatch.setattr(worker_mcp, "create_mcp_manager", lambda: manager)
    monkeypatch.setattr(worker_mcp, "shutdown_event", worker_mcp.asyncio.Event())
    return manager


@pytest.mark.unit
class TestWorkerMain:
    """Tests for worker_mcp.main."""

    async def test_runs_until_shutdown_event(self, fake_manager):
        """Test main starts the manager and shuts it down once signalled."""
        await worker_mcp.main()

        fake_manager.start.assert_awaited_once()
        fake_manager.shutdown.assert_awaited_once()

    async def test_shuts_down_after_start_failure(self, fake_manager):
        """Test the manager is shut down even if start raises."""
        fake_manager.start = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await worker_mcp.main()
        fake_manager.shutdown.assert_awaited_once()

    def test_handle_signal_sets_event(self, fake_manager):
        """Test the signal handler requests shutdown."""
        worker_mcp.handle_signal(15)

        assert worker_mcp.shutdown_event.is_set()
