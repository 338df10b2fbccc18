"""End-to-end tool server scenarios against real child processes."""

import asyncio
import sys
import time

import pytest

from src.domain.exceptions.mcp import (
    MCPRemoteError,
    MCPRequestTimeoutError,
    MCPServerAlreadyExistsError,
    MCPServerNotConnectedError,
)
from src.domain.model.mcp.catalog import CatalogCategory, CatalogTemplate
from src.domain.model.mcp.server import ServerState
from src.infrastructure.mcp.catalog import CatalogInstaller, MCPCatalog
from src.infrastructure.mcp.registry import MCPServerRegistry
from src.tests.fixtures.mcp_fakes import ECHO_SERVER_SCRIPT, make_echo_config

EXPECTED_TOOLS = {"echo", "sleep", "fail", "error", "crash", "garbage", "roundtrip"}


@pytest.fixture
async def process_registry(server_repository, invocation_logger):
    """Registry using the real transport factory."""
    registry = MCPServerRegistry(
        server_repository,
        invocation_logger=invocation_logger,
        request_timeout=5.0,
        connect_timeout=10.0,
    )
    yield registry
    await registry.shutdown()


@pytest.fixture
def echo_catalog():
    template = CatalogTemplate(
        id="echo",
        name="Echo",
        category="developer",
        command=sys.executable,
        args=[str(ECHO_SERVER_SCRIPT)],
        env={"MCP_FRAMING": "newline"},
        package="echo-server",
    )
    return MCPCatalog(templates=[template], categories=[CatalogCategory(id="developer", name="Dev")])


@pytest.mark.integration
class TestToolServerScenarios:
    """Process-backed lifecycle, discovery and invocation."""

    async def test_start_then_discover(self, process_registry):
        """Test discovery returns exactly the tools the process lists."""
        await process_registry.register(make_echo_config("echo"))

        snapshot = await process_registry.start("echo")
        tools = await process_registry.discover("echo")

        assert snapshot.state == ServerState.CONNECTED
        assert {t.name for t in tools} == EXPECTED_TOOLS
        assert len(tools) == len(EXPECTED_TOOLS)

    async def test_unanswered_call_times_out(self, process_registry, log_repository):
        """Test a call past its deadline fails with a timeout and leaves nothing pending."""
        await process_registry.register(make_echo_config("echo"), start=True)

        started = time.perf_counter()
        with pytest.raises(MCPRequestTimeoutError):
            await process_registry.invoke("echo", "sleep", {"seconds": 5}, timeout=0.2)
        elapsed = time.perf_counter() - started

        assert 0.15 <= elapsed < 2.0
        assert process_registry.get_session("echo").pending_count == 0
        records = await log_repository.query(server_id="echo")
        assert records[0].error_type == "timeout"
        # The server is still usable afterwards
        assert await process_registry.invoke("echo", "echo", {"after": True})

    async def test_invoke_while_disconnected(self, process_registry):
        """Test a call on a stopped server is rejected without spawning anything."""
        await process_registry.register(make_echo_config("echo"))

        with pytest.raises(MCPServerNotConnectedError):
            await process_registry.invoke("echo", "echo", {})
        assert process_registry.get_session("echo").transport is None

    async def test_install_twice(self, process_registry, server_repository, echo_catalog):
        """Test a second install of one template conflicts and leaves one config."""
        installer = CatalogInstaller(echo_catalog, process_registry)

        first = await installer.install("echo")
        with pytest.raises(MCPServerAlreadyExistsError):
            await installer.install("echo")

        assert first.state == ServerState.CONNECTED
        assert len(await server_repository.list_all()) == 1

    async def test_concurrent_calls_complete_out_of_order(self, process_registry):
        """Test responses are matched to their callers regardless of arrival order."""
        await process_registry.register(make_echo_config("echo"), start=True)

        slow = asyncio.create_task(
            process_registry.invoke("echo", "sleep", {"seconds": 0.3, "tag": "slow"})
        )
        fast = await process_registry.invoke("echo", "echo", {"tag": "fast"})
        slow_result = await slow

        assert '"fast"' in fast["content"][0]["text"]
        assert '"slow"' in slow_result["content"][0]["text"]

    async def test_tool_error_keeps_connection(self, process_registry):
        """Test remote tool failures surface as MCPRemoteError without disconnecting."""
        await process_registry.register(make_echo_config("echo"), start=True)

        with pytest.raises(MCPRemoteError):
            await process_registry.invoke("echo", "fail", {})
        with pytest.raises(MCPRemoteError, match="bad things happened"):
            await process_registry.invoke("echo", "error", {})

        assert process_registry.get_status("echo").state == ServerState.CONNECTED

    async def test_restart_replaces_process(self, process_registry):
        """Test restart spawns a new process and rediscovers tools."""
        await process_registry.register(make_echo_config("echo"), start=True)
        first = process_registry.get_session("echo").transport

        await process_registry.restart("echo")
        second = process_registry.get_session("echo").transport

        assert second is not first
        assert not first.is_open
        assert process_registry.get_session("echo").has_tool("echo")
