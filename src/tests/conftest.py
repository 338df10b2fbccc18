"""Pytest configuration and shared fixtures for testing."""

from pathlib import Path

import pytest

from src.configuration.config import get_settings
from src.infrastructure.adapters.secondary.persistence.in_memory_mcp_invocation_log_repository import (  # noqa: E501
    InMemoryMCPInvocationLogRepository,
)
from src.infrastructure.adapters.secondary.persistence.in_memory_mcp_server_repository import (
    InMemoryMCPServerRepository,
)
from src.infrastructure.mcp.invocation_logger import InvocationLogger
from src.infrastructure.mcp.registry import MCPServerRegistry
from src.tests.fixtures.mcp_fakes import ECHO_SERVER_SCRIPT, FakeTransportFactory


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Keep cached settings from leaking between tests."""
    monkeypatch.setenv("MCP_STOP_TIMEOUT", "2")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def echo_script() -> Path:
    return ECHO_SERVER_SCRIPT


@pytest.fixture
def server_repository():
    return InMemoryMCPServerRepository()


@pytest.fixture
def log_repository():
    return InMemoryMCPInvocationLogRepository(max_records=1000)


@pytest.fixture
def invocation_logger(log_repository):
    return InvocationLogger(log_repository, preview_chars=200)


@pytest.fixture
def fake_factory():
    return FakeTransportFactory()


@pytest.fixture
async def registry(server_repository, invocation_logger, fake_factory):
    """Registry wired to fake transports with short deadlines."""
    registry = MCPServerRegistry(
        server_repository,
        invocation_logger=invocation_logger,
        transport_factory=fake_factory,
        request_timeout=1.0,
        connect_timeout=1.0,
    )
    yield registry
    await registry.shutdown()
