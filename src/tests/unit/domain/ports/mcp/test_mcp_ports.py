"""Tests that the infrastructure adapters satisfy the MCP port contracts."""

import pytest

from src.domain.model.mcp.transport import TransportConfig
from src.domain.ports.mcp import MCPRegistryPort, MCPTransportFactoryPort, MCPTransportPort
from src.domain.ports.repositories import MCPInvocationLogRepositoryPort, MCPServerRepositoryPort
from src.infrastructure.mcp.registry import MCPServerRegistry
from src.infrastructure.mcp.transport import TransportFactory


@pytest.mark.unit
class TestPortConformance:
    """Runtime protocol checks for adapters."""

    def test_registry_is_registry_port(self, server_repository):
        """MCPServerRegistry should expose the registry contract."""
        assert isinstance(MCPServerRegistry(server_repository), MCPRegistryPort)

    def test_factory_is_factory_port(self):
        """TransportFactory should expose the factory contract."""
        assert isinstance(TransportFactory(), MCPTransportFactoryPort)

    @pytest.mark.parametrize(
        "config",
        [
            TransportConfig.process("node", ["server.js"]),
            TransportConfig.eventstream("https://tools.example.com/sse"),
            TransportConfig.socket("ws://localhost:9000/mcp"),
            TransportConfig.socket("tcp://localhost:9000"),
        ],
    )
    def test_created_transports_are_transport_ports(self, config):
        """Every transport variant should satisfy MCPTransportPort."""
        transport = TransportFactory.create(config, "x")

        assert isinstance(transport, MCPTransportPort)
        assert transport.is_open is False

    def test_repositories_implement_ports(self, server_repository, log_repository):
        """In-memory repositories should subclass their ports."""
        assert isinstance(server_repository, MCPServerRepositoryPort)
        assert isinstance(log_repository, MCPInvocationLogRepositoryPort)
