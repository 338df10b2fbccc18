"""
MCP Port Definitions.

This package defines the abstract interfaces (ports) for tool server
management, following hexagonal architecture principles. Implementations
are provided by infrastructure adapters.
"""

from src.domain.ports.mcp.registry_port import MCPRegistryPort
from src.domain.ports.mcp.transport_port import MCPTransportFactoryPort, MCPTransportPort

__all__ = [
    "MCPRegistryPort",
    "MCPTransportPort",
    "MCPTransportFactoryPort",
]
