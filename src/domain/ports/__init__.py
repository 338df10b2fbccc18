"""
Domain Ports - Hexagonal architecture interfaces.

Ports define contracts that infrastructure adapters implement.
Domain layer depends on these interfaces, not concrete implementations.
"""

# MCP ports (Model Context Protocol)
from src.domain.ports.mcp import (
    MCPRegistryPort,
    MCPTransportFactoryPort,
    MCPTransportPort,
)

# Repository ports
from src.domain.ports.repositories import (
    MCPInvocationLogRepositoryPort,
    MCPServerRepositoryPort,
)

__all__ = [
    # MCP
    "MCPRegistryPort",
    "MCPTransportPort",
    "MCPTransportFactoryPort",
    # Repositories
    "MCPServerRepositoryPort",
    "MCPInvocationLogRepositoryPort",
]
