# flake8: noqa

from src.domain.ports.repositories.mcp_invocation_log_repository import (
    MCPInvocationLogRepositoryPort,
)
from src.domain.ports.repositories.mcp_server_repository import MCPServerRepositoryPort

__all__ = [
    "MCPServerRepositoryPort",
    "MCPInvocationLogRepositoryPort",
]
