"""
Factory functions for creating the tool server manager.

This module wires the registry, invocation logger, catalog installer and
health monitor from application settings.
"""

import logging
from typing import Optional

from src.configuration.config import get_settings
from src.domain.model.mcp.server import ServerConfig
from src.domain.ports.repositories.mcp_invocation_log_repository import (
    MCPInvocationLogRepositoryPort,
)
from src.domain.ports.repositories.mcp_server_repository import MCPServerRepositoryPort
from src.infrastructure.mcp.session import TransportBuilder

logger = logging.getLogger(__name__)


def create_mcp_manager(
    repository: Optional[MCPServerRepositoryPort] = None,
    invocation_log_repository: Optional[MCPInvocationLogRepositoryPort] = None,
    transport_factory: Optional[TransportBuilder] = None,
    configs: Optional[list[ServerConfig]] = None,
):
    """
    Create a fully wired MCPServerManager.

    Args:
        repository: Server config store (in-memory if omitted)
        invocation_log_repository: Invocation record sink (in-memory if omitted)
        transport_factory: Transport builder override, mainly for tests
        configs: Initial configs for a new in-memory store; when omitted,
            configs are read from MCP_SERVERS_FILE if set

    Returns:
        Configured MCPServerManager instance
    """
    from src.infrastructure.adapters.secondary.persistence.in_memory_mcp_invocation_log_repository import (  # noqa: E501
        InMemoryMCPInvocationLogRepository,
    )
    from src.infrastructure.adapters.secondary.persistence.in_memory_mcp_server_repository import (  # noqa: E501
        InMemoryMCPServerRepository,
    )
    from src.infrastructure.mcp.catalog import CatalogInstaller, MCPCatalog
    from src.infrastructure.mcp.health_monitor import MCPServerHealthMonitor
    from src.infrastructure.mcp.invocation_logger import InvocationLogger
    from src.infrastructure.mcp.manager import MCPServerManager, load_server_configs
    from src.infrastructure.mcp.registry import MCPServerRegistry

    settings = get_settings()

    if repository is None:
        if configs is None and settings.mcp_servers_file:
            configs = load_server_configs(settings.mcp_servers_file)
            logger.info(f"Loaded {len(configs)} server config(s) from {settings.mcp_servers_file}")
        repository = InMemoryMCPServerRepository(configs)

    if invocation_log_repository is None:
        invocation_log_repository = InMemoryMCPInvocationLogRepository(
            max_records=settings.mcp_invocation_log_max_records
        )

    invocation_logger = InvocationLogger(
        invocation_log_repository, preview_chars=settings.mcp_log_preview_chars
    )
    registry = MCPServerRegistry(
        repository,
        invocation_logger=invocation_logger,
        transport_factory=transport_factory,
        request_timeout=settings.mcp_request_timeout,
        connect_timeout=settings.mcp_connect_timeout,
    )
    catalog = MCPCatalog()

    health_monitor = None
    if settings.mcp_health_check_enabled:
        health_monitor = MCPServerHealthMonitor(
            registry,
            check_interval_seconds=settings.mcp_health_check_interval,
            health_check_timeout=settings.mcp_health_check_timeout,
        )

    manager = MCPServerManager(
        registry=registry,
        invocation_logger=invocation_logger,
        catalog=catalog,
        installer=CatalogInstaller(catalog, registry),
        health_monitor=health_monitor,
    )
    logger.info("MCPServerManager created successfully")
    return manager
