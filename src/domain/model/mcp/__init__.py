"""
Tool Server Domain Models.

This module defines the domain entities and value objects shared by the
transports, sessions, registry and catalog installer.

Key models:
- ServerConfig: how to reach one tool server
- ServerStatusSnapshot: frozen runtime status copy
- ToolSchema: one discovered tool
- InvocationRecord: audit entry for a tool call
- CatalogTemplate: installable server template
"""

from src.domain.model.mcp.catalog import (
    CatalogCategory,
    CatalogField,
    CatalogTemplate,
    InstallResult,
)
from src.domain.model.mcp.invocation import InvocationRecord, digest_arguments
from src.domain.model.mcp.server import ServerConfig, ServerState, ServerStatusSnapshot
from src.domain.model.mcp.tool import ToolSchema
from src.domain.model.mcp.transport import FramingMode, TransportConfig, TransportType

__all__ = [
    # Server
    "ServerConfig",
    "ServerState",
    "ServerStatusSnapshot",
    # Tool
    "ToolSchema",
    # Invocation
    "InvocationRecord",
    "digest_arguments",
    # Catalog
    "CatalogCategory",
    "CatalogField",
    "CatalogTemplate",
    "InstallResult",
    # Transport
    "TransportType",
    "TransportConfig",
    "FramingMode",
]
