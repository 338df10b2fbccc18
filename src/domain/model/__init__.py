# flake8: noqa

# MCP domain models
from src.domain.model.mcp.server import ServerConfig, ServerState, ServerStatusSnapshot
from src.domain.model.mcp.tool import ToolSchema
from src.domain.model.mcp.invocation import InvocationRecord
from src.domain.model.mcp.transport import FramingMode, TransportConfig, TransportType
from src.domain.model.mcp.catalog import CatalogTemplate, InstallResult

__all__ = [
    # MCP
    "ServerConfig",
    "ServerState",
    "ServerStatusSnapshot",
    "ToolSchema",
    "InvocationRecord",
    "TransportType",
    "TransportConfig",
    "FramingMode",
    "CatalogTemplate",
    "InstallResult",
]
