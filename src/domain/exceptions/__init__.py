"""
Domain exceptions for the tool server manager.

Every exception carries a stable ``error_type`` string used in status
snapshots and invocation records.
"""

from src.domain.exceptions.mcp import (
    MCPCatalogError,
    MCPConnectError,
    MCPConnectionLostError,
    MCPError,
    MCPInstallValidationError,
    MCPProtocolError,
    MCPRemoteError,
    MCPRequestTimeoutError,
    MCPServerAlreadyExistsError,
    MCPServerDisabledError,
    MCPServerError,
    MCPServerNotConnectedError,
    MCPServerNotFoundError,
    MCPTemplateNotFoundError,
    MCPToolError,
    MCPToolNotFoundError,
    MCPTransportError,
)

__all__ = [
    "MCPError",
    "MCPServerError",
    "MCPServerNotFoundError",
    "MCPServerAlreadyExistsError",
    "MCPServerNotConnectedError",
    "MCPServerDisabledError",
    "MCPToolError",
    "MCPToolNotFoundError",
    "MCPRemoteError",
    "MCPConnectError",
    "MCPTransportError",
    "MCPConnectionLostError",
    "MCPProtocolError",
    "MCPRequestTimeoutError",
    "MCPCatalogError",
    "MCPTemplateNotFoundError",
    "MCPInstallValidationError",
]
