"""
MCP (Model Context Protocol) Infrastructure Layer.

This module supervises external tool servers and routes tool calls to
them over a uniform request/response interface.

Architecture:
- Transport: PROCESS (stdio), EVENTSTREAM (SSE) and SOCKET (WebSocket/TCP)
- RequestCorrelator: matches responses to waiting callers by id
- ServerSession: per-server lifecycle state machine and tool set
- MCPServerRegistry: per-id serialized start/stop/restart/reload
- InvocationLogger: one audit record per tool call
- MCPCatalog / CatalogInstaller: install servers from static templates
- MCPServerHealthMonitor: periodic ping of connected servers

Domain Models (src.domain.model.mcp):
- ServerConfig, ServerState, ServerStatusSnapshot
- ToolSchema, InvocationRecord
- TransportType, TransportConfig, FramingMode
- CatalogTemplate, CatalogField, InstallResult
"""

from src.infrastructure.mcp.catalog import CatalogInstaller, MCPCatalog
from src.infrastructure.mcp.correlator import PendingRequest, RequestCorrelator
from src.infrastructure.mcp.health_monitor import MCPServerHealth, MCPServerHealthMonitor
from src.infrastructure.mcp.invocation_logger import InvocationLogger
from src.infrastructure.mcp.manager import MCPServerManager, load_server_configs
from src.infrastructure.mcp.registry import MCPServerRegistry
from src.infrastructure.mcp.session import ServerSession

# Transport layer
from src.infrastructure.mcp.transport import (
    SSETransport,
    StdioTransport,
    TcpTransport,
    TransportFactory,
    WebSocketTransport,
)

__all__ = [
    # Core
    "RequestCorrelator",
    "PendingRequest",
    "ServerSession",
    "MCPServerRegistry",
    "InvocationLogger",
    "MCPServerManager",
    "load_server_configs",
    # Catalog
    "MCPCatalog",
    "CatalogInstaller",
    # Health
    "MCPServerHealth",
    "MCPServerHealthMonitor",
    # Transport layer
    "TransportFactory",
    "StdioTransport",
    "SSETransport",
    "TcpTransport",
    "WebSocketTransport",
]
