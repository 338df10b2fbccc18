"""
MCP Transport Layer.

This package provides transport implementations for tool server
communication:
- stdio: Subprocess communication (local tool servers)
- sse: HTTP event stream plus companion POST endpoint
- websocket: WebSocket bidirectional communication
- tcp: Raw TCP socket with stdio framing

All transports implement the MCPTransportPort interface from the domain layer.
"""

from src.infrastructure.mcp.transport.base import BaseTransport
from src.infrastructure.mcp.transport.factory import TransportFactory
from src.infrastructure.mcp.transport.sse import SSETransport
from src.infrastructure.mcp.transport.stdio import StdioTransport
from src.infrastructure.mcp.transport.tcp import TcpTransport
from src.infrastructure.mcp.transport.websocket import WebSocketTransport

__all__ = [
    "BaseTransport",
    "TransportFactory",
    "StdioTransport",
    "SSETransport",
    "TcpTransport",
    "WebSocketTransport",
]
