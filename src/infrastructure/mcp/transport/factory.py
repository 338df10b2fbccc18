"""
Transport factory for MCP.

Creates the transport variant for a configuration. The variant is chosen
once, from the transport kind and (for sockets) the URL scheme.
"""

import logging

from src.domain.exceptions.mcp import MCPTransportError
from src.domain.model.mcp.transport import TransportConfig, TransportType
from src.infrastructure.mcp.transport.base import BaseTransport

logger = logging.getLogger(__name__)


class TransportFactory:
    """
    Factory for creating MCP transport instances.

    Variants are registered by name: ``process``, ``eventstream``,
    ``websocket`` and ``tcp``.
    """

    _transports: dict[str, type[BaseTransport]] = {}

    @classmethod
    def register(cls, variant: str, transport_class: type[BaseTransport]) -> None:
        """
        Register a transport implementation.

        Args:
            variant: Variant name.
            transport_class: Transport class implementing BaseTransport.
        """
        cls._transports[variant] = transport_class
        logger.debug(f"Registered transport: {variant} -> {transport_class.__name__}")

    @classmethod
    def variant_for(cls, config: TransportConfig) -> str:
        """Resolve the variant name for a configuration."""
        if config.transport_type == TransportType.PROCESS:
            return "process"
        if config.transport_type == TransportType.EVENTSTREAM:
            return "eventstream"
        if config.scheme in ("ws", "wss"):
            return "websocket"
        if config.scheme == "tcp":
            return "tcp"
        raise MCPTransportError(f"Unsupported socket URL scheme: {config.scheme}")

    @classmethod
    def create(cls, config: TransportConfig, label: str | None = None) -> BaseTransport:
        """
        Create a transport instance from configuration.

        Args:
            config: Transport configuration.
            label: Name used in log lines (usually the server id).

        Returns:
            Unopened transport instance.

        Raises:
            MCPTransportError: If the transport kind is not supported.
        """
        variant = cls.variant_for(config)
        transport_class = cls._transports.get(variant)

        if not transport_class:
            cls._lazy_register()
            transport_class = cls._transports.get(variant)

        if not transport_class:
            raise MCPTransportError(f"Unsupported transport variant: {variant}")

        return transport_class(config, label)

    @classmethod
    def supports(cls, transport_type: str) -> bool:
        """
        Check if a transport type is supported.

        Args:
            transport_type: Transport type string (aliases accepted).
        """
        try:
            TransportType.normalize(transport_type)
        except ValueError:
            return False
        return True

    @classmethod
    def _lazy_register(cls) -> None:
        """Lazily register built-in transports."""
        if all(v in cls._transports for v in ("process", "eventstream", "websocket", "tcp")):
            return

        from src.infrastructure.mcp.transport.sse import SSETransport
        from src.infrastructure.mcp.transport.stdio import StdioTransport
        from src.infrastructure.mcp.transport.tcp import TcpTransport
        from src.infrastructure.mcp.transport.websocket import WebSocketTransport

        builtins = {
            "process": StdioTransport,
            "eventstream": SSETransport,
            "websocket": WebSocketTransport,
            "tcp": TcpTransport,
        }
        for variant, transport_class in builtins.items():
            if variant not in cls._transports:
                cls.register(variant, transport_class)

    @classmethod
    def get_supported_variants(cls) -> list[str]:
        """Get list of registered variant names."""
        cls._lazy_register()
        return list(cls._transports.keys())
