"""
MCP Transport Domain Models.

Defines transport kinds, framing modes and the transport configuration
value object handed to a transport adapter when a connection is opened.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlsplit


class TransportType(str, Enum):
    """Tool server transport kinds."""

    PROCESS = "process"  # spawned child, stdin/stdout framing
    EVENTSTREAM = "eventstream"  # HTTP event stream + companion POST endpoint
    SOCKET = "socket"  # persistent bidirectional socket (ws:// or tcp://)

    @classmethod
    def normalize(cls, value: "str | TransportType") -> "TransportType":
        """Normalize a transport type string (including common aliases) to the enum."""
        if isinstance(value, TransportType):
            return value
        normalized = str(value).lower().strip()
        alias = _TRANSPORT_ALIASES.get(normalized)
        if alias is not None:
            return alias
        return cls(normalized)


_TRANSPORT_ALIASES = {
    "stdio": TransportType.PROCESS,
    "local": TransportType.PROCESS,
    "sse": TransportType.EVENTSTREAM,
    "event_stream": TransportType.EVENTSTREAM,
    "event-stream": TransportType.EVENTSTREAM,
    "websocket": TransportType.SOCKET,
    "ws": TransportType.SOCKET,
    "tcp": TransportType.SOCKET,
}

SOCKET_SCHEMES = ("ws", "wss", "tcp")
EVENTSTREAM_SCHEMES = ("http", "https")


class FramingMode(str, Enum):
    """How messages are delimited on a byte stream (PROCESS and tcp:// SOCKET)."""

    NEWLINE = "newline"
    CONTENT_LENGTH = "content-length"


@dataclass(frozen=True)
class TransportConfig:
    """
    Transport configuration value object.

    Contains everything a transport adapter needs to open one connection.
    Derived from a ServerConfig; never persisted on its own.
    """

    transport_type: TransportType

    # PROCESS
    command: str | None = None
    args: tuple[str, ...] = ()
    environment: dict[str, str] = field(default_factory=dict)

    # EVENTSTREAM / SOCKET
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    framing: FramingMode = FramingMode.NEWLINE
    timeout: int = 30000  # milliseconds, bounds open()
    heartbeat_interval: int | None = None  # seconds, websocket only

    def __post_init__(self) -> None:
        """Validate configuration based on transport type."""
        if self.transport_type == TransportType.PROCESS:
            if not self.command:
                raise ValueError("Command is required for process transport")
            return

        if not self.url:
            raise ValueError(f"URL is required for {self.transport_type.value} transport")

        scheme = urlsplit(self.url).scheme.lower()
        if self.transport_type == TransportType.EVENTSTREAM and scheme not in EVENTSTREAM_SCHEMES:
            raise ValueError(f"Event stream URL must be http(s), got '{self.url}'")
        if self.transport_type == TransportType.SOCKET and scheme not in SOCKET_SCHEMES:
            raise ValueError(f"Socket URL must use one of {SOCKET_SCHEMES}, got '{self.url}'")

    @property
    def timeout_seconds(self) -> float:
        """Get open timeout in seconds."""
        return self.timeout / 1000.0

    @property
    def scheme(self) -> str | None:
        """URL scheme for remote transports."""
        return urlsplit(self.url).scheme.lower() if self.url else None

    @property
    def endpoint(self) -> str:
        """Human readable endpoint used in logs and errors."""
        if self.transport_type == TransportType.PROCESS:
            return " ".join([self.command or "", *self.args]).strip()
        return self.url or ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "type": self.transport_type.value,
            "command": self.command,
            "args": list(self.args),
            "environment": dict(self.environment),
            "url": self.url,
            "headers": dict(self.headers),
            "framing": self.framing.value,
            "timeout": self.timeout,
            "heartbeat_interval": self.heartbeat_interval,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransportConfig":
        """Create from dictionary."""
        return cls(
            transport_type=TransportType.normalize(data.get("type", "process")),
            command=data.get("command"),
            args=tuple(data.get("args") or ()),
            environment=dict(data.get("environment") or {}),
            url=data.get("url"),
            headers=dict(data.get("headers") or {}),
            framing=FramingMode(data.get("framing", FramingMode.NEWLINE.value)),
            timeout=data.get("timeout", 30000),
            heartbeat_interval=data.get("heartbeat_interval"),
        )

    @classmethod
    def process(
        cls,
        command: str,
        args: list[str] | tuple[str, ...] = (),
        environment: dict[str, str] | None = None,
        framing: FramingMode = FramingMode.NEWLINE,
        timeout: int = 30000,
    ) -> "TransportConfig":
        """Create a child process transport config."""
        return cls(
            transport_type=TransportType.PROCESS,
            command=command,
            args=tuple(args),
            environment=environment or {},
            framing=framing,
            timeout=timeout,
        )

    @classmethod
    def eventstream(
        cls,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: int = 30000,
    ) -> "TransportConfig":
        """Create an HTTP event stream transport config."""
        return cls(
            transport_type=TransportType.EVENTSTREAM,
            url=url,
            headers=headers or {},
            timeout=timeout,
        )

    @classmethod
    def socket(
        cls,
        url: str,
        headers: dict[str, str] | None = None,
        framing: FramingMode = FramingMode.NEWLINE,
        timeout: int = 30000,
        heartbeat_interval: int | None = None,
    ) -> "TransportConfig":
        """Create a socket transport config (ws://, wss:// or tcp://)."""
        return cls(
            transport_type=TransportType.SOCKET,
            url=url,
            headers=headers or {},
            framing=framing,
            timeout=timeout,
            heartbeat_interval=heartbeat_interval,
        )
