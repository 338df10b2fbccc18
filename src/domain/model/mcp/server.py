"""
MCP Server Domain Models.

Defines the server configuration, lifecycle state and status snapshot
value objects.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from src.domain.model.mcp.transport import FramingMode, TransportConfig, TransportType


class ServerState(str, Enum):
    """Tool server session lifecycle states."""

    DISABLED = "disabled"
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class ServerConfig:
    """
    Immutable description of how to reach one tool server.

    A change to any field requires a reload, which replaces the session
    built from the previous value.
    """

    id: str
    name: str
    transport_type: TransportType = TransportType.PROCESS
    enabled: bool = True
    description: str | None = None

    # PROCESS transport
    command: str | None = None
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)

    # EVENTSTREAM / SOCKET transport
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    framing: FramingMode = FramingMode.NEWLINE
    request_timeout: float | None = None  # seconds, None uses the settings default

    # Catalog provenance
    catalog_id: str | None = None
    catalog_meta: dict[str, Any] = field(default_factory=dict)

    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate identity and transport parameters."""
        if not self.id:
            raise ValueError("Server id is required")
        if not self.name:
            raise ValueError("Server name is required")
        # Raises ValueError on missing command/url
        self.to_transport_config()

    def to_transport_config(self, timeout_ms: int = 30000) -> TransportConfig:
        """Convert to TransportConfig value object."""
        return TransportConfig(
            transport_type=self.transport_type,
            command=self.command,
            args=tuple(self.args),
            environment=dict(self.env),
            url=self.url,
            headers=dict(self.headers),
            framing=self.framing,
            timeout=timeout_ms,
        )

    def with_enabled(self, enabled: bool) -> "ServerConfig":
        """Return a copy with the enabled flag changed."""
        return replace(self, enabled=enabled)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "transport_type": self.transport_type.value,
            "enabled": self.enabled,
            "description": self.description,
            "command": self.command,
            "args": list(self.args),
            "env": dict(self.env),
            "url": self.url,
            "headers": dict(self.headers),
            "framing": self.framing.value,
            "request_timeout": self.request_timeout,
            "catalog_id": self.catalog_id,
            "catalog_meta": dict(self.catalog_meta),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerConfig":
        """Create from dictionary."""
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            transport_type=TransportType.normalize(data.get("transport_type", "process")),
            enabled=data.get("enabled", True),
            description=data.get("description"),
            command=data.get("command"),
            args=tuple(data.get("args") or ()),
            env=dict(data.get("env") or {}),
            url=data.get("url"),
            headers=dict(data.get("headers") or {}),
            framing=FramingMode(data.get("framing", FramingMode.NEWLINE.value)),
            request_timeout=data.get("request_timeout"),
            catalog_id=data.get("catalog_id"),
            catalog_meta=dict(data.get("catalog_meta") or {}),
            created_at=created_at or datetime.now(UTC),
        )


@dataclass(frozen=True)
class ServerStatusSnapshot:
    """
    Point-in-time copy of one session's runtime status.

    Immutable so callers can keep it around without observing later
    transitions of the live session.
    """

    server_id: str
    name: str
    transport_type: TransportType
    state: ServerState
    enabled: bool = True
    last_error: str | None = None
    error_type: str | None = None
    connected_since: datetime | None = None
    tool_count: int = 0
    tools_stale: bool = False
    discovery_error: str | None = None
    pending_requests: int = 0
    pid: int | None = None
    diagnostics: tuple[str, ...] = ()
    server_info: dict[str, Any] | None = None

    @property
    def is_connected(self) -> bool:
        """Check if the server was connected when the snapshot was taken."""
        return self.state == ServerState.CONNECTED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "server_id": self.server_id,
            "name": self.name,
            "transport_type": self.transport_type.value,
            "state": self.state.value,
            "enabled": self.enabled,
            "last_error": self.last_error,
            "error_type": self.error_type,
            "connected_since": self.connected_since.isoformat() if self.connected_since else None,
            "tool_count": self.tool_count,
            "tools_stale": self.tools_stale,
            "discovery_error": self.discovery_error,
            "pending_requests": self.pending_requests,
            "pid": self.pid,
            "diagnostics": list(self.diagnostics),
            "server_info": self.server_info,
        }
