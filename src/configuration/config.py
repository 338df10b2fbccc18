"""Configuration management for the tool server manager."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Runtime Settings
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    mcp_servers_file: str | None = Field(
        default=None, alias="MCP_SERVERS_FILE"
    )  # JSON file of server configs loaded at startup

    # MCP Request Settings
    mcp_auto_start: bool = Field(default=True, alias="MCP_AUTO_START")  # start enabled servers
    mcp_request_timeout: float = Field(default=30.0, gt=0, alias="MCP_REQUEST_TIMEOUT")  # seconds
    mcp_connect_timeout: float = Field(default=30.0, gt=0, alias="MCP_CONNECT_TIMEOUT")  # seconds
    mcp_stop_timeout: float = Field(
        default=5.0, gt=0, alias="MCP_STOP_TIMEOUT"
    )  # seconds before a child process is killed
    mcp_discovery_max_pages: int = Field(default=20, ge=1, alias="MCP_DISCOVERY_MAX_PAGES")

    # MCP Handshake Settings
    mcp_protocol_version: str = Field(default="2024-11-05", alias="MCP_PROTOCOL_VERSION")
    mcp_client_name: str = Field(default="toolserver-manager", alias="MCP_CLIENT_NAME")
    mcp_client_version: str = Field(default="1.0.0", alias="MCP_CLIENT_VERSION")

    # MCP Transport Settings
    mcp_websocket_heartbeat: int | None = Field(
        default=None, alias="MCP_WEBSOCKET_HEARTBEAT"
    )  # seconds; None disables heartbeat (prevents PONG timeout killing long tool calls)
    mcp_stream_limit: int = Field(
        default=10 * 1024 * 1024, alias="MCP_STREAM_LIMIT"
    )  # bytes; large tools/list responses exceed the asyncio default
    mcp_sse_read_timeout: float = Field(
        default=300.0, gt=0, alias="MCP_SSE_READ_TIMEOUT"
    )  # seconds without an event before the stream counts as dead
    mcp_stderr_tail_lines: int = Field(default=50, ge=0, alias="MCP_STDERR_TAIL_LINES")

    # MCP Invocation Log Settings
    mcp_log_preview_chars: int = Field(default=500, ge=0, alias="MCP_LOG_PREVIEW_CHARS")
    mcp_invocation_log_max_records: int = Field(
        default=10000, ge=1, alias="MCP_INVOCATION_LOG_MAX_RECORDS"
    )
    mcp_invocation_log_retention_days: int = Field(
        default=7, ge=1, alias="MCP_INVOCATION_LOG_RETENTION_DAYS"
    )

    # MCP Health Monitor Settings
    mcp_health_check_enabled: bool = Field(default=True, alias="MCP_HEALTH_CHECK_ENABLED")
    mcp_health_check_interval: float = Field(
        default=60.0, gt=0, alias="MCP_HEALTH_CHECK_INTERVAL"
    )  # seconds
    mcp_health_check_timeout: float = Field(default=10.0, gt=0, alias="MCP_HEALTH_CHECK_TIMEOUT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def mcp_connect_timeout_ms(self) -> int:
        """Connect timeout in milliseconds, the unit TransportConfig uses."""
        return int(self.mcp_connect_timeout * 1000)

    @property
    def mcp_client_info(self) -> dict[str, str]:
        """clientInfo object sent in the initialize handshake."""
        return {"name": self.mcp_client_name, "version": self.mcp_client_version}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
