"""
MCP domain exceptions.

Exception hierarchy for tool server management, transport, protocol and
catalog installation. Every class carries a stable ``error_type`` string,
used in invocation records and status snapshots.

Exception Hierarchy:
    MCPError (base)
    ├── MCPServerError
    │   ├── MCPServerNotFoundError      - Unknown server id
    │   ├── MCPServerAlreadyExistsError - Install conflict / duplicate id
    │   ├── MCPServerNotConnectedError  - Session not in CONNECTED state
    │   └── MCPServerDisabledError      - Start requested for a disabled server
    ├── MCPToolError
    │   ├── MCPToolNotFoundError        - Tool not in the discovered set
    │   └── MCPRemoteError              - Server reported a failure
    ├── MCPConnectError                 - Could not establish a connection
    ├── MCPTransportError               - Established connection failed
    │   └── MCPConnectionLostError      - Connection torn down under pending calls
    ├── MCPProtocolError                - Malformed or unrecognized message
    ├── MCPRequestTimeoutError          - Per-call deadline expired
    └── MCPCatalogError
        ├── MCPTemplateNotFoundError    - Unknown catalog template
        └── MCPInstallValidationError   - Missing or invalid install fields
"""

from typing import Any


class MCPError(Exception):
    """Base exception for all MCP-related errors."""

    error_type = "mcp_error"

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class MCPServerError(MCPError):
    """Base exception for MCP server errors."""

    error_type = "server_error"


class MCPServerNotFoundError(MCPServerError):
    """Raised when a server id is not configured."""

    error_type = "server_not_found"

    def __init__(self, server_id: str, message: str | None = None) -> None:
        self.server_id = server_id
        msg = message or f"MCP server '{server_id}' not found"
        super().__init__(msg, details={"server_id": server_id})


class MCPServerAlreadyExistsError(MCPServerError):
    """Raised when registering a server id, or installing a template, twice."""

    error_type = "conflict"

    def __init__(
        self,
        server_id: str,
        catalog_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.server_id = server_id
        self.catalog_id = catalog_id
        if catalog_id:
            msg = message or f"Catalog template '{catalog_id}' already installed as '{server_id}'"
        else:
            msg = message or f"MCP server '{server_id}' already exists"
        super().__init__(msg, details={"server_id": server_id, "catalog_id": catalog_id})


class MCPServerNotConnectedError(MCPServerError):
    """Raised when attempting operations on a server that is not connected."""

    error_type = "not_connected"

    def __init__(
        self,
        server_id: str,
        state: str | None = None,
        message: str | None = None,
    ) -> None:
        self.server_id = server_id
        self.state = state
        msg = message or f"MCP server '{server_id}' is not connected"
        if state and not message:
            msg += f" (state: {state})"
        super().__init__(msg, details={"server_id": server_id, "state": state})


class MCPServerDisabledError(MCPServerError):
    """Raised when starting a server whose config is disabled."""

    error_type = "disabled"

    def __init__(self, server_id: str, message: str | None = None) -> None:
        self.server_id = server_id
        msg = message or f"MCP server '{server_id}' is disabled"
        super().__init__(msg, details={"server_id": server_id})


class MCPToolError(MCPError):
    """Base exception for MCP tool errors."""

    error_type = "tool_error"


class MCPToolNotFoundError(MCPToolError):
    """Raised when a tool is not in the server's discovered tool set."""

    error_type = "unknown_tool"

    def __init__(
        self,
        tool_name: str,
        server_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.server_id = server_id
        if server_id:
            msg = message or f"Tool '{tool_name}' not found on server '{server_id}'"
        else:
            msg = message or f"Tool '{tool_name}' not found"
        super().__init__(msg, details={"tool_name": tool_name, "server_id": server_id})


class MCPRemoteError(MCPToolError):
    """
    Raised when the remote side reports a failure.

    ``payload`` is the server's error object (or the whole result for a
    tool result flagged ``isError``), passed through unmodified.
    """

    error_type = "remote_error"

    def __init__(
        self,
        payload: Any,
        method: str | None = None,
        tool_name: str | None = None,
        message: str | None = None,
    ) -> None:
        self.payload = payload
        self.method = method
        self.tool_name = tool_name
        msg = message or self._describe(payload, method, tool_name)
        super().__init__(msg, details={"payload": payload, "method": method, "tool_name": tool_name})

    @property
    def code(self) -> int | None:
        """JSON-RPC error code, when the payload carries one."""
        if isinstance(self.payload, dict) and isinstance(self.payload.get("code"), int):
            return self.payload["code"]
        return None

    @staticmethod
    def _describe(payload: Any, method: str | None, tool_name: str | None) -> str:
        target = f"Tool '{tool_name}'" if tool_name else f"Request '{method or 'unknown'}'"
        detail = None
        if isinstance(payload, dict):
            detail = payload.get("message")
            if detail is None:
                for item in payload.get("content") or []:
                    if isinstance(item, dict) and item.get("type") == "text":
                        detail = item.get("text")
                        break
        return f"{target} failed on server: {detail if detail is not None else payload}"


class MCPConnectError(MCPError):
    """Raised when a connection to a tool server cannot be established."""

    error_type = "connect_error"

    def __init__(
        self,
        endpoint: str | None = None,
        message: str | None = None,
        original_error: Exception | None = None,
        server_id: str | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.server_id = server_id
        msg = message or "MCP connection failed"
        if endpoint:
            msg += f" (endpoint: {endpoint})"
        super().__init__(
            msg,
            original_error=original_error,
            details={"endpoint": endpoint, "server_id": server_id},
        )


class MCPTransportError(MCPError):
    """Raised when an established connection fails."""

    error_type = "transport_error"


class MCPConnectionLostError(MCPTransportError):
    """Raised for every pending call when its connection is torn down."""

    error_type = "connection_lost"


class MCPProtocolError(MCPError):
    """
    Raised for a malformed or unrecognized message.

    ``recoverable`` is False when the byte stream itself can no longer be
    trusted (e.g. a broken length header) and the connection must be dropped.
    """

    error_type = "protocol_error"

    def __init__(
        self,
        message: str,
        raw: str | bytes | None = None,
        recoverable: bool = True,
        original_error: Exception | None = None,
    ) -> None:
        self.raw = raw
        self.recoverable = recoverable
        super().__init__(
            message,
            original_error=original_error,
            details={"recoverable": recoverable},
        )


class MCPRequestTimeoutError(MCPError):
    """Raised when a request's deadline expires before its response arrives."""

    error_type = "timeout"

    def __init__(
        self,
        method: str,
        timeout: float,
        request_id: int | None = None,
        message: str | None = None,
    ) -> None:
        self.method = method
        self.timeout = timeout
        self.request_id = request_id
        msg = message or f"Timeout waiting for response to {method} after {timeout:g}s"
        super().__init__(
            msg, details={"method": method, "timeout": timeout, "request_id": request_id}
        )


class MCPCatalogError(MCPError):
    """Base exception for catalog installation errors."""

    error_type = "catalog_error"


class MCPTemplateNotFoundError(MCPCatalogError):
    """Raised when a catalog template id is unknown."""

    error_type = "template_not_found"

    def __init__(self, template_id: str, message: str | None = None) -> None:
        self.template_id = template_id
        msg = message or f"Catalog template '{template_id}' not found"
        super().__init__(msg, details={"template_id": template_id})


class MCPInstallValidationError(MCPCatalogError):
    """Raised when user-supplied install fields are missing or invalid."""

    error_type = "validation_error"

    def __init__(
        self,
        template_id: str,
        missing_fields: list[str] | None = None,
        message: str | None = None,
    ) -> None:
        self.template_id = template_id
        self.missing_fields = missing_fields or []
        if message is None:
            if self.missing_fields:
                message = (
                    f"Missing required fields for '{template_id}': "
                    f"{', '.join(self.missing_fields)}"
                )
            else:
                message = f"Invalid install fields for '{template_id}'"
        super().__init__(
            message,
            details={"template_id": template_id, "missing_fields": self.missing_fields},
        )
