"""
MCP Tool Domain Models.

Defines the tool schema value object reported by a server during discovery.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolSchema:
    """
    Tool schema definition.

    Describes a tool's interface: its name (unique within one server),
    description and JSON Schema for input parameters. The input schema is
    carried for display and validation by callers; it is never interpreted
    here.
    """

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (protocol format)."""
        result: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
        if self.meta:
            result["_meta"] = self.meta
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolSchema":
        """
        Create from a tools/list entry.

        Accepts both the wire key ``inputSchema`` and ``input_schema``.

        Raises:
            ValueError: If the entry is not an object or has no name.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Tool entry must be an object, got {type(data).__name__}")
        name = data.get("name")
        if not name or not isinstance(name, str):
            raise ValueError("Tool entry is missing a name")

        input_schema = data.get("inputSchema", data.get("input_schema")) or {}
        meta = data.get("_meta")
        return cls(
            name=name,
            description=data.get("description") or "",
            input_schema=input_schema if isinstance(input_schema, dict) else {},
            meta=meta if isinstance(meta, dict) else None,
        )
