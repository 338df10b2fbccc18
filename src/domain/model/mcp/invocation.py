"""
Invocation record domain model.

One append-only audit entry per tool call, whatever its outcome.
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any


def digest_arguments(arguments: Any) -> str:
    """Stable sha256 digest of tool arguments (canonical JSON, sorted keys)."""
    canonical = json.dumps(
        arguments if arguments is not None else {},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class InvocationRecord:
    """Write-once record of a single tool invocation."""

    id: str
    server_id: str
    tool_name: str
    argument_digest: str
    success: bool
    duration_ms: float
    timestamp: datetime
    error_type: str | None = None
    error_summary: str | None = None
    arguments_preview: str | None = None
    result_preview: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for log readers."""
        return {
            "id": self.id,
            "server_id": self.server_id,
            "tool_name": self.tool_name,
            "argument_digest": self.argument_digest,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
            "error_type": self.error_type,
            "error_summary": self.error_summary,
            "arguments_preview": self.arguments_preview,
            "result_preview": self.result_preview,
        }
