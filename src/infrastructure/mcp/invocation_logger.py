"""Tool Invocation Logger.

Builds one InvocationRecord per tool call and hands it to the record
sink. The logger is a pure sink: a failing sink is logged and never
changes the outcome of the call that produced the record.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from src.configuration.config import get_settings
from src.domain.model.mcp.invocation import InvocationRecord, digest_arguments
from src.domain.ports.repositories.mcp_invocation_log_repository import (
    MCPInvocationLogRepositoryPort,
)
from src.infrastructure.adapters.secondary.persistence.in_memory_mcp_invocation_log_repository import (  # noqa: E501
    InMemoryMCPInvocationLogRepository,
)

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "...[truncated]"


def truncate_preview(value: Any, max_chars: int) -> str | None:
    """Render a value as compact JSON text, cut to ``max_chars``."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
        except (TypeError, ValueError):
            text = repr(value)
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


class InvocationLogger:
    """Records every tool invocation for audit.

    Usage:
        invocation_logger = InvocationLogger(repository)
        await invocation_logger.record(
            server_id="github",
            tool_name="list_issues",
            arguments={"repo": "x"},
            duration_ms=12.5,
            result={"content": []},
        )
    """

    def __init__(
        self,
        repository: MCPInvocationLogRepositoryPort | None = None,
        preview_chars: int | None = None,
    ) -> None:
        settings = get_settings()
        if repository is None:
            repository = InMemoryMCPInvocationLogRepository(
                max_records=settings.mcp_invocation_log_max_records
            )
        self._repository = repository
        self._preview_chars = (
            preview_chars if preview_chars is not None else settings.mcp_log_preview_chars
        )

    @property
    def repository(self) -> MCPInvocationLogRepositoryPort:
        return self._repository

    async def record(
        self,
        server_id: str,
        tool_name: str,
        arguments: Any,
        duration_ms: float,
        result: Any = None,
        error: BaseException | None = None,
    ) -> InvocationRecord:
        """Build and store the record for one call.

        Args:
            server_id: Server the call was addressed to.
            tool_name: Tool name as requested by the caller.
            arguments: Call arguments (digested and previewed).
            duration_ms: Wall time of the call.
            result: Tool result on success.
            error: Failure, if the call failed.

        Returns:
            The stored InvocationRecord.
        """
        success = error is None
        record = InvocationRecord(
            id=str(uuid.uuid4()),
            server_id=server_id,
            tool_name=tool_name,
            argument_digest=digest_arguments(arguments),
            success=success,
            duration_ms=round(duration_ms, 3),
            timestamp=datetime.now(UTC),
            error_type=None if success else _error_type(error),
            error_summary=None if success else truncate_preview(str(error), self._preview_chars),
            arguments_preview=truncate_preview(arguments, self._preview_chars),
            result_preview=truncate_preview(result, self._preview_chars) if success else None,
        )

        if success:
            logger.info(f"Tool call {server_id}/{tool_name} succeeded in {record.duration_ms}ms")
        else:
            logger.warning(
                f"Tool call {server_id}/{tool_name} failed in {record.duration_ms}ms: "
                f"[{record.error_type}] {record.error_summary}"
            )

        try:
            await self._repository.append(record)
        except Exception as e:
            logger.error(f"Failed to store invocation record {record.id}: {e}")
        return record

    async def query(
        self,
        server_id: str | None = None,
        tool_name: str | None = None,
        success: bool | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[InvocationRecord]:
        """List records, newest first."""
        return await self._repository.query(
            server_id=server_id,
            tool_name=tool_name,
            success=success,
            limit=limit,
            offset=offset,
        )

    async def count(
        self,
        server_id: str | None = None,
        tool_name: str | None = None,
        success: bool | None = None,
    ) -> int:
        return await self._repository.count(
            server_id=server_id, tool_name=tool_name, success=success
        )

    async def cleanup(self, days: int | None = None) -> int:
        """Delete records older than ``days`` (default: configured retention)."""
        retention = days if days is not None else get_settings().mcp_invocation_log_retention_days
        cutoff = datetime.now(UTC) - timedelta(days=retention)
        deleted = await self._repository.delete_older_than(cutoff)
        logger.info(f"Deleted {deleted} invocation record(s) older than {retention} day(s)")
        return deleted


def _error_type(error: BaseException | None) -> str:
    error_type = getattr(error, "error_type", None)
    if isinstance(error_type, str):
        return error_type
    return type(error).__name__
