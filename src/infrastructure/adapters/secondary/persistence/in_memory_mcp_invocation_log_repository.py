"""
In-memory implementation of MCPInvocationLogRepository.

Keeps the most recent records in a bounded deque; the oldest records are
evicted once ``max_records`` is reached.
"""

from collections import deque
from datetime import datetime

from src.domain.model.mcp.invocation import InvocationRecord
from src.domain.ports.repositories.mcp_invocation_log_repository import (
    MCPInvocationLogRepositoryPort,
)


class InMemoryMCPInvocationLogRepository(MCPInvocationLogRepositoryPort):
    """Bounded append-only record store."""

    def __init__(self, max_records: int = 10000) -> None:
        self._records: deque[InvocationRecord] = deque(maxlen=max_records)

    async def append(self, record: InvocationRecord) -> None:
        self._records.append(record)

    async def query(
        self,
        server_id: str | None = None,
        tool_name: str | None = None,
        success: bool | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[InvocationRecord]:
        matches = self._filter(server_id, tool_name, success)
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[offset : offset + limit]

    async def count(
        self,
        server_id: str | None = None,
        tool_name: str | None = None,
        success: bool | None = None,
    ) -> int:
        return len(self._filter(server_id, tool_name, success))

    async def delete_older_than(self, cutoff: datetime) -> int:
        kept = [r for r in self._records if r.timestamp >= cutoff]
        deleted = len(self._records) - len(kept)
        self._records.clear()
        self._records.extend(kept)
        return deleted

    def _filter(
        self,
        server_id: str | None,
        tool_name: str | None,
        success: bool | None,
    ) -> list[InvocationRecord]:
        return [
            r
            for r in self._records
            if (server_id is None or r.server_id == server_id)
            and (tool_name is None or r.tool_name == tool_name)
            and (success is None or r.success == success)
        ]

    def __len__(self) -> int:
        return len(self._records)
