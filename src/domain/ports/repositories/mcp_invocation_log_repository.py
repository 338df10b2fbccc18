"""
MCPInvocationLogRepository port for tool call audit records.

Append-only sink for InvocationRecords plus the read side used by log
readers and periodic cleanup.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.domain.model.mcp.invocation import InvocationRecord


class MCPInvocationLogRepositoryPort(ABC):
    """Repository port for invocation records."""

    @abstractmethod
    async def append(self, record: "InvocationRecord") -> None:
        """Store one record. Records are never updated."""

    @abstractmethod
    async def query(
        self,
        server_id: str | None = None,
        tool_name: str | None = None,
        success: bool | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list["InvocationRecord"]:
        """
        List records, newest first.

        Args:
            server_id: Optional server filter
            tool_name: Optional tool filter
            success: Optional outcome filter
            limit: Maximum records to return
            offset: Records to skip
        """

    @abstractmethod
    async def count(
        self,
        server_id: str | None = None,
        tool_name: str | None = None,
        success: bool | None = None,
    ) -> int:
        """Count records matching the filters."""

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete records with a timestamp before ``cutoff``.

        Returns:
            Number of deleted records
        """
