"""Unit tests for the in-memory MCP repositories."""

from datetime import UTC, datetime, timedelta

import pytest

from src.domain.model.mcp.invocation import InvocationRecord
from src.domain.model.mcp.tool import ToolSchema
from src.infrastructure.adapters.secondary.persistence.in_memory_mcp_invocation_log_repository import (  # noqa: E501
    InMemoryMCPInvocationLogRepository,
)
from src.infrastructure.adapters.secondary.persistence.in_memory_mcp_server_repository import (
    InMemoryMCPServerRepository,
)
from src.tests.fixtures.mcp_fakes import make_server_config


def _record(record_id: str, age_minutes: int = 0, **overrides) -> InvocationRecord:
    params = {
        "id": record_id,
        "server_id": "srv",
        "tool_name": "echo",
        "argument_digest": "d",
        "success": True,
        "duration_ms": 1.0,
        "timestamp": datetime.now(UTC) - timedelta(minutes=age_minutes),
    }
    params.update(overrides)
    return InvocationRecord(**params)


@pytest.mark.unit
class TestInMemoryMCPServerRepository:
    """Tests for InMemoryMCPServerRepository."""

    async def test_save_and_get(self):
        """Test configs are stored by id and replaced on save."""
        repository = InMemoryMCPServerRepository()
        config = make_server_config("a")

        await repository.save(config)
        await repository.save(config.with_enabled(False))

        stored = await repository.get_by_id("a")
        assert stored.enabled is False
        assert len(repository) == 1
        assert await repository.get_by_id("missing") is None

    async def test_list_enabled_only(self):
        """Test enabled filtering."""
        repository = InMemoryMCPServerRepository(
            [make_server_config("a"), make_server_config("b", enabled=False)]
        )

        assert {c.id for c in await repository.list_all()} == {"a", "b"}
        assert [c.id for c in await repository.list_all(enabled_only=True)] == ["a"]

    async def test_get_by_catalog_id(self):
        """Test lookup by catalog template id."""
        repository = InMemoryMCPServerRepository(
            [make_server_config("github", catalog_id="github")]
        )

        assert (await repository.get_by_catalog_id("github")).id == "github"
        assert await repository.get_by_catalog_id("slack") is None

    async def test_discovered_tools(self):
        """Test tool sets are stored per server and survive config saves."""
        repository = InMemoryMCPServerRepository([make_server_config("a")])
        tools = [ToolSchema(name="echo")]

        assert await repository.update_discovered_tools("a", tools, datetime.now(UTC)) is True
        await repository.save(make_server_config("a", description="updated"))

        assert await repository.get_discovered_tools("a") == tools
        assert await repository.update_discovered_tools("b", tools, datetime.now(UTC)) is False
        assert await repository.get_discovered_tools("b") == []

    async def test_delete(self):
        """Test delete reports whether anything was removed."""
        repository = InMemoryMCPServerRepository([make_server_config("a")])

        assert await repository.delete("a") is True
        assert await repository.delete("a") is False


@pytest.mark.unit
class TestInMemoryMCPInvocationLogRepository:
    """Tests for InMemoryMCPInvocationLogRepository."""

    async def test_query_newest_first_with_paging(self):
        """Test ordering and offset/limit."""
        repository = InMemoryMCPInvocationLogRepository()
        for i, age in enumerate([3, 1, 2]):
            await repository.append(_record(f"r{i}", age_minutes=age))

        records = await repository.query()
        assert [r.id for r in records] == ["r1", "r2", "r0"]
        assert [r.id for r in await repository.query(limit=1, offset=1)] == ["r2"]

    async def test_bounded(self):
        """Test the oldest records are evicted beyond max_records."""
        repository = InMemoryMCPInvocationLogRepository(max_records=2)
        for i in range(3):
            await repository.append(_record(f"r{i}", age_minutes=10 - i))

        assert len(repository) == 2
        assert {r.id for r in await repository.query()} == {"r1", "r2"}

    async def test_filters(self):
        """Test filtering by server, tool and outcome."""
        repository = InMemoryMCPInvocationLogRepository()
        await repository.append(_record("a", server_id="x"))
        await repository.append(_record("b", server_id="y", success=False))
        await repository.append(_record("c", server_id="y", tool_name="other"))

        assert await repository.count(server_id="y") == 2
        assert await repository.count(success=False) == 1
        assert [r.id for r in await repository.query(tool_name="other")] == ["c"]

    async def test_delete_older_than(self):
        """Test retention cleanup."""
        repository = InMemoryMCPInvocationLogRepository()
        await repository.append(_record("old", age_minutes=60 * 24 * 10))
        await repository.append(_record("new"))

        deleted = await repository.delete_older_than(datetime.now(UTC) - timedelta(days=1))

        assert deleted == 1
        assert [r.id for r in await repository.query()] == ["new"]
