"""Unit tests for the request correlator."""

import asyncio

import pytest

from src.domain.exceptions.mcp import (
    MCPConnectionLostError,
    MCPRemoteError,
    MCPRequestTimeoutError,
)
from src.infrastructure.mcp.correlator import RequestCorrelator


def _response(request_id, result=None):
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


@pytest.mark.unit
class TestRequestCorrelator:
    """Tests for RequestCorrelator."""

    async def test_ids_are_monotonic(self):
        """Test ids start at 1 and are never reused."""
        correlator = RequestCorrelator("srv")

        first = correlator.register("ping")
        second = correlator.register("ping")
        correlator.resolve(_response(first.request_id))
        third = correlator.register("ping")

        assert [first.request_id, second.request_id, third.request_id] == [1, 2, 3]

    async def test_out_of_order_resolution(self):
        """Test each waiter gets the response carrying its own id."""
        correlator = RequestCorrelator("srv")
        requests = [correlator.register("tools/call") for _ in range(3)]
        waiters = [asyncio.create_task(correlator.wait(p)) for p in requests]
        await asyncio.sleep(0)

        for pending in reversed(requests):
            assert correlator.resolve(_response(pending.request_id, pending.request_id * 10))

        assert await asyncio.gather(*waiters) == [10, 20, 30]
        assert len(correlator) == 0

    async def test_string_ids_are_accepted(self):
        """Test numeric string ids match their integer request."""
        correlator = RequestCorrelator("srv")
        pending = correlator.register("ping")

        assert correlator.resolve(_response(str(pending.request_id), {})) is True
        assert await correlator.wait(pending) == {}

    async def test_error_response(self):
        """Test error objects surface as MCPRemoteError with the payload."""
        correlator = RequestCorrelator("srv")
        pending = correlator.register("tools/call")
        error = {"code": -32000, "message": "bad things happened"}

        correlator.resolve({"jsonrpc": "2.0", "id": pending.request_id, "error": error})

        with pytest.raises(MCPRemoteError, match="bad things happened") as exc_info:
            await correlator.wait(pending)
        assert exc_info.value.payload == error
        assert exc_info.value.method == "tools/call"

    async def test_timeout_removes_entry(self):
        """Test a timed out request leaves no pending entry."""
        correlator = RequestCorrelator("srv")
        pending = correlator.register("tools/call", timeout=0.05)

        with pytest.raises(MCPRequestTimeoutError, match="tools/call after 0.05s"):
            await correlator.wait(pending)

        assert pending.request_id not in correlator
        assert correlator.pending_count == 0

    async def test_late_response_is_discarded(self):
        """Test a response arriving after expiry is dropped without effect."""
        correlator = RequestCorrelator("srv")
        pending = correlator.register("tools/call", timeout=0.01)
        with pytest.raises(MCPRequestTimeoutError):
            await correlator.wait(pending)

        assert correlator.resolve(_response(pending.request_id, "late")) is False
        assert len(correlator) == 0

    async def test_unknown_id_is_dropped(self):
        """Test responses for ids never issued are dropped."""
        correlator = RequestCorrelator("srv")
        assert correlator.resolve(_response(99)) is False
        assert correlator.resolve(_response(None)) is False
        assert correlator.resolve(_response(True)) is False

    async def test_timeout_does_not_affect_others(self):
        """Test one expiry leaves other pending requests intact."""
        correlator = RequestCorrelator("srv")
        short = correlator.register("a", timeout=0.01)
        long = correlator.register("b", timeout=5)
        waiter = asyncio.create_task(correlator.wait(long))

        with pytest.raises(MCPRequestTimeoutError):
            await correlator.wait(short)
        correlator.resolve(_response(long.request_id, "ok"))

        assert await waiter == "ok"

    async def test_cancelled_waiter_removes_entry(self):
        """Test caller cancellation cleans up the pending entry."""
        correlator = RequestCorrelator("srv")
        pending = correlator.register("tools/call")
        waiter = asyncio.create_task(correlator.wait(pending))
        await asyncio.sleep(0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert len(correlator) == 0

    async def test_fail_all(self):
        """Test every pending waiter fails with connection lost."""
        correlator = RequestCorrelator("srv")
        requests = [correlator.register("tools/call") for _ in range(4)]
        waiters = [asyncio.create_task(correlator.wait(p)) for p in requests]
        await asyncio.sleep(0)

        assert correlator.fail_all("process exited") == 4

        results = await asyncio.gather(*waiters, return_exceptions=True)
        assert all(isinstance(r, MCPConnectionLostError) for r in results)
        assert "process exited" in str(results[0])
        assert len(correlator) == 0

    async def test_close_refuses_new_requests(self):
        """Test register after close raises connection lost."""
        correlator = RequestCorrelator("srv")
        correlator.close("stopped")

        assert correlator.closed is True
        with pytest.raises(MCPConnectionLostError, match="is closed: stopped"):
            correlator.register("ping")

    async def test_sweep_expired(self):
        """Test sweeping fails entries whose waiter never started."""
        correlator = RequestCorrelator("srv")
        expired = correlator.register("ping", timeout=0)
        alive = correlator.register("ping", timeout=10)
        await asyncio.sleep(0.01)

        assert correlator.sweep_expired() == 1
        assert correlator.pending_ids() == [alive.request_id]
        with pytest.raises(MCPRequestTimeoutError):
            await correlator.wait(expired)

    async def test_discard(self):
        """Test discarding a request that was never sent."""
        correlator = RequestCorrelator("srv")
        pending = correlator.register("ping")

        correlator.discard(pending.request_id)

        assert pending.future.cancelled()
        assert pending.request_id not in correlator

    async def test_no_default_timeout(self):
        """Test a correlator without a default deadline waits indefinitely."""
        correlator = RequestCorrelator("srv", default_timeout=None)
        pending = correlator.register("ping")

        assert pending.deadline is None
        assert pending.timeout is None
