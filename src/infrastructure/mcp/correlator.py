"""
Request correlation for one MCP connection.

Matches inbound JSON-RPC responses to the callers waiting for them.
Responses may arrive in any order; each caller is resolved by its id.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

from src.domain.exceptions.mcp import (
    MCPConnectionLostError,
    MCPRemoteError,
    MCPRequestTimeoutError,
)

logger = logging.getLogger(__name__)

# Ids remembered after expiry so late responses are recognized as such
EXPIRED_ID_MEMORY = 256


@dataclass
class PendingRequest:
    """An outstanding call waiting for its response."""

    request_id: int
    method: str
    future: asyncio.Future[Any]
    created_at: float
    deadline: float | None

    @property
    def timeout(self) -> float | None:
        if self.deadline is None:
            return None
        return self.deadline - self.created_at


class RequestCorrelator:
    """
    Per-connection table of outstanding requests.

    Ids are assigned monotonically starting at 1 and never reused on the
    same correlator. An entry leaves the table on response, on deadline
    expiry or when the connection is lost, whichever happens first.

    Usage:
        pending = correlator.register("tools/call", timeout=30.0)
        await transport.send({..., "id": pending.request_id})
        result = await correlator.wait(pending)
    """

    def __init__(self, label: str = "", default_timeout: float | None = 30.0) -> None:
        self._label = label
        self._default_timeout = default_timeout
        self._next_id = 0
        self._pending: dict[int, PendingRequest] = {}
        self._expired: deque[int] = deque(maxlen=EXPIRED_ID_MEMORY)
        self._closed = False
        self._close_reason: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_ids(self) -> list[int]:
        return list(self._pending.keys())

    def register(self, method: str, timeout: float | None = None) -> PendingRequest:
        """
        Allocate an id and a result future for a new request.

        Raises:
            MCPConnectionLostError: If the correlator was already closed.
        """
        if self._closed:
            raise MCPConnectionLostError(
                f"Connection to '{self._label}' is closed: {self._close_reason}"
            )

        loop = asyncio.get_running_loop()
        self._next_id += 1
        effective_timeout = timeout if timeout is not None else self._default_timeout
        now = loop.time()
        pending = PendingRequest(
            request_id=self._next_id,
            method=method,
            future=loop.create_future(),
            created_at=now,
            deadline=now + effective_timeout if effective_timeout is not None else None,
        )
        self._pending[pending.request_id] = pending
        return pending

    async def wait(self, pending: PendingRequest) -> Any:
        """
        Wait for the response to a registered request.

        Only this caller's wait is cancelled on expiry; the remote may still
        answer, and that late answer is discarded.

        Raises:
            MCPRequestTimeoutError: If the deadline passes first.
            MCPConnectionLostError: If the connection is torn down first.
            MCPRemoteError: If the response carries an error object.
        """
        remaining = None
        if pending.deadline is not None:
            remaining = max(pending.deadline - asyncio.get_running_loop().time(), 0)
        try:
            return await asyncio.wait_for(pending.future, timeout=remaining)
        except TimeoutError:
            self._expire(pending.request_id)
            raise MCPRequestTimeoutError(
                pending.method, pending.timeout or 0.0, request_id=pending.request_id
            ) from None
        finally:
            # Covers timeout and caller cancellation; no-op after a response
            self._pending.pop(pending.request_id, None)

    def discard(self, request_id: int) -> None:
        """Drop a request that was never sent."""
        pending = self._pending.pop(request_id, None)
        if pending is not None and not pending.future.done():
            pending.future.cancel()

    def resolve(self, message: dict[str, Any]) -> bool:
        """
        Deliver a response to its waiter.

        Returns:
            True if the message matched an outstanding request.
        """
        request_id = self._normalize_id(message.get("id"))
        pending = self._pending.pop(request_id, None) if request_id is not None else None
        if pending is None:
            if request_id in self._expired:
                logger.debug(f"[{self._label}] Discarding late response for id={request_id}")
            else:
                logger.warning(
                    f"[{self._label}] Dropping response with unknown id={message.get('id')!r}"
                )
            return False

        if pending.future.done():
            return True

        if "error" in message:
            pending.future.set_exception(
                MCPRemoteError(message["error"], method=pending.method)
            )
        else:
            pending.future.set_result(message.get("result"))
        return True

    def sweep_expired(self) -> int:
        """
        Fail every request whose deadline has passed.

        ``wait`` already enforces deadlines for awaited requests; this
        catches entries whose waiter never got to ``wait``.

        Returns:
            Number of expired entries removed.
        """
        now = asyncio.get_running_loop().time()
        expired = [
            p for p in self._pending.values() if p.deadline is not None and p.deadline <= now
        ]
        for pending in expired:
            self._pending.pop(pending.request_id, None)
            self._expire(pending.request_id)
            if not pending.future.done():
                pending.future.set_exception(
                    MCPRequestTimeoutError(
                        pending.method, pending.timeout or 0.0, request_id=pending.request_id
                    )
                )
        if expired:
            logger.debug(f"[{self._label}] Swept {len(expired)} expired request(s)")
        return len(expired)

    def fail_all(self, reason: str, original_error: Exception | None = None) -> int:
        """
        Fail every outstanding request with MCPConnectionLostError.

        Returns:
            Number of failed requests.
        """
        pending_requests = list(self._pending.values())
        self._pending.clear()
        failed = 0
        for pending in pending_requests:
            if pending.future.done():
                continue
            pending.future.set_exception(
                MCPConnectionLostError(
                    f"Connection to '{self._label}' lost: {reason}",
                    original_error=original_error,
                    details={"request_id": pending.request_id, "method": pending.method},
                )
            )
            failed += 1
        return failed

    def close(self, reason: str, original_error: Exception | None = None) -> int:
        """Fail everything outstanding and refuse new registrations."""
        self._closed = True
        self._close_reason = reason
        return self.fail_all(reason, original_error)

    def _expire(self, request_id: int) -> None:
        self._expired.append(request_id)

    @staticmethod
    def _normalize_id(raw: Any) -> int | None:
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int):
            return raw
        if isinstance(raw, str) and raw.isdigit():
            return int(raw)
        return None

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def __repr__(self) -> str:
        return (
            f"RequestCorrelator(label={self._label!r}, pending={len(self._pending)}, "
            f"closed={self._closed})"
        )
