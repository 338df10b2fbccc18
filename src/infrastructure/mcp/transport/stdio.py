"""
Stdio transport for MCP.

Communicates with tool servers running as child processes via
stdin/stdout. The child's stderr is drained separately and kept as
diagnostic text, never parsed as protocol traffic.
"""

import asyncio
import contextlib
import logging
import os
from collections import deque

from src.configuration.config import get_settings
from src.domain.exceptions.mcp import MCPConnectError, MCPTransportError
from src.domain.model.mcp.transport import TransportConfig, TransportType
from src.infrastructure.mcp.transport.stream import StreamTransport

logger = logging.getLogger(__name__)


class StdioTransport(StreamTransport):
    """
    MCP transport using stdio (subprocess communication).

    Launches a tool server as a subprocess and exchanges framed JSON-RPC
    over its stdin/stdout. Process exit, clean or not, ends the receive
    stream with an MCPTransportError carrying the exit code.
    """

    def __init__(
        self,
        config: TransportConfig,
        label: str | None = None,
        stop_timeout: float | None = None,
        stream_limit: int | None = None,
        stderr_tail_lines: int | None = None,
    ) -> None:
        """Initialize stdio transport."""
        super().__init__(config, label)
        settings = get_settings()
        self._stop_timeout = stop_timeout if stop_timeout is not None else settings.mcp_stop_timeout
        self._stream_limit = stream_limit or settings.mcp_stream_limit
        tail = stderr_tail_lines if stderr_tail_lines is not None else settings.mcp_stderr_tail_lines
        self._stderr_tail: deque[str] = deque(maxlen=tail)
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._pid: int | None = None
        self._returncode: int | None = None

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def returncode(self) -> int | None:
        if self._process is not None:
            return self._process.returncode
        return self._returncode

    @property
    def diagnostics(self) -> tuple[str, ...]:
        return tuple(self._stderr_tail)

    async def open(self) -> None:
        """
        Start the subprocess.

        Raises:
            MCPConnectError: If the subprocess cannot be started.
        """
        if self._is_open:
            logger.debug(f"[{self._label}] Stdio transport already started")
            return

        config = self._config
        if config.transport_type != TransportType.PROCESS:
            raise MCPConnectError(
                config.endpoint,
                message=f"Invalid transport type for stdio: {config.transport_type.value}",
            )
        if not config.command:
            raise MCPConnectError(message="Command is required for stdio transport")

        # Child inherits our environment; configured values win
        env = {**os.environ, **config.environment}

        logger.info(f"[{self._label}] Starting MCP server: {config.endpoint}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                config.command,
                *config.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                limit=self._stream_limit,
            )
        except (OSError, ValueError) as e:
            logger.error(f"[{self._label}] Failed to start MCP server process: {e}")
            raise MCPConnectError(
                config.endpoint, message="Failed to start subprocess", original_error=e
            ) from e

        self._pid = self._process.pid
        self._reader = self._process.stdout
        self._writer = self._process.stdin
        if self._process.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr(self._process.stderr))

        self._closed = False
        self._is_open = True
        logger.info(f"[{self._label}] Started MCP server process (pid={self._pid})")

    async def close(self) -> None:
        """Terminate the subprocess: SIGTERM, then SIGKILL after the grace period."""
        if self._closed:
            return

        self._closed = True
        self._is_open = False

        process, self._process = self._process, None
        if self._writer is not None:
            try:
                self._writer.close()
            except (OSError, RuntimeError) as e:
                logger.debug(f"[{self._label}] Error closing stdin: {e}")
            self._writer = None

        if process is not None:
            if process.returncode is None:
                try:
                    process.terminate()
                    await asyncio.wait_for(process.wait(), timeout=self._stop_timeout)
                except ProcessLookupError:
                    pass
                except TimeoutError:
                    logger.warning(
                        f"[{self._label}] Process {process.pid} ignored SIGTERM "
                        f"for {self._stop_timeout}s, killing"
                    )
                    with contextlib.suppress(ProcessLookupError):
                        process.kill()
                    await process.wait()
            self._returncode = process.returncode

        if self._stderr_task is not None:
            if not self._stderr_task.done():
                # Let the drain pick up the final lines written before exit
                with contextlib.suppress(TimeoutError, asyncio.CancelledError):
                    await asyncio.wait_for(self._stderr_task, timeout=1.0)
            self._stderr_task = None

        self._reader = None
        logger.info(f"[{self._label}] Stdio transport stopped (exit code {self._returncode})")

    async def _closed_by_remote_error(self) -> MCPTransportError:
        returncode = None
        if self._process is not None:
            with contextlib.suppress(TimeoutError):
                returncode = await asyncio.wait_for(self._process.wait(), timeout=1.0)
            self._returncode = returncode

        message = f"Process '{self._label}' exited"
        message += f" with code {returncode}" if returncode is not None else " (stdout closed)"
        if self._stderr_tail:
            message += f": {self._stderr_tail[-1]}"
        return MCPTransportError(message, details={"returncode": returncode, "pid": self._pid})

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        """Forward child stderr to the log and keep a bounded tail."""
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                logger.warning(f"[{self._label}] Dropped oversized stderr line")
                continue
            except (ConnectionError, OSError) as e:
                logger.debug(f"[{self._label}] stderr closed: {e}")
                return
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                self._stderr_tail.append(text)
                logger.info(f"[{self._label}] stderr: {text}")
