"""
Message framing for byte-stream transports.

JSON-RPC messages travel over child stdio and raw sockets either one per
line (newline-delimited JSON) or behind a ``Content-Length`` header.
"""

import asyncio
import json
import logging
from typing import Any

from src.domain.exceptions.mcp import MCPProtocolError
from src.domain.model.mcp.transport import FramingMode

logger = logging.getLogger(__name__)

CONTENT_LENGTH_HEADER = "content-length"
MAX_HEADER_LINES = 32


def dump_message(message: dict[str, Any]) -> str:
    """
    Serialize one message to compact JSON text.

    Raises:
        MCPProtocolError: If the message holds values JSON cannot represent.
    """
    try:
        return json.dumps(message, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise MCPProtocolError(f"Message is not JSON serializable: {e}", original_error=e) from e


def encode_message(message: dict[str, Any], framing: FramingMode = FramingMode.NEWLINE) -> bytes:
    """Serialize one message into a frame ready to be written."""
    body = dump_message(message).encode("utf-8")
    if framing == FramingMode.CONTENT_LENGTH:
        return f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body
    # json.dumps escapes newlines inside strings, so the frame is one line
    return body + b"\n"


def decode_frame(frame: bytes | str) -> list[dict[str, Any]]:
    """
    Parse one frame into JSON-RPC messages.

    A batch (JSON array) yields each element in order.

    Raises:
        MCPProtocolError: If the frame is not a JSON object or array of objects.
    """
    try:
        text = frame.decode("utf-8") if isinstance(frame, bytes) else frame
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MCPProtocolError(f"Invalid JSON frame: {e}", raw=frame, original_error=e) from e

    if isinstance(data, dict):
        return [data]
    if isinstance(data, list) and data and all(isinstance(item, dict) for item in data):
        return data
    raise MCPProtocolError(
        f"Expected a JSON-RPC object or batch, got {type(data).__name__}", raw=frame
    )


async def read_frame(
    reader: asyncio.StreamReader,
    framing: FramingMode = FramingMode.NEWLINE,
) -> bytes | None:
    """
    Read the next frame from a stream.

    Returns:
        Frame body, or None at end of stream.

    Raises:
        MCPProtocolError: With ``recoverable=False`` if the stream can no
            longer be split into frames.
    """
    if framing == FramingMode.CONTENT_LENGTH:
        return await _read_content_length_frame(reader)
    return await _read_line_frame(reader)


async def _read_line_frame(reader: asyncio.StreamReader) -> bytes | None:
    while True:
        try:
            line = await reader.readline()
        except ValueError as e:
            # StreamReader raises ValueError once a line exceeds its limit
            raise MCPProtocolError(
                f"Message line exceeds stream limit: {e}", recoverable=False, original_error=e
            ) from e
        if not line:
            return None
        line = line.strip()
        if line:
            return line


async def _read_content_length_frame(reader: asyncio.StreamReader) -> bytes | None:
    length: int | None = None
    header_lines = 0
    while True:
        try:
            raw = await reader.readline()
        except ValueError as e:
            raise MCPProtocolError(
                f"Header line exceeds stream limit: {e}", recoverable=False, original_error=e
            ) from e
        if not raw:
            return None
        line = raw.decode("ascii", errors="replace").strip()
        if not line:
            if length is None:
                if header_lines == 0:
                    continue  # stray blank line between frames
                raise MCPProtocolError("Frame header without Content-Length", recoverable=False)
            break
        header_lines += 1
        if header_lines > MAX_HEADER_LINES:
            raise MCPProtocolError("Too many frame header lines", raw=raw, recoverable=False)
        name, sep, value = line.partition(":")
        if not sep:
            raise MCPProtocolError(f"Malformed frame header: {line!r}", raw=raw, recoverable=False)
        if name.strip().lower() == CONTENT_LENGTH_HEADER:
            try:
                length = int(value.strip())
            except ValueError as e:
                raise MCPProtocolError(
                    f"Invalid Content-Length: {value.strip()!r}",
                    raw=raw,
                    recoverable=False,
                    original_error=e,
                ) from e
            if length < 0:
                raise MCPProtocolError(f"Negative Content-Length: {length}", recoverable=False)

    try:
        return await reader.readexactly(length)
    except asyncio.IncompleteReadError:
        logger.debug(f"Stream ended inside a frame body ({length} bytes expected)")
        return None
