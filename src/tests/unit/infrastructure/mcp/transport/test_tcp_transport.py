"""Tests for the raw TCP socket transport."""

import asyncio
import json
import socket

import pytest

from src.domain.exceptions.mcp import MCPConnectError, MCPTransportError
from src.domain.model.mcp.transport import TransportConfig
from src.infrastructure.mcp.transport.tcp import TcpTransport


def _unused_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
async def tcp_server():
    """Line-delimited JSON-RPC server; method "bye" closes the connection."""
    received = []

    async def handle(reader, writer):
        try:
            while line := await reader.readline():
                message = json.loads(line)
                received.append(message)
                if message.get("method") == "bye":
                    break
                if "id" in message:
                    response = {"jsonrpc": "2.0", "id": message["id"], "result": {"ok": True}}
                    writer.write(json.dumps(response).encode() + b"\n")
                    await writer.drain()
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield f"tcp://127.0.0.1:{port}", received
    server.close()
    await server.wait_closed()


@pytest.mark.unit
class TestTcpTransport:
    """Tests for TcpTransport."""

    async def test_request_response(self, tcp_server):
        """Test newline-framed exchange over a socket."""
        url, received = tcp_server
        transport = TcpTransport(TransportConfig.socket(url), "tcp")
        await transport.open()
        stream = transport.receive()
        try:
            await transport.send({"jsonrpc": "2.0", "id": 1, "method": "ping"})
            response = await asyncio.wait_for(anext(stream), 5)

            assert response["result"] == {"ok": True}
            assert received[0]["method"] == "ping"
        finally:
            await stream.aclose()
            await transport.close()

    async def test_remote_close(self, tcp_server):
        """Test the peer closing the socket ends receive with an error."""
        url, _ = tcp_server
        transport = TcpTransport(TransportConfig.socket(url), "tcp")
        await transport.open()
        try:
            await transport.send({"jsonrpc": "2.0", "method": "bye"})

            with pytest.raises(MCPTransportError, match="closed by remote"):
                async for _ in transport.receive():
                    pass
        finally:
            await transport.close()

    async def test_connection_refused(self):
        """Test an unreachable peer raises MCPConnectError."""
        transport = TcpTransport(TransportConfig.socket(f"tcp://127.0.0.1:{_unused_port()}"))

        with pytest.raises(MCPConnectError, match="TCP connection failed"):
            await transport.open()

    async def test_url_without_port(self):
        """Test a URL without a port is rejected before connecting."""
        transport = TcpTransport(TransportConfig.socket("tcp://localhost"))

        with pytest.raises(MCPConnectError, match="tcp://host:port"):
            await transport.open()
