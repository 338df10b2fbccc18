"""Scripted MCP tool server used by the process transport tests.

Run with ``sys.executable``. Speaks JSON-RPC over stdin/stdout with
newline framing, or Content-Length framing when MCP_FRAMING is
``content-length``. Requests are handled on worker threads so slow calls
answer out of order.

Environment:
    MCP_FRAMING: "newline" (default) or "content-length"
    MCP_FAIL_INIT: exit with code 2 before answering anything
    MCP_IGNORE_TERM: ignore SIGTERM and stay alive after stdin closes
                     (exercises the kill fallback)

Tools:
    echo        returns its arguments as text
    sleep       sleeps ``seconds`` then echoes
    fail        returns a result flagged isError
    error       answers with a JSON-RPC error object
    crash       writes to stderr and exits with code 3
    garbage     writes a malformed line before answering
    roundtrip   sends ping and an unsupported request to the client,
                emits tools/list_changed and returns the client's answers
"""

import json
import os
import signal
import sys
import threading
import time

FRAMING = os.environ.get("MCP_FRAMING", "newline")

TOOLS_PAGE_1 = [
    {"name": "echo", "description": "Echo arguments", "inputSchema": {"type": "object"}},
    {"name": "sleep", "description": "Sleep then echo", "inputSchema": {"type": "object"}},
    {"name": "fail", "description": "Always reports isError"},
    {"name": "error", "description": "Always answers with an error object"},
]
TOOLS_PAGE_2 = [
    {"name": "crash", "description": "Exit the process"},
    {"name": "garbage", "description": "Write a malformed line first"},
    {"name": "roundtrip", "description": "Call back into the client"},
    {"name": "echo", "description": "Duplicate entry, ignored by clients"},
]

write_lock = threading.Lock()
client_responses = {}
client_responses_ready = threading.Condition()


def write_raw(data):
    with write_lock:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()


def send(message):
    body = json.dumps(message).encode("utf-8")
    if FRAMING == "content-length":
        write_raw(f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body)
    else:
        write_raw(body + b"\n")


def text_result(text, is_error=False):
    result = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


def wait_for_client(ids, timeout=5.0):
    deadline = time.monotonic() + timeout
    with client_responses_ready:
        while not all(i in client_responses for i in ids):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            client_responses_ready.wait(remaining)
        return {i: client_responses.get(i) for i in ids}


def call_tool(name, arguments):
    if name == "echo":
        return {"result": text_result(json.dumps(arguments, sort_keys=True))}
    if name == "sleep":
        time.sleep(float(arguments.get("seconds", 0)))
        return {"result": text_result(json.dumps(arguments, sort_keys=True))}
    if name == "fail":
        return {"result": text_result("tool failed on purpose", is_error=True)}
    if name == "error":
        return {"error": {"code": -32000, "message": "bad things happened", "data": {"x": 1}}}
    if name == "crash":
        sys.stderr.write("fatal: crashing on request\n")
        sys.stderr.flush()
        os._exit(3)
    if name == "garbage":
        write_raw(b"this is not json\n")
        return {"result": text_result("after garbage")}
    if name == "roundtrip":
        send({"jsonrpc": "2.0", "id": "srv-1", "method": "ping"})
        send({"jsonrpc": "2.0", "id": "srv-2", "method": "sampling/createMessage", "params": {}})
        send({"jsonrpc": "2.0", "method": "notifications/tools/list_changed"})
        answers = wait_for_client(["srv-1", "srv-2"])
        return {"result": text_result(json.dumps(answers, sort_keys=True))}
    return {"error": {"code": -32602, "message": f"Unknown tool: {name}"}}


def handle(message):
    method = message.get("method")
    request_id = message.get("id")
    params = message.get("params") or {}

    if method == "initialize":
        reply = {
            "result": {
                "protocolVersion": params.get("protocolVersion"),
                "capabilities": {"tools": {"listChanged": True}},
                "serverInfo": {"name": "echo-server", "version": "1.0.0"},
            }
        }
    elif method == "tools/list":
        if params.get("cursor") == "page-2":
            reply = {"result": {"tools": TOOLS_PAGE_2}}
        else:
            reply = {"result": {"tools": TOOLS_PAGE_1, "nextCursor": "page-2"}}
    elif method == "tools/call":
        reply = call_tool(params.get("name"), params.get("arguments") or {})
    elif method == "ping":
        reply = {"result": {}}
    else:
        reply = {"error": {"code": -32601, "message": f"Method not found: {method}"}}

    if request_id is not None:
        send({"jsonrpc": "2.0", "id": request_id, **reply})


def dispatch(message):
    if "method" not in message:
        with client_responses_ready:
            client_responses[message.get("id")] = message
            client_responses_ready.notify_all()
        return
    if message.get("id") is None:
        return  # notification
    threading.Thread(target=handle, args=(message,), daemon=True).start()


def read_messages():
    stdin = sys.stdin.buffer
    while True:
        if FRAMING == "content-length":
            length = None
            while True:
                line = stdin.readline()
                if not line:
                    return
                line = line.strip()
                if not line:
                    if length is not None:
                        break
                    continue
                name, _, value = line.decode("ascii").partition(":")
                if name.strip().lower() == "content-length":
                    length = int(value.strip())
            body = stdin.read(length)
            if len(body) < length:
                return
        else:
            body = stdin.readline()
            if not body:
                return
            body = body.strip()
            if not body:
                continue
        yield json.loads(body)


def main():
    if os.environ.get("MCP_FAIL_INIT"):
        sys.stderr.write("fatal: missing credentials\n")
        sys.stderr.flush()
        sys.exit(2)
    if os.environ.get("MCP_IGNORE_TERM"):
        signal.signal(signal.SIGTERM, signal.SIG_IGN)

    sys.stderr.write("echo-server ready\n")
    sys.stderr.flush()
    for message in read_messages():
        dispatch(message)
    if os.environ.get("MCP_IGNORE_TERM"):
        while True:
            time.sleep(1)


if __name__ == "__main__":
    main()
