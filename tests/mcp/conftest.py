from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Any

import pytest

from toolwire.mcp.transport import HttpResponse


@dataclass
class SeenRequest:
    http_method: str
    headers: dict[str, str]
    payload: dict[str, Any] | None

    @property
    def rpc_method(self) -> str | None:
        return (self.payload or {}).get("method")


@dataclass
class FakeToolServer:
    """In-memory tool server speaking the JSON-RPC wire format."""

    tools: list[dict[str, Any]] = field(default_factory=list)
    server_info: dict[str, Any] = field(
        default_factory=lambda: {"name": "fake-server", "version": "1.0.0"}
    )
    use_sse: bool = False
    initialize_error: dict[str, Any] | None = None
    fail_with: Exception | None = None
    expire_calls: int = 0
    call_results: dict[str, dict[str, Any]] = field(default_factory=dict)
    call_errors: dict[str, dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.requests: list[SeenRequest] = []
        self.sessions_issued = 0
        self.deleted = threading.Event()

    def rpc_methods(self) -> list[str | None]:
        return [r.rpc_method for r in self.requests if r.http_method == "POST"]

    async def request(self, method, url, *, headers, body, timeout_s):
        _ = url
        _ = timeout_s
        payload = json.loads(body) if body else None
        self.requests.append(SeenRequest(method, dict(headers), payload))

        if self.fail_with is not None:
            raise self.fail_with
        if method == "DELETE":
            self.deleted.set()
            return HttpResponse(status=200)

        rpc_method = payload["method"]
        if "id" not in payload:
            return HttpResponse(status=202)

        if rpc_method == "initialize":
            if self.initialize_error is not None:
                return self._respond(payload["id"], error=self.initialize_error)
            self.sessions_issued += 1
            return self._respond(
                payload["id"],
                result={
                    "protocolVersion": payload["params"]["protocolVersion"],
                    "capabilities": {"tools": {}},
                    "serverInfo": self.server_info,
                },
                session=f"session-{self.sessions_issued}",
            )

        if rpc_method == "tools/list":
            return self._respond(payload["id"], result={"tools": list(self.tools)})

        if rpc_method == "tools/call":
            if self.expire_calls > 0 and headers.get("Mcp-Session-Id"):
                self.expire_calls -= 1
                return HttpResponse(status=404, body=b"unknown session")
            name = payload["params"]["name"]
            if name in self.call_errors:
                return self._respond(payload["id"], error=self.call_errors[name])
            result = self.call_results.get(
                name,
                {"content": [{"type": "text", "text": f"called {name}"}], "isError": False},
            )
            return self._respond(payload["id"], result=result)

        return self._respond(
            payload["id"], error={"code": -32601, "message": f"Method not found: {rpc_method}"}
        )

    def _respond(
        self,
        request_id: int,
        *,
        result: Any = None,
        error: dict[str, Any] | None = None,
        session: str | None = None,
    ) -> HttpResponse:
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
        if error is not None:
            message["error"] = error
        else:
            message["result"] = result
        headers = {}
        if session is not None:
            headers["mcp-session-id"] = session
        if self.use_sse:
            headers["content-type"] = "text/event-stream"
            body = (
                ": keep-alive\n\n"
                "event: message\n"
                f"data: {json.dumps({'jsonrpc': '2.0', 'method': 'notifications/progress'})}\n\n"
                "event: message\n"
                f"id: evt-{request_id}\n"
                f"data: {json.dumps(message)}\n\n"
            )
        else:
            headers["content-type"] = "application/json"
            body = json.dumps(message)
        return HttpResponse(status=200, headers=headers, body=body.encode("utf-8"))


def make_tool(name: str, description: str = "A tool", **schema_props: Any) -> dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "inputSchema": {
            "type": "object",
            "properties": {key: {"type": value} for key, value in schema_props.items()},
        },
    }


@pytest.fixture
def fake_server() -> FakeToolServer:
    return FakeToolServer(
        tools=[
            make_tool("add", "Add two integers", a="integer", b="integer"),
            make_tool("echo", "Echo text back", text="string"),
        ]
    )


@pytest.fixture
def tool_def():
    return make_tool


@pytest.fixture
def server_factory():
    return FakeToolServer
