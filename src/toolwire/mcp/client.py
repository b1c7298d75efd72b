"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

JSON-RPC protocol client for one remote tool server.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from toolwire.mcp.hashing import hash_tool_definition
from toolwire.mcp.rate_limit import SlidingWindowRateLimiter
from toolwire.mcp.sanitize import (
    qualified_tool_name,
    sanitize_description,
    sanitize_identifier,
)
from toolwire.mcp.settings import RemoteToolSettings
from toolwire.mcp.sse import parse_sse_events
from toolwire.mcp.transport import HttpResponse, HttpTransport, Transport
from toolwire.mcp.types import (
    ConnectInfo,
    HandshakeError,
    NoResponseError,
    ProtocolError,
    RateLimitError,
    RemoteToolError,
    ServerConfig,
    SessionExpiredError,
    ToolCallResult,
    ToolError,
    ToolRecord,
    TransportError,
)
from toolwire.mcp.security import SecretRedactionFilter
from toolwire.mcp.utils import (
    ensure_token_transport_safe,
    render_tool_content,
    validate_server_url,
)

logger = logging.getLogger("toolwire.mcp")
logger.addFilter(SecretRedactionFilter())

_BODY_EXCERPT_CHARS = 200


class _RemoteToolRow(BaseModel):
    """Permissive view of one untrusted ``tools/list`` entry."""

    model_config = ConfigDict(extra="allow")

    name: str
    description: Any = None
    inputSchema: dict[str, Any] | None = None


def _error_message(error: Any) -> str:
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return json.dumps(error, default=str)


class ProtocolClient:
    """
    Session-holding client for one remote tool server.

    The client performs the ``initialize`` handshake, keeps the sanitized tool
    catalog together with a content hash per tool, and refuses tools whose
    definition changes after they were first trusted.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        settings: RemoteToolSettings | None = None,
        transport: Transport | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        validate_server_url(config.url)
        ensure_token_transport_safe(config.url, config.auth_token)
        self.config = config
        self.settings = settings or RemoteToolSettings()
        self.safe_id = sanitize_identifier(config.id)
        self._transport = transport or HttpTransport(
            max_response_bytes=self.settings.max_response_bytes
        )
        self._log = log or logger
        self._rate_limiter = SlidingWindowRateLimiter(
            config.rate_limit or self.settings.server_rate_limit,
            window_s=self.settings.rate_window_s,
        )
        self._session_id: str | None = None
        self._request_id = 0
        self._connected = False
        self._tools: list[ToolRecord] = []
        self._tool_hashes: dict[str, str] = {}
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def id(self) -> str:
        return self.safe_id

    @property
    def name(self) -> str:
        return self.config.name or self.config.id

    @property
    def url(self) -> str:
        return self.config.url

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def tools(self) -> tuple[ToolRecord, ...]:
        return tuple(self._tools)

    @property
    def tool_hashes(self) -> dict[str, str]:
        return dict(self._tool_hashes)

    def resolve_tool(self, qualified_name: str) -> ToolRecord | None:
        for record in self._tools:
            if record.qualified_name == qualified_name:
                return record
        return None

    async def connect(self) -> ConnectInfo:
        """Run initialize, initialized, then tool discovery."""
        self._log.info("Connecting to %s at %s", self.name, self.url)
        self._session_id = None
        self._connected = False

        response = await self._send_request(
            "initialize",
            {
                "protocolVersion": self.settings.protocol_version,
                "capabilities": {},
                "clientInfo": {
                    "name": self.settings.client_name,
                    "version": self.settings.client_version,
                },
            },
            timeout_s=self.settings.connect_timeout_s,
        )
        if response.get("error") is not None:
            raise HandshakeError(
                f"Initialize failed: {_error_message(response['error'])}"
            )
        result = response.get("result")
        if not isinstance(result, dict):
            raise HandshakeError(f"Initialize failed: malformed result from {self.name}")

        server_info = result.get("serverInfo")
        if not isinstance(server_info, dict):
            server_info = {}
        self._log.info(
            "Connected to %s v%s",
            server_info.get("name") or self.name,
            server_info.get("version") or "?",
        )

        try:
            await self._send_notification("notifications/initialized")
        except ProtocolError as e:
            raise HandshakeError(str(e)) from e

        await self.refresh_tools()
        self._connected = True
        return ConnectInfo(server_info=server_info, tool_count=len(self._tools))

    async def refresh_tools(self) -> list[ToolRecord]:
        """Fetch, sanitize and hash-check the remote tool catalog."""
        response = await self._send_request("tools/list", {})
        if response.get("error") is not None:
            raise ProtocolError(
                f"tools/list failed: {_error_message(response['error'])}"
            )
        result = response.get("result")
        raw_tools = result.get("tools") if isinstance(result, dict) else None
        if not isinstance(raw_tools, list):
            raise ProtocolError(
                f"Invalid tools/list response from '{self.name}': missing tools list"
            )

        tools: list[ToolRecord] = []
        hashes: dict[str, str] = {}
        seen: set[str] = set()

        for raw in raw_tools:
            try:
                row = _RemoteToolRow.model_validate(raw)
            except ValidationError:
                self._log.warning("Skipping tool with invalid metadata on %s", self.name)
                continue
            if not row.name:
                self._log.warning("Skipping tool with empty name on %s", self.name)
                continue

            description = sanitize_description(
                row.description, max_length=self.settings.description_max_length
            )
            qualified = qualified_tool_name(self.safe_id, row.name)
            if len(qualified) > self.settings.tool_name_max_length:
                self._log.warning(
                    "Tool name too long (%d): %s, skipping", len(qualified), qualified
                )
                continue
            if qualified in seen:
                self._log.warning(
                    "Duplicate sanitized tool name %s on %s, skipping", qualified, self.name
                )
                continue
            seen.add(qualified)

            content_hash = hash_tool_definition(row.name, description, row.inputSchema)
            trusted = self._tool_hashes.get(row.name)
            if trusted is not None and trusted != content_hash:
                self._log.warning(
                    "Tool definition changed for %s on %s, blocking (rug pull protection)",
                    row.name,
                    self.name,
                )
                # The block holds until the server serves the trusted definition again.
                hashes[row.name] = trusted
                continue

            hashes[row.name] = content_hash
            tools.append(
                ToolRecord(
                    server_id=self.safe_id,
                    name=row.name,
                    qualified_name=qualified,
                    description=description,
                    input_schema=row.inputSchema or {"type": "object", "properties": {}},
                    content_hash=content_hash,
                )
            )

        self._tools = tools
        self._tool_hashes = hashes
        self._log.info("%s: %d tools discovered", self.name, len(tools))
        return list(tools)

    async def call_tool(self, name: str, args: dict[str, Any] | None = None) -> ToolCallResult:
        """
        Invoke one remote tool by its original name.

        Connection state, rate limits and remote tool failures come back as
        ``ToolCallResult`` failures. Transport and protocol failures, including
        ``SessionExpiredError``, are raised.
        """
        if not self._connected:
            return ToolCallResult.failure(
                "not_connected",
                f"Tool server {self.name} is not connected",
                server=self.name,
                tool=name,
            )
        try:
            return await self._invoke_tool(name, args or {})
        except (RateLimitError, ToolError) as e:
            return ToolCallResult.from_error(e, server=self.name, tool=name)

    async def _invoke_tool(self, name: str, args: dict[str, Any]) -> ToolCallResult:
        if not self._rate_limiter.can_proceed():
            raise RateLimitError(
                f"Rate limit exceeded for tool server {self.name} "
                f"({self._rate_limiter.max_per_window}/min)"
            )
        self._rate_limiter.record()

        response = await self._send_request(
            "tools/call",
            {"name": name, "arguments": args},
            timeout_s=self.settings.call_timeout_s,
        )
        if response.get("error") is not None:
            raise ToolError(f"Remote error: {_error_message(response['error'])}")
        result = response.get("result")
        if not isinstance(result, dict):
            return ToolCallResult.failure(
                "protocol",
                f"Invalid tools/call response from '{self.name}' for '{name}'",
                server=self.name,
                tool=name,
            )

        output = render_tool_content(result.get("content"))
        if result.get("isError") is True:
            raise ToolError(output or "Remote tool execution failed")
        return ToolCallResult.ok(output, server=self.name, tool=name)

    def disconnect(self) -> None:
        """Drop local session state; the server is notified in the background."""
        if self._connected and self._session_id:
            self._notify_session_end(self._headers())
        self._connected = False
        self._session_id = None
        self._tools = []
        self._log.info("Disconnected from %s", self.name)

    def _notify_session_end(self, headers: dict[str, str]) -> None:
        coro = self._terminate_session(headers)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            threading.Thread(target=asyncio.run, args=(coro,), daemon=True).start()
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _terminate_session(self, headers: dict[str, str]) -> None:
        try:
            await self._transport.request(
                "DELETE",
                self.url,
                headers=headers,
                body=None,
                timeout_s=self.settings.connect_timeout_s,
            )
        except RemoteToolError as e:
            self._log.debug("Session termination for %s ignored: %s", self.name, e)

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _headers(self, *, include_session: bool = True) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if include_session and self._session_id:
            headers["Mcp-Session-Id"] = self._session_id
            headers["MCP-Protocol-Version"] = self.settings.protocol_version
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return headers

    def _check_session(self, response: HttpResponse) -> None:
        if response.status == 404 and self._session_id:
            self._session_id = None
            self._connected = False
            raise SessionExpiredError(f"Session expired (404) on {self.name}")

    async def _send_request(
        self,
        method: str,
        params: dict[str, Any],
        *,
        timeout_s: float | None = None,
    ) -> dict[str, Any]:
        request_id = self._next_id()
        body = json.dumps(
            {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        ).encode("utf-8")

        response = await self._transport.request(
            "POST",
            self.url,
            headers=self._headers(include_session=method != "initialize"),
            body=body,
            timeout_s=timeout_s or self.settings.call_timeout_s,
        )
        self._check_session(response)
        if response.status != 200:
            raise TransportError(
                f"HTTP {response.status} from {self.name}: "
                f"{response.text(_BODY_EXCERPT_CHARS)}"
            )

        session_id = response.header("mcp-session-id")
        if session_id:
            self._session_id = session_id

        if "text/event-stream" in response.content_type:
            return self._match_stream_response(response.body, request_id)

        try:
            decoded = json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ProtocolError(
                f"Invalid JSON from {self.name}: {response.text(_BODY_EXCERPT_CHARS)}"
            ) from e
        if not isinstance(decoded, dict):
            raise ProtocolError(f"Invalid JSON-RPC envelope from {self.name}")
        return decoded

    def _match_stream_response(self, body: bytes, request_id: int) -> dict[str, Any]:
        for event in parse_sse_events(body):
            if event.type != "message":
                continue
            try:
                message = json.loads(event.data)
            except json.JSONDecodeError:
                continue
            if not isinstance(message, dict):
                continue
            msg_id = message.get("id")
            # Exact int ids only: true and 1.0 must not match.
            if type(msg_id) is int and msg_id == request_id:
                return message
        raise NoResponseError(
            f"No matching response for request {request_id} in event stream from {self.name}"
        )

    async def _send_notification(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> None:
        envelope: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params:
            envelope["params"] = params
        response = await self._transport.request(
            "POST",
            self.url,
            headers=self._headers(),
            body=json.dumps(envelope).encode("utf-8"),
            timeout_s=self.settings.connect_timeout_s,
        )
        self._check_session(response)
        if response.status >= 400:
            raise ProtocolError(f"Notification {method} rejected: HTTP {response.status}")
