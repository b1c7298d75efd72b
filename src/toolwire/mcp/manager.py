"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Connection manager that aggregates and routes calls across tool servers.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from toolwire.mcp.client import ProtocolClient
from toolwire.mcp.rate_limit import SlidingWindowRateLimiter
from toolwire.mcp.sanitize import parse_qualified_name, sanitize_identifier, server_prefix
from toolwire.mcp.settings import RemoteToolSettings
from toolwire.mcp.transport import Transport
from toolwire.mcp.types import (
    RateLimitError,
    RemoteToolError,
    ServerConfig,
    ServerOutcome,
    ServerStatus,
    SessionExpiredError,
    ToolCallResult,
    ToolDescriptor,
    ToolRecord,
)
from toolwire.mcp.utils import resolve_server_config

logger = logging.getLogger("toolwire.mcp")

ContentWrapper = Callable[[str, str], str]


class ConnectionManager:
    """
    Owns every ``ProtocolClient`` and exposes their tools under one namespace.

    A misbehaving server only loses its own tools: connection and call
    failures are reported as structured outcomes and never escape to callers.
    """

    def __init__(
        self,
        *,
        settings: RemoteToolSettings | None = None,
        transport: Transport | None = None,
        wrap_content: ContentWrapper | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or RemoteToolSettings()
        self._transport = transport
        self._wrap_content = wrap_content
        self._log = log or logger
        self._lock = threading.RLock()
        self._servers: dict[str, ProtocolClient] = {}
        self._global_limiter = SlidingWindowRateLimiter(
            self.settings.global_rate_limit,
            window_s=self.settings.rate_window_s,
        )

    def get_client(self, server_id: str) -> ProtocolClient | None:
        with self._lock:
            return self._servers.get(server_id)

    async def initialize_all(
        self,
        configs: Iterable[ServerConfig | Mapping[str, Any]] | None,
    ) -> list[ServerOutcome]:
        """Connect to every enabled server; failures are recorded, not raised."""
        configs = list(configs or [])
        if not configs:
            self._log.info("No tool servers configured")
            return []

        outcomes: list[ServerOutcome] = []
        for ref in configs:
            outcome = await self._initialize_one(ref)
            if outcome is not None:
                outcomes.append(outcome)

        with self._lock:
            server_count = len(self._servers)
        self._log.info(
            "Initialization complete: %d servers, %d tools",
            server_count,
            len(self.get_all_tools()),
        )
        return outcomes

    async def _initialize_one(
        self,
        ref: ServerConfig | Mapping[str, Any],
    ) -> ServerOutcome | None:
        raw_name = ref.get("name") if isinstance(ref, Mapping) else getattr(ref, "name", None)
        try:
            config = resolve_server_config(ref)
        except RemoteToolError as e:
            self._log.warning("Invalid tool server config %s: %s", raw_name, e)
            return ServerOutcome(id=None, name=raw_name, tools=0, status="failed", error=str(e))

        if not config.enabled:
            self._log.info("Skipping disabled server: %s", config.name)
            return None

        safe_id = sanitize_identifier(config.id)
        if not safe_id:
            self._log.warning("Skipping server with missing id: %s", config.name or "<unnamed>")
            return ServerOutcome(
                id=None, name=config.name, tools=0, status="failed", error="Missing server id"
            )

        with self._lock:
            duplicate = safe_id in self._servers
        if duplicate:
            self._log.warning("Duplicate server id %s from %s, skipping", safe_id, config.name)
            return ServerOutcome(
                id=safe_id, name=config.name, tools=0, status="failed", error="Duplicate server id"
            )

        try:
            client = ProtocolClient(
                config,
                settings=self.settings,
                transport=self._transport,
                log=self._log,
            )
            info = await client.connect()
        except RemoteToolError as e:
            self._log.warning("Failed to connect to %s: %s", config.name, e)
            return ServerOutcome(
                id=safe_id, name=config.name, tools=0, status="failed", error=str(e)
            )

        with self._lock:
            self._servers[safe_id] = client
        return ServerOutcome(
            id=safe_id, name=config.name, tools=info.tool_count, status="connected"
        )

    def get_all_tools(self) -> list[ToolDescriptor]:
        """Flatten every connected server's catalog."""
        with self._lock:
            clients = list(self._servers.values())
        tools: list[ToolDescriptor] = []
        for client in clients:
            if not client.connected:
                continue
            for record in client.tools:
                tools.append(
                    ToolDescriptor(
                        name=record.qualified_name,
                        description=f"[MCP: {record.server_id}] {record.description}",
                        input_schema=record.input_schema,
                    )
                )
        return tools

    def _route(self, qualified_name: str) -> tuple[ProtocolClient | None, ToolRecord | None]:
        # Prefix matching rather than the parsed id: server ids may contain "__".
        with self._lock:
            candidates = [
                client
                for server_id, client in self._servers.items()
                if qualified_name.startswith(server_prefix(server_id))
            ]
        candidates.sort(key=lambda c: len(c.safe_id), reverse=True)
        for client in candidates:
            record = client.resolve_tool(qualified_name)
            if record is not None:
                return client, record
        return (candidates[0] if candidates else None), None

    async def execute_tool(
        self,
        qualified_name: str,
        args: dict[str, Any] | None = None,
    ) -> ToolCallResult:
        """Route one qualified tool call; every failure is a structured result."""
        if parse_qualified_name(qualified_name) is None:
            return ToolCallResult.failure(
                "invalid_name", f"Malformed tool name: {qualified_name!r}"
            )

        client, record = self._route(qualified_name)
        if client is None:
            return ToolCallResult.failure(
                "not_found", f"Tool server not found for {qualified_name}"
            )
        if record is None:
            return ToolCallResult.failure(
                "not_found",
                f"Tool {qualified_name} not found on {client.name}",
                server=client.name,
            )

        if not self._global_limiter.acquire():
            return ToolCallResult.from_error(
                RateLimitError(
                    f"Global tool rate limit exceeded ({self._global_limiter.max_per_window}/min)"
                ),
                server=client.name,
                tool=record.name,
            )

        result = await self._call_with_reconnect(client, record, args or {})
        if result.success and result.content and self._wrap_content is not None:
            result = ToolCallResult.ok(
                self._wrap_content(result.content, f"mcp: {client.name}/{record.name}"),
                server=client.name,
                tool=record.name,
            )
        return result

    async def _call_with_reconnect(
        self,
        client: ProtocolClient,
        record: ToolRecord,
        args: dict[str, Any],
    ) -> ToolCallResult:
        try:
            return await client.call_tool(record.name, args)
        except SessionExpiredError:
            self._log.info("Session expired for %s, reconnecting", client.name)
        except RemoteToolError as e:
            return ToolCallResult.from_error(e, server=client.name, tool=record.name)

        try:
            await client.connect()
            if client.resolve_tool(record.qualified_name) is None:
                return ToolCallResult.failure(
                    "not_found",
                    f"Tool {record.qualified_name} no longer offered by {client.name}",
                    server=client.name,
                    tool=record.name,
                )
            return await client.call_tool(record.name, args)
        except RemoteToolError as e:
            self._log.warning("Reconnect to %s failed: %s", client.name, e)
            return ToolCallResult.failure(
                "reconnect_failed",
                f"Reconnect failed: {e}",
                server=client.name,
                tool=record.name,
            )

    def get_status(self) -> list[ServerStatus]:
        with self._lock:
            items = list(self._servers.items())
        return [
            ServerStatus(
                id=server_id,
                name=client.name,
                connected=client.connected,
                tools=len(client.tools),
                url=client.url,
            )
            for server_id, client in items
        ]

    def shutdown(self) -> None:
        """Disconnect every server. Safe to call repeatedly."""
        with self._lock:
            clients = list(self._servers.values())
            self._servers.clear()
        for client in clients:
            client.disconnect()
        if clients:
            self._log.info("All tool servers disconnected")
