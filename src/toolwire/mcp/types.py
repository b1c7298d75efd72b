"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Type models and error hierarchy for remote tool servers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ErrorKind = Literal[
    "config",
    "handshake",
    "session_expired",
    "rate_limit",
    "transport",
    "protocol",
    "tool",
    "not_connected",
    "not_found",
    "invalid_name",
    "reconnect_failed",
]


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """
    Remote tool server configuration.

    Attributes:
        id: Stable identifier used for routing and tool name prefixes.
        name: Human-readable display name.
        url: JSON-RPC endpoint URL (for example: https://tools.example/mcp).
        auth_token: Optional bearer token sent with every request.
        rate_limit: Optional per-minute call ceiling for this server.
        enabled: Disabled servers are skipped during initialization.
    """

    id: str
    name: str
    url: str
    auth_token: str | None = None
    rate_limit: int | None = None
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class ToolRecord:
    """Sanitized remote tool as exposed to callers."""

    server_id: str
    name: str
    qualified_name: str
    description: str
    input_schema: dict[str, Any]
    content_hash: str


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Flattened tool entry handed to the agent layer."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True, slots=True)
class ConnectInfo:
    """Handshake outcome for one client."""

    server_info: dict[str, Any] = field(default_factory=dict)
    tool_count: int = 0


@dataclass(frozen=True, slots=True)
class ServerOutcome:
    """Per-server result of ``ConnectionManager.initialize_all``."""

    id: str | None
    name: str | None
    tools: int
    status: Literal["connected", "failed"]
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ServerStatus:
    """Diagnostic snapshot for one managed server."""

    id: str
    name: str
    connected: bool
    tools: int
    url: str


@dataclass(frozen=True, slots=True)
class ToolCallResult:
    """
    Structured outcome of a remote tool invocation.

    Failures never raise past the connection manager; they are reported here
    with ``success=False`` and an ``error_type`` naming the failure class.
    """

    success: bool
    content: str | None = None
    server: str | None = None
    tool: str | None = None
    error_message: str | None = None
    error_type: ErrorKind | None = None

    @classmethod
    def ok(cls, content: str, *, server: str, tool: str) -> "ToolCallResult":
        return cls(success=True, content=content, server=server, tool=tool)

    @classmethod
    def failure(
        cls,
        error_type: ErrorKind,
        message: str,
        *,
        server: str | None = None,
        tool: str | None = None,
    ) -> "ToolCallResult":
        return cls(
            success=False,
            server=server,
            tool=tool,
            error_message=message,
            error_type=error_type,
        )

    @classmethod
    def from_error(
        cls,
        error: "RemoteToolError",
        *,
        server: str | None = None,
        tool: str | None = None,
    ) -> "ToolCallResult":
        return cls.failure(error.kind, str(error), server=server, tool=tool)


class RemoteToolError(RuntimeError):
    """Base remote tool error."""

    kind: ErrorKind = "protocol"


class ServerConfigError(RemoteToolError):
    """Raised when a server configuration is invalid or unsafe."""

    kind: ErrorKind = "config"


class HandshakeError(RemoteToolError):
    """Raised when the ``initialize`` exchange is rejected or malformed."""

    kind: ErrorKind = "handshake"


class SessionExpiredError(RemoteToolError):
    """Raised when the server answers 404 for a held session."""

    kind: ErrorKind = "session_expired"


class RateLimitError(RemoteToolError):
    """Raised when a local or global call ceiling is exceeded."""

    kind: ErrorKind = "rate_limit"


class TransportError(RemoteToolError):
    """Raised on timeouts, network failures and unexpected HTTP status."""

    kind: ErrorKind = "transport"


class ResponseTooLargeError(TransportError):
    """Raised when a response body exceeds the configured byte ceiling."""


class ProtocolError(RemoteToolError):
    """Raised when a JSON-RPC response is malformed or unmatched."""

    kind: ErrorKind = "protocol"


class NoResponseError(ProtocolError):
    """Raised when an event stream carries no response for the request id."""


class ToolError(RemoteToolError):
    """Raised when a remote tool reports a failure."""

    kind: ErrorKind = "tool"
