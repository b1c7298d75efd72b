"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Remote tool server client package for toolwire.

Connects to JSON-RPC tool servers, exposes their tools under
``tool__<server>__<tool>`` names and routes calls back to them.

Quick start::

    from toolwire.mcp import ConnectionManager, wrap_external_content

    manager = ConnectionManager(wrap_content=wrap_external_content)
    await manager.initialize_all(
        [{"id": "calc", "name": "Calculator", "url": "https://calc.example/mcp"}]
    )
    tools = [tool.to_dict() for tool in manager.get_all_tools()]
    result = await manager.execute_tool("tool__calc__add", {"a": 1, "b": 2})
"""

from .client import ProtocolClient
from .hashing import canonical_json, hash_tool_definition
from .manager import ConnectionManager
from .rate_limit import SlidingWindowRateLimiter
from .sanitize import (
    parse_qualified_name,
    qualified_tool_name,
    sanitize_description,
    sanitize_identifier,
)
from .security import (
    SecretRedactionFilter,
    detect_suspicious_patterns,
    redact_secrets,
    wrap_external_content,
)
from .settings import MCP_PROTOCOL_VERSION, RemoteToolSettings
from .sse import SSEEvent, parse_sse_events
from .transport import HttpResponse, HttpTransport
from .types import (
    ConnectInfo,
    HandshakeError,
    NoResponseError,
    ProtocolError,
    RateLimitError,
    RemoteToolError,
    ResponseTooLargeError,
    ServerConfig,
    ServerConfigError,
    ServerOutcome,
    ServerStatus,
    SessionExpiredError,
    ToolCallResult,
    ToolDescriptor,
    ToolError,
    ToolRecord,
    TransportError,
)
from .utils import render_tool_content, resolve_server_config

__all__ = [
    "ConnectionManager",
    "ProtocolClient",
    "RemoteToolSettings",
    "MCP_PROTOCOL_VERSION",
    "ServerConfig",
    "ToolRecord",
    "ToolDescriptor",
    "ToolCallResult",
    "ConnectInfo",
    "ServerOutcome",
    "ServerStatus",
    "RemoteToolError",
    "ServerConfigError",
    "HandshakeError",
    "SessionExpiredError",
    "RateLimitError",
    "TransportError",
    "ResponseTooLargeError",
    "ProtocolError",
    "NoResponseError",
    "ToolError",
    "SlidingWindowRateLimiter",
    "SSEEvent",
    "parse_sse_events",
    "HttpResponse",
    "HttpTransport",
    "canonical_json",
    "hash_tool_definition",
    "sanitize_description",
    "sanitize_identifier",
    "qualified_tool_name",
    "parse_qualified_name",
    "resolve_server_config",
    "render_tool_content",
    "wrap_external_content",
    "redact_secrets",
    "detect_suspicious_patterns",
    "SecretRedactionFilter",
]
