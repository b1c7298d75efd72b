"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

toolwire: client and connection manager for remote JSON-RPC tool servers.
"""

from .mcp import (
    ConnectionManager,
    ProtocolClient,
    RemoteToolSettings,
    ServerConfig,
    ToolCallResult,
    wrap_external_content,
)

__all__ = [
    "ConnectionManager",
    "ProtocolClient",
    "RemoteToolSettings",
    "ServerConfig",
    "ToolCallResult",
    "wrap_external_content",
]
