"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Remote tool client settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

MCP_PROTOCOL_VERSION = "2025-06-18"


@dataclass(frozen=True, slots=True)
class RemoteToolSettings:
    """Explicit settings used by protocol clients and the connection manager."""

    protocol_version: str = MCP_PROTOCOL_VERSION
    client_name: str = "toolwire"
    client_version: str = "0.1.0"

    server_rate_limit: int = 10
    global_rate_limit: int = 50
    rate_window_s: float = 60.0

    connect_timeout_s: float = 15.0
    call_timeout_s: float = 30.0
    max_response_bytes: int = 5 * 1024 * 1024

    description_max_length: int = 2000
    tool_name_max_length: int = 64

    @staticmethod
    def from_env() -> "RemoteToolSettings":
        """Load settings from environment variables."""
        return RemoteToolSettings(
            client_name=os.getenv("TOOLWIRE_CLIENT_NAME", "toolwire"),
            client_version=os.getenv("TOOLWIRE_CLIENT_VERSION", "0.1.0"),
            server_rate_limit=int(os.getenv("TOOLWIRE_SERVER_RATE_LIMIT", "10")),
            global_rate_limit=int(os.getenv("TOOLWIRE_GLOBAL_RATE_LIMIT", "50")),
            connect_timeout_s=float(os.getenv("TOOLWIRE_CONNECT_TIMEOUT_S", "15")),
            call_timeout_s=float(os.getenv("TOOLWIRE_CALL_TIMEOUT_S", "30")),
            max_response_bytes=int(
                os.getenv("TOOLWIRE_MAX_RESPONSE_BYTES", str(5 * 1024 * 1024))
            ),
            description_max_length=int(
                os.getenv("TOOLWIRE_DESCRIPTION_MAX_LENGTH", "2000")
            ),
        )
