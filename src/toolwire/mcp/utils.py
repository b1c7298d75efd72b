"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Utility helpers for server config resolution and tool result rendering.
"""

from __future__ import annotations

import json
import re
import urllib.parse
from collections.abc import Mapping
from typing import Any

from toolwire.mcp.types import ServerConfig, ServerConfigError

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}
_WHITESPACE = re.compile(r"\s+")


def validate_server_url(url: str) -> str:
    """Only ``http(s)`` URLs with a host may reach the transport."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise ServerConfigError("Tool server URL scheme must be http or https")
    if not parsed.netloc:
        raise ServerConfigError("Tool server URL must include network location")
    return url


def _optional_str(ref: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = ref.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ServerConfigError(f"Tool server '{key}' must be a string")
        return value.strip()
    return None


def normalize_secret(value: str | None) -> str | None:
    """Drop all whitespace, including line breaks picked up by pasting."""
    if value is None:
        return None
    out = _WHITESPACE.sub("", value)
    return out or None


def ensure_token_transport_safe(url: str, auth_token: str | None) -> None:
    """Refuse to send a bearer token over plain HTTP to a non-loopback host."""
    if not auth_token:
        return
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme == "https":
        return
    if (parsed.hostname or "") in _LOOPBACK_HOSTS:
        return
    raise ServerConfigError(
        f"Refusing to send auth token over plain HTTP to {url}. Use HTTPS or localhost."
    )


def resolve_server_config(ref: ServerConfig | Mapping[str, Any]) -> ServerConfig:
    """Resolve a server config from dataclass or mapping form."""
    if isinstance(ref, ServerConfig):
        validate_server_url(ref.url)
        return ref

    if not isinstance(ref, Mapping):
        raise ServerConfigError(
            f"Unsupported tool server config type: {type(ref).__name__}"
        )

    url = _optional_str(ref, "url")
    if not url:
        raise ServerConfigError("Tool server config requires non-empty 'url'")
    url = validate_server_url(url)

    server_id = _optional_str(ref, "id") or ""
    name = _optional_str(ref, "name") or server_id

    auth_token = normalize_secret(_optional_str(ref, "auth_token", "authToken"))

    rate_limit = ref.get("rate_limit", ref.get("rateLimit"))
    if rate_limit is not None and (
        isinstance(rate_limit, bool) or not isinstance(rate_limit, int) or rate_limit <= 0
    ):
        raise ServerConfigError("Tool server 'rate_limit' must be a positive integer")

    enabled = ref.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ServerConfigError("Tool server 'enabled' must be a boolean")

    return ServerConfig(
        id=server_id,
        name=name,
        url=url,
        auth_token=auth_token,
        rate_limit=rate_limit,
        enabled=enabled,
    )


def render_tool_content(content: Any) -> str:
    """Flatten a ``tools/call`` content array into text."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for row in content:
        part_type = row.get("type") if isinstance(row, dict) else None
        if part_type == "text" and isinstance(row.get("text"), str):
            parts.append(row["text"])
        elif part_type == "image":
            parts.append(f"[Image: {row.get('mimeType')}]")
        else:
            parts.append(json.dumps(row, separators=(",", ":"), default=str))
    return "\n".join(parts)
