"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Sanitization of remote-supplied tool metadata and tool name namespacing.
"""

from __future__ import annotations

import re
from typing import Any

TOOL_NAME_PREFIX = "tool"
TOOL_NAME_SEPARATOR = "__"
TOOL_NAME_MAX_LENGTH = 64
DESCRIPTION_MAX_LENGTH = 2000

# Unicode tag block: invisible to humans, still read by models.
_TAG_CHARS = re.compile("[\U000e0000-\U000e007f]")
_BIDI_OVERRIDES = re.compile("[\u202a-\u202e\u2066-\u2069]")
_ZERO_WIDTH = re.compile("[\u200b-\u200f\u2060\ufeff]")
_HTML_TAGS = re.compile(r"<[^>]*>")
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_description(
    value: Any,
    *,
    max_length: int = DESCRIPTION_MAX_LENGTH,
) -> str:
    """Strip invisible code points and markup, then cap the length."""
    if not isinstance(value, str):
        return ""
    out = _TAG_CHARS.sub("", value)
    out = _BIDI_OVERRIDES.sub("", out)
    out = _ZERO_WIDTH.sub("", out)
    out = _HTML_TAGS.sub("", out)
    if len(out) > max_length:
        out = out[:max_length] + "..."
    return out.strip()


def sanitize_identifier(value: str | None) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with ``_``."""
    return _UNSAFE_NAME_CHARS.sub("_", value or "")


def qualified_tool_name(server_id: str, tool_name: str) -> str:
    """Build ``tool__<server>__<tool>`` from raw identifiers."""
    return TOOL_NAME_SEPARATOR.join(
        (TOOL_NAME_PREFIX, sanitize_identifier(server_id), sanitize_identifier(tool_name))
    )


def server_prefix(server_id: str) -> str:
    """Prefix shared by every qualified name of one server."""
    return qualified_tool_name(server_id, "")


def parse_qualified_name(qualified_name: Any) -> tuple[str, str] | None:
    """
    Split a qualified name into ``(server_id, tool_name)``.

    Returns ``None`` for names that are not prefixed with ``tool__`` or that
    have fewer than three ``__``-separated segments. Server ids may themselves
    contain ``__``; the split is on the first separator only, so callers with
    such ids must fall back to prefix matching.
    """
    if not isinstance(qualified_name, str):
        return None
    parts = qualified_name.split(TOOL_NAME_SEPARATOR, 2)
    if len(parts) < 3 or parts[0] != TOOL_NAME_PREFIX:
        return None
    _, server_id, tool_name = parts
    if not server_id or not tool_name:
        return None
    return server_id, tool_name
