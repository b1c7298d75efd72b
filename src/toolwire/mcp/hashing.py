"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Canonical content hashing of remote tool definitions.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys and no insignificant whitespace."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def hash_tool_definition(
    name: str,
    description: str | None,
    input_schema: Any,
) -> str:
    """SHA-256 over the canonical ``{name, description, inputSchema}`` triple."""
    payload = canonical_json(
        {
            "name": name,
            "description": description or "",
            "inputSchema": input_schema if input_schema is not None else {},
        }
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
