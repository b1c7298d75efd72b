"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Server-sent event stream decoding for ``text/event-stream`` responses.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SSEEvent:
    """One decoded server-sent event."""

    type: str = "message"
    data: str = ""
    id: str | None = None


def parse_sse_events(stream: bytes | str) -> list[SSEEvent]:
    """Decode a complete event-stream body into ordered events."""
    text = stream.decode("utf-8", errors="replace") if isinstance(stream, bytes) else stream
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    events: list[SSEEvent] = []
    event_type = "message"
    event_id: str | None = None
    data_lines: list[str] = []

    def flush() -> None:
        data = "\n".join(data_lines)
        if data:
            events.append(SSEEvent(type=event_type, data=data, id=event_id))

    for line in lines:
        if line == "":
            flush()
            event_type, event_id, data_lines = "message", None, []
        elif line.startswith(":"):
            continue
        elif line.startswith("event:"):
            event_type = line[len("event:"):].strip() or "message"
        elif line.startswith("data:"):
            value = line[len("data:"):]
            data_lines.append(value[1:] if value.startswith(" ") else value)
        elif line.startswith("id:"):
            event_id = line[len("id:"):].strip()

    # Stream may end without a terminating blank line.
    flush()
    return events
