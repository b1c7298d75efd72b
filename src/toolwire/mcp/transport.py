"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Bounded HTTP transport for remote tool servers.
"""

from __future__ import annotations

import asyncio
import socket
import ssl
import time
import urllib.error
import urllib.request
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from toolwire.mcp.types import ResponseTooLargeError, TransportError

T = TypeVar("T")

MAX_RESPONSE_BYTES = 5 * 1024 * 1024
_READ_CHUNK_BYTES = 64 * 1024


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """Fully read HTTP response. Header names are lower-cased."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def content_type(self) -> str:
        return self.header("content-type") or ""

    def text(self, limit: int | None = None) -> str:
        decoded = self.body.decode("utf-8", errors="replace")
        return decoded if limit is None else decoded[:limit]


class Transport(Protocol):
    """Anything that can perform one bounded HTTP exchange."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout_s: float,
    ) -> HttpResponse: ...


async def await_with_timeout(awaitable: Awaitable[T], timeout_s: float) -> T:
    """Await value with a mandatory timeout reported as ``TransportError``."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise TransportError(f"Request timed out after {timeout_s:g}s") from e


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Surface 3xx responses instead of following them with our headers."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


class HttpTransport:
    """
    ``urllib`` transport executed in worker threads.

    Every exchange is bounded twice in time (socket timeout and an asyncio
    deadline) and once in size: bodies larger than ``max_response_bytes`` are
    abandoned mid-read. The worker also checks the deadline between chunks so
    a slow peer cannot keep the thread busy after the call has timed out.
    Redirects are never followed.
    """

    def __init__(self, *, max_response_bytes: int = MAX_RESPONSE_BYTES) -> None:
        self.max_response_bytes = max_response_bytes
        self._tls = ssl.create_default_context()
        self._tls.minimum_version = ssl.TLSVersion.TLSv1_2
        self._opener = urllib.request.build_opener(
            _NoRedirect(), urllib.request.HTTPSHandler(context=self._tls)
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout_s: float,
    ) -> HttpResponse:
        return await await_with_timeout(
            asyncio.to_thread(self.send, method, url, dict(headers), body, timeout_s),
            timeout_s,
        )

    def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_s: float,
    ) -> HttpResponse:
        deadline = time.monotonic() + timeout_s
        req = urllib.request.Request(url, data=body, method=method, headers=headers)
        try:
            with self._opener.open(req, timeout=timeout_s) as resp:  # noqa: S310
                return self._read_response(resp, resp.status, deadline=deadline)
        except urllib.error.HTTPError as e:
            # Non-2xx responses, 3xx included, still carry headers and a body.
            try:
                return self._read_response(e, e.code, deadline=deadline)
            finally:
                e.close()
        except urllib.error.URLError as e:
            if isinstance(e.reason, (socket.timeout, TimeoutError)):
                raise TransportError(f"Request timed out after {timeout_s:g}s") from e
            raise TransportError(f"Network error calling {url}: {e.reason}") from e
        except (socket.timeout, TimeoutError) as e:
            raise TransportError(f"Request timed out after {timeout_s:g}s") from e
        except OSError as e:
            raise TransportError(f"Network error calling {url}: {e}") from e

    def _read_response(
        self,
        resp: Any,
        status: int,
        *,
        deadline: float | None = None,
    ) -> HttpResponse:
        headers = {str(k).lower(): str(v) for k, v in resp.headers.items()}
        declared = headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_response_bytes:
            raise ResponseTooLargeError(
                f"Response exceeded {self.max_response_bytes} bytes limit"
            )

        # read1 returns whatever is buffered instead of waiting for a full chunk.
        read = getattr(resp, "read1", resp.read)
        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            total += len(chunk)
            if total > self.max_response_bytes:
                resp.close()
                raise ResponseTooLargeError(
                    f"Response exceeded {self.max_response_bytes} bytes limit"
                )
            chunks.append(chunk)
            if deadline is not None and time.monotonic() > deadline:
                resp.close()
                raise TransportError("Request timed out while reading response body")
        return HttpResponse(status=status, headers=headers, body=b"".join(chunks))
