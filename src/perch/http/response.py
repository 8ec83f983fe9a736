"""Received HTTP response.

A frozen snapshot of one completed exchange. Redirect hops and the
terminal response of a chain share this type, so redirect handlers and
test assertions read the same fields.
"""

from __future__ import annotations

import json as json_module
from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass(frozen=True, slots=True)
class ReceivedResponse:
    """A completed HTTP response with its body fully read."""

    status: int
    url: httpx.URL
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""
    reason: str = ""
    encoding: str | None = None

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> ReceivedResponse:
        """Snapshot an ``httpx.Response``, reading its body if needed."""
        body = response.read()
        return cls(
            status=response.status_code,
            url=response.request.url,
            headers=httpx.Headers(response.headers),
            body=body,
            reason=response.reason_phrase,
            encoding=response.encoding,
        )

    @property
    def text(self) -> str:
        """Body decoded with the response charset (UTF-8 when absent)."""
        return self.body.decode(self.encoding or "utf-8", errors="replace")

    @property
    def is_redirect(self) -> bool:
        return self.status in (301, 302, 303, 307, 308) and "location" in self.headers

    @property
    def set_cookie_headers(self) -> list[str]:
        """Every ``Set-Cookie`` header value, in wire order."""
        return self.headers.get_list("set-cookie")

    def json(self) -> Any:
        """Decode the body as JSON."""
        return json_module.loads(self.body)

    def __repr__(self) -> str:
        return f"<ReceivedResponse [{self.status}] {self.url}>"
