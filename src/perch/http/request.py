"""Outgoing request specification.

A RequestSpec is the mutable description of one request hop. Actions
configure it before it is sent; the dispatcher owns its URL. Redirect
handling is registered per spec with ``on_redirect``.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Callable, Mapping
from typing import Any, TypeAlias
from urllib.parse import urlencode

import httpx

from perch.http.response import ReceivedResponse

Action: TypeAlias = Callable[["RequestSpec"], None]
RedirectHandler: TypeAlias = Callable[[ReceivedResponse], Action | None]
RedirectInterceptor: TypeAlias = Callable[[RedirectHandler | None], RedirectHandler]

_FRAMING_HEADERS = ("content-length", "transfer-encoding")


class RequestSpec:
    """Mutable specification of one outgoing request.

    ``method``, ``headers`` and ``content`` are plain attributes. Helper
    methods return the RequestSpec so calls can be chained::

        spec.json({"name": "bob"}).redirects(0)
    """

    __slots__ = (
        "_interceptor",
        "_redirect_handler",
        "_url",
        "content",
        "headers",
        "max_redirects",
        "method",
    )

    def __init__(
        self,
        url: httpx.URL | str,
        *,
        method: str = "GET",
        headers: httpx.Headers | Mapping[str, str] | None = None,
        content: bytes | None = None,
        max_redirects: int = 20,
    ) -> None:
        self._url = httpx.URL(url)
        self.method = method
        self.headers = httpx.Headers(headers)
        self.content = content
        self.max_redirects = max_redirects
        self._redirect_handler: RedirectHandler | None = None
        self._interceptor: RedirectInterceptor | None = None

    @classmethod
    def from_request(cls, request: httpx.Request, *, max_redirects: int = 20) -> RequestSpec:
        """Build a spec for a request httpx prepared (e.g. the next redirect hop)."""
        content = request.read()
        # Framing headers are recomputed from whatever body the hop ends up with.
        headers = httpx.Headers(request.headers)
        for name in _FRAMING_HEADERS:
            headers.pop(name, None)
        return cls(
            request.url,
            method=request.method,
            headers=headers,
            content=content or None,
            max_redirects=max_redirects,
        )

    @property
    def url(self) -> httpx.URL:
        """Target URL. Set by the dispatcher, read-only for actions."""
        return self._url

    @property
    def redirect_handler(self) -> RedirectHandler | None:
        """The handler the dispatcher calls before following a redirect."""
        return self._redirect_handler

    # -- Redirects --

    def on_redirect(self, handler: RedirectHandler | None) -> RequestSpec:
        """Register the function deciding how the next redirect hop is customized.

        The handler receives the redirect response and returns an Action to
        run against the next hop's spec, or None to leave it alone.
        """
        if self._interceptor is not None:
            self._redirect_handler = self._interceptor(handler)
        else:
            self._redirect_handler = handler
        return self

    def intercept_redirects(self, interceptor: RedirectInterceptor) -> RequestSpec:
        """Route the current and every later ``on_redirect`` handler through *interceptor*."""
        self._interceptor = interceptor
        self._redirect_handler = interceptor(self._redirect_handler)
        return self

    def redirects(self, max_redirects: int) -> RequestSpec:
        """Limit the redirects followed for this request (0 disables following)."""
        self.max_redirects = max_redirects
        return self

    # -- Headers and body --

    def header(self, name: str, value: str) -> RequestSpec:
        """Set a header, replacing any existing values."""
        self.headers[name] = value
        return self

    def body(self, content: bytes | str, content_type: str | None = None) -> RequestSpec:
        """Set the raw request body."""
        self.content = content.encode("utf-8") if isinstance(content, str) else content
        if content_type is not None:
            self.headers["content-type"] = content_type
        return self

    def json(self, obj: Any) -> RequestSpec:
        """Send *obj* as a JSON body."""
        return self.body(json_module.dumps(obj), "application/json")

    def form(self, fields: Mapping[str, str] | list[tuple[str, str]]) -> RequestSpec:
        """Send *fields* as an urlencoded form body."""
        return self.body(urlencode(fields), "application/x-www-form-urlencoded")

    def __repr__(self) -> str:
        return f"<RequestSpec {self.method} {self._url}>"
