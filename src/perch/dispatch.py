"""Blocking request dispatcher.

Sends one request and follows its redirect chain hop by hop over an
``httpx.Client``. Before each redirect is followed, the current spec's
redirect handler is called with the hop's response and may return an
Action that customizes the next hop.

httpx's own cookie persistence is switched off: cookie state belongs to
the caller (see ``perch.jar``).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from http.cookiejar import CookieJar as StdlibCookieJar
from http.cookiejar import DefaultCookiePolicy

import httpx

from perch.http.request import RequestSpec
from perch.http.response import ReceivedResponse

logger = logging.getLogger("perch.client")


def _cookieless_jar() -> StdlibCookieJar:
    """A jar whose policy accepts cookies from no domain at all."""
    return StdlibCookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class BlockingHttpClient:
    """Synchronous request primitive with a per-hop redirect hook.

    Usage::

        with BlockingHttpClient() as http:
            response = http.request(url, 30.0, lambda spec: spec.header("Accept", "text/html"))
    """

    __slots__ = ("_client", "follow_redirects", "max_redirects")

    def __init__(
        self,
        transport: httpx.BaseTransport | None = None,
        *,
        follow_redirects: bool = True,
        max_redirects: int = 20,
    ) -> None:
        self._client = httpx.Client(transport=transport, cookies=_cookieless_jar())
        self.follow_redirects = follow_redirects
        self.max_redirects = max_redirects

    def request(
        self,
        url: httpx.URL | str,
        timeout: float,
        configure: Callable[[RequestSpec], None],
    ) -> ReceivedResponse:
        """Send a request to *url* and return the final response of its redirect chain.

        *timeout* bounds the whole chain in seconds. Cookies and state
        recorded by redirect handlers on earlier hops are kept when a later
        hop fails.
        """
        deadline = time.monotonic() + timeout
        max_redirects = self.max_redirects if self.follow_redirects else 0
        spec = RequestSpec(url, max_redirects=max_redirects)
        configure(spec)
        hops = 0

        while True:
            request = self._build(spec, deadline)
            logger.debug("%s %s", request.method, request.url)
            response = self._client.send(request, follow_redirects=False)
            try:
                received = ReceivedResponse.from_httpx(response)
            finally:
                response.close()

            next_request = response.next_request
            if next_request is None or hops >= spec.max_redirects:
                return received

            hops += 1
            action = spec.redirect_handler(received) if spec.redirect_handler is not None else None
            logger.debug("Following %d redirect to %s", received.status, next_request.url)
            spec = RequestSpec.from_request(next_request, max_redirects=spec.max_redirects)
            if action is not None:
                action(spec)

    def _build(self, spec: RequestSpec, deadline: float) -> httpx.Request:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            msg = f"Request chain timed out before {spec.method} {spec.url}"
            raise httpx.TimeoutException(msg)
        return self._client.build_request(
            spec.method,
            spec.url,
            headers=spec.headers,
            content=spec.content,
            timeout=remaining,
        )

    def close(self) -> None:
        """Close the underlying httpx client and its transport."""
        self._client.close()

    def __enter__(self) -> BlockingHttpClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
