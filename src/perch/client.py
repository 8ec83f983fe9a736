"""Blocking test client for applications under test.

Keeps a path-scoped cookie jar across requests and across every redirect
hop it follows, the way a browser would. Request customization is
layered: the constructor's default action, then the session override set
with ``request_spec``, then the per-call action.

One client per test thread: the jar has no locking.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeAlias

import httpx

from perch.application import ApplicationUnderTest
from perch.config import ClientConfig
from perch.dispatch import BlockingHttpClient
from perch.http.cookies import Cookie
from perch.http.request import Action, RequestSpec
from perch.http.response import ReceivedResponse
from perch.jar import CookieJar
from perch.redirects import CookieHandling

logger = logging.getLogger("perch.client")

ParamsBuilder: TypeAlias = Callable[[list[tuple[str, Any]]], None]
Params: TypeAlias = Mapping[str, Any] | Sequence[tuple[str, Any]] | ParamsBuilder


class TestHttpClient:
    __test__ = False  # Tell pytest this is not a test class
    """Blocking, cookie-keeping test client.

    Usage::

        client = TestHttpClient(ServerBackedApplicationUnderTest("http://localhost:5050"))
        client.post("login")
        assert client.get_text("dashboard") == "hello"
    """

    __slots__ = (
        "_cookie_handling",
        "_default_request_config",
        "_http",
        "_jar",
        "_params",
        "_request",
        "_response",
        "application",
        "config",
    )

    def __init__(
        self,
        application: ApplicationUnderTest,
        default_request_config: Action | None = None,
        *,
        config: ClientConfig | None = None,
    ) -> None:
        self.application = application
        self.config = config or ClientConfig()
        self._default_request_config = default_request_config
        self._http = BlockingHttpClient(
            application.transport,
            follow_redirects=self.config.follow_redirects,
            max_redirects=self.config.max_redirects,
        )
        self._jar = CookieJar()
        self._cookie_handling = CookieHandling(
            self._jar,
            reapply_on_redirect=self.config.reapply_cookies_on_redirect,
        )
        self._request: Action | None = None
        self._params: Params = ()
        self._response: ReceivedResponse | None = None

    # -- Session state --

    def request_spec(self, action: Action | None) -> TestHttpClient:
        """Customize every following request until ``reset_request``."""
        self._request = action
        return self

    def params(self, params: Params) -> TestHttpClient:
        """Query parameters merged into every following request URL.

        Accepts a mapping, a sequence of pairs, or a callable that appends
        pairs to the list it is given.
        """
        self._params = params
        return self

    def reset_request(self) -> None:
        """Drop the session customization and every stored cookie."""
        self._request = None
        self._jar.clear()

    @property
    def response(self) -> ReceivedResponse | None:
        """The last top-level response, or None before the first request."""
        return self._response

    @property
    def cookie_jar(self) -> CookieJar:
        """The client's jar, for seeding cookies with ``add`` or inspecting all of them."""
        return self._jar

    def get_cookies(self, path: str = "/") -> list[Cookie]:
        """Cookies the client would send to *path*."""
        return self._jar.match(path)

    # -- Requests --

    def request(self, path: str = "", action: Action | None = None) -> ReceivedResponse:
        """Send a request to *path* and return the final response of its redirect chain.

        *path* is resolved against the application's address unless it is
        already absolute. Cookies set anywhere along the chain end up in
        the jar.
        """
        url = self._build_url(path)

        def configure(spec: RequestSpec) -> None:
            decorated = self._cookie_handling.decorate(spec)
            decorated.method = self.config.default_method
            if self._default_request_config is not None:
                self._default_request_config(decorated)
            if self._request is not None:
                self._request(decorated)
            if action is not None:
                action(decorated)

        response = self._http.request(url, self.config.timeout, configure)
        self._jar.record(response)
        self._response = response
        logger.debug("Completed %s with %d", url, response.status)
        return response

    def _build_url(self, path: str) -> httpx.URL:
        url = httpx.URL(path)
        if not url.is_absolute_url:
            url = httpx.URL(self.application.address + path.removeprefix("/"))
        params = self._resolve_params()
        return url.copy_merge_params(params) if params else url

    def _resolve_params(self) -> Sequence[tuple[str, Any]] | Mapping[str, Any]:
        if callable(self._params):
            collected: list[tuple[str, Any]] = []
            self._params(collected)
            return collected
        return self._params

    def _method(self, method: str, path: str) -> ReceivedResponse:
        def set_method(spec: RequestSpec) -> None:
            spec.method = method

        return self.request(path, set_method)

    def head(self, path: str = "") -> ReceivedResponse:
        return self._method("HEAD", path)

    def options(self, path: str = "") -> ReceivedResponse:
        return self._method("OPTIONS", path)

    def get(self, path: str = "") -> ReceivedResponse:
        return self._method("GET", path)

    def post(self, path: str = "") -> ReceivedResponse:
        return self._method("POST", path)

    def put(self, path: str = "") -> ReceivedResponse:
        return self._method("PUT", path)

    def patch(self, path: str = "") -> ReceivedResponse:
        return self._method("PATCH", path)

    def delete(self, path: str = "") -> ReceivedResponse:
        return self._method("DELETE", path)

    # -- Text shortcuts --

    def options_text(self, path: str = "") -> str:
        return self.options(path).text

    def get_text(self, path: str = "") -> str:
        return self.get(path).text

    def post_text(self, path: str = "") -> str:
        return self.post(path).text

    def put_text(self, path: str = "") -> str:
        return self.put(path).text

    def patch_text(self, path: str = "") -> str:
        return self.patch(path).text

    def delete_text(self, path: str = "") -> str:
        return self.delete(path).text

    # -- Lifecycle --

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> TestHttpClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
