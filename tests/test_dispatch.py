"""Tests for perch.dispatch: BlockingHttpClient redirect chains over httpx."""

import time
from collections.abc import Callable

import httpx
import pytest

from perch.dispatch import BlockingHttpClient
from perch.http.request import RequestSpec
from perch.http.response import ReceivedResponse


class Recorder:
    """httpx.MockTransport handler that scripts responses by path and records requests."""

    def __init__(self, routes: dict[str, Callable[[], httpx.Response]]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        return route() if route is not None else httpx.Response(404)


def _redirect(location: str, status: int = 302, **extra: str) -> Callable[[], httpx.Response]:
    return lambda: httpx.Response(status, headers={"location": location, **extra})


def _ok(text: str = "") -> Callable[[], httpx.Response]:
    return lambda: httpx.Response(200, text=text)


def _noop(spec: RequestSpec) -> None:
    pass


def _no_redirects(spec: RequestSpec) -> None:
    spec.redirects(0)


@pytest.fixture
def chain() -> Recorder:
    return Recorder({
        "/start": _redirect("/middle"),
        "/middle": _redirect("/end"),
        "/end": _ok("done"),
    })


class TestRequest:
    def test_plain_request(self) -> None:
        recorder = Recorder({"/": _ok("hi")})
        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            response = http.request("http://app.test/", 5.0, _noop)
        assert response.status == 200
        assert response.text == "hi"
        assert recorder.requests[0].method == "GET"

    def test_configure_runs_before_send(self) -> None:
        recorder = Recorder({"/": _ok()})

        def configure(spec: RequestSpec) -> None:
            spec.method = "POST"
            spec.header("X-Test", "yes").body(b"payload")

        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            http.request("http://app.test/", 5.0, configure)

        sent = recorder.requests[0]
        assert sent.method == "POST"
        assert sent.headers["x-test"] == "yes"
        assert sent.content == b"payload"

    def test_follows_redirect_chain(self, chain: Recorder) -> None:
        with BlockingHttpClient(httpx.MockTransport(chain)) as http:
            response = http.request("http://app.test/start", 5.0, _noop)
        assert response.status == 200
        assert response.url.path == "/end"
        assert [r.url.path for r in chain.requests] == ["/start", "/middle", "/end"]

    def test_transport_cookies_not_persisted(self) -> None:
        recorder = Recorder({
            "/set": _redirect("/check", **{"set-cookie": "a=1; Path=/"}),
            "/check": _ok(),
        })
        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            http.request("http://app.test/set", 5.0, _noop)
            http.request("http://app.test/check", 5.0, _noop)
        assert all("cookie" not in r.headers for r in recorder.requests)

    def test_transport_error_propagates(self) -> None:
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with BlockingHttpClient(httpx.MockTransport(fail)) as http, pytest.raises(httpx.ConnectError):
            http.request("http://app.test/", 5.0, _noop)


class TestRedirectHook:
    def test_called_once_per_hop(self, chain: Recorder) -> None:
        seen: list[int] = []

        def configure(spec: RequestSpec) -> None:
            spec.on_redirect(lambda response: seen.append(response.status))

        with BlockingHttpClient(httpx.MockTransport(chain)) as http:
            http.request("http://app.test/start", 5.0, configure)
        # Handlers are per spec: the second hop's spec has none registered.
        assert seen == [302]

    def test_action_customizes_next_hop(self, chain: Recorder) -> None:
        def carry_on(response: ReceivedResponse):  # type: ignore[no-untyped-def]
            def customize(spec: RequestSpec) -> None:
                spec.header("X-Hop", response.url.path)
                spec.on_redirect(carry_on)

            return customize

        def configure(spec: RequestSpec) -> None:
            spec.on_redirect(carry_on)

        with BlockingHttpClient(httpx.MockTransport(chain)) as http:
            http.request("http://app.test/start", 5.0, configure)

        assert "x-hop" not in chain.requests[0].headers
        assert chain.requests[1].headers["x-hop"] == "/start"
        assert chain.requests[2].headers["x-hop"] == "/middle"

    def test_not_called_for_terminal_response(self) -> None:
        calls: list[ReceivedResponse] = []
        recorder = Recorder({"/": _ok()})

        def configure(spec: RequestSpec) -> None:
            spec.on_redirect(lambda response: calls.append(response))

        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            http.request("http://app.test/", 5.0, configure)
        assert calls == []

    def test_303_after_post_becomes_get(self) -> None:
        recorder = Recorder({"/login": _redirect("/home", status=303), "/home": _ok()})

        def configure(spec: RequestSpec) -> None:
            spec.method = "POST"
            spec.body(b"user=bob")

        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            http.request("http://app.test/login", 5.0, configure)

        assert [r.method for r in recorder.requests] == ["POST", "GET"]
        assert recorder.requests[1].content == b""

    def test_307_keeps_method_and_body(self) -> None:
        recorder = Recorder({"/old": _redirect("/new", status=307), "/new": _ok()})

        def configure(spec: RequestSpec) -> None:
            spec.method = "PUT"
            spec.body(b"payload")

        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            http.request("http://app.test/old", 5.0, configure)

        assert [r.method for r in recorder.requests] == ["PUT", "PUT"]
        assert recorder.requests[1].content == b"payload"
        assert recorder.requests[1].headers["content-length"] == "7"

    def test_redirect_action_body_gets_fresh_content_length(self) -> None:
        recorder = Recorder({"/start": _redirect("/end", status=307), "/end": _ok()})

        def replace_body(spec: RequestSpec) -> None:
            spec.body(b"much longer body than before")

        def configure(spec: RequestSpec) -> None:
            spec.method = "POST"
            spec.body(b"x").on_redirect(lambda response: replace_body)

        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            http.request("http://app.test/start", 5.0, configure)

        sent = recorder.requests[1]
        assert sent.content == b"much longer body than before"
        assert sent.headers["content-length"] == "28"


class TestRedirectLimits:
    def test_max_redirects_returns_last_redirect(self) -> None:
        calls: list[int] = []
        recorder = Recorder({"/loop": _redirect("/loop")})

        def configure(spec: RequestSpec) -> None:
            spec.redirects(3)

            def handler(response: ReceivedResponse):  # type: ignore[no-untyped-def]
                calls.append(response.status)
                return lambda next_spec: next_spec.on_redirect(handler)

            spec.on_redirect(handler)

        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            response = http.request("http://app.test/loop", 5.0, configure)

        assert response.status == 302
        assert len(recorder.requests) == 4
        assert len(calls) == 3

    def test_follow_redirects_disabled(self, chain: Recorder) -> None:
        calls: list[ReceivedResponse] = []

        def configure(spec: RequestSpec) -> None:
            spec.on_redirect(lambda response: calls.append(response))

        with BlockingHttpClient(httpx.MockTransport(chain), follow_redirects=False) as http:
            response = http.request("http://app.test/start", 5.0, configure)

        assert response.status == 302
        assert len(chain.requests) == 1
        assert calls == []

    def test_per_request_redirects_zero(self, chain: Recorder) -> None:
        with BlockingHttpClient(httpx.MockTransport(chain)) as http:
            response = http.request("http://app.test/start", 5.0, _no_redirects)
        assert response.status == 302


class TestTimeout:
    def test_chain_deadline(self) -> None:
        def slow(request: httpx.Request) -> httpx.Response:
            time.sleep(0.1)
            return httpx.Response(302, headers={"location": "/again"})

        with BlockingHttpClient(httpx.MockTransport(slow)) as http, pytest.raises(httpx.TimeoutException):
            http.request("http://app.test/", 0.05, _noop)

    def test_remaining_budget_passed_to_httpx(self) -> None:
        recorder = Recorder({"/": _ok()})
        with BlockingHttpClient(httpx.MockTransport(recorder)) as http:
            http.request("http://app.test/", 5.0, _noop)
        timeout = recorder.requests[0].extensions["timeout"]
        assert 0 < timeout["read"] <= 5.0
