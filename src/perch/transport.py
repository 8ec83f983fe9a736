"""Blocking httpx transport for in-process ASGI applications.

Each request is converted to an ASGI HTTP scope and run on the event
loop of an anyio blocking portal, so the synchronous test client can
drive an async application without a server or sockets.
"""

from typing import Any

import httpx
from anyio.from_thread import BlockingPortal

from perch._internal.asgi import ASGIApp, Message, Scope, build_http_scope


class ASGITransport(httpx.BaseTransport):
    """Routes httpx requests into an ASGI application through *portal*.

    With ``raise_app_exceptions=False`` an exception raised by the app
    becomes a bare 500 response instead of propagating to the caller.
    """

    def __init__(
        self,
        app: ASGIApp,
        portal: BlockingPortal,
        *,
        raise_app_exceptions: bool = True,
        root_path: str = "",
        client: tuple[str, int] = ("127.0.0.1", 123),
        state: dict[str, Any] | None = None,
    ) -> None:
        self.app = app
        self.portal = portal
        self.raise_app_exceptions = raise_app_exceptions
        self.root_path = root_path
        self.client = client
        self.state = state

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        body = request.read()
        scope = build_http_scope(
            request,
            root_path=self.root_path,
            client=self.client,
            state=self.state,
        )
        status, headers, body_parts = self.portal.call(self._call_app, scope, body)
        return httpx.Response(
            status,
            headers=headers,
            content=b"".join(body_parts),
            request=request,
        )

    async def _call_app(
        self, scope: Scope, request_body: bytes
    ) -> tuple[int, list[tuple[bytes, bytes]], list[bytes]]:
        inbound: list[Message] = [{"type": "http.request", "body": request_body, "more_body": False}]
        start: Message | None = None
        chunks: list[bytes] = []

        async def receive() -> Message:
            # The whole body arrives in one message; the client then goes away.
            return inbound.pop() if inbound else {"type": "http.disconnect"}

        async def send(message: Message) -> None:
            nonlocal start
            kind = message["type"]
            if kind == "http.response.start":
                start = message
            elif kind == "http.response.body":
                chunks.append(message.get("body", b""))

        try:
            await self.app(scope, receive, send)
        except Exception:
            if self.raise_app_exceptions:
                raise
            return 500, [], []

        if start is None:
            msg = "ASGI application returned without starting a response"
            raise RuntimeError(msg)
        headers = [(bytes(name), bytes(value)) for name, value in start.get("headers", [])]
        return start["status"], headers, chunks
