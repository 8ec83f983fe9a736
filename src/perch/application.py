"""Applications under test.

An application under test tells the client where requests go: a base
address, and optionally the httpx transport that reaches it. A running
server needs only its address; an in-process ASGI app brings its own
transport.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from contextlib import AbstractContextManager
from typing import Any, Protocol

import anyio
import httpx
from anyio.from_thread import BlockingPortal, start_blocking_portal

from perch._internal.asgi import ASGIApp
from perch.errors import LifespanError
from perch.transport import ASGITransport

logger = logging.getLogger("perch.client")


def _normalize_address(address: str) -> str:
    return address if address.endswith("/") else f"{address}/"


class ApplicationUnderTest(Protocol):
    """Anything the test client can send requests to."""

    @property
    def address(self) -> str:
        """Absolute base URL, ending in ``/``."""
        ...

    @property
    def transport(self) -> httpx.BaseTransport | None:
        """Transport to send through, or None for httpx's network transport."""
        ...


class ServerBackedApplicationUnderTest:
    """An application already listening at *address*.

    Pass *transport* to reach it some other way, e.g. an
    ``httpx.MockTransport`` that scripts responses.
    """

    __slots__ = ("_address", "_transport")

    def __init__(self, address: str, transport: httpx.BaseTransport | None = None) -> None:
        self._address = _normalize_address(address)
        self._transport = transport

    @property
    def address(self) -> str:
        return self._address

    @property
    def transport(self) -> httpx.BaseTransport | None:
        return self._transport

    def __repr__(self) -> str:
        return f"ServerBackedApplicationUnderTest({self._address!r})"


class ASGIApplicationUnderTest:
    """An ASGI application run in-process on an anyio blocking portal.

    Must be entered before use; the portal (and, with ``lifespan=True``,
    the app's lifespan) lives until exit::

        with ASGIApplicationUnderTest(app, lifespan=True) as aut:
            client = TestHttpClient(aut)
            client.get("/")
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        base_url: str = "http://testserver/",
        lifespan: bool = False,
        raise_app_exceptions: bool = True,
        backend: str = "asyncio",
    ) -> None:
        self.app = app
        self.lifespan = lifespan
        self.raise_app_exceptions = raise_app_exceptions
        self.backend = backend
        self.state: dict[str, Any] = {}
        self._address = _normalize_address(base_url)
        self._portal_cm: AbstractContextManager[BlockingPortal] | None = None
        self._portal: BlockingPortal | None = None
        self._transport: ASGITransport | None = None
        self._lifespan_task: Future[None] | None = None
        self._lifespan_send: Any = None
        self._lifespan_receive: Any = None
        self._app_lifespan_streams: tuple[Any, Any] = (None, None)

    @property
    def address(self) -> str:
        return self._address

    @property
    def transport(self) -> ASGITransport:
        if self._transport is None:
            msg = "ASGIApplicationUnderTest must be entered before sending requests"
            raise RuntimeError(msg)
        return self._transport

    def __enter__(self) -> ASGIApplicationUnderTest:
        self._portal_cm = start_blocking_portal(backend=self.backend)
        self._portal = self._portal_cm.__enter__()
        self._transport = ASGITransport(
            self.app,
            self._portal,
            raise_app_exceptions=self.raise_app_exceptions,
            state=self.state,
        )
        if self.lifespan:
            try:
                self._start_lifespan()
            except BaseException:
                self._close_portal(cancel_remaining=True)
                raise
        return self

    def __exit__(self, *args: object) -> None:
        try:
            if self.lifespan and self._lifespan_task is not None:
                self._stop_lifespan()
        finally:
            self._close_portal()

    def _close_portal(self, *, cancel_remaining: bool = False) -> None:
        if cancel_remaining and self._portal is not None:
            self._portal.call(self._portal.stop, True)
        if self._portal_cm is not None:
            self._portal_cm.__exit__(None, None, None)
        self._portal_cm = None
        self._portal = None
        self._transport = None

    # -- Lifespan --

    def _start_lifespan(self) -> None:
        assert self._portal is not None
        self._portal.call(self._open_lifespan_streams)
        self._lifespan_task = self._portal.start_task_soon(self._run_lifespan)
        self._portal.call(self._lifespan_event, "startup")
        logger.debug("Lifespan startup complete for %r", self.app)

    def _stop_lifespan(self) -> None:
        assert self._portal is not None and self._lifespan_task is not None
        self._portal.call(self._lifespan_event, "shutdown")
        self._lifespan_task.result()
        self._lifespan_task = None

    async def _open_lifespan_streams(self) -> None:
        in_send, in_receive = anyio.create_memory_object_stream(1)
        out_send, out_receive = anyio.create_memory_object_stream(1)
        self._lifespan_send = in_send
        self._lifespan_receive = out_receive
        self._app_lifespan_streams = (in_receive, out_send)

    async def _run_lifespan(self) -> None:
        in_receive, out_send = self._app_lifespan_streams
        scope = {"type": "lifespan", "asgi": {"version": "3.0"}, "state": self.state}
        async with out_send:
            await self.app(scope, in_receive.receive, out_send.send)

    async def _lifespan_event(self, action: str) -> None:
        await self._lifespan_send.send({"type": f"lifespan.{action}"})
        try:
            message = await self._lifespan_receive.receive()
        except anyio.EndOfStream:
            msg = f"ASGI application exited during lifespan {action}"
            raise LifespanError(msg) from None
        if message["type"] == f"lifespan.{action}.failed":
            msg = message.get("message") or f"lifespan {action} failed"
            raise LifespanError(msg)

    def __repr__(self) -> str:
        return f"ASGIApplicationUnderTest({self.app!r}, base_url={self._address!r})"
