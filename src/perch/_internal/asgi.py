"""Typed ASGI definitions and scope construction.

Internal only. Users hand perch an ASGI callable and never build scopes
themselves.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias
from urllib.parse import unquote

import httpx

# Raw ASGI types (ASGI 3.0 callables and messages)
Scope: TypeAlias = MutableMapping[str, Any]
Message: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[Message]]
Send: TypeAlias = Callable[[Message], Awaitable[None]]
ASGIApp: TypeAlias = Callable[[Scope, Receive, Send], Awaitable[None]]

_DEFAULT_PORTS = {"http": 80, "https": 443}


def build_http_scope(
    request: httpx.Request,
    *,
    root_path: str = "",
    client: tuple[str, int] = ("127.0.0.1", 123),
    state: dict[str, Any] | None = None,
) -> Scope:
    """Build an ASGI HTTP scope from an ``httpx.Request``."""
    url = request.url
    raw_path = url.raw_path.partition(b"?")[0]
    port = url.port or _DEFAULT_PORTS.get(url.scheme, 80)
    scope: Scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": request.method.upper(),
        "scheme": url.scheme,
        "path": unquote(raw_path.decode("ascii")),
        "raw_path": raw_path,
        "query_string": url.query,
        "root_path": root_path,
        "headers": [(name.lower(), value) for name, value in request.headers.raw],
        "server": (url.host, port),
        "client": client,
    }
    if state is not None:
        scope["state"] = dict(state)
    return scope
