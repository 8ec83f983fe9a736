"""Perch: a blocking test client that keeps cookies the way a browser does.

Drives an application under test over HTTP (or in-process over ASGI),
storing cookies by path and re-applying them on every request and on
every redirect hop it follows.

Basic usage::

    from perch import ServerBackedApplicationUnderTest, TestHttpClient

    client = TestHttpClient(ServerBackedApplicationUnderTest("http://localhost:5050"))
    client.post("login")
    assert client.get("dashboard").status == 200
    assert client.get_cookies("/")

In-process ASGI applications::

    from perch import ASGIApplicationUnderTest, TestHttpClient

    with ASGIApplicationUnderTest(app) as aut, TestHttpClient(aut) as client:
        client.get("/")
"""

__version__ = "0.1.0"
__all__ = [
    "ASGIApplicationUnderTest",
    "ApplicationUnderTest",
    "BlockingHttpClient",
    "ClientConfig",
    "ConfigurationError",
    "Cookie",
    "CookieDecodeError",
    "CookieHandling",
    "CookieJar",
    "LifespanError",
    "PerchError",
    "ReceivedResponse",
    "RequestSpec",
    "ServerBackedApplicationUnderTest",
    "TestHttpClient",
]

# name -> defining module
_LAZY_IMPORTS: dict[str, str] = {
    "ASGIApplicationUnderTest": "perch.application",
    "ApplicationUnderTest": "perch.application",
    "BlockingHttpClient": "perch.dispatch",
    "ClientConfig": "perch.config",
    "ConfigurationError": "perch.errors",
    "Cookie": "perch.http.cookies",
    "CookieDecodeError": "perch.errors",
    "CookieHandling": "perch.redirects",
    "CookieJar": "perch.jar",
    "LifespanError": "perch.errors",
    "PerchError": "perch.errors",
    "ReceivedResponse": "perch.http.response",
    "RequestSpec": "perch.http.request",
    "ServerBackedApplicationUnderTest": "perch.application",
    "TestHttpClient": "perch.client",
}


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    module_name = _LAZY_IMPORTS.get(name)
    if module_name is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)

    import importlib

    return getattr(importlib.import_module(module_name), name)
