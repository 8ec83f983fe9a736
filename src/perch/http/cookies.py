"""Client-side cookie codec.

Consolidates the read side (decode_set_cookie, used on every response)
and the write side (encode_cookie_header, used on every outgoing request)
in one module. Decoding is strict about names and values and lenient
about attributes: unknown attributes are ignored, a malformed ``Max-Age``
is dropped.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from perch.errors import CookieDecodeError

# RFC 7230 token characters (cookie names)
_TOKEN_CHARS = frozenset("!#$%&'*+-.^_`|~0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")

# RFC 6265 cookie-octet: printable US-ASCII minus DQUOTE, comma, semicolon, backslash
_VALUE_CHARS = frozenset(chr(c) for c in range(0x21, 0x7F)) - frozenset('",;\\')


@dataclass(frozen=True, slots=True)
class Cookie:
    """A cookie as received in a ``Set-Cookie`` header.

    Only ``name``, ``value`` and ``path`` drive storage decisions. The other
    attributes are carried along untouched.
    """

    name: str
    value: str = ""
    path: str | None = None
    domain: str | None = None
    max_age: int | None = None
    expires: str | None = None
    secure: bool = False
    http_only: bool = False
    same_site: str | None = None
    wrap: bool = False  # value was double-quoted on the wire

    @property
    def is_deletion(self) -> bool:
        """An empty value asks the client to forget every cookie with this name."""
        return not self.value

    def to_pair(self) -> str:
        """Serialize to a single ``name=value`` pair of a ``Cookie`` header."""
        value = f'"{self.value}"' if self.wrap else self.value
        return f"{self.name}={value}"


def decode_set_cookie(header: str) -> Cookie:
    """Decode one ``Set-Cookie`` header value.

    Raises ``CookieDecodeError`` when the name is not a token, the
    name-value pair is missing its ``=`` or the value holds characters
    outside the cookie-octet range.
    """
    pair, _, attributes = header.partition(";")
    if "=" not in pair:
        raise CookieDecodeError(header, "missing '=' in name-value pair")
    name, _, value = pair.partition("=")
    name = name.strip()
    value = value.strip()

    if not name:
        raise CookieDecodeError(header, "empty cookie name")
    if not set(name) <= _TOKEN_CHARS:
        raise CookieDecodeError(header, f"invalid cookie name {name!r}")

    wrap = len(value) >= 2 and value[0] == value[-1] == '"'
    if wrap:
        value = value[1:-1]
    if not set(value) <= _VALUE_CHARS:
        raise CookieDecodeError(header, f"invalid value for cookie {name!r}")

    fields: dict[str, object] = {}
    for attribute in attributes.split(";"):
        key, has_value, attr_value = attribute.partition("=")
        key = key.strip().lower()
        attr_value = attr_value.strip()
        if key == "path":
            fields["path"] = attr_value
        elif key == "domain" and attr_value:
            fields["domain"] = attr_value.removeprefix(".")
        elif key == "max-age" and has_value:
            try:
                fields["max_age"] = int(attr_value)
            except ValueError:
                continue
        elif key == "expires" and attr_value:
            fields["expires"] = attr_value
        elif key == "secure":
            fields["secure"] = True
        elif key == "httponly":
            fields["http_only"] = True
        elif key == "samesite" and attr_value:
            fields["same_site"] = attr_value

    return Cookie(name=name, value=value, wrap=wrap, **fields)  # type: ignore[arg-type]


def encode_cookie_header(cookies: Iterable[Cookie]) -> str:
    """Encode cookies into a ``Cookie`` request header value.

    Cookies with longer paths go first (RFC 6265 5.4); cookies with equal
    path lengths keep their given order. Returns an empty string for no
    cookies.
    """
    ordered = sorted(cookies, key=lambda c: -len(c.path or "/"))
    return "; ".join(cookie.to_pair() for cookie in ordered)
