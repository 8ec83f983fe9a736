"""Path-scoped client cookie jar.

Cookies live in buckets keyed by their normalized path, each bucket
ordered oldest to most recently set. Matching is a plain prefix test on
the request path; there is no expiry, domain or secure handling.

The jar is mutated in place and has no locking. One client (and so one
jar) per test thread.
"""

import logging
from collections.abc import Iterator

from perch.errors import CookieDecodeError
from perch.http.cookies import Cookie, decode_set_cookie
from perch.http.response import ReceivedResponse

logger = logging.getLogger("perch.cookies")

ROOT_PATH = "/"


class CookieJar:
    """In-memory cookie store, normalized path -> cookies set at that path."""

    __slots__ = ("_buckets",)

    def __init__(self) -> None:
        self._buckets: dict[str, list[Cookie]] = {}

    def record(self, response: ReceivedResponse) -> None:
        """Ingest every ``Set-Cookie`` header of *response*.

        Headers that fail to decode are skipped; the rest are still applied.
        """
        for header in response.set_cookie_headers:
            try:
                cookie = decode_set_cookie(header)
            except CookieDecodeError as exc:
                logger.debug("Skipping cookie from %s: %s", response.url, exc.reason)
                continue
            self.add(cookie)

    def add(self, cookie: Cookie) -> None:
        """Store *cookie*, or apply it as a deletion when its value is empty.

        A deletion removes the name from every bucket, whatever path or
        domain it carries. Otherwise an existing cookie with the same name
        at the same path is replaced and the new one becomes most recent.
        """
        if cookie.is_deletion:
            self._delete(cookie.name)
            return
        path = cookie.path or ROOT_PATH
        bucket = self._buckets.setdefault(path, [])
        bucket[:] = [c for c in bucket if c.name != cookie.name]
        bucket.append(cookie)

    def _delete(self, name: str) -> None:
        for bucket in self._buckets.values():
            bucket[:] = [c for c in bucket if c.name != name]
        logger.debug("Deleted cookie %r", name)

    def match(self, path: str | None) -> list[Cookie]:
        """Cookies applicable to a request *path*.

        The ``/`` bucket always applies; any other bucket applies when
        *path* starts with its key. An empty or ``/`` path gets exactly the
        ``/`` bucket. Returns a new list on every call.
        """
        if not path or path == ROOT_PATH:
            return list(self._buckets.get(ROOT_PATH, ()))
        matched: list[Cookie] = []
        for bucket_path, bucket in self._buckets.items():
            if bucket_path == ROOT_PATH or path.startswith(bucket_path):
                matched.extend(bucket)
        return matched

    def clear(self) -> None:
        """Forget every cookie."""
        self._buckets.clear()

    def __iter__(self) -> Iterator[Cookie]:
        for bucket in self._buckets.values():
            yield from bucket

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def __bool__(self) -> bool:
        return any(self._buckets.values())

    def __repr__(self) -> str:
        return f"CookieJar({list(self)!r})"
