"""Redirect-aware cookie decoration of outgoing requests.

Every hop of a redirect chain gets decorated afresh: cookies are matched
against that hop's own URL, and the redirect handler the caller
registers is wrapped so the jar ingests each redirect response before
the next hop is built. Only the jar is shared between hops.
"""

import logging
from dataclasses import dataclass

from perch.http.cookies import encode_cookie_header
from perch.http.request import Action, RedirectHandler, RequestSpec
from perch.http.response import ReceivedResponse
from perch.jar import CookieJar

logger = logging.getLogger("perch.cookies")


@dataclass(frozen=True, slots=True)
class CookieHandling:
    """Applies a CookieJar to request specs and to each redirect hop.

    ``reapply_on_redirect`` decides what happens when the caller's redirect
    handler declines to customize a hop (returns None, or none is
    registered): when True the next hop is still decorated, so it carries
    the jar's cookies for its URL; when False it goes out as the transport
    built it, with only the redirect hook installed so later redirect
    responses are still recorded.
    """

    jar: CookieJar
    reapply_on_redirect: bool = True

    def decorate(self, spec: RequestSpec) -> RequestSpec:
        """Install the redirect hook on *spec* and set its ``Cookie`` header."""
        spec.intercept_redirects(self._wrap_handler)
        self.apply_cookies(spec)
        return spec

    def apply_cookies(self, spec: RequestSpec) -> None:
        # An empty header is still sent when nothing matches.
        cookies = self.jar.match(spec.url.path)
        spec.headers["Cookie"] = encode_cookie_header(cookies)

    def _wrap_handler(self, handler: RedirectHandler | None) -> RedirectHandler:
        def on_redirect(response: ReceivedResponse) -> Action | None:
            self.jar.record(response)
            action = handler(response) if handler is not None else None
            if action is None and not self.reapply_on_redirect:
                return self._keep_recording
            logger.debug("Decorating redirect hop after %s", response.url)

            def next_hop(spec: RequestSpec) -> None:
                decorated = self.decorate(spec)
                if action is not None:
                    action(decorated)

            return next_hop

        return on_redirect

    def _keep_recording(self, spec: RequestSpec) -> None:
        # Undecorated hop: no Cookie header, but its redirect still reaches the jar.
        spec.intercept_redirects(self._wrap_handler)
