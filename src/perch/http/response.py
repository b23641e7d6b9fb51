"""HTTP response with chainable .with_*() transformation API.

Each transformation returns a new Response. Immutable by convention,
built incrementally by design.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from html import escape


@dataclass(frozen=True, slots=True)
class Response:
    """An HTTP response built through immutable transformations.

    Construct with a body, then chain ``.with_*()`` calls to set
    status and headers. Each call returns a new ``Response``.

    ``content_type=None`` omits the header entirely (bare 404s, 304s).
    """

    body: str | bytes = ""
    status: int = 200
    content_type: str | None = "text/html; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()

    # -- Chainable transformations --

    def with_status(self, status: int) -> Response:
        """Return a new Response with a different status code."""
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        """Return a new Response with an additional header."""
        return replace(self, headers=(*self.headers, (name, value)))

    def without_header(self, name: str) -> Response:
        """Return a new Response with every *name* header removed."""
        lower = name.lower()
        return replace(self, headers=tuple(h for h in self.headers if h[0].lower() != lower))

    # -- Header access --

    def header(self, name: str) -> str | None:
        """Return the first value of header *name* (case-insensitive), or None."""
        lower = name.lower()
        if lower == "content-type":
            return self.content_type
        for hname, hvalue in self.headers:
            if hname.lower() == lower:
                return hvalue
        return None

    # -- Body helpers --

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body


def redirect(url: str, *, status: int = 302, method: str = "GET") -> Response:
    """Build a redirect response with a ``Location`` header.

    GET and HEAD requests also get a short HTML body pointing at the
    target, for clients that don't follow redirects.
    """
    response = Response(body="", status=status).with_header("Location", url)
    if method in ("GET", "HEAD"):
        response = replace(response, body=f'<a href="{escape(url)}">Found</a>.\n')
    return response
