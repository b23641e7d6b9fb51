"""Return-value negotiation — maps route handler results to Response objects.

isinstance-based dispatch, no magic, fully predictable::

    Response          -> as-is
    str               -> text/html
    bytes             -> application/octet-stream
    (value, status)   -> negotiated value with that status
"""

from typing import Any

from perch.errors import ConfigurationError
from perch.http.response import Response


def negotiate(value: Any) -> Response:
    """Convert a route handler's return value to a Response."""
    if isinstance(value, Response):
        return value
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[1], int):
        body, status = value
        return negotiate(body).with_status(status)
    if isinstance(value, str):
        return Response(body=value)
    if isinstance(value, bytes):
        return Response(body=value, content_type="application/octet-stream")
    msg = (
        f"Route handler returned {type(value).__name__!r}; "
        "expected Response, str, bytes, or a (value, status) tuple."
    )
    raise ConfigurationError(msg)
