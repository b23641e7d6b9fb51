"""ASGI response sending — translates perch Response objects to ASGI messages."""

from perch._internal.asgi import Send
from perch.http.response import Response


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(response: Response, send: Send, *, method: str = "GET") -> None:
    """Translate a perch Response into ASGI send() calls.

    ``HEAD`` responses keep every header but send an empty body. An
    explicit ``Content-Length`` header (set for ``HEAD`` by content
    serving) wins over the computed one.
    """
    raw_headers: list[tuple[bytes, bytes]] = []
    if response.content_type is not None:
        raw_headers.append((b"content-type", response.content_type.encode("latin-1")))
    has_length = False
    for name, value in response.headers:
        lower = name.lower()
        has_length = has_length or lower == "content-length"
        raw_headers.append((lower.encode("latin-1"), value.encode("latin-1")))

    body = response.body_bytes if _body_allowed(response.status) else b""

    # 1xx, 204 and 304 carry no Content-Length of their own
    if not has_length and _body_allowed(response.status):
        raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    if method == "HEAD":
        body = b""

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": body,
        }
    )
