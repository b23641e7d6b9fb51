"""Tests for perch.server.sender response emission rules."""

from perch.http.response import Response
from perch.server.sender import send_response


async def _send(response: Response, method: str = "GET") -> list[dict]:
    messages: list[dict] = []

    async def send(message: dict) -> None:
        messages.append(message)

    await send_response(response, send, method=method)
    return messages


class TestSendResponseNoBodyStatuses:
    async def test_204_drops_body_and_content_length(self) -> None:
        # Even if a handler accidentally attaches body content, the sender
        # enforces no-body semantics for 204.
        messages = await _send(Response("unexpected-body").with_status(204))

        assert messages[0]["type"] == "http.response.start"
        headers = dict(messages[0]["headers"])
        assert b"content-length" not in headers

        assert messages[1]["type"] == "http.response.body"
        assert messages[1]["body"] == b""

    async def test_304_drops_body_and_content_length(self) -> None:
        messages = await _send(Response("unexpected-body").with_status(304))

        headers = dict(messages[0]["headers"])
        assert b"content-length" not in headers
        assert messages[1]["body"] == b""

    async def test_informational_status_has_no_content_length(self) -> None:
        messages = await _send(Response("").with_status(103))
        assert b"content-length" not in dict(messages[0]["headers"])

    async def test_200_preserves_body(self) -> None:
        messages = await _send(Response("ok"))

        headers = dict(messages[0]["headers"])
        assert headers[b"content-length"] == b"2"
        assert messages[1]["body"] == b"ok"


class TestSendResponseHeaders:
    async def test_content_type_sent_first(self) -> None:
        messages = await _send(Response("ok", content_type="text/css"))
        assert messages[0]["headers"][0] == (b"content-type", b"text/css")

    async def test_none_content_type_is_omitted(self) -> None:
        messages = await _send(Response(b"", status=404, content_type=None))

        names = [name for name, _ in messages[0]["headers"]]
        assert b"content-type" not in names
        assert messages[0]["status"] == 404

    async def test_header_names_are_lowercased(self) -> None:
        messages = await _send(Response("ok").with_header("ETag", "abc"))
        assert (b"etag", b"abc") in messages[0]["headers"]

    async def test_explicit_content_length_wins(self) -> None:
        response = Response(b"", content_type=None).with_header("Content-Length", "1234")
        messages = await _send(response)

        lengths = [v for n, v in messages[0]["headers"] if n == b"content-length"]
        assert lengths == [b"1234"]


class TestSendResponseHead:
    async def test_head_keeps_length_but_drops_body(self) -> None:
        messages = await _send(Response("hello"), method="HEAD")

        headers = dict(messages[0]["headers"])
        assert headers[b"content-length"] == b"5"
        assert messages[1]["body"] == b""
