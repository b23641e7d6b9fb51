"""Content serving — turn an opened file into a full HTTP response.

``serve_content()`` is the primitive the static layer ends with. It
handles:

- ``Content-Type`` from the file extension, sniffed from the first bytes
  when the extension is unknown;
- ``Last-Modified`` and the conditional request headers (``If-Match``,
  ``If-Unmodified-Since``, ``If-None-Match``, ``If-Modified-Since``);
- byte ranges (``Range`` / ``If-Range``): single ranges as 206 with
  ``Content-Range``, several as ``multipart/byteranges``;
- ``HEAD``: every header, no body.

Headers already on the *base* response (``ETag``, ``Expires``) are kept
and take part in precondition checks.
"""

from __future__ import annotations

import mimetypes
import secrets
from dataclasses import dataclass, replace
from datetime import datetime

from perch.http.dates import EPOCH, http_date, parse_http_date
from perch.http.etag import scan_etag, strong_match, weak_match
from perch.http.request import Request
from perch.http.response import Response
from perch.storage import File

SNIFF_LEN = 512


class RangeError(ValueError):
    """The ``Range`` header is malformed or can't be satisfied."""

    def __init__(self, message: str, *, no_overlap: bool = False) -> None:
        super().__init__(message)
        self.no_overlap = no_overlap


@dataclass(frozen=True, slots=True)
class ByteRange:
    """A satisfiable byte range: *length* bytes from *start*."""

    start: int
    length: int

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.start + self.length - 1}/{size}"


# ---------------------------------------------------------------------------
# Content type
# ---------------------------------------------------------------------------


def detect_content_type(data: bytes) -> str:
    """Guess a content type from the leading bytes of a file."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"%PDF-"):
        return "application/pdf"
    if data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return "image/webp"
    if data.startswith(b"wOF2"):
        return "font/woff2"
    if data.startswith(b"wOFF"):
        return "font/woff"
    stripped = data.lstrip(b"\t\n\x0c\r ").lower()
    if stripped.startswith((b"<!doctype html", b"<html", b"<head", b"<body")):
        return "text/html; charset=utf-8"
    if b"\x00" in data:
        return "application/octet-stream"
    try:
        data.decode("utf-8")
    except UnicodeDecodeError as exc:
        # Only a full sniff window may end in a cut-off multi-byte sequence
        truncated = len(data) == SNIFF_LEN and exc.reason == "unexpected end of data"
        if not truncated:
            return "application/octet-stream"
    return "text/plain; charset=utf-8"


def content_type_for(name: str, content: File) -> str:
    """Content type by extension, falling back to sniffing *content*.

    Sniffing rewinds *content* to the start afterwards.
    """
    ctype, _ = mimetypes.guess_type(name)
    if ctype is not None:
        if ctype.startswith("text/") or ctype in ("application/javascript", "image/svg+xml"):
            ctype = f"{ctype}; charset=utf-8"
        return ctype
    head = content.read(SNIFF_LEN)
    content.seek(0)
    return detect_content_type(head)


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------

# Result of evaluating one conditional header
_NONE, _TRUE, _FALSE = "none", "true", "false"


def _is_zero_time(moment: datetime | None) -> bool:
    return moment is None or moment <= EPOCH


def _truncate(moment: datetime) -> datetime:
    return moment.replace(microsecond=0)


def _etag_list_matches(header: str, etag: str | None, *, strong: bool) -> bool:
    value = header
    while True:
        value = value.strip(" \t")
        if not value:
            return False
        if value.startswith(","):
            value = value[1:]
            continue
        if value.startswith("*"):
            return True
        tag, remain = scan_etag(value)
        if not tag:
            return False
        if etag is not None and (strong_match(tag, etag) if strong else weak_match(tag, etag)):
            return True
        value = remain


def _check_if_match(request: Request, etag: str | None) -> str:
    header = request.headers.get("if-match")
    if header is None:
        return _NONE
    return _TRUE if _etag_list_matches(header, etag, strong=True) else _FALSE


def _check_if_unmodified_since(request: Request, mod_time: datetime) -> str:
    header = request.headers.get("if-unmodified-since")
    if not header or _is_zero_time(mod_time):
        return _NONE
    since = parse_http_date(header)
    if since is None:
        return _NONE
    # Last-Modified has one-second granularity
    return _TRUE if _truncate(mod_time) <= since else _FALSE


def _check_if_none_match(request: Request, etag: str | None) -> str:
    header = request.headers.get("if-none-match")
    if header is None:
        return _NONE
    return _FALSE if _etag_list_matches(header, etag, strong=False) else _TRUE


def _check_if_modified_since(request: Request, mod_time: datetime) -> str:
    if request.method not in ("GET", "HEAD"):
        return _NONE
    header = request.headers.get("if-modified-since")
    if not header or _is_zero_time(mod_time):
        return _NONE
    since = parse_http_date(header)
    if since is None:
        return _NONE
    return _FALSE if _truncate(mod_time) <= since else _TRUE


def _check_if_range(request: Request, etag: str | None, mod_time: datetime) -> str:
    if request.method not in ("GET", "HEAD"):
        return _NONE
    header = request.headers.get("if-range")
    if not header:
        return _NONE
    tag, _ = scan_etag(header)
    if tag:
        return _TRUE if etag is not None and strong_match(tag, etag) else _FALSE
    # The If-Range value is typically the ETag value, but it may also be
    # the modtime date.
    if _is_zero_time(mod_time):
        return _FALSE
    when = parse_http_date(header)
    if when is None:
        return _FALSE
    return _TRUE if _truncate(mod_time) == when else _FALSE


def _not_modified(base: Response) -> Response:
    # RFC 9110 section 15.4.5: a 304 carries no representation headers
    response = (
        base.without_header("Content-Type")
        .without_header("Content-Length")
        .without_header("Content-Encoding")
    )
    if response.header("ETag") is not None:
        response = response.without_header("Last-Modified")
    return replace(response, body=b"", status=304, content_type=None)


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


def parse_range(header: str, size: int) -> list[ByteRange]:
    """Parse a ``Range: bytes=...`` header against a file of *size* bytes.

    Raises ``RangeError`` when the header is malformed, or with
    ``no_overlap=True`` when every range lies past the end of the file.
    """
    if not header:
        return []
    prefix = "bytes="
    if not header.startswith(prefix):
        raise RangeError("invalid range")
    ranges: list[ByteRange] = []
    no_overlap = False
    for part in header[len(prefix) :].split(","):
        part = part.strip(" \t")
        if not part:
            continue
        start_text, sep, end_text = part.partition("-")
        if not sep:
            raise RangeError("invalid range")
        start_text, end_text = start_text.strip(" \t"), end_text.strip(" \t")
        if not start_text:
            # Suffix range "-N": the last N bytes
            if not end_text or not end_text.isdigit():
                raise RangeError("invalid range")
            count = min(int(end_text), size)
            ranges.append(ByteRange(size - count, count))
            continue
        if not start_text.isdigit():
            raise RangeError("invalid range")
        start = int(start_text)
        if start >= size:
            # Past the end; satisfiable only if another range overlaps
            no_overlap = True
            continue
        if not end_text:
            ranges.append(ByteRange(start, size - start))
            continue
        if not end_text.isdigit():
            raise RangeError("invalid range")
        end = int(end_text)
        if start > end:
            raise RangeError("invalid range")
        end = min(end, size - 1)
        ranges.append(ByteRange(start, end - start + 1))
    if no_overlap and not ranges:
        raise RangeError("invalid range: failed to overlap", no_overlap=True)
    return ranges


def _read_range(content: File, byte_range: ByteRange) -> bytes:
    content.seek(byte_range.start)
    return content.read(byte_range.length)


def _multipart_body(
    content: File,
    ranges: list[ByteRange],
    size: int,
    ctype: str,
    boundary: str,
) -> bytes:
    parts: list[bytes] = []
    for i, byte_range in enumerate(ranges):
        lead = "\r\n" if i else ""
        head = (
            f"{lead}--{boundary}\r\n"
            f"Content-Range: {byte_range.content_range(size)}\r\n"
            f"Content-Type: {ctype}\r\n\r\n"
        )
        parts.append(head.encode("latin-1"))
        parts.append(_read_range(content, byte_range))
    parts.append(f"\r\n--{boundary}--\r\n".encode("latin-1"))
    return b"".join(parts)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def serve_content(
    request: Request,
    name: str,
    mod_time: datetime,
    content: File,
    size: int,
    *,
    base: Response | None = None,
) -> Response:
    """Build the response for *content* (already opened, *size* bytes).

    *name* is only used to pick a content type by extension. *mod_time*
    drives ``Last-Modified`` and the date-based preconditions; pass the
    epoch to disable them. *base* carries headers set upstream.

    Reads the needed bytes eagerly, so *content* may be closed as soon as
    this returns.
    """
    response = base or Response(body=b"", content_type=None)
    etag = response.header("ETag")

    if not _is_zero_time(mod_time):
        response = response.with_header("Last-Modified", http_date(mod_time))

    # Preconditions (RFC 9110 section 13.2.2)
    check = _check_if_match(request, etag)
    if check == _NONE:
        check = _check_if_unmodified_since(request, mod_time)
    if check == _FALSE:
        return replace(response, body=b"", status=412, content_type=None)

    check = _check_if_none_match(request, etag)
    if check == _FALSE:
        if request.method in ("GET", "HEAD"):
            return _not_modified(response)
        return replace(response, body=b"", status=412, content_type=None)
    if check == _NONE and _check_if_modified_since(request, mod_time) == _FALSE:
        return _not_modified(response)

    range_header = request.headers.get("range", "")
    if range_header and _check_if_range(request, etag, mod_time) == _FALSE:
        range_header = ""

    ctype = response.content_type or content_type_for(name, content)

    try:
        ranges = parse_range(range_header, size)
    except RangeError as exc:
        if exc.no_overlap:
            response = response.with_header("Content-Range", f"bytes */{size}")
        return replace(
            response,
            body=f"{exc}\n",
            status=416,
            content_type="text/plain; charset=utf-8",
        )

    if sum(r.length for r in ranges) > size:
        # The total number of bytes in all the ranges is larger than the
        # size of the file; ignore the range request.
        ranges = []

    status = 200
    send_length = size
    body: bytes | None = None
    if len(ranges) == 1:
        # RFC 9110 section 14.4: a single part is sent without the
        # multipart wrapping.
        only = ranges[0]
        status = 206
        send_length = only.length
        response = response.with_header("Content-Range", only.content_range(size))
        if request.method != "HEAD":
            body = _read_range(content, only)
    elif len(ranges) > 1:
        status = 206
        boundary = secrets.token_hex(30)
        if request.method != "HEAD":
            body = _multipart_body(content, ranges, size, ctype, boundary)
            send_length = len(body)
        else:
            send_length = len(_multipart_body(content, ranges, size, ctype, boundary))
        ctype = f"multipart/byteranges; boundary={boundary}"
    elif request.method != "HEAD":
        body = content.read()

    response = response.with_header("Accept-Ranges", "bytes")
    if response.header("Content-Encoding") is None:
        response = response.with_header("Content-Length", str(send_length))

    return replace(response, body=body or b"", status=status, content_type=ctype)
