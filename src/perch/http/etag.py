"""ETag generation and matching.

Static ETags are the base64 encoding of ``size + name + modification
time``. No hashing: two files only collide when all three strings
concatenate to the same text.

The matching helpers implement the entity-tag comparison rules used by
the conditional request headers (``If-Match``, ``If-None-Match``,
``If-Range``).
"""

import base64


def generate_etag(file_size: str, file_name: str, mod_time: str) -> str:
    """Generate an ETag from a file's size, name and formatted modification time.

    Deterministic: the same inputs always give the same tag::

        generate_etag("20", "site.css", "Sun, 06 Nov 1994 08:49:37 GMT")
    """
    etag = file_size + file_name + mod_time
    return base64.standard_b64encode(etag.encode("utf-8")).decode("ascii")


def scan_etag(value: str) -> tuple[str, str]:
    """Scan one entity-tag off the front of *value*.

    Returns ``(etag, remainder)``. ``etag`` includes the quotes and any
    ``W/`` prefix; it is empty when *value* doesn't start with a valid tag.
    """
    value = value.strip(" \t")
    start = 0
    if value.startswith("W/"):
        start = 2
    if len(value) - start < 2 or value[start] != '"':
        return "", ""
    # ETag is either W/"text" or "text". See RFC 9110 section 8.8.3.
    for i in range(start + 1, len(value)):
        c = value[i]
        if c == '"':
            return value[: i + 1], value[i + 1 :]
        if c == "\x21" or "\x23" <= c <= "\x7e" or c >= "\x80":
            continue
        return "", ""
    return "", ""


def strong_match(a: str, b: str) -> bool:
    """Strong comparison: both tags strong and byte-identical."""
    return a == b and a != "" and a[0] == '"'


def weak_match(a: str, b: str) -> bool:
    """Weak comparison: identical after dropping any ``W/`` prefix."""
    return a.removeprefix("W/") == b.removeprefix("W/")
