"""Middleware — Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> Response

Built-in middleware:
    StaticHandler -- Serve static files, falling through when it can't
"""

from perch.middleware.protocol import AnyResponse, Middleware, Next
from perch.middleware.static import (
    KNOWN_PUBLIC_ENTRIES,
    Outcome,
    Resolution,
    StaticHandler,
    StaticOptions,
    build_options,
    custom_handler,
    custom_options,
    resolve,
    static_handler,
)

__all__ = [
    "KNOWN_PUBLIC_ENTRIES",
    "AnyResponse",
    "Middleware",
    "Next",
    "Outcome",
    "Resolution",
    "StaticHandler",
    "StaticOptions",
    "build_options",
    "custom_handler",
    "custom_options",
    "resolve",
    "static_handler",
]
