"""ASGI handler — translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Converts scope dicts
to typed Request objects, dispatches through middleware and routing,
and sends the Response back through ASGI send().
"""

import inspect
from collections.abc import Callable
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.errors import HTTPError
from perch.http.request import Request
from perch.middleware.protocol import AnyResponse, Next
from perch.routing.router import Router
from perch.server.errors import handle_http_error, handle_internal_error
from perch.server.negotiation import negotiate
from perch.server.sender import send_response


def build_pipeline(router: Router, middleware: tuple[Callable[..., Any], ...]) -> Next:
    """Wrap the router dispatch in *middleware*, first-registered outermost."""

    async def dispatch(req: Request) -> AnyResponse:
        match = router.match(req.method, req.path)
        route_handler = match.route.handler
        # Handlers take the request only if they declare a parameter for it
        args = (req,) if inspect.signature(route_handler).parameters else ()
        result = await invoke(route_handler, *args)
        return negotiate(result)

    handler: Next = dispatch
    for mw in reversed(middleware):
        outer = handler

        async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> AnyResponse:
            return await _mw(req, _next)

        handler = make_next
    return handler


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    pipeline: Next,
    debug: bool,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope)

    try:
        response = await pipeline(request)
    except HTTPError as exc:
        response = handle_http_error(exc, request, debug=debug)
    except Exception as exc:
        response = handle_internal_error(exc, request, debug=debug)

    await send_response(response, send, method=request.method)
