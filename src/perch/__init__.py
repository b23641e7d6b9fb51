"""Perch — static assets as one link in an ASGI middleware chain.

Serves stylesheets, scripts, images and site overrides; anything it
can't satisfy falls through to the next handler untouched.

Basic usage::

    from datetime import timedelta

    from perch import App, StaticOptions

    app = App()
    app.mount_custom()
    app.mount_static("public", StaticOptions(expires_after=timedelta(hours=6)))

    @app.route("/")
    def index():
        return "Hello, World!"

    app.run()

As a plain wrapper around any ``async (request) -> response`` handler::

    from perch import static_handler

    handler = static_handler("public", StaticOptions(prefix="/assets"))(next_handler)
"""

__version__ = "0.1.0"
__all__ = [
    "KNOWN_PUBLIC_ENTRIES",
    "AnyResponse",
    "App",
    "AppConfig",
    "ConfigurationError",
    "HTTPError",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "Outcome",
    "PerchError",
    "Request",
    "Response",
    "StaticHandler",
    "StaticOptions",
    "custom_handler",
    "generate_etag",
    "static_handler",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name == "Response":
        from perch.http.response import Response

        return Response

    if name == "generate_etag":
        from perch.http.etag import generate_etag

        return generate_etag

    if name in ("AnyResponse", "Middleware", "Next"):
        from perch.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in (
        "KNOWN_PUBLIC_ENTRIES",
        "Outcome",
        "StaticHandler",
        "StaticOptions",
        "custom_handler",
        "static_handler",
    ):
        from perch.middleware import static as _static

        return getattr(_static, name)

    if name in ("PerchError", "ConfigurationError", "HTTPError", "MethodNotAllowed", "NotFound"):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
