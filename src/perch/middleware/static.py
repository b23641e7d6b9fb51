"""Static file serving middleware.

Serves files (stylesheets, scripts, images, site overrides) from a
storage backend as one link in the middleware chain. Anything this layer
has no opinion on falls through to the next handler untouched.

Per request the resolver decides one of:

- **served**: the file (or a directory's index file) is returned, with
  ``Expires``/``ETag`` when caching is enabled; a matching
  ``If-None-Match`` short-circuits to 304;
- **redirected**: a directory requested without its trailing slash;
- **short-circuited 404**: a missing file under one of the bundled
  ``public`` asset roots (``/css/...``, ``/js/...``), so the application
  router never sees it;
- **failed**: the file opened but could not be stat'd; answered with a
  bodiless 500 rather than handed on;
- **declined**: everything else; the next handler runs.

Usage::

    app.add_middleware(StaticHandler("public", StaticOptions(prefix="/assets")))

    # or as a plain wrapper around any handler
    handler = static_handler("public")(next_handler)
"""

import enum
import logging
import posixpath
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from pathlib import Path
from urllib.parse import quote

import anyio.to_thread

from perch.config import AppConfig
from perch.errors import ConfigurationError
from perch.http.content import serve_content
from perch.http.dates import http_date
from perch.http.etag import generate_etag
from perch.http.request import Request
from perch.http.response import Response, redirect
from perch.middleware.protocol import AnyResponse, Next
from perch.storage import File, FileInfo, FileSystem, clean_name, static_file_system

logger = logging.getLogger("perch.static")

# Direct children of the bundled ``public`` directory. A missing file
# under one of these is a definite 404, never something for the router.
KNOWN_PUBLIC_ENTRIES: tuple[str, ...] = (
    "css",
    "img",
    "js",
    "serviceworker.js",
    "vendor",
)

# Upper bound for ``expires_after``; larger values overflow the Expires date
MAX_EXPIRES_AFTER = timedelta(days=365 * 100)


@dataclass(frozen=True, slots=True)
class StaticOptions:
    """Options for one static mount. Immutable after creation.

    Pass the raw options to ``StaticHandler`` / ``static_handler()``;
    they are normalized once by ``build_options()``::

        StaticOptions(prefix="assets/", expires_after=timedelta(hours=6))
    """

    directory: str | Path = ""
    index_file: str = "index.html"
    skip_logging: bool = False
    # Zero disables Expires/ETag
    expires_after: timedelta = field(default_factory=timedelta)
    file_system: FileSystem | None = None
    prefix: str = ""


def normalize_prefix(prefix: str) -> str:
    """Ensure a leading ``/`` and strip trailing ones. Empty stays empty."""
    if not prefix:
        return ""
    if not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix.rstrip("/")


def build_options(
    directory: str | Path,
    options: StaticOptions | None = None,
    *,
    config: AppConfig | None = None,
) -> StaticOptions:
    """Return *options* with every default filled in.

    - ``directory`` defaults to *directory*;
    - ``index_file`` defaults to ``index.html``;
    - ``prefix`` is normalized (``"assets/"`` -> ``"/assets"``);
    - ``file_system`` defaults to the directory on disk, anchored at
      ``config.work_path`` when relative.

    Pure: *options* itself is never modified.

    Raises:
        ConfigurationError: On an ``expires_after`` that is negative or
            above ``MAX_EXPIRES_AFTER``, or an ``index_file`` that can't
            name a file.
    """
    opts = options or StaticOptions()
    cfg = config or AppConfig()

    if opts.expires_after < timedelta(0):
        msg = f"expires_after must not be negative, got {opts.expires_after!r}"
        raise ConfigurationError(msg)
    if opts.expires_after > MAX_EXPIRES_AFTER:
        msg = f"expires_after must be at most {MAX_EXPIRES_AFTER!r}, got {opts.expires_after!r}"
        raise ConfigurationError(msg)

    index_file = opts.index_file or "index.html"
    if index_file in (".", "..") or "\x00" in index_file:
        msg = f"index_file must name a file, got {index_file!r}"
        raise ConfigurationError(msg)

    base_dir = opts.directory or directory
    file_system = opts.file_system
    if file_system is None:
        file_system = static_file_system(directory, cfg.resolved_work_path)

    return replace(
        opts,
        directory=base_dir,
        index_file=index_file,
        prefix=normalize_prefix(opts.prefix),
        file_system=file_system,
    )


class Outcome(enum.Enum):
    """The terminal decision of one pass through the resolver."""

    SERVED = "served"
    REDIRECTED = "redirected"
    SHORT_CIRCUITED_404 = "short_circuited_404"
    FAILED = "failed"
    DECLINED = "declined"


@dataclass(frozen=True, slots=True)
class Resolution:
    """An outcome plus its finished response (None when declined)."""

    outcome: Outcome
    response: Response | None = None


_DECLINED = Resolution(Outcome.DECLINED)


def _is_known_public_entry(directory: str | Path, file: str) -> bool:
    """Whether *file* sits under a known child of a ``public`` directory."""
    if Path(directory).name != "public":
        return False
    parts = file.split("/")
    if len(parts) < 2:
        return False
    return parts[1] in KNOWN_PUBLIC_ENTRIES


def _with_trailing_slash(path: str) -> str:
    """The cleaned *path* plus ``/``, percent-encoded for a Location header."""
    cleaned = quote(clean_name(path), safe="/%")
    return cleaned if cleaned == "/" else cleaned + "/"


def _empty(status: int) -> Response:
    return Response(body=b"", status=status, content_type=None)


def resolve(request: Request, options: StaticOptions) -> Resolution:
    """Decide what to do with *request*. *options* must come from ``build_options()``.

    Every file handle opened here is closed before this returns.

    Raises:
        ConfigurationError: If *options* has no ``file_system``.
    """
    if request.method not in ("GET", "HEAD"):
        return _DECLINED

    file = request.path
    # With a prefix, only requests beneath it are ours
    if options.prefix:
        if not file.startswith(options.prefix):
            return _DECLINED
        file = file[len(options.prefix) :]
        if file and not file.startswith("/"):
            return _DECLINED

    fs = options.file_system
    if fs is None:
        msg = "options must come from build_options(): file_system is not set"
        raise ConfigurationError(msg)

    try:
        handle = fs.open(file)
    except OSError:
        if _is_known_public_entry(options.directory, file):
            return Resolution(Outcome.SHORT_CIRCUITED_404, _empty(404))
        return _DECLINED

    with handle:
        try:
            info = handle.stat()
        except OSError as exc:
            if not options.skip_logging:
                logger.warning("%r exists, but fails to stat: %s", file, exc)
            return Resolution(Outcome.FAILED, _empty(500))

        if not info.is_dir:
            return _serve(request, options, file, handle, info)

        if not request.path.endswith("/"):
            location = _with_trailing_slash(request.path)
            return Resolution(Outcome.REDIRECTED, redirect(location, method=request.method))

        index_name = posixpath.join(file or "/", options.index_file)
        try:
            index = fs.open(index_name)
        except OSError:
            return _DECLINED

        with index:
            try:
                index_info = index.stat()
            except OSError:
                return _DECLINED
            if index_info.is_dir:
                return _DECLINED
            return _serve(request, options, index_name, index, index_info)


def _serve(
    request: Request,
    options: StaticOptions,
    file: str,
    handle: File,
    info: FileInfo,
) -> Resolution:
    if not options.skip_logging:
        logger.info("Serving %s", file)

    base = _empty(200)
    if options.expires_after > timedelta(0):
        expires = datetime.now(UTC) + options.expires_after
        tag = generate_etag(str(info.size), info.name, http_date(info.mod_time))
        base = base.with_header("Expires", http_date(expires)).with_header("ETag", tag)
        if request.headers.get("if-none-match") == tag:
            return Resolution(Outcome.SERVED, base.with_status(304))

    response = serve_content(request, file, info.mod_time, handle, info.size, base=base)
    return Resolution(Outcome.SERVED, response)


class StaticHandler:
    """Middleware that serves static files from a storage backend.

    Options are normalized once, here, before the handler sees traffic;
    the instance is immutable afterwards and safe to share across
    workers.
    """

    __slots__ = ("options",)

    def __init__(
        self,
        directory: str | Path,
        options: StaticOptions | None = None,
        *,
        config: AppConfig | None = None,
    ) -> None:
        self.options = build_options(directory, options, config=config)

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        """Serve a static file or fall through.

        The resolver does blocking file I/O, so it runs in a worker thread.
        """
        resolution = await anyio.to_thread.run_sync(resolve, request, self.options)
        if resolution.response is None:
            return await next(request)
        return resolution.response

    def wrap(self, next: Next) -> Next:
        """Wrap *next* so it only runs for requests this handler declines."""

        async def handler(request: Request) -> AnyResponse:
            return await self(request, next)

        return handler

    def __repr__(self) -> str:
        directory = str(self.options.directory)
        return f"StaticHandler(directory={directory!r}, prefix={self.options.prefix!r})"


def static_handler(
    directory: str | Path,
    options: StaticOptions | None = None,
    *,
    config: AppConfig | None = None,
) -> Callable[[Next], Next]:
    """Build a ``wrap(next) -> handler`` function serving *directory*."""
    return StaticHandler(directory, options, config=config).wrap


def custom_options(options: StaticOptions | None, config: AppConfig) -> StaticOptions:
    """Options for a ``<custom_path>/public`` mount.

    The base directory defaults to the custom root itself, so overrides
    never short-circuit known public entries; a miss falls through to
    the bundled assets mounted after them.
    """
    opts = options or StaticOptions()
    return replace(opts, directory=opts.directory or config.resolved_custom_path)


def custom_handler(
    options: StaticOptions | None = None,
    *,
    config: AppConfig,
) -> Callable[[Next], Next]:
    """Like ``static_handler()`` for the site's ``<custom_path>/public`` overrides."""
    return static_handler(
        config.resolved_custom_path / "public",
        custom_options(options, config),
        config=config,
    )
