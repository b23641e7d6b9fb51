"""Perch application class.

An App is a chain of middleware (static mounts first, in registration
order) in front of a small exact-match router. It is configured at
import time and frozen into an immutable pipeline before the first
request is served.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch._internal.types import Handler, Hook
from perch.config import AppConfig
from perch.middleware.protocol import Middleware, Next
from perch.middleware.static import StaticHandler, StaticOptions, custom_options
from perch.routing.route import Route
from perch.routing.router import Router
from perch.server.handler import build_pipeline, handle_request

logger = logging.getLogger("perch.server")


@dataclass(slots=True)
class _PendingRoute:
    """A route registered during setup, compiled at freeze time."""

    path: str
    handler: Handler
    methods: list[str] | None
    name: str | None


async def _run_hooks(hooks: tuple[Hook, ...] | list[Hook]) -> None:
    for hook in hooks:
        await invoke(hook)


class App:
    """The perch application.

    Setup methods (``route``, ``add_middleware``, ``mount_static``,
    ``mount_custom``, ``on_startup``, ``on_shutdown``) may only be called
    before the app is frozen. Freezing happens on the first ASGI call,
    on ``run()``, or when a ``TestClient`` opens.

    Static mounts are middleware: they run in registration order, before
    the router, and hand declined requests on untouched. Their options
    are normalized at registration, so nothing is computed lazily on the
    request path.

    Thread safety:
        Setup is single-threaded (module import). The freeze transition
        takes a lock and re-checks, so exactly one thread compiles the
        pipeline even when several server threads see their first
        request at once.
    """

    __slots__ = (
        "_freeze_lock",
        "_frozen",
        "_middleware_list",
        "_pending_routes",
        "_pipeline",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._pending_routes: list[_PendingRoute] = []
        self._middleware_list: list[Middleware] = []
        self._startup_hooks: list[Hook] = []
        self._shutdown_hooks: list[Hook] = []
        self._frozen = False
        self._freeze_lock = threading.Lock()
        self._router: Router | None = None
        self._pipeline: Next | None = None

    # -- Setup --

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register a route handler (``GET`` only unless *methods* says otherwise).

        Handlers may take the request as their only argument and return
        a ``Response``, ``str``, ``bytes``, or a ``(value, status)`` tuple::

            @app.route("/health")
            def health():
                return "ok"
        """

        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            self._pending_routes.append(_PendingRoute(path, func, methods, name))
            return func

        return decorator

    def add_middleware(self, middleware: Middleware) -> None:
        """Append *middleware*; the first one added sees requests first."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    def mount_static(
        self,
        directory: str | Path,
        options: StaticOptions | None = None,
    ) -> StaticHandler:
        """Serve *directory* ahead of the router.

        Relative directories resolve against ``config.work_path``.
        Returns the handler (its ``options`` are already normalized).
        """
        self._check_not_frozen()
        handler = StaticHandler(directory, options, config=self.config)
        self._middleware_list.append(handler)
        return handler

    def mount_custom(self, options: StaticOptions | None = None) -> StaticHandler:
        """Serve the site's ``<custom_path>/public`` overrides ahead of the router.

        Mount this before the bundled assets so overrides win.
        """
        return self.mount_static(
            self.config.resolved_custom_path / "public",
            custom_options(options, self.config),
        )

    def on_startup(self, func: Hook) -> Hook:
        """Run *func* (sync or async) when the server starts."""
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Hook) -> Hook:
        """Run *func* (sync or async) when the server stops."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Freeze the app and serve it with pounce.

        ``config.debug`` selects the single-worker reloading dev server;
        otherwise the multi-worker production server runs.
        """
        self._ensure_frozen()
        host = host or self.config.host
        port = port or self.config.port

        if self.config.debug:
            from perch.server.dev import run_dev_server

            run_dev_server(
                self,
                host,
                port,
                reload=True,
                reload_include=self.config.reload_include,
                reload_dirs=self.config.reload_dirs,
            )
            return

        from perch.server.production import run_production_server

        run_production_server(
            self,
            host=host,
            port=port,
            workers=self.config.workers,
            log_level=self.config.log_level,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point for ``lifespan`` and ``http`` scopes."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        pipeline = self._ensure_frozen()
        await handle_request(
            scope,
            receive,
            send,
            pipeline=pipeline,
            debug=self.config.debug,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Answer lifespan events until the server shuts down.

        The app is frozen before the startup hooks run, so the first HTTP
        request never pays for compiling the pipeline.
        """
        self._ensure_frozen()
        while True:
            event = (await receive())["type"]
            if event == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.exception("Startup hook failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif event == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Run the startup hooks in registration order."""
        await _run_hooks(self._startup_hooks)

    async def shutdown(self) -> None:
        """Run the shutdown hooks in registration order."""
        await _run_hooks(self._shutdown_hooks)

    # -- Internal --

    def _ensure_frozen(self) -> Next:
        """Freeze on first use and return the compiled pipeline."""
        pipeline = self._pipeline
        if pipeline is not None:
            return pipeline
        with self._freeze_lock:
            pipeline = self._pipeline
            if pipeline is None:
                pipeline = self._freeze()
        return pipeline

    def _freeze(self) -> Next:
        """Compile routes and middleware into the request pipeline.

        Caller holds ``_freeze_lock``.
        """
        router = Router()
        for pending in self._pending_routes:
            router.add(
                Route(
                    path=pending.path,
                    handler=pending.handler,
                    methods=frozenset(m.upper() for m in pending.methods or ["GET"]),
                    name=pending.name,
                )
            )
        router.compile()

        pipeline = build_pipeline(router, tuple(self._middleware_list))
        self._router = router
        self._frozen = True
        self._pipeline = pipeline
        return pipeline

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "App is frozen: routes, middleware, static mounts and hooks "
                "must be registered before it serves its first request."
            )
            raise RuntimeError(msg)
