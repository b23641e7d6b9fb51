"""Development server: one pounce worker, reloading on file changes."""


def run_dev_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = True,
    reload_include: tuple[str, ...] = (),
    reload_dirs: tuple[str, ...] = (),
    app_path: str | None = None,
) -> None:
    """Serve the live *app* object with pounce until interrupted.

    ``perch serve --debug`` passes the served directory in *reload_dirs*,
    so editing a stylesheet restarts the worker. With *app_path*
    (``"module:attribute"``) pounce re-imports the app on each reload
    instead of reusing the object it was given.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=1,
        reload=reload,
        reload_include=reload_include,
        reload_dirs=reload_dirs,
    )
    Server(config, app, app_path=app_path).run()
